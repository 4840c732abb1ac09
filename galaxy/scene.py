"""Display-side objects: point material, point cloud and the scene holding them."""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Tuple

from .errors import SceneError

if TYPE_CHECKING:
    from .generator import ParticleBuffer

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


@dataclass
class PointsMaterial:
    """Rendering settings shared by every point of a cloud."""
    size: float
    size_attenuation: bool = True
    depth_write: bool = False
    blending: str = "additive"
    vertex_colors: bool = True
    disposed: bool = False

    def dispose(self) -> None:
        self.disposed = True


class PointCloud:
    """Renderable wrapper owning one ParticleBuffer and its material."""

    def __init__(self, buffer: "ParticleBuffer", material: PointsMaterial):
        self.id = next(_ids)
        self.buffer = buffer
        self.material = material
        self.disposed = False

    def dispose(self) -> None:
        """Release geometry and material. Safe to call more than once."""
        if self.disposed:
            return
        self.buffer.release()
        self.material.dispose()
        self.disposed = True
        logger.debug(f"PointCloud {self.id} disposed")

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else f"{self.buffer.count} points"
        return f"PointCloud(id={self.id}, {state})"


Listener = Callable[[str, PointCloud], None]


class Scene:
    """
    Set of live display objects.

    Listeners are called with ("add" | "remove", obj) after each change.
    Listener errors are logged and do not roll back the change.
    """

    def __init__(self):
        self._objects: List[PointCloud] = []
        self._listeners: List[Listener] = []

    def add(self, obj: PointCloud) -> None:
        if obj in self._objects:
            raise SceneError(f"{obj!r} is already in the scene")
        if obj.disposed:
            raise SceneError(f"Cannot add disposed {obj!r}")
        self._objects.append(obj)
        self._notify("add", obj)

    def remove(self, obj: PointCloud) -> None:
        if obj not in self._objects:
            raise SceneError(f"{obj!r} is not in the scene")
        self._objects.remove(obj)
        self._notify("remove", obj)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def objects(self) -> Tuple[PointCloud, ...]:
        return tuple(self._objects)

    def _notify(self, event: str, obj: PointCloud) -> None:
        # Membership has already changed; a failing listener must not undo it
        for listener in list(self._listeners):
            try:
                listener(event, obj)
            except Exception:
                logger.exception(f"Scene listener failed on {event} of {obj!r}")

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, obj: object) -> bool:
        return obj in self._objects
