"""Procedural spiral galaxy generation and point cloud lifecycle."""
from __future__ import annotations

import logging
import math
import numbers
import time
from typing import Optional

import numpy as np

from .colors import lerp_colors, parse_color
from .config import COLOR_FIELDS, INTEGER_FIELDS, PARAM_BOUNDS, GalaxyParams
from .errors import InvalidParameterError, ResourceDisposalError, SceneError
from .random_source import NumpyRandomSource, RandomSource
from .scene import PointCloud, PointsMaterial, Scene

logger = logging.getLogger(__name__)


# ============================================================================
# Particle Buffer
# ============================================================================

class ParticleBuffer:
    """
    Paired position and color arrays of one generated galaxy.

    Both arrays have shape (count, 3) and dtype float32 and are read-only.
    After release() the arrays are dropped and any access raises
    ResourceDisposalError.
    """

    def __init__(self, positions: np.ndarray, colors: np.ndarray):
        positions = np.ascontiguousarray(positions, dtype=np.float32)
        colors = np.ascontiguousarray(colors, dtype=np.float32)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ValueError(f"positions must have shape (n, 3), got {positions.shape}")
        if colors.shape != positions.shape:
            raise ValueError(
                f"colors shape {colors.shape} doesn't match positions shape {positions.shape}"
            )
        positions.setflags(write=False)
        colors.setflags(write=False)
        self.count = positions.shape[0]
        self._positions: Optional[np.ndarray] = positions
        self._colors: Optional[np.ndarray] = colors

    @property
    def released(self) -> bool:
        return self._positions is None

    @property
    def positions(self) -> np.ndarray:
        if self._positions is None:
            raise ResourceDisposalError("ParticleBuffer has been released")
        return self._positions

    @property
    def colors(self) -> np.ndarray:
        if self._colors is None:
            raise ResourceDisposalError("ParticleBuffer has been released")
        return self._colors

    def flat_positions(self) -> np.ndarray:
        """Interleaved x, y, z values (length 3 * count)."""
        return self.positions.reshape(-1)

    def flat_colors(self) -> np.ndarray:
        """Interleaved r, g, b values (length 3 * count)."""
        return self.colors.reshape(-1)

    def release(self) -> None:
        self._positions = None
        self._colors = None

    def __len__(self) -> int:
        return self.count


# ============================================================================
# Validation
# ============================================================================

def validate_params(params: GalaxyParams) -> None:
    """
    Check every field of ``params`` against PARAM_BOUNDS.

    Raises:
        InvalidParameterError: on the first field out of range or malformed
    """
    for name, (low, high, _step) in PARAM_BOUNDS.items():
        value = getattr(params, name)
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise InvalidParameterError(name, value, reason="must be a number")
        if name in INTEGER_FIELDS and not isinstance(value, numbers.Integral):
            raise InvalidParameterError(name, value, reason="must be an integer")
        if not math.isfinite(value):
            raise InvalidParameterError(name, value, reason="must be finite")
        if not low <= value <= high:
            raise InvalidParameterError(name, value, (low, high))

    for name in COLOR_FIELDS:
        parse_color(getattr(params, name), field=name)


# ============================================================================
# Particle Computation
# ============================================================================

def compute_particles(params: GalaxyParams, rng: RandomSource) -> ParticleBuffer:
    """
    Compute positions and colors for every particle of the galaxy.

    Particle i sits on arm (i mod branches) at a uniform random distance
    along the radius, twisted by spin * distance and jittered on each axis
    by u**randomness_power * sign * randomness * distance. Its color blends
    from inside_color at the center to outside_color at the rim.

    Random draws are taken in a fixed order: the radial fractions (n,),
    then the per-axis samples (n, 3), then the per-axis signs (n, 3).

    Args:
        params: Validated galaxy parameters
        rng: Source of uniform samples and signs

    Returns:
        A new ParticleBuffer with params.particle_count particles
    """
    n = params.particle_count
    branches = params.branches

    index = np.arange(n)
    branch_angles = 2.0 * np.pi * (index % branches) / branches

    radii = params.radius * _draw(rng.uniform(n), (n,))
    spin_angles = params.spin * radii

    samples = _draw(rng.uniform((n, 3)), (n, 3))
    signs = _draw(rng.signs((n, 3)), (n, 3))
    offsets = np.power(samples, params.randomness_power) * signs
    offsets *= params.randomness * radii[:, np.newaxis]

    angles = branch_angles + spin_angles
    positions = np.empty((n, 3), dtype=np.float64)
    positions[:, 0] = np.cos(angles) * radii + offsets[:, 0]
    positions[:, 1] = offsets[:, 1]
    positions[:, 2] = np.sin(angles) * radii + offsets[:, 2]

    inside = parse_color(params.inside_color, field="inside_color")
    outside = parse_color(params.outside_color, field="outside_color")
    t = np.clip(radii / params.radius, 0.0, 1.0)
    colors = lerp_colors(inside, outside, t)

    return ParticleBuffer(positions, colors)


def _draw(values: np.ndarray, shape: tuple) -> np.ndarray:
    values = np.asarray(values, dtype=np.float64)
    if values.shape != shape:
        raise ValueError(f"Random source returned shape {values.shape}, expected {shape}")
    return values


# ============================================================================
# Generator
# ============================================================================

class GalaxyGenerator:
    """
    Owns the galaxy point cloud displayed in a scene.

    Each generate() call validates the parameters, removes and disposes the
    previous point cloud, computes a new buffer and adds its point cloud to
    the scene. At most one generated point cloud is ever in the scene.

    Calls must be serialised by the caller.
    """

    def __init__(self, scene: Scene, rng: Optional[RandomSource] = None):
        self.scene = scene
        self.rng = rng if rng is not None else NumpyRandomSource()
        self.current: Optional[PointCloud] = None
        self.generation = 0

    def generate(self, params: GalaxyParams) -> ParticleBuffer:
        """
        Replace the displayed galaxy with one generated from ``params``.

        Raises:
            InvalidParameterError: params out of bounds; the current galaxy
                stays displayed
            ResourceDisposalError: the scene refused to remove the current
                galaxy; nothing new is installed
        """
        validate_params(params)
        self.release()

        start = time.perf_counter()
        buffer = compute_particles(params, self.rng)
        cloud = PointCloud(buffer, PointsMaterial(size=params.particle_size))
        self.scene.add(cloud)
        self.current = cloud
        self.generation += 1

        elapsed = (time.perf_counter() - start) * 1000.0
        logger.info(
            f"Generated galaxy #{self.generation}: {buffer.count} particles, "
            f"{params.branches} branches in {elapsed:.1f} ms"
        )
        return buffer

    def release(self) -> None:
        """Remove the current point cloud from the scene and dispose it."""
        previous = self.current
        if previous is None:
            return
        try:
            self.scene.remove(previous)
        except SceneError as exc:
            raise ResourceDisposalError(f"Could not remove {previous!r} from the scene") from exc
        previous.dispose()
        self.current = None
        logger.debug(f"Released {previous!r}")

    @property
    def buffer(self) -> Optional[ParticleBuffer]:
        return self.current.buffer if self.current is not None else None

    def __enter__(self) -> "GalaxyGenerator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
