"""Galaxy parameters and application configuration."""
from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

Color = Union[str, int, Tuple[float, float, float]]


# (min, max, step) per numeric field; the step is the panel granularity
PARAM_BOUNDS: Dict[str, Tuple[float, float, float]] = {
    "particle_count": (100, 300000, 100),
    "particle_size": (0.001, 0.1, 0.001),
    "branches": (3, 30, 1),
    "radius": (0.1, 100.0, 0.1),
    "spin": (-5.0, 5.0, 0.001),
    "randomness": (0.0, 2.0, 0.001),
    "randomness_power": (1.0, 10.0, 0.001),
}

INTEGER_FIELDS = ("particle_count", "branches")
COLOR_FIELDS = ("inside_color", "outside_color")


@dataclass(frozen=True)
class GalaxyParams:
    """Snapshot of the inputs for one galaxy generation."""

    particle_count: int = 5000
    particle_size: float = 0.005
    branches: int = 3
    radius: float = 2.0
    spin: float = 1.0
    randomness: float = 1.0
    randomness_power: float = 3.0
    inside_color: Color = "#ff6030"
    outside_color: Color = "#1b3984"

    def replace(self, **changes: Any) -> "GalaxyParams":
        """Return a new snapshot with ``changes`` applied."""
        unknown = set(changes) - {f.name for f in dataclasses.fields(self)}
        if unknown:
            raise ValueError(f"Unknown galaxy parameters: {sorted(unknown)}")
        return dataclasses.replace(self, **changes)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GalaxyParams":
        valid_keys = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in valid_keys})


DEFAULT_PARAMS = GalaxyParams()


@dataclass
class AppConfig:
    """Runtime configuration for the galaxy host."""

    host: str = "127.0.0.1"
    port: int = 8000
    seed: Optional[int] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None
    broadcast_interval: float = 5.0  # Seconds between WebSocket keep-alives
    params: GalaxyParams = field(default_factory=GalaxyParams)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["params"] = self.params.as_dict()
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        data = dict(data)
        params = data.pop("params", None) or {}
        valid_keys = {f.name for f in dataclasses.fields(cls)}
        data = {k: v for k, v in data.items() if k in valid_keys}
        return cls(params=GalaxyParams.from_dict(params), **data)

    @classmethod
    def load(cls, filepath: str) -> "AppConfig":
        """Load configuration from a JSON file."""
        with open(filepath, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)

    def save(self, filepath: str) -> None:
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)


DEFAULT_CONFIG = AppConfig()
