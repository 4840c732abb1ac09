"""Preset galaxy shapes."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from .config import GalaxyParams


@dataclass
class Preset:
    """A named galaxy parameter set."""
    name: str
    description: str
    params: GalaxyParams


# ============================================================================
# Preset Definitions
# ============================================================================

CLASSIC = Preset(
    name="classic",
    description="Three loose arms, warm core fading to blue",
    params=GalaxyParams(),
)

TIGHT_SPIRAL = Preset(
    name="tight_spiral",
    description="Strongly wound arms with little scatter",
    params=GalaxyParams(
        particle_count=40000,
        particle_size=0.01,
        branches=4,
        radius=5.0,
        spin=1.5,
        randomness=0.2,
        randomness_power=4.0,
    ),
)

MANY_ARMS = Preset(
    name="many_arms",
    description="Twelve thin arms, pinwheel look",
    params=GalaxyParams(
        particle_count=60000,
        particle_size=0.008,
        branches=12,
        radius=4.0,
        spin=0.6,
        randomness=0.3,
        randomness_power=5.0,
        inside_color="#ffd27f",
        outside_color="#3a1c71",
    ),
)

DENSE_CORE = Preset(
    name="dense_core",
    description="Bright compact center, counter-clockwise twist",
    params=GalaxyParams(
        particle_count=100000,
        particle_size=0.005,
        branches=3,
        radius=3.0,
        spin=-2.0,
        randomness=0.5,
        randomness_power=6.0,
        inside_color="#ffffff",
        outside_color="#0b2a6f",
    ),
)

NEBULA = Preset(
    name="nebula",
    description="Barely structured cloud with heavy scatter",
    params=GalaxyParams(
        particle_count=20000,
        particle_size=0.02,
        branches=5,
        radius=6.0,
        spin=0.3,
        randomness=2.0,
        randomness_power=1.5,
        inside_color="#ff5ec4",
        outside_color="#00c2ff",
    ),
)


# ============================================================================
# Preset Registry
# ============================================================================

PRESETS: Dict[str, Preset] = {
    "classic": CLASSIC,
    "tight_spiral": TIGHT_SPIRAL,
    "many_arms": MANY_ARMS,
    "dense_core": DENSE_CORE,
    "nebula": NEBULA,
}


def list_presets() -> List[Preset]:
    """Return list of all available presets."""
    return list(PRESETS.values())


def get_preset(name: str) -> Preset:
    """Get preset by name."""
    if name not in PRESETS:
        raise ValueError(f"Unknown preset '{name}'. Available: {list(PRESETS.keys())}")
    return PRESETS[name]
