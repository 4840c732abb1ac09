#!/usr/bin/env python3
"""Render one generated galaxy to a PNG image."""

import argparse
import logging
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from galaxy.config import GalaxyParams
from galaxy.generator import GalaxyGenerator
from galaxy.log import setup_logging
from galaxy.presets import get_preset
from galaxy.random_source import NumpyRandomSource
from galaxy.scene import Scene

logger = logging.getLogger(__name__)


def render(params: GalaxyParams, out: Path, elevation: float = 90.0, seed=None, dpi: int = 200) -> Path:
    """Generate a galaxy and save a scatter plot of it seen from ``elevation`` degrees."""
    scene = Scene()
    with GalaxyGenerator(scene, NumpyRandomSource(seed)) as generator:
        buffer = generator.generate(params)

        # Tilt the disk (xz plane) towards the viewer around the x axis
        tilt = np.radians(elevation)
        x = buffer.positions[:, 0]
        y = buffer.positions[:, 2] * np.sin(tilt) + buffer.positions[:, 1] * np.cos(tilt)

        fig, ax = plt.subplots(figsize=(8, 8), facecolor="black")
        ax.set_facecolor("black")
        ax.scatter(x, y, c=buffer.colors, s=max(params.particle_size * 100, 0.05),
                   linewidths=0, alpha=0.8)
        limit = params.radius * 1.2
        ax.set_xlim(-limit, limit)
        ax.set_ylim(-limit, limit)
        ax.set_aspect("equal")
        ax.axis("off")

        out.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(out, dpi=dpi, facecolor="black", bbox_inches="tight")
        plt.close(fig)
    return out


def main():
    ap = argparse.ArgumentParser(description="Render a spiral galaxy snapshot.")
    ap.add_argument("--preset", type=str, default=None)
    ap.add_argument("--particles", type=int, default=None)
    ap.add_argument("--branches", type=int, default=None)
    ap.add_argument("--spin", type=float, default=None)
    ap.add_argument("--randomness", type=float, default=None)
    ap.add_argument("--elevation", type=float, default=90.0, help="90 = top-down view")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--out", type=str, default="plots/galaxy.png")
    args = ap.parse_args()

    setup_logging("INFO")
    params = get_preset(args.preset).params if args.preset else GalaxyParams()
    overrides = {
        "particle_count": args.particles,
        "branches": args.branches,
        "spin": args.spin,
        "randomness": args.randomness,
    }
    params = params.replace(**{k: v for k, v in overrides.items() if v is not None})

    path = render(params, Path(args.out), elevation=args.elevation, seed=args.seed)
    logger.info(f"Saved: {path}")


if __name__ == "__main__":
    main()
