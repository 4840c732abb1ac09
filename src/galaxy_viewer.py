#!/usr/bin/env python3
"""
Spiral Galaxy Viewer with Pygame

Desktop host for the galaxy generator: orbit camera, additive point
rendering and a keyboard parameter panel. Edits stay pending until
committed with Enter; each commit regenerates the whole galaxy.
"""

import argparse
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pygame

from galaxy.config import INTEGER_FIELDS, PARAM_BOUNDS, GalaxyParams
from galaxy.errors import InvalidParameterError
from galaxy.generator import GalaxyGenerator
from galaxy.log import setup_logging
from galaxy.presets import get_preset, list_presets
from galaxy.random_source import NumpyRandomSource
from galaxy.scene import Scene

logger = logging.getLogger(__name__)


@dataclass
class ViewerConfig:
    """Window and camera settings"""
    width: int = 1200
    height: int = 800
    fps: int = 60
    panel_width: int = 300
    max_splat_radius: int = 3  # pixels
    seed: Optional[int] = None


class GalaxyViewer:
    """
    Pygame window displaying the generated galaxy.

    Controls:
    - Left drag rotates, right drag pans, scroll zooms
    - Up/Down selects a parameter, Left/Right edits it (Shift for x10)
    - Enter commits the edit, Backspace discards it
    - R regenerates, P cycles presets, Q/Esc quits
    """

    def __init__(self, config: ViewerConfig, params: GalaxyParams, headless: bool = False):
        self.config = config
        self.params = params
        self.headless = headless

        self.scene = Scene()
        self.generator = GalaxyGenerator(self.scene, NumpyRandomSource(config.seed))

        # Parameter panel
        self.fields = list(PARAM_BOUNDS)
        self.selected = 0
        self.pending: Optional[float] = None
        self.message = ""
        self.preset_index = -1

        # Camera
        self.cam_yaw = 0.6
        self.cam_pitch = 0.5
        self.cam_zoom = 1.0
        self.cam_pan = [0.0, 0.0]
        self.mouse_dragging = False
        self.right_dragging = False
        self.last_mouse_pos = None
        self.update_display_params()

        self.screen = None
        self.font = None
        self.clock = None
        if not headless:
            self.setup_display()

        self.generator.generate(self.params)

    def update_display_params(self):
        """Scale so the galaxy radius fills most of the view"""
        view_width = self.config.width - self.config.panel_width
        self.cx = self.config.panel_width + view_width // 2
        self.cy = self.config.height // 2
        self.ppu = min(view_width, self.config.height) / (self.params.radius * 2.5)

    def setup_display(self, title: str = "Spiral Galaxy"):
        """Initialize pygame display."""
        if not pygame.get_init():
            pygame.init()
        self.screen = pygame.display.set_mode((self.config.width, self.config.height))
        pygame.display.set_caption(title)
        self.clock = pygame.time.Clock()
        self.font = pygame.font.Font(None, 24)
        self.headless = False

    # =========================================================================
    # Parameter Panel
    # =========================================================================

    @property
    def selected_field(self) -> str:
        return self.fields[self.selected]

    def adjust(self, direction: int, coarse: bool = False):
        """Move the pending value of the selected field by one step."""
        name = self.selected_field
        low, high, step = PARAM_BOUNDS[name]
        current = self.pending if self.pending is not None else getattr(self.params, name)
        value = current + direction * step * (10 if coarse else 1)
        value = min(max(value, low), high)
        if name in INTEGER_FIELDS:
            value = int(round(value))
        else:
            value = round(value, 3)
        self.pending = value

    def commit(self) -> bool:
        """Regenerate with the pending edit. Returns True if it was applied."""
        if self.pending is None:
            return False
        name, value = self.selected_field, self.pending
        self.pending = None
        return self.apply(self.params.replace(**{name: value}))

    def apply(self, params: GalaxyParams) -> bool:
        try:
            self.generator.generate(params)
        except InvalidParameterError as e:
            self.message = str(e)
            logger.warning(f"Rejected parameters: {e}")
            return False
        self.params = params
        self.message = f"Generation {self.generator.generation}: {params.particle_count} particles"
        self.update_display_params()
        return True

    def next_preset(self):
        presets = list_presets()
        self.preset_index = (self.preset_index + 1) % len(presets)
        preset = presets[self.preset_index]
        logger.info(f"Applying preset {preset.name}")
        self.pending = None
        self.apply(preset.params)

    # =========================================================================
    # 3D Projection and Camera
    # =========================================================================

    def project_batch(self, positions: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Batch project all positions to 2D.
        Returns (screen_x, screen_y, depth) arrays.
        """
        # Rotate around Y axis (yaw)
        cos_yaw = np.cos(self.cam_yaw)
        sin_yaw = np.sin(self.cam_yaw)
        x1 = positions[:, 0] * cos_yaw - positions[:, 2] * sin_yaw
        z1 = positions[:, 0] * sin_yaw + positions[:, 2] * cos_yaw
        y1 = positions[:, 1]

        # Rotate around X axis (pitch)
        cos_pitch = np.cos(self.cam_pitch)
        sin_pitch = np.sin(self.cam_pitch)
        y2 = y1 * cos_pitch - z1 * sin_pitch
        z2 = y1 * sin_pitch + z1 * cos_pitch

        screen_x = self.cx + x1 * self.ppu * self.cam_zoom + self.cam_pan[0]
        screen_y = self.cy - y2 * self.ppu * self.cam_zoom + self.cam_pan[1]
        return screen_x, screen_y, z2

    # =========================================================================
    # Drawing
    # =========================================================================

    def splat_radius(self) -> int:
        """Point radius in pixels, capped at max_splat_radius."""
        cloud = self.generator.current
        if cloud is None:
            return 0
        # Material size is in world units
        radius = int(cloud.material.size * self.ppu * self.cam_zoom)
        return min(max(radius, 0), self.config.max_splat_radius)

    def render_points(self) -> np.ndarray:
        """Accumulate point colors additively into a (width, height, 3) image."""
        canvas = np.zeros((self.config.width, self.config.height, 3), dtype=np.float32)
        cloud = self.generator.current
        if cloud is None:
            return canvas.astype(np.uint8)

        screen_x, screen_y, _ = self.project_batch(cloud.buffer.positions)
        sx = screen_x.astype(np.int64)
        sy = screen_y.astype(np.int64)
        colors = cloud.buffer.colors

        radius = self.splat_radius()
        for dx in range(-radius, radius + 1):
            for dy in range(-radius, radius + 1):
                px, py = sx + dx, sy + dy
                visible = (
                    (px >= self.config.panel_width) & (px < self.config.width)
                    & (py >= 0) & (py < self.config.height)
                )
                np.add.at(canvas, (px[visible], py[visible]), colors[visible])

        return (np.clip(canvas, 0.0, 1.0) * 255).astype(np.uint8)

    def draw(self):
        pygame.surfarray.blit_array(self.screen, self.render_points())
        self.draw_panel()

    def draw_panel(self):
        """Draw the parameter panel on the left"""
        panel = pygame.Surface((self.config.panel_width, self.config.height), pygame.SRCALPHA)
        panel.fill((20, 20, 30, 220))
        self.screen.blit(panel, (0, 0))

        y = 15
        for i, name in enumerate(self.fields):
            value = getattr(self.params, name)
            text = f"{name}: {value}"
            color = (200, 200, 200)
            if i == self.selected:
                color = (255, 220, 120)
                if self.pending is not None:
                    text = f"{name}: {value} -> {self.pending}*"
            self.screen.blit(self.font.render(text, True, color), (12, y))
            y += 26

        y += 10
        for name in ("inside_color", "outside_color"):
            self.screen.blit(self.font.render(f"{name}: {getattr(self.params, name)}", True, (200, 200, 200)), (12, y))
            y += 26

        info_lines = [
            f"FPS: {int(self.clock.get_fps())}",
            f"Generation: {self.generator.generation}",
            "Enter: commit  R: regenerate",
            "P: next preset  Q: quit",
        ]
        y = self.config.height - 30 * (len(info_lines) + 1)
        for line in info_lines:
            self.screen.blit(self.font.render(line, True, (150, 150, 170)), (12, y))
            y += 26
        if self.message:
            self.screen.blit(self.font.render(self.message[:40], True, (255, 140, 140)), (12, y))

    # =========================================================================
    # Event Handling
    # =========================================================================

    def handle_events(self) -> bool:
        """Handle pygame events. Returns False to quit."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False

            elif event.type == pygame.MOUSEBUTTONDOWN:
                if event.button == 1:  # Left click - rotate
                    self.mouse_dragging = True
                    self.last_mouse_pos = pygame.mouse.get_pos()
                elif event.button == 3:  # Right click - pan
                    self.right_dragging = True
                    self.last_mouse_pos = pygame.mouse.get_pos()

            elif event.type == pygame.MOUSEBUTTONUP:
                if event.button == 1:
                    self.mouse_dragging = False
                elif event.button == 3:
                    self.right_dragging = False

            elif event.type == pygame.MOUSEMOTION:
                pos = pygame.mouse.get_pos()
                if self.last_mouse_pos and (self.mouse_dragging or self.right_dragging):
                    dx = pos[0] - self.last_mouse_pos[0]
                    dy = pos[1] - self.last_mouse_pos[1]
                    if self.mouse_dragging:
                        self.cam_yaw += dx * 0.01
                        self.cam_pitch -= dy * 0.01
                        # Clamp pitch to avoid flipping
                        self.cam_pitch = np.clip(self.cam_pitch, -np.pi / 2 + 0.1, np.pi / 2 - 0.1)
                    else:
                        self.cam_pan[0] += dx
                        self.cam_pan[1] += dy
                self.last_mouse_pos = pos

            elif event.type == pygame.MOUSEWHEEL:
                zoom_factor = 1.1 if event.y > 0 else 0.9
                self.cam_zoom = np.clip(self.cam_zoom * zoom_factor, 0.1, 20.0)

            elif event.type == pygame.KEYDOWN:
                coarse = bool(event.mod & pygame.KMOD_SHIFT)
                if event.key in (pygame.K_ESCAPE, pygame.K_q):
                    return False
                elif event.key == pygame.K_UP:
                    self.pending = None
                    self.selected = (self.selected - 1) % len(self.fields)
                elif event.key == pygame.K_DOWN:
                    self.pending = None
                    self.selected = (self.selected + 1) % len(self.fields)
                elif event.key == pygame.K_LEFT:
                    self.adjust(-1, coarse)
                elif event.key == pygame.K_RIGHT:
                    self.adjust(+1, coarse)
                elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                    self.commit()
                elif event.key == pygame.K_BACKSPACE:
                    self.pending = None
                elif event.key == pygame.K_r:
                    self.apply(self.params)
                elif event.key == pygame.K_p:
                    self.next_preset()

        return True

    # =========================================================================
    # Main Loop
    # =========================================================================

    def run(self):
        """Render loop; regeneration only happens on committed edits."""
        running = True
        try:
            while running:
                running = self.handle_events()
                self.draw()
                pygame.display.flip()
                self.clock.tick(self.config.fps)
        finally:
            self.generator.release()
            pygame.quit()


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="Spiral galaxy viewer")
    parser.add_argument("--preset", type=str, help="Start from a named preset")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--width", type=int, default=1200)
    parser.add_argument("--height", type=int, default=800)
    parser.add_argument("--log-level", type=str, default="INFO")
    args = parser.parse_args()

    setup_logging(args.log_level)
    params = get_preset(args.preset).params if args.preset else GalaxyParams()
    config = ViewerConfig(width=args.width, height=args.height, seed=args.seed)

    logger.info("Left drag to rotate | Right drag to pan | Scroll to zoom")
    logger.info("Up/Down select, Left/Right edit, Enter commit, P preset, Q quit")

    GalaxyViewer(config, params).run()


if __name__ == "__main__":
    main()
