# visualization.py
"""
Handles the visualization of the particle simulation using Pygame.

The renderer only reads the simulation's current buffer. Its inputs are
forwarded to the Simulation: the pointer position drives pointer
repulsion, R resets, SPACE randomizes the attraction matrix, S logs the
current seed.
"""
import logging
from typing import Optional, Tuple, TYPE_CHECKING

import numpy as np
import pygame

from constants import (
    BACKGROUND_COLOR, DEFAULT_PARTICLE_SIZE, DEFAULT_WINDOW_SIZE, FPS, FULLSCREEN,
    HUD_TEXT_COLOR, MOTION_BLUR_ALPHA, TYPE_COLORS
)
from seed import InvalidMatrix

if TYPE_CHECKING:
    from simulation import Simulation

# --- Data Contracts ---
#
# world_to_screen(positions, width, height) -> np.ndarray:
#   - Maps (N, 2) world coordinates, [-1, 1]^2 with +y up, to (N, 2) int
#     pixel coordinates centred in the window, aspect ratio preserved.
#
# screen_to_world(pixel, width, height) -> Tuple[float, float]:
#   - The inverse of world_to_screen for a single pixel.
#
# attraction_cell_color(value: float) -> Tuple[int, int, int]:
#   - Green for attraction, red for repulsion, intensity proportional to
#     |value|; gray for zero.
#
# class Visualizer:
#   - draw(self, simulation: "Simulation") -> bool:
#     - Outputs: False if the user has quit, True otherwise.
#     - Side Effects: Renders particles and the HUD, handles Pygame events,
#       and may reset, reseed or move the pointer of the simulation.

# Fraction of the shorter window side used by the [-1, 1] square.
_VIEW_FILL = 0.95


def _view_scale(width: int, height: int) -> float:
    return min(width, height) * _VIEW_FILL / 2.0


def world_to_screen(positions: np.ndarray, width: int, height: int) -> np.ndarray:
    scale = _view_scale(width, height)
    pixels = np.empty(positions.shape, dtype=np.int32)
    pixels[:, 0] = np.rint(width / 2.0 + positions[:, 0] * scale)
    pixels[:, 1] = np.rint(height / 2.0 - positions[:, 1] * scale)
    return pixels


def screen_to_world(pixel: Tuple[int, int], width: int, height: int) -> Tuple[float, float]:
    scale = _view_scale(width, height)
    return ((pixel[0] - width / 2.0) / scale, (height / 2.0 - pixel[1]) / scale)


def attraction_cell_color(value: float) -> Tuple[int, int, int]:
    intensity = int(200 * min(abs(value), 1.0))
    if value > 0:
        return (0, intensity, 0)
    if value < 0:
        return (intensity, 0, 0)
    return (50, 50, 50)


class Visualizer:
    """
    Renders the particle grid and forwards user input to the simulation.
    """
    def __init__(self, particle_size: int = DEFAULT_PARTICLE_SIZE, window_size: Optional[Tuple[int, int]] = None):
        """
        Initializes Pygame and the display window.
        """
        pygame.init()
        pygame.font.init()

        if FULLSCREEN:
            display_info = pygame.display.Info()
            width, height = display_info.current_w, display_info.current_h
            self.screen = pygame.display.set_mode((width, height), pygame.FULLSCREEN)
        else:
            width, height = window_size or DEFAULT_WINDOW_SIZE
            self.screen = pygame.display.set_mode((width, height))
        self.width, self.height = width, height

        # Drawn over the previous frame each tick so particles leave fading trails.
        self.fade_surface = pygame.Surface((width, height), pygame.SRCALPHA)
        self.fade_surface.fill((*BACKGROUND_COLOR, MOTION_BLUR_ALPHA))

        pygame.display.set_caption("Particle Life")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont(None, 20)
        self.particle_size = particle_size
        self.colors = [pygame.Color(*rgb) for rgb in TYPE_COLORS]

        # Attraction matrix panel, top-right corner.
        self.cell_size = 18
        self.cell_padding = 2
        self.label_radius = 5
        matrix_span = len(TYPE_COLORS) * (self.cell_size + self.cell_padding)
        self.matrix_pos = (width - matrix_span - 10, 10 + 2 * self.label_radius + 4)
        self.screen.fill(BACKGROUND_COLOR)

        logging.info(f"Visualizer initialized with Pygame display ({width}x{height}).")

    def _handle_events(self, simulation: "Simulation") -> bool:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                logging.info("Quit event received. Shutting down visualizer.")
                return False

            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    logging.info("ESC key pressed. Shutting down visualizer.")
                    return False
                if event.key == pygame.K_r:
                    simulation.reset()
                elif event.key == pygame.K_SPACE:
                    simulation.randomize_attraction()
                elif event.key == pygame.K_s:
                    logging.info(f"Current seed: {self._seed_label(simulation)}")

            if event.type == pygame.MOUSEMOTION:
                simulation.set_pointer(*screen_to_world(event.pos, self.width, self.height))
            elif event.type == pygame.WINDOWLEAVE:
                simulation.clear_pointer()
        return True

    @staticmethod
    def _seed_label(simulation: "Simulation") -> str:
        try:
            return simulation.export_seed()
        except InvalidMatrix:
            return "(matrix not quantized)"

    def _draw_hud(self, simulation: "Simulation"):
        lines = [
            f"{simulation.particles.particle_count} particles   "
            f"frame {simulation.frame}   {self.clock.get_fps():.0f} fps",
            f"seed {self._seed_label(simulation)}",
        ]
        y = 8
        for line in lines:
            surface = self.font.render(line, True, HUD_TEXT_COLOR)
            self.screen.blit(surface, (8, y))
            y += self.font.get_linesize()

    def _draw_attraction_matrix(self, simulation: "Simulation"):
        """Renders the live attraction matrix with colored type labels."""
        matrix = simulation.attraction
        step = self.cell_size + self.cell_padding
        mx, my = self.matrix_pos

        for i, color in enumerate(self.colors):
            offset = i * step + self.cell_size // 2
            # Row labels on the left, column labels on top.
            pygame.draw.circle(self.screen, color, (mx - self.label_radius - 4, my + offset), self.label_radius)
            pygame.draw.circle(self.screen, color, (mx + offset, my - self.label_radius - 4), self.label_radius)

        rows, cols = matrix.shape
        for r in range(rows):
            for c in range(cols):
                cell_rect = pygame.Rect(mx + c * step, my + r * step, self.cell_size, self.cell_size)
                pygame.draw.rect(self.screen, attraction_cell_color(matrix[r, c]), cell_rect)

    def draw(self, simulation: "Simulation") -> bool:
        """
        Draws all particles and the HUD, and handles events.

        Returns:
            bool: False if the simulation should exit, True otherwise.
        """
        if not self._handle_events(simulation):
            return False

        self.screen.blit(self.fade_surface, (0, 0))

        state = simulation.current_state()
        pixels = world_to_screen(state.positions, self.width, self.height)
        for (x, y), p_type in zip(pixels, state.types):
            pygame.draw.circle(self.screen, self.colors[p_type], (int(x), int(y)), self.particle_size)

        self._draw_hud(simulation)
        self._draw_attraction_matrix(simulation)
        pygame.display.flip()
        self.clock.tick(FPS)
        return True

    def close(self):
        """Shuts down Pygame."""
        pygame.font.quit()
        pygame.quit()
