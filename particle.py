# particle.py
"""
Manages the state of all particles in the simulation.

This module defines the ParticleGrid class, which stores particle data in
two interchangeable NumPy buffers (ping-pong) plus one immutable array of
particle types. Particles are laid out on a square grid of side R; a
particle's identity is its linear index i, at grid cell (i % R, i // R).
"""
import logging
import math
from enum import IntEnum
from typing import NamedTuple

import numpy as np

from constants import SPAWN_EXTENT

# --- Data Contracts ---
#
# class ParticleGrid:
#   - __init__(self, population: int, rng: np.random.Generator):
#     - Inputs:
#       - population: requested number of particles (>= 0).
#       - rng: source of randomness for positions and padding types.
#     - Side Effects: Allocates both buffers and the type array.
#     - Invariants:
#       - self.buffers has shape (2, R*R, 4) of dtype float64; each row is
#         (x, y, vx, vy).
#       - self.types has shape (R*R,) of dtype int32, values in [0, 6), and
#         is never written after construction.
#       - self.parity is 0 or 1 and names the current buffer.
#
#   - reset(self, rng) -> None:
#     - Side Effects: Refills both buffers with fresh random positions and
#       zero velocity, parity back to 0. Types and R are unchanged.
#
#   - swap(self) -> None:
#     - Side Effects: Flips parity; the buffer just written becomes current.


class ParticleType(IntEnum):
    """The six particle classes. The value doubles as the attraction matrix index."""
    RED = 0
    GREEN = 1
    BLUE = 2
    YELLOW = 3
    CYAN = 4
    MAGENTA = 5


NUM_TYPES = len(ParticleType)

# Column layout of a state buffer row.
X, Y, VX, VY = range(4)


class ParticleView(NamedTuple):
    """Read-only view of the current buffer, for renderers."""
    positions: np.ndarray
    velocities: np.ndarray
    types: np.ndarray
    grid_side: int


def padded_population(population: int) -> int:
    """Rounds `population` up to a multiple of the number of types."""
    return -(-population // NUM_TYPES) * NUM_TYPES


def grid_side(count: int) -> int:
    """Returns the side of the smallest square grid holding `count` particles."""
    side = math.isqrt(count)
    if side * side < count:
        side += 1
    return side


def _spawn_state(rng: np.random.Generator, count: int) -> np.ndarray:
    state = np.zeros((count, 4), dtype=np.float64)
    state[:, X:Y + 1] = rng.uniform(-SPAWN_EXTENT, SPAWN_EXTENT, size=(count, 2))
    return state


class ParticleGrid:
    """
    A double-buffered container for every particle on the R x R grid.
    """
    def __init__(self, population: int, rng: np.random.Generator):
        """
        Initializes the grid for `population` particles.

        Args:
            population (int): The requested population size.
            rng (np.random.Generator): Randomness for positions and padding types.
        """
        if population < 0:
            msg = f"Configuration error: population must be >= 0, got {population}."
            logging.critical(msg)
            raise ValueError(msg)

        self.population = population
        self.padded_population = padded_population(population)
        self.grid_side = grid_side(self.padded_population)
        self.particle_count = self.grid_side * self.grid_side

        # The first padded_population slots cycle through the types so each
        # gets an equal share; the surplus slots of the square get random types.
        types = np.empty(self.particle_count, dtype=np.int32)
        types[:self.padded_population] = np.arange(self.padded_population) % NUM_TYPES
        types[self.padded_population:] = rng.integers(
            0, NUM_TYPES, size=self.particle_count - self.padded_population
        )
        types.setflags(write=False)
        self.types = types

        self.buffers = np.empty((2, self.particle_count, 4), dtype=np.float64)
        self.parity = 0
        self.reset(rng)

        logging.info(
            f"ParticleGrid initialized with {self.particle_count} particles "
            f"({self.grid_side}x{self.grid_side} grid) for a requested population "
            f"of {population}."
        )
        logging.debug(
            f"Buffers shape: {self.buffers.shape}, types shape: {self.types.shape}, "
            f"padding particles: {self.particle_count - self.padded_population}, "
            f"per-type counts: {self.type_counts().tolist()}"
        )

    def reset(self, rng: np.random.Generator):
        """Refills both buffers with random positions and zero velocity."""
        self.buffers[0] = _spawn_state(rng, self.particle_count)
        self.buffers[1] = _spawn_state(rng, self.particle_count)
        self.parity = 0

    @property
    def current(self) -> np.ndarray:
        """The buffer read during the next tick."""
        return self.buffers[self.parity]

    @property
    def next(self) -> np.ndarray:
        """The buffer written during the next tick."""
        return self.buffers[1 - self.parity]

    def swap(self):
        self.parity = 1 - self.parity

    def view(self) -> ParticleView:
        """Returns read-only views of the current positions, velocities and types."""
        positions = self.current[:, X:Y + 1]
        velocities = self.current[:, VX:VY + 1]
        positions.setflags(write=False)
        velocities.setflags(write=False)
        return ParticleView(positions, velocities, self.types, self.grid_side)

    def type_counts(self) -> np.ndarray:
        return np.bincount(self.types, minlength=NUM_TYPES)

    def release(self):
        """Drops both buffers. The grid is unusable afterwards."""
        self.buffers = None
        logging.debug("ParticleGrid buffers released.")
