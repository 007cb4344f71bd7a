# simulation.py
"""
Handles the core simulation logic and physics calculations.

This module defines the per-particle force/integration kernel and the
Simulation class, which owns the particle grid and advances it by one
tick at a time. Every tick reads the current buffer and writes only the
next one; the roles swap once the whole grid has been written.
"""
import logging
import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
from numba import jit

from constants import FORCE_SCALE, NEIGHBOR_RANGE
from particle import NUM_TYPES, ParticleGrid, ParticleView
from seed import InvalidSeed, matrix_to_seed, random_matrix, seed_to_matrix

# --- Data Contracts ---
#
# advance(source, target, types, side, attraction, physics, pointer=None) -> None:
#   - Inputs:
#     - source: (R*R, 4) float64 array of (x, y, vx, vy), read only.
#     - target: (R*R, 4) float64 array, fully overwritten. Must not share
#       memory with source.
#     - types: (R*R,) int array, values in [0, 6).
#     - side: grid side R.
#     - attraction: (6, 6) array; cell (i, j) is the coefficient a type-i
#       particle feels from a type-j neighbor.
#     - physics: PhysicsParameters.
#     - pointer: optional (x, y) repulsion point.
#
# class Simulation:
#   - __init__(self, population, attraction=None, physics=None, seed=None)
#   - tick(self) -> None: one kernel pass current -> next, then swap.
#   - reset(self) -> None: fresh positions, same grid and types.
#   - reseed(self, attraction) / set_physics(self, physics): effective on
#     the next tick, no reallocation.
#   - resize_population(self, population) -> None: full reallocation.
#   - current_state(self) -> ParticleView: read-only, for rendering.
#   - close(self) -> None: releases the buffers; no tick may follow.


@dataclass(frozen=True)
class PhysicsParameters:
    """
    Scalar physics configuration, read fresh on every tick.
    """
    max_distance: float = 0.25
    damping: float = 0.2
    time_scale: float = 10.0
    wall_repel: float = 0.125
    wall_force: float = 0.01
    mouse_repel: float = 1.0
    # Pointer repulsion radius as a fraction of mouse_repel.
    mouse_radius_factor: float = 0.1

    def __post_init__(self):
        problems = [
            f"{f.name} must be finite, got {getattr(self, f.name)}"
            for f in fields(self) if not math.isfinite(getattr(self, f.name))
        ]
        if not 0.0 < self.damping <= 1.0:
            problems.append(f"damping must be in (0, 1], got {self.damping}")
        if self.max_distance < 0.0:
            problems.append(f"max_distance must be >= 0, got {self.max_distance}")
        if self.wall_repel < 0.0:
            problems.append(f"wall_repel must be >= 0, got {self.wall_repel}")
        if self.mouse_repel < 0.0:
            problems.append(f"mouse_repel must be >= 0, got {self.mouse_repel}")
        if self.mouse_radius_factor < 0.0:
            problems.append(f"mouse_radius_factor must be >= 0, got {self.mouse_radius_factor}")
        if problems:
            msg = "Configuration error: " + "; ".join(problems) + "."
            logging.critical(msg)
            raise ValueError(msg)

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "PhysicsParameters":
        """Builds parameters from a config section, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(params) - known
        if unknown:
            msg = f"Configuration error: unknown physics parameters {sorted(unknown)}."
            logging.critical(msg)
            raise ValueError(msg)
        return cls(**{key: float(value) for key, value in params.items()})

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@jit(nopython=True)
def _integrate_numba(
    source, target, types, side, attraction,
    max_distance, damping, time_scale, wall_repel, wall_force,
    pointer_active, pointer_x, pointer_y, pointer_strength, pointer_radius
):
    """
    Numba-jitted kernel advancing every particle by one tick.

    Neighbors are sampled from a fixed window of grid slots around each
    particle, not by distance. As the grid side grows, the same window
    covers a smaller part of the world, so max_distance only caps the
    interaction range on top of the window.
    """
    particle_count = source.shape[0]
    low_wall = -1.0 + wall_repel
    high_wall = 1.0 - wall_repel

    for i in range(particle_count):
        cell_x = i % side
        cell_y = i // side
        pos_x = source[i, 0]
        pos_y = source[i, 1]
        vel_x = source[i, 2]
        vel_y = source[i, 3]
        type_i = types[i]

        force_x = 0.0
        force_y = 0.0
        for dy in range(-NEIGHBOR_RANGE, NEIGHBOR_RANGE + 1):
            ny = cell_y + dy
            if ny < 0 or ny >= side:
                continue
            for dx in range(-NEIGHBOR_RANGE, NEIGHBOR_RANGE + 1):
                if dx == 0 and dy == 0:
                    continue
                nx = cell_x + dx
                if nx < 0 or nx >= side:
                    continue

                j = nx + ny * side
                diff_x = source[j, 0] - pos_x
                diff_y = source[j, 1] - pos_y
                distance = np.sqrt(diff_x * diff_x + diff_y * diff_y)

                if 0.0 < distance < max_distance:
                    coefficient = attraction[type_i, types[j]]
                    scale = coefficient / distance * FORCE_SCALE
                    force_x += diff_x * scale
                    force_y += diff_y * scale

        # Pointer repulsion, linear falloff to zero at pointer_radius.
        if pointer_active:
            away_x = pos_x - pointer_x
            away_y = pos_y - pointer_y
            distance = np.sqrt(away_x * away_x + away_y * away_y)
            if 0.0 < distance < pointer_radius:
                push = pointer_strength * (1.0 - distance / pointer_radius) / distance * FORCE_SCALE
                force_x += away_x * push
                force_y += away_y * push

        vel_x = (vel_x + force_x) * damping
        vel_y = (vel_y + force_y) * damping
        pos_x += vel_x * time_scale
        pos_y += vel_y * time_scale

        # Soft walls nudge the velocity only; positions are not clamped.
        if pos_x <= low_wall:
            vel_x += (low_wall - pos_x) * wall_force
        if pos_x >= high_wall:
            vel_x -= (pos_x - high_wall) * wall_force
        if pos_y <= low_wall:
            vel_y += (low_wall - pos_y) * wall_force
        if pos_y >= high_wall:
            vel_y -= (pos_y - high_wall) * wall_force

        target[i, 0] = pos_x
        target[i, 1] = pos_y
        target[i, 2] = vel_x
        target[i, 3] = vel_y


def advance(
    source: np.ndarray,
    target: np.ndarray,
    types: np.ndarray,
    side: int,
    attraction: np.ndarray,
    physics: PhysicsParameters,
    pointer: Optional[Tuple[float, float]] = None,
) -> None:
    """
    Runs the kernel for every particle, reading `source` and writing `target`.

    With a pointer set, particles within `mouse_repel * mouse_radius_factor`
    of it are pushed away with a strength of `mouse_repel`, falling off
    linearly to zero at that radius.
    """
    # Contract checks: these indicate a driver bug, never bad user input.
    assert source is not target and not np.shares_memory(source, target), \
        "current and next buffers must not alias"
    assert source.shape == target.shape == (side * side, 4)
    assert types.shape == (side * side,)
    assert attraction.shape == (NUM_TYPES, NUM_TYPES)
    if types.size:
        assert 0 <= types.min() and types.max() < NUM_TYPES, "particle type out of range"

    pointer_active = pointer is not None and physics.mouse_repel > 0.0
    pointer_x, pointer_y = pointer if pointer is not None else (0.0, 0.0)

    _integrate_numba(
        source, target, types, side, attraction,
        physics.max_distance, physics.damping, physics.time_scale,
        physics.wall_repel, physics.wall_force,
        pointer_active, float(pointer_x), float(pointer_y),
        physics.mouse_repel, physics.mouse_repel * physics.mouse_radius_factor
    )


class Simulation:
    """
    Owns the particle grid and runs the tick / swap protocol.
    """
    def __init__(
        self,
        population: int,
        attraction: Optional[Sequence[Sequence[float]]] = None,
        physics: Optional[PhysicsParameters] = None,
        seed: Optional[int] = None,
    ):
        """
        Initializes the simulation environment.

        Args:
            population (int): Requested number of particles.
            attraction: 6x6 attraction matrix. A random quantized matrix is
                drawn if None.
            physics (PhysicsParameters): Physics settings; defaults if None.
            seed (int): Master seed. All randomness (positions, padding
                types, random matrices) comes from one generator built from it.
        """
        # Rule 12: All randomness is controlled by a single master seed.
        self.rng = np.random.default_rng(seed)
        self.physics = physics if physics is not None else PhysicsParameters()
        self.attraction = self._validate_attraction(
            attraction if attraction is not None else random_matrix(self.rng)
        )
        self.pointer: Optional[Tuple[float, float]] = None
        self.frame = 0
        self._ticking = False
        self._closed = False
        self.particles = ParticleGrid(population, self.rng)

        logging.info("Simulation logic initialized and configuration validated.")
        logging.debug(f"Physics: {self.physics.to_dict()}")

    @classmethod
    def from_config(cls, params: Dict[str, Any]) -> "Simulation":
        """
        Builds a simulation from the `simulation_parameters` config section.

        An invalid `attraction_seed` is logged and replaced by a random matrix.
        """
        attraction = None
        seed_string = params.get('attraction_seed')
        if seed_string:
            try:
                attraction = seed_to_matrix(seed_string)
                logging.info(f"Attraction matrix loaded from seed {seed_string}.")
            except InvalidSeed as e:
                logging.error(f"Ignoring attraction_seed from config: {e}")

        return cls(
            population=params.get('population', 4000),
            attraction=attraction,
            physics=PhysicsParameters.from_dict(params.get('physics', {})),
            seed=params.get('seed'),
        )

    @staticmethod
    def _validate_attraction(attraction) -> np.ndarray:
        try:
            matrix = np.array(attraction, dtype=np.float64)
        except (TypeError, ValueError) as e:
            msg = f"Configuration error: attraction matrix is not numeric ({e})."
            logging.critical(msg)
            raise ValueError(msg) from e
        if matrix.shape != (NUM_TYPES, NUM_TYPES):
            msg = (
                f"Configuration error: attraction matrix shape {matrix.shape} "
                f"does not match the {NUM_TYPES} particle types."
            )
            logging.critical(msg)
            raise ValueError(msg)
        if not np.all(np.isfinite(matrix)):
            msg = "Configuration error: attraction matrix contains non-finite values."
            logging.critical(msg)
            raise ValueError(msg)
        return matrix

    def _check_open(self):
        if self._closed:
            raise RuntimeError("Simulation has been closed.")

    def tick(self):
        """
        Executes one time step of the simulation.
        """
        self._check_open()
        if self._ticking:
            raise RuntimeError("tick() is not reentrant.")
        self._ticking = True
        try:
            grid = self.particles
            advance(
                grid.current, grid.next, grid.types, grid.grid_side,
                self.attraction, self.physics, self.pointer
            )
            grid.swap()
            self.frame += 1
        finally:
            self._ticking = False

    def reset(self):
        """Respawns every particle at a random position with zero velocity."""
        self._check_open()
        self.particles.reset(self.rng)
        self.frame = 0
        logging.info("Simulation reset.")

    def reseed(self, attraction: Sequence[Sequence[float]]):
        """Replaces the attraction matrix; takes effect on the next tick."""
        self._check_open()
        self.attraction = self._validate_attraction(attraction)
        logging.info("Attraction matrix replaced.")

    def set_physics(self, physics: PhysicsParameters):
        self._check_open()
        self.physics = physics
        logging.info(f"Physics parameters updated: {physics.to_dict()}")

    def resize_population(self, population: int):
        """Reallocates the grid for a new population. No state is migrated."""
        self._check_open()
        grid = ParticleGrid(population, self.rng)
        self.particles.release()
        self.particles = grid
        self.frame = 0
        logging.info(f"Population resized to {population}.")

    def randomize_attraction(self):
        """
        Replaces the attraction matrix with random quantized values.
        """
        self.reseed(random_matrix(self.rng))
        logging.info(f"Attraction matrix randomized. Seed: {self.export_seed()}")

    def export_seed(self) -> str:
        """Returns the seed of the live attraction matrix."""
        return matrix_to_seed(self.attraction)

    def import_seed(self, seed: str) -> bool:
        """
        Loads an attraction matrix from a seed.

        Returns:
            bool: False if the seed was rejected and the matrix kept as it was.
        """
        try:
            matrix = seed_to_matrix(seed)
        except InvalidSeed as e:
            logging.error(f"Rejected seed {seed!r}: {e}")
            return False
        self.reseed(matrix)
        return True

    def set_pointer(self, x: float, y: float):
        """Sets the world position that repels nearby particles."""
        self.pointer = (float(x), float(y))

    def clear_pointer(self):
        self.pointer = None

    def current_state(self) -> ParticleView:
        """Read-only view of the latest completed tick."""
        self._check_open()
        return self.particles.view()

    def close(self):
        """Releases both buffers. No tick may run afterwards."""
        if self._closed:
            return
        self._closed = True
        self.particles.release()
        logging.info("Simulation closed.")
