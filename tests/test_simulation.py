"""
Kernel and driver tests.

Kernel tests build small hand-placed grids and call `advance` directly;
driver tests go through the Simulation class.
"""
import numpy as np
import pytest

from particle import NUM_TYPES
from seed import matrix_to_seed, seed_to_matrix
from simulation import PhysicsParameters, Simulation, advance

ZERO_MATRIX = np.zeros((NUM_TYPES, NUM_TYPES))
ONES_MATRIX = np.ones((NUM_TYPES, NUM_TYPES))


def _lattice_state(side: int, spacing: float) -> np.ndarray:
    """Particles on a regular lattice centred at the origin, at rest."""
    state = np.zeros((side * side, 4))
    index = np.arange(side * side)
    offset = (side - 1) / 2.0
    state[:, 0] = (index % side - offset) * spacing
    state[:, 1] = (index // side - offset) * spacing
    return state


def _types(side: int) -> np.ndarray:
    return (np.arange(side * side) % NUM_TYPES).astype(np.int32)


def _step(state, types, side, attraction, physics, pointer=None):
    target = np.empty_like(state)
    advance(state, target, types, side, attraction, physics, pointer)
    return target


class TestKernelForce:
    def test_asymmetric_pair_force(self):
        # Type 0 is pulled by type 1; type 1 ignores type 0.
        attraction = np.zeros((6, 6))
        attraction[0, 1] = 1.0
        state = np.zeros((4, 4))
        state[0, :2] = (0.0, 0.0)
        state[1, :2] = (0.1, 0.0)
        state[2, :2] = (-0.5, -0.5)
        state[3, :2] = (0.5, -0.5)
        types = np.array([0, 1, 2, 3], dtype=np.int32)
        physics = PhysicsParameters(wall_repel=0.0)

        result = _step(state, types, 2, attraction, physics)

        # force = diff * (coeff / dist) * 0.001 = (0.001, 0)
        expected_vx = 0.001 * physics.damping
        assert result[0, 2] == pytest.approx(expected_vx)
        assert result[0, 3] == pytest.approx(0.0)
        assert result[0, 0] == pytest.approx(expected_vx * physics.time_scale)
        np.testing.assert_array_equal(result[1], state[1])

    def test_repulsion_pushes_apart(self):
        attraction = np.full((6, 6), -1.0)
        state = np.zeros((4, 4))
        state[:, :2] = [(0.0, 0.0), (0.05, 0.0), (-0.6, 0.6), (0.6, 0.6)]
        types = np.zeros(4, dtype=np.int32)
        result = _step(state, types, 2, attraction, PhysicsParameters(wall_repel=0.0))
        assert result[0, 2] < 0.0
        assert result[1, 2] > 0.0

    def test_no_force_beyond_max_distance(self):
        state = _lattice_state(3, 0.3)
        physics = PhysicsParameters(max_distance=0.25, wall_repel=0.0)
        result = _step(state, _types(3), 3, ONES_MATRIX, physics)
        np.testing.assert_array_equal(result, state)

    def test_coincident_particles_exert_no_force(self):
        state = np.zeros((4, 4))
        result = _step(state, _types(2), 2, ONES_MATRIX, PhysicsParameters(wall_repel=0.0))
        assert np.all(np.isfinite(result))
        np.testing.assert_array_equal(result, state)

    def test_window_is_fixed_in_grid_steps(self):
        # On a 10x10 grid, slot 8 is inside particle 0's window, slot 9 is not.
        side = 10
        physics = PhysicsParameters(max_distance=0.03, wall_repel=0.0)
        types = _types(side)

        for neighbor, interacts in ((8, True), (9, False)):
            state = _lattice_state(side, 0.18)
            state[0, :2] = (0.5, 0.5)
            state[neighbor, :2] = (0.51, 0.5)
            result = _step(state, types, side, ONES_MATRIX, physics)
            if interacts:
                assert result[0, 2] > 0.0
            else:
                assert result[0, 2] == 0.0

    def test_source_is_not_modified(self):
        rng = np.random.default_rng(11)
        state = np.zeros((25, 4))
        state[:, :2] = rng.uniform(-0.2, 0.2, size=(25, 2))
        before = state.copy()
        _step(state, _types(5), 5, ONES_MATRIX, PhysicsParameters())
        np.testing.assert_array_equal(state, before)


class TestKernelIntegration:
    def test_wall_nudges_velocity_inward(self):
        physics = PhysicsParameters()
        state = np.zeros((1, 4))
        state[0, 0] = -1.0 + physics.wall_repel - 0.01
        result = _step(state, np.zeros(1, dtype=np.int32), 1, ZERO_MATRIX, physics)
        assert result[0, 2] > 0.0
        assert result[0, 2] == pytest.approx(0.01 * physics.wall_force)
        # Positions are never clamped.
        assert result[0, 0] == state[0, 0]

    @pytest.mark.parametrize("axis, sign", [(0, 1.0), (1, -1.0), (1, 1.0)])
    def test_walls_on_every_side(self, axis, sign):
        physics = PhysicsParameters()
        state = np.zeros((1, 4))
        state[0, axis] = sign * (1.0 - physics.wall_repel + 0.01)
        result = _step(state, np.zeros(1, dtype=np.int32), 1, ZERO_MATRIX, physics)
        assert np.sign(result[0, 2 + axis]) == -np.sign(state[0, axis])

    def test_velocity_decays_by_damping(self):
        physics = PhysicsParameters(damping=0.9, time_scale=0.01, wall_force=0.0)
        rng = np.random.default_rng(3)
        state = _lattice_state(4, 0.1)
        state[:, 2:] = rng.uniform(-0.01, 0.01, size=(16, 2))
        types = _types(4)

        speeds = np.linalg.norm(state[:, 2:], axis=1)
        for _ in range(10):
            state = _step(state, types, 4, ZERO_MATRIX, physics)
            new_speeds = np.linalg.norm(state[:, 2:], axis=1)
            np.testing.assert_allclose(new_speeds, physics.damping * speeds)
            assert np.all(new_speeds < speeds)
            speeds = new_speeds

    def test_position_follows_velocity(self):
        physics = PhysicsParameters(damping=0.5, time_scale=2.0, wall_repel=0.0)
        state = np.array([[0.1, -0.2, 0.04, 0.02]])
        result = _step(state, np.zeros(1, dtype=np.int32), 1, ZERO_MATRIX, physics)
        np.testing.assert_allclose(result[0], [0.14, -0.18, 0.02, 0.01])


class TestKernelPointer:
    def _single(self, pointer, mouse_repel=1.0, radius_factor=0.1):
        physics = PhysicsParameters(
            wall_repel=0.0, mouse_repel=mouse_repel, mouse_radius_factor=radius_factor
        )
        state = np.array([[0.05, 0.0, 0.0, 0.0]])
        return _step(state, np.zeros(1, dtype=np.int32), 1, ZERO_MATRIX, physics, pointer)

    def test_pointer_repels(self):
        result = self._single((0.0, 0.0))
        assert result[0, 2] > 0.0
        assert result[0, 3] == pytest.approx(0.0)

    def test_pointer_outside_radius(self):
        # Radius is mouse_repel * 0.1.
        result = self._single((-0.06, 0.0))
        assert result[0, 2] == 0.0

    def test_no_pointer_or_zero_strength(self):
        assert self._single(None)[0, 2] == 0.0
        assert self._single((0.0, 0.0), mouse_repel=0.0)[0, 2] == 0.0

    def test_radius_factor_widens_reach(self):
        # At distance 0.11 the default radius of 0.1 misses; 0.2 reaches.
        assert self._single((-0.06, 0.0), radius_factor=0.2)[0, 2] > 0.0
        assert self._single((0.0, 0.0), radius_factor=0.0)[0, 2] == 0.0


class TestKernelContracts:
    def test_aliased_buffers_rejected(self):
        state = np.zeros((4, 4))
        with pytest.raises(AssertionError):
            advance(state, state, _types(2), 2, ZERO_MATRIX, PhysicsParameters())

    def test_type_out_of_range_rejected(self):
        state = np.zeros((4, 4))
        types = np.array([0, 1, 2, 6], dtype=np.int32)
        with pytest.raises(AssertionError):
            advance(state, np.empty_like(state), types, 2, ZERO_MATRIX, PhysicsParameters())

    def test_wrong_matrix_shape_rejected(self):
        state = np.zeros((4, 4))
        with pytest.raises(AssertionError):
            advance(state, np.empty_like(state), _types(2), 2, np.zeros((5, 6)), PhysicsParameters())


class TestPhysicsParameters:
    def test_defaults(self):
        physics = PhysicsParameters()
        assert physics.to_dict() == {
            "max_distance": 0.25,
            "damping": 0.2,
            "time_scale": 10.0,
            "wall_repel": 0.125,
            "wall_force": 0.01,
            "mouse_repel": 1.0,
            "mouse_radius_factor": 0.1,
        }

    @pytest.mark.parametrize("damping", [0.0, -0.1, 1.5])
    def test_invalid_damping(self, damping):
        with pytest.raises(ValueError):
            PhysicsParameters(damping=damping)

    @pytest.mark.parametrize("field", [
        "max_distance", "damping", "time_scale", "wall_repel", "wall_force",
        "mouse_repel", "mouse_radius_factor",
    ])
    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_values_rejected(self, field, value):
        with pytest.raises(ValueError, match=field):
            PhysicsParameters(**{field: value})

    def test_non_finite_from_config_rejected(self):
        with pytest.raises(ValueError):
            PhysicsParameters.from_dict({"wall_force": "nan"})

    def test_negative_radius_factor_rejected(self):
        with pytest.raises(ValueError):
            PhysicsParameters(mouse_radius_factor=-0.1)

    def test_from_dict(self):
        physics = PhysicsParameters.from_dict({"damping": 1, "time_scale": "2.5"})
        assert physics.damping == 1.0
        assert physics.time_scale == 2.5
        assert physics.max_distance == 0.25

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ValueError):
            PhysicsParameters.from_dict({"maxDistance": 0.3})


class TestSimulationLifecycle:
    def test_create(self):
        sim = Simulation(population=100, seed=1)
        state = sim.current_state()
        assert sim.particles.grid_side == 11
        assert state.positions.shape == (121, 2)
        assert np.all(state.velocities == 0.0)
        assert sim.particles.parity == 0
        assert sim.frame == 0
        # The random matrix is quantized, so it has a seed.
        assert len(sim.export_seed()) == 47

    def test_tick_reads_current_and_writes_next(self):
        sim = Simulation(population=60, seed=2)
        grid = sim.particles
        before = grid.current.copy()
        expected = np.empty_like(before)
        advance(before, expected, grid.types, grid.grid_side, sim.attraction, sim.physics)

        sim.tick()

        assert grid.parity == 1
        assert sim.frame == 1
        np.testing.assert_array_equal(grid.current, expected)
        np.testing.assert_array_equal(grid.next, before)

    def test_deterministic_for_equal_seeds(self):
        runs = []
        for _ in range(2):
            sim = Simulation(population=300, seed=42)
            for _ in range(5):
                sim.tick()
            state = sim.current_state()
            runs.append((state.positions.copy(), state.velocities.copy(), state.types.copy()))
        for first, second in zip(*runs):
            np.testing.assert_array_equal(first, second)

    def test_different_seeds_differ(self):
        a = Simulation(population=60, seed=1).current_state().positions
        b = Simulation(population=60, seed=2).current_state().positions
        assert not np.array_equal(a, b)

    def test_reset(self):
        attraction = seed_to_matrix("0" * 40 + "abcdeFG")
        physics = PhysicsParameters(damping=0.5)
        sim = Simulation(population=60, attraction=attraction, physics=physics, seed=3)
        types = sim.particles.types.copy()
        for _ in range(3):
            sim.tick()

        sim.reset()

        assert sim.particles.parity == 0
        assert sim.frame == 0
        assert np.all(sim.current_state().velocities == 0.0)
        np.testing.assert_array_equal(sim.particles.types, types)
        assert sim.attraction.tolist() == attraction
        assert sim.physics is physics

    def test_resize_population(self):
        sim = Simulation(population=60, seed=4)
        sim.tick()
        sim.resize_population(600)
        assert sim.particles.population == 600
        assert sim.particles.grid_side == 25
        assert sim.particles.parity == 0
        sim.tick()
        assert sim.current_state().positions.shape == (625, 2)

    def test_failed_resize_keeps_grid(self):
        sim = Simulation(population=60, seed=4)
        grid = sim.particles
        with pytest.raises(ValueError):
            sim.resize_population(-5)
        assert sim.particles is grid
        sim.tick()

    def test_empty_population_ticks(self):
        sim = Simulation(population=0, seed=5)
        sim.tick()
        assert sim.current_state().positions.shape == (0, 2)

    def test_close(self):
        sim = Simulation(population=12, seed=6)
        sim.close()
        sim.close()
        with pytest.raises(RuntimeError):
            sim.tick()
        with pytest.raises(RuntimeError):
            sim.reset()
        with pytest.raises(RuntimeError):
            sim.current_state()


class TestSimulationConfiguration:
    def test_reseed_takes_effect_next_tick(self):
        sim = Simulation(population=60, attraction=ZERO_MATRIX, seed=7)
        grid = sim.particles
        sim.tick()
        # Zero matrix and zero initial velocity: nothing moves.
        assert np.all(sim.current_state().velocities == 0.0)
        buffers_id = id(grid.buffers)

        sim.reseed(ONES_MATRIX)
        np.testing.assert_array_equal(sim.attraction, ONES_MATRIX)
        assert id(sim.particles.buffers) == buffers_id
        sim.tick()
        assert np.any(sim.current_state().velocities != 0.0)

    def test_reseed_copies_the_matrix(self):
        matrix = np.zeros((6, 6))
        sim = Simulation(population=12, attraction=matrix, seed=8)
        matrix[0, 0] = 1.0
        assert sim.attraction[0, 0] == 0.0

    @pytest.mark.parametrize("bad", [
        np.zeros((5, 6)), np.zeros((6, 5)), [[0.0] * 6] * 5, [[float("nan")] * 6] * 6, "matrix",
    ])
    def test_reseed_rejects_bad_matrix_and_keeps_prior(self, bad):
        sim = Simulation(population=12, attraction=ONES_MATRIX, seed=9)
        with pytest.raises(ValueError):
            sim.reseed(bad)
        np.testing.assert_array_equal(sim.attraction, ONES_MATRIX)

    def test_set_physics(self):
        sim = Simulation(population=12, seed=10)
        physics = PhysicsParameters(time_scale=0.0)
        sim.set_physics(physics)
        before = sim.current_state().positions.copy()
        sim.tick()
        np.testing.assert_array_equal(sim.current_state().positions, before)

    def test_randomize_attraction(self):
        sim = Simulation(population=12, attraction=ZERO_MATRIX, seed=11)
        sim.randomize_attraction()
        assert not np.array_equal(sim.attraction, ZERO_MATRIX)
        assert seed_to_matrix(sim.export_seed()) == sim.attraction.tolist()

    def test_float32_matrix_exports(self):
        sim = Simulation(population=12, seed=15)
        sim.reseed(np.full((6, 6), 0.3, dtype=np.float32))
        assert seed_to_matrix(sim.export_seed()) == [[0.3] * 6 for _ in range(6)]

    def test_import_export_seed(self):
        sim = Simulation(population=12, seed=12)
        seed = matrix_to_seed([[0.25, -0.5, 0.0, 1.0, -1.0, 0.01]] * 6)
        assert sim.import_seed(seed) is True
        assert sim.export_seed() == seed

    def test_bad_seed_keeps_prior_matrix(self):
        sim = Simulation(population=12, seed=13)
        before = sim.attraction.copy()
        assert sim.import_seed("not-a-seed") is False
        assert sim.import_seed("Z" * 47) is False
        np.testing.assert_array_equal(sim.attraction, before)

    def test_pointer(self):
        sim = Simulation(population=12, seed=14)
        sim.set_pointer(0.1, -0.2)
        assert sim.pointer == (0.1, -0.2)
        sim.tick()
        sim.clear_pointer()
        assert sim.pointer is None

    def test_from_config(self):
        seed = matrix_to_seed([[0.5] * 6] * 6)
        sim = Simulation.from_config({
            "seed": 1,
            "population": 30,
            "attraction_seed": seed,
            "physics": {"damping": 0.3},
        })
        assert sim.export_seed() == seed
        assert sim.physics.damping == 0.3
        assert sim.particles.population == 30

    def test_from_config_ignores_bad_seed(self):
        sim = Simulation.from_config({"seed": 1, "population": 30, "attraction_seed": "bad"})
        assert len(sim.export_seed()) == 47
