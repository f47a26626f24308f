"""Tests for chaosmap/compute.py: config validation, seed grid, backend selection."""

import dataclasses
import math

import numpy as np
import pytest

from chaosmap.compute import (
    ANGLE_MAP, PRESETS, VELOCITY_MAP, VELOCITY_PLANE,
    ChaosMapBounds, ChaosMapConfig, ChaosMapConfigError, ChaosMapPlane,
    PairState, StateAxis,
    build_seed_states, cell_to_state, cell_value, get_backend, mean_scores,
    perturb, point_to_state,
)
from simulation import FRACTAL_PARAMS, PendulumState


def small_config(**overrides):
    base = ChaosMapConfig(bounds=ChaosMapBounds(-10.0, 10.0), resolution=4)
    return dataclasses.replace(base, **overrides)


class TestDefaults:

    def test_velocity_preset(self):
        assert VELOCITY_MAP.resolution == 250
        assert VELOCITY_MAP.steps == 3000
        assert VELOCITY_MAP.dt == 0.01
        assert VELOCITY_MAP.epsilon == 0.001
        assert VELOCITY_MAP.bounds == ChaosMapBounds(-10.0, 10.0)
        assert VELOCITY_MAP.params == FRACTAL_PARAMS
        assert VELOCITY_MAP.plane.x_axis == StateAxis.OMEGA1
        assert VELOCITY_MAP.plane.y_axis == StateAxis.OMEGA2

    def test_angle_preset(self):
        assert ANGLE_MAP.bounds.range == pytest.approx(2 * math.pi)
        assert ANGLE_MAP.plane.x_axis == StateAxis.THETA1
        assert ANGLE_MAP.plane.y_axis == StateAxis.THETA2

    def test_presets_validate(self):
        for config in PRESETS.values():
            config.validate()

    def test_total_cells(self):
        assert small_config(resolution=7).total_cells == 49

    def test_config_is_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            VELOCITY_MAP.resolution = 10


class TestValidate:

    @pytest.mark.parametrize("overrides", [
        {"resolution": 0},
        {"resolution": -3},
        {"resolution": 2.5},
        {"steps": 0},
        {"dt": 0.0},
        {"dt": -0.01},
        {"dt": math.nan},
        {"epsilon": math.inf},
        {"epsilon": math.nan},
        {"bounds": ChaosMapBounds(1.0, 1.0)},
        {"bounds": ChaosMapBounds(5.0, -5.0)},
        {"bounds": ChaosMapBounds(-math.inf, 1.0)},
        {"plane": ChaosMapPlane(StateAxis.OMEGA1, StateAxis.OMEGA1)},
        {"distance_clamp": 0.0},
        {"score_scale": -1.0},
        {"gamma": 0.0},
    ])
    def test_rejects(self, overrides):
        with pytest.raises(ChaosMapConfigError):
            small_config(**overrides).validate()

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            small_config(steps=0).validate()

    def test_zero_epsilon_allowed(self):
        small_config(epsilon=0.0).validate()

    def test_numpy_integer_resolution_allowed(self):
        small_config(resolution=np.int64(8)).validate()


class TestSeedGrid:

    def test_cell_value(self):
        bounds = ChaosMapBounds(-10.0, 10.0)
        values = [cell_value(i, 4, bounds) for i in range(4)]
        assert values == [-10.0, -5.0, 0.0, 5.0]

    def test_raster_order(self):
        """Index i is (x, y) = (i % R, i // R); x varies fastest."""
        config = small_config()
        seeds = build_seed_states(config, 0, config.total_cells)
        assert seeds.shape == (16, 4)
        assert seeds.dtype == np.float64
        # First row: y = -10, x sweeps
        np.testing.assert_array_equal(seeds[:4, 2], [-10.0, -5.0, 0.0, 5.0])
        np.testing.assert_array_equal(seeds[:4, 3], -10.0)
        # Cell 6 is (x=2, y=1)
        assert seeds[6, 2] == 0.0
        assert seeds[6, 3] == -5.0

    def test_fixed_axes_come_from_base(self):
        plane = ChaosMapPlane(StateAxis.OMEGA1, StateAxis.OMEGA2,
                              base=PendulumState(0.5, -0.5, 99.0, 99.0))
        seeds = build_seed_states(small_config(plane=plane), 0, 16)
        np.testing.assert_array_equal(seeds[:, 0], 0.5)
        np.testing.assert_array_equal(seeds[:, 1], -0.5)
        assert not np.any(seeds[:, 2:] == 99.0)

    def test_partial_range(self):
        config = small_config()
        full = build_seed_states(config, 0, 16)
        part = build_seed_states(config, 5, 11)
        np.testing.assert_array_equal(part, full[5:11])

    def test_never_reaches_maximum(self):
        config = small_config(resolution=10)
        seeds = build_seed_states(config, 0, config.total_cells)
        assert seeds[:, 2].max() < config.bounds.maximum

    def test_perturb_offsets_free_axes_only(self):
        config = small_config(plane=ChaosMapPlane(StateAxis.THETA1, StateAxis.OMEGA2))
        seeds = build_seed_states(config, 0, 16)
        twins = perturb(seeds, config)
        np.testing.assert_allclose(twins[:, 0] - seeds[:, 0], 0.001)
        np.testing.assert_allclose(twins[:, 3] - seeds[:, 3], 0.001)
        np.testing.assert_array_equal(twins[:, 1], seeds[:, 1])
        np.testing.assert_array_equal(twins[:, 2], seeds[:, 2])

    def test_perturb_does_not_mutate(self):
        config = small_config()
        seeds = build_seed_states(config, 0, 16)
        before = seeds.copy()
        perturb(seeds, config)
        np.testing.assert_array_equal(seeds, before)


class TestPointMapping:

    def test_cell_to_state_matches_seed(self):
        config = small_config()
        seeds = build_seed_states(config, 0, 16)
        state = cell_to_state(config, 3, 2)
        assert tuple(state) == tuple(seeds[2 * 4 + 3])

    def test_point_to_state_corners(self):
        config = small_config(plane=VELOCITY_PLANE)
        assert point_to_state(config, 0.0, 0.0) == (0.0, 0.0, -10.0, -10.0)
        assert point_to_state(config, 1.0, 0.5) == (0.0, 0.0, 10.0, 0.0)

    def test_point_to_state_keeps_base(self):
        config = ANGLE_MAP
        state = point_to_state(config, 0.5, 0.5)
        assert state.theta1 == pytest.approx(0.0)
        assert state.theta2 == pytest.approx(0.0)
        assert state.omega1 == 0.0
        assert state.omega2 == 0.0


class TestScores:

    def test_mean_scores(self):
        pairs = PairState(
            np.zeros((2, 4)), np.zeros((2, 4)), np.array([3.0, 10.0]), 5,
        )
        np.testing.assert_allclose(mean_scores(pairs), [0.6, 2.0])


class TestGetBackend:

    def test_numpy_backend(self):
        from chaosmap._numpy_backend import NumpyBackend
        assert isinstance(get_backend("numpy"), NumpyBackend)

    def test_default_is_numpy(self):
        from chaosmap._numpy_backend import NumpyBackend
        assert isinstance(get_backend(), NumpyBackend)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown compute backend"):
            get_backend("cuda")

    def test_numba_backend(self):
        pytest.importorskip("numba")
        from chaosmap._numba_backend import NumbaBackend
        assert isinstance(get_backend("numba"), NumbaBackend)
