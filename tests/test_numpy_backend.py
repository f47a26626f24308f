"""Tests for chaosmap/_numpy_backend.py: vectorized RK4 cross-validation.

Verifies that the batch derivatives and integration produce results
consistent with the scalar simulation.py implementation, and that the
pair accumulator clamps and resumes correctly.
"""

import math

import numpy as np
import pytest

from chaosmap._numpy_backend import (
    NumpyBackend, clamped_distance, derivatives_batch, rk4_batch_step,
)
from simulation import (
    DISPLAY_PARAMS, FRACTAL_PARAMS, DoublePendulumParams, derivatives, rk4_step,
)

TEST_STATES = [
    [0.0, 0.0, 0.0, 0.0],
    [math.pi / 2, math.pi / 2, 0.0, 0.0],
    [1.0, -1.0, 2.0, -2.0],
    [0.1, 0.2, 0.3, 0.4],
    [3.0, -2.5, 8.0, -9.5],
]


class TestDerivativesBatch:
    """Cross-validate batch derivatives against scalar derivatives."""

    def test_single_trajectory_matches_scalar(self):
        state = [1.0, 0.5, 0.1, -0.2]
        batch_d = derivatives_batch(np.array([state]), FRACTAL_PARAMS)
        scalar_d = derivatives(state, FRACTAL_PARAMS)
        for i in range(4):
            assert abs(batch_d[0, i] - scalar_d[i]) < 1e-12

    @pytest.mark.parametrize("params", [FRACTAL_PARAMS, DISPLAY_PARAMS,
                                        DoublePendulumParams(0.5, 2.0, 3.0, 0.7, 1.6)])
    def test_multiple_trajectories(self, params):
        batch_d = derivatives_batch(np.array(TEST_STATES), params)
        for j, state in enumerate(TEST_STATES):
            scalar_d = derivatives(state, params)
            np.testing.assert_allclose(batch_d[j], scalar_d, rtol=1e-12, atol=1e-12)

    def test_does_not_mutate_input(self):
        states = np.array(TEST_STATES)
        before = states.copy()
        derivatives_batch(states, FRACTAL_PARAMS)
        np.testing.assert_array_equal(states, before)


class TestRK4BatchStep:

    def test_matches_scalar_step(self):
        states = np.array(TEST_STATES)
        stepped = rk4_batch_step(states, FRACTAL_PARAMS, 0.01)
        for j, state in enumerate(TEST_STATES):
            np.testing.assert_allclose(
                stepped[j], rk4_step(state, FRACTAL_PARAMS, 0.01),
                rtol=1e-12, atol=1e-12,
            )

    def test_many_steps_match_scalar(self):
        states = np.array(TEST_STATES[1:4])
        scalar = [list(s) for s in TEST_STATES[1:4]]
        for _ in range(200):
            states = rk4_batch_step(states, FRACTAL_PARAMS, 0.01)
            scalar = [rk4_step(s, FRACTAL_PARAMS, 0.01) for s in scalar]
        np.testing.assert_allclose(states, np.array(scalar), rtol=1e-9, atol=1e-9)

    def test_zero_dt_identity(self):
        states = np.array(TEST_STATES)
        np.testing.assert_array_equal(rk4_batch_step(states, FRACTAL_PARAMS, 0.0), states)


class TestClampedDistance:

    def test_euclidean(self):
        a = np.array([[0.0, 0.0, 0.0, 0.0], [1.0, 1.0, 1.0, 1.0]])
        b = np.array([[0.3, 0.4, 0.0, 0.0], [1.0, 1.0, 1.0, 1.0]])
        np.testing.assert_allclose(clamped_distance(a, b, 2.0), [0.5, 0.0])

    def test_clamped(self):
        a = np.zeros((1, 4))
        b = np.full((1, 4), 10.0)
        assert clamped_distance(a, b, 2.0)[0] == 2.0

    def test_non_finite_counts_as_clamp(self):
        a = np.array([[np.nan, 0.0, 0.0, 0.0], [np.inf, 0.0, 0.0, 0.0]])
        b = np.zeros((2, 4))
        np.testing.assert_array_equal(clamped_distance(a, b, 2.0), [2.0, 2.0])


class TestNumpyBackend:

    def _pairs(self, backend, seeds, eps=0.001):
        seeds = np.array(seeds, dtype=np.float64)
        twins = seeds + eps
        return backend.start_pairs(seeds, twins)

    def test_start_pairs(self):
        backend = NumpyBackend()
        pairs = self._pairs(backend, TEST_STATES)
        assert pairs.steps_done == 0
        assert pairs.states_a.shape == (5, 4)
        np.testing.assert_array_equal(pairs.distance_sum, 0.0)

    def test_fixed_point_pair_scores_zero(self):
        backend = NumpyBackend()
        pairs = self._pairs(backend, [[0.0, 0.0, 0.0, 0.0]], eps=0.0)
        pairs = backend.advance(pairs, FRACTAL_PARAMS, 0.01, 100, 2.0)
        assert pairs.steps_done == 100
        assert pairs.distance_sum[0] == 0.0

    def test_advance_accumulates_per_step_distance(self):
        """distance_sum equals the sum of clamped per-step separations."""
        backend = NumpyBackend()
        seeds = np.array(TEST_STATES[:3])
        twins = seeds + 0.01
        pairs = backend.advance(backend.start_pairs(seeds, twins), FRACTAL_PARAMS, 0.01, 30, 2.0)

        a, b = seeds, twins
        expected = np.zeros(3)
        for _ in range(30):
            a = rk4_batch_step(a, FRACTAL_PARAMS, 0.01)
            b = rk4_batch_step(b, FRACTAL_PARAMS, 0.01)
            expected = expected + clamped_distance(a, b, 2.0)
        np.testing.assert_allclose(pairs.distance_sum, expected, rtol=1e-12)
        np.testing.assert_allclose(pairs.states_a, a, rtol=1e-12)

    def test_resumed_advance_equals_single_advance(self):
        backend = NumpyBackend()
        start = self._pairs(backend, TEST_STATES)
        whole = backend.advance(start, FRACTAL_PARAMS, 0.01, 100, 2.0)

        part = start
        for n in (25, 25, 25, 25):
            part = backend.advance(part, FRACTAL_PARAMS, 0.01, n, 2.0)

        assert part.steps_done == whole.steps_done == 100
        np.testing.assert_array_equal(part.distance_sum, whole.distance_sum)
        np.testing.assert_array_equal(part.states_a, whole.states_a)

    def test_advance_does_not_mutate_input(self):
        backend = NumpyBackend()
        pairs = self._pairs(backend, TEST_STATES)
        before = pairs.states_a.copy()
        backend.advance(pairs, FRACTAL_PARAMS, 0.01, 10, 2.0)
        np.testing.assert_array_equal(pairs.states_a, before)
        assert pairs.steps_done == 0

    def test_score_bounded_by_clamp(self):
        backend = NumpyBackend()
        pairs = self._pairs(backend, [[3.0, -2.5, 10.0, -10.0]], eps=0.5)
        pairs = backend.advance(pairs, FRACTAL_PARAMS, 0.01, 300, 2.0)
        assert 0.0 <= pairs.distance_sum[0] / pairs.steps_done <= 2.0

    def test_overflow_is_not_an_error(self):
        """Diverging values never raise; they score as the clamp."""
        backend = NumpyBackend()
        seeds = np.array([[0.0, 0.0, 1e200, 1e200]])
        pairs = backend.start_pairs(seeds, seeds.copy())
        pairs = backend.advance(pairs, FRACTAL_PARAMS, 0.01, 5, 2.0)
        assert pairs.distance_sum[0] == pytest.approx(10.0)
