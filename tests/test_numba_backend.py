"""Tests for chaosmap/_numba_backend.py: agreement with the NumPy backend."""

import numpy as np
import pytest

pytest.importorskip("numba")

from chaosmap._numba_backend import NumbaBackend  # noqa: E402
from chaosmap._numpy_backend import NumpyBackend  # noqa: E402
from chaosmap.compute import (  # noqa: E402
    ChaosMapBounds, ChaosMapConfig, build_seed_states, perturb,
)
from simulation import FRACTAL_PARAMS  # noqa: E402


@pytest.fixture(scope="module")
def config():
    return ChaosMapConfig(bounds=ChaosMapBounds(-10.0, 10.0), resolution=6, steps=100)


class TestNumbaBackend:

    def test_warmup(self):
        NumbaBackend.warmup()

    def test_matches_numpy(self, config):
        seeds = build_seed_states(config, 0, config.total_cells)
        twins = perturb(seeds, config)

        results = []
        for backend in (NumpyBackend(), NumbaBackend()):
            pairs = backend.start_pairs(seeds, twins)
            pairs = backend.advance(pairs, FRACTAL_PARAMS, config.dt, config.steps, 2.0)
            results.append(pairs)

        np_pairs, nb_pairs = results
        assert nb_pairs.steps_done == np_pairs.steps_done
        np.testing.assert_allclose(nb_pairs.distance_sum, np_pairs.distance_sum,
                                   rtol=1e-6, atol=1e-6)

    def test_resumable(self, config):
        backend = NumbaBackend()
        seeds = build_seed_states(config, 0, 6)
        start = backend.start_pairs(seeds, perturb(seeds, config))
        whole = backend.advance(start, FRACTAL_PARAMS, 0.01, 50, 2.0)
        part = backend.advance(start, FRACTAL_PARAMS, 0.01, 20, 2.0)
        part = backend.advance(part, FRACTAL_PARAMS, 0.01, 30, 2.0)
        np.testing.assert_array_equal(part.distance_sum, whole.distance_sum)
        np.testing.assert_array_equal(part.states_b, whole.states_b)

    def test_nan_counts_as_clamp(self):
        backend = NumbaBackend()
        seeds = np.array([[np.nan, 0.0, 0.0, 0.0]])
        pairs = backend.start_pairs(seeds, seeds.copy())
        pairs = backend.advance(pairs, FRACTAL_PARAMS, 0.01, 4, 2.0)
        assert pairs.distance_sum[0] == pytest.approx(8.0)
