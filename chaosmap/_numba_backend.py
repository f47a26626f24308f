"""Numba JIT-compiled backend for chaos map computation.

Uses @njit(parallel=True) with prange over trajectory pairs for a large
speedup over NumPy. This module is optional: it is only imported when
the "numba" backend is requested (pip install .[numba]).

IMPORTANT: The JIT-compiled functions use explicit loops (not NumPy
vectorization) since Numba compiles them to native machine code.
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange

from chaosmap.compute import PairState
from simulation import DoublePendulumParams


@njit(cache=True)
def _derivatives_single(theta1, theta2, omega1, omega2, l1, l2, m1, m2, g):
    """Compute derivatives for a single trajectory (Numba-compiled).

    Returns (d_theta1, d_theta2, d_omega1, d_omega2).
    """
    delta = theta1 - theta2
    den = 2 * m1 + m2 - m2 * np.cos(2 * theta1 - 2 * theta2)

    alpha1 = (
        -g * (2 * m1 + m2) * np.sin(theta1)
        - m2 * g * np.sin(theta1 - 2 * theta2)
        - 2 * np.sin(delta) * m2
        * (omega2 * omega2 * l2 + omega1 * omega1 * l1 * np.cos(delta))
    ) / (l1 * den)

    alpha2 = (
        2 * np.sin(delta)
        * (
            omega1 * omega1 * l1 * (m1 + m2)
            + g * (m1 + m2) * np.cos(theta1)
            + omega2 * omega2 * l2 * m2 * np.cos(delta)
        )
    ) / (l2 * den)

    return omega1, omega2, alpha1, alpha2


@njit(cache=True)
def _rk4_single(theta1, theta2, omega1, omega2, dt, l1, l2, m1, m2, g):
    """One RK4 step for a single trajectory (Numba-compiled)."""
    h = dt * 0.5

    a1, a2, a3, a4 = _derivatives_single(
        theta1, theta2, omega1, omega2, l1, l2, m1, m2, g)
    b1, b2, b3, b4 = _derivatives_single(
        theta1 + a1 * h, theta2 + a2 * h, omega1 + a3 * h, omega2 + a4 * h,
        l1, l2, m1, m2, g)
    c1, c2, c3, c4 = _derivatives_single(
        theta1 + b1 * h, theta2 + b2 * h, omega1 + b3 * h, omega2 + b4 * h,
        l1, l2, m1, m2, g)
    d1, d2, d3, d4 = _derivatives_single(
        theta1 + c1 * dt, theta2 + c2 * dt, omega1 + c3 * dt, omega2 + c4 * dt,
        l1, l2, m1, m2, g)

    w = dt / 6
    return (
        theta1 + w * (a1 + 2 * b1 + 2 * c1 + d1),
        theta2 + w * (a2 + 2 * b2 + 2 * c2 + d2),
        omega1 + w * (a3 + 2 * b3 + 2 * c3 + d3),
        omega2 + w * (a4 + 2 * b4 + 2 * c4 + d4),
    )


@njit(parallel=True, cache=True)
def _advance_pairs_numba(
    states_a,      # (N, 4) float64
    states_b,      # (N, 4) float64
    distance_sum,  # (N,) float64
    n_steps,
    dt,
    l1, l2, m1, m2, g,
    clamp,
):
    """Numba-compiled parallel pair integration.

    Each pair is computed independently in parallel via prange.
    Returns fresh (states_a, states_b, distance_sum) arrays.
    """
    n = states_a.shape[0]
    out_a = np.empty_like(states_a)
    out_b = np.empty_like(states_b)
    out_sum = np.empty_like(distance_sum)

    for i in prange(n):
        at1, at2, aw1, aw2 = states_a[i, 0], states_a[i, 1], states_a[i, 2], states_a[i, 3]
        bt1, bt2, bw1, bw2 = states_b[i, 0], states_b[i, 1], states_b[i, 2], states_b[i, 3]
        total = distance_sum[i]

        for _ in range(n_steps):
            at1, at2, aw1, aw2 = _rk4_single(at1, at2, aw1, aw2, dt, l1, l2, m1, m2, g)
            bt1, bt2, bw1, bw2 = _rk4_single(bt1, bt2, bw1, bw2, dt, l1, l2, m1, m2, g)

            d1 = at1 - bt1
            d2 = at2 - bt2
            d3 = aw1 - bw1
            d4 = aw2 - bw2
            dist = np.sqrt(d1 * d1 + d2 * d2 + d3 * d3 + d4 * d4)
            # NaN compares false, so overflowed pairs also take the clamp
            # and the cell scores as fully chaotic rather than NaN
            if not dist <= clamp:
                dist = clamp
            total = total + dist

        out_a[i, 0] = at1
        out_a[i, 1] = at2
        out_a[i, 2] = aw1
        out_a[i, 3] = aw2
        out_b[i, 0] = bt1
        out_b[i, 1] = bt2
        out_b[i, 2] = bw1
        out_b[i, 3] = bw2
        out_sum[i] = total

    return out_a, out_b, out_sum


class NumbaBackend:
    """Numba JIT-compiled parallel backend."""

    def start_pairs(self, seeds: np.ndarray, twins: np.ndarray) -> PairState:
        return PairState(
            states_a=np.ascontiguousarray(seeds, dtype=np.float64),
            states_b=np.ascontiguousarray(twins, dtype=np.float64),
            distance_sum=np.zeros(seeds.shape[0], dtype=np.float64),
            steps_done=0,
        )

    def advance(
        self,
        pairs: PairState,
        params: DoublePendulumParams,
        dt: float,
        n_steps: int,
        distance_clamp: float,
    ) -> PairState:
        states_a, states_b, distance_sum = _advance_pairs_numba(
            pairs.states_a, pairs.states_b, pairs.distance_sum,
            n_steps, dt,
            params.l1, params.l2, params.m1, params.m2, params.g,
            distance_clamp,
        )
        return PairState(states_a, states_b, distance_sum, pairs.steps_done + n_steps)

    @staticmethod
    def warmup() -> None:
        """Trigger JIT compilation with a tiny problem."""
        seeds = np.zeros((2, 4), dtype=np.float64)
        _advance_pairs_numba(
            seeds, seeds.copy(), np.zeros(2, dtype=np.float64),
            1, 0.01, 1.0, 1.0, 1.0, 1.0, 9.81, 2.0,
        )
