"""Double pendulum physics engine.

Implements the equations of motion for a planar double pendulum (point
masses, massless rods) and a fixed-step 4th-order Runge-Kutta integrator
shared by the live simulation and the chaos map generator.
"""

import math
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np


class PendulumState(NamedTuple):
    """Generalized angles (rad) and angular velocities (rad/s)."""

    theta1: float
    theta2: float
    omega1: float
    omega2: float


@dataclass(frozen=True)
class DoublePendulumParams:
    """Physical parameters of the double pendulum system."""

    l1: float = 1.0
    l2: float = 1.0
    m1: float = 1.0
    m2: float = 1.0
    g: float = 9.81


# Display-scaled units for the real-time view (rod lengths in pixels)
DISPLAY_PARAMS = DoublePendulumParams(l1=150.0, l2=150.0, m1=20.0, m2=20.0, g=1.0)

# Physically normalized units for chaos maps
FRACTAL_PARAMS = DoublePendulumParams(l1=1.0, l2=1.0, m1=1.0, m2=1.0, g=9.81)

DEFAULT_INITIAL_STATE = PendulumState(math.pi / 2, math.pi / 2 + 1, 0.0, 0.0)


def derivatives(state, params):
    """Compute the four first-order ODEs for the double pendulum.

    State: (theta1, theta2, omega1, omega2)
    Returns: PendulumState of (d_theta1, d_theta2, d_omega1, d_omega2)

    The denominator is not guarded: it is at least 2*m1, so it only
    vanishes for degenerate (massless) parameters. NumPy scalar math
    turns that, and any non-finite input, into NaN/Inf instead of raising.
    """
    theta1, theta2, omega1, omega2 = state
    l1, l2, m1, m2, g = params.l1, params.l2, params.m1, params.m2, params.g

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

    return PendulumState(omega1, omega2, alpha1, alpha2)


def _offset(state, k, h):
    return PendulumState(
        state.theta1 + k.theta1 * h,
        state.theta2 + k.theta2 * h,
        state.omega1 + k.omega1 * h,
        state.omega2 + k.omega2 * h,
    )


def rk4_step(state, params, dt):
    """Advance one classical RK4 step of size dt.

    Pure function with no step adaptation. A zero dt
    returns the input state unchanged. Never raises: NaN/Inf propagate.
    """
    state = PendulumState(*state)

    with np.errstate(all="ignore"):
        k1 = derivatives(state, params)
        k2 = derivatives(_offset(state, k1, dt * 0.5), params)
        k3 = derivatives(_offset(state, k2, dt * 0.5), params)
        k4 = derivatives(_offset(state, k3, dt), params)

        w = dt / 6
        return PendulumState(
            state.theta1 + w * (k1.theta1 + 2 * k2.theta1 + 2 * k3.theta1 + k4.theta1),
            state.theta2 + w * (k1.theta2 + 2 * k2.theta2 + 2 * k3.theta2 + k4.theta2),
            state.omega1 + w * (k1.omega1 + 2 * k2.omega1 + 2 * k3.omega1 + k4.omega1),
            state.omega2 + w * (k1.omega2 + 2 * k2.omega2 + 2 * k3.omega2 + k4.omega2),
        )


def positions(state, params):
    """Convert a single state to Cartesian coordinates.

    Returns (x1, y1, x2, y2) with y pointing up and the pivot at the origin,
    so a hanging pendulum has negative y.
    """
    theta1, theta2 = state[0], state[1]
    l1, l2 = params.l1, params.l2

    x1 = l1 * np.sin(theta1)
    y1 = -l1 * np.cos(theta1)

    x2 = x1 + l2 * np.sin(theta2)
    y2 = y1 - l2 * np.cos(theta2)

    return x1, y1, x2, y2


def total_energy(state, params):
    """Compute total mechanical energy (T + V) for a single state.

    Potential energy is measured from the pivot point (y=0).
    """
    theta1, theta2, omega1, omega2 = state
    l1, l2, m1, m2, g = params.l1, params.l2, params.m1, params.m2, params.g

    # Kinetic energy
    T = (
        0.5 * (m1 + m2) * l1**2 * omega1**2
        + 0.5 * m2 * l2**2 * omega2**2
        + m2 * l1 * l2 * omega1 * omega2 * np.cos(theta1 - theta2)
    )

    # Potential energy (from pivot)
    V = -(m1 + m2) * g * l1 * np.cos(theta1) - m2 * g * l2 * np.cos(theta2)

    return T + V


def wrap_angle(angle):
    """Wrap an unbounded angle into (-pi, pi]."""
    two_pi = 2 * math.pi
    wrapped = angle % two_pi
    if wrapped > math.pi:
        wrapped -= two_pi
    return wrapped
