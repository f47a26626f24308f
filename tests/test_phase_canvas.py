"""Tests for pendulum/phase_canvas.py: phase-space projection."""

import math

import pytest

from pendulum.phase_canvas import MODE_ANGLE, MODE_VELOCITY, project
from simulation import PendulumState


class TestProject:

    def test_angle_mode_wraps(self):
        x, y = project(PendulumState(3 * math.pi / 2, -0.5, 7.0, 8.0), MODE_ANGLE)
        assert x == pytest.approx(-math.pi / 2)
        assert y == pytest.approx(-0.5)

    def test_velocity_mode_is_raw(self):
        assert project(PendulumState(10.0, 20.0, -3.0, 4.5), MODE_VELOCITY) == (-3.0, 4.5)

    def test_accepts_plain_tuples(self):
        assert project((0.0, 0.0, 1.0, 2.0), MODE_VELOCITY) == (1.0, 2.0)

    def test_non_finite_passes_through(self):
        x, _ = project((0.0, 0.0, math.nan, 0.0), MODE_VELOCITY)
        assert math.isnan(x)
