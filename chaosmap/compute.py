"""Chaos map compute: configuration, seed grid builder, backend selection.

A chaos map is an R x R grid over a 2D slice of initial-condition space.
Two of the four state dimensions vary across the grid (x along columns,
y along rows); the other two are held fixed. Each cell is scored by
integrating the seed and an epsilon-perturbed twin side by side.

The ComputeBackend Protocol abstracts how those trajectory pairs are
advanced. Two backends are selected by name:
  numpy (default, always available) and numba (optional extra).
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import NamedTuple, Protocol

import numpy as np

from simulation import FRACTAL_PARAMS, DoublePendulumParams, PendulumState

logger = logging.getLogger(__name__)

# Tuned visualization constants (not physical invariants)
DEFAULT_DISTANCE_CLAMP = 2.0
DEFAULT_SCORE_SCALE = 1.5
DEFAULT_GAMMA = 0.4

DEFAULT_RESOLUTION = 250
DEFAULT_STEPS = 3000
DEFAULT_DT = 0.01
DEFAULT_EPSILON = 0.001


class ChaosMapConfigError(ValueError):
    """Raised when a chaos map configuration cannot be run."""


class StateAxis(enum.IntEnum):
    """Index of a state dimension in a (theta1, theta2, omega1, omega2) row."""

    THETA1 = 0
    THETA2 = 1
    OMEGA1 = 2
    OMEGA2 = 3


@dataclass(frozen=True)
class ChaosMapBounds:
    """Value range shared by both free axes."""

    minimum: float
    maximum: float

    @property
    def range(self) -> float:
        return self.maximum - self.minimum


@dataclass(frozen=True)
class ChaosMapPlane:
    """Which two state dimensions vary, and the state the others come from.

    Components of ``base`` on the free axes are ignored.
    """

    x_axis: StateAxis
    y_axis: StateAxis
    base: PendulumState = PendulumState(0.0, 0.0, 0.0, 0.0)

    @property
    def label(self) -> str:
        return f"{self.x_axis.name.lower()} x {self.y_axis.name.lower()}"


VELOCITY_PLANE = ChaosMapPlane(StateAxis.OMEGA1, StateAxis.OMEGA2)
ANGLE_PLANE = ChaosMapPlane(StateAxis.THETA1, StateAxis.THETA2)


class BatchScores(NamedTuple):
    """Divergence scores and RGBA colors for a contiguous run of cells."""

    scores: np.ndarray  # (N,) float64
    rgba: np.ndarray    # (N, 4) uint8


@dataclass(frozen=True)
class ChaosMapConfig:
    """Immutable specification for a chaos map job."""

    bounds: ChaosMapBounds
    resolution: int = DEFAULT_RESOLUTION
    params: DoublePendulumParams = FRACTAL_PARAMS
    steps: int = DEFAULT_STEPS
    dt: float = DEFAULT_DT
    epsilon: float = DEFAULT_EPSILON
    plane: ChaosMapPlane = VELOCITY_PLANE
    distance_clamp: float = DEFAULT_DISTANCE_CLAMP
    score_scale: float = DEFAULT_SCORE_SCALE
    gamma: float = DEFAULT_GAMMA

    @property
    def total_cells(self) -> int:
        return self.resolution * self.resolution

    def validate(self) -> None:
        """Raise ChaosMapConfigError if this job cannot run."""
        if not isinstance(self.resolution, (int, np.integer)) or self.resolution <= 0:
            raise ChaosMapConfigError(
                f"resolution must be a positive integer, got {self.resolution!r}"
            )
        if not isinstance(self.steps, (int, np.integer)) or self.steps <= 0:
            raise ChaosMapConfigError(
                f"steps must be a positive integer, got {self.steps!r}"
            )
        if not (self.dt > 0 and math.isfinite(self.dt)):
            raise ChaosMapConfigError(f"dt must be positive, got {self.dt!r}")
        if not math.isfinite(self.epsilon):
            raise ChaosMapConfigError(f"epsilon must be finite, got {self.epsilon!r}")
        if not (math.isfinite(self.bounds.minimum) and math.isfinite(self.bounds.maximum)):
            raise ChaosMapConfigError(f"bounds must be finite, got {self.bounds}")
        if self.bounds.range <= 0:
            raise ChaosMapConfigError(
                f"bounds maximum must exceed minimum, got {self.bounds}"
            )
        if self.plane.x_axis == self.plane.y_axis:
            raise ChaosMapConfigError(
                f"plane axes must differ, got {self.plane.x_axis.name} twice"
            )
        for name in ("distance_clamp", "score_scale", "gamma"):
            value = getattr(self, name)
            if not value > 0:
                raise ChaosMapConfigError(f"{name} must be positive, got {value!r}")


VELOCITY_MAP = ChaosMapConfig(
    bounds=ChaosMapBounds(-10.0, 10.0),
    plane=VELOCITY_PLANE,
)

ANGLE_MAP = ChaosMapConfig(
    bounds=ChaosMapBounds(-math.pi, math.pi),
    plane=ANGLE_PLANE,
)

PRESETS = {
    "velocity": VELOCITY_MAP,
    "angle": ANGLE_MAP,
}


def cell_value(index, resolution: int, bounds: ChaosMapBounds):
    """Map a grid index (scalar or array) to a value on a free axis.

    Index 0 maps to bounds.minimum; the maximum itself is never reached.
    """
    return bounds.minimum + (index / resolution) * bounds.range


def build_seed_states(config: ChaosMapConfig, start: int, stop: int) -> np.ndarray:
    """Generate (N, 4) float64 seeds for raster indices [start, stop).

    Raster index i is cell (x, y) = (i % R, i // R).
    """
    res = config.resolution
    indices = np.arange(start, stop, dtype=np.int64)
    xs = indices % res
    ys = indices // res

    seeds = np.empty((indices.shape[0], 4), dtype=np.float64)
    seeds[:, :] = np.asarray(config.plane.base, dtype=np.float64)
    seeds[:, config.plane.x_axis] = cell_value(xs, res, config.bounds)
    seeds[:, config.plane.y_axis] = cell_value(ys, res, config.bounds)
    return seeds


def perturb(seeds: np.ndarray, config: ChaosMapConfig) -> np.ndarray:
    """Return twin seeds offset by +epsilon on both free axes."""
    twins = seeds.copy()
    twins[:, config.plane.x_axis] = seeds[:, config.plane.x_axis] + config.epsilon
    twins[:, config.plane.y_axis] = seeds[:, config.plane.y_axis] + config.epsilon
    return twins


def cell_to_state(config: ChaosMapConfig, x: int, y: int) -> PendulumState:
    """Return the seed state of grid cell (x, y)."""
    return point_to_state(config, x / config.resolution, y / config.resolution)


def point_to_state(config: ChaosMapConfig, fx: float, fy: float) -> PendulumState:
    """Translate a fractional position in the map ([0, 1] per axis) to a state.

    Used to forward clicks on a displayed map to the simulation's reset.
    """
    values = list(config.plane.base)
    values[config.plane.x_axis] = config.bounds.minimum + fx * config.bounds.range
    values[config.plane.y_axis] = config.bounds.minimum + fy * config.bounds.range
    return PendulumState(*values)


class PairState(NamedTuple):
    """In-flight integration of a chunk of seed/twin trajectory pairs."""

    states_a: np.ndarray      # (N, 4) float64
    states_b: np.ndarray      # (N, 4) float64
    distance_sum: np.ndarray  # (N,) float64
    steps_done: int


class ComputeBackend(Protocol):
    """Protocol for pluggable trajectory-pair backends."""

    def start_pairs(self, seeds: np.ndarray, twins: np.ndarray) -> PairState:
        """Wrap seeds and twins into a fresh PairState (no steps taken)."""
        ...

    def advance(
        self,
        pairs: PairState,
        params: DoublePendulumParams,
        dt: float,
        n_steps: int,
        distance_clamp: float,
    ) -> PairState:
        """Advance every pair n_steps RK4 steps.

        Accumulates the per-step Euclidean distance between the two
        4D states, clamped at distance_clamp. Non-finite distances count
        as fully diverged (the clamp value). Returns a new PairState.
        """
        ...


def mean_scores(pairs: PairState) -> np.ndarray:
    """Divergence score: mean clamped distance over the steps taken."""
    return pairs.distance_sum / pairs.steps_done


def get_backend(name: str = "numpy") -> ComputeBackend:
    """Instantiate a compute backend by name ("numpy" or "numba")."""
    if name == "numpy":
        from chaosmap._numpy_backend import NumpyBackend
        logger.info("Using NumPy compute backend")
        return NumpyBackend()

    if name == "numba":
        from chaosmap._numba_backend import NumbaBackend
        logger.info("Using Numba compute backend")
        return NumbaBackend()

    raise ValueError(f"Unknown compute backend {name!r} (expected 'numpy' or 'numba')")


BACKEND_NAMES = ("numpy", "numba")
