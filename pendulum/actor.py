"""Pendulum simulation actor: real-time RK4 stepping with push-based history.

The actor exclusively owns the live state. Each host tick it integrates
a frame's worth of fixed-size steps and broadcasts the full per-step
history to subscribers. Consumers only ever receive immutable snapshots.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Callable

from scheduling import FrameScheduler
from simulation import (
    DEFAULT_INITIAL_STATE, DISPLAY_PARAMS, DoublePendulumParams,
    PendulumState, rk4_step,
)

logger = logging.getLogger(__name__)

# Fixed physical step (seconds, display units)
DEFAULT_DT = 0.01

# Integration steps per broadcast frame at speed multiplier 1
BASE_STEPS_PER_FRAME = 40

# Half-width of the uniform jitter applied by a no-argument reset
RESET_JITTER = 0.25

HistoryCallback = Callable[[list[PendulumState]], None]
ResetCallback = Callable[[], None]


class PendulumSimulation:
    """Continuously running double pendulum driven by a FrameScheduler.

    States are Stopped and Running. start()/stop() switch between them;
    reset() works in either state and always leaves the actor Running.
    """

    def __init__(
        self,
        scheduler: FrameScheduler,
        initial_state: PendulumState = DEFAULT_INITIAL_STATE,
        params: DoublePendulumParams = DISPLAY_PARAMS,
        dt: float = DEFAULT_DT,
        base_steps_per_frame: int = BASE_STEPS_PER_FRAME,
        rng: random.Random | None = None,
    ):
        self._scheduler = scheduler
        self._state = PendulumState(*initial_state)
        self._initial_state = self._state
        self._params = params
        self._dt = dt
        self._base_steps_per_frame = base_steps_per_frame
        self._rng = rng if rng is not None else random.Random()

        # dicts keep registration order; keys give set semantics
        self._subscribers: dict[HistoryCallback, None] = {}
        self._reset_listeners: dict[ResetCallback, None] = {}

        self._running = False
        self._pending_frame = None
        self._speed_multiplier = 1.0
        self.frame_count = 0

    # -- Read-only accessors --

    @property
    def params(self) -> DoublePendulumParams:
        return self._params

    @property
    def dt(self) -> float:
        return self._dt

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def speed_multiplier(self) -> float:
        return self._speed_multiplier

    @property
    def steps_per_frame(self) -> int:
        # Halves round up (2.5 -> 3), not to even
        return max(1, math.floor(self._base_steps_per_frame * self._speed_multiplier + 0.5))

    def get_state(self) -> PendulumState:
        return self._state

    def get_initial_state(self) -> PendulumState:
        return self._initial_state

    # -- Registration --

    def subscribe(self, callback: HistoryCallback) -> Callable[[], None]:
        """Register a history callback. Returns an unsubscribe handle."""
        self._subscribers[callback] = None

        def unsubscribe():
            self._subscribers.pop(callback, None)

        return unsubscribe

    def add_reset_listener(self, callback: ResetCallback) -> Callable[[], None]:
        """Register a no-argument reset callback. Returns a removal handle."""
        self._reset_listeners[callback] = None

        def remove():
            self._reset_listeners.pop(callback, None)

        return remove

    # -- Lifecycle --

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._schedule_frame()

    def stop(self) -> None:
        self._running = False
        if self._pending_frame is not None:
            self._scheduler.cancel(self._pending_frame)
            self._pending_frame = None

    def reset(
        self,
        theta1: float | None = None,
        theta2: float | None = None,
        omega1: float | None = None,
        omega2: float | None = None,
    ) -> None:
        """Restart from a new initial state.

        With no arguments, picks a randomized start near the default.
        Otherwise each omitted component keeps the current initial
        state's value, so angle and velocity resets compose.
        """
        self.stop()

        if theta1 is None and theta2 is None and omega1 is None and omega2 is None:
            new_state = PendulumState(
                math.pi / 2 + self._rng.uniform(-RESET_JITTER, RESET_JITTER),
                math.pi / 2 + 1 + self._rng.uniform(-RESET_JITTER, RESET_JITTER),
                0.0,
                0.0,
            )
        else:
            previous = self._initial_state
            new_state = PendulumState(
                previous.theta1 if theta1 is None else float(theta1),
                previous.theta2 if theta2 is None else float(theta2),
                previous.omega1 if omega1 is None else float(omega1),
                previous.omega2 if omega2 is None else float(omega2),
            )

        self._state = new_state
        self._initial_state = new_state
        logger.debug("Reset to %s", new_state)

        for listener in list(self._reset_listeners):
            listener()
        self._notify([new_state])
        self.start()

    def multiply_speed(self, factor: float) -> None:
        """Scale the steps-per-frame multiplier (compounds across calls)."""
        self._speed_multiplier = self._speed_multiplier * factor
        logger.info(
            "Speed multiplier: %gx (%d steps/frame)",
            self._speed_multiplier, self.steps_per_frame,
        )

    # -- Stepping --

    def step_frame(self) -> list[PendulumState]:
        """Integrate one frame and broadcast its history.

        history[0] is the state at frame start, history[-1] at frame end.
        """
        state = self._state
        history = [state]
        for _ in range(self.steps_per_frame):
            state = rk4_step(state, self._params, self._dt)
            history.append(state)

        self._state = state
        self.frame_count += 1
        self._notify(history)
        return history

    def _on_tick(self) -> None:
        self._pending_frame = None
        if not self._running:
            return
        self.step_frame()
        # A subscriber may have stopped or reset the actor during notify
        if self._running and self._pending_frame is None:
            self._schedule_frame()

    def _schedule_frame(self) -> None:
        self._pending_frame = self._scheduler.schedule(self._on_tick)

    def _notify(self, history: list[PendulumState]) -> None:
        for callback in list(self._subscribers):
            callback(history)
