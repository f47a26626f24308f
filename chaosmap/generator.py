"""Chaos map generator: time-sliced, cancellable progressive computation.

Cells are processed in raster order, one chunk (by default one grid row)
at a time. A chunk's trajectory pairs are advanced a few steps at a time
so each batch stays within a wall-clock budget even when the horizon is
thousands of steps; the integration state simply carries over to the
next batch. Finished chunks are colored and committed to the buffer, and
after every batch a read-only snapshot plus progress is published.

Between batches control returns to the host's FrameScheduler. A run is
cancelled cooperatively: the flag is checked before each batch and
between step slices, and the pending tick is dropped, so no write or
callback happens after cancel().
"""

from __future__ import annotations

import logging
import time
from typing import Callable

import numpy as np

from chaosmap.coloring import blank_buffer, scores_to_rgba
from chaosmap.compute import (
    ChaosMapConfig, ComputeBackend, PairState,
    build_seed_states, get_backend, mean_scores, perturb,
)
from scheduling import FrameScheduler

logger = logging.getLogger(__name__)

# Wall-clock budget per batch (seconds)
DEFAULT_TIME_BUDGET = 0.012

# RK4 steps between clock / cancellation checks
DEFAULT_CHECK_INTERVAL = 25

# (buffer snapshot, progress percent, done)
BatchCallback = Callable[[np.ndarray, int, bool], None]


class ChaosMapRun:
    """Handle for one generation run.

    The buffer is owned by the generator while the run is active and is
    only exposed as read-only views or copies.
    """

    def __init__(self, config: ChaosMapConfig, scheduler: FrameScheduler,
                 started_at: float = 0.0):
        self.config = config
        self._scheduler = scheduler
        self._buffer = blank_buffer(config.resolution)
        self._scores = np.full(config.total_cells, np.nan, dtype=np.float64)
        self._pending = None
        self._chunk: PairState | None = None
        self._chunk_stop = 0
        self._cancelled = False
        self._failed = False
        self.cells_done = 0
        self.batches = 0
        self.started_at = started_at

    @property
    def total_cells(self) -> int:
        return self.config.total_cells

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def failed(self) -> bool:
        return self._failed

    @property
    def done(self) -> bool:
        return self.cells_done >= self.total_cells

    @property
    def active(self) -> bool:
        return not (self.done or self._cancelled or self._failed)

    @property
    def progress(self) -> int:
        """Percent of cells completed, floored so 100 means every cell is final."""
        return 100 * self.cells_done // self.total_cells

    @property
    def buffer(self) -> np.ndarray:
        """Read-only (R, R, 4) RGBA view of the buffer."""
        view = self._buffer.view()
        view.flags.writeable = False
        return view

    @property
    def scores(self) -> np.ndarray:
        """Read-only (R, R) divergence scores; NaN where not yet computed."""
        view = self._scores.reshape(self.config.resolution, self.config.resolution)
        view.flags.writeable = False
        return view

    def snapshot(self) -> np.ndarray:
        """Read-only copy of the current buffer."""
        copy = self._buffer.copy()
        copy.flags.writeable = False
        return copy

    def cancel(self) -> None:
        """Stop the run. Idempotent; a no-op once the run has finished."""
        if not self.active:
            return
        self._cancelled = True
        self._chunk = None
        if self._pending is not None:
            self._scheduler.cancel(self._pending)
            self._pending = None
        logger.info(
            "Chaos map run cancelled at %d/%d cells (%d%%)",
            self.cells_done, self.total_cells, self.progress,
        )

    def _commit(self, pairs: PairState) -> None:
        start = self.cells_done
        stop = self._chunk_stop
        scores = mean_scores(pairs)
        self._scores[start:stop] = scores
        flat = self._buffer.reshape(-1, 4)
        flat[start:stop] = scores_to_rgba(
            scores, self.config.score_scale, self.config.gamma,
        )
        self.cells_done = stop


class ChaosMapGenerator:
    """Progressive chaos map generator driven by a FrameScheduler.

    At most one run is active per generator: starting a new run cancels
    the one in flight so two writers never share a buffer.
    """

    def __init__(
        self,
        scheduler: FrameScheduler,
        backend: ComputeBackend | None = None,
        time_budget: float = DEFAULT_TIME_BUDGET,
        chunk_size: int | None = None,
        check_interval: int = DEFAULT_CHECK_INTERVAL,
        clock: Callable[[], float] = time.perf_counter,
    ):
        if chunk_size is not None and chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if check_interval <= 0:
            raise ValueError(f"check_interval must be positive, got {check_interval}")
        self._scheduler = scheduler
        self._backend = backend if backend is not None else get_backend("numpy")
        self._time_budget = time_budget
        self._chunk_size = chunk_size
        self._check_interval = check_interval
        self._clock = clock
        self._run: ChaosMapRun | None = None

    @property
    def backend(self) -> ComputeBackend:
        return self._backend

    @property
    def current_run(self) -> ChaosMapRun | None:
        return self._run

    def run(self, config: ChaosMapConfig, on_batch: BatchCallback) -> ChaosMapRun:
        """Start generating config's map, superseding any run in flight.

        Raises ChaosMapConfigError synchronously for invalid configs.
        Returns the run handle; call its cancel() to stop.
        """
        config.validate()
        self.cancel()

        run = ChaosMapRun(config, self._scheduler, started_at=self._clock())
        self._run = run
        logger.info(
            "Starting chaos map %s: %dx%d cells, %d steps, dt=%g, epsilon=%g",
            config.plane.label, config.resolution, config.resolution,
            config.steps, config.dt, config.epsilon,
        )
        run._pending = self._scheduler.schedule(
            lambda: self._process_batch(run, on_batch)
        )
        return run

    def cancel(self) -> None:
        """Cancel the run in flight, if any."""
        if self._run is not None:
            self._run.cancel()

    def _chunk_length(self, config: ChaosMapConfig) -> int:
        if self._chunk_size is not None:
            return self._chunk_size
        return config.resolution

    def _process_batch(self, run: ChaosMapRun, on_batch: BatchCallback) -> None:
        run._pending = None
        if not run.active:
            return

        config = run.config
        deadline = self._clock() + self._time_budget

        try:
            while not run.done:
                if run._chunk is None:
                    start = run.cells_done
                    run._chunk_stop = min(start + self._chunk_length(config), run.total_cells)
                    seeds = build_seed_states(config, start, run._chunk_stop)
                    run._chunk = self._backend.start_pairs(seeds, perturb(seeds, config))

                pairs = run._chunk
                n_steps = min(self._check_interval, config.steps - pairs.steps_done)
                pairs = self._backend.advance(
                    pairs, config.params, config.dt, n_steps, config.distance_clamp,
                )

                if run.cancelled:
                    return

                if pairs.steps_done >= config.steps:
                    run._commit(pairs)
                    run._chunk = None
                else:
                    run._chunk = pairs

                if self._clock() >= deadline:
                    break
        except Exception:
            run._failed = True
            logger.exception(
                "Chaos map computation failed at cell %d", run.cells_done,
            )
            return

        run.batches += 1
        done = run.done
        logger.debug(
            "Chaos map batch %d: %d/%d cells (%d%%)",
            run.batches, run.cells_done, run.total_cells, run.progress,
        )
        if done:
            logger.info(
                "Chaos map %s complete in %.2f s (%d batches)",
                config.plane.label, self._clock() - run.started_at, run.batches,
            )

        on_batch(run.snapshot(), run.progress, done)

        # The callback may have cancelled or superseded this run
        if not done and run.active and run._pending is None:
            run._pending = self._scheduler.schedule(
                lambda: self._process_batch(run, on_batch)
            )
