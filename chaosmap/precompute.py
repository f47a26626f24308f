"""Headless chaos map rendering: compute a whole map without a GUI.

Cells are independent, so grid rows are farmed out to a process pool
and reassembled in raster order. Each row is integrated exactly as the
interactive generator does it (one row per chunk), so the result matches
a completed generator run.

Usage:
    python -m chaosmap.precompute [--map velocity|angle] [--resolution R]
        [--steps N] [--output velocity_map.npz] [--png velocity_map.png]
        [--workers N] [--backend numpy|numba]
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import multiprocessing
import time
from pathlib import Path
from typing import NamedTuple

import numpy as np

from chaosmap.compute import (
    BACKEND_NAMES, PRESETS, BatchScores, ChaosMapConfig, ChaosMapConfigError,
    build_seed_states, get_backend, mean_scores, perturb,
)

logger = logging.getLogger(__name__)

# One backend instance per worker process, keyed by name
_worker_backends = {}


class RowSpec(NamedTuple):
    """Specification for a single grid row to compute."""

    row: int
    config: ChaosMapConfig
    backend: str


def compute_row(spec: RowSpec) -> tuple[int, BatchScores]:
    """Compute scores and colors for one grid row.

    This function is designed to run in a worker process. It creates
    the backend lazily to avoid issues with multiprocessing.
    """
    from chaosmap.coloring import scores_to_rgba

    config = spec.config
    backend = _worker_backends.get(spec.backend)
    if backend is None:
        backend = _worker_backends[spec.backend] = get_backend(spec.backend)
    start = spec.row * config.resolution
    seeds = build_seed_states(config, start, start + config.resolution)

    pairs = backend.start_pairs(seeds, perturb(seeds, config))
    pairs = backend.advance(
        pairs, config.params, config.dt, config.steps, config.distance_clamp,
    )
    scores = mean_scores(pairs)
    rgba = scores_to_rgba(scores, config.score_scale, config.gamma)
    return spec.row, BatchScores(scores, rgba)


def render_chaos_map(
    config: ChaosMapConfig,
    workers: int | None = None,
    backend: str = "numpy",
) -> BatchScores:
    """Compute a full chaos map.

    Args:
        config: Map specification (validated here).
        workers: Number of worker processes (default: CPU count);
            1 computes in-process.
        backend: Compute backend name.

    Returns:
        BatchScores with scores (R, R) float64 and rgba (R, R, 4) uint8.
    """
    config.validate()
    if workers is None:
        workers = multiprocessing.cpu_count()

    res = config.resolution
    scores = np.empty((res, res), dtype=np.float64)
    rgba = np.empty((res, res, 4), dtype=np.uint8)
    specs = [RowSpec(row, config, backend) for row in range(res)]

    logger.info(
        "Rendering %s map at %dx%d (%d steps) using %d workers",
        config.plane.label, res, res, config.steps, workers,
    )
    t0 = time.monotonic()

    if workers <= 1:
        results = map(compute_row, specs)
        _collect(results, scores, rgba, res, t0)
    else:
        with multiprocessing.Pool(workers) as pool:
            results = pool.imap_unordered(compute_row, specs)
            _collect(results, scores, rgba, res, t0)

    logger.info(
        "Render complete: %d rows in %.1f s", res, time.monotonic() - t0,
    )
    return BatchScores(scores, rgba)


def _collect(results, scores, rgba, res, t0) -> None:
    for i, (row, batch) in enumerate(results):
        scores[row] = batch.scores
        rgba[row] = batch.rgba
        if (i + 1) % 25 == 0:
            elapsed = time.monotonic() - t0
            logger.info(
                "  %d/%d rows (%.1f rows/s)", i + 1, res, (i + 1) / elapsed,
            )


def save_chaos_map(path: str | Path, config: ChaosMapConfig, result: BatchScores) -> Path:
    """Save scores, colors and the numeric config to a compressed .npz file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(
        path,
        scores=result.scores,
        rgba=result.rgba,
        x_axis=int(config.plane.x_axis),
        y_axis=int(config.plane.y_axis),
        base=np.asarray(config.plane.base, dtype=np.float64),
        bounds=np.array([config.bounds.minimum, config.bounds.maximum]),
        params=np.array([
            config.params.l1, config.params.l2,
            config.params.m1, config.params.m2, config.params.g,
        ]),
        steps=config.steps,
        dt=config.dt,
        epsilon=config.epsilon,
    )
    logger.info("Saved chaos map to %s", path)
    return path


def save_png(path: str | Path, rgba: np.ndarray) -> Path:
    """Write an RGBA buffer as a PNG through QImage."""
    from chaosmap.coloring import rgba_to_qimage

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not rgba_to_qimage(rgba).save(str(path), "PNG"):
        raise OSError(f"Could not write PNG to {path}")
    logger.info("Saved PNG to %s", path)
    return path


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for headless rendering."""
    parser = argparse.ArgumentParser(
        description="Render a double pendulum chaos map without the GUI.",
    )
    parser.add_argument(
        "--map", choices=sorted(PRESETS), default="velocity",
        help="Which initial-condition plane to map (default: velocity)",
    )
    parser.add_argument(
        "--resolution", type=int, default=None,
        help="Grid side length (default: preset value)",
    )
    parser.add_argument(
        "--steps", type=int, default=None,
        help="RK4 steps per trajectory (default: preset value)",
    )
    parser.add_argument(
        "--output", type=str, default=None,
        help="Output .npz path (default: <map>_map.npz)",
    )
    parser.add_argument(
        "--png", type=str, default=None,
        help="Also write the colored map as a PNG",
    )
    parser.add_argument(
        "--workers", type=int, default=None,
        help="Number of worker processes (default: CPU count)",
    )
    parser.add_argument(
        "--backend", choices=BACKEND_NAMES, default="numpy",
        help="Compute backend (default: numpy)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    config = PRESETS[args.map]
    overrides = {}
    if args.resolution is not None:
        overrides["resolution"] = args.resolution
    if args.steps is not None:
        overrides["steps"] = args.steps
    config = dataclasses.replace(config, **overrides)

    try:
        config.validate()
    except ChaosMapConfigError as exc:
        parser.error(str(exc))

    result = render_chaos_map(config, args.workers, args.backend)
    save_chaos_map(args.output or f"{args.map}_map.npz", config, result)
    if args.png:
        save_png(args.png, result.rgba)


if __name__ == "__main__":
    main()
