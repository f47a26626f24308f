import os

# The TBB threading layer deadlocks at interpreter exit once the process has
# forked (tests/test_precompute.py uses a multiprocessing pool after numba's
# parallel runtime is up). Use the fork-safe workqueue layer for the test run.
os.environ.setdefault("NUMBA_THREADING_LAYER", "workqueue")
