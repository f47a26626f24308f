"""Entry point for the Chaos Pendulum application.

Opens the five-panel window: the live double pendulum, its angle and
velocity phase portraits, and the angle and velocity chaos maps.
"""

import argparse
import logging
import sys

from PyQt6.QtWidgets import QApplication

from app_window import AppWindow
from chaosmap.compute import BACKEND_NAMES


def build_parser():
    parser = argparse.ArgumentParser(description="Double pendulum chaos explorer")
    parser.add_argument("--resolution", type=int, default=None,
                        help="Chaos map grid size R (default: 250)")
    parser.add_argument("--steps", type=int, default=None,
                        help="Integration steps per chaos map cell (default: 3000)")
    parser.add_argument("--backend", choices=BACKEND_NAMES, default="numpy",
                        help="Chaos map compute backend (default: numpy)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    app = QApplication(sys.argv[:1])
    window = AppWindow(
        resolution=args.resolution, steps=args.steps, backend=args.backend,
    )
    window.show()

    if args.backend == "numba":
        _warmup_numba()

    sys.exit(app.exec())


def _warmup_numba():
    """Trigger Numba JIT compilation in a background thread."""
    from PyQt6.QtCore import QThread

    from chaosmap._numba_backend import NumbaBackend

    class WarmupThread(QThread):
        def run(self):
            NumbaBackend.warmup()
            logging.getLogger(__name__).info("Numba JIT warmup complete")

    # Store reference to prevent GC
    _warmup_numba._thread = WarmupThread()
    _warmup_numba._thread.start()


if __name__ == "__main__":
    main()
