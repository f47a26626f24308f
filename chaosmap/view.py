"""Chaos map view: progressive display of a generator run, click to simulate.

Owns one ChaosMapGenerator. Each published batch replaces the displayed
image; a progress overlay stays up until the run completes. Clicking a
point in the map emits the corresponding initial state, which the app
window forwards to the simulation's reset.
"""

from __future__ import annotations

import dataclasses
import logging

import numpy as np
from PyQt6.QtCore import Qt, QRectF, pyqtSignal
from PyQt6.QtGui import QPainter, QColor, QPen, QFont
from PyQt6.QtWidgets import QWidget

from chaosmap.coloring import rgba_to_qimage
from chaosmap.compute import ChaosMapConfig, point_to_state
from chaosmap.generator import ChaosMapGenerator
from ui_common import ProgressOverlay

logger = logging.getLogger(__name__)


class ChaosMapView(QWidget):
    """Widget that displays a chaos map while it is being generated."""

    state_selected = pyqtSignal(object)  # PendulumState
    progress_changed = pyqtSignal(int)   # percent

    def __init__(
        self,
        config: ChaosMapConfig,
        generator: ChaosMapGenerator,
        title: str,
        parent=None,
    ):
        super().__init__(parent)
        self.setMinimumSize(200, 200)
        self.setCursor(Qt.CursorShape.CrossCursor)
        self.setToolTip(f"{title}: click to simulate from that point")

        self._config = config
        self._generator = generator
        self._title = title
        self._image = None
        self._buffer: np.ndarray | None = None
        self._run = None

        self.overlay = ProgressOverlay(self)

    @property
    def config(self) -> ChaosMapConfig:
        return self._config

    @property
    def current_run(self):
        return self._run

    @property
    def buffer(self) -> np.ndarray | None:
        """Latest published (read-only) RGBA snapshot."""
        return self._buffer

    # -- Generation --

    def start(self, config: ChaosMapConfig | None = None) -> None:
        """(Re)generate the map; supersedes any run in flight."""
        if config is not None:
            self._config = config
        self._buffer = None
        self._image = None
        self._run = self._generator.run(self._config, self._on_batch)
        self.overlay.start(f"GENERATING {self._title}...")
        self.update()

    def set_resolution(self, resolution: int) -> None:
        if resolution == self._config.resolution:
            return
        self.start(dataclasses.replace(self._config, resolution=resolution))

    def stop(self) -> None:
        self._generator.cancel()
        self.overlay.stop()

    def _on_batch(self, buffer: np.ndarray, progress: int, done: bool) -> None:
        self._buffer = buffer
        self._image = rgba_to_qimage(buffer)
        self.overlay.set_progress(progress)
        self.progress_changed.emit(progress)
        if done:
            self.overlay.stop()
        self.update()

    # -- Geometry --

    def _image_rect(self) -> tuple[float, float, float]:
        """Return (img_x, img_y, side) for the centered square image area."""
        side = min(self.width(), self.height())
        return (self.width() - side) / 2, (self.height() - side) / 2, side

    # -- Qt events --

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(0, 0, 0))
        img_x, img_y, side = self._image_rect()

        if self._image is not None:
            # Nearest-neighbor scaling (preserves the cell grid)
            painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, False)
            painter.drawImage(QRectF(img_x, img_y, side, side), self._image)

        painter.setPen(QPen(QColor(51, 65, 85)))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(QRectF(img_x, img_y, side, side))

        font = QFont()
        font.setPointSizeF(8)
        painter.setFont(font)
        painter.setPen(QColor(100, 116, 139))
        painter.drawText(QRectF(img_x + 8, img_y + 6, side, 20), self._title)
        painter.end()

    def resizeEvent(self, event):
        self.overlay.resize(self.size())
        super().resizeEvent(event)

    def mousePressEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            return
        pos = event.position()
        img_x, img_y, side = self._image_rect()
        if side <= 0:
            return
        fx = (pos.x() - img_x) / side
        fy = (pos.y() - img_y) / side
        if not (0.0 <= fx <= 1.0 and 0.0 <= fy <= 1.0):
            return
        state = point_to_state(self._config, fx, fy)
        logger.info("Initial state selected from %s: %s", self._title, state)
        self.state_selected.emit(state)

    def closeEvent(self, event):
        self.stop()
        super().closeEvent(event)
