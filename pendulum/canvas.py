"""Pendulum canvas: QPainter rendering of the live double pendulum.

Subscribes to a PendulumSimulation and redraws on every broadcast frame.
Every state in a frame's history extends the trace of the second bob,
so the trace stays smooth at any speed multiplier.
"""

import math
from collections import deque

from PyQt6.QtCore import Qt, QPointF
from PyQt6.QtGui import QPainter, QPen, QBrush, QColor, QFont
from PyQt6.QtWidgets import QWidget

from simulation import DISPLAY_PARAMS, positions, total_energy


class PendulumCanvas(QWidget):
    """Real-space view: rods, bobs and the trace of the second bob.

    Clicking restarts the simulation from a randomized start.
    """

    TRACE_LENGTH = 2000

    def __init__(self, parent=None):
        super().__init__(parent)
        self.params = DISPLAY_PARAMS
        self.state = (0.0, 0.0, 0.0, 0.0)
        self.trace = deque(maxlen=self.TRACE_LENGTH)
        self.show_axes = False
        self.show_energy = True
        self._simulation = None
        self._detach_handles = []
        self.setMinimumSize(300, 300)
        self.setCursor(Qt.CursorShape.PointingHandCursor)
        self.setToolTip("Click to restart simulation")

    # -- Simulation wiring --

    def attach(self, simulation):
        """Subscribe to a simulation's frames and resets."""
        self.detach()
        self._simulation = simulation
        self.params = simulation.params
        self.state = simulation.get_state()
        self._detach_handles = [
            simulation.subscribe(self.on_history),
            simulation.add_reset_listener(self.clear_trace),
        ]
        self.update()

    def detach(self):
        for remove in self._detach_handles:
            remove()
        self._detach_handles = []
        self._simulation = None

    def on_history(self, history):
        """Consume one broadcast frame (history[0] = frame start)."""
        if not history:
            return
        for st in history:
            _, _, x2, y2 = positions(st, self.params)
            self.trace.append((x2, y2))
        self.state = history[-1]
        self.update()

    def clear_trace(self):
        self.trace.clear()

    # -- Geometry --

    def _scale(self):
        total_length = self.params.l1 + self.params.l2
        return min(self.width(), self.height()) * 0.45 / max(total_length, 0.01)

    def _pivot(self):
        return self.width() / 2, self.height() / 2

    def _to_pixel(self, x, y):
        """Convert physics coords (y up) to pixel coords."""
        scale = self._scale()
        cx, cy = self._pivot()
        return cx + x * scale, cy - y * scale

    def _draw_axes(self, painter):
        """Draw faint crosshairs and the full-reach circle around the pivot."""
        cx, cy = self._pivot()
        reach = (self.params.l1 + self.params.l2) * self._scale()

        ring_pen = QPen(QColor(255, 255, 255, 30))
        ring_pen.setWidthF(1.0)
        ring_pen.setStyle(Qt.PenStyle.DashLine)
        painter.setPen(ring_pen)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawEllipse(QPointF(cx, cy), reach, reach)

        line_pen = QPen(QColor(255, 255, 255, 20))
        line_pen.setWidthF(1.0)
        painter.setPen(line_pen)
        painter.drawLine(QPointF(0, cy), QPointF(self.width(), cy))
        painter.drawLine(QPointF(cx, 0), QPointF(cx, self.height()))

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        painter.fillRect(self.rect(), QColor(20, 20, 30))

        if self.show_axes:
            self._draw_axes(painter)

        pivot_px = self._to_pixel(0, 0)
        x1, y1, x2, y2 = positions(self.state, self.params)
        bob1_px = self._to_pixel(x1, y1)
        bob2_px = self._to_pixel(x2, y2)

        # Trace (solid, skipping non-finite points from blown-up states)
        if len(self.trace) > 1:
            pen = QPen(QColor(34, 211, 238))
            pen.setWidthF(2.0)
            painter.setPen(pen)
            prev = None
            for point in self.trace:
                if not (math.isfinite(point[0]) and math.isfinite(point[1])):
                    prev = None
                    continue
                px = self._to_pixel(*point)
                if prev is not None:
                    painter.drawLine(QPointF(*prev), QPointF(*px))
                prev = px

        # Arms
        arm_pen = QPen(QColor(148, 163, 184))
        arm_pen.setWidthF(2.0)
        arm_pen.setCapStyle(Qt.PenCapStyle.RoundCap)
        painter.setPen(arm_pen)
        painter.drawLine(QPointF(*pivot_px), QPointF(*bob1_px))
        painter.drawLine(QPointF(*bob1_px), QPointF(*bob2_px))

        # Pivot
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(QColor(248, 250, 252)))
        painter.drawEllipse(QPointF(*pivot_px), 5, 5)

        # Bobs
        painter.setBrush(QBrush(QColor(226, 232, 240)))
        painter.drawEllipse(QPointF(*bob1_px), 10, 10)
        painter.setBrush(QBrush(QColor(255, 255, 255)))
        painter.drawEllipse(QPointF(*bob2_px), 10, 10)

        if self.show_energy:
            font = QFont()
            font.setPointSizeF(9)
            painter.setFont(font)
            painter.setPen(QColor(100, 116, 139))
            energy = total_energy(self.state, self.params)
            painter.drawText(QPointF(12, 20), f"E = {energy:.1f}")

        painter.end()

    def mousePressEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton and self._simulation is not None:
            self._simulation.reset()
