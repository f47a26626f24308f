"""Phase-space canvas: angle or velocity portrait of the live simulation.

The angle portrait plots wrapped (theta1, theta2); the velocity portrait
plots (omega1, omega2). Both show the trail, the start marker (the
simulation's initial state) and the current state. Clicking sets the
two plotted components of the start state and keeps the other two, so
angle and velocity picks compose.
"""

import math
from collections import deque

from PyQt6.QtCore import Qt, QPointF, QRectF
from PyQt6.QtGui import QPainter, QPen, QBrush, QColor, QFont
from PyQt6.QtWidgets import QWidget

from simulation import wrap_angle

# Phase portrait modes
MODE_ANGLE = "angle"
MODE_VELOCITY = "velocity"

# Pixels per plotted unit (rad or rad/s in display units)
DEFAULT_SCALES = {
    MODE_ANGLE: 50.0,
    MODE_VELOCITY: 160.0,
}

TITLES = {
    MODE_ANGLE: "ANGLE PHASE SPACE (θ₁, θ₂)",
    MODE_VELOCITY: "VELOCITY PHASE SPACE (ω₁, ω₂)",
}


def project(state, mode):
    """Return the (x, y) phase coordinates of a state for the given mode."""
    if mode == MODE_ANGLE:
        return wrap_angle(state[0]), wrap_angle(state[1])
    return state[2], state[3]


class PhaseSpaceCanvas(QWidget):
    """Trail of the simulation projected onto two state components."""

    TRAIL_LENGTH = 20000

    def __init__(self, mode=MODE_ANGLE, parent=None):
        super().__init__(parent)
        if mode not in DEFAULT_SCALES:
            raise ValueError(f"Unknown phase mode {mode!r}")
        self.mode = mode
        self.scale = DEFAULT_SCALES[mode]
        # None entries break the polyline (wrap-around or non-finite)
        self.trail = deque(maxlen=self.TRAIL_LENGTH)
        self.current = None
        self._simulation = None
        self._detach_handles = []
        self.setMinimumSize(200, 200)
        self.setCursor(Qt.CursorShape.CrossCursor)
        self.setToolTip(
            "Click to set the start point, right-click to reset it to zero"
        )

    # -- Simulation wiring --

    def attach(self, simulation):
        self.detach()
        self._simulation = simulation
        self.current = project(simulation.get_state(), self.mode)
        self._detach_handles = [
            simulation.subscribe(self.on_history),
            simulation.add_reset_listener(self.clear_trail),
        ]
        self.update()

    def detach(self):
        for remove in self._detach_handles:
            remove()
        self._detach_handles = []
        self._simulation = None

    def on_history(self, history):
        if not history:
            return
        prev = self.trail[-1] if self.trail else None
        for st in history:
            point = project(st, self.mode)
            if not (math.isfinite(point[0]) and math.isfinite(point[1])):
                self.trail.append(None)
                prev = None
                continue
            if prev is not None and self.mode == MODE_ANGLE:
                # Wrapped across the +-pi boundary: start a new segment
                if abs(point[0] - prev[0]) >= math.pi or abs(point[1] - prev[1]) >= math.pi:
                    self.trail.append(None)
            self.trail.append(point)
            prev = point
        self.current = project(history[-1], self.mode)
        self.update()

    def clear_trail(self):
        self.trail.clear()

    # -- Geometry --

    def _to_pixel(self, x, y):
        return self.width() / 2 + x * self.scale, self.height() / 2 + y * self.scale

    def _from_pixel(self, px, py):
        return (px - self.width() / 2) / self.scale, (py - self.height() / 2) / self.scale

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), QColor(0, 0, 0))

        w, h = self.width(), self.height()
        cx, cy = w / 2, h / 2

        # Axes
        painter.setPen(QPen(QColor(30, 41, 59)))
        painter.drawLine(QPointF(0, cy), QPointF(w, cy))
        painter.drawLine(QPointF(cx, 0), QPointF(cx, h))

        if self.mode == MODE_ANGLE:
            # [-pi, pi]^2 boundary box
            side = 2 * math.pi * self.scale
            painter.setPen(QPen(QColor(15, 23, 42)))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(QRectF(cx - side / 2, cy - side / 2, side, side))

        # Trail
        trail_pen = QPen(QColor(59, 130, 246) if self.mode == MODE_ANGLE else QColor(239, 68, 68))
        trail_pen.setWidthF(1.0)
        painter.setPen(trail_pen)
        prev = None
        for point in self.trail:
            if point is None:
                prev = None
                continue
            px = self._to_pixel(*point)
            if prev is not None:
                painter.drawLine(QPointF(*prev), QPointF(*px))
            prev = px

        painter.setPen(Qt.PenStyle.NoPen)

        # Start marker
        if self._simulation is not None:
            start = project(self._simulation.get_initial_state(), self.mode)
            if math.isfinite(start[0]) and math.isfinite(start[1]):
                painter.setBrush(QBrush(QColor(59, 130, 246)))
                painter.drawEllipse(QPointF(*self._to_pixel(*start)), 4, 4)

        # Current marker
        if self.current is not None and all(math.isfinite(v) for v in self.current):
            painter.setBrush(QBrush(QColor(255, 255, 255)))
            painter.drawEllipse(QPointF(*self._to_pixel(*self.current)), 3, 3)

        font = QFont()
        font.setPointSizeF(8)
        painter.setFont(font)
        painter.setPen(QColor(100, 116, 139))
        painter.drawText(QPointF(10, 18), TITLES[self.mode])

        painter.end()

    def mousePressEvent(self, event):
        if self._simulation is None:
            return
        if event.button() == Qt.MouseButton.LeftButton:
            pos = event.position()
            x, y = self._from_pixel(pos.x(), pos.y())
        elif event.button() == Qt.MouseButton.RightButton:
            x, y = 0.0, 0.0
        else:
            return

        if self.mode == MODE_ANGLE:
            self._simulation.reset(theta1=x, theta2=y)
        else:
            self._simulation.reset(omega1=x, omega2=y)
