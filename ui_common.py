"""Shared UI widgets used by the pendulum and chaos map panels.

Contains ProgressOverlay and the dark palette shared by the panels.
"""

from PyQt6.QtCore import Qt, QRectF
from PyQt6.QtGui import QPainter, QColor, QFont
from PyQt6.QtWidgets import QWidget


PANEL_BORDER = QColor(30, 41, 59)
ACCENT = QColor(239, 68, 68)
MUTED_TEXT = QColor(148, 163, 184)


# ---------------------------------------------------------------------------
# ProgressOverlay
# ---------------------------------------------------------------------------

class ProgressOverlay(QWidget):
    """Semi-transparent overlay with a message and a progress bar.

    Transparent to mouse events so the panel underneath stays clickable.
    """

    BAR_WIDTH = 192
    BAR_HEIGHT = 8

    def __init__(self, parent=None):
        super().__init__(parent)
        self.message = "Generating..."
        self.progress = 0
        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)
        self.hide()

    def start(self, message="Generating..."):
        self.message = message
        self.progress = 0
        if self.parentWidget():
            self.resize(self.parentWidget().size())
        self.show()
        self.raise_()
        self.update()

    def set_progress(self, percent):
        self.progress = max(0, min(100, int(percent)))
        self.update()

    def stop(self):
        self.hide()

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        w, h = self.width(), self.height()

        # Dim background
        painter.fillRect(self.rect(), QColor(0, 0, 0, 150))

        font = QFont()
        font.setFamily("monospace")
        font.setPointSizeF(9)
        painter.setFont(font)

        cy = h / 2
        painter.setPen(QColor(248, 113, 113))
        painter.drawText(
            QRectF(0, cy - 32, w, 20),
            Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignVCenter,
            self.message,
        )

        # Progress bar
        bar_w = min(self.BAR_WIDTH, w - 20)
        bar_x = (w - bar_w) / 2
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(PANEL_BORDER)
        painter.drawRoundedRect(
            QRectF(bar_x, cy - 4, bar_w, self.BAR_HEIGHT), 4, 4,
        )
        if self.progress > 0:
            painter.setBrush(ACCENT)
            painter.drawRoundedRect(
                QRectF(bar_x, cy - 4, bar_w * self.progress / 100, self.BAR_HEIGHT), 4, 4,
            )

        painter.setPen(MUTED_TEXT)
        painter.drawText(
            QRectF(0, cy + 10, w, 20),
            Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignTop,
            f"{self.progress}%",
        )

        painter.end()
