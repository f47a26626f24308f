"""App window: grid of the five panels sharing one simulation.

Hosts the real-space canvas, the angle and velocity phase portraits and
the two chaos maps, wiring chaos map clicks to the simulation's reset
and the speed/reset keyboard shortcuts.
"""

import dataclasses
import logging

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QKeySequence
from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QGridLayout, QToolBar, QStatusBar, QLabel,
    QComboBox, QMessageBox,
)

from chaosmap.compute import ANGLE_MAP, VELOCITY_MAP, get_backend
from chaosmap.generator import ChaosMapGenerator
from chaosmap.view import ChaosMapView
from pendulum.actor import PendulumSimulation
from pendulum.canvas import PendulumCanvas
from pendulum.phase_canvas import MODE_ANGLE, MODE_VELOCITY, PhaseSpaceCanvas
from scheduling import QtFrameScheduler

logger = logging.getLogger(__name__)

RESOLUTION_CHOICES = [64, 128, 250, 500]

HELP_TEXT = """\
<b>Real space</b>: the pendulum and the path of its tip. Click to restart
from a random start.<br><br>
<b>Angle / velocity phase space</b>: the motion projected onto the arm
angles or angular velocities. The blue dot is the start point; click to
move it, right-click to reset it to zero. Angle and velocity picks
combine.<br><br>
<b>Angle / velocity chaos maps</b>: each pixel is a start point, colored
by how far a trajectory and a slightly nudged twin drift apart. Dark is
stable, bright is chaotic. Click to simulate from that point.<br><br>
<b>Keys</b>: M faster, N slower, R random restart, Z zero velocities,
Space pause/resume.
"""


class AppWindow(QMainWindow):
    """Top-level window: one simulation, five synchronized panels."""

    def __init__(self, resolution=None, steps=None, backend="numpy"):
        super().__init__()
        self.setWindowTitle("Chaos Pendulum")
        self.resize(1400, 800)

        self._scheduler = QtFrameScheduler()
        self.simulation = PendulumSimulation(self._scheduler)

        # --- Chaos map configs ---
        angle_config = ANGLE_MAP
        velocity_config = VELOCITY_MAP
        overrides = {}
        if resolution is not None:
            overrides["resolution"] = resolution
        if steps is not None:
            overrides["steps"] = steps
        if overrides:
            angle_config = dataclasses.replace(angle_config, **overrides)
            velocity_config = dataclasses.replace(velocity_config, **overrides)

        compute_backend = get_backend(backend)

        # --- Panels ---
        self.real_space = PendulumCanvas()
        self.angle_phase = PhaseSpaceCanvas(MODE_ANGLE)
        self.velocity_phase = PhaseSpaceCanvas(MODE_VELOCITY)
        self.angle_map = ChaosMapView(
            angle_config,
            ChaosMapGenerator(self._scheduler, compute_backend),
            "ANGLE CHAOS MAP (ω=0)",
        )
        self.velocity_map = ChaosMapView(
            velocity_config,
            ChaosMapGenerator(self._scheduler, compute_backend),
            "VELOCITY CHAOS MAP (θ=0)",
        )

        for canvas in (self.real_space, self.angle_phase, self.velocity_phase):
            canvas.attach(self.simulation)
        for view in (self.angle_map, self.velocity_map):
            view.state_selected.connect(self._on_state_selected)
            view.progress_changed.connect(self._update_status)

        central = QWidget()
        grid = QGridLayout(central)
        grid.setContentsMargins(0, 0, 0, 0)
        grid.setSpacing(1)
        grid.addWidget(self.real_space, 0, 0, 2, 1)
        grid.addWidget(self.angle_phase, 0, 1)
        grid.addWidget(self.velocity_phase, 0, 2)
        grid.addWidget(self.angle_map, 1, 1)
        grid.addWidget(self.velocity_map, 1, 2)
        grid.setColumnStretch(0, 4)
        grid.setColumnStretch(1, 3)
        grid.setColumnStretch(2, 3)
        self.setCentralWidget(central)

        self._build_toolbar(angle_config.resolution)

        # --- Status bar ---
        self._status_bar = QStatusBar()
        self.setStatusBar(self._status_bar)
        self._speed_label = QLabel()
        self._maps_label = QLabel()
        self._backend_label = QLabel(f"  Backend: {type(compute_backend).__name__}  ")
        self._status_bar.addWidget(self._speed_label)
        self._status_bar.addWidget(self._maps_label)
        self._status_bar.addWidget(self._backend_label)
        self._update_status()

        self.simulation.start()
        self.angle_map.start()
        self.velocity_map.start()

    def _build_toolbar(self, resolution):
        toolbar = QToolBar("Simulation")
        toolbar.setMovable(False)
        self.addToolBar(Qt.ToolBarArea.TopToolBarArea, toolbar)

        def add_action(text, shortcut, slot):
            action = QAction(text, self)
            action.setShortcut(QKeySequence(shortcut))
            action.triggered.connect(slot)
            toolbar.addAction(action)
            return action

        self._pause_action = add_action("Pause", "Space", self._toggle_running)
        add_action("Random Restart", "R", self._random_reset)
        add_action("Zero Velocity", "Z", self._zero_velocity)
        add_action("Slower", "N", lambda: self._multiply_speed(0.5))
        add_action("Faster", "M", lambda: self._multiply_speed(2))

        toolbar.addSeparator()
        toolbar.addWidget(QLabel(" Map resolution: "))
        self._resolution_combo = QComboBox()
        choices = sorted(set(RESOLUTION_CHOICES) | {resolution})
        for res in choices:
            self._resolution_combo.addItem(f"{res} x {res}", res)
        self._resolution_combo.setCurrentIndex(choices.index(resolution))
        self._resolution_combo.currentIndexChanged.connect(self._on_resolution_changed)
        toolbar.addWidget(self._resolution_combo)

        toolbar.addSeparator()
        add_action("Help", "F1", self._show_help)

    # -- Slots --

    def _toggle_running(self):
        if self.simulation.is_running:
            self.simulation.stop()
            self._pause_action.setText("Resume")
        else:
            self.simulation.start()
            self._pause_action.setText("Pause")

    def _random_reset(self):
        self.simulation.reset()
        self._pause_action.setText("Pause")

    def _zero_velocity(self):
        self.simulation.reset(omega1=0.0, omega2=0.0)
        self._pause_action.setText("Pause")

    def _multiply_speed(self, factor):
        self.simulation.multiply_speed(factor)
        self._update_status()

    def _on_state_selected(self, state):
        self.simulation.reset(*state)
        self._pause_action.setText("Pause")

    def _on_resolution_changed(self, index):
        resolution = self._resolution_combo.itemData(index)
        logger.info("Regenerating chaos maps at %dx%d", resolution, resolution)
        self.angle_map.set_resolution(resolution)
        self.velocity_map.set_resolution(resolution)

    def _show_help(self):
        QMessageBox.information(self, "Simulation Guide", HELP_TEXT)

    def _update_status(self, _progress=None):
        sim = self.simulation
        self._speed_label.setText(
            f"  Speed: {sim.speed_multiplier:g}x ({sim.steps_per_frame} steps/frame)  "
        )
        parts = []
        for name, view in (("angle", self.angle_map), ("velocity", self.velocity_map)):
            run = view.current_run
            if run is None:
                continue
            if run.done:
                parts.append(f"{name} map done")
            else:
                parts.append(f"{name} map {run.progress}%")
        self._maps_label.setText("  " + ", ".join(parts) + "  ")

    def closeEvent(self, event):
        self.simulation.stop()
        self.angle_map.stop()
        self.velocity_map.stop()
        super().closeEvent(event)
