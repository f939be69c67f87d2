import logging
from typing import Optional

from PyQt6 import QtGui, QtWidgets
from PyQt6.QtCore import QSettings

from ..config import AppConfig
from ..session import PartsService, Tones
from .scanner_pane import ScannerPane

logger = logging.getLogger(__name__)


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self, config: AppConfig, service: PartsService, tones: Tones):
        super().__init__()
        self.config = config
        self.service = service
        self.tones = tones
        self.settings = QSettings("parts_scanner", "app")
        self.scanner_pane: Optional[ScannerPane] = None

        self.setWindowTitle("Parts Scanner")
        self.resize(1200, 800)
        self._restore_geometry()
        self._build_menu()
        self._build_central()
        self._init_status()

    def _build_menu(self) -> None:
        file_menu = self.menuBar().addMenu("&File")
        exit_action = QtGui.QAction("Exit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        scan_menu = self.menuBar().addMenu("&Scan")
        focus_action = QtGui.QAction("Focus Scan Input", self)
        focus_action.setShortcut(QtGui.QKeySequence("Ctrl+L"))
        focus_action.triggered.connect(self._focus_input)
        scan_menu.addAction(focus_action)
        camera_action = QtGui.QAction("Toggle Camera", self)
        camera_action.setShortcut(QtGui.QKeySequence("Ctrl+K"))
        camera_action.triggered.connect(self._toggle_camera)
        scan_menu.addAction(camera_action)
        clear_action = QtGui.QAction("Clear Recent Scans", self)
        clear_action.triggered.connect(self._clear_history)
        scan_menu.addAction(clear_action)

        help_menu = self.menuBar().addMenu("&Help")
        about_action = QtGui.QAction("About", self)
        about_action.triggered.connect(self._show_about)
        help_menu.addAction(about_action)

    def _build_central(self) -> None:
        self.scanner_pane = ScannerPane(self.config, self.service, self.tones)
        self.setCentralWidget(self.scanner_pane)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # type: ignore[override]
        self.settings.setValue("window/geometry", self.saveGeometry())
        self.settings.setValue("window/state", self.saveState())
        if self.scanner_pane is not None:
            self.scanner_pane.close_session()
        super().closeEvent(event)

    def _restore_geometry(self) -> None:
        geom = self.settings.value("window/geometry")
        state = self.settings.value("window/state")
        if geom:
            self.restoreGeometry(geom)
        if state:
            self.restoreState(state)

    def _init_status(self) -> None:
        self.statusBar().showMessage(f"Inventory service: {self.config.api.base_url}")

    def _focus_input(self) -> None:
        self.scanner_pane.code_input.setFocus()
        self.scanner_pane.code_input.selectAll()

    def _toggle_camera(self) -> None:
        self.scanner_pane.toggle_camera()

    def _clear_history(self) -> None:
        self.scanner_pane.clear_history()

    def _show_about(self) -> None:
        QtWidgets.QMessageBox.about(
            self,
            "About Parts Scanner",
            "Parts Scanner\n\nPyQt-based scan, check and update client for the parts inventory service.",
        )
