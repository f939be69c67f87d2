import logging
from pathlib import Path
from typing import Dict, Optional

import qasync
from PyQt6 import QtCore, QtGui, QtWidgets
from PyQt6.QtMultimediaWidgets import QVideoWidget

from ..camera import QtCameraDecoder
from ..config import AppConfig
from ..labels import BARCODE_FORMATS, LAYOUTS, QR_FORMATS, LabelOptions, default_filename, save_label
from ..parts import LOCATION_FIELDS, Badge, location_placeholders, status_badge, stock_badge
from ..session import PRESET_DELTAS, Panel, PartsService, ScanSession, Tones, parse_quantity
from .models import ScanHistoryTableModel

logger = logging.getLogger(__name__)

_BADGE_ICONS = {
    "check-circle": QtWidgets.QStyle.StandardPixmap.SP_DialogApplyButton,
    "alert-circle": QtWidgets.QStyle.StandardPixmap.SP_MessageBoxWarning,
    "x-circle": QtWidgets.QStyle.StandardPixmap.SP_DialogCancelButton,
    "trending-down": QtWidgets.QStyle.StandardPixmap.SP_ArrowDown,
}

_LOCATION_LABELS = {
    "warehouse_location": "Warehouse",
    "aisle": "Aisle",
    "rack": "Rack",
    "bin": "Bin",
}


class ScannerPane(QtWidgets.QWidget):
    """
    Scan, check and update parts.

    Every widget is redrawn from the ``ScanSession`` state after each change;
    the pane itself keeps no scan state.
    """

    def __init__(self, config: AppConfig, service: PartsService, tones: Tones):
        super().__init__()
        self.config = config
        self.save_dir = Path(config.labels.directory)
        self.save_dir.mkdir(parents=True, exist_ok=True)
        self.label_options = LabelOptions(dpi=config.labels.dpi, font_size=config.labels.font_size)
        self._build_ui()
        self.session = ScanSession(
            service,
            tones,
            camera_factory=self._make_camera,
            history_limit=config.scanner.history_limit,
        )
        self._unsubscribe = self.session.subscribe(self._render)
        self._render()
        self.code_input.setFocus()

    def _make_camera(self) -> QtCameraDecoder:
        return QtCameraDecoder(
            device_id=self.config.scanner.camera_device,
            interval_ms=self.config.scanner.decode_interval_ms,
            viewfinder=self.viewfinder,
        )

    def _build_ui(self) -> None:
        layout = QtWidgets.QHBoxLayout(self)
        splitter = QtWidgets.QSplitter(QtCore.Qt.Orientation.Horizontal)
        layout.addWidget(splitter)

        # Scanner input and history on the left
        left_widget = QtWidgets.QWidget()
        left_layout = QtWidgets.QVBoxLayout(left_widget)
        left_layout.addWidget(QtWidgets.QLabel("Scan Code"))
        self.code_input = QtWidgets.QLineEdit()
        self.code_input.setPlaceholderText("Scan or type code...")
        font = self.code_input.font()
        font.setPointSize(font.pointSize() + 6)
        self.code_input.setFont(font)
        self.code_input.textEdited.connect(lambda text: self.session.set_code(text))
        self.code_input.returnPressed.connect(self._submit)
        left_layout.addWidget(self.code_input)

        self.camera_btn = QtWidgets.QPushButton("Use Camera")
        self.camera_btn.clicked.connect(self.toggle_camera)
        left_layout.addWidget(self.camera_btn)
        self.camera_error_label = QtWidgets.QLabel("")
        self.camera_error_label.setStyleSheet("color: #b91c1c;")
        self.camera_error_label.setWordWrap(True)
        left_layout.addWidget(self.camera_error_label)
        self.viewfinder = QVideoWidget()
        self.viewfinder.setMinimumHeight(240)
        left_layout.addWidget(self.viewfinder)

        left_layout.addWidget(QtWidgets.QLabel("Recent Scans"))
        self.history_model = ScanHistoryTableModel()
        self.history_table = QtWidgets.QTableView()
        self.history_table.setModel(self.history_model)
        self.history_table.setSelectionBehavior(QtWidgets.QAbstractItemView.SelectionBehavior.SelectRows)
        self.history_table.setSelectionMode(QtWidgets.QAbstractItemView.SelectionMode.SingleSelection)
        self.history_table.horizontalHeader().setStretchLastSection(True)
        self.history_table.activated.connect(self._replay)
        left_layout.addWidget(self.history_table, 1)
        splitter.addWidget(left_widget)

        # Part details and actions on the right
        right_widget = QtWidgets.QWidget()
        right_layout = QtWidgets.QVBoxLayout(right_widget)
        self.banner_label = QtWidgets.QLabel("")
        self.banner_label.setWordWrap(True)
        right_layout.addWidget(self.banner_label)

        self.empty_label = QtWidgets.QLabel("Ready to Scan\n\nScan a barcode or QR code to look up a part.")
        self.empty_label.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        right_layout.addWidget(self.empty_label)

        self.details = QtWidgets.QWidget()
        details_layout = QtWidgets.QVBoxLayout(self.details)
        details_layout.setContentsMargins(0, 0, 0, 0)
        self.part_name_label = QtWidgets.QLabel("-")
        name_font = self.part_name_label.font()
        name_font.setPointSize(name_font.pointSize() + 6)
        name_font.setBold(True)
        self.part_name_label.setFont(name_font)
        self.part_number_label = QtWidgets.QLabel("-")
        self.manufacturer_label = QtWidgets.QLabel("")
        badge_row = QtWidgets.QHBoxLayout()
        self.status_badge = self._badge_button()
        self.stock_badge = self._badge_button()
        badge_row.addWidget(self.status_badge)
        badge_row.addWidget(self.stock_badge)
        badge_row.addStretch(1)
        details_layout.addWidget(self.part_name_label)
        details_layout.addWidget(self.part_number_label)
        details_layout.addWidget(self.manufacturer_label)
        details_layout.addLayout(badge_row)

        form = QtWidgets.QFormLayout()
        self.on_hand_label = QtWidgets.QLabel("-")
        self.reserved_label = QtWidgets.QLabel("-")
        self.available_label = QtWidgets.QLabel("-")
        self.location_label = QtWidgets.QLabel("-")
        self.unit_cost_label = QtWidgets.QLabel("-")
        self.selling_price_label = QtWidgets.QLabel("-")
        form.addRow("On hand:", self.on_hand_label)
        form.addRow("Reserved:", self.reserved_label)
        form.addRow("Available:", self.available_label)
        form.addRow("Location:", self.location_label)
        form.addRow("Unit cost:", self.unit_cost_label)
        form.addRow("Selling price:", self.selling_price_label)
        details_layout.addLayout(form)

        action_row = QtWidgets.QHBoxLayout()
        self.adjust_btn = QtWidgets.QPushButton("Adjust Stock")
        self.adjust_btn.setCheckable(True)
        self.adjust_btn.clicked.connect(lambda: self.session.toggle_panel(Panel.STOCK_ADJUST))
        self.location_btn = QtWidgets.QPushButton("Update Location")
        self.location_btn.setCheckable(True)
        self.location_btn.clicked.connect(lambda: self.session.toggle_panel(Panel.LOCATION_EDIT))
        action_row.addWidget(self.adjust_btn)
        action_row.addWidget(self.location_btn)
        details_layout.addLayout(action_row)

        details_layout.addWidget(self._build_stock_panel())
        details_layout.addWidget(self._build_location_panel())
        details_layout.addWidget(self._build_label_row())
        details_layout.addStretch(1)

        scroll = QtWidgets.QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(self.details)
        right_layout.addWidget(scroll, 1)
        self.details_scroll = scroll
        splitter.addWidget(right_widget)
        splitter.setStretchFactor(0, 2)
        splitter.setStretchFactor(1, 3)

    def _badge_button(self) -> QtWidgets.QToolButton:
        button = QtWidgets.QToolButton()
        button.setToolButtonStyle(QtCore.Qt.ToolButtonStyle.ToolButtonTextBesideIcon)
        button.setFocusPolicy(QtCore.Qt.FocusPolicy.NoFocus)
        return button

    def _build_stock_panel(self) -> QtWidgets.QGroupBox:
        self.stock_panel = QtWidgets.QGroupBox("Stock Adjustment")
        layout = QtWidgets.QVBoxLayout(self.stock_panel)
        preset_row = QtWidgets.QHBoxLayout()
        self.preset_buttons = []
        for delta in PRESET_DELTAS:
            btn = QtWidgets.QPushButton(f"{delta:+d}")
            btn.clicked.connect(lambda _checked=False, d=delta: self._set_delta(d))
            preset_row.addWidget(btn)
            self.preset_buttons.append(btn)
        layout.addLayout(preset_row)

        layout.addWidget(QtWidgets.QLabel("Custom Adjustment"))
        self.custom_delta_input = QtWidgets.QLineEdit()
        self.custom_delta_input.setPlaceholderText("Enter quantity (+ or -)")
        self.custom_delta_input.textEdited.connect(
            lambda text: self.session.set_quantity_change(parse_quantity(text))
        )
        layout.addWidget(self.custom_delta_input)
        self.delta_label = QtWidgets.QLabel("")
        layout.addWidget(self.delta_label)

        buttons = QtWidgets.QHBoxLayout()
        self.stock_cancel_btn = QtWidgets.QPushButton("Cancel")
        self.stock_cancel_btn.clicked.connect(self._close_panel)
        self.stock_apply_btn = QtWidgets.QPushButton("Apply")
        self.stock_apply_btn.clicked.connect(self._apply_adjustment)
        buttons.addWidget(self.stock_cancel_btn)
        buttons.addWidget(self.stock_apply_btn)
        layout.addLayout(buttons)
        return self.stock_panel

    def _build_location_panel(self) -> QtWidgets.QGroupBox:
        self.location_panel = QtWidgets.QGroupBox("Update Location")
        layout = QtWidgets.QVBoxLayout(self.location_panel)
        grid = QtWidgets.QGridLayout()
        self.location_inputs: Dict[str, QtWidgets.QLineEdit] = {}
        for i, name in enumerate(LOCATION_FIELDS):
            edit = QtWidgets.QLineEdit()
            edit.textEdited.connect(lambda text, n=name: self.session.set_location_field(n, text))
            grid.addWidget(QtWidgets.QLabel(_LOCATION_LABELS[name]), (i // 2) * 2, i % 2)
            grid.addWidget(edit, (i // 2) * 2 + 1, i % 2)
            self.location_inputs[name] = edit
        layout.addLayout(grid)

        buttons = QtWidgets.QHBoxLayout()
        self.location_cancel_btn = QtWidgets.QPushButton("Cancel")
        self.location_cancel_btn.clicked.connect(self._close_panel)
        self.location_apply_btn = QtWidgets.QPushButton("Update")
        self.location_apply_btn.clicked.connect(self._apply_location)
        buttons.addWidget(self.location_cancel_btn)
        buttons.addWidget(self.location_apply_btn)
        layout.addLayout(buttons)
        return self.location_panel

    def _build_label_row(self) -> QtWidgets.QWidget:
        widget = QtWidgets.QWidget()
        export_row = QtWidgets.QHBoxLayout(widget)
        export_row.setContentsMargins(0, 0, 0, 0)
        self.barcode_format_combo = QtWidgets.QComboBox()
        self.barcode_format_combo.addItems(list(BARCODE_FORMATS))
        self.qr_format_combo = QtWidgets.QComboBox()
        self.qr_format_combo.addItems(list(QR_FORMATS))
        self.layout_combo = QtWidgets.QComboBox()
        self.layout_combo.addItems(list(LAYOUTS))
        self.layout_combo.setCurrentText(self.label_options.layout)
        self.layout_combo.currentTextChanged.connect(self._set_label_layout)
        self.save_barcode_btn = QtWidgets.QPushButton("Save Barcode")
        self.save_qr_btn = QtWidgets.QPushButton("Save QR")
        export_row.addWidget(QtWidgets.QLabel("Barcode format"))
        export_row.addWidget(self.barcode_format_combo)
        export_row.addWidget(self.save_barcode_btn)
        export_row.addWidget(QtWidgets.QLabel("QR format"))
        export_row.addWidget(self.qr_format_combo)
        export_row.addWidget(self.save_qr_btn)
        export_row.addWidget(QtWidgets.QLabel("Text"))
        export_row.addWidget(self.layout_combo)
        self.save_barcode_btn.clicked.connect(lambda: self._save_label("barcode"))
        self.save_qr_btn.clicked.connect(lambda: self._save_label("qr"))
        return widget

    # -- rendering -----------------------------------------------------

    def _render(self) -> None:
        session = self.session
        part = session.part

        if self.code_input.text() != session.code:
            self.code_input.setText(session.code)
        self.code_input.setEnabled(session.input_enabled)
        self.camera_btn.setText("Stop Camera" if session.camera_active else "Use Camera")
        self.camera_btn.setEnabled(not session.resolving or session.camera_active)
        self.viewfinder.setVisible(session.camera_active)
        self.camera_error_label.setText(session.camera_error or "")
        self.camera_error_label.setVisible(bool(session.camera_error))
        self.history_model.set_entries(session.history.entries())

        self._render_banner()
        self.empty_label.setVisible(part is None)
        self.empty_label.setText(
            "Looking up part..." if session.resolving else "Ready to Scan\n\nScan a barcode or QR code to look up a part."
        )
        self.details_scroll.setVisible(part is not None)
        if part is not None:
            self.part_name_label.setText(part.part_name)
            self.part_number_label.setText(part.part_number)
            self.manufacturer_label.setText(part.manufacturer or "")
            self.manufacturer_label.setVisible(bool(part.manufacturer))
            self._apply_badge(self.status_badge, status_badge(part.status))
            self._apply_badge(self.stock_badge, stock_badge(part))
            self.on_hand_label.setText(str(part.quantity_on_hand))
            self.reserved_label.setText(str(part.quantity_reserved))
            self.available_label.setText(str(part.quantity_available))
            self.location_label.setText(part.location.display() or "Not set")
            self.unit_cost_label.setText(part.format_price(part.unit_cost))
            self.selling_price_label.setText(part.format_price(part.selling_price))

        self._render_stock_panel()
        self._render_location_panel()

    def _render_banner(self) -> None:
        banner = self.session.banner
        if banner is None:
            self.banner_label.setVisible(False)
            return
        color = "#991b1b" if banner.is_error else "#166534"
        background = "#fee2e2" if banner.is_error else "#dcfce7"
        self.banner_label.setStyleSheet(f"color: {color}; background-color: {background}; padding: 6px;")
        self.banner_label.setText(banner.text)
        self.banner_label.setVisible(True)

    def _render_stock_panel(self) -> None:
        pending = self.session.adjustment
        is_open = self.session.active_panel is Panel.STOCK_ADJUST and pending is not None
        self.adjust_btn.setChecked(is_open)
        self.stock_panel.setVisible(is_open)
        if not is_open:
            self.custom_delta_input.clear()
            return
        delta = pending.quantity_change
        self.delta_label.setText(f"Change: {delta:+d}" if delta else "Change: 0")
        for btn in self.preset_buttons:
            btn.setEnabled(not pending.committing)
        self.custom_delta_input.setEnabled(not pending.committing)
        self.stock_cancel_btn.setEnabled(not pending.committing)
        self.stock_apply_btn.setEnabled(self.session.can_apply_adjustment)
        self.stock_apply_btn.setText("Applying..." if pending.committing else "Apply")

    def _render_location_panel(self) -> None:
        pending = self.session.location_edit
        is_open = self.session.active_panel is Panel.LOCATION_EDIT and pending is not None
        self.location_btn.setChecked(is_open)
        self.location_panel.setVisible(is_open)
        placeholders = location_placeholders(self.session.part)
        for name, edit in self.location_inputs.items():
            edit.setPlaceholderText(placeholders[name])
            value = getattr(pending, name) if is_open else ""
            if edit.text() != value:
                edit.setText(value)
            edit.setEnabled(is_open and not pending.committing)
        if not is_open:
            return
        self.location_cancel_btn.setEnabled(not pending.committing)
        self.location_apply_btn.setEnabled(self.session.can_apply_location)
        self.location_apply_btn.setText("Updating..." if pending.committing else "Update")

    def _apply_badge(self, button: QtWidgets.QToolButton, badge: Badge) -> None:
        button.setText(badge.label)
        button.setIcon(self.style().standardIcon(_BADGE_ICONS.get(badge.icon, _BADGE_ICONS["check-circle"])))
        button.setStyleSheet(
            f"QToolButton {{ background-color: {badge.background}; color: {badge.foreground}; "
            "border: none; border-radius: 6px; padding: 3px 10px; font-weight: bold; }"
        )

    # -- actions -------------------------------------------------------

    @qasync.asyncSlot()
    async def _submit(self) -> None:
        await self.session.submit()
        self.code_input.setFocus()

    @qasync.asyncSlot(QtCore.QModelIndex)
    async def _replay(self, index: QtCore.QModelIndex) -> None:
        entry = self.history_model.entry_at(index.row())
        if entry is not None:
            await self.session.replay(entry)

    @qasync.asyncSlot()
    async def _apply_adjustment(self) -> None:
        await self.session.apply_adjustment()

    @qasync.asyncSlot()
    async def _apply_location(self) -> None:
        await self.session.apply_location()

    def toggle_camera(self) -> None:
        if self.session.camera_active:
            self.session.stop_camera()
        else:
            self.session.start_camera()

    def clear_history(self) -> None:
        self.session.clear_history()

    def _set_delta(self, delta: int) -> None:
        self.custom_delta_input.clear()
        self.session.set_quantity_change(delta)

    def _close_panel(self) -> None:
        self.session.close_panel()

    def _set_label_layout(self, layout: str) -> None:
        self.label_options.layout = layout

    def _save_label(self, kind: str) -> None:
        part = self.session.part
        if part is None:
            QtWidgets.QMessageBox.information(self, "No part", "Scan a part before saving a label.")
            return
        if kind == "barcode":
            title = "Save Barcode"
            fmt = self.barcode_format_combo.currentText().lower()
            filters = ["PNG (*.png)", "SVG (*.svg)", "EPS (*.eps)", "All Files (*)"]
        else:
            title = "Save QR Code"
            fmt = self.qr_format_combo.currentText().lower()
            filters = ["PNG (*.png)", "EPS (*.eps)", "All Files (*)"]
        default_path = str(self.save_dir / default_filename(part, kind, fmt))
        path, _ = QtWidgets.QFileDialog.getSaveFileName(self, title, default_path, ";;".join(filters))
        if not path:
            return
        target = Path(path)
        if not target.suffix:
            target = target.with_suffix(f".{fmt}")
        try:
            written = save_label(part, kind, target, self.label_options)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unable to save %s label: %s", kind, exc)
            QtWidgets.QMessageBox.warning(self, "Save failed", str(exc))
        else:
            QtWidgets.QMessageBox.information(self, "Saved", f"{kind.capitalize()} saved to {written}")

    def close_session(self) -> None:
        self._unsubscribe()
        self.session.close()

    def keyPressEvent(self, event: QtGui.QKeyEvent) -> None:  # noqa: N802
        if event.key() == QtCore.Qt.Key.Key_Escape and self.session.active_panel is not None:
            self.session.close_panel()
            return
        super().keyPressEvent(event)
