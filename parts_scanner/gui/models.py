from typing import Any, List, Sequence

from PyQt6 import QtCore, QtGui

from ..parts import ScanHistoryEntry, stock_badge


class ScanHistoryTableModel(QtCore.QAbstractTableModel):
    COLUMNS: Sequence[tuple] = (
        ("Time", lambda e: e.timestamp.strftime("%H:%M:%S")),
        ("Code", lambda e: e.code),
        ("Part", lambda e: e.part.part_name),
        ("Part #", lambda e: e.part.part_number),
        ("On hand", lambda e: str(e.part.quantity_on_hand)),
    )

    def __init__(self, entries: List[ScanHistoryEntry] | None = None):
        super().__init__()
        self._entries: List[ScanHistoryEntry] = entries or []

    def rowCount(self, parent: QtCore.QModelIndex | None = None) -> int:  # noqa: N802
        return len(self._entries)

    def columnCount(self, parent: QtCore.QModelIndex | None = None) -> int:  # noqa: N802
        return len(self.COLUMNS)

    def data(self, index: QtCore.QModelIndex, role: int = QtCore.Qt.ItemDataRole.DisplayRole) -> Any:  # noqa: N802
        if not index.isValid():
            return None
        entry = self._entries[index.row()]
        if role == QtCore.Qt.ItemDataRole.DisplayRole:
            return self.COLUMNS[index.column()][1](entry)
        if role == QtCore.Qt.ItemDataRole.BackgroundRole:
            return QtGui.QColor(stock_badge(entry.part).background)
        if role == QtCore.Qt.ItemDataRole.ToolTipRole:
            return f"Scanned {entry.timestamp.isoformat(timespec='seconds')}"
        return None

    def headerData(  # noqa: N802
        self, section: int, orientation: QtCore.Qt.Orientation, role: int = QtCore.Qt.ItemDataRole.DisplayRole
    ):
        if role != QtCore.Qt.ItemDataRole.DisplayRole:
            return None
        if orientation == QtCore.Qt.Orientation.Horizontal:
            return self.COLUMNS[section][0]
        return section + 1

    def flags(self, index: QtCore.QModelIndex) -> QtCore.Qt.ItemFlag:
        if not index.isValid():
            return QtCore.Qt.ItemFlag.NoItemFlags
        return (
            QtCore.Qt.ItemFlag.ItemIsEnabled
            | QtCore.Qt.ItemFlag.ItemIsSelectable
        )

    def set_entries(self, entries: List[ScanHistoryEntry]) -> None:
        self.beginResetModel()
        self._entries = list(entries)
        self.endResetModel()

    def entry_at(self, row: int) -> ScanHistoryEntry | None:
        if 0 <= row < len(self._entries):
            return self._entries[row]
        return None
