from dataclasses import replace

from PySide6.QtCore import QAbstractTableModel, QModelIndex, QPersistentModelIndex, Qt

from brewtray.core.brew_types import InstalledPackageRecord, PackageRecord


class OutdatedTableModel(QAbstractTableModel):
    """Table model backed by outdated PackageRecord rows.

    The first column is checkable; the check state is the record's UI-only
    `selected` flag and survives a reload for names that are still outdated.
    """

    _HEADERS = ("", "Name", "Current", "Available", "Source")

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self._rows: list[PackageRecord] = []

    def rowCount(
        self,
        /,
        parent: QModelIndex | QPersistentModelIndex = QModelIndex(),
    ) -> int:
        if parent.isValid():
            return 0
        return len(self._rows)

    def columnCount(
        self,
        /,
        parent: QModelIndex | QPersistentModelIndex = QModelIndex(),
    ) -> int:
        if parent.isValid():
            return 0
        return len(self._HEADERS)

    def data(
        self,
        index: QModelIndex | QPersistentModelIndex,
        /,
        role: int = Qt.ItemDataRole.DisplayRole,
    ) -> object | None:
        if not index.isValid():
            return None

        row = self._rows[index.row()]
        column = index.column()
        if column == 0:
            if role == Qt.ItemDataRole.CheckStateRole:
                return Qt.CheckState.Checked if row.selected else Qt.CheckState.Unchecked
            return None
        if role not in (Qt.ItemDataRole.DisplayRole, Qt.ItemDataRole.EditRole):
            return None
        if column == 1:
            return row.name
        if column == 2:
            return row.current_version
        if column == 3:
            return row.available_version
        if column == 4:
            return row.source
        return None

    def setData(
        self,
        index: QModelIndex | QPersistentModelIndex,
        value: object,
        /,
        role: int = Qt.ItemDataRole.EditRole,
    ) -> bool:
        if not index.isValid() or index.column() != 0:
            return False
        if role != Qt.ItemDataRole.CheckStateRole:
            return False
        checked = value in (Qt.CheckState.Checked, Qt.CheckState.Checked.value)
        self._rows[index.row()] = replace(self._rows[index.row()], selected=checked)
        self.dataChanged.emit(index, index, [Qt.ItemDataRole.CheckStateRole])
        return True

    def flags(self, index: QModelIndex | QPersistentModelIndex) -> Qt.ItemFlag:
        flags = super().flags(index)
        if index.isValid() and index.column() == 0:
            flags |= Qt.ItemFlag.ItemIsUserCheckable
        return flags

    def headerData(
        self,
        section: int,
        orientation: Qt.Orientation,
        role: int = Qt.ItemDataRole.DisplayRole,
    ):
        if role != Qt.ItemDataRole.DisplayRole:
            return None
        if orientation != Qt.Orientation.Horizontal:
            return None
        if 0 <= section < len(self._HEADERS):
            return self._HEADERS[section]
        return None

    def set_packages(self, rows: tuple[PackageRecord, ...] | list[PackageRecord]) -> None:
        selected = {r.name for r in self._rows if r.selected}
        self.beginResetModel()
        self._rows = [replace(r, selected=r.name in selected) for r in rows]
        self.endResetModel()

    def package_at(self, row: int) -> PackageRecord | None:
        if 0 <= row < len(self._rows):
            return self._rows[row]
        return None

    def selected_names(self) -> list[str]:
        return [r.name for r in self._rows if r.selected]

    def set_all_selected(self, selected: bool) -> None:
        if not self._rows:
            return
        self._rows = [replace(r, selected=selected) for r in self._rows]
        self.dataChanged.emit(
            self.index(0, 0),
            self.index(len(self._rows) - 1, 0),
            [Qt.ItemDataRole.CheckStateRole],
        )


class InstalledTableModel(QAbstractTableModel):
    """Lightweight table model backed by installed package rows."""

    _HEADERS = ("Name", "Version", "Source")

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self._rows: list[InstalledPackageRecord] = []
        self._name_to_row: dict[str, int] = {}

    def rowCount(
        self,
        /,
        parent: QModelIndex | QPersistentModelIndex = QModelIndex(),
    ) -> int:
        if parent.isValid():
            return 0
        return len(self._rows)

    def columnCount(
        self,
        /,
        parent: QModelIndex | QPersistentModelIndex = QModelIndex(),
    ) -> int:
        if parent.isValid():
            return 0
        return len(self._HEADERS)

    def data(
        self,
        index: QModelIndex | QPersistentModelIndex,
        /,
        role: int = Qt.ItemDataRole.DisplayRole,
    ) -> object | None:
        if not index.isValid():
            return None
        if role not in (Qt.ItemDataRole.DisplayRole, Qt.ItemDataRole.EditRole):
            return None

        row = self._rows[index.row()]
        column = index.column()
        if column == 0:
            return row.name
        if column == 1:
            return row.version
        if column == 2:
            return row.source
        return None

    def headerData(
        self,
        section: int,
        orientation: Qt.Orientation,
        role: int = Qt.ItemDataRole.DisplayRole,
    ):
        if role != Qt.ItemDataRole.DisplayRole:
            return None
        if orientation != Qt.Orientation.Horizontal:
            return None
        if 0 <= section < len(self._HEADERS):
            return self._HEADERS[section]
        return None

    def set_packages(
        self, rows: tuple[InstalledPackageRecord, ...] | list[InstalledPackageRecord]
    ) -> None:
        self.beginResetModel()
        self._rows = list(rows)
        self._name_to_row = {}
        for index, package in enumerate(self._rows):
            if package.name and package.name not in self._name_to_row:
                self._name_to_row[package.name] = index
        self.endResetModel()

    def package_at(self, row: int) -> InstalledPackageRecord | None:
        if 0 <= row < len(self._rows):
            return self._rows[row]
        return None

    def row_for_name(self, name: str) -> int | None:
        return self._name_to_row.get(name)
