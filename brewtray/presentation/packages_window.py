from PySide6.QtCore import QSortFilterProxyModel, Qt
from PySide6.QtWidgets import (
    QAbstractItemView,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QSplitter,
    QTableView,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from brewtray.application.check_orchestrator import CheckOrchestrator
from brewtray.core.status_text import last_checked_text, summarize_outdated
from brewtray.presentation.table_models import InstalledTableModel, OutdatedTableModel


def _polish_table(tv: QTableView, stretch_column: int) -> None:
    """Applies the shared look of the package tables."""
    tv.verticalHeader().setVisible(False)

    hh = tv.horizontalHeader()
    hh.setStretchLastSection(True)
    hh.setSectionResizeMode(stretch_column, QHeaderView.ResizeMode.Stretch)

    tv.setWordWrap(False)
    tv.setAlternatingRowColors(True)
    tv.setShowGrid(False)
    tv.setSortingEnabled(True)
    tv.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
    tv.setSelectionMode(QAbstractItemView.SelectionMode.ExtendedSelection)


def _filter_proxy(parent, model, key_column: int) -> QSortFilterProxyModel:
    proxy = QSortFilterProxyModel(parent)
    proxy.setSourceModel(model)
    proxy.setFilterCaseSensitivity(Qt.CaseSensitivity.CaseInsensitive)
    proxy.setFilterKeyColumn(key_column)
    return proxy


class PackagesWindow(QMainWindow):
    """Outdated/installed package tables with the log of brew output."""

    def __init__(self, orchestrator: CheckOrchestrator) -> None:
        super().__init__()
        self._orchestrator = orchestrator
        self.setWindowTitle("Homebrew Packages")
        self.resize(760, 560)

        central = QWidget(self)
        root = QVBoxLayout(central)

        # ---- Error banner
        self.error_panel = QWidget(central)
        error_layout = QHBoxLayout(self.error_panel)
        self.error_label = QLabel(
            "Error checking for updates. This could be due to network issues or "
            "Homebrew configuration.",
            self.error_panel,
        )
        self.error_label.setWordWrap(True)
        self.retry_button = QPushButton("Check Again", self.error_panel)
        self.retry_button.clicked.connect(self.on_check_now_clicked)
        error_layout.addWidget(self.error_label, 1)
        error_layout.addWidget(self.retry_button)
        root.addWidget(self.error_panel)

        self.summary_label = QLabel(central)
        root.addWidget(self.summary_label)

        splitter = QSplitter(Qt.Orientation.Vertical, central)
        self.tabs = QTabWidget(splitter)

        # ---- Outdated tab
        outdated_tab = QWidget(self.tabs)
        outdated_layout = QVBoxLayout(outdated_tab)
        self.outdated_filter = QLineEdit(outdated_tab)
        self.outdated_filter.setPlaceholderText("Search packages")
        outdated_layout.addWidget(self.outdated_filter)

        self.outdated_model = OutdatedTableModel(self)
        self.outdated_proxy = _filter_proxy(self, self.outdated_model, 1)
        self.outdated_filter.textChanged.connect(self.outdated_proxy.setFilterFixedString)
        self.outdated_view = QTableView(outdated_tab)
        self.outdated_view.setModel(self.outdated_proxy)
        _polish_table(self.outdated_view, 1)
        self.outdated_view.setColumnWidth(0, 28)
        self.outdated_view.sortByColumn(1, Qt.SortOrder.AscendingOrder)
        outdated_layout.addWidget(self.outdated_view)

        outdated_buttons = QHBoxLayout()
        self.check_button = QPushButton("Check for Updates", outdated_tab)
        self.select_all_button = QPushButton("Select All", outdated_tab)
        self.upgrade_selected_button = QPushButton("Upgrade Selected", outdated_tab)
        self.upgrade_all_button = QPushButton("Upgrade All", outdated_tab)
        self.check_button.clicked.connect(self.on_check_now_clicked)
        self.select_all_button.clicked.connect(self.on_select_all_clicked)
        self.upgrade_selected_button.clicked.connect(self.on_upgrade_selected_clicked)
        self.upgrade_all_button.clicked.connect(self._orchestrator.upgrade_all)
        for button in (
            self.check_button,
            self.select_all_button,
            self.upgrade_selected_button,
            self.upgrade_all_button,
        ):
            outdated_buttons.addWidget(button)
        outdated_layout.addLayout(outdated_buttons)
        self.tabs.addTab(outdated_tab, "Outdated")

        # ---- Installed tab
        installed_tab = QWidget(self.tabs)
        installed_layout = QVBoxLayout(installed_tab)
        self.installed_filter = QLineEdit(installed_tab)
        self.installed_filter.setPlaceholderText("Search installed packages")
        installed_layout.addWidget(self.installed_filter)

        self.installed_model = InstalledTableModel(self)
        self.installed_proxy = _filter_proxy(self, self.installed_model, 0)
        self.installed_filter.textChanged.connect(self.installed_proxy.setFilterFixedString)
        self.installed_view = QTableView(installed_tab)
        self.installed_view.setModel(self.installed_proxy)
        _polish_table(self.installed_view, 0)
        self.installed_view.sortByColumn(0, Qt.SortOrder.AscendingOrder)
        installed_layout.addWidget(self.installed_view)

        installed_buttons = QHBoxLayout()
        self.uninstall_button = QPushButton("Uninstall Selected", installed_tab)
        self.uninstall_button.clicked.connect(self.on_uninstall_clicked)
        installed_buttons.addStretch(1)
        installed_buttons.addWidget(self.uninstall_button)
        installed_layout.addLayout(installed_buttons)
        self.tabs.addTab(installed_tab, "Installed")
        self.tabs.currentChanged.connect(self.on_tab_changed)

        # ---- Log
        self.log_view = QPlainTextEdit(splitter)
        self.log_view.setReadOnly(True)
        self.log_view.setUndoRedoEnabled(False)
        self.log_view.setMaximumBlockCount(4000)
        splitter.setStretchFactor(0, 3)
        splitter.setStretchFactor(1, 1)
        root.addWidget(splitter, 1)

        self.setCentralWidget(central)

        # ---- Wiring
        self._orchestrator.state_changed.connect(self.refresh_from_store)
        self._orchestrator.log.connect(self.log_view.appendPlainText)
        self._orchestrator.busy_changed.connect(self.on_busy_changed)
        self._orchestrator.rate_limited.connect(self.on_rate_limited)

        self.refresh_from_store()

    def refresh_from_store(self) -> None:
        """Re-reads the published snapshot."""
        store = self._orchestrator.store
        state = store.check_state

        self.error_panel.setVisible(state.last_error and not state.is_running)
        self.summary_label.setText(
            summarize_outdated(
                store.outdated_packages,
                checking=state.is_running,
                error=state.last_error,
                max_display=0,
            ).splitlines()[0]
            + "  ·  "
            + last_checked_text(state.last_check_time)
        )

        self.outdated_model.set_packages(store.outdated_packages)
        self.installed_model.set_packages(store.installed_packages)

        checking = state.is_running
        self.check_button.setEnabled(not checking)
        self.retry_button.setEnabled(not checking)
        self.statusBar().showMessage("Checking for updates..." if checking else "Ready")

    def on_tab_changed(self, _index: int) -> None:
        # Clear the filter when navigating away.
        self.outdated_filter.setText("")
        self.installed_filter.setText("")

    def on_check_now_clicked(self) -> None:
        self._orchestrator.check_now()

    def on_select_all_clicked(self) -> None:
        select = not self.outdated_model.selected_names()
        self.outdated_model.set_all_selected(select)
        self.select_all_button.setText("Select None" if select else "Select All")

    def on_upgrade_selected_clicked(self) -> None:
        names = self.outdated_model.selected_names() or self._selected_names(
            self.outdated_view, self.outdated_proxy, self.outdated_model, 1
        )
        self._orchestrator.upgrade(names)

    def on_uninstall_clicked(self) -> None:
        names = self._selected_names(
            self.installed_view, self.installed_proxy, self.installed_model, 0
        )
        if not names:
            self._orchestrator.uninstall([])
            return
        answer = QMessageBox.question(
            self,
            "Uninstall",
            f"Uninstall {', '.join(names)}?",
        )
        if answer == QMessageBox.StandardButton.Yes:
            self._orchestrator.uninstall(names)

    @staticmethod
    def _selected_names(view: QTableView, proxy, model, name_column: int) -> list[str]:
        names: list[str] = []
        for index in view.selectionModel().selectedRows(name_column):
            src = proxy.mapToSource(index)
            value = model.data(src)
            if value:
                names.append(str(value))
        return names

    def on_busy_changed(self, busy: bool) -> None:
        for button in (
            self.upgrade_selected_button,
            self.upgrade_all_button,
            self.uninstall_button,
        ):
            button.setEnabled(not busy)

    def on_rate_limited(self, seconds: int) -> None:
        # The tray reports rejections on its own while this window is hidden.
        if not self.isVisible():
            return
        QMessageBox.information(
            self,
            "Please wait",
            f"Updates were checked moments ago. Try again in {seconds} seconds.",
        )
