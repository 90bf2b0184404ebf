from logly import logger
from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QSpinBox,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from brewtray.application.check_orchestrator import CheckOrchestrator
from brewtray.core.brew_types import BrewCommands
from brewtray.infra.settings import AppSettings


class PreferencesDialog(QDialog):
    """Schedule and command preferences.

    Interval changes go through the orchestrator so the timer is re-armed right
    away; everything else is written straight to `AppSettings`.
    """

    def __init__(self, orchestrator: CheckOrchestrator, settings: AppSettings, parent=None):
        super().__init__(parent)
        self._orchestrator = orchestrator
        self._settings = settings
        self.setWindowTitle("brewtray Settings")

        tabs = QTabWidget(self)

        # ---- General tab
        general = QWidget(tabs)
        general_layout = QVBoxLayout(general)

        form = QFormLayout()
        self.interval_combo = QComboBox(general)
        self.interval_combo.activated.connect(self.on_interval_activated)
        form.addRow("Update check interval:", self.interval_combo)
        general_layout.addLayout(form)

        self.update_first_check = QCheckBox("Run brew update before scheduled checks", general)
        self.update_first_check.toggled.connect(self._settings.set_update_before_scheduled_check)
        general_layout.addWidget(self.update_first_check)

        general_layout.addWidget(QLabel("Custom update intervals (name and time in seconds):", general))
        add_row = QHBoxLayout()
        self.custom_name_edit = QLineEdit(general)
        self.custom_name_edit.setPlaceholderText("Name")
        self.custom_seconds_spin = QSpinBox(general)
        self.custom_seconds_spin.setRange(1, 365 * 24 * 60 * 60)
        self.custom_seconds_spin.setValue(3600)
        self.custom_seconds_spin.setSuffix(" s")
        add_button = QPushButton("Add Interval", general)
        add_button.clicked.connect(self.on_add_interval_clicked)
        add_row.addWidget(self.custom_name_edit, 1)
        add_row.addWidget(self.custom_seconds_spin)
        add_row.addWidget(add_button)
        general_layout.addLayout(add_row)

        self.error_label = QLabel(general)
        self.error_label.setStyleSheet("color: #c0392b;")
        self.error_label.hide()
        general_layout.addWidget(self.error_label)

        self.custom_list = QListWidget(general)
        general_layout.addWidget(self.custom_list, 1)
        remove_button = QPushButton("Remove Selected", general)
        remove_button.clicked.connect(self.on_remove_interval_clicked)
        general_layout.addWidget(remove_button, 0, Qt.AlignmentFlag.AlignRight)
        tabs.addTab(general, "General")

        # ---- Commands tab
        commands = QWidget(tabs)
        commands_layout = QVBoxLayout(commands)
        commands_form = QFormLayout()
        defaults = BrewCommands()
        self.update_edit = QLineEdit(commands)
        self.update_edit.setPlaceholderText(" ".join(defaults.update))
        self.upgrade_edit = QLineEdit(commands)
        self.upgrade_edit.setPlaceholderText(" ".join(defaults.upgrade))
        self.outdated_edit = QLineEdit(commands)
        self.outdated_edit.setPlaceholderText(" ".join(defaults.outdated))
        commands_form.addRow("Update:", self.update_edit)
        commands_form.addRow("Upgrade:", self.upgrade_edit)
        commands_form.addRow("Outdated:", self.outdated_edit)
        commands_layout.addLayout(commands_form)
        commands_layout.addWidget(
            QLabel("Arguments passed to brew. Leave a field empty to use the default.", commands)
        )

        command_buttons = QHBoxLayout()
        reset_button = QPushButton("Reset to Defaults", commands)
        reset_button.clicked.connect(self.on_reset_commands_clicked)
        save_button = QPushButton("Save Commands", commands)
        save_button.clicked.connect(self.on_save_commands_clicked)
        command_buttons.addStretch(1)
        command_buttons.addWidget(reset_button)
        command_buttons.addWidget(save_button)
        commands_layout.addLayout(command_buttons)
        commands_layout.addStretch(1)
        tabs.addTab(commands, "Commands")

        root = QVBoxLayout(self)
        root.addWidget(tabs)

        self.reload()

    def reload(self) -> None:
        """Re-reads every field from settings."""
        config = self._settings.schedule_config()
        current = self._settings.check_interval()

        self.interval_combo.clear()
        for label, seconds in sorted(config.options().items(), key=lambda kv: kv[1]):
            self.interval_combo.addItem(label, seconds)
        current_label = config.label_for(current)
        if current_label is not None:
            self.interval_combo.setCurrentIndex(self.interval_combo.findText(current_label))

        self.update_first_check.blockSignals(True)
        self.update_first_check.setChecked(self._settings.update_before_scheduled_check())
        self.update_first_check.blockSignals(False)

        self.custom_list.clear()
        for label, seconds in sorted(config.custom.items(), key=lambda kv: kv[1]):
            item = QListWidgetItem(f"{label} ({seconds} s)")
            item.setData(Qt.ItemDataRole.UserRole, label)
            self.custom_list.addItem(item)

        self._load_commands()

    def _load_commands(self) -> None:
        commands = self._settings.brew_commands()
        defaults = BrewCommands()
        for edit, value, default in (
            (self.update_edit, commands.update, defaults.update),
            (self.upgrade_edit, commands.upgrade, defaults.upgrade),
            (self.outdated_edit, commands.outdated, defaults.outdated),
        ):
            edit.setText("" if value == default else " ".join(value))

    def on_interval_activated(self, index: int) -> None:
        seconds = self.interval_combo.itemData(index)
        if seconds is None:
            return
        self._orchestrator.set_interval(int(seconds))

    def on_add_interval_clicked(self) -> None:
        label = self.custom_name_edit.text()
        try:
            self._settings.add_custom_interval(label, self.custom_seconds_spin.value())
        except ValueError as e:
            self.error_label.setText(str(e))
            self.error_label.show()
            return
        logger.info(f"Added custom interval {label.strip()!r}")
        self.error_label.hide()
        self.custom_name_edit.clear()
        self.reload()

    def on_remove_interval_clicked(self) -> None:
        item = self.custom_list.currentItem()
        if item is None:
            return
        label = item.data(Qt.ItemDataRole.UserRole)
        self._settings.remove_custom_interval(label)
        logger.info(f"Removed custom interval {label!r}")
        # The removed entry may have been the active one; the timer follows the repaired value.
        self._orchestrator.schedule_timer()
        self.reload()

    def on_save_commands_clicked(self) -> None:
        self._settings.set_brew_commands(
            update=self.update_edit.text(),
            upgrade=self.upgrade_edit.text(),
            outdated=self.outdated_edit.text(),
        )
        logger.info("Saved brew command overrides")
        self._load_commands()

    def on_reset_commands_clicked(self) -> None:
        self._settings.reset_brew_commands()
        logger.info("Reset brew commands to defaults")
        self._load_commands()
