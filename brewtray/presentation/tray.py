from collections.abc import Callable
from datetime import datetime

from logly import logger
from PySide6.QtGui import QAction, QActionGroup, QIcon
from PySide6.QtWidgets import QApplication, QMenu, QStyle, QSystemTrayIcon

from brewtray.application.check_orchestrator import CheckOrchestrator
from brewtray.core.status_text import last_checked_text, next_check_text, summarize_outdated
from brewtray.infra.settings import AppSettings


class TrayIcon(QSystemTrayIcon):
    """Menu-bar entry point: status summary, check/upgrade actions and the schedule."""

    def __init__(
        self,
        orchestrator: CheckOrchestrator,
        settings: AppSettings,
        show_packages: Callable[[], None],
        show_preferences: Callable[[], None],
        clock: Callable[[], datetime] = datetime.now,
        parent=None,
    ):
        super().__init__(parent)
        self._orchestrator = orchestrator
        self._settings = settings
        self._show_packages = show_packages
        self._show_preferences = show_preferences
        self._clock = clock

        self.setIcon(self._status_icon(False))
        self.setToolTip("brewtray")

        self._menu = QMenu()
        self._status_action = QAction(self._menu)
        self._status_action.setEnabled(False)
        self._last_action = QAction(self._menu)
        self._last_action.setEnabled(False)
        self._next_action = QAction(self._menu)
        self._next_action.setEnabled(False)

        self._check_action = QAction("Check Now", self._menu)
        self._check_action.triggered.connect(lambda: self._orchestrator.check_now())
        self._packages_action = QAction("View Packages...", self._menu)
        self._packages_action.triggered.connect(self._show_packages)
        self._update_action = QAction("Update Homebrew", self._menu)
        self._update_action.triggered.connect(self._on_update_database)
        self._upgrade_all_action = QAction("Upgrade All", self._menu)
        self._upgrade_all_action.triggered.connect(self._on_upgrade_all)

        self._interval_menu = QMenu("Check for Updates", self._menu)
        self._interval_group = QActionGroup(self._interval_menu)
        self._interval_group.setExclusive(True)

        self._notify_action = QAction("Show Notifications", self._menu)
        self._notify_action.setCheckable(True)
        self._notify_action.toggled.connect(self._settings.set_notifications_enabled)
        self._login_action = QAction("Launch at Login", self._menu)
        self._login_action.setCheckable(True)
        self._login_action.toggled.connect(self._settings.set_login_item_enabled)
        self._preferences_action = QAction("Settings...", self._menu)
        self._preferences_action.triggered.connect(self._show_preferences)

        quit_action = QAction("Quit", self._menu)
        quit_action.triggered.connect(QApplication.quit)

        self._menu.addAction(self._status_action)
        self._menu.addAction(self._last_action)
        self._menu.addAction(self._next_action)
        self._menu.addSeparator()
        self._menu.addAction(self._check_action)
        self._menu.addAction(self._packages_action)
        self._menu.addAction(self._update_action)
        self._menu.addAction(self._upgrade_all_action)
        self._menu.addSeparator()
        self._menu.addMenu(self._interval_menu)
        self._menu.addAction(self._notify_action)
        self._menu.addAction(self._login_action)
        self._menu.addAction(self._preferences_action)
        self._menu.addSeparator()
        self._menu.addAction(quit_action)
        self._menu.aboutToShow.connect(self.refresh)
        self.setContextMenu(self._menu)

        self.activated.connect(self._on_activated)
        self._orchestrator.state_changed.connect(self.refresh)
        self._orchestrator.became_outdated.connect(self.on_became_outdated)
        self._orchestrator.rate_limited.connect(self.on_rate_limited)
        self._orchestrator.busy_changed.connect(self.on_busy_changed)

        self.refresh()

    @staticmethod
    def _status_icon(has_updates: bool) -> QIcon:
        style = QApplication.style()
        pixmap = (
            QStyle.StandardPixmap.SP_MessageBoxWarning
            if has_updates
            else QStyle.StandardPixmap.SP_DialogApplyButton
        )
        return style.standardIcon(pixmap)

    def _rebuild_interval_menu(self) -> None:
        self._interval_menu.clear()
        for action in self._interval_group.actions():
            self._interval_group.removeAction(action)

        current = self._settings.check_interval()
        for label, seconds in self._settings.schedule_config().options().items():
            action = QAction(label, self._interval_menu)
            action.setCheckable(True)
            action.setChecked(seconds == current)
            action.triggered.connect(lambda _checked=False, s=seconds: self._on_interval_chosen(s))
            self._interval_group.addAction(action)
            self._interval_menu.addAction(action)

    def refresh(self) -> None:
        store = self._orchestrator.store
        state = store.check_state
        summary = summarize_outdated(
            store.outdated_packages, checking=state.is_running, error=state.last_error
        )

        self._status_action.setText(summary.splitlines()[0])
        self._last_action.setText(last_checked_text(state.last_check_time))
        self._next_action.setText(next_check_text(self._clock(), state.next_scheduled_time))
        self._check_action.setEnabled(not state.is_running)
        self._upgrade_all_action.setEnabled(bool(store.outdated_packages))
        self.setToolTip(summary)
        self.setIcon(self._status_icon(bool(store.outdated_packages)))

        self._notify_action.blockSignals(True)
        self._notify_action.setChecked(self._settings.notifications_enabled())
        self._notify_action.blockSignals(False)
        self._login_action.blockSignals(True)
        self._login_action.setChecked(self._settings.login_item_enabled())
        self._login_action.blockSignals(False)
        self._rebuild_interval_menu()

    def _on_interval_chosen(self, seconds: int) -> None:
        logger.info(f"Check interval changed to {seconds} seconds")
        self._orchestrator.set_interval(seconds)

    def _on_update_database(self) -> None:
        self._show_packages()
        self._orchestrator.update_database()

    def _on_upgrade_all(self) -> None:
        self._show_packages()
        self._orchestrator.upgrade_all()

    def _on_activated(self, reason: QSystemTrayIcon.ActivationReason) -> None:
        if reason == QSystemTrayIcon.ActivationReason.Trigger:
            self._show_packages()

    def on_became_outdated(self, count: int) -> None:
        if not self._settings.notifications_enabled():
            return
        names = ", ".join(p.name for p in self._orchestrator.store.outdated_packages[:3])
        self.showMessage(
            "Homebrew Updates Available",
            f"{count} package{'' if count == 1 else 's'} can be upgraded: {names}",
            QSystemTrayIcon.MessageIcon.Information,
        )

    def on_rate_limited(self, seconds: int) -> None:
        self.showMessage(
            "Please wait",
            f"Try again in {seconds} seconds.",
            QSystemTrayIcon.MessageIcon.Information,
        )

    def on_busy_changed(self, busy: bool) -> None:
        self._update_action.setEnabled(not busy)
        self._upgrade_all_action.setEnabled(
            not busy and bool(self._orchestrator.store.outdated_packages)
        )
