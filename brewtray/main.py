import sys

from logly import logger
from PySide6.QtWidgets import QApplication, QMessageBox, QSystemTrayIcon

from brewtray.application.brew_service import BrewService
from brewtray.application.check_orchestrator import CheckOrchestrator
from brewtray.core.state_store import StateStore
from brewtray.infra.brew import find_brew_executable
from brewtray.infra.process_runner import ProcessRunner
from brewtray.infra.qt_subprocess import QtJobRunner
from brewtray.infra.settings import AppSettings
from brewtray.infra.wake_detector import WakeDetector
from brewtray.logging import init_logger
from brewtray.presentation.packages_window import PackagesWindow
from brewtray.presentation.preferences_dialog import PreferencesDialog
from brewtray.presentation.tray import TrayIcon


def main() -> int:
    app = QApplication(sys.argv)
    app.setApplicationName("brewtray")
    app.setOrganizationName("brewtray")
    app.setQuitOnLastWindowClosed(False)

    init_logger()

    brew = find_brew_executable()
    if brew is None:
        logger.error("Homebrew executable not found")
        QMessageBox.critical(
            None,
            "brewtray",
            "Homebrew was not found. Install it from https://brew.sh and restart.",
        )
        return 1
    logger.info(f"Using brew at {brew}")

    if not QSystemTrayIcon.isSystemTrayAvailable():
        logger.warning("System tray is not available; only the window will be shown")

    settings = AppSettings()
    store = StateStore()
    jobs = QtJobRunner()

    # One runner per operation so interrupting one never kills another.
    orchestrator = CheckOrchestrator(
        store,
        settings,
        jobs,
        check_service=BrewService(ProcessRunner(brew)),
        installed_service=BrewService(ProcessRunner(brew)),
        command_service=BrewService(ProcessRunner(brew)),
    )

    window = PackagesWindow(orchestrator)

    def show_packages() -> None:
        window.show()
        window.raise_()
        window.activateWindow()

    preferences = PreferencesDialog(orchestrator, settings)

    def show_preferences() -> None:
        preferences.reload()
        preferences.show()
        preferences.raise_()
        preferences.activateWindow()

    tray = TrayIcon(orchestrator, settings, show_packages, show_preferences)
    tray.show()
    if not QSystemTrayIcon.isSystemTrayAvailable():
        show_packages()

    wake = WakeDetector()
    wake.woke.connect(orchestrator.handle_wake)
    wake.start()

    def on_about_to_quit() -> None:
        logger.info("Shutting down")
        wake.stop()
        orchestrator.shutdown()
        jobs.wait_all()
        settings.sync()

    app.aboutToQuit.connect(on_about_to_quit)

    orchestrator.start()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
