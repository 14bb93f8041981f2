"""Application entry point and setup for the NewsType typing practice app."""

import logging
import sys

from PySide6.QtGui import QGuiApplication
from PySide6.QtWidgets import QApplication

from newstype.core.config import Settings, create_gateway, load_settings
from newstype.core.storage import CredentialStore, LocalStore
from newstype.core.streak import StreakTracker
from newstype.ui.main_window import MainWindow


def configure_logging(level: str = "INFO") -> None:
    """Configure application-wide logging with a standard format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_window(settings: Settings) -> MainWindow:
    """Wire storage, the news gateway and the streak tracker into a main window."""
    store = LocalStore(settings.storage_path)
    return MainWindow(
        settings=settings,
        gateway=create_gateway(settings),
        credentials=CredentialStore(store),
        streak=StreakTracker(store),
    )


def run() -> None:
    """Load settings, initialize Qt and start the main window."""
    settings = load_settings()
    configure_logging(settings.log_level)
    logging.info("Starting NewsType with the %s gateway", settings.gateway)

    app = QApplication(sys.argv)
    app.setApplicationName("NewsType")
    app.setApplicationDisplayName("NewsType")

    window = build_window(settings)
    screen = QGuiApplication.primaryScreen()
    if screen is not None:
        geometry = screen.availableGeometry()
        window.resize(int(geometry.width() * 0.9), int(geometry.height() * 0.9))
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    run()
