"""Modal prompt asking for the news API key."""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QDialog,
    QLabel,
    QLineEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from newstype.ui.colors import ThemeColors


class ApiKeyDialog(QDialog):
    """Collects a key and emits :attr:`submitted`; the owner decides whether to accept it.

    An upstream rejection message, when given, is shown above the input.
    """

    submitted = Signal(str)

    def __init__(self, error: Optional[str] = None, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Enter your World News API Key")
        self.setModal(True)
        self.setMinimumWidth(420)

        layout = QVBoxLayout(self)
        intro = QLabel(
            "To use this application, you need a World News API key. You can get one for free at "
            '<a href="https://worldnewsapi.com/">worldnewsapi.com</a>'
        )
        intro.setWordWrap(True)
        intro.setTextFormat(Qt.RichText)
        intro.setOpenExternalLinks(True)
        layout.addWidget(intro)

        self._error_label = QLabel("")
        self._error_label.setWordWrap(True)
        self._error_label.setStyleSheet(
            f"background: {ThemeColors.ERROR_BG}; color: {ThemeColors.ERROR}; "
            "border-radius: 6px; padding: 8px;"
        )
        layout.addWidget(self._error_label)

        layout.addWidget(QLabel("API Key"))
        self._input = QLineEdit()
        self._input.setPlaceholderText("Enter your World News API key")
        self._input.textEdited.connect(self._clear_input_error)
        self._input.returnPressed.connect(self._submit)
        layout.addWidget(self._input)

        save = QPushButton("Save API Key")
        save.setDefault(True)
        save.clicked.connect(self._submit)
        layout.addWidget(save)

        self._upstream_error = error
        self.show_error(error)

    def show_error(self, message: Optional[str]) -> None:
        self._error_label.setText(message or "")
        self._error_label.setVisible(bool(message))

    def _clear_input_error(self, _text: str) -> None:
        self.show_error(self._upstream_error)

    def _submit(self) -> None:
        self.submitted.emit(self._input.text())
