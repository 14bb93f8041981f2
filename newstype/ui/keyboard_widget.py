"""On-screen QWERTY keyboard highlighting the next key to press."""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import QGridLayout, QLabel, QWidget

from newstype.core.keyboard import KEY_CAPTIONS, KEYBOARD_ROWS, ROW_OFFSETS, KeyState, keyboard_states
from newstype.ui.render import key_style

# Grid columns per keyboard unit.
UNIT_SCALE = 4


class KeyboardWidget(QWidget):
    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._labels: dict[str, QLabel] = {}
        self._states: dict[str, KeyState] = {}
        self._build()

    def _build(self) -> None:
        grid = QGridLayout(self)
        grid.setSpacing(6)
        grid.setContentsMargins(0, 0, 0, 0)

        for row_index, row in enumerate(KEYBOARD_ROWS):
            col = int(ROW_OFFSETS[row_index] * UNIT_SCALE)
            if row_index == len(KEYBOARD_ROWS) - 1:
                # Centre the space bar under the letter rows.
                col = 1 * UNIT_SCALE
            for key, size in row:
                span = int(size * UNIT_SCALE)
                label = QLabel(KEY_CAPTIONS.get(key, key.upper()))
                label.setAlignment(Qt.AlignCenter)
                label.setMinimumHeight(44)
                label.setMinimumWidth(0)
                grid.addWidget(label, row_index, col, 1, span)
                self._labels[key] = label
                col += span

        max_columns = max(
            int(ROW_OFFSETS[i] * UNIT_SCALE) + sum(int(size * UNIT_SCALE) for _, size in row)
            for i, row in enumerate(KEYBOARD_ROWS)
        )
        for column in range(max_columns):
            grid.setColumnMinimumWidth(column, 2)
            grid.setColumnStretch(column, 1)

        self.set_state("", None, False)

    def set_state(self, current_char: str, pressed_key: Optional[str], is_error: bool) -> None:
        """Restyle only the keys whose highlight changed."""
        for key, state in keyboard_states(current_char, pressed_key, is_error).items():
            if self._states.get(key) is state:
                continue
            self._states[key] = state
            style = key_style(state)
            self._labels[key].setStyleSheet(
                f"""
                QLabel {{
                    background: {style.background};
                    color: {style.foreground};
                    border: 1px solid {style.border};
                    border-radius: 6px;
                    padding: 8px 6px;
                    font-size: 14px;
                    font-weight: 500;
                }}
                """
            )
