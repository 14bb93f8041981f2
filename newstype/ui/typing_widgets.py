"""Typing practice UI: article text display, stat cards, streak badge and quota bar."""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QPropertyAnimation, Qt, QVariantAnimation, Signal
from PySide6.QtGui import QColor, QPainter, QTextCursor
from PySide6.QtWidgets import (
    QFrame,
    QGraphicsOpacityEffect,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)

from newstype.ui.colors import ThemeColors
from newstype.ui.models import QuotaView
from newstype.ui.render import (
    SCROLL_DURATION_MS,
    document_position,
    ease_in_out_cubic,
    render_target_html,
    scroll_adjustment,
    streak_text,
)


class TextDisplay(QTextBrowser):
    """Read-only article text that keeps the current character centred.

    Scrolling is animated; a new scroll always stops the one in progress.
    """

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setFocusPolicy(Qt.NoFocus)
        self.setOpenLinks(False)
        self.setStyleSheet(
            f"""
            QTextBrowser {{
                background: {ThemeColors.SURFACE_MUTED};
                color: {ThemeColors.TEXT_PRIMARY};
                border: 1px solid {ThemeColors.BORDER};
                border-radius: 8px;
                padding: 12px;
                font-size: 18px;
            }}
            """
        )
        self._target = ""
        self._scroll_from = 0
        self._scroll_by = 0.0
        self._scroll_anim = QVariantAnimation(self)
        self._scroll_anim.setDuration(SCROLL_DURATION_MS)
        self._scroll_anim.setStartValue(0.0)
        self._scroll_anim.setEndValue(1.0)
        self._scroll_anim.valueChanged.connect(self._on_scroll_step)

    def show_target(self, target: str, current_index: int, is_error: bool) -> None:
        """Render *target* with the cursor at *current_index* and scroll to it."""
        bar = self.verticalScrollBar()
        position = bar.value() if target == self._target else 0
        self._target = target
        self.setHtml(render_target_html(target, current_index, is_error))
        bar.setValue(position)
        self._scroll_to(current_index)

    def reset_scroll(self) -> None:
        self._scroll_anim.stop()
        self.verticalScrollBar().setValue(0)

    def _scroll_to(self, index: int) -> None:
        self._scroll_anim.stop()
        if not self._target:
            return
        cursor = QTextCursor(self.document())
        last = max(0, self.document().characterCount() - 1)
        cursor.setPosition(min(document_position(self._target, index), last))
        rect = self.cursorRect(cursor)
        adjustment = scroll_adjustment(rect.top(), rect.bottom(), self.viewport().height())
        if adjustment is None:
            return
        bar = self.verticalScrollBar()
        self._scroll_from = bar.value()
        end = max(bar.minimum(), min(bar.maximum(), int(self._scroll_from + adjustment)))
        self._scroll_by = end - self._scroll_from
        if self._scroll_by == 0:
            return
        self._scroll_anim.start()

    def _on_scroll_step(self, value: float) -> None:
        offset = self._scroll_by * ease_in_out_cubic(float(value))
        self.verticalScrollBar().setValue(int(self._scroll_from + offset))


class StatCard(QFrame):
    """Small caption + large value pair."""

    def __init__(self, caption: str, value: str = "", parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(8, 4, 8, 4)
        layout.setSpacing(2)
        self._caption = QLabel(caption)
        self._caption.setAlignment(Qt.AlignCenter)
        self._caption.setStyleSheet(f"color: {ThemeColors.TEXT_MUTED}; font-size: 12px;")
        self._value = QLabel(value)
        self._value.setAlignment(Qt.AlignCenter)
        self._value.setStyleSheet(f"color: {ThemeColors.TEXT_PRIMARY}; font-size: 22px; font-weight: 700;")
        layout.addWidget(self._caption)
        layout.addWidget(self._value)

    def set_value(self, value: str) -> None:
        self._value.setText(value)


class StreakBadge(QLabel):
    """Flame pill with the daily streak; fades in when the streak changed today."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setAlignment(Qt.AlignCenter)
        self.setStyleSheet(
            f"""
            QLabel {{
                background: #fff7ed;
                color: #c2410c;
                border-radius: 14px;
                padding: 6px 14px;
                font-weight: 700;
            }}
            """
        )
        self._effect = QGraphicsOpacityEffect(self)
        self._effect.setOpacity(1.0)
        self.setGraphicsEffect(self._effect)
        self._anim = QPropertyAnimation(self._effect, b"opacity", self)
        self._anim.setDuration(600)
        self._anim.setStartValue(0.2)
        self._anim.setEndValue(1.0)

    def set_streak(self, streak: int, animate: bool = False) -> None:
        self.setText(f"🔥 {streak_text(streak)}")
        if animate:
            self._anim.stop()
            self._anim.start()


class QuotaBar(QWidget):
    """API quota usage: ``used/total`` text above a thin painted bar."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._percent = 0
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(4)
        row = QHBoxLayout()
        caption = QLabel("API Quota:")
        caption.setStyleSheet("font-weight: 600;")
        self._value = QLabel("")
        row.addWidget(caption)
        row.addStretch(1)
        row.addWidget(self._value)
        layout.addLayout(row)
        layout.addSpacing(12)
        self.setMinimumHeight(40)
        self.setVisible(False)

    def set_quota(self, view: Optional[QuotaView]) -> None:
        if view is None:
            self.setVisible(False)
            return
        self._value.setText(view.text)
        self._percent = max(0, min(100, view.percent))
        self.setVisible(True)
        self.update()

    def paintEvent(self, event) -> None:
        """Paint the track and the used portion below the caption row."""
        super().paintEvent(event)
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing, True)
        bar_height = 8
        y = self.height() - bar_height - 1
        painter.setPen(Qt.NoPen)
        painter.setBrush(QColor(ThemeColors.BORDER))
        painter.drawRoundedRect(0, y, self.width(), bar_height, 4, 4)
        fill = int(self.width() * self._percent / 100)
        if fill > 0:
            painter.setBrush(QColor(ThemeColors.PRIMARY_LIGHT))
            painter.drawRoundedRect(0, y, fill, bar_height, 4, 4)


class CompletionBanner(QFrame):
    """Shown once the article has been typed through."""

    retry_requested = Signal()

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setObjectName("completionBanner")
        self.setStyleSheet(
            f"""
            QFrame#completionBanner {{
                background: {ThemeColors.SUCCESS_BG};
                border: 1px solid {ThemeColors.SUCCESS_BORDER};
                border-radius: 8px;
            }}
            """
        )
        layout = QVBoxLayout(self)
        title = QLabel("Test Complete!")
        title.setStyleSheet("font-size: 18px; font-weight: 700;")
        self._message = QLabel("")
        retry = QPushButton("Try Again")
        retry.setFocusPolicy(Qt.NoFocus)
        retry.clicked.connect(self.retry_requested.emit)
        layout.addWidget(title)
        layout.addWidget(self._message)
        layout.addWidget(retry, 0, Qt.AlignLeft)
        self.setVisible(False)

    def show_message(self, message: str) -> None:
        self._message.setText(message)
        self.setVisible(True)
