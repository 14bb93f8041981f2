from __future__ import annotations

import html
import logging
from typing import Optional

from PySide6.QtCore import Qt, QThreadPool, QTimer
from PySide6.QtGui import QCloseEvent, QKeyEvent
from PySide6.QtWidgets import (
    QComboBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QProgressBar,
    QPushButton,
    QTabBar,
    QVBoxLayout,
    QWidget,
)

from newstype.core.articles import NewsPage
from newstype.core.config import Settings
from newstype.core.controller import ArticleController, FetchOutcome, FetchTicket
from newstype.core.gateway import COUNTRIES, NewsGateway
from newstype.core.metrics import Clock, MetricsCalculator, SystemClock
from newstype.core.session import BACKSPACE, ENTER, KeyEvent, TypingSession
from newstype.core.storage import CredentialStore
from newstype.core.streak import StreakTracker
from newstype.ui.api_key_dialog import ApiKeyDialog
from newstype.ui.colors import ThemeColors
from newstype.ui.keyboard_widget import KeyboardWidget
from newstype.ui.render import category_label, completion_message, sidebar_view, stats_view
from newstype.ui.typing_widgets import CompletionBanner, QuotaBar, StatCard, StreakBadge, TextDisplay
from newstype.ui.workers import FetchWorker

logger = logging.getLogger(__name__)


def key_event_from_qt(key: int, text: str, modifiers: Qt.KeyboardModifier) -> Optional[KeyEvent]:
    """Translate a Qt key press into a session :class:`KeyEvent`, or None for keys we never use."""
    ctrl = bool(modifiers & Qt.ControlModifier)
    alt = bool(modifiers & Qt.AltModifier)
    meta = bool(modifiers & Qt.MetaModifier)
    if key == Qt.Key.Key_Backspace:
        name = BACKSPACE
    elif key in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
        name = ENTER
    elif text and len(text) == 1 and text.isprintable():
        name = text
    else:
        return None
    return KeyEvent(name, ctrl=ctrl, alt=alt, meta=meta)


def _panel(title: str) -> tuple[QFrame, QVBoxLayout]:
    frame = QFrame()
    frame.setObjectName("panel")
    frame.setStyleSheet(
        f"""
        QFrame#panel {{
            background: {ThemeColors.SURFACE};
            border: 1px solid {ThemeColors.BORDER};
            border-radius: 10px;
        }}
        """
    )
    layout = QVBoxLayout(frame)
    layout.setContentsMargins(14, 14, 14, 14)
    layout.setSpacing(10)
    heading = QLabel(title)
    heading.setStyleSheet("font-size: 16px; font-weight: 700;")
    layout.addWidget(heading)
    return frame, layout


def _info_row(caption: str) -> tuple[QHBoxLayout, QLabel]:
    row = QHBoxLayout()
    label = QLabel(caption)
    label.setStyleSheet("font-weight: 600;")
    value = QLabel("")
    row.addWidget(label)
    row.addStretch(1)
    row.addWidget(value)
    return row, value


class MainWindow(QMainWindow):
    """News typing practice window.

    Category tabs on top, settings on the left, the article being typed in the
    middle with live stats and the on-screen keyboard, streak and article
    stats on the right. Key presses anywhere in the window feed the typing
    session; news fetches run on the global thread pool.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: NewsGateway,
        credentials: CredentialStore,
        streak: StreakTracker,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__()
        self._settings = settings
        self._gateway = gateway
        self._streak = streak
        self._clock = clock or SystemClock()
        self._pool = QThreadPool.globalInstance()
        self._pending_workers: set[FetchWorker] = set()

        self._controller = ArticleController(
            gateway,
            credentials,
            page_size=settings.page_size,
            category=settings.default_category,
            country=settings.default_country,
            dispatcher=self._dispatch_fetch,
        )
        self._session = TypingSession(clock=self._clock)
        self._metrics = MetricsCalculator(self._clock)
        self._article_key: Optional[tuple] = None
        self._api_dialog: Optional[ApiKeyDialog] = None

        self._metrics_timer = QTimer(self)
        self._metrics_timer.setInterval(settings.metrics_interval_ms)
        self._metrics_timer.timeout.connect(self._update_metrics)

        self._build_ui()

        status = self._streak.record_visit()
        self._streak_badge.set_streak(status.streak, animate=status.updated)
        QTimer.singleShot(0, self._start)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _build_ui(self) -> None:
        self.setWindowTitle("NewsType - News Typing Practice")
        self.setMinimumSize(1200, 780)

        central = QWidget()
        central.setFocusPolicy(Qt.StrongFocus)
        central.setStyleSheet(f"background: {ThemeColors.BG}; color: {ThemeColors.TEXT_PRIMARY};")
        self.setCentralWidget(central)
        root = QVBoxLayout(central)
        root.setContentsMargins(16, 12, 16, 12)
        root.setSpacing(10)

        title = QLabel("News Typing Practice")
        title.setStyleSheet("font-size: 24px; font-weight: 800;")
        subtitle = QLabel("Improve your typing skills with real news articles")
        subtitle.setStyleSheet(f"color: {ThemeColors.TEXT_SECONDARY};")
        root.addWidget(title)
        root.addWidget(subtitle)

        self._tabs = QTabBar()
        self._tabs.setFocusPolicy(Qt.NoFocus)
        self._tabs.setExpanding(False)
        for category in self._controller.categories:
            self._tabs.addTab(category_label(category))
        self._tabs.setCurrentIndex(self._controller.categories.index(self._controller.category))
        self._tabs.currentChanged.connect(self._on_category_changed)
        root.addWidget(self._tabs, 0, Qt.AlignHCenter)

        self._error_banner = QLabel("")
        self._error_banner.setWordWrap(True)
        self._error_banner.setStyleSheet(
            f"background: {ThemeColors.ERROR_BG}; color: {ThemeColors.ERROR}; "
            f"border: 1px solid {ThemeColors.ERROR_BORDER}; border-radius: 8px; padding: 8px 12px;"
        )
        self._error_banner.setVisible(False)
        root.addWidget(self._error_banner)

        body = QHBoxLayout()
        body.setSpacing(12)
        body.addWidget(self._build_settings_panel(), 1)
        body.addWidget(self._build_typing_panel(), 3)
        body.addWidget(self._build_stats_panel(), 1)
        root.addLayout(body, 1)

    def _build_settings_panel(self) -> QWidget:
        panel, layout = _panel("Settings")

        layout.addWidget(QLabel("Country :"))
        self._country_combo = QComboBox()
        for code, label in COUNTRIES.items():
            self._country_combo.addItem(label, code)
        self._country_combo.setCurrentIndex(list(COUNTRIES).index(self._controller.country))
        self._country_combo.activated.connect(self._on_country_activated)
        layout.addWidget(self._country_combo)

        key_row = QHBoxLayout()
        key_caption = QLabel("API Key:")
        key_caption.setStyleSheet("font-weight: 600;")
        change_key = QPushButton("Change")
        change_key.setFocusPolicy(Qt.NoFocus)
        change_key.clicked.connect(self._on_change_api_key)
        key_row.addWidget(key_caption)
        key_row.addStretch(1)
        key_row.addWidget(change_key)
        layout.addLayout(key_row)
        self._masked_key_label = QLabel("")
        self._masked_key_label.setStyleSheet(f"color: {ThemeColors.TEXT_MUTED}; font-size: 12px;")
        layout.addWidget(self._masked_key_label)

        self._quota_bar = QuotaBar()
        layout.addWidget(self._quota_bar)
        layout.addStretch(1)

        buttons = QHBoxLayout()
        self._next_button = QPushButton("Next Article")
        self._refresh_button = QPushButton("Refresh Articles")
        for button in (self._next_button, self._refresh_button):
            button.setFocusPolicy(Qt.NoFocus)
            buttons.addWidget(button)
        self._next_button.clicked.connect(self._on_next)
        self._refresh_button.clicked.connect(self._on_refresh)
        layout.addLayout(buttons)
        return panel

    def _build_typing_panel(self) -> QWidget:
        panel, layout = _panel("Article")

        self._article_title = QLabel("")
        self._article_title.setWordWrap(True)
        self._article_title.setStyleSheet(f"color: {ThemeColors.TEXT_SECONDARY}; font-weight: 600;")
        layout.addWidget(self._article_title)

        self._text_display = TextDisplay()
        self._text_display.setMinimumHeight(260)
        layout.addWidget(self._text_display, 1)

        stats = QHBoxLayout()
        self._wpm_card = StatCard("WPM", "--")
        self._accuracy_card = StatCard("Accuracy", "100%")
        stats.addWidget(self._wpm_card)
        stats.addWidget(self._accuracy_card)

        progress_box = QVBoxLayout()
        progress_caption = QHBoxLayout()
        progress_caption.addWidget(QLabel("Progress"))
        progress_caption.addStretch(1)
        self._progress_value = QLabel("0%")
        progress_caption.addWidget(self._progress_value)
        self._progress_bar = QProgressBar()
        self._progress_bar.setRange(0, 100)
        self._progress_bar.setTextVisible(False)
        self._progress_bar.setFixedHeight(8)
        progress_box.addLayout(progress_caption)
        progress_box.addWidget(self._progress_bar)
        stats.addLayout(progress_box, 2)

        reset = QPushButton("Reset")
        reset.setFocusPolicy(Qt.NoFocus)
        reset.clicked.connect(self._reset_typing)
        stats.addWidget(reset)
        layout.addLayout(stats)

        self._completion_banner = CompletionBanner()
        self._completion_banner.retry_requested.connect(self._reset_typing)
        layout.addWidget(self._completion_banner)

        self._keyboard = KeyboardWidget()
        layout.addWidget(self._keyboard)

        self._source_label = QLabel("")
        self._source_label.setTextFormat(Qt.RichText)
        self._source_label.setOpenExternalLinks(True)
        self._source_label.setStyleSheet(f"color: {ThemeColors.TEXT_MUTED}; font-size: 12px;")
        layout.addWidget(self._source_label)
        return panel

    def _build_stats_panel(self) -> QWidget:
        panel, layout = _panel("Stats")
        self._streak_badge = StreakBadge()
        layout.addWidget(self._streak_badge, 0, Qt.AlignHCenter)

        rows = (
            ("Last Visit:", "_last_visit_value"),
            ("Current Category:", "_category_value"),
            ("Articles Available:", "_available_value"),
            ("Current Article:", "_position_value"),
        )
        for caption, attr in rows:
            row, value = _info_row(caption)
            setattr(self, attr, value)
            layout.addLayout(row)
        layout.addStretch(1)
        return panel

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _start(self) -> None:
        self.centralWidget().setFocus()
        self._after_controller_call(self._controller.start())

    def _dispatch_fetch(self, ticket: FetchTicket) -> None:
        worker = FetchWorker(self._gateway, ticket)
        worker.signals.finished.connect(self._on_fetch_finished)
        worker.signals.failed.connect(self._on_fetch_failed)
        self._pending_workers.add(worker)
        self._pool.start(worker)

    def _on_fetch_finished(self, ticket: FetchTicket, page: NewsPage) -> None:
        self._forget_worker(ticket)
        self._after_controller_call(self._controller.complete_fetch(ticket, page=page))

    def _on_fetch_failed(self, ticket: FetchTicket, error: Exception) -> None:
        self._forget_worker(ticket)
        self._after_controller_call(self._controller.complete_fetch(ticket, error=error))

    def _forget_worker(self, ticket: FetchTicket) -> None:
        self._pending_workers = {w for w in self._pending_workers if w.ticket.token != ticket.token}

    def _after_controller_call(self, outcome: Optional[FetchOutcome], force_reload: bool = False) -> None:
        if outcome is not None:
            logger.debug("Controller outcome: %s", outcome.value)
        self._refresh_view(force_reload)
        self._sync_credential_prompt()

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def _on_category_changed(self, index: int) -> None:
        category = self._controller.categories[index]
        if category == self._controller.category:
            return
        self._after_controller_call(self._controller.select_category(category), force_reload=True)

    def _on_country_activated(self, index: int) -> None:
        code = self._country_combo.itemData(index)
        self.centralWidget().setFocus()
        if code == self._controller.country:
            return
        self._after_controller_call(self._controller.select_country(code), force_reload=True)

    def _on_next(self) -> None:
        self._after_controller_call(self._controller.advance(), force_reload=True)

    def _on_refresh(self) -> None:
        self._after_controller_call(self._controller.refresh(), force_reload=True)

    def _on_change_api_key(self) -> None:
        self._controller.reset_api_key()
        self._after_controller_call(None)

    # ------------------------------------------------------------------
    # Credential prompt
    # ------------------------------------------------------------------

    def _sync_credential_prompt(self) -> None:
        if self._controller.credential_prompt_open and self._api_dialog is None:
            dialog = ApiKeyDialog(error=self._controller.credential_error, parent=self)
            dialog.submitted.connect(self._on_api_key_submitted)
            dialog.rejected.connect(self._on_api_dialog_rejected)
            self._api_dialog = dialog
            dialog.open()
        elif self._api_dialog is not None:
            if self._controller.credential_prompt_open:
                self._api_dialog.show_error(self._controller.credential_error)
            else:
                self._close_api_dialog()

    def _on_api_key_submitted(self, text: str) -> None:
        try:
            outcome = self._controller.set_api_key(text)
        except ValueError as e:
            if self._api_dialog is not None:
                self._api_dialog.show_error(str(e))
            return
        self._close_api_dialog()
        self._after_controller_call(outcome, force_reload=True)

    def _on_api_dialog_rejected(self) -> None:
        self._api_dialog = None
        self._controller.dismiss_credential_prompt()
        self.centralWidget().setFocus()

    def _close_api_dialog(self) -> None:
        dialog = self._api_dialog
        self._api_dialog = None
        if dialog is not None:
            dialog.rejected.disconnect(self._on_api_dialog_rejected)
            dialog.accept()
            dialog.deleteLater()
        self.centralWidget().setFocus()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _refresh_view(self, force_reload: bool = False) -> None:
        controller = self._controller
        self._error_banner.setText(controller.error or "")
        self._error_banner.setVisible(bool(controller.error))

        view = sidebar_view(controller, self._streak.current(), self._streak.last_visit())
        self._masked_key_label.setText(view.masked_api_key or "Not set")
        self._quota_bar.set_quota(view.quota)
        self._next_button.setEnabled(view.can_navigate)
        self._refresh_button.setEnabled(view.can_navigate)
        self._next_button.setText("Loading..." if view.loading else "Next Article")
        self._last_visit_value.setText(view.last_visit)
        self._category_value.setText(view.category)
        self._available_value.setText(str(view.articles_available))
        self._position_value.setText(view.position)
        if view.source_url:
            url = html.escape(view.source_url)
            self._source_label.setText(f'Source: <a href="{url}">{url}</a>')
        else:
            self._source_label.setText("")

        self._show_current_article(force_reload)

    def _show_current_article(self, force: bool = False) -> None:
        article = self._controller.current_article
        if article is None:
            self._article_key = None
            self._article_title.setText("")
            self._session.load("")
            self._reset_typing()
            if self._controller.is_loading():
                self._text_display.setPlainText("Loading news...")
            return

        key = (self._controller.category, article.id, article.text)
        if not force and key == self._article_key:
            return
        self._article_key = key
        self._article_title.setText(article.title)
        self._session.load(article.text)
        self._reset_typing()

    def _reset_typing(self) -> None:
        """Start the current article over."""
        self._metrics_timer.stop()
        self._session.reset()
        self._completion_banner.setVisible(False)
        self._text_display.reset_scroll()
        self._render_session()
        self._update_metrics()
        self.centralWidget().setFocus()

    def _render_session(self) -> None:
        state = self._session.state
        self._text_display.show_target(self._session.target, state.current_index, state.current_error)
        self._keyboard.set_state(self._session.current_char, state.last_key, state.current_error)
        snapshot = self._metrics.snapshot(state, self._session.target)
        self._progress_bar.setValue(int(min(100.0, snapshot.progress)))
        self._progress_value.setText(f"{stats_view(snapshot, False).progress_percent}%")

    def _update_metrics(self) -> None:
        state = self._session.state
        view = stats_view(self._metrics.snapshot(state, self._session.target), state.start_time is not None)
        self._wpm_card.set_value(view.wpm)
        self._accuracy_card.set_value(view.accuracy)

    def _on_session_finished(self) -> None:
        self._metrics_timer.stop()
        self._update_metrics()
        snapshot = self._metrics.snapshot(self._session.state, self._session.target)
        self._completion_banner.show_message(completion_message(snapshot))
        logger.info("Finished article: %d WPM, %d%% accuracy", snapshot.wpm, snapshot.accuracy)

    # ------------------------------------------------------------------
    # Qt events
    # ------------------------------------------------------------------

    def keyPressEvent(self, event: QKeyEvent) -> None:
        """Feed printable keys, Enter and Backspace to the typing session."""
        key_event = key_event_from_qt(event.key(), event.text(), event.modifiers())
        if key_event is None or not self._session.target or self._api_dialog is not None:
            super().keyPressEvent(event)
            return

        was_finished = self._session.state.is_finished
        state = self._session.on_key(key_event)
        if state.start_time is not None and not state.is_finished and not self._metrics_timer.isActive():
            self._metrics_timer.start()
        self._render_session()
        if state.is_finished and not was_finished:
            self._on_session_finished()
        event.accept()

    def closeEvent(self, event: QCloseEvent) -> None:
        """Stop the metrics timer and let outstanding fetches wind down."""
        self._metrics_timer.stop()
        self._pool.clear()
        self._pool.waitForDone(2000)
        super().closeEvent(event)
