"""
Pure projection helpers for the widgets.

Nothing here touches Qt: the functions turn session, metrics and controller
state into HTML, numbers and view models that the widgets apply verbatim.
"""

from __future__ import annotations

import html
from datetime import date
from typing import Optional

from newstype.core.articles import QuotaSnapshot
from newstype.core.controller import ArticleController
from newstype.core.gateway import COUNTRIES
from newstype.core.keyboard import KeyState
from newstype.core.metrics import MetricsSnapshot, round_half_up
from newstype.ui.colors import ThemeColors, blend_hex
from newstype.ui.models import KeyStyle, QuotaView, SidebarView, StatsView

NEWLINE_GLYPH = "↵"
SCROLL_THRESHOLD_PX = 10
SCROLL_DURATION_MS = 300


# ---------------------------------------------------------------------------
# Target text
# ---------------------------------------------------------------------------

def _escape(text: str) -> str:
    return html.escape(text).replace("\n", f"{NEWLINE_GLYPH}<br/>")


def render_target_html(target: str, current_index: int, current_error: bool) -> str:
    """Rich text for the article: typed part green, current character highlighted, rest muted."""
    if not target:
        return ""
    index = max(0, min(current_index, len(target)))
    done = target[:index]
    current = target[index:index + 1]
    rest = target[index + 1:]

    parts = [f'<span style="color:{ThemeColors.SUCCESS};">{_escape(done)}</span>']
    if current:
        if current_error:
            style = f"background:{ThemeColors.ERROR_BG}; color:{ThemeColors.ERROR}; font-weight:600;"
        else:
            style = f"background:{ThemeColors.CURRENT_BG}; color:{ThemeColors.TEXT_PRIMARY}; font-weight:600;"
        if current == "\n":
            parts.append(f'<span style="{style}">{NEWLINE_GLYPH}</span><br/>')
        else:
            parts.append(f'<span style="{style}">{html.escape(current)}</span>')
    parts.append(f'<span style="color:{ThemeColors.TEXT_MUTED};">{_escape(rest)}</span>')
    return (
        '<div style="white-space:pre-wrap; font-family:monospace; line-height:150%;">'
        + "".join(parts)
        + "</div>"
    )


def document_position(target: str, index: int) -> int:
    """Cursor position in the rendered document for character *index* of *target*.

    Every newline before *index* renders as a glyph plus a line break, so it
    takes two positions instead of one.
    """
    index = max(0, min(index, len(target)))
    return index + target.count("\n", 0, index)


# ---------------------------------------------------------------------------
# Scrolling
# ---------------------------------------------------------------------------

def ease_in_out_cubic(t: float) -> float:
    t = max(0.0, min(1.0, t))
    if t < 0.5:
        return 4 * t * t * t
    return 1 - pow(-2 * t + 2, 3) / 2


def scroll_adjustment(
    char_top: float,
    char_bottom: float,
    viewport_height: float,
    threshold: float = SCROLL_THRESHOLD_PX,
) -> Optional[float]:
    """Distance to scroll so the character sits in the middle of the viewport.

    Returns None when the character is already within *threshold* pixels of
    the middle.
    """
    adjustment = (char_top + char_bottom) / 2 - viewport_height / 2
    if abs(adjustment) < threshold:
        return None
    return adjustment


# ---------------------------------------------------------------------------
# Stats and sidebar
# ---------------------------------------------------------------------------

def stats_view(snapshot: MetricsSnapshot, started: bool) -> StatsView:
    return StatsView(
        wpm=str(snapshot.wpm) if started else "--",
        accuracy=f"{snapshot.accuracy}%",
        progress_percent=round_half_up(snapshot.progress),
    )


def completion_message(snapshot: MetricsSnapshot) -> str:
    return f"You typed at {snapshot.wpm} WPM with {snapshot.accuracy}% accuracy."


def quota_view(quota: Optional[QuotaSnapshot]) -> Optional[QuotaView]:
    if quota is None:
        return None
    return QuotaView(text=f"{quota.used}/{quota.total}", percent=quota.used_percent)


def category_label(category: str) -> str:
    return category.capitalize()


def format_last_visit(last_visit: Optional[date]) -> str:
    if last_visit is None:
        return "Never"
    return last_visit.strftime("%b %d, %Y")


def sidebar_view(controller: ArticleController, streak: int, last_visit: Optional[date]) -> SidebarView:
    articles = controller.articles()
    position = controller.pagination().current_index + 1
    return SidebarView(
        country=COUNTRIES.get(controller.country, controller.country),
        masked_api_key=controller.masked_api_key,
        quota=quota_view(controller.quota),
        can_navigate=controller.can_navigate,
        loading=controller.loading,
        streak=streak,
        last_visit=format_last_visit(last_visit),
        category=category_label(controller.category),
        articles_available=len(articles),
        position=f"{position} of {len(articles)}",
        source_url=controller.article_source,
    )


def streak_text(streak: int) -> str:
    return f"{streak} day{'' if streak == 1 else 's'} streak"


# ---------------------------------------------------------------------------
# Keyboard
# ---------------------------------------------------------------------------

def key_style(state: KeyState) -> KeyStyle:
    if state is KeyState.TARGET:
        return KeyStyle(ThemeColors.PRIMARY, ThemeColors.PRIMARY_FG, ThemeColors.PRIMARY)
    if state is KeyState.WRONG:
        return KeyStyle(ThemeColors.ERROR_BG, ThemeColors.ERROR, ThemeColors.ERROR_BORDER)
    if state is KeyState.PRESSED:
        return KeyStyle(
            blend_hex(ThemeColors.KEY_IDLE, ThemeColors.PRIMARY_LIGHT, 0.35),
            ThemeColors.TEXT_PRIMARY,
            ThemeColors.KEY_BORDER,
        )
    return KeyStyle(ThemeColors.KEY_IDLE, ThemeColors.TEXT_PRIMARY, ThemeColors.KEY_BORDER)
