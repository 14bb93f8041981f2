from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from newstype.core.storage import LAST_VISIT_DATE, TYPING_STREAK, LocalStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakStatus:
    streak: int
    last_visit: date
    updated: bool


def _parse_date(value: object) -> Optional[date]:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _stored_streak(value: object) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def next_streak(previous: int, last_visit: Optional[date], today: date) -> int:
    """Streak after a visit on *today*.

    First visit starts at 1, a second visit the same day changes nothing, a
    visit the next calendar day adds one and any longer gap starts over.
    """
    if last_visit is None:
        return 1
    if last_visit == today:
        return previous
    if last_visit + timedelta(days=1) == today:
        return previous + 1
    return 1


class StreakTracker:
    """Daily usage streak kept in the local store."""

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    def current(self) -> int:
        return _stored_streak(self._store.get(TYPING_STREAK, 0))

    def last_visit(self) -> Optional[date]:
        return _parse_date(self._store.get(LAST_VISIT_DATE))

    def record_visit(self, today: Optional[date] = None) -> StreakStatus:
        """Update the streak for a visit and persist it."""
        today = today or date.today()
        previous = self.current()
        last_visit = self.last_visit()
        streak = next_streak(previous, last_visit, today)
        updated = last_visit != today

        if updated:
            self._store.set(TYPING_STREAK, streak)
            self._store.set(LAST_VISIT_DATE, today.isoformat())
            logger.info("Typing streak is now %d day(s)", streak)
        return StreakStatus(streak=streak, last_visit=today, updated=updated)
