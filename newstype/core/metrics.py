from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from newstype.core.session import TypingSessionState

CHARS_PER_WORD = 5


class Clock(Protocol):
    """Source of wall-clock time in seconds."""

    def now(self) -> float:
        ...


class SystemClock:
    """Clock backed by :func:`time.time`."""

    def now(self) -> float:
        return time.time()


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def words_per_minute(
    current_index: int,
    start_time: Optional[float],
    end_time: Optional[float],
    now: float,
) -> int:
    """Gross WPM using the 5-characters-per-word convention.

    The session clock stops at *end_time* once set; until then *now* is used.
    """
    if start_time is None:
        return 0
    finished_at = end_time if end_time is not None else now
    elapsed_minutes = (finished_at - start_time) / 60.0
    if elapsed_minutes <= 0:
        return 0
    word_count = current_index / CHARS_PER_WORD
    return round_half_up(word_count / elapsed_minutes)


def accuracy(current_index: int, error_count: int) -> int:
    """Percentage of matched characters not offset by mistakes, floored at 0.

    Errors can outnumber matched characters (repeated wrong keys at one
    position), so the clamp matters.
    """
    if current_index == 0:
        return 100
    return max(0, round_half_up(((current_index - error_count) / current_index) * 100))


def progress(current_index: int, length: int) -> float:
    """Completion percentage. Not clamped; *length* must be non-zero."""
    return current_index / length * 100


@dataclass(frozen=True)
class MetricsSnapshot:
    wpm: int
    accuracy: int
    progress: float


class MetricsCalculator:
    """Derives live metrics from a session state using an injected clock."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or SystemClock()

    def words_per_minute(self, state: TypingSessionState) -> int:
        return words_per_minute(state.current_index, state.start_time, state.end_time, self._clock.now())

    def accuracy(self, state: TypingSessionState) -> int:
        return accuracy(state.current_index, state.error_count)

    def progress(self, state: TypingSessionState, target: str) -> float:
        if not target:
            return 0.0
        return progress(state.current_index, len(target))

    def snapshot(self, state: TypingSessionState, target: str) -> MetricsSnapshot:
        """Compute all three metrics at the current clock reading."""
        return MetricsSnapshot(
            wpm=self.words_per_minute(state),
            accuracy=self.accuracy(state),
            progress=self.progress(state, target),
        )
