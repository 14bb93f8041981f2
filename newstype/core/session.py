from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from newstype.core.metrics import Clock, SystemClock
from newstype.core.normalizer import chars_match, normalize

BACKSPACE = "Backspace"
ENTER = "Enter"


class SessionStatus(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


@dataclass(frozen=True)
class KeyEvent:
    """A single key press.

    ``key`` is either a single printable character, ``"Enter"``,
    ``"Backspace"`` or another named key (``"Shift"``, ``"ArrowLeft"``...).
    """

    key: str
    ctrl: bool = False
    alt: bool = False
    meta: bool = False

    @property
    def has_modifier(self) -> bool:
        return self.ctrl or self.alt or self.meta


@dataclass(frozen=True)
class TypingSessionState:
    """Immutable snapshot of one attempt at typing a target text.

    ``current_index`` and ``error_count`` only ever grow within a session:
    typing is forward-only and Backspace never undoes progress or mistakes.
    """

    typed: str = ""
    current_index: int = 0
    error_count: int = 0
    current_error: bool = False
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    last_key: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.end_time is not None

    @property
    def status(self) -> SessionStatus:
        if self.is_finished:
            return SessionStatus.FINISHED
        if self.start_time is None:
            return SessionStatus.NOT_STARTED
        return SessionStatus.IN_PROGRESS


def initial_state() -> TypingSessionState:
    return TypingSessionState()


def _correct(state: TypingSessionState, char: str, key: str, target: str, now: float) -> TypingSessionState:
    new_index = state.current_index + 1
    finished = new_index >= len(target)
    return replace(
        state,
        typed=state.typed + char,
        current_index=new_index,
        current_error=False,
        start_time=state.start_time if state.start_time is not None else now,
        end_time=now if finished else state.end_time,
        last_key=key,
    )


def _incorrect(state: TypingSessionState, key: str, now: float) -> TypingSessionState:
    return replace(
        state,
        error_count=state.error_count + 1,
        current_error=True,
        start_time=state.start_time if state.start_time is not None else now,
        last_key=key,
    )


def apply_key(state: TypingSessionState, event: KeyEvent, target: str, now: float) -> TypingSessionState:
    """Return the state that follows *event* when typing *target*.

    Pure: the target text is passed in on every call and *state* is never
    mutated. Events that cause no transition return *state* itself.
    """
    if event.has_modifier:
        return state
    if state.is_finished or state.current_index >= len(target):
        return state

    key = event.key
    if key == BACKSPACE:
        # Feedback only: the cursor never moves back and errors stay counted.
        return replace(state, last_key=BACKSPACE)

    expected = target[state.current_index]
    if key == ENTER:
        if expected == "\n":
            return _correct(state, "\n", ENTER, target, now)
        return _incorrect(state, ENTER, now)

    if len(key) != 1:
        return state

    if chars_match(key, expected):
        return _correct(state, normalize(expected), key, target, now)
    return _incorrect(state, key, now)


def reset() -> TypingSessionState:
    """Return a fresh NOT_STARTED state, whatever came before."""
    return initial_state()


def finish(state: TypingSessionState, now: float) -> TypingSessionState:
    """Force completion without reaching the end of the target.

    The end time is only ever set once.
    """
    if state.is_finished:
        return state
    return replace(state, end_time=now)


class TypingSession:
    """Typing attempt against a single target text.

    Thin stateful wrapper around :func:`apply_key` for the UI: it owns the
    current target and a clock, and replaces its state on every event.
    """

    def __init__(self, target: str = "", clock: Optional[Clock] = None) -> None:
        self._clock = clock or SystemClock()
        self._target = target
        self._state = initial_state()

    @property
    def target(self) -> str:
        """Text the user is expected to reproduce."""
        return self._target

    @property
    def state(self) -> TypingSessionState:
        return self._state

    @property
    def current_char(self) -> str:
        """Next expected character, or an empty string when there is none."""
        index = self._state.current_index
        return self._target[index] if index < len(self._target) else ""

    def load(self, target: str) -> None:
        """Swap in a new target text and start over."""
        self._target = target
        self.reset()

    def on_key(self, event: KeyEvent) -> TypingSessionState:
        """Feed a key event and return the resulting state."""
        self._state = apply_key(self._state, event, self._target, self._clock.now())
        return self._state

    def reset(self) -> TypingSessionState:
        self._state = reset()
        return self._state

    def finish(self) -> TypingSessionState:
        self._state = finish(self._state, self._clock.now())
        return self._state
