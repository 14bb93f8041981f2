from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from newstype.core.session import BACKSPACE, ENTER

SPACE = "Space"
SHIFT = "Shift"

# (key, width in units); letter keys are lowercase identifiers.
KEYBOARD_ROWS: List[List[Tuple[str, float]]] = [
    [(k, 1.0) for k in "qwertyuiop"] + [(BACKSPACE, 2.0)],
    [(k, 1.0) for k in "asdfghjkl"],
    [(SHIFT, 2.0)] + [(k, 1.0) for k in "zxcvbnm"] + [(ENTER, 2.0)],
    [(SPACE, 8.0)],
]

# Indent in units applied before a row, mimicking a physical keyboard.
ROW_OFFSETS = (0.0, 0.25, 0.0, 0.0)

KEY_CAPTIONS = {
    BACKSPACE: "⌫",
    ENTER: "↵",
    SHIFT: "Shift",
    SPACE: "Space",
}


class KeyState(Enum):
    IDLE = "idle"
    TARGET = "target"
    PRESSED = "pressed"
    WRONG = "wrong"


def key_for_char(char: str) -> Optional[str]:
    """Key on the visual keyboard that produces *char*, if any."""
    if not char:
        return None
    if char == "\n":
        return ENTER
    if char == " ":
        return SPACE
    lowered = char.lower()
    if len(lowered) == 1 and "a" <= lowered <= "z":
        return lowered
    return None


def key_for_pressed(pressed: Optional[str]) -> Optional[str]:
    """Key on the visual keyboard matching a pressed key name."""
    if not pressed:
        return None
    if pressed in (BACKSPACE, ENTER, SPACE, SHIFT):
        return pressed
    return key_for_char(pressed)


def key_state(key: str, current_char: str, pressed_key: Optional[str], is_error: bool) -> KeyState:
    """Highlight for *key* given the expected character and the last key pressed.

    The expected key wins over everything else. The last pressed key shows as
    wrong while the current position is in error and as pressed otherwise.
    """
    if key == key_for_char(current_char):
        return KeyState.TARGET
    if key == key_for_pressed(pressed_key):
        return KeyState.WRONG if is_error else KeyState.PRESSED
    return KeyState.IDLE


def keyboard_states(current_char: str, pressed_key: Optional[str], is_error: bool) -> dict[str, KeyState]:
    return {
        key: key_state(key, current_char, pressed_key, is_error)
        for row in KEYBOARD_ROWS
        for key, _ in row
    }
