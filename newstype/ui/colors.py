"""Theme colors and color utilities for the UI."""


class ThemeColors:
    """Light theme palette."""

    BG = "#f5f7fa"
    SURFACE = "#ffffff"
    SURFACE_MUTED = "#eef1f5"
    BORDER = "#d5dbe3"

    PRIMARY = "#1f4e8c"
    PRIMARY_LIGHT = "#5b84c4"
    PRIMARY_FG = "#ffffff"

    TEXT_PRIMARY = "#1b2430"
    TEXT_SECONDARY = "#4a5668"
    TEXT_MUTED = "#8a94a3"

    SUCCESS = "#22a559"
    SUCCESS_BG = "#e9f8ef"
    SUCCESS_BORDER = "#b7e4c7"

    ERROR = "#dc2626"
    ERROR_BG = "#fecaca"
    ERROR_BORDER = "#fca5a5"

    CURRENT_BG = "#dde3ea"
    STREAK = "#f59e0b"

    KEY_IDLE = "#e4e8ee"
    KEY_BORDER = "#c3cad4"


def blend_hex(a: str, b: str, t: float) -> str:
    """Blend two #RRGGBB colors. t=0 -> a, t=1 -> b."""
    a = a.strip()
    b = b.strip()
    if not (a.startswith("#") and b.startswith("#") and len(a) == 7 and len(b) == 7):
        return a
    try:
        ar, ag, ab = int(a[1:3], 16), int(a[3:5], 16), int(a[5:7], 16)
        br, bg, bb = int(b[1:3], 16), int(b[3:5], 16), int(b[5:7], 16)
    except ValueError:
        return a
    t = max(0.0, min(1.0, float(t)))
    r = int(ar + (br - ar) * t)
    g = int(ag + (bg - ag) * t)
    bl = int(ab + (bb - ab) * t)
    return f"#{r:02X}{g:02X}{bl:02X}"
