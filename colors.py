"""Tag color palette and foreground contrast helpers."""

from __future__ import annotations

# Preset tag colors; the first entry is used when upgrading legacy string tags.
PRESET_COLORS: tuple[str, ...] = (
    "#3b82f6",
    "#ef4444",
    "#10b981",
    "#f59e0b",
    "#8b5cf6",
    "#ec4899",
    "#14b8a6",
    "#64748b",
)

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

DARK_FOREGROUND = "#171717"
LIGHT_FOREGROUND = "#ffffff"


def _parse_hex(color: str) -> tuple[int, int, int]:
    s = color.strip().lstrip("#")
    if len(s) == 3:
        s = "".join(ch * 2 for ch in s)
    if len(s) != 6:
        raise ValueError(f"not a 3- or 6-digit hex color: {color!r}")
    # int() raises ValueError on non-hex digits
    return int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16)


def is_hex_color(color: object) -> bool:
    """Return True for ``#rgb`` or ``#rrggbb`` strings (``#`` optional)."""
    if not isinstance(color, str):
        return False
    s = color.strip().lstrip("#")
    return len(s) in (3, 6) and all(ch in _HEX_DIGITS for ch in s)


def contrast_of(color: str) -> str:
    """Return a near-black or white foreground readable on *color*.

    Accepts ``#rgb`` or ``#rrggbb`` (the ``#`` is optional). Malformed input
    raises :class:`ValueError`.
    """
    r, g, b = _parse_hex(color)
    luma = 0.299 * r + 0.587 * g + 0.114 * b
    return DARK_FOREGROUND if luma >= 128 else LIGHT_FOREGROUND
