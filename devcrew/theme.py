"""Console colors and icons shared by the CLI and crew rendering."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Palette:
    ACCENT: str
    BORDER: str
    DIM: str
    SUCCESS: str
    WARN: str
    ERROR: str
    INFO: str


PALETTES = {
    "dark": Palette(
        ACCENT="#7FA6D9", BORDER="#30363D", DIM="#6E7681",
        SUCCESS="#57DB9C", WARN="#E3B341", ERROR="#F85149", INFO="#58A6FF",
    ),
    "light": Palette(
        ACCENT="#0969DA", BORDER="#D0D7DE", DIM="#6E7781",
        SUCCESS="#1A7F37", WARN="#9A6700", ERROR="#CF222E", INFO="#0550AE",
    ),
    "no-color": Palette(
        ACCENT="default", BORDER="default", DIM="default",
        SUCCESS="default", WARN="default", ERROR="default", INFO="default",
    ),
}

_active = PALETTES["dark"]
_use_unicode = True

# Unicode → ASCII fallback
_ICON_MAP = {
    "✓": "[OK]",
    "✗": "[X]",
    "▸": ">",
    "⟲": "~",
    "○": "o",
    "●": "*",
    "⚠": "!",
    "–": "-",
}


def set_theme(name: str) -> bool:
    global _active
    if name not in PALETTES:
        return False
    _active = PALETTES[name]
    return True


def get_theme() -> Palette:
    return _active


def set_use_unicode(enabled: bool) -> None:
    global _use_unicode
    _use_unicode = enabled


def get_icon(unicode_icon: str) -> str:
    if _use_unicode:
        return unicode_icon
    return _ICON_MAP.get(unicode_icon, unicode_icon)
