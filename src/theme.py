"""ANSI styling for the board view.

Colour is on when stdout is a terminal (or FORCE_COLOR is set) and
NO_COLOR is unset. 24-bit escapes are used when COLORTERM advertises
them, otherwise the nearest xterm-256 cube entry.

Palette keys (one per bucket, plus primary and the star colour) may be
overridden from the environment or the project .env file.
"""
from __future__ import annotations
import os, sys
from typing import Dict, Mapping, Optional

from config import read_dotenv, truthy

PALETTE_DEFAULTS = {
    'KANBAN_PRIMARY': '#476EAE',
    'KANBAN_NEW': '#48B3AF',
    'KANBAN_WORKING': '#F6FF99',
    'KANBAN_COMPLETE': '#A7E399',
    'KANBAN_IMPORTANT': '#F2A93B',
}

_HEX_DIGITS = frozenset('0123456789abcdefABCDEF')


def color_mode(environ: Optional[Mapping[str, str]] = None, isatty: Optional[bool] = None) -> str:
    """Return 'off', '256' or 'truecolor'."""
    env = os.environ if environ is None else environ
    tty = sys.stdout.isatty() if isatty is None else isatty
    if 'NO_COLOR' in env:
        return 'off'
    if not (tty or truthy(env.get('FORCE_COLOR'), default=False)):
        return 'off'
    colorterm = env.get('COLORTERM', '').lower()
    return 'truecolor' if 'truecolor' in colorterm or '24bit' in colorterm else '256'


def hex_escape(hex_code: str, mode: str) -> str:
    """Foreground escape for ``#RRGGBB`` in the given mode."""
    if mode == 'off':
        return ''
    h = hex_code.lstrip('#')
    r, g, b = (int(h[i:i + 2], 16) for i in (0, 2, 4))
    if mode == 'truecolor':
        return f"\033[38;2;{r};{g};{b}m"
    r6, g6, b6 = (int(round(c / 255 * 5)) for c in (r, g, b))
    return f"\033[38;5;{16 + 36 * r6 + 6 * g6 + b6}m"


def resolve_palette(environ: Optional[Mapping[str, str]] = None,
                    dotenv: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Environment beats .env beats default; malformed values are ignored."""
    env = os.environ if environ is None else environ
    file_values = read_dotenv() if dotenv is None else dotenv
    palette = {}
    for key, default in PALETTE_DEFAULTS.items():
        palette[key] = default
        for candidate in (env.get(key), file_values.get(key)):
            h = (candidate or '').lstrip('#')
            if len(h) == 6 and set(h) <= _HEX_DIGITS:
                palette[key] = '#' + h
                break
    return palette


MODE = color_mode()
PALETTE = resolve_palette()


def _sgr(code: str) -> str:
    return f"\033[{code}m" if MODE != 'off' else ''


RESET = _sgr('0')
BOLD = _sgr('1')
DIM = _sgr('2')

PRIMARY = hex_escape(PALETTE['KANBAN_PRIMARY'], MODE)
BUCKET_COLOR = {
    bucket: hex_escape(PALETTE['KANBAN_' + bucket.upper()], MODE)
    for bucket in ('new', 'working', 'complete')
}
HEADER_COLOR = PRIMARY
ID_COLOR = PRIMARY + BOLD
EMPTY_COLOR = DIM + PRIMARY
IMPORTANT_COLOR = hex_escape(PALETTE['KANBAN_IMPORTANT'], MODE) + BOLD


def color(text: str, *styles: str) -> str:
    if MODE == 'off':
        return text
    return ''.join(styles) + text + RESET
