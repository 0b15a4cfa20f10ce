"""Legacy MOTD formatting codes.

A directive is written as the section sign followed by one case-sensitive
character, e.g. ``§a`` (green) or ``§l`` (bold). Colors open a new scope,
styles modify the current one, and ``§r`` closes the current scope.
"""

from __future__ import annotations

from enum import Enum

MARKER = "§"


class DirectiveKind(Enum):
    COLOR = "color"
    STYLE = "style"
    RESET = "reset"


class Directive(Enum):
    BLACK = "0"
    DARK_BLUE = "1"
    DARK_GREEN = "2"
    DARK_AQUA = "3"
    DARK_RED = "4"
    DARK_PURPLE = "5"
    GOLD = "6"
    GRAY = "7"
    DARK_GRAY = "8"
    BLUE = "9"
    GREEN = "a"
    AQUA = "b"
    RED = "c"
    LIGHT_PURPLE = "d"
    YELLOW = "e"
    WHITE = "f"
    OBFUSCATED = "k"
    BOLD = "l"
    STRIKETHROUGH = "m"
    UNDERLINE = "n"
    ITALIC = "o"
    RESET = "r"

    @property
    def code(self) -> str:
        return self.value

    @property
    def kind(self) -> DirectiveKind:
        if self is Directive.RESET:
            return DirectiveKind.RESET
        if self in _STYLES:
            return DirectiveKind.STYLE
        return DirectiveKind.COLOR


_STYLES = frozenset({
    Directive.OBFUSCATED,
    Directive.BOLD,
    Directive.STRIKETHROUGH,
    Directive.UNDERLINE,
    Directive.ITALIC,
})

_REGISTRY: dict[str, Directive] = {d.value: d for d in Directive}

COLOR_HEX: dict[Directive, str] = {
    Directive.BLACK: "#000000",
    Directive.DARK_BLUE: "#0000AA",
    Directive.DARK_GREEN: "#00AA00",
    Directive.DARK_AQUA: "#00AAAA",
    Directive.DARK_RED: "#AA0000",
    Directive.DARK_PURPLE: "#AA00AA",
    Directive.GOLD: "#FFAA00",
    Directive.GRAY: "#AAAAAA",
    Directive.DARK_GRAY: "#555555",
    Directive.BLUE: "#5555FF",
    Directive.GREEN: "#55FF55",
    Directive.AQUA: "#55FFFF",
    Directive.RED: "#FF5555",
    Directive.LIGHT_PURPLE: "#FF55FF",
    Directive.YELLOW: "#FFFF55",
    Directive.WHITE: "#FFFFFF",
}

# Stand-in color for obfuscated text; glyph scrambling is not rendered.
OBFUSCATED_HEX = "#293E0B"


def lookup(code: str) -> Directive | None:
    """Return the directive for a single code character, or None."""
    return _REGISTRY.get(code)


def color_by_name(name: str) -> Directive | None:
    """Map a structured-text color name ("dark_green") to its directive."""
    try:
        directive = Directive[name.upper()]
    except KeyError:
        return None
    if directive.kind is not DirectiveKind.COLOR:
        return None
    return directive
