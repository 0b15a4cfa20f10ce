"""Renderers for parsed MOTD documents.

- ``render``: nested ``<span style="...">`` HTML, one span per section.
- ``render_runs``: compact runs per line for the watch client,
  [[{"t": "hello", "fg": "#55FF55", "b": true}, ...], ...]
- ``render_plain``: text with every formatting code removed.
"""

from __future__ import annotations

import html
from typing import Any, Iterable

from motd_codes import COLOR_HEX, OBFUSCATED_HEX, Directive
from motd_parser import Document, Newline, Section, Text

_STYLE_DECLARATIONS = {
    Directive.BOLD: "font-weight: bold",
    Directive.ITALIC: "font-style: italic",
}

_TEXT_DECORATIONS = {
    Directive.UNDERLINE: "underline",
    Directive.STRIKETHROUGH: "line-through",
}

_RUN_FLAGS = {
    Directive.BOLD: "b",
    Directive.ITALIC: "i",
    Directive.UNDERLINE: "u",
    Directive.STRIKETHROUGH: "s",
    Directive.OBFUSCATED: "k",
}


def directive_to_style(formatting: Iterable[Directive]) -> str:
    """Build a CSS declaration list for a section's own formatting."""
    color = ""
    decorations: list[str] = []
    styles: list[str] = []
    for directive in formatting:
        assert directive is not Directive.RESET, "reset is never stored in formatting"
        if directive in COLOR_HEX:
            color = COLOR_HEX[directive]
        elif directive is Directive.OBFUSCATED:
            color = OBFUSCATED_HEX
        elif directive in _STYLE_DECLARATIONS:
            styles.append(_STYLE_DECLARATIONS[directive])
        else:
            decorations.append(_TEXT_DECORATIONS[directive])
    if decorations:
        styles.append(f"text-decoration: {' '.join(decorations)}")
    if color:
        styles.append(f"color: {color}")
    return "; ".join(styles)


def render_section(section: Section) -> str:
    parts = ["<span"]
    if section.formatting:
        parts.append(f' style="{directive_to_style(section.formatting)}"')
    parts.append(">")
    for child in section.children:
        if isinstance(child, Section):
            parts.append(render_section(child))
        elif isinstance(child, Text):
            parts.append(html.escape(child.text))
        else:
            parts.append("<br/>")
    parts.append("</span>")
    return "".join(parts)


def render(document: Document) -> str:
    """Render a document as nested HTML spans."""
    return render_section(document.root)


class _RunState:
    __slots__ = ("fg", "flags")

    def __init__(self, fg: str | None = None, flags: frozenset[str] = frozenset()) -> None:
        self.fg = fg
        self.flags = flags

    def enter(self, section: Section) -> _RunState:
        fg = self.fg
        flags = set(self.flags)
        for directive in section.formatting:
            if directive in COLOR_HEX:
                fg = COLOR_HEX[directive]
            elif directive in _RUN_FLAGS:
                flags.add(_RUN_FLAGS[directive])
        return _RunState(fg, frozenset(flags))

    def to_run(self, text: str) -> dict[str, Any]:
        """Build a compact run dict, omitting falsy fields."""
        run: dict[str, Any] = {"t": text}
        if self.fg:
            run["fg"] = self.fg
        for flag in ("b", "i", "u", "s", "k"):
            if flag in self.flags:
                run[flag] = True
        return run


def _collect_runs(section: Section, state: _RunState, lines: list[list[dict[str, Any]]]) -> None:
    state = state.enter(section)
    for child in section.children:
        if isinstance(child, Section):
            _collect_runs(child, state, lines)
        elif isinstance(child, Newline):
            lines.append([])
        else:
            lines[-1].append(state.to_run(child.text))


def render_runs(document: Document) -> list[list[dict[str, Any]]]:
    """Flatten a document into lines of styled runs.

    Each run carries the color and styles inherited from every enclosing
    section, with the innermost color winning.
    """
    lines: list[list[dict[str, Any]]] = [[]]
    _collect_runs(document.root, _RunState(), lines)
    return lines


def _plain_parts(section: Section) -> Iterable[str]:
    for child in section.children:
        if isinstance(child, Section):
            yield from _plain_parts(child)
        elif isinstance(child, Text):
            yield child.text
        else:
            yield "\n"


def render_plain(document: Document) -> str:
    return "".join(_plain_parts(document.root))
