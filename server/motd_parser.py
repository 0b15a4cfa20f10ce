"""Legacy MOTD parser.

Turns a flat string with ``§`` formatting codes into a tree of sections:

  "§aHello§rWorld" -> Section[Section(green)[Text("Hello")], Text("World")]

Colors open a nested section, styles are added to the current section and
``§r`` closes the current section (it is ignored at the root).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Union

from motd_codes import MARKER, Directive, DirectiveKind, lookup

logger = logging.getLogger(__name__)

SENTINEL = "\0"
NEWLINE = "\n"
MAX_DEPTH = 128
# Each nesting level costs two stack frames; keep well under the interpreter limit.
HARD_MAX_DEPTH = 256


class MotdError(Exception):
    """Base class for MOTD parsing errors."""


class UnrecognizedDirectiveError(MotdError, ValueError):
    def __init__(self, position: int, code: str) -> None:
        self.position = position
        self.code = code
        shown = repr(code) if code else "end of input"
        super().__init__(f"Unrecognized formatting code {shown} at position {position}")


class NestingDepthError(MotdError, ValueError):
    def __init__(self, position: int, max_depth: int) -> None:
        self.position = position
        self.max_depth = max_depth
        super().__init__(f"Color nesting deeper than {max_depth} at position {position}")


@dataclass(frozen=True)
class UnrecognizedDirective:
    """A marker that was kept as literal text. ``code`` is "" at end of input."""

    position: int
    code: str


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Newline:
    pass


@dataclass
class Section:
    formatting: list[Directive] = field(default_factory=list)
    children: list[Content] = field(default_factory=list)
    depth: int = 0

    def make_child(self, color: Directive) -> Section:
        return Section(formatting=[color], depth=self.depth + 1)


Content = Union[Section, Text, Newline]


@dataclass
class Document:
    root: Section
    warnings: list[UnrecognizedDirective] = field(default_factory=list)


class Cursor:
    """Forward-only scanner; reads past the end return SENTINEL."""

    __slots__ = ("_src", "position")

    def __init__(self, src: str) -> None:
        self._src = src
        self.position = 0

    def peek(self, offset: int = 0) -> str:
        index = self.position + offset
        if 0 <= index < len(self._src):
            return self._src[index]
        return SENTINEL

    def current(self) -> str:
        return self.peek(0)

    def advance(self) -> str:
        current = self.current()
        self.position += 1
        return current


class MotdParser:
    """Recursive-descent parser over a single input string.

    An unrecognized code (or a marker at the very end) keeps only the marker
    as literal text and scans the following character as ordinary input, so
    ``"§z1"`` becomes ``Text("§z1")`` and ``"§§a"`` keeps a green scope. A
    run that starts with a kept marker joins a preceding Text in the same
    section: ``"A§r§zB"`` gives ``[Text("A§zB")]``. With ``strict=True`` it
    raises UnrecognizedDirectiveError instead.
    """

    def __init__(self, src: str, *, max_depth: int = MAX_DEPTH, strict: bool = False) -> None:
        if not isinstance(src, str):
            raise TypeError(f"MOTD must be a legacy-encoded str, got {type(src).__name__}")
        if not 0 <= max_depth <= HARD_MAX_DEPTH:
            raise ValueError(f"max_depth must be between 0 and {HARD_MAX_DEPTH}, got {max_depth}")
        self._cursor = Cursor(src)
        self._max_depth = max_depth
        self._strict = strict
        self._warnings: list[UnrecognizedDirective] = []

    def parse(self) -> Document:
        root = self._parse_scope(Section())
        return Document(root=root, warnings=self._warnings)

    def _parse_scope(self, section: Section) -> Section:
        cursor = self._cursor
        while True:
            current = cursor.current()
            if current == SENTINEL:
                return section
            if current == NEWLINE:
                cursor.advance()
                section.children.append(Newline())
                continue
            if current == MARKER:
                directive = lookup(cursor.peek(1))
                if directive is not None:
                    position = cursor.position
                    cursor.advance()
                    cursor.advance()
                    if self._apply(section, directive, position):
                        return section
                    continue
                # Unrecognized code: the kept marker continues the previous run.
                text = self._consume_text()
                if section.children and isinstance(section.children[-1], Text):
                    section.children[-1] = Text(section.children[-1].text + text)
                    continue
            else:
                text = self._consume_text()
            section.children.append(Text(text))

    def _apply(self, section: Section, directive: Directive, position: int) -> bool:
        """Apply one directive to ``section``; True means the scope is closed."""
        kind = directive.kind
        if kind is DirectiveKind.COLOR:
            if section.depth + 1 > self._max_depth:
                raise NestingDepthError(position, self._max_depth)
            section.children.append(self._parse_scope(section.make_child(directive)))
            return False
        if kind is DirectiveKind.STYLE:
            section.formatting.append(directive)
            return False
        # Reset: closes any scope but the root.
        return section.depth > 0

    def _consume_text(self) -> str:
        cursor = self._cursor
        chars: list[str] = []
        while True:
            current = cursor.current()
            if current in (SENTINEL, NEWLINE):
                break
            if current == MARKER:
                code = cursor.peek(1)
                if lookup(code) is not None:
                    break
                self._unrecognized(cursor.position, "" if code == SENTINEL else code)
            chars.append(cursor.advance())
        return "".join(chars)

    def _unrecognized(self, position: int, code: str) -> None:
        if self._strict:
            raise UnrecognizedDirectiveError(position, code)
        logger.debug("Keeping unrecognized formatting code %r at %d as text", code, position)
        self._warnings.append(UnrecognizedDirective(position=position, code=code))


def parse(src: str, *, max_depth: int = MAX_DEPTH, strict: bool = False) -> Document:
    """Parse a legacy-encoded MOTD into a Document."""
    return MotdParser(src, max_depth=max_depth, strict=strict).parse()
