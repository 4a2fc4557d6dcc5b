"""Replacement template parsing and expansion.

Templates use ``re.sub`` syntax (``\\1``, ``\\g<1>``, ``\\g<name>``, ``\\n`` ...)
plus the next-stop marker ``\\?``, which expands to nothing and records its
offset so the scan driver can pause there for an interactive edit.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, NoReturn, Union

from mqreplace.utils.errors import TemplateSyntaxError

if TYPE_CHECKING:
    from mqreplace.render.models import MatchData

NEXT_STOP = "\\?"

CaseAction = Literal["none", "upcase", "capitalize"]

_DIGITS = frozenset("0123456789")
_OCTDIGITS = frozenset("01234567")
_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
}


@dataclass(frozen=True)
class TemplateLiteral:
    text: str


@dataclass(frozen=True)
class TemplateGroup:
    index: int


@dataclass(frozen=True)
class TemplateStop:
    pass


TemplateItem = Union[TemplateLiteral, TemplateGroup, TemplateStop]


@dataclass(frozen=True)
class ParsedTemplate:
    """Template split into literals, group references and next-stop markers."""

    source: str
    items: tuple[TemplateItem, ...]


@dataclass(frozen=True)
class Expansion:
    """Expanded replacement text and the offsets of its next-stop markers."""

    text: str
    stops: tuple[int, ...] = ()


def parse_template(
    source: str,
    *,
    max_group: int,
    group_names: Mapping[str, int] | None = None,
) -> ParsedTemplate:
    """Parse and validate a template against the groups its pattern declares.

    Raises:
        TemplateSyntaxError: Bad escape or reference beyond ``max_group``.
    """

    names = group_names or {}
    items: list[TemplateItem] = []
    literal: list[str] = []
    index = 0

    def fail(message: str) -> NoReturn:
        raise TemplateSyntaxError(f"{message} in template {source!r}", template=source)

    def flush() -> None:
        if literal:
            items.append(TemplateLiteral("".join(literal)))
            literal.clear()

    def add_group(group: int) -> None:
        if group > max_group:
            fail(f"invalid group reference {group}")
        flush()
        items.append(TemplateGroup(group))

    while index < len(source):
        char = source[index]
        if char != "\\":
            literal.append(char)
            index += 1
            continue

        if index + 1 >= len(source):
            fail("bad escape (end of template)")
        code = source[index + 1]
        index += 2

        if code == "?":
            flush()
            items.append(TemplateStop())
        elif code == "g":
            if index >= len(source) or source[index] != "<":
                fail("missing <")
            end = source.find(">", index)
            if end == -1:
                fail("missing >, unterminated name")
            name = source[index + 1 : end]
            index = end + 1
            if not name:
                fail("missing group name")
            if name.isdigit():
                add_group(int(name))
            elif name in names:
                add_group(names[name])
            elif name.isidentifier():
                fail(f"unknown group name {name!r}")
            else:
                fail(f"bad character in group name {name!r}")
        elif code == "0":
            digits = code
            while len(digits) < 3 and index < len(source) and source[index] in _OCTDIGITS:
                digits += source[index]
                index += 1
            literal.append(chr(int(digits, 8)))
        elif code in _DIGITS:
            digits = code
            if index < len(source) and source[index] in _DIGITS:
                digits += source[index]
                index += 1
                if (
                    digits[0] in _OCTDIGITS
                    and digits[1] in _OCTDIGITS
                    and index < len(source)
                    and source[index] in _OCTDIGITS
                ):
                    digits += source[index]
                    index += 1
                    value = int(digits, 8)
                    if value > 0o377:
                        fail(f"octal escape value \\{digits} outside of range 0-0o377")
                    literal.append(chr(value))
                    continue
            add_group(int(digits))
        elif code in _ESCAPES:
            literal.append(_ESCAPES[code])
        elif code.isascii() and code.isalpha():
            fail(f"bad escape \\{code}")
        else:
            literal.append("\\" + code)

    flush()
    return ParsedTemplate(source=source, items=tuple(items))


def expand_template(
    template: ParsedTemplate,
    data: MatchData,
    *,
    preserve_case: bool = False,
) -> Expansion:
    """Expand ``template`` against explicit match data.

    Unparticipated groups expand to the empty string. With ``preserve_case`` the
    case action derived from the matched text is applied to the expanded result.
    """

    pieces: list[str | None] = []
    for item in template.items:
        if isinstance(item, TemplateLiteral):
            pieces.append(item.text)
        elif isinstance(item, TemplateGroup):
            text = data.group(item.index) if item.index <= data.max_group else None
            pieces.append(text if isinstance(text, str) else "")
        else:
            pieces.append(None)

    action = case_action(data.group(0) or "") if preserve_case else "none"
    return _join_with_case(pieces, action)


def case_action(matched: str) -> CaseAction:
    """Decide how to adapt replacement case to the case of the matched text."""

    some_multiletter_word = False
    some_lowercase = False
    some_uppercase = False
    some_nonuppercase_initial = False
    previous_is_word = False

    for char in matched:
        if char.islower():
            some_lowercase = True
            if previous_is_word:
                some_multiletter_word = True
            else:
                some_nonuppercase_initial = True
        elif char.isupper():
            some_uppercase = True
            if previous_is_word:
                some_multiletter_word = True
        elif not previous_is_word and char.isalnum():
            some_nonuppercase_initial = True
        previous_is_word = char.isalnum()

    if not some_lowercase and some_multiletter_word:
        return "upcase"
    if not some_nonuppercase_initial and some_multiletter_word:
        return "capitalize"
    if not some_nonuppercase_initial and some_uppercase:
        return "upcase"
    return "none"


def escape_replacement(text: str) -> str:
    """Escape text so a template expansion pass reproduces it verbatim."""

    return text.replace("\\", "\\\\")


def escape_expansion(expansion: Expansion) -> str:
    """Escape expanded text, re-inserting live next-stop markers at their offsets."""

    parts: list[str] = []
    cursor = 0
    for stop in expansion.stops:
        parts.append(escape_replacement(expansion.text[cursor:stop]))
        parts.append(NEXT_STOP)
        cursor = stop
    parts.append(escape_replacement(expansion.text[cursor:]))
    return "".join(parts)


def _join_with_case(pieces: list[str | None], action: CaseAction) -> Expansion:
    chunks: list[str] = []
    stops: list[int] = []
    position = 0
    previous_is_word = False

    for piece in pieces:
        if piece is None:
            stops.append(position)
            continue
        if action == "upcase":
            piece = piece.upper()
        elif action == "capitalize":
            converted: list[str] = []
            for char in piece:
                converted.append(char if previous_is_word else char.upper())
                previous_is_word = char.isalnum()
            piece = "".join(converted)
        chunks.append(piece)
        position += len(piece)

    return Expansion(text="".join(chunks), stops=tuple(stops))
