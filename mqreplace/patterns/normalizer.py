"""Pattern normalizer: rewrite one pattern into flat, renumbered capturing groups.

The accepted dialect is Python ``re`` syntax plus explicitly numbered groups
written ``(?N:...)``. Groups without an explicit number (anonymous and named)
get one more than the highest number assigned so far, in order of opening.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import NoReturn

from mqreplace.patterns.models import (
    Backref,
    Capture,
    Chunk,
    Conditional,
    Construct,
    Node,
    NormalizedPattern,
)
from mqreplace.utils.errors import PatternSyntaxError

_DIGITS = frozenset("0123456789")
_OCTDIGITS = frozenset("01234567")
_FLAG_CHARS = frozenset("aiLmsux")
_SCOPED_OFF_FLAGS = frozenset("imsx")
_WHITESPACE = frozenset(" \t\n\r\v\f")


def normalize(pattern_source: str, is_regex: bool, flags: int = 0) -> NormalizedPattern:
    """Normalize one pair's pattern.

    Args:
        pattern_source: Literal text or regular expression source.
        is_regex: When False the source is escaped and has no groups.
        flags: ``re`` flags the combined pattern will be compiled with.

    Returns:
        NormalizedPattern whose flat group ``k`` holds original group ``group_ids[k-1]``.

    Raises:
        PatternSyntaxError: The pattern is empty, cannot be parsed, or fails to compile.
    """

    if not pattern_source:
        raise PatternSyntaxError("empty pattern", pattern=pattern_source, position=0)

    if not is_regex:
        return NormalizedPattern(nodes=(Chunk(re.escape(pattern_source)),))

    parser = _Parser(pattern_source, verbose=bool(flags & re.VERBOSE))
    nodes = parser.parse()
    state = parser.state

    ref_targets: dict[int, int] = {}
    for flat, original in enumerate(state.group_ids, start=1):
        if original in state.referenced:
            ref_targets[original] = flat

    normalized = NormalizedPattern(
        nodes=nodes,
        group_ids=tuple(state.group_ids),
        group_names=dict(state.names),
        ref_targets=ref_targets,
        scoped_flags=state.global_flags,
        verbose=parser.verbose,
    )
    _check_compiles(normalized, pattern_source, flags)
    return normalized


def _check_compiles(normalized: NormalizedPattern, pattern_source: str, flags: int) -> None:
    try:
        compiled = re.compile(normalized.rewritten_source, flags)
    except re.error as exc:
        raise PatternSyntaxError(
            f"invalid pattern {pattern_source!r}: {exc}",
            pattern=pattern_source,
            position=exc.pos,
        ) from exc

    if compiled.groups != len(normalized.group_ids):
        raise PatternSyntaxError(
            f"pattern {pattern_source!r} produced {compiled.groups} groups, "
            f"expected {len(normalized.group_ids)}",
            pattern=pattern_source,
        )


@dataclass
class _ParseState:
    group_ids: list[int] = field(default_factory=list)
    names: dict[str, int] = field(default_factory=dict)
    declared: set[int] = field(default_factory=set)
    referenced: set[int] = field(default_factory=set)
    max_id: int = 0
    global_flags: str = ""

    def open_group(self, explicit: int | None, name: str | None) -> int:
        original = explicit if explicit is not None else self.max_id + 1
        self.max_id = max(self.max_id, original)
        self.group_ids.append(original)
        self.declared.add(original)
        if name is not None:
            self.names[name] = original
        return original


class _Parser:
    def __init__(self, source: str, *, verbose: bool) -> None:
        self.source = source
        self.index = 0
        self.verbose = verbose
        self.state = _ParseState()

    def parse(self) -> tuple[Node, ...]:
        self._parse_global_flags()
        nodes = self._parse_sequence()
        if self.index < len(self.source):
            self._fail("unbalanced parenthesis")
        return nodes

    def _fail(self, message: str, position: int | None = None) -> NoReturn:
        where = self.index if position is None else position
        raise PatternSyntaxError(
            f"{message} at position {where} in {self.source!r}",
            pattern=self.source,
            position=where,
        )

    def _peek(self, offset: int = 0) -> str:
        position = self.index + offset
        return self.source[position] if position < len(self.source) else ""

    def _parse_global_flags(self) -> None:
        flags = ""
        while self.source.startswith("(?", self.index):
            end = self.index + 2
            while end < len(self.source) and self.source[end] in _FLAG_CHARS:
                end += 1
            if end == self.index + 2 or self._peek(end - self.index) != ")":
                break
            flags += self.source[self.index + 2 : end]
            self.index = end + 1
        if "x" in flags:
            self.verbose = True
        self.state.global_flags = "".join(dict.fromkeys(flags))

    def _parse_sequence(self) -> tuple[Node, ...]:
        nodes: list[Node] = []
        text: list[str] = []

        def flush() -> None:
            if text:
                nodes.append(Chunk("".join(text)))
                text.clear()

        while self.index < len(self.source):
            char = self.source[self.index]
            if char == ")":
                break
            if self.verbose and char in _WHITESPACE:
                text.append(char)
                self.index += 1
            elif self.verbose and char == "#":
                end = self.source.find("\n", self.index)
                end = len(self.source) if end == -1 else end
                text.append(self.source[self.index : end])
                self.index = end
            elif char == "\\":
                node = self._parse_escape()
                if isinstance(node, Chunk):
                    text.append(node.text)
                else:
                    flush()
                    nodes.append(node)
            elif char == "[":
                text.append(self._parse_class())
            elif char == "(":
                flush()
                nodes.append(self._parse_group())
            else:
                text.append(char)
                self.index += 1

        flush()
        return tuple(nodes)

    def _parse_escape(self) -> Node:
        start = self.index
        if start + 1 >= len(self.source):
            self._fail("bad escape (end of pattern)", start)
        char = self.source[start + 1]
        self.index = start + 2

        if char == "0":
            for _ in range(2):
                if self._peek() in _OCTDIGITS and self._peek():
                    self.index += 1
            return Chunk(self.source[start : self.index])

        if char in _DIGITS:
            digits = char
            if self._peek() and self._peek() in _DIGITS:
                if (
                    char in _OCTDIGITS
                    and self._peek() in _OCTDIGITS
                    and self._peek(1)
                    and self._peek(1) in _OCTDIGITS
                ):
                    self.index += 2
                    return Chunk(self.source[start : self.index])
                digits += self._peek()
                self.index += 1
            return self._reference(int(digits), start)

        return Chunk(self.source[start : self.index])

    def _parse_class(self) -> str:
        start = self.index
        self.index += 1
        if self._peek() == "^":
            self.index += 1
        if self._peek() == "]":
            self.index += 1
        while self.index < len(self.source):
            char = self.source[self.index]
            if char == "\\":
                self.index += 2
                continue
            self.index += 1
            if char == "]":
                return self.source[start : self.index]
        self._fail("unterminated character set", start)

    def _parse_group(self) -> Node:
        start = self.index
        self.index += 1
        if self._peek() != "?":
            original = self.state.open_group(None, None)
            return Capture(original_id=original, children=self._parse_children(start))

        self.index += 1
        char = self._peek()

        if char in {":", "=", "!", ">"}:
            self.index += 1
            return Construct(opener=self.source[start : self.index], children=self._parse_children(start))

        if char == "<" and self._peek(1) in {"=", "!"}:
            self.index += 2
            return Construct(opener=self.source[start : self.index], children=self._parse_children(start))

        if char == "#":
            end = self.source.find(")", self.index)
            if end == -1:
                self._fail("missing ), unterminated comment", start)
            self.index = end + 1
            return Chunk(self.source[start : self.index])

        if char == "P":
            return self._parse_p_group(start)

        if char == "(":
            self.index += 1
            ref = self._read_until(")", "missing ), unterminated name")
            original = self._resolve_reference_token(ref, start)
            return Conditional(original_id=original, children=self._parse_children(start))

        if char and char in _DIGITS:
            digits = self._read_while(_DIGITS)
            if self._peek() != ":":
                self._fail("expected ':' after explicit group number", self.index)
            self.index += 1
            number = int(digits)
            if number <= 0:
                self._fail("explicit group number must be positive", start)
            original = self.state.open_group(number, None)
            return Capture(original_id=original, children=self._parse_children(start))

        if char and (char in _FLAG_CHARS or char == "-"):
            on_flags = self._read_while(_FLAG_CHARS)
            off_flags = ""
            if self._peek() == "-":
                self.index += 1
                off_flags = self._read_while(_SCOPED_OFF_FLAGS)
                if not off_flags:
                    self._fail("missing flag after '-'", self.index)
            if self._peek() == ")":
                self._fail("global flags not at the start of the expression", start)
            if self._peek() != ":":
                self._fail("unknown flag", self.index)
            self.index += 1
            opener = f"(?{on_flags}{'-' + off_flags if off_flags else ''}:"
            outer_verbose = self.verbose
            if "x" in on_flags:
                self.verbose = True
            if "x" in off_flags:
                self.verbose = False
            children = self._parse_children(start)
            self.verbose = outer_verbose
            return Construct(opener=opener, children=children)

        self._fail(f"unknown extension ?{char}", start)

    def _parse_p_group(self, start: int) -> Node:
        self.index += 1
        marker = self._peek()
        if marker == "<":
            self.index += 1
            name = self._read_until(">", "missing >, unterminated name")
            if not name.isidentifier():
                self._fail(f"bad character in group name {name!r}", start)
            original = self.state.open_group(None, name)
            return Capture(original_id=original, children=self._parse_children(start), name=name)
        if marker == "=":
            self.index += 1
            name = self._read_until(")", "missing ), unterminated name")
            if name not in self.state.names:
                self._fail(f"unknown group name {name!r}", start)
            return self._reference(self.state.names[name], start)
        self._fail("unknown extension ?P" + marker, start)

    def _parse_children(self, start: int) -> tuple[Node, ...]:
        children = self._parse_sequence()
        if self._peek() != ")":
            self._fail("missing ), unterminated subpattern", start)
        self.index += 1
        return children

    def _resolve_reference_token(self, token: str, start: int) -> int:
        if token.isdigit():
            original = int(token)
        elif token in self.state.names:
            original = self.state.names[token]
        else:
            self._fail(f"unknown group reference {token!r}", start)
        if original not in self.state.declared:
            self._fail(f"invalid group reference {original}", start)
        self.state.referenced.add(original)
        return original

    def _reference(self, original: int, start: int) -> Backref:
        if original not in self.state.declared:
            self._fail(f"invalid group reference {original}", start)
        self.state.referenced.add(original)
        return Backref(original_id=original)

    def _read_until(self, terminator: str, message: str) -> str:
        end = self.source.find(terminator, self.index)
        if end == -1:
            self._fail(message, self.index)
        token = self.source[self.index : end]
        self.index = end + 1
        return token

    def _read_while(self, charset: frozenset[str]) -> str:
        start = self.index
        while self.index < len(self.source) and self.source[self.index] in charset:
            self.index += 1
        return self.source[start : self.index]
