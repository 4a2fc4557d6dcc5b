"""Data models for pattern normalization and combination."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from mqreplace.render.template import ParsedTemplate

ReplacementCallback = Callable[[Any, int], str]


@dataclass(frozen=True)
class LiteralReplacement:
    """Replacement text inserted verbatim."""

    text: str


@dataclass(frozen=True)
class TemplateReplacement:
    """Replacement template with group references and next-stop markers."""

    source: str


@dataclass(frozen=True)
class DynamicReplacement:
    """Replacement computed per match by ``callback(context, occurrence_count)``."""

    callback: ReplacementCallback
    context: Any = None


ReplacementSpec = Union[LiteralReplacement, TemplateReplacement, DynamicReplacement]


@dataclass(frozen=True)
class Pair:
    """One (pattern, replacement) rule in priority order."""

    from_: str
    to: ReplacementSpec


def coerce_replacement(value: object, *, regex: bool) -> ReplacementSpec:
    """Turn user input into a replacement variant.

    Plain strings are templates in regex mode and literals otherwise.
    A callable, or a ``(callable, context)`` tuple, becomes a dynamic replacement.
    """

    if isinstance(value, (LiteralReplacement, TemplateReplacement, DynamicReplacement)):
        return value
    if isinstance(value, str):
        return TemplateReplacement(value) if regex else LiteralReplacement(value)
    if callable(value):
        return DynamicReplacement(callback=value)
    if isinstance(value, tuple) and len(value) == 2 and callable(value[0]):
        return DynamicReplacement(callback=value[0], context=value[1])
    raise TypeError(f"Unsupported replacement value: {value!r}")


def make_pairs(raw_pairs: list[tuple[str, object]], *, regex: bool) -> list[Pair]:
    """Build pairs from ``(from, to)`` tuples."""

    return [Pair(from_=source, to=coerce_replacement(to, regex=regex)) for source, to in raw_pairs]


@dataclass(frozen=True)
class Chunk:
    """Pattern text copied through unchanged."""

    text: str


@dataclass(frozen=True)
class Capture:
    """A capturing group; ``original_id`` is the number user templates refer to."""

    original_id: int
    children: tuple[Node, ...]
    name: str | None = None


@dataclass(frozen=True)
class Construct:
    """A non-capturing parenthesized construct such as ``(?:``, ``(?=`` or ``(?i:``."""

    opener: str
    children: tuple[Node, ...]


@dataclass(frozen=True)
class Backref:
    """An in-pattern back-reference to an original group number."""

    original_id: int


@dataclass(frozen=True)
class Conditional:
    """``(?(id)yes|no)`` keyed by an original group number."""

    original_id: int
    children: tuple[Node, ...]


Node = Union[Chunk, Capture, Construct, Backref, Conditional]


@dataclass(frozen=True)
class NormalizedPattern:
    """A pattern rewritten to flat capturing groups.

    ``group_ids[k - 1]`` is the original group number held by flat group ``k``.
    ``ref_targets`` maps an original number to the flat group that back-references
    resolve to (the last group declared with that number).
    """

    nodes: tuple[Node, ...]
    group_ids: tuple[int, ...] = ()
    group_names: Mapping[str, int] = field(default_factory=dict)
    ref_targets: Mapping[int, int] = field(default_factory=dict)
    scoped_flags: str = ""
    verbose: bool = False

    @property
    def rewritten_source(self) -> str:
        return self.render(0)

    def render(self, offset: int = 0) -> str:
        """Render the pattern as if its groups started after group ``offset``."""

        renderer = _Renderer(offset=offset, ref_targets=self.ref_targets)
        body = renderer.render(self.nodes)
        if self.verbose:
            body += "\n"
        if self.scoped_flags:
            return f"(?{self.scoped_flags}:{body})"
        return body


@dataclass(frozen=True)
class TableEntry:
    """One pair placed in the combined pattern; ``base`` wraps the whole sub-pattern."""

    base: int
    from_: str
    to: ReplacementSpec
    rewritten_source: str
    group_ids: tuple[int, ...]
    group_names: Mapping[str, int] = field(default_factory=dict)
    template: ParsedTemplate | None = None

    @property
    def max_group(self) -> int:
        return max(self.group_ids, default=0)


@dataclass(frozen=True)
class CombinedPattern:
    """The alternation of all pairs plus its group table."""

    source: str
    table: tuple[TableEntry, ...]
    regex: Any
    group_count: int


@dataclass
class _Renderer:
    offset: int
    ref_targets: Mapping[int, int]
    _flat: int = 0

    def render(self, nodes: tuple[Node, ...]) -> str:
        return "".join(self._render_node(node) for node in nodes)

    def _render_node(self, node: Node) -> str:
        if isinstance(node, Chunk):
            return node.text
        if isinstance(node, Capture):
            self._flat += 1
            flat = self._flat
            inner = self.render(node.children)
            if self.ref_targets and flat in self.ref_targets.values():
                return f"(?P<{self._group_name(flat)}>{inner})"
            return f"({inner})"
        if isinstance(node, Construct):
            return f"{node.opener}{self.render(node.children)})"
        if isinstance(node, Backref):
            return f"(?P={self._group_name(self.ref_targets[node.original_id])})"
        if isinstance(node, Conditional):
            target = self._group_name(self.ref_targets[node.original_id])
            return f"(?({target}){self.render(node.children)})"
        raise TypeError(f"Unknown pattern node: {node!r}")

    def _group_name(self, flat: int) -> str:
        # Referenced groups are named so references past group 99 stay expressible.
        return f"_mqr{self.offset + flat}"
