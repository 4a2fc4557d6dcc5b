"""Pattern combiner: merge normalized patterns into one prioritized alternation."""

from __future__ import annotations

import re
from collections.abc import Sequence

from mqreplace.patterns.models import (
    CombinedPattern,
    NormalizedPattern,
    Pair,
    TableEntry,
    TemplateReplacement,
)
from mqreplace.render.template import ParsedTemplate, parse_template
from mqreplace.utils.errors import PatternSyntaxError, TemplateSyntaxError


def combine(
    entries: Sequence[tuple[Pair, NormalizedPattern]],
    *,
    flags: int = 0,
    delimited: bool = False,
) -> CombinedPattern:
    """Build ``(p1)|(p2)|...`` with disjoint group ranges.

    Pair ``i`` gets base group ``base_i``; its own groups occupy
    ``base_i + 1 .. base_i + len(group_ids_i)``. Table order is input order,
    which is also priority order.

    Raises:
        ValueError: ``entries`` is empty.
        TemplateSyntaxError: A template references a group its pattern lacks.
        PatternSyntaxError: The combined source fails to compile.
    """

    if not entries:
        raise ValueError("At least one pair is required")

    counter = 1
    alternatives: list[str] = []
    table: list[TableEntry] = []

    for pair_index, (pair, normalized) in enumerate(entries):
        base = counter
        rendered = normalized.render(base)
        alternatives.append(f"({rendered})")
        table.append(
            TableEntry(
                base=base,
                from_=pair.from_,
                to=pair.to,
                rewritten_source=normalized.rewritten_source,
                group_ids=normalized.group_ids,
                group_names=dict(normalized.group_names),
                template=_parse_entry_template(pair, normalized, pair_index),
            )
        )
        counter += 1 + len(normalized.group_ids)

    source = "|".join(alternatives)
    if delimited:
        source = rf"\b(?:{source})\b"

    try:
        compiled = re.compile(source, flags)
    except re.error as exc:
        raise PatternSyntaxError(f"combined pattern failed to compile: {exc}", pattern=source) from exc

    if compiled.groups != counter - 1:
        raise PatternSyntaxError(
            f"combined pattern has {compiled.groups} groups, expected {counter - 1}",
            pattern=source,
        )

    return CombinedPattern(source=source, table=tuple(table), regex=compiled, group_count=counter - 1)


def group_ranges(table: Sequence[TableEntry]) -> list[range]:
    """Return the combined-pattern group range owned by each entry."""

    return [range(entry.base, entry.base + 1 + len(entry.group_ids)) for entry in table]


def _parse_entry_template(
    pair: Pair, normalized: NormalizedPattern, pair_index: int
) -> ParsedTemplate | None:
    if not isinstance(pair.to, TemplateReplacement):
        return None
    try:
        return parse_template(
            pair.to.source,
            max_group=max(normalized.group_ids, default=0),
            group_names=normalized.group_names,
        )
    except TemplateSyntaxError as exc:
        exc.pair_index = pair_index
        raise
