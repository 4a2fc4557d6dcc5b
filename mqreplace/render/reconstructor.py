"""Match reconstructor: map a combined-pattern match back to its own pair."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from mqreplace.patterns.models import TableEntry
from mqreplace.render.models import MatchData, Span
from mqreplace.utils.errors import InternalInconsistency


def reconstruct(combined_match: Any, table: Sequence[TableEntry]) -> tuple[TableEntry, MatchData]:
    """Select the matching entry and rebuild its match data.

    The first entry in table order whose base group participated wins, even if
    a later base group also reports a span. Groups that did not participate stay
    ``None`` rather than becoming empty spans.

    Args:
        combined_match: ``re.Match`` (or compatible) for the combined pattern.
        table: Entries in priority order.

    Raises:
        InternalInconsistency: No base group participated.
    """

    for entry in table:
        if combined_match.span(entry.base)[0] != -1:
            break
    else:
        raise InternalInconsistency(
            "Combined match did not participate in any table entry; "
            "pattern and table are out of sync"
        )

    spans: list[Span | None] = [None] * (entry.max_group + 1)
    spans[0] = combined_match.span(entry.base)
    for offset, original in enumerate(entry.group_ids, start=1):
        start, end = combined_match.span(entry.base + offset)
        if start != -1:
            spans[original] = (start, end)

    data = MatchData(string=combined_match.string, spans=tuple(spans), names=entry.group_names)
    return entry, data
