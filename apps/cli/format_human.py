"""Human-readable summary rendering for CLI output."""

from __future__ import annotations

from collections.abc import Sequence

from mqreplace.patterns.combiner import group_ranges
from mqreplace.patterns.models import DynamicReplacement, LiteralReplacement, TableEntry
from mqreplace.render.models import ReplaceReport


def render_replace_summary(report: ReplaceReport) -> str:
    """Render one-screen human-readable replace summary."""

    summary = report.summary
    lines: list[str] = []
    lines.append("replace_summary:")
    lines.append(
        f"matches={summary.total_matches} replaced={summary.replaced_count} "
        f"skipped={summary.skipped_count}"
    )
    lines.append(f"result={'QUIT' if summary.quit_early else 'DONE'}")

    counts = [
        (index, count) for index, count in enumerate(summary.replaced_per_pair) if count
    ]
    if counts:
        top_items = sorted(counts, key=lambda item: (-item[1], item[0]))[:5]
        lines.append("pairs: " + ", ".join(f"#{index}={count}" for index, count in top_items))
    else:
        lines.append("pairs: none")
    return "\n".join(lines)


def render_group_table(source: str, table: Sequence[TableEntry]) -> str:
    """Render the combined pattern and each pair's group range."""

    lines = [f"combined_pattern: {source}"]
    for index, (entry, owned) in enumerate(zip(table, group_ranges(table))):
        groups = ",".join(str(group) for group in entry.group_ids) or "none"
        lines.append(
            f"#{index} base={entry.base} groups={groups} kind={_kind(entry)} "
            f"span={owned.start}-{owned.stop - 1} "
            f"from={entry.from_!r} rewritten={entry.rewritten_source!r}"
        )
    return "\n".join(lines)


def _kind(entry: TableEntry) -> str:
    if isinstance(entry.to, LiteralReplacement):
        return "literal"
    if isinstance(entry.to, DynamicReplacement):
        return "dynamic"
    return "template"
