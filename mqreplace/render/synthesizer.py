"""Replacement synthesizer: produce driver-safe replacement text for one match."""

from __future__ import annotations

from mqreplace.patterns.models import (
    DynamicReplacement,
    LiteralReplacement,
    TableEntry,
    TemplateReplacement,
)
from mqreplace.render.context import activate_match, note_active_from
from mqreplace.render.models import MatchData
from mqreplace.render.template import (
    escape_expansion,
    escape_replacement,
    expand_template,
    parse_template,
)


def synthesize(
    entry: TableEntry,
    data: MatchData,
    occurrence_count: int,
    *,
    preserve_case: bool = False,
) -> str:
    """Return replacement text for the scan driver's own expansion pass.

    Literal text comes back fully escaped. Templates are expanded once here and
    re-escaped, keeping only next-stop markers live. Dynamic callbacks run with
    ``data`` as the active match and their result is returned as is.
    """

    note_active_from(entry.from_)
    replacement = entry.to

    if isinstance(replacement, LiteralReplacement):
        return escape_replacement(replacement.text)

    if isinstance(replacement, TemplateReplacement):
        template = entry.template or parse_template(
            replacement.source,
            max_group=entry.max_group,
            group_names=entry.group_names,
        )
        expansion = expand_template(template, data, preserve_case=preserve_case)
        return escape_expansion(expansion)

    if isinstance(replacement, DynamicReplacement):
        with activate_match(data):
            result = replacement.callback(replacement.context, occurrence_count)
        if not isinstance(result, str):
            raise TypeError(
                f"Replacement callback for {entry.from_!r} returned "
                f"{type(result).__name__}, expected str"
            )
        return result

    raise TypeError(f"Unsupported replacement: {replacement!r}")
