"""Scan driver: walk the text once and apply or offer each replacement.

Matches are always searched in the original text while output is assembled
separately, so inserted text is never matched again.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal, Protocol

from mqreplace.orchestrator.replacer import Candidate, MultiReplacer
from mqreplace.render.context import describe
from mqreplace.render.models import ReplaceLogEntry, ReplaceOutput, ReplaceReport, ReplaceSummary
from mqreplace.render.template import Expansion, expand_template, parse_template
from mqreplace.rules.models import ReplaceOptions
from mqreplace.utils.logs import log_event

logger = logging.getLogger("mqreplace.scan")

Decision = Literal["replace", "skip", "replace_all", "quit"]
_DECISIONS = frozenset({"replace", "skip", "replace_all", "quit"})


@dataclass(frozen=True)
class Proposal:
    """One match offered to a confirmer."""

    pair_index: int
    pattern: str
    start: int
    end: int
    original_text: str
    new_text: str
    stops: tuple[int, ...]
    occurrence_count: int
    status: str


class Confirmer(Protocol):
    """Strategy deciding what happens to each match."""

    def decide(self, proposal: Proposal) -> Decision:
        """Return replace, skip, replace_all or quit."""

    def edit(self, proposal: Proposal) -> str:
        """Return final text for a replacement that contains next-stop markers."""


class AcceptAll:
    """Replace every match without asking; next-stop markers are dropped."""

    def decide(self, proposal: Proposal) -> Decision:
        return "replace"

    def edit(self, proposal: Proposal) -> str:
        return proposal.new_text


def perform_replace(
    text: str,
    replacer: MultiReplacer,
    options: ReplaceOptions | None = None,
    confirmer: Confirmer | None = None,
) -> ReplaceOutput:
    """Scan ``text`` once with the replacer's combined pattern.

    Returns:
        ReplaceOutput with the new text and a report in original-text offsets.
    """

    options = options or replacer.options
    confirmer = confirmer or AcceptAll()
    region_start, region_end = _region(text, options)

    if options.backward:
        matches = _iter_backward(replacer.pattern, text, region_start, region_end)
    else:
        matches = _iter_forward(replacer.pattern, text, region_start, region_end)

    entries: list[ReplaceLogEntry] = []
    applied: list[tuple[int, int, str]] = []
    replaced_per_pair = [0] * len(replacer.table)
    replaced_count = 0
    skipped_count = 0
    replace_all = False
    quit_early = False

    log_event(
        logger,
        logging.DEBUG,
        "start",
        combined_pattern=replacer.source,
        region=[region_start, region_end],
        backward=options.backward,
    )

    for match in matches:
        candidate = replacer.candidate(match, replaced_count)
        expansion = _driver_expand(candidate, options)
        proposal = Proposal(
            pair_index=candidate.pair_index,
            pattern=candidate.entry.from_,
            start=match.start(),
            end=match.end(),
            original_text=match.group(0),
            new_text=expansion.text,
            stops=expansion.stops,
            occurrence_count=replaced_count,
            status=describe(),
        )

        decision: str = "replace" if replace_all else confirmer.decide(proposal)
        if decision not in _DECISIONS:
            raise ValueError(f"Unsupported confirmation decision: {decision}")
        log_event(
            logger,
            logging.DEBUG,
            "match",
            status=proposal.status,
            pair_index=proposal.pair_index,
            start=proposal.start,
            end=proposal.end,
            decision=decision,
        )

        if decision == "quit":
            quit_early = True
            break
        if decision == "skip":
            skipped_count += 1
            entries.append(_log_entry(proposal, "skipped", None))
            continue
        if decision == "replace_all":
            replace_all = True

        new_text = confirmer.edit(proposal) if expansion.stops else expansion.text
        replaced_count += 1
        replaced_per_pair[proposal.pair_index] += 1
        applied.append((proposal.start, proposal.end, new_text))
        entries.append(_log_entry(proposal, "replaced", new_text))

    if options.backward:
        applied.reverse()

    summary = ReplaceSummary(
        total_matches=replaced_count + skipped_count,
        replaced_count=replaced_count,
        skipped_count=skipped_count,
        quit_early=quit_early,
        replaced_per_pair=replaced_per_pair,
    )
    log_event(logger, logging.DEBUG, "done", **summary.model_dump(mode="json"))

    return ReplaceOutput(
        text=_assemble(text, applied),
        report=ReplaceReport(
            combined_pattern=replacer.source,
            entries=entries,
            summary=summary,
        ),
    )


def _region(text: str, options: ReplaceOptions) -> tuple[int, int]:
    start = options.start if options.start is not None else 0
    end = options.end if options.end is not None else len(text)
    if end > len(text):
        raise ValueError(f"Region end {end} is past the end of the text ({len(text)})")
    return start, end


def _iter_forward(pattern: re.Pattern[str], text: str, start: int, end: int) -> Iterator[re.Match[str]]:
    position = start
    while position <= end:
        match = pattern.search(text, position, end)
        if match is None:
            return
        yield match
        position = match.end() + 1 if match.end() == match.start() else match.end()


def _iter_backward(pattern: re.Pattern[str], text: str, start: int, end: int) -> Iterator[re.Match[str]]:
    # A match must end at or before the start of the previous one; a longer
    # match that would overlap is rejected rather than shortened.
    limit = end
    position = end
    while position >= start:
        match = pattern.match(text, position, end)
        if match is not None and match.end() <= limit:
            yield match
            limit = match.start()
            position = match.start() - 1 if match.end() == match.start() else match.start()
            continue
        position -= 1


def _driver_expand(candidate: Candidate, options: ReplaceOptions) -> Expansion:
    template = parse_template(
        candidate.text,
        max_group=candidate.data.max_group,
        group_names=candidate.data.names,
    )
    return expand_template(template, candidate.data, preserve_case=options.case_preserving)


def _assemble(text: str, applied: list[tuple[int, int, str]]) -> str:
    pieces: list[str] = []
    cursor = 0
    for start, end, new_text in applied:
        pieces.append(text[cursor:start])
        pieces.append(new_text)
        cursor = end
    pieces.append(text[cursor:])
    return "".join(pieces)


def _log_entry(proposal: Proposal, status: Literal["replaced", "skipped"], new_text: str | None) -> ReplaceLogEntry:
    return ReplaceLogEntry(
        status=status,
        pair_index=proposal.pair_index,
        pattern=proposal.pattern,
        start=proposal.start,
        end=proposal.end,
        original_text=proposal.original_text,
        new_text=new_text,
    )
