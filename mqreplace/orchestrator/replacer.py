"""Multi-pattern replacer: the combined pattern plus its per-match callback."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from mqreplace.patterns.combiner import combine
from mqreplace.patterns.models import CombinedPattern, NormalizedPattern, Pair, TableEntry
from mqreplace.patterns.normalizer import normalize
from mqreplace.render.models import MatchData
from mqreplace.render.reconstructor import reconstruct
from mqreplace.render.synthesizer import synthesize
from mqreplace.rules.models import ReplaceOptions
from mqreplace.utils.errors import PatternSyntaxError


@dataclass(frozen=True)
class Candidate:
    """Replacement proposed for one match, before the driver's expansion pass."""

    pair_index: int
    entry: TableEntry
    data: MatchData
    text: str


class MultiReplacer:
    """Single-pass replacer for an ordered list of pairs.

    ``pattern`` is handed to a scan driver; calling the instance with a match
    of that pattern returns the driver-safe replacement text.
    """

    def __init__(self, pairs: Sequence[Pair], options: ReplaceOptions | None = None) -> None:
        self.options = options or ReplaceOptions()
        flags = self.options.flags()
        normalized: list[tuple[Pair, NormalizedPattern]] = []
        for pair_index, pair in enumerate(pairs):
            try:
                normalized.append((pair, normalize(pair.from_, self.options.regex, flags)))
            except PatternSyntaxError as exc:
                exc.pair_index = pair_index
                raise
        self.combined: CombinedPattern = combine(
            normalized, flags=flags, delimited=self.options.delimited
        )
        self._index_by_base = {entry.base: index for index, entry in enumerate(self.combined.table)}

    @property
    def pattern(self) -> re.Pattern[str]:
        return self.combined.regex

    @property
    def source(self) -> str:
        return self.combined.source

    @property
    def table(self) -> tuple[TableEntry, ...]:
        return self.combined.table

    def candidate(self, combined_match: re.Match[str], occurrence_count: int = 0) -> Candidate:
        entry, data = reconstruct(combined_match, self.combined.table)
        text = synthesize(
            entry,
            data,
            occurrence_count,
            preserve_case=self.options.case_preserving,
        )
        return Candidate(
            pair_index=self._index_by_base[entry.base],
            entry=entry,
            data=data,
            text=text,
        )

    def __call__(self, combined_match: re.Match[str], occurrence_count: int = 0) -> str:
        return self.candidate(combined_match, occurrence_count).text
