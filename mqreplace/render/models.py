"""Match data and replace report models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Span = tuple[int, int]


@dataclass(frozen=True)
class MatchData:
    """Per-match group record indexed by a pattern's original group numbers.

    ``spans[i]`` is ``None`` when group ``i`` did not participate, which is
    distinct from a group that matched the empty string.
    """

    string: str
    spans: tuple[Span | None, ...]
    names: Mapping[str, int] = field(default_factory=dict)

    @property
    def max_group(self) -> int:
        return len(self.spans) - 1

    def _index(self, group: int | str) -> int:
        if isinstance(group, str):
            try:
                return self.names[group]
            except KeyError as exc:
                raise IndexError(f"no such group: {group!r}") from exc
        if group < 0 or group >= len(self.spans):
            raise IndexError(f"no such group: {group}")
        return group

    def participated(self, group: int | str) -> bool:
        return self.spans[self._index(group)] is not None

    def span(self, group: int | str = 0) -> Span:
        span = self.spans[self._index(group)]
        return span if span is not None else (-1, -1)

    def start(self, group: int | str = 0) -> int:
        return self.span(group)[0]

    def end(self, group: int | str = 0) -> int:
        return self.span(group)[1]

    def group(self, *groups: int | str) -> str | None | tuple[str | None, ...]:
        if not groups:
            return self._text(0)
        if len(groups) == 1:
            return self._text(groups[0])
        return tuple(self._text(group) for group in groups)

    def groups(self, default: str | None = None) -> tuple[str | None, ...]:
        return tuple(
            default if text is None else text
            for text in (self._text(index) for index in range(1, len(self.spans)))
        )

    def groupdict(self, default: str | None = None) -> dict[str, str | None]:
        result: dict[str, str | None] = {}
        for name in self.names:
            text = self._text(name)
            result[name] = default if text is None else text
        return result

    def _text(self, group: int | str) -> str | None:
        span = self.spans[self._index(group)]
        if span is None:
            return None
        return self.string[span[0] : span[1]]


class ReplaceLogEntry(BaseModel):
    """Single replaced/skipped match log item, in original-text offsets."""

    model_config = ConfigDict(extra="forbid")

    status: Literal["replaced", "skipped"]
    pair_index: int
    pattern: str
    start: int
    end: int
    original_text: str
    new_text: str | None = None


class ReplaceSummary(BaseModel):
    """Aggregate replacement summary for observability."""

    model_config = ConfigDict(extra="forbid")

    total_matches: int
    replaced_count: int
    skipped_count: int
    quit_early: bool = False
    replaced_per_pair: list[int] = Field(default_factory=list)


class ReplaceReport(BaseModel):
    """Full replacement report including the combined pattern used."""

    model_config = ConfigDict(extra="forbid")

    combined_pattern: str
    entries: list[ReplaceLogEntry] = Field(default_factory=list)
    summary: ReplaceSummary


class ReplaceOutput(BaseModel):
    """In-memory result of one replace operation."""

    model_config = ConfigDict(extra="forbid")

    text: str
    report: ReplaceReport
