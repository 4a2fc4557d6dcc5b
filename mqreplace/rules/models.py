"""Data models for replace options and YAML rule sets."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReplaceOptions(BaseModel):
    """Options for one replace operation.

    ``start``/``end`` bound the searched region in the original text;
    matches never extend past ``end``.
    """

    model_config = ConfigDict(extra="forbid")

    regex: bool = False
    ignore_case: bool = False
    preserve_case: bool = False
    multiline: bool = True
    delimited: bool = False
    start: int | None = Field(default=None, ge=0)
    end: int | None = Field(default=None, ge=0)
    backward: bool = False

    @model_validator(mode="after")
    def _check_region(self) -> ReplaceOptions:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("start must not be greater than end")
        return self

    def flags(self) -> int:
        flags = 0
        if self.ignore_case:
            flags |= re.IGNORECASE
        if self.multiline:
            flags |= re.MULTILINE
        return flags

    @property
    def case_preserving(self) -> bool:
        return self.ignore_case and self.preserve_case


class PairSpec(BaseModel):
    """One rule entry as written in a rules file or API request."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    from_: str = Field(alias="from", min_length=1)
    to: str | None = None
    literal: bool = False
    callback: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_target(self) -> PairSpec:
        if (self.to is None) == (self.callback is None):
            raise ValueError("exactly one of 'to' or 'callback' is required")
        if self.callback is not None and self.literal:
            raise ValueError("'literal' only applies to 'to'")
        return self


class RuleSet(BaseModel):
    """Rules file contents: operation flags plus pairs in priority order."""

    model_config = ConfigDict(extra="forbid")

    regex: bool = False
    ignore_case: bool = False
    preserve_case: bool = False
    multiline: bool = True
    delimited: bool = False
    pairs: list[PairSpec] = Field(min_length=1)

    def options(self, **overrides: Any) -> ReplaceOptions:
        values: dict[str, Any] = {
            "regex": self.regex,
            "ignore_case": self.ignore_case,
            "preserve_case": self.preserve_case,
            "multiline": self.multiline,
            "delimited": self.delimited,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return ReplaceOptions.model_validate(values)
