"""Exceptions raised by the replace engine."""

from __future__ import annotations


class PatternSyntaxError(ValueError):
    """Raised when a pair's pattern cannot be parsed or compiled."""

    def __init__(
        self,
        message: str,
        *,
        pattern: str | None = None,
        position: int | None = None,
        pair_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.pattern = pattern
        self.position = position
        self.pair_index = pair_index


class TemplateSyntaxError(ValueError):
    """Raised when a replacement template is malformed or references unknown groups."""

    def __init__(
        self,
        message: str,
        *,
        template: str | None = None,
        pair_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.template = template
        self.pair_index = pair_index


class InternalInconsistency(RuntimeError):
    """Raised when a combined match cannot be attributed to any table entry."""
