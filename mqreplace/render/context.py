"""Scoped per-call contexts: the active match and the status description."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass

from mqreplace.render.models import MatchData

_ACTIVE_MATCH: ContextVar[MatchData | None] = ContextVar("mqreplace_active_match", default=None)
_DESCRIPTION: ContextVar[DescriptionContext | None] = ContextVar(
    "mqreplace_description", default=None
)


@dataclass
class DescriptionContext:
    """Status-text state for one replace operation."""

    is_regex: bool
    active_from: str | None = None


@contextmanager
def activate_match(data: MatchData) -> Iterator[MatchData]:
    """Make ``data`` the active match for the duration of the block."""

    token = _ACTIVE_MATCH.set(data)
    try:
        yield data
    finally:
        _ACTIVE_MATCH.reset(token)


def current_match() -> MatchData:
    """Return the active match; only valid inside a dynamic replacement callback."""

    data = _ACTIVE_MATCH.get()
    if data is None:
        raise LookupError("No active match; current_match() is only valid inside a replacement callback")
    return data


@contextmanager
def description_scope(is_regex: bool) -> Iterator[DescriptionContext]:
    description = DescriptionContext(is_regex=is_regex)
    token = _DESCRIPTION.set(description)
    try:
        yield description
    finally:
        _DESCRIPTION.reset(token)


def note_active_from(from_: str) -> None:
    description = _DESCRIPTION.get()
    if description is not None:
        description.active_from = from_


def describe(verb: str = "Replacing") -> str:
    """Build status text such as ``Replacing regexp 'a(b)'``."""

    description = _DESCRIPTION.get()
    if description is None:
        return verb
    kind = "regexp" if description.is_regex else "string"
    if description.active_from is None:
        return f"{verb} {kind}"
    return f"{verb} {kind} {description.active_from!r}"
