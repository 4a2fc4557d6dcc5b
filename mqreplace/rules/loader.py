"""Rules loading utilities: YAML rules files to validated pairs."""

from __future__ import annotations

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from mqreplace.patterns.models import (
    DynamicReplacement,
    LiteralReplacement,
    Pair,
    ReplacementSpec,
    TemplateReplacement,
)
from mqreplace.rules.callbacks import get_callback
from mqreplace.rules.models import PairSpec, RuleSet


def load_rules(path: Path) -> RuleSet:
    """Load and validate a rules file from YAML."""

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Rules file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in rules file: {path}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"Rules file must contain a mapping: {path}")

    try:
        return RuleSet.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid rules schema: {path}: {exc}") from exc


def build_pairs(specs: list[PairSpec], *, regex: bool) -> list[Pair]:
    """Resolve pair specs into engine pairs; unknown callbacks raise ValueError."""

    return [Pair(from_=spec.from_, to=_replacement_for(spec, regex=regex)) for spec in specs]


def _replacement_for(spec: PairSpec, *, regex: bool) -> ReplacementSpec:
    if spec.callback is not None:
        return DynamicReplacement(callback=get_callback(spec.callback), context=dict(spec.context))
    if spec.to is None:
        raise ValueError(f"Pair {spec.from_!r} needs either to or callback")
    if regex and not spec.literal:
        return TemplateReplacement(spec.to)
    return LiteralReplacement(spec.to)
