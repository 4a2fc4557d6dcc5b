from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from mqreplace.patterns.models import DynamicReplacement, LiteralReplacement, TemplateReplacement
from mqreplace.rules.callbacks import counter
from mqreplace.rules.loader import build_pairs, load_rules
from mqreplace.rules.models import PairSpec, RuleSet


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_load_rules_reads_flags_and_pairs(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "rules.yaml",
        """
regex: true
ignore_case: true
pairs:
  - {from: "cat", to: "dog"}
  - {from: "a(b)", to: "\\\\1\\\\1"}
  - {from: "x", to: "1", literal: true}
  - {from: "n", callback: counter, context: {start: 1}}
""",
    )

    rule_set = load_rules(path)

    assert rule_set.regex is True
    assert rule_set.ignore_case is True
    assert [spec.from_ for spec in rule_set.pairs] == ["cat", "a(b)", "x", "n"]
    assert rule_set.pairs[1].to == r"\1\1"
    assert rule_set.pairs[3].context == {"start": 1}


def test_build_pairs_resolves_replacement_kinds() -> None:
    specs = [
        PairSpec.model_validate({"from": "a(b)", "to": r"\1"}),
        PairSpec.model_validate({"from": "x", "to": r"\1", "literal": True}),
        PairSpec.model_validate({"from": "n", "callback": "counter", "context": {"start": 5}}),
    ]

    pairs = build_pairs(specs, regex=True)

    assert pairs[0].to == TemplateReplacement(r"\1")
    assert pairs[1].to == LiteralReplacement(r"\1")
    assert pairs[2].to == DynamicReplacement(callback=counter, context={"start": 5})


def test_build_pairs_without_regex_makes_literals() -> None:
    pairs = build_pairs([PairSpec.model_validate({"from": "a", "to": r"\1"})], regex=False)

    assert pairs[0].to == LiteralReplacement(r"\1")


def test_build_pairs_rejects_unknown_callback() -> None:
    specs = [PairSpec.model_validate({"from": "a", "callback": "nope"})]

    with pytest.raises(ValueError, match="Unsupported callback: nope"):
        build_pairs(specs, regex=True)


def test_build_pairs_rejects_spec_without_target() -> None:
    spec = PairSpec.model_construct(from_="a", to=None, literal=False, callback=None, context={})

    with pytest.raises(ValueError, match="needs either to or callback"):
        build_pairs([spec], regex=True)


def test_load_rules_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Rules file not found"):
        load_rules(tmp_path / "absent.yaml")


def test_load_rules_invalid_yaml(tmp_path: Path) -> None:
    path = _write(tmp_path / "rules.yaml", "pairs: [unclosed")

    with pytest.raises(ValueError, match="Invalid YAML in rules file"):
        load_rules(path)


def test_load_rules_requires_mapping(tmp_path: Path) -> None:
    path = _write(tmp_path / "rules.yaml", "- a\n- b\n")

    with pytest.raises(ValueError, match="must contain a mapping"):
        load_rules(path)


@pytest.mark.parametrize(
    "body",
    [
        "pairs: []\n",
        "pairs:\n  - {from: a}\n",
        "pairs:\n  - {from: a, to: b, callback: counter}\n",
        "pairs:\n  - {from: '', to: b}\n",
        "pairs:\n  - {from: a, to: b}\nunknown_flag: true\n",
    ],
)
def test_load_rules_invalid_schema(tmp_path: Path, body: str) -> None:
    path = _write(tmp_path / "rules.yaml", body)

    with pytest.raises(ValueError, match="Invalid rules schema"):
        load_rules(path)


def test_rule_set_options_apply_overrides() -> None:
    rule_set = RuleSet.model_validate(
        {"regex": True, "delimited": True, "pairs": [{"from": "a", "to": "b"}]}
    )

    options = rule_set.options(delimited=False, ignore_case=None, end=3)

    assert options.regex is True
    assert options.delimited is False
    assert options.ignore_case is False
    assert options.end == 3


def test_rule_set_options_validate_region() -> None:
    rule_set = RuleSet.model_validate({"pairs": [{"from": "a", "to": "b"}]})

    with pytest.raises(ValidationError):
        rule_set.options(start=4, end=1)
