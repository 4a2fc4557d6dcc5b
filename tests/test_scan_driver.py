from __future__ import annotations

import logging

import pytest

from mqreplace.orchestrator.pipeline import run_replace
from mqreplace.orchestrator.replacer import MultiReplacer
from mqreplace.orchestrator.scan import AcceptAll, Decision, Proposal, perform_replace
from mqreplace.patterns.models import make_pairs
from mqreplace.rules.models import ReplaceOptions


class _ScriptedConfirmer:
    def __init__(self, decisions: list[Decision], edits: list[str] | None = None) -> None:
        self.decisions = list(decisions)
        self.edits = list(edits or [])
        self.proposals: list[Proposal] = []
        self.edited: list[Proposal] = []

    def decide(self, proposal: Proposal) -> Decision:
        self.proposals.append(proposal)
        return self.decisions.pop(0)

    def edit(self, proposal: Proposal) -> str:
        self.edited.append(proposal)
        return self.edits.pop(0)


def _run(text: str, raw_pairs: list[tuple[str, object]], confirmer=None, **options: object):
    replace_options = ReplaceOptions.model_validate(options)
    pairs = make_pairs(raw_pairs, regex=replace_options.regex)
    return run_replace(text, pairs, replace_options, confirmer)


def test_forward_and_backward_scans_differ_on_overlap() -> None:
    assert _run("aaa", [("aa", "X")]).text == "Xa"
    assert _run("aaa", [("aa", "X")], backward=True).text == "aX"


def test_backward_scan_replaces_all_non_overlapping_matches() -> None:
    output = _run("cat dog cat", [("cat", "C"), ("dog", "D")], backward=True)

    assert output.text == "C D C"
    assert [entry.start for entry in output.report.entries] == [8, 4, 0]


def test_region_bounds_the_scan() -> None:
    output = _run("cat cat cat", [("cat", "dog")], start=4, end=7)

    assert output.text == "cat dog cat"
    assert output.report.summary.replaced_count == 1


def test_match_never_extends_past_region_end() -> None:
    assert _run("catalog", [("catalog", "X"), ("cat", "Y")], end=3).text == "Yalog"


def test_region_end_past_text_raises() -> None:
    with pytest.raises(ValueError, match="past the end"):
        _run("abc", [("a", "b")], end=10)


def test_start_after_end_is_rejected_by_options() -> None:
    with pytest.raises(ValueError):
        ReplaceOptions(start=5, end=2)


def test_empty_match_advances_one_character() -> None:
    output = _run("ab", [("x?", "-")], regex=True)

    assert output.text == "-a-b-"
    assert output.report.summary.total_matches == 3


def test_backward_scan_with_empty_matches_terminates() -> None:
    output = _run("ab", [("x?", "-")], regex=True, backward=True)

    assert output.text == "-a-b-"


def test_skip_and_quit_decisions() -> None:
    confirmer = _ScriptedConfirmer(["skip", "replace", "quit"])

    output = _run("a a a a", [("a", "b")], confirmer)

    assert output.text == "a b a a"
    summary = output.report.summary
    assert summary.replaced_count == 1
    assert summary.skipped_count == 1
    assert summary.quit_early is True
    assert [entry.status for entry in output.report.entries] == ["skipped", "replaced"]
    assert output.report.entries[0].new_text is None


def test_replace_all_stops_asking() -> None:
    confirmer = _ScriptedConfirmer(["replace_all"])

    output = _run("a a a", [("a", "b")], confirmer)

    assert output.text == "b b b"
    assert len(confirmer.proposals) == 1


def test_occurrence_count_counts_replacements_only() -> None:
    seen: list[int] = []

    def record(context: object, occurrence_count: int) -> str:
        seen.append(occurrence_count)
        return str(occurrence_count)

    confirmer = _ScriptedConfirmer(["skip", "replace", "replace"])

    output = _run("n n n", [("n", record)], confirmer)

    assert seen == [0, 0, 1]
    assert output.text == "n 0 1"


def test_proposal_carries_status_and_offsets() -> None:
    confirmer = _ScriptedConfirmer(["replace", "replace"])

    _run("cat dog", [("cat", "dog"), ("dog", "cat")], confirmer)

    first, second = confirmer.proposals
    assert first.status == "Replacing string 'cat'"
    assert second.status == "Replacing string 'dog'"
    assert (first.start, first.end, first.original_text, first.new_text) == (0, 3, "cat", "dog")
    assert second.pair_index == 1


def test_next_stop_is_handed_to_confirmer_edit() -> None:
    confirmer = _ScriptedConfirmer(["replace", "skip"], edits=["<edited>"])

    output = _run("x x", [("x", r"<\?>")], confirmer, regex=True)

    assert output.text == "<edited> x"
    assert len(confirmer.edited) == 1
    assert confirmer.edited[0].stops == (1,)
    assert confirmer.edited[0].new_text == "<>"


def test_accept_all_drops_next_stop_markers() -> None:
    assert _run("x", [("x", r"a\?b")], regex=True).text == "ab"


def test_dynamic_output_is_expanded_by_driver() -> None:
    output = _run("ab", [("a(b)", lambda context, count: r"\1-\1")], regex=True)

    assert output.text == "b-b"


def test_unknown_decision_raises() -> None:
    confirmer = _ScriptedConfirmer(["maybe"])  # type: ignore[list-item]

    with pytest.raises(ValueError, match="Unsupported confirmation decision"):
        _run("a", [("a", "b")], confirmer)


def test_report_offsets_refer_to_original_text() -> None:
    output = _run("cat dog", [("cat", "lion"), ("dog", "ox")])

    assert output.text == "lion ox"
    spans = [(entry.start, entry.end, entry.new_text) for entry in output.report.entries]
    assert spans == [(0, 3, "lion"), (4, 7, "ox")]
    assert output.report.summary.replaced_per_pair == [1, 1]
    assert output.report.combined_pattern == "(cat)|(dog)"


def test_perform_replace_uses_replacer_options() -> None:
    pairs = make_pairs([("a", "b")], regex=False)
    replacer = MultiReplacer(pairs)

    output = perform_replace("aa", replacer, confirmer=AcceptAll())

    assert output.text == "bb"


def test_scan_logs_structured_events(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="mqreplace.scan")

    _run("a", [("a", "b")])

    messages = [record.message for record in caplog.records if record.name == "mqreplace.scan"]
    assert any('"event":"start"' in message for message in messages)
    assert any('"event":"match"' in message and '"decision":"replace"' in message for message in messages)
    assert any('"event":"done"' in message and '"replaced_count":1' in message for message in messages)
