from __future__ import annotations

import json
from pathlib import Path

import pytest

from apps.cli.io import read_input_text, write_report_atomic, write_text_atomic
from mqreplace.render.models import ReplaceLogEntry, ReplaceReport, ReplaceSummary


def _build_report() -> ReplaceReport:
    return ReplaceReport(
        combined_pattern="(a)",
        entries=[
            ReplaceLogEntry(
                status="replaced",
                pair_index=0,
                pattern="a",
                start=0,
                end=1,
                original_text="a",
                new_text="b",
            )
        ],
        summary=ReplaceSummary(
            total_matches=1,
            replaced_count=1,
            skipped_count=0,
            replaced_per_pair=[1],
        ),
    )


def test_write_text_atomic_keeps_line_endings(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "out.txt"

    write_text_atomic(path, "a\r\nb\n")

    assert read_input_text(path) == "a\r\nb\n"
    assert list(path.parent.glob("out.txt.*.tmp")) == []


def test_write_text_atomic_cleans_tmp_on_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "out.txt"

    def broken_replace(self: Path, target: Path) -> Path:
        raise RuntimeError("replace failed")

    monkeypatch.setattr(Path, "replace", broken_replace)

    with pytest.raises(RuntimeError, match="replace failed"):
        write_text_atomic(path, "text")

    assert list(tmp_path.glob("out.txt.*.tmp")) == []
    assert not path.exists()


def test_write_report_atomic_writes_compact_json(tmp_path: Path) -> None:
    path = tmp_path / "report.json"

    write_report_atomic(path, _build_report())

    raw = path.read_text(encoding="utf-8")
    payload = json.loads(raw)
    assert payload["summary"]["replaced_count"] == 1
    assert payload["entries"][0]["new_text"] == "b"
    assert ", " not in raw
