from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from apps.cli.main import app

runner = CliRunner()


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_cli_run_writes_output_and_report(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "cat dog\n")
    out = tmp_path / "out" / "result.txt"
    report = tmp_path / "out" / "report.json"

    result = runner.invoke(
        app,
        [
            "run",
            "--input",
            str(source),
            "--from",
            "cat",
            "--to",
            "dog",
            "--from",
            "dog",
            "--to",
            "cat",
            "--out",
            str(out),
            "--report-file",
            str(report),
        ],
    )

    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8") == "dog cat\n"
    payload = json.loads(report.read_text(encoding="utf-8"))
    assert payload["summary"]["replaced_count"] == 2
    assert payload["combined_pattern"] == "(cat)|(dog)"
    assert "replace_summary:" in result.output
    assert list(out.parent.glob("*.tmp")) == []


def test_cli_run_prints_text_without_out(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "ab")

    result = runner.invoke(
        app,
        [
            "run",
            "--input",
            str(source),
            "--regex",
            "--from",
            "a(b)",
            "--to",
            r"\1\1",
            "--report",
            "none",
        ],
    )

    assert result.exit_code == 0, result.output
    assert result.output.startswith("bb")


def test_cli_run_with_rules_file(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "n: Cat, n: CAT")
    rules = _write(
        tmp_path / "rules.yaml",
        """
regex: true
ignore_case: true
preserve_case: true
pairs:
  - {from: "cat", to: "dog"}
  - {from: "n", callback: counter, context: {start: 1}}
""",
    )
    out = tmp_path / "out.txt"

    result = runner.invoke(
        app,
        ["run", "--input", str(source), "--rules", str(rules), "--out", str(out)],
    )

    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8") == "1: Dog, 3: DOG"


def test_cli_run_json_report(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "a a")
    out = tmp_path / "out.txt"

    result = runner.invoke(
        app,
        [
            "run",
            "--input",
            str(source),
            "--from",
            "a",
            "--to",
            "b",
            "--out",
            str(out),
            "--report",
            "json",
        ],
    )

    assert result.exit_code == 0, result.output
    assert '"replaced_count":2' in result.output


def test_cli_run_invalid_pattern_returns_2(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "text")

    result = runner.invoke(
        app,
        ["run", "--input", str(source), "--regex", "--from", "(a", "--to", "x"],
    )

    assert result.exit_code == 2
    assert "ERROR: pair #0:" in result.output


def test_cli_run_invalid_template_returns_2(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "text")

    result = runner.invoke(
        app,
        ["run", "--input", str(source), "--regex", "--from", "a", "--to", r"\3"],
    )

    assert result.exit_code == 2
    assert "invalid group reference 3" in result.output


def test_cli_run_mismatched_pairs_returns_3(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "text")

    result = runner.invoke(
        app,
        ["run", "--input", str(source), "--from", "a", "--from", "b", "--to", "x"],
    )

    assert result.exit_code == 3
    assert "--from and --to" in result.output


def test_cli_run_requires_pairs(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "text")

    result = runner.invoke(app, ["run", "--input", str(source)])

    assert result.exit_code == 3


def test_cli_run_unknown_callback_returns_3(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "text")
    rules = _write(tmp_path / "rules.yaml", "pairs:\n  - {from: t, callback: shout}\n")

    result = runner.invoke(app, ["run", "--input", str(source), "--rules", str(rules)])

    assert result.exit_code == 3
    assert "Unsupported callback: shout" in result.output


def test_cli_run_missing_rules_file_returns_3(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "text")

    result = runner.invoke(
        app, ["run", "--input", str(source), "--rules", str(tmp_path / "absent.yaml")]
    )

    assert result.exit_code == 3
    assert "Rules file not found" in result.output


def test_cli_run_invalid_report_mode_returns_3(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "text")

    result = runner.invoke(
        app,
        ["run", "--input", str(source), "--from", "a", "--to", "b", "--report", "xml"],
    )

    assert result.exit_code == 3


def test_cli_run_region_and_backward(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "aaaa aaa")
    out = tmp_path / "out.txt"

    result = runner.invoke(
        app,
        [
            "run",
            "--input",
            str(source),
            "--from",
            "aa",
            "--to",
            "X",
            "--start",
            "5",
            "--backward",
            "--out",
            str(out),
        ],
    )

    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8") == "aaaa aX"


def test_cli_run_confirm_prompts_per_match(tmp_path: Path) -> None:
    source = _write(tmp_path / "in.txt", "cat cat cat")
    out = tmp_path / "out.txt"

    result = runner.invoke(
        app,
        [
            "run",
            "--input",
            str(source),
            "--from",
            "cat",
            "--to",
            "dog",
            "--confirm",
            "--out",
            str(out),
        ],
        input="n\ny\nq\n",
    )

    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8") == "cat dog cat"
    assert "Replacing string 'cat'" in result.output


def test_cli_check_prints_group_table(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["check", "--regex", "--from", "x", "--to", "y", "--from", r"(a)\1", "--to", r"\1"],
    )

    assert result.exit_code == 0, result.output
    assert "combined_pattern: (x)|((?P<_mqr3>a)(?P=_mqr3))" in result.output
    assert "#1 base=2 groups=1 kind=template" in result.output


def test_cli_check_invalid_pattern_returns_2() -> None:
    result = runner.invoke(app, ["check", "--regex", "--from", "a{2,1}", "--to", "x"])

    assert result.exit_code == 2
