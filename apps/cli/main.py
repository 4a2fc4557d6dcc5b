"""Typer CLI entrypoint for mqreplace."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal, cast

import typer
from pydantic import ValidationError

from apps.cli.format_human import render_group_table, render_replace_summary
from apps.cli.io import read_input_text, write_report_atomic, write_text_atomic
from mqreplace.orchestrator.pipeline import run_replace
from mqreplace.orchestrator.replacer import MultiReplacer
from mqreplace.orchestrator.scan import Decision, Proposal
from mqreplace.patterns.models import LiteralReplacement, Pair, TemplateReplacement
from mqreplace.rules.loader import build_pairs, load_rules
from mqreplace.rules.models import ReplaceOptions
from mqreplace.utils.errors import PatternSyntaxError, TemplateSyntaxError
from mqreplace.utils.logs import dump_json

app = typer.Typer(help="Multi-pattern single-pass replace CLI", rich_markup_mode=None)
ReportMode = Literal["human", "json", "none"]

_ANSWERS: dict[str, Decision] = {
    "y": "replace",
    "n": "skip",
    "!": "replace_all",
    "q": "quit",
}


class PromptConfirmer:
    """Ask on the terminal before each replacement."""

    def decide(self, proposal: Proposal) -> Decision:
        typer.echo(
            f"{proposal.status}: {proposal.original_text!r} -> {proposal.new_text!r} "
            f"at {proposal.start}",
            err=True,
        )
        while True:
            answer = typer.prompt("Replace? [y]es [n]o [!]all [q]uit", default="y", err=True)
            decision = _ANSWERS.get(answer.strip().lower())
            if decision is not None:
                return decision
            typer.echo("Please answer y, n, ! or q.", err=True)

    def edit(self, proposal: Proposal) -> str:
        stops = ", ".join(str(stop) for stop in proposal.stops)
        typer.echo(f"INFO: edit points at offsets {stops}", err=True)
        return typer.prompt("Replacement", default=proposal.new_text, err=True)


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep `mqr run` as explicit command form."""


@app.command("run")
def run_command(
    input_path: Annotated[
        Path, typer.Option("--input", exists=True, dir_okay=False, file_okay=True)
    ],
    rules: Annotated[
        Path | None, typer.Option("--rules", dir_okay=False, file_okay=True)
    ] = None,
    from_: Annotated[list[str] | None, typer.Option("--from")] = None,
    to: Annotated[list[str] | None, typer.Option("--to")] = None,
    regex: Annotated[bool | None, typer.Option("--regex/--no-regex")] = None,
    ignore_case: Annotated[bool | None, typer.Option("--ignore-case/--match-case")] = None,
    preserve_case: Annotated[bool | None, typer.Option("--preserve-case/--no-preserve-case")] = None,
    delimited: Annotated[bool | None, typer.Option("--delimited/--no-delimited")] = None,
    start: Annotated[int | None, typer.Option("--start")] = None,
    end: Annotated[int | None, typer.Option("--end")] = None,
    backward: Annotated[bool, typer.Option("--backward")] = False,
    confirm: Annotated[
        bool, typer.Option("--confirm", help="Ask before each replacement.")
    ] = False,
    out: Annotated[Path | None, typer.Option("--out")] = None,
    report_file: Annotated[Path | None, typer.Option("--report-file")] = None,
    report: Annotated[str, typer.Option("--report")] = "human",
) -> None:
    """Replace every pair's matches in the input file in a single pass."""

    normalized_report = report.lower().strip()
    if normalized_report not in {"human", "json", "none"}:
        typer.echo("ERROR: --report must be one of: human, json, none.", err=True)
        raise typer.Exit(code=3)
    report_mode = cast(ReportMode, normalized_report)

    exit_code = 1
    try:
        pairs, options = _resolve_pairs_and_options(
            rules=rules,
            from_=from_,
            to=to,
            regex=regex,
            ignore_case=ignore_case,
            preserve_case=preserve_case,
            delimited=delimited,
            start=start,
            end=end,
            backward=backward,
        )
        text = read_input_text(input_path)
        output = run_replace(
            text,
            pairs,
            options,
            confirmer=PromptConfirmer() if confirm else None,
        )

        if out is not None:
            write_text_atomic(out, output.text)
        else:
            typer.echo(output.text, nl=False)
        if report_file is not None:
            write_report_atomic(report_file, output.report)

        if report_mode == "human":
            typer.echo(render_replace_summary(output.report), err=True)
        elif report_mode == "json":
            typer.echo(dump_json(output.report.model_dump(mode="json")), err=True)
        exit_code = 0
    except (PatternSyntaxError, TemplateSyntaxError) as exc:
        exit_code = 2
        typer.echo(f"ERROR: {_describe_syntax_error(exc)}", err=True)
    except ValueError as exc:
        exit_code = 3
        typer.echo(f"ERROR: {exc}", err=True)
    except Exception as exc:  # noqa: BLE001
        exit_code = 1
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}", err=True)

    raise typer.Exit(code=exit_code)


@app.command("check")
def check_command(
    rules: Annotated[
        Path | None, typer.Option("--rules", dir_okay=False, file_okay=True)
    ] = None,
    from_: Annotated[list[str] | None, typer.Option("--from")] = None,
    to: Annotated[list[str] | None, typer.Option("--to")] = None,
    regex: Annotated[bool | None, typer.Option("--regex/--no-regex")] = None,
    ignore_case: Annotated[bool | None, typer.Option("--ignore-case/--match-case")] = None,
    delimited: Annotated[bool | None, typer.Option("--delimited/--no-delimited")] = None,
) -> None:
    """Build the combined pattern and print its group table without scanning."""

    exit_code = 1
    try:
        pairs, options = _resolve_pairs_and_options(
            rules=rules,
            from_=from_,
            to=to,
            regex=regex,
            ignore_case=ignore_case,
            delimited=delimited,
        )
        replacer = MultiReplacer(pairs, options)
        typer.echo(render_group_table(replacer.source, replacer.table))
        exit_code = 0
    except (PatternSyntaxError, TemplateSyntaxError) as exc:
        exit_code = 2
        typer.echo(f"ERROR: {_describe_syntax_error(exc)}", err=True)
    except ValueError as exc:
        exit_code = 3
        typer.echo(f"ERROR: {exc}", err=True)
    except Exception as exc:  # noqa: BLE001
        exit_code = 1
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}", err=True)

    raise typer.Exit(code=exit_code)


def _resolve_pairs_and_options(
    *,
    rules: Path | None,
    from_: list[str] | None,
    to: list[str] | None,
    regex: bool | None = None,
    ignore_case: bool | None = None,
    preserve_case: bool | None = None,
    delimited: bool | None = None,
    start: int | None = None,
    end: int | None = None,
    backward: bool = False,
) -> tuple[list[Pair], ReplaceOptions]:
    froms = from_ or []
    tos = to or []
    if len(froms) != len(tos):
        raise ValueError("--from and --to must be given the same number of times")
    if rules is None and not froms:
        raise ValueError("either --rules or at least one --from/--to pair is required")

    overrides = {
        "regex": regex,
        "ignore_case": ignore_case,
        "preserve_case": preserve_case,
        "delimited": delimited,
        "start": start,
        "end": end,
        "backward": backward,
    }

    pairs: list[Pair] = []
    if rules is not None:
        rule_set = load_rules(rules)
        options = rule_set.options(**overrides)
        pairs.extend(build_pairs(rule_set.pairs, regex=options.regex))
    else:
        try:
            options = ReplaceOptions.model_validate(
                {key: value for key, value in overrides.items() if value is not None}
            )
        except ValidationError as exc:
            raise ValueError(f"Invalid options: {exc}") from exc

    for pattern, replacement in zip(froms, tos):
        to_spec = TemplateReplacement(replacement) if options.regex else LiteralReplacement(replacement)
        pairs.append(Pair(from_=pattern, to=to_spec))
    return pairs, options


def _describe_syntax_error(exc: PatternSyntaxError | TemplateSyntaxError) -> str:
    if exc.pair_index is None:
        return str(exc)
    return f"pair #{exc.pair_index}: {exc}"


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
