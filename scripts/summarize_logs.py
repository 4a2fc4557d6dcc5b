#!/usr/bin/env python3
"""Summarize mqreplace JSON line logs."""

from __future__ import annotations

import argparse
import json
import math
from collections import Counter
from pathlib import Path
from typing import Any

COUNTED_FIELDS = {
    "event": "event_counts",
    "error_code": "error_code_counts",
    "status_code": "http_status_counts",
}
DONE_TOTALS = {"total_matches": "matches_total", "replaced_count": "replaced_total"}


def _percentile(values: list[int], p: float) -> int | None:
    if not values:
        return None
    ordered = sorted(values)
    return ordered[min(len(ordered) - 1, max(0, math.ceil(p / 100 * len(ordered)) - 1))]


def _load_payload(line: str) -> dict[str, Any] | None:
    # Logging prefixes such as "INFO:mqreplace.api:" precede the JSON object.
    brace = line.find("{")
    if brace == -1:
        return None
    try:
        payload = json.loads(line[brace:])
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def summarize_log_files(paths: list[Path]) -> dict[str, Any]:
    counters = {key: Counter() for key in COUNTED_FIELDS.values()}
    totals = dict.fromkeys(DONE_TOTALS.values(), 0)
    durations: list[int] = []
    lines_total = 0
    parse_errors = 0

    for path in paths:
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError:
            parse_errors += 1
            continue
        lines_total += len(lines)
        for line in filter(None, map(str.strip, lines)):
            payload = _load_payload(line)
            if payload is None:
                parse_errors += 1
                continue
            for field, key in COUNTED_FIELDS.items():
                if payload.get(field) is not None:
                    counters[key][str(payload[field])] += 1
            if isinstance(payload.get("total_ms"), int | float):
                durations.append(int(payload["total_ms"]))
            if payload.get("event") == "done":
                for field, key in DONE_TOTALS.items():
                    if isinstance(payload.get(field), int):
                        totals[key] += payload[field]

    summary: dict[str, Any] = {
        "files": [str(path) for path in paths],
        "lines_total": lines_total,
        "parse_errors": parse_errors,
    }
    summary.update({key: dict(sorted(counter.items())) for key, counter in counters.items()})
    summary.update(totals)
    summary["total_ms_p50"] = _percentile(durations, 50)
    summary["total_ms_p95"] = _percentile(durations, 95)
    return summary


def main() -> None:
    parser = argparse.ArgumentParser(description="Summarize mqreplace structured logs.")
    parser.add_argument("files", nargs="+", help="One or more JSONL log files.")
    parser.add_argument("--json", action="store_true", help="Output JSON.")
    args = parser.parse_args()

    summary = summarize_log_files([Path(item).expanduser() for item in args.files])
    if args.json:
        print(json.dumps(summary, ensure_ascii=False, indent=2, sort_keys=True))
        return
    print("mqreplace Log Summary")
    for key, value in summary.items():
        print(f"{key}={len(value) if key == 'files' else value}")


if __name__ == "__main__":
    main()
