"""CLI I/O helpers for reading input and writing outputs atomically."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from mqreplace.render.models import ReplaceReport


def read_input_text(path: Path) -> str:
    """Read input text as UTF-8, keeping line endings untouched."""

    with path.open("r", encoding="utf-8", newline="") as handle:
        return handle.read()


def write_text_atomic(path: Path, text: str) -> None:
    """Write replaced text atomically using a temporary file + replace."""

    path.parent.mkdir(parents=True, exist_ok=True)

    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        with tmp_path.open("w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise


def write_report_atomic(path: Path, report: ReplaceReport) -> None:
    """Write the replace report as compact JSON."""

    path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_json(path, report.model_dump(mode="json"))


def _atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        json.dump(payload, tmp, ensure_ascii=False, sort_keys=True, separators=(",", ":"))

    tmp_path.replace(path)
