# src/copytrade/storage/jsonl.py
from __future__ import annotations

import json
import os
from datetime import date
from pathlib import Path
from typing import Any, Mapping

JOURNAL_SUFFIX = ".jl"


def daily_path(root: Path, kind: str, day: date) -> Path:
    """
    <root>/<kind>/YYYYMMDD.jl
    """
    return root / kind / f"{day:%Y%m%d}{JOURNAL_SUFFIX}"


def append_record(path: Path, record: Mapping[str, Any], *, fsync: bool = False) -> None:
    """
    Append one JSON object as a single line, creating parent dirs on demand.

    Serialization rules:
    - keys written in insertion order
    - datetime/UUID/Path -> str via default=str
    - NaN/Inf rejected (ValueError) so journals stay valid JSON
    """
    line = json.dumps(record, separators=(",", ":"), default=str, allow_nan=False)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(line + "\n")
        if fsync:
            fh.flush()
            os.fsync(fh.fileno())


def read_records(path: Path) -> list[dict[str, Any]]:
    """
    Read every line of a journal as a dict (diagnostics and tests).
    """
    if not path.exists():
        return []
    out: list[dict[str, Any]] = []
    with path.open("r", encoding="utf-8") as fh:
        for line in fh:
            s = line.strip()
            if not s:
                continue
            out.append(json.loads(s))
    return out
