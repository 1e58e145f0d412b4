from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Mapping, Sequence

import structlog

if TYPE_CHECKING:
    from copytrade.execution.paper.trader import PaperTrade

log = structlog.get_logger()


class ParquetUnavailable(RuntimeError):
    pass


def _atomic_replace_write(path: Path, write_fn: Callable[[Path], None]) -> None:
    """
    Atomic file write: write to tmp then replace.
    Readers never see partial files.
    """
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        write_fn(tmp)
        tmp.replace(path)
    finally:
        if tmp.exists():
            tmp.unlink(missing_ok=True)


def write_records_parquet(
    *,
    path: Path,
    records: Sequence[Mapping[str, Any]],
    compression: str = "zstd",
) -> None:
    """
    Write a list[dict] to Parquet atomically.

      - deterministic schema: derived from keys present in records, sorted
      - atomic replace
      - compression enabled
    """
    if not records:
        log.info("parquet.write_skipped_empty", path=str(path))
        return

    try:
        import pyarrow as pa
        import pyarrow.parquet as pq
    except ImportError as exc:
        raise ParquetUnavailable(
            "pyarrow is required for parquet output. Install: pip install pyarrow"
        ) from exc

    path.parent.mkdir(parents=True, exist_ok=True)

    keys = sorted({k for r in records for k in r.keys()})

    # Missing keys become None
    columns: dict[str, list[Any]] = {k: [] for k in keys}
    for r in records:
        for k in keys:
            columns[k].append(r.get(k, None))

    table = pa.table(columns)

    def _write(tmp_path: Path) -> None:
        pq.write_table(
            table,
            tmp_path,
            compression=compression,
            use_dictionary=True,
            write_statistics=True,
        )

    _atomic_replace_write(path, _write)

    log.info(
        "parquet.written",
        path=str(path),
        rows=len(records),
        cols=len(keys),
        compression=compression,
    )


def export_trade_history(
    path: Path,
    trades: Sequence["PaperTrade"],
    *,
    compression: str = "zstd",
) -> None:
    """
    Dump a session's trade history, one row per committed trade.
    """
    write_records_parquet(
        path=path,
        records=[asdict(t) for t in trades],
        compression=compression,
    )
