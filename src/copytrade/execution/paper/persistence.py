from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

import structlog

from copytrade.core.events.base import Event
from copytrade.core.events.bus import EventHandler
from copytrade.core.events.trading import AccountSnapshotTaken, TradeCommitted
from copytrade.execution.oms.fills import venue_code
from copytrade.storage.jsonl import append_record, daily_path

log = structlog.get_logger()

FILLS_DIR = "fills"
ACCOUNTS_DIR = "accounts"


def _epoch_ms(e: Event) -> int:
    return int(e.timestamp_utc.timestamp() * 1000)


class PaperPersistenceComponent:
    """
    Appends committed fills and account snapshots to daily JSON-lines journals:

      <data_dir>/fills/YYYYMMDD.jl     one line per raw fill of a committed batch,
                                       venue metadata included (null when absent)
      <data_dir>/accounts/YYYYMMDD.jl  one line per committed trade

    Write failures are logged and swallowed; the paper session keeps running.
    """

    def __init__(self, *, data_dir: Path, enabled: bool = True) -> None:
        self._data_dir = data_dir
        self._enabled = enabled
        self._writes = 0

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def writes(self) -> int:
        return self._writes

    def subscriptions(self) -> Sequence[tuple[str, EventHandler]]:
        return (
            (TradeCommitted.event_type, self.on_trade_committed),
            (AccountSnapshotTaken.event_type, self.on_account_snapshot),
        )

    def on_trade_committed(self, e: Event) -> None:
        assert isinstance(e, TradeCommitted)
        if not self._enabled:
            return

        path = daily_path(self._data_dir, FILLS_DIR, e.timestamp_utc.date())
        now_ms = _epoch_ms(e)
        for fill in e.fills:
            self._write(
                path,
                {
                    "time": now_ms,
                    "coin": fill.symbol,
                    "side": venue_code(fill.side),
                    "size": fill.size,
                    "price": fill.price,
                    "action": e.action,
                    "realized_pnl": e.realized_pnl,
                    "unrealized_pnl": e.unrealized_pnl,
                    "volume_usd": fill.notional,
                    "hash": fill.hash,
                    "oid": fill.order_id,
                    "start_position": fill.start_position,
                    "dir": fill.direction,
                    "crossed": fill.crossed,
                    "fee": fill.fee,
                },
            )

    def on_account_snapshot(self, e: Event) -> None:
        assert isinstance(e, AccountSnapshotTaken)
        if not self._enabled:
            return

        path = daily_path(self._data_dir, ACCOUNTS_DIR, e.timestamp_utc.date())
        self._write(
            path,
            {
                "time": _epoch_ms(e),
                "total_pnl": e.total_pnl,
                "realized_pnl": e.realized_pnl,
                "unrealized_pnl": e.unrealized_pnl,
                "available_capital": e.available_capital,
                "exposure": e.exposure,
                "num_trades": e.num_trades,
                "positions": e.positions,
            },
        )

    def _write(self, path: Path, record: dict[str, Any]) -> None:
        try:
            append_record(path, record)
        except (OSError, TypeError, ValueError) as exc:
            log.warning("persistence.write_failed", path=str(path), error=repr(exc))
            return
        self._writes += 1
