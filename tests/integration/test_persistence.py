from __future__ import annotations

from pathlib import Path

import pytest

from copytrade.core.events.bus import EventBus
from copytrade.execution.oms.fills import Fill
from copytrade.execution.paper.persistence import PaperPersistenceComponent
from copytrade.execution.paper.trader import PaperTrader, TraderConfig
from copytrade.storage.jsonl import read_records


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _wired(data_dir: Path, **kw: object) -> tuple[PaperTrader, PaperPersistenceComponent]:
    bus = EventBus()
    persistence = PaperPersistenceComponent(data_dir=data_dir, **kw)  # type: ignore[arg-type]
    bus.register(persistence)
    trader = PaperTrader(config=TraderConfig.immediate(), bus=bus)
    return trader, persistence


def _journal(root: Path, kind: str) -> list[dict]:
    files = sorted((root / kind).glob("*.jl"))
    assert len(files) == 1
    assert len(files[0].stem) == 8 and files[0].stem.isdigit()
    return read_records(files[0])


def test_committed_trade_writes_fill_and_account_lines(tmp_path: Path) -> None:
    trader, persistence = _wired(tmp_path)

    trader.process_fill(Fill(symbol="BTC", side="buy", size=0.5, price=40_000.0, time_ms=1))
    trader.process_fill(Fill(symbol="BTC", side="sell", size=0.2, price=41_000.0, time_ms=2))

    fills = _journal(tmp_path, "fills")
    assert [f["side"] for f in fills] == ["B", "A"]
    assert [f["action"] for f in fills] == ["OPEN", "REDUCE"]
    assert fills[0]["coin"] == "BTC"
    assert fills[0]["volume_usd"] == pytest.approx(20_000.0)
    assert fills[1]["realized_pnl"] == pytest.approx(200.0)
    assert set(fills[0]) == {
        "time", "coin", "side", "size", "price", "action", "realized_pnl", "unrealized_pnl", "volume_usd",
        "hash", "oid", "start_position", "dir", "crossed", "fee",
    }

    accounts = _journal(tmp_path, "accounts")
    assert len(accounts) == 2
    last = accounts[-1]
    assert last["num_trades"] == 2
    assert last["realized_pnl"] == pytest.approx(200.0)
    assert last["positions"]["BTC"]["size"] == pytest.approx(0.3)
    assert set(last["positions"]["BTC"]) == {"size", "avg_price", "last_price", "realized", "unrealized", "market_val"}

    assert persistence.writes == 4


def test_aggregated_batch_writes_every_raw_fill(tmp_path: Path) -> None:
    bus = EventBus()
    bus.register(PaperPersistenceComponent(data_dir=tmp_path))
    trader = PaperTrader(
        config=TraderConfig(bankroll=1_000_000.0, volume_threshold=800.0, min_trade_interval=60.0),
        bus=bus,
        clock=FakeClock(),
    )

    trader.process_fill(Fill(symbol="ETH", side="buy", size=0.1, price=3_000.0, time_ms=1))
    trader.process_fill(Fill(symbol="ETH", side="buy", size=0.2, price=3_000.0, time_ms=2))

    fills = _journal(tmp_path, "fills")
    assert len(fills) == 2
    assert {f["action"] for f in fills} == {"OPEN"}
    assert len(_journal(tmp_path, "accounts")) == 1


def test_venue_metadata_is_journaled(tmp_path: Path) -> None:
    trader, _ = _wired(tmp_path)
    fill = Fill.from_venue(
        {
            "coin": "ETH", "side": "B", "sz": "1.5", "px": "3000", "time": 1, "hash": "0xfeed",
            "oid": 42, "startPosition": "0.0", "dir": "Open Long", "crossed": False, "fee": "0.12",
        }
    )
    trader.process_fill(fill)
    trader.process_fill(Fill(symbol="ETH", side="buy", size=0.5, price=3_000.0, time_ms=2))

    first, second = _journal(tmp_path, "fills")
    assert first["hash"] == "0xfeed"
    assert first["oid"] == 42
    assert first["start_position"] == 0.0
    assert first["dir"] == "Open Long"
    assert first["crossed"] is False
    assert first["fee"] == "0.12"
    assert second["oid"] is None and second["dir"] is None and second["hash"] == ""


def test_closed_positions_are_left_out_of_snapshots(tmp_path: Path) -> None:
    trader, _ = _wired(tmp_path)
    trader.process_fill(Fill(symbol="SOL", side="buy", size=10.0, price=100.0, time_ms=1))
    trader.process_fill(Fill(symbol="SOL", side="sell", size=10.0, price=110.0, time_ms=2))

    last = _journal(tmp_path, "accounts")[-1]
    assert last["positions"] == {}
    assert last["total_pnl"] == pytest.approx(100.0)


def test_disabled_component_writes_nothing(tmp_path: Path) -> None:
    trader, persistence = _wired(tmp_path, enabled=False)
    trader.process_fill(Fill(symbol="BTC", side="buy", size=1.0, price=100.0, time_ms=1))

    assert trader.total_trades == 1
    assert persistence.writes == 0
    assert not (tmp_path / "fills").exists()


def test_write_failures_are_swallowed(tmp_path: Path) -> None:
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    trader, persistence = _wired(blocker)

    trade = trader.process_fill(Fill(symbol="BTC", side="buy", size=1.0, price=100.0, time_ms=1))

    assert trade is not None
    assert trader.position("BTC").size == 1.0
    assert persistence.writes == 0
