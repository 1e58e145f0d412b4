from __future__ import annotations

import pytest

from copytrade.execution.oms.positions import Position, PositionBook, net_size


def test_net_size_snaps_float_residue_to_flat() -> None:
    held = 0.1 + 0.2
    assert held != 0.3
    assert net_size(held, -0.3) == 0.0
    assert net_size(1e9, -1e9) == 0.0
    assert net_size(1e-8, -1e-8) == 0.0
    assert net_size(1.0, -0.4) == pytest.approx(0.6)


def test_open_add_reduce_close_cost_basis() -> None:
    pos = Position(symbol="BTC")

    pos.apply_trade(trade_size=2.0, price=50_000.0, realized=0.0)
    assert pos.avg_entry_price == 50_000.0
    assert pos.total_cost_basis == 100_000.0
    assert pos.open_time is not None

    pos.apply_trade(trade_size=1.0, price=60_000.0, realized=0.0)
    assert pos.size == 3.0
    assert pos.avg_entry_price == pytest.approx(160_000.0 / 3.0)
    assert pos.avg_entry_price == pytest.approx(pos.total_cost_basis / abs(pos.size), rel=1e-6)

    avg = pos.avg_entry_price
    pos.apply_trade(trade_size=-1.0, price=58_000.0, realized=4_666.67)
    assert pos.size == 2.0
    assert pos.avg_entry_price == avg
    assert pos.realized_pnl == pytest.approx(4_666.67)

    pos.apply_trade(trade_size=-2.0, price=59_000.0, realized=100.0)
    assert pos.is_flat
    assert pos.avg_entry_price == 0.0
    assert pos.total_cost_basis == 0.0
    assert pos.trade_count == 4


def test_reversal_starts_fresh_lot_at_trade_price() -> None:
    pos = Position(symbol="ETH")
    pos.apply_trade(trade_size=2.0, price=3_000.0, realized=0.0)
    pos.apply_trade(trade_size=-5.0, price=3_300.0, realized=600.0)

    assert pos.size == -3.0
    assert pos.avg_entry_price == 3_300.0
    assert pos.total_cost_basis == pytest.approx(9_900.0)


def test_apply_trade_rejects_non_positive_price() -> None:
    pos = Position(symbol="BTC")
    with pytest.raises(ValueError):
        pos.apply_trade(trade_size=1.0, price=0.0, realized=0.0)
    assert pos.size == 0.0


def test_book_tracks_open_positions_only() -> None:
    book = PositionBook()
    btc = book.get_or_create("BTC")
    btc.apply_trade(trade_size=1.0, price=100.0, realized=0.0)
    btc.last_price = 110.0

    eth = book.get_or_create("ETH")
    eth.apply_trade(trade_size=1.0, price=10.0, realized=0.0)
    eth.apply_trade(trade_size=-1.0, price=12.0, realized=2.0)

    assert book.get_or_create("BTC") is btc
    assert [p.symbol for p in book.open_positions()] == ["BTC"]
    assert book.total_unrealized_pnl() == pytest.approx(10.0)
    assert book.total_position_realized_pnl() == pytest.approx(2.0)
    assert book.get("SOL") is None
