from __future__ import annotations

from datetime import datetime, timedelta, timezone

from copytrade.evaluation.portfolio import PortfolioSnapshot, PositionSnapshot
from copytrade.evaluation.report import format_trade, render_portfolio_summary, render_recent_trades
from copytrade.execution.paper.trader import PaperTrade

_T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _trade(**overrides: object) -> PaperTrade:
    params: dict[str, object] = {
        "timestamp": _T0,
        "symbol": "BTC",
        "action": "OPEN",
        "side": "buy",
        "size": 0.5,
        "price": 50_000.0,
        "realized_pnl": 0.0,
        "position_size": 0.5,
        "unrealized_pnl": 0.0,
    }
    params.update(overrides)
    return PaperTrade(**params)  # type: ignore[arg-type]


def test_format_trade_open_and_close() -> None:
    line = format_trade(_trade())
    assert line.startswith("🟢 OPEN BUY 0.50 BTC @ $50000.00")
    assert "Position: +0.50 BTC" in line
    assert "Realized" not in line

    line = format_trade(_trade(action="CLOSE", side="sell", position_size=0.0, realized_pnl=125.5))
    assert "🔴 CLOSE SELL" in line
    assert "Position: FLAT" in line
    assert "Realized: $125.50" in line


def test_recent_trades_lists_last_n() -> None:
    trades = [
        _trade(timestamp=_T0 + timedelta(minutes=i), symbol=s)
        for i, s in enumerate(["BTC", "ETH", "SOL"])
    ]
    text = render_recent_trades(trades, 2)

    assert "LAST 2 TRADES" in text
    assert "ETH" in text and "SOL" in text
    assert "12:00:00" not in text
    assert "12:02:00" in text


def test_recent_trades_empty_renders_nothing() -> None:
    assert render_recent_trades([], 10) == ""
    assert render_recent_trades([_trade()], 0) == ""


def test_portfolio_summary_sections() -> None:
    snap = PortfolioSnapshot(
        started_at_utc=_T0,
        taken_at_utc=_T0 + timedelta(hours=1, seconds=5),
        total_realized_pnl=100.0,
        total_unrealized_pnl=-40.0,
        total_trades=4,
        available_capital=10_060.0,
        max_exposure=20_120.0,
        current_exposure=5_000.0,
        positions=(
            PositionSnapshot(
                symbol="ETH",
                size=-2.0,
                avg_entry_price=2_500.0,
                last_price=2_520.0,
                realized_pnl=0.0,
                unrealized_pnl=-40.0,
                market_value=-5_040.0,
            ),
        ),
    )
    text = render_portfolio_summary(snap)

    assert "PAPER TRADING PORTFOLIO SUMMARY" in text
    assert "Session Duration: 1:00:05" in text
    assert "Total Portfolio PnL: $60.00" in text
    assert "Avg PnL per Trade: $15.00" in text
    assert "Exposure: $5000.00 / $20120.00" in text
    assert "ETH      | -2.00 | Avg: $2500.00" in text
    assert "(0.80%)" in text

    assert snap.positions_payload()["ETH"]["market_val"] == -5_040.0


def test_summary_without_trades_omits_average() -> None:
    snap = PortfolioSnapshot(
        started_at_utc=_T0,
        taken_at_utc=_T0,
        total_realized_pnl=0.0,
        total_unrealized_pnl=0.0,
        total_trades=0,
        available_capital=1_000.0,
        max_exposure=1_000.0,
        current_exposure=0.0,
        positions=(),
    )
    text = render_portfolio_summary(snap)
    assert "Avg PnL per Trade" not in text
    assert "ACTIVE POSITIONS" not in text
