# src/copytrade/evaluation/report.py
from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Sequence

from copytrade.evaluation.portfolio import PortfolioSnapshot
from copytrade.execution.oms.actions import PositionAction

if TYPE_CHECKING:
    from copytrade.execution.paper.trader import PaperTrade

ACTION_MARKERS: dict[PositionAction, str] = {
    "OPEN": "🟢",
    "ADD": "🔵",
    "REDUCE": "🟡",
    "CLOSE": "🔴",
    "REVERSE": "🔄",
}

_RULE = "=" * 80


def _signed(value: float) -> str:
    return f"+{value:.2f}" if value > 0 else f"{value:.2f}"


def format_trade(trade: "PaperTrade") -> str:
    """
    One-line description of a committed trade.
    """
    if trade.position_size == 0:
        position = "Position: FLAT"
    else:
        position = f"Position: {_signed(trade.position_size)} {trade.symbol}"

    pnl_parts = []
    if trade.realized_pnl != 0:
        pnl_parts.append(f"Realized: ${trade.realized_pnl:.2f}")
    pnl_parts.append(f"Unrealized: ${trade.unrealized_pnl:.2f}")

    return (
        f"{ACTION_MARKERS[trade.action]} {trade.action} {trade.side.upper()} "
        f"{trade.size:.2f} {trade.symbol} @ ${trade.price:.2f} | {position} | "
        + " | ".join(pnl_parts)
    )


def render_portfolio_summary(snap: PortfolioSnapshot) -> str:
    duration = timedelta(seconds=round(snap.session_seconds))

    lines = [
        "",
        _RULE,
        "📊 PAPER TRADING PORTFOLIO SUMMARY",
        _RULE,
        f"⏱️  Session Duration: {duration}",
        f"💰 Total Realized PnL: ${snap.total_realized_pnl:.2f}",
        f"📈 Total Unrealized PnL: ${snap.total_unrealized_pnl:.2f}",
        f"🎯 Total Portfolio PnL: ${snap.total_pnl:.2f}",
        f"📊 Total Trades: {snap.total_trades}",
        f"📍 Active Positions: {len(snap.positions)}",
    ]
    if snap.total_trades > 0:
        lines.append(f"📊 Avg PnL per Trade: ${snap.avg_pnl_per_trade:.2f}")
    lines.append(
        f"🏦 Available Capital: ${snap.available_capital:.2f} | "
        f"Exposure: ${snap.current_exposure:.2f} / ${snap.max_exposure:.2f}"
    )

    if snap.positions:
        lines.append("")
        lines.append("🔄 ACTIVE POSITIONS:")
        lines.append("-" * 60)
        for p in snap.positions:
            lines.append(
                f"{p.symbol:<8} | {_signed(p.size)} | Avg: ${p.avg_entry_price:.2f} | "
                f"Last: ${p.last_price:.2f} | PnL: ${p.unrealized_pnl:.2f} ({p.pnl_pct:.2f}%)"
            )

    lines.append(_RULE)
    return "\n".join(lines)


def render_recent_trades(trades: Sequence["PaperTrade"], count: int) -> str:
    if not trades or count <= 0:
        return ""

    lines = ["", f"📋 LAST {count} TRADES:", "-" * 80]
    for t in trades[-count:]:
        lines.append(
            f"{t.timestamp:%H:%M:%S} | {ACTION_MARKERS[t.action]} {t.side.upper()} "
            f"{t.size:.2f} {t.symbol} @ ${t.price:.2f} | PnL: ${t.realized_pnl:.2f}"
        )
    return "\n".join(lines)
