# src/copytrade/evaluation/portfolio.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from copytrade.execution.oms.positions import PositionBook
from copytrade.execution.oms.risk import ExposureGuard


@dataclass(frozen=True, slots=True)
class PositionSnapshot:
    symbol: str
    size: float
    avg_entry_price: float
    last_price: float
    realized_pnl: float
    unrealized_pnl: float
    market_value: float

    @property
    def pnl_pct(self) -> float:
        if self.avg_entry_price <= 0:
            return 0.0
        return (self.last_price - self.avg_entry_price) / self.avg_entry_price * 100.0


@dataclass(frozen=True, slots=True)
class PortfolioSnapshot:
    """
    Read-only view of a paper session at one instant.
    """
    started_at_utc: datetime
    taken_at_utc: datetime
    total_realized_pnl: float
    total_unrealized_pnl: float
    total_trades: int
    available_capital: float
    max_exposure: float
    current_exposure: float
    positions: tuple[PositionSnapshot, ...]

    @property
    def total_pnl(self) -> float:
        return self.total_realized_pnl + self.total_unrealized_pnl

    @property
    def session_seconds(self) -> float:
        return (self.taken_at_utc - self.started_at_utc).total_seconds()

    @property
    def avg_pnl_per_trade(self) -> float:
        if self.total_trades == 0:
            return 0.0
        return self.total_pnl / self.total_trades

    def positions_payload(self) -> dict[str, dict[str, float]]:
        return {
            p.symbol: {
                "size": p.size,
                "avg_price": p.avg_entry_price,
                "last_price": p.last_price,
                "realized": p.realized_pnl,
                "unrealized": p.unrealized_pnl,
                "market_val": p.market_value,
            }
            for p in self.positions
        }


def take_snapshot(
    *,
    book: PositionBook,
    guard: ExposureGuard,
    total_trades: int,
    started_at_utc: datetime,
) -> PortfolioSnapshot:
    """
    Build a snapshot of open positions. Caller holds the session lock.
    """
    positions = tuple(
        PositionSnapshot(
            symbol=pos.symbol,
            size=pos.size,
            avg_entry_price=pos.avg_entry_price,
            last_price=pos.last_price,
            realized_pnl=pos.realized_pnl,
            unrealized_pnl=pos.unrealized_pnl(),
            market_value=pos.market_value,
        )
        for pos in sorted(book.open_positions(), key=lambda p: p.symbol)
    )

    return PortfolioSnapshot(
        started_at_utc=started_at_utc,
        taken_at_utc=datetime.now(timezone.utc),
        total_realized_pnl=book.total_realized_pnl,
        total_unrealized_pnl=sum(p.unrealized_pnl for p in positions),
        total_trades=total_trades,
        available_capital=guard.available_capital(book),
        max_exposure=guard.max_exposure(book),
        current_exposure=guard.current_exposure(book),
        positions=positions,
    )
