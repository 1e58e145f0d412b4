# src/copytrade/execution/oms/positions.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator

from copytrade.execution.oms.pnl import unrealized_pnl

_EPS: float = 1e-12


def net_size(old_size: float, delta: float) -> float:
    """
    old_size + delta, snapped to exactly 0.0 when the residue is float noise.

    The snap is relative to the operands so that 1e9-scale positions and
    1e-8-scale positions both land flat when bought and sold in equal amounts.
    """
    new_size = old_size + delta
    scale = max(abs(old_size), abs(delta))
    if abs(new_size) <= _EPS * scale:
        return 0.0
    return new_size


@dataclass(slots=True)
class Position:
    symbol: str
    size: float = 0.0               # + long, - short, 0 flat
    avg_entry_price: float = 0.0    # VWAP of the currently open exposure
    total_cost_basis: float = 0.0   # abs cost of the open exposure
    realized_pnl: float = 0.0       # only moves on REDUCE / CLOSE / REVERSE
    last_price: float = 0.0         # mark price for unrealized PnL
    trade_count: int = 0
    open_time: datetime | None = None

    @property
    def is_flat(self) -> bool:
        return self.size == 0.0

    @property
    def market_value(self) -> float:
        return self.size * self.last_price

    @property
    def exposure(self) -> float:
        return abs(self.size) * self.last_price

    def unrealized_pnl(self) -> float:
        return unrealized_pnl(self)

    def apply_trade(
        self,
        *,
        trade_size: float,
        price: float,
        realized: float,
        now: datetime | None = None,
    ) -> None:
        """
        Apply one committed (possibly aggregated) trade of signed size `trade_size`.

        Cost basis rules:
          - closed to flat         -> avg/cost reset to 0
          - opened from flat       -> fresh lot at `price`
          - sign flip              -> surviving qty is a fresh lot at `price`
          - same-direction add     -> cost accumulates, avg = cost / |size|
          - same-direction reduce  -> avg/cost untouched

        Must be invoked exactly once per committed trade.
        """
        if price <= 0:
            raise ValueError("price must be > 0")

        old_size = self.size
        new_size = net_size(old_size, trade_size)
        ts = now if now is not None else datetime.now(timezone.utc)

        self.realized_pnl += realized

        if new_size == 0.0:
            self.avg_entry_price = 0.0
            self.total_cost_basis = 0.0
        elif old_size == 0.0:
            self.avg_entry_price = price
            self.total_cost_basis = price * abs(trade_size)
            self.open_time = ts
        elif (old_size > 0.0) != (new_size > 0.0):
            self.avg_entry_price = price
            self.total_cost_basis = price * abs(new_size)
            self.open_time = ts
        elif abs(new_size) > abs(old_size):
            self.total_cost_basis += price * abs(trade_size)
            self.avg_entry_price = self.total_cost_basis / abs(new_size)
        # else: partial reduction keeps the remaining lot's basis

        self.size = new_size
        self.trade_count += 1


@dataclass(slots=True)
class PositionBook:
    """
    Owned map symbol -> Position plus the session's realized total.

    Positions are created lazily and never deleted; a flat position keeps its history.
    """
    positions: dict[str, Position] = field(default_factory=dict)
    total_realized_pnl: float = 0.0

    def get(self, symbol: str) -> Position | None:
        return self.positions.get(symbol)

    def get_or_create(self, symbol: str) -> Position:
        pos = self.positions.get(symbol)
        if pos is None:
            pos = Position(symbol=symbol)
            self.positions[symbol] = pos
        return pos

    def open_positions(self) -> Iterator[Position]:
        for pos in self.positions.values():
            if pos.size != 0.0:
                yield pos

    def total_unrealized_pnl(self) -> float:
        return sum(pos.unrealized_pnl() for pos in self.open_positions())

    def total_position_realized_pnl(self) -> float:
        return sum(pos.realized_pnl for pos in self.positions.values())
