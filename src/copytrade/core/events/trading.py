# src/copytrade/core/events/trading.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from copytrade.core.events.base import Event
from copytrade.execution.oms.actions import PositionAction
from copytrade.execution.oms.fills import Fill, Side


@dataclass(frozen=True, slots=True)
class TradeCommitted(Event):
    """
    A (possibly aggregated) paper trade was applied to the ledger.

    `fills` are the raw venue fills that made up the batch.
    """
    event_type: ClassVar[str] = "paper.trade_committed"

    symbol: str
    action: PositionAction
    side: Side
    size: float
    price: float
    realized_pnl: float
    position_size: float
    unrealized_pnl: float
    trade_time: datetime
    fills: tuple[Fill, ...] = ()


@dataclass(frozen=True, slots=True)
class TradeSkipped(Event):
    """
    The exposure guard rejected or zero-sized a committed batch.
    """
    event_type: ClassVar[str] = "paper.trade_skipped"

    symbol: str
    reason: str
    requested_size: float
    price: float


@dataclass(frozen=True, slots=True)
class AccountSnapshotTaken(Event):
    """
    Account state right after a committed trade.

    `positions` holds open positions only, keyed by symbol.
    """
    event_type: ClassVar[str] = "paper.account_snapshot"

    total_pnl: float
    realized_pnl: float
    unrealized_pnl: float
    available_capital: float
    exposure: float
    num_trades: int
    positions: dict[str, dict[str, Any]] = field(default_factory=dict)
