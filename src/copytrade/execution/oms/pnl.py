# src/copytrade/execution/oms/pnl.py
from __future__ import annotations

from typing import TYPE_CHECKING

from copytrade.execution.oms.actions import DISPOSING_ACTIONS, PositionAction

if TYPE_CHECKING:
    from copytrade.execution.oms.positions import Position


def realized_pnl(
    position: "Position",
    *,
    trade_size: float,
    price: float,
    venue_closed_pnl: float,
    action: PositionAction,
) -> float:
    """
    Realized PnL for one committed trade, evaluated BEFORE the ledger update.

    - OPEN/ADD never realize (venue noise on size-increasing trades is ignored)
    - a non-zero venue closed PnL is trusted verbatim on disposals
    - otherwise: per-unit edge vs avg entry, times the quantity actually disposed
    """
    if action not in DISPOSING_ACTIONS:
        return 0.0

    if venue_closed_pnl != 0.0:
        return venue_closed_pnl

    if position.size == 0.0 or position.avg_entry_price == 0.0:
        return 0.0

    reduced = min(abs(trade_size), abs(position.size))
    if position.size > 0.0:
        per_unit = price - position.avg_entry_price
    else:
        per_unit = position.avg_entry_price - price

    return per_unit * reduced


def unrealized_pnl(position: "Position") -> float:
    """
    Mark-to-last-price PnL of the open exposure. Signed size makes it direction-agnostic.
    """
    if position.size == 0.0 or position.avg_entry_price == 0.0:
        return 0.0
    return (position.last_price - position.avg_entry_price) * position.size
