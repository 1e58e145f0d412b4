# src/copytrade/execution/oms/actions.py
from __future__ import annotations

from typing import Literal

PositionAction = Literal["OPEN", "ADD", "REDUCE", "CLOSE", "REVERSE"]

# Actions that dispose of existing exposure (the only ones that can realize PnL)
DISPOSING_ACTIONS: frozenset[PositionAction] = frozenset({"REDUCE", "CLOSE", "REVERSE"})


def classify_action(old_size: float, new_size: float) -> PositionAction:
    """
    Map an old/new signed position size pair to its transition kind.

    Rules, in priority order:
      flat -> non-flat            OPEN
      non-flat -> flat            CLOSE
      sign flip                   REVERSE
      same sign, larger           ADD
      same sign, smaller          REDUCE

    Equal non-zero sizes cannot come out of a non-zero trade; they fall back to ADD.
    """
    if old_size == 0.0 and new_size != 0.0:
        return "OPEN"

    if old_size != 0.0 and new_size == 0.0:
        return "CLOSE"

    if (old_size > 0.0) != (new_size > 0.0) and old_size != 0.0:
        return "REVERSE"

    if abs(new_size) > abs(old_size):
        return "ADD"

    if abs(new_size) < abs(old_size):
        return "REDUCE"

    return "ADD"
