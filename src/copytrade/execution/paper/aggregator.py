# src/copytrade/execution/paper/aggregator.py
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

import structlog

from copytrade.execution.oms.fills import Fill

log = structlog.get_logger()

# Fills closer together than this never decay against each other
DECAY_GRACE_SECONDS: float = 10.0

# Decayed pending volume below this notional is treated as fully gone
DECAY_FLOOR: float = 1.0

_NET_EPS: float = 1e-12


@dataclass(frozen=True, slots=True)
class AggregatedTrade:
    """
    One economically equivalent trade built from a batch of fills.
    """
    symbol: str
    signed_size: float
    avg_price: float        # VWAP over the batch
    last_price: float       # price of the last fill in the batch
    venue_closed_pnl: float
    time_ms: int            # time of the last fill in the batch
    fills: tuple[Fill, ...]

    @classmethod
    def from_fills(cls, symbol: str, fills: tuple[Fill, ...]) -> "AggregatedTrade | None":
        total_size = 0.0
        total_abs = 0.0
        total_value = 0.0
        closed = 0.0

        for f in fills:
            signed = f.signed_size
            total_size += signed
            total_abs += abs(signed)
            total_value += abs(signed) * f.price
            closed += f.closed_pnl_value

        if total_abs == 0.0:
            return None

        # Offsetting fills leave float residue; snap it to a true zero net
        if abs(total_size) <= _NET_EPS * total_abs:
            total_size = 0.0

        last = fills[-1]
        return cls(
            symbol=symbol,
            signed_size=total_size,
            avg_price=total_value / total_abs,
            last_price=last.price,
            venue_closed_pnl=closed,
            time_ms=last.time_ms,
            fills=fills,
        )


@dataclass(slots=True)
class _Pending:
    fills: list[Fill] = field(default_factory=list)
    volume: float = 0.0
    started_at: float | None = None


class FillAggregator:
    """
    Per-symbol fill buffer with a dollar-volume OR elapsed-time commit trigger.

    - pending volume decays by (1 - decay_rate) ** minutes once the grace window passed
    - decayed volume under DECAY_FLOOR drops the stale fills entirely
    - volume_threshold == 0 commits every fill immediately

    Not thread-safe on its own: the owning PaperTrader serializes access.
    """

    def __init__(
        self,
        *,
        volume_threshold: float,
        min_interval: float,
        decay_rate: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if volume_threshold < 0:
            raise ValueError("volume_threshold must be >= 0")
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        if not 0.0 <= decay_rate <= 1.0:
            raise ValueError("decay_rate must be within [0, 1]")

        self.volume_threshold = volume_threshold
        self.min_interval = min_interval
        self.decay_rate = decay_rate
        self._clock = clock
        self._pending: dict[str, _Pending] = {}

    # --- Introspection ----------------------------------------------------

    def pending_fills(self, symbol: str) -> tuple[Fill, ...]:
        p = self._pending.get(symbol)
        return tuple(p.fills) if p is not None else ()

    def pending_volume(self, symbol: str) -> float:
        p = self._pending.get(symbol)
        return p.volume if p is not None else 0.0

    def pending_symbols(self) -> tuple[str, ...]:
        return tuple(self._pending)

    # --- Core -------------------------------------------------------------

    def add(self, fill: Fill) -> AggregatedTrade | None:
        """
        Buffer `fill`; return the aggregated batch if a commit trigger fired.

        The batch is removed from the buffer when returned.
        """
        symbol = fill.symbol
        p = self._pending.get(symbol)
        if p is None:
            p = _Pending()
            self._pending[symbol] = p

        self._apply_decay(symbol, p)

        now = self._clock()
        if p.started_at is None:
            p.started_at = now

        p.fills.append(fill)
        p.volume += fill.size * fill.price

        by_volume = p.volume >= self.volume_threshold
        by_time = p.volume > 0.0 and (now - p.started_at) >= self.min_interval

        if not (by_volume or by_time):
            log.debug(
                "aggregator.buffered",
                symbol=symbol,
                pending_fills=len(p.fills),
                pending_volume=p.volume,
            )
            return None

        return self._commit(symbol)

    def clear(self, symbol: str) -> None:
        self._pending.pop(symbol, None)

    # --- Internal ---------------------------------------------------------

    def _commit(self, symbol: str) -> AggregatedTrade | None:
        p = self._pending.pop(symbol)
        return AggregatedTrade.from_fills(symbol, tuple(p.fills))

    def _apply_decay(self, symbol: str, p: _Pending) -> None:
        if p.started_at is None or p.volume == 0.0:
            return

        elapsed = self._clock() - p.started_at
        if elapsed < DECAY_GRACE_SECONDS:
            return

        minutes = elapsed / 60.0
        p.volume *= (1.0 - self.decay_rate) ** minutes

        if p.volume < DECAY_FLOOR:
            log.info(
                "aggregator.decayed_away",
                symbol=symbol,
                dropped_fills=len(p.fills),
                elapsed_s=elapsed,
            )
            p.fills.clear()
            p.volume = 0.0
            p.started_at = None
