# src/copytrade/execution/paper/trader.py
from __future__ import annotations

import sys
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from math import isfinite
from threading import Lock
from typing import TYPE_CHECKING, Callable, Iterable, TextIO

import structlog

from copytrade.core.events.base import Event
from copytrade.core.events.bus import EventBus
from copytrade.core.events.trading import AccountSnapshotTaken, TradeCommitted, TradeSkipped
from copytrade.evaluation.portfolio import PortfolioSnapshot, take_snapshot
from copytrade.evaluation.report import format_trade, render_portfolio_summary, render_recent_trades
from copytrade.execution.oms.actions import PositionAction, classify_action
from copytrade.execution.oms.fills import Fill, Side
from copytrade.execution.oms.pnl import realized_pnl
from copytrade.execution.oms.positions import Position, PositionBook, net_size
from copytrade.execution.oms.risk import ExposureGuard
from copytrade.execution.paper.aggregator import AggregatedTrade, FillAggregator

if TYPE_CHECKING:
    from copytrade.core.config.settings import AppSettings

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class TraderConfig:
    """
    Session parameters fixed at construction.

    Dynamic sizing is active when base_notional is set and not disabled;
    otherwise every committed trade goes through hard validation.
    """
    bankroll: float
    leverage: float = 1.0
    base_notional: float | None = None
    min_trade_interval: float = 60.0    # seconds
    volume_threshold: float = 1000.0    # dollar volume
    volume_decay_rate: float = 0.5      # per minute
    disable_dynamic_sizing: bool = False

    def __post_init__(self) -> None:
        if not isfinite(self.bankroll) or self.bankroll <= 0:
            raise ValueError("bankroll must be finite and > 0")
        if not isfinite(self.leverage) or self.leverage < 1:
            raise ValueError("leverage must be finite and >= 1")
        if self.base_notional is not None and (not isfinite(self.base_notional) or self.base_notional <= 0):
            raise ValueError("base_notional must be finite and > 0 when set")
        if self.min_trade_interval < 0:
            raise ValueError("min_trade_interval must be >= 0")
        if self.volume_threshold < 0:
            raise ValueError("volume_threshold must be >= 0")
        if not 0.0 <= self.volume_decay_rate <= 1.0:
            raise ValueError("volume_decay_rate must be within [0, 1]")

    @property
    def dynamic_sizing(self) -> bool:
        return self.base_notional is not None and not self.disable_dynamic_sizing

    @classmethod
    def immediate(cls, **overrides: object) -> "TraderConfig":
        """
        Deterministic profile: every fill commits on arrival.
        """
        params: dict[str, object] = {
            "bankroll": 10_000_000.0,
            "leverage": 1.0,
            "min_trade_interval": 0.001,
            "volume_threshold": 0.0,
        }
        params.update(overrides)
        return cls(**params)  # type: ignore[arg-type]

    @classmethod
    def from_settings(cls, s: "AppSettings") -> "TraderConfig":
        return cls(
            bankroll=s.bankroll,
            leverage=s.leverage,
            base_notional=s.base_notional,
            min_trade_interval=s.min_trade_interval_seconds,
            volume_threshold=s.volume_threshold,
            volume_decay_rate=s.volume_decay_rate,
            disable_dynamic_sizing=s.disable_dynamic_sizing,
        )


@dataclass(frozen=True, slots=True)
class PaperTrade:
    """
    Append-only record of one committed (possibly aggregated) trade.
    """
    timestamp: datetime
    symbol: str
    action: PositionAction
    side: Side
    size: float
    price: float
    realized_pnl: float
    position_size: float
    unrealized_pnl: float


class PaperTrader:
    """
    Paper trading session: the single entry point that turns fills into ledger state.

    Pipeline per fill (one lock held for the whole call, hooks included):
      aggregator -> exposure guard -> classify -> realized pnl -> ledger -> totals
      -> trade record -> TradeCommitted / AccountSnapshotTaken on the bus

    Policy outcomes (absorbed, rejected, zero-sized) are not errors: process_fill
    returns None and state is left untouched. Bus handlers must not call back into
    the trader (the lock is not re-entrant).
    """

    def __init__(
        self,
        *,
        config: TraderConfig,
        bus: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._bus = bus if bus is not None else EventBus()
        self._lock = Lock()

        self._book = PositionBook()
        self._guard = ExposureGuard(bankroll=config.bankroll, leverage=config.leverage)
        self._aggregator = FillAggregator(
            volume_threshold=config.volume_threshold,
            min_interval=config.min_trade_interval,
            decay_rate=config.volume_decay_rate,
            clock=clock,
        )

        self._history: list[PaperTrade] = []
        self._total_trades = 0
        self._sequence = 0
        self._started_at = datetime.now(timezone.utc)

    # --- Wiring -----------------------------------------------------------

    @property
    def config(self) -> TraderConfig:
        return self._config

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def guard(self) -> ExposureGuard:
        return self._guard

    @property
    def book(self) -> PositionBook:
        """
        Live ledger. Intended for diagnostics and test setup; do not mutate
        while fills are being processed.
        """
        return self._book

    @property
    def started_at(self) -> datetime:
        return self._started_at

    # --- Entry points -----------------------------------------------------

    def process_fill(self, fill: Fill) -> PaperTrade | None:
        with self._lock:
            if fill.size == 0:
                return None

            batch = self._aggregator.add(fill)
            if batch is None:
                return None

            return self._commit(batch)

    def process_fills(self, fills: Iterable[Fill]) -> list[PaperTrade]:
        out: list[PaperTrade] = []
        for fill in fills:
            trade = self.process_fill(fill)
            if trade is not None:
                out.append(trade)
        return out

    def set_volume_threshold(self, threshold: float) -> None:
        if threshold < 0:
            raise ValueError("threshold must be >= 0")
        with self._lock:
            self._aggregator.volume_threshold = threshold

    def set_min_trade_interval(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        with self._lock:
            self._aggregator.min_interval = seconds

    # --- Reads ------------------------------------------------------------

    @property
    def total_trades(self) -> int:
        with self._lock:
            return self._total_trades

    @property
    def total_realized_pnl(self) -> float:
        with self._lock:
            return self._book.total_realized_pnl

    def position(self, symbol: str) -> Position | None:
        with self._lock:
            pos = self._book.get(symbol)
            return replace(pos) if pos is not None else None

    def positions(self) -> dict[str, Position]:
        with self._lock:
            return {s: replace(p) for s, p in self._book.positions.items()}

    def trade_history(self) -> list[PaperTrade]:
        with self._lock:
            return list(self._history)

    def recent_trades(self, count: int) -> list[PaperTrade]:
        with self._lock:
            if count <= 0:
                return []
            return self._history[-count:]

    def pending_fills(self, symbol: str) -> tuple[Fill, ...]:
        with self._lock:
            return self._aggregator.pending_fills(symbol)

    def available_capital(self) -> float:
        with self._lock:
            return self._guard.available_capital(self._book)

    def max_exposure(self) -> float:
        with self._lock:
            return self._guard.max_exposure(self._book)

    def current_exposure(self) -> float:
        with self._lock:
            return self._guard.current_exposure(self._book)

    def snapshot(self) -> PortfolioSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def print_portfolio_summary(self, stream: TextIO | None = None) -> None:
        text = render_portfolio_summary(self.snapshot())
        print(text, file=stream if stream is not None else sys.stdout)

    def print_recent_trades(self, count: int, stream: TextIO | None = None) -> None:
        text = render_recent_trades(self.trade_history(), count)
        if text:
            print(text, file=stream if stream is not None else sys.stdout)

    # --- Internal (lock held) ---------------------------------------------

    def _commit(self, batch: AggregatedTrade) -> PaperTrade | None:
        symbol = batch.symbol

        if batch.signed_size == 0.0:
            log.info("paper.net_zero_batch", symbol=symbol, fills=len(batch.fills))
            return None

        trade_size = self._size_trade(batch)
        if trade_size == 0.0:
            return None

        position = self._book.get_or_create(symbol)
        old_size = position.size
        new_size = net_size(old_size, trade_size)

        action = classify_action(old_size, new_size)
        realized = realized_pnl(
            position,
            trade_size=trade_size,
            price=batch.avg_price,
            venue_closed_pnl=batch.venue_closed_pnl,
            action=action,
        )

        now = datetime.now(timezone.utc)
        position.apply_trade(trade_size=trade_size, price=batch.avg_price, realized=realized, now=now)
        position.last_price = batch.last_price

        self._total_trades += 1
        self._book.total_realized_pnl += realized

        trade = PaperTrade(
            timestamp=datetime.fromtimestamp(batch.time_ms / 1000.0, tz=timezone.utc),
            symbol=symbol,
            action=action,
            side="buy" if trade_size > 0 else "sell",
            size=abs(trade_size),
            price=batch.avg_price,
            realized_pnl=realized,
            position_size=position.size,
            unrealized_pnl=position.unrealized_pnl(),
        )
        self._history.append(trade)

        log.info(
            "paper.trade",
            action=action,
            side=trade.side,
            size=trade.size,
            symbol=symbol,
            price=trade.price,
            position=trade.position_size,
            realized=realized,
            unrealized=trade.unrealized_pnl,
            detail=format_trade(trade),
        )

        self._publish(
            TradeCommitted.create(
                sequence=self._next_sequence(),
                symbol=symbol,
                action=action,
                side=trade.side,
                size=trade.size,
                price=trade.price,
                realized_pnl=realized,
                position_size=trade.position_size,
                unrealized_pnl=trade.unrealized_pnl,
                trade_time=trade.timestamp,
                fills=batch.fills,
            )
        )

        snap = self._snapshot_locked()
        self._publish(
            AccountSnapshotTaken.create(
                sequence=self._next_sequence(),
                total_pnl=snap.total_pnl,
                realized_pnl=snap.total_realized_pnl,
                unrealized_pnl=snap.total_unrealized_pnl,
                available_capital=snap.available_capital,
                exposure=snap.current_exposure,
                num_trades=snap.total_trades,
                positions=snap.positions_payload(),
            )
        )

        return trade

    def _size_trade(self, batch: AggregatedTrade) -> float:
        """
        Apply the exposure guard. Returns the signed size to trade, or 0.0 to skip.
        """
        cfg = self._config

        if cfg.dynamic_sizing:
            assert cfg.base_notional is not None
            qty = self._guard.dynamic_trade_size(
                self._book,
                base_notional=cfg.base_notional,
                price=batch.avg_price,
            )
            if qty <= 0.0:
                self._skip(batch, reason="no_remaining_capacity")
                return 0.0
            return qty if batch.signed_size > 0 else -qty

        held = self._book.get(batch.symbol)
        old_size = held.size if held is not None else 0.0
        resulting = net_size(old_size, batch.signed_size)

        # Trades that do not grow the position are never blocked
        if abs(resulting) <= abs(old_size):
            return batch.signed_size

        rc = self._guard.validate_position_size(
            self._book,
            symbol=batch.symbol,
            size=resulting,
            price=batch.avg_price,
        )
        if not rc.ok:
            self._skip(batch, reason=rc.reason)
            return 0.0
        return batch.signed_size

    def _skip(self, batch: AggregatedTrade, *, reason: str) -> None:
        log.info(
            "paper.trade_skipped",
            symbol=batch.symbol,
            reason=reason,
            requested_size=batch.signed_size,
            price=batch.avg_price,
        )
        self._publish(
            TradeSkipped.create(
                sequence=self._next_sequence(),
                symbol=batch.symbol,
                reason=reason,
                requested_size=batch.signed_size,
                price=batch.avg_price,
            )
        )

    def _snapshot_locked(self) -> PortfolioSnapshot:
        return take_snapshot(
            book=self._book,
            guard=self._guard,
            total_trades=self._total_trades,
            started_at_utc=self._started_at,
        )

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def _publish(self, event: Event) -> None:
        # Collaborator failures must never escape into accounting
        try:
            self._bus.publish(event)
        except Exception:
            log.exception("paper.hook_failed", event_type=event.event_type)
