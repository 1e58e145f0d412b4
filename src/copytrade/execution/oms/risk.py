# src/copytrade/execution/oms/risk.py
from __future__ import annotations

from dataclasses import dataclass
from math import isfinite

import structlog

from copytrade.execution.oms.positions import PositionBook

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class RiskCheckResult:
    ok: bool
    reason: str  # machine-friendly code


class ExposureGuard:
    """
    Capital & exposure guard.

    available capital = bankroll + realized PnL + unrealized PnL (floating)
    max exposure      = available capital * leverage
    current exposure  = sum(|size| * last price) over open positions

    Nothing is cached: every call re-evaluates the book, so profitable sessions
    expand capacity and losing sessions contract it.
    """

    _REL_EPS: float = 1e-9

    def __init__(self, *, bankroll: float, leverage: float) -> None:
        if not isfinite(bankroll) or bankroll <= 0:
            raise ValueError("bankroll must be finite and > 0")
        if not isfinite(leverage) or leverage < 1:
            raise ValueError("leverage must be finite and >= 1")
        self._bankroll = bankroll
        self._leverage = leverage

    @property
    def bankroll(self) -> float:
        return self._bankroll

    @property
    def leverage(self) -> float:
        return self._leverage

    def available_capital(self, book: PositionBook) -> float:
        return self._bankroll + book.total_realized_pnl + book.total_unrealized_pnl()

    def max_exposure(self, book: PositionBook) -> float:
        return self.available_capital(book) * self._leverage

    @staticmethod
    def current_exposure(book: PositionBook, *, exclude: str | None = None) -> float:
        return sum(pos.exposure for pos in book.open_positions() if pos.symbol != exclude)

    def validate_position_size(
        self,
        book: PositionBook,
        *,
        symbol: str,
        size: float,
        price: float,
    ) -> RiskCheckResult:
        """
        Hard validation: reject if exposure elsewhere plus the notional of the
        resulting position on `symbol` would breach the leverage ceiling.

        `size` is the position size after the trade, not the trade delta. The
        held position is re-marked at `price` before the ceiling is computed.
        """
        notional = abs(size * price)
        if not isfinite(notional):
            return RiskCheckResult(ok=False, reason="invalid_notional")

        capital = self.available_capital(book)
        held = book.get(symbol)
        if held is not None and not held.is_flat:
            capital += held.size * (price - held.last_price)
        limit = capital * self._leverage
        projected = self.current_exposure(book, exclude=symbol) + notional

        if projected > limit + abs(limit) * self._REL_EPS:
            log.info(
                "guard.rejected",
                symbol=symbol,
                notional=notional,
                projected_exposure=projected,
                max_exposure=limit,
            )
            return RiskCheckResult(ok=False, reason="exposure_limit_breach")

        return RiskCheckResult(ok=True, reason="ok")

    def dynamic_trade_size(self, book: PositionBook, *, base_notional: float, price: float) -> float:
        """
        Quantity worth min(base_notional, remaining capacity) at `price`, floored at zero.
        """
        if price <= 0:
            return 0.0

        remaining = self.max_exposure(book) - self.current_exposure(book)
        if remaining <= 0.0:
            return 0.0

        return min(base_notional, remaining) / price
