# src/copytrade/execution/oms/fills.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from math import isfinite
from typing import Any, Literal, Mapping

Side = Literal["buy", "sell"]

_VENUE_SIDES: dict[str, Side] = {"B": "buy", "A": "sell"}
_SIDE_CODES: dict[Side, str] = {"buy": "B", "sell": "A"}


def side_from_venue(code: str) -> Side:
    """
    Translate a venue side code ("B" bid/buy, "A" ask/sell) into a Side.
    """
    try:
        return _VENUE_SIDES[code]
    except KeyError:
        raise ValueError(f"unknown venue side code: {code!r}") from None


def venue_code(side: Side) -> str:
    return _SIDE_CODES[side]


def parse_decimal(text: str | None) -> float:
    """
    Parse a venue decimal string. Empty, malformed or non-finite input parses to 0.0.
    """
    if text is None:
        return 0.0
    try:
        value = float(text)
    except (TypeError, ValueError):
        return 0.0
    if not isfinite(value):
        return 0.0
    return value


@dataclass(frozen=True, slots=True)
class Fill:
    """
    One executed trade report from the monitored account.

    `closed_pnl` keeps the raw venue string; `closed_pnl_value` is the parsed float.
    """
    symbol: str
    side: Side
    size: float
    price: float
    time_ms: int
    closed_pnl: str = "0"
    hash: str = ""

    # Venue metadata, written to the fills journal
    order_id: int | None = None
    start_position: float | None = None
    direction: str | None = None
    crossed: bool | None = None
    fee: str | None = None

    def __post_init__(self) -> None:
        if not isfinite(self.size) or self.size < 0:
            raise ValueError(f"invalid fill size for {self.symbol}: {self.size!r}")
        if not isfinite(self.price) or self.price <= 0:
            raise ValueError(f"invalid fill price for {self.symbol}: {self.price!r}")

    @property
    def signed_size(self) -> float:
        return self.size if self.side == "buy" else -self.size

    @property
    def notional(self) -> float:
        return self.size * self.price

    @property
    def closed_pnl_value(self) -> float:
        return parse_decimal(self.closed_pnl)

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.time_ms / 1000.0, tz=timezone.utc)

    @classmethod
    def from_venue(cls, obj: Mapping[str, Any]) -> "Fill":
        """
        Build a Fill from a Hyperliquid `userFills` entry.

        Sizes and prices arrive string-encoded; they must parse (unlike closedPnl)
        and pass the same range checks as a directly built Fill.
        """
        coin = obj.get("coin")
        if not isinstance(coin, str) or not coin:
            raise ValueError("fill is missing 'coin'")

        side = side_from_venue(str(obj.get("side", "")))

        try:
            size = float(obj["sz"])
            price = float(obj["px"])
            time_ms = int(obj["time"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"malformed fill for {coin}: {exc}") from exc

        start = obj.get("startPosition")
        oid = obj.get("oid")

        return cls(
            symbol=coin,
            side=side,
            size=size,
            price=price,
            time_ms=time_ms,
            closed_pnl=str(obj.get("closedPnl", "0")),
            hash=str(obj.get("hash", "")),
            order_id=int(oid) if oid is not None else None,
            start_position=parse_decimal(start) if start is not None else None,
            direction=obj.get("dir"),
            crossed=obj.get("crossed"),
            fee=obj.get("fee"),
        )
