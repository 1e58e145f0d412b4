from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from copytrade.execution.paper.trader import PaperTrader

router = APIRouter(tags=["portfolio"])


# =========================
# Schemas
# =========================

class PositionView(BaseModel):
    symbol: str
    size: float
    avg_entry_price: float
    last_price: float
    realized_pnl: float
    unrealized_pnl: float
    market_value: float
    pnl_pct: float


class PortfolioResponse(BaseModel):
    started_at_utc: datetime
    taken_at_utc: datetime
    total_pnl: float
    total_realized_pnl: float
    total_unrealized_pnl: float
    total_trades: int
    avg_pnl_per_trade: float
    available_capital: float
    max_exposure: float
    current_exposure: float
    positions: list[PositionView]


class TradeView(BaseModel):
    timestamp: datetime
    symbol: str
    action: str
    side: str
    size: float
    price: float
    realized_pnl: float
    position_size: float
    unrealized_pnl: float


class TradesResponse(BaseModel):
    total_trades: int
    trades: list[TradeView]


# =========================
# Routes
# =========================

def _trader(request: Request) -> PaperTrader:
    return request.app.state.trader


@router.get("/portfolio", response_model=PortfolioResponse, summary="Current paper portfolio")
def portfolio(request: Request) -> PortfolioResponse:
    snap = _trader(request).snapshot()
    return PortfolioResponse(
        started_at_utc=snap.started_at_utc,
        taken_at_utc=snap.taken_at_utc,
        total_pnl=snap.total_pnl,
        total_realized_pnl=snap.total_realized_pnl,
        total_unrealized_pnl=snap.total_unrealized_pnl,
        total_trades=snap.total_trades,
        avg_pnl_per_trade=snap.avg_pnl_per_trade,
        available_capital=snap.available_capital,
        max_exposure=snap.max_exposure,
        current_exposure=snap.current_exposure,
        positions=[
            PositionView(
                symbol=p.symbol,
                size=p.size,
                avg_entry_price=p.avg_entry_price,
                last_price=p.last_price,
                realized_pnl=p.realized_pnl,
                unrealized_pnl=p.unrealized_pnl,
                market_value=p.market_value,
                pnl_pct=p.pnl_pct,
            )
            for p in snap.positions
        ],
    )


@router.get("/trades", response_model=TradesResponse, summary="Most recent paper trades")
def trades(
    request: Request,
    limit: int = Query(default=50, ge=1, le=1000, description="Max trades, newest last"),
) -> TradesResponse:
    trader = _trader(request)
    recent = trader.recent_trades(limit)
    return TradesResponse(
        total_trades=trader.total_trades,
        trades=[
            TradeView(
                timestamp=t.timestamp,
                symbol=t.symbol,
                action=t.action,
                side=t.side,
                size=t.size,
                price=t.price,
                realized_pnl=t.realized_pnl,
                position_size=t.position_size,
                unrealized_pnl=t.unrealized_pnl,
            )
            for t in recent
        ],
    )
