from __future__ import annotations

from fastapi import APIRouter

from copytrade.api.routes.health import router as health_router
from copytrade.api.routes.portfolio import router as portfolio_router

# Top-level API router
router = APIRouter()

# Route composition
router.include_router(health_router)
router.include_router(portfolio_router)
