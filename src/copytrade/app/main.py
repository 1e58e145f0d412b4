from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI

from copytrade.api import router as api_router
from copytrade.app.assembly import SessionHandle, build_session
from copytrade.core.config.settings import AppSettings
from copytrade.core.logging.setup import bind_context, configure_logging
from copytrade.execution.paper.trader import PaperTrader
from copytrade.follower.bot import FollowerBot

log = structlog.get_logger()


def create_app(
    settings: AppSettings | None = None,
    *,
    trader: PaperTrader | None = None,
    bot: FollowerBot | None = None,
) -> FastAPI:
    """
    Application factory.

    This function is the single place where the FastAPI app
    is created and configured. Without an explicit trader a full session
    (trader, persistence, follower) is assembled from settings.
    """
    settings = settings if settings is not None else AppSettings()

    # Initialize structured logging
    configure_logging(level=settings.log_level, fmt=settings.log_format)

    session: SessionHandle | None = None
    if trader is None:
        session = build_session(settings)
        trader = session.trader
        bot = session.bot

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if bot is not None:
            bind_context(target=bot.config.target_account)
        log.info("app.startup", environment=settings.env, following=bot is not None)
        if bot is not None:
            bot.start()
        try:
            yield
        finally:
            if session is not None:
                session.shutdown()
            elif bot is not None:
                bot.stop()
            log.info("app.shutdown")

    app = FastAPI(
        title="copytrade",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.trader = trader
    app.state.bot = bot

    # Mount API
    app.include_router(api_router, prefix="/api")

    return app
