from __future__ import annotations

from dataclasses import dataclass

import structlog

from copytrade.core.config.settings import AppSettings
from copytrade.core.events.bus import EventBus
from copytrade.execution.paper.persistence import PaperPersistenceComponent
from copytrade.execution.paper.trader import PaperTrader, TraderConfig
from copytrade.follower.bot import FillSource, FollowerBot, FollowerConfig
from copytrade.storage.parquet import export_trade_history
from copytrade.venue.hyperliquid import HyperliquidInfoClient

log = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class SessionHandle:
    """
    Everything wired for one paper copy-trading session in this process.

    `bot` is None when no target account is configured (API-only session).
    """
    settings: AppSettings
    bus: EventBus
    trader: PaperTrader
    persistence: PaperPersistenceComponent
    bot: FollowerBot | None

    def shutdown(self) -> None:
        if self.bot is not None:
            self.bot.stop()

        path = self.settings.trade_history_parquet
        if path is not None:
            export_trade_history(path, self.trader.trade_history())


def build_session(settings: AppSettings, *, client: FillSource | None = None) -> SessionHandle:
    bus = EventBus()
    trader = PaperTrader(config=TraderConfig.from_settings(settings), bus=bus)

    persistence = PaperPersistenceComponent(data_dir=settings.data_dir, enabled=settings.persist_fills)
    bus.register(persistence)

    bot: FollowerBot | None = None
    if settings.target_account:
        source = client if client is not None else HyperliquidInfoClient(
            base_url=settings.base_url,
            timeout=settings.request_timeout_seconds,
        )
        bot = FollowerBot(client=source, trader=trader, config=FollowerConfig.from_settings(settings))

    log.info(
        "session.assembled",
        target=settings.target_account or None,
        venue=settings.base_url,
        bankroll=settings.bankroll,
        leverage=settings.leverage,
        dynamic_sizing=trader.config.dynamic_sizing,
        data_dir=str(settings.data_dir),
    )

    return SessionHandle(settings=settings, bus=bus, trader=trader, persistence=persistence, bot=bot)
