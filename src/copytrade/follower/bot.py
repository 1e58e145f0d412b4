from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Protocol, Sequence, TextIO

import structlog

from copytrade.execution.oms.fills import Fill
from copytrade.execution.paper.trader import PaperTrader
from copytrade.follower.dedupe import ProcessedFillCache

if TYPE_CHECKING:
    from copytrade.core.config.settings import AppSettings

log = structlog.get_logger()


class FillSource(Protocol):
    def user_fills_by_time(self, user: str, *, start_ms: int, end_ms: int | None = None) -> Sequence[Fill]:
        ...


@dataclass(frozen=True, slots=True)
class FollowerConfig:
    target_account: str
    copy_threshold: float = 1000.0        # min fill notional to copy
    poll_interval: float = 5.0            # seconds
    lookback: float = 3600.0              # seconds of history fetched per check
    processed_ttl: float = 7200.0         # seconds a seen hash is remembered
    max_fills_per_check: int = 50
    max_retries: int = 3
    retry_delay: float = 2.0              # seconds, multiplied by the attempt number
    summary_interval: int = 10            # print a summary every N trades (0 = never)
    recent_trades_count: int = 10

    def __post_init__(self) -> None:
        if not self.target_account:
            raise ValueError("target_account must be non-empty")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        if self.max_fills_per_check < 1:
            raise ValueError("max_fills_per_check must be >= 1")
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")

    @classmethod
    def from_settings(cls, s: "AppSettings") -> "FollowerConfig":
        return cls(
            target_account=s.target_account,
            copy_threshold=s.copy_threshold,
            poll_interval=s.poll_interval_seconds,
            lookback=s.lookback_seconds,
            processed_ttl=s.processed_ttl_seconds,
            max_fills_per_check=s.max_fills_per_check,
            max_retries=s.max_retries,
            retry_delay=s.retry_delay_seconds,
            summary_interval=s.summary_interval,
            recent_trades_count=s.recent_trades_count,
        )


def _wall_ms() -> int:
    return int(time.time() * 1000)


class FollowerBot:
    """
    Polls the monitored account's fills and forwards new, large-enough ones
    to the paper trader.

    One check:
      fetch [now - lookback, now] -> prune hashes older than now - processed_ttl
      -> skip seen hashes -> skip below copy_threshold (left unmarked)
      -> mark + process_fill, at most max_fills_per_check per check

    A failing check is retried with linear backoff; once retries are exhausted
    the error is logged and polling continues.
    """

    def __init__(
        self,
        *,
        client: FillSource,
        trader: PaperTrader,
        config: FollowerConfig,
        wall_ms: Callable[[], int] = _wall_ms,
        sleep: Callable[[float], object] | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self._client = client
        self._trader = trader
        self._config = config
        self._wall_ms = wall_ms
        self._stream = stream

        self._processed = ProcessedFillCache()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        # Retry backoff waits on the stop flag so stop() is not delayed by it
        self._sleep = sleep if sleep is not None else self._stop.wait

        self._last_summary_at = 0
        self._checks = 0
        self._failed_checks = 0

    @property
    def config(self) -> FollowerConfig:
        return self._config

    @property
    def trader(self) -> PaperTrader:
        return self._trader

    @property
    def processed(self) -> ProcessedFillCache:
        return self._processed

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def checks(self) -> int:
        return self._checks

    @property
    def failed_checks(self) -> int:
        return self._failed_checks

    # --- Lifecycle ----------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="copytrade-follower", daemon=True)
        self._thread.start()
        log.info("follower.started", target=self._config.target_account, poll_interval=self._config.poll_interval)

    def stop(self, timeout: float | None = None) -> None:
        if self._thread is None:
            return

        log.info("follower.stopping")
        self._stop.set()
        self._thread.join(timeout)
        self._thread = None

        self._trader.print_portfolio_summary(self._stream)
        self._trader.print_recent_trades(self._config.recent_trades_count, self._stream)

    def _run(self) -> None:
        while not self._stop.is_set():
            self.check_with_retries()
            if self._stop.wait(self._config.poll_interval):
                break

    # --- Checks -------------------------------------------------------------

    def check_with_retries(self) -> bool:
        """
        Run one check, retrying failures. Returns False when every attempt failed.
        """
        cfg = self._config
        self._checks += 1

        for attempt in range(1, cfg.max_retries + 1):
            try:
                self.check_once()
                return True
            except Exception as exc:
                log.warning("follower.check_failed", attempt=attempt, max_retries=cfg.max_retries, error=repr(exc))
                if attempt < cfg.max_retries:
                    self._sleep(attempt * cfg.retry_delay)
                if self._stop.is_set():
                    break

        self._failed_checks += 1
        log.error("follower.check_abandoned", max_retries=cfg.max_retries)
        return False

    def check_once(self) -> int:
        """
        Fetch, filter and forward new fills. Returns how many fills were forwarded.
        """
        cfg = self._config
        now_ms = self._wall_ms()

        fills = self._client.user_fills_by_time(
            cfg.target_account,
            start_ms=now_ms - int(cfg.lookback * 1000),
            end_ms=now_ms,
        )
        self._processed.cleanup(now_ms - int(cfg.processed_ttl * 1000))

        forwarded = 0
        for fill in fills:
            if forwarded >= cfg.max_fills_per_check:
                log.info("follower.fill_limit_reached", limit=cfg.max_fills_per_check)
                break
            if self._process(fill):
                forwarded += 1

        if forwarded:
            log.info("follower.fills_processed", count=forwarded)
            self._maybe_print_summary()

        return forwarded

    def _process(self, fill: Fill) -> bool:
        if fill.hash and self._processed.contains(fill.hash):
            return False

        # Below-threshold fills are not marked: a later check sees them again
        if fill.notional < self._config.copy_threshold:
            log.debug("follower.below_threshold", symbol=fill.symbol, notional=fill.notional)
            return False

        log.info(
            "follower.new_fill",
            side=fill.side,
            symbol=fill.symbol,
            size=fill.size,
            price=fill.price,
            hash=fill.hash[:8],
        )
        if fill.hash:
            self._processed.mark(fill.hash, fill.time_ms)
        self._trader.process_fill(fill)
        return True

    def _maybe_print_summary(self) -> None:
        interval = self._config.summary_interval
        if interval <= 0:
            return
        total = self._trader.total_trades
        if total > 0 and total // interval > self._last_summary_at // interval:
            self._trader.print_portfolio_summary(self._stream)
        self._last_summary_at = total

