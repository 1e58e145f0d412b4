from __future__ import annotations

import io
import time

from copytrade.execution.oms.fills import Fill
from copytrade.execution.paper.trader import PaperTrader, TraderConfig
from copytrade.follower.bot import FollowerBot, FollowerConfig
from copytrade.venue.hyperliquid import VenueError

NOW_MS = 1_700_000_000_000


class FakeSource:
    """
    Returns scripted fill lists; an Exception entry is raised instead.
    The last script entry repeats once the script runs out.
    """

    def __init__(self, *script: list[Fill] | Exception) -> None:
        self.script = list(script)
        self.calls: list[tuple[str, int, int | None]] = []

    def user_fills_by_time(self, user: str, *, start_ms: int, end_ms: int | None = None) -> list[Fill]:
        self.calls.append((user, start_ms, end_ms))
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, Exception):
            raise step
        return step


class SleepRecorder:
    def __init__(self) -> None:
        self.waits: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


def _fill(h: str, size: float = 1.0, price: float = 2_000.0, *, side: str = "buy", t: int = NOW_MS) -> Fill:
    return Fill(symbol="ETH", side=side, size=size, price=price, time_ms=t, hash=h)  # type: ignore[arg-type]


def _bot(source: FakeSource, **cfg: object) -> tuple[FollowerBot, SleepRecorder, io.StringIO]:
    params: dict[str, object] = {"target_account": "0xtarget", "summary_interval": 0}
    params.update(cfg)
    sleep = SleepRecorder()
    out = io.StringIO()
    bot = FollowerBot(
        client=source,
        trader=PaperTrader(config=TraderConfig.immediate()),
        config=FollowerConfig(**params),  # type: ignore[arg-type]
        wall_ms=lambda: NOW_MS,
        sleep=sleep,
        stream=out,
    )
    return bot, sleep, out


def test_check_fetches_lookback_window() -> None:
    source = FakeSource([])
    bot, _, _ = _bot(source, lookback=600.0)

    assert bot.check_once() == 0
    assert source.calls == [("0xtarget", NOW_MS - 600_000, NOW_MS)]


def test_new_fills_are_forwarded_once() -> None:
    fills = [_fill("0x01"), _fill("0x02", side="sell", size=0.5)]
    bot, _, _ = _bot(FakeSource(fills))

    assert bot.check_once() == 2
    assert bot.check_once() == 0

    assert bot.trader.total_trades == 2
    assert bot.trader.position("ETH").size == 0.5
    assert bot.processed.contains("0x01") and bot.processed.contains("0x02")


def test_below_threshold_fills_are_not_marked() -> None:
    small = _fill("0xsmall", size=0.1, price=2_000.0)   # $200
    bot, _, _ = _bot(FakeSource([small]), copy_threshold=1_000.0)

    assert bot.check_once() == 0
    assert not bot.processed.contains("0xsmall")
    assert bot.trader.total_trades == 0


def test_per_check_limit_defers_the_rest() -> None:
    fills = [_fill(f"0x{i:02d}") for i in range(5)]
    bot, _, _ = _bot(FakeSource(fills), max_fills_per_check=3)

    assert bot.check_once() == 3
    assert bot.check_once() == 2
    assert bot.check_once() == 0
    assert bot.trader.total_trades == 5


def test_old_hashes_are_pruned() -> None:
    bot, _, _ = _bot(FakeSource([]), processed_ttl=60.0)
    bot.processed.mark("0xold", NOW_MS - 120_000)
    bot.processed.mark("0xnew", NOW_MS - 10_000)

    bot.check_once()

    assert not bot.processed.contains("0xold")
    assert bot.processed.contains("0xnew")
    assert len(bot.processed) == 1


def test_failed_checks_retry_with_linear_backoff() -> None:
    source = FakeSource(VenueError("503"), VenueError("timeout"), [_fill("0x01")])
    bot, sleep, _ = _bot(source, max_retries=3, retry_delay=2.0)

    assert bot.check_with_retries() is True
    assert sleep.waits == [2.0, 4.0]
    assert bot.trader.total_trades == 1
    assert bot.failed_checks == 0


def test_exhausted_retries_are_logged_not_raised() -> None:
    source = FakeSource(VenueError("down"))
    bot, sleep, _ = _bot(source, max_retries=3, retry_delay=1.5)

    assert bot.check_with_retries() is False
    assert sleep.waits == [1.5, 3.0]
    assert len(source.calls) == 3
    assert bot.failed_checks == 1
    assert bot.checks == 1


def test_summary_printed_every_n_trades() -> None:
    fills = [_fill(f"0x{i:02d}") for i in range(3)]
    bot, _, out = _bot(FakeSource(fills[:1], fills[:2], fills), summary_interval=2)

    bot.check_once()
    assert "PORTFOLIO SUMMARY" not in out.getvalue()

    bot.check_once()
    assert out.getvalue().count("PORTFOLIO SUMMARY") == 1

    bot.check_once()
    assert out.getvalue().count("PORTFOLIO SUMMARY") == 1


def test_background_thread_polls_and_stop_reports() -> None:
    source = FakeSource([_fill("0x01")])
    bot, _, out = _bot(source, poll_interval=0.01, recent_trades_count=5)

    bot.start()
    assert bot.running
    deadline = time.monotonic() + 5.0
    while bot.trader.total_trades == 0 and time.monotonic() < deadline:
        time.sleep(0.01)
    bot.stop(timeout=5.0)

    assert not bot.running
    assert bot.trader.total_trades == 1
    assert len(source.calls) >= 1
    text = out.getvalue()
    assert "PAPER TRADING PORTFOLIO SUMMARY" in text
    assert "LAST 5 TRADES" in text
