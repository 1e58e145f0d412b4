"""
CLI entry point: copytrade run | serve.

Both commands take an optional TOML config path; COPYTRADE_* environment
variables override values from the file.
"""
from __future__ import annotations

import signal
import threading
from pathlib import Path

import click
import structlog

from copytrade.app.assembly import build_session
from copytrade.core.config.settings import AppSettings, load_settings
from copytrade.core.logging.setup import bind_context, configure_logging

log = structlog.get_logger()

_config_argument = click.argument(
    "config_path",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)


def _load(config_path: Path | None) -> AppSettings:
    try:
        settings = load_settings(config_path)
    except ValueError as exc:
        raise click.ClickException(f"invalid configuration: {exc}") from exc
    configure_logging(level=settings.log_level, fmt=settings.log_format)
    return settings


@click.group()
def cli() -> None:
    """copytrade: paper-trade a Hyperliquid account's fills."""


@cli.command()
@_config_argument
def run(config_path: Path | None) -> None:
    """Follow the target account until interrupted (Ctrl-C / SIGTERM)."""
    settings = _load(config_path)
    if not settings.target_account:
        raise click.UsageError("target_account is required (config file or COPYTRADE_TARGET_ACCOUNT)")

    session = build_session(settings)
    assert session.bot is not None
    bind_context(target=settings.target_account)

    stop = threading.Event()

    def _on_signal(signum: int, _frame: object) -> None:
        log.info("cli.signal", signal=signal.Signals(signum).name)
        stop.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    log.info("cli.starting", target=settings.target_account, testnet=settings.use_testnet)
    session.bot.start()
    try:
        while not stop.wait(1.0):
            pass
    finally:
        log.info("cli.shutting_down")
        session.shutdown()


@cli.command()
@_config_argument
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(config_path: Path | None, host: str, port: int) -> None:
    """Run the follower behind the HTTP API."""
    import uvicorn

    from copytrade.app.main import create_app

    settings = _load(config_path)
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


def main() -> None:
    cli()
