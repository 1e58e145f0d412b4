from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from copytrade.app.cli import cli


def test_run_requires_target_account(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("COPYTRADE_TARGET_ACCOUNT", raising=False)
    cfg = tmp_path / "copytrade.toml"
    cfg.write_text(f'data_dir = "{tmp_path.as_posix()}"\nlog_format = "console"\n')

    result = CliRunner().invoke(cli, ["run", str(cfg)])

    assert result.exit_code != 0
    assert "target_account is required" in result.output


def test_invalid_config_is_reported(tmp_path: Path) -> None:
    cfg = tmp_path / "bad.toml"
    cfg.write_text("leverage = 0.25\n")

    result = CliRunner().invoke(cli, ["run", str(cfg)])

    assert result.exit_code == 1
    assert "invalid configuration" in result.output


def test_missing_config_file_is_a_usage_error(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["serve", str(tmp_path / "nope.toml")])
    assert result.exit_code == 2
