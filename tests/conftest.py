"""Shared fixtures for the trade-dashboard test suite."""

from __future__ import annotations

import itertools
from datetime import datetime
from pathlib import Path

import pytest

from trade_dashboard.models import Setup, Trade

_ids = itertools.count(1)


def build_setup(name: str = "Breakout", setup_id: str | None = None, **kwargs) -> Setup:
    return Setup(setup_id=setup_id or f"setup-{next(_ids)}", name=name, **kwargs)


def build_trade(
    pnl: float | None = 0.0,
    *,
    entry: datetime | None = datetime(2024, 1, 1, 8, 0),
    exit: datetime | None = None,
    symbol: str = "AAPL",
    setup: Setup | None = None,
    followed: list[str] | None = None,
    violated: list[str] | None = None,
    trade_id: str | None = None,
) -> Trade:
    return Trade(
        trade_id=trade_id or f"trade-{next(_ids)}",
        symbol=symbol,
        direction="long",
        entry_date=entry,
        entry_price=100.0,
        quantity=10,
        exit_date=exit,
        exit_price=None if exit is None else 101.0,
        profit_loss=pnl,
        setup_id=None if setup is None else setup.setup_id,
        setup=setup,
        rules_followed=list(followed or []),
        rules_violated=list(violated or []),
    )


@pytest.fixture
def make_trade():
    return build_trade


@pytest.fixture
def make_setup():
    return build_setup


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "app.toml"
    path.write_text(
        "\n".join(
            [
                "[app]",
                f'db_path = "{(tmp_path / "journal.sqlite").as_posix()}"',
                "",
                "[rules]",
                'backend = "sqlite"',
                f'json_path = "{(tmp_path / "rules.json").as_posix()}"',
                "",
                "[dashboard]",
                'timezone = "local"',
            ]
        )
        + "\n",
        encoding="utf-8",
    )
    return path
