from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Any

from trade_dashboard.models import Rule, Setup, Trade


def load_setups(conn: sqlite3.Connection) -> list[Setup]:
    rows = conn.execute("SELECT * FROM trading_setups ORDER BY name").fetchall()
    return [_setup_from_row(row) for row in rows]


def load_trades(conn: sqlite3.Connection) -> list[Trade]:
    """Trades newest first, each with its setup attached."""
    setups = {setup.setup_id: setup for setup in load_setups(conn)}
    # NULL entry dates sort last under DESC in SQLite.
    rows = conn.execute("SELECT * FROM trades ORDER BY entry_date DESC").fetchall()
    trades: list[Trade] = []
    for row in rows:
        setup_id = row["setup_id"]
        trades.append(
            Trade(
                trade_id=row["trade_id"],
                symbol=row["symbol"],
                direction=row["direction"],
                entry_date=_parse_iso(row["entry_date"]),
                entry_price=row["entry_price"],
                quantity=row["quantity"],
                exit_date=_parse_iso(row["exit_date"]),
                exit_price=row["exit_price"],
                profit_loss=row["profit_loss"],
                setup_id=setup_id,
                setup=setups.get(setup_id) if setup_id else None,
                rules_followed=_name_list(row["rules_followed"]),
                rules_violated=_name_list(row["rules_violated"]),
                notes=row["notes"],
                screenshot_url=row["screenshot_url"],
                created_at=_parse_iso(row["created_at"]),
                updated_at=_parse_iso(row["updated_at"]),
            )
        )
    return trades


def load_rules(conn: sqlite3.Connection) -> list[Rule]:
    rows = conn.execute("SELECT * FROM rules ORDER BY position, name").fetchall()
    return [
        Rule(
            rule_id=row["rule_id"],
            name=row["name"],
            followed_count=row["followed_count"],
            not_followed_count=row["not_followed_count"],
            impact=row["impact"],
        )
        for row in rows
    ]


def _setup_from_row(row: sqlite3.Row) -> Setup:
    return Setup(
        setup_id=row["setup_id"],
        name=row["name"],
        category=row["category"],
        description=row["description"],
        criteria=row["criteria"],
        entry_rules=row["entry_rules"],
        exit_rules=row["exit_rules"],
        risk_management=row["risk_management"],
        is_active=bool(row["is_active"]),
        created_at=_parse_iso(row["created_at"]),
        updated_at=_parse_iso(row["updated_at"]),
    )


def _name_list(value: Any) -> list[str]:
    if value is None:
        return []
    text = str(value).strip()
    if not text:
        return []
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return [item.strip() for item in text.split(",") if item.strip()]
    if isinstance(parsed, list):
        return [str(item) for item in parsed]
    return []


def _parse_iso(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)
