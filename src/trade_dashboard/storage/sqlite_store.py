from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from trade_dashboard.models import Rule, Setup, Trade

logger = logging.getLogger(__name__)


class SetupInUseError(RuntimeError):
    def __init__(self, setup_id: str, trade_count: int) -> None:
        super().__init__(f"Setup {setup_id} is referenced by {trade_count} trade(s)")
        self.setup_id = setup_id
        self.trade_count = trade_count


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS trading_setups (
            setup_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            category TEXT NOT NULL,
            description TEXT,
            criteria TEXT,
            entry_rules TEXT,
            exit_rules TEXT,
            risk_management TEXT,
            is_active INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS trades (
            trade_id TEXT PRIMARY KEY,
            symbol TEXT NOT NULL,
            direction TEXT NOT NULL,
            entry_date TEXT,
            exit_date TEXT,
            entry_price REAL NOT NULL,
            exit_price REAL,
            quantity INTEGER NOT NULL,
            profit_loss REAL,
            setup_id TEXT REFERENCES trading_setups(setup_id),
            rules_followed TEXT NOT NULL,
            rules_violated TEXT NOT NULL,
            notes TEXT,
            screenshot_url TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS rules (
            rule_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            followed_count INTEGER NOT NULL,
            not_followed_count INTEGER NOT NULL,
            impact REAL NOT NULL,
            position INTEGER NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            schema_version INTEGER NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        INSERT OR IGNORE INTO schema_version (id, schema_version, updated_at)
        VALUES (1, 1, CURRENT_TIMESTAMP)
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_trades_entry_date ON trades (entry_date)")
    conn.commit()


def upsert_setups(conn: sqlite3.Connection, setups: Iterable[Setup]) -> int:
    now = _now_iso()
    rows = []
    for setup in setups:
        rows.append(
            {
                "setup_id": setup.setup_id,
                "name": setup.name,
                "category": setup.category,
                "description": setup.description,
                "criteria": setup.criteria,
                "entry_rules": setup.entry_rules,
                "exit_rules": setup.exit_rules,
                "risk_management": setup.risk_management,
                "is_active": 1 if setup.is_active else 0,
                "created_at": _iso_or(setup.created_at, now),
                "updated_at": _iso_or(setup.updated_at, now),
            }
        )
    conn.executemany(
        """
        INSERT INTO trading_setups (
            setup_id, name, category, description, criteria, entry_rules, exit_rules,
            risk_management, is_active, created_at, updated_at
        )
        VALUES (
            :setup_id, :name, :category, :description, :criteria, :entry_rules, :exit_rules,
            :risk_management, :is_active, :created_at, :updated_at
        )
        ON CONFLICT(setup_id) DO UPDATE SET
            name=excluded.name,
            category=excluded.category,
            description=excluded.description,
            criteria=excluded.criteria,
            entry_rules=excluded.entry_rules,
            exit_rules=excluded.exit_rules,
            risk_management=excluded.risk_management,
            is_active=excluded.is_active,
            updated_at=excluded.updated_at
        """,
        rows,
    )
    conn.commit()
    return len(rows)


def upsert_trades(conn: sqlite3.Connection, trades: Iterable[Trade]) -> int:
    now = _now_iso()
    trade_list = list(trades)
    # Setups embedded in trades must exist before the foreign key is written.
    linked = {trade.setup.setup_id: trade.setup for trade in trade_list if trade.setup is not None}
    existing = {row[0] for row in conn.execute("SELECT setup_id FROM trading_setups").fetchall()}
    missing = [setup for setup_id, setup in linked.items() if setup_id not in existing]
    if missing:
        upsert_setups(conn, missing)
        existing.update(setup.setup_id for setup in missing)

    rows = []
    for trade in trade_list:
        setup_id = trade.setup.setup_id if trade.setup is not None else trade.setup_id
        if setup_id is not None and setup_id not in existing:
            logger.warning("Trade %s references unknown setup %s; storing unlinked", trade.trade_id, setup_id)
            setup_id = None
        rows.append(
            {
                "trade_id": trade.trade_id,
                "symbol": trade.symbol,
                "direction": trade.direction,
                "entry_date": _iso_or(trade.entry_date, None),
                "exit_date": _iso_or(trade.exit_date, None),
                "entry_price": trade.entry_price,
                "exit_price": trade.exit_price,
                "quantity": trade.quantity,
                "profit_loss": trade.profit_loss,
                "setup_id": setup_id,
                "rules_followed": _json_dump(trade.rules_followed),
                "rules_violated": _json_dump(trade.rules_violated),
                "notes": trade.notes,
                "screenshot_url": trade.screenshot_url,
                "created_at": _iso_or(trade.created_at, now),
                "updated_at": _iso_or(trade.updated_at, now),
            }
        )
    conn.executemany(
        """
        INSERT INTO trades (
            trade_id, symbol, direction, entry_date, exit_date, entry_price, exit_price, quantity,
            profit_loss, setup_id, rules_followed, rules_violated, notes, screenshot_url,
            created_at, updated_at
        )
        VALUES (
            :trade_id, :symbol, :direction, :entry_date, :exit_date, :entry_price, :exit_price, :quantity,
            :profit_loss, :setup_id, :rules_followed, :rules_violated, :notes, :screenshot_url,
            :created_at, :updated_at
        )
        ON CONFLICT(trade_id) DO UPDATE SET
            symbol=excluded.symbol,
            direction=excluded.direction,
            entry_date=excluded.entry_date,
            exit_date=excluded.exit_date,
            entry_price=excluded.entry_price,
            exit_price=excluded.exit_price,
            quantity=excluded.quantity,
            profit_loss=excluded.profit_loss,
            setup_id=excluded.setup_id,
            rules_followed=excluded.rules_followed,
            rules_violated=excluded.rules_violated,
            notes=excluded.notes,
            screenshot_url=excluded.screenshot_url,
            updated_at=excluded.updated_at
        """,
        rows,
    )
    conn.commit()
    return len(rows)


def delete_trade(conn: sqlite3.Connection, trade_id: str) -> bool:
    cursor = conn.execute("DELETE FROM trades WHERE trade_id = ?", (trade_id,))
    conn.commit()
    return cursor.rowcount > 0


def delete_setup(conn: sqlite3.Connection, setup_id: str) -> bool:
    in_use = conn.execute(
        "SELECT COUNT(*) FROM trades WHERE setup_id = ?", (setup_id,)
    ).fetchone()[0]
    if in_use:
        raise SetupInUseError(setup_id, in_use)
    cursor = conn.execute("DELETE FROM trading_setups WHERE setup_id = ?", (setup_id,))
    conn.commit()
    return cursor.rowcount > 0


def replace_rules(conn: sqlite3.Connection, rules: Iterable[Rule]) -> int:
    rows = [
        {
            "rule_id": rule.rule_id,
            "name": rule.name,
            "followed_count": rule.followed_count,
            "not_followed_count": rule.not_followed_count,
            "impact": rule.impact,
            "position": position,
        }
        for position, rule in enumerate(rules)
    ]
    with conn:
        conn.execute("DELETE FROM rules")
        conn.executemany(
            """
            INSERT INTO rules (rule_id, name, followed_count, not_followed_count, impact, position)
            VALUES (:rule_id, :name, :followed_count, :not_followed_count, :impact, :position)
            """,
            rows,
        )
    return len(rows)


def get_flag(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
    return None if row is None else row[0]


def set_flag(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        """
        INSERT INTO kv_store (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )
    conn.commit()


def _iso_or(value: datetime | None, default: str | None) -> str | None:
    if value is None:
        return default
    # Aware values are stored in UTC so text ordering matches time ordering.
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_dump(value: object) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True)
