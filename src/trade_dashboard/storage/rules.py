"""Rule persistence behind a single repository interface.

Rules have historically lived in two places: a table next to the trades and
a local key-value file. Both are kept as interchangeable backends so the
dashboard only ever talks to ``RuleRepository``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from pathlib import Path
from typing import Any, Callable, Protocol

from trade_dashboard.config.app_config import RulesSettings
from trade_dashboard.models import Rule
from trade_dashboard.storage import sqlite_reader, sqlite_store

logger = logging.getLogger(__name__)

RULES_KEY = "tradingRules"
_INITIALIZED_FLAG = "rules_initialized"

DEFAULT_RULES: tuple[tuple[str, float], ...] = (
    ("Only trade with trend", 5.0),
    ("Use proper position sizing (1-2%)", 5.0),
    ("Wait for confirmation before entry", 4.0),
    ("Have clear stop loss", 5.0),
    ("Follow trade plan", 4.0),
)


class RuleNotFoundError(KeyError):
    pass


class RuleRepository(Protocol):
    def list_rules(self) -> list[Rule]: ...

    def add_rule(self, name: str) -> Rule: ...

    def delete_rule(self, rule_id: str) -> Rule: ...

    def save_rules(self, rules: list[Rule]) -> None: ...

    def clear(self) -> None: ...


def default_rules() -> list[Rule]:
    return [Rule(rule_id=_new_id(), name=name, impact=impact) for name, impact in DEFAULT_RULES]


class _BaseRuleRepository:
    def list_rules(self) -> list[Rule]:
        rules = self._read()
        if rules is None:
            rules = default_rules()
            logger.info("Seeding %d default rules", len(rules))
            self._write(rules)
        return rules

    def add_rule(self, name: str) -> Rule:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValueError("Rule name required")
        rule = Rule(rule_id=_new_id(), name=cleaned)
        self._write([*self.list_rules(), rule])
        return rule

    def delete_rule(self, rule_id: str) -> Rule:
        rules = self.list_rules()
        match = next((rule for rule in rules if rule.rule_id == rule_id), None)
        if match is None:
            raise RuleNotFoundError(rule_id)
        self._write([rule for rule in rules if rule.rule_id != rule_id])
        return match

    def save_rules(self, rules: list[Rule]) -> None:
        self._write(list(rules))

    def clear(self) -> None:
        self._write([])

    def _read(self) -> list[Rule] | None:
        raise NotImplementedError

    def _write(self, rules: list[Rule]) -> None:
        raise NotImplementedError


class SqliteRuleRepository(_BaseRuleRepository):
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _read(self) -> list[Rule] | None:
        if sqlite_store.get_flag(self._conn, _INITIALIZED_FLAG) is None:
            return None
        return sqlite_reader.load_rules(self._conn)

    def _write(self, rules: list[Rule]) -> None:
        sqlite_store.replace_rules(self._conn, rules)
        sqlite_store.set_flag(self._conn, _INITIALIZED_FLAG, "1")


class JsonRuleRepository(_BaseRuleRepository):
    """Rules kept under one key of a local JSON key-value file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def _read(self) -> list[Rule] | None:
        store = self._load_store()
        raw = store.get(RULES_KEY)
        if raw is None:
            return None
        if not isinstance(raw, list):
            raise ValueError(f"Corrupt rules entry in {self._path}")
        return [_rule_from_dict(item) for item in raw if isinstance(item, dict)]

    def _write(self, rules: list[Rule]) -> None:
        store = self._load_store()
        store[RULES_KEY] = [_rule_to_dict(rule) for rule in rules]
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(store, indent=2, sort_keys=True) + "\n", encoding="utf-8")

    def _load_store(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        text = self._path.read_text(encoding="utf-8").strip()
        if not text:
            return {}
        payload = json.loads(text)
        if not isinstance(payload, dict):
            raise ValueError(f"Unsupported key-value store format: {self._path}")
        return payload


def open_rule_repository(
    settings: RulesSettings,
    conn_factory: Callable[[], sqlite3.Connection],
) -> RuleRepository:
    if settings.backend == "json":
        return JsonRuleRepository(settings.json_path)
    if settings.backend == "sqlite":
        return SqliteRuleRepository(conn_factory())
    raise ValueError(f"Unknown rules backend: {settings.backend}")


def _rule_to_dict(rule: Rule) -> dict[str, Any]:
    return {
        "id": rule.rule_id,
        "name": rule.name,
        "followedCount": rule.followed_count,
        "notFollowedCount": rule.not_followed_count,
        "impact": rule.impact,
    }


def _rule_from_dict(raw: dict[str, Any]) -> Rule:
    return Rule(
        rule_id=str(raw.get("id") or _new_id()),
        name=str(raw.get("name") or ""),
        followed_count=int(raw.get("followedCount") or 0),
        not_followed_count=int(raw.get("notFollowedCount") or 0),
        impact=float(raw.get("impact") or 0.0),
    )


def _new_id() -> str:
    return str(uuid.uuid4())
