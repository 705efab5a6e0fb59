from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    import tomli as tomllib

CONFIG_ENV_VAR = "TRADE_DASHBOARD_CONFIG"
RULE_BACKENDS = ("sqlite", "json")


@dataclass(frozen=True)
class AppSettings:
    db_path: Path
    host: str
    port: int
    reload: bool


@dataclass(frozen=True)
class RulesSettings:
    backend: str
    json_path: Path


@dataclass(frozen=True)
class DashboardSettings:
    timezone: str
    health_weeks: int
    top_limit: int

    def tzinfo(self) -> tzinfo | None:
        """``None`` means the host's local zone."""
        if self.timezone in ("", "local"):
            return None
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    rules: RulesSettings
    dashboard: DashboardSettings


def load_app_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    environ = os.environ if env is None else env
    config_path = path or Path(environ.get(CONFIG_ENV_VAR) or "config/app.toml")
    raw: Mapping[str, Any] = {}
    if config_path.exists():
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))

    app_raw = _section(raw, "app")
    rules_raw = _section(raw, "rules")
    dashboard_raw = _section(raw, "dashboard")

    app = AppSettings(
        db_path=Path(app_raw.get("db_path", "data/trade_dashboard.sqlite")),
        host=str(app_raw.get("host", "127.0.0.1")),
        port=int(app_raw.get("port", 8000)),
        reload=bool(app_raw.get("reload", False)),
    )

    backend = str(rules_raw.get("backend", "sqlite")).strip().lower()
    if backend not in RULE_BACKENDS:
        raise ValueError(f"Unknown rules backend: {backend}")
    rules = RulesSettings(
        backend=backend,
        json_path=Path(rules_raw.get("json_path", "data/rules.json")),
    )

    timezone_name = str(dashboard_raw.get("timezone", "local")).strip() or "local"
    validate_timezone(timezone_name)
    dashboard = DashboardSettings(
        timezone=timezone_name,
        health_weeks=_positive_int(dashboard_raw.get("health_weeks"), 7),
        top_limit=_positive_int(dashboard_raw.get("top_limit"), 4),
    )

    return AppConfig(app=app, rules=rules, dashboard=dashboard)


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if isinstance(value, Mapping):
        return value
    return {}


def _positive_int(value: Any, default: int) -> int:
    if value in (None, ""):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def validate_timezone(name: str) -> None:
    if name == "local":
        return
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc
