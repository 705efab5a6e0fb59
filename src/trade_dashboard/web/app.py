from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from jinja2 import Undefined
from pydantic import BaseModel

from trade_dashboard.config.app_config import AppConfig, load_app_config
from trade_dashboard.metrics.dashboard import (
    compute_dashboard_views,
    key_metrics_payload,
    trade_stats_payload,
    views_payload,
)
from trade_dashboard.metrics.rules import tally_rule_compliance
from trade_dashboard.metrics.summary import compute_key_metrics, compute_trade_stats
from trade_dashboard.models import Rule, Setup, Trade
from trade_dashboard.storage import sqlite_reader
from trade_dashboard.storage.rules import RuleNotFoundError, RuleRepository, open_rule_repository
from trade_dashboard.storage.sqlite_store import (
    SetupInUseError,
    connect as sqlite_connect,
    delete_setup,
    delete_trade,
    init_db,
)

logger = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent
TEMPLATES = Jinja2Templates(directory=str(APP_ROOT / "templates"))


app = FastAPI(title="Trade Dashboard")
app.mount("/static", StaticFiles(directory=str(APP_ROOT / "static")), name="static")


class RuleCreate(BaseModel):
    name: str


@app.get("/", response_class=HTMLResponse)
def dashboard(request: Request) -> HTMLResponse:
    config = load_app_config()
    with _connection(config) as conn:
        trades = sqlite_reader.load_trades(conn)
    context = {
        "page": "dashboard",
        "dashboard": _dashboard_payload(trades, config),
        "metrics": key_metrics_payload(compute_key_metrics(trades)),
        "recent_trades": [_trade_payload(trade) for trade in trades[:10]],
        "data_note": None if trades else "No trades logged yet.",
    }
    return TEMPLATES.TemplateResponse(request, "dashboard.html", context)


@app.get("/trades", response_class=HTMLResponse)
def trades_page(request: Request) -> HTMLResponse:
    config = load_app_config()
    with _connection(config) as conn:
        trades = sqlite_reader.load_trades(conn)
    context = {
        "page": "trades",
        "trades": [_trade_payload(trade) for trade in trades],
        "stats": trade_stats_payload(compute_trade_stats(trades)),
        "data_note": None,
    }
    return TEMPLATES.TemplateResponse(request, "trades.html", context)


@app.get("/setups", response_class=HTMLResponse)
def setups_page(request: Request) -> HTMLResponse:
    config = load_app_config()
    with _connection(config) as conn:
        setups = sqlite_reader.load_setups(conn)
    context = {
        "page": "setups",
        "setups": [_setup_payload(setup) for setup in setups],
        "data_note": None,
    }
    return TEMPLATES.TemplateResponse(request, "setups.html", context)


@app.get("/rules", response_class=HTMLResponse)
def rules_page(request: Request) -> HTMLResponse:
    config = load_app_config()
    with _connection(config) as conn:
        trades = sqlite_reader.load_trades(conn)
        rules = _rule_repository(config, conn).list_rules()
    context = {
        "page": "rules",
        "rules": [_rule_payload(rule) for rule in tally_rule_compliance(rules, trades)],
        "data_note": None,
    }
    return TEMPLATES.TemplateResponse(request, "rules.html", context)


@app.get("/api/dashboard")
def dashboard_api() -> dict[str, Any]:
    config = load_app_config()
    with _connection(config) as conn:
        trades = sqlite_reader.load_trades(conn)
    return _dashboard_payload(trades, config)


@app.get("/api/metrics")
def metrics_api() -> dict[str, Any]:
    config = load_app_config()
    with _connection(config) as conn:
        trades = sqlite_reader.load_trades(conn)
    return {
        "metrics": key_metrics_payload(compute_key_metrics(trades)),
        "stats": trade_stats_payload(compute_trade_stats(trades)),
    }


@app.get("/api/trades")
def trades_api() -> list[dict[str, Any]]:
    config = load_app_config()
    with _connection(config) as conn:
        trades = sqlite_reader.load_trades(conn)
    return [_trade_payload(trade) for trade in trades]


@app.delete("/api/trades/{trade_id}")
def delete_trade_api(trade_id: str) -> dict[str, Any]:
    config = load_app_config()
    with _connection(config) as conn:
        if not delete_trade(conn, trade_id):
            raise HTTPException(status_code=404, detail="Trade not found")
    logger.info("Deleted trade %s", trade_id)
    return {"deleted": trade_id}


@app.get("/api/setups")
def setups_api() -> list[dict[str, Any]]:
    config = load_app_config()
    with _connection(config) as conn:
        setups = sqlite_reader.load_setups(conn)
    return [_setup_payload(setup) for setup in setups]


@app.delete("/api/setups/{setup_id}")
def delete_setup_api(setup_id: str) -> dict[str, Any]:
    config = load_app_config()
    with _connection(config) as conn:
        try:
            deleted = delete_setup(conn, setup_id)
        except SetupInUseError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
    if not deleted:
        raise HTTPException(status_code=404, detail="Setup not found")
    return {"deleted": setup_id}


@app.get("/api/rules")
def rules_api() -> list[dict[str, Any]]:
    config = load_app_config()
    with _connection(config) as conn:
        trades = sqlite_reader.load_trades(conn)
        rules = _rule_repository(config, conn).list_rules()
    return [_rule_payload(rule) for rule in tally_rule_compliance(rules, trades)]


@app.post("/api/rules", status_code=201)
def add_rule_api(body: RuleCreate) -> dict[str, Any]:
    config = load_app_config()
    with _connection(config) as conn:
        repo = _rule_repository(config, conn)
        try:
            rule = repo.add_rule(body.name)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info("Added rule %r", rule.name)
    return _rule_payload(rule)


@app.delete("/api/rules/{rule_id}")
def delete_rule_api(rule_id: str) -> dict[str, Any]:
    config = load_app_config()
    with _connection(config) as conn:
        repo = _rule_repository(config, conn)
        try:
            rule = repo.delete_rule(rule_id)
        except RuleNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Rule not found") from exc
    return _rule_payload(rule)


@app.delete("/api/rules")
def clear_rules_api() -> dict[str, Any]:
    config = load_app_config()
    with _connection(config) as conn:
        repo = _rule_repository(config, conn)
        repo.clear()
    return {"cleared": True}


@contextmanager
def _connection(config: AppConfig) -> Iterator[sqlite3.Connection]:
    conn = sqlite_connect(config.app.db_path)
    try:
        init_db(conn)
        yield conn
    finally:
        conn.close()


def _rule_repository(config: AppConfig, conn: sqlite3.Connection) -> RuleRepository:
    return open_rule_repository(config.rules, lambda: conn)


def _dashboard_payload(trades: list[Trade], config: AppConfig) -> dict[str, Any]:
    settings = config.dashboard
    views = compute_dashboard_views(
        trades,
        tz=settings.tzinfo(),
        health_weeks=settings.health_weeks,
        top_limit=settings.top_limit,
    )
    return views_payload(views)


def _trade_payload(trade: Trade) -> dict[str, Any]:
    return {
        "id": trade.trade_id,
        "symbol": trade.symbol,
        "direction": trade.direction,
        "entry_date": trade.entry_date,
        "exit_date": trade.exit_date,
        "entry_price": trade.entry_price,
        "exit_price": trade.exit_price,
        "quantity": trade.quantity,
        "profit_loss": trade.profit_loss,
        "setup_id": trade.setup_id,
        "setup_name": trade.setup_name,
        "rules_followed": list(trade.rules_followed),
        "rules_violated": list(trade.rules_violated),
        "notes": trade.notes,
        "holding_hours": trade.holding_hours,
        "is_open": trade.is_open,
    }


def _setup_payload(setup: Setup) -> dict[str, Any]:
    return {
        "id": setup.setup_id,
        "name": setup.name,
        "category": setup.category,
        "description": setup.description,
        "criteria": setup.criteria,
        "entry_rules": setup.entry_rules,
        "exit_rules": setup.exit_rules,
        "risk_management": setup.risk_management,
        "is_active": setup.is_active,
    }


def _rule_payload(rule: Rule) -> dict[str, Any]:
    return {
        "id": rule.rule_id,
        "name": rule.name,
        "followedCount": rule.followed_count,
        "notFollowedCount": rule.not_followed_count,
        "impact": rule.impact,
    }


def money_filter(value: float | None) -> str:
    if value is None or isinstance(value, Undefined):
        return "n/a"
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return "n/a"
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def percent_filter(value: float | None) -> str:
    if value is None or isinstance(value, Undefined):
        return "n/a"
    return f"{float(value):.0f}%"


def timestamp_filter(value: Any) -> str:
    if value is None or isinstance(value, Undefined) or not isinstance(value, datetime):
        return "n/a"
    local = value if value.tzinfo is None else value.astimezone()
    return local.strftime("%b %d, %Y %H:%M")


TEMPLATES.env.filters.update(
    {
        "money": money_filter,
        "percent": percent_filter,
        "timestamp": timestamp_filter,
    }
)


def main() -> None:
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    app_config = load_app_config()
    uvicorn.run(
        "trade_dashboard.web.app:app",
        host=app_config.app.host,
        port=app_config.app.port,
        reload=app_config.app.reload,
    )


if __name__ == "__main__":
    main()
