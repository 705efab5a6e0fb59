from __future__ import annotations

import argparse
import json
import sys
from datetime import date, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from trade_dashboard.config.app_config import AppConfig, load_app_config, validate_timezone
from trade_dashboard.ingest.journal import load_journal
from trade_dashboard.metrics.dashboard import (
    DashboardViews,
    compute_dashboard_views,
    key_metrics_payload,
    trade_stats_payload,
    views_payload,
)
from trade_dashboard.metrics.rules import tally_rule_compliance, unknown_rule_names
from trade_dashboard.metrics.summary import KeyMetrics, compute_key_metrics, compute_trade_stats
from trade_dashboard.models import Rule, Trade
from trade_dashboard.storage import sqlite_reader
from trade_dashboard.storage.rules import open_rule_repository
from trade_dashboard.storage.sqlite_store import connect, init_db


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Compute trade journal dashboard views.")
    parser.add_argument(
        "journal_path",
        type=Path,
        nargs="?",
        default=None,
        help="Optional journal export (json/csv/tsv); defaults to the configured SQLite DB.",
    )
    parser.add_argument("--db", type=Path, default=None, help="SQLite DB path (default: from config).")
    parser.add_argument("--config", type=Path, default=None, help="App config TOML path.")
    parser.add_argument("--tz", type=str, default=None, help="IANA timezone for day/hour bucketing.")
    parser.add_argument("--today", type=str, default=None, help="Anchor date (YYYY-MM-DD) for empty trends.")
    parser.add_argument("--text", action="store_true", help="Print a text summary instead of JSON.")
    parser.add_argument("--out", type=Path, default=None, help="Write output to a file instead of stdout.")
    args = parser.parse_args(argv)

    config = load_app_config(args.config)
    if args.tz:
        try:
            validate_timezone(args.tz)
        except ValueError as exc:
            raise SystemExit(str(exc)) from exc
    rules: list[Rule] = []
    if args.journal_path is not None:
        if not args.journal_path.exists():
            raise SystemExit(f"Journal file not found: {args.journal_path}")
        result = load_journal(args.journal_path)
        trades = result.trades
        if result.skipped:
            print(f"Skipped {result.skipped} rows during normalization.", file=sys.stderr)
    else:
        trades, rules = _load_from_db(args.db or config.app.db_path, config)

    tz = _resolve_timezone(args.tz, config)
    today = date.fromisoformat(args.today) if args.today else None
    views = compute_dashboard_views(
        trades,
        tz=tz,
        today=today,
        health_weeks=config.dashboard.health_weeks,
        top_limit=config.dashboard.top_limit,
    )
    metrics = compute_key_metrics(trades)
    tallied = tally_rule_compliance(rules, trades)

    unknown = unknown_rule_names(rules, trades) if rules else []
    if unknown:
        print(f"Rules referenced by trades but not defined: {', '.join(unknown)}.", file=sys.stderr)

    if args.text:
        text = _format_text(views, metrics, tallied)
    else:
        payload: dict[str, Any] = views_payload(views)
        payload["metrics"] = key_metrics_payload(metrics)
        payload["stats"] = trade_stats_payload(compute_trade_stats(trades))
        payload["rules"] = [
            {
                "name": rule.name,
                "followedCount": rule.followed_count,
                "notFollowedCount": rule.not_followed_count,
                "impact": rule.impact,
            }
            for rule in tallied
        ]
        text = json.dumps(payload, indent=2, sort_keys=True)

    if args.out is None:
        print(text)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(text + "\n", encoding="utf-8")
    return 0


def _resolve_timezone(name: str | None, config: AppConfig) -> tzinfo | None:
    if not name:
        return config.dashboard.tzinfo()
    if name == "local":
        return None
    return ZoneInfo(name)


def _load_from_db(db_path: Path, config: AppConfig) -> tuple[list[Trade], list[Rule]]:
    if not db_path.exists():
        raise SystemExit(f"Database not found: {db_path}")
    conn = connect(db_path)
    try:
        init_db(conn)
        trades = sqlite_reader.load_trades(conn)
        rules = open_rule_repository(config.rules, lambda: conn).list_rules()
    finally:
        conn.close()
    return trades, rules


def _format_text(views: DashboardViews, metrics: KeyMetrics, rules: list[Rule]) -> str:
    circular = views.circular
    lines = [
        f"total_pl {_format_float(metrics.total_pl)}",
        f"win_rate {circular.win_rate.value}%",
        f"rules_followed {circular.rules_followed.value}%",
        f"profit_factor {_format_float(circular.profit_factor.value)}",
        f"average_win {_format_float(metrics.average_win)}",
        f"average_loss {_format_float(metrics.average_loss)}",
        f"max_drawdown {_format_float(metrics.max_drawdown)}",
        f"month_pl {_format_float(metrics.month_pl)}",
        "",
        "health " + " ".join(f"{point.date}={point.value}" for point in views.health),
        "",
        "day profit win_rate",
    ]
    lines.extend(f"{row.name} {row.profit} {row.win_rate}%" for row in views.day_performance)
    lines.append("")
    lines.append("slot profit win_rate")
    lines.extend(f"{row.name} {row.profit} {row.win_rate}%" for row in views.time_performance)
    lines.append("")
    lines.append("top_setups " + ", ".join(f"{row.name}={row.value}" for row in views.top_setups))
    lines.append("top_symbols " + ", ".join(f"{row.name}={row.value}" for row in views.top_symbols))
    lines.append("")
    lines.append("held count win_rate net_profit")
    lines.extend(
        f"{row.name.replace(' ', '_')} {row.count} {row.win_rate}% {_format_float(row.net_profit)}"
        for row in views.time_held
    )
    if rules:
        lines.append("")
        lines.append("rule followed violated impact")
        lines.extend(
            f"{rule.name!r} {rule.followed_count} {rule.not_followed_count} {_format_float(rule.impact)}"
            for rule in rules
        )
    return "\n".join(lines)


def _format_float(value: float | None) -> str:
    return "na" if value is None else f"{value:.6g}"


if __name__ == "__main__":
    raise SystemExit(main())
