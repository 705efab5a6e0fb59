from __future__ import annotations

import csv
import json
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from trade_dashboard.models import DIRECTION_LONG, DIRECTION_SHORT, Setup, Trade

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    trades: list[Trade] = field(default_factory=list)
    setups: list[Setup] = field(default_factory=list)
    skipped: int = 0


def load_journal(path: str | Path) -> IngestResult:
    source_path = Path(path)
    suffix = source_path.suffix.lower()
    if suffix == ".json":
        with source_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return load_journal_payload(payload)
    if suffix in {".csv", ".tsv"}:
        with source_path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.DictReader(handle, delimiter="\t" if suffix == ".tsv" else ",")
            trades, skipped = _normalize_trades(reader, setups={})
        return IngestResult(trades=trades, skipped=skipped)
    raise ValueError(f"Unsupported file type: {source_path.suffix}")


def load_journal_payload(payload: Any) -> IngestResult:
    """Normalize a JSON export.

    Accepts a bare list of trades, or an object with ``trades`` (or
    ``data``) and an optional ``trading_setups``/``setups`` list. Trades
    referencing a setup by ``setup_id`` get it linked; an embedded
    ``setup`` object wins over the id lookup.
    """
    trade_records, setup_records = _extract_records(payload)
    setups: list[Setup] = []
    skipped = 0
    for raw in setup_records:
        try:
            setups.append(normalize_setup(raw))
        except ValueError:
            skipped += 1
    by_id = {setup.setup_id: setup for setup in setups}
    trades, trade_skipped = _normalize_trades(trade_records, setups=by_id)
    return IngestResult(trades=trades, setups=setups, skipped=skipped + trade_skipped)


def _extract_records(payload: Any) -> tuple[list[Mapping[str, Any]], list[Mapping[str, Any]]]:
    if isinstance(payload, list):
        return payload, []
    if isinstance(payload, dict):
        setups = payload.get("trading_setups") or payload.get("setups") or []
        if not isinstance(setups, list):
            raise ValueError("Unsupported JSON format for setups payload")
        for key in ("trades", "data"):
            if key in payload and isinstance(payload[key], list):
                return payload[key], setups
        if setups:
            return [], setups
    raise ValueError("Unsupported JSON format for journal payload")


def _normalize_trades(
    records: Iterable[Mapping[str, Any]], *, setups: Mapping[str, Setup]
) -> tuple[list[Trade], int]:
    trades: list[Trade] = []
    skipped = 0
    for raw in records:
        try:
            trades.append(normalize_trade(raw, setups=setups))
        except ValueError as exc:
            logger.debug("Skipping trade row: %s", exc)
            skipped += 1
    return trades, skipped


def normalize_trade(raw: Mapping[str, Any], *, setups: Mapping[str, Setup] | None = None) -> Trade:
    symbol = _pick(raw, "symbol", "ticker", "instrument")
    if not symbol:
        raise ValueError("Missing symbol")
    direction = _normalize_direction(_pick(raw, "direction", "side"))
    entry_price = _to_float(_pick(raw, "entry_price", "entryPrice"))
    quantity = _to_int(_pick(raw, "quantity", "qty", "size"))
    if quantity <= 0:
        raise ValueError("Quantity must be positive")

    setup_id = _pick(raw, "setup_id", "setupId")
    setup = None
    embedded = raw.get("setup")
    if isinstance(embedded, Mapping):
        setup = normalize_setup(embedded)
        setup_id = setup_id or setup.setup_id
    elif setup_id is not None and setups:
        setup = setups.get(str(setup_id))
    setup_name = _pick(raw, "setup_name", "setupName")
    if setup is None and setup_name:
        setup = Setup(setup_id=str(setup_id or _new_id()), name=str(setup_name))

    return Trade(
        trade_id=str(_pick(raw, "id", "trade_id", "tradeId") or _new_id()),
        symbol=str(symbol).strip().upper(),
        direction=direction,
        entry_date=_parse_timestamp(_pick(raw, "entry_date", "entryDate", "entry_time")),
        entry_price=entry_price,
        quantity=quantity,
        exit_date=_parse_timestamp(_pick(raw, "exit_date", "exitDate", "exit_time")),
        exit_price=_to_float_or_none(_pick(raw, "exit_price", "exitPrice")),
        profit_loss=_to_float_or_none(_pick(raw, "profit_loss", "profitLoss", "pnl")),
        setup_id=str(setup_id) if setup_id is not None else None,
        setup=setup,
        rules_followed=_to_name_list(raw.get("rules_followed", raw.get("rulesFollowed"))),
        rules_violated=_to_name_list(raw.get("rules_violated", raw.get("rulesViolated"))),
        notes=_str_or_none(_pick(raw, "notes")),
        screenshot_url=_str_or_none(_pick(raw, "screenshot_url", "screenshotUrl")),
        created_at=_parse_timestamp(_pick(raw, "created_at", "createdAt")),
        updated_at=_parse_timestamp(_pick(raw, "updated_at", "updatedAt")),
    )


def normalize_setup(raw: Mapping[str, Any]) -> Setup:
    name = _pick(raw, "name")
    if not name:
        raise ValueError("Missing setup name")
    active_raw = raw.get("is_active", raw.get("isActive"))
    return Setup(
        setup_id=str(_pick(raw, "id", "setup_id", "setupId") or _new_id()),
        name=str(name).strip(),
        category=str(_pick(raw, "category") or "General"),
        description=_str_or_none(_pick(raw, "description")),
        criteria=_str_or_none(_pick(raw, "criteria")),
        entry_rules=_str_or_none(_pick(raw, "entry_rules", "entryRules")),
        exit_rules=_str_or_none(_pick(raw, "exit_rules", "exitRules")),
        risk_management=_str_or_none(_pick(raw, "risk_management", "riskManagement")),
        is_active=True if active_raw is None else _to_bool(active_raw),
        created_at=_parse_timestamp(_pick(raw, "created_at", "createdAt")),
        updated_at=_parse_timestamp(_pick(raw, "updated_at", "updatedAt")),
    )


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] not in (None, ""):
            return raw[key]
    return None


def _new_id() -> str:
    return str(uuid.uuid4())


def _normalize_direction(value: Any) -> str:
    if value is None:
        raise ValueError("Missing direction")
    text = str(value).strip().lower()
    if text in {"long", "buy", "b"}:
        return DIRECTION_LONG
    if text in {"short", "sell", "s"}:
        return DIRECTION_SHORT
    raise ValueError(f"Unknown direction: {value}")


def _to_float(value: Any) -> float:
    if value is None:
        raise ValueError("Missing numeric field")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid numeric field") from exc
    if not math.isfinite(number):
        raise ValueError("Numeric field must be finite")
    return number


def _to_float_or_none(value: Any) -> float | None:
    if value is None:
        return None
    return _to_float(value)


def _to_int(value: Any) -> int:
    number = _to_float(value)
    if number != int(number):
        raise ValueError("Quantity must be a whole number")
    return int(number)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "active"}
    return bool(value)


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _to_name_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except json.JSONDecodeError:
                value = text
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    raise ValueError("Unsupported rule list")


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _timestamp_from_number(float(value))

    text = str(value).strip()
    try:
        number = float(text)
    except ValueError:
        number = None
    if number is not None:
        return _timestamp_from_number(number)

    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError("Unsupported timestamp format") from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _timestamp_from_number(value: float) -> datetime:
    seconds = value / 1000.0 if value > 1e12 else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"Timestamp out of range: {value}") from exc
