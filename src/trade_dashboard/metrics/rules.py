from __future__ import annotations

from typing import Iterable

from trade_dashboard.metrics.common import as_list
from trade_dashboard.models import Rule, Trade


def tally_rule_compliance(rules: Iterable[Rule], trades: Iterable[Trade] | None) -> list[Rule]:
    """Recount how often each rule was followed or violated across trades.

    Trades reference rules by name only, so matching is on the trimmed,
    case-folded name. ``impact`` is the P&L of trades that followed the rule
    minus the P&L of trades that violated it. New ``Rule`` objects are
    returned; the inputs are left untouched.
    """
    trade_list = as_list(trades)
    tallied: list[Rule] = []
    for rule in rules:
        key = _rule_key(rule.name)
        followed = 0
        violated = 0
        impact = 0.0
        for trade in trade_list:
            if key in {_rule_key(name) for name in trade.rules_followed or []}:
                followed += 1
                impact += trade.pnl
            if key in {_rule_key(name) for name in trade.rules_violated or []}:
                violated += 1
                impact -= trade.pnl
        tallied.append(
            Rule(
                rule_id=rule.rule_id,
                name=rule.name,
                followed_count=followed,
                not_followed_count=violated,
                impact=impact,
            )
        )
    return tallied


def unknown_rule_names(rules: Iterable[Rule], trades: Iterable[Trade] | None) -> list[str]:
    known = {_rule_key(rule.name) for rule in rules}
    seen: dict[str, str] = {}
    for trade in as_list(trades):
        for name in [*(trade.rules_followed or []), *(trade.rules_violated or [])]:
            key = _rule_key(name)
            if key and key not in known and key not in seen:
                seen[key] = name.strip()
    return list(seen.values())


def _rule_key(name: str) -> str:
    return name.strip().casefold()
