from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

Direction = str

DIRECTION_LONG: Direction = "long"
DIRECTION_SHORT: Direction = "short"

UNDEFINED_SETUP = "Undefined"


@dataclass
class Setup:
    setup_id: str
    name: str
    category: str = "General"
    description: str | None = None
    criteria: str | None = None
    entry_rules: str | None = None
    exit_rules: str | None = None
    risk_management: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Trade:
    trade_id: str
    symbol: str
    direction: Direction
    entry_date: datetime | None
    entry_price: float
    quantity: int
    exit_date: datetime | None = None
    exit_price: float | None = None
    profit_loss: float | None = None
    setup_id: str | None = None
    setup: Setup | None = None
    rules_followed: list[str] = field(default_factory=list)
    rules_violated: list[str] = field(default_factory=list)
    notes: str | None = None
    screenshot_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def pnl(self) -> float:
        # Unrealized/unentered P&L counts as zero in every aggregate.
        if self.profit_loss is None:
            return 0.0
        return float(self.profit_loss)

    @property
    def is_win(self) -> bool:
        return self.pnl > 0

    @property
    def is_loss(self) -> bool:
        return self.pnl < 0

    @property
    def is_open(self) -> bool:
        return self.exit_date is None

    @property
    def setup_name(self) -> str:
        if self.setup is not None and self.setup.name:
            return self.setup.name
        return UNDEFINED_SETUP

    @property
    def holding_hours(self) -> float | None:
        if self.entry_date is None or self.exit_date is None:
            return None
        return (self.exit_date - self.entry_date).total_seconds() / 3600.0


@dataclass
class Rule:
    rule_id: str
    name: str
    followed_count: int = 0
    not_followed_count: int = 0
    impact: float = 0.0
