from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from trade_dashboard.metrics.performance import (
    NO_DATA,
    compute_day_performance,
    compute_time_performance,
    compute_top_setups,
    compute_top_symbols,
    time_slot,
)


class TestDayPerformance:
    def test_always_five_trading_days(self):
        rows = compute_day_performance(None)
        assert [row.name for row in rows] == ["Mon", "Tue", "Wed", "Thu", "Fri"]
        assert all(row.profit == 0 and row.win_rate == 0 for row in rows)

    def test_mean_profit_and_win_rate(self, make_trade):
        trades = [
            make_trade(100, entry=datetime(2024, 1, 1, 9)),
            make_trade(-25, entry=datetime(2024, 1, 8, 14)),
            make_trade(30, entry=datetime(2024, 1, 3, 10)),
        ]
        rows = {row.name: row for row in compute_day_performance(trades)}
        assert rows["Mon"].profit == 38
        assert rows["Mon"].win_rate == 50
        assert rows["Wed"].profit == 30
        assert rows["Wed"].win_rate == 100
        assert rows["Tue"].profit == 0

    def test_weekend_trades_dropped(self, make_trade):
        trades = [
            make_trade(500, entry=datetime(2024, 1, 6, 9)),
            make_trade(500, entry=datetime(2024, 1, 7, 9)),
        ]
        rows = compute_day_performance(trades)
        assert len(rows) == 5
        assert all(row.profit == 0 for row in rows)

    def test_undated_trades_skipped(self, make_trade):
        rows = compute_day_performance([make_trade(10, entry=None)])
        assert all(row.win_rate == 0 for row in rows)

    def test_aware_entries_use_requested_zone(self, make_trade):
        # Monday 02:00 UTC is still Sunday evening in New York.
        trade = make_trade(10, entry=datetime(2024, 1, 1, 2, tzinfo=timezone.utc))
        rows = compute_day_performance([trade], tz=ZoneInfo("America/New_York"))
        assert all(row.profit == 0 for row in rows)
        rows = compute_day_performance([trade], tz=timezone.utc)
        assert rows[0].profit == 10


class TestTimePerformance:
    @pytest.mark.parametrize(
        ("hour", "slot"),
        [(0, "6AM"), (6, "6AM"), (7, "9AM"), (9, "9AM"), (10, "12PM"), (12, "12PM"), (13, "3PM"), (15, "3PM"), (16, "6PM"), (23, "6PM")],
    )
    def test_slot_boundaries(self, hour, slot):
        assert time_slot(hour) == slot

    def test_buckets(self, make_trade):
        trades = [
            make_trade(10, entry=datetime(2024, 1, 1, 3)),
            make_trade(-20, entry=datetime(2024, 1, 1, 11)),
            make_trade(41, entry=datetime(2024, 1, 2, 12, 59)),
        ]
        rows = compute_time_performance(trades)
        assert [row.name for row in rows] == ["6AM", "9AM", "12PM", "3PM", "6PM"]
        by_name = {row.name: row for row in rows}
        assert by_name["6AM"].profit == 10
        assert by_name["12PM"].profit == 11
        assert by_name["12PM"].win_rate == 50
        assert by_name["6PM"].profit == 0


class TestTopRankings:
    def test_empty_placeholder(self):
        rows = compute_top_setups([])
        assert [(row.name, row.value) for row in rows] == [(NO_DATA, 0)]
        assert compute_top_symbols(None)[0].name == NO_DATA

    def test_setups_grouped_with_undefined_fallback(self, make_trade, make_setup):
        breakout = make_setup("Breakout")
        trades = [
            make_trade(100.4, setup=breakout),
            make_trade(50, setup=breakout),
            make_trade(-20),
            make_trade(None),
        ]
        rows = compute_top_setups(trades)
        assert [(row.name, row.value) for row in rows] == [("Breakout", 150), ("Undefined", -20)]

    def test_top_symbols_limited_and_sorted(self, make_trade):
        trades = [
            make_trade(pnl, symbol=symbol)
            for symbol, pnl in [("AAPL", 10), ("MSFT", 50), ("TSLA", -30), ("NVDA", 70), ("AMD", 5), ("AAPL", 30)]
        ]
        rows = compute_top_symbols(trades)
        assert [row.name for row in rows] == ["NVDA", "MSFT", "AAPL", "AMD"]
        values = [row.value for row in rows]
        assert values == sorted(values, reverse=True)

    def test_custom_limit(self, make_trade):
        trades = [make_trade(i, symbol=f"S{i}") for i in range(6)]
        assert len(compute_top_symbols(trades, limit=2)) == 2
