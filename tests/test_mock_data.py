import json
import random
from datetime import date, datetime, timedelta

import pytest

import mock_data


def test_device_usage_sums_to_one_hundred():
    for seed in range(200):
        usage = mock_data.device_usage(random.Random(seed))
        assert [item["device"] for item in usage] == ["Desktop", "Mobile", "Tablet"]
        assert abs(sum(item["percentage"] for item in usage) - 100) < 0.05


@pytest.mark.parametrize(
    "day,expected",
    [
        (date(2024, 6, 1), 1.3),  # Saturday
        (date(2024, 6, 2), 1.3),  # Sunday
        (date(2024, 6, 3), 0.7),  # Monday
        (date(2024, 6, 5), 1.0),  # Wednesday
    ],
)
def test_weekday_multiplier(day, expected):
    assert mock_data.weekday_multiplier(day) == expected


def test_daily_sales_is_chronological_and_ends_today():
    today = date(2024, 6, 30)
    sales = mock_data.daily_sales(7, rng=random.Random(1), today=today)
    assert [item["date"] for item in sales] == [(today - timedelta(days=n)).isoformat() for n in range(6, -1, -1)]
    assert all(500 * 0.7 <= item["amount"] <= 5000 * 1.3 for item in sales)


def test_daily_sales_upper_bound_is_exclusive():
    for seed in range(1000):
        for item in mock_data.daily_sales(30, rng=random.Random(seed), today=date(2024, 6, 30)):
            base = item["amount"] / mock_data.weekday_multiplier(date.fromisoformat(item["date"]))
            assert 500 <= round(base) < 5000


def test_popular_customizations_sorted_and_truncated():
    items = mock_data.popular_customizations(top=5, rng=random.Random(2))
    counts = [item["count"] for item in items]
    assert len(items) == 5
    assert counts == sorted(counts, reverse=True)


def test_same_seed_same_bundle():
    assert mock_data.dashboard_bundle(rng=random.Random(9)) == mock_data.dashboard_bundle(rng=random.Random(9))


def test_trend_series_never_negative():
    end = datetime(2024, 6, 30)
    for seed in range(20):
        series = mock_data.trend_series("conversion", end - timedelta(days=60), end, rng=random.Random(seed))
        assert len(series) == 60
        assert all(point["value"] >= 0 for point in series)


def test_log_events_newest_first():
    events = mock_data.log_events(50, rng=random.Random(4))
    stamps = [event["createdAt"] for event in events]
    assert len(events) == 50
    assert stamps == sorted(stamps, reverse=True)
    assert {event["eventType"] for event in events} <= set(mock_data.LOG_EVENT_TYPES)


def test_cli_writes_fixtures(tmp_path):
    assert mock_data.main(["--output", str(tmp_path), "--events", "20", "--seed", "5"]) == 0
    dashboard = json.loads((tmp_path / "dashboard.json").read_text(encoding="utf-8"))
    logs = json.loads((tmp_path / "logs.json").read_text(encoding="utf-8"))
    assert set(dashboard) == {
        "dailySales",
        "dailyVisitors",
        "salesByCategory",
        "popularCustomizations",
        "deviceUsage",
        "metrics",
    }
    assert len(logs) == 20
