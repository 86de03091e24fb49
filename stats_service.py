"""
Statistics over the event store.

Numbers come from a ``StatsSource``: ``LiveStatsSource`` recomputes them from
raw events on every call, ``FixtureStatsSource`` serves a pre-generated
``dashboard.json``. Which one backs the API is chosen by ``STATS_SOURCE``.
Every result says where it came from so placeholder figures are never
passed off as real ones.
"""
import json
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import Depends
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
import mock_data
from database import get_db
from event_store import FUNNEL_STAGES, EventStore, period
from schemas import utcnow

logger = logging.getLogger(__name__)

SOURCE_LIVE = "live"
SOURCE_FIXTURE = "fixture"
SOURCE_GENERATED = "generated"

TREND_PERIODS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
DEFAULT_TREND_PERIOD = "30d"

DASHBOARD_WINDOW_DAYS = 30
DASHBOARD_TOP_PRODUCTS = 5


def percentage(part: float, whole: float) -> float:
    if not whole or whole <= 0:
        return 0.0
    return round(part / whole * 100, 2)


def conversion_rate(checkout_completes: int, product_views: int) -> float:
    return percentage(checkout_completes, product_views)


def cart_abandonment_rate(cart_adds: int, checkout_completes: int) -> float:
    return percentage(cart_adds - checkout_completes, cart_adds)


def funnel_conversion_rates(counts: Dict[str, int], stages: List[str] = FUNNEL_STAGES) -> Dict[str, float]:
    rates = {}
    for current, following in zip(stages, stages[1:]):
        rates[f"{current}_to_{following}"] = percentage(counts.get(following, 0), counts.get(current, 0))
    return rates


def overview_stats(counts: Dict[str, int]) -> Dict[str, Any]:
    stats = dict(counts)
    stats["conversionRate"] = conversion_rate(counts["checkoutCompletes"], counts["productViews"])
    stats["cartAbandonmentRate"] = cart_abandonment_rate(counts["cartAdds"], counts["checkoutCompletes"])
    return stats


def trend_window(label: Optional[str], now: Optional[datetime] = None):
    label = label if label in TREND_PERIODS else DEFAULT_TREND_PERIOD
    end = now or utcnow()
    return label, end - timedelta(days=TREND_PERIODS[label]), end


@dataclass
class StatsResult:
    data: Any
    source: str
    degraded: bool = False
    notice: Optional[str] = None
    mock_sections: List[str] = field(default_factory=list)

    def envelope(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"source": self.source, "degraded": self.degraded}
        if self.notice:
            body["notice"] = self.notice
        if self.mock_sections:
            body["mockSections"] = self.mock_sections
        return body


class StatsSource:
    name = "base"

    def overview(self, start: Optional[datetime], end: datetime) -> StatsResult:
        raise NotImplementedError

    def dashboard(self) -> StatsResult:
        raise NotImplementedError

    def trends(self, metric: Optional[str], start: datetime, end: datetime) -> StatsResult:
        raise NotImplementedError


class LiveStatsSource(StatsSource):
    name = SOURCE_LIVE

    def __init__(self, store: EventStore, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng

    def overview(self, start, end):
        counts = {
            "totalEvents": self.store.count(start, end),
            "productViews": self.store.count(start, end, "product_view"),
            "productCustomizations": self.store.count(start, end, "product_customize"),
            "cartAdds": self.store.count(start, end, "cart_add"),
            "checkoutStarts": self.store.count(start, end, "checkout_start"),
            "checkoutCompletes": self.store.count(start, end, "checkout_complete"),
        }
        return StatsResult(overview_stats(counts), SOURCE_LIVE)

    def dashboard(self):
        end = utcnow()
        start = end - timedelta(days=DASHBOARD_WINDOW_DAYS)
        degraded = False
        notice = None
        try:
            top_products = self.store.most_viewed_products(DASHBOARD_TOP_PRODUCTS, start, end)
            event_counts = self.store.count_by_type(start, end)
        except PyMongoError:
            logger.exception("Event store unavailable, dashboard falls back to generated data only")
            top_products, event_counts = [], []
            degraded = True
            notice = "Event store unavailable: real statistics are missing, showing generated data only."

        generated = mock_data.dashboard_bundle(rng=self.rng)
        data = {
            "topProducts": top_products,
            "eventCounts": event_counts,
            "period": period(start, end),
            **generated,
        }
        return StatsResult(data, SOURCE_LIVE, degraded=degraded, notice=notice, mock_sections=sorted(generated))

    def trends(self, metric, start, end):
        series = mock_data.trend_series(metric, start, end, rng=self.rng)
        return StatsResult(series, SOURCE_GENERATED, notice="Trend series are generated placeholders.")


class FixtureStatsSource(StatsSource):
    """Serves ``dashboard.json``; falls back to ``fallback`` when the file is unusable."""

    name = SOURCE_FIXTURE

    def __init__(self, path: str, fallback: StatsSource, rng: Optional[random.Random] = None):
        self.path = path
        self.fallback = fallback
        self.rng = rng

    def load(self) -> Optional[Dict[str, Any]]:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            logger.warning(f"Fixture {self.path} not found, generating data instead")
            return None
        except (OSError, ValueError) as exc:
            logger.warning(f"Fixture {self.path} unreadable ({exc}), generating data instead")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Fixture {self.path} is not a JSON object, generating data instead")
            return None
        return data

    def _degraded(self, result: StatsResult) -> StatsResult:
        result.degraded = True
        result.notice = f"Fixture data unavailable; {result.notice or 'serving ' + result.source + ' data'}"
        return result

    def overview(self, start, end):
        if self.load() is None:
            return self._degraded(self.fallback.overview(start, end))
        return StatsResult(
            overview_stats(dict(mock_data.FIXTURE_OVERVIEW_COUNTS)),
            SOURCE_FIXTURE,
            notice="Demonstration figures from the dashboard fixture.",
        )

    def dashboard(self):
        fixture = self.load()
        if fixture is None:
            return self._degraded(self.fallback.dashboard())
        logger.info(f"Serving dashboard from fixture {self.path}")
        return StatsResult(fixture, SOURCE_FIXTURE, notice="Demonstration data from the dashboard fixture.")

    def trends(self, metric, start, end):
        fixture = self.load()
        if fixture is not None and metric == "sales" and fixture.get("dailySales"):
            series = [{"date": item["date"], "value": item["amount"]} for item in fixture["dailySales"]]
            return StatsResult(series, SOURCE_FIXTURE, notice="Demonstration data from the dashboard fixture.")
        series = mock_data.trend_series(metric, start, end, rng=self.rng)
        return StatsResult(series, SOURCE_GENERATED, notice="Trend series are generated placeholders.")


def build_stats_source(database: Database, source: Optional[str] = None) -> StatsSource:
    live = LiveStatsSource(EventStore(database))
    source = (source or config.STATS_SOURCE).lower()
    if source == SOURCE_FIXTURE:
        return FixtureStatsSource(config.FIXTURE_PATH, fallback=live)
    if source != SOURCE_LIVE:
        logger.warning(f"Unknown STATS_SOURCE '{source}', using live statistics")
    return live


def get_stats_source(database: Database = Depends(get_db)) -> StatsSource:
    return build_stats_source(database)
