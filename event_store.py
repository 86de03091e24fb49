"""
Queries over the raw ``event`` collection.

Nothing here is materialised: every count or ranking is an aggregation over
the stored events for the requested window.
"""
import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pymongo import DESCENDING
from pymongo.database import Database

from schemas import Event, utcnow

logger = logging.getLogger(__name__)

COLLECTION = "event"

FUNNEL_STAGES = [
    "product_view",
    "product_customize",
    "cart_add",
    "checkout_start",
    "checkout_complete",
]

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_datetime(value: str, end_of_day: bool = False) -> datetime:
    """Parse an ISO date or datetime into naive UTC.

    A bare date used as the end of a window covers that whole day.
    """
    value = value.strip()
    if _DATE_ONLY.match(value):
        day = date.fromisoformat(value)
        if end_of_day:
            return datetime.combine(day, time.max)
        return datetime.combine(day, time.min)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def resolve_window(
    start_date: Optional[str],
    end_date: Optional[str],
    default_days: Optional[int] = 30,
) -> Tuple[Optional[datetime], datetime]:
    """Raises ValueError on unparseable input."""
    end = parse_datetime(end_date, end_of_day=True) if end_date else utcnow()
    if start_date:
        start = parse_datetime(start_date)
    elif default_days is None:
        start = None
    else:
        start = end - timedelta(days=default_days)
    if start is not None and start > end:
        raise ValueError("startDate must be before endDate")
    return start, end


def period(start: Optional[datetime], end: datetime) -> Dict[str, Optional[str]]:
    return {
        "start": start.isoformat() if start else None,
        "end": end.isoformat(),
    }


def _window(start: Optional[datetime], end: datetime) -> Dict[str, Any]:
    bounds: Dict[str, Any] = {"$lte": end}
    if start is not None:
        bounds["$gte"] = start
    return {"timestamp": bounds}


class EventStore:
    def __init__(self, database: Database):
        self.collection = database[COLLECTION]

    def insert(self, event: Event) -> Dict[str, Any]:
        doc = event.model_dump(by_alias=True)
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def insert_many(self, events: Iterable[Event]) -> List[str]:
        docs = [event.model_dump(by_alias=True) for event in events]
        if not docs:
            return []
        result = self.collection.insert_many(docs, ordered=True)
        return [str(inserted) for inserted in result.inserted_ids]

    def find_by_type_and_period(
        self, event_type: str, start: Optional[datetime], end: datetime, limit: int = 100
    ) -> List[Dict[str, Any]]:
        query = {"eventType": event_type, **_window(start, end)}
        cursor = self.collection.find(query).sort("timestamp", DESCENDING).limit(limit)
        return list(cursor)

    def search(
        self,
        start: Optional[datetime],
        end: datetime,
        event_type: Optional[str] = None,
        user_id: Optional[str] = None,
        product_id: Optional[str] = None,
        severity: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query = _window(start, end)
        if event_type:
            query["eventType"] = event_type
        if user_id:
            query["userId"] = user_id
        if product_id:
            query["eventData.productId"] = product_id
        if severity:
            query["severity"] = severity
        total = self.collection.count_documents(query)
        cursor = (
            self.collection.find(query)
            .sort("timestamp", DESCENDING)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        return list(cursor), total

    def count(self, start: Optional[datetime], end: datetime, event_type: Optional[str] = None) -> int:
        query = _window(start, end)
        if event_type:
            query["eventType"] = event_type
        return self.collection.count_documents(query)

    def count_by_type(self, start: Optional[datetime], end: datetime) -> List[Dict[str, Any]]:
        pipeline = [
            {"$match": _window(start, end)},
            {"$group": {"_id": "$eventType", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
        ]
        return list(self.collection.aggregate(pipeline))

    def most_viewed_products(self, limit: int, start: Optional[datetime], end: datetime) -> List[Dict[str, Any]]:
        pipeline = [
            {"$match": {"eventType": "product_view", **_window(start, end)}},
            {"$sort": {"timestamp": 1}},
            {
                "$group": {
                    "_id": "$eventData.productId",
                    "productName": {"$first": "$eventData.productName"},
                    "views": {"$sum": 1},
                }
            },
            {"$sort": {"views": -1, "_id": 1}},
            {"$limit": limit},
        ]
        return list(self.collection.aggregate(pipeline))

    def funnel_counts(self, start: Optional[datetime], end: datetime, stages: List[str] = FUNNEL_STAGES) -> Dict[str, int]:
        return {stage: self.count(start, end, stage) for stage in stages}
