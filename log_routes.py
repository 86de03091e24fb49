import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import get_db, serialize_document
from errors import ApiError
from event_store import EventStore, period, resolve_window
from schemas import ANONYMOUS_USER, ClientEvent, Event, EventBatchIn, EventIn
from security import require_admin
from stats_service import funnel_conversion_rates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/logs", tags=["Logs"])


def get_event_store(database: Database = Depends(get_db)) -> EventStore:
    return EventStore(database)


def window_or_400(start_date: Optional[str], end_date: Optional[str], default_days: Optional[int] = 30):
    try:
        return resolve_window(start_date, end_date, default_days)
    except ValueError as exc:
        raise ApiError(400, f"Invalid date range: {exc}")


def build_event(payload: EventIn, request: Request, user_agent: Optional[str] = None) -> Event:
    return Event(
        event_type=payload.event_type,
        user_id=payload.user_id or ANONYMOUS_USER,
        is_authenticated=bool(payload.user_id),
        session_id=payload.session_id,
        event_data=payload.event_data,
        severity=payload.severity,
        user_agent=user_agent or request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
        page_url=payload.page_url or "",
        referrer=payload.referrer or "",
    )


@router.post("/event", status_code=201)
def log_event(payload: EventIn, request: Request, store: EventStore = Depends(get_event_store)):
    event = build_event(payload, request)
    try:
        doc = store.insert(event)
    except PyMongoError as exc:
        logger.exception("Error recording event")
        raise ApiError(500, "Error recording event", exc)
    logger.debug(f"Recorded {event.event_type} for session {event.session_id}")
    return {
        "success": True,
        "message": "Event recorded successfully",
        "event": {
            "id": str(doc["_id"]),
            "eventType": doc["eventType"],
            "timestamp": doc["timestamp"],
        },
    }


@router.post("/batch", status_code=201)
def log_batch(batch: EventBatchIn, request: Request, store: EventStore = Depends(get_event_store)):
    """Unpack a logging-client batch into one stored event per entry.

    Invalid entries are reported back and skipped; they never block the rest.
    """
    events = []
    rejected = []
    for index, raw in enumerate(batch.events):
        try:
            item = ClientEvent.model_validate(raw)
            payload = EventIn(
                event_type=item.event_type,
                user_id=item.user_id,
                session_id=item.session_id,
                event_data=item.data,
                page_url=item.url,
                referrer=item.referrer,
                severity=item.severity,
            )
        except ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            message = f"{location}: {first['msg']}" if location else first["msg"]
            rejected.append({"index": index, "message": message})
            continue
        events.append(build_event(payload, request, user_agent=item.user_agent))

    try:
        ids = store.insert_many(events)
    except PyMongoError as exc:
        logger.exception("Error recording event batch")
        raise ApiError(500, "Error recording event batch", exc)
    if rejected:
        logger.warning(f"Rejected {len(rejected)} of {len(batch.events)} batched events")
    return {"success": True, "accepted": len(ids), "ids": ids, "rejected": rejected}


@router.get("")
def list_events(
    event_type: Optional[str] = Query(None, alias="eventType"),
    user_id: Optional[str] = Query(None, alias="userId"),
    product_id: Optional[str] = Query(None, alias="productId"),
    severity: Optional[str] = None,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    store: EventStore = Depends(get_event_store),
    _admin: dict = Depends(require_admin),
):
    start, end = window_or_400(start_date, end_date, 7)
    try:
        docs, total = store.search(start, end, event_type, user_id, product_id, severity, page, limit)
    except PyMongoError as exc:
        logger.exception("Error listing events")
        raise ApiError(500, "Error listing events", exc)
    return {
        "success": True,
        "period": period(start, end),
        "count": len(docs),
        "total": total,
        "totalPages": -(-total // limit),
        "currentPage": page,
        "logs": [serialize_document(doc) for doc in docs],
    }


@router.get("/events/{event_type}")
def get_events_by_type(
    event_type: str,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    limit: int = Query(100, ge=1, le=1000),
    store: EventStore = Depends(get_event_store),
    _admin: dict = Depends(require_admin),
):
    start, end = window_or_400(start_date, end_date, 7)
    try:
        docs = store.find_by_type_and_period(event_type, start, end, limit)
    except PyMongoError as exc:
        logger.exception("Error fetching events")
        raise ApiError(500, "Error fetching events", exc)
    return {"success": True, "count": len(docs), "events": [serialize_document(doc) for doc in docs]}


@router.get("/counts")
def get_event_counts(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    store: EventStore = Depends(get_event_store),
    _admin: dict = Depends(require_admin),
):
    start, end = window_or_400(start_date, end_date, 30)
    try:
        counts = store.count_by_type(start, end)
    except PyMongoError as exc:
        logger.exception("Error counting events")
        raise ApiError(500, "Error counting events", exc)
    return {"success": True, "period": period(start, end), "counts": counts}


@router.get("/most-viewed")
def get_most_viewed_products(
    limit: int = Query(10, ge=1, le=100),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    store: EventStore = Depends(get_event_store),
    _admin: dict = Depends(require_admin),
):
    start, end = window_or_400(start_date, end_date, 30)
    try:
        products = store.most_viewed_products(limit, start, end)
    except PyMongoError as exc:
        logger.exception("Error fetching most viewed products")
        raise ApiError(500, "Error fetching most viewed products", exc)
    return {"success": True, "count": len(products), "products": products}


@router.get("/funnel")
def get_funnel_data(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    store: EventStore = Depends(get_event_store),
    _admin: dict = Depends(require_admin),
):
    start, end = window_or_400(start_date, end_date, 30)
    try:
        funnel = store.funnel_counts(start, end)
    except PyMongoError as exc:
        logger.exception("Error fetching funnel data")
        raise ApiError(500, "Error fetching funnel data", exc)
    return {
        "success": True,
        "period": period(start, end),
        "funnelData": funnel,
        "conversionRates": funnel_conversion_rates(funnel),
    }
