"""
Batching client for the event ingestion API.

Events are queued in memory and shipped to ``<api_url>/batch`` either on a
timer, when an error is logged, or when the process exits. Delivery is
at-least-once for the lifetime of the process: a failed batch goes back to
the front of the queue and nothing is persisted to disk.

    with LoggerClient(api_url="http://localhost:8000/api/logs") as client:
        client.set_user_id("u-42")
        client.log_product_view("p-1", "Sport Sneakers", category="Footwear")
"""
import atexit
import logging
import random
import string
import threading
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic_core import to_jsonable_python

import config
from schemas import utcnow

logger = logging.getLogger(__name__)

SESSION_ALPHABET = string.digits + string.ascii_lowercase
SESSION_ID_LENGTH = 26


class LogDeliveryError(Exception):
    """A batch could not be delivered; its events were put back in the queue."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def generate_session_id() -> str:
    return "sess_" + "".join(random.choice(SESSION_ALPHABET) for _ in range(SESSION_ID_LENGTH))


def _log_delivery_error(exc: Exception) -> None:
    logger.error(f"Failed to deliver event batch: {exc}")


class LoggerClient:
    def __init__(
        self,
        api_url: Optional[str] = None,
        flush_interval: float = 10.0,
        debug: bool = False,
        error_handler: Optional[Callable[[Exception], None]] = None,
        auto_flush: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 10.0,
        beacon_timeout: float = 2.0,
        user_agent: Optional[str] = None,
    ):
        self.api_url = (api_url or f"{config.API_BASE_URL}/api/logs").rstrip("/")
        self.flush_interval = flush_interval
        self.debug = debug
        self.error_handler = error_handler or _log_delivery_error
        self.beacon_timeout = beacon_timeout
        self.session_id = generate_session_id()
        self.user_id: Optional[str] = None
        self.page_url = ""
        self.user_agent = user_agent or f"postsale-logger/{config.VERSION}"

        self._queue: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        # held for a whole send: one batch in flight at a time
        self._flush_lock = threading.Lock()
        self._http = httpx.Client(transport=transport, timeout=timeout)
        self._stop = threading.Event()
        self._timer: Optional[threading.Thread] = None
        self._auto_flush = auto_flush
        if auto_flush:
            self._timer = threading.Thread(target=self._run_timer, name="logger-client-flush", daemon=True)
            self._timer.start()
            atexit.register(self._flush_at_exit)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def pending(self) -> List[Dict[str, Any]]:
        """Snapshot of the events waiting to be sent, oldest first."""
        with self._lock:
            return list(self._queue)

    def set_user_id(self, user_id: Optional[str]) -> None:
        self.user_id = user_id

    def set_page_url(self, url: str) -> None:
        self.page_url = url or ""

    def log_event(self, event_type: str, data: Optional[Dict[str, Any]] = None, severity: str = "info") -> Dict[str, Any]:
        event = {
            "eventType": event_type,
            "sessionId": self.session_id,
            "userId": self.user_id,
            "timestamp": utcnow().isoformat(),
            "severity": severity,
            "data": to_jsonable_python(dict(data or {}), fallback=str),
            "url": self.page_url,
            "userAgent": self.user_agent,
        }
        with self._lock:
            self._queue.append(event)
        if self.debug:
            logger.debug(f"Queued {event_type}: {event['data']}")
        # a flush already in flight leaves this event for the next one
        if severity == "error" and self._flush_lock.acquire(blocking=False):
            try:
                self._send_queued(sync=False)
            except LogDeliveryError:
                # already reported through error_handler; the batch stays queued
                pass
            finally:
                self._flush_lock.release()
        return event

    def log_page_view(self, page_title: Optional[str] = None, **extra) -> Dict[str, Any]:
        return self.log_event("page_view", {"pageTitle": page_title, **extra})

    def log_product_view(self, product_id: str, product_name: Optional[str] = None, category: Optional[str] = None) -> Dict[str, Any]:
        return self.log_event("product_view", {"productId": product_id, "productName": product_name, "category": category})

    def log_add_to_cart(self, product_id: str, product_name: Optional[str] = None, quantity: int = 1, price: Optional[float] = None) -> Dict[str, Any]:
        return self.log_event(
            "cart_add", {"productId": product_id, "productName": product_name, "quantity": quantity, "price": price}
        )

    def log_remove_from_cart(self, product_id: str, product_name: Optional[str] = None, quantity: int = 1) -> Dict[str, Any]:
        return self.log_event("cart_remove", {"productId": product_id, "productName": product_name, "quantity": quantity})

    def log_customization(self, product_id: str, customizations: Dict[str, Any], product_name: Optional[str] = None) -> Dict[str, Any]:
        return self.log_event(
            "product_customize",
            {"productId": product_id, "productName": product_name, "customizations": customizations},
        )

    def log_checkout(self, items: List[Dict[str, Any]], total: float) -> Dict[str, Any]:
        return self.log_event("checkout_start", {"items": items, "total": total})

    def log_purchase(self, order_id: str, items: List[Dict[str, Any]], total: float) -> Dict[str, Any]:
        return self.log_event("checkout_complete", {"orderId": order_id, "items": items, "total": total})

    def log_error(self, message: str, **context) -> Dict[str, Any]:
        return self.log_event("error", {"message": message, **context}, severity="error")

    def flush(self, sync: bool = False):
        """Send every queued event in one batch.

        Returns None when there is nothing to send. Otherwise returns the
        decoded response body, or with ``sync=True`` a bool that says whether
        the batch was accepted; the sync form never raises.
        """
        with self._flush_lock:
            return self._send_queued(sync)

    def _send_queued(self, sync: bool):
        with self._lock:
            if not self._queue:
                return None
            batch = list(self._queue)
            self._queue.clear()

        kwargs = {"timeout": self.beacon_timeout} if sync else {}
        try:
            response = self._http.post(f"{self.api_url}/batch", json={"events": batch}, **kwargs)
            response.raise_for_status()
        except Exception as exc:
            # the queue was cleared above, so any failure must put the batch back
            self._requeue(batch)
            if sync:
                logger.warning(f"Sync flush failed, {len(batch)} event(s) left undelivered: {exc}")
                return False
            self.error_handler(exc)
            status_code = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
            raise LogDeliveryError(f"Could not deliver {len(batch)} event(s): {exc}", status_code) from exc

        if self.debug:
            logger.debug(f"Delivered {len(batch)} event(s)")
        if sync:
            return True
        try:
            return response.json()
        except ValueError:
            return {}

    def close(self) -> None:
        self._stop.set()
        if self._timer is not None and self._timer is not threading.current_thread():
            self._timer.join(timeout=self.flush_interval)
        self.flush(sync=True)
        self._http.close()
        if self._auto_flush:
            atexit.unregister(self._flush_at_exit)

    def _requeue(self, batch: List[Dict[str, Any]]) -> None:
        with self._lock:
            self._queue[:0] = batch

    def _run_timer(self) -> None:
        while not self._stop.wait(self.flush_interval):
            try:
                self.flush()
            except LogDeliveryError:
                pass
            except Exception:
                logger.exception("Auto flush failed")

    def _flush_at_exit(self) -> None:
        self.flush(sync=True)
