import json
import re
import threading
from datetime import datetime

import httpx
import pytest

import logger_client
from logger_client import LogDeliveryError, LoggerClient, generate_session_id


class RecordingTransport:
    """MockTransport handler that records posted batches and replies with ``status``."""

    def __init__(self, status=201):
        self.status = status
        self.batches = []
        self.on_request = None

    def __call__(self, request):
        self.batches.append(json.loads(request.content)["events"])
        if self.on_request:
            self.on_request(request)
        return httpx.Response(self.status, json={"success": self.status < 400, "accepted": len(self.batches[-1])})


def make_client(handler, **kwargs):
    errors = []
    client = LoggerClient(
        api_url="http://analytics.test/api/logs/",
        auto_flush=False,
        transport=httpx.MockTransport(handler),
        error_handler=errors.append,
        **kwargs,
    )
    return client, errors


def test_session_id_format():
    session_id = generate_session_id()
    assert re.fullmatch(r"sess_[0-9a-z]{26}", session_id)
    assert generate_session_id() != session_id


def test_log_event_queues_full_record():
    client, _ = make_client(RecordingTransport())
    client.set_user_id("u-1")
    client.set_page_url("/products/p-1")
    event = client.log_product_view("p-1", "Sport Sneakers", category="Footwear")

    assert client.pending == [event]
    assert event["eventType"] == "product_view"
    assert event["sessionId"] == client.session_id
    assert event["userId"] == "u-1"
    assert event["url"] == "/products/p-1"
    assert event["data"] == {"productId": "p-1", "productName": "Sport Sneakers", "category": "Footwear"}


def test_helpers_use_funnel_event_types():
    client, _ = make_client(RecordingTransport())
    client.log_add_to_cart("p-1", quantity=2)
    client.log_remove_from_cart("p-1")
    client.log_customization("p-1", {"color": "Red"})
    client.log_checkout([{"productId": "p-1"}], 10.0)
    client.log_purchase("ORD-1", [{"productId": "p-1"}], 10.0)
    assert [e["eventType"] for e in client.pending] == [
        "cart_add",
        "cart_remove",
        "product_customize",
        "checkout_start",
        "checkout_complete",
    ]


def test_flush_empty_queue_is_a_noop():
    transport = RecordingTransport()
    client, _ = make_client(transport)
    assert client.flush() is None
    assert transport.batches == []


def test_flush_posts_batch_and_clears_queue():
    transport = RecordingTransport()
    client, errors = make_client(transport)
    client.log_page_view("Home")
    client.log_product_view("p-1")

    body = client.flush()
    assert body == {"success": True, "accepted": 2}
    assert [e["eventType"] for e in transport.batches[0]] == ["page_view", "product_view"]
    assert client.pending == []
    assert errors == []


def test_failed_flush_requeues_ahead_of_newer_events():
    transport = RecordingTransport(status=503)
    client, errors = make_client(transport)
    first = client.log_page_view("one")
    second = client.log_page_view("two")
    during = {}
    transport.on_request = lambda request: during.setdefault("event", client.log_page_view("during"))

    with pytest.raises(LogDeliveryError) as exc_info:
        client.flush()

    assert exc_info.value.status_code == 503
    assert len(errors) == 1
    assert client.pending == [first, second, during["event"]]


def test_network_error_requeues():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, errors = make_client(handler)
    event = client.log_page_view("offline")
    with pytest.raises(LogDeliveryError) as exc_info:
        client.flush()
    assert exc_info.value.status_code is None
    assert isinstance(errors[0], httpx.ConnectError)
    assert client.pending == [event]


def test_error_severity_flushes_immediately():
    transport = RecordingTransport()
    client, _ = make_client(transport)
    client.log_page_view("before")
    client.log_error("checkout crashed", component="cart")

    assert len(transport.batches) == 1
    assert transport.batches[0][-1]["severity"] == "error"
    assert transport.batches[0][-1]["data"] == {"message": "checkout crashed", "component": "cart"}
    assert client.pending == []


def test_error_flush_failure_does_not_raise():
    client, errors = make_client(RecordingTransport(status=500))
    client.log_error("boom")
    assert len(errors) == 1
    assert len(client.pending) == 1


def test_sync_flush_never_raises():
    client, errors = make_client(RecordingTransport(status=500))
    client.log_page_view("exit")
    assert client.flush(sync=True) is False
    assert len(client.pending) == 1
    assert errors == []

    ok, _ = make_client(RecordingTransport())
    ok.log_page_view("exit")
    assert ok.flush(sync=True) is True


def test_close_delivers_remaining_events():
    transport = RecordingTransport()
    with LoggerClient(api_url="http://analytics.test/api/logs", auto_flush=False, transport=httpx.MockTransport(transport)) as client:
        client.log_page_view("last")
    assert len(transport.batches) == 1


def test_non_http_failure_requeues():
    def handler(request):
        raise ValueError("unexpected reply")

    client, errors = make_client(handler)
    event = client.log_page_view("odd")
    with pytest.raises(LogDeliveryError) as exc_info:
        client.flush()
    assert exc_info.value.status_code is None
    assert isinstance(errors[0], ValueError)
    assert client.pending == [event]


def test_event_data_is_made_json_safe():
    transport = RecordingTransport()
    client, errors = make_client(transport)
    event = client.log_event("checkout_complete", {"orderId": "ORD-1", "placedAt": datetime(2024, 6, 1, 12, 30)})
    assert event["data"]["placedAt"] == "2024-06-01T12:30:00"

    client.log_page_view("after")
    client.flush()
    assert len(transport.batches[0]) == 2
    assert client.pending == []
    assert errors == []


def test_overlapping_flushes_keep_queue_order():
    first_sent = threading.Event()
    release = threading.Event()
    batches = []

    def handler(request):
        batches.append(json.loads(request.content)["events"])
        if len(batches) == 1:
            first_sent.set()
            release.wait(5)
        return httpx.Response(503, json={"success": False})

    client, errors = make_client(handler)
    first = client.log_page_view("first")
    failures = []

    def flush():
        try:
            client.flush()
        except LogDeliveryError as exc:
            failures.append(exc)

    in_flight = threading.Thread(target=flush)
    in_flight.start()
    assert first_sent.wait(5)
    second = client.log_page_view("second")
    waiting = threading.Thread(target=flush)
    waiting.start()
    waiting.join(0.1)
    # the second flush waits for the first to finish
    assert len(batches) == 1

    release.set()
    in_flight.join(5)
    waiting.join(5)
    assert len(failures) == 2
    assert [e["eventType"] for e in batches[1]] == ["page_view", "page_view"]
    assert client.pending == [first, second]


def test_timer_flushes_and_survives_failures():
    delivered = threading.Event()
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        delivered.set()
        return httpx.Response(201, json={"success": True})

    errors = []
    client = LoggerClient(
        api_url="http://analytics.test/api/logs",
        flush_interval=0.02,
        transport=httpx.MockTransport(handler),
        error_handler=errors.append,
    )
    try:
        client.log_page_view("timed")
        assert delivered.wait(5)
        assert client.pending == []
        assert len(errors) == 1
    finally:
        client.close()


def test_exit_hook_registered_until_close(monkeypatch):
    registered, unregistered = [], []
    monkeypatch.setattr(logger_client.atexit, "register", registered.append)
    monkeypatch.setattr(logger_client.atexit, "unregister", unregistered.append)

    client = LoggerClient(
        api_url="http://analytics.test/api/logs",
        flush_interval=60,
        transport=httpx.MockTransport(RecordingTransport()),
    )
    assert registered == [client._flush_at_exit]
    client.close()
    assert unregistered == [client._flush_at_exit]
