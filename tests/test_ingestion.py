"""
Event ingestion: single events and client batches.
"""
from bson import ObjectId


class TestLogEvent:
    def test_anonymous_event_is_stored_once(self, client, db):
        response = client.post(
            "/api/logs/event",
            json={"eventType": "page_view", "sessionId": "sess_a", "eventData": {"pageTitle": "Home"}},
            headers={"User-Agent": "pytest-agent"},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["event"]["eventType"] == "page_view"

        docs = list(db["event"].find())
        assert len(docs) == 1
        stored = docs[0]
        assert str(stored["_id"]) == body["event"]["id"]
        assert stored["userId"] == "anonymous"
        assert stored["isAuthenticated"] is False
        assert stored["userAgent"] == "pytest-agent"
        assert stored["pageUrl"] == ""
        assert stored["referrer"] == ""

    def test_user_id_marks_event_authenticated(self, client, db):
        response = client.post(
            "/api/logs/event",
            json={
                "eventType": "product_view",
                "sessionId": "sess_b",
                "userId": "u-1",
                "eventData": {"productId": "p-1", "productName": "Sport Sneakers"},
                "pageUrl": "/products/p-1",
            },
        )
        assert response.status_code == 201
        stored = db["event"].find_one({"_id": ObjectId(response.json()["event"]["id"])})
        assert stored["userId"] == "u-1"
        assert stored["isAuthenticated"] is True
        assert stored["pageUrl"] == "/products/p-1"
        assert stored["eventData"]["productId"] == "p-1"

    def test_missing_session_id_is_rejected(self, client, db):
        response = client.post("/api/logs/event", json={"eventType": "page_view", "eventData": {}})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert "sessionId" in body["message"]
        assert db["event"].count_documents({}) == 0

    def test_missing_event_data_is_rejected(self, client):
        response = client.post("/api/logs/event", json={"eventType": "page_view", "sessionId": "s"})
        assert response.status_code == 400

    def test_payload_must_match_event_type(self, client, db):
        response = client.post(
            "/api/logs/event",
            json={"eventType": "product_view", "sessionId": "s", "eventData": {"productName": "No id"}},
        )
        assert response.status_code == 400
        assert "Invalid eventData" in response.json()["message"]
        assert db["event"].count_documents({}) == 0

    def test_unknown_event_type_is_stored_as_given(self, client, db):
        response = client.post(
            "/api/logs/event",
            json={"eventType": "wishlist_add", "sessionId": "s", "eventData": {"anything": 1}},
        )
        assert response.status_code == 201
        assert db["event"].find_one()["eventData"] == {"anything": 1}

    def test_purchase_shows_up_in_counts(self, client, admin_headers, log_event):
        created = log_event("purchase", {"orderId": "ORD-1", "amount": 99.9})
        assert created["event"]["id"]

        response = client.get("/api/logs/counts", headers=admin_headers)
        assert response.status_code == 200
        assert {"_id": "purchase", "count": 1} in response.json()["counts"]


class TestLogBatch:
    def test_valid_and_invalid_items(self, client, db):
        events = [
            {
                "eventType": "product_view",
                "sessionId": "sess_batch",
                "userId": "u-7",
                "timestamp": "2001-01-01T00:00:00",
                "data": {"productId": "p-1"},
                "url": "/p/1",
                "userAgent": "batch-agent",
            },
            {"eventType": "cart_add", "sessionId": "sess_batch", "data": {"quantity": 1}},
            {"eventType": "page_view", "sessionId": "sess_batch", "data": {}},
        ]
        response = client.post("/api/logs/batch", json={"events": events})
        assert response.status_code == 201
        body = response.json()
        assert body["accepted"] == 2
        assert len(body["ids"]) == 2
        assert [item["index"] for item in body["rejected"]] == [1]
        assert body["rejected"][0]["message"].startswith("Value error, Invalid eventData for 'cart_add': productId")

        stored = db["event"].find_one({"eventType": "product_view"})
        assert stored["pageUrl"] == "/p/1"
        assert stored["userAgent"] == "batch-agent"
        assert stored["isAuthenticated"] is True
        # client timestamps are ignored in favour of server time
        assert stored["timestamp"].year != 2001

    def test_item_without_event_type_is_rejected(self, client, db):
        response = client.post("/api/logs/batch", json={"events": [{"sessionId": "s", "data": {}}]})
        assert response.status_code == 201
        assert response.json()["accepted"] == 0
        assert db["event"].count_documents({}) == 0

    def test_empty_batch_is_a_bad_request(self, client):
        response = client.post("/api/logs/batch", json={"events": []})
        assert response.status_code == 400
        assert response.json()["success"] is False
