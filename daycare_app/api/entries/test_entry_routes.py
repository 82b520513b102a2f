# daycare_app/api/entries/test_entry_routes.py
"""
엔트리 API 엔드포인트 테스트 (Flask 테스트 클라이언트)

사용법: python -m pytest daycare_app/api/entries/test_entry_routes.py -v
"""

from datetime import datetime, timezone

from daycare_app.core.rate_limit import RateLimiter

BULK_URL = '/api/mobile/v1/entries/bulk'
LIST_URL = '/api/mobile/v1/entries'


def test_bulk_requires_token(client):
    response = client.post(BULK_URL, json={"items": []})
    assert response.status_code == 401


def test_bulk_rejects_missing_or_empty_items(client, auth_headers):
    for body in ({}, {"items": []}, {"items": "nope"}):
        response = client.post(BULK_URL, json=body, headers=auth_headers())
        assert response.status_code == 400
        assert response.get_json()["message"] == "empty_items"


def test_bulk_returns_created_and_failed(client, auth_headers, db):
    response = client.post(BULK_URL, headers=auth_headers(), json={"items": [
        {"type": "Food", "subtype": "Lunch", "occurredAt": "2024-05-01T12:00:00Z", "childIds": ["c1", "c2"]},
        {"type": "Photo", "occurredAt": "2024-05-01T12:00:00Z", "childIds": ["c1"]},
    ]})

    assert response.status_code == 200
    body = response.get_json()
    assert [c["type"] for c in body["created"]] == ["Food", "Food"]
    assert body["failed"] == [{"index": 1, "reason": "photo_url_required_at_1"}]
    assert len(db.docs("entries")) == 2


def test_bulk_is_teacher_only(client, auth_headers):
    headers = auth_headers(uid="parent-uid", role="parent", user_doc_id="parent-1")
    response = client.post(BULK_URL, json={"items": [{"type": "Food"}]}, headers=headers)
    assert response.status_code == 403
    assert response.get_json()["error_code"] == "FORBIDDEN_ROLE"


def test_bulk_without_location_scope(client, auth_headers):
    item = {"type": "Food", "subtype": "Lunch", "occurredAt": "2024-05-01T12:00:00Z", "childIds": ["c1"]}
    response = client.post(BULK_URL, json={"items": [item]}, headers=auth_headers(location_id=None))
    assert response.status_code == 400
    assert response.get_json() == {"error_code": "MISSING_SCOPE", "message": "missing_auth_scope"}


def test_bulk_store_outage_is_503(client, auth_headers, db):
    db.unavailable = True
    item = {"type": "Food", "subtype": "Lunch", "occurredAt": "2024-05-01T12:00:00Z", "childIds": ["c1"]}
    response = client.post(BULK_URL, json={"items": [item]}, headers=auth_headers())
    assert response.status_code == 503
    assert response.get_json()["error_code"] == "STORE_UNAVAILABLE"


def test_list_serializes_iso_timestamps_and_ignores_sentinels(client, auth_headers, seed_entry):
    seed_entry(id="e1", occurredAt=datetime(2024, 5, 1, 9, tzinfo=timezone.utc))

    response = client.get(LIST_URL, query_string={"classId": "All Classes", "childId": "All Children", "limit": "500"},
                          headers=auth_headers())

    assert response.status_code == 200
    [entry] = response.get_json()
    assert entry["id"] == "e1"
    assert entry["occurredAt"] == "2024-05-01T09:00:00Z"
    assert entry["createdAt"].endswith("Z")
    assert "publishedAt" not in entry


def test_list_validates_query(client, auth_headers):
    response = client.get(LIST_URL, query_string={"type": "Nap"}, headers=auth_headers())
    assert response.status_code == 400

    response = client.get(LIST_URL, query_string={"dateFrom": "yesterday"}, headers=auth_headers())
    assert response.status_code == 400
    assert response.get_json()["details"] == {"dateFrom": ["invalid_dateFrom"]}


def test_parent_list_requires_child_in_guardianship(client, auth_headers, roster, seed_entry):
    roster.add_user("parent-1", child_ids=["c1"])
    seed_entry(id="mine", childId="c1")
    headers = auth_headers(uid="parent-uid", role="parent", user_doc_id="parent-1")

    assert client.get(LIST_URL, headers=headers).status_code == 400
    assert client.get(LIST_URL, query_string={"childId": "c2"}, headers=headers).status_code == 403

    response = client.get(LIST_URL, query_string={"childId": "c1"}, headers=headers)
    assert [e["id"] for e in response.get_json()] == ["mine"]


def test_rate_limit_returns_429(app, client, auth_headers):
    app.services['rate_limiter'] = RateLimiter(points=1, duration_seconds=60)
    headers = auth_headers()

    assert client.get(LIST_URL, headers=headers).status_code == 200
    response = client.get(LIST_URL, headers=headers)
    assert response.status_code == 429
    assert response.get_json()["error_code"] == "TOO_MANY_REQUESTS"
