# daycare_app/api/entries/test_entry_services.py
"""
엔트리 서비스(벌크 생성, 목록 조회) 테스트

사용법: python -m pytest daycare_app/api/entries/test_entry_services.py -v
"""

import pytest
from dataclasses import replace
from datetime import datetime, timezone

from daycare_app.core.errors import (
    EmptyGuardianshipError, ForbiddenRoleError, MissingScopeError, ScopeError, StoreUnavailableError
)
from daycare_app.api.entries.services import EntryService
from daycare_app.services.roster_service import RosterService

OCCURRED = "2024-05-01T09:00:00Z"


@pytest.fixture
def service(db, entry_store):
    return EntryService(entry_store=entry_store, roster_service=RosterService(db=db))


def test_apply_to_all_in_class_creates_one_entry_per_roster_child(service, teacher, roster, db):
    for child_id in ("c1", "c2", "c3"):
        roster.add_child(child_id, class_id="class-a")
    roster.add_child("other", class_id="class-b")

    result = service.bulk_create(teacher, [{
        "type": "Attendance", "subtype": "Check in", "occurredAt": OCCURRED,
        "applyToAllInClass": True, "classId": "class-a",
    }])

    assert result["failed"] == []
    assert len(result["created"]) == 3
    assert all(c["type"] == "Attendance" for c in result["created"])
    stored = db.docs("entries")
    assert sorted(doc["childId"] for doc in stored.values()) == ["c1", "c2", "c3"]
    assert all(doc["data"] == {"status": "check_in"} for doc in stored.values())


def test_partial_failure_is_isolated(service, teacher, db):
    items = [
        {"type": "Food", "subtype": "Lunch", "occurredAt": OCCURRED, "childIds": ["c1"]},
        {"type": "Food", "occurredAt": OCCURRED, "childIds": ["c1"]},
        {"type": "Note", "detail": "Happy day", "occurredAt": OCCURRED, "childIds": ["c2"]},
    ]
    result = service.bulk_create(teacher, items)

    assert len(result["created"]) == 2
    assert result["failed"] == [{"index": 1, "reason": "food_subtype_required_at_1"}]
    assert len(db.docs("entries")) == 2


def test_photo_without_url_fails(service, teacher, db):
    result = service.bulk_create(teacher, [{"type": "Photo", "occurredAt": OCCURRED, "childIds": ["c1"]}])

    assert result == {"created": [], "failed": [{"index": 0, "reason": "photo_url_required_at_0"}]}
    assert db.docs("entries") == {}


def test_created_entries_carry_store_fields(service, teacher, db):
    result = service.bulk_create(teacher, [
        {"type": "Sleep", "subtype": "Started", "occurredAt": OCCURRED, "childIds": ["c1", "c2"]},
    ])

    ids = [c["id"] for c in result["created"]]
    assert len(set(ids)) == 2
    stored = db.docs("entries")
    created_times = [stored[i]["createdAt"] for i in ids]
    assert created_times == sorted(created_times)
    for entry_id in ids:
        doc = stored[entry_id]
        assert doc["id"] == entry_id
        assert doc["createdByRole"] == "teacher"
        assert doc["createdByUserId"] == "teacher-1"
        assert doc["occurredAt"] == datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
        assert doc["visibleToParents"] is True
        assert doc["publishedAt"] is None


def test_write_failure_reports_submission_index(service, teacher, db):
    db.failing_children["c2"] = RuntimeError("permission denied")
    result = service.bulk_create(teacher, [
        {"type": "Food", "subtype": "Snack", "occurredAt": OCCURRED, "childIds": ["c1"]},
        {"type": "Food", "subtype": "Snack", "occurredAt": OCCURRED, "childIds": ["c2", "c3"]},
    ])

    assert len(result["created"]) == 2
    assert result["failed"] == [{"index": 1, "reason": "write_failed_at_1"}]


def test_store_unavailable_fails_whole_batch(service, teacher, db):
    db.unavailable = True
    with pytest.raises(StoreUnavailableError):
        service.bulk_create(teacher, [{"type": "Food", "subtype": "Snack", "occurredAt": OCCURRED, "childIds": ["c1"]}])


def test_bulk_create_requires_teacher_and_scope(service, teacher, parent, db):
    item = {"type": "Food", "subtype": "Snack", "occurredAt": OCCURRED, "childIds": ["c1"]}

    with pytest.raises(ForbiddenRoleError):
        service.bulk_create(parent, [item])
    with pytest.raises(MissingScopeError):
        service.bulk_create(replace(teacher, location_id=None), [item])
    assert db.docs("entries") == {}


def test_teacher_list_is_scoped_to_location(service, teacher, seed_entry):
    seed_entry(id="a", occurredAt=datetime(2024, 5, 1, 10, tzinfo=timezone.utc))
    seed_entry(id="b", occurredAt=datetime(2024, 5, 1, 8, tzinfo=timezone.utc))
    seed_entry(id="other-location", locationId="loc-2")
    seed_entry(id="hidden", visibleToParents=False, occurredAt=datetime(2024, 5, 1, 11, tzinfo=timezone.utc))

    entries = service.list_entries(teacher, {})

    assert [e["id"] for e in entries] == ["b", "a", "hidden"]


def test_teacher_list_filters(service, teacher, seed_entry):
    seed_entry(id="food", type="Food", childId="c1")
    seed_entry(id="note", type="Note", subtype=None, detail="x", childId="c1")
    seed_entry(id="late", type="Food", childId="c1", occurredAt=datetime(2024, 5, 2, 9, tzinfo=timezone.utc))
    seed_entry(id="other-child", type="Food", childId="c2")

    filters = {
        "childId": "c1",
        "type": "Food",
        "dateFrom": datetime(2024, 5, 1, tzinfo=timezone.utc),
        "dateTo": datetime(2024, 5, 2, tzinfo=timezone.utc),
    }
    assert [e["id"] for e in service.list_entries(teacher, filters)] == ["food"]


def test_parent_list_hard_filters_visibility(service, parent, roster, seed_entry):
    roster.add_user("parent-1", child_ids=["c1"])
    seed_entry(id="visible", childId="c1")
    seed_entry(id="hidden", childId="c1", visibleToParents=False)

    entries = service.list_entries(parent, {"childId": "c1"})

    assert [e["id"] for e in entries] == ["visible"]


def test_parent_list_rules(service, parent, roster):
    with pytest.raises(MissingScopeError):
        service.list_entries(parent, {})

    with pytest.raises(EmptyGuardianshipError):
        service.list_entries(parent, {"childId": "c1"})

    roster.add_user("parent-1", child_ids=["c1"])
    with pytest.raises(ScopeError):
        service.list_entries(parent, {"childId": "someone-else"})


def test_list_requires_known_role(service, teacher):
    with pytest.raises(ForbiddenRoleError):
        service.list_entries(replace(teacher, role="admin"), {})
