# daycare_app/services/test_roster_service.py
"""
반 명단 / 보호 관계 조회 테스트

사용법: python -m pytest daycare_app/services/test_roster_service.py -v
"""

from daycare_app.services.roster_service import RosterService


def test_class_child_ids(db, roster):
    roster.add_child("c1", class_id="class-a")
    roster.add_child("c2", class_id="class-a")
    roster.add_child("c3", class_id="class-b")
    service = RosterService(db=db)

    assert sorted(service.class_child_ids("class-a")) == ["c1", "c2"]
    assert service.class_child_ids("class-z") == []
    assert service.class_child_ids("") == []


def test_guardian_child_ids(db, roster):
    roster.add_user("parent-1", child_ids=["c1", " c2 ", "c1"])
    db.collection('users').add_doc("parent-2", {"childRelationships": "c1"})
    db.collection('users').add_doc("parent-3", {"childRelationships": [{"relation": "parent"}, "c4", {"childId": "c5"}]})
    service = RosterService(db=db)

    assert service.guardian_child_ids("parent-1") == ["c1", "c2"]
    assert service.guardian_child_ids("parent-2") == []
    assert service.guardian_child_ids("parent-3") == ["c5"]
    assert service.guardian_child_ids("missing") == []
    assert service.guardian_child_ids(None) == []


def test_display_names(db, roster):
    roster.add_child("c1", name="Mina")
    db.collection('children').add_doc("c2", {"firstName": "Joon", "lastName": "Park"})
    db.collection('children').add_doc("c3", {})
    roster.add_user("t1", name="Ms. Kim", role="teacher")
    service = RosterService(db=db)

    assert service.child_names(["c1", "c2", "c3", "missing", None]) == {"c1": "Mina", "c2": "Joon Park"}
    assert service.user_names(["t1"]) == {"t1": "Ms. Kim"}
