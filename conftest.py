# conftest.py
"""
공용 테스트 픽스처

- FakeFirestore: 엔진이 사용하는 Firestore 기능만 흉내 내는 메모리 저장소
  (collection/document/set/get/update/create, where/order_by/limit/stream)
- app / client: 테스트 설정과 FakeFirestore를 주입한 Flask 앱
- auth_headers: flask-jwt-extended로 발급한 Bearer 토큰 헤더
"""

import copy
import itertools
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from firebase_admin import firestore
from flask_jwt_extended import create_access_token
from google.api_core import exceptions as gcp_exceptions

from daycare_app import create_app
from daycare_app.core.identity import IdentityContext
from daycare_app.services.entry_store import EntryStore, MonotonicClock


# ---------------------------------------------------------------------------
# In-memory Firestore
# ---------------------------------------------------------------------------
class FakeSnapshot:
    def __init__(self, doc_id, data, reference=None):
        self.id = doc_id
        self._data = data
        self.reference = reference

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, collection, doc_id):
        self._collection = collection
        self.id = doc_id

    def _check(self):
        self._collection._db._check_available()

    def get(self):
        self._check()
        return FakeSnapshot(self.id, self._collection._docs.get(self.id), self)

    def set(self, data, merge=False):
        self._check()
        self._collection._db._check_write(data)
        if merge and self.id in self._collection._docs:
            self._collection._docs[self.id].update(copy.deepcopy(data))
        else:
            self._collection._docs[self.id] = copy.deepcopy(data)

    def create(self, data):
        self._check()
        if self.id in self._collection._docs:
            raise gcp_exceptions.AlreadyExists(f"Document already exists: {self.id}")
        self._collection._docs[self.id] = copy.deepcopy(data)

    def update(self, data):
        self._check()
        if self.id not in self._collection._docs:
            raise gcp_exceptions.NotFound(f"No document to update: {self.id}")
        self._collection._docs[self.id].update(copy.deepcopy(data))


def _sortable(value):
    # Firestore는 null을 가장 앞에 정렬
    return (0, '') if value is None else (1, value)


class FakeQuery:
    OPS = {
        '==': lambda a, b: a == b,
        '!=': lambda a, b: a != b,
        '>=': lambda a, b: a is not None and a >= b,
        '>': lambda a, b: a is not None and a > b,
        '<=': lambda a, b: a is not None and a <= b,
        '<': lambda a, b: a is not None and a < b,
        'in': lambda a, b: a in b,
    }

    def __init__(self, collection, filters=(), orders=(), limit_count=None):
        self._collection = collection
        self._filters = tuple(filters)
        self._orders = tuple(orders)
        self._limit = limit_count

    def where(self, field, op, value):
        if op not in self.OPS:
            raise ValueError(f"Unsupported operator: {op}")
        if op == 'in' and len(value) > 10:
            raise ValueError("'in' filters support up to 10 values")
        return FakeQuery(self._collection, self._filters + ((field, op, value),), self._orders, self._limit)

    def order_by(self, field, direction=firestore.Query.ASCENDING):
        return FakeQuery(self._collection, self._filters, self._orders + ((field, direction),), self._limit)

    def limit(self, count):
        return FakeQuery(self._collection, self._filters, self._orders, count)

    def stream(self):
        db = self._collection._db
        db._check_available()
        db.query_log.append((self._collection.name, self._filters, self._orders, self._limit))

        rows = [
            (doc_id, data) for doc_id, data in self._collection._docs.items()
            if all(self.OPS[op](data.get(field), value) for field, op, value in self._filters)
        ]
        for field, direction in reversed(self._orders):
            rows.sort(key=lambda row: _sortable(row[1].get(field)), reverse=(direction == firestore.Query.DESCENDING))
        if self._limit is not None:
            rows = rows[:self._limit]
        return iter([FakeSnapshot(doc_id, data, self._collection.document(doc_id)) for doc_id, data in rows])

    def get(self):
        return list(self.stream())


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        self._db = db
        self.name = name
        self._docs = {}
        super().__init__(self)

    def document(self, doc_id=None):
        return FakeDocumentRef(self, doc_id or uuid.uuid4().hex)

    def add_doc(self, doc_id, data):
        self._docs[doc_id] = copy.deepcopy(data)


class FakeFirestore:
    """
    failing_children: 해당 childId 문서를 쓸 때 던질 예외 (항목 단위 쓰기 실패)
    unavailable: True이면 모든 읽기/쓰기가 ServiceUnavailable
    """
    def __init__(self):
        self._collections = {}
        self.failing_children = {}
        self.unavailable = False
        self.query_log = []

    def collection(self, name):
        if name not in self._collections:
            self._collections[name] = FakeCollection(self, name)
        return self._collections[name]

    def _check_available(self):
        if self.unavailable:
            raise gcp_exceptions.ServiceUnavailable("firestore unavailable")

    def _check_write(self, data):
        error = self.failing_children.get((data or {}).get('childId'))
        if error is not None:
            raise error

    def docs(self, name):
        return copy.deepcopy(self.collection(name)._docs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def step_clock():
    """호출할 때마다 1초씩 증가하는 시계"""
    start = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    counter = itertools.count()
    return MonotonicClock(now_fn=lambda: start + timedelta(seconds=next(counter)))


@pytest.fixture
def entry_store(db, step_clock):
    return EntryStore(db=db, max_workers=4, timeout_seconds=5, clock=step_clock)


@pytest.fixture
def teacher():
    return IdentityContext(uid='teacher-uid', role='teacher', daycare_id='dc-1', location_id='loc-1', user_doc_id='teacher-1')


@pytest.fixture
def parent():
    return IdentityContext(uid='parent-uid', role='parent', daycare_id='dc-1', location_id='loc-1', user_doc_id='parent-1')


@pytest.fixture
def roster(db):
    """children/users 컬렉션 시드 헬퍼"""
    class Roster:
        def add_child(self, child_id, class_id=None, name=None):
            db.collection('children').add_doc(child_id, {'classId': class_id, 'name': name})

        def add_user(self, user_id, child_ids=(), name=None, role='parent'):
            db.collection('users').add_doc(user_id, {
                'role': role,
                'displayName': name,
                'childRelationships': [{'childId': c, 'relation': 'parent'} for c in child_ids],
            })

    return Roster()


@pytest.fixture
def seed_entry(db):
    """entries 컬렉션에 저장 완료된 엔트리를 직접 넣습니다."""
    counter = itertools.count(1)

    def _seed(**fields):
        n = next(counter)
        doc = {
            'id': f"e{n:03d}",
            'daycareId': 'dc-1',
            'locationId': 'loc-1',
            'classId': 'class-a',
            'childId': 'child-1',
            'createdByUserId': 'teacher-1',
            'createdByRole': 'teacher',
            'type': 'Food',
            'subtype': 'Lunch',
            'occurredAt': datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc),
            'createdAt': datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc) + timedelta(seconds=n),
            'publishedAt': None,
            'visibleToParents': True,
            'data': {},
        }
        doc.update(fields)
        db.collection('entries').add_doc(doc['id'], doc)
        return doc

    return _seed


@pytest.fixture
def app(db):
    app = create_app('testing', db=db)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    def _headers(uid='teacher-uid', role='teacher', daycare_id='dc-1', location_id='loc-1', user_doc_id='teacher-1'):
        claims = {'role': role}
        if daycare_id:
            claims['daycareId'] = daycare_id
        if location_id:
            claims['locationId'] = location_id
        if user_doc_id:
            claims['userDocId'] = user_doc_id
        with app.app_context():
            token = create_access_token(identity=uid, additional_claims=claims)
        return {'Authorization': f"Bearer {token}"}

    return _headers
