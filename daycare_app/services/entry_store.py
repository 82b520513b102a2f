# daycare_app/services/entry_store.py
import logging
import math
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions

from daycare_app.core.errors import StoreUnavailableError
from daycare_app.models.entry import CanonicalEntry
from daycare_app.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

ENTRIES_COLLECTION = 'entries'

DEFAULT_LIMIT = 50
MIN_LIMIT = 1
MAX_LIMIT = 100

# Firestore 'in' 연산자는 한 번에 최대 10개 값까지만 사용
IN_QUERY_CHUNK_SIZE = 10

# 저장소 자체에 접근할 수 없는 경우로 간주하는 예외들 (배치 전체 실패)
UNAVAILABLE_ERRORS = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.RetryError,
)

_EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)


def clamp_limit(value: Any, default: int = DEFAULT_LIMIT, minimum: int = MIN_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """조회 개수 제한을 [minimum, maximum]으로 보정. 숫자가 아니면 기본값."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(max(minimum, min(number, maximum)))


def chunked(items: List[str], size: int = IN_QUERY_CHUNK_SIZE) -> List[List[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def entry_sort_key(doc: Dict[str, Any]) -> Tuple[datetime, datetime, str]:
    """(occurredAt, createdAt, id) 오름차순 정렬 키. 해석 불가한 시간은 가장 앞."""
    occurred = DateTimeUtils.coerce_datetime(doc.get('occurredAt')) or _EPOCH_MIN
    created = DateTimeUtils.coerce_datetime(doc.get('createdAt')) or _EPOCH_MIN
    return occurred, created, str(doc.get('id') or '')


@dataclass
class EntryQuery:
    """
    entries 컬렉션 조회 조건.
    occurred_from은 포함, occurred_before는 배타적 상한입니다.
    """
    daycare_id: Optional[str] = None
    location_id: Optional[str] = None
    child_id: Optional[str] = None
    child_ids: Optional[List[str]] = None
    class_id: Optional[str] = None
    entry_type: Optional[str] = None
    occurred_from: Optional[datetime] = None
    occurred_before: Optional[datetime] = None
    visible_to_parents_only: bool = False
    order_by_created: bool = False
    newest_first: bool = False
    limit: Optional[int] = None


@dataclass
class BulkWriteResult:
    created: List[Tuple[int, CanonicalEntry]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)


class MonotonicClock:
    """저장소 단위로 감소하지 않는 createdAt을 발급합니다."""
    def __init__(self, now_fn=DateTimeUtils.now):
        self._now_fn = now_fn
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def tick(self) -> datetime:
        with self._lock:
            current = self._now_fn()
            if self._last is not None and current < self._last:
                current = self._last
            self._last = current
            return current


class EntryStore:
    """
    CanonicalEntry의 추가 전용(append-only) 저장소.
    - 벌크 쓰기는 항목별 성공/실패를 보고합니다.
    - 저장소 자체에 접근할 수 없으면 StoreUnavailableError로 배치 전체가 실패합니다.
    """
    def __init__(self, db=None, max_workers: int = 8, timeout_seconds: float = 10.0,
                 clock: Optional[MonotonicClock] = None, default_limit: int = DEFAULT_LIMIT, max_limit: int = MAX_LIMIT):
        self.db = db or firestore.client()
        self.entries_ref = self.db.collection(ENTRIES_COLLECTION)
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.max_workers = max(1, int(max_workers))
        self.timeout_seconds = timeout_seconds
        self.clock = clock or MonotonicClock()
        logging.info("EntryStore initialized.")

    # ------------------------------------------------------------------
    # 쓰기
    # ------------------------------------------------------------------
    def _write(self, entry: CanonicalEntry) -> None:
        firestore_data = DateTimeUtils.for_firestore(entry.to_document())
        self.entries_ref.document(entry.id).set(firestore_data)

    def append_many(self, pending: List[Tuple[int, CanonicalEntry]]) -> BulkWriteResult:
        """
        (제출 인덱스, 엔트리) 목록을 동시에 저장합니다.

        id와 createdAt은 제출 순서대로 여기서 한 번만 부여됩니다. 쓰기 완료 순서와
        관계없이 결과는 항상 원래 제출 순서로 정렬되며, failed[].index는 제출 인덱스입니다.
        """
        result = BulkWriteResult()
        if not pending:
            return result

        staged = []
        for index, entry in pending:
            staged.append((index, replace(entry, id=str(uuid.uuid4()), created_at=self.clock.tick())))

        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(staged)))
        try:
            futures = {executor.submit(self._write, entry): position for position, (_, entry) in enumerate(staged)}
            done, not_done = wait(futures, timeout=self.timeout_seconds)
            if not_done:
                logger.error(f"Entry store write timed out after {self.timeout_seconds}s ({len(not_done)}/{len(staged)} pending)")
                raise StoreUnavailableError("store_timeout")

            outcomes: List[Optional[BaseException]] = [None] * len(staged)
            for future in done:
                error = future.exception()
                if isinstance(error, UNAVAILABLE_ERRORS):
                    logger.error(f"Entry store unavailable during bulk write: {error}")
                    raise StoreUnavailableError("store_unavailable") from error
                outcomes[futures[future]] = error
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for (index, entry), error in zip(staged, outcomes):
            if error is None:
                result.created.append((index, entry))
            else:
                logger.error(f"Entry write failed (item {index}, child {entry.child_id}): {error}")
                result.failed.append({'index': index, 'reason': f"write_failed_at_{index}"})

        logger.info(f"Bulk write finished: {len(result.created)} created, {len(result.failed)} failed")
        return result

    def stamp_published(self, docs: List[Dict[str, Any]], published_at: datetime) -> int:
        """publishedAt이 아직 없는 엔트리에만 한 번 기록합니다."""
        stamped = 0
        try:
            for doc in docs:
                if doc.get('publishedAt'):
                    continue
                self.entries_ref.document(doc['id']).update({'publishedAt': DateTimeUtils.for_firestore(published_at)})
                doc['publishedAt'] = published_at
                stamped += 1
        except UNAVAILABLE_ERRORS as e:
            logger.error(f"Entry store unavailable while stamping publishedAt: {e}")
            raise StoreUnavailableError("store_unavailable") from e
        return stamped

    # ------------------------------------------------------------------
    # 읽기
    # ------------------------------------------------------------------
    def _build_query(self, q: EntryQuery, child_chunk: Optional[List[str]]):
        query = self.entries_ref
        if q.daycare_id:
            query = query.where('daycareId', '==', q.daycare_id)
        if q.location_id:
            query = query.where('locationId', '==', q.location_id)
        if child_chunk is not None:
            query = query.where('childId', 'in', child_chunk)
        elif q.child_id:
            query = query.where('childId', '==', q.child_id)
        if q.class_id:
            query = query.where('classId', '==', q.class_id)
        if q.entry_type:
            query = query.where('type', '==', q.entry_type)
        if q.visible_to_parents_only:
            query = query.where('visibleToParents', '==', True)
        if q.occurred_from:
            query = query.where('occurredAt', '>=', q.occurred_from)
        if q.occurred_before:
            query = query.where('occurredAt', '<', q.occurred_before)

        direction = firestore.Query.DESCENDING if q.newest_first else firestore.Query.ASCENDING
        order_fields = ['createdAt', 'id'] if q.order_by_created else ['occurredAt', 'createdAt', 'id']
        for order_field in order_fields:
            query = query.order_by(order_field, direction=direction)

        if q.limit:
            query = query.limit(q.limit)
        return query

    def _run(self, q: EntryQuery, child_chunk: Optional[List[str]]) -> List[Dict[str, Any]]:
        docs = []
        for doc in self._build_query(q, child_chunk).stream():
            record = DateTimeUtils.from_firestore(doc.to_dict() or {})
            record['id'] = record.get('id') or doc.id
            # 학부모 대상 조회는 쿼리 조건과 별개로 한 번 더 거릅니다
            if q.visible_to_parents_only and record.get('visibleToParents') is not True:
                continue
            docs.append(record)
        return docs

    def query(self, q: EntryQuery) -> List[Dict[str, Any]]:
        """
        조건에 맞는 엔트리 문서를 (occurredAt, createdAt, id) 순으로 반환합니다.
        newest_first이면 역순, limit이 없으면 개수 제한 없이 반환합니다.
        """
        try:
            if q.child_ids is not None:
                child_ids = list(dict.fromkeys(c for c in q.child_ids if c))
                if not child_ids:
                    return []
                records = []
                for chunk in chunked(child_ids):
                    records.extend(self._run(q, chunk))
            else:
                records = self._run(q, None)
        except UNAVAILABLE_ERRORS as e:
            logger.error(f"Entry store unavailable during query: {e}")
            raise StoreUnavailableError("store_unavailable") from e

        if q.order_by_created:
            key = lambda d: (DateTimeUtils.coerce_datetime(d.get('createdAt')) or _EPOCH_MIN, str(d.get('id') or ''))
        else:
            key = entry_sort_key
        records.sort(key=key, reverse=q.newest_first)

        if q.limit and q.child_ids is None:
            records = records[:q.limit]
        return records

    def list_entries(self, q: EntryQuery, limit: Any = None) -> List[Dict[str, Any]]:
        """
        목록 API용 조회. 개수 제한은 항상 [1, max_limit]으로 보정됩니다 (기본 50, 최대 100).
        가장 최근 limit개를 고른 뒤 (occurredAt, createdAt, id) 오름차순으로 돌려줍니다.
        """
        capped = replace(q, limit=clamp_limit(limit, default=self.default_limit, maximum=self.max_limit),
                         newest_first=True)
        page = self.query(capped)[:capped.limit]
        page.sort(key=entry_sort_key)
        return page
