# daycare_app/api/parent_feed/normalizer.py
"""
학부모 피드 정규화

저장된 엔트리(시간 필드가 Firestore 고유 타입일 수 있음)를 학부모 피드용 평면 dict로
변환합니다. 시간은 모두 'Z' 접미사의 ISO 8601 문자열이며, 해석할 수 없는 시간 필드는
값을 만들어 넣지 않고 생략합니다.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from daycare_app.utils.datetime_utils import DateTimeUtils

_EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)

PASSTHROUGH_FIELDS = ('type', 'subtype', 'toiletKind', 'detail', 'childId', 'classId', 'photoUrl')


def normalize_feed_entry(doc: Dict[str, Any],
                         child_names: Optional[Dict[str, str]] = None,
                         teacher_names: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    엔트리 하나를 피드 항목으로 변환합니다.
    occurredAt이 없거나 해석할 수 없으면 createdAt으로 대체합니다.
    """
    child_names = child_names or {}
    teacher_names = teacher_names or {}

    item: Dict[str, Any] = {'id': doc.get('id')}
    for key in PASSTHROUGH_FIELDS:
        if doc.get(key) is not None:
            item[key] = doc[key]

    created_at = DateTimeUtils.normalize_timestamp(doc.get('createdAt'))
    occurred_at = DateTimeUtils.normalize_timestamp(doc.get('occurredAt')) or created_at
    published_at = DateTimeUtils.normalize_timestamp(doc.get('publishedAt'))
    for key, value in (('occurredAt', occurred_at), ('createdAt', created_at), ('publishedAt', published_at)):
        if value is not None:
            item[key] = value

    child_name = doc.get('childName') or child_names.get(doc.get('childId'))
    if child_name:
        item['childName'] = child_name
    teacher_name = doc.get('teacherName') or teacher_names.get(doc.get('createdByUserId'))
    if teacher_name:
        item['teacherName'] = teacher_name

    return item


def _feed_sort_key(item: Dict[str, Any]) -> Tuple[bool, datetime, datetime, str]:
    occurred = DateTimeUtils.coerce_datetime(item.get('occurredAt'))
    created = DateTimeUtils.coerce_datetime(item.get('createdAt'))
    return (
        occurred is not None,
        occurred or _EPOCH_MIN,
        created or _EPOCH_MIN,
        str(item.get('id') or ''),
    )


def build_feed(docs: Iterable[Dict[str, Any]],
               child_names: Optional[Dict[str, str]] = None,
               teacher_names: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
    """
    피드 항목 목록을 (occurredAt, createdAt, id) 기준 최신순으로 반환합니다.
    시간을 알 수 없는 항목은 맨 뒤에 둡니다. 같은 id는 한 번만 포함됩니다.
    """
    seen = set()
    items = []
    for doc in docs:
        if doc.get('id') in seen:
            continue
        seen.add(doc.get('id'))
        items.append(normalize_feed_entry(doc, child_names, teacher_names))
    items.sort(key=_feed_sort_key, reverse=True)
    return items
