# daycare_app/api/entries/validator.py
"""
엔트리 제출 검증기

벌크 요청의 항목 하나(신뢰할 수 없는 원시 객체)를 타입 레지스트리에 비추어 검증하고
정규화합니다. 실패 사유 문자열은 호출자가 부분 실패 응답을 만들 때 그대로 사용하므로
형식이 바뀌면 안 됩니다.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Union

from daycare_app.models.entry import EntryType
from daycare_app.api.entries.registry import lookup_type, rule_for
from daycare_app.utils.datetime_utils import DateTimeUtils


@dataclass
class NormalizedSubmission:
    """검증을 통과한 제출 항목. 팬아웃의 입력이 됩니다."""
    index: int
    type: EntryType
    occurred_at: datetime
    class_id: Optional[str]
    apply_to_all_in_class: bool
    child_ids: List[str] = field(default_factory=list)
    subtype: Optional[str] = None
    toilet_kind: Optional[str] = None
    detail: Optional[str] = None
    photo_url: Optional[str] = None
    child_name: Optional[str] = None
    class_name: Optional[str] = None
    visible_to_parents: bool = True


@dataclass(frozen=True)
class Rejection:
    index: int
    reason: str

    def to_dict(self):
        return {'index': self.index, 'reason': self.reason}


def _to_str(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip()


def _optional_str(value: Any) -> Optional[str]:
    text = _to_str(value)
    return text or None


def normalize_child_ids(value: Any) -> List[str]:
    """공백 제거, 빈 문자열 제외, 중복 제거 (첫 등장 순서 유지)"""
    if not isinstance(value, (list, tuple)):
        return []
    seen = {}
    for item in value:
        child_id = _to_str(item)
        if child_id and child_id not in seen:
            seen[child_id] = True
    return list(seen)


def _visible_to_parents(raw: dict) -> bool:
    # 명시적으로 false를 보낸 경우에만 숨김
    return raw.get('visibleToParents') is not False


def validate_submission(raw: Any, index: int) -> Union[NormalizedSubmission, Rejection]:
    """
    제출 항목 하나를 순서대로 검증합니다.

    1. type이 닫힌 EntryType 집합에 속하는지
    2. occurredAt이 유효한 시간으로 파싱되는지
    3. applyToAllInClass가 true이면 classId가 있는지
    4. 타입별 필수 필드 (레지스트리 규칙)
    5. childIds 정규화
    """
    if not isinstance(raw, dict):
        return Rejection(index, f"invalid_type_at_{index}")

    entry_type = lookup_type(raw.get('type'))
    if entry_type is None:
        return Rejection(index, f"invalid_type_at_{index}")

    occurred_at = DateTimeUtils.try_parse_iso(raw.get('occurredAt'))
    if occurred_at is None:
        return Rejection(index, f"invalid_occurredAt_at_{index}")

    apply_to_all = raw.get('applyToAllInClass') is True
    class_id = _optional_str(raw.get('classId'))
    if apply_to_all and not class_id:
        return Rejection(index, f"classId_required_when_applyToAllInClass_at_{index}")

    rule = rule_for(entry_type)
    subtype = _optional_str(raw.get('subtype'))
    toilet_kind = _optional_str(raw.get('toiletKind'))
    detail = _optional_str(raw.get('detail'))
    photo_url = _optional_str(raw.get('photoUrl'))

    if rule.subtypes is not None and subtype not in rule.subtypes:
        return Rejection(index, f"{entry_type.value.lower()}_subtype_required_at_{index}")
    if rule.toilet_kinds is not None and toilet_kind not in rule.toilet_kinds:
        return Rejection(index, f"toilet_kind_required_at_{index}")
    if rule.requires_detail and not detail:
        return Rejection(index, f"detail_required_at_{index}")
    if rule.requires_photo_url and not photo_url:
        return Rejection(index, f"photo_url_required_at_{index}")

    return NormalizedSubmission(
        index=index,
        type=entry_type,
        occurred_at=occurred_at,
        class_id=class_id,
        apply_to_all_in_class=apply_to_all,
        child_ids=normalize_child_ids(raw.get('childIds')),
        subtype=subtype if rule.subtypes is not None else None,
        toilet_kind=toilet_kind if rule.toilet_kinds is not None else None,
        detail=detail,
        photo_url=photo_url if rule.requires_photo_url else None,
        child_name=_optional_str(raw.get('childName')),
        class_name=_optional_str(raw.get('className')),
        visible_to_parents=_visible_to_parents(raw),
    )
