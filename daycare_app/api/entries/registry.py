# daycare_app/api/entries/registry.py
"""
엔트리 타입 레지스트리

EntryType별 필수/선택 필드 규칙의 단일 출처입니다. 부수 효과 없는 순수 데이터이며,
검증기(validator)는 저장 전에 반드시 이 규칙을 참조합니다.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from daycare_app.models.entry import EntryType


@dataclass(frozen=True)
class TypeRule:
    """
    한 타입의 필드 규칙.

    - subtypes: subtype 허용 값 (None이면 subtype을 쓰지 않는 타입)
    - toilet_kinds: toiletKind 허용 값 (Toilet 전용)
    - requires_detail / requires_photo_url: 비어 있으면 안 되는 추가 필드
    """
    subtypes: Optional[FrozenSet[str]] = None
    toilet_kinds: Optional[FrozenSet[str]] = None
    requires_detail: bool = False
    requires_photo_url: bool = False


ATTENDANCE_SUBTYPES = frozenset({"Check in", "Check out"})
FOOD_SUBTYPES = frozenset({"Breakfast", "Lunch", "Snack"})
SLEEP_SUBTYPES = frozenset({"Started", "Woke up"})
TOILET_KINDS = frozenset({"urine", "bm"})

TYPE_RULES: Dict[EntryType, TypeRule] = {
    EntryType.ATTENDANCE: TypeRule(subtypes=ATTENDANCE_SUBTYPES),
    EntryType.FOOD: TypeRule(subtypes=FOOD_SUBTYPES),
    EntryType.SLEEP: TypeRule(subtypes=SLEEP_SUBTYPES),
    EntryType.TOILET: TypeRule(toilet_kinds=TOILET_KINDS),
    EntryType.ACTIVITY: TypeRule(requires_detail=True),
    EntryType.NOTE: TypeRule(requires_detail=True),
    EntryType.HEALTH: TypeRule(requires_detail=True),
    EntryType.PHOTO: TypeRule(requires_photo_url=True),
}

# 모든 타입에 규칙이 있어야 함
assert set(TYPE_RULES) == set(EntryType)


def lookup_type(raw_type) -> Optional[EntryType]:
    """문자열을 EntryType으로 변환. 닫힌 집합에 없으면 None."""
    if not isinstance(raw_type, str):
        return None
    try:
        return EntryType(raw_type.strip())
    except ValueError:
        return None


def rule_for(entry_type: EntryType) -> TypeRule:
    return TYPE_RULES[entry_type]
