# daycare_app/api/entries/fanout.py
"""
팬아웃 확장기

검증된 제출 항목 하나와 대상 아이 집합으로부터 아이 한 명당 정확히 하나의
CanonicalEntry를 만듭니다. 반 전체 적용(applyToAllInClass) 시 반 명단은 외부
협력자(RosterService)가 해석합니다.
"""

import logging
from typing import Iterable, List, Protocol

from daycare_app.core.identity import IdentityContext
from daycare_app.models.entry import CanonicalEntry, EntryType
from daycare_app.api.entries.validator import NormalizedSubmission, normalize_child_ids

logger = logging.getLogger(__name__)


class ClassRoster(Protocol):
    def class_child_ids(self, class_id: str) -> List[str]:
        ...


class FanOutError(Exception):
    """제출 항목 전체가 실패해야 하는 팬아웃 오류. reason은 응답에 그대로 쓰입니다."""
    def __init__(self, index: int, reason: str):
        super().__init__(reason)
        self.index = index
        self.reason = reason


def resolve_targets(submission: NormalizedSubmission, roster: ClassRoster) -> List[str]:
    """
    대상 아이 ID 목록을 확정합니다.
    반 전체 적용이면 명시된 childIds 뒤에 반 명단을 합치고 중복을 제거합니다.
    """
    i = submission.index
    targets = list(submission.child_ids)

    if submission.apply_to_all_in_class:
        try:
            roster_ids = roster.class_child_ids(submission.class_id)
        except Exception as e:
            logger.error(f"Roster lookup failed for class {submission.class_id} (item {i}): {e}", exc_info=True)
            raise FanOutError(i, f"roster_lookup_failed_at_{i}") from e
        targets = normalize_child_ids(targets + list(roster_ids or []))

    if not targets:
        raise FanOutError(i, f"no_children_at_{i}")
    return targets


def build_type_data(submission: NormalizedSubmission) -> dict:
    """타입별 구조화 데이터(data 필드)"""
    occurred_at = submission.occurred_at
    entry_type = submission.type

    if entry_type == EntryType.ATTENDANCE:
        status = "check_in" if submission.subtype == "Check in" else "check_out"
        return {'status': status}
    if entry_type == EntryType.SLEEP:
        key = 'start' if submission.subtype == "Started" else 'end'
        return {key: occurred_at}
    if entry_type == EntryType.TOILET:
        return {'toiletKind': submission.toilet_kind, 'toiletTime': occurred_at}
    if entry_type in (EntryType.ACTIVITY, EntryType.NOTE, EntryType.HEALTH):
        return {'text': submission.detail or ""}
    return {}


def expand(submission: NormalizedSubmission, identity: IdentityContext, child_ids: Iterable[str]) -> List[CanonicalEntry]:
    """대상 아이마다 하나씩, 공통 필드를 공유하는 엔트리를 생성합니다."""
    entries = []
    for child_id in normalize_child_ids(list(child_ids)):
        entries.append(CanonicalEntry(
            daycare_id=identity.daycare_id,
            location_id=identity.location_id,
            child_id=child_id,
            created_by_user_id=identity.user_doc_id or identity.uid,
            type=submission.type,
            occurred_at=submission.occurred_at,
            class_id=submission.class_id,
            subtype=submission.subtype,
            toilet_kind=submission.toilet_kind,
            detail=submission.detail,
            photo_url=submission.photo_url,
            data=build_type_data(submission),
            # 이름은 단일 아이 대상일 때만 의미가 있음
            child_name=submission.child_name if len(submission.child_ids) == 1 and not submission.apply_to_all_in_class else None,
            class_name=submission.class_name,
            visible_to_parents=submission.visible_to_parents,
        ))
    if not entries:
        raise FanOutError(submission.index, f"no_children_at_{submission.index}")
    return entries
