# daycare_app/models/entry.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class EntryType(Enum):
    """엔트리 유형을 정의하는 Enum 클래스 (닫힌 집합)"""
    ATTENDANCE = "Attendance"
    FOOD = "Food"
    SLEEP = "Sleep"
    TOILET = "Toilet"
    ACTIVITY = "Activity"
    PHOTO = "Photo"
    NOTE = "Note"
    HEALTH = "Health"

    @classmethod
    def values(cls):
        return [e.value for e in cls]


class CreatorRole(Enum):
    TEACHER = "teacher"


@dataclass
class CanonicalEntry:
    """
    Firestore 'entries' 컬렉션의 문서 구조를 정의하는 데이터클래스.
    하나의 엔트리는 항상 정확히 한 명의 아이(child_id)에 대한 기록입니다.
    id와 created_at은 저장 시점에 EntryStore가 채웁니다.
    """
    daycare_id: str
    location_id: str
    child_id: str
    created_by_user_id: str
    type: EntryType
    occurred_at: datetime           # 클라이언트가 보낸 ISO 문자열을 파싱한 UTC datetime
    class_id: Optional[str] = None
    subtype: Optional[str] = None
    toilet_kind: Optional[str] = None  # Toilet 전용
    detail: Optional[str] = None
    photo_url: Optional[str] = None    # Photo 전용
    data: Dict[str, Any] = field(default_factory=dict)
    child_name: Optional[str] = None
    class_name: Optional[str] = None
    created_by_role: CreatorRole = CreatorRole.TEACHER
    visible_to_parents: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    def to_document(self) -> Dict[str, Any]:
        """Firestore 문서 형식(camelCase 필드명)으로 변환합니다."""
        return {
            'id': self.id,
            'daycareId': self.daycare_id,
            'locationId': self.location_id,
            'classId': self.class_id,
            'childId': self.child_id,
            'childName': self.child_name,
            'className': self.class_name,
            'createdByUserId': self.created_by_user_id,
            'createdByRole': self.created_by_role.value,
            'createdAt': self.created_at,
            'occurredAt': self.occurred_at,
            'type': self.type.value,
            'subtype': self.subtype,
            'toiletKind': self.toilet_kind,
            'detail': self.detail,
            'photoUrl': self.photo_url,
            'data': self.data,
            'visibleToParents': self.visible_to_parents,
            'publishedAt': self.published_at,
        }
