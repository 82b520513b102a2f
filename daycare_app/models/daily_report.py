# daycare_app/models/daily_report.py
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# "<childId>-<YYYY-MM-DD>"; childId 자체에 '-'가 들어갈 수 있으므로 날짜는 끝에서부터 매칭
REPORT_ID_PATTERN = re.compile(r'^(?P<child_id>.+)-(?P<date>\d{4}-\d{2}-\d{2})$')


class ReportStatus(Enum):
    """리포트 상태. DRAFT → SENT 단방향이며 되돌릴 수 없습니다."""
    DRAFT = "Draft"
    SENT = "Sent"


def make_report_id(child_id: str, date: str) -> str:
    return f"{child_id}-{date}"


def parse_report_id(report_id: str) -> Optional[Tuple[str, str]]:
    """리포트 ID를 (childId, 'YYYY-MM-DD')로 분리. 형식이 아니면 None."""
    match = REPORT_ID_PATTERN.match(report_id or "")
    if not match:
        return None
    return match.group('child_id'), match.group('date')


def build_activity_summary(entries: List[Dict[str, Any]], top: int = 3) -> str:
    """
    엔트리 타입별 개수 상위 3개를 "3 Food, 2 Sleep, 1 Activity" 형태로 요약합니다.
    개수가 같으면 먼저 등장한 타입이 앞에 옵니다.
    """
    counts = Counter(entry.get('type') or "Unknown" for entry in entries)
    ranked = sorted(counts.items(), key=lambda item: -item[1])[:top]
    return ", ".join(f"{count} {entry_type}" for entry_type, count in ranked)


@dataclass
class DailyReport:
    """
    아이 한 명의 하루치 엔트리 묶음 (저장소에서 요청 시 계산되는 파생 객체).
    발송 상태(sent_at)만 'daily_reports' 컬렉션에 따로 저장됩니다.
    """
    id: str
    child_id: str
    date: str                       # "YYYY-MM-DD" (occurredAt의 UTC 날짜)
    daycare_id: Optional[str] = None
    location_id: Optional[str] = None
    class_id: Optional[str] = None
    child_name: Optional[str] = None
    entries: List[Dict[str, Any]] = field(default_factory=list)
    sent_at: Optional[datetime] = None

    @property
    def status(self) -> ReportStatus:
        return ReportStatus.SENT if self.sent_at else ReportStatus.DRAFT

    @property
    def sent(self) -> bool:
        return self.status == ReportStatus.SENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'daycareId': self.daycare_id,
            'locationId': self.location_id,
            'classId': self.class_id,
            'childId': self.child_id,
            'childName': self.child_name,
            'date': self.date,
            'entries': self.entries,
            'totalActivities': len(self.entries),
            'activitySummary': build_activity_summary(self.entries),
            'sent': self.sent,
            'sentAt': self.sent_at,
        }
