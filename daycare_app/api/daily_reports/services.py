# daycare_app/api/daily_reports/services.py

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

from firebase_admin import firestore
from google.api_core import exceptions as gcp_exceptions

from daycare_app.core.errors import (
    EmptyGuardianshipError, MissingScopeError, ReportNotFoundError, StoreUnavailableError
)
from daycare_app.core.identity import IdentityContext, ROLE_TEACHER
from daycare_app.models.daily_report import DailyReport, make_report_id, parse_report_id
from daycare_app.services.entry_store import UNAVAILABLE_ERRORS, EntryQuery, EntryStore, chunked, entry_sort_key
from daycare_app.services.roster_service import RosterService
from daycare_app.utils.datetime_utils import DateTimeUtils

logger = logging.getLogger(__name__)

DAILY_REPORTS_COLLECTION = 'daily_reports'


class DailyReportService:
    """
    엔트리 로그를 아이별/일자별 DailyReport로 묶어 역할별 범위로 제공하는 서비스 클래스.
    - 리포트 내용은 저장하지 않고 요청 시 entries 컬렉션에서 계산합니다.
    - 발송 상태만 'daily_reports' 컬렉션에 리포트 ID로 한 번 기록됩니다.
    """
    def __init__(self, entry_store: EntryStore, roster_service: RosterService, db=None):
        self.entry_store = entry_store
        self.roster_service = roster_service
        self.db = db or firestore.client()
        self.reports_ref = self.db.collection(DAILY_REPORTS_COLLECTION)
        logging.info("DailyReportService initialized.")

    # ------------------------------------------------------------------
    # 내부 헬퍼
    # ------------------------------------------------------------------
    def _entry_query(self, filters: Dict[str, Any], **scope) -> EntryQuery:
        occurred_from, occurred_before = DateTimeUtils.day_range(filters.get('dateFrom'), filters.get('dateTo'))
        return EntryQuery(
            class_id=filters.get('classId'),
            occurred_from=occurred_from,
            occurred_before=occurred_before,
            **scope
        )

    def _load_sent_states(self, report_ids: Iterable[str]) -> Dict[str, Any]:
        """리포트 ID → sentAt. 발송 기록이 없는 리포트는 포함되지 않습니다."""
        states = {}
        try:
            for chunk in chunked(list(report_ids)):
                for doc in self.reports_ref.where('id', 'in', chunk).stream():
                    data = DateTimeUtils.from_firestore(doc.to_dict() or {})
                    if data.get('sent') and data.get('sentAt'):
                        states[data.get('id') or doc.id] = data['sentAt']
        except UNAVAILABLE_ERRORS as e:
            logger.error(f"Report state store unavailable: {e}")
            raise StoreUnavailableError("store_unavailable") from e
        return states

    def _group(self, entries: List[Dict[str, Any]]) -> List[DailyReport]:
        """(childId, occurredAt의 UTC 날짜)로 묶습니다. 시간을 해석할 수 없는 엔트리는 제외."""
        groups: "OrderedDict[str, DailyReport]" = OrderedDict()
        for entry in sorted(entries, key=entry_sort_key):
            child_id = entry.get('childId')
            date = DateTimeUtils.date_bucket(entry.get('occurredAt'))
            if not child_id or not date:
                continue
            report_id = make_report_id(child_id, date)
            report = groups.get(report_id)
            if report is None:
                report = DailyReport(
                    id=report_id,
                    child_id=child_id,
                    date=date,
                    daycare_id=entry.get('daycareId'),
                    location_id=entry.get('locationId'),
                    class_id=entry.get('classId'),
                )
                groups[report_id] = report
            if not report.child_name and entry.get('childName'):
                report.child_name = entry['childName']
            report.entries.append(entry)
        return list(groups.values())

    def _build_reports(self, entries: List[Dict[str, Any]]) -> List[DailyReport]:
        reports = self._group(entries)
        states = self._load_sent_states(r.id for r in reports)
        for report in reports:
            report.sent_at = states.get(report.id)

        # 날짜 최신순, 같은 날짜는 childId 오름차순
        reports.sort(key=lambda r: r.child_id)
        reports.sort(key=lambda r: r.date, reverse=True)
        return reports

    @staticmethod
    def _filter_sent(reports: List[DailyReport], sent: Optional[bool]) -> List[DailyReport]:
        if sent is None:
            return reports
        return [r for r in reports if r.sent == sent]

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------
    def list_for_teacher(self, identity: IdentityContext, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        교사용 리포트 목록. daycareId/locationId가 모두 있어야 하며
        visibleToParents와 관계없이 범위 안의 모든 엔트리를 포함합니다.
        """
        identity.require_scope()
        query = self._entry_query(
            filters,
            daycare_id=identity.daycare_id,
            location_id=identity.location_id,
            child_id=filters.get('childId'),
        )
        reports = self._filter_sent(self._build_reports(self.entry_store.query(query)), filters.get('sent'))
        logging.info(f"Teacher daily reports for location {identity.location_id}: {len(reports)} reports")
        return [r.to_dict() for r in reports]

    def resolve_parent_child_ids(self, identity: IdentityContext, requested: Optional[List[str]] = None) -> List[str]:
        """
        학부모의 보호 관계(사용자 문서의 childRelationships)를 읽고,
        요청에 childIds가 있으면 그 교집합으로 좁힙니다.
        """
        guardianship = self.roster_service.guardian_child_ids(identity.user_doc_id)
        if requested:
            wanted = set(requested)
            guardianship = [child_id for child_id in guardianship if child_id in wanted]
        return guardianship

    def list_for_parent(self, identity: IdentityContext, parent_child_ids: List[str], filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        학부모용 리포트 목록.
        - parent_child_ids가 비어 있으면 EmptyGuardianshipError (전체 아이로 대체하지 않음)
        - visibleToParents=true 엔트리만 포함, 보이는 엔트리가 없는 리포트는 제외
        - 발송(Sent)된 리포트만 노출
        """
        if not identity.daycare_id or not identity.location_id:
            raise MissingScopeError("missing_auth_scope")
        allowed = list(dict.fromkeys(c for c in (parent_child_ids or []) if c))
        if not allowed:
            raise EmptyGuardianshipError("empty_guardianship")

        child_id = filters.get('childId')
        if child_id:
            allowed = [child_id] if child_id in allowed else []
        # 미발송(Draft) 리포트는 교직원 전용
        if not allowed or filters.get('sent') is False:
            return []

        query = self._entry_query(
            filters,
            daycare_id=identity.daycare_id,
            location_id=identity.location_id,
            child_ids=allowed,
            visible_to_parents_only=True,
        )
        reports = [r for r in self._build_reports(self.entry_store.query(query)) if r.sent and r.entries]
        logging.info(f"Parent daily reports for {identity.user_doc_id}: {len(reports)} reports")
        return [r.to_dict() for r in reports]

    # ------------------------------------------------------------------
    # 발송
    # ------------------------------------------------------------------
    def mark_sent(self, identity: IdentityContext, report_id: str) -> Dict[str, Any]:
        """
        리포트를 발송 상태로 전환합니다 (Draft → Sent, 되돌릴 수 없음).

        발송 기록은 create-once 쓰기로 남기므로 동시에 여러 번 호출되어도 한 번만
        적용됩니다. publishedAt이 없는 엔트리에 저장된 발송 시각을 기록합니다 (재발송 포함).
        """
        identity.require_role(ROLE_TEACHER)
        identity.require_scope()

        parsed = parse_report_id(report_id)
        if parsed is None:
            raise ReportNotFoundError("report_not_found")
        child_id, date_str = parsed
        try:
            report_date = DateTimeUtils.parse_date_string(date_str)
        except ValueError:
            raise ReportNotFoundError("report_not_found")

        occurred_from, occurred_before = DateTimeUtils.day_range(report_date, report_date)
        entries = self.entry_store.query(EntryQuery(
            daycare_id=identity.daycare_id,
            location_id=identity.location_id,
            child_id=child_id,
            occurred_from=occurred_from,
            occurred_before=occurred_before,
        ))
        reports = self._group(entries)
        if not reports:
            raise ReportNotFoundError("report_not_found")
        report = reports[0]

        sent_at = DateTimeUtils.now()
        try:
            self.reports_ref.document(report.id).create(DateTimeUtils.for_firestore({
                'id': report.id,
                'childId': report.child_id,
                'date': report.date,
                'daycareId': identity.daycare_id,
                'locationId': identity.location_id,
                'sent': True,
                'sentAt': sent_at,
                'sentByUserId': identity.user_doc_id or identity.uid,
            }))
        except gcp_exceptions.AlreadyExists:
            report.sent_at = self._load_sent_states([report.id]).get(report.id) or sent_at
            # publishedAt이 빠진 엔트리만 기존 sentAt으로 채웁니다
            stamped = self.entry_store.stamp_published(report.entries, report.sent_at)
            logging.info(f"Daily report {report.id} already sent ({stamped} entries published on retry)")
            return report.to_dict()
        except UNAVAILABLE_ERRORS as e:
            logger.error(f"Report state store unavailable while sending {report.id}: {e}")
            raise StoreUnavailableError("store_unavailable") from e

        stamped = self.entry_store.stamp_published(report.entries, sent_at)
        report.sent_at = sent_at
        logging.info(f"Daily report {report.id} sent by {identity.user_doc_id or identity.uid} ({stamped} entries published)")
        return report.to_dict()
