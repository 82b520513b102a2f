# daycare_app/api/entries/services.py
import logging
from typing import Any, Dict, List

from daycare_app.core.errors import EmptyGuardianshipError, ForbiddenRoleError, MissingScopeError, ScopeError
from daycare_app.core.identity import IdentityContext, ROLE_PARENT, ROLE_TEACHER
from daycare_app.api.entries.fanout import FanOutError, expand, resolve_targets
from daycare_app.api.entries.validator import Rejection, validate_submission
from daycare_app.services.entry_store import EntryQuery, EntryStore
from daycare_app.services.roster_service import RosterService


class EntryService:
    """엔트리 벌크 생성(검증 → 팬아웃 → 저장)과 목록 조회를 전담하는 서비스 클래스."""
    def __init__(self, entry_store: EntryStore, roster_service: RosterService):
        self.entry_store = entry_store
        self.roster_service = roster_service
        logging.info("EntryService initialized.")

    def bulk_create(self, identity: IdentityContext, items: List[Any]) -> Dict[str, List[Dict[str, Any]]]:
        """
        여러 제출 항목을 한 번에 생성합니다.

        항목별 검증/팬아웃 실패는 failed[]로 회수되고 나머지 항목은 그대로 저장됩니다.
        범위/권한 오류와 저장소 장애만 요청 전체를 실패시킵니다.

        Returns:
            {'created': [{'id', 'type'}], 'failed': [{'index', 'reason'}]}
        """
        identity.require_role(ROLE_TEACHER)
        if not (identity.user_doc_id or identity.uid):
            raise MissingScopeError("missing_auth_scope")
        identity.require_scope()

        failed = []
        pending = []
        for index, raw in enumerate(items):
            submission = validate_submission(raw, index)
            if isinstance(submission, Rejection):
                failed.append(submission.to_dict())
                continue
            try:
                targets = resolve_targets(submission, self.roster_service)
                entries = expand(submission, identity, targets)
            except FanOutError as e:
                failed.append({'index': e.index, 'reason': e.reason})
                continue
            pending.extend((index, entry) for entry in entries)

        write_result = self.entry_store.append_many(pending)
        failed.extend(write_result.failed)
        failed.sort(key=lambda f: f['index'])

        created = [{'id': entry.id, 'type': entry.type.value} for _, entry in write_result.created]
        logging.info(
            f"Bulk entries by {identity.user_doc_id or identity.uid} at location {identity.location_id}: "
            f"{len(items)} items, {len(created)} created, {len(failed)} failed"
        )
        return {'created': created, 'failed': failed}

    def list_entries(self, identity: IdentityContext, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        역할별 범위가 적용된 엔트리 목록을 조회합니다.

        - teacher: 자신의 daycare/location 범위. childId/classId/type/기간은 선택.
        - parent: childId 필수, 보호 관계에 속한 아이만, visibleToParents=true만.
        """
        query = EntryQuery(
            child_id=filters.get('childId'),
            class_id=filters.get('classId'),
            entry_type=filters.get('type'),
            occurred_from=filters.get('dateFrom'),
            occurred_before=filters.get('dateTo'),
        )

        if identity.role == ROLE_TEACHER:
            identity.require_scope()
            query.daycare_id = identity.daycare_id
            query.location_id = identity.location_id

        elif identity.role == ROLE_PARENT:
            child_id = filters.get('childId')
            if not child_id:
                raise MissingScopeError("childId_required_for_parent")
            guardianship = self.roster_service.guardian_child_ids(identity.user_doc_id)
            if not guardianship:
                raise EmptyGuardianshipError("empty_guardianship")
            if child_id not in guardianship:
                raise ScopeError("child_not_in_guardianship")
            query.daycare_id = identity.daycare_id
            query.visible_to_parents_only = True

        else:
            raise ForbiddenRoleError("forbidden_role")

        return self.entry_store.list_entries(query, filters.get('limit'))
