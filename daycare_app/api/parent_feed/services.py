# daycare_app/api/parent_feed/services.py
import logging
from typing import Any, Dict, List

from daycare_app.core.errors import MissingScopeError
from daycare_app.core.identity import IdentityContext, ROLE_PARENT
from daycare_app.api.parent_feed.normalizer import build_feed
from daycare_app.services.entry_store import EntryQuery, EntryStore
from daycare_app.services.roster_service import RosterService

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_LIMIT = 80


class ParentFeedService:
    """
    학부모 한 명의 보호 관계(아이 목록)에 대한 읽기 전용 피드를 만드는 서비스 클래스.
    """
    def __init__(self, entry_store: EntryStore, roster_service: RosterService, chunk_limit: int = DEFAULT_CHUNK_LIMIT):
        self.entry_store = entry_store
        self.roster_service = roster_service
        self.chunk_limit = max(1, int(chunk_limit))
        logging.info("ParentFeedService initialized.")

    def _lookup_names(self, docs: List[Dict[str, Any]]):
        """아이/교사 표시 이름. 조회에 실패하면 이름 없이 피드를 만듭니다."""
        try:
            child_names = self.roster_service.child_names(d.get('childId') for d in docs if not d.get('childName'))
            teacher_names = self.roster_service.user_names(d.get('createdByUserId') for d in docs if not d.get('teacherName'))
        except Exception as e:
            logger.warning(f"Parent feed name lookup failed, continuing without names: {e}", exc_info=True)
            return {}, {}
        return child_names, teacher_names

    def get_feed(self, identity: IdentityContext) -> List[Dict[str, Any]]:
        """
        보호 관계에 속한 아이들의 visibleToParents 엔트리를 최신순으로 반환합니다.
        - 사용자 문서가 없거나 아이 목록이 비어 있으면 빈 피드
        - 아이 10명 단위 조회마다 최근 엔트리 최대 chunk_limit개
        """
        identity.require_role(ROLE_PARENT)
        if not identity.user_doc_id:
            raise MissingScopeError("missing_user_doc_id")

        child_ids = self.roster_service.guardian_child_ids(identity.user_doc_id)
        if not child_ids:
            logging.info(f"Parent feed for {identity.user_doc_id}: no children in guardianship")
            return []

        docs = self.entry_store.query(EntryQuery(
            daycare_id=identity.daycare_id,
            child_ids=child_ids,
            visible_to_parents_only=True,
            order_by_created=True,
            newest_first=True,
            limit=self.chunk_limit,
        ))
        child_names, teacher_names = self._lookup_names(docs)
        feed = build_feed(docs, child_names, teacher_names)
        logging.info(f"Parent feed for {identity.user_doc_id}: {len(feed)} entries for {len(child_ids)} children")
        return feed
