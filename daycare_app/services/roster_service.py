# daycare_app/services/roster_service.py
import logging
from typing import Dict, Iterable, List, Optional
from firebase_admin import firestore

CHILDREN_COLLECTION = 'children'
USERS_COLLECTION = 'users'


class RosterService:
    """
    반 명단, 학부모 보호 관계, 표시용 이름 조회를 담당하는 공용 서비스 클래스.
    엔트리 엔진 입장에서는 외부 협력자이며, Firestore의 children/users 컬렉션을 읽기만 합니다.
    """
    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.children_ref = self.db.collection(CHILDREN_COLLECTION)
        self.users_ref = self.db.collection(USERS_COLLECTION)

    def class_child_ids(self, class_id: str) -> List[str]:
        """해당 반에 등록된 아이 ID 목록"""
        if not class_id:
            return []
        docs = self.children_ref.where('classId', '==', class_id).stream()
        return [doc.id for doc in docs]

    def guardian_child_ids(self, user_doc_id: str) -> List[str]:
        """
        학부모 사용자 문서의 childRelationships에서 아이 ID 목록을 읽습니다.
        사용자 문서가 없으면 빈 목록을 반환합니다.
        """
        if not user_doc_id:
            return []
        user_doc = self.users_ref.document(user_doc_id).get()
        if not user_doc.exists:
            logging.warning(f"Guardianship lookup: user document not found (ID: {user_doc_id})")
            return []

        relationships = (user_doc.to_dict() or {}).get('childRelationships')
        if not isinstance(relationships, list):
            return []

        child_ids = []
        for rel in relationships:
            child_id = rel.get('childId') if isinstance(rel, dict) else None
            if child_id and str(child_id).strip():
                child_ids.append(str(child_id).strip())
        return list(dict.fromkeys(child_ids))

    def _display_names(self, ref, ids: Iterable[str]) -> Dict[str, str]:
        names = {}
        for doc_id in [i for i in dict.fromkeys(ids) if i]:
            doc = ref.document(doc_id).get()
            if not doc.exists:
                continue
            name = self._name_of(doc.to_dict() or {})
            if name:
                names[doc_id] = name
        return names

    @staticmethod
    def _name_of(data: dict) -> Optional[str]:
        for key in ('name', 'displayName', 'fullName'):
            if data.get(key):
                return str(data[key])
        parts = [str(data[k]) for k in ('firstName', 'lastName') if data.get(k)]
        return " ".join(parts) or None

    def child_names(self, child_ids: Iterable[str]) -> Dict[str, str]:
        """아이 ID → 표시 이름"""
        return self._display_names(self.children_ref, child_ids)

    def user_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        """사용자(교사) ID → 표시 이름"""
        return self._display_names(self.users_ref, user_ids)
