# daycare_app/core/identity.py
"""
호출자 신원 컨텍스트

토큰 검증은 flask-jwt-extended(@jwt_required)가 담당하고, 이 모듈은 검증이 끝난
클레임에서 명시적인 IdentityContext를 만듭니다. 엔진의 서비스들은 전역 요청 상태를
읽지 않고 이 객체를 인자로 받습니다.
"""

from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity

from daycare_app.core.errors import ForbiddenRoleError, MissingScopeError

ROLE_TEACHER = "teacher"
ROLE_PARENT = "parent"


@dataclass(frozen=True)
class IdentityContext:
    uid: str
    role: str
    daycare_id: Optional[str] = None
    location_id: Optional[str] = None
    user_doc_id: Optional[str] = None

    def require_role(self, *roles: str) -> None:
        if self.role not in roles:
            raise ForbiddenRoleError("forbidden_role")

    def require_scope(self) -> None:
        """daycareId와 locationId가 모두 있어야 함"""
        if not self.daycare_id or not self.location_id:
            raise MissingScopeError("missing_auth_scope")


def _claim(claims: dict, key: str) -> Optional[str]:
    value = claims.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def identity_from_claims(uid: str, claims: dict) -> IdentityContext:
    """검증된 JWT 클레임으로부터 IdentityContext를 생성합니다."""
    return IdentityContext(
        uid=str(uid or ""),
        role=_claim(claims, 'role') or "",
        daycare_id=_claim(claims, 'daycareId'),
        location_id=_claim(claims, 'locationId'),
        user_doc_id=_claim(claims, 'userDocId') or (str(uid) if uid else None),
    )


def current_identity() -> IdentityContext:
    """@jwt_required() 이후 현재 요청의 IdentityContext"""
    return identity_from_claims(get_jwt_identity(), get_jwt())


def role_required(*roles: str):
    """역할 기반 가드 데코레이터. @jwt_required() 아래에 둡니다."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identity = current_identity()
            if not identity.role:
                return jsonify({"error_code": "FORBIDDEN_ROLE", "message": "역할이 지정되지 않은 사용자입니다."}), 403
            if identity.role not in roles:
                return jsonify({"error_code": "FORBIDDEN_ROLE", "message": "이 기능을 사용할 권한이 없습니다."}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
