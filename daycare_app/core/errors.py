# daycare_app/core/errors.py
"""
엔진 전역에서 사용하는 예외 분류

- 검증 오류: 항목 단위, 배치를 중단시키지 않음 (failed[]로 회수되므로 예외가 아님)
- 권한/범위 오류: 요청 전체 실패, 저장소에 접근하기 전에 발생
- 저장소 오류: 배치 전체 실패
"""


class ScopeError(PermissionError):
    """권한/범위 오류의 기반 클래스. 라우트에서 status_code로 응답합니다."""
    error_code = "SCOPE_ERROR"
    status_code = 403

    def __init__(self, message: str = None):
        super().__init__(message or self.error_code.lower())
        self.message = message or self.error_code.lower()


class MissingScopeError(ScopeError):
    """daycareId/locationId/uid 등 테넌시 범위가 없는 요청"""
    error_code = "MISSING_SCOPE"
    status_code = 400


class ForbiddenRoleError(ScopeError):
    """허용되지 않은 역할로 호출한 요청"""
    error_code = "FORBIDDEN_ROLE"
    status_code = 403


class EmptyGuardianshipError(ScopeError):
    """보호 관계(아이 ID 목록)가 비어 있는 학부모 요청. '전체 아이'로 대체하지 않습니다."""
    error_code = "EMPTY_GUARDIANSHIP"
    status_code = 400


class StoreUnavailableError(RuntimeError):
    """저장소에 접근할 수 없거나 시간 내 응답하지 않음. 배치 전체가 실패합니다."""
    error_code = "STORE_UNAVAILABLE"
    status_code = 503


class ReportNotFoundError(LookupError):
    """요청 범위 안에서 해당 리포트를 구성할 엔트리가 없음"""
    error_code = "REPORT_NOT_FOUND"
    status_code = 404
