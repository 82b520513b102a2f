# daycare_app/core/config.py

import os # 환경 변수를 읽기 위해 사용합니다.


def _int_env(key: str, default: int) -> int:
    """정수 환경 변수. 비어 있거나 숫자가 아니면 기본값."""
    try:
        return int(os.getenv(key, default))
    except (TypeError, ValueError):
        return default


def _float_env(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, default))
    except (TypeError, ValueError):
        return default


class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # JWT 토큰 서명 검증 키. 토큰 발급은 외부 인증 서비스가 담당합니다.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')
    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')

    # 엔트리 목록 조회 개수 제한 (기본 50, 최대 100)
    ENTRY_LIST_DEFAULT_LIMIT = _int_env('ENTRY_LIST_DEFAULT_LIMIT', 50)
    ENTRY_LIST_MAX_LIMIT = _int_env('ENTRY_LIST_MAX_LIMIT', 100)

    # 벌크 쓰기 동시성과 배치 전체 대기 시간
    ENTRY_STORE_MAX_WORKERS = _int_env('ENTRY_STORE_MAX_WORKERS', 8)
    ENTRY_STORE_TIMEOUT_SECONDS = _float_env('ENTRY_STORE_TIMEOUT_SECONDS', 10.0)

    # 학부모 피드: 아이 10명 단위 조회마다 가져올 최대 엔트리 수
    PARENT_FEED_CHUNK_LIMIT = _int_env('PARENT_FEED_CHUNK_LIMIT', 80)

    # 클라이언트 주소당 RATE_LIMIT_DURATION_SECONDS 동안 RATE_LIMIT_POINTS회
    RATE_LIMIT_ENABLED = True
    RATE_LIMIT_POINTS = _int_env('RATE_LIMIT_POINTS', 20)
    RATE_LIMIT_DURATION_SECONDS = _float_env('RATE_LIMIT_DURATION_SECONDS', 60.0)


class DevelopmentConfig(Config):
    """개발 환경 설정. 코드 변경 시 자동 재시작, 상세 디버그 정보."""
    DEBUG = True
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH', Config.FIREBASE_CREDENTIALS_PATH)


class TestingConfig(Config):
    """테스트 환경 설정. Firestore는 테스트 더블을 주입하므로 인증 파일이 필요 없습니다."""
    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'testing-secret-key-with-enough-length-32')
    FIREBASE_CREDENTIALS_PATH = os.getenv('TEST_FIREBASE_CREDENTIALS_PATH')
    RATE_LIMIT_ENABLED = False


class ProductionConfig(Config):
    """운영 환경 설정."""
    DEBUG = False


# FLASK_ENV 값에 따라 create_app에서 설정 클래스를 선택합니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
