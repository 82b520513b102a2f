# daycare_app/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import logging
from flask import Flask, jsonify
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
import firebase_admin
from firebase_admin import credentials, firestore

# - 설정
from daycare_app.core.config import config_by_name
from daycare_app.core.errors import ReportNotFoundError, ScopeError, StoreUnavailableError
from daycare_app.core.rate_limit import RateLimiter

# - API 블루프린트
from daycare_app.api.entries.routes import entries_bp
from daycare_app.api.daily_reports.routes import daily_reports_bp
from daycare_app.api.parent_feed.routes import parent_feed_bp

# - 서비스 모듈
from daycare_app.services.entry_store import EntryStore
from daycare_app.services.roster_service import RosterService
from daycare_app.api.entries.services import EntryService
from daycare_app.api.daily_reports.services import DailyReportService
from daycare_app.api.parent_feed.services import ParentFeedService


def create_app(config_name=None, db=None):
    """
    Flask 애플리케이션 팩토리 함수.

    Args:
        config_name: 'development' | 'testing' | 'production'. 없으면 FLASK_ENV 사용.
        db: Firestore 클라이언트. 주어지면 Firebase 초기화를 건너뜁니다 (테스트 더블 주입용).
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. 확장 기능 및 외부 서비스 초기화
    # =====================================================================================
    JWTManager(app)

    if db is None:
        if not firebase_admin._apps:
            cred_path = app.config['FIREBASE_CREDENTIALS_PATH']
            if not cred_path or not os.path.exists(cred_path):
                raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred)
        db = firestore.client()

    # =====================================================================================
    # 5. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    app.services = {}

    # 5-1. 다른 서비스의 기반이 되는 공용 서비스
    app.services['entry_store'] = EntryStore(
        db=db,
        max_workers=app.config['ENTRY_STORE_MAX_WORKERS'],
        timeout_seconds=app.config['ENTRY_STORE_TIMEOUT_SECONDS'],
        default_limit=app.config['ENTRY_LIST_DEFAULT_LIMIT'],
        max_limit=app.config['ENTRY_LIST_MAX_LIMIT']
    )
    app.services['roster'] = RosterService(db=db)

    if app.config.get('RATE_LIMIT_ENABLED', True):
        app.services['rate_limiter'] = RateLimiter(
            points=app.config['RATE_LIMIT_POINTS'],
            duration_seconds=app.config['RATE_LIMIT_DURATION_SECONDS']
        )

    # 5-2. 다른 서비스를 주입받아야 하는 도메인 서비스
    app.services['entries'] = EntryService(
        entry_store=app.services['entry_store'],
        roster_service=app.services['roster']
    )
    app.services['daily_reports'] = DailyReportService(
        entry_store=app.services['entry_store'],
        roster_service=app.services['roster'],
        db=db
    )
    app.services['parent_feed'] = ParentFeedService(
        entry_store=app.services['entry_store'],
        roster_service=app.services['roster'],
        chunk_limit=app.config['PARENT_FEED_CHUNK_LIMIT']
    )

    # =====================================================================================
    # 6. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(entries_bp, url_prefix='/api/mobile/v1')
    app.register_blueprint(daily_reports_bp, url_prefix='/api/mobile')
    app.register_blueprint(parent_feed_bp, url_prefix='/api/mobile')

    # =====================================================================================
    # 7. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(ScopeError)
    def handle_scope_error(err):
        # 권한/범위 오류는 저장소에 접근하기 전에 발생
        logging.info(f"Request rejected ({err.error_code}): {err.message}")
        return jsonify({"error_code": err.error_code, "message": err.message}), err.status_code

    @app.errorhandler(StoreUnavailableError)
    def handle_store_unavailable(err):
        logging.error(f"Entry store unavailable: {err}")
        return jsonify({"error_code": err.error_code, "message": str(err)}), err.status_code

    @app.errorhandler(ReportNotFoundError)
    def handle_report_not_found(err):
        return jsonify({"error_code": err.error_code, "message": str(err)}), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(err):
        return jsonify({"error_code": err.name.upper().replace(' ', '_'), "message": err.description}), err.code

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        # 다른 핸들러에서 처리되지 않은 모든 예외를 여기서 처리
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 8. 로깅 및 앱 반환
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
