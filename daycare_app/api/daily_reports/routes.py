# daycare_app/api/daily_reports/routes.py
import logging
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError

from daycare_app.core.identity import current_identity, role_required, ROLE_PARENT, ROLE_TEACHER
from daycare_app.core.rate_limit import rate_limited
from daycare_app.api.daily_reports.schemas import DailyReportQuerySchema, DailyReportSchema


daily_reports_bp = Blueprint('daily_reports_bp', __name__)

@daily_reports_bp.route('/teacher/daily-reports', methods=['GET'])
@jwt_required()
@rate_limited
@role_required(ROLE_TEACHER)
def get_teacher_daily_reports():
    """
    교사 범위(daycareId + locationId)의 일일 리포트 목록을 조회합니다.

    쿼리 파라미터 (모두 선택):
    - classId, childId
    - dateFrom, dateTo: YYYY-MM-DD (양 끝 포함)
    - sent: true | false
    """
    report_service = current_app.services['daily_reports']
    try:
        filters = DailyReportQuerySchema().load(request.args)
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    reports = report_service.list_for_teacher(current_identity(), filters)
    return jsonify(DailyReportSchema(many=True).dump(reports)), 200


@daily_reports_bp.route('/parent/daily-reports', methods=['GET'])
@jwt_required()
@rate_limited
@role_required(ROLE_PARENT)
def get_parent_daily_reports():
    """
    학부모의 아이들에 대해 발송된 일일 리포트를 조회합니다.
    - 보호 관계는 사용자 문서에서 읽으며, childIds(쉼표 구분)로 그 안에서만 좁힐 수 있습니다.
    - 결과 아이 목록이 비어 있으면 400을 반환합니다.
    """
    report_service = current_app.services['daily_reports']
    try:
        filters = DailyReportQuerySchema().load(request.args)
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    identity = current_identity()
    parent_child_ids = report_service.resolve_parent_child_ids(identity, filters.get('childIds'))
    reports = report_service.list_for_parent(identity, parent_child_ids, filters)
    return jsonify(DailyReportSchema(many=True).dump(reports)), 200


@daily_reports_bp.route('/teacher/daily-reports/<string:report_id>/send', methods=['POST'])
@jwt_required()
@rate_limited
@role_required(ROLE_TEACHER)
def send_daily_report(report_id: str):
    """
    리포트를 발송 상태로 전환합니다. 이미 발송된 리포트에 다시 호출해도 204를 반환합니다.
    """
    report_service = current_app.services['daily_reports']
    report_service.mark_sent(current_identity(), report_id)
    logging.info(f"Send requested for daily report {report_id}")
    return Response(status=204)
