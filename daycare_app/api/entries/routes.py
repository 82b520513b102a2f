# daycare_app/api/entries/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError

from daycare_app.core.identity import current_identity, role_required, ROLE_PARENT, ROLE_TEACHER
from daycare_app.core.rate_limit import rate_limited
from daycare_app.api.entries.schemas import (
    BulkEntryCreateSchema,
    BulkEntryResultSchema,
    EntryListQuerySchema,
    EntrySchema
)

entries_bp = Blueprint('entries_bp', __name__)


@entries_bp.route('/entries/bulk', methods=['POST'])
@jwt_required()
@rate_limited
@role_required(ROLE_TEACHER)
def bulk_create_entries():
    """
    엔트리 벌크 생성 API 엔드포인트.

    요청: {"items": [{type, occurredAt, childIds?, classId?, applyToAllInClass?, ...}, ...]}
    응답: {"created": [{id, type}], "failed": [{index, reason}]}

    항목별 검증 실패는 failed[]로 반환되며 요청 전체를 실패시키지 않습니다.
    """
    service = current_app.services['entries']
    try:
        validated_data = BulkEntryCreateSchema().load(request.get_json(silent=True) or {})
    except ValidationError as err:
        logging.info(f"Bulk entry request rejected: {err.messages}")
        return jsonify({"error_code": "EMPTY_ITEMS", "message": "empty_items"}), 400

    result = service.bulk_create(current_identity(), validated_data['items'])
    return jsonify(BulkEntryResultSchema().dump(result)), 200


@entries_bp.route('/entries', methods=['GET'])
@jwt_required()
@rate_limited
@role_required(ROLE_TEACHER, ROLE_PARENT)
def list_entries():
    """
    역할별 범위가 적용된 엔트리 목록 조회 API.

    쿼리 파라미터:
    - childId: 아이 ID (학부모는 필수)
    - classId: 반 ID
    - type: 엔트리 타입 (Attendance, Food, ...)
    - dateFrom, dateTo: ISO 8601, occurredAt 기준 [dateFrom, dateTo)
    - limit: 조회 개수 (1-100, 기본값: 50)

    "All", "All Classes", "All Children"은 필터 없음으로 처리합니다.
    """
    service = current_app.services['entries']
    try:
        filters = EntryListQuerySchema().load(request.args)
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    entries = service.list_entries(current_identity(), filters)
    return jsonify(EntrySchema(many=True).dump(entries)), 200
