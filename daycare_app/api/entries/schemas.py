# daycare_app/api/entries/schemas.py
from marshmallow import Schema, fields, validate, pre_load, post_dump, EXCLUDE

from daycare_app.models.entry import EntryType
from daycare_app.utils.datetime_utils import DateTimeUtils

# UI의 "전체" 선택값은 필터 없음으로 취급
ALL_SENTINELS = {'all', 'all classes', 'all children'}

TIMESTAMP_FIELDS = ('occurredAt', 'createdAt', 'publishedAt', 'sentAt')


def to_plain_dict(data):
    """ImmutableMultiDict 등을 수정 가능한 dict로 변환"""
    if hasattr(data, 'to_dict'):
        return data.to_dict()
    return dict(data or {})


class IsoDateTime(fields.Field):
    """
    ISO 8601 문자열 <-> UTC datetime.
    직렬화 시 저장소 고유 Timestamp도 ISO 문자열로 정규화하며, 해석할 수 없으면 None.
    """
    default_error_messages = {'invalid': 'invalid_datetime'}

    def _deserialize(self, value, attr, data, **kwargs):
        dt = DateTimeUtils.try_parse_iso(value)
        if dt is None:
            raise self.make_error('invalid')
        return dt

    def _serialize(self, value, attr, obj, **kwargs):
        return DateTimeUtils.normalize_timestamp(value)


class BulkEntryCreateSchema(Schema):
    """
    POST /api/mobile/v1/entries/bulk 요청 본문 스키마.
    항목 내용은 타입 레지스트리 기반 검증기(validator.py)가 항목별로 검사합니다.
    """
    class Meta:
        unknown = EXCLUDE

    items = fields.List(
        fields.Raw(allow_none=True),
        required=True,
        validate=validate.Length(min=1, error="empty_items"),
        error_messages={'required': 'empty_items', 'null': 'empty_items', 'invalid': 'empty_items'},
    )


class CreatedEntrySchema(Schema):
    id = fields.Str()
    type = fields.Str()


class FailedItemSchema(Schema):
    index = fields.Int()
    reason = fields.Str()


class BulkEntryResultSchema(Schema):
    """벌크 생성 응답: 항목별 성공/실패"""
    created = fields.List(fields.Nested(CreatedEntrySchema), dump_default=[])
    failed = fields.List(fields.Nested(FailedItemSchema), dump_default=[])


class EntryListQuerySchema(Schema):
    """
    GET /api/mobile/v1/entries 쿼리 파라미터 검증 스키마.
    - dateFrom: occurredAt >= dateFrom (ISO)
    - dateTo: occurredAt < dateTo (ISO)
    - limit: 저장소에서 1~100으로 보정, 기본 50 (범위를 벗어나도 거부하지 않음)
    """
    class Meta:
        unknown = EXCLUDE

    childId = fields.Str()
    classId = fields.Str()
    type = fields.Str(validate=validate.OneOf(EntryType.values(), error="invalid_type"))
    dateFrom = IsoDateTime(error_messages={'invalid': 'invalid_dateFrom'})
    dateTo = IsoDateTime(error_messages={'invalid': 'invalid_dateTo'})
    limit = fields.Raw(load_default=None, allow_none=True)

    @pre_load
    def preprocess_data(self, data, **kwargs):
        """쿼리 파라미터 전처리: 공백 제거, '전체' 선택값 제거."""
        processed_data = to_plain_dict(data)

        for key in ('childId', 'classId', 'type', 'dateFrom', 'dateTo'):
            if key not in processed_data:
                continue
            text = str(processed_data[key] or '').strip()
            if not text or text.lower() in ALL_SENTINELS:
                processed_data.pop(key)
            else:
                processed_data[key] = text

        return processed_data


class EntrySchema(Schema):
    """엔트리 응답 스키마. 시간 필드는 모두 ISO 8601 문자열."""
    id = fields.Str()
    daycareId = fields.Str()
    locationId = fields.Str()
    classId = fields.Str(allow_none=True)
    childId = fields.Str()
    childName = fields.Str(allow_none=True)
    className = fields.Str(allow_none=True)
    createdByUserId = fields.Str()
    createdByRole = fields.Str()
    type = fields.Str()
    subtype = fields.Str(allow_none=True)
    toiletKind = fields.Str(allow_none=True)
    detail = fields.Str(allow_none=True)
    photoUrl = fields.Str(allow_none=True)
    data = fields.Method('dump_data')
    visibleToParents = fields.Bool()
    occurredAt = IsoDateTime()
    createdAt = IsoDateTime()
    publishedAt = IsoDateTime()

    def dump_data(self, obj):
        data = obj.get('data') if isinstance(obj, dict) else None
        if not isinstance(data, dict):
            return {}
        return {
            key: (DateTimeUtils.normalize_timestamp(value) if key in ('start', 'end', 'toiletTime') else value)
            for key, value in data.items()
        }

    @post_dump
    def drop_unknown_times(self, data, **kwargs):
        # 해석할 수 없는 시간은 null이 아니라 필드 자체를 생략
        for key in TIMESTAMP_FIELDS:
            if key in data and data[key] is None:
                data.pop(key)
        return data
