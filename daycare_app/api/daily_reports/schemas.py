# daycare_app/api/daily_reports/schemas.py
from marshmallow import Schema, fields, validate, pre_load, post_dump, EXCLUDE
from daycare_app.api.entries.schemas import ALL_SENTINELS, EntrySchema, IsoDateTime, to_plain_dict # 엔트리 응답 형식은 엔트리 스키마의 것을 재사용


class DailyReportQuerySchema(Schema):
    """
    GET /api/mobile/{teacher|parent}/daily-reports 쿼리 파라미터.
    - dateFrom, dateTo: YYYY-MM-DD (양 끝 포함)
    - sent: true/false
    - childIds: 쉼표로 구분된 아이 ID (학부모 전용, 보호 관계 안에서만 좁힘)
    """
    class Meta:
        unknown = EXCLUDE

    classId = fields.Str()
    childId = fields.Str()
    dateFrom = fields.Date(format='%Y-%m-%d', error_messages={'invalid': 'invalid_dateFrom'})
    dateTo = fields.Date(format='%Y-%m-%d', error_messages={'invalid': 'invalid_dateTo'})
    sent = fields.Bool(load_default=None, allow_none=True)
    childIds = fields.List(fields.Str(validate=validate.Length(min=1)))

    @pre_load
    def preprocess_data(self, data, **kwargs):
        processed_data = to_plain_dict(data)

        for key in ('classId', 'childId', 'dateFrom', 'dateTo', 'sent'):
            if key not in processed_data:
                continue
            text = str(processed_data[key] or '').strip()
            if not text or text.lower() in ALL_SENTINELS:
                processed_data.pop(key)
            else:
                processed_data[key] = text

        if 'childIds' in processed_data:
            raw = processed_data['childIds']
            parts = raw if isinstance(raw, list) else str(raw or '').split(',')
            child_ids = [str(p).strip() for p in parts if str(p).strip()]
            if child_ids:
                processed_data['childIds'] = list(dict.fromkeys(child_ids))
            else:
                processed_data.pop('childIds')

        return processed_data


class DailyReportSchema(Schema):
    """일일 리포트 응답 스키마"""
    id = fields.Str(required=True)
    daycareId = fields.Str(allow_none=True)
    locationId = fields.Str(allow_none=True)
    classId = fields.Str(allow_none=True)
    childId = fields.Str(required=True)
    childName = fields.Str(allow_none=True)
    date = fields.Str(required=True)
    entries = fields.List(fields.Nested(EntrySchema))
    totalActivities = fields.Int()
    activitySummary = fields.Str()
    sent = fields.Bool()
    sentAt = IsoDateTime()

    @post_dump
    def drop_unsent_time(self, data, **kwargs):
        if data.get('sentAt') is None:
            data.pop('sentAt', None)
        return data
