# daycare_app/utils/test_datetime_utils.py
"""
통합 시간 관리 유틸리티 기능 테스트

사용법: python -m pytest daycare_app/utils/test_datetime_utils.py -v
"""

import pytest
from datetime import datetime, date, timezone, timedelta
from daycare_app.utils.datetime_utils import DateTimeUtils


class FakeTimestamp:
    """seconds/nanos 속성을 가진 Firestore Timestamp 유사 객체"""
    def __init__(self, seconds, nanos=0):
        self.seconds = seconds
        self.nanos = nanos


def test_parse_iso_datetime():
    """ISO 포맷 파싱 테스트"""
    test_cases = [
        "2024-01-15T10:30:00Z",
        "2024-01-15T10:30:00+09:00",
        "2024-01-15T10:30:00.123456Z",
        "2024-01-15T10:30:00"
    ]

    for iso_string in test_cases:
        dt = DateTimeUtils.parse_iso_datetime(iso_string)
        assert isinstance(dt, datetime)
        assert dt.tzinfo == timezone.utc  # UTC로 정규화되어야 함

    kst = DateTimeUtils.parse_iso_datetime("2024-01-15T10:30:00+09:00")
    assert kst.hour == 1


def test_error_handling():
    """오류 처리 테스트"""
    with pytest.raises(ValueError):
        DateTimeUtils.parse_iso_datetime("invalid-date")

    with pytest.raises(ValueError):
        DateTimeUtils.parse_iso_datetime("")

    assert DateTimeUtils.try_parse_iso(None) is None
    assert DateTimeUtils.try_parse_iso("yesterday") is None


def test_to_iso_string_uses_z_suffix():
    dt = datetime(2024, 5, 1, 18, 0, tzinfo=timezone(timedelta(hours=9)))
    assert DateTimeUtils.to_iso_string(dt) == "2024-05-01T09:00:00Z"
    assert DateTimeUtils.to_iso_string(datetime(2024, 5, 1, 9, 0)) == "2024-05-01T09:00:00Z"


def test_for_firestore():
    """Firestore 변환 테스트"""
    test_data = {
        'day': date(2024, 1, 15),
        'occurredAt': datetime(2024, 1, 15, 10, 30),
        'nested': {'list': [datetime(2024, 1, 1)]},
    }

    converted = DateTimeUtils.for_firestore(test_data)

    assert converted['day'] == datetime(2024, 1, 15, tzinfo=timezone.utc)
    assert converted['occurredAt'].tzinfo == timezone.utc
    assert converted['nested']['list'][0].tzinfo == timezone.utc


@pytest.mark.parametrize("value", [
    "2024-05-01T09:00:00Z",
    datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc),
    FakeTimestamp(1714554000),
    {"_seconds": 1714554000, "_nanoseconds": 0},
    {"seconds": 1714554000, "nanos": 0},
    1714554000000,
])
def test_normalize_timestamp_accepts_store_representations(value):
    assert DateTimeUtils.normalize_timestamp(value) == "2024-05-01T09:00:00Z"


@pytest.mark.parametrize("value", [
    None,
    True,
    "not a time",
    {"foo": 1},
    {"_seconds": "abc"},
    object(),
    float("nan"),
    [2024, 5, 1],
])
def test_normalize_timestamp_unknown_values_are_omitted(value):
    """해석할 수 없는 값은 epoch 0이 아니라 None이어야 함"""
    assert DateTimeUtils.normalize_timestamp(value) is None


def test_date_bucket_uses_utc_day():
    assert DateTimeUtils.date_bucket("2024-05-01T23:30:00-02:00") == "2024-05-02"
    assert DateTimeUtils.date_bucket("garbage") is None


def test_day_range_is_inclusive_of_last_day():
    start, end = DateTimeUtils.day_range(date(2024, 5, 1), date(2024, 5, 3))
    assert start == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert end == datetime(2024, 5, 4, tzinfo=timezone.utc)
    assert DateTimeUtils.day_range(None, None) == (None, None)


def test_parse_date_string():
    assert DateTimeUtils.parse_date_string("2024-01-15") == date(2024, 1, 15)
    with pytest.raises(ValueError):
        DateTimeUtils.parse_date_string("15/01/2024")
