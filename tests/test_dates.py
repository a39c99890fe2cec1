# =============================================================================
# GFC Console - Date Helper Tests
# =============================================================================

import pytest
from datetime import datetime

from app.utils.dates import (
    add_months,
    format_korean_date,
    format_korean_long_date,
    isoformat_utc,
    month_bounds_utc,
    parse_gateway_timestamp,
    utcnow,
)


class TestAddMonths:

    @pytest.mark.parametrize('start, expected', [
        (datetime(2026, 1, 15), datetime(2026, 2, 15)),
        (datetime(2026, 1, 31), datetime(2026, 2, 28)),
        (datetime(2028, 1, 31), datetime(2028, 2, 29)),
        (datetime(2026, 3, 31), datetime(2026, 4, 30)),
        (datetime(2026, 12, 31), datetime(2027, 1, 31)),
    ])
    def test_clamps_to_month_end(self, start, expected):
        assert add_months(start, 1) == expected

    def test_keeps_time_of_day(self):
        assert add_months(datetime(2026, 5, 10, 13, 45, 7)) == datetime(2026, 6, 10, 13, 45, 7)


class TestMonthBounds:

    def test_seoul_month_in_utc(self, app):
        start, end = month_bounds_utc('2026-10')
        assert start == datetime(2026, 9, 30, 15, 0)
        assert end == datetime(2026, 10, 31, 15, 0)

    def test_december_rolls_year(self, app):
        _, end = month_bounds_utc('2026-12')
        assert end == datetime(2026, 12, 31, 15, 0)


class TestFormatting:

    def test_korean_dates_use_service_timezone(self, app):
        # 2026-11-16 20:00 UTC is 2026-11-17 in Seoul
        dt = datetime(2026, 11, 16, 20, 0)
        assert format_korean_date(dt) == '2026. 11. 17.'
        assert format_korean_long_date(dt) == '2026년 11월 17일'

    def test_korean_date_of_none(self, app):
        assert format_korean_date(None) is None

    def test_isoformat_utc(self):
        assert isoformat_utc(datetime(2026, 10, 17, 1, 2, 3)) == '2026-10-17T01:02:03.000Z'
        assert isoformat_utc(None) is None


class TestGatewayTimestamp:

    def test_offset_is_converted_to_utc(self):
        assert parse_gateway_timestamp('2026-10-17T10:00:00+09:00') == datetime(2026, 10, 17, 1, 0)

    def test_zulu_suffix(self):
        assert parse_gateway_timestamp('2026-10-17T01:00:00Z') == datetime(2026, 10, 17, 1, 0)

    @pytest.mark.parametrize('value', [None, '', 'not-a-date'])
    def test_fallback_to_now(self, value):
        before = utcnow()
        assert parse_gateway_timestamp(value) >= before
