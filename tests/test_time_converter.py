"""
时间转换测试
"""

from datetime import datetime

import pytest

from factory_twin.utils.time_converter import format_duration_ms, ms_to_timestamp, parse_timestamp

CLOCK_START = datetime(2026, 1, 1, 8, 0, 0)


class TestTimestamps:

    def test_ms_to_timestamp(self):
        assert ms_to_timestamp(0, CLOCK_START) == "2026-01-01T08:00:00.000"
        assert ms_to_timestamp(1500, CLOCK_START) == "2026-01-01T08:00:01.500"
        assert ms_to_timestamp(3600000, CLOCK_START) == "2026-01-01T09:00:00.000"

    def test_parse_timestamp(self):
        assert parse_timestamp("2026-01-01T08:00:01.500") == datetime(2026, 1, 1, 8, 0, 1, 500000)
        assert parse_timestamp("2026-01-01T08:00:01Z") == datetime(2026, 1, 1, 8, 0, 1)

    @pytest.mark.parametrize("text", ["", "yesterday", "2026-13-01T00:00:00"])
    def test_parse_invalid(self, text):
        assert parse_timestamp(text) is None


class TestFormatDuration:

    @pytest.mark.parametrize("ms, expected", [
        (750, "750ms"),
        (12500, "12.5s"),
        (185000, "3m 5s"),
    ])
    def test_format(self, ms, expected):
        assert format_duration_ms(ms) == expected
