import pytest
from datetime import time

from utils.time import normalize_time, to_minutes, minutes_to_label, minutes_to_time


class TestNormalizeTime:

    def test_hh_mm_passes_through(self):
        assert normalize_time("09:15") == "09:15"

    def test_strips_whitespace(self):
        assert normalize_time("  13:00 ") == "13:00"

    def test_seconds_are_dropped(self):
        assert normalize_time("13:45:30") == "13:45"

    @pytest.mark.parametrize("value,expected", [
        ("12:00 AM", "00:00"),
        ("12:30 AM", "00:30"),
        ("12:00 PM", "12:00"),
        ("1:30 PM", "13:30"),
        ("9:05 am", "09:05"),
    ])
    def test_12_hour_formats(self, value, expected):
        assert normalize_time(value) == expected

    def test_garbage_raises_value_error(self):
        with pytest.raises(ValueError):
            normalize_time("not a time")


class TestToMinutes:

    def test_string(self):
        assert to_minutes("09:00") == 540

    def test_time_object(self):
        assert to_minutes(time(13, 30)) == 810

    def test_int_passes_through(self):
        assert to_minutes(600) == 600

    def test_end_of_day(self):
        assert to_minutes("24:00") == 1440

    def test_out_of_range_int(self):
        with pytest.raises(ValueError):
            to_minutes(1441)

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            to_minutes(True)

    def test_invalid_minutes(self):
        with pytest.raises(ValueError):
            to_minutes("10:75")


class TestMinuteFormatting:

    def test_label(self):
        assert minutes_to_label(545) == "09:05"

    def test_to_time(self):
        assert minutes_to_time(1275) == time(21, 15)

    def test_to_time_rejects_end_of_day(self):
        with pytest.raises(ValueError):
            minutes_to_time(1440)
