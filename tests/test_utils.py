"""Tests for clock-time arithmetic."""

import pytest

from barbershop.utils import InvalidTimeFormat, minutes_to_time, time_to_minutes


class TestTimeToMinutes:
    def test_opening_time(self):
        assert time_to_minutes("10:00") == 600

    def test_quarter_hour(self):
        assert time_to_minutes("17:45") == 1065

    def test_midnight(self):
        assert time_to_minutes("00:00") == 0

    def test_store_format_seconds_ignored(self):
        assert time_to_minutes("17:45:30") == 1065

    def test_single_digit_hour(self):
        assert time_to_minutes("9:05") == 545

    def test_surrounding_whitespace(self):
        assert time_to_minutes(" 12:30 ") == 750

    @pytest.mark.parametrize("value", ["", "noon", "10", "10-00", "10:xx", "1O:00"])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(InvalidTimeFormat):
            time_to_minutes(value)

    def test_invalid_format_is_value_error(self):
        with pytest.raises(ValueError):
            time_to_minutes("ten")


class TestMinutesToTime:
    def test_zero_padded(self):
        assert minutes_to_time(545) == "09:05"

    def test_closing_time(self):
        assert minutes_to_time(1080) == "18:00"

    def test_past_midnight_not_wrapped(self):
        assert minutes_to_time(1440) == "24:00"

    def test_inverse_on_canonical_values(self):
        for minutes in range(0, 1440, 15):
            assert time_to_minutes(minutes_to_time(minutes)) == minutes
