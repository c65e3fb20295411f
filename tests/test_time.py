"""Tests for time utilities."""

from datetime import datetime, timedelta, timezone

import arrow
import pytest
from dateutil.relativedelta import relativedelta

from modsync.errors import CorruptScheduleData
from modsync.utils import time


@pytest.mark.parametrize(
    ("duration", "expected"),
    [
        ("1d", relativedelta(days=1)),
        ("2w3d", relativedelta(weeks=2, days=3)),
        ("1m", relativedelta(months=1)),
        ("30M", relativedelta(minutes=30)),
        ("1h 30M", relativedelta(hours=1, minutes=30)),
        ("1year", relativedelta(years=1)),
    ],
)
def test_parse_duration_string(duration, expected):
    assert time.parse_duration_string(duration) == expected


@pytest.mark.parametrize("duration", ["", "soon", "0d", "1d1y"])
def test_parse_duration_string_rejects(duration):
    assert time.parse_duration_string(duration) is None


def test_humanize_delta():
    assert time.humanize_delta(relativedelta(days=2, hours=1)) == "2 days and 1 hour"
    assert time.humanize_delta(relativedelta(), precision="minutes") == "less than a minute"


class TestExpiry:
    """Tests for reading stored expiries."""

    def test_naive_datetime_is_utc(self):
        parsed = time.parse_expiry(datetime(2030, 1, 1, 12, 0))
        assert parsed == arrow.get(datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc))

    def test_iso_string(self):
        assert time.parse_expiry("2030-01-01T12:00:00+00:00").year == 2030

    @pytest.mark.parametrize("value", [None, "garbage"])
    def test_unusable_value(self, value):
        with pytest.raises(CorruptScheduleData) as info:
            time.parse_expiry(value, "abc")

        assert info.value.infraction_id == "abc"

    def test_delay_sign(self):
        now = datetime.now(timezone.utc)

        assert time.expiry_delay(now + timedelta(minutes=5)) > 0
        assert time.expiry_delay(now - timedelta(minutes=5)) < 0

    def test_format_expiry(self):
        assert time.format_expiry(None) is None
        assert time.format_expiry(datetime(2030, 1, 1, tzinfo=timezone.utc)).startswith("<t:")
