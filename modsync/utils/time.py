"""Time-related utilities."""

import re
from datetime import datetime
from typing import Hashable, Literal, Optional, Union

import arrow
from dateutil.relativedelta import relativedelta
from discord_timestamps import TimestampType, format_timestamp

from modsync.errors import CorruptScheduleData

_Precision = Literal["years", "months", "days", "hours", "minutes", "seconds"]

_DURATION_REGEX = re.compile(
    r"((?P<years>\d+?) ?(years|year|Y|y) ?)?"
    r"((?P<months>\d+?) ?(months|month|m) ?)?"
    r"((?P<weeks>\d+?) ?(weeks|week|W|w) ?)?"
    r"((?P<days>\d+?) ?(days|day|D|d) ?)?"
    r"((?P<hours>\d+?) ?(hours|hour|H|h) ?)?"
    r"((?P<minutes>\d+?) ?(minutes|minute|M) ?)?"
    r"((?P<seconds>\d+?) ?(seconds|second|S|s))?"
)


def parse_duration_string(duration: str) -> Optional[relativedelta]:
    """Converts a `duration` string to a relativedelta object.

    The units need to be provided in descending order of magnitude, e.g.
    `1d12h`. Returns None if the string isn't a valid duration.
    """
    match = _DURATION_REGEX.fullmatch(duration)
    if not match:
        return None

    duration_dict = {unit: int(amount) for unit, amount in match.groupdict(default=0).items()}
    delta = relativedelta(**duration_dict)

    return delta if delta else None


def _stringify_time_unit(value: int, unit: str) -> str:
    """
    Return a string to represent a value and time unit, ensuring the unit's correct plural form is used.
    >>> _stringify_time_unit(1, "seconds")
    "1 second"
    >>> _stringify_time_unit(24, "hours")
    "24 hours"
    >>> _stringify_time_unit(0, "minutes")
    "less than a minute"
    """
    if unit == "seconds" and value == 0:
        return "0 seconds"
    if value == 1:
        return f"1 {unit[:-1]}"
    if value == 0:
        return f"less than a {unit[:-1]}"

    return f"{value} {unit}"


def humanize_delta(
    delta: relativedelta,
    precision: _Precision = "seconds",
    max_units: int = 6,
) -> str:
    """Returns a human-readable version of a `relativedelta`.

    `precision` is the smallest unit of time to include (e.g. "seconds", "minutes").
    `max_units` is the maximum number of units of time to include.
    """
    if max_units <= 0:
        raise ValueError("max_units must be positive.")

    units = (
        ("years", delta.years),
        ("months", delta.months),
        ("days", delta.days),
        ("hours", delta.hours),
        ("minutes", delta.minutes),
        ("seconds", delta.seconds),
    )

    time_strings = []
    unit_count = 0
    for unit, value in units:
        if value:
            time_strings.append(_stringify_time_unit(value, unit))
            unit_count += 1

        if unit == precision or unit_count >= max_units:
            break

    if len(time_strings) > 1:
        time_strings[-1] = f"{time_strings[-2]} and {time_strings[-1]}"
        del time_strings[-2]

    return _stringify_time_unit(0, precision) if not time_strings else ", ".join(time_strings)


def parse_expiry(value: Union[datetime, str, None], infraction_id: Hashable = None) -> arrow.Arrow:
    """Parses a stored expiry into an aware UTC time.

    Naive datetimes are taken to be UTC, which is how MongoDB hands them back.
    Raises `CorruptScheduleData` if `value` is missing or can't be parsed.
    """
    if value is None:
        raise CorruptScheduleData(infraction_id, value)

    try:
        return arrow.get(value).to("utc")
    except (arrow.ParserError, TypeError, ValueError) as error:
        raise CorruptScheduleData(infraction_id, value) from error


def expiry_delay(value: Union[datetime, str, None], infraction_id: Hashable = None) -> float:
    """Returns the number of seconds from now until a stored expiry.

    The result is negative if the expiry is in the past.
    """
    return (parse_expiry(value, infraction_id) - arrow.utcnow()).total_seconds()


def format_expiry(value: Optional[datetime]) -> Optional[str]:
    """Formats an expiry as Discord timestamps, e.g. for embeds."""
    if value is None:
        return None

    timestamp = arrow.get(value)
    return (
        f"{format_timestamp(timestamp, TimestampType.LONG_DATETIME)}"
        f" ({format_timestamp(timestamp, TimestampType.RELATIVE)})"
    )
