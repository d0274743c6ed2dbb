"""
Pure cron evaluation functions.

Contract:
    ``parse_cron()``, ``matches_cron()``, ``next_fire_time()`` and
    ``describe_cron()`` are PURE -- no I/O, no side effects.  The scheduler
    supplies the current time from its injected Clock.

Architecture: sync_engine/domain.  ZERO I/O.

Timezones:
    Cron fields are matched against wall-clock time in the configured IANA
    zone.  During a DST gap a wall-clock minute that does not exist is
    still produced once, at the instant its pre-transition offset gives.
    During a DST overlap both occurrences of the repeated hour fire when
    the hour field is ``*``; otherwise only the first occurrence fires.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cron_descriptor import get_description

# Feb 29 can be eight years from the previous one (e.g. 2096 -> 2104).
MAX_SCAN_DAYS = 8 * 366 + 1

_ALL_HOURS = frozenset(range(24))


# =============================================================================
# CronSpec (lightweight cron parser)
# =============================================================================


@dataclass(frozen=True)
class CronSpec:
    """Parsed cron expression (minute hour day_of_month month day_of_week).

    Each field is a frozenset of valid integer values.
    Supports: *, values, ranges (1-5), steps (*/5, 1-10/2), lists (1,5).
    """

    minutes: frozenset[int] = field(default_factory=lambda: frozenset(range(60)))
    hours: frozenset[int] = field(default_factory=lambda: frozenset(range(24)))
    days_of_month: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 32)))
    months: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 13)))
    days_of_week: frozenset[int] = field(default_factory=lambda: frozenset(range(7)))


def _parse_cron_field(field_str: str, min_val: int, max_val: int) -> frozenset[int]:
    """Parse a single cron field into a frozenset of valid values.

    Supports:
        * -- all values
        N -- single value
        N-M -- range
        */N -- step from min
        N-M/S -- range with step

    Raises:
        ValueError: If the field is syntactically invalid or values out of range.
    """
    values: set[int] = set()

    for part in field_str.split(","):
        part = part.strip()

        if "/" in part:
            range_part, step_str = part.split("/", 1)
            step = int(step_str)
            if step <= 0:
                raise ValueError(f"Step must be positive: {step}")

            if range_part == "*":
                start, end = min_val, max_val
            elif "-" in range_part:
                s, e = range_part.split("-", 1)
                start, end = int(s), int(e)
            else:
                start = int(range_part)
                end = max_val

            for v in range(start, end + 1, step):
                if min_val <= v <= max_val:
                    values.add(v)

        elif part == "*":
            values.update(range(min_val, max_val + 1))

        elif "-" in part:
            s, e = part.split("-", 1)
            start, end = int(s), int(e)
            if start > end:
                raise ValueError(f"Range start > end: {start}-{end}")
            for v in range(start, end + 1):
                if min_val <= v <= max_val:
                    values.add(v)

        else:
            v = int(part)
            if v < min_val or v > max_val:
                raise ValueError(
                    f"Value {v} outside range [{min_val}, {max_val}]"
                )
            values.add(v)

    if not values:
        raise ValueError(f"Field matches no values in [{min_val}, {max_val}]: '{field_str}'")
    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """Parse a 5-field cron expression into a CronSpec.

    Format: ``minute hour day_of_month month day_of_week``.
    Day-of-week accepts 0-7; both 0 and 7 mean Sunday.

    Raises:
        ValueError: If expression is malformed.
    """
    parts = expression.strip().split()
    if len(parts) != 5:
        raise ValueError(
            f"Cron expression must have 5 fields, got {len(parts)}: '{expression}'"
        )

    days_of_week = _parse_cron_field(parts[4], 0, 7)
    if 7 in days_of_week:
        days_of_week = (days_of_week - {7}) | {0}

    return CronSpec(
        minutes=_parse_cron_field(parts[0], 0, 59),
        hours=_parse_cron_field(parts[1], 0, 23),
        days_of_month=_parse_cron_field(parts[2], 1, 31),
        months=_parse_cron_field(parts[3], 1, 12),
        days_of_week=days_of_week,
    )


def matches_cron(spec: CronSpec, dt: datetime) -> bool:
    """Check if a datetime's wall-clock fields match a cron spec.

    Cron convention: 0=Sunday, 1=Monday, ..., 6=Saturday.
    Python datetime.weekday(): 0=Monday, ..., 6=Sunday.
    """
    cron_dow = (dt.weekday() + 1) % 7
    return (
        dt.minute in spec.minutes
        and dt.hour in spec.hours
        and dt.day in spec.days_of_month
        and dt.month in spec.months
        and cron_dow in spec.days_of_week
    )


# =============================================================================
# Timezones and next fire time
# =============================================================================


def validate_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name.

    Raises:
        ValueError: If the zone is unknown.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise ValueError(f"Unknown timezone: {name!r}") from exc


def _day_matches(spec: CronSpec, day: date) -> bool:
    return (
        day.day in spec.days_of_month
        and day.month in spec.months
        and (day.weekday() + 1) % 7 in spec.days_of_week
    )


def _occurrences(wall: datetime, tz: tzinfo, repeat_in_overlap: bool) -> list[datetime]:
    """UTC instants at which the naive wall-clock time ``wall`` happens in ``tz``.

    Two instants during a DST overlap (the second only if
    ``repeat_in_overlap``), one otherwise, and one for a time inside a DST
    gap (taken with the pre-transition offset).
    """
    instants: list[datetime] = []
    for fold in (0, 1):
        instant = wall.replace(tzinfo=tz, fold=fold).astimezone(timezone.utc)
        if instant.astimezone(tz).replace(tzinfo=None) == wall and instant not in instants:
            instants.append(instant)

    if not instants:
        return [wall.replace(tzinfo=tz, fold=0).astimezone(timezone.utc)]
    if not repeat_in_overlap:
        return instants[:1]
    return instants


def next_fire_time(spec: CronSpec, after: datetime, tz: tzinfo) -> datetime:
    """Find the first matching minute strictly after ``after``.

    ``after`` must be timezone-aware.  Matching runs on wall-clock time in
    ``tz``; the result is aware and expressed in ``tz``.  Days that do not
    match are skipped whole; the scan covers ``MAX_SCAN_DAYS`` so that
    leap-day schedules always resolve.

    Raises:
        ValueError: If ``after`` is naive or the expression never fires.
    """
    if after.tzinfo is None:
        raise ValueError("next_fire_time requires a timezone-aware datetime")

    after_utc = after.astimezone(timezone.utc)
    repeat_in_overlap = spec.hours == _ALL_HOURS
    hours = sorted(spec.hours)
    minutes = sorted(spec.minutes)
    day = after.astimezone(tz).date()

    for _ in range(MAX_SCAN_DAYS):
        if _day_matches(spec, day):
            # Collect the whole day: the second pass through a repeated hour
            # comes after later wall-clock minutes of the first pass.
            upcoming = [
                instant
                for hour in hours
                for minute in minutes
                for instant in _occurrences(datetime.combine(day, time(hour, minute)), tz, repeat_in_overlap)
                if instant > after_utc
            ]
            if upcoming:
                return min(upcoming).astimezone(tz)
        day += timedelta(days=1)

    raise ValueError(
        f"No cron match found within {MAX_SCAN_DAYS} days after {after}"
    )


def describe_cron(expression: str) -> str:
    """Human-readable, lower-cased form of a cron expression.

    Example: ``"0 1 * * *"`` -> ``"at 01:00 am"``.

    Raises:
        ValueError: If the expression cannot be described.
    """
    try:
        return get_description(expression).lower()
    except Exception as exc:
        raise ValueError(f"Cannot describe cron expression '{expression}': {exc}") from exc
