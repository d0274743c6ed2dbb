"""
Tests for sync_engine.domain.schedule -- cron parsing and next fire time.

Pure functions, no I/O.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from sync_engine.domain.schedule import (
    describe_cron,
    matches_cron,
    next_fire_time,
    parse_cron,
    validate_timezone,
)

UTC = timezone.utc


# =============================================================================
# parse_cron
# =============================================================================


class TestParseCron:
    def test_daily_default(self):
        spec = parse_cron("0 1 * * *")
        assert spec.minutes == frozenset({0})
        assert spec.hours == frozenset({1})
        assert spec.days_of_month == frozenset(range(1, 32))
        assert spec.days_of_week == frozenset(range(7))

    def test_steps_ranges_and_lists(self):
        spec = parse_cron("*/15 8-10 1,15 */6 1-5")
        assert spec.minutes == frozenset({0, 15, 30, 45})
        assert spec.hours == frozenset({8, 9, 10})
        assert spec.days_of_month == frozenset({1, 15})
        assert spec.months == frozenset({1, 7})
        assert spec.days_of_week == frozenset({1, 2, 3, 4, 5})

    def test_seven_means_sunday(self):
        assert parse_cron("0 0 * * 7").days_of_week == frozenset({0})
        assert parse_cron("0 0 * * 5-7").days_of_week == frozenset({0, 5, 6})

    @pytest.mark.parametrize(
        "expression",
        [
            "0 1 * *",
            "0 1 * * * *",
            "60 1 * * *",
            "0 24 * * *",
            "0 1 0 * *",
            "0 1 * 13 *",
            "0 1 * * 8",
            "*/0 1 * * *",
            "5-2 1 * * *",
            "x 1 * * *",
        ],
    )
    def test_invalid(self, expression):
        with pytest.raises(ValueError):
            parse_cron(expression)


# =============================================================================
# matches_cron
# =============================================================================


class TestMatchesCron:
    def test_weekday_mapping(self):
        spec = parse_cron("0 9 * * 1")
        monday = datetime(2024, 1, 1, 9, 0)
        tuesday = datetime(2024, 1, 2, 9, 0)
        assert matches_cron(spec, monday)
        assert not matches_cron(spec, tuesday)

    def test_sunday(self):
        spec = parse_cron("30 6 * * 0")
        assert matches_cron(spec, datetime(2024, 1, 7, 6, 30))


# =============================================================================
# next_fire_time
# =============================================================================


class TestNextFireTime:
    def test_later_same_day(self):
        spec = parse_cron("0 13 * * *")
        result = next_fire_time(spec, datetime(2024, 1, 1, 12, 0, tzinfo=UTC), UTC)
        assert result == datetime(2024, 1, 1, 13, 0, tzinfo=UTC)

    def test_strictly_after(self):
        spec = parse_cron("0 1 * * *")
        at_fire = datetime(2024, 1, 1, 1, 0, tzinfo=UTC)
        assert next_fire_time(spec, at_fire, UTC) == datetime(2024, 1, 2, 1, 0, tzinfo=UTC)

    def test_seconds_rounded_up_to_next_minute(self):
        spec = parse_cron("* * * * *")
        result = next_fire_time(spec, datetime(2024, 1, 1, 12, 0, 59, tzinfo=UTC), UTC)
        assert result == datetime(2024, 1, 1, 12, 1, tzinfo=UTC)

    def test_evaluated_in_timezone(self):
        new_york = ZoneInfo("America/New_York")
        spec = parse_cron("0 1 * * *")
        after = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)  # 07:00 EST

        result = next_fire_time(spec, after, new_york)

        assert result == datetime(2024, 1, 2, 1, 0, tzinfo=new_york)
        assert result.astimezone(UTC) == datetime(2024, 1, 2, 6, 0, tzinfo=UTC)

    def test_leap_day(self):
        spec = parse_cron("0 0 29 2 *")
        result = next_fire_time(spec, datetime(2023, 3, 1, tzinfo=UTC), UTC)
        assert result == datetime(2024, 2, 29, 0, 0, tzinfo=UTC)
        result = next_fire_time(spec, datetime(2024, 3, 1, tzinfo=UTC), UTC)
        assert result == datetime(2028, 2, 29, 0, 0, tzinfo=UTC)

    def test_leap_day_across_skipped_century(self):
        spec = parse_cron("0 1 29 2 *")
        result = next_fire_time(spec, datetime(2096, 3, 1, tzinfo=UTC), UTC)
        assert result == datetime(2104, 2, 29, 1, 0, tzinfo=UTC)

    def test_never_fires(self):
        with pytest.raises(ValueError, match="No cron match"):
            next_fire_time(parse_cron("0 0 30 2 *"), datetime(2024, 1, 1, tzinfo=UTC), UTC)

    def test_naive_rejected(self):
        with pytest.raises(ValueError, match="timezone-aware"):
            next_fire_time(parse_cron("0 1 * * *"), datetime(2024, 1, 1), UTC)


class TestValidateTimezone:
    def test_known(self):
        assert validate_timezone("Europe/Paris") == ZoneInfo("Europe/Paris")

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            validate_timezone("Nowhere/Special")


class TestDaylightSaving:
    NEW_YORK = ZoneInfo("America/New_York")

    def test_repeated_hour_fires_twice_for_every_hour_schedules(self):
        spec = parse_cron("*/30 * * * *")
        # 01:30 EDT; the clocks go back to 01:00 EST half an hour later.
        after = datetime(2024, 11, 3, 5, 30, tzinfo=UTC)

        first = next_fire_time(spec, after, self.NEW_YORK)
        second = next_fire_time(spec, first, self.NEW_YORK)

        assert first.astimezone(UTC) == datetime(2024, 11, 3, 6, 0, tzinfo=UTC)
        assert second.astimezone(UTC) == datetime(2024, 11, 3, 6, 30, tzinfo=UTC)

    def test_repeated_hour_fires_once_for_fixed_hour(self):
        spec = parse_cron("0 1 * * *")
        after = datetime(2024, 11, 3, 5, 0, tzinfo=UTC)  # the first 01:00

        result = next_fire_time(spec, after, self.NEW_YORK)

        assert result.astimezone(UTC) == datetime(2024, 11, 4, 6, 0, tzinfo=UTC)

    def test_skipped_hour_still_fires(self):
        spec = parse_cron("30 2 * * *")
        after = datetime(2024, 3, 10, 5, 0, tzinfo=UTC)  # midnight EST

        result = next_fire_time(spec, after, self.NEW_YORK)

        assert result.astimezone(UTC) == datetime(2024, 3, 10, 7, 30, tzinfo=UTC)


class TestDescribeCron:
    def test_daily(self):
        description = describe_cron("0 1 * * *")
        assert description == description.lower()
        assert description.startswith("at")
        assert "01:00" in description

    def test_every_minute(self):
        assert describe_cron("* * * * *") == "every minute"

    def test_invalid(self):
        with pytest.raises(ValueError, match="Cannot describe"):
            describe_cron("0 1")
