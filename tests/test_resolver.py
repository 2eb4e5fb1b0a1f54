from datetime import datetime, timezone

import pytest
from conftest import utc_seconds

from tzif_resolver.errors import (
    InvalidDatetimeError,
    InvalidTimezoneError,
)
from tzif_resolver.local import LocalZoneDetector
from tzif_resolver.models import Bound, Fold, Gap, Mode, Period, Unbounded, Weekday
from tzif_resolver.names import canonicalize
from tzif_resolver.posix import PosixTimezone
from tzif_resolver.resolver import PeriodResolver

CHICAGO = "America/Chicago"
CHICAGO_RULE = "CST6CDT,M3.2.0,M11.1.0"


def test_spring_forward_is_a_gap(resolver):
    gap = resolver.resolve(CHICAGO, datetime(2016, 3, 13, 2, 30))

    assert isinstance(gap, Gap)
    assert gap.before.abbreviation == "CST"
    assert gap.after.abbreviation == "CDT"
    assert gap.after.valid_from == Bound(Weekday.SUNDAY, datetime(2016, 3, 13, 8))
    assert gap.before.valid_until == gap.after.valid_from


def test_bounds_are_utc_instants(resolver):
    # NZST -> NZDT on Sunday 2016-09-25 02:00 local, still Saturday in UTC
    period = resolver.resolve("Pacific/Auckland", datetime(2016, 10, 1, 12))

    assert period.abbreviation == "NZDT"
    assert period.valid_from == Bound(Weekday.SATURDAY, datetime(2016, 9, 24, 14))


def test_fall_back_is_a_fold(resolver):
    fold = resolver.resolve(CHICAGO, datetime(2016, 11, 6, 1, 30))

    assert isinstance(fold, Fold)
    assert (fold.before.abbreviation, fold.after.abbreviation) == ("CDT", "CST")
    assert fold.before.total_offset == -18000
    assert fold.after.total_offset == -21600


@pytest.mark.parametrize(
    "instant, abbreviation",
    [
        (utc_seconds(2016, 11, 6, 6, 30), "CDT"),
        (utc_seconds(2016, 11, 6, 7, 30), "CST"),
        (datetime(2016, 11, 6, 7, 30, tzinfo=timezone.utc), "CST"),
    ],
)
def test_fold_disambiguated_by_instant(resolver, instant, abbreviation):
    period = resolver.resolve(CHICAGO, datetime(2016, 11, 6, 1, 30), instant=instant)

    assert isinstance(period, Period)
    assert period.abbreviation == abbreviation


def test_fold_kept_when_instant_does_not_match(resolver):
    resolved = resolver.resolve(
        CHICAGO, datetime(2016, 11, 6, 1, 30), instant=utc_seconds(2020, 1, 1)
    )

    assert isinstance(resolved, Fold)


@pytest.mark.parametrize(
    "wall, expected",
    [
        (datetime(2016, 3, 13, 1, 59, 59), "CST"),
        (datetime(2016, 3, 13, 3), "CDT"),
        (datetime(2016, 11, 6, 0, 59, 59), "CDT"),
        (datetime(2016, 11, 6, 2), "CST"),
    ],
)
def test_wall_times_next_to_transitions(resolver, wall, expected):
    assert resolver.resolve(CHICAGO, wall).abbreviation == expected


def test_utc_mode_is_never_ambiguous(resolver):
    before = resolver.resolve(CHICAGO, utc_seconds(2016, 11, 6, 6, 59, 59), Mode.UTC)
    after = resolver.resolve(CHICAGO, utc_seconds(2016, 11, 6, 7), Mode.UTC)

    assert (before.abbreviation, after.abbreviation) == ("CDT", "CST")
    assert before.valid_until == after.valid_from


def test_taipei_1895_negative_correction_is_a_fold(resolver):
    fold = resolver.resolve("Asia/Taipei", datetime(1895, 12, 31, 23, 55))

    assert isinstance(fold, Fold)
    assert fold.before.abbreviation != fold.after.abbreviation
    assert fold.before.total_offset != fold.after.total_offset
    assert fold.before.total_offset > fold.after.total_offset


@pytest.mark.parametrize(
    "zone, wall, kind",
    [
        ("America/New_York", datetime(2100, 3, 14, 2, 30), Gap),
        ("America/New_York", datetime(2100, 11, 7, 1, 30), Fold),
        ("Australia/Sydney", datetime(2024, 4, 7, 2, 30), Fold),
        ("Australia/Sydney", datetime(2024, 10, 6, 2, 30), Gap),
        ("Australia/Lord_Howe", datetime(2024, 4, 7, 1, 45), Fold),
        ("Europe/London", datetime(2030, 3, 31, 1, 30), Gap),
    ],
)
def test_gaps_and_folds_across_zones(resolver, zone, wall, kind):
    assert isinstance(resolver.resolve(zone, wall), kind)


def test_lord_howe_fold_is_half_an_hour(resolver):
    fold = resolver.resolve("Australia/Lord_Howe", datetime(2024, 4, 7, 1, 45))

    assert fold.before.total_offset - fold.after.total_offset == 1800


@pytest.mark.parametrize("value", ["+02:00", "GMT+2", 2, "Etc/GMT-2"])
def test_offset_spellings_agree(resolver, value):
    zone = canonicalize(value, database=resolver.database)

    period = resolver.resolve(zone, datetime(2024, 6, 1))

    assert period.offset_utc == 7200
    assert period.offset_std == 0


def test_fixed_offset_zone_is_unbounded(resolver):
    period = resolver.resolve("Etc/GMT+05:30", utc_seconds(2024, 1, 1), Mode.UTC)

    assert period == Period("Etc/GMT+05:30", "-0530", -19800, 0)
    assert period.valid_from is Unbounded.MIN
    assert period.valid_until is Unbounded.MAX


def test_posix_rule_as_zone_name(resolver):
    period = resolver.resolve(CHICAGO_RULE, datetime(2023, 7, 1))

    assert period.full_name == CHICAGO_RULE
    assert (period.abbreviation, period.offset_utc, period.offset_std) == (
        "CDT",
        -21600,
        3600,
    )


def test_custom_rule_bypasses_database(resolver):
    custom = PosixTimezone.parse("<+0330>-3:30")

    period = resolver.resolve(CHICAGO, datetime(2023, 7, 1), custom=custom)

    assert (period.abbreviation, period.total_offset) == ("+0330", 12600)


def test_custom_rule_prefers_matching_instant_in_fold(resolver):
    custom = PosixTimezone.parse(CHICAGO_RULE)
    wall = datetime(2023, 11, 5, 1, 30)

    standard = resolver.resolve(
        "custom", wall, custom=custom, instant=utc_seconds(2023, 11, 5, 7, 30)
    )
    daylight = resolver.resolve("custom", wall, custom=custom)

    assert standard.abbreviation == "CST"
    assert daylight.abbreviation == "CDT"


def test_unknown_zone(resolver):
    with pytest.raises(InvalidTimezoneError):
        resolver.resolve("Mars/Olympus_Mons", datetime(2024, 1, 1))


@pytest.mark.parametrize(
    "point, mode",
    [
        (datetime(2024, 1, 1, tzinfo=timezone.utc), Mode.WALL),
        ("2024-01-01", Mode.UTC),
        (True, Mode.UTC),
    ],
)
def test_invalid_points(resolver, point, mode):
    with pytest.raises(InvalidDatetimeError):
        resolver.resolve(CHICAGO, point, mode)


@pytest.mark.parametrize(
    "seconds",
    [utc_seconds(1900, 1, 1), utc_seconds(1970, 1, 1), utc_seconds(2024, 6, 1), utc_seconds(2100, 1, 1)],
)
def test_every_zone_resolves_to_one_period_in_utc(resolver, seconds):
    for zone in resolver.database.canonical_zone_names():
        assert isinstance(resolver.resolve(zone, seconds, Mode.UTC), Period), zone


def test_period_for_definite(resolver):
    assert resolver.period_for(CHICAGO, datetime(2024, 7, 1)) == {
        "utc_offset": -21600,
        "std_offset": 3600,
        "zone_abbr": "CDT",
        "time_zone": CHICAGO,
    }


def test_period_for_ambiguous(resolver):
    gap = resolver.period_for(CHICAGO, datetime(2016, 3, 13, 2, 30))
    fold = resolver.period_for(CHICAGO, datetime(2016, 11, 6, 1, 30))

    assert gap["ambiguous"] == "gap"
    assert gap["before"]["zone_abbr"] == "CST"
    assert gap["after"]["zone_abbr"] == "CDT"
    assert fold["ambiguous"] == "fold"
    assert fold["before"]["std_offset"] == 3600
    assert fold["after"]["std_offset"] == 0


def test_local_uses_detector(database):
    detector = LocalZoneDetector(database, environ={"TZ": CHICAGO})
    resolver = PeriodResolver(database, detector)

    assert resolver.local(datetime(2024, 7, 1), Mode.WALL).abbreviation == "CDT"
    assert resolver.local().full_name == CHICAGO


def test_local_without_detector(resolver):
    with pytest.raises(InvalidTimezoneError):
        resolver.local()
