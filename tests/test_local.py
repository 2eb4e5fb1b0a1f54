import pytest

from tzif_resolver.errors import InvalidTimezoneError
from tzif_resolver.local import LocalZoneDetector


@pytest.fixture
def missing(tmp_path):
    return str(tmp_path / "missing")


def _detector(database, missing, **overrides) -> LocalZoneDetector:
    options = dict(
        environ={},
        etc_timezone=missing,
        clock_files=(missing,),
        localtime=missing,
    )
    options.update(overrides)
    return LocalZoneDetector(database, **options)


@pytest.mark.parametrize(
    "tz, expected",
    [
        ("Europe/Paris", "Europe/Paris"),
        (":America/New_York", "America/New_York"),
        ("EST5EDT,M3.2.0,M11.1.0", "EST5EDT,M3.2.0,M11.1.0"),
        ("America/New York", "America/New_York"),
    ],
)
def test_tz_environment_variable(database, missing, tz, expected):
    detector = _detector(database, missing, environ={"TZ": tz})

    assert detector.detect() == expected


def test_tz_environment_variable_with_path(database, missing, tmp_path):
    zone_file = tmp_path / "zoneinfo" / "Asia" / "Tokyo"
    zone_file.parent.mkdir(parents=True)
    zone_file.write_bytes(b"TZif")

    detector = _detector(database, missing, environ={"TZ": f":{zone_file}"})

    assert detector.detect() == "Asia/Tokyo"


def test_etc_timezone(database, missing, tmp_path):
    etc_timezone = tmp_path / "timezone"
    etc_timezone.write_text("# written by the installer\n\nEurope/Berlin\n")

    detector = _detector(
        database, missing, environ={"TZ": "Not/AZone"}, etc_timezone=str(etc_timezone)
    )

    assert detector.detect() == "Europe/Berlin"


@pytest.mark.parametrize(
    "contents",
    ['ZONE="America/Denver"\nUTC=true\n', "TIMEZONE='America/Denver'\n", "TZ=America/Denver\n"],
)
def test_clock_files(database, missing, tmp_path, contents):
    clock = tmp_path / "clock"
    clock.write_text(contents)

    detector = _detector(database, missing, clock_files=(missing, str(clock)))

    assert detector.detect() == "America/Denver"


@pytest.mark.parametrize("prefix", ["", "posix/", "right/"])
def test_localtime_symlink(database, missing, tmp_path, prefix):
    target = tmp_path / "zoneinfo" / prefix / "Australia" / "Perth"
    target.parent.mkdir(parents=True)
    target.write_bytes(b"TZif")
    link = tmp_path / "localtime"
    link.symlink_to(target)

    detector = _detector(database, missing, localtime=str(link))

    assert detector.detect() == "Australia/Perth"


def test_nothing_found(database, missing):
    with pytest.raises(InvalidTimezoneError):
        _detector(database, missing).detect()


def test_detection_is_memoized_and_overridable(database, missing):
    environ = {"TZ": "Europe/Paris"}
    detector = _detector(database, missing, environ=environ)

    assert detector.detect() == "Europe/Paris"
    environ["TZ"] = "Asia/Tokyo"
    assert detector.detect() == "Europe/Paris"

    detector.override("Pacific/Auckland")
    assert detector.detect() == "Pacific/Auckland"

    detector.override(None)
    assert detector.detect() == "Asia/Tokyo"


def test_without_database_accepts_any_name(missing):
    detector = _detector(None, missing, environ={"TZ": "Somewhere/Else"})

    assert detector.detect() == "Somewhere/Else"
