import re
import warnings
from datetime import timezone, tzinfo
from types import MappingProxyType

from .errors import InvalidOffsetError, InvalidTimezoneError, TimezoneError
from .models import SECONDS_PER_DAY, Period
from .posix import PosixTimezone

UTC_ZONE = "Etc/UTC"

_UTC_ALIASES = frozenset({"utc", "z", "ut", "gmt"})

# Military zone letters accepted as names, in hours east of UTC
_MILITARY = MappingProxyType({"A": 1, "M": 12, "N": -1, "Y": -12})

# Names for zero offset that need no database
_ZERO_OFFSET_NAMES = frozenset(
    {
        "Etc/UTC",
        "Etc/UCT",
        "Etc/GMT",
        "Etc/GMT0",
        "Etc/GMT+0",
        "Etc/GMT-0",
        "Etc/Greenwich",
        "Etc/Universal",
        "Etc/Zulu",
    }
)

# ISO reading: +HH is east of UTC
_ISO_OFFSET = re.compile(
    r"(?P<sign>[+-])(?P<h>\d{1,2})(?:(?P<sep>:?)(?P<m>\d{2})(?:(?P=sep)(?P<s>\d{2}))?)?",
    re.ASCII,
)

# POSIX reading: Etc/GMT+5 is five hours west of UTC
_ETC_GMT = re.compile(
    r"Etc/GMT(?P<sign>[+-])(?P<h>\d{1,2})(?::(?P<m>\d{2})(?::(?P<s>\d{2}))?)?",
    re.ASCII,
)


def _hms_seconds(match: re.Match, text: str) -> int:
    h, m, s = (int(v or 0) for v in match.group("h", "m", "s"))
    if h > 24 or m > 59 or s > 59:
        raise InvalidOffsetError(f"Offset out of range: {text!r}")
    total = h * 3600 + m * 60 + s
    return -total if match.group("sign") == "-" else total


def parse_offset(text: str) -> int:
    """
    Parse a signed offset such as ``+2``, ``-05``, ``+0530``, ``+05:30`` or
    ``-03:30:15`` into seconds east of UTC.
    """
    match = _ISO_OFFSET.fullmatch(text)
    if match is None:
        raise InvalidOffsetError(f"{text!r} is not a valid UTC offset")
    return _hms_seconds(match, text)


def _format_hms(seconds: int) -> str:
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if secs:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}"


def _check_offset(seconds: int) -> None:
    if not -SECONDS_PER_DAY < seconds < SECONDS_PER_DAY:
        raise InvalidOffsetError(f"Offset must be under 24 hours: {seconds}s")


def fixed_offset_name(seconds_east: int) -> str:
    """
    The pseudo-zone name for a fixed offset. Like the IANA ``Etc`` zones the
    sign is inverted: two hours east is ``Etc/GMT-2``.
    """
    _check_offset(seconds_east)
    if seconds_east == 0:
        return UTC_ZONE
    sign = "-" if seconds_east > 0 else "+"
    magnitude = abs(seconds_east)
    if magnitude % 3600 == 0:
        return f"Etc/GMT{sign}{magnitude // 3600}"
    return f"Etc/GMT{sign}{_format_hms(magnitude)}"


def parse_fixed_offset_name(name: str) -> int | None:
    """Seconds east of UTC for a fixed-offset pseudo-zone, else None."""
    if name in _ZERO_OFFSET_NAMES:
        return 0
    match = _ETC_GMT.fullmatch(name)
    if match is None:
        return None
    seconds = -_hms_seconds(match, name)
    _check_offset(seconds)
    return seconds


def fixed_abbreviation(seconds_east: int) -> str:
    if seconds_east == 0:
        return "UTC"
    sign = "+" if seconds_east > 0 else "-"
    magnitude = abs(seconds_east)
    if magnitude % 3600 == 0:
        return f"{sign}{magnitude // 3600:02d}"
    return sign + _format_hms(magnitude).replace(":", "")


def _canonicalize_string(value: str, database) -> str:
    if value.lower() in _UTC_ALIASES:
        return UTC_ZONE
    if value in _MILITARY:
        return fixed_offset_name(_MILITARY[value] * 3600)
    if value[:1] in ("+", "-"):
        return fixed_offset_name(parse_offset(value))
    prefix, rest = value[:3].upper(), value[3:]
    if prefix in ("GMT", "UTC") and rest[:1] in ("+", "-"):
        return fixed_offset_name(parse_offset(rest))

    offset = parse_fixed_offset_name(value)
    if offset is not None:
        return fixed_offset_name(offset)

    if database is not None and database.zone_exists(value):
        return value

    try:
        PosixTimezone.parse(value)
    except TimezoneError as exc:
        raise InvalidTimezoneError(f"Unknown time zone: {value!r}") from exc
    return value


def canonicalize(value, *, database=None) -> str:
    """
    Normalize anything that names a zone into a name the resolver accepts.

    Accepts zone names, UTC aliases, military letters, signed offset strings,
    hour offsets (int, or float with a DeprecationWarning), a Period, a
    fixed-offset `datetime.timezone`, or a tzinfo exposing a `key`. Names are
    checked against `database` when given, then tried as POSIX TZ strings.
    """
    if isinstance(value, Period):
        return value.full_name
    if isinstance(value, bool):
        raise InvalidTimezoneError(f"Not a time zone: {value!r}")
    if isinstance(value, int):
        return fixed_offset_name(value * 3600)
    if isinstance(value, float):
        warnings.warn(
            f"Float hour offset {value!r} is imprecise, pass an int or an "
            "offset string instead",
            DeprecationWarning,
            stacklevel=2,
        )
        return fixed_offset_name(round(value * 3600))
    if isinstance(value, str):
        if not value:
            raise InvalidTimezoneError("Empty time zone name")
        return _canonicalize_string(value, database)
    if isinstance(value, timezone):
        return fixed_offset_name(int(value.utcoffset(None).total_seconds()))
    if isinstance(value, tzinfo):
        key = getattr(value, "key", None)
        if isinstance(key, str):
            return _canonicalize_string(key, database)
    raise InvalidTimezoneError(f"Not a time zone: {value!r}")
