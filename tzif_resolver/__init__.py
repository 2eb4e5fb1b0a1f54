import threading
from datetime import datetime

from .converter import MAX_ITERATIONS, ZoneConverter
from .database import TZifDatabase, ZoneDatabase, ZoneTimeline
from .errors import (
    ConversionError,
    CouldNotResolveTimezoneError,
    InvalidDatetimeError,
    InvalidOffsetError,
    InvalidPeriodError,
    InvalidTimezoneError,
    TimezoneError,
)
from .local import LocalZoneDetector
from .models import (
    Bound,
    Fold,
    Gap,
    Mode,
    Period,
    PeriodRecord,
    Unbounded,
    Weekday,
)
from .names import canonicalize as _canonicalize
from .names import fixed_offset_name, parse_offset
from .posix import Julian, JulianLeap, MonthWeekDay, PosixRule, PosixTimezone
from .provider import ZoneTzInfo
from .resolver import PeriodResolver
from .zoned import AmbiguityKind, AmbiguousDateTime, Moment, ZonedDateTime

__all__ = [
    "MAX_ITERATIONS",
    "AmbiguityKind",
    "AmbiguousDateTime",
    "Bound",
    "ConversionError",
    "CouldNotResolveTimezoneError",
    "Fold",
    "Gap",
    "InvalidDatetimeError",
    "InvalidOffsetError",
    "InvalidPeriodError",
    "InvalidTimezoneError",
    "Julian",
    "JulianLeap",
    "LocalZoneDetector",
    "Mode",
    "Moment",
    "MonthWeekDay",
    "Period",
    "PeriodRecord",
    "PeriodResolver",
    "PosixRule",
    "PosixTimezone",
    "TZifDatabase",
    "TimezoneError",
    "Unbounded",
    "Weekday",
    "ZoneConverter",
    "ZoneDatabase",
    "ZoneTimeline",
    "ZoneTzInfo",
    "ZonedDateTime",
    "canonicalize",
    "convert",
    "default_resolver",
    "fixed_offset_name",
    "get_zone",
    "parse_offset",
    "resolve",
]

_default_resolver: PeriodResolver | None = None
_default_lock = threading.Lock()


def default_resolver() -> PeriodResolver:
    """The shared resolver over the system zone database, built on first use."""
    global _default_resolver
    with _default_lock:
        if _default_resolver is None:
            database = TZifDatabase()
            _default_resolver = PeriodResolver(database, LocalZoneDetector(database))
        return _default_resolver


def canonicalize(value) -> str:
    return _canonicalize(value, database=default_resolver().database)


def resolve(
    zone, point: int | datetime, mode: Mode = Mode.WALL
) -> Period | Fold | Gap:
    return default_resolver().resolve(canonicalize(zone), point, mode)


def convert(moment: Moment, zone) -> ZonedDateTime | AmbiguousDateTime:
    return ZoneConverter(default_resolver()).convert(moment, canonicalize(zone))


def get_zone(zone) -> ZoneTzInfo:
    return ZoneTzInfo(canonicalize(zone), default_resolver())
