from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from .errors import CouldNotResolveTimezoneError, InvalidDatetimeError
from .models import (
    Fold,
    Gap,
    Mode,
    Period,
    Unbounded,
    datetime_to_seconds,
    seconds_to_datetime,
)
from .names import canonicalize

_ONE_MICROSECOND = timedelta(microseconds=1)


@dataclass(frozen=True)
class ZonedDateTime:
    """
    Naive wall-clock fields paired with the Period they are read in.
    """

    wall: datetime
    period: Period

    def __post_init__(self) -> None:
        if not isinstance(self.wall, datetime) or self.wall.tzinfo is not None:
            raise InvalidDatetimeError(
                f"ZonedDateTime needs naive wall-clock fields, got {self.wall!r}"
            )

    def zone_name(self) -> str:
        return self.period.full_name

    def to_absolute_seconds(self) -> int:
        return datetime_to_seconds(self.wall) - self.period.total_offset

    def to_civil_fields(self) -> datetime:
        return self.wall

    def to_utc(self) -> datetime:
        return (self.wall - self.period.utcoffset()).replace(tzinfo=timezone.utc)

    def to_datetime(self) -> datetime:
        """An aware datetime carrying this period's fixed offset."""
        return self.wall.replace(
            tzinfo=timezone(self.period.utcoffset(), self.period.abbreviation)
        )


class AmbiguityKind(Enum):
    GAP = "gap"
    FOLD = "fold"


@dataclass(frozen=True)
class AmbiguousDateTime:
    """
    A wall-clock reading with no single meaning. For a fold both sides carry
    the same fields. For a gap `before` is the last microsecond before the
    transition and `after` the transition itself.
    """

    before: ZonedDateTime
    after: ZonedDateTime
    kind: AmbiguityKind

    @classmethod
    def from_fold(cls, wall: datetime, fold: Fold) -> "AmbiguousDateTime":
        return cls(
            ZonedDateTime(wall, fold.before),
            ZonedDateTime(wall, fold.after),
            AmbiguityKind.FOLD,
        )

    @classmethod
    def from_gap(cls, gap: Gap) -> "AmbiguousDateTime":
        if gap.before is None or gap.after is None or gap.after.valid_from is Unbounded.MIN:
            raise CouldNotResolveTimezoneError(f"Cannot bracket gap: {gap!r}")
        transition = gap.after.valid_from.at
        return cls(
            ZonedDateTime(
                transition + gap.before.utcoffset() - _ONE_MICROSECOND, gap.before
            ),
            ZonedDateTime(transition + gap.after.utcoffset(), gap.after),
            AmbiguityKind.GAP,
        )

    def side_at(self, instant: int | datetime) -> ZonedDateTime | None:
        """The side standing for `instant`, if either does."""
        if isinstance(instant, datetime):
            if instant.tzinfo is None:
                raise InvalidDatetimeError(f"Expected an aware datetime, got {instant!r}")
            instant = datetime_to_seconds(instant)
        for side in (self.before, self.after):
            if side.to_absolute_seconds() == instant:
                return side
        return None


Moment = ZonedDateTime | datetime


def zoned_from_instant(
    resolver, value: int | datetime, zone_name: str, *, custom=None
) -> ZonedDateTime:
    """The unambiguous reading of an absolute instant in `zone_name`."""
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            raise InvalidDatetimeError(f"Expected an aware datetime, got {value!r}")
        utc = value.astimezone(timezone.utc).replace(tzinfo=None)
    elif isinstance(value, int) and not isinstance(value, bool):
        try:
            utc = seconds_to_datetime(value)
        except OverflowError as exc:
            raise InvalidDatetimeError(f"Instant out of range: {value}") from exc
    else:
        raise InvalidDatetimeError(f"Not an instant: {value!r}")

    period = resolver.resolve(zone_name, utc, Mode.UTC, custom=custom)
    return ZonedDateTime(utc + period.utcoffset(), period)


def as_zoned(moment: Moment, resolver) -> ZonedDateTime:
    """Normalize a ZonedDateTime or an aware datetime to a ZonedDateTime."""
    if isinstance(moment, ZonedDateTime):
        return moment
    if isinstance(moment, datetime) and moment.tzinfo is not None:
        zone_name = canonicalize(moment.tzinfo, database=resolver.database)
        return zoned_from_instant(resolver, moment, zone_name)
    raise InvalidDatetimeError(
        f"Expected a ZonedDateTime or an aware datetime, got {moment!r}"
    )
