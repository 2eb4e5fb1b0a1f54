from datetime import datetime, timedelta, tzinfo

from .errors import CouldNotResolveTimezoneError
from .models import Fold, Mode, Period
from .posix import PosixTimezone
from .resolver import PeriodResolver


class ZoneTzInfo(tzinfo):
    """
    A `datetime.tzinfo` backed by a PeriodResolver.

    Follows PEP 495: for a wall time in a fold or a gap, ``fold=0`` reads it
    in the period before the transition and ``fold=1`` in the one after.
    """

    def __init__(
        self,
        key: str,
        resolver: PeriodResolver,
        *,
        custom: PosixTimezone | None = None,
    ) -> None:
        self.key = key
        self._resolver = resolver
        self._custom = custom

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(key={self.key!r})"

    def __str__(self) -> str:
        return self.key

    def period(self, dt: datetime) -> Period:
        wall = dt.replace(tzinfo=None, fold=0)
        resolved = self._resolver.resolve(
            self.key, wall, Mode.WALL, custom=self._custom
        )
        if isinstance(resolved, Period):
            return resolved
        if isinstance(resolved, Fold):
            return resolved.after if dt.fold else resolved.before

        chosen = resolved.after if dt.fold else resolved.before
        if chosen is None:
            chosen = resolved.before if dt.fold else resolved.after
        if chosen is None:
            raise CouldNotResolveTimezoneError(
                f"Cannot bracket the gap at {wall.isoformat()} in {self.key!r}"
            )
        return chosen

    def utcoffset(self, dt: datetime | None) -> timedelta | None:
        if dt is None:
            return None
        return self.period(dt).utcoffset()

    def dst(self, dt: datetime | None) -> timedelta | None:
        if dt is None:
            return None
        return self.period(dt).dst()

    def tzname(self, dt: datetime | None) -> str | None:
        if dt is None:
            return None
        return self.period(dt).abbreviation

    def fromutc(self, dt: datetime) -> datetime:
        if not isinstance(dt, datetime):
            raise TypeError("fromutc() requires a datetime argument")
        if dt.tzinfo is not self:
            raise ValueError("dt.tzinfo is not self")

        utc = dt.replace(tzinfo=None)
        period = self._resolver.resolve(self.key, utc, Mode.UTC, custom=self._custom)
        wall = utc + period.utcoffset()
        resolved = self._resolver.resolve(
            self.key, wall, Mode.WALL, custom=self._custom
        )
        fold = int(isinstance(resolved, Fold) and resolved.after == period)
        return wall.replace(tzinfo=self, fold=fold)
