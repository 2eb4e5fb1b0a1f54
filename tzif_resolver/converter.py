import logging
from datetime import datetime, timedelta

from .errors import ConversionError, InvalidDatetimeError
from .models import Fold, Gap, Mode, Period
from .posix import PosixTimezone
from .resolver import PeriodResolver
from .zoned import (
    AmbiguousDateTime,
    Moment,
    ZonedDateTime,
    as_zoned,
    zoned_from_instant,
)

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 4


class ZoneConverter:
    def __init__(self, resolver: PeriodResolver) -> None:
        self._resolver = resolver

    @property
    def resolver(self) -> PeriodResolver:
        return self._resolver

    def convert(
        self,
        moment: Moment,
        target_zone: str,
        *,
        custom: PosixTimezone | None = None,
    ) -> ZonedDateTime | AmbiguousDateTime:
        """
        Express `moment` in `target_zone`, keeping the absolute instant.

        The target offset is guessed at the source instant, the source fields
        are shifted by the offset difference and the result is re-resolved
        until the offset is stable. Fields that occur twice in the target zone
        come back as an AmbiguousDateTime; `side_at` on it picks the reading
        of the original instant.
        """
        source = as_zoned(moment, self._resolver)
        if custom is None and source.zone_name() == target_zone:
            return source

        instant = source.to_absolute_seconds()
        guess = self._resolver.resolve(target_zone, instant, Mode.UTC, custom=custom)
        candidate = source.wall + timedelta(
            seconds=guess.total_offset - source.period.total_offset
        )

        for iteration in range(MAX_ITERATIONS):
            resolved = self._resolver.resolve(
                target_zone, candidate, Mode.WALL, instant=instant, custom=custom
            )
            if isinstance(resolved, Fold):
                return AmbiguousDateTime.from_fold(candidate, resolved)
            if isinstance(resolved, Gap):
                raise ConversionError(
                    f"Converting {source!r} to {target_zone!r} landed in a gap at "
                    f"{candidate.isoformat()}"
                )
            if resolved.total_offset == guess.total_offset:
                return self._settle(target_zone, candidate, resolved, custom)

            logger.debug(
                "Offset of %s moved from %s to %s on iteration %d",
                target_zone,
                guess.total_offset,
                resolved.total_offset,
                iteration,
            )
            candidate += timedelta(seconds=resolved.total_offset - guess.total_offset)
            guess = resolved

        raise ConversionError(
            f"Converting {source!r} to {target_zone!r} did not converge in "
            f"{MAX_ITERATIONS} iterations"
        )

    def _settle(
        self,
        target_zone: str,
        candidate: datetime,
        period: Period,
        custom: PosixTimezone | None,
    ) -> ZonedDateTime | AmbiguousDateTime:
        # The converged fields may still be read twice in the target zone
        resolved = self._resolver.resolve(
            target_zone, candidate, Mode.WALL, custom=custom
        )
        if isinstance(resolved, Fold):
            return AmbiguousDateTime.from_fold(candidate, resolved)
        return ZonedDateTime(candidate, period)

    def at(
        self,
        civil: datetime,
        zone_name: str,
        *,
        custom: PosixTimezone | None = None,
    ) -> ZonedDateTime | AmbiguousDateTime:
        """Read naive wall-clock fields in `zone_name`."""
        if not isinstance(civil, datetime) or civil.tzinfo is not None:
            raise InvalidDatetimeError(f"Expected naive wall-clock fields, got {civil!r}")
        resolved = self._resolver.resolve(zone_name, civil, Mode.WALL, custom=custom)
        if isinstance(resolved, Period):
            return ZonedDateTime(civil, resolved)
        if isinstance(resolved, Fold):
            return AmbiguousDateTime.from_fold(civil, resolved)
        return AmbiguousDateTime.from_gap(resolved)

    def from_instant(
        self,
        value: int | datetime,
        zone_name: str,
        *,
        custom: PosixTimezone | None = None,
    ) -> ZonedDateTime:
        return zoned_from_instant(self._resolver, value, zone_name, custom=custom)
