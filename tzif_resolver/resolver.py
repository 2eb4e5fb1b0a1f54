import logging
import time
from datetime import datetime

from .database import ZoneDatabase
from .errors import (
    CouldNotResolveTimezoneError,
    InvalidTimezoneError,
    TimezoneError,
)
from .models import (
    SECONDS_PER_DAY,
    Fold,
    Gap,
    Mode,
    Period,
    PeriodRecord,
    point_to_seconds,
)
from .names import fixed_abbreviation, parse_fixed_offset_name
from .posix import PosixTimezone

logger = logging.getLogger(__name__)

# Upper bound on periods walked while bracketing a gap
_GAP_SEARCH_STEPS = 8


def _period_fields(period: Period | None) -> dict | None:
    if period is None:
        return None
    return {
        "utc_offset": period.offset_utc,
        "std_offset": period.offset_std,
        "zone_abbr": period.abbreviation,
        "time_zone": period.full_name,
    }


class PeriodResolver:
    """
    Resolves a zone and a point in time to the Period in force, or to the
    Gap or Fold a wall-clock reading falls into.
    """

    def __init__(self, database: ZoneDatabase, local_detector=None) -> None:
        self._database = database
        self._local_detector = local_detector

    @property
    def database(self) -> ZoneDatabase:
        return self._database

    def resolve(
        self,
        zone_name: str,
        point: int | datetime,
        mode: Mode = Mode.WALL,
        *,
        instant: int | datetime | None = None,
        custom: PosixTimezone | None = None,
    ) -> Period | Fold | Gap:
        """
        Resolve `zone_name` at `point`, read as UTC or as wall-clock fields
        depending on `mode`.

        A wall-clock reading that occurs twice is a Fold unless `instant`,
        the absolute time the reading stands for, picks one of the two
        periods. A reading that never occurs is a Gap. `custom` resolves
        against the given POSIX rule instead of any database.
        """
        seconds = point_to_seconds(point, mode)
        instant_seconds = (
            point_to_seconds(instant, Mode.UTC) if instant is not None else None
        )

        if custom is not None:
            return self._resolve_posix(custom, seconds, mode, instant_seconds)

        offset = parse_fixed_offset_name(zone_name)
        if offset is not None:
            return Period(zone_name, fixed_abbreviation(offset), offset, 0)

        if not self._database.zone_exists(zone_name):
            try:
                rule = PosixTimezone.parse(zone_name)
            except TimezoneError as exc:
                raise InvalidTimezoneError(f"Unknown time zone: {zone_name!r}") from exc
            return self._resolve_posix(rule, seconds, mode, instant_seconds)

        records = self._database.periods_for(zone_name, seconds, mode)
        if len(records) == 1:
            return Period.from_record(zone_name, records[0])
        if not records:
            if mode is Mode.UTC:
                raise CouldNotResolveTimezoneError(
                    f"No period of {zone_name!r} contains UTC second {seconds}"
                )
            return self._gap(zone_name, seconds)
        if len(records) == 2:
            return self._disambiguate(zone_name, records, instant_seconds)
        raise CouldNotResolveTimezoneError(
            f"{len(records)} periods of {zone_name!r} overlap at {seconds}"
        )

    def period_for(
        self,
        zone_name: str,
        point: int | datetime,
        mode: Mode = Mode.WALL,
        *,
        instant: int | datetime | None = None,
        custom: PosixTimezone | None = None,
    ) -> dict:
        resolved = self.resolve(zone_name, point, mode, instant=instant, custom=custom)
        if isinstance(resolved, Period):
            return _period_fields(resolved)
        return {
            "ambiguous": "fold" if isinstance(resolved, Fold) else "gap",
            "before": _period_fields(resolved.before),
            "after": _period_fields(resolved.after),
        }

    def local(
        self, point: int | datetime | None = None, mode: Mode = Mode.UTC
    ) -> Period | Fold | Gap:
        """Resolve the local zone, at the current time by default."""
        if self._local_detector is None:
            raise InvalidTimezoneError("No local zone detector configured")
        zone_name = self._local_detector.detect()
        if point is None:
            point, mode = int(time.time()), Mode.UTC
        return self.resolve(zone_name, point, mode)

    def _resolve_posix(
        self,
        rule: PosixTimezone,
        seconds: int,
        mode: Mode,
        instant: int | None,
    ) -> Period:
        if mode is Mode.WALL and instant is not None:
            # Prefer the reading of the instant when it lands on these fields
            period = rule.period_at(instant, Mode.UTC)
            if seconds - period.total_offset == instant:
                return period
        return rule.period_at(seconds, mode)

    def _disambiguate(
        self, zone_name: str, records: list[PeriodRecord], instant: int | None
    ) -> Period | Fold:
        before, after = sorted(
            records,
            key=lambda r: r.valid_from if r.valid_from is not None else -(2**63),
        )
        if instant is not None:
            utc_records = self._database.periods_for(zone_name, instant, Mode.UTC)
            if len(utc_records) == 1 and utc_records[0] in records:
                return Period.from_record(zone_name, utc_records[0])
        return Fold(
            Period.from_record(zone_name, before), Period.from_record(zone_name, after)
        )

    def _gap(self, zone_name: str, seconds: int) -> Gap:
        """
        Bracket the skipped wall-clock interval containing `seconds` by
        walking the zone's periods forward from a day earlier.
        """
        before = after = None
        probe = seconds - SECONDS_PER_DAY
        for _ in range(_GAP_SEARCH_STEPS):
            found = self._database.periods_for(zone_name, probe, Mode.UTC)
            if len(found) != 1:
                break
            record = found[0]
            if record.wall_from is not None and record.wall_from > seconds:
                after = record
                break
            before = record
            if record.valid_until is None:
                break
            probe = record.valid_until

        logger.debug("Wall second %s of %s falls in a gap", seconds, zone_name)
        return Gap(
            Period.from_record(zone_name, before) if before is not None else None,
            Period.from_record(zone_name, after) if after is not None else None,
        )
