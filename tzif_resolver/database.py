import logging
import os
import sysconfig
import threading
from bisect import bisect_right
from collections.abc import Iterator, Sequence
from datetime import MAXYEAR, MINYEAR, datetime
from importlib import resources
from itertools import chain, islice
from typing import IO, NamedTuple, Protocol

from .errors import CouldNotResolveTimezoneError, InvalidTimezoneError
from .models import (
    SECONDS_PER_DAY,
    Mode,
    PeriodRecord,
    point_to_seconds,
    seconds_to_datetime,
)
from .posix import PosixTimezone
from .tzif_body import TZifBody
from .tzif_header import TZIF_MAGIC, TZifHeader

logger = logging.getLogger(__name__)


class ZoneDatabase(Protocol):
    """
    A source of zone periods. `point` is either seconds since the epoch or a
    datetime, read as UTC or as wall-clock fields depending on `mode`.
    """

    def zone_exists(self, name: str) -> bool: ...

    def periods_for(
        self, name: str, point: int | datetime, mode: Mode
    ) -> list[PeriodRecord]: ...

    def canonical_zone_names(self) -> list[str]: ...


class _TimeType(NamedTuple):
    total_offset: int
    dst_difference: int
    abbreviation: str


def _year_of(seconds: int) -> int:
    try:
        return seconds_to_datetime(seconds).year
    except OverflowError:
        return MAXYEAR if seconds > 0 else MINYEAR


class ZoneTimeline:
    """
    The periods of one zone: explicit TZif transitions, extended past the
    last one by the POSIX footer rule. Transitions that do not change the
    offsets or abbreviation are dropped, so every span is a maximal period.
    """

    def __init__(
        self,
        name: str,
        transitions: list[int],
        time_types: list[_TimeType],
        initial: _TimeType,
        footer: PosixTimezone | None = None,
    ) -> None:
        self.name = name
        self._transitions = transitions
        self._time_types = time_types
        self._initial = initial
        self._footer = footer if footer is not None and footer.has_dst_rules else None
        self._last = transitions[-1] if transitions else None
        self._footer_start_year = _year_of(self._last) if self._last is not None else MINYEAR
        if self._footer is not None:
            self._footer_std = _TimeType(footer.std_offset, 0, footer.std_abbr)
            self._footer_dst = _TimeType(
                footer.dst_offset, footer.dst_difference, footer.dst_abbr
            )

    @property
    def transitions(self) -> list[int]:
        return list(self._transitions)

    @classmethod
    def from_tzif(
        cls, name: str, body: TZifBody, footer: PosixTimezone | None = None
    ) -> "ZoneTimeline":
        initial_tt, initial_delta = body.initial_time_type()
        current = _TimeType(
            initial_tt.utc_offset_secs,
            initial_delta,
            body.get_abbrev_by_index(initial_tt.abbrev_index),
        )
        initial = current

        transitions: list[int] = []
        time_types: list[_TimeType] = []
        deltas = body.dst_differences()
        for i, transition_time in enumerate(body.transition_times):
            tt = body.time_type_at(i)
            time_type = _TimeType(
                tt.utc_offset_secs, deltas[i], body.get_abbrev_by_index(tt.abbrev_index)
            )
            if time_type == current:
                continue
            transitions.append(transition_time)
            time_types.append(time_type)
            current = time_type

        return cls(name, transitions, time_types, initial, footer)

    def at(self, seconds: int, mode: Mode) -> list[PeriodRecord]:
        """Periods containing `seconds`, read as UTC or as wall-clock time."""
        if mode is Mode.UTC:
            candidates = self.spans(seconds, seconds)
        else:
            # Offsets are bounded by a day, so a wall reading maps to a UTC
            # instant within a day of the same field values.
            candidates = self.spans(seconds - SECONDS_PER_DAY, seconds + SECONDS_PER_DAY)
        return [record for record in candidates if record.contains(seconds, mode)]

    def spans(self, lo: int, hi: int) -> list[PeriodRecord]:
        """All periods overlapping the UTC interval [lo, hi], in order."""
        start, current, upcoming = self._locate(lo)
        records = []
        for boundary, time_type in upcoming:
            if time_type == current:
                continue
            records.append(self._record(current, start, boundary))
            if boundary > hi:
                return records
            start, current = boundary, time_type
        records.append(self._record(current, start, None))
        return records

    def _locate(
        self, seconds: int
    ) -> tuple[int | None, _TimeType, Iterator[tuple[int, _TimeType]]]:
        """
        The start and type of the span containing `seconds`, plus the
        boundaries that follow it.
        """
        transitions = self._transitions
        if self._last is not None and seconds < self._last:
            i = bisect_right(transitions, seconds) - 1
            start = transitions[i] if i >= 0 else None
            current = self._time_types[i] if i >= 0 else self._initial
            upcoming = chain(
                zip(
                    islice(transitions, i + 1, None),
                    islice(self._time_types, i + 1, None),
                ),
                self._footer_boundaries(self._footer_start_year),
            )
            return start, current, upcoming

        year = _year_of(seconds) - 1
        if self._footer is not None and year > self._footer_start_year:
            # Start a year early; the first boundary seen fixes the type
            start, current, upcoming = self._scan_footer(seconds, year, None, None)
            if current is not None:
                return start, current, upcoming

        current = self._time_types[-1] if transitions else self._initial
        return self._scan_footer(seconds, self._footer_start_year, self._last, current)

    def _scan_footer(self, seconds, year, start, current):
        upcoming = self._footer_boundaries(year)
        for boundary, time_type in upcoming:
            if boundary > seconds:
                return start, current, chain([(boundary, time_type)], upcoming)
            if current is None or time_type != current:
                start, current = boundary, time_type
        return start, current, iter(())

    def _footer_boundaries(self, first_year: int) -> Iterator[tuple[int, _TimeType]]:
        if self._footer is None:
            return
        for year in range(first_year, MAXYEAR + 1):
            try:
                transitions = self._footer.transitions(year)
            except (OverflowError, ValueError):
                # Rule dates that fall outside the datetime range
                continue
            for boundary, is_dst in transitions:
                if self._last is not None and boundary <= self._last:
                    continue
                yield boundary, (self._footer_dst if is_dst else self._footer_std)

    @staticmethod
    def _record(
        time_type: _TimeType, start: int | None, end: int | None
    ) -> PeriodRecord:
        return PeriodRecord(
            time_type.total_offset - time_type.dst_difference,
            time_type.dst_difference,
            time_type.abbreviation,
            start,
            end,
        )


def compute_default_tzpath() -> tuple[str, ...]:
    env_var = os.environ.get("PYTHONTZPATH") or sysconfig.get_config_var("TZPATH")
    if env_var:
        return tuple(path for path in env_var.split(os.pathsep) if path)

    # Fallback paths align with CPython's defaults
    return (
        "/usr/share/zoneinfo",
        "/usr/share/lib/zoneinfo",
        "/etc/zoneinfo",
    )


def compute_search_path() -> tuple[str, ...]:
    search_paths: list[str] = []
    tzdir_override = os.environ.get("TZDIR")
    if tzdir_override:
        search_paths.append(os.path.realpath(tzdir_override))
    search_paths.extend(compute_default_tzpath())
    return tuple(search_paths)


def validate_timezone_key(key: str) -> str:
    if not key or os.path.isabs(key):
        raise InvalidTimezoneError(f"Invalid timezone name: {key!r}")

    # Normalize and ensure the normalized form does not change length (prevents ../)
    normalized = os.path.normpath(key)
    if len(normalized) != len(key) or normalized in (os.curdir, os.pardir, ""):
        raise InvalidTimezoneError(f"Invalid timezone name: {key!r}")

    # Ensure the path stays within a sentinel base
    _base = os.path.normpath(os.path.join("_", "_"))[:-1]
    resolved = os.path.normpath(os.path.join(_base, normalized))
    if not resolved.startswith(_base):
        raise InvalidTimezoneError(f"Invalid timezone name: {key!r}")

    return normalized


def read_timeline(file: IO[bytes], timezone_name: str) -> ZoneTimeline:
    header = TZifHeader.read(file)
    if header.version < 2:
        body = TZifBody.read(file, header)
        return ZoneTimeline.from_tzif(timezone_name, body)

    # The version 1 block is superseded by the 64-bit block that follows it
    file.read(header.data_block_size(1))
    v2_header = TZifHeader.read(file)
    v2_body = TZifBody.read(file, v2_header, v2_header.version)
    footer = PosixTimezone.read(file)
    return ZoneTimeline.from_tzif(timezone_name, v2_body, footer)


def _is_tzif_file(path: str) -> bool:
    try:
        with open(path, "rb") as file:
            return file.read(4) == TZIF_MAGIC
    except OSError:
        return False


class TZifDatabase:
    """
    Zone database backed by compiled TZif files: `TZDIR`, then the
    `PYTHONTZPATH`/`TZPATH` search path, then the `tzdata` package.
    Each zone is read at most once and shared read-only afterwards.
    """

    def __init__(
        self, search_path: Sequence[str] | None = None, *, use_tzdata: bool = True
    ) -> None:
        self.search_path = (
            tuple(search_path) if search_path is not None else compute_search_path()
        )
        self.use_tzdata = use_tzdata
        self._timelines: dict[str, ZoneTimeline | None] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"TZifDatabase(search_path={self.search_path!r}, "
            f"use_tzdata={self.use_tzdata!r})"
        )

    def timeline(self, name: str) -> ZoneTimeline:
        key = validate_timezone_key(name)
        with self._lock:
            if key not in self._timelines:
                self._timelines[key] = self._load(key)
            timeline = self._timelines[key]
        if timeline is None:
            raise FileNotFoundError(f"No time zone found with key {name!r}")
        return timeline

    def zone_exists(self, name: str) -> bool:
        try:
            self.timeline(name)
        except (FileNotFoundError, InvalidTimezoneError):
            return False
        return True

    def periods_for(
        self, name: str, point: int | datetime, mode: Mode
    ) -> list[PeriodRecord]:
        seconds = point_to_seconds(point, mode)
        return self.timeline(name).at(seconds, mode)

    def canonical_zone_names(self) -> list[str]:
        if self.use_tzdata:
            try:
                zones = resources.files("tzdata").joinpath("zones").read_text("utf-8")
            except (ImportError, FileNotFoundError):
                logger.debug("tzdata is not installed, scanning %s", self.search_path)
            else:
                return sorted(line.strip() for line in zones.splitlines() if line.strip())

        names: set[str] = set()
        for tz_root in self.search_path:
            if not os.path.isdir(tz_root):
                continue
            for root, dirnames, filenames in os.walk(tz_root):
                if root == tz_root:
                    # Duplicates of the whole tree, plus leap-second variants
                    dirnames[:] = [d for d in dirnames if d not in ("posix", "right")]
                for filename in filenames:
                    path = os.path.join(root, filename)
                    key = os.path.relpath(path, tz_root).replace(os.sep, "/")
                    if key in ("posixrules", "localtime") or not _is_tzif_file(path):
                        continue
                    names.add(key)
        return sorted(names)

    def _load(self, key: str) -> ZoneTimeline | None:
        try:
            for tz_root in self.search_path:
                candidate = os.path.join(tz_root, key)
                if os.path.isfile(candidate) and _is_tzif_file(candidate):
                    real = os.path.realpath(candidate)
                    logger.debug("Loading zone %s from %s", key, real)
                    with open(real, "rb") as file:
                        return read_timeline(file, key)

            if self.use_tzdata:
                try:
                    file = self._load_tzdata_from_package(key)
                except FileNotFoundError:
                    pass
                else:
                    logger.debug("Loading zone %s from the tzdata package", key)
                    with file as f:
                        return read_timeline(f, key)
        except ValueError as exc:
            raise CouldNotResolveTimezoneError(
                f"Zone data for {key!r} is corrupt: {exc}"
            ) from exc

        logger.debug("Zone %s not found in %s", key, self.search_path)
        return None

    @staticmethod
    def _load_tzdata_from_package(key: str) -> IO[bytes]:
        components = key.split("/")
        package_name = ".".join(["tzdata.zoneinfo"] + components[:-1])
        resource_name = components[-1]
        try:
            file = resources.files(package_name).joinpath(resource_name).open("rb")
        except (ImportError, OSError, ValueError) as exc:
            raise FileNotFoundError(f"No time zone found with key {key!r}") from exc
        if file.read(4) != TZIF_MAGIC:
            file.close()
            raise FileNotFoundError(f"No time zone found with key {key!r}")
        file.seek(0)
        return file
