import logging
import os
import threading
from collections.abc import Iterator, Mapping, Sequence

from .errors import InvalidTimezoneError, TimezoneError
from .posix import PosixTimezone

logger = logging.getLogger(__name__)

_CLOCK_KEYS = ("ZONE", "TIMEZONE", "TZ")


def _zone_from_path(path: str) -> str | None:
    """The zone key of a path inside a zoneinfo tree, if it is one."""
    head, sep, key = path.replace(os.sep, "/").rpartition("zoneinfo/")
    if not sep or not key:
        return None
    for prefix in ("posix/", "right/"):
        if key.startswith(prefix):
            key = key[len(prefix):]
    return key


def _read_lines(path: str) -> list[str]:
    try:
        with open(path, encoding="utf-8") as file:
            return file.read().splitlines()
    except (OSError, UnicodeDecodeError):
        return []


class LocalZoneDetector:
    """
    Finds the host's zone name from ``TZ``, ``/etc/timezone``, the clock
    files used by some distributions, then the ``/etc/localtime`` link. The
    first candidate the database knows (or that parses as a POSIX rule) wins,
    and the answer is memoized.
    """

    def __init__(
        self,
        database=None,
        *,
        environ: Mapping[str, str] | None = None,
        etc_timezone: str = "/etc/timezone",
        clock_files: Sequence[str] = ("/etc/sysconfig/clock", "/etc/conf.d/clock"),
        localtime: str = "/etc/localtime",
    ) -> None:
        self._database = database
        self._environ = environ
        self._etc_timezone = etc_timezone
        self._clock_files = tuple(clock_files)
        self._localtime = localtime
        self._zone: str | None = None
        self._lock = threading.Lock()

    def detect(self) -> str:
        with self._lock:
            if self._zone is None:
                self._zone = self._probe()
            return self._zone

    def override(self, zone: str | None) -> None:
        """Replace the memoized zone; None forces a new probe."""
        with self._lock:
            self._zone = zone

    def _probe(self) -> str:
        for source, candidate in self._candidates():
            zone = self._accept(candidate)
            if zone is not None:
                logger.debug("Local zone %s detected from %s", zone, source)
                return zone
            logger.debug("Ignoring local zone candidate %r from %s", candidate, source)
        raise InvalidTimezoneError("Could not detect the local time zone")

    def _candidates(self) -> Iterator[tuple[str, str]]:
        environ = os.environ if self._environ is None else self._environ
        tz = environ.get("TZ")
        if tz:
            if tz.startswith(":"):
                tz = tz[1:]
                if os.path.isabs(tz):
                    tz = _zone_from_path(os.path.realpath(tz)) or ""
            if tz:
                yield "TZ", tz

        for line in _read_lines(self._etc_timezone):
            line = line.strip()
            if line and not line.startswith("#"):
                yield self._etc_timezone, line
                break

        for clock_file in self._clock_files:
            for line in _read_lines(clock_file):
                key, sep, value = line.strip().partition("=")
                if sep and key.strip() in _CLOCK_KEYS:
                    value = value.strip().strip("\"'")
                    if value:
                        yield clock_file, value

        if os.path.islink(self._localtime):
            zone = _zone_from_path(os.path.realpath(self._localtime))
            if zone:
                yield self._localtime, zone

    def _accept(self, candidate: str) -> str | None:
        name = candidate.strip().replace(" ", "_")
        if not name:
            return None
        if self._database is None:
            return name
        if self._database.zone_exists(name):
            return name
        try:
            PosixTimezone.parse(name)
        except TimezoneError:
            return None
        return name
