import struct
from datetime import datetime, timezone

import pytest

from tzif_resolver import PeriodResolver, TZifDatabase, ZoneConverter


def utc_seconds(*fields) -> int:
    return int(datetime(*fields, tzinfo=timezone.utc).timestamp())


def build_tzif(
    transitions: list[int],
    type_indices: list[int],
    ttinfos: list[tuple[int, bool, int]],
    abbrevs: str,
    footer: str = "",
    version: bytes = b"2",
    leap_count: int = 0,
) -> bytes:
    """
    Assemble a TZif file. For version 2+ the 32-bit block carries the same
    types with no transitions, followed by the 64-bit block and the footer.
    """
    abbrev_bytes = abbrevs.encode("ascii")

    def header(v: bytes, timecnt: int) -> bytes:
        return struct.pack(
            ">4s1c15x6I",
            b"TZif",
            v,
            len(ttinfos),
            len(ttinfos),
            leap_count,
            timecnt,
            len(ttinfos),
            len(abbrev_bytes),
        )

    def block(time_fmt: str, times: list[int]) -> bytes:
        data = struct.pack(f">{len(times)}{time_fmt}", *times)
        data += bytes(type_indices if times else [])
        for ttinfo in ttinfos:
            data += struct.pack(">i?B", *ttinfo)
        data += abbrev_bytes
        for i in range(leap_count):
            data += struct.pack(f">{time_fmt}i", 78796800 + i, i + 1)
        data += bytes(len(ttinfos)) * 2
        return data

    if version == b"\x00":
        return header(version, len(transitions)) + block("i", transitions)

    out = header(version, 0) + block("i", [])
    out += header(version, len(transitions)) + block("q", transitions)
    out += b"\n" + footer.encode("ascii") + b"\n"
    return out


# A small New York-like zone: EST/EDT with explicit 2020 transitions and
# the US rule in the footer.
EASTERN_TRANSITIONS = [utc_seconds(2020, 3, 8, 7), utc_seconds(2020, 11, 1, 6)]
EASTERN_TTINFOS = [(-18000, False, 0), (-14400, True, 4)]
EASTERN_ABBREVS = "EST\x00EDT\x00"
EASTERN_FOOTER = "EST5EDT,M3.2.0,M11.1.0"


@pytest.fixture
def eastern_tzif() -> bytes:
    return build_tzif(
        EASTERN_TRANSITIONS, [1, 0], EASTERN_TTINFOS, EASTERN_ABBREVS, EASTERN_FOOTER
    )


@pytest.fixture
def zone_dir(tmp_path, eastern_tzif):
    (tmp_path / "Test").mkdir()
    (tmp_path / "Test" / "Eastern").write_bytes(eastern_tzif)
    (tmp_path / "Test" / "README").write_text("not a zone file")
    return tmp_path


@pytest.fixture(scope="session")
def database() -> TZifDatabase:
    return TZifDatabase()


@pytest.fixture(scope="session")
def resolver(database) -> PeriodResolver:
    return PeriodResolver(database)


@pytest.fixture(scope="session")
def converter(resolver) -> ZoneConverter:
    return ZoneConverter(resolver)
