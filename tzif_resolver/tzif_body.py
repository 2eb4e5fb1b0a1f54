import struct
from typing import IO

from .models import TimeTypeInfo
from .tzif_header import TZifHeader

# Fallback DST delta when no neighbouring standard-time type is available
_DEFAULT_DST_DIFFERENCE = 3600


class TZifBody:
    """
    The data block of a TZif file. Transition times are kept as integer
    seconds since the epoch so that far past/future values never overflow.
    Leap second records are skipped: leap seconds are not supported.
    """

    def __init__(
        self,
        transition_times: list[int],
        time_type_infos: list[TimeTypeInfo],
        time_type_indices: list[int],
        timezone_abbrevs: str,
    ) -> None:
        self.transition_times = transition_times
        self.time_type_infos = time_type_infos
        self.time_type_indices = time_type_indices
        self._timezone_abbrevs = timezone_abbrevs

        for index in time_type_indices:
            if index >= len(time_type_infos):
                raise ValueError(
                    f"Invalid TZif file: time type index {index} out of range."
                )

    def get_abbrev_by_index(self, index: int) -> str:
        if index < 0 or index >= len(self._timezone_abbrevs):
            raise IndexError("Index out of range")
        return self._timezone_abbrevs[index:].partition("\x00")[0]

    def time_type_at(self, transition_index: int) -> TimeTypeInfo:
        return self.time_type_infos[self.time_type_indices[transition_index]]

    def initial_time_type(self) -> tuple[TimeTypeInfo, int]:
        """
        The type in force before the first transition and its DST delta:
        the first standard type if present, otherwise the first type.
        """
        std = next((x for x in self.time_type_infos if not x.is_dst), None)
        tt = std if std is not None else self.time_type_infos[0]
        delta = (tt.utc_offset_secs - std.utc_offset_secs) if (tt.is_dst and std) else 0
        return tt, delta

    def dst_differences(self) -> list[int]:
        """
        DST delta for every transition. TZif only stores total offsets, so the
        delta of a DST type is measured against the nearest standard-time
        neighbour, previous transition first.
        """
        deltas: list[int] = []
        count = len(self.transition_times)
        for i in range(count):
            tt = self.time_type_at(i)
            if not tt.is_dst:
                deltas.append(0)
                continue

            delta = None
            if i > 0:
                prev_tt = self.time_type_at(i - 1)
                if not prev_tt.is_dst:
                    delta = tt.utc_offset_secs - prev_tt.utc_offset_secs
            if not delta and i + 1 < count:
                next_tt = self.time_type_at(i + 1)
                if not next_tt.is_dst:
                    delta = tt.utc_offset_secs - next_tt.utc_offset_secs
            if not delta and i > 0 and self.time_type_at(i - 1).is_dst:
                # consecutive DST types (e.g. double summer time) share a base
                delta = deltas[i - 1] + (
                    tt.utc_offset_secs - self.time_type_at(i - 1).utc_offset_secs
                )
            deltas.append(delta or _DEFAULT_DST_DIFFERENCE)
        return deltas

    @classmethod
    def read(cls, file: IO[bytes], header_data: TZifHeader, version=1) -> "TZifBody":
        # Parse transition times
        transition_times = cls._read_transition_times(
            file, header_data.transitions_count, version
        )

        # Parse local time type indices
        time_type_indices = cls._read_time_type_indices(
            file, header_data.transitions_count
        )

        # Parse ttinfo structures
        time_type_infos = cls._read_ttinfo_structures(
            file, header_data.local_time_type_count
        )

        # Parse time zone designation strings
        timezone_abbrevs = cls._read_tz_designations(
            file, header_data.timezone_abbrev_byte_count
        )

        cls._skip_leap_seconds(
            file, header_data.leap_second_transitions_count, version
        )

        # Standard/wall and UT/local indicators only matter to zic
        cls._read_exact(
            file,
            header_data.wall_standard_flag_count + header_data.is_utc_flag_count,
        )

        return cls(
            transition_times,
            time_type_infos,
            time_type_indices,
            timezone_abbrevs,
        )

    @staticmethod
    def _read_exact(file: IO[bytes], size: int) -> bytes:
        data = file.read(size)
        if len(data) != size:
            raise ValueError("Invalid TZif file: unexpected end of data.")
        return data

    @classmethod
    def _read_transition_times(
        cls, file: IO[bytes], timecnt: int, version: int
    ) -> list[int]:
        fmt = f">{timecnt}q" if version >= 2 else f">{timecnt}i"
        raw = struct.unpack(fmt, cls._read_exact(file, struct.calcsize(fmt)))
        return list(raw)

    @classmethod
    def _read_time_type_indices(cls, file: IO[bytes], timecnt: int) -> list[int]:
        return list(cls._read_exact(file, timecnt))

    @classmethod
    def _read_ttinfo_structures(
        cls, file: IO[bytes], typecnt: int
    ) -> list[TimeTypeInfo]:
        ttinfo_format = (
            ">i?B"  # 4-byte signed integer, 1-byte boolean, 1-byte unsigned integer
        )
        ttinfo_size = struct.calcsize(ttinfo_format)
        return [
            TimeTypeInfo(
                *struct.unpack(ttinfo_format, cls._read_exact(file, ttinfo_size))
            )
            for _ in range(typecnt)
        ]

    @classmethod
    def _read_tz_designations(cls, file: IO[bytes], charcnt: int) -> str:
        return cls._read_exact(file, charcnt).decode("ascii")

    @classmethod
    def _skip_leap_seconds(cls, file: IO[bytes], count: int, version: int) -> None:
        # Each record is an occurrence time followed by a 4-byte correction
        record_size = (8 if version >= 2 else 4) + 4
        cls._read_exact(file, count * record_size)

    def __repr__(self) -> str:
        return (
            f"TZifBody(transition_times={self.transition_times!r}, "
            f"time_type_infos={self.time_type_infos!r}, "
            f"time_type_indices={self.time_type_indices!r}, "
            f"timezone_abbrevs={self._timezone_abbrevs!r})"
        )
