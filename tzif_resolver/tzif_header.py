import struct
from dataclasses import dataclass
from typing import IO

# Big endian: magic, version byte, 15 reserved bytes, six unsigned counts
_HEADER_FORMAT = ">4s1c15x6I"
_HEADER_SIZE = struct.calcsize(_HEADER_FORMAT)

TZIF_MAGIC = b"TZif"


@dataclass
class TZifHeader:
    version: int
    is_utc_flag_count: int
    wall_standard_flag_count: int
    leap_second_transitions_count: int
    transitions_count: int
    local_time_type_count: int
    timezone_abbrev_byte_count: int

    def data_block_size(self, version: int = 1) -> int:
        """
        Size in bytes of the data block that follows this header. Version 1
        blocks use 32-bit times, version 2+ blocks 64-bit times.
        """
        time_size = 4 if version < 2 else 8
        return (
            self.transitions_count * time_size
            + self.transitions_count
            + self.local_time_type_count * 6
            + self.timezone_abbrev_byte_count
            + self.leap_second_transitions_count * (time_size + 4)
            + self.wall_standard_flag_count
            + self.is_utc_flag_count
        )

    def validate(self) -> None:
        # RFC 8536 section 3.1
        if self.local_time_type_count == 0:
            raise ValueError("Invalid TZif file: no local time types.")
        if self.timezone_abbrev_byte_count == 0:
            raise ValueError("Invalid TZif file: no time zone designations.")
        for name, count in (
            ("UT/local", self.is_utc_flag_count),
            ("standard/wall", self.wall_standard_flag_count),
        ):
            if count not in (0, self.local_time_type_count):
                raise ValueError(
                    f"Invalid TZif file: {name} indicator count {count} does not "
                    f"match {self.local_time_type_count} local time types."
                )

    @classmethod
    def read(cls, file: IO[bytes]) -> "TZifHeader":
        data = file.read(_HEADER_SIZE)
        if len(data) < _HEADER_SIZE:
            raise ValueError("Invalid TZif file: truncated header.")
        (
            magic,
            version_byte,
            is_utc_flag_count,
            wall_standard_flag_count,
            leap_second_count,
            transitions_count,
            local_time_type_count,
            timezone_abbrev_byte_count,
        ) = struct.unpack(_HEADER_FORMAT, data)

        if magic != TZIF_MAGIC:
            raise ValueError("Invalid TZif file: Magic sequence not found.")

        if version_byte == b"\x00":
            version = 1
        elif version_byte in (b"2", b"3", b"4"):
            version = int(version_byte.decode("ascii"))
        else:
            raise ValueError(f"Unsupported TZif version: {version_byte!r}")

        header = cls(
            version,
            is_utc_flag_count,
            wall_standard_flag_count,
            leap_second_count,
            transitions_count,
            local_time_type_count,
            timezone_abbrev_byte_count,
        )
        header.validate()
        return header
