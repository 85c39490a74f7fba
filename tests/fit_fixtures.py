"""Byte-level builder for small FIT files used in tests."""

import struct
from datetime import datetime, timezone

from fitparse.records import Crc

FIT_EPOCH = datetime(1989, 12, 31, tzinfo=timezone.utc)

# Base type ids as written in definition messages, with struct format
UINT8 = 0x02
SINT8 = 0x01
ENUM = 0x00
UINT16 = 0x84
SINT32 = 0x85
UINT32 = 0x86

_FORMATS = {
    ENUM: ('B', 1),
    SINT8: ('b', 1),
    UINT8: ('B', 1),
    UINT16: ('H', 2),
    SINT32: ('i', 4),
    UINT32: ('I', 4),
}

# Field numbers of the record message (global 20)
RECORD_FIELDS = {
    'timestamp': (253, UINT32),
    'position_lat': (0, SINT32),
    'position_long': (1, SINT32),
    'altitude': (2, UINT16),
    'heart_rate': (3, UINT8),
    'cadence': (4, UINT8),
    'distance': (5, UINT32),
    'speed': (6, UINT16),
    'power': (7, UINT16),
    'temperature': (13, SINT8),
}

INVALID = {
    UINT8: 0xFF,
    SINT8: 0x7F,
    UINT16: 0xFFFF,
    SINT32: 0x7FFFFFFF,
    UINT32: 0xFFFFFFFF,
}


def fit_seconds(when: datetime) -> int:
    return int((when - FIT_EPOCH).total_seconds())


def degrees_to_semicircles(degrees: float) -> int:
    return int(round(degrees * (2 ** 31) / 180.0))


class FitFileBuilder:
    """Accumulates definition and data messages and frames them into a FIT file."""

    def __init__(self, header_size: int = 14):
        self.header_size = header_size
        self.body = bytearray()
        self.layouts = {}

    def define(self, local_type, global_num, fields, big_endian=False, developer_sizes=()):
        """Add a definition message; ``fields`` is a list of (field number, base type id)."""
        endian = '>' if big_endian else '<'
        header = 0x40 | local_type | (0x20 if developer_sizes else 0)
        self.body += bytes([header, 0, 1 if big_endian else 0])
        self.body += struct.pack(endian + 'H', global_num)
        self.body += bytes([len(fields)])
        for num, base_type in fields:
            self.body += bytes([num, _FORMATS[base_type][1], base_type])
        if developer_sizes:
            self.body += bytes([len(developer_sizes)])
            for index, size in enumerate(developer_sizes):
                self.body += bytes([index, size, 0])
        self.layouts[local_type] = (endian, [base_type for _, base_type in fields], sum(developer_sizes))
        return self

    def data(self, local_type, *values, time_offset=None):
        """Add a data message; ``None`` values are written as the invalid sentinel.

        With ``time_offset`` the message uses a compressed timestamp header.
        """
        endian, base_types, developer_size = self.layouts[local_type]
        if time_offset is None:
            self.body += bytes([local_type])
        else:
            self.body += bytes([0x80 | (local_type << 5) | (time_offset & 0x1F)])
        for base_type, value in zip(base_types, values):
            if value is None:
                value = INVALID.get(base_type, 0xFF)
            self.body += struct.pack(endian + _FORMATS[base_type][0], value)
        self.body += b'\x00' * developer_size
        return self

    def define_records(self, local_type, names, **kwargs):
        return self.define(local_type, 20, [RECORD_FIELDS[name] for name in names], **kwargs)

    def build(self, corrupt_crc: bool = False, header_crc: bool = True, corrupt_header_crc: bool = False) -> bytes:
        header = bytearray([self.header_size, 0x10])
        header += struct.pack('<HI', 2132, len(self.body))
        header += b'.FIT'
        if self.header_size == 14:
            crc = Crc.calculate(bytes(header)) if header_crc else 0
            if corrupt_header_crc:
                crc ^= 0xFFFF
            header += struct.pack('<H', crc)
        data = bytes(header) + bytes(self.body)
        crc = Crc.calculate(data)
        if corrupt_crc:
            crc ^= 0xFFFF
        return data + struct.pack('<H', crc)


def two_record_fit() -> bytes:
    """Two record messages one second apart with position and heart rate only."""
    start = fit_seconds(datetime(2024, 5, 1, 8, 0, 0, tzinfo=timezone.utc))
    builder = FitFileBuilder()
    builder.define_records(0, ['timestamp', 'position_lat', 'position_long', 'heart_rate'])
    builder.data(0, start, degrees_to_semicircles(45.0), degrees_to_semicircles(7.0), 120)
    builder.data(0, start + 1, degrees_to_semicircles(45.0001), degrees_to_semicircles(7.0), 125)
    return builder.build()
