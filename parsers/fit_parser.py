"""FIT binary decoder.

A FIT file is a header, a stream of messages and a trailing CRC. Messages are
either definition messages, which declare the field layout for a local message
type (0-15), or data messages, which are fixed-width records laid out by the
most recent definition for their local type. ``FitDecoder`` keeps that running
table of definitions and can be fed one message at a time.

Field names, scale and offset are taken from the fitparse profile, so every
message type can be decoded by name. Only ``record`` messages become points;
``lap``, ``session`` and ``sport`` messages fill in activity metadata.

FIT field             -> RawPoint field
  timestamp           -> time (seconds since 1989-12-31 UTC)
  position_lat/long   -> lat/lon (degrees, converted from semicircles)
  enhanced_altitude   -> alt (falls back to altitude)
  heart_rate          -> hr
  cadence             -> cad
  power               -> pwr
  distance            -> distance (cumulative meters)
  enhanced_speed      -> speed (falls back to speed)
  temperature         -> temp
"""

import logging
import struct
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from fitparse.profile import MESSAGE_TYPES
from fitparse.records import Crc

from models.activity import ParseResult, RawLap, RawPoint
from parsers.exceptions import ParseFailure, PartialDecodeWarning

logger = logging.getLogger(__name__)

FIT_EPOCH = datetime(1989, 12, 31, tzinfo=timezone.utc)
FIT_SIGNATURE = b'.FIT'

# Garmin stores lat/lon as 32-bit signed semicircles: degrees = semicircles * (180 / 2^31)
SEMICIRCLE_TO_DEGREES = 180.0 / (2 ** 31)

MESG_SPORT = 12
MESG_SESSION = 18
MESG_LAP = 19
MESG_RECORD = 20

TIMESTAMP_FIELD_NUM = 253
_DATE_TIME_TYPES = ('date_time', 'local_date_time')


class FitDecodeError(Exception):
    """Message framing could not be followed any further."""


@dataclass(frozen=True)
class BaseType:
    """Wire type of a FIT field."""

    name: str
    fmt: str  # struct format character
    size: int
    invalid: Optional[int]  # sentinel meaning "no value"; None for float/string types


BASE_TYPES: Dict[int, BaseType] = {
    0x00: BaseType('enum', 'B', 1, 0xFF),
    0x01: BaseType('sint8', 'b', 1, 0x7F),
    0x02: BaseType('uint8', 'B', 1, 0xFF),
    0x03: BaseType('sint16', 'h', 2, 0x7FFF),
    0x04: BaseType('uint16', 'H', 2, 0xFFFF),
    0x05: BaseType('sint32', 'i', 4, 0x7FFFFFFF),
    0x06: BaseType('uint32', 'I', 4, 0xFFFFFFFF),
    0x07: BaseType('string', 's', 1, None),
    0x08: BaseType('float32', 'f', 4, None),
    0x09: BaseType('float64', 'd', 8, None),
    0x0A: BaseType('uint8z', 'B', 1, 0x00),
    0x0B: BaseType('uint16z', 'H', 2, 0x0000),
    0x0C: BaseType('uint32z', 'I', 4, 0x00000000),
    0x0D: BaseType('byte', 'B', 1, 0xFF),
    0x0E: BaseType('sint64', 'q', 8, 0x7FFFFFFFFFFFFFFF),
    0x0F: BaseType('uint64', 'Q', 8, 0xFFFFFFFFFFFFFFFF),
    0x10: BaseType('uint64z', 'Q', 8, 0),
}
_BYTE = BASE_TYPES[0x0D]


@dataclass(frozen=True)
class FitHeader:
    """File header (12 bytes, or 14 with a header CRC)."""

    header_size: int
    protocol_version: int
    profile_version: int
    data_size: int
    crc: Optional[int] = None


@dataclass(frozen=True)
class FieldDefinition:
    """One field slot of a definition message, resolved against the profile."""

    num: int
    size: int
    base_type: BaseType
    name: Optional[str] = None  # None when the profile does not know this field
    scale: Optional[float] = None
    offset: Optional[float] = None
    is_date_time: bool = False
    enum_values: Optional[Dict[int, str]] = None


@dataclass(frozen=True)
class MessageDefinition:
    """Layout declared for a local message type."""

    local_type: int
    global_num: int
    endian: str  # struct byte order prefix
    fields: Tuple[FieldDefinition, ...]
    developer_size: int = 0
    name: Optional[str] = None

    @property
    def size(self) -> int:
        return sum(f.size for f in self.fields) + self.developer_size


@dataclass
class FitMessage:
    """Decoded data message; only fields known to the profile are kept."""

    global_num: int
    name: Optional[str]
    fields: Dict[str, Any] = field(default_factory=dict)


def read_header(data: bytes) -> FitHeader:
    """Decode the FIT file header.

    Raises:
        ParseFailure: If the header is truncated or not a FIT header
    """
    if len(data) < 12:
        raise ParseFailure(f"FIT header truncated: {len(data)} bytes")
    header_size = data[0]
    if header_size not in (12, 14) or len(data) < header_size:
        raise ParseFailure(f"Invalid FIT header size: {header_size}")
    if data[8:12] != FIT_SIGNATURE:
        raise ParseFailure("Missing .FIT signature in header")

    profile_version, data_size = struct.unpack_from('<HI', data, 2)
    crc = struct.unpack_from('<H', data, 12)[0] if header_size == 14 else None
    return FitHeader(
        header_size=header_size,
        protocol_version=data[1],
        profile_version=profile_version,
        data_size=data_size,
        crc=crc,
    )


def fit_timestamp(seconds: int) -> datetime:
    """Convert FIT seconds-since-epoch into an aware UTC datetime."""
    return FIT_EPOCH + timedelta(seconds=seconds)


def _field_definition(profile, num: int, size: int, base_type_id: int) -> FieldDefinition:
    base_type = BASE_TYPES.get(base_type_id & 0x1F, _BYTE)
    if num == TIMESTAMP_FIELD_NUM:
        return FieldDefinition(num, size, base_type, name='timestamp', is_date_time=True)

    profile_field = profile.fields.get(num) if profile is not None else None
    if profile_field is None:
        return FieldDefinition(num, size, base_type)

    scale = getattr(profile_field, 'scale', None)
    offset = getattr(profile_field, 'offset', None)
    field_type = getattr(profile_field, 'type', None)
    type_name = getattr(field_type, 'name', None)
    is_date_time = type_name in _DATE_TIME_TYPES
    enum_values = None if is_date_time else getattr(field_type, 'values', None)
    return FieldDefinition(
        num=num,
        size=size,
        base_type=base_type,
        name=profile_field.name,
        scale=scale if isinstance(scale, (int, float)) and scale not in (0, 1) else None,
        offset=offset if isinstance(offset, (int, float)) and offset else None,
        is_date_time=is_date_time,
        enum_values=enum_values if isinstance(enum_values, dict) else None,
    )


class FitDecoder:
    """Stateful reader for the FIT message stream.

    Holds the most recent definition per local message type and the last
    full timestamp, which compressed-timestamp headers are relative to.
    """

    def __init__(self):
        self.definitions: Dict[int, MessageDefinition] = {}
        self.last_timestamp: Optional[int] = None

    def read_message(self, buffer: bytes, pos: int) -> Tuple[Optional[FitMessage], int]:
        """Decode the message starting at ``pos``.

        Args:
            buffer: Bytes holding the message stream (header excluded or not)
            pos: Offset of the record header byte

        Returns:
            Tuple of (decoded data message, or None for a definition message,
            offset of the next message)

        Raises:
            FitDecodeError: If the message is truncated or uses an undefined local type
        """
        if pos >= len(buffer):
            raise FitDecodeError("Unexpected end of message stream")
        header = buffer[pos]
        pos += 1

        if header & 0x80:
            # Compressed timestamp header: local type in bits 5-6, time offset in bits 0-4
            local_type = (header >> 5) & 0x03
            message, pos = self._read_data(buffer, pos, self._definition(local_type))
            timestamp = self._expand_compressed_timestamp(header & 0x1F)
            if timestamp is not None and 'timestamp' not in message.fields:
                message.fields['timestamp'] = fit_timestamp(timestamp)
            return message, pos

        local_type = header & 0x0F
        if header & 0x40:
            pos = self._read_definition(buffer, pos, local_type, has_developer_data=bool(header & 0x20))
            return None, pos
        return self._read_data(buffer, pos, self._definition(local_type))

    def _definition(self, local_type: int) -> MessageDefinition:
        definition = self.definitions.get(local_type)
        if definition is None:
            raise FitDecodeError(f"Data message for undefined local type {local_type}")
        return definition

    def _expand_compressed_timestamp(self, time_offset: int) -> Optional[int]:
        if self.last_timestamp is None:
            return None
        last = self.last_timestamp
        timestamp = (last & ~0x1F) + time_offset
        if time_offset < (last & 0x1F):
            timestamp += 0x20  # 5-bit offset rolled over
        self.last_timestamp = timestamp
        return timestamp

    def _read_definition(self, buffer: bytes, pos: int, local_type: int, has_developer_data: bool) -> int:
        if pos + 5 > len(buffer):
            raise FitDecodeError("Truncated definition message")
        endian = '>' if buffer[pos + 1] == 1 else '<'
        global_num = struct.unpack_from(endian + 'H', buffer, pos + 2)[0]
        field_count = buffer[pos + 4]
        pos += 5

        if pos + field_count * 3 > len(buffer):
            raise FitDecodeError("Truncated field definitions")
        profile = MESSAGE_TYPES.get(global_num)
        fields = []
        for _ in range(field_count):
            num, size, base_type_id = buffer[pos], buffer[pos + 1], buffer[pos + 2]
            fields.append(_field_definition(profile, num, size, base_type_id))
            pos += 3

        developer_size = 0
        if has_developer_data:
            if pos + 1 > len(buffer):
                raise FitDecodeError("Truncated developer field count")
            developer_count = buffer[pos]
            pos += 1
            if pos + developer_count * 3 > len(buffer):
                raise FitDecodeError("Truncated developer field definitions")
            for _ in range(developer_count):
                developer_size += buffer[pos + 1]
                pos += 3

        self.definitions[local_type] = MessageDefinition(
            local_type=local_type,
            global_num=global_num,
            endian=endian,
            fields=tuple(fields),
            developer_size=developer_size,
            name=getattr(profile, 'name', None),
        )
        return pos

    def _read_data(self, buffer: bytes, pos: int, definition: MessageDefinition) -> Tuple[FitMessage, int]:
        if pos + definition.size > len(buffer):
            raise FitDecodeError(f"Truncated data message ({definition.name or definition.global_num})")

        message = FitMessage(global_num=definition.global_num, name=definition.name)
        for field_def in definition.fields:
            raw = buffer[pos:pos + field_def.size]
            pos += field_def.size
            if field_def.name is None:
                continue  # unknown field number, e.g. device-specific extension
            value = self._decode_value(raw, field_def, definition.endian)
            if value is None:
                continue
            if field_def.num == TIMESTAMP_FIELD_NUM and isinstance(value, int):
                self.last_timestamp = value
            message.fields[field_def.name] = self._convert(value, field_def)

        pos += definition.developer_size
        return message, pos

    @staticmethod
    def _decode_value(raw: bytes, field_def: FieldDefinition, endian: str) -> Any:
        base_type = field_def.base_type
        if base_type.name == 'string':
            text = bytes(raw).split(b'\x00', 1)[0].decode('utf-8', errors='replace')
            return text or None
        if base_type.name == 'byte':
            return None if all(b == 0xFF for b in raw) else bytes(raw)
        if field_def.size == 0 or field_def.size % base_type.size:
            return None

        count = field_def.size // base_type.size
        values = struct.unpack(endian + base_type.fmt * count, raw)
        decoded = []
        for index, value in enumerate(values):
            if base_type.invalid is None:
                chunk = raw[index * base_type.size:(index + 1) * base_type.size]
                decoded.append(None if all(b == 0xFF for b in chunk) or value != value else value)
            else:
                decoded.append(None if value == base_type.invalid else value)

        if count == 1:
            return decoded[0]
        if all(value is None for value in decoded):
            return None
        return tuple(decoded)

    @staticmethod
    def _convert(value: Any, field_def: FieldDefinition) -> Any:
        if isinstance(value, tuple):
            return tuple(None if v is None else FitDecoder._convert(v, field_def) for v in value)
        if field_def.is_date_time and isinstance(value, int):
            return fit_timestamp(value)
        if field_def.enum_values and isinstance(value, int) and value in field_def.enum_values:
            return field_def.enum_values[value]
        if not isinstance(value, (int, float)):
            return value
        if field_def.scale:
            value = value / field_def.scale
        if field_def.offset:
            value = value - field_def.offset
        return value


def _first(fields: Dict[str, Any], *names: str) -> Any:
    for name in names:
        value = fields.get(name)
        if value is not None and not isinstance(value, tuple):
            return value
    return None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def semicircles_to_position(lat_raw: Any, lon_raw: Any) -> Tuple[Optional[float], Optional[float]]:
    """Convert a semicircle pair to degrees; (None, None) for missing or null-island fixes."""
    if not isinstance(lat_raw, int) or not isinstance(lon_raw, int):
        return None, None
    if lat_raw == 0 and lon_raw == 0:
        return None, None  # many devices write 0,0 when there is no fix
    lat = lat_raw * SEMICIRCLE_TO_DEGREES
    lon = lon_raw * SEMICIRCLE_TO_DEGREES
    if abs(lat) > 90 or abs(lon) > 180:
        return None, None
    return lat, lon


def record_to_point(fields: Dict[str, Any]) -> Optional[RawPoint]:
    """Map a decoded ``record`` message to a RawPoint, or None without a timestamp."""
    timestamp = fields.get('timestamp')
    if not isinstance(timestamp, datetime):
        return None

    lat, lon = semicircles_to_position(fields.get('position_lat'), fields.get('position_long'))
    return RawPoint(
        time=timestamp,
        lat=lat,
        lon=lon,
        alt=_number(_first(fields, 'enhanced_altitude', 'altitude')),
        hr=_number(fields.get('heart_rate')),
        cad=_number(fields.get('cadence')),
        pwr=_number(fields.get('power')),
        speed=_number(_first(fields, 'enhanced_speed', 'speed')),
        temp=_number(fields.get('temperature')),
        distance=_number(fields.get('distance')),
    )


def lap_from_message(fields: Dict[str, Any]) -> Optional[RawLap]:
    start_time = fields.get('start_time') or fields.get('timestamp')
    if not isinstance(start_time, datetime):
        return None
    intensity = fields.get('intensity')
    trigger = fields.get('lap_trigger')
    return RawLap(
        start_time=start_time,
        total_time=_number(fields.get('total_elapsed_time')),
        distance=_number(fields.get('total_distance')),
        calories=_number(fields.get('total_calories')),
        avg_hr=_number(fields.get('avg_heart_rate')),
        max_hr=_number(fields.get('max_heart_rate')),
        avg_cadence=_number(fields.get('avg_cadence')),
        max_cadence=_number(fields.get('max_cadence')),
        avg_speed=_number(_first(fields, 'enhanced_avg_speed', 'avg_speed')),
        max_speed=_number(_first(fields, 'enhanced_max_speed', 'max_speed')),
        intensity=str(intensity) if intensity is not None else None,
        trigger=str(trigger) if trigger is not None else None,
    )


def _warn(result: ParseResult, message: str, skipped: int = 0) -> None:
    logger.warning(message)
    result.warnings.append(PartialDecodeWarning(message, skipped=skipped))


def _check_file_crc(data: bytes, header: FitHeader, end: int, result: ParseResult) -> None:
    if header.crc:
        expected = Crc.calculate(data[:12])
        if header.crc != expected:
            _warn(result, f"FIT header CRC mismatch: stored {header.crc:#06x}, computed {expected:#06x}")

    data_end = header.header_size + header.data_size
    if end < data_end or len(data) < data_end + 2:
        _warn(result, "FIT file is missing its trailing CRC")
        return
    stored = struct.unpack_from('<H', data, data_end)[0]
    computed = Crc.calculate(data[:data_end])
    if stored != computed:
        _warn(result, f"FIT file CRC mismatch: stored {stored:#06x}, computed {computed:#06x}")


def parse_fit(content: bytes) -> ParseResult:
    """Decode a FIT file into raw timestamped points.

    Integrity problems (bad CRC, truncated data, lost framing) are reported as
    warnings and decoding keeps whatever records were read before the problem.

    Args:
        content: Raw FIT file bytes

    Returns:
        ParseResult with one RawPoint per timestamped record message

    Raises:
        ParseFailure: If the header is unreadable or no record could be decoded
    """
    data = bytes(content)
    header = read_header(data)
    result = ParseResult()

    end = header.header_size + header.data_size
    if end > len(data):
        _warn(result, f"FIT data truncated: header declares {header.data_size} bytes, "
                      f"{len(data) - header.header_size} present")
        end = len(data)
    _check_file_crc(data, header, end, result)

    stream = data[:end]
    decoder = FitDecoder()
    pos = header.header_size
    untimed = 0
    skipped_types: Dict[str, int] = {}

    while pos < end:
        try:
            message, pos = decoder.read_message(stream, pos)
        except FitDecodeError as e:
            _warn(result, f"Stopped decoding FIT data at byte {pos}: {e}")
            break
        if message is None:
            continue

        if message.global_num == MESG_RECORD:
            point = record_to_point(message.fields)
            if point is None:
                untimed += 1
                continue
            result.points.append(point)
        elif message.global_num == MESG_LAP:
            lap = lap_from_message(message.fields)
            if lap is not None:
                result.laps.append(lap)
        elif message.global_num in (MESG_SESSION, MESG_SPORT):
            sport = message.fields.get('sport')
            if sport is not None and result.sport is None:
                result.sport = str(sport)
            calories = _number(message.fields.get('total_calories'))
            if calories:
                result.calories = (result.calories or 0) + calories
        else:
            key = message.name or str(message.global_num)
            skipped_types[key] = skipped_types.get(key, 0) + 1

    if skipped_types:
        logger.debug(f"Skipped FIT messages: {skipped_types}")

    if not result.points:
        raise ParseFailure("No valid records found in FIT file")

    if untimed:
        _warn(result, f"Skipped {untimed} FIT record messages without a timestamp", skipped=untimed)

    if result.calories is None and result.laps:
        lap_calories = [lap.calories for lap in result.laps if lap.calories]
        if lap_calories:
            result.calories = sum(lap_calories)

    result.start_time = result.points[0].time
    return result


def decode_messages(content: bytes) -> List[FitMessage]:
    """Decode every data message of a FIT file, for inspection and debugging.

    Raises:
        ParseFailure: If the header is unreadable
    """
    data = bytes(content)
    header = read_header(data)
    end = min(len(data), header.header_size + header.data_size)
    stream = data[:end]
    decoder = FitDecoder()
    messages = []
    pos = header.header_size
    while pos < end:
        try:
            message, pos = decoder.read_message(stream, pos)
        except FitDecodeError as e:
            logger.warning(f"Stopped decoding FIT data at byte {pos}: {e}")
            break
        if message is not None:
            messages.append(message)
    return messages
