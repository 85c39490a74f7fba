"""GPX track parser."""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Iterable, Optional, Union

import gpxpy
import gpxpy.gpx

from models.activity import ParseResult, RawPoint
from parsers.exceptions import ParseFailure, PartialDecodeWarning
from parsers.xml_common import local_name, text_of, to_float

logger = logging.getLogger(__name__)

# Extension element local names, covering Garmin TrackPointExtension v1/v2 and common vendor tags
_EXTENSION_ALIASES = {
    'hr': ('hr', 'heartrate'),
    'cad': ('cad', 'cadence'),
    'pwr': ('power', 'watts', 'PowerInWatts'),
    'distance': ('distance',),
    'temp': ('atemp', 'temp', 'wtemp'),
    'speed': ('speed',),
}


def _extension_value(extensions: Iterable[ET.Element], names) -> Optional[float]:
    """First numeric value among extension elements (at any depth) with one of the local names."""
    for extension in extensions:
        for element in extension.iter():
            if local_name(element.tag) in names:
                value = to_float(text_of(element))
                if value is not None:
                    return value
    return None


def _utc(time: Optional[datetime]) -> Optional[datetime]:
    if time is None:
        return None
    if time.tzinfo is None:
        return time.replace(tzinfo=timezone.utc)
    return time.astimezone(timezone.utc)


def _to_point(track_point: gpxpy.gpx.GPXTrackPoint) -> Optional[RawPoint]:
    """Convert one gpxpy track point, or None when it has no usable timestamp."""
    time = _utc(track_point.time)
    if time is None:
        return None

    lat, lon = track_point.latitude, track_point.longitude
    if lat is None or lon is None or abs(lat) > 90 or abs(lon) > 180:
        lat = lon = None

    point = RawPoint(time=time, lat=lat, lon=lon, alt=track_point.elevation)

    extensions = track_point.extensions or []
    for attr, names in _EXTENSION_ALIASES.items():
        value = _extension_value(extensions, names)
        if value is not None:
            setattr(point, attr, value)

    return point


def _decode(content: Union[bytes, str]) -> gpxpy.gpx.GPX:
    try:
        text = content.decode('utf-8-sig') if isinstance(content, bytes) else content
        return gpxpy.parse(text.lstrip())
    except (gpxpy.gpx.GPXException, ValueError) as e:
        raise ParseFailure(f"Invalid GPX format: {e}") from e


def parse_gpx(content: Union[bytes, str]) -> ParseResult:
    """Parse GPX content into raw timestamped points.

    Track points are returned in document order across all tracks and
    segments. Points without a valid ISO 8601 ``time`` are skipped and
    reported as a warning.

    Args:
        content: GPX file bytes or text

    Returns:
        ParseResult with one RawPoint per timestamped track point

    Raises:
        ParseFailure: If the document is not valid GPX or no valid point is found
    """
    gpx = _decode(content)

    track_points = [
        track_point
        for track in gpx.tracks
        for segment in track.segments
        for track_point in segment.points
    ]
    if not track_points:
        raise ParseFailure("No track points found in GPX file")

    result = ParseResult(sport=next((track.type for track in gpx.tracks if track.type), None))
    skipped = 0
    for index, track_point in enumerate(track_points):
        point = _to_point(track_point)
        if point is None:
            logger.debug(f"Skipping GPX track point {index}: missing or invalid time")
            skipped += 1
            continue
        result.points.append(point)

    if not result.points:
        raise ParseFailure("No valid track points found in GPX file")

    if skipped:
        message = f"Skipped {skipped} of {len(track_points)} GPX track points without a valid timestamp"
        logger.warning(message)
        result.warnings.append(PartialDecodeWarning(message, skipped=skipped))

    result.start_time = result.points[0].time
    return result
