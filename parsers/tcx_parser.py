"""Training Center XML (TCX) parser."""

import logging
import xml.etree.ElementTree as ET
from typing import List, Optional, Union

from models.activity import ParseResult, RawLap, RawPoint
from parsers.exceptions import ParseFailure, PartialDecodeWarning
from parsers.xml_common import (
    parse_root, iter_local, find_child, find_descendant, text_of, to_float, parse_time,
)

logger = logging.getLogger(__name__)


def _nested_value(element: ET.Element, name: str) -> Optional[float]:
    """Read ``<name><Value>..</Value></name>`` style children."""
    holder = find_child(element, name)
    if holder is None:
        return None
    value = find_child(holder, 'Value')
    return to_float(text_of(value if value is not None else holder))


def _parse_trackpoint(trackpoint: ET.Element) -> Optional[RawPoint]:
    """Decode one ``Trackpoint`` element, or None when it has no usable timestamp."""
    time = parse_time(text_of(find_child(trackpoint, 'Time')))
    if time is None:
        return None

    lat = lon = None
    position = find_child(trackpoint, 'Position')
    if position is not None:
        lat = to_float(text_of(find_child(position, 'LatitudeDegrees')))
        lon = to_float(text_of(find_child(position, 'LongitudeDegrees')))
        if lat is None or lon is None or abs(lat) > 90 or abs(lon) > 180:
            lat = lon = None

    point = RawPoint(
        time=time,
        lat=lat,
        lon=lon,
        alt=to_float(text_of(find_child(trackpoint, 'AltitudeMeters'))),
        hr=_nested_value(trackpoint, 'HeartRateBpm'),
        cad=to_float(text_of(find_child(trackpoint, 'Cadence'))),
        distance=to_float(text_of(find_child(trackpoint, 'DistanceMeters'))),
    )

    extensions = find_child(trackpoint, 'Extensions')
    if extensions is not None:
        point.pwr = to_float(text_of(find_descendant(extensions, 'Watts', 'PowerInWatts', 'power')))
        point.speed = to_float(text_of(find_descendant(extensions, 'Speed')))
        if point.cad is None:
            point.cad = to_float(text_of(find_descendant(extensions, 'RunCadence')))

    return point


def _parse_lap(lap: ET.Element) -> Optional[RawLap]:
    start_time = parse_time(lap.get('StartTime'))
    if start_time is None:
        return None

    extensions = find_child(lap, 'Extensions')
    avg_speed = None
    if extensions is not None:
        avg_speed = to_float(text_of(find_descendant(extensions, 'AvgSpeed')))

    return RawLap(
        start_time=start_time,
        total_time=to_float(text_of(find_child(lap, 'TotalTimeSeconds'))),
        distance=to_float(text_of(find_child(lap, 'DistanceMeters'))),
        calories=to_float(text_of(find_child(lap, 'Calories'))),
        avg_hr=_nested_value(lap, 'AverageHeartRateBpm'),
        max_hr=_nested_value(lap, 'MaximumHeartRateBpm'),
        avg_cadence=to_float(text_of(find_child(lap, 'Cadence'))),
        max_speed=to_float(text_of(find_child(lap, 'MaximumSpeed'))),
        avg_speed=avg_speed,
        intensity=text_of(find_child(lap, 'Intensity')),
        trigger=text_of(find_child(lap, 'TriggerMethod')),
    )


def _total_calories(laps: List[RawLap]) -> Optional[float]:
    values = [lap.calories for lap in laps if lap.calories]
    return sum(values) if values else None


def parse_tcx(content: Union[bytes, str]) -> ParseResult:
    """Parse TCX content into raw timestamped points.

    Args:
        content: TCX file bytes or text

    Returns:
        ParseResult with points in document order, laps, sport and calories

    Raises:
        ParseFailure: If the XML is malformed or no valid trackpoint is found
    """
    root = parse_root(content, 'TCX')

    trackpoints = list(iter_local(root, 'Trackpoint'))
    if not trackpoints:
        raise ParseFailure("No track points found in TCX file")

    result = ParseResult()
    activity = next(iter_local(root, 'Activity'), None)
    if activity is not None:
        result.sport = activity.get('Sport') or None

    skipped = 0
    for index, trackpoint in enumerate(trackpoints):
        point = _parse_trackpoint(trackpoint)
        if point is None:
            logger.debug(f"Skipping TCX trackpoint {index}: missing or invalid time")
            skipped += 1
            continue
        result.points.append(point)

    if not result.points:
        raise ParseFailure("No valid track points found in TCX file")

    for lap_element in iter_local(root, 'Lap'):
        lap = _parse_lap(lap_element)
        if lap is not None:
            result.laps.append(lap)
    result.calories = _total_calories(result.laps)

    if skipped:
        message = f"Skipped {skipped} of {len(trackpoints)} TCX trackpoints without a valid timestamp"
        logger.warning(message)
        result.warnings.append(PartialDecodeWarning(message, skipped=skipped))

    result.start_time = result.points[0].time
    return result
