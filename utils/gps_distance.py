"""Great-circle distance helpers and GPS jitter filtering."""

import math
from dataclasses import dataclass, field
from typing import Optional

from config import settings

EARTH_RADIUS_M = 6371000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two positions.

    Args:
        lat1: Latitude of the first position in degrees
        lon1: Longitude of the first position in degrees
        lat2: Latitude of the second position in degrees
        lon2: Longitude of the second position in degrees

    Returns:
        Distance in meters
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


@dataclass(frozen=True)
class GpsDistanceOptions:
    """Filtering applied to position-derived distance segments."""

    min_move_meters: float = 0.0
    max_speed_mps: float = 40.0
    max_jump_meters_at_1s: float = 250.0
    include_elevation: bool = False

    @classmethod
    def from_settings(cls) -> 'GpsDistanceOptions':
        """Build options from the environment-backed settings."""
        return cls(**settings.get_gps_distance_defaults())


@dataclass(frozen=True)
class GpsPoint:
    """Position sample used for segment distance."""

    lat: float
    lon: float
    t: float
    alt: Optional[float] = None


def segment_distance(prev: GpsPoint, nxt: GpsPoint, options: GpsDistanceOptions) -> float:
    """Distance between two samples, in 3D when elevation is enabled and known."""
    flat = haversine_distance(prev.lat, prev.lon, nxt.lat, nxt.lon)
    if not options.include_elevation or prev.alt is None or nxt.alt is None:
        return flat
    return math.hypot(flat, nxt.alt - prev.alt)


def filtered_distance_delta(prev: GpsPoint, nxt: GpsPoint, options: GpsDistanceOptions) -> float:
    """Segment distance to accumulate, or 0 when the segment looks like GPS noise.

    A segment is rejected when it is shorter than ``min_move_meters``, implies a
    speed above ``max_speed_mps``, or jumps further than
    ``max_jump_meters_at_1s`` within one second.
    """
    dt = nxt.t - prev.t
    if not math.isfinite(dt) or dt < 0:
        dt = 0.0
    dist = segment_distance(prev, nxt, options)

    if dist < options.min_move_meters:
        return 0.0
    if dt > 0 and dist / dt > options.max_speed_mps:
        return 0.0
    if dt <= 1 and dist > options.max_jump_meters_at_1s:
        return 0.0
    return dist


@dataclass
class DistanceAccumulator:
    """Running cumulative distance over a sample stream.

    Encoded source distance wins when a sample carries one (rebased so the
    first encoded value is 0). Otherwise the great-circle segment from the last
    known position is added. A sample without either holds the prior value.
    The total never decreases.
    """

    options: GpsDistanceOptions = field(default_factory=GpsDistanceOptions)
    total: float = 0.0
    last_position: Optional[GpsPoint] = None
    source_base: Optional[float] = None

    def update(
        self,
        t: float,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        alt: Optional[float] = None,
        source_distance: Optional[float] = None,
    ) -> float:
        """Fold one sample into the total and return the new cumulative distance."""
        position = None
        if lat is not None and lon is not None:
            position = GpsPoint(lat=lat, lon=lon, t=t, alt=alt)

        if source_distance is not None:
            if self.source_base is None:
                self.source_base = source_distance
            self.total = max(self.total, source_distance - self.source_base)
        elif position is not None and self.last_position is not None:
            self.total += filtered_distance_delta(self.last_position, position, self.options)

        if position is not None:
            self.last_position = position
        return self.total
