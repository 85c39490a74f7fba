"""Data models for imported activities."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import List, Optional, Dict, Any, Tuple
import pandas as pd

# Optional per-sample channels, in export order
CHANNELS = ('lat', 'lon', 'hr', 'pwr', 'alt', 'cad', 'speed', 'temp')


@dataclass(frozen=True)
class ActivityRecord:
    """One normalized sample of an activity."""

    t: float  # seconds since the first sample
    d: float  # cumulative meters since the first sample
    lat: Optional[float] = None
    lon: Optional[float] = None
    hr: Optional[float] = None  # bpm
    pwr: Optional[float] = None  # watts
    alt: Optional[float] = None  # meters
    cad: Optional[float] = None  # rpm / spm
    speed: Optional[float] = None  # m/s
    temp: Optional[float] = None  # Celsius

    def has(self, channel: str) -> bool:
        """Check whether the source supplied a value for a channel."""
        return getattr(self, channel) is not None

    def to_dict(self) -> Dict[str, float]:
        """Serialize the record, omitting absent channels."""
        data = {'t': self.t, 'd': self.d}
        for name in CHANNELS:
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data


@dataclass
class RawPoint:
    """Sample as decoded from a source file, before normalization."""

    time: datetime  # absolute, timezone-aware
    lat: Optional[float] = None
    lon: Optional[float] = None
    alt: Optional[float] = None
    hr: Optional[float] = None
    cad: Optional[float] = None
    pwr: Optional[float] = None
    speed: Optional[float] = None
    temp: Optional[float] = None
    distance: Optional[float] = None  # source-encoded cumulative meters

    @property
    def has_position(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass
class RawLap:
    """Lap summary as found in the source file."""

    start_time: datetime
    total_time: Optional[float] = None
    distance: Optional[float] = None
    calories: Optional[float] = None
    avg_hr: Optional[float] = None
    max_hr: Optional[float] = None
    avg_cadence: Optional[float] = None
    max_cadence: Optional[float] = None
    avg_speed: Optional[float] = None
    max_speed: Optional[float] = None
    intensity: Optional[str] = None
    trigger: Optional[str] = None


@dataclass(frozen=True)
class Lap:
    """Lap resolved against an activity's records (indices are inclusive)."""

    start_time: datetime
    start_index: int
    end_index: int
    total_time: Optional[float] = None
    distance: Optional[float] = None
    calories: Optional[float] = None
    avg_hr: Optional[float] = None
    max_hr: Optional[float] = None
    avg_cadence: Optional[float] = None
    max_cadence: Optional[float] = None
    avg_speed: Optional[float] = None
    max_speed: Optional[float] = None
    intensity: Optional[str] = None
    trigger: Optional[str] = None


@dataclass
class ParseResult:
    """Output of a format parser; consumed once by the normalizer."""

    points: List[RawPoint] = field(default_factory=list)
    start_time: Optional[datetime] = None
    sport: Optional[str] = None
    calories: Optional[float] = None
    laps: List[RawLap] = field(default_factory=list)
    warnings: List[Warning] = field(default_factory=list)


@dataclass(frozen=True)
class Activity:
    """An imported activity ready for comparison with others."""

    id: str
    name: str
    records: Tuple[ActivityRecord, ...]
    color: str
    offset: float = 0.0  # seconds, display alignment only
    start_time: Optional[datetime] = None
    source_type: Optional[str] = None
    sport: Optional[str] = None
    calories: Optional[float] = None
    laps: Tuple[Lap, ...] = ()
    warnings: Tuple[Warning, ...] = field(default=(), compare=False)

    def with_offset(self, offset: float) -> 'Activity':
        """Return a copy positioned ``offset`` seconds along the shared timeline."""
        return replace(self, offset=float(offset))

    def with_name(self, name: str) -> 'Activity':
        return replace(self, name=name)

    @property
    def duration(self) -> float:
        """Elapsed seconds between the first and last record."""
        return self.records[-1].t if self.records else 0.0

    @property
    def total_distance(self) -> float:
        """Cumulative distance of the last record in meters."""
        return self.records[-1].d if self.records else 0.0

    @property
    def end_time(self) -> Optional[datetime]:
        if self.start_time is None:
            return None
        return self.start_time + timedelta(seconds=self.duration)

    @property
    def is_degraded(self) -> bool:
        """True when samples were skipped or the file failed an integrity check."""
        return bool(self.warnings)

    def has_channel(self, channel: str) -> bool:
        """Check whether any record carries a value for a channel."""
        return any(record.has(channel) for record in self.records)

    def available_channels(self) -> List[str]:
        return [name for name in CHANNELS if self.has_channel(name)]

    def aligned_time(self, record: ActivityRecord) -> float:
        """Position of a record on the shared timeline."""
        return record.t + self.offset

    def to_dataframe(self) -> pd.DataFrame:
        """Export records as a DataFrame, one column per present channel.

        Absent readings are NaN, and channels no record carries are left out.
        """
        columns = ['t', 'd'] + self.available_channels()
        rows = [[getattr(record, name) for name in columns] for record in self.records]
        df = pd.DataFrame(rows, columns=columns, dtype=float)
        df['aligned_t'] = df['t'] + self.offset
        return df

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the activity."""
        return {
            "id": self.id,
            "name": self.name,
            "source_type": self.source_type,
            "sport": self.sport,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "duration_seconds": round(self.duration, 1),
            "distance_meters": round(self.total_distance, 1),
            "records": len(self.records),
            "laps": len(self.laps),
            "calories": self.calories,
            "channels": self.available_channels(),
            "offset": self.offset,
            "color": self.color,
            "warnings": [str(w) for w in self.warnings],
        }
