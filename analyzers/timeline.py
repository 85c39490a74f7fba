"""Cross-activity alignment on a shared x axis.

Activities keep their own elapsed time; an activity's offset only moves it
along the shared axis. Everything here reads records and never modifies them.
"""

import logging
from enum import Enum
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from models.activity import CHANNELS, Activity, ActivityRecord

logger = logging.getLogger(__name__)

# Largest x distance for which a nearest sample still counts as a match
DEFAULT_MAX_GAP = 1000.0


class XAxis(str, Enum):
    """What the shared x axis measures."""

    TIME = 'time'  # elapsed seconds plus offset
    LOCAL_TIME = 'localTime'  # wall clock
    DISTANCE = 'distance'  # cumulative meters


def x_value(activity: Activity, record: ActivityRecord, axis: XAxis = XAxis.TIME) -> float:
    """Position of a record on the shared axis.

    ``LOCAL_TIME`` values are POSIX seconds of ``start_time + t + offset``;
    without a start time they fall back to ``t + offset``. Distance ignores
    the offset.
    """
    if axis == XAxis.DISTANCE:
        return record.d
    aligned = record.t + activity.offset
    if axis == XAxis.LOCAL_TIME and activity.start_time is not None:
        return activity.start_time.timestamp() + aligned
    return aligned


def x_values(activity: Activity, axis: XAxis = XAxis.TIME) -> np.ndarray:
    """Per-record x values as an array, in record order."""
    return np.array([x_value(activity, record, axis) for record in activity.records], dtype=float)


def find_nearest_index(sorted_values: np.ndarray, target: float) -> int:
    """Index of the value closest to ``target`` in an ascending array, or -1 when empty.

    Ties resolve to the lower index.
    """
    if len(sorted_values) == 0:
        return -1
    right = int(np.searchsorted(sorted_values, target, side='left'))
    if right <= 0:
        return 0
    if right >= len(sorted_values):
        return len(sorted_values) - 1
    left = right - 1
    if abs(sorted_values[right] - target) < abs(sorted_values[left] - target):
        return right
    return left


def _is_local_time(activity: Activity, axis: XAxis) -> bool:
    return axis == XAxis.LOCAL_TIME and activity.start_time is not None


def channel_series(activity: Activity, channel: str, axis: XAxis = XAxis.TIME) -> pd.Series:
    """Values of one channel indexed by aligned x.

    Samples without a reading are left out, never filled with zeros. On the
    ``LOCAL_TIME`` axis the index is a UTC DatetimeIndex.

    Args:
        activity: Activity to read
        channel: One of ``CHANNELS`` or ``'d'``
        axis: Shared axis

    Returns:
        Float series named after the activity id
    """
    if channel not in CHANNELS and channel != 'd':
        raise ValueError(f"Unknown channel: {channel}")

    xs = []
    values = []
    for record in activity.records:
        value = getattr(record, channel)
        if value is None:
            continue
        xs.append(x_value(activity, record, axis))
        values.append(value)

    index = pd.Index(xs, dtype=float, name='x')
    if _is_local_time(activity, axis):
        index = pd.to_datetime(index, unit='s', utc=True).rename('x')
    return pd.Series(values, index=index, dtype=float, name=activity.id)


def _numeric_series(activity: Activity, channel: str, axis: XAxis) -> pd.Series:
    """Channel series on a float index with duplicate x values collapsed to the last sample."""
    series = channel_series(activity, channel, axis)
    if isinstance(series.index, pd.DatetimeIndex):
        series.index = pd.Index([x.timestamp() for x in series.index], dtype=float, name='x')
    series = series[~series.index.duplicated(keep='last')]
    return series.sort_index()


def aligned_frame(activities: Iterable[Activity], channel: str, axis: XAxis = XAxis.TIME) -> pd.DataFrame:
    """One column per activity id, outer-joined on the shared x axis.

    Rows where an activity has no sample at that x hold NaN.
    """
    columns = [_numeric_series(activity, channel, axis) for activity in activities]
    if not columns:
        return pd.DataFrame(index=pd.Index([], dtype=float, name='x'))
    frame = pd.concat(columns, axis=1, join='outer').sort_index()
    frame.index.name = 'x'
    logger.debug(f"Aligned {len(columns)} activities on {axis.value}: {len(frame)} rows of {channel}")
    return frame


def _nearest_values(series: pd.Series, targets: np.ndarray, max_gap: float) -> np.ndarray:
    xs = series.index.to_numpy(dtype=float)
    values = series.to_numpy(dtype=float)
    result = np.full(len(targets), np.nan)
    for i, target in enumerate(targets):
        index = find_nearest_index(xs, target)
        if index >= 0 and abs(xs[index] - target) < max_gap:
            result[i] = values[index]
    return result


def delta_series(base: Activity, compare: Activity, channel: str, axis: XAxis = XAxis.TIME,
                 max_gap: Optional[float] = DEFAULT_MAX_GAP) -> pd.Series:
    """Difference ``compare - base`` for one channel along the shared axis.

    Evaluated at every x value either activity has a reading at, using each
    activity's nearest sample. Points where either side has no sample within
    ``max_gap`` are dropped.

    Args:
        base: Reference activity
        compare: Activity compared against the reference
        channel: Channel to compare
        axis: Shared axis
        max_gap: Largest x distance for a nearest match, None for unlimited

    Returns:
        Float series indexed by x in ascending order
    """
    base_series = _numeric_series(base, channel, axis)
    compare_series = _numeric_series(compare, channel, axis)
    name = f"{compare.id}-{base.id}"
    if base_series.empty or compare_series.empty:
        return pd.Series([], index=pd.Index([], dtype=float, name='x'), dtype=float, name=name)

    gap = np.inf if max_gap is None else max_gap
    xs = np.union1d(base_series.index.to_numpy(dtype=float), compare_series.index.to_numpy(dtype=float))
    delta = _nearest_values(compare_series, xs, gap) - _nearest_values(base_series, xs, gap)
    keep = ~np.isnan(delta)
    return pd.Series(delta[keep], index=pd.Index(xs[keep], dtype=float, name='x'), dtype=float, name=name)
