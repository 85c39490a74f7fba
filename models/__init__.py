"""Data models for Activity Overlay."""

from .activity import CHANNELS, ActivityRecord, RawPoint, RawLap, Lap, ParseResult, Activity

__all__ = [
    'CHANNELS',
    'ActivityRecord',
    'RawPoint',
    'RawLap',
    'Lap',
    'ParseResult',
    'Activity',
]
