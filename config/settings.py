"""Configuration settings for Activity Overlay."""

import os
import logging
from typing import Dict, List, Tuple
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Logger for this module
logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back to the default.

    Args:
        name: Environment variable name
        default: Value used when the variable is unset or malformed

    Returns:
        Parsed float value
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid value for {name}: {raw!r}; using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


# File type detection
SUPPORTED_FORMATS = ['.fit', '.tcx', '.gpx']

# Declared media type fragments, checked in this order when the extension is not conclusive
MEDIA_TYPE_HINTS: List[Tuple[str, Tuple[str, ...]]] = [
    ('gpx', ('gpx',)),
    ('fit', ('fit', 'octet-stream')),
    ('tcx', ('tcx',)),
]

# Default color palette for activities, cycled in import order
ACTIVITY_COLORS = (
    '#5470c6',  # Blue
    '#91cc75',  # Green
    '#fac858',  # Yellow
    '#ee6666',  # Red
    '#73c0de',  # Light blue
    '#3ba272',  # Dark green
    '#fc8452',  # Orange
    '#9a60b4',  # Purple
    '#ea7ccc',  # Pink
    '#ffd93d',  # Bright yellow
)

# GPS distance filtering (applied when distance is derived from positions)
GPS_MIN_MOVE_METERS = _env_float("GPS_MIN_MOVE_METERS", 0.0)  # ignore jitter below this
GPS_MAX_SPEED_MPS = _env_float("GPS_MAX_SPEED_MPS", 40.0)  # ignore segments faster than this
GPS_MAX_JUMP_METERS_AT_1S = _env_float("GPS_MAX_JUMP_METERS_AT_1S", 250.0)
GPS_INCLUDE_ELEVATION = _env_bool("GPS_INCLUDE_ELEVATION", False)

# Batch imports
IMPORT_MAX_WORKERS = int(_env_float("IMPORT_MAX_WORKERS", 1))

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_gps_distance_defaults() -> Dict[str, float]:
    """Get the GPS distance filter defaults as keyword arguments.

    Read at call time so tests can patch the module constants.

    Returns:
        Dictionary suitable for ``GpsDistanceOptions(**defaults)``
    """
    return {
        'min_move_meters': GPS_MIN_MOVE_METERS,
        'max_speed_mps': GPS_MAX_SPEED_MPS,
        'max_jump_meters_at_1s': GPS_MAX_JUMP_METERS_AT_1S,
        'include_elevation': GPS_INCLUDE_ELEVATION,
    }
