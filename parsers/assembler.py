"""Build Activity values from normalized records."""

import logging
import threading
import uuid
from datetime import datetime
from pathlib import PurePath
from typing import Callable, Optional, Sequence

from config.settings import ACTIVITY_COLORS
from models.activity import Activity
from parsers.normalizer import NormalizedActivity

logger = logging.getLogger(__name__)


def generate_activity_id() -> str:
    return f"activity-{uuid.uuid4().hex}"


class ColorPalette:
    """Hands out activity colors by cycling a fixed palette in import order.

    Shared by every activity created through one assembler, so access to the
    counter is serialized.
    """

    def __init__(self, colors: Sequence[str] = ACTIVITY_COLORS):
        if not colors:
            raise ValueError("Color palette must contain at least one color")
        self.colors = tuple(colors)
        self._next_index = 0
        self._lock = threading.Lock()

    def color_for_index(self, index: int) -> str:
        """Color assigned to the activity at a given position in the list."""
        return self.colors[index % len(self.colors)]

    def next_color(self) -> str:
        with self._lock:
            color = self.color_for_index(self._next_index)
            self._next_index += 1
        return color

    def reset(self) -> None:
        with self._lock:
            self._next_index = 0


class ActivityAssembler:
    """Wraps normalized records and metadata into Activity values."""

    def __init__(self, palette: Optional[ColorPalette] = None,
                 id_factory: Optional[Callable[[], str]] = None):
        """Initialize the assembler.

        Args:
            palette: Color source shared by assembled activities
            id_factory: Callable producing unique activity identifiers
        """
        self.palette = palette or ColorPalette()
        self.id_factory = id_factory or generate_activity_id

    def assemble(
        self,
        normalized: NormalizedActivity,
        file_name: str,
        source_type: Optional[str] = None,
        start_time: Optional[datetime] = None,
        sport: Optional[str] = None,
        calories: Optional[float] = None,
    ) -> Activity:
        """Create an Activity with a fresh id, the next palette color and zero offset.

        Args:
            normalized: Normalizer output for one file
            file_name: Uploaded file name, used as the display name
            source_type: Detected file format
            start_time: Absolute time of the first record
            sport: Sport reported by the file
            calories: Total calories reported by the file

        Returns:
            New Activity
        """
        if not normalized.records:
            raise ValueError("Cannot assemble an activity without records")

        activity = Activity(
            id=self.id_factory(),
            name=PurePath(file_name.replace('\\', '/')).name or file_name,
            records=tuple(normalized.records),
            color=self.palette.next_color(),
            offset=0.0,
            start_time=start_time,
            source_type=source_type,
            sport=sport,
            calories=calories,
            laps=tuple(normalized.laps),
            warnings=tuple(normalized.warnings),
        )
        logger.debug(f"Assembled {activity.id} ({activity.name}) with {len(activity.records)} records")
        return activity

    @staticmethod
    def set_offset(activity: Activity, offset: float) -> Activity:
        """Return the activity shifted ``offset`` seconds on the shared timeline.

        The records are shared with the original, not copied or modified.
        """
        return activity.with_offset(offset)

    @staticmethod
    def rename(activity: Activity, name: str) -> Activity:
        return activity.with_name(name)
