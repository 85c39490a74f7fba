"""Convert parser output into normalized activity records."""

import logging
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from models.activity import ActivityRecord, Lap, ParseResult, RawLap
from parsers.exceptions import ParseFailure, PartialDecodeWarning
from utils.gps_distance import DistanceAccumulator, GpsDistanceOptions

logger = logging.getLogger(__name__)


@dataclass
class NormalizedActivity:
    """Normalizer output handed to the assembler."""

    records: Tuple[ActivityRecord, ...]
    laps: Tuple[Lap, ...] = ()
    warnings: List[Warning] = field(default_factory=list)


def _resolve_laps(raw_laps: List[RawLap], start_time, records: Tuple[ActivityRecord, ...]) -> Tuple[Lap, ...]:
    """Map lap start times onto record index ranges.

    Each lap starts at the first record at or after its start time and ends
    just before the next lap. Laps starting after the last record are dropped.
    """
    if not raw_laps or start_time is None:
        return ()

    times = [record.t for record in records]
    ordered = sorted(raw_laps, key=lambda lap: lap.start_time)
    starts = []
    for lap in ordered:
        offset = (lap.start_time - start_time).total_seconds()
        starts.append(min(bisect_left(times, offset), len(records)))

    laps = []
    for i, lap in enumerate(ordered):
        start_index = starts[i]
        if start_index >= len(records):
            continue
        end_index = starts[i + 1] - 1 if i + 1 < len(ordered) else len(records) - 1
        end_index = max(start_index, min(end_index, len(records) - 1))
        laps.append(Lap(
            start_time=lap.start_time,
            start_index=start_index,
            end_index=end_index,
            total_time=lap.total_time,
            distance=lap.distance,
            calories=lap.calories,
            avg_hr=lap.avg_hr,
            max_hr=lap.max_hr,
            avg_cadence=lap.avg_cadence,
            max_cadence=lap.max_cadence,
            avg_speed=lap.avg_speed,
            max_speed=lap.max_speed,
            intensity=lap.intensity,
            trigger=lap.trigger,
        ))
    return tuple(laps)


def normalize(parse_result: ParseResult, distance_options: Optional[GpsDistanceOptions] = None) -> NormalizedActivity:
    """Normalize raw points into ActivityRecords.

    Elapsed time is measured from the first point. A point timestamped before
    its predecessor keeps the predecessor's elapsed time, so ``t`` never goes
    backwards; such points are counted in a warning. Distance comes from the
    source when encoded and is otherwise accumulated from positions.

    Args:
        parse_result: Output of one of the format parsers
        distance_options: GPS distance filtering, defaults to the configured options

    Returns:
        NormalizedActivity with records, resolved laps and warnings

    Raises:
        ParseFailure: If the parse result holds no points
    """
    points = parse_result.points
    if not points:
        raise ParseFailure("No decodable samples")

    options = distance_options or GpsDistanceOptions.from_settings()
    base_time = points[0].time
    accumulator = DistanceAccumulator(options=options)

    records = []
    previous_t = 0.0
    out_of_order = 0
    for point in points:
        t = (point.time - base_time).total_seconds()
        if t < previous_t:
            out_of_order += 1
            t = previous_t
        previous_t = t

        d = accumulator.update(
            t,
            lat=point.lat,
            lon=point.lon,
            alt=point.alt,
            source_distance=point.distance,
        )
        records.append(ActivityRecord(
            t=t,
            d=d,
            lat=point.lat if point.has_position else None,
            lon=point.lon if point.has_position else None,
            hr=point.hr,
            pwr=point.pwr,
            alt=point.alt,
            cad=point.cad,
            speed=point.speed,
            temp=point.temp,
        ))

    warnings = list(parse_result.warnings)
    if out_of_order:
        message = f"{out_of_order} samples had timestamps earlier than the previous sample"
        logger.warning(message)
        warnings.append(PartialDecodeWarning(message, skipped=0))

    records = tuple(records)
    return NormalizedActivity(
        records=records,
        laps=_resolve_laps(parse_result.laps, base_time, records),
        warnings=warnings,
    )
