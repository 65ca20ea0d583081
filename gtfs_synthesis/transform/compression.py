"""Compression of travel-time observations into time-of-day slots."""

import logging
from collections import defaultdict

from gtfs_synthesis.gtfs.models import SegmentTimeSlot, TimeSlotObservation
from gtfs_synthesis.transform.timing import round_half_up

logger = logging.getLogger(__name__)

SERVICE_DAY_END = 36 * 3600  # 36:00:00, end of the extended operating day
SECONDS_PER_DAY = 86400


def fold_time_of_day(seconds: int) -> int:
    """Bring an elapsed time back inside the extended operating day."""
    while seconds >= SERVICE_DAY_END:
        seconds -= SECONDS_PER_DAY
    return max(0, seconds)


def median_duration(durations: list[int]) -> int | None:
    """
    Median of the distinct durations, rounded.

    The two middle values are averaged when the count is even.
    """
    distinct = sorted(set(durations))
    if not distinct:
        return None

    middle = len(distinct) // 2
    if len(distinct) % 2 == 1:
        return distinct[middle]
    return round_half_up((distinct[middle - 1] + distinct[middle]) / 2)


def compress_slots(
    segment_id: str, observations: list[TimeSlotObservation]
) -> tuple[list[SegmentTimeSlot], int | None]:
    """
    Run-length encode one segment's observations into ordered slots.

    Observations sharing a timestamp keep the larger duration. The last slot
    runs to 36:00:00. Returns the slots and the median base travel time.
    """
    positive = [obs for obs in observations if obs.duration_s > 0]
    if not positive:
        return [], None

    by_time: dict[int, int] = {}
    for obs in positive:
        existing = by_time.get(obs.time_of_day_s)
        if existing is None or obs.duration_s > existing:
            by_time[obs.time_of_day_s] = obs.duration_s

    unique = sorted(by_time.items())

    slots: list[SegmentTimeSlot] = []
    current_start, current_duration = unique[0]

    for time_of_day, duration in unique[1:]:
        if duration != current_duration:
            slots.append(
                SegmentTimeSlot(
                    segment_id=segment_id,
                    start_time_of_day=current_start,
                    end_time_of_day=time_of_day,
                    travel_time_s=current_duration,
                )
            )
            current_start = time_of_day
            current_duration = duration

    slots.append(
        SegmentTimeSlot(
            segment_id=segment_id,
            start_time_of_day=current_start,
            end_time_of_day=SERVICE_DAY_END,
            travel_time_s=current_duration,
        )
    )

    base = median_duration([obs.duration_s for obs in positive])
    return slots, base


def compress_all(
    observations: list[TimeSlotObservation],
) -> tuple[dict[str, list[SegmentTimeSlot]], dict[str, int]]:
    """Compress observations of every segment. Returns (slots, base travel times)."""
    logger.info(f"Compressing {len(observations)} travel-time observations")

    by_segment: dict[str, list[TimeSlotObservation]] = defaultdict(list)
    for obs in observations:
        by_segment[obs.segment_id].append(obs)

    slots: dict[str, list[SegmentTimeSlot]] = {}
    bases: dict[str, int] = {}
    for segment_id in sorted(by_segment):
        segment_slots, base = compress_slots(segment_id, by_segment[segment_id])
        if base is None:
            logger.debug(f"Segment {segment_id} has no positive observation, no slots")
            continue
        slots[segment_id] = segment_slots
        bases[segment_id] = base

    total = sum(len(s) for s in slots.values())
    logger.info(f"Built {total} slots for {len(slots)} segments")
    return slots, bases
