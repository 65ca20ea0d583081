"""Time distribution across the legs of a matched sub-pattern."""

import logging
import math

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def distribute(leg_distances: list[float], total_duration: int) -> list[int]:
    """
    Spread a duration over legs in proportion to their distance.

    Every leg but the last gets its rounded share; the last leg takes the
    remainder so the allocation sums exactly to the duration. With no
    distance or no duration the split is even, the integer remainder going
    to the earliest legs. Leg durations are floored at zero.
    """
    count = len(leg_distances)
    if count == 0:
        return []

    total_duration = max(0, int(total_duration))
    total_distance = sum(leg_distances)

    if total_distance <= 0 or total_duration == 0:
        share, remainder = divmod(total_duration, count)
        return [share + (1 if i < remainder else 0) for i in range(count)]

    durations: list[int] = []
    assigned = 0
    for distance in leg_distances[:-1]:
        leg = max(0, round_half_up(total_duration * distance / total_distance))
        durations.append(leg)
        assigned += leg
    durations.append(max(0, total_duration - assigned))

    return durations


def offsets(durations: list[int]) -> list[int]:
    """Cumulative offsets from the first stop: [0, d0, d0+d1, ...]."""
    result = [0]
    for duration in durations:
        result.append(result[-1] + duration)
    return result
