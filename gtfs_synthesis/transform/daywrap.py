"""Clock time handling and day-rollover normalization of stop visits."""

import logging
from dataclasses import dataclass

from gtfs_synthesis.transform.segments import haversine_distance

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


def parse_time(time_str: str) -> int:
    """Parse HH:MM:SS, optionally prefixed by a day count (D.HH:MM:SS), to seconds."""
    value = time_str.strip()
    if not value:
        raise ValueError("Empty time value")

    days = 0
    if "." in value:
        day_part, _, value = value.partition(".")
        try:
            days = int(day_part)
        except ValueError:
            raise ValueError(f"Invalid time format: {time_str}") from None

    parts = value.split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time format: {time_str}")

    try:
        hours = int(parts[0])
        minutes = int(parts[1])
        seconds = int(parts[2]) if len(parts) == 3 else 0
    except ValueError:
        raise ValueError(f"Invalid time format: {time_str}") from None

    return days * SECONDS_PER_DAY + hours * 3600 + minutes * 60 + seconds


def format_time(total_seconds: int) -> str:
    """Format seconds as HH:MM:SS; hours may exceed 24."""
    total_seconds = int(total_seconds)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def to_km3(meters: float) -> float:
    return round(meters / 1000, 3)


@dataclass(frozen=True)
class NormalizedTime:
    """Elapsed times and cumulative distance of one stop visit."""

    arrival: int
    departure: int
    distance_km: float


def normalize_visits(
    raw_times: list[tuple[int, int]],
    leg_distances_m: list[float] | None = None,
    coordinates: list[tuple[float, float]] | None = None,
) -> list[NormalizedTime]:
    """
    Turn per-stop (arrival, departure) clock seconds into elapsed seconds.

    A stop whose arrival would fall before the previous departure is moved
    to the next day, and the shift carries over to every later stop. A
    departure earlier than its own arrival is pushed by one day alone.

    Cumulative distance comes from leg_distances_m (one per leg) or, when
    absent, from great-circle distance between (lat, lon) coordinates. It
    is expressed in km with 3 decimals and kept strictly increasing.
    """
    if leg_distances_m is not None and len(leg_distances_m) != max(0, len(raw_times) - 1):
        raise ValueError(
            f"Expected {max(0, len(raw_times) - 1)} leg distances, got {len(leg_distances_m)}"
        )
    if leg_distances_m is None and coordinates is not None and len(coordinates) != len(raw_times):
        raise ValueError(f"Expected {len(raw_times)} coordinates, got {len(coordinates)}")

    normalized: list[NormalizedTime] = []
    day_offset = 0
    last_departure: int | None = None
    cumulative_m = 0.0
    previous_km: float | None = None

    for idx, (arrival, departure) in enumerate(raw_times):
        if idx > 0 and last_departure is not None:
            if arrival + day_offset < last_departure:
                day_offset += SECONDS_PER_DAY
                logger.debug(f"Day rollover before stop {idx + 1}, offset now {day_offset}s")

        effective_arrival = arrival + day_offset
        effective_departure = departure + day_offset
        if effective_departure < effective_arrival:
            if departure + day_offset + SECONDS_PER_DAY >= effective_arrival:
                effective_departure += SECONDS_PER_DAY

        last_departure = effective_departure

        if idx > 0:
            if leg_distances_m is not None:
                cumulative_m += leg_distances_m[idx - 1]
            elif coordinates is not None:
                lat1, lon1 = coordinates[idx - 1]
                lat2, lon2 = coordinates[idx]
                cumulative_m += haversine_distance(lat1, lon1, lat2, lon2)

        distance_km = to_km3(cumulative_m)
        # Strictly increasing after 3-decimal rounding
        if previous_km is not None and distance_km <= previous_km:
            distance_km = round(previous_km + 0.001, 3)
        previous_km = distance_km

        normalized.append(NormalizedTime(effective_arrival, effective_departure, distance_km))

    return normalized
