"""Travel-time band export: per-leg time-of-day bands of each template trip."""

import csv
import logging
from pathlib import Path

from gtfs_synthesis.gtfs.models import Segment, Stop
from gtfs_synthesis.store import SynthesisStore
from gtfs_synthesis.transform.compression import SERVICE_DAY_END
from gtfs_synthesis.transform.daywrap import format_time
from gtfs_synthesis.transform.timing import round_half_up

logger = logging.getLogger(__name__)

HEADERS = [
    "Line",
    "Route",
    "Version",
    "DayType",
    "Type",
    "Departure",
    "Arrival",
    "Start",
    "End",
    "MinTime",
    "OptTime",
    "MaxTime",
]
TOLERANCE_S = 60


def format_minutes(seconds: int) -> str:
    """Seconds rounded to whole minutes, as HH:MM."""
    total_minutes = round_half_up(seconds / 60)
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def stop_label(stop: Stop) -> str:
    return f"{stop.code}-{stop.name}" if stop.code else stop.name


def segment_pair_index(store: SynthesisStore) -> dict[frozenset[str], Segment]:
    """Segments keyed by their unordered stop pair; the first stored one wins."""
    index: dict[frozenset[str], Segment] = {}
    for segment in store.segments.values():
        index.setdefault(frozenset((segment.start_stop_id, segment.end_stop_id)), segment)
    return index


def _stop_row(line: str, route: str, version: str, day_type: str, label: str) -> dict[str, str]:
    return {
        "Line": line,
        "Route": route,
        "Version": version,
        "DayType": day_type,
        "Type": "stop",
        "Departure": label,
        "Arrival": label,
        "Start": format_time(0),
        "End": format_time(SERVICE_DAY_END),
        "MinTime": "00:00",
        "OptTime": "00:00",
        "MaxTime": "00:00",
    }


def _trip_row(
    line: str, route: str, version: str, day_type: str,
    departure: str, arrival: str, start: int, end: int, travel_time: int,
) -> dict[str, str]:
    return {
        "Line": line,
        "Route": route,
        "Version": version,
        "DayType": day_type,
        "Type": "trip",
        "Departure": departure,
        "Arrival": arrival,
        "Start": format_time(start),
        "End": format_time(end),
        "MinTime": format_minutes(max(0, travel_time - TOLERANCE_S)),
        "OptTime": format_minutes(travel_time),
        "MaxTime": format_minutes(travel_time + TOLERANCE_S),
    }


def build_travel_time_rows(
    store: SynthesisStore, day_type: str = "", version: str = ""
) -> list[dict[str, str]]:
    """
    Travel-time bands for every leg of every template trip.

    Band boundaries are shared by all legs of a trip: every slot start and
    end of its segments, plus 00:00:00 and 36:00:00. Consecutive bands with
    the same travel time are merged; a band no slot covers uses the
    segment's base travel time. Each leg is followed by a stop row for its
    departure stop, and the trip ends with a stop row for the last stop.
    """
    rows: list[dict[str, str]] = []
    segments_by_pair = segment_pair_index(store)

    for trip in sorted(store.template_trips(), key=lambda t: (t.route_id, t.direction_id)):
        visits = sorted(store.visits.get(trip.trip_id, []), key=lambda v: v.sequence)
        stop_ids = [visit.stop_id for visit in visits]
        if len(stop_ids) < 2:
            continue

        legs: list[tuple[Stop, Stop, Segment]] = []
        for from_stop_id, to_stop_id in zip(stop_ids, stop_ids[1:]):
            segment = segments_by_pair.get(frozenset((from_stop_id, to_stop_id)))
            from_stop = store.stops.get(from_stop_id)
            to_stop = store.stops.get(to_stop_id)
            if segment is None or from_stop is None or to_stop is None:
                logger.debug(f"Template trip {trip.trip_id} leg {from_stop_id}->{to_stop_id} skipped")
                continue
            legs.append((from_stop, to_stop, segment))
        if not legs:
            continue

        boundaries = {0, SERVICE_DAY_END}
        for _, _, segment in legs:
            for slot in store.slots.get(segment.segment_id, []):
                boundaries.add(slot.start_time_of_day)
                boundaries.add(slot.end_time_of_day)
        bands = sorted(boundaries)

        line = trip.route_id
        route = f"{trip.route_id}-{trip.direction_id}"

        for from_stop, to_stop, segment in legs:
            departure = stop_label(from_stop)
            arrival = stop_label(to_stop)
            slots = store.slots.get(segment.segment_id, [])
            base = store.base_travel_times.get(segment.segment_id, segment.travel_time_s)

            current_time: int | None = None
            current_start = 0
            for band_start in bands[:-1]:
                travel_time = base
                for slot in slots:
                    if slot.start_time_of_day <= band_start < slot.end_time_of_day:
                        travel_time = slot.travel_time_s
                        break

                if current_time is None:
                    current_time = travel_time
                    current_start = band_start
                elif travel_time != current_time:
                    rows.append(_trip_row(
                        line, route, version, day_type, departure, arrival,
                        current_start, band_start, current_time,
                    ))
                    current_time = travel_time
                    current_start = band_start

            if current_time is not None:
                rows.append(_trip_row(
                    line, route, version, day_type, departure, arrival,
                    current_start, SERVICE_DAY_END, current_time,
                ))
            rows.append(_stop_row(line, route, version, day_type, departure))

        rows.append(_stop_row(line, route, version, day_type, stop_label(legs[-1][1])))

    logger.info(f"Built {len(rows)} travel-time rows")
    return rows


def write_travel_times(output_path: Path, rows: list[dict[str, str]]) -> str:
    """Write the rows as a ';'-separated CSV."""
    output_path.mkdir(parents=True, exist_ok=True)
    path = output_path / "travel_times.csv"
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=HEADERS, delimiter=";", lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
    logger.info(f"Wrote {path}")
    return str(path)
