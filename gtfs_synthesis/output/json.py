"""JSON persistence of the synthesis store and the per-run error list."""

import json
import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any

from shapely.geometry import mapping, shape

from gtfs_synthesis.errors import RowError
from gtfs_synthesis.gtfs.models import (
    Segment,
    SegmentTimeSlot,
    ServiceCalendar,
    ShapePoint,
    Stop,
    SynthesizedStopVisit,
    SynthesizedTrip,
)
from gtfs_synthesis.store import SynthesisStore
from gtfs_synthesis.transform.daywrap import format_time, parse_time

logger = logging.getLogger(__name__)

STORE_FILES = [
    "stops.json",
    "segments.json",
    "time_slots.json",
    "trips.json",
    "stop_times.json",
    "calendars.json",
    "shapes.json",
]


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON next to the target, then rename it over the target."""
    tmp_path = path.with_name(f".{path.name}.tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)
        f.write("\n")
    os.replace(tmp_path, path)


def _segment_to_dict(segment: Segment, base: int | None) -> dict[str, Any]:
    return {
        "segment_id": segment.segment_id,
        "start_stop_id": segment.start_stop_id,
        "end_stop_id": segment.end_stop_id,
        "distance_m": segment.distance_m,
        "kind": segment.kind,
        "travel_time_s": segment.travel_time_s,
        "base_travel_time_s": base,
        "geometry": mapping(segment.geometry),
    }


def _slot_to_dict(slot: SegmentTimeSlot) -> dict[str, Any]:
    return {
        "start_time": format_time(slot.start_time_of_day),
        "end_time": format_time(slot.end_time_of_day),
        "travel_time_s": slot.travel_time_s,
    }


def _visit_to_dict(visit: SynthesizedStopVisit) -> dict[str, Any]:
    data = asdict(visit)
    data["arrival_time"] = format_time(visit.arrival_elapsed)
    data["departure_time"] = format_time(visit.departure_elapsed)
    return data


def write_store(output_path: Path, store: SynthesisStore) -> dict[str, str]:
    """Write every store table as JSON. Returns filename -> path."""
    logger.info(f"Writing store tables to {output_path}")
    output_path.mkdir(parents=True, exist_ok=True)

    snapshot = store.to_result()
    tables: dict[str, Any] = {
        "stops.json": [asdict(stop) for stop in snapshot.stops],
        "segments.json": [
            _segment_to_dict(segment, snapshot.base_travel_times.get(segment.segment_id))
            for segment in snapshot.segments
        ],
        "time_slots.json": {
            segment_id: [_slot_to_dict(slot) for slot in slots]
            for segment_id, slots in snapshot.slots.items()
        },
        "trips.json": [asdict(trip) for trip in snapshot.trips],
        "stop_times.json": {
            trip_id: [_visit_to_dict(visit) for visit in visits]
            for trip_id, visits in snapshot.stop_visits.items()
        },
        "calendars.json": [asdict(calendar) for calendar in snapshot.calendars],
        "shapes.json": [asdict(point) for point in snapshot.shapes],
    }

    files_written: dict[str, str] = {}
    for filename, data in tables.items():
        path = output_path / filename
        write_json_atomic(path, data)
        files_written[filename] = str(path)
        logger.debug(f"Wrote {path}")

    logger.info(f"Wrote {len(files_written)} store tables")
    return files_written


def write_errors(output_path: Path, errors: list[RowError]) -> str:
    output_path.mkdir(parents=True, exist_ok=True)
    path = output_path / "errors.json"
    write_json_atomic(path, [asdict(error) for error in errors])
    logger.info(f"Wrote {len(errors)} errors to {path}")
    return str(path)


def _load(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_store(output_path: Path) -> SynthesisStore:
    """
    Load a store written by write_store.

    Missing tables load as empty, so a fresh output directory yields an
    empty store.
    """
    store = SynthesisStore()
    if not output_path.is_dir():
        return store

    for data in _load(output_path / "stops.json", []):
        stop = Stop(**data)
        store.stops[stop.stop_id] = stop

    for data in _load(output_path / "segments.json", []):
        base = data.pop("base_travel_time_s", None)
        data["geometry"] = shape(data["geometry"])
        segment = Segment(**data)
        store.segments[segment.segment_id] = segment
        if base is not None:
            store.base_travel_times[segment.segment_id] = base

    for segment_id, slots in _load(output_path / "time_slots.json", {}).items():
        store.slots[segment_id] = [
            SegmentTimeSlot(
                segment_id=segment_id,
                start_time_of_day=parse_time(slot["start_time"]),
                end_time_of_day=parse_time(slot["end_time"]),
                travel_time_s=slot["travel_time_s"],
            )
            for slot in slots
        ]

    for data in _load(output_path / "trips.json", []):
        trip = SynthesizedTrip(**data)
        store.trips[trip.trip_id] = trip

    for trip_id, visits in _load(output_path / "stop_times.json", {}).items():
        store.visits[trip_id] = [
            SynthesizedStopVisit(
                trip_id=visit["trip_id"],
                stop_id=visit["stop_id"],
                sequence=visit["sequence"],
                arrival_elapsed=visit["arrival_elapsed"],
                departure_elapsed=visit["departure_elapsed"],
                distance_traveled_km=visit["distance_traveled_km"],
            )
            for visit in visits
        ]

    for data in _load(output_path / "calendars.json", []):
        calendar = ServiceCalendar(**data)
        store.calendars[calendar.service_id] = calendar

    for data in _load(output_path / "shapes.json", []):
        point = ShapePoint(**data)
        store.shapes.setdefault(point.shape_id, []).append(point)

    logger.info(
        f"Loaded store from {output_path}: {len(store.stops)} stops, "
        f"{len(store.segments)} segments, {len(store.trips)} trips"
    )
    return store
