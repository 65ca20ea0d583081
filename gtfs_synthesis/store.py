"""Committed synthesis state with all-or-nothing, replace-by-identity commits."""

import logging
from dataclasses import replace

from gtfs_synthesis.errors import CommitError
from gtfs_synthesis.gtfs.models import (
    Segment,
    SegmentTimeSlot,
    ServiceCalendar,
    ShapePoint,
    Stop,
    SynthesisResult,
    SynthesizedStopVisit,
    SynthesizedTrip,
)
from gtfs_synthesis.transform.trips import TEMPLATE_SERVICE_ID

logger = logging.getLogger(__name__)


class SynthesisStore:
    """
    Durable tables of a schedule built over one or more runs.

    A commit stages the next state on a copy and swaps it in only once every
    record has been applied and cross-checked. Records are replaced by
    identity: trips and their visits by trip id, slots and base travel time
    by segment id, segments, stops, calendars and shapes by their own id.
    """

    def __init__(self) -> None:
        self.stops: dict[str, Stop] = {}
        self.segments: dict[str, Segment] = {}
        self.slots: dict[str, list[SegmentTimeSlot]] = {}
        self.base_travel_times: dict[str, int] = {}
        self.trips: dict[str, SynthesizedTrip] = {}
        self.visits: dict[str, list[SynthesizedStopVisit]] = {}
        self.calendars: dict[str, ServiceCalendar] = {}
        self.shapes: dict[str, list[ShapePoint]] = {}

    def __len__(self) -> int:
        return len(self.trips)

    def copy(self) -> "SynthesisStore":
        staged = SynthesisStore()
        staged.stops = dict(self.stops)
        staged.segments = {sid: replace(seg) for sid, seg in self.segments.items()}
        staged.slots = {sid: list(slots) for sid, slots in self.slots.items()}
        staged.base_travel_times = dict(self.base_travel_times)
        staged.trips = dict(self.trips)
        staged.visits = {tid: list(visits) for tid, visits in self.visits.items()}
        staged.calendars = dict(self.calendars)
        staged.shapes = {sid: list(points) for sid, points in self.shapes.items()}
        return staged

    def commit(self, result: SynthesisResult) -> None:
        """Apply a result atomically; raises CommitError and leaves the store untouched on failure."""
        staged = self.copy()
        staged._apply(result)
        staged._check()

        self.stops = staged.stops
        self.segments = staged.segments
        self.slots = staged.slots
        self.base_travel_times = staged.base_travel_times
        self.trips = staged.trips
        self.visits = staged.visits
        self.calendars = staged.calendars
        self.shapes = staged.shapes

        logger.info(
            f"Committed {len(result.trips)} trips, {len(result.segments)} segments, "
            f"{len(result.slots)} slot tables; store holds {len(self.trips)} trips"
        )

    def _apply(self, result: SynthesisResult) -> None:
        for stop in result.stops:
            self.stops[stop.stop_id] = stop

        for segment in result.segments:
            self.segments[segment.segment_id] = replace(segment)

        for segment_id, slots in result.slots.items():
            self.slots[segment_id] = list(slots)
        for segment_id, base in result.base_travel_times.items():
            self.base_travel_times[segment_id] = base

        for trip in result.trips:
            self.trips[trip.trip_id] = trip
            self.visits[trip.trip_id] = list(result.stop_visits.get(trip.trip_id, []))

        for calendar in result.calendars:
            self.calendars[calendar.service_id] = calendar

        new_shapes: dict[str, list[ShapePoint]] = {}
        for point in result.shapes:
            new_shapes.setdefault(point.shape_id, []).append(point)
        for shape_id, points in new_shapes.items():
            self.shapes[shape_id] = sorted(points, key=lambda p: p.sequence)

    def _check(self) -> None:
        for trip_id, visits in self.visits.items():
            if trip_id not in self.trips:
                raise CommitError(f"Stop visits staged for unknown trip {trip_id}")
            for visit in visits:
                if visit.stop_id not in self.stops:
                    raise CommitError(f"Trip {trip_id} visits unknown stop {visit.stop_id}")

        for segment_id in self.slots:
            if segment_id not in self.segments:
                raise CommitError(f"Time slots staged for unknown segment {segment_id}")

        for segment in self.segments.values():
            for stop_id in (segment.start_stop_id, segment.end_stop_id):
                if stop_id not in self.stops:
                    raise CommitError(f"Segment {segment.segment_id} uses unknown stop {stop_id}")

        for trip in self.trips.values():
            if trip.shape_id is not None and trip.shape_id not in self.shapes:
                raise CommitError(f"Trip {trip.trip_id} references unknown shape {trip.shape_id}")

    def template_trips(self) -> list[SynthesizedTrip]:
        return [trip for trip in self.trips.values() if trip.service_id == TEMPLATE_SERVICE_ID]

    def shape_index(self) -> dict[tuple[str, ...], str]:
        """Stop sequence -> shape id, for trips that already carry a shape."""
        index: dict[tuple[str, ...], str] = {}
        for trip in self.trips.values():
            if trip.shape_id is None:
                continue
            visits = sorted(self.visits.get(trip.trip_id, []), key=lambda v: v.sequence)
            index.setdefault(tuple(v.stop_id for v in visits), trip.shape_id)
        return index

    def to_result(self) -> SynthesisResult:
        """Whole committed state as a result, in a stable order."""
        return SynthesisResult(
            stops=sorted(self.stops.values(), key=lambda s: s.stop_id),
            segments=sorted(self.segments.values(), key=lambda s: s.segment_id),
            slots={sid: self.slots[sid] for sid in sorted(self.slots)},
            base_travel_times={sid: self.base_travel_times[sid] for sid in sorted(self.base_travel_times)},
            trips=sorted(self.trips.values(), key=lambda t: t.trip_id),
            stop_visits={tid: self.visits[tid] for tid in sorted(self.visits)},
            calendars=sorted(self.calendars.values(), key=lambda c: c.service_id),
            shapes=[point for sid in sorted(self.shapes) for point in self.shapes[sid]],
        )
