"""Trip synthesis from itinerary events, plus template trips and calendars."""

import logging
from datetime import date, timedelta

from gtfs_synthesis.errors import MissingRequiredField
from gtfs_synthesis.gtfs.models import (
    EMPTY,
    REVENUE,
    ItineraryEvent,
    PatternRow,
    ServiceCalendar,
    SynthesizedStopVisit,
    SynthesizedTrip,
    TimeSlotObservation,
)
from gtfs_synthesis.gtfs.rows import finite_float
from gtfs_synthesis.transform.compression import fold_time_of_day
from gtfs_synthesis.transform.daywrap import SECONDS_PER_DAY, NormalizedTime, normalize_visits, parse_time
from gtfs_synthesis.transform.matching import match_event
from gtfs_synthesis.transform.routes import PatternSet, parse_direction
from gtfs_synthesis.transform.segments import SegmentGraph, leg_distance_m, stop_distance
from gtfs_synthesis.transform.stops import StopRegistry
from gtfs_synthesis.transform.timing import distribute, offsets

logger = logging.getLogger(__name__)

TEMPLATE_SERVICE_ID = "TEMPLATE"


def parse_direction_hint(raw: str | None) -> int | None:
    """Direction hint of an itinerary row; anything but 0 or 1 becomes 0."""
    if raw is None or not raw.strip():
        return None
    direction = parse_direction(raw)
    return direction if direction in (0, 1) else 0


def template_trip_id(route_id: str, direction_id: int) -> str:
    return f"t_{route_id}_{direction_id}"


def _parse_event_time(value: str, label: str) -> int:
    try:
        return parse_time(value)
    except ValueError as e:
        raise MissingRequiredField(f"Invalid {label} time: {e}") from None


def _parse_duration(value: str) -> int:
    try:
        if ":" in value:
            return parse_time(value)
        return int(finite_float(value))
    except ValueError:
        raise MissingRequiredField(f"Invalid duration: {value!r}") from None


def _elapsed_between(start: int, end: int) -> int:
    """Seconds from start to end, assuming end is on the following day when earlier."""
    duration = end - start
    if duration < 0:
        duration += SECONDS_PER_DAY
    return duration


def _visits(
    trip_id: str, stop_ids: list[str], times: list[NormalizedTime]
) -> list[SynthesizedStopVisit]:
    return [
        SynthesizedStopVisit(
            trip_id=trip_id,
            stop_id=stop_id,
            sequence=idx + 1,
            arrival_elapsed=time.arrival,
            departure_elapsed=time.departure,
            distance_traveled_km=time.distance_km,
        )
        for idx, (stop_id, time) in enumerate(zip(stop_ids, times))
    ]


class TripSynthesizer:
    """Synthesize one trip per itinerary event, collecting travel-time observations."""

    def __init__(
        self,
        registry: StopRegistry,
        patterns: PatternSet,
        graph: SegmentGraph,
        default_block: str = "1",
    ) -> None:
        self.registry = registry
        self.patterns = patterns
        self.graph = graph
        self.default_block = default_block

        self.trips: dict[str, SynthesizedTrip] = {}
        self.visits: dict[str, list[SynthesizedStopVisit]] = {}
        self.trip_observations: dict[str, list[TimeSlotObservation]] = {}
        self.routeless_observations: list[TimeSlotObservation] = []
        self.service_ids: list[str] = []

    @property
    def observations(self) -> list[TimeSlotObservation]:
        """Observations of the surviving trips, then of route-less movements."""
        collected = [obs for trip_obs in self.trip_observations.values() for obs in trip_obs]
        return collected + self.routeless_observations

    def trip_id_for(self, event: ItineraryEvent) -> str:
        if event.trip_id:
            return event.trip_id
        block = event.block_ref or self.default_block
        clean_start = event.start_time.replace(":", "").replace(".", "")
        return f"T_{block}_{clean_start}"

    def process(self, event: ItineraryEvent) -> None:
        """Synthesize the event; raises SynthesisError when it has to be skipped."""
        if event.kind == REVENUE:
            self._process_revenue(event)
        else:
            self._process_deadhead(event)

        if event.service_id not in self.service_ids:
            self.service_ids.append(event.service_id)

    def _store(
        self,
        trip: SynthesizedTrip,
        visits: list[SynthesizedStopVisit],
        observations: list[TimeSlotObservation],
    ) -> None:
        if trip.trip_id in self.trips:
            logger.debug(f"Trip {trip.trip_id} superseded by a later event")
            del self.trips[trip.trip_id]
            del self.trip_observations[trip.trip_id]
        self.trips[trip.trip_id] = trip
        self.visits[trip.trip_id] = visits
        self.trip_observations[trip.trip_id] = observations

    def _process_revenue(self, event: ItineraryEvent) -> None:
        if not event.route_id:
            raise MissingRequiredField("Missing route_id for revenue trip")

        start = _parse_event_time(event.start_time, "start")
        end = _parse_event_time(event.end_time, "end") if event.end_time else None

        match = match_event(
            self.patterns,
            event.route_id,
            event.origin_ref,
            event.dest_ref,
            parse_direction_hint(event.direction_hint),
        )
        rows = match.rows

        leg_distances = [leg_distance_m(a, b) for a, b in zip(rows, rows[1:])]
        segment_ids: list[str | None] = []
        for (row_a, row_b), distance in zip(zip(rows, rows[1:]), leg_distances):
            if row_a.stop.stop_id == row_b.stop.stop_id:
                segment_ids.append(None)
                continue
            segment_id, _ = self.graph.get_or_create(
                row_a.stop.stop_id, row_b.stop.stop_id, distance, REVENUE
            )
            segment_ids.append(segment_id)

        if end is not None:
            duration = _elapsed_between(start, end)
        elif event.duration:
            duration = _parse_duration(event.duration)
        else:
            duration = sum(self.graph.get(s).travel_time_s for s in segment_ids if s is not None)

        leg_durations = distribute(leg_distances, duration)
        raw_times = [(start + offset, start + offset) for offset in offsets(leg_durations)]
        times = normalize_visits(raw_times, leg_distances_m=leg_distances)

        trip_id = self.trip_id_for(event)
        trip = SynthesizedTrip(
            trip_id=trip_id,
            route_id=event.route_id,
            service_id=event.service_id,
            direction_id=match.pattern.direction_id,
            block_id=event.block_ref,
        )
        visits = _visits(trip_id, [row.stop.stop_id for row in rows], times)

        observations = [
            TimeSlotObservation(
                segment_id=segment_id,
                time_of_day_s=fold_time_of_day(times[idx].departure),
                duration_s=leg_durations[idx],
            )
            for idx, segment_id in enumerate(segment_ids)
            if segment_id is not None
        ]

        self._store(trip, visits, observations)

    def _process_deadhead(self, event: ItineraryEvent) -> None:
        start = _parse_event_time(event.start_time, "start")
        end = _parse_event_time(event.end_time, "end") if event.end_time else None

        from_stop = self.registry.resolve_or_raise(event.origin_ref)
        to_stop = self.registry.resolve_or_raise(event.dest_ref)
        distance = stop_distance(from_stop, to_stop)

        segment_id = None
        if from_stop.stop_id != to_stop.stop_id:
            segment_id, _ = self.graph.get_or_create(
                from_stop.stop_id, to_stop.stop_id, distance, EMPTY
            )

        observations: list[TimeSlotObservation] = []
        if segment_id is not None and end is not None:
            observations.append(
                TimeSlotObservation(
                    segment_id=segment_id,
                    time_of_day_s=fold_time_of_day(start),
                    duration_s=_elapsed_between(start, end),
                )
            )

        if not event.route_id:
            # Without a route the movement only feeds the segment table
            self.routeless_observations.extend(observations)
            return

        arrival = end if end is not None else start
        times = normalize_visits([(start, start), (arrival, arrival)], leg_distances_m=[distance])

        trip_id = self.trip_id_for(event)
        trip = SynthesizedTrip(
            trip_id=trip_id,
            route_id=event.route_id,
            service_id=event.service_id,
            direction_id=parse_direction_hint(event.direction_hint) or 0,
            block_id=event.block_ref,
        )
        visits = _visits(trip_id, [from_stop.stop_id, to_stop.stop_id], times)
        self._store(trip, visits, observations)


def build_template_trips(
    patterns: PatternSet,
) -> tuple[list[SynthesizedTrip], dict[str, list[SynthesizedStopVisit]]]:
    """One TEMPLATE trip per pattern, carrying the pattern's stops and distances."""
    trips: list[SynthesizedTrip] = []
    visits: dict[str, list[SynthesizedStopVisit]] = {}

    for pattern in patterns:
        trip_id = template_trip_id(pattern.route_id, pattern.direction_id)
        legs = [leg_distance_m(a, b) for a, b in zip(pattern.rows, pattern.rows[1:])]
        times = normalize_visits([(0, 0)] * len(pattern.rows), leg_distances_m=legs)

        trips.append(
            SynthesizedTrip(
                trip_id=trip_id,
                route_id=pattern.route_id,
                service_id=TEMPLATE_SERVICE_ID,
                direction_id=pattern.direction_id,
            )
        )
        visits[trip_id] = _visits(trip_id, [row.stop.stop_id for row in pattern.rows], times)

    logger.info(f"Built {len(trips)} template trips")
    return trips, visits


def pattern_rows_from_templates(
    trips: list[SynthesizedTrip],
    visits: dict[str, list[SynthesizedStopVisit]],
    registry: StopRegistry,
) -> list[PatternRow]:
    """Rebuild canonical pattern rows from stored template trips."""
    rows: list[PatternRow] = []
    for trip in trips:
        if trip.service_id != TEMPLATE_SERVICE_ID:
            continue
        for visit in visits.get(trip.trip_id, []):
            stop = registry.by_id.get(visit.stop_id)
            if stop is None:
                logger.warning(f"Template trip {trip.trip_id} references unknown stop {visit.stop_id}")
                continue
            rows.append(
                PatternRow(
                    row=visit.sequence,
                    route_id=trip.route_id,
                    sequence=visit.sequence,
                    stop_ref=stop.code,
                    direction_raw=str(trip.direction_id),
                    accumulated_distance_km=visit.distance_traveled_km,
                )
            )
    return rows


def build_calendars(
    service_ids: list[str], start_date: str | None = None, days: int = 365
) -> list[ServiceCalendar]:
    """All-days calendar for each service id, valid from start_date for the given days."""
    start = date.today() if start_date is None else date(
        int(start_date[:4]), int(start_date[4:6]), int(start_date[6:8])
    )
    end = start + timedelta(days=days)

    return [
        ServiceCalendar(
            service_id=service_id,
            start_date=start.strftime("%Y%m%d"),
            end_date=end.strftime("%Y%m%d"),
        )
        for service_id in service_ids
    ]
