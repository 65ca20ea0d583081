"""Shape generation from segment geometry."""

import logging
from dataclasses import replace

from gtfs_synthesis.gtfs.models import ShapePoint, SynthesizedStopVisit, SynthesizedTrip
from gtfs_synthesis.transform.daywrap import to_km3
from gtfs_synthesis.transform.segments import SegmentGraph, haversine_distance
from gtfs_synthesis.transform.stops import StopRegistry

logger = logging.getLogger(__name__)


def _leg_coordinates(graph: SegmentGraph, from_stop_id: str, to_stop_id: str) -> list[tuple[float, float]]:
    """(lon, lat) points of a leg, oriented from -> to."""
    found = graph.find(from_stop_id, to_stop_id)
    if found is not None:
        segment, reversed_ = found
        coords = [(x, y) for x, y, *_ in segment.geometry.coords]
        return coords[::-1] if reversed_ else coords

    start = graph.registry.get(from_stop_id)
    end = graph.registry.get(to_stop_id)
    return [(start.lon, start.lat), (end.lon, end.lat)]


def build_shapes(
    trips: list[SynthesizedTrip],
    visits: dict[str, list[SynthesizedStopVisit]],
    graph: SegmentGraph,
    registry: StopRegistry,
    known: dict[tuple[str, ...], str] | None = None,
) -> tuple[list[SynthesizedTrip], list[ShapePoint]]:
    """
    Assign a shape to every trip with at least two visits.

    Trips sharing a stop sequence share a shape. Sequences found in known
    (stop sequence -> shape id, from earlier runs) reuse that shape and
    produce no new points. Returns the trips with shape ids set, and the
    points of the newly created shapes.
    """
    logger.info("Building shapes from segment geometry")

    shapes: list[ShapePoint] = []
    shape_by_sequence: dict[tuple[str, ...], str] = dict(known or {})
    taken = set(shape_by_sequence.values())
    created = 0
    shaped_trips: list[SynthesizedTrip] = []

    for trip in trips:
        trip_visits = sorted(visits.get(trip.trip_id, []), key=lambda v: v.sequence)
        stop_ids = tuple(v.stop_id for v in trip_visits)
        if len(stop_ids) < 2 or any(stop_id not in registry.by_id for stop_id in stop_ids):
            shaped_trips.append(trip)
            continue

        shape_id = shape_by_sequence.get(stop_ids)
        if shape_id is None:
            n = len(taken) + 1
            while f"shp_{trip.route_id}_{trip.direction_id}_{n}" in taken:
                n += 1
            shape_id = f"shp_{trip.route_id}_{trip.direction_id}_{n}"
            shape_by_sequence[stop_ids] = shape_id
            taken.add(shape_id)
            created += 1
            shapes.extend(_shape_points(shape_id, stop_ids, graph))

        shaped_trips.append(replace(trip, shape_id=shape_id))

    logger.info(f"Built {created} new shapes with {len(shapes)} points")
    return shaped_trips, shapes


def _shape_points(shape_id: str, stop_ids: tuple[str, ...], graph: SegmentGraph) -> list[ShapePoint]:
    first = graph.registry.get(stop_ids[0])
    points: list[tuple[float, float]] = [(first.lon, first.lat)]

    for from_stop_id, to_stop_id in zip(stop_ids, stop_ids[1:]):
        if from_stop_id == to_stop_id:
            continue
        # First point of each leg repeats the previous leg's end
        points.extend(_leg_coordinates(graph, from_stop_id, to_stop_id)[1:])

    result: list[ShapePoint] = []
    cumulative_m = 0.0
    previous_km: float | None = None
    for idx, (lon, lat) in enumerate(points):
        if idx > 0:
            prev_lon, prev_lat = points[idx - 1]
            cumulative_m += haversine_distance(prev_lat, prev_lon, lat, lon)

        distance_km = to_km3(cumulative_m)
        if previous_km is not None and distance_km <= previous_km:
            distance_km = round(previous_km + 0.001, 3)
        previous_km = distance_km

        result.append(
            ShapePoint(
                shape_id=shape_id,
                lat=round(lat, 6),
                lon=round(lon, 6),
                sequence=idx + 1,
                dist_traveled_km=distance_km,
            )
        )
    return result
