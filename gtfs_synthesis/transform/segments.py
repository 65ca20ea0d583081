"""Segment graph: deduplicated stop-to-stop links with distance and geometry."""

import logging
import math
import uuid
from collections.abc import Iterable
from dataclasses import replace
from typing import Protocol

from shapely.geometry import LineString

from gtfs_synthesis.gtfs.models import EMPTY, REVENUE, PatternRow, RoutedPath, Segment, Stop
from gtfs_synthesis.transform.stops import StopRegistry

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000
SEGMENT_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "gtfs-synthesis/segments")


class RouteProvider(Protocol):
    """External routing service answering single origin/destination queries."""

    def route(self, origin: Stop, destination: Stop) -> RoutedPath | None: ...


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate haversine distance between two points in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def stop_distance(a: Stop, b: Stop) -> float:
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def leg_distance_m(row_a: PatternRow, row_b: PatternRow) -> float:
    """
    Distance of the leg between two consecutive pattern rows.

    Precedence: accumulated-distance difference (km), then the per-leg
    distance column of the arriving row (m), then great-circle distance.
    """
    acc_a = row_a.accumulated_distance_km
    acc_b = row_b.accumulated_distance_km
    if acc_a is not None and acc_b is not None:
        delta = abs(acc_b - acc_a) * 1000
        if delta > 0:
            return delta

    if row_b.leg_distance_m is not None and row_b.leg_distance_m > 0:
        return row_b.leg_distance_m

    if row_a.stop is None or row_b.stop is None:
        return 0.0
    return stop_distance(row_a.stop, row_b.stop)


def straight_line(a: Stop, b: Stop) -> LineString:
    return LineString([(a.lon, a.lat), (b.lon, b.lat)])


def segment_id_for(start_stop_id: str, end_stop_id: str) -> str:
    return str(uuid.uuid5(SEGMENT_NAMESPACE, f"{start_stop_id}|{end_stop_id}"))


class SegmentGraph:
    """Dedup cache of segments keyed by stop pair, in either orientation."""

    def __init__(
        self,
        registry: StopRegistry,
        provider: RouteProvider | None = None,
        existing: Iterable[Segment] = (),
    ) -> None:
        self.registry = registry
        self.provider = provider
        self.segments: dict[str, Segment] = {}
        self._by_pair: dict[tuple[str, str], str] = {}

        # Copies, so committed segments stay untouched until the next commit
        for segment in existing:
            self._index(replace(segment))

    def __len__(self) -> int:
        return len(self.segments)

    def _index(self, segment: Segment) -> None:
        self.segments[segment.segment_id] = segment
        self._by_pair[(segment.start_stop_id, segment.end_stop_id)] = segment.segment_id

    def get(self, segment_id: str) -> Segment:
        return self.segments[segment_id]

    def find(self, from_stop_id: str, to_stop_id: str) -> tuple[Segment, bool] | None:
        """Find a segment for the pair; the flag is True when stored the other way round."""
        segment_id = self._by_pair.get((from_stop_id, to_stop_id))
        if segment_id is not None:
            return self.segments[segment_id], False
        segment_id = self._by_pair.get((to_stop_id, from_stop_id))
        if segment_id is not None:
            return self.segments[segment_id], True
        return None

    def get_or_create(
        self,
        from_stop_id: str,
        to_stop_id: str,
        fallback_distance_m: float | None = None,
        kind: str = REVENUE,
    ) -> tuple[str, bool]:
        """Return (segment_id, reversed), creating the segment on first use."""
        found = self.find(from_stop_id, to_stop_id)
        if found is not None:
            segment, reversed_ = found
            if kind == REVENUE and segment.kind == EMPTY:
                segment.kind = REVENUE
            return segment.segment_id, reversed_

        segment = self._create(from_stop_id, to_stop_id, fallback_distance_m, kind)
        self._index(segment)
        logger.debug(
            f"Created {kind} segment {segment.segment_id} "
            f"({from_stop_id} -> {to_stop_id}, {segment.distance_m:.1f}m)"
        )
        return segment.segment_id, False

    def _create(
        self, from_stop_id: str, to_stop_id: str, fallback_distance_m: float | None, kind: str
    ) -> Segment:
        from_stop = self.registry.get(from_stop_id)
        to_stop = self.registry.get(to_stop_id)

        routed = self.provider.route(from_stop, to_stop) if self.provider is not None else None

        if fallback_distance_m is not None and fallback_distance_m > 0:
            distance = fallback_distance_m
        elif routed is not None and routed.distance_m > 0:
            distance = routed.distance_m
        else:
            distance = stop_distance(from_stop, to_stop)

        if routed is not None and len(routed.coordinates) >= 2:
            geometry = LineString(routed.coordinates)
        else:
            geometry = straight_line(from_stop, to_stop)

        return Segment(
            segment_id=segment_id_for(from_stop_id, to_stop_id),
            start_stop_id=from_stop_id,
            end_stop_id=to_stop_id,
            distance_m=distance,
            geometry=geometry,
            kind=kind,
            travel_time_s=round(routed.duration_s) if routed is not None else 0,
        )

    def add_pattern_segments(self, patterns: Iterable) -> int:
        """Create the revenue segments of every pattern; returns how many legs were seen."""
        legs = 0
        for pattern in patterns:
            for row_a, row_b in zip(pattern.rows, pattern.rows[1:]):
                if row_a.stop is None or row_b.stop is None:
                    continue
                if row_a.stop.stop_id == row_b.stop.stop_id:
                    continue
                self.get_or_create(
                    row_a.stop.stop_id,
                    row_b.stop.stop_id,
                    leg_distance_m(row_a, row_b),
                    REVENUE,
                )
                legs += 1
        logger.info(f"Segment graph holds {len(self)} segments after {legs} pattern legs")
        return legs
