"""Event matching: locate an event's origin/destination inside a route pattern."""

import logging
from dataclasses import dataclass

from gtfs_synthesis.errors import PatternNotFound, StopPairNotFound
from gtfs_synthesis.gtfs.models import Pattern, PatternRow
from gtfs_synthesis.transform.routes import PatternSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Match:
    """Contiguous sub-pattern between an event's origin and destination."""

    pattern: Pattern
    start_index: int
    end_index: int

    @property
    def rows(self) -> list[PatternRow]:
        return self.pattern.rows[self.start_index : self.end_index + 1]


def find_ref(rows: list[PatternRow], ref: str) -> int:
    """Index of the first row whose stop code equals ref, else the first by name, else -1."""
    ref = ref.strip()
    for idx, row in enumerate(rows):
        if row.stop is not None and row.stop.code == ref:
            return idx
    for idx, row in enumerate(rows):
        if row.stop is not None and row.stop.name == ref:
            return idx
    return -1


def match_event(
    patterns: PatternSet,
    route_id: str,
    origin_ref: str,
    dest_ref: str,
    direction_hint: int | None = None,
) -> Match:
    """
    Find the first pattern of the route holding origin before destination.

    With a direction hint, only patterns of that direction are tried, provided
    the route has one. Raises PatternNotFound when the route has no pattern
    and StopPairNotFound when no pattern yields an ordered match.
    """
    candidates = patterns.for_route(route_id)
    if not candidates:
        raise PatternNotFound(route_id, origin_ref, dest_ref)

    if direction_hint is not None:
        hinted = [p for p in candidates if p.direction_id == direction_hint]
        if hinted:
            candidates = hinted

    for pattern in candidates:
        start = find_ref(pattern.rows, origin_ref)
        end = find_ref(pattern.rows, dest_ref)
        if start != -1 and end != -1 and start < end:
            logger.debug(
                f"Matched {origin_ref}->{dest_ref} on route {route_id} "
                f"direction {pattern.direction_id} rows {start}..{end}"
            )
            return Match(pattern=pattern, start_index=start, end_index=end)

    raise StopPairNotFound(route_id, origin_ref, dest_ref)
