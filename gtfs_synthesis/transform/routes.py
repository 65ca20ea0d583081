"""Pattern building: direction-specific stop sequences per route."""

import logging
from collections.abc import Iterator
from dataclasses import replace
from typing import Any

from gtfs_synthesis.errors import RowError, SynthesisError, UnknownStopReference
from gtfs_synthesis.gtfs.models import Pattern, PatternRow
from gtfs_synthesis.gtfs.rows import canonicalize_pattern_row
from gtfs_synthesis.transform.stops import StopRegistry

logger = logging.getLogger(__name__)


def parse_direction(raw: str | None) -> int:
    """Map a raw direction value to a direction id (IDA=0, VUELTA=1, else int, else 0)."""
    value = (raw or "").strip()
    if value == "IDA":
        return 0
    if value == "VUELTA":
        return 1
    try:
        return int(value)
    except ValueError:
        return 0


class PatternSet:
    """Patterns of every route, in input order."""

    def __init__(self) -> None:
        self.by_route: dict[str, list[Pattern]] = {}
        self._by_key: dict[tuple[str, int], Pattern] = {}

    def add(self, pattern: Pattern) -> bool:
        """Add a pattern; returns False if its (route, direction) key is taken."""
        key = (pattern.route_id, pattern.direction_id)
        if key in self._by_key:
            return False
        self._by_key[key] = pattern
        self.by_route.setdefault(pattern.route_id, []).append(pattern)
        return True

    def for_route(self, route_id: str) -> list[Pattern]:
        return self.by_route.get(route_id, [])

    def get(self, route_id: str, direction_id: int) -> Pattern | None:
        return self._by_key.get((route_id, direction_id))

    def __iter__(self) -> Iterator[Pattern]:
        for patterns in self.by_route.values():
            yield from patterns

    def __len__(self) -> int:
        return len(self._by_key)


def build_patterns(
    rows: list[dict[str, Any]], registry: StopRegistry, errors: list[RowError]
) -> PatternSet:
    """Canonicalize raw pattern rows and group them into patterns."""
    canonical: list[PatternRow] = []
    for index, raw in enumerate(rows):
        row = index + 2
        try:
            canonical.append(canonicalize_pattern_row(raw, row))
        except SynthesisError as e:
            errors.append(RowError.from_exception(row, "patterns", e))

    return group_patterns(canonical, registry, errors)


def group_patterns(
    rows: list[PatternRow], registry: StopRegistry, errors: list[RowError]
) -> PatternSet:
    """Group canonical rows per route into direction patterns."""
    logger.info("Building route patterns")

    rows_by_route: dict[str, list[PatternRow]] = {}
    for row in rows:
        rows_by_route.setdefault(row.route_id, []).append(row)

    pattern_set = PatternSet()

    for route_id, route_rows in rows_by_route.items():
        for direction_id, group in _split_directions(route_rows):
            group = sorted(group, key=lambda r: r.sequence)
            resolved = _resolve_stops(group, registry, errors)

            if len(resolved) < 2:
                logger.debug(
                    f"Route {route_id} direction {direction_id} has fewer than 2 stops, skipping"
                )
                continue

            pattern = Pattern(route_id=route_id, direction_id=direction_id, rows=resolved)
            if not pattern_set.add(pattern):
                logger.warning(
                    f"Route {route_id} has more than one pattern for direction "
                    f"{direction_id}, keeping the first"
                )

    logger.info(f"Built {len(pattern_set)} patterns for {len(pattern_set.by_route)} routes")
    return pattern_set


def _split_directions(rows: list[PatternRow]) -> list[tuple[int, list[PatternRow]]]:
    """Split one route's rows by direction column, or on sequence resets."""
    if any(row.direction_raw is not None for row in rows):
        groups: dict[str, list[PatternRow]] = {}
        for row in rows:
            groups.setdefault(row.direction_raw or "0", []).append(row)
        return [(parse_direction(raw), group) for raw, group in groups.items()]

    split: list[list[PatternRow]] = []
    current: list[PatternRow] = []
    previous: int | None = None
    for row in rows:
        if previous is not None and row.sequence <= previous:
            split.append(current)
            current = []
        current.append(row)
        previous = row.sequence
    if current:
        split.append(current)

    return list(enumerate(split))


def _resolve_stops(
    rows: list[PatternRow], registry: StopRegistry, errors: list[RowError]
) -> list[PatternRow]:
    resolved: list[PatternRow] = []
    for row in rows:
        stop = registry.resolve(row.stop_ref)
        if stop is None:
            errors.append(
                RowError.from_exception(row.row, "patterns", UnknownStopReference(row.stop_ref))
            )
            continue
        resolved.append(replace(row, stop=stop))
    return resolved
