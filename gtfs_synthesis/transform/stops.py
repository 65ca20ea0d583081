"""Stop registry: resolves stop references by code or name."""

import logging
import uuid
from typing import Any

from gtfs_synthesis.errors import RowError, SynthesisError, UnknownStopReference
from gtfs_synthesis.gtfs.models import Stop
from gtfs_synthesis.gtfs.rows import canonicalize_stop, stop_code_of

logger = logging.getLogger(__name__)

STOP_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "gtfs-synthesis/stops")


def stop_id_for(code: str) -> str:
    """Deterministic stop id derived from the stop code."""
    return str(uuid.uuid5(STOP_NAMESPACE, code))


class StopRegistry:
    """Code and name indices over the stops of one run."""

    def __init__(self, stops: list[Stop]) -> None:
        self.stops: list[Stop] = []
        self.by_id: dict[str, Stop] = {}
        self.by_code: dict[str, Stop] = {}
        self.by_name: dict[str, Stop] = {}

        for stop in stops:
            if stop.code in self.by_code:
                logger.warning(f"Duplicate stop code {stop.code}, keeping the last row")
                previous = self.by_code[stop.code]
                self.stops.remove(previous)
                if self.by_name.get(previous.name) is previous:
                    del self.by_name[previous.name]
            self.stops.append(stop)
            self.by_id[stop.stop_id] = stop
            self.by_code[stop.code] = stop
            self.by_name[stop.name] = stop

    def __len__(self) -> int:
        return len(self.stops)

    def resolve(self, ref: str) -> Stop | None:
        """Resolve a reference by exact code, then exact name."""
        ref = ref.strip()
        stop = self.by_code.get(ref)
        if stop is None:
            stop = self.by_name.get(ref)
        return stop

    def resolve_or_raise(self, ref: str) -> Stop:
        stop = self.resolve(ref)
        if stop is None:
            raise UnknownStopReference(ref)
        return stop

    def get(self, stop_id: str) -> Stop:
        return self.by_id[stop_id]


def build_registry(rows: list[dict[str, Any]], errors: list[RowError]) -> StopRegistry:
    """Canonicalize stop rows and index them. Bad rows are recorded and skipped."""
    logger.info("Building stop registry")

    stops: list[Stop] = []
    for index, raw in enumerate(rows):
        row = index + 2
        try:
            stop = canonicalize_stop(raw, row, stop_id_for(stop_code_of(raw)))
        except SynthesisError as e:
            errors.append(RowError.from_exception(row, "stops", e))
            continue
        stops.append(stop)

    registry = StopRegistry(stops)
    logger.info(f"Built registry with {len(registry)} stops")
    return registry
