"""Data models for input rows, synthesized records and run configuration."""

from dataclasses import dataclass, field
from typing import Any

from shapely.geometry import LineString

from gtfs_synthesis.errors import RowError

REVENUE = "revenue"
DEADHEAD = "deadhead"
EMPTY = "empty"  # segment kind for deadhead links


@dataclass(frozen=True)
class Stop:
    """Stop with canonical identity and coordinates."""

    stop_id: str
    code: str
    name: str
    lat: float
    lon: float
    node_type: str = "commercial"
    location_type: int = 0


@dataclass(frozen=True)
class PatternRow:
    """One ordered row of a route pattern."""

    row: int  # line in the source table
    route_id: str
    sequence: int
    stop_ref: str
    direction_raw: str | None = None
    accumulated_distance_km: float | None = None
    leg_distance_m: float | None = None
    stop: Stop | None = None  # attached by the pattern builder


@dataclass
class Pattern:
    """Ordered stop sequence for one route and direction."""

    route_id: str
    direction_id: int
    rows: list[PatternRow]

    @property
    def stops(self) -> list[Stop]:
        return [row.stop for row in self.rows if row.stop is not None]


@dataclass(frozen=True)
class ItineraryEvent:
    """One raw vehicle movement between two referenced stops."""

    row: int
    service_id: str
    kind: str  # revenue, deadhead
    origin_ref: str
    dest_ref: str
    start_time: str
    end_time: str | None = None
    duration: str | None = None
    route_id: str | None = None
    direction_hint: str | None = None
    block_ref: str | None = None
    trip_id: str | None = None


@dataclass(frozen=True)
class RoutedPath:
    """Answer of an external routing provider for one origin/destination pair."""

    distance_m: float
    duration_s: float
    coordinates: list[tuple[float, float]]  # (lon, lat)


@dataclass
class Segment:
    """Deduplicated link between two stops."""

    segment_id: str
    start_stop_id: str
    end_stop_id: str
    distance_m: float
    geometry: LineString  # lon/lat, start -> end
    kind: str = "revenue"  # revenue, empty
    travel_time_s: int = 0


@dataclass(frozen=True)
class TimeSlotObservation:
    """One raw travel-time sample contributed by one leg of one event."""

    segment_id: str
    time_of_day_s: int
    duration_s: int


@dataclass(frozen=True)
class SegmentTimeSlot:
    """Compressed time-of-day band with a constant travel time."""

    segment_id: str
    start_time_of_day: int  # seconds
    end_time_of_day: int  # seconds, exclusive
    travel_time_s: int


@dataclass(frozen=True)
class SynthesizedTrip:
    """Trip produced from one itinerary event or one pattern template."""

    trip_id: str
    route_id: str
    service_id: str
    direction_id: int = 0
    block_id: str | None = None
    shape_id: str | None = None


@dataclass(frozen=True)
class SynthesizedStopVisit:
    """Time-stamped visit of a trip at a stop."""

    trip_id: str
    stop_id: str
    sequence: int  # 1-based
    arrival_elapsed: int  # seconds since start of service day
    departure_elapsed: int
    distance_traveled_km: float


@dataclass(frozen=True)
class ServiceCalendar:
    """Calendar entry created for each service id seen in the itineraries."""

    service_id: str
    start_date: str  # YYYYMMDD
    end_date: str  # YYYYMMDD
    monday: bool = True
    tuesday: bool = True
    wednesday: bool = True
    thursday: bool = True
    friday: bool = True
    saturday: bool = True
    sunday: bool = True


@dataclass(frozen=True)
class ShapePoint:
    """Point of a trip shape."""

    shape_id: str
    lat: float
    lon: float
    sequence: int
    dist_traveled_km: float


@dataclass
class SynthesisResult:
    """Everything one run produced, staged before commit."""

    stops: list[Stop] = field(default_factory=list)
    segments: list[Segment] = field(default_factory=list)
    slots: dict[str, list[SegmentTimeSlot]] = field(default_factory=dict)
    base_travel_times: dict[str, int] = field(default_factory=dict)
    trips: list[SynthesizedTrip] = field(default_factory=list)
    stop_visits: dict[str, list[SynthesizedStopVisit]] = field(default_factory=dict)
    calendars: list[ServiceCalendar] = field(default_factory=list)
    shapes: list[ShapePoint] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)

    @property
    def stats(self) -> dict[str, int]:
        return {
            "stops": len(self.stops),
            "segments": len(self.segments),
            "time_slots": sum(len(slots) for slots in self.slots.values()),
            "trips": len(self.trips),
            "stop_times": sum(len(visits) for visits in self.stop_visits.values()),
            "calendars": len(self.calendars),
            "shape_points": len(self.shapes),
            "errors": len(self.errors),
        }


@dataclass
class Manifest:
    """Build manifest with metadata and checksums."""

    schema_version: int
    tool_version: str
    created_at_iso: str
    inputs: dict[str, Any]
    outputs: dict[str, str]  # filename -> sha256
    stats: dict[str, int]
    build: dict[str, str]


@dataclass
class ValidationReport:
    """Report from validation process."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)


@dataclass
class SynthesisConfig:
    """Configuration for a synthesis run."""

    input_path: str = ""
    output_path: str = ""
    routing_url: str | None = None  # OSRM route endpoint, None disables routing
    routing_timeout: float = 10.0  # seconds
    default_block: str = "1"
    service_start_date: str | None = None  # YYYYMMDD, default today
    calendar_days: int = 365
    day_type: str = ""  # travel-time export DayType column
    version_label: str = ""  # travel-time export Version column
    use_stored_patterns: bool = True
