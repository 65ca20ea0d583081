"""Canonicalization of loosely named input rows into strict records.

Input tables come from spreadsheets exported by different operators, so each
logical field accepts several column names. All aliasing happens here, once,
and every later stage works on the typed records from ``gtfs.models``.
"""

import logging
import math
from typing import Any

from gtfs_synthesis.errors import MissingRequiredField, MissingServiceIdColumn
from gtfs_synthesis.gtfs.models import DEADHEAD, REVENUE, ItineraryEvent, PatternRow, Stop

logger = logging.getLogger(__name__)

STOP_CODE_COLUMNS = ("stop_code", "code", "id")
STOP_NAME_COLUMNS = ("stop_name", "name", "nome")
LAT_COLUMNS = ("latitude", "lat")
LON_COLUMNS = ("longitude", "lon", "lng")

ROUTE_COLUMNS = ("route_id", "route")
SEQUENCE_COLUMNS = ("sequence", "seq")
STOP_REF_COLUMNS = ("stop_code", "stop_name", "stop_id")
DIRECTION_COLUMNS = ("direction_id", "direction", "sentido")

SERVICE_COLUMNS = ("service_id", "serviceid")
EVENT_COLUMNS = ("event", "event_type")
ITINERARY_ROUTE_COLUMNS = ("route", "route_id")
ORIGIN_COLUMNS = ("origin", "from_stop", "origen")
DESTINATION_COLUMNS = ("destiny", "to_stop", "destino")
START_COLUMNS = ("start", "start_time")
END_COLUMNS = ("end", "end_time")
HINT_COLUMNS = ("direction", "sentido")
BLOCK_COLUMNS = ("bus", "block_id")

PARKING_TYPES = {"parking", "garagem"}
STATION_TYPES = {"station", "estacao", "estação"}


def normalize_keys(raw: dict[str, Any]) -> dict[str, str]:
    """Lower-case and strip column names, stringify and strip values."""
    normalized: dict[str, str] = {}
    for key, value in raw.items():
        if key is None:
            continue
        normalized[str(key).strip().lower()] = "" if value is None else str(value).strip()
    return normalized


def _first(row: dict[str, str], columns: tuple[str, ...]) -> str:
    for column in columns:
        value = row.get(column, "")
        if value:
            return value
    return ""


def finite_float(value: str) -> float:
    """float() that also rejects inf and nan."""
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def _optional_float(value: str) -> float | None:
    if not value:
        return None
    try:
        return finite_float(value)
    except ValueError:
        logger.debug(f"Ignoring non-numeric distance value {value!r}")
        return None


def canonicalize_stop(raw: dict[str, Any], row: int, stop_id: str) -> Stop:
    """Build a Stop from a stop table row."""
    data = normalize_keys(raw)
    code = _first(data, STOP_CODE_COLUMNS)
    name = _first(data, STOP_NAME_COLUMNS)
    lat = _first(data, LAT_COLUMNS)
    lon = _first(data, LON_COLUMNS)

    if not code or not name or not lat or not lon:
        raise MissingRequiredField("Missing required fields (need code, name, lat, lon)")

    try:
        lat_value = finite_float(lat)
        lon_value = finite_float(lon)
    except ValueError:
        raise MissingRequiredField(f"Invalid coordinates: {lat}, {lon}") from None

    node_type = "commercial"
    location_type = 0
    raw_type = data.get("type", "").lower()
    if raw_type in PARKING_TYPES:
        node_type = "parking"
    elif raw_type in STATION_TYPES:
        location_type = 1

    return Stop(
        stop_id=stop_id,
        code=code,
        name=name,
        lat=lat_value,
        lon=lon_value,
        node_type=node_type,
        location_type=location_type,
    )


def stop_code_of(raw: dict[str, Any]) -> str:
    """Code used to derive a stop's identity."""
    return _first(normalize_keys(raw), STOP_CODE_COLUMNS)


def canonicalize_pattern_row(raw: dict[str, Any], row: int) -> PatternRow:
    """Build a PatternRow from a pattern table row."""
    data = normalize_keys(raw)
    route_id = _first(data, ROUTE_COLUMNS)
    sequence = _first(data, SEQUENCE_COLUMNS)
    stop_ref = _first(data, STOP_REF_COLUMNS)

    if not route_id or not sequence or not stop_ref:
        raise MissingRequiredField(f"Missing required fields for route {route_id}")

    try:
        sequence_value = int(finite_float(sequence))
    except ValueError:
        raise MissingRequiredField(f"Invalid sequence {sequence!r} for route {route_id}") from None

    # An existing but empty direction column still means "grouped by direction".
    direction_raw = None
    for column in DIRECTION_COLUMNS:
        if column in data:
            direction_raw = data[column] or "0"
            break

    return PatternRow(
        row=row,
        route_id=route_id,
        sequence=sequence_value,
        stop_ref=stop_ref,
        direction_raw=direction_raw,
        accumulated_distance_km=_optional_float(data.get("accumulate_distance", "")),
        leg_distance_m=_optional_float(data.get("distance", "")),
    )


def check_service_id_column(rows: list[dict[str, Any]]) -> None:
    """Raise MissingServiceIdColumn when no itinerary row has a service id column."""
    if not rows:
        return
    for raw in rows:
        columns = {str(key).strip().lower() for key in raw if key is not None}
        if columns & set(SERVICE_COLUMNS):
            return
    raise MissingServiceIdColumn("Itinerary table has no service_id column")


def canonicalize_event(raw: dict[str, Any], row: int) -> ItineraryEvent:
    """Build an ItineraryEvent from an itinerary table row."""
    data = normalize_keys(raw)
    service_id = _first(data, SERVICE_COLUMNS)
    origin = _first(data, ORIGIN_COLUMNS)
    destination = _first(data, DESTINATION_COLUMNS)
    start = _first(data, START_COLUMNS)

    if not service_id or not start or not origin or not destination:
        raise MissingRequiredField("Missing fields (need service_id, start, origin, destiny)")

    event_type = _first(data, EVENT_COLUMNS)
    if event_type == "1":
        kind = REVENUE
    elif event_type == "0":
        kind = DEADHEAD
    else:
        raise MissingRequiredField(f"Unrecognized event type {event_type!r} (need 1 or 0)")

    return ItineraryEvent(
        row=row,
        service_id=service_id,
        kind=kind,
        origin_ref=origin,
        dest_ref=destination,
        start_time=start,
        end_time=_first(data, END_COLUMNS) or None,
        duration=data.get("duration") or None,
        route_id=_first(data, ITINERARY_ROUTE_COLUMNS) or None,
        direction_hint=_first(data, HINT_COLUMNS) or None,
        block_ref=_first(data, BLOCK_COLUMNS) or None,
        trip_id=data.get("trip_id") or None,
    )
