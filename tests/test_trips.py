"""Tests for trip synthesis, template trips and calendars."""

from dataclasses import replace

import pytest

from gtfs_synthesis.errors import MissingRequiredField, StopPairNotFound, UnknownStopReference
from gtfs_synthesis.gtfs.models import DEADHEAD, EMPTY, REVENUE, ItineraryEvent
from gtfs_synthesis.transform.routes import PatternSet, group_patterns
from gtfs_synthesis.transform.segments import SegmentGraph
from gtfs_synthesis.transform.stops import StopRegistry
from gtfs_synthesis.transform.trips import (
    TEMPLATE_SERVICE_ID,
    TripSynthesizer,
    build_calendars,
    build_template_trips,
    parse_direction_hint,
    pattern_rows_from_templates,
)


def _event(**kwargs) -> ItineraryEvent:
    defaults = {
        "row": 2,
        "service_id": "WKD",
        "kind": REVENUE,
        "origin_ref": "A",
        "dest_ref": "D",
        "start_time": "07:00:00",
        "end_time": "07:20:00",
        "route_id": "100",
    }
    defaults.update(kwargs)
    return ItineraryEvent(**defaults)


@pytest.fixture
def synthesizer(minimal_registry: StopRegistry, minimal_patterns: PatternSet) -> TripSynthesizer:
    graph = SegmentGraph(minimal_registry)
    graph.add_pattern_segments(minimal_patterns)
    return TripSynthesizer(minimal_registry, minimal_patterns, graph)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, None), ("", None), ("IDA", 0), ("VUELTA", 1), ("1", 1), ("7", 0), ("x", 0)],
)
def test_parse_direction_hint(raw: str | None, expected: int | None) -> None:
    """Test direction hints outside 0/1 become 0."""
    assert parse_direction_hint(raw) == expected


def test_revenue_trip(synthesizer: TripSynthesizer) -> None:
    """Test a full-pattern revenue event with proportional times."""
    synthesizer.process(_event())

    trip = synthesizer.trips["T_1_070000"]
    assert trip.route_id == "100"
    assert trip.service_id == "WKD"
    assert trip.direction_id == 0

    visits = synthesizer.visits["T_1_070000"]
    assert [v.sequence for v in visits] == [1, 2, 3, 4]
    assert [v.arrival_elapsed for v in visits] == [25200, 25560, 25920, 26400]
    assert [v.distance_traveled_km for v in visits] == [0.0, 0.6, 1.2, 2.0]

    assert [(o.time_of_day_s, o.duration_s) for o in synthesizer.observations] == [
        (25200, 360),
        (25560, 360),
        (25920, 480),
    ]
    assert synthesizer.service_ids == ["WKD"]


def test_revenue_sub_pattern(synthesizer: TripSynthesizer) -> None:
    """Test an event covering part of the pattern."""
    synthesizer.process(_event(origin_ref="B", start_time="07:30:00", end_time="07:42:00"))

    visits = synthesizer.visits["T_1_073000"]
    assert [v.arrival_elapsed - 27000 for v in visits] == [0, 309, 720]
    assert [v.distance_traveled_km for v in visits] == [0.0, 0.6, 1.4]


def test_revenue_day_rollover(synthesizer: TripSynthesizer) -> None:
    """Test a trip crossing midnight keeps non-decreasing elapsed times."""
    synthesizer.process(_event(start_time="23:50:00", end_time="00:10:00", block_ref="2"))

    visits = synthesizer.visits["T_2_235000"]
    assert [v.arrival_elapsed for v in visits] == [85800, 86160, 86520, 87000]
    assert [o.duration_s for o in synthesizer.observations] == [360, 360, 480]


def test_revenue_direction_from_pattern(synthesizer: TripSynthesizer) -> None:
    """Test reverse event matches the inbound pattern and reuses segments."""
    segments_before = len(synthesizer.graph)
    synthesizer.process(_event(origin_ref="D", dest_ref="A", start_time="08:00:00", end_time="08:24:00"))

    trip = synthesizer.trips["T_1_080000"]
    assert trip.direction_id == 1
    assert len(synthesizer.graph) == segments_before
    visits = synthesizer.visits["T_1_080000"]
    assert [v.arrival_elapsed - 28800 for v in visits] == [0, 576, 1008, 1440]


def test_revenue_duration_column(synthesizer: TripSynthesizer) -> None:
    """Test the duration column is used when end time is missing."""
    synthesizer.process(_event(end_time=None, duration="600", origin_ref="A", dest_ref="B"))

    visits = synthesizer.visits["T_1_070000"]
    assert visits[-1].arrival_elapsed - visits[0].arrival_elapsed == 600


def test_revenue_without_times_uses_zero(synthesizer: TripSynthesizer) -> None:
    """Test no end, no duration and no provider gives a zero-length trip and no observation."""
    synthesizer.process(_event(end_time=None))

    visits = synthesizer.visits["T_1_070000"]
    assert {v.arrival_elapsed for v in visits} == {25200}
    assert all(o.duration_s == 0 for o in synthesizer.observations)


def test_trip_id_column_and_supersede(synthesizer: TripSynthesizer) -> None:
    """Test explicit trip id and replacement of an earlier event with the same id."""
    synthesizer.process(_event(trip_id="X1"))
    synthesizer.process(_event(trip_id="X1", origin_ref="B"))

    assert list(synthesizer.trips) == ["X1"]
    assert len(synthesizer.visits["X1"]) == 3
    # Only the B-C and C-D legs of the surviving trip feed the slots
    assert len(synthesizer.observations) == 2
    assert synthesizer.observations[0].time_of_day_s == 25200


@pytest.mark.parametrize("duration", ["1e999", "inf", "nan", "-inf"])
def test_revenue_non_finite_duration(synthesizer: TripSynthesizer, duration: str) -> None:
    """Test a non-finite duration cell rejects the event."""
    with pytest.raises(MissingRequiredField, match="Invalid duration"):
        synthesizer.process(_event(end_time=None, duration=duration))

    assert synthesizer.trips == {}


def test_revenue_errors(synthesizer: TripSynthesizer) -> None:
    """Test revenue events that must be skipped."""
    with pytest.raises(MissingRequiredField):
        synthesizer.process(_event(route_id=None))
    with pytest.raises(MissingRequiredField, match="start"):
        synthesizer.process(_event(start_time="soon"))
    with pytest.raises(StopPairNotFound):
        synthesizer.process(_event(origin_ref="D", dest_ref="A", direction_hint="IDA"))

    assert synthesizer.trips == {}
    assert synthesizer.service_ids == []


def test_deadhead_without_route(synthesizer: TripSynthesizer) -> None:
    """Test a deadhead feeds an empty segment and no trip."""
    synthesizer.process(
        _event(kind=DEADHEAD, route_id=None, origin_ref="D", dest_ref="G", start_time="23:50:00", end_time="00:10:00")
    )

    assert synthesizer.trips == {}
    assert len(synthesizer.observations) == 1
    observation = synthesizer.observations[0]
    assert observation.time_of_day_s == 85800
    assert observation.duration_s == 1200
    assert synthesizer.graph.get(observation.segment_id).kind == EMPTY


def test_deadhead_with_route(synthesizer: TripSynthesizer) -> None:
    """Test a deadhead with a route becomes a two-stop trip."""
    synthesizer.process(
        _event(kind=DEADHEAD, origin_ref="G", dest_ref="A", start_time="05:00:00", end_time="05:15:00", direction_hint="1")
    )

    trip = synthesizer.trips["T_1_050000"]
    assert trip.direction_id == 1
    visits = synthesizer.visits["T_1_050000"]
    assert [v.arrival_elapsed for v in visits] == [18000, 18900]
    assert visits[1].distance_traveled_km > 0


def test_deadhead_unknown_stop(synthesizer: TripSynthesizer) -> None:
    """Test deadhead references must resolve."""
    with pytest.raises(UnknownStopReference):
        synthesizer.process(_event(kind=DEADHEAD, origin_ref="Z"))


def test_template_trips(minimal_patterns: PatternSet) -> None:
    """Test one template trip per pattern with distances and zero times."""
    trips, visits = build_template_trips(minimal_patterns)

    assert [t.trip_id for t in trips] == ["t_100_0", "t_100_1"]
    assert all(t.service_id == TEMPLATE_SERVICE_ID for t in trips)
    assert [v.distance_traveled_km for v in visits["t_100_1"]] == [0.0, 0.8, 1.4, 2.0]
    assert {v.arrival_elapsed for v in visits["t_100_0"]} == {0}


def test_patterns_rebuilt_from_templates(
    minimal_registry: StopRegistry, minimal_patterns: PatternSet
) -> None:
    """Test stored template trips reproduce the patterns and distances."""
    trips, visits = build_template_trips(minimal_patterns)
    rows = pattern_rows_from_templates(trips, visits, minimal_registry)
    rebuilt = group_patterns(rows, minimal_registry, [])

    assert len(rebuilt) == 2
    for pattern in minimal_patterns:
        other = rebuilt.get(pattern.route_id, pattern.direction_id)
        assert [s.code for s in other.stops] == [s.code for s in pattern.stops]

    # Synthesized trips are not templates
    extra = replace(trips[0], trip_id="T_1_070000", service_id="WKD")
    assert len(pattern_rows_from_templates([extra], {"T_1_070000": visits["t_100_0"]}, minimal_registry)) == 0


def test_build_calendars() -> None:
    """Test one all-days calendar per service id."""
    calendars = build_calendars(["WKD", "SAT"], start_date="20260101", days=365)

    assert [c.service_id for c in calendars] == ["WKD", "SAT"]
    assert calendars[0].start_date == "20260101"
    assert calendars[0].end_date == "20270101"
    assert all(c.monday and c.sunday for c in calendars)
