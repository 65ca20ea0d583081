"""Tests for stop registry."""

import pytest

from gtfs_synthesis.errors import RowError, UnknownStopReference
from gtfs_synthesis.transform.stops import StopRegistry, build_registry, stop_id_for


def test_build_registry_minimal(minimal_registry: StopRegistry) -> None:
    """Test registry indexes by code and name."""
    assert len(minimal_registry) == 5

    by_code = minimal_registry.resolve("B")
    by_name = minimal_registry.resolve("Praca Central")
    assert by_code is not None
    assert by_code is by_name
    assert by_code.stop_id == stop_id_for("B")


def test_registry_code_before_name() -> None:
    """Test a code match wins over a name match."""
    registry = build_registry(
        [
            {"code": "X", "name": "Y", "lat": "1", "lon": "1"},
            {"code": "Y", "name": "Other", "lat": "2", "lon": "2"},
        ],
        [],
    )
    stop = registry.resolve("Y")
    assert stop is not None
    assert stop.name == "Other"


def test_registry_no_fuzzy_match(minimal_registry: StopRegistry) -> None:
    """Test references must match exactly."""
    assert minimal_registry.resolve("praca central") is None
    assert minimal_registry.resolve("Praca") is None
    assert minimal_registry.resolve(" B ") is not None

    with pytest.raises(UnknownStopReference, match="Nowhere"):
        minimal_registry.resolve_or_raise("Nowhere")


def test_registry_duplicate_code_last_wins() -> None:
    """Test a repeated stop code keeps the last row."""
    registry = build_registry(
        [
            {"code": "A", "name": "First", "lat": "1", "lon": "1"},
            {"code": "A", "name": "Second", "lat": "2", "lon": "2"},
        ],
        [],
    )

    assert len(registry) == 1
    stop = registry.resolve("A")
    assert stop is not None
    assert stop.name == "Second"


def test_build_registry_records_bad_rows() -> None:
    """Test invalid stop rows are recorded and skipped."""
    errors: list[RowError] = []
    registry = build_registry(
        [
            {"code": "A", "name": "Alpha", "lat": "1", "lon": "1"},
            {"code": "B", "name": "", "lat": "1", "lon": "1"},
        ],
        errors,
    )

    assert len(registry) == 1
    assert len(errors) == 1
    assert errors[0].row == 3
    assert errors[0].source_file == "stops"
    assert errors[0].kind == "MissingRequiredField"


def test_stop_id_is_deterministic() -> None:
    """Test stop ids only depend on the code."""
    assert stop_id_for("A") == stop_id_for("A")
    assert stop_id_for("A") != stop_id_for("B")
