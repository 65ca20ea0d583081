"""Pytest configuration and fixtures."""

import shutil
from pathlib import Path

import pytest

from gtfs_synthesis.errors import RowError
from gtfs_synthesis.gtfs.models import RoutedPath, Stop
from gtfs_synthesis.gtfs.reader import TableReader
from gtfs_synthesis.transform.routes import PatternSet, build_patterns
from gtfs_synthesis.transform.stops import StopRegistry, build_registry


@pytest.fixture
def network_minimal() -> Path:
    """Path to minimal two-direction network fixture."""
    return Path(__file__).parent / "fixtures" / "network_minimal"


@pytest.fixture
def network_semicolon() -> Path:
    """Path to ';'-separated network fixture without direction column."""
    return Path(__file__).parent / "fixtures" / "network_semicolon"


@pytest.fixture
def tmp_output(tmp_path: Path) -> Path:
    """Temporary output directory."""
    output_dir = tmp_path / "synthesis_data"
    output_dir.mkdir()
    yield output_dir
    # Cleanup
    if output_dir.exists():
        shutil.rmtree(output_dir)


@pytest.fixture
def minimal_reader(network_minimal: Path) -> TableReader:
    reader = TableReader(str(network_minimal))
    reader.read_all()
    return reader


@pytest.fixture
def minimal_registry(minimal_reader: TableReader) -> StopRegistry:
    return build_registry(minimal_reader.stops, [])


@pytest.fixture
def minimal_patterns(minimal_reader: TableReader, minimal_registry: StopRegistry) -> PatternSet:
    errors: list[RowError] = []
    patterns = build_patterns(minimal_reader.patterns, minimal_registry, errors)
    assert errors == []
    return patterns


class FakeProvider:
    """Routing provider answering from a fixed table, recording every query."""

    def __init__(self, answers: dict[tuple[str, str], RoutedPath] | None = None) -> None:
        self.answers = answers or {}
        self.calls: list[tuple[str, str]] = []

    def route(self, origin: Stop, destination: Stop) -> RoutedPath | None:
        self.calls.append((origin.code, destination.code))
        return self.answers.get((origin.code, destination.code))


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()
