"""Benchmark tests."""

from pathlib import Path
from typing import Any

import pytest

from gtfs_synthesis import run, synthesize
from gtfs_synthesis.gtfs.models import SynthesisConfig, TimeSlotObservation
from gtfs_synthesis.transform.compression import compress_all
from gtfs_synthesis.transform.daywrap import format_time


def _grid_network(
    routes: int = 10, stops_per_route: int = 20, trips_per_route: int = 40
) -> tuple[list[dict[str, Any]], list[dict[str, Any]], list[dict[str, Any]]]:
    stop_rows = []
    pattern_rows = []
    itinerary_rows = []

    for r in range(routes):
        for s in range(stops_per_route):
            code = f"R{r}S{s}"
            stop_rows.append(
                {"code": code, "name": f"Stop {code}", "lat": str(-23.5 - r * 0.01), "lon": str(-46.6 - s * 0.005)}
            )
            pattern_rows.append({"route_id": f"L{r}", "direction_id": "0", "sequence": str(s + 1), "stop_code": code})

        for t in range(trips_per_route):
            start = 5 * 3600 + t * 900
            itinerary_rows.append(
                {
                    "service_id": "WKD",
                    "event": "1",
                    "route": f"L{r}",
                    "origin": f"R{r}S0",
                    "destiny": f"R{r}S{stops_per_route - 1}",
                    "start": format_time(start),
                    "end": format_time(start + 1800 + (t % 4) * 120),
                    "bus": str(t % 5 + 1),
                    "trip_id": f"L{r}_{t}",
                }
            )

    return stop_rows, pattern_rows, itinerary_rows


@pytest.mark.benchmark
def test_bench_run_minimal(network_minimal: Path, tmp_path: Path, benchmark: object) -> None:
    """Benchmark file-to-file synthesis of minimal fixture."""

    def do_run() -> None:
        output = tmp_path / "bench_minimal"
        output.mkdir(exist_ok=True)
        run(
            str(network_minimal),
            str(output),
            SynthesisConfig(
                input_path=str(network_minimal),
                output_path=str(output),
                service_start_date="20260101",
            ),
        )

    benchmark(do_run)


@pytest.mark.benchmark
def test_bench_synthesize_grid(benchmark: object) -> None:
    """Benchmark in-memory synthesis of a generated network."""
    stop_rows, pattern_rows, itinerary_rows = _grid_network()
    config = SynthesisConfig(service_start_date="20260101")

    result = benchmark(synthesize, stop_rows, pattern_rows, itinerary_rows, config)

    assert len(result.errors) == 0
    assert len(result.trips) == 10 * 40 + 10


@pytest.mark.benchmark
def test_bench_compress_slots(benchmark: object) -> None:
    """Benchmark slot compression of many observations."""
    observations = [
        TimeSlotObservation(segment_id=f"seg{i % 200}", time_of_day_s=(i * 37) % 129600, duration_s=60 + i % 7 * 30)
        for i in range(50000)
    ]

    slots, bases = benchmark(compress_all, observations)

    assert len(bases) == 200
