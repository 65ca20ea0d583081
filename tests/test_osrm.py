"""Tests for the OSRM routing provider."""

from typing import Any

import pytest
import requests

from gtfs_synthesis.gtfs.models import Stop
from gtfs_synthesis.routing.osrm import DEFAULT_OSRM_URL, USER_AGENT, OsrmProvider

ORIGIN = Stop(stop_id="o", code="A", name="Alpha", lat=-23.55, lon=-46.633)
DESTINATION = Stop(stop_id="d", code="B", name="Beta", lat=-23.555, lon=-46.635)


class FakeResponse:
    def __init__(self, payload: Any, status: int = 200) -> None:
        self.payload = payload
        self.status = status

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} Server Error")

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, response: FakeResponse | Exception) -> None:
        self.response = response
        self.headers: dict[str, str] = {}
        self.requests: list[tuple[str, float]] = []

    def get(self, url: str, timeout: float) -> FakeResponse:
        self.requests.append((url, timeout))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_route_ok() -> None:
    """Test a successful answer becomes a routed path."""
    session = FakeSession(
        FakeResponse(
            {
                "code": "Ok",
                "routes": [
                    {
                        "distance": 812.4,
                        "duration": 95.6,
                        "geometry": {"coordinates": [[-46.633, -23.55], [-46.635, -23.555]]},
                    }
                ],
            }
        )
    )
    provider = OsrmProvider("http://osrm.local/route/v1/driving/", timeout=3, session=session)

    path = provider.route(ORIGIN, DESTINATION)

    assert path is not None
    assert path.distance_m == 812.4
    assert path.duration_s == 95.6
    assert path.coordinates == [(-46.633, -23.55), (-46.635, -23.555)]
    assert session.requests == [
        (
            "http://osrm.local/route/v1/driving/-46.633,-23.55;-46.635,-23.555"
            "?overview=full&geometries=geojson",
            3,
        )
    ]
    assert session.headers["User-Agent"] == USER_AGENT


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse({"code": "NoRoute", "routes": []}),
        FakeResponse({"code": "Ok", "routes": []}),
        FakeResponse({}, status=500),
        FakeResponse(ValueError("not json")),
        requests.ConnectionError("refused"),
        requests.Timeout("slow"),
    ],
)
def test_route_failures_return_none(response: FakeResponse | Exception) -> None:
    """Test every failure mode answers None."""
    provider = OsrmProvider("http://osrm.local", session=FakeSession(response))
    assert provider.route(ORIGIN, DESTINATION) is None


def test_default_url_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test OSRM_API_URL overrides the public endpoint."""
    monkeypatch.delenv("OSRM_API_URL", raising=False)
    assert OsrmProvider(session=FakeSession(FakeResponse({}))).base_url == DEFAULT_OSRM_URL

    monkeypatch.setenv("OSRM_API_URL", "http://localhost:5000/route/v1/driving")
    provider = OsrmProvider(session=FakeSession(FakeResponse({})))
    assert provider.base_url == "http://localhost:5000/route/v1/driving"
