"""OSRM route service client used as the segment routing provider."""

import logging
import os

import requests

from gtfs_synthesis.gtfs.models import RoutedPath, Stop

logger = logging.getLogger(__name__)

DEFAULT_OSRM_URL = "https://router.project-osrm.org/route/v1/driving"
USER_AGENT = "GTFS-Generator/1.0"


def default_routing_url() -> str:
    return os.environ.get("OSRM_API_URL", DEFAULT_OSRM_URL)


class OsrmProvider:
    """
    Query an OSRM `route` endpoint for the road path between two stops.

    Any failure (network, HTTP status, non-Ok answer, empty route) is
    logged and answered with None, so callers fall back to a straight line.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = (base_url or default_routing_url()).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def url_for(self, origin: Stop, destination: Stop) -> str:
        return (
            f"{self.base_url}/{origin.lon},{origin.lat};{destination.lon},{destination.lat}"
            "?overview=full&geometries=geojson"
        )

    def route(self, origin: Stop, destination: Stop) -> RoutedPath | None:
        url = self.url_for(origin, destination)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Routing {origin.code} -> {destination.code} failed: {e}")
            return None

        routes = data.get("routes") or []
        if data.get("code") != "Ok" or not routes:
            logger.warning(
                f"Routing {origin.code} -> {destination.code} returned {data.get('code')!r}"
            )
            return None

        best = routes[0]
        coordinates = [
            (float(lon), float(lat)) for lon, lat, *_ in best.get("geometry", {}).get("coordinates", [])
        ]
        logger.debug(
            f"Routed {origin.code} -> {destination.code}: "
            f"{best.get('distance', 0):.1f}m, {best.get('duration', 0):.1f}s"
        )
        return RoutedPath(
            distance_m=float(best.get("distance", 0)),
            duration_s=float(best.get("duration", 0)),
            coordinates=coordinates,
        )
