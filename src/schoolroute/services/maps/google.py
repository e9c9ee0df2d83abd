"""HTTP client for the Google Maps web services."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional, Sequence

import httpx

from ...config import settings
from ...errors import ProviderUnavailableError
from ...models.domain import Point
from .base import DirectionsResult, DistanceResult, GeocodeResult

logger = logging.getLogger(__name__)


def format_point(point: Point) -> str:
    return f"{point.lat},{point.lng}"


class GoogleMapsClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        mode: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.base_url = (base_url or settings.maps_base_url).rstrip("/")
        self.mode = mode or settings.maps_mode
        self.timeout = timeout if timeout is not None else settings.maps_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.maps_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.maps_backoff_seconds
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        """Build a short-lived client; callers may run on different worker threads."""
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)),
            transport=self._transport,
        )

    def _get_json(self, endpoint: str, params: dict[str, Any]) -> dict:
        """GET ``endpoint`` and return the decoded body, retrying transport failures."""
        url = f"{self.base_url}/{endpoint}"
        query = {**params, "key": self.api_key}

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=query)
                    response.raise_for_status()
                    return response.json()
                except (httpx.TimeoutException, httpx.NetworkError) as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ProviderUnavailableError(
                            f"Google Maps {endpoint} unreachable after {attempt} attempt(s): {exc}"
                        ) from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        f"Google Maps {endpoint} failed, retrying in {wait_time:.1f}s "
                        f"(attempt {attempt}/{self.max_retries}): {exc}"
                    )
                    time.sleep(wait_time)
                except httpx.HTTPStatusError as exc:
                    attempt += 1
                    if attempt > self.max_retries or exc.response.status_code < 500:
                        raise ProviderUnavailableError(
                            f"Google Maps {endpoint} returned HTTP {exc.response.status_code}"
                        ) from exc
                    time.sleep(self.backoff_seconds * attempt)
                except (httpx.HTTPError, ValueError) as exc:
                    raise ProviderUnavailableError(f"Google Maps {endpoint} request failed: {exc}") from exc
        finally:
            client.close()

    def geocode(self, address: str) -> Optional[GeocodeResult]:
        data = self._get_json("geocode/json", {"address": address})
        if data.get("status") == "OK" and data.get("results"):
            result = data["results"][0]
            location = result["geometry"]["location"]
            return GeocodeResult(
                point=Point(lat=float(location["lat"]), lng=float(location["lng"])),
                formatted_address=result.get("formatted_address", ""),
                place_id=result.get("place_id"),
            )
        logger.warning(f"Geocoding failed for '{address}': status={data.get('status', 'UNKNOWN')}")
        return None

    def distance_matrix(self, origin: Point, destination: Point) -> Optional[DistanceResult]:
        data = self._get_json(
            "distancematrix/json",
            {
                "origins": format_point(origin),
                "destinations": format_point(destination),
                "mode": self.mode,
            },
        )
        if data.get("status") == "OK" and data.get("rows"):
            element = data["rows"][0]["elements"][0]
            if element.get("status") == "OK":
                return DistanceResult(
                    distance_m=int(element["distance"]["value"]),
                    duration_s=int(element["duration"]["value"]),
                )
        logger.warning(
            f"Distance matrix failed {format_point(origin)} -> {format_point(destination)}: "
            f"status={data.get('status', 'UNKNOWN')}"
        )
        return None

    def optimized_directions(
        self, origin: Point, destination: Point, waypoints: Sequence[Point]
    ) -> Optional[DirectionsResult]:
        params: dict[str, Any] = {
            "origin": format_point(origin),
            "destination": format_point(destination),
            "mode": self.mode,
        }
        if waypoints:
            params["waypoints"] = "optimize:true|" + "|".join(format_point(point) for point in waypoints)

        data = self._get_json("directions/json", params)
        if data.get("status") != "OK" or not data.get("routes"):
            logger.warning(f"Directions request failed: status={data.get('status', 'UNKNOWN')}")
            return None

        route = data["routes"][0]
        legs = [
            DistanceResult(
                distance_m=int(leg["distance"]["value"]),
                duration_s=int(leg["duration"]["value"]),
            )
            for leg in route.get("legs", [])
        ]
        waypoint_order = route.get("waypoint_order")
        return DirectionsResult(
            total_distance_m=sum(leg.distance_m for leg in legs),
            total_duration_s=sum(leg.duration_s for leg in legs),
            waypoint_order=list(waypoint_order) if waypoint_order is not None else None,
            legs=legs,
            polyline=route.get("overview_polyline", {}).get("points"),
        )

    def check_health(self) -> bool:
        """Check the provider with a minimal geocoding request."""
        try:
            data = self._get_json("geocode/json", {"latlng": "0,0"})
        except ProviderUnavailableError:
            return False
        return data.get("status") in {"OK", "ZERO_RESULTS"}
