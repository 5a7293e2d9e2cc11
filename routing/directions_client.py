#Purpose: The directions provider "adapter/client".
#Sole responsibility: talk to the Google Routes API via HTTP and hand back the raw
#`routes` array for the ranker.
#Encapsulates provider-specific details:
#request body shape per travel mode
#API key + field mask headers
#timeouts and transport error mapping
#It should not contain ranking or traffic scoring.


from dotenv import load_dotenv
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests

from .models import Coordinate, TravelMode

# Read provider settings from environment
# Example in .env:
# GOOGLE_MAPS_API_KEY=...
# ROUTES_API_URL=https://routes.googleapis.com/directions/v2:computeRoutes
# DIRECTIONS_TIMEOUT_SECONDS=8
load_dotenv()
API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")
ROUTES_API_URL = os.getenv("ROUTES_API_URL", "https://routes.googleapis.com/directions/v2:computeRoutes")
DEFAULT_TIMEOUT_SECONDS = float(os.getenv("DIRECTIONS_TIMEOUT_SECONDS", "8"))

logger = logging.getLogger(__name__)

# Two-wheeler requests ask only for what we read; drive requests take the whole advisory
FIELD_MASKS = {
    TravelMode.DRIVE: "routes.polyline,routes.travelAdvisory,routes.distanceMeters,routes.duration,routes.routeLabels",
    TravelMode.TWO_WHEELER: (
        "routes.duration,routes.distanceMeters,routes.polyline.encodedPolyline,"
        "routes.travelAdvisory.speedReadingIntervals,routes.routeLabels"
    ),
}

DEPARTURE_LEAD = timedelta(minutes=5)


class DirectionsError(Exception):
    """Base class for directions fetch failures. Callers keep their previous route."""
    pass


class FetchTimeoutError(DirectionsError):
    """The provider did not answer within the configured timeout."""
    pass


class FetchTransportError(DirectionsError):
    """Connection failure, HTTP error status, or an unreadable response body."""
    pass


def _lat_lng(coordinate: Coordinate) -> Dict[str, Any]:
    return {"location": {"latLng": {"latitude": coordinate.latitude, "longitude": coordinate.longitude}}}


class DirectionsClient:
    """
    Directions Adapter / Client

    Sole responsibility:
    - Talk to the Routes API via HTTP
    - Shape the request per travel mode
    - Return the raw `routes` array (possibly empty)

    """
    def __init__(self,
                 api_key: Optional[str] = None,
                 *,
                 url: str = ROUTES_API_URL,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key or API_KEY
        self.url = url
        self.timeout = timeout #how long to wait for the provider before giving up
        self.session = session or requests.Session()

        if not self.api_key:
            raise ValueError("Routes API key not set. Please set GOOGLE_MAPS_API_KEY in the .env file.")

        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")

    #----------------
    # Request shaping
    #----------------
    def build_headers(self, travel_mode: TravelMode) -> Dict[str, str]:
        return {
            "X-Goog-Api-Key": self.api_key,
            "Content-Type": "application/json",
            "X-Goog-FieldMask": FIELD_MASKS[travel_mode],
        }

    def build_body(self,
                   origin: Coordinate,
                   destination: Coordinate,
                   travel_mode: TravelMode,
                   now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Request body for computeRoutes.
        Drive requests depart a few minutes ahead so the provider applies live traffic.
        """
        body: Dict[str, Any] = {
            "origin": _lat_lng(origin),
            "destination": _lat_lng(destination),
            "travelMode": travel_mode.value,
            "routingPreference": travel_mode.routing_preference,
            "polylineEncoding": "ENCODED_POLYLINE",
            "computeAlternativeRoutes": True,
            "extraComputations": ["TRAFFIC_ON_POLYLINE"],
        }

        if travel_mode is TravelMode.DRIVE:
            now = now or datetime.now(timezone.utc)
            departure = (now + DEPARTURE_LEAD).astimezone(timezone.utc)
            body["departureTime"] = departure.isoformat().replace("+00:00", "Z")
            body["routeModifiers"] = {
                "avoidTolls": False,
                "avoidHighways": False,
                "avoidFerries": True,
            }
        else:
            body["routeModifiers"] = {
                "avoidHighways": False,
                "avoidFerries": True,
            }
        return body

    #----------------
    # Public methods
    #----------------
    def compute_routes(self,
                       origin: Coordinate,
                       destination: Coordinate,
                       travel_mode: TravelMode = TravelMode.DRIVE) -> List[Dict[str, Any]]:
        """
        Calls computeRoutes and returns the raw `routes` entries.

        Returns:
            list of route objects as decoded JSON; empty when the provider found none

        Raises:
            FetchTimeoutError: no answer within self.timeout seconds
            FetchTransportError: connection failure, non-2xx status or invalid JSON
        """
        try:
            response = self.session.post(
                self.url,
                headers=self.build_headers(travel_mode),
                json=self.build_body(origin, destination, travel_mode),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            logger.warning(f"Directions request timed out after {self.timeout}s")
            raise FetchTimeoutError(f"Directions request timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"Directions request failed: {e}")
            raise FetchTransportError(f"Directions request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise FetchTransportError("Directions response was not valid JSON") from e

        if not isinstance(data, dict):
            raise FetchTransportError("Directions response was not a JSON object")

        # The provider answers {} rather than {"routes": []} when nothing was found
        routes = data.get("routes") or []
        if not isinstance(routes, list):
            raise FetchTransportError("Directions response `routes` is not a list")

        logger.info(f"Directions returned {len(routes)} route(s) for {travel_mode.value}")
        return routes
