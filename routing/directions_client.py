#Purpose: The directions provider "adapter/client".
#Sole responsibility: talk to an OSRM-compatible directions API via HTTP and
#return normalized Route objects.
#Encapsulates provider-specific details:
#coordinate formatting (lon,lat)
#URL construction (/route, /trip for OSRM; /directions, /optimized-trips, /geocoding for Mapbox)
#HTTP / provider error classification (RouteUnavailable vs RouteNotFound)
#parsing response JSON (legs -> steps -> maneuvers) into RouteStep
#It should not contain appointment rules or supersession logic.

import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import requests
from dotenv import load_dotenv

from .errors import RouteNotFound, RouteUnavailable
from .geo import GeoPoint, distance_m
from .models import Place, Route, RouteStep, TravelProfile
from .policy import RoutingPolicy, default_routing_policy

# Read provider settings from environment
# Example in .env:
# DIRECTIONS_BASE_URL=http://router.project-osrm.org
# DIRECTIONS_FLAVOR=osrm            (or mapbox)
# DIRECTIONS_ACCESS_TOKEN=pk....    (mapbox only)
load_dotenv()
BASE_URL = os.getenv("DIRECTIONS_BASE_URL")
ACCESS_TOKEN = os.getenv("DIRECTIONS_ACCESS_TOKEN")
FLAVOR = os.getenv("DIRECTIONS_FLAVOR", "osrm")

logger = logging.getLogger(__name__)

#provider codes meaning "your request was fine, there is just no path"
NOT_FOUND_CODES = {"NoRoute", "NoSegment", "NoTrips", "NoMatch", "InvalidInput"}

SUPPORTED_FLAVORS = ("osrm", "mapbox")


class DirectionsClient:
    """
    Directions Adapter / Client

    Sole responsibility:
    - Talk to the directions provider via HTTP
    - Convert internal GeoPoint (lat, lon) -> provider (lon,lat)
    - Return normalized Route objects (or raise a RouteError)

    """
    def __init__(
        self,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        flavor: Optional[str] = None,
        timeout: Optional[float] = None,
        language: str = "en",
        policy: Optional[RoutingPolicy] = None,
    ):
        self.base_url = (base_url or BASE_URL or "").rstrip("/")
        self.access_token = access_token or ACCESS_TOKEN
        self.flavor = flavor or FLAVOR
        policy = policy or default_routing_policy()
        #seconds to wait for the provider before giving up
        self.timeout = timeout if timeout is not None else policy.http_timeout_s
        self.language = language #language of the instruction texts (mapbox only)

        if not self.base_url:
            raise ValueError("Directions base URL not set. Please set DIRECTIONS_BASE_URL in the .env file.")
        if self.flavor not in SUPPORTED_FLAVORS:
            raise ValueError(f"Unknown directions flavor: {self.flavor}")
        if self.flavor == "mapbox" and not self.access_token:
            raise ValueError("Mapbox flavor requires DIRECTIONS_ACCESS_TOKEN.")

    #----------------
    # Internal helpers for coordinate formatting, URL construction, error handling
    #----------------
    def format_coordinates(self, coords: Sequence[GeoPoint]) -> str:
        """Convert list of GeoPoint to provider format 'lon,lat;lon,lat;...'"""
        return ";".join(f"{p.longitude},{p.latitude}" for p in coords)

    def profile_name(self, profile: TravelProfile) -> str:
        profile = TravelProfile(profile)
        if self.flavor == "mapbox":
            return profile.value.replace("_", "-")
        # plain OSRM has no live traffic profile
        if profile == TravelProfile.DRIVING_TRAFFIC:
            return TravelProfile.DRIVING.value
        return profile.value

    def route_url(self, profile: TravelProfile, coords: Sequence[GeoPoint]) -> str:
        coordinates = self.format_coordinates(coords)
        if self.flavor == "mapbox":
            return f"{self.base_url}/directions/v5/mapbox/{self.profile_name(profile)}/{coordinates}"
        return f"{self.base_url}/route/v1/{self.profile_name(profile)}/{coordinates}"

    def trip_url(self, profile: TravelProfile, coords: Sequence[GeoPoint]) -> str:
        coordinates = self.format_coordinates(coords)
        if self.flavor == "mapbox":
            return f"{self.base_url}/optimized-trips/v1/mapbox/{self.profile_name(profile)}/{coordinates}"
        return f"{self.base_url}/trip/v1/{self.profile_name(profile)}/{coordinates}"

    def _base_params(self) -> Dict[str, str]:
        params = {
            "geometries": "geojson",
            "overview": "full",
            "steps": "true",
        }
        if self.flavor == "mapbox":
            params["access_token"] = self.access_token
        return params

    def _get(self, url: str, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Directions request failed: %s", exc)
            raise RouteUnavailable(f"Directions provider unreachable: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        code = data.get("code") if isinstance(data, dict) else None
        if code in NOT_FOUND_CODES:
            raise RouteNotFound(data.get("message") or code)

        if not response.ok:
            raise RouteUnavailable(f"Directions API error: {response.status_code}")

        if code != "Ok":
            raise RouteUnavailable(f"Directions API error: {data.get('message', code or 'Unknown error')}")

        return data

    #----------------
    # Public methods for route and trip
    #----------------
    def route(self, coordinates: Sequence[GeoPoint],
              profile: TravelProfile = TravelProfile.DRIVING) -> Route:
        """
        calls the /route endpoint with the given coordinates (origin, waypoints..., destination)
        and returns the provider's top ranked route.
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required to compute a route.")

        params = self._base_params()
        if self.flavor == "mapbox":
            params.update({
                "voice_instructions": "true",
                "banner_instructions": "true",
                "language": self.language,
            })

        data = self._get(self.route_url(profile, coordinates), params)

        routes = data.get("routes") or []
        if not routes:
            raise RouteNotFound("No routes found")

        #take the first route (the provider may return alternatives, index 0 is its best)
        return parse_route(routes[0], profile)

    def trip(self, coordinates: Sequence[GeoPoint],
             profile: TravelProfile = TravelProfile.DRIVING,
             *,
             fixed_first: bool = True,
             fixed_last: bool = True) -> Route:
        """
        calls the trip optimization endpoint. The returned Route carries
        waypoint_order[i] = visiting position of coordinates[i].
        """
        params = self._base_params()
        params.update({
            "roundtrip": "false",
            "source": "first" if fixed_first else "any",
            "destination": "last" if fixed_last else "any",
        })

        data = self._get(self.trip_url(profile, coordinates), params)

        trips = data.get("trips") or []
        if not trips:
            raise RouteNotFound("No optimized route found")

        waypoints = data.get("waypoints") or []
        order = tuple(int(wp["waypoint_index"]) for wp in waypoints)
        if len(order) != len(coordinates):
            raise RouteUnavailable("Provider returned an incomplete waypoint order")

        return parse_route(trips[0], profile, waypoint_order=order)

    def nearby_places(self, location: GeoPoint, category: str = "poi", limit: int = 10) -> List[Place]:
        """
        Points of interest around location (mapbox geocoding only; OSRM has no search).
        Places keep the provider's relevance order.
        """
        if self.flavor != "mapbox":
            raise ValueError("Nearby place search requires the mapbox flavor.")

        url = f"{self.base_url}/geocoding/v5/mapbox.places/{category}.json"
        params = {
            "access_token": self.access_token,
            "proximity": f"{location.longitude},{location.latitude}",
            "types": category,
            "limit": str(limit),
            "language": self.language,
        }
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Geocoding request failed: %s", exc)
            raise RouteUnavailable(f"Geocoding provider unreachable: {exc}") from exc

        if not response.ok:
            raise RouteUnavailable(f"Geocoding API error: {response.status_code}")

        try:
            return [parse_place(feature, location, category) for feature in response.json().get("features") or []]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise RouteUnavailable(f"Malformed geocoding response: {exc}") from exc


#----------------
# response parsing
#----------------
def parse_route(payload: Dict[str, Any], profile: TravelProfile,
                waypoint_order: Optional[Sequence[int]] = None) -> Route:
    try:
        geometry = tuple(GeoPoint.from_lon_lat(c) for c in payload["geometry"]["coordinates"])
        steps: List[RouteStep] = []
        for leg in payload.get("legs") or []:
            steps.extend(parse_step(step) for step in leg.get("steps") or [])

        return Route(
            geometry=geometry,
            distance_m=float(payload["distance"]),
            duration_s=float(payload["duration"]),
            steps=tuple(steps),
            waypoint_order=tuple(waypoint_order) if waypoint_order is not None else None,
            profile=TravelProfile(profile),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise RouteUnavailable(f"Malformed directions response: {exc}") from exc


def parse_step(step: Dict[str, Any]) -> RouteStep:
    maneuver = step.get("maneuver") or {}
    maneuver_type = maneuver.get("type", "")
    modifier = maneuver.get("modifier", "")
    road_name = step.get("name", "")

    instruction = maneuver.get("instruction") or synthesize_instruction(maneuver_type, modifier, road_name)

    voice = step.get("voiceInstructions") or []
    banner = step.get("bannerInstructions") or []

    return RouteStep(
        instruction_text=instruction,
        distance_m=float(step.get("distance", 0.0)),
        duration_s=float(step.get("duration", 0.0)),
        maneuver_type=maneuver_type,
        maneuver_modifier=modifier,
        location=GeoPoint.from_lon_lat(maneuver["location"]),
        voice_instruction=(voice[0].get("announcement") if voice else "") or instruction,
        banner_instruction=((banner[0].get("primary") or {}).get("text") if banner else "") or instruction,
        road_name=road_name,
    )


def parse_place(feature: Dict[str, Any], origin: GeoPoint, category: str) -> Place:
    location = GeoPoint.from_lon_lat(feature["center"])
    properties = feature.get("properties") or {}
    return Place(
        id=str(feature["id"]),
        name=feature.get("text", ""),
        address=feature.get("place_name", ""),
        location=location,
        category=properties.get("category") or category,
        distance_m=distance_m(origin, location),
    )


def synthesize_instruction(maneuver_type: str, modifier: str, road_name: str) -> str:
    """
    OSRM does not ship instruction text, so build a plain one from the maneuver.
    """
    onto = f" onto {road_name}" if road_name else ""

    if maneuver_type == "depart":
        return f"Head {modifier}{onto}".strip() if modifier else f"Depart{onto}"
    if maneuver_type == "arrive":
        return "You have arrived at your destination"
    if maneuver_type in ("roundabout", "rotary"):
        return f"Enter the roundabout and exit{onto}"
    if maneuver_type in ("continue", "new name"):
        return f"Continue{onto}"
    if modifier:
        return f"{maneuver_type.capitalize()} {modifier}{onto}"
    return f"{maneuver_type.capitalize()}{onto}".strip()
