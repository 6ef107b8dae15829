"""
Purpose: Central configuration for route computation.
What it does:

Stores all tunable thresholds for talking to the directions provider:

REQUEST_TIMEOUT_S = 10   (hard bound on one route computation)
HTTP_TIMEOUT_S = 8       (socket timeout handed to requests)
FALLBACK_SPEED_KMH = 30  (straight-line ETA when the provider is down)

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import TravelProfile


@dataclass(frozen=True)
class RoutingPolicy:
    """
    Central configuration for RouteEngine and the ETA service.
    """

    # --- Timeouts ---
    # Upper bound for a whole computeRoute/optimize call as seen by the caller.
    # Past this the call fails with RouteUnavailable instead of hanging.
    request_timeout_s: float = 10.0

    # Socket-level timeout passed to requests. Kept below request_timeout_s
    # so the worker thread usually finishes before the caller gives up.
    http_timeout_s: float = 8.0

    default_profile: TravelProfile = TravelProfile.DRIVING

    # --- Local fallback ---
    # Average urban speed for the Haversine estimate when the provider is offline.
    fallback_speed_kmh: float = 30.0

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.request_timeout_s <= 0:
            raise ValueError("request_timeout_s must be > 0")

        if self.http_timeout_s <= 0:
            raise ValueError("http_timeout_s must be > 0")

        if self.fallback_speed_kmh <= 0:
            raise ValueError("fallback_speed_kmh must be > 0")


def default_routing_policy() -> RoutingPolicy:
    """
    Convenience factory for the default policy.
    """
    p = RoutingPolicy()
    p.validate()
    return p
