"""
Purpose: Central configuration for the appointment state machine and route planner.
What it does:

Stores all tunable thresholds:

PERSIST_RETRY_ATTEMPTS = 5
PERSIST_BACKOFF_BASE_S = 0.5   (0.5s, 1s, 2s, 4s...)
OFF_ROUTE_THRESHOLD_M = 75

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AppointmentPolicy:
    """
    Central configuration for appointment persistence and live re-routing.
    """

    # --- Persistence retry ---
    # A transition that failed to persist stays applied locally (the driver has
    # physically moved on); we retry saving it with exponential backoff.
    persist_retry_attempts: int = 5
    persist_backoff_base_s: float = 0.5
    persist_backoff_max_s: float = 30.0

    # Socket timeout for the appointments REST API.
    http_timeout_s: float = 10.0

    # --- Live re-routing ---
    # Driver farther than this from the current route geometry -> recompute.
    off_route_threshold_m: float = 75.0

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.persist_retry_attempts < 1:
            raise ValueError("persist_retry_attempts must be >= 1")

        if self.persist_backoff_base_s < 0 or self.persist_backoff_max_s < self.persist_backoff_base_s:
            raise ValueError("persist backoff must satisfy 0 <= base <= max")

        if self.http_timeout_s <= 0:
            raise ValueError("http_timeout_s must be > 0")

        if self.off_route_threshold_m <= 0:
            raise ValueError("off_route_threshold_m must be > 0")

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based)."""
        return min(self.persist_backoff_max_s, self.persist_backoff_base_s * (2 ** attempt))


def default_appointment_policy() -> AppointmentPolicy:
    """
    Convenience factory for the default policy.
    """
    p = AppointmentPolicy()
    p.validate()
    return p
