"""
Purpose: Turn-by-turn cursor over a computed Route.
What it does:
Tracks the "current step" of a route while a driver navigates, supports manual
advance/retreat and produces the text to show or speak for the step.

Advance is always explicit (button press or a caller polling the driver position
against current_instruction().location). Nothing here runs a timer or reacts
to GPS on its own.
"""

from __future__ import annotations

import logging
from typing import Optional

from routing.geo import GeoPoint, distance_m
from routing.models import Route, RouteStep

logger = logging.getLogger(__name__)


class NavigationError(Exception):
    """Boundary signals of a navigation session. Normal control flow, not failures."""
    pass


class AtFinalStep(NavigationError):
    """Raised by advance() on the last step. Caller should stop, not retry."""
    pass


class AtFirstStep(NavigationError):
    """Raised by retreat() on step 0."""
    pass


class NavigationInactive(NavigationError):
    """Raised when moving the cursor of a stopped session."""
    pass


class NavigationSession:
    """
    Session-local navigation state. Never persisted.

    Typical lifecycle:
        session = NavigationSession.start(route)
        session.advance()
        ...
        session.stop()
    """

    def __init__(self, route: Route, voice_enabled: bool = True):
        if not route.steps:
            raise ValueError("Cannot navigate a route without steps")
        self.route = route
        self.current_step_index = 0
        self.is_active = False
        self.voice_enabled = voice_enabled

    @classmethod
    def start(cls, route: Route, voice_enabled: bool = True) -> NavigationSession:
        session = cls(route, voice_enabled=voice_enabled)
        session.is_active = True
        logger.debug("Navigation started: %d steps", len(route.steps))
        return session

    # ------------------------------------------------------------------
    # cursor
    # ------------------------------------------------------------------

    def advance(self) -> RouteStep:
        self._ensure_active()
        if self.current_step_index >= len(self.route.steps) - 1:
            raise AtFinalStep(f"Already at step {self.current_step_index + 1} of {len(self.route.steps)}")
        self.current_step_index += 1
        return self.current_instruction()

    def retreat(self) -> RouteStep:
        self._ensure_active()
        if self.current_step_index == 0:
            raise AtFirstStep("Already at the first step")
        self.current_step_index -= 1
        return self.current_instruction()

    def stop(self) -> None:
        self.is_active = False
        self.current_step_index = 0

    def replace_route(self, route: Route) -> None:
        """
        Swap in a recomputed route. The session ends like stop(): the old index
        means nothing for the new route. Resume with NavigationSession.start(session.route).
        """
        if not route.steps:
            raise ValueError("Cannot navigate a route without steps")
        self.route = route
        self.stop()

    def _ensure_active(self) -> None:
        if not self.is_active:
            raise NavigationInactive("Navigation session is not active")

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------

    def current_instruction(self) -> RouteStep:
        return self.route.steps[self.current_step_index]

    @property
    def is_last_step(self) -> bool:
        return self.current_step_index == len(self.route.steps) - 1

    def progress_label(self) -> str:
        return f"Step {self.current_step_index + 1} of {len(self.route.steps)}"

    def toggle_voice(self) -> bool:
        self.voice_enabled = not self.voice_enabled
        return self.voice_enabled

    def spoken_instruction(self) -> Optional[str]:
        """
        Text for the speech synthesizer, or None when voice is muted.
        """
        if not self.voice_enabled:
            return None
        step = self.current_instruction()
        return step.voice_instruction or step.instruction_text

    def remaining_distance_m(self) -> float:
        return sum(step.distance_m for step in self.route.steps[self.current_step_index:])

    def remaining_duration_s(self) -> float:
        return sum(step.duration_s for step in self.route.steps[self.current_step_index:])

    def is_near_current_maneuver(self, point: GeoPoint, threshold_m: float = 30.0) -> bool:
        """For callers that poll driver position and decide themselves when to advance."""
        return distance_m(point, self.current_instruction().location) <= threshold_m
