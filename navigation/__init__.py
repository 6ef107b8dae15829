"""
Navigation package.

Public API:
- NavigationSession and its boundary signals (AtFinalStep, AtFirstStep, NavigationInactive)
- external_navigation_url for handing off to Google Maps / Apple Maps / Waze
"""
from .session import (
    NavigationSession,
    NavigationError,
    AtFinalStep,
    AtFirstStep,
    NavigationInactive,
)
from .external import external_navigation_url

__all__ = ["NavigationSession",
           "NavigationError",
             "AtFinalStep",
               "AtFirstStep",
               "NavigationInactive",
               "external_navigation_url",
               ]
