"""
Route computation error taxonomy.

Callers branch on the class (or on .retryable) to decide whether to retry:
- RouteUnavailable: provider/network down or too slow. Retryable.
- RouteNotFound: valid request but no path exists. Retry only with new inputs.
- InsufficientWaypoints: caller bug.
"""


class RouteError(Exception):
    """Base class for every routing failure."""
    retryable = False


class RouteUnavailable(RouteError):
    """Raised when the directions provider cannot be reached or answers with an error."""
    retryable = True


class RouteNotFound(RouteError):
    """Raised when the provider answered but found no route for these inputs."""
    pass


class InsufficientWaypoints(RouteError, ValueError):
    """Raised when waypoint optimization is asked for with fewer than 2 points."""
    pass
