"""Exception hierarchy shared by the routing, geofencing and recalculation services."""

from __future__ import annotations


class SchoolRouteError(Exception):
    """Base class for all domain errors raised by this package."""


class NotFoundError(SchoolRouteError):
    """A referenced route template, route instance, stop or absence does not exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(f"{kind} '{identifier}' not found.")
        self.kind = kind
        self.identifier = identifier


class InvalidStateError(SchoolRouteError):
    """The operation requires a status the route or stop is not in."""


class ProviderUnavailableError(SchoolRouteError):
    """The mapping provider could not be reached or timed out."""


class OptimizationError(SchoolRouteError):
    """Route optimization failed and no state may be mutated."""


class PersistenceError(SchoolRouteError):
    """A batch of changes could not be committed."""
