"""Route group exports."""

from . import absences, geofencing, health, routes, stops, tracking

__all__ = ["absences", "geofencing", "health", "routes", "stops", "tracking"]
