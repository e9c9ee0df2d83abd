"""School transport route optimization and geofencing/dispatch engine."""

__version__ = "0.1.0"
