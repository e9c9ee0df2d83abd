"""Mapping provider contract and the Google Maps client."""

from .base import DirectionsResult, DistanceResult, GeocodeResult, MapProvider
from .google import GoogleMapsClient

__all__ = ["DirectionsResult", "DistanceResult", "GeocodeResult", "GoogleMapsClient", "MapProvider"]
