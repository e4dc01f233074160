"""Best-effort player location.

Coordinates are reported by the player's device; this adapter validates
them and decorates them with a locality label from a reverse geocoder.
Nothing here may block queue participation: callers go through
``resolve_location``, which degrades to "no coordinates".
"""

import math
from dataclasses import dataclass
from typing import Optional

import httpx
from flask import current_app

from .errors import LocationUnavailable


UNKNOWN_LOCALITY = 'Unknown City'


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class LocationFix:
    coordinates: Coordinates
    locality: Optional[str] = None


def parse_coordinates(lat, lng) -> Coordinates:
    """Validate a reported position, raising LocationUnavailable if unusable."""
    if lat is None or lng is None:
        raise LocationUnavailable('Coordinates were not provided')
    if isinstance(lat, bool) or isinstance(lng, bool):
        raise LocationUnavailable('Coordinates must be numeric')
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError):
        raise LocationUnavailable('Coordinates must be numeric')
    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        raise LocationUnavailable('Coordinates must be finite')
    if not (-90.0 <= lat_f <= 90.0) or not (-180.0 <= lng_f <= 180.0):
        raise LocationUnavailable('Coordinates are out of range')
    return Coordinates(lat_f, lng_f)


class LocationService:
    def __init__(self, geocoder_url: Optional[str] = None, timeout: float = 5.0, transport=None):
        self.geocoder_url = geocoder_url
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, config, transport=None) -> 'LocationService':
        url = config.get('GEOCODER_URL') if config.get('GEOCODER_ENABLED', True) else None
        return cls(
            geocoder_url=url,
            timeout=float(config.get('GEOCODER_TIMEOUT_SEC', 5)),
            transport=transport,
        )

    def current_coordinates(self, lat, lng) -> LocationFix:
        coordinates = parse_coordinates(lat, lng)
        return LocationFix(coordinates=coordinates, locality=self.reverse_geocode(coordinates))

    def reverse_geocode(self, coordinates: Coordinates) -> Optional[str]:
        """Look up a locality label; None when disabled or on any failure."""
        if not self.geocoder_url:
            return None
        params = {
            'latitude': coordinates.lat,
            'longitude': coordinates.lng,
            'localityLanguage': 'en',
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(self.geocoder_url, params=params)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            current_app.logger.warning(
                f"[geocode-failed] lat={coordinates.lat} lng={coordinates.lng} error={exc!r}"
            )
            return None
        if not isinstance(data, dict):
            return None
        return data.get('city') or data.get('locality') or UNKNOWN_LOCALITY


def resolve_location(lat, lng, service: Optional[LocationService] = None) -> Optional[LocationFix]:
    """Fail-soft lookup: returns None instead of raising LocationUnavailable."""
    service = service or current_app.extensions['location_service']
    try:
        return service.current_coordinates(lat, lng)
    except LocationUnavailable as exc:
        current_app.logger.info(f"[location-unavailable] reason={exc.message}")
        return None
