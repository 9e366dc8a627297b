"""
Geofence helpers: great-circle distance and office radius checks.
"""
import math
from dataclasses import dataclass, field

from django.conf import settings

from .models import OfficeLocation

EARTH_RADIUS_METERS = 6371e3


def haversine_distance(lat1, lon1, lat2, lon2):
    """Distance in metres between two WGS84 points."""
    phi1 = math.radians(float(lat1))
    phi2 = math.radians(float(lat2))
    d_phi = math.radians(float(lat2) - float(lat1))
    d_lambda = math.radians(float(lon2) - float(lon1))

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def is_valid_coordinate(latitude, longitude):
    if isinstance(latitude, bool) or isinstance(longitude, bool):
        return False
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def check_tolerance(tolerance):
    limit = settings.ATTENDANCE_MAX_TOLERANCE_METERS
    if not 0 <= tolerance <= limit:
        raise ValueError(f"Tolerance must be between 0 and {limit} meters.")
    return tolerance


@dataclass
class LocationValidation:
    is_valid: bool
    message: str = ""
    nearest_office: dict | None = None
    distance: int | None = None
    allowed_radius: int | None = None
    office: OfficeLocation | None = field(default=None, repr=False, compare=False)

    def as_dict(self):
        return {
            "is_valid": self.is_valid,
            "nearest_office": self.nearest_office,
            "distance": self.distance,
            "allowed_radius": self.allowed_radius,
            "message": self.message,
        }


def _office_summary(office, distance):
    return {"id": office.id, "name": office.name, "code": office.code, "distance": round(distance)}


def _result(office, distance, tolerance):
    allowed = office.radius_meters + tolerance
    is_valid = distance <= allowed
    if is_valid:
        message = f"Within the radius of {office.name}."
    else:
        message = (
            f"Outside the registered office radius. Office: {office.name} "
            f"(distance: {round(distance)}m, allowed radius: {allowed}m)."
        )
    return LocationValidation(
        is_valid=is_valid,
        message=message,
        nearest_office=_office_summary(office, distance),
        distance=round(distance),
        allowed_radius=allowed,
        office=office,
    )


def validate_location(latitude, longitude, tolerance=0, offices=None):
    """
    Check a coordinate against every active office.

    The location is valid when it lies inside at least one office radius
    (plus ``tolerance``). The reported office is the nearest one containing
    the point, otherwise the nearest one overall.
    """
    check_tolerance(tolerance)
    if not is_valid_coordinate(latitude, longitude):
        return LocationValidation(is_valid=False, message="Invalid coordinate format.")

    if offices is None:
        offices = OfficeLocation.objects.filter(is_active=True)
    offices = list(offices)
    if not offices:
        return LocationValidation(is_valid=False, message="No active office locations.")

    measured = sorted(
        ((haversine_distance(latitude, longitude, o.latitude, o.longitude), o) for o in offices),
        key=lambda pair: pair[0],
    )
    for distance, office in measured:
        if distance <= office.radius_meters + tolerance:
            return _result(office, distance, tolerance)

    distance, office = measured[0]
    return _result(office, distance, tolerance)


def validate_against_office(latitude, longitude, office, tolerance=0):
    check_tolerance(tolerance)
    if not is_valid_coordinate(latitude, longitude):
        return LocationValidation(is_valid=False, message="Invalid coordinate format.")
    if office is None:
        return LocationValidation(is_valid=False, message="Office location not found.")
    if not office.is_active:
        return LocationValidation(is_valid=False, message="Office location is not active.", office=office)

    distance = haversine_distance(latitude, longitude, office.latitude, office.longitude)
    return _result(office, distance, tolerance)
