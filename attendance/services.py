import logging
from datetime import datetime
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError

from audit.services import log_action

from .geo import check_tolerance, is_valid_coordinate, validate_against_office, validate_location
from .models import Attendance, OfficeLocation

logger = logging.getLogger(__name__)

COORDINATE_QUANTUM = Decimal("0.00000001")


class LocationRejected(APIException):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Location is outside the allowed office radius."
    default_code = "invalid_location"

    def __init__(self, validation):
        super().__init__(validation.message)
        # keep booleans and numbers of the validation body intact
        self.detail = {"detail": validation.message, "location_validation": validation.as_dict()}


def tolerance_setting(name):
    value = getattr(settings, name)
    try:
        return check_tolerance(int(value))
    except (TypeError, ValueError) as exc:
        raise ImproperlyConfigured(f"{name}: {exc}")


def work_start_time():
    return datetime.strptime(settings.ATTENDANCE_WORK_START, "%H:%M").time()


def working_minutes_between(start, end):
    if start is None or end is None or end <= start:
        return 0
    return int((end - start).total_seconds() // 60)


def format_working_hours(minutes):
    """480 -> "8h", 45 -> "45m", 510 -> "8h 30m", 0 -> "0h 0m"."""
    minutes = int(minutes or 0)
    hours, mins = divmod(minutes, 60)
    if hours and mins:
        return f"{hours}h {mins}m"
    if hours:
        return f"{hours}h"
    if mins:
        return f"{mins}m"
    return "0h 0m"


def _coordinate(value):
    return Decimal(str(value)).quantize(COORDINATE_QUANTUM)


def _actor(request, user):
    return request if request is not None else user


def check_in(user, latitude, longitude, address="", office_location_id=None, now=None, request=None):
    """
    Record today's check-in for ``user``.

    Returns ``(attendance, validation)``. A location outside every office
    radius is still recorded with ``is_valid_location=False`` unless
    ``ATTENDANCE_REQUIRE_VALID_LOCATION`` is set.
    """
    if not is_valid_coordinate(latitude, longitude):
        raise ValidationError({"detail": "Invalid coordinate format."})

    now = now or timezone.now()
    today = timezone.localdate(now)

    existing = Attendance.objects.filter(user=user, attendance_date=today).first()
    if existing is not None:
        if existing.check_in_time is not None:
            raise ValidationError({"detail": "You have already checked in today."})
        raise ValidationError({"detail": f"Attendance for today is already recorded as {existing.status}."})

    tolerance = tolerance_setting("ATTENDANCE_CHECK_IN_TOLERANCE_METERS")
    if office_location_id is not None:
        office = OfficeLocation.objects.filter(pk=office_location_id).first()
        if office is None:
            raise ValidationError({"office_location_id": "Office location not found."})
        validation = validate_against_office(latitude, longitude, office, tolerance)
    else:
        validation = validate_location(latitude, longitude, tolerance)

    if not validation.is_valid and settings.ATTENDANCE_REQUIRE_VALID_LOCATION:
        logger.warning("Check-in refused for user %s: %s", user.pk, validation.message)
        raise LocationRejected(validation)

    is_late = timezone.localtime(now).time() > work_start_time()
    record_status = Attendance.Status.LATE if (is_late and validation.is_valid) else Attendance.Status.PRESENT

    try:
        with transaction.atomic():
            record = Attendance.objects.create(
                user=user,
                office_location=validation.office,
                attendance_date=today,
                check_in_time=now,
                check_in_latitude=_coordinate(latitude),
                check_in_longitude=_coordinate(longitude),
                check_in_address=address or "",
                status=record_status,
                is_valid_location=validation.is_valid,
                notes="" if validation.is_valid else validation.message[:500],
            )
    except IntegrityError:
        raise ValidationError({"detail": "You have already checked in today."})

    log_action(
        _actor(request, user),
        "CHECK_IN",
        "attendance",
        record.pk,
        new_values={
            "attendance_date": today,
            "check_in_time": now,
            "latitude": latitude,
            "longitude": longitude,
            "status": record.status,
            "is_valid_location": validation.is_valid,
            "location_validation": validation.as_dict(),
        },
    )
    logger.info(
        "User %s checked in (%s, valid location: %s)", user.pk, record.status, validation.is_valid
    )
    return record, validation


def check_out(user, latitude=None, longitude=None, address="", now=None, request=None):
    """
    Close today's attendance record for ``user``.

    Coordinates are optional but must come as a pair. The final
    ``is_valid_location`` requires both the check-in and the check-out to be
    inside the radius. Returns ``(attendance, validation)``; ``validation`` is
    None when no coordinates were sent.
    """
    has_lat = latitude is not None
    has_lon = longitude is not None
    if has_lat != has_lon:
        raise ValidationError({"detail": "Latitude and longitude must be provided together."})
    if has_lat and not is_valid_coordinate(latitude, longitude):
        raise ValidationError({"detail": "Invalid coordinate format."})

    now = now or timezone.now()
    today = timezone.localdate(now)

    with transaction.atomic():
        record = (
            Attendance.objects.select_for_update()
            .select_related("office_location")
            .filter(user=user, attendance_date=today)
            .first()
        )
        if record is None or record.check_in_time is None:
            raise ValidationError({"detail": "You have not checked in today."})
        if record.check_out_time is not None:
            raise ValidationError({"detail": "You have already checked out today."})

        validation = None
        if has_lat:
            tolerance = tolerance_setting("ATTENDANCE_CHECK_OUT_TOLERANCE_METERS")
            if record.office_location is not None:
                validation = validate_against_office(latitude, longitude, record.office_location, tolerance)
            else:
                validation = validate_location(latitude, longitude, tolerance)
            record.check_out_latitude = _coordinate(latitude)
            record.check_out_longitude = _coordinate(longitude)

        old_values = {
            "check_out_time": None,
            "working_minutes": record.working_minutes,
            "is_valid_location": record.is_valid_location,
        }

        record.check_out_time = now
        record.check_out_address = address or ""
        record.working_minutes = working_minutes_between(record.check_in_time, now)
        checkout_valid = validation.is_valid if validation is not None else True
        record.is_valid_location = record.is_valid_location and checkout_valid
        record.save()

    log_action(
        _actor(request, user),
        "CHECK_OUT",
        "attendance",
        record.pk,
        old_values=old_values,
        new_values={
            "check_out_time": now,
            "working_minutes": record.working_minutes,
            "is_valid_location": record.is_valid_location,
            "location_validation": validation.as_dict() if validation is not None else None,
        },
    )
    logger.info("User %s checked out after %s minutes", user.pk, record.working_minutes)
    return record, validation
