from datetime import datetime
from decimal import Decimal

from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from accounts.models import Department, User
from attendance import services
from attendance.geo import (
    haversine_distance,
    is_valid_coordinate,
    validate_against_office,
    validate_location,
)
from attendance.models import Attendance, OfficeLocation
from audit.models import AuditLog

OFFICE_LAT = Decimal("-6.17539200")
OFFICE_LON = Decimal("106.82715300")

# latitude offsets north of the office
NEAR = 0.00045  # ~50 m
EDGE = 0.00135  # ~150 m
FAR = 0.009  # ~1 km


def local_dt(*args):
    return timezone.make_aware(datetime(*args))


class PaginationMixin:
    def results(self, res):
        return res.data["results"] if isinstance(res.data, dict) and "results" in res.data else res.data


class GeoTests(SimpleTestCase):
    def test_haversine_one_degree_on_equator(self):
        self.assertAlmostEqual(haversine_distance(0, 0, 0, 1), 111194.93, delta=1)

    def test_haversine_same_point_is_zero(self):
        self.assertEqual(haversine_distance(-6.2, 106.8, -6.2, 106.8), 0)

    def test_coordinate_ranges(self):
        self.assertTrue(is_valid_coordinate(-90, 180))
        self.assertTrue(is_valid_coordinate("-6.2", "106.8"))
        self.assertFalse(is_valid_coordinate(90.0001, 0))
        self.assertFalse(is_valid_coordinate(0, -180.5))
        self.assertFalse(is_valid_coordinate(float("nan"), 0))
        self.assertFalse(is_valid_coordinate(None, 0))
        self.assertFalse(is_valid_coordinate(True, 0))

    def test_tolerance_out_of_range(self):
        with self.assertRaises(ValueError):
            validate_location(0, 0, tolerance=501, offices=[])
        with self.assertRaises(ValueError):
            validate_location(0, 0, tolerance=-1, offices=[])

    @override_settings(ATTENDANCE_MAX_TOLERANCE_METERS=50)
    def test_tolerance_limit_comes_from_settings(self):
        self.assertFalse(validate_location(0, 0, tolerance=50, offices=[]).is_valid)
        with self.assertRaises(ValueError):
            validate_location(0, 0, tolerance=100, offices=[])

    def test_format_working_hours(self):
        self.assertEqual(services.format_working_hours(510), "8h 30m")
        self.assertEqual(services.format_working_hours(480), "8h")
        self.assertEqual(services.format_working_hours(45), "45m")
        self.assertEqual(services.format_working_hours(0), "0h 0m")

    def test_working_minutes_are_floored(self):
        start = datetime(2025, 1, 6, 8, 0, 0)
        self.assertEqual(services.working_minutes_between(start, datetime(2025, 1, 6, 8, 59, 59)), 59)
        self.assertEqual(services.working_minutes_between(start, start), 0)
        self.assertEqual(services.working_minutes_between(start, None), 0)


class LocationValidationTests(TestCase):
    def setUp(self):
        self.hq = OfficeLocation.objects.create(
            name="Head Office", code="HQ", latitude=OFFICE_LAT, longitude=OFFICE_LON, radius_meters=100
        )

    def test_inside_radius(self):
        result = validate_location(float(OFFICE_LAT) + NEAR, float(OFFICE_LON))
        self.assertTrue(result.is_valid)
        self.assertEqual(result.nearest_office["code"], "HQ")
        self.assertEqual(result.distance, 50)
        self.assertEqual(result.allowed_radius, 100)

    def test_tolerance_extends_radius(self):
        lat = float(OFFICE_LAT) + EDGE
        self.assertFalse(validate_location(lat, float(OFFICE_LON), tolerance=0).is_valid)
        result = validate_location(lat, float(OFFICE_LON), tolerance=100)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.allowed_radius, 200)

    def test_outside_reports_nearest_office(self):
        OfficeLocation.objects.create(
            name="Far Branch", code="FAR", latitude=Decimal("-7.25"), longitude=Decimal("112.75"), radius_meters=100
        )
        result = validate_location(float(OFFICE_LAT) + FAR, float(OFFICE_LON))
        self.assertFalse(result.is_valid)
        self.assertEqual(result.nearest_office["code"], "HQ")
        self.assertGreater(result.distance, 990)
        self.assertIn("Head Office", result.message)

    def test_nearest_containing_office_wins(self):
        wide = OfficeLocation.objects.create(
            name="Wide Campus",
            code="WIDE",
            latitude=OFFICE_LAT + Decimal("0.00100000"),
            longitude=OFFICE_LON,
            radius_meters=1000,
        )
        # inside both radii, closer to the wide campus
        result = validate_location(float(OFFICE_LAT) + 0.0008, float(OFFICE_LON))
        self.assertTrue(result.is_valid)
        self.assertEqual(result.nearest_office["id"], wide.id)

    def test_ignores_inactive_offices(self):
        self.hq.is_active = False
        self.hq.save()
        result = validate_location(float(OFFICE_LAT), float(OFFICE_LON))
        self.assertFalse(result.is_valid)
        self.assertEqual(result.message, "No active office locations.")

    def test_against_inactive_office(self):
        self.hq.is_active = False
        self.hq.save()
        result = validate_against_office(float(OFFICE_LAT), float(OFFICE_LON), self.hq)
        self.assertFalse(result.is_valid)

    def test_invalid_coordinates(self):
        result = validate_location(123, 0)
        self.assertFalse(result.is_valid)
        self.assertIsNone(result.nearest_office)


class CheckInOutServiceTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="employee1", password="Pass12345!")
        self.hq = OfficeLocation.objects.create(
            name="Head Office", code="HQ", latitude=OFFICE_LAT, longitude=OFFICE_LON, radius_meters=100
        )
        self.near = (float(OFFICE_LAT) + NEAR, float(OFFICE_LON))
        self.far = (float(OFFICE_LAT) + FAR, float(OFFICE_LON))

    def test_on_time_check_in(self):
        record, validation = services.check_in(self.user, *self.near, now=local_dt(2025, 1, 6, 7, 45))
        self.assertEqual(record.status, Attendance.Status.PRESENT)
        self.assertTrue(record.is_valid_location)
        self.assertEqual(record.office_location, self.hq)
        self.assertEqual(record.attendance_date.isoformat(), "2025-01-06")
        self.assertTrue(validation.is_valid)
        self.assertTrue(AuditLog.objects.filter(action="CHECK_IN", record_id=str(record.pk)).exists())

    def test_late_check_in(self):
        record, _ = services.check_in(self.user, *self.near, now=local_dt(2025, 1, 6, 8, 15))
        self.assertEqual(record.status, Attendance.Status.LATE)

    def test_invalid_location_is_recorded_as_present(self):
        record, validation = services.check_in(self.user, *self.far, now=local_dt(2025, 1, 6, 8, 15))
        self.assertEqual(record.status, Attendance.Status.PRESENT)
        self.assertFalse(record.is_valid_location)
        self.assertFalse(validation.is_valid)

    @override_settings(ATTENDANCE_REQUIRE_VALID_LOCATION=True)
    def test_invalid_location_refused_when_required(self):
        with self.assertRaises(services.LocationRejected) as ctx:
            services.check_in(self.user, *self.far, now=local_dt(2025, 1, 6, 7, 0))
        self.assertEqual(ctx.exception.status_code, 422)
        self.assertFalse(ctx.exception.detail["location_validation"]["is_valid"])
        self.assertFalse(Attendance.objects.exists())

    def test_second_check_in_same_day_rejected(self):
        services.check_in(self.user, *self.near, now=local_dt(2025, 1, 6, 7, 0))
        with self.assertRaises(ValidationError):
            services.check_in(self.user, *self.near, now=local_dt(2025, 1, 6, 9, 0))

    def test_check_in_next_day_allowed(self):
        services.check_in(self.user, *self.near, now=local_dt(2025, 1, 6, 7, 0))
        services.check_in(self.user, *self.near, now=local_dt(2025, 1, 7, 7, 0))
        self.assertEqual(Attendance.objects.filter(user=self.user).count(), 2)

    def test_check_out_computes_working_minutes(self):
        services.check_in(self.user, *self.near, now=local_dt(2025, 1, 6, 8, 0))
        record, validation = services.check_out(self.user, *self.near, now=local_dt(2025, 1, 6, 16, 30, 59))
        self.assertEqual(record.working_minutes, 510)
        self.assertTrue(record.is_valid_location)
        self.assertTrue(validation.is_valid)
        self.assertTrue(AuditLog.objects.filter(action="CHECK_OUT", record_id=str(record.pk)).exists())

    def test_check_out_without_coordinates_keeps_check_in_validity(self):
        services.check_in(self.user, *self.near, now=local_dt(2025, 1, 6, 8, 0))
        record, validation = services.check_out(self.user, now=local_dt(2025, 1, 6, 12, 0))
        self.assertIsNone(validation)
        self.assertTrue(record.is_valid_location)

    def test_check_out_uses_zero_tolerance(self):
        services.check_in(self.user, float(OFFICE_LAT) + EDGE, float(OFFICE_LON), now=local_dt(2025, 1, 6, 8, 0))
        record, validation = services.check_out(
            self.user, float(OFFICE_LAT) + EDGE, float(OFFICE_LON), now=local_dt(2025, 1, 6, 17, 0)
        )
        self.assertFalse(validation.is_valid)
        self.assertEqual(validation.allowed_radius, 100)
        self.assertFalse(record.is_valid_location)

    def test_check_out_requires_check_in(self):
        with self.assertRaises(ValidationError):
            services.check_out(self.user, now=local_dt(2025, 1, 6, 17, 0))

    def test_double_check_out_rejected(self):
        services.check_in(self.user, *self.near, now=local_dt(2025, 1, 6, 8, 0))
        services.check_out(self.user, now=local_dt(2025, 1, 6, 17, 0))
        with self.assertRaises(ValidationError):
            services.check_out(self.user, now=local_dt(2025, 1, 6, 18, 0))

    def test_check_out_coordinates_must_be_paired(self):
        services.check_in(self.user, *self.near, now=local_dt(2025, 1, 6, 8, 0))
        with self.assertRaises(ValidationError):
            services.check_out(self.user, latitude=self.near[0], now=local_dt(2025, 1, 6, 17, 0))


class CheckInAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="employee1", password="Pass12345!")
        OfficeLocation.objects.create(
            name="Head Office", code="HQ", latitude=OFFICE_LAT, longitude=OFFICE_LON, radius_meters=100
        )
        self.near = {"latitude": float(OFFICE_LAT) + NEAR, "longitude": float(OFFICE_LON)}
        self.far = {"latitude": float(OFFICE_LAT) + FAR, "longitude": float(OFFICE_LON)}

    def auth_as(self, username, password="Pass12345!"):
        res = self.client.post("/api/auth/login/", {"username": username, "password": password}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")

    def test_requires_auth(self):
        res = self.client.post("/api/attendance/check-in/", self.near, format="json")
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_check_in_and_out(self):
        self.auth_as("employee1")
        res = self.client.post("/api/attendance/check-in/", self.near, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertTrue(res.data["location_validation"]["is_valid"])
        self.assertEqual(res.data["location_validation"]["nearest_office"]["code"], "HQ")
        self.assertIn(res.data["attendance"]["status"], ("PRESENT", "LATE"))

        res = self.client.post("/api/attendance/check-in/", self.near, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.post("/api/attendance/check-out/", self.near, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertIn("working_hours", res.data)
        self.assertIsNotNone(res.data["attendance"]["check_out_time"])

    def test_out_of_radius_check_in_reports_distance(self):
        self.auth_as("employee1")
        res = self.client.post("/api/attendance/check-in/", self.far, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertFalse(res.data["location_validation"]["is_valid"])
        self.assertEqual(res.data["location_validation"]["allowed_radius"], 200)
        self.assertGreater(res.data["location_validation"]["distance"], 990)
        self.assertFalse(res.data["attendance"]["is_valid_location"])

    @override_settings(ATTENDANCE_REQUIRE_VALID_LOCATION=True)
    def test_out_of_radius_check_in_refused_with_422(self):
        self.auth_as("employee1")
        res = self.client.post("/api/attendance/check-in/", self.far, format="json")
        self.assertEqual(res.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertFalse(res.data["location_validation"]["is_valid"])

    def test_invalid_coordinates_return_400(self):
        self.auth_as("employee1")
        res = self.client.post("/api/attendance/check-in/", {"latitude": 91, "longitude": 0}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.post("/api/attendance/check-in/", {"latitude": "abc", "longitude": 0}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_office_returns_400(self):
        self.auth_as("employee1")
        res = self.client.post(
            "/api/attendance/check-in/", {**self.near, "office_location_id": 9999}, format="json"
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_check_out_without_check_in(self):
        self.auth_as("employee1")
        res = self.client.post("/api/attendance/check-out/", {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_validate_location_does_not_record(self):
        self.auth_as("employee1")
        res = self.client.post(
            "/api/attendance/validate-location/", {**self.far, "tolerance": 500}, format="json"
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertFalse(res.data["is_valid"])
        self.assertEqual(res.data["allowed_radius"], 600)
        self.assertFalse(Attendance.objects.exists())

        res = self.client.post(
            "/api/attendance/validate-location/", {**self.far, "tolerance": 501}, format="json"
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_active_office_locations(self):
        OfficeLocation.objects.create(
            name="Closed Site", code="OLD", latitude=0, longitude=0, radius_meters=100, is_active=False
        )
        self.auth_as("employee1")
        res = self.client.get("/api/attendance/office-locations/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual([o["code"] for o in res.data], ["HQ"])


class AttendanceRecordAPITests(PaginationMixin, APITestCase):
    def setUp(self):
        self.it = Department.objects.create(code="IT", name="IT")
        self.fin = Department.objects.create(code="FIN", name="Finance")
        self.admin = User.objects.create_user(username="admin1", password="Pass12345!", role=User.Role.ADMIN)
        self.manager = User.objects.create_user(
            username="manager1", password="Pass12345!", role=User.Role.MANAGER, department=self.it
        )
        self.employee = User.objects.create_user(username="employee1", password="Pass12345!", department=self.it)
        self.outsider = User.objects.create_user(username="employee2", password="Pass12345!", department=self.fin)

        day = timezone.localdate()
        self.own = Attendance.objects.create(user=self.employee, attendance_date=day)
        self.other = Attendance.objects.create(user=self.outsider, attendance_date=day)
        self.url = "/api/attendance/"

    def auth_as(self, username, password="Pass12345!"):
        res = self.client.post("/api/auth/login/", {"username": username, "password": password}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")

    def test_admin_sees_all(self):
        self.auth_as("admin1")
        res = self.client.get(self.url)
        self.assertEqual(len(self.results(res)), 2)

    def test_manager_sees_department(self):
        self.auth_as("manager1")
        res = self.client.get(self.url)
        self.assertEqual([r["id"] for r in self.results(res)], [self.own.id])

        res = self.client.get(f"{self.url}{self.other.id}/")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_filters(self):
        self.auth_as("admin1")
        today = timezone.localdate().isoformat()
        res = self.client.get(self.url, {"user": self.employee.id, "date_from": today, "date_to": today})
        self.assertEqual([r["id"] for r in self.results(res)], [self.own.id])

    def test_malformed_filters_return_400(self):
        self.auth_as("admin1")
        for params in ({"user": "abc"}, {"date_from": "abc"}, {"date_to": "2025-13-40"}):
            res = self.client.get(self.url, params)
            self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST, params)

    def test_employee_sees_only_self(self):
        self.auth_as("employee2")
        res = self.client.get(self.url)
        self.assertEqual([r["id"] for r in self.results(res)], [self.other.id])

    def test_employee_cannot_create_or_update(self):
        self.auth_as("employee1")
        res = self.client.post(
            self.url, {"user": self.employee.id, "attendance_date": "2025-01-06"}, format="json"
        )
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        res = self.client.patch(f"{self.url}{self.own.id}/", {"status": "LATE"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_manager_creates_within_department_only(self):
        self.auth_as("manager1")
        payload = {"user": self.employee.id, "attendance_date": "2025-01-06", "status": "ABSENT"}
        res = self.client.post(self.url, payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)

        payload["user"] = self.outsider.id
        res = self.client.post(self.url, payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_one_record_per_day(self):
        self.auth_as("admin1")
        payload = {"user": self.employee.id, "attendance_date": self.own.attendance_date.isoformat()}
        res = self.client.post(self.url, payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_correction_recomputes_minutes_and_is_audited(self):
        self.auth_as("admin1")
        payload = {
            "check_in_time": "2025-01-06T08:00:00+07:00",
            "check_out_time": "2025-01-06T12:15:00+07:00",
        }
        res = self.client.patch(f"{self.url}{self.own.id}/", payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["working_minutes"], 255)
        self.assertEqual(res.data["working_hours"], "4h 15m")
        self.assertTrue(AuditLog.objects.filter(action="UPDATE", table_name="attendance").exists())

    def test_check_out_before_check_in_rejected(self):
        self.auth_as("admin1")
        payload = {
            "check_in_time": "2025-01-06T08:00:00+07:00",
            "check_out_time": "2025-01-06T07:00:00+07:00",
        }
        res = self.client.patch(f"{self.url}{self.own.id}/", payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)


class OfficeLocationAdminAPITests(PaginationMixin, APITestCase):
    def setUp(self):
        self.root = User.objects.create_user(username="root", password="Pass12345!", role=User.Role.SUPER_ADMIN)
        User.objects.create_user(username="admin1", password="Pass12345!", role=User.Role.ADMIN)
        self.hq = OfficeLocation.objects.create(
            name="Head Office", code="HQ", latitude=OFFICE_LAT, longitude=OFFICE_LON, radius_meters=100
        )
        self.url = "/api/admin/office-locations/"
        self.payload = {
            "name": "Branch Bandung",
            "code": "bdg-01",
            "address": "Jl. Asia Afrika",
            "latitude": "-6.92148000",
            "longitude": "107.60709000",
            "radius_meters": 150,
        }

    def auth_as(self, username, password="Pass12345!"):
        res = self.client.post("/api/auth/login/", {"username": username, "password": password}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")

    def test_only_super_admin(self):
        self.auth_as("admin1")
        res = self.client.get(self.url)
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_uppercases_code_and_audits(self):
        self.auth_as("root")
        res = self.client.post(self.url, self.payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["code"], "BDG-01")
        self.assertTrue(
            AuditLog.objects.filter(action="CREATE", table_name="office_locations", record_id=str(res.data["id"])).exists()
        )

    def test_create_validation(self):
        self.auth_as("root")
        for field, value in [("code", "bad code!"), ("radius_meters", 5), ("radius_meters", 1001), ("latitude", "91")]:
            res = self.client.post(self.url, {**self.payload, field: value}, format="json")
            self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST, field)
            self.assertIn(field, res.data)

    def test_duplicate_name_or_code(self):
        self.auth_as("root")
        res = self.client.post(self.url, {**self.payload, "code": "hq"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("code", res.data)

        res = self.client.post(self.url, {**self.payload, "name": "head office"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("name", res.data)

    def test_filters(self):
        OfficeLocation.objects.create(
            name="Warehouse", code="WH", latitude=0, longitude=0, radius_meters=100, is_active=False
        )
        self.auth_as("root")
        res = self.client.get(self.url, {"is_active": "false"})
        self.assertEqual([o["code"] for o in self.results(res)], ["WH"])

        res = self.client.get(self.url, {"search": "head"})
        self.assertEqual([o["code"] for o in self.results(res)], ["HQ"])

    def test_update_records_old_and_new_values(self):
        self.auth_as("root")
        res = self.client.patch(f"{self.url}{self.hq.id}/", {"radius_meters": 250}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(action="UPDATE", table_name="office_locations")
        self.assertEqual(log.old_values["radius_meters"], 100)
        self.assertEqual(log.new_values["radius_meters"], 250)

    def test_last_active_office_cannot_be_deleted(self):
        self.auth_as("root")
        res = self.client.delete(f"{self.url}{self.hq.id}/")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        other = OfficeLocation.objects.create(
            name="Branch", code="BR", latitude=0, longitude=0, radius_meters=100
        )
        res = self.client.delete(f"{self.url}{other.id}/")
        self.assertEqual(res.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AuditLog.objects.filter(action="DELETE", record_id=str(other.id)).exists())
