from datetime import date, datetime, timedelta
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import Department, User
from approvals.models import LeaveRequest, RequestStatus, WorkLetter
from attendance.models import Attendance, OfficeLocation
from attendance.services import format_working_hours
from hrms.helpers import count_work_days
from reports import services


def local_dt(*args):
    return timezone.make_aware(datetime(*args))


class HelperTests(SimpleTestCase):
    def test_count_work_days(self):
        # 2030-03-04 is a Monday
        self.assertEqual(count_work_days(date(2030, 3, 4), date(2030, 3, 8)), 5)
        self.assertEqual(count_work_days(date(2030, 3, 4), date(2030, 3, 10)), 5)
        self.assertEqual(count_work_days(date(2030, 3, 9), date(2030, 3, 10)), 0)
        self.assertEqual(count_work_days(date(2030, 3, 8), date(2030, 3, 4)), 0)
        self.assertEqual(count_work_days(date(2030, 3, 1), date(2030, 3, 31)), 21)

    def test_format_working_hours(self):
        self.assertEqual(format_working_hours(480), "8h")
        self.assertEqual(format_working_hours(510), "8h 30m")
        self.assertEqual(format_working_hours(45), "45m")
        self.assertEqual(format_working_hours(0), "0h 0m")

    def test_attendance_rate(self):
        self.assertEqual(services.attendance_rate(2, 21), 9.52)
        self.assertEqual(services.attendance_rate(3, 0), 0.0)


class ReportFixtureMixin:
    def setUp(self):
        self.it = Department.objects.create(code="IT", name="IT")
        self.fin = Department.objects.create(code="FIN", name="Finance")

        self.admin = User.objects.create_user(username="admin1", password="Pass12345!", role=User.Role.ADMIN)
        self.manager = User.objects.create_user(
            username="manager1", password="Pass12345!", role=User.Role.MANAGER, department=self.it
        )
        self.employee = User.objects.create_user(username="employee1", password="Pass12345!", department=self.it)
        self.colleague = User.objects.create_user(username="employee2", password="Pass12345!", department=self.it)
        self.outsider = User.objects.create_user(username="employee3", password="Pass12345!", department=self.fin)

        self.it.head = self.manager
        self.it.save()

        self.office = OfficeLocation.objects.create(
            name="Head Office",
            code="HO",
            latitude=Decimal("-6.20000000"),
            longitude=Decimal("106.81666600"),
            radius_meters=100,
        )

    def record(self, user, day, record_status=Attendance.Status.PRESENT, **extra):
        return Attendance.objects.create(user=user, attendance_date=day, status=record_status, **extra)


class DashboardServiceTests(ReportFixtureMixin, TestCase):
    now = local_dt(2030, 3, 5, 10, 30)

    def test_not_checked_in(self):
        today = services.today_attendance(self.employee, self.now)
        self.assertEqual(today, {"status": "not_checked_in", "working_minutes": 0})

    def test_checked_in_counts_live_minutes(self):
        self.record(
            self.employee,
            date(2030, 3, 5),
            office_location=self.office,
            check_in_time=self.now - timedelta(minutes=90),
            check_in_latitude=self.office.latitude,
            check_in_longitude=self.office.longitude,
            is_valid_location=True,
        )
        today = services.today_attendance(self.employee, self.now)
        self.assertEqual(today["status"], "checked_in")
        self.assertEqual(today["working_minutes"], 90)
        self.assertEqual(today["office_location"]["name"], "Head Office")
        self.assertEqual(today["office_location"]["distance"], 0.0)

    def test_checked_out_uses_stored_minutes(self):
        self.record(
            self.employee,
            date(2030, 3, 5),
            check_in_time=self.now - timedelta(hours=3),
            check_out_time=self.now - timedelta(hours=1),
            working_minutes=120,
        )
        today = services.today_attendance(self.employee, self.now)
        self.assertEqual(today["status"], "checked_out")
        self.assertEqual(today["working_minutes"], 120)
        self.assertIsNone(today["office_location"])

    def test_absent(self):
        self.record(self.employee, date(2030, 3, 5), Attendance.Status.ABSENT)
        self.assertEqual(services.today_attendance(self.employee, self.now)["status"], "absent")

    def test_monthly_and_trend(self):
        self.record(self.employee, date(2030, 2, 20))
        self.record(self.employee, date(2030, 3, 4))
        self.record(self.employee, date(2030, 3, 5), Attendance.Status.LATE)
        self.record(self.employee, date(2030, 3, 6), Attendance.Status.ABSENT)

        monthly = services.monthly_attendance(self.employee, date(2030, 3, 5))
        self.assertEqual(monthly["work_days"], 21)
        self.assertEqual(monthly["present_days"], 2)
        self.assertEqual(monthly["late_days"], 1)
        self.assertEqual(monthly["absent_days"], 1)
        self.assertEqual(monthly["attendance_rate"], 9.52)

        trend = services.attendance_trend(self.employee, date(2030, 3, 5))
        self.assertEqual([t["date"] for t in trend], [date(2030, 3, 4), date(2030, 3, 5)])

    def test_request_stats(self):
        LeaveRequest.objects.create(
            user=self.employee,
            leave_type="annual",
            start_date=date(2030, 3, 4),
            end_date=date(2030, 3, 4),
            total_days=1,
            reason="Errand",
        )
        WorkLetter.objects.create(
            user=self.employee,
            letter_type="travel",
            subject="Visit",
            content="Client visit",
            effective_date=date(2030, 3, 4),
            status=RequestStatus.APPROVED,
        )
        stats = services.request_stats(self.employee)
        self.assertEqual((stats["pending"], stats["approved"], stats["total"]), (1, 1, 2))
        self.assertEqual(stats["recent"][0]["document_type"], "work_letter")

    def test_approval_section_only_for_approvers(self):
        LeaveRequest.objects.create(
            user=self.employee,
            current_approver=self.manager,
            leave_type="annual",
            start_date=date(2030, 3, 4),
            end_date=date(2030, 3, 4),
            total_days=1,
            reason="Errand",
            submitted_at=self.now - timedelta(hours=30),
        )
        self.assertNotIn("approvals", services.dashboard(self.employee, now=self.now))

        approvals = services.dashboard(self.manager, now=self.now)["approvals"]
        self.assertEqual(approvals["pending_count"], 1)
        self.assertEqual(approvals["decided_today"], 0)
        self.assertEqual(approvals["pending"][0]["urgency"], "medium")
        self.assertEqual(approvals["pending"][0]["department"], "IT")

    def test_team(self):
        self.record(self.employee, date(2030, 3, 5), Attendance.Status.LATE)
        self.record(self.colleague, date(2030, 3, 5), Attendance.Status.LEAVE)

        team = services.dashboard(self.manager, include_team=True, now=self.now)["team"]
        self.assertEqual(team["total_members"], 3)
        self.assertEqual(team["present_today"], 1)
        self.assertEqual(team["late_today"], 1)
        self.assertEqual(team["on_leave_today"], 1)
        self.assertEqual(
            [(m["name"], m["status"]) for m in team["members"]],
            [("employee1", "LATE"), ("employee2", "LEAVE"), ("manager1", "ABSENT")],
        )

        self.assertNotIn("team", services.dashboard(self.admin, include_team=True, now=self.now))

    def test_company_only_for_admin_roles(self):
        self.record(self.employee, date(2030, 3, 5))
        self.record(self.outsider, date(2030, 3, 5), Attendance.Status.ABSENT)
        self.record(self.colleague, date(2030, 3, 4))

        self.assertNotIn("company", services.dashboard(self.manager, include_company=True, now=self.now))

        company = services.dashboard(self.admin, include_company=True, now=self.now)["company"]
        self.assertEqual(company["total_employees"], 5)
        self.assertEqual(company["present_today"], 1)
        self.assertEqual(company["absent_today"], 1)

        by_name = {d["name"]: d for d in company["departments"]}
        self.assertEqual(by_name["IT"]["total_employees"], 3)
        self.assertEqual(by_name["IT"]["present_today"], 1)
        self.assertEqual(by_name["IT"]["attendance_rate"], 33.33)
        self.assertEqual(by_name["Finance"]["present_today"], 0)

        trend = company["trend"]
        self.assertEqual(len(trend), 7)
        self.assertEqual(trend[-1]["date"], date(2030, 3, 5))
        self.assertEqual((trend[-1]["present"], trend[-1]["absent"]), (1, 1))
        self.assertEqual(trend[-1]["attendance_rate"], 50.0)
        self.assertEqual(trend[-2]["present"], 1)


class ReportAPITests(ReportFixtureMixin, APITestCase):
    url = "/api/reports/attendance/"
    period = {"start_date": "2030-03-01", "end_date": "2030-03-31"}

    def setUp(self):
        super().setUp()
        self.record(self.employee, date(2030, 3, 4), working_minutes=480)
        self.record(self.colleague, date(2030, 3, 4), Attendance.Status.LATE)
        self.record(self.outsider, date(2030, 3, 5))
        self.record(self.employee, date(2030, 4, 1))

    def auth_as(self, username, password="Pass12345!"):
        res = self.client.post("/api/auth/login/", {"username": username, "password": password}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")

    def test_dashboard(self):
        self.auth_as("employee1")
        res = self.client.get("/api/dashboard/", {"include_company": "true"})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertIn("attendance", res.data)
        self.assertIn("requests", res.data)
        self.assertNotIn("company", res.data)

        self.auth_as("admin1")
        res = self.client.get("/api/dashboard/", {"include_company": "true"})
        self.assertIn("company", res.data)
        self.assertIn("approvals", res.data)

    def test_employee_forbidden(self):
        self.auth_as("employee1")
        res = self.client.get(self.url, self.period)
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_manager_sees_department(self):
        self.auth_as("manager1")
        res = self.client.get(self.url, self.period)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["count"], 2)
        self.assertEqual({r["username"] for r in res.data["results"]}, {"employee1", "employee2"})

        # a foreign department filter cannot widen the scope
        res = self.client.get(self.url, {**self.period, "department": self.fin.pk})
        self.assertEqual(res.data["count"], 0)

    def test_admin_filters(self):
        self.auth_as("admin1")
        res = self.client.get(self.url, self.period)
        self.assertEqual(res.data["count"], 3)

        res = self.client.get(self.url, {**self.period, "user": self.employee.pk})
        self.assertEqual(res.data["count"], 1)
        row = res.data["results"][0]
        self.assertEqual(row["working_hours"], "8h")
        self.assertEqual(row["department"], "IT")

        res = self.client.get(self.url, {**self.period, "department": self.fin.pk})
        self.assertEqual([r["username"] for r in res.data["results"]], ["employee3"])

    def test_csv_export(self):
        self.auth_as("admin1")
        res = self.client.get(self.url, {**self.period, "format": "csv"})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertTrue(res["Content-Type"].startswith("text/csv"))
        self.assertIn("attendance_2030-03-01_2030-03-31.csv", res["Content-Disposition"])

        lines = res.content.decode().splitlines()
        self.assertTrue(lines[0].startswith("user,username,name,department,attendance_date"))
        self.assertEqual(len(lines), 4)

    def test_bad_parameters(self):
        self.auth_as("admin1")
        res = self.client.get(self.url, {"start_date": "2030-03-31", "end_date": "2030-03-01"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.get(self.url, {"start_date": "31/03/2030"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.get(self.url, {**self.period, "user": "abc"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_csv_errors_are_json(self):
        self.auth_as("admin1")
        res = self.client.get(self.url, {"format": "csv", "start_date": "bad"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(res["Content-Type"].startswith("application/json"))
        self.assertIn("YYYY-MM-DD", res.content.decode())

        self.auth_as("employee1")
        res = self.client.get(self.url, {**self.period, "format": "csv"})
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(res["Content-Type"].startswith("application/json"))
        self.assertIn("detail", res.content.decode())
