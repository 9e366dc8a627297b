from datetime import date
from unittest import mock

from django.db import DatabaseError
from django.test import RequestFactory, TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import User
from audit.models import AuditLog
from audit.services import client_ip, log_action, snapshot


class LogActionTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="admin1", password="Pass12345!", role=User.Role.ADMIN)
        self.factory = RequestFactory()

    def test_request_supplies_user_ip_and_agent(self):
        request = self.factory.post(
            "/",
            HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1",
            HTTP_USER_AGENT="pytest-agent",
        )
        request.user = self.user

        entry = log_action(request, "UPDATE", "users", 5, old_values={"a": 1}, new_values={"a": 2})
        self.assertEqual(entry.user, self.user)
        self.assertEqual(entry.ip_address, "203.0.113.7")
        self.assertEqual(entry.user_agent, "pytest-agent")
        self.assertEqual(entry.record_id, "5")
        self.assertEqual(entry.new_values, {"a": 2})

    def test_remote_addr_fallback(self):
        request = self.factory.get("/", REMOTE_ADDR="198.51.100.2")
        self.assertEqual(client_ip(request), "198.51.100.2")

    def test_malformed_forwarded_for_falls_back_to_remote_addr(self):
        request = self.factory.post("/", HTTP_X_FORWARDED_FOR="unknown, 10.0.0.1", REMOTE_ADDR="198.51.100.2")
        request.user = self.user
        self.assertEqual(client_ip(request), "198.51.100.2")

        entry = log_action(request, "UPDATE", "users", 5)
        self.assertEqual(entry.ip_address, "198.51.100.2")

    def test_no_valid_address(self):
        request = self.factory.get("/", HTTP_X_FORWARDED_FOR="unknown", REMOTE_ADDR="")
        self.assertIsNone(client_ip(request))

    def test_bare_user(self):
        entry = log_action(self.user, "CHECK_IN", "attendance", 1)
        self.assertEqual(entry.user, self.user)
        self.assertIsNone(entry.ip_address)

    def test_write_failure_is_swallowed(self):
        with mock.patch.object(AuditLog.objects, "create", side_effect=DatabaseError("boom")):
            with self.assertLogs("audit.services", level="ERROR"):
                self.assertIsNone(log_action(self.user, "CREATE", "users", 1))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_snapshot_is_json_safe(self):
        self.user.hire_date = date(2024, 1, 2)
        data = snapshot(self.user, ["username", "role", "hire_date", "department_id"])
        self.assertEqual(data, {"username": "admin1", "role": "ADMIN", "hire_date": "2024-01-02", "department_id": None})


class AuditLogAPITests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(
            username="admin1", password="Pass12345!", role=User.Role.HR_ADMIN, email="admin1@test.com"
        )
        self.employee = User.objects.create_user(
            username="employee1", password="Pass12345!", role=User.Role.EMPLOYEE, email="employee1@test.com"
        )
        log_action(self.admin, "CREATE", "users", self.employee.id)
        log_action(self.admin, "UPDATE", "office_locations", 3)
        self.url = "/api/admin/audit-logs/"

    def auth_as(self, username, password="Pass12345!"):
        res = self.client.post("/api/auth/login/", {"username": username, "password": password}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")

    def test_admin_lists_and_filters(self):
        self.auth_as("admin1")
        res = self.client.get(self.url)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["count"], 2)

        res = self.client.get(self.url, {"table_name": "office_locations"})
        self.assertEqual([r["action"] for r in res.data["results"]], ["UPDATE"])

    def test_employee_is_forbidden(self):
        self.auth_as("employee1")
        res = self.client.get(self.url)
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_user_filter(self):
        self.auth_as("admin1")
        res = self.client.get(self.url, {"user": self.admin.id})
        self.assertEqual(res.data["count"], 2)
        res = self.client.get(self.url, {"user": self.employee.id})
        self.assertEqual(res.data["count"], 0)

    def test_malformed_user_filter_returns_400(self):
        self.auth_as("admin1")
        res = self.client.get(self.url, {"user": "abc"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("user", res.data)
