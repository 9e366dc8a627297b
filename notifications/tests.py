import json

from django.test import override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import User
from audit.models import AuditLog
from notifications.models import Notification
from notifications.services import event_stream, notify


def parse_events(raw):
    events = []
    for block in raw.strip().split("\n\n"):
        event = {}
        for line in block.splitlines():
            key, _, value = line.partition(": ")
            event[key] = value
        event["data"] = json.loads(event["data"])
        events.append(event)
    return events


class NotificationTestMixin:
    def auth_as(self, username, password="Pass12345!"):
        res = self.client.post("/api/auth/login/", {"username": username, "password": password}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")


class NotificationAPITests(NotificationTestMixin, APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username="admin1", password="Pass12345!", role=User.Role.ADMIN)
        self.hr_admin = User.objects.create_user(username="hr1", password="Pass12345!", role=User.Role.HR_ADMIN)
        self.employee = User.objects.create_user(username="employee1", password="Pass12345!")
        self.other = User.objects.create_user(username="employee2", password="Pass12345!")

        self.mine = [notify(self.employee, f"Title {i}", "Message") for i in range(3)]
        self.foreign = notify(self.other, "Other", "Message")
        self.url = "/api/notifications/"

    def test_list_shape_and_pagination(self):
        self.auth_as("employee1")
        res = self.client.get(self.url, {"page": 1, "limit": 2})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(len(res.data["notifications"]), 2)
        self.assertEqual(res.data["unread_count"], 3)
        self.assertEqual(res.data["pagination"], {"page": 1, "limit": 2, "has_more": True})
        # newest first
        self.assertEqual(res.data["notifications"][0]["id"], self.mine[-1].id)

        res = self.client.get(self.url, {"page": 2, "limit": 2})
        self.assertEqual(len(res.data["notifications"]), 1)
        self.assertFalse(res.data["pagination"]["has_more"])

    def test_admin_creates_notification(self):
        self.auth_as("admin1")
        payload = {"user": self.employee.id, "title": "Maintenance", "message": "Tonight", "type": "warning"}
        res = self.client.post(self.url, payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["status"], "unread")
        self.assertTrue(Notification.objects.filter(user=self.employee, title="Maintenance").exists())

    def test_hr_admin_and_employee_cannot_create(self):
        payload = {"user": self.other.id, "title": "x", "message": "y"}
        for username in ("hr1", "employee1"):
            self.auth_as(username)
            res = self.client.post(self.url, payload, format="json")
            self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_mark_read_only_touches_own_notifications(self):
        self.auth_as("employee1")
        ids = [self.mine[0].id, self.foreign.id]
        res = self.client.patch(f"{self.url}mark-read/", {"notification_ids": ids}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["updated_count"], 1)

        self.foreign.refresh_from_db()
        self.assertEqual(self.foreign.status, Notification.Status.UNREAD)
        self.mine[0].refresh_from_db()
        self.assertEqual(self.mine[0].status, Notification.Status.READ)
        self.assertIsNotNone(self.mine[0].read_at)
        self.assertTrue(AuditLog.objects.filter(action="MARK_READ", user=self.employee).exists())

        # already read
        res = self.client.patch(f"{self.url}mark-read/", {"notification_ids": [self.mine[0].id]}, format="json")
        self.assertEqual(res.data["updated_count"], 0)

    def test_mark_read_requires_ids(self):
        self.auth_as("employee1")
        res = self.client.patch(f"{self.url}mark-read/", {"notification_ids": []}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_all_read(self):
        self.auth_as("employee1")
        res = self.client.patch(f"{self.url}mark-all-read/")
        self.assertEqual(res.data["updated_count"], 3)
        res = self.client.get(self.url)
        self.assertEqual(res.data["unread_count"], 0)


@override_settings(NOTIFICATION_STREAM_TIMEOUT_SECONDS=0)
class NotificationStreamTests(NotificationTestMixin, APITestCase):
    def setUp(self):
        self.employee = User.objects.create_user(username="employee1", password="Pass12345!")
        self.first = notify(self.employee, "First", "Message")
        self.second = notify(self.employee, "Second", "Message", type=Notification.Type.SUCCESS)

    def test_stream_requires_auth(self):
        res = self.client.get("/api/notifications/stream/", HTTP_ACCEPT="text/event-stream")
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_stream_sends_connection_then_new_notifications(self):
        self.auth_as("employee1")
        res = self.client.get(
            "/api/notifications/stream/",
            HTTP_ACCEPT="text/event-stream",
            HTTP_LAST_EVENT_ID=str(self.first.id),
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res["Content-Type"], "text/event-stream")

        events = parse_events(b"".join(res.streaming_content).decode())
        self.assertEqual(events[0]["event"], "connection")
        self.assertEqual(events[1]["event"], "notification")
        self.assertEqual(events[1]["id"], str(self.second.id))
        self.assertEqual(events[1]["data"]["title"], "Second")
        self.assertEqual(events[-1]["event"], "close")
        self.assertEqual(len(events), 3)

    def test_stream_last_id_query(self):
        self.auth_as("employee1")
        res = self.client.get("/api/notifications/stream/", {"last_id": 0})
        events = parse_events(b"".join(res.streaming_content).decode())
        self.assertEqual([e["event"] for e in events], ["connection", "notification", "notification", "close"])

    @override_settings(NOTIFICATION_STREAM_TIMEOUT_SECONDS=10, NOTIFICATION_STREAM_HEARTBEAT_SECONDS=3)
    def test_heartbeat_between_polls(self):
        ticks = iter([0, 1, 4, 11])
        sleeps = []
        stream = event_stream(
            self.employee,
            last_id=self.second.id,
            clock=lambda: next(ticks),
            sleep=sleeps.append,
        )
        events = [parse_events(chunk)[0]["event"] for chunk in stream]
        self.assertEqual(events, ["connection", "heartbeat", "close"])
        self.assertEqual(len(sleeps), 2)

    def test_stream_last_event_id_header_overrides_query(self):
        self.auth_as("employee1")
        res = self.client.get(
            "/api/notifications/stream/",
            {"last_id": 0},
            HTTP_LAST_EVENT_ID=str(self.first.id),
        )
        events = parse_events(b"".join(res.streaming_content).decode())
        self.assertEqual([e["event"] for e in events], ["connection", "notification", "close"])
        self.assertEqual(events[1]["id"], str(self.second.id))

    def test_stream_invalid_header_falls_back_to_query(self):
        self.auth_as("employee1")
        res = self.client.get("/api/notifications/stream/", {"last_id": 0}, HTTP_LAST_EVENT_ID="abc")
        events = parse_events(b"".join(res.streaming_content).decode())
        self.assertEqual([e["event"] for e in events], ["connection", "notification", "notification", "close"])

    def test_stream_starts_after_newest_by_default(self):
        self.auth_as("employee1")
        res = self.client.get("/api/notifications/stream/", {"last_id": "abc"})
        events = parse_events(b"".join(res.streaming_content).decode())
        self.assertEqual([e["event"] for e in events], ["connection", "close"])
