from datetime import timedelta

from django.test import SimpleTestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import Department, User
from approvals.models import Approval, LeaveRequest, PermissionRequest, RequestStatus, WorkLetter
from approvals.workflow import resolve_approver, urgency
from audit.models import AuditLog
from notifications.models import Notification


class UrgencyTests(SimpleTestCase):
    def test_levels(self):
        now = timezone.now()
        self.assertEqual(urgency(now - timedelta(hours=2), now), "low")
        self.assertEqual(urgency(now - timedelta(hours=24), now), "low")
        self.assertEqual(urgency(now - timedelta(hours=25), now), "medium")
        self.assertEqual(urgency(now - timedelta(hours=48), now), "medium")
        self.assertEqual(urgency(now - timedelta(hours=49), now), "high")


class WorkflowTestMixin:
    # 2030-03-04 is a Monday
    leave_payload = {
        "leave_type": "annual",
        "start_date": "2030-03-04",
        "end_date": "2030-03-08",
        "reason": "Family holiday",
    }

    def setUp(self):
        self.it = Department.objects.create(code="IT", name="IT")
        self.fin = Department.objects.create(code="FIN", name="Finance")

        self.admin = User.objects.create_user(username="admin1", password="Pass12345!", role=User.Role.HR_ADMIN)
        self.manager = User.objects.create_user(
            username="manager1", password="Pass12345!", role=User.Role.MANAGER, department=self.it
        )
        self.employee = User.objects.create_user(username="employee1", password="Pass12345!", department=self.it)
        self.colleague = User.objects.create_user(username="employee2", password="Pass12345!", department=self.it)
        self.fin_manager = User.objects.create_user(
            username="manager2", password="Pass12345!", role=User.Role.MANAGER, department=self.fin
        )

        self.it.head = self.manager
        self.it.save()

    def results(self, res):
        return res.data["results"] if isinstance(res.data, dict) and "results" in res.data else res.data

    def auth_as(self, username, password="Pass12345!"):
        res = self.client.post("/api/auth/login/", {"username": username, "password": password}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")

    def submit_leave(self, username="employee1", **overrides):
        self.auth_as(username)
        return self.client.post("/api/leave-requests/", {**self.leave_payload, **overrides}, format="json")


class ApproverResolutionTests(WorkflowTestMixin, APITestCase):
    def test_department_head(self):
        self.assertEqual(resolve_approver(self.employee), self.manager)

    def test_head_escalates_to_parent_department(self):
        director = User.objects.create_user(username="director", password="Pass12345!", role=User.Role.MANAGER)
        board = Department.objects.create(code="BOD", name="Board", head=None)
        director.department = board
        director.save()
        board.head = director
        board.save()
        self.it.parent = board
        self.it.save()

        self.assertEqual(resolve_approver(self.manager), director)

    def test_no_approver_without_head(self):
        self.assertIsNone(resolve_approver(self.admin))
        self.assertIsNone(resolve_approver(self.manager))

    def test_inactive_head_is_skipped(self):
        self.manager.status = User.Status.INACTIVE
        self.manager.save()
        self.assertIsNone(resolve_approver(self.employee))


class LeaveRequestAPITests(WorkflowTestMixin, APITestCase):
    def test_submit_routes_to_department_head(self):
        res = self.submit_leave()
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["status"], RequestStatus.PENDING)
        self.assertEqual(res.data["total_days"], 5)
        self.assertEqual(res.data["current_approver"], self.manager.id)
        self.assertEqual(len(res.data["approvals"]), 1)

        self.assertTrue(
            Approval.objects.filter(
                document_type="leave", document_id=res.data["id"], approver=self.manager, status="pending"
            ).exists()
        )
        self.assertTrue(Notification.objects.filter(user=self.manager).exists())
        self.assertTrue(
            AuditLog.objects.filter(action="CREATE", table_name="leave_requests", record_id=str(res.data["id"])).exists()
        )

    def test_total_days_skips_weekends(self):
        res = self.submit_leave(start_date="2030-03-08", end_date="2030-03-11")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["total_days"], 2)

    def test_weekend_only_leave_rejected(self):
        res = self.submit_leave(start_date="2030-03-09", end_date="2030-03-10")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_end_before_start_rejected(self):
        res = self.submit_leave(start_date="2030-03-08", end_date="2030-03-04")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("end_date", res.data)

    def test_overlap_rejected_until_cancelled(self):
        first = self.submit_leave()
        res = self.submit_leave(start_date="2030-03-08", end_date="2030-03-12")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.post(f"/api/leave-requests/{first.data['id']}/cancel/", {"reason": "plans changed"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], RequestStatus.CANCELLED)

        res = self.submit_leave(start_date="2030-03-08", end_date="2030-03-12")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)

    def test_allowance_counts_pending_and_approved(self):
        self.assertEqual(self.submit_leave().status_code, status.HTTP_201_CREATED)
        res = self.submit_leave(start_date="2030-03-11", end_date="2030-03-15")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)

        # 10 of 12 annual days are booked
        res = self.submit_leave(start_date="2030-03-18", end_date="2030-03-20")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("leave_type", res.data)

        res = self.submit_leave(start_date="2030-03-18", end_date="2030-03-19")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)

    def test_unpaid_leave_is_uncapped(self):
        res = self.submit_leave(leave_type="unpaid", start_date="2030-04-01", end_date="2030-05-31")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertGreater(res.data["total_days"], 12)

    def test_balances(self):
        self.submit_leave()
        res = self.client.get("/api/leave-requests/balances/", {"year": 2030})
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        annual = next(b for b in res.data["balances"] if b["leave_type"] == "annual")
        self.assertEqual(annual, {
            "leave_type": "annual",
            "label": "Annual",
            "total": 12,
            "used": 0,
            "pending": 5,
            "remaining": 7,
        })
        unpaid = next(b for b in res.data["balances"] if b["leave_type"] == "unpaid")
        self.assertIsNone(unpaid["remaining"])

        res = self.client.get("/api/leave-requests/balances/", {"year": "abc"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)


class DecisionAPITests(WorkflowTestMixin, APITestCase):
    def setUp(self):
        super().setUp()
        res = self.submit_leave()
        self.leave_id = res.data["id"]
        self.client.credentials()

    def url(self, action):
        return f"/api/leave-requests/{self.leave_id}/{action}/"

    def test_department_head_approves(self):
        self.auth_as("manager1")
        res = self.client.post(self.url("approve"), {"comments": "Enjoy"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], RequestStatus.APPROVED)
        self.assertIsNotNone(res.data["approved_at"])

        approval = Approval.objects.get(document_type="leave", document_id=self.leave_id)
        self.assertEqual(approval.status, Approval.Status.APPROVED)
        self.assertEqual(approval.comments, "Enjoy")
        self.assertTrue(
            Notification.objects.filter(user=self.employee, type=Notification.Type.SUCCESS).exists()
        )
        self.assertTrue(AuditLog.objects.filter(action="APPROVE", record_id=str(self.leave_id)).exists())

    def test_decided_request_is_final(self):
        self.auth_as("manager1")
        self.client.post(self.url("approve"), {}, format="json")

        res = self.client.post(self.url("reject"), {"reason": "Too late"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        self.auth_as("employee1")
        res = self.client.post(self.url("cancel"), {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reject_requires_reason(self):
        self.auth_as("manager1")
        res = self.client.post(self.url("reject"), {"reason": "  "}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.post(self.url("reject"), {"reason": "Deadline week"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], RequestStatus.REJECTED)
        self.assertEqual(res.data["rejection_reason"], "Deadline week")
        self.assertIsNotNone(res.data["rejected_at"])

    def test_requester_cannot_decide_own_request(self):
        self.auth_as("employee1")
        res = self.client.post(self.url("approve"), {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_colleague_cannot_decide(self):
        self.auth_as("employee2")
        res = self.client.post(self.url("approve"), {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_other_department_manager_cannot_see(self):
        self.auth_as("manager2")
        res = self.client.post(self.url("approve"), {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_admin_can_decide_and_replaces_open_step(self):
        self.auth_as("admin1")
        res = self.client.post(self.url("approve"), {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)

        approvals = Approval.objects.filter(document_type="leave", document_id=self.leave_id)
        self.assertEqual(approvals.count(), 1)
        self.assertEqual(approvals.get().approver, self.admin)

    def test_only_requester_cancels(self):
        self.auth_as("manager1")
        res = self.client.post(self.url("cancel"), {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        self.auth_as("employee1")
        res = self.client.post(self.url("cancel"), {"reason": "Not needed"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["cancellation_reason"], "Not needed")
        self.assertFalse(Approval.objects.filter(document_id=self.leave_id, status="pending").exists())
        self.assertTrue(
            Notification.objects.filter(user=self.manager, type=Notification.Type.WARNING).exists()
        )


class RequestScopeTests(WorkflowTestMixin, APITestCase):
    def setUp(self):
        super().setUp()
        self.submit_leave("employee1")
        self.submit_leave("employee2")
        self.client.credentials()

    def test_employee_sees_own(self):
        self.auth_as("employee1")
        res = self.client.get("/api/leave-requests/")
        self.assertEqual([r["user"] for r in self.results(res)], [self.employee.id])

    def test_manager_sees_department(self):
        self.auth_as("manager1")
        res = self.client.get("/api/leave-requests/")
        self.assertEqual(len(self.results(res)), 2)

        self.auth_as("manager2")
        res = self.client.get("/api/leave-requests/")
        self.assertEqual(len(self.results(res)), 0)

    def test_filters(self):
        self.auth_as("admin1")
        res = self.client.get("/api/leave-requests/", {"status": "pending", "leave_type": "annual"})
        self.assertEqual(len(self.results(res)), 2)
        res = self.client.get("/api/leave-requests/", {"leave_type": "sick"})
        self.assertEqual(len(self.results(res)), 0)

    def test_malformed_user_filter_returns_400(self):
        self.auth_as("admin1")
        res = self.client.get("/api/leave-requests/", {"user": "abc"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("user", res.data)


class PermissionAndWorkLetterAPITests(WorkflowTestMixin, APITestCase):
    permission_payload = {
        "permission_type": "medical",
        "permission_date": "2030-03-05",
        "start_time": "09:00",
        "end_time": "11:00",
        "reason": "Doctor appointment",
    }

    def test_permission_submit_and_overlap(self):
        self.auth_as("employee1")
        res = self.client.post("/api/permission-requests/", self.permission_payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["current_approver"], self.manager.id)

        res = self.client.post(
            "/api/permission-requests/", {**self.permission_payload, "start_time": "10:30", "end_time": "12:00"}, format="json"
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.post(
            "/api/permission-requests/", {**self.permission_payload, "start_time": "11:00", "end_time": "12:00"}, format="json"
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)

    def test_permission_end_after_start(self):
        self.auth_as("employee1")
        res = self.client.post(
            "/api/permission-requests/", {**self.permission_payload, "end_time": "09:00"}, format="json"
        )
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("end_time", res.data)

    def test_permission_decision(self):
        self.auth_as("employee1")
        res = self.client.post("/api/permission-requests/", self.permission_payload, format="json")
        self.auth_as("manager1")
        res = self.client.post(f"/api/permission-requests/{res.data['id']}/approve/", {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(PermissionRequest.objects.get().status, RequestStatus.APPROVED)

    def test_work_letter(self):
        self.auth_as("employee1")
        payload = {
            "letter_type": "travel",
            "subject": "Client visit",
            "content": "Visit to Surabaya office",
            "effective_date": "2030-03-04",
            "expiry_date": "2030-03-01",
        }
        res = self.client.post("/api/work-letters/", payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("expiry_date", res.data)

        payload["expiry_date"] = "2030-03-06"
        res = self.client.post("/api/work-letters/", payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["letter_number"], "")

        self.auth_as("manager1")
        res = self.client.post(f"/api/work-letters/{res.data['id']}/reject/", {"reason": "Budget"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(WorkLetter.objects.get().status, RequestStatus.REJECTED)


class PendingApprovalAPITests(WorkflowTestMixin, APITestCase):
    def setUp(self):
        super().setUp()
        self.leave_id = self.submit_leave().data["id"]
        LeaveRequest.objects.filter(pk=self.leave_id).update(submitted_at=timezone.now() - timedelta(hours=50))
        self.auth_as("employee2")
        self.client.post(
            "/api/permission-requests/",
            {
                "permission_type": "personal",
                "permission_date": "2030-03-05",
                "start_time": "13:00",
                "end_time": "14:00",
                "reason": "Bank",
            },
            format="json",
        )
        self.client.credentials()

    def test_manager_inbox_oldest_first_with_urgency(self):
        self.auth_as("manager1")
        res = self.client.get("/api/approvals/pending/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["count"], 2)
        first, second = res.data["results"]
        self.assertEqual((first["document_type"], first["id"]), ("leave", self.leave_id))
        self.assertEqual(first["urgency"], "high")
        self.assertEqual(second["document_type"], "permission")
        self.assertEqual(second["urgency"], "low")

    def test_other_department_inbox_is_empty(self):
        self.auth_as("manager2")
        res = self.client.get("/api/approvals/pending/")
        self.assertEqual(res.data["count"], 0)

    def test_employee_inbox_is_empty(self):
        self.auth_as("employee1")
        res = self.client.get("/api/approvals/pending/")
        self.assertEqual(res.data["count"], 0)

    def test_decided_requests_leave_the_inbox(self):
        self.auth_as("manager1")
        self.client.post(f"/api/leave-requests/{self.leave_id}/approve/", {}, format="json")
        res = self.client.get("/api/approvals/pending/")
        self.assertEqual(res.data["count"], 1)
