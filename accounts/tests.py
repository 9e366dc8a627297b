from django.contrib.auth.models import Group
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.groups import setup_role_groups
from accounts.models import Department, User
from audit.models import AuditLog


class AuthTestMixin:
    login_url = "/api/auth/login/"

    def results(self, res):
        return res.data["results"] if isinstance(res.data, dict) and "results" in res.data else res.data

    def login(self, username, password="Pass12345!"):
        return self.client.post(self.login_url, {"username": username, "password": password}, format="json")

    def auth_as(self, username, password="Pass12345!"):
        res = self.login(username, password)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")
        return res.data


class AuthRBACTests(AuthTestMixin, APITestCase):
    def setUp(self):
        self.dept = Department.objects.create(code="IT", name="Information Technology")
        self.admin = User.objects.create_user(
            username="admin1", password="Pass12345!", role=User.Role.ADMIN, email="admin1@test.com"
        )
        self.manager = User.objects.create_user(
            username="manager1",
            password="Pass12345!",
            role=User.Role.MANAGER,
            email="manager1@test.com",
            department=self.dept,
        )
        self.employee = User.objects.create_user(
            username="employee1",
            password="Pass12345!",
            role=User.Role.EMPLOYEE,
            email="employee1@test.com",
            department=self.dept,
        )

        self.refresh_url = "/api/auth/refresh/"
        self.verify_url = "/api/auth/verify/"
        self.me_url = "/api/auth/me/"
        self.users_url = "/api/admin/users/"

    def test_login_returns_tokens_and_user(self):
        res = self.login("manager1")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertIn("access", res.data)
        self.assertIn("refresh", res.data)
        self.assertEqual(res.data["user"]["role"], User.Role.MANAGER)
        self.assertEqual(res.data["user"]["department"], self.dept.id)

    def test_inactive_user_cannot_login(self):
        self.employee.status = User.Status.INACTIVE
        self.employee.save()
        res = self.login("employee1")
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_auth(self):
        res = self.client.get(self.me_url)
        self.assertEqual(res.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_returns_current_user_with_role_permissions(self):
        self.auth_as("employee1")
        res = self.client.get(self.me_url)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["username"], "employee1")
        self.assertEqual(res.data["department"]["code"], "IT")
        self.assertIn("attendance.view_attendance", res.data["permissions"])
        self.assertNotIn("audit.view_auditlog", res.data["permissions"])

    def test_refresh_and_verify(self):
        login_res = self.login("employee1")
        res = self.client.post(self.refresh_url, {"refresh": login_res.data["refresh"]}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertIn("access", res.data)

        res = self.client.post(self.verify_url, {"token": res.data["access"]}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)

    def test_admin_can_list_users(self):
        self.auth_as("admin1")
        res = self.client.get(self.users_url)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(len(self.results(res)), 3)

    def test_manager_cannot_list_users(self):
        self.auth_as("manager1")
        res = self.client.get(self.users_url)
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

    def test_employee_cannot_list_users(self):
        self.auth_as("employee1")
        res = self.client.get(self.users_url)
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)


class RoleGroupTests(APITestCase):
    def test_user_is_synced_into_role_group(self):
        user = User.objects.create_user(username="u1", password="Pass12345!", role=User.Role.EMPLOYEE)
        self.assertEqual(list(user.groups.values_list("name", flat=True)), ["Employee"])

        user.role = User.Role.MANAGER
        user.save()
        self.assertEqual(list(user.groups.values_list("name", flat=True)), ["Manager"])

    def test_setup_role_groups_is_idempotent(self):
        first = setup_role_groups()
        second = setup_role_groups()
        self.assertEqual(first, second)
        self.assertEqual(Group.objects.filter(name__in=[r.label for r in User.Role]).count(), len(User.Role))

    def test_office_location_write_is_super_admin_only(self):
        setup_role_groups()
        admin_perms = set(Group.objects.get(name="Admin").permissions.values_list("codename", flat=True))
        super_perms = set(Group.objects.get(name="Super Admin").permissions.values_list("codename", flat=True))
        self.assertIn("view_officelocation", admin_perms)
        self.assertNotIn("change_officelocation", admin_perms)
        self.assertIn("change_officelocation", super_perms)

    def test_blank_optional_unique_fields_are_stored_as_null(self):
        first = User.objects.create_user(username="u1", password="Pass12345!")
        second = User.objects.create_user(username="u2", password="Pass12345!", email="", nip="", phone="")
        for user in (first, second):
            user.refresh_from_db()
            self.assertIsNone(user.email)
            self.assertIsNone(user.nip)
            self.assertIsNone(user.phone)


class UserAdminAPITests(AuthTestMixin, APITestCase):
    def setUp(self):
        self.dept = Department.objects.create(code="HR", name="Human Resources")
        self.closed_dept = Department.objects.create(code="OLD", name="Closed", is_active=False)
        self.super_admin = User.objects.create_user(
            username="root", password="Pass12345!", role=User.Role.SUPER_ADMIN, email="root@test.com"
        )
        self.admin = User.objects.create_user(
            username="admin1", password="Pass12345!", role=User.Role.ADMIN, email="admin1@test.com"
        )
        self.employee = User.objects.create_user(
            username="employee1",
            password="Pass12345!",
            role=User.Role.EMPLOYEE,
            email="employee1@test.com",
            first_name="Budi",
            nip="198001012010011001",
            department=self.dept,
        )
        self.users_url = "/api/admin/users/"

    def detail_url(self, user):
        return f"{self.users_url}{user.id}/"

    def test_filter_and_search_users(self):
        self.auth_as("admin1")
        res = self.client.get(self.users_url, {"role": User.Role.EMPLOYEE})
        self.assertEqual([u["username"] for u in self.results(res)], ["employee1"])

        res = self.client.get(self.users_url, {"search": "budi"})
        self.assertEqual([u["username"] for u in self.results(res)], ["employee1"])

        res = self.client.get(self.users_url, {"search": "1980010120"})
        self.assertEqual(len(self.results(res)), 1)

    def test_create_user_hashes_password_and_audits(self):
        self.auth_as("admin1")
        payload = {
            "username": "new1",
            "email": "new1@test.com",
            "password": "Secret123!",
            "role": User.Role.EMPLOYEE,
            "department": self.dept.id,
            "phone": "081234567890",
        }
        res = self.client.post(self.users_url, payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertNotIn("password", res.data)

        user = User.objects.get(username="new1")
        self.assertTrue(user.check_password("Secret123!"))
        self.assertTrue(
            AuditLog.objects.filter(action="CREATE", table_name="users", record_id=str(user.id)).exists()
        )

    def test_create_user_requires_password(self):
        self.auth_as("admin1")
        res = self.client.post(self.users_url, {"username": "new2", "email": "new2@test.com"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("password", res.data)

    def test_create_user_validates_formats(self):
        self.auth_as("admin1")
        payload = {"username": "new3", "password": "Secret123!", "nip": "123", "phone": "12345"}
        res = self.client.post(self.users_url, payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("nip", res.data)
        self.assertIn("phone", res.data)

    def test_create_user_rejects_duplicate_email(self):
        self.auth_as("admin1")
        payload = {"username": "new4", "email": "employee1@test.com", "password": "Secret123!"}
        res = self.client.post(self.users_url, payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_user_rejects_inactive_department(self):
        self.auth_as("admin1")
        payload = {"username": "new5", "password": "Secret123!", "department": self.closed_dept.id}
        res = self.client.post(self.users_url, payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("department", res.data)

    def test_create_users_without_optional_unique_fields(self):
        self.auth_as("admin1")
        for username in ("new6", "new7"):
            payload = {"username": username, "password": "Secret123!", "email": "", "nip": "", "phone": ""}
            res = self.client.post(self.users_url, payload, format="json")
            self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.filter(username__in=["new6", "new7"], nip__isnull=True).count(), 2)

    def test_malformed_department_filter_returns_400(self):
        self.auth_as("admin1")
        res = self.client.get(self.users_url, {"department": "abc"})
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("department", res.data)

    def test_admin_cannot_create_super_admin(self):
        self.auth_as("admin1")
        payload = {"username": "boss", "password": "Secret123!", "role": User.Role.SUPER_ADMIN}
        res = self.client.post(self.users_url, payload, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_cannot_change_own_role(self):
        self.auth_as("admin1")
        res = self.client.patch(self.detail_url(self.admin), {"role": User.Role.EMPLOYEE}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("role", res.data)

    def test_update_user_records_old_and_new_values(self):
        self.auth_as("admin1")
        res = self.client.patch(self.detail_url(self.employee), {"role": User.Role.SUPERVISOR}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)

        log = AuditLog.objects.get(action="UPDATE", table_name="users", record_id=str(self.employee.id))
        self.assertEqual(log.old_values["role"], User.Role.EMPLOYEE)
        self.assertEqual(log.new_values["role"], User.Role.SUPERVISOR)
        self.assertEqual(log.user, self.admin)

    def test_delete_is_soft_by_default(self):
        self.auth_as("admin1")
        res = self.client.delete(self.detail_url(self.employee))
        self.assertEqual(res.status_code, status.HTTP_200_OK)

        self.employee.refresh_from_db()
        self.assertEqual(self.employee.status, User.Status.TERMINATED)
        self.assertFalse(self.employee.is_active)

    def test_hard_delete(self):
        self.auth_as("admin1")
        res = self.client.delete(f"{self.detail_url(self.employee)}?hard=true")
        self.assertEqual(res.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(id=self.employee.id).exists())
        self.assertTrue(AuditLog.objects.filter(action="DELETE", record_id=str(self.employee.id)).exists())

    def test_cannot_delete_self(self):
        self.auth_as("admin1")
        res = self.client.delete(self.detail_url(self.admin))
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_super_admin_deletes_super_admin(self):
        self.auth_as("admin1")
        res = self.client.delete(self.detail_url(self.super_admin))
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        other = User.objects.create_user(username="root2", password="Pass12345!", role=User.Role.SUPER_ADMIN)
        self.auth_as("root")
        res = self.client.delete(self.detail_url(other))
        self.assertEqual(res.status_code, status.HTTP_200_OK)

    def test_toggle_status(self):
        self.auth_as("admin1")
        url = f"{self.detail_url(self.employee)}toggle-status/"
        res = self.client.post(url)
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["status"], User.Status.INACTIVE)

        res = self.client.post(url)
        self.assertEqual(res.data["status"], User.Status.ACTIVE)

    def test_cannot_toggle_own_status(self):
        self.auth_as("admin1")
        res = self.client.post(f"{self.detail_url(self.admin)}toggle-status/")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reset_password_generates_temporary_password(self):
        self.auth_as("admin1")
        res = self.client.post(f"{self.detail_url(self.employee)}reset-password/", {}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        temp = res.data["temporary_password"]
        self.assertEqual(len(temp), 12)

        self.employee.refresh_from_db()
        self.assertTrue(self.employee.check_password(temp))

    def test_reset_password_with_custom_password(self):
        self.auth_as("admin1")
        url = f"{self.detail_url(self.employee)}reset-password/"
        res = self.client.post(url, {"password": "short"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.post(url, {"password": "Custom1234"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertNotIn("temporary_password", res.data)
        self.employee.refresh_from_db()
        self.assertTrue(self.employee.check_password("Custom1234"))

    def test_roles_and_departments(self):
        self.auth_as("admin1")
        res = self.client.get("/api/admin/roles-departments/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(len(res.data["roles"]), len(User.Role))
        self.assertEqual([d["code"] for d in res.data["departments"]], ["HR"])


class DepartmentAPITests(AuthTestMixin, APITestCase):
    def setUp(self):
        self.it = Department.objects.create(code="IT", name="Information Technology")
        self.fin = Department.objects.create(code="FIN", name="Finance")
        self.admin = User.objects.create_user(
            username="admin1", password="Pass12345!", role=User.Role.HR_ADMIN, email="admin1@test.com"
        )
        self.manager = User.objects.create_user(
            username="manager1", password="Pass12345!", role=User.Role.MANAGER, department=self.it
        )
        self.list_url = "/api/departments/"

    def test_admin_sees_all_departments(self):
        self.auth_as("admin1")
        res = self.client.get(self.list_url)
        self.assertEqual(len(self.results(res)), 2)

    def test_member_sees_only_own_department(self):
        self.auth_as("manager1")
        res = self.client.get(self.list_url)
        self.assertEqual([d["code"] for d in self.results(res)], ["IT"])

        res = self.client.get(f"{self.list_url}{self.fin.id}/")
        self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)

    def test_only_admin_creates_department(self):
        self.auth_as("manager1")
        res = self.client.post(self.list_url, {"code": "ops", "name": "Operations"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)

        self.auth_as("admin1")
        res = self.client.post(self.list_url, {"code": "ops", "name": "Operations"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_201_CREATED)
        self.assertEqual(res.data["code"], "OPS")

    def test_head_must_be_member(self):
        self.auth_as("admin1")
        res = self.client.patch(f"{self.list_url}{self.fin.id}/", {"head": self.manager.id}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.patch(f"{self.list_url}{self.it.id}/", {"head": self.manager.id}, format="json")
        self.assertEqual(res.status_code, status.HTTP_200_OK)

    def test_delete_department_with_members_returns_400(self):
        self.auth_as("admin1")
        res = self.client.delete(f"{self.list_url}{self.it.id}/")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)

        res = self.client.delete(f"{self.list_url}{self.fin.id}/")
        self.assertEqual(res.status_code, status.HTTP_204_NO_CONTENT)
