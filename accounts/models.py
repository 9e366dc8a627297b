from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.db import models

nip_validator = RegexValidator(r"^\d{18}$", "NIP must be exactly 18 digits.")
phone_validator = RegexValidator(r"^(\+62|62|0)[0-9]{9,12}$", "Invalid phone number format.")


class User(AbstractUser):
    class Role(models.TextChoices):
        SUPER_ADMIN = "SUPER_ADMIN", "Super Admin"
        ADMIN = "ADMIN", "Admin"
        HR_ADMIN = "HR_ADMIN", "HR Admin"
        MANAGER = "MANAGER", "Manager"
        SUPERVISOR = "SUPERVISOR", "Supervisor"
        EMPLOYEE = "EMPLOYEE", "Employee"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        TERMINATED = "terminated", "Terminated"

    class Gender(models.TextChoices):
        MALE = "male", "Male"
        FEMALE = "female", "Female"

    # roles allowed to manage users, see company-wide data and decide any request
    ADMIN_ROLES = (Role.SUPER_ADMIN, Role.ADMIN, Role.HR_ADMIN)
    # roles allowed to decide requests of their own department
    DEPARTMENT_APPROVER_ROLES = (Role.MANAGER, Role.SUPERVISOR)
    NULLABLE_UNIQUE_FIELDS = ("email", "nip", "phone")

    role = models.CharField(max_length=20, choices=Role.choices, default=Role.EMPLOYEE)
    email = models.EmailField(unique=True, null=True, blank=True)

    nip = models.CharField(max_length=18, unique=True, null=True, blank=True, validators=[nip_validator])
    phone = models.CharField(max_length=20, unique=True, null=True, blank=True, validators=[phone_validator])
    birth_date = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=Gender.choices, blank=True)
    address = models.TextField(blank=True)
    hire_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)

    department = models.ForeignKey(
        "accounts.Department",
        on_delete=models.PROTECT,  # prevent deleting dept with members
        null=True,
        blank=True,
        related_name="members",
    )

    class Meta:
        indexes = [
            models.Index(fields=["department", "status"], name="user_department_status_idx"),
        ]

    def save(self, *args, **kwargs):
        # login is only possible for active accounts
        self.is_active = self.status == self.Status.ACTIVE
        # optional unique fields: blank is stored as NULL so it never collides
        for field in self.NULLABLE_UNIQUE_FIELDS:
            if not getattr(self, field):
                setattr(self, field, None)
        super().save(*args, **kwargs)

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    @property
    def is_admin_role(self):
        return self.is_superuser or self.role in self.ADMIN_ROLES

    @property
    def is_department_approver(self):
        return self.role in self.DEPARTMENT_APPROVER_ROLES

    @property
    def can_approve(self):
        return self.is_admin_role or self.is_department_approver

    def __str__(self):
        return self.display_name


class Department(models.Model):
    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)

    parent = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="children",
    )

    # Head is the default approver for requests of the department members.
    head = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="headed_department",
    )

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name
