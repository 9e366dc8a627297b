from django.conf import settings
from django.db import models
from django.utils import timezone


class RequestStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    CANCELLED = "cancelled", "Cancelled"


class DocumentType(models.TextChoices):
    LEAVE = "leave", "Leave request"
    PERMISSION = "permission", "Permission request"
    WORK_LETTER = "work_letter", "Work letter"


class EmployeeRequest(models.Model):
    """Fields and status lifecycle shared by every request document."""

    document_type = None
    # name of the per-model category field, used for filtering
    type_field = None

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="%(class)ss",
    )
    status = models.CharField(max_length=20, choices=RequestStatus.choices, default=RequestStatus.PENDING)
    current_approver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_%(class)ss",
    )
    attachment_file = models.CharField(max_length=500, blank=True)
    rejection_reason = models.TextField(blank=True)
    cancellation_reason = models.TextField(blank=True)

    submitted_at = models.DateTimeField(default=timezone.now)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-submitted_at", "-id"]
        indexes = [
            models.Index(fields=["status"], name="%(class)s_status_idx"),
        ]

    def get_document_type_label(self):
        return DocumentType(self.document_type).label


class LeaveRequest(EmployeeRequest):
    class LeaveType(models.TextChoices):
        ANNUAL = "annual", "Annual"
        SICK = "sick", "Sick"
        MATERNITY = "maternity", "Maternity"
        PATERNITY = "paternity", "Paternity"
        EMERGENCY = "emergency", "Emergency"
        UNPAID = "unpaid", "Unpaid"

    document_type = DocumentType.LEAVE
    type_field = "leave_type"

    leave_type = models.CharField(max_length=20, choices=LeaveType.choices)
    start_date = models.DateField()
    end_date = models.DateField()
    total_days = models.PositiveIntegerField()
    reason = models.TextField()
    description = models.TextField(blank=True)

    @property
    def summary(self):
        return f"{self.get_leave_type_display()} leave {self.start_date} to {self.end_date} ({self.total_days} days)"

    def __str__(self):
        return f"Leave #{self.pk} {self.user_id} {self.start_date}"


class PermissionRequest(EmployeeRequest):
    class PermissionType(models.TextChoices):
        PERSONAL = "personal", "Personal"
        MEDICAL = "medical", "Medical"
        FAMILY = "family", "Family"
        OFFICIAL = "official", "Official"
        OTHERS = "others", "Others"

    document_type = DocumentType.PERMISSION
    type_field = "permission_type"

    permission_type = models.CharField(max_length=20, choices=PermissionType.choices)
    permission_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    reason = models.TextField()
    description = models.TextField(blank=True)

    @property
    def summary(self):
        return (
            f"{self.get_permission_type_display()} permission on {self.permission_date} "
            f"{self.start_time:%H:%M}-{self.end_time:%H:%M}"
        )

    def __str__(self):
        return f"Permission #{self.pk} {self.user_id} {self.permission_date}"


class WorkLetter(EmployeeRequest):
    class LetterType(models.TextChoices):
        ASSIGNMENT = "assignment", "Assignment"
        TRAVEL = "travel", "Travel"
        TRAINING = "training", "Training"
        OFFICIAL = "official", "Official"
        OTHERS = "others", "Others"

    document_type = DocumentType.WORK_LETTER
    type_field = "letter_type"

    letter_type = models.CharField(max_length=20, choices=LetterType.choices)
    letter_number = models.CharField(max_length=100, blank=True)
    subject = models.CharField(max_length=255)
    content = models.TextField()
    effective_date = models.DateField()
    expiry_date = models.DateField(null=True, blank=True)

    @property
    def summary(self):
        return f"{self.get_letter_type_display()} letter: {self.subject}"

    def __str__(self):
        return f"Work letter #{self.pk} {self.subject}"


class Approval(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    document_type = models.CharField(max_length=20, choices=DocumentType.choices)
    document_id = models.PositiveBigIntegerField()
    approver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="approvals",
    )
    step_order = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    comments = models.TextField(blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["document_type", "document_id", "step_order"]
        indexes = [
            models.Index(fields=["document_type", "document_id"], name="approval_document_idx"),
            models.Index(fields=["approver", "status"], name="approval_approver_status_idx"),
        ]

    def __str__(self):
        return f"{self.document_type} #{self.document_id} step {self.step_order}: {self.status}"
