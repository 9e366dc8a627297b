from django.conf import settings
from rest_framework import serializers

from hrms.helpers import count_work_days

from .models import Approval, LeaveRequest, PermissionRequest, RequestStatus, WorkLetter
from .workflow import leave_days_taken, urgency as urgency_level

ACTIVE_STATUSES = [RequestStatus.PENDING, RequestStatus.APPROVED]

WORKFLOW_FIELDS = [
    "id",
    "user",
    "user_name",
    "status",
    "current_approver",
    "current_approver_name",
    "attachment_file",
    "rejection_reason",
    "cancellation_reason",
    "submitted_at",
    "approved_at",
    "rejected_at",
    "cancelled_at",
    "created_at",
    "updated_at",
]


class ApprovalSerializer(serializers.ModelSerializer):
    approver_name = serializers.CharField(source="approver.display_name", read_only=True)

    class Meta:
        model = Approval
        fields = ["id", "approver", "approver_name", "step_order", "status", "comments", "approved_at", "rejected_at"]


class EmployeeRequestSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source="user.display_name", read_only=True)
    current_approver_name = serializers.CharField(
        source="current_approver.display_name", read_only=True, default=None
    )
    approvals = serializers.SerializerMethodField()

    class Meta:
        read_only_fields = [f for f in WORKFLOW_FIELDS if f != "attachment_file"]

    def get_approvals(self, obj):
        qs = Approval.objects.filter(document_type=obj.document_type, document_id=obj.pk).select_related("approver")
        return ApprovalSerializer(qs, many=True).data

    @property
    def requester(self):
        return self.context["request"].user


class LeaveRequestSerializer(EmployeeRequestSerializer):
    class Meta(EmployeeRequestSerializer.Meta):
        model = LeaveRequest
        fields = WORKFLOW_FIELDS + [
            "leave_type",
            "start_date",
            "end_date",
            "total_days",
            "reason",
            "description",
            "approvals",
        ]
        read_only_fields = EmployeeRequestSerializer.Meta.read_only_fields + ["total_days"]

    def validate(self, attrs):
        start = attrs["start_date"]
        end = attrs["end_date"]
        leave_type = attrs["leave_type"]
        user = self.requester

        if end < start:
            raise serializers.ValidationError({"end_date": "End date cannot be before start date."})

        total_days = count_work_days(start, end)
        if total_days < 1:
            raise serializers.ValidationError({"end_date": "Leave period must include at least one working day."})

        overlapping = LeaveRequest.objects.filter(
            user=user,
            status__in=ACTIVE_STATUSES,
            start_date__lte=end,
            end_date__gte=start,
        )
        if overlapping.exists():
            raise serializers.ValidationError("Leave dates overlap with an existing pending or approved leave.")

        allowance = settings.LEAVE_ALLOWANCES.get(leave_type)
        if allowance is not None:
            approved, pending = leave_days_taken(user, leave_type, start.year)
            remaining = allowance - approved - pending
            if total_days > remaining:
                raise serializers.ValidationError({
                    "leave_type": (
                        f"Insufficient {leave_type} leave balance: {max(remaining, 0)} day(s) remaining, "
                        f"{total_days} requested."
                    )
                })

        attrs["total_days"] = total_days
        return attrs


class PermissionRequestSerializer(EmployeeRequestSerializer):
    class Meta(EmployeeRequestSerializer.Meta):
        model = PermissionRequest
        fields = WORKFLOW_FIELDS + [
            "permission_type",
            "permission_date",
            "start_time",
            "end_time",
            "reason",
            "description",
            "approvals",
        ]

    def validate(self, attrs):
        start = attrs["start_time"]
        end = attrs["end_time"]
        if end <= start:
            raise serializers.ValidationError({"end_time": "End time must be after start time."})

        overlapping = PermissionRequest.objects.filter(
            user=self.requester,
            status__in=ACTIVE_STATUSES,
            permission_date=attrs["permission_date"],
            start_time__lt=end,
            end_time__gt=start,
        )
        if overlapping.exists():
            raise serializers.ValidationError("Permission time overlaps with an existing pending or approved permission.")
        return attrs


class WorkLetterSerializer(EmployeeRequestSerializer):
    class Meta(EmployeeRequestSerializer.Meta):
        model = WorkLetter
        fields = WORKFLOW_FIELDS + [
            "letter_type",
            "letter_number",
            "subject",
            "content",
            "effective_date",
            "expiry_date",
            "approvals",
        ]

    def validate(self, attrs):
        effective = attrs["effective_date"]
        expiry = attrs.get("expiry_date")
        if expiry is not None and expiry < effective:
            raise serializers.ValidationError({"expiry_date": "Expiry date cannot be before effective date."})
        return attrs


class ApproveSerializer(serializers.Serializer):
    comments = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=2000)

    def validate_reason(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Rejection reason is required.")
        return value


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)


class PendingDocumentSerializer(serializers.Serializer):
    """Read-only row of the approver inbox."""

    document_type = serializers.CharField()
    id = serializers.IntegerField()
    user = serializers.IntegerField(source="user_id")
    user_name = serializers.CharField(source="user.display_name")
    department = serializers.CharField(source="user.department.name", default=None)
    summary = serializers.CharField()
    submitted_at = serializers.DateTimeField()
    urgency = serializers.SerializerMethodField()

    def get_urgency(self, obj):
        return urgency_level(obj.submitted_at, self.context.get("now"))
