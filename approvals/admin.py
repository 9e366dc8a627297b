from django.contrib import admin

from .models import Approval, LeaveRequest, PermissionRequest, WorkLetter


@admin.register(LeaveRequest)
class LeaveRequestAdmin(admin.ModelAdmin):
    list_display = ("user", "leave_type", "start_date", "end_date", "total_days", "status")
    list_filter = ("status", "leave_type")
    search_fields = ("user__username", "reason")


@admin.register(PermissionRequest)
class PermissionRequestAdmin(admin.ModelAdmin):
    list_display = ("user", "permission_type", "permission_date", "start_time", "end_time", "status")
    list_filter = ("status", "permission_type")
    search_fields = ("user__username", "reason")


@admin.register(WorkLetter)
class WorkLetterAdmin(admin.ModelAdmin):
    list_display = ("user", "letter_type", "subject", "effective_date", "status")
    list_filter = ("status", "letter_type")
    search_fields = ("user__username", "subject", "letter_number")


@admin.register(Approval)
class ApprovalAdmin(admin.ModelAdmin):
    list_display = ("document_type", "document_id", "approver", "step_order", "status")
    list_filter = ("document_type", "status")
