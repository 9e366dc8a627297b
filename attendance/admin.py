from django.contrib import admin

from .models import Attendance, OfficeLocation


@admin.register(OfficeLocation)
class OfficeLocationAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "radius_meters", "is_active")
    list_filter = ("is_active",)
    search_fields = ("code", "name", "address")


@admin.register(Attendance)
class AttendanceAdmin(admin.ModelAdmin):
    list_display = ("user", "attendance_date", "status", "check_in_time", "check_out_time", "is_valid_location")
    list_filter = ("status", "is_valid_location", "attendance_date")
    search_fields = ("user__username",)
    date_hierarchy = "attendance_date"
