from rest_framework import serializers

from attendance.models import Attendance
from attendance.services import format_working_hours


class AttendanceReportRowSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source="user.username", read_only=True)
    name = serializers.CharField(source="user.display_name", read_only=True)
    department = serializers.CharField(source="user.department.name", read_only=True, default=None)
    office_location = serializers.CharField(source="office_location.name", read_only=True, default=None)
    working_hours = serializers.SerializerMethodField()

    class Meta:
        model = Attendance
        fields = [
            "id",
            "user",
            "username",
            "name",
            "department",
            "attendance_date",
            "check_in_time",
            "check_out_time",
            "status",
            "working_minutes",
            "working_hours",
            "is_valid_location",
            "office_location",
        ]

    def get_working_hours(self, obj):
        return format_working_hours(obj.working_minutes)
