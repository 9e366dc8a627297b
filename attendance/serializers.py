import re

from django.db import IntegrityError, transaction
from rest_framework import serializers

from .geo import check_tolerance
from .models import Attendance, OfficeLocation
from .services import format_working_hours, working_minutes_between

OFFICE_CODE_RE = re.compile(r"^[A-Z0-9_-]+$")


class CoordinateSerializer(serializers.Serializer):
    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    address = serializers.CharField(required=False, allow_blank=True, max_length=500, default="")


class CheckInSerializer(CoordinateSerializer):
    office_location_id = serializers.IntegerField(required=False, allow_null=True, default=None)


class CheckOutSerializer(serializers.Serializer):
    latitude = serializers.FloatField(required=False, allow_null=True, min_value=-90, max_value=90, default=None)
    longitude = serializers.FloatField(required=False, allow_null=True, min_value=-180, max_value=180, default=None)
    address = serializers.CharField(required=False, allow_blank=True, max_length=500, default="")

    def validate(self, attrs):
        if (attrs["latitude"] is None) != (attrs["longitude"] is None):
            raise serializers.ValidationError("Latitude and longitude must be provided together.")
        return attrs


class ValidateLocationSerializer(CheckInSerializer):
    tolerance = serializers.IntegerField(required=False)

    def validate_tolerance(self, value):
        try:
            return check_tolerance(value)
        except ValueError as exc:
            raise serializers.ValidationError(str(exc))


class OfficeLocationSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = OfficeLocation
        fields = ["id", "name", "code", "address", "latitude", "longitude", "radius_meters"]


class OfficeLocationSerializer(serializers.ModelSerializer):
    code = serializers.CharField(max_length=20)
    attendance_count = serializers.IntegerField(source="attendance_records.count", read_only=True)

    class Meta:
        model = OfficeLocation
        fields = [
            "id",
            "name",
            "code",
            "address",
            "latitude",
            "longitude",
            "radius_meters",
            "is_active",
            "attendance_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def _others(self):
        qs = OfficeLocation.objects.all()
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        return qs

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name is required.")
        if self._others().filter(name__iexact=value).exists():
            raise serializers.ValidationError("Office location name already exists.")
        return value

    def validate_code(self, value):
        value = value.strip().upper()
        if not OFFICE_CODE_RE.match(value):
            raise serializers.ValidationError(
                "Code may only contain uppercase letters, numbers, underscores and hyphens."
            )
        if self._others().filter(code=value).exists():
            raise serializers.ValidationError("Office location code already exists.")
        return value

    def validate_address(self, value):
        return value.strip()

    def _save(self, save, *args):
        try:
            with transaction.atomic():
                return save(*args)
        except IntegrityError:
            raise serializers.ValidationError({"non_field_errors": ["Office location name or code already exists."]})

    def create(self, validated_data):
        return self._save(super().create, validated_data)

    def update(self, instance, validated_data):
        return self._save(super().update, instance, validated_data)


class AttendanceSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source="user.username", read_only=True)
    office_location_name = serializers.CharField(source="office_location.name", read_only=True, default=None)
    working_hours = serializers.SerializerMethodField()

    class Meta:
        model = Attendance
        fields = [
            "id",
            "user",
            "username",
            "office_location",
            "office_location_name",
            "attendance_date",
            "check_in_time",
            "check_in_latitude",
            "check_in_longitude",
            "check_in_address",
            "check_out_time",
            "check_out_latitude",
            "check_out_longitude",
            "check_out_address",
            "status",
            "notes",
            "working_minutes",
            "working_hours",
            "is_valid_location",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "working_minutes", "created_at", "updated_at"]
        # one-per-day is reported by create() below
        validators = []

    def get_working_hours(self, obj):
        return format_working_hours(obj.working_minutes)

    def validate(self, attrs):
        """
        Manual records and corrections:
        - Managers and supervisors only within their own department.
        - check-out cannot precede check-in.
        """
        request = self.context["request"]
        actor = request.user

        target = attrs.get("user") or getattr(self.instance, "user", None)
        if self.instance is not None and "user" in attrs and attrs["user"] != self.instance.user:
            raise serializers.ValidationError({"user": "Attendance owner cannot be changed."})

        if target is not None and not actor.is_admin_role:
            if not actor.department_id or target.department_id != actor.department_id:
                raise serializers.ValidationError(
                    "Managers can only manage attendance within their department."
                )

        check_in = attrs.get("check_in_time", getattr(self.instance, "check_in_time", None))
        check_out = attrs.get("check_out_time", getattr(self.instance, "check_out_time", None))
        if check_in and check_out and check_out < check_in:
            raise serializers.ValidationError({"check_out_time": "Check-out cannot be before check-in."})

        attrs["working_minutes"] = working_minutes_between(check_in, check_out)
        return attrs

    def create(self, validated_data):
        try:
            with transaction.atomic():
                return super().create(validated_data)
        except IntegrityError:
            raise serializers.ValidationError(
                {"attendance_date": "Attendance already exists for this user on this date."}
            )

    def update(self, instance, validated_data):
        try:
            with transaction.atomic():
                return super().update(instance, validated_data)
        except IntegrityError:
            raise serializers.ValidationError(
                {"attendance_date": "Attendance already exists for this user on this date."}
            )

