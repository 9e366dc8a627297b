import logging

from django.db.models import Q
from rest_framework import status
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.generics import (
    GenericAPIView,
    ListAPIView,
    ListCreateAPIView,
    RetrieveUpdateAPIView,
    RetrieveUpdateDestroyAPIView,
)
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsSuperAdmin
from audit.services import log_action, snapshot
from hrms.helpers import date_param, int_param

from . import services
from .geo import validate_against_office, validate_location
from .models import Attendance, OfficeLocation
from .serializers import (
    AttendanceSerializer,
    CheckInSerializer,
    CheckOutSerializer,
    OfficeLocationSerializer,
    OfficeLocationSummarySerializer,
    ValidateLocationSerializer,
)

logger = logging.getLogger(__name__)

OFFICE_AUDIT_FIELDS = ["name", "code", "address", "latitude", "longitude", "radius_meters", "is_active"]


class CheckInView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CheckInSerializer

    def post(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        record, validation = services.check_in(
            request.user,
            data["latitude"],
            data["longitude"],
            address=data["address"],
            office_location_id=data["office_location_id"],
            request=request,
        )
        return Response(
            {
                "detail": "Checked in.",
                "attendance": AttendanceSerializer(record, context=self.get_serializer_context()).data,
                "location_validation": validation.as_dict(),
            },
            status=status.HTTP_201_CREATED,
        )


class CheckOutView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = CheckOutSerializer

    def post(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        record, validation = services.check_out(
            request.user,
            data["latitude"],
            data["longitude"],
            address=data["address"],
            request=request,
        )
        return Response(
            {
                "detail": "Checked out.",
                "attendance": AttendanceSerializer(record, context=self.get_serializer_context()).data,
                "working_hours": services.format_working_hours(record.working_minutes),
                "location_validation": validation.as_dict() if validation is not None else None,
            },
            status=status.HTTP_200_OK,
        )


class ValidateLocationView(GenericAPIView):
    """Preview of the geofence check; nothing is recorded."""

    permission_classes = [IsAuthenticated]
    serializer_class = ValidateLocationSerializer

    def post(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        tolerance = data.get("tolerance")
        if tolerance is None:
            tolerance = services.tolerance_setting("ATTENDANCE_CHECK_IN_TOLERANCE_METERS")

        if data["office_location_id"] is not None:
            office = OfficeLocation.objects.filter(pk=data["office_location_id"]).first()
            validation = validate_against_office(data["latitude"], data["longitude"], office, tolerance)
        else:
            validation = validate_location(data["latitude"], data["longitude"], tolerance)
        return Response(validation.as_dict())


class ActiveOfficeLocationListView(ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = OfficeLocationSummarySerializer
    queryset = OfficeLocation.objects.filter(is_active=True).order_by("name")
    pagination_class = None


class AttendanceScopedMixin:
    """
    Admin roles see every record, managers and supervisors their department,
    everybody else only their own.
    """
    queryset = Attendance.objects.select_related("user", "user__department", "office_location")

    def get_queryset(self):
        user = self.request.user
        qs = super().get_queryset()

        if user.is_admin_role:
            pass
        elif user.is_department_approver and user.department_id:
            qs = qs.filter(Q(user__department_id=user.department_id) | Q(user=user))
        else:
            qs = qs.filter(user=user)

        params = self.request.query_params
        user_id = int_param(params, "user")
        if user_id is not None:
            qs = qs.filter(user_id=user_id)
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        date_from = date_param(params, "date_from")
        if date_from is not None:
            qs = qs.filter(attendance_date__gte=date_from)
        date_to = date_param(params, "date_to")
        if date_to is not None:
            qs = qs.filter(attendance_date__lte=date_to)
        return qs

    def _require_admin_or_manager(self, request):
        if request.user.is_admin_role or request.user.is_department_approver:
            return
        raise PermissionDenied("Employees cannot create or modify attendance records.")


class AttendanceListCreateView(AttendanceScopedMixin, ListCreateAPIView):
    serializer_class = AttendanceSerializer
    permission_classes = [IsAuthenticated]

    def create(self, request, *args, **kwargs):
        self._require_admin_or_manager(request)
        return super().create(request, *args, **kwargs)

    def perform_create(self, serializer):
        record = serializer.save()
        log_action(
            self.request,
            "CREATE",
            "attendance",
            record.pk,
            new_values=snapshot(record, ["user_id", "attendance_date", "status", "notes"]),
        )


class AttendanceDetailUpdateView(AttendanceScopedMixin, RetrieveUpdateAPIView):
    serializer_class = AttendanceSerializer
    permission_classes = [IsAuthenticated]

    audit_fields = ["status", "notes", "check_in_time", "check_out_time", "working_minutes", "is_valid_location"]

    def update(self, request, *args, **kwargs):
        self._require_admin_or_manager(request)
        return super().update(request, *args, **kwargs)

    def perform_update(self, serializer):
        old_values = snapshot(serializer.instance, self.audit_fields)
        record = serializer.save()
        log_action(
            self.request,
            "UPDATE",
            "attendance",
            record.pk,
            old_values=old_values,
            new_values=snapshot(record, self.audit_fields),
        )


class OfficeLocationAdminListCreateView(ListCreateAPIView):
    permission_classes = [IsSuperAdmin]
    serializer_class = OfficeLocationSerializer
    queryset = OfficeLocation.objects.order_by("name")

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params

        if params.get("name"):
            qs = qs.filter(name__icontains=params["name"])
        if params.get("code"):
            qs = qs.filter(code__icontains=params["code"])
        if params.get("is_active") in ("true", "false"):
            qs = qs.filter(is_active=params["is_active"] == "true")

        search = (params.get("search") or "").strip()
        if search:
            qs = qs.filter(
                Q(name__icontains=search) | Q(code__icontains=search) | Q(address__icontains=search)
            )
        return qs

    def perform_create(self, serializer):
        office = serializer.save()
        logger.info("Office location %s created by %s", office.code, self.request.user.pk)
        log_action(
            self.request, "CREATE", "office_locations", office.pk, new_values=snapshot(office, OFFICE_AUDIT_FIELDS)
        )


class OfficeLocationAdminDetailView(RetrieveUpdateDestroyAPIView):
    permission_classes = [IsSuperAdmin]
    serializer_class = OfficeLocationSerializer
    queryset = OfficeLocation.objects.all()

    def perform_update(self, serializer):
        old_values = snapshot(serializer.instance, OFFICE_AUDIT_FIELDS)
        office = serializer.save()
        log_action(
            self.request,
            "UPDATE",
            "office_locations",
            office.pk,
            old_values=old_values,
            new_values=snapshot(office, OFFICE_AUDIT_FIELDS),
        )

    def destroy(self, request, *args, **kwargs):
        office = self.get_object()

        if office.is_active and not OfficeLocation.objects.filter(is_active=True).exclude(pk=office.pk).exists():
            raise ValidationError({"detail": "Cannot delete the last active office location."})

        office_id = office.pk
        old_values = snapshot(office, OFFICE_AUDIT_FIELDS)
        office.delete()
        log_action(request, "DELETE", "office_locations", office_id, old_values=old_values)
        logger.info("Office location %s deleted by %s", old_values["code"], request.user.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)
