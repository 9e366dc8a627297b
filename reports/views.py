import logging

from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.renderers import JSONRenderer
from rest_framework.response import Response

from accounts.permissions import IsApprover
from hrms.helpers import bool_param, date_param, int_param

from . import services
from .renderers import CSVRenderer
from .serializers import AttendanceReportRowSerializer

logger = logging.getLogger(__name__)


class DashboardView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        params = request.query_params
        data = services.dashboard(
            request.user,
            include_team=bool_param(params, "include_team"),
            include_company=bool_param(params, "include_company"),
        )
        return Response(data)


class AttendanceReportView(GenericAPIView):
    """
    Attendance rows for a date range, as JSON or as a CSV download
    (``?format=csv``). Defaults to the current month up to today.
    """
    permission_classes = [IsApprover]
    renderer_classes = [JSONRenderer, CSVRenderer]
    serializer_class = AttendanceReportRowSerializer
    csv_header = [
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

    def handle_exception(self, exc):
        # errors of a CSV download still go out as JSON
        renderer = getattr(self.request, "accepted_renderer", None)
        if isinstance(renderer, CSVRenderer):
            json_renderer = JSONRenderer()
            self.request.accepted_renderer = json_renderer
            self.request.accepted_media_type = json_renderer.media_type
        return super().handle_exception(exc)

    def get(self, request, *args, **kwargs):
        user = request.user
        params = request.query_params
        today = timezone.localdate()
        start = date_param(params, "start_date", today.replace(day=1))
        end = date_param(params, "end_date", today)
        if end < start:
            raise ValidationError({"end_date": "End date cannot be before start date."})

        qs = services.report_queryset(
            user,
            start,
            end,
            department_id=int_param(params, "department"),
            user_id=int_param(params, "user"),
        )
        rows = self.get_serializer(qs, many=True).data

        if request.accepted_renderer.format == "csv":
            logger.info("Attendance report %s..%s exported as CSV by user %s", start, end, user.pk)
            response = Response(rows)
            response["Content-Disposition"] = f'attachment; filename="attendance_{start}_{end}.csv"'
            return response

        return Response({"start_date": start, "end_date": end, "count": len(rows), "results": rows})
