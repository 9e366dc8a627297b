from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.generics import GenericAPIView, ListCreateAPIView, RetrieveAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from hrms.helpers import int_param

from . import workflow
from .models import LeaveRequest, PermissionRequest, WorkLetter
from .serializers import (
    ApproveSerializer,
    CancelSerializer,
    LeaveRequestSerializer,
    PendingDocumentSerializer,
    PermissionRequestSerializer,
    RejectSerializer,
    WorkLetterSerializer,
)


class RequestScopedMixin:
    """
    Admin roles see every request. Managers and supervisors see their own,
    their department's and the ones assigned to them; everybody else their
    own and the assigned ones.
    """
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        qs = super().get_queryset().select_related("user", "user__department", "current_approver")

        if not user.is_admin_role:
            scope = Q(user=user) | Q(current_approver=user)
            if user.is_department_approver and user.department_id:
                scope |= Q(user__department_id=user.department_id)
            qs = qs.filter(scope)

        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        model = qs.model
        if params.get(model.type_field):
            qs = qs.filter(**{model.type_field: params[model.type_field]})
        user_id = int_param(params, "user")
        if user_id is not None:
            qs = qs.filter(user_id=user_id)
        return qs


class RequestListCreateView(RequestScopedMixin, ListCreateAPIView):
    def perform_create(self, serializer):
        workflow.submit(serializer, self.request)


class LeaveRequestListCreateView(RequestListCreateView):
    queryset = LeaveRequest.objects.all()
    serializer_class = LeaveRequestSerializer


class LeaveRequestDetailView(RequestScopedMixin, RetrieveAPIView):
    queryset = LeaveRequest.objects.all()
    serializer_class = LeaveRequestSerializer


class PermissionRequestListCreateView(RequestListCreateView):
    queryset = PermissionRequest.objects.all()
    serializer_class = PermissionRequestSerializer


class PermissionRequestDetailView(RequestScopedMixin, RetrieveAPIView):
    queryset = PermissionRequest.objects.all()
    serializer_class = PermissionRequestSerializer


class WorkLetterListCreateView(RequestListCreateView):
    queryset = WorkLetter.objects.all()
    serializer_class = WorkLetterSerializer


class WorkLetterDetailView(RequestScopedMixin, RetrieveAPIView):
    queryset = WorkLetter.objects.all()
    serializer_class = WorkLetterSerializer


SERIALIZER_BY_MODEL = {
    LeaveRequest: LeaveRequestSerializer,
    PermissionRequest: PermissionRequestSerializer,
    WorkLetter: WorkLetterSerializer,
}


class RequestActionView(RequestScopedMixin, GenericAPIView):
    """
    POST-only transition of a single request. The concrete model comes in
    through ``as_view(queryset=...)``.
    """

    def document_response(self, document):
        serializer_class = SERIALIZER_BY_MODEL[type(document)]
        return Response(serializer_class(document, context=self.get_serializer_context()).data)


class RequestApproveView(RequestActionView):
    serializer_class = ApproveSerializer

    def post(self, request, *args, **kwargs):
        document = self.get_object()
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        document = workflow.decide(
            document, request.user, approve=True, comments=ser.validated_data["comments"], request=request
        )
        return self.document_response(document)


class RequestRejectView(RequestActionView):
    serializer_class = RejectSerializer

    def post(self, request, *args, **kwargs):
        document = self.get_object()
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        document = workflow.decide(
            document, request.user, approve=False, comments=ser.validated_data["reason"], request=request
        )
        return self.document_response(document)


class RequestCancelView(RequestActionView):
    serializer_class = CancelSerializer

    def post(self, request, *args, **kwargs):
        document = self.get_object()
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        document = workflow.cancel(document, request.user, reason=ser.validated_data["reason"], request=request)
        return self.document_response(document)


class LeaveBalanceView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        raw_year = request.query_params.get("year")
        year = timezone.localdate().year
        if raw_year:
            try:
                year = int(raw_year)
            except ValueError:
                raise ValidationError({"year": "A valid year is required."})
        return Response({"year": year, "balances": workflow.leave_balances(request.user, year)})


class PendingApprovalListView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PendingDocumentSerializer

    def get(self, request, *args, **kwargs):
        documents = workflow.pending_for(request.user)
        ctx = self.get_serializer_context()
        ctx["now"] = timezone.now()
        data = PendingDocumentSerializer(documents, many=True, context=ctx).data
        return Response({"count": len(data), "results": data})
