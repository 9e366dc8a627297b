from rest_framework.generics import ListAPIView

from accounts.permissions import DjangoModelPermissionsWithView
from hrms.helpers import int_param

from .models import AuditLog
from .serializers import AuditLogSerializer


class AuditLogListView(ListAPIView):
    serializer_class = AuditLogSerializer
    permission_classes = [DjangoModelPermissionsWithView]
    queryset = AuditLog.objects.select_related("user")

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params

        if params.get("table_name"):
            qs = qs.filter(table_name=params["table_name"])
        if params.get("action"):
            qs = qs.filter(action=params["action"])
        user_id = int_param(params, "user")
        if user_id is not None:
            qs = qs.filter(user_id=user_id)
        if params.get("record_id"):
            qs = qs.filter(record_id=params["record_id"])
        return qs
