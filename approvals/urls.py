from django.urls import path

from .models import LeaveRequest, PermissionRequest, WorkLetter
from .views import (
    LeaveBalanceView,
    LeaveRequestDetailView,
    LeaveRequestListCreateView,
    PendingApprovalListView,
    PermissionRequestDetailView,
    PermissionRequestListCreateView,
    RequestApproveView,
    RequestCancelView,
    RequestRejectView,
    WorkLetterDetailView,
    WorkLetterListCreateView,
)


def action_urls(prefix, model, name):
    queryset = model.objects.all()
    return [
        path(f"{prefix}/<int:pk>/approve/", RequestApproveView.as_view(queryset=queryset), name=f"{name}-approve"),
        path(f"{prefix}/<int:pk>/reject/", RequestRejectView.as_view(queryset=queryset), name=f"{name}-reject"),
        path(f"{prefix}/<int:pk>/cancel/", RequestCancelView.as_view(queryset=queryset), name=f"{name}-cancel"),
    ]


urlpatterns = [
    path("leave-requests/", LeaveRequestListCreateView.as_view(), name="leave-request-list"),
    path("leave-requests/balances/", LeaveBalanceView.as_view(), name="leave-request-balances"),
    path("leave-requests/<int:pk>/", LeaveRequestDetailView.as_view(), name="leave-request-detail"),
    *action_urls("leave-requests", LeaveRequest, "leave-request"),
    path("permission-requests/", PermissionRequestListCreateView.as_view(), name="permission-request-list"),
    path("permission-requests/<int:pk>/", PermissionRequestDetailView.as_view(), name="permission-request-detail"),
    *action_urls("permission-requests", PermissionRequest, "permission-request"),
    path("work-letters/", WorkLetterListCreateView.as_view(), name="work-letter-list"),
    path("work-letters/<int:pk>/", WorkLetterDetailView.as_view(), name="work-letter-detail"),
    *action_urls("work-letters", WorkLetter, "work-letter"),
    path("approvals/pending/", PendingApprovalListView.as_view(), name="approval-pending"),
]
