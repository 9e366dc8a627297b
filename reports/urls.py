from django.urls import path

from .views import AttendanceReportView, DashboardView

urlpatterns = [
    path("dashboard/", DashboardView.as_view(), name="dashboard"),
    path("reports/attendance/", AttendanceReportView.as_view(), name="attendance-report"),
]
