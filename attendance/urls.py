from django.urls import path

from .views import (
    ActiveOfficeLocationListView,
    AttendanceDetailUpdateView,
    AttendanceListCreateView,
    CheckInView,
    CheckOutView,
    OfficeLocationAdminDetailView,
    OfficeLocationAdminListCreateView,
    ValidateLocationView,
)

urlpatterns = [
    path("attendance/check-in/", CheckInView.as_view(), name="attendance-check-in"),
    path("attendance/check-out/", CheckOutView.as_view(), name="attendance-check-out"),
    path("attendance/validate-location/", ValidateLocationView.as_view(), name="attendance-validate-location"),
    path("attendance/office-locations/", ActiveOfficeLocationListView.as_view(), name="attendance-office-locations"),
    path("attendance/", AttendanceListCreateView.as_view(), name="attendance-list"),
    path("attendance/<int:pk>/", AttendanceDetailUpdateView.as_view(), name="attendance-detail"),
    path("admin/office-locations/", OfficeLocationAdminListCreateView.as_view(), name="office-location-list"),
    path(
        "admin/office-locations/<int:pk>/",
        OfficeLocationAdminDetailView.as_view(),
        name="office-location-detail",
    ),
]
