from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("accounts.urls")),
    path("api/", include("attendance.urls")),
    path("api/", include("approvals.urls")),
    path("api/", include("notifications.urls")),
    path("api/", include("audit.urls")),
    path("api/", include("reports.urls")),
]
