from django.urls import path

from .views import (
    NotificationListCreateView,
    NotificationMarkAllReadView,
    NotificationMarkReadView,
    NotificationStreamView,
)

urlpatterns = [
    path("notifications/", NotificationListCreateView.as_view(), name="notification-list"),
    path("notifications/mark-read/", NotificationMarkReadView.as_view(), name="notification-mark-read"),
    path("notifications/mark-all-read/", NotificationMarkAllReadView.as_view(), name="notification-mark-all-read"),
    path("notifications/stream/", NotificationStreamView.as_view(), name="notification-stream"),
]
