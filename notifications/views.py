import logging

from django.http import StreamingHttpResponse
from django.utils import timezone
from rest_framework import status
from rest_framework.generics import GenericAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.renderers import JSONRenderer
from rest_framework.response import Response

from accounts.permissions import IsNotificationAdmin
from audit.services import log_action

from .models import Notification
from .renderers import EventStreamRenderer
from .serializers import MarkReadSerializer, NotificationCreateSerializer, NotificationSerializer
from .services import event_stream

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def _positive_int(raw, default, maximum=None):
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    if value < 1:
        return default
    if maximum is not None:
        value = min(value, maximum)
    return value


class NotificationListCreateView(GenericAPIView):
    serializer_class = NotificationSerializer

    def get_permissions(self):
        if self.request.method == "POST":
            return [IsNotificationAdmin()]
        return [IsAuthenticated()]

    def get_queryset(self):
        qs = Notification.objects.filter(user=self.request.user)
        if self.request.query_params.get("status") in Notification.Status.values:
            qs = qs.filter(status=self.request.query_params["status"])
        return qs

    def get(self, request, *args, **kwargs):
        params = request.query_params
        page = _positive_int(params.get("page"), 1)
        limit = _positive_int(params.get("limit"), DEFAULT_LIMIT, MAX_LIMIT)

        offset = (page - 1) * limit
        # one extra row tells whether another page exists
        rows = list(self.get_queryset()[offset:offset + limit + 1])
        has_more = len(rows) > limit

        unread_count = Notification.objects.filter(
            user=request.user, status=Notification.Status.UNREAD
        ).count()

        return Response({
            "notifications": NotificationSerializer(rows[:limit], many=True).data,
            "unread_count": unread_count,
            "pagination": {"page": page, "limit": limit, "has_more": has_more},
        })

    def post(self, request, *args, **kwargs):
        ser = NotificationCreateSerializer(data=request.data, context=self.get_serializer_context())
        ser.is_valid(raise_exception=True)
        notification = ser.save()
        logger.info("Notification %s created for user %s by %s", notification.pk, notification.user_id, request.user.pk)
        log_action(
            request,
            "CREATE",
            "notifications",
            notification.pk,
            new_values={"user_id": notification.user_id, "title": notification.title, "type": notification.type},
        )
        return Response(ser.data, status=status.HTTP_201_CREATED)


class NotificationMarkReadView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = MarkReadSerializer

    def patch(self, request, *args, **kwargs):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        ids = sorted(set(ser.validated_data["notification_ids"]))

        now = timezone.now()
        # only the caller's own unread notifications are touched
        updated = Notification.objects.filter(
            user=request.user, id__in=ids, status=Notification.Status.UNREAD
        ).update(status=Notification.Status.READ, read_at=now, updated_at=now)

        log_action(
            request,
            "MARK_READ",
            "notifications",
            None,
            new_values={"notification_ids": ids, "updated_count": updated},
        )
        return Response({"detail": "Notifications marked as read.", "updated_count": updated})


class NotificationMarkAllReadView(GenericAPIView):
    permission_classes = [IsAuthenticated]

    def patch(self, request, *args, **kwargs):
        now = timezone.now()
        updated = Notification.objects.filter(
            user=request.user, status=Notification.Status.UNREAD
        ).update(status=Notification.Status.READ, read_at=now, updated_at=now)
        return Response({"detail": "All notifications marked as read.", "updated_count": updated})


class NotificationStreamView(GenericAPIView):
    permission_classes = [IsAuthenticated]
    renderer_classes = [JSONRenderer, EventStreamRenderer]

    def _last_id(self, request):
        # header wins over the query string, invalid values are skipped
        for raw in (request.META.get("HTTP_LAST_EVENT_ID"), request.query_params.get("last_id")):
            if raw:
                try:
                    return max(int(raw), 0)
                except ValueError:
                    continue
        latest = Notification.objects.filter(user=request.user).order_by("-id").values_list("id", flat=True).first()
        return latest or 0

    def get(self, request, *args, **kwargs):
        last_id = self._last_id(request)
        logger.debug("Notification stream opened for user %s from id %s", request.user.pk, last_id)

        response = StreamingHttpResponse(
            event_stream(request.user, last_id=last_id),
            content_type="text/event-stream",
        )
        response["Cache-Control"] = "no-cache"
        response["X-Accel-Buffering"] = "no"
        return response
