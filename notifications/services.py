import json
import logging
import time

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import DatabaseError, transaction

from .models import Notification

logger = logging.getLogger(__name__)


def notify(user, title, message, type=Notification.Type.INFO, data=None):
    """
    Store an in-app notification for ``user``. Delivery never breaks the
    calling operation: a failed write is logged and None is returned.
    """
    if user is None:
        return None
    try:
        with transaction.atomic():
            return Notification.objects.create(user=user, title=title, message=message, type=type, data=data)
    except DatabaseError:
        logger.exception("Failed to store notification %r for user %s", title, user.pk)
        return None


def serialize_event(event, data, event_id=None):
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    lines.append(f"event: {event}")
    lines.append(f"data: {json.dumps(data, cls=DjangoJSONEncoder)}")
    return "\n".join(lines) + "\n\n"


def notification_payload(notification):
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "status": notification.status,
        "data": notification.data,
        "created_at": notification.created_at,
    }


def event_stream(user, last_id=0, clock=time.monotonic, sleep=time.sleep):
    """
    Server-sent events for ``user``.

    Emits a ``connection`` event, then polls for notifications newer than
    ``last_id`` and a ``heartbeat`` every heartbeat interval until the stream
    timeout is reached.
    """
    heartbeat_every = settings.NOTIFICATION_STREAM_HEARTBEAT_SECONDS
    poll_every = settings.NOTIFICATION_STREAM_POLL_SECONDS
    timeout = settings.NOTIFICATION_STREAM_TIMEOUT_SECONDS

    started = clock()
    last_beat = started
    yield serialize_event("connection", {"status": "connected", "user_id": user.pk, "last_id": last_id})

    while True:
        fresh = list(Notification.objects.filter(user=user, id__gt=last_id).order_by("id"))
        for notification in fresh:
            last_id = notification.id
            yield serialize_event("notification", notification_payload(notification), event_id=notification.id)

        now = clock()
        if now - started >= timeout:
            yield serialize_event("close", {"reason": "timeout", "last_id": last_id})
            logger.debug("Notification stream of user %s closed after timeout", user.pk)
            return

        if now - last_beat >= heartbeat_every:
            last_beat = now
            yield serialize_event("heartbeat", {"timestamp": int(time.time())})

        sleep(poll_every)
