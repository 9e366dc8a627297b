import logging

from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import validate_ipv46_address
from django.db import DatabaseError, transaction

from .models import AuditLog

logger = logging.getLogger(__name__)

_encoder = DjangoJSONEncoder()


def _json_safe(value):
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return _encoder.default(value)


def snapshot(instance, fields):
    """Field values of ``instance`` as a JSON-serialisable dict."""
    return {name: _json_safe(getattr(instance, name, None)) for name in fields}


def _ip_or_none(value):
    value = (value or "").strip()
    try:
        validate_ipv46_address(value)
    except ValidationError:
        return None
    return value


def client_ip(request):
    """First ``X-Forwarded-For`` hop when it is a valid address, else ``REMOTE_ADDR``."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    ip = _ip_or_none(forwarded.split(",")[0]) if forwarded else None
    return ip or _ip_or_none(request.META.get("REMOTE_ADDR"))


def log_action(request_or_user, action, table_name, record_id, old_values=None, new_values=None):
    """
    Write one audit entry.

    ``request_or_user`` is either the current request (user, IP and user
    agent are taken from it) or a bare user for calls made outside a request.
    A failing write is logged and swallowed so the audited operation still
    succeeds.
    """
    ip_address = None
    user_agent = ""
    if hasattr(request_or_user, "META"):
        user = getattr(request_or_user, "user", None)
        ip_address = client_ip(request_or_user)
        user_agent = request_or_user.META.get("HTTP_USER_AGENT", "")[:500]
    else:
        user = request_or_user

    if user is not None and not user.is_authenticated:
        user = None

    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                user=user,
                action=action,
                table_name=table_name,
                record_id="" if record_id is None else str(record_id),
                old_values=_json_safe(old_values),
                new_values=_json_safe(new_values),
                ip_address=ip_address,
                user_agent=user_agent,
            )
    except DatabaseError:
        logger.exception("Failed to write audit log %s %s#%s", action, table_name, record_id)
        return None
