import logging

from django.db import IntegrityError
from django.db.models.deletion import ProtectedError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """
    DRF handler first; anything it does not know about becomes a JSON error
    instead of Django's HTML 500 page.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else "unknown"

    if isinstance(exc, ProtectedError):
        logger.warning("Protected delete refused in %s: %s", view_name, exc)
        return Response(
            {"detail": "Record is still referenced by other records and cannot be deleted."},
            status=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, IntegrityError):
        logger.warning("Integrity error in %s: %s", view_name, exc)
        return Response(
            {"detail": "Request conflicts with existing data."},
            status=status.HTTP_400_BAD_REQUEST,
        )

    logger.exception("Unhandled error in %s", view_name, exc_info=exc)
    return Response(
        {"detail": "Internal server error."},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
