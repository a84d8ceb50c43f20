# api/exceptions.py
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

VALIDATION_MESSAGE = "Validation failed"


def _django_errors(exc):
    if hasattr(exc, "error_dict"):
        return exc.message_dict
    return {"non_field_errors": exc.messages}


def rental_exception_handler(exc, context):
    """Give every validation failure the same body, whichever layer raised it."""
    view = context.get("view")
    view_name = view.__class__.__name__ if view else "unknown view"

    if isinstance(exc, DjangoValidationError):
        errors = _django_errors(exc)
        logger.info("Rejected request in %s: %s", view_name, errors)
        return Response(
            {"message": VALIDATION_MESSAGE, "errors": errors},
            status=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, ProtectedError):
        logger.info("Refused delete in %s: record is still referenced", view_name)
        return Response(
            {"message": "This record is still referenced by other records and cannot be deleted."},
            status=status.HTTP_409_CONFLICT,
        )

    response = exception_handler(exc, context)
    if response is None:
        logger.exception("Unhandled error in %s", view_name, exc_info=exc)
        return None

    if isinstance(exc, ValidationError):
        errors = response.data
        if isinstance(errors, list):
            errors = {"non_field_errors": errors}
        response.data = {"message": VALIDATION_MESSAGE, "errors": errors}
    return response
