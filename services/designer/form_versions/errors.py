"""Error taxonomy for the designer service."""
from __future__ import annotations

from rest_framework import exceptions, status


class DesignerError(exceptions.APIException):
    """Base class for failures reported with a taxonomy ``code``."""

    code = "INTERNAL_ERROR"


class InvalidTitle(DesignerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Title must be non-empty"
    default_code = "INVALID_TITLE"
    code = "INVALID_TITLE"


class InvalidData(DesignerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "rawJson must be an object"
    default_code = "INVALID_DATA"
    code = "INVALID_DATA"


class FormNotFound(DesignerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Form not found"
    default_code = "NOT_FOUND"
    code = "NOT_FOUND"


class Unauthorized(DesignerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "User not authenticated"
    default_code = "UNAUTHORIZED"
    code = "UNAUTHORIZED"
