"""
Custom exception classes and error handling.

Provides consistent error responses across the API. Every error is rendered
as ``{"error": <message>, "details": [...]}`` by the handlers in ``main.py``;
``details`` is omitted when there is nothing field-level to report.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any, List


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[Dict[str, Any]] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.details = details


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, detail: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail or f"{resource} not found",
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None, details: Optional[List[Dict[str, Any]]] = None):
        if details is None and field:
            details = [{"loc": [field], "msg": detail, "type": "value_error"}]
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            details=details,
        )


class UnauthorizedError(APIException):
    """Authentication required."""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
        )


class ForbiddenError(APIException):
    """Access denied."""

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )


class ConflictError(APIException):
    """Resource conflict (e.g., duplicate entry).

    Answered with 400 to stay compatible with existing web clients.
    """

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )
