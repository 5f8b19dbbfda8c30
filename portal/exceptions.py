"""
Custom Exception Classes for the Portal Analytics service

This module defines custom exceptions for consistent error handling and
error responses across the view-tracking endpoints.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned alongside error messages"""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_ARTICLE_NOT_FOUND = "RESOURCE_ARTICLE_NOT_FOUND"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class PortalError(Exception):
    """Base exception class for all portal analytics exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Validation Exceptions
# ============================================================================


class InvalidRequestError(PortalError):
    """Raised when a tracking request is missing or has malformed required fields"""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=ErrorCode.VALIDATION_FAILED,
            details=details,
        )


# ============================================================================
# Resource Not Found Exceptions
# ============================================================================


class ArticleNotFoundError(PortalError):
    """Raised when an article lookup by slug finds nothing"""

    def __init__(self, slug: str):
        super().__init__(
            message=f"Article with slug '{slug}' not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=ErrorCode.RESOURCE_ARTICLE_NOT_FOUND,
            details={"resource_type": "Article", "slug": slug},
        )


# ============================================================================
# Storage Exceptions
# ============================================================================


class StorageUnavailableError(PortalError):
    """Raised when the backing store cannot serve a read or write"""

    def __init__(self, message: str = "Analytics storage is unavailable", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code=ErrorCode.STORAGE_UNAVAILABLE,
            details=details,
        )
