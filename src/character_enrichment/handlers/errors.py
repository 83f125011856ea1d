"""Mapping of domain exceptions to HTTP errors."""

from fastapi import HTTPException, status

from character_enrichment.exceptions import (
    EntityNotFoundError,
    InvalidRequestError,
    ProtectionViolationError,
)


def http_error(action: str, error: Exception) -> HTTPException:
    """Build the HTTPException for a failed operation.

    Args:
        action: What was attempted, e.g. "enrich entity"
        error: The exception raised by the service layer

    Returns:
        HTTPException with a status code matching the error type
    """
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, InvalidRequestError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, EntityNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, ProtectionViolationError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=f"Failed to {action}: {error}")
