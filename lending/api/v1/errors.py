from fastapi import HTTPException, status

from lending.core.errors import (
    AccessDeniedError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
)

# InvalidStateError is deliberately absent: it propagates as a server error.
USER_FACING_ERRORS = (NotFoundError, AccessDeniedError, ConflictError, InvalidArgumentError)


def to_http_exception(exc: Exception) -> HTTPException:
    """Translate an engine error into the response the API returns for it."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, AccessDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message)
    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"reason": exc.reason.value, "message": exc.message},
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
