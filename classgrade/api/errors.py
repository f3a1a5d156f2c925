"""领域异常到 HTTP 错误的映射。"""

from fastapi import HTTPException, status

from classgrade.errors import (
    AlreadyExistsError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceFailure,
    ValidationFailure,
)

_STATUS_MAP = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AlreadyExistsError, status.HTTP_409_CONFLICT),
    (ValidationFailure, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (PersistenceFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
)

DOMAIN_ERRORS = tuple(exc_type for exc_type, _ in _STATUS_MAP)


def to_http_exception(exc: Exception) -> HTTPException:
    for exc_type, status_code in _STATUS_MAP:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="内部错误")
