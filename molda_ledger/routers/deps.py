from fastapi import Header, HTTPException, status

from molda_ledger.db.core import (
    NotFoundError, ConflictError, BadRequestError, UnauthorizedError, InternalError, NotificationError,
)

# Raised by every ledger operation; routers translate them with to_http_exception
DOMAIN_ERRORS = (NotFoundError, ConflictError, BadRequestError, UnauthorizedError, InternalError, NotificationError)


def get_current_user_id(x_user_id: int = Header(..., alias="X-User-Id", gt=0)) -> int:
    """Owner id, as resolved by the identity provider in front of the API."""
    return x_user_id


def to_http_exception(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, BadRequestError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, UnauthorizedError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    if isinstance(e, NotificationError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
