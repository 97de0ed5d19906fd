# src/utils/exceptions.py
from fastapi import HTTPException, status
from typing import Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from .logger import setup_logger

logger = setup_logger("EXCEPTIONS")


class BaseAPIException(HTTPException):
    """Base for every error kind the core surfaces to callers.

    Each subclass is a distinct, inspectable kind; the JSON body carries the
    class name as ``type`` so clients can branch on it.
    """

    def __init__(
        self,
        status_code: int,
        detail: Any = None,
        headers: Optional[dict] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @property
    def kind(self) -> str:
        return self.__class__.__name__


class NotFound(BaseAPIException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class IllegalTransition(BaseAPIException):
    def __init__(self, detail: str = "Illegal state transition"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class SlotFull(BaseAPIException):
    def __init__(self, detail: str = "Time slot is fully booked"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidSlot(BaseAPIException):
    def __init__(self, detail: str = "Invalid time slot"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail
        )


class DuplicateService(BaseAPIException):
    def __init__(self, detail: str = "Service already attached to order"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ReferentialConflict(BaseAPIException):
    def __init__(self, detail: str = "Resource is referenced by an open order"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ConcurrentModification(BaseAPIException):
    def __init__(
        self, detail: str = "Resource was modified concurrently, re-read and retry"
    ):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class AlreadyPaid(BaseAPIException):
    def __init__(self, detail: str = "Invoice is already paid"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class NoMechanicAvailable(BaseAPIException):
    def __init__(self, detail: str = "Mechanic has a conflicting appointment"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class BadRequestException(BaseAPIException):
    def __init__(self, detail: str = "Bad Request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class UnauthorizedException(BaseAPIException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(BaseAPIException):
    def __init__(self, detail: str = "Operation not authorized"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


async def handle_db_exception(
    db: AsyncSession, logger, operation: str, exception: Exception
):
    """Roll back, log, and re-raise a failure in a consistent shape"""
    await db.rollback()

    # Domain errors pass through untouched
    if isinstance(exception, BaseAPIException):
        raise exception

    if isinstance(exception, StaleDataError):
        logger.warning(f"Concurrent modification during {operation}: {exception}")
        raise ConcurrentModification() from exception

    logger.error(f"Database error during {operation}: {str(exception)}", exc_info=True)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Internal server error during {operation}",
    ) from exception
