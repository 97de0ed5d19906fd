# src/utils/exception_handler.py
from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from .logger import setup_logger
from .exceptions import BaseAPIException, ConcurrentModification
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, NoResultFound
from sqlalchemy.orm.exc import StaleDataError
from slowapi.errors import RateLimitExceeded

logger = setup_logger("EXCEPTION HANDLER")


def _error_body(message, kind: str, status_code: int) -> dict:
    return {"message": message, "type": kind, "status": status_code}


def setup_exception_handlers(app: FastAPI):
    @app.exception_handler(BaseAPIException)
    async def api_exception_handler(request: Request, exc: BaseAPIException):
        if exc.status_code >= 500:
            logger.error(f"{exc.kind}: {exc.detail}")
        else:
            logger.warning(f"{exc.kind} on {request.method} {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail, exc.kind, exc.status_code),
            headers=exc.headers,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        # Standardize common HTTP error responses
        error_details = {
            status.HTTP_400_BAD_REQUEST: "Bad request",
            status.HTTP_401_UNAUTHORIZED: "Unauthorized - Authentication required",
            status.HTTP_403_FORBIDDEN: "Forbidden - You don't have permission",
            status.HTTP_404_NOT_FOUND: "Resource not found",
            status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
            status.HTTP_409_CONFLICT: "Conflict",
            status.HTTP_422_UNPROCESSABLE_ENTITY: "Validation error",
            status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal server error",
        }

        detail = exc.detail or error_details.get(exc.status_code, "An error occurred")

        if exc.status_code == status.HTTP_404_NOT_FOUND:
            logger.info(f"Not found: {detail}")
        else:
            logger.warning(f"HTTP Exception {exc.status_code}: {detail}")

        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(detail, "HTTPException", exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(StaleDataError)
    async def stale_data_handler(request: Request, exc: StaleDataError):
        # A version check lost outside a service guard
        conflict = ConcurrentModification()
        logger.warning(f"Stale write on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=conflict.status_code,
            content=_error_body(conflict.detail, conflict.kind, conflict.status_code),
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error: {str(exc)}", exc_info=True)

        if isinstance(exc, IntegrityError):
            detail = (
                "Database integrity error - possible duplicate or constraint violation"
            )
            status_code = status.HTTP_409_CONFLICT
        elif isinstance(exc, NoResultFound):
            detail = "Requested resource not found in database"
            status_code = status.HTTP_404_NOT_FOUND
        else:
            detail = "Database operation failed"
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

        return JSONResponse(
            status_code=status_code,
            content=_error_body(detail, "DatabaseError", status_code),
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded: {str(exc)}")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=_error_body(
                f"Too many requests - limit {exc.detail}",
                "RateLimitExceeded",
                status.HTTP_429_TOO_MANY_REQUESTS,
            ),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                "Internal server error",
                "InternalServerError",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
            ),
        )
