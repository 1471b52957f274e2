import logging
import traceback

from fastapi import FastAPI, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from locallibrary.templating import render
from locallibrary.utils import is_valid_id

logger = logging.getLogger(__name__)


def ensure_valid_id(record_id: str, entity: str) -> None:
    """
    Reject a malformed record reference before any query is issued
    """
    if not is_valid_id(record_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Invalid {entity} id")


def not_found(entity: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")


def _render_error(request: Request, status_code: int, message: str, exc: Exception):
    settings = request.app.state.settings
    error = None
    if settings.is_development:
        error = {
            "type": type(exc).__name__,
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        }
    return render(
        request,
        "error.html",
        status_code=status_code,
        title="Error",
        code=status_code,
        message=message,
        error=error,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        logger.warning(f"{request.method} {request.url.path}: {exc.detail}")
    response = _render_error(request, exc.status_code, str(exc.detail), exc)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _render_error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", exc)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _render_error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
