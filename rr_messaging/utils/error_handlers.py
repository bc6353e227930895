import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from rr_messaging.utils.errors import MessagingError, PersistenceError


logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Domain errors, request validation, storage failures, then a catch-all."""
    _register_messaging_error_handler(app)
    _register_validation_error_handler(app)
    _register_storage_error_handler(app)
    _register_generic_error_handler(app)


def _register_messaging_error_handler(app: FastAPI) -> None:

    @app.exception_handler(MessagingError)
    async def messaging_error_handler(request: Request, exc: MessagingError):
        level = logging.ERROR if exc.http_status >= 500 else logging.WARNING
        logger.log(
            level,
            "%s: %s",
            type(exc).__name__,
            exc.message,
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": {
                    "code": "INVALID_ARGUMENT",
                    "message": "Invalid request data",
                    "retriable": False,
                    "details": [
                        {
                            "field": ".".join(str(loc) for loc in e["loc"]),
                            "message": e["msg"],
                            "type": e["type"],
                        }
                        for e in exc.errors()
                    ],
                }
            },
        )


def _register_storage_error_handler(app: FastAPI) -> None:

    @app.exception_handler(PyMongoError)
    async def storage_error_handler(request: Request, exc: PyMongoError):
        logger.error(
            "Storage failure on %s: %s",
            request.url.path,
            exc,
            exc_info=True,
            extra={"error_code": "PERSISTENCE_ERROR", "path": request.url.path},
        )
        # the driver message can carry hosts and credentials
        wrapped = PersistenceError(request.method.lower(), "storage unavailable")
        return JSONResponse(status_code=wrapped.http_status, content=wrapped.to_response())


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "retriable": False,
                }
            },
        )
