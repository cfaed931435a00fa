import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from category_tree.api.v1 import api_router
from category_tree.core.config import settings
from category_tree.core.errors import (
    CategoryNotFoundError,
    CategoryStorageError,
    CategoryTreeError,
    CategoryValidationError,
    ImportSourceError,
)
from category_tree.core.logging_config import configure_logging
from category_tree.middleware import RequestLoggingMiddleware
from category_tree.schemas.error import ErrorResponse

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[CategoryTreeError], int] = {
    CategoryValidationError: 400,
    ImportSourceError: 400,
    CategoryNotFoundError: 404,
    CategoryStorageError: 503,
}


def _status_for(exc: CategoryTreeError) -> int:
    for error_type, status_code in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


def get_application() -> FastAPI:
    configure_logging(settings.log_json)
    tags_metadata = [
        {"name": "categories", "description": "Category hierarchy, search and bulk import"},
        {"name": "health", "description": "Liveness probe"},
    ]
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_tags=tags_metadata,
        swagger_ui_parameters={"displayRequestDuration": True},
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router, prefix="/api/v1")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        payload = ErrorResponse(detail=exc.detail, code=None)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(payload.model_dump()))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        payload = ErrorResponse(detail=errors, code="validation_error")
        return JSONResponse(status_code=422, content=payload.model_dump())

    @app.exception_handler(CategoryTreeError)
    async def category_error_handler(request: Request, exc: CategoryTreeError):
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error("category_request_failed", extra={"code": exc.code, "error": exc.message})
        payload = ErrorResponse(detail=exc.message, code=exc.code)
        return JSONResponse(status_code=status_code, content=payload.model_dump())

    return app


app = get_application()
