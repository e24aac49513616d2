import os
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import auth, customers, health, nested, reminders
from app.core.config import Settings, get_settings
from app.core.database import build_engine, build_session_factory
from app.core.errors import AppError, ErrorCode, InternalError, ValidationFailedError
from app.core.firebase import AuthProvider, FirebaseAuthProvider
from app.core.init_data import init_db
from app.core.logging import configure_logging
from app.middleware.request_context import RequestContextMiddleware
from app.schemas.validation import format_validation_errors

logger = structlog.get_logger()

# Framework HTTP errors shaped into the same envelope as application errors
HTTP_ERROR_CODES = {
    400: (ErrorCode.VALIDATION_ERROR, "Bad request"),
    401: (ErrorCode.UNAUTHORIZED, "Authentication required"),
    404: (ErrorCode.NOT_FOUND, "Route not found"),
    405: (ErrorCode.METHOD_NOT_ALLOWED, "Method not allowed"),
}


def error_response(request: Request, exc: AppError) -> JSONResponse:
    response = JSONResponse(
        status_code=exc.status_code,
        content=exc.to_envelope().model_dump(mode="json", exclude_none=True),
    )
    # Error responses built outside CORSMiddleware would otherwise mask the real status
    origin = request.headers.get("origin")
    if origin and exc.status_code >= 500:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
    return response


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("request_failed", code=exc.code.value, error=str(exc), exc_info=exc.__cause__ or exc)
    return error_response(request, exc)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = format_validation_errors(exc.errors())
    return error_response(request, ValidationFailedError(details))


def _fallback_http_error(exc: StarletteHTTPException):
    # Other 4xx from the framework (413, 415, ...) are client errors, not internal ones
    if exc.status_code < 500:
        return ErrorCode.VALIDATION_ERROR, str(exc.detail)
    return ErrorCode.INTERNAL_SERVER_ERROR, "Internal server error"


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code, message = HTTP_ERROR_CODES.get(exc.status_code) or _fallback_http_error(exc)
    error = AppError(message, code)
    error.status_code = exc.status_code
    response = error_response(request, error)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_exception", error=str(exc), path=request.url.path, exc_info=exc)
    return error_response(request, InternalError())


def create_app(settings: Optional[Settings] = None, auth_provider: Optional[AuthProvider] = None) -> FastAPI:
    """
    Builds the service. Store and identity clients live on app.state and reach
    handlers through dependencies, so tests can pass their own.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("system_startup_initiated", env=settings.ENV)

        if app.state.auth_provider is None:
            app.state.auth_provider = FirebaseAuthProvider.from_settings(settings)

        if settings.DB_BOOTSTRAP_SCHEMA:
            try:
                await init_db(engine, settings)
            except Exception as e:
                # Start anyway; /health reports the store as disconnected
                logger.error("startup_critical_error", error=str(e), exc_info=True)

        logger.info("system_startup_complete")
        yield

        await engine.dispose()
        logger.info("shutdown_complete")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Multi-tenant CRM: customers with phones, addresses, notes and reminders.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.auth_provider = auth_provider

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.add_middleware(RequestContextMiddleware)
    # CORS Configuration - Dynamically loaded from settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(customers.router)
    app.include_router(nested.phones_router)
    app.include_router(nested.addresses_router)
    app.include_router(nested.notes_router)
    app.include_router(reminders.customer_reminders_router)
    app.include_router(reminders.router)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(app, host="0.0.0.0", port=port)
