"""
SecureBank API Application Factory
"""

import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .accounts import router as accounts_router
from .auth import router as auth_router
from .dependencies import BankingSystem
from .. import __version__
from ..config import BankConfig, get_config
from ..errors import BankError, InternalError, ValidationError
from ..logging_config import get_logger, request_context

logger = get_logger("securebank.api")

STATUS_BY_CODE = {
    "BAD_REQUEST": 400,
    "UNAUTHORIZED": 401,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "INTERNAL_SERVER_ERROR": 500,
}


def error_body(error: BankError) -> dict:
    body = {"code": error.code, "message": error.message}
    if isinstance(error, ValidationError):
        body["fields"] = error.errors
    return {"error": body}


def create_app(settings: Optional[BankConfig] = None,
               system: Optional[BankingSystem] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    When ``system`` is given the caller owns its lifecycle; otherwise one is
    built from ``settings`` at startup and closed at shutdown.
    """
    settings = settings or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.system is None
        if owned:
            app.state.system = BankingSystem(settings)
            app.state.system.sessions.purge_expired()
            logger.info("SecureBank started with %s", settings.database_url.split("://")[0])
        yield
        if owned:
            app.state.system.close()
            app.state.system = None
            logger.info("SecureBank stopped")

    app = FastAPI(
        title="SecureBank API",
        description="Session-authenticated accounts and funding",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.system = system

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        with request_context(request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(BankError)
    async def bank_error_handler(request: Request, exc: BankError):
        status_code = STATUS_BY_CODE.get(exc.code, 500)
        if status_code == 500:
            logger.error("Internal error on %s: %s", request.url.path, exc.message, exc_info=exc)
            return JSONResponse(status_code=500, content=error_body(InternalError()))
        return JSONResponse(status_code=status_code, content=error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = {}
        for error in exc.errors():
            name = ".".join(str(part) for part in error["loc"] if part != "body")
            fields.setdefault(name or "body", []).append(error["msg"])
        return JSONResponse(status_code=400, content=error_body(ValidationError(fields)))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=500, content=error_body(InternalError()))

    app.include_router(auth_router, prefix="/auth", tags=["Auth"])
    app.include_router(accounts_router, prefix="/account", tags=["Account"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "securebank_api",
            "version": __version__
        }

    return app
