from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional
import logging
import os

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from app.database import settings
from app.db_helpers import (
    authenticate_request_from_headers,
    clear_request_user_id,
    set_request_user_id,
)
from app.repositories import RepositoryProvider, build_repository_provider
from app.responses import error_response
from app.routes import api_router
from app.services.demo_seed_service import DemoSeedService
from app.services.errors import ServiceError

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "y", "on")


def _get_cors_origins() -> list[str]:
    """
    Determine allowed CORS origins.

    If CORS_ALLOW_ORIGINS is not set, APP_URL/FRONTEND_URL is used.
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS")
    if raw:
        origins = [o.strip() for o in raw.split(",") if o.strip()]
        if origins:
            return origins

    frontend_url = os.getenv("FRONTEND_URL") or os.getenv("APP_URL")
    if frontend_url:
        return [frontend_url]

    return ["http://localhost:3000"]


UNPROTECTED_API_PATHS = {
    "/api/health",
    "/api/auth/register",
    "/api/auth/login",
    "/api/auth/refresh",
}
# EventSource cannot send headers, so the stream also accepts ?token=
QUERY_TOKEN_PATHS = {"/api/events/stream"}


def _format_validation_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for error in exc.errors():
        location = list(error.get("loc", ()))
        if location and location[0] in ("body", "query", "path", "header"):
            location = location[1:]
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({
            "field": ".".join(str(part) for part in location),
            "message": message,
        })
    return errors


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(
            400,
            "Validation failed",
            error="validation_error",
            errors=_format_validation_errors(exc),
        )

    @app.exception_handler(ServiceError)
    async def service_exception_handler(request: Request, exc: ServiceError):
        return error_response(exc.status_code, exc.message, error=exc.error_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), error="http_error")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return error_response(500, "Internal server error", error="server_error")


def create_app(repository_provider: Optional[RepositoryProvider] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        repository_provider: Storage to use. Defaults to the backend named by
            the STORAGE_BACKEND setting.
    """
    provider = repository_provider or build_repository_provider(settings)

    # Guarded dev helper; production schemas are managed by migrations
    if provider.backend == "memory" or _env_bool("AUTO_CREATE_TABLES", default=False):
        if provider.backend == "sql":
            logger.warning("AUTO_CREATE_TABLES is enabled; creating tables via SQLAlchemy metadata.")
        provider.create_schema()

    app = FastAPI(
        title="SmartBudget API",
        description="API for SmartBudget (personal finance tracking)",
        version="1.0.0",
        docs_url="/docs" if _env_bool("API_DOCS_ENABLED", default=False) else None,
        redoc_url="/redoc" if _env_bool("API_DOCS_ENABLED", default=False) else None,
        openapi_url="/openapi.json" if _env_bool("API_DOCS_ENABLED", default=False) else None,
    )
    app.state.repository_provider = provider

    @app.middleware("http")
    async def auth_middleware(request: Request, call_next):
        path = request.url.path.rstrip("/") or "/"
        if (
            request.method == "OPTIONS"
            or not path.startswith("/api/")
            or path in UNPROTECTED_API_PATHS
        ):
            return await call_next(request)

        query_token = request.query_params.get("token") if path in QUERY_TOKEN_PATHS else None

        try:
            request_user_id = authenticate_request_from_headers(request.headers, query_token)
        except StarletteHTTPException as exc:
            return error_response(exc.status_code, str(exc.detail), error="authentication_failed")

        token = set_request_user_id(request_user_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_user_id(token)

        return response

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    @app.get("/")
    def root():
        payload = {"message": "SmartBudget API"}
        if _env_bool("API_DOCS_ENABLED", default=False):
            payload["docs"] = "/docs"
        return payload

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    if settings.demo_mode:
        with provider.session() as repository:
            DemoSeedService(repository).seed()

    return app


app = create_app()
