from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException
from starlette.middleware.sessions import SessionMiddleware

from review_portal.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from review_portal.db.init_db import init_db
from review_portal.errors import AppError
from review_portal.logging_config import configure_app_logging
from review_portal.routers import admin, api, auth, employee, health, hod
from review_portal.security.config import load_security_config
from review_portal.security.dependencies import enforce_security
from review_portal.settings import get_settings
from review_portal.templating import envelope, render, wants_json

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"


def _error_response(request: Request, status_code: int, message: str, error_code: str | None = None) -> Response:
    if wants_json(request):
        extra = {"error_code": error_code} if error_code else {}
        return envelope(False, message, status_code, **extra)
    return render(request, "error.html", {"message": message, "status_code": status_code}, status_code=status_code)


async def handle_app_error(request: Request, exc: AppError) -> Response:
    logger.info("%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.message)
    return _error_response(request, exc.status_code, exc.message, exc.error_code)


async def handle_http_exception(request: Request, exc: HTTPException) -> Response:
    if exc.status_code == status.HTTP_401_UNAUTHORIZED and not wants_json(request):
        login_path = request.app.state.security_config.auth.login_path
        return RedirectResponse(login_path, status_code=status.HTTP_303_SEE_OTHER)
    return _error_response(request, exc.status_code, str(exc.detail))


async def handle_validation_error(request: Request, exc: RequestValidationError) -> Response:
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    return _error_response(request, status.HTTP_400_BAD_REQUEST, message, "VALIDATION_FAILED")


async def handle_unexpected(request: Request, exc: Exception) -> Response:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Something went wrong!")


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())
        init_db()
        logger.info("Database initialized (tables ensured + default admin)")

        yield

    # Global dependency: applies security with zero changes to route handlers.
    app = FastAPI(title="Review Portal", dependencies=[Depends(enforce_security)], lifespan=lifespan)

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        max_age=settings.session_max_age,
        same_site="lax",
    )
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    app.add_exception_handler(AppError, handle_app_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(admin.router)
    app.include_router(hod.router)
    app.include_router(employee.router)
    app.include_router(api.router)

    return app


app = create_app()
