from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.templating import Jinja2Templates

from review_portal.services.periods import current_period
from review_portal.settings import get_settings

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def render(request: Request, name: str, context: dict[str, Any] | None = None, status_code: int = 200) -> HTMLResponse:
    """Render a page with the session user and current period always available."""

    settings = get_settings()
    base: dict[str, Any] = {
        "session_user": request.session.get("user") if "session" in request.scope else None,
        "current_period": current_period(settings.period_mode),
        "error": None,
    }
    base.update(context or {})
    return templates.TemplateResponse(request, name, base, status_code=status_code)


def envelope(success: bool, message: str, status_code: int = 200, **extra: Any) -> JSONResponse:
    """The `{success, message, ...}` JSON shape every API endpoint returns."""

    return JSONResponse({"success": success, "message": message, **extra}, status_code=status_code)


def csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def wants_json(request: Request) -> bool:
    if request.url.path.startswith("/api/"):
        return True
    accept = request.headers.get("accept", "")
    content_type = request.headers.get("content-type", "")
    return "application/json" in content_type or ("application/json" in accept and "text/html" not in accept)
