from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse, Response

from review_portal.routers.auth import dashboard_for
from review_portal.templating import render

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/")
def home(request: Request) -> Response:
    authz = getattr(request.state, "authz", None)
    if authz is not None:
        return RedirectResponse(dashboard_for(authz.role), status_code=303)
    return render(request, "login.html")
