from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from review_portal.db.session import get_db
from review_portal.schemas.forms import LoginForm
from review_portal.security.auth import session_payload
from review_portal.services.accounts import authenticate
from review_portal.templating import render

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

LOGIN_ERROR = "Invalid Employee ID or password"

DASHBOARDS = {
    "admin": "/admin/dashboard",
    "hod": "/hod/dashboard",
    "employee": "/employee/dashboard",
}


def dashboard_for(role: str | None) -> str:
    return DASHBOARDS.get(role or "", "/")


@router.get("/login")
def login_page(request: Request) -> Response:
    return render(request, "login.html")


@router.post("/login")
def login(
    request: Request,
    employee_id: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
) -> Response:
    try:
        form = LoginForm(employee_id=employee_id, password=password)
    except ValidationError:
        return render(request, "login.html", {"error": LOGIN_ERROR}, status_code=status.HTTP_400_BAD_REQUEST)

    user = authenticate(db, form.employee_id, form.password)
    if user is None:
        return render(request, "login.html", {"error": LOGIN_ERROR}, status_code=status.HTTP_401_UNAUTHORIZED)

    request.session.clear()
    request.session["user"] = session_payload(user)
    logger.info("Login successful user_id=%s role=%s", user.id, user.role.value)
    return RedirectResponse(dashboard_for(user.role.value), status_code=status.HTTP_303_SEE_OTHER)


@router.post("/logout")
def logout(request: Request) -> Response:
    request.session.clear()
    return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
