"""Login, logout and role gating through the real app."""
from __future__ import annotations

import pytest

from review_portal.models import UserRole
from review_portal.security.config import AuthConfig, SecurityConfig


@pytest.fixture
def people(app_factory):
    eng = app_factory.department("Engineering")
    hod = app_factory.hod("Hana Head", "HOD1", department=eng, heads=[eng])
    emp = app_factory.user("Alice", "EMP1", department=eng)
    app_factory.user("Former", "EMP2", department=eng, is_active=False)
    loose_hod = app_factory.user("No Dept", "HOD2", role=UserRole.HOD)
    return {"eng": eng, "hod": hod, "emp": emp, "loose_hod": loose_hod}


def test_health_is_public(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_home_shows_login_when_anonymous(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "Sign in" in response.text


@pytest.mark.parametrize(
    ("employee_id", "password", "target"),
    [
        ("ADMIN001", "admin123", "/admin/dashboard"),
        ("HOD1", "secret123", "/hod/dashboard"),
        ("EMP1", "secret123", "/employee/dashboard"),
    ],
)
def test_login_redirects_to_role_dashboard(client, login, people, employee_id, password, target):
    response = login(employee_id, password)

    assert response.status_code == 303
    assert response.headers["location"] == target
    assert client.get(target).status_code == 200


@pytest.mark.parametrize(("employee_id", "password"), [("EMP1", "wrong"), ("NOPE", "secret123"), ("EMP2", "secret123")])
def test_login_failures_share_one_message(login, people, employee_id, password):
    response = login(employee_id, password)

    assert response.status_code == 401
    assert "Invalid Employee ID or password" in response.text


def test_login_requires_both_fields(login):
    response = login("", "")
    assert response.status_code == 400


def test_logout_clears_session(client, login, people):
    login("EMP1")

    response = client.post("/auth/logout", follow_redirects=False)

    assert response.status_code == 303
    follow = client.get("/employee/dashboard", follow_redirects=False)
    assert follow.status_code == 303
    assert follow.headers["location"] == "/auth/login"


def test_logged_in_home_redirects_to_dashboard(client, login, people):
    login("HOD1")
    response = client.get("/", follow_redirects=False)
    assert response.headers["location"] == "/hod/dashboard"


@pytest.mark.parametrize(
    ("employee_id", "path"),
    [("EMP1", "/admin/dashboard"), ("EMP1", "/hod/dashboard"), ("HOD1", "/employee/dashboard"), ("HOD1", "/admin/questions")],
)
def test_wrong_role_is_forbidden(client, login, people, employee_id, path):
    login(employee_id)

    response = client.get(path)

    assert response.status_code == 403
    assert "Access denied" in response.text


def test_hod_without_department_is_forbidden(client, login, people):
    login("HOD2")

    response = client.get("/hod/dashboard")

    assert response.status_code == 403
    assert "No department assigned" in response.text


def test_api_requires_login(client):
    response = client.get("/api/performance-data?type=quarterly-trend")

    assert response.status_code == 401
    assert response.json()["success"] is False


def test_deactivated_user_loses_session(client, login, people, app_db):
    login("EMP1")
    people["emp"].is_active = False
    app_db.commit()

    response = client.get("/employee/dashboard", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/auth/login"


def test_anonymous_page_request_redirects_to_configured_login_path(client):
    config = client.app.state.security_config
    client.app.state.security_config = SecurityConfig(
        config.model.model_copy(update={"auth": AuthConfig(login_path="/signin")})
    )

    response = client.get("/employee/dashboard", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/signin"
