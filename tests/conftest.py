"""
Pytest fixtures for the test suite.

Data-layer and service tests use their own in-memory SQLite engine and a
session that rolls back after each test. Route tests go through the real app
(`client`), whose engine is pointed at a shared in-memory database below and
rebuilt for every test.
"""
from __future__ import annotations

import os

# Must be set before anything imports review_portal.settings.
os.environ["APP_DB_URL"] = "sqlite://"
os.environ.setdefault("APP_BCRYPT_ROUNDS", "4")
os.environ.setdefault("APP_SESSION_SECRET", "test-secret")

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from review_portal.models import (  # noqa: E402
    AssessmentType,
    Department,
    HodLevel,
    InputType,
    Question,
    QuestionCategory,
    Review,
    User,
    UserRole,
)
from review_portal.services.accounts import hash_password  # noqa: E402

TEST_DB_URL = "sqlite:///:memory:"
DEFAULT_PASSWORD = "secret123"


class Factory:
    """Small helpers to insert rows; every call commits."""

    def __init__(self, db: Session):
        self.db = db
        self._password_hash = hash_password(DEFAULT_PASSWORD)

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        return obj

    def department(self, name, parent=None, hods=(), is_active=True) -> Department:
        return self._save(
            Department(
                name=name,
                description=f"{name} department",
                parent_id=parent.id if parent else None,
                hods=list(hods),
                is_active=is_active,
            )
        )

    def user(
        self,
        name,
        employee_id,
        role=UserRole.EMPLOYEE,
        department=None,
        hod_level=None,
        email=None,
        is_active=True,
    ) -> User:
        if role == UserRole.HOD and hod_level is None:
            hod_level = HodLevel.LOWER
        return self._save(
            User(
                name=name,
                email=email or f"{employee_id.lower()}@example.com",
                password_hash=self._password_hash,
                employee_id=employee_id,
                role=role,
                department_id=department.id if department else None,
                hod_level=hod_level,
                is_active=is_active,
            )
        )

    def hod(self, name, employee_id, department=None, level=HodLevel.LOWER, heads=()) -> User:
        user = self.user(name, employee_id, role=UserRole.HOD, department=department, hod_level=level)
        for dept in heads:
            dept.hods.append(user)
        self.db.commit()
        return user

    def question(
        self,
        text,
        created_by,
        assessment_type=AssessmentType.REVIEW,
        input_type=InputType.RATING,
        category=QuestionCategory.PERFORMANCE,
        department=None,
        options=None,
    ) -> Question:
        return self._save(
            Question(
                text=text,
                category=category,
                assessment_type=assessment_type,
                input_type=input_type,
                options=options or [],
                department_id=department.id if department else None,
                created_by_id=created_by.id,
            )
        )

    def review(
        self,
        employee,
        reviewer,
        period,
        overall_score=None,
        score=None,
        comments="Solid work this period.",
        department=None,
        created_at=None,
    ) -> Review:
        department_id = department.id if department else employee.department_id
        return self._save(
            Review(
                employee_id=employee.id,
                reviewer_id=reviewer.id,
                department_id=department_id,
                period=period,
                is_self_assessment=employee.id == reviewer.id,
                overall_score=overall_score,
                score=score,
                comments=comments,
                review_date=created_at or datetime(2025, 8, 14, 9, 30),
                created_at=created_at or datetime.utcnow(),
            )
        )


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from review_portal.db.base import Base

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    Commits inside the code under test only release a SAVEPOINT, so the outer
    transaction can still be rolled back at the end.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
        join_transaction_mode="create_savepoint",
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def factory(db_session) -> Factory:
    return Factory(db_session)


@pytest.fixture
def client():
    """
    TestClient for the real app on a clean database.

    Entering the client runs the app lifespan, which creates the tables and
    the default admin (ADMIN001 / admin123).
    """
    from review_portal.db.base import Base
    from review_portal.db.session import engine as app_engine
    from review_portal.main import app

    Base.metadata.drop_all(bind=app_engine)
    with TestClient(app) as test_client:
        yield test_client
    Base.metadata.drop_all(bind=app_engine)


@pytest.fixture
def app_db(client):
    """Session on the app's database, for arranging route-test data."""
    from review_portal.db.session import SessionLocal

    with SessionLocal() as session:
        yield session


@pytest.fixture
def app_factory(app_db) -> Factory:
    return Factory(app_db)


@pytest.fixture
def login(client):
    """Log `client` in as the given employee id; returns the login response."""

    def _login(employee_id: str, password: str = DEFAULT_PASSWORD):
        return client.post(
            "/auth/login",
            data={"employee_id": employee_id, "password": password},
            follow_redirects=False,
        )

    return _login
