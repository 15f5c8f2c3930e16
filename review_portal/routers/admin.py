from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse, Response
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from review_portal.db.session import get_db
from review_portal.errors import NotFound
from review_portal.models.organization import Department
from review_portal.models.question import Question
from review_portal.models.user import User, UserRole
from review_portal.schemas.forms import DepartmentForm, EmployeeForm, QuestionForm, first_error
from review_portal.security.dependencies import get_current_user
from review_portal.services import exports, stats
from review_portal.services.accounts import hash_password
from review_portal.services.periods import current_period, normalize_period
from review_portal.services.scope import descendant_department_ids
from review_portal.settings import get_settings
from review_portal.templating import csv_response, render

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

DUPLICATE_DEPARTMENT = "Department name already exists in this parent department"
DUPLICATE_EMPLOYEE_ID = "Employee ID already exists"


def _redirect(path: str) -> RedirectResponse:
    return RedirectResponse(path, status_code=status.HTTP_303_SEE_OTHER)


def _active_departments(db: Session) -> list[Department]:
    stmt = (
        select(Department)
        .where(Department.is_active.is_(True))
        .options(selectinload(Department.parent), selectinload(Department.hods))
        .order_by(Department.parent_id.is_not(None), Department.parent_id, Department.name)
    )
    return list(db.scalars(stmt).all())


def _active_hods(db: Session) -> list[User]:
    stmt = select(User).where(User.role == UserRole.HOD, User.is_active.is_(True)).order_by(User.name)
    return list(db.scalars(stmt).all())


def _get_or_404(db: Session, model: type, object_id: int, label: str):
    obj = db.get(model, object_id)
    if obj is None:
        raise NotFound(f"{label} not found")
    return obj


# ---- Dashboard ----------------------------------------------------------------------


@router.get("/dashboard")
def dashboard(request: Request, db: Session = Depends(get_db)) -> Response:
    mode = get_settings().period_mode
    period = current_period(mode)

    def count_active(model, *criteria) -> int:
        return int(db.scalar(select(func.count(model.id)).where(model.is_active.is_(True), *criteria)) or 0)

    return render(
        request,
        "admin/dashboard.html",
        {
            "total_employees": count_active(User, User.role == UserRole.EMPLOYEE),
            "total_hods": count_active(User, User.role == UserRole.HOD),
            "total_departments": count_active(Department),
            "total_questions": count_active(Question),
            "current_period_reviews": stats.review_count(db, period),
            "avg_rating": stats.average_rating(db, period),
            "department_stats": stats.department_stats(db, period),
            "period_trends": stats.period_trends(db, mode),
            "period": period,
        },
    )


# ---- Questions ----------------------------------------------------------------------


def _questions_page(request: Request, db: Session, error: str | None = None, status_code: int = 200) -> Response:
    questions = db.scalars(
        select(Question)
        .where(Question.is_active.is_(True))
        .options(selectinload(Question.department), selectinload(Question.created_by))
        .order_by(Question.created_at.desc(), Question.id.desc())
    ).all()
    return render(
        request,
        "admin/questions.html",
        {"questions": questions, "departments": _active_departments(db), "error": error},
        status_code=status_code,
    )


@router.get("/questions")
def questions(request: Request, db: Session = Depends(get_db)) -> Response:
    return _questions_page(request, db)


@router.post("/questions")
def add_question(
    request: Request,
    text: str = Form(""),
    category: str = Form(""),
    assessment_type: str = Form("review"),
    input_type: str = Form("rating"),
    department_id: str = Form(""),
    options: str = Form(""),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    try:
        form = QuestionForm(
            text=text,
            category=category,
            assessment_type=assessment_type,
            input_type=input_type,
            department_id=department_id,
            options=options,
        )
    except ValidationError as exc:
        return _questions_page(request, db, first_error(exc), status.HTTP_400_BAD_REQUEST)

    question = Question(
        text=form.text,
        category=form.category,
        assessment_type=form.assessment_type,
        input_type=form.input_type,
        options=form.options,
        department_id=form.department_id,
        created_by_id=user.id,
        is_active=True,
    )
    db.add(question)
    db.commit()
    logger.info(
        "Question created id=%s type=%s/%s department_id=%s",
        question.id,
        form.assessment_type.value,
        form.input_type.value,
        form.department_id,
    )
    return _redirect("/admin/questions")


@router.post("/questions/{question_id}/deactivate")
def deactivate_question(question_id: int, db: Session = Depends(get_db)) -> Response:
    question = _get_or_404(db, Question, question_id, "Question")
    question.is_active = False
    db.commit()
    logger.info("Question deactivated id=%s", question_id)
    return _redirect("/admin/questions")


# ---- Departments --------------------------------------------------------------------


def _main_departments(db: Session, exclude_id: int | None = None) -> list[Department]:
    stmt = select(Department).where(Department.is_active.is_(True), Department.parent_id.is_(None))
    if exclude_id is not None:
        stmt = stmt.where(Department.id != exclude_id)
    return list(db.scalars(stmt.order_by(Department.name)).all())


def _departments_page(request: Request, db: Session, error: str | None = None, status_code: int = 200) -> Response:
    return render(
        request,
        "admin/departments.html",
        {
            "departments": _active_departments(db),
            "hods": _active_hods(db),
            "main_departments": _main_departments(db),
            "error": error,
        },
        status_code=status_code,
    )


def _edit_department_page(
    request: Request,
    db: Session,
    department: Department,
    error: str | None = None,
    status_code: int = 200,
) -> Response:
    return render(
        request,
        "admin/edit_department.html",
        {
            "department": department,
            "hods": _active_hods(db),
            "main_departments": _main_departments(db, exclude_id=department.id),
            "error": error,
        },
        status_code=status_code,
    )


def _name_taken(db: Session, name: str, parent_id: int | None, exclude_id: int | None = None) -> bool:
    # Checked here as well as by the constraint: SQL treats NULL parents as distinct.
    stmt = select(Department.id).where(func.lower(Department.name) == name.lower())
    stmt = stmt.where(Department.parent_id.is_(None) if parent_id is None else Department.parent_id == parent_id)
    if exclude_id is not None:
        stmt = stmt.where(Department.id != exclude_id)
    return db.execute(stmt.limit(1)).first() is not None


def _load_hods(db: Session, hod_ids: list[int]) -> list[User]:
    if not hod_ids:
        return []
    return list(db.scalars(select(User).where(User.id.in_(hod_ids), User.role == UserRole.HOD)).all())


@router.get("/departments")
def departments(request: Request, db: Session = Depends(get_db)) -> Response:
    return _departments_page(request, db)


@router.post("/departments")
def add_department(
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    parent_id: str = Form(""),
    hods: list[str] | None = Form(None),
    db: Session = Depends(get_db),
) -> Response:
    try:
        form = DepartmentForm(name=name, description=description, parent_id=parent_id, hod_ids=hods or [])
    except ValidationError as exc:
        return _departments_page(request, db, first_error(exc), status.HTTP_400_BAD_REQUEST)

    if form.parent_id is not None and db.get(Department, form.parent_id) is None:
        return _departments_page(request, db, "Parent department not found", status.HTTP_400_BAD_REQUEST)
    if _name_taken(db, form.name, form.parent_id):
        return _departments_page(request, db, DUPLICATE_DEPARTMENT, status.HTTP_409_CONFLICT)

    department = Department(
        name=form.name,
        description=form.description,
        parent_id=form.parent_id,
        hods=_load_hods(db, form.hod_ids),
        is_active=True,
    )
    db.add(department)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return _departments_page(request, db, DUPLICATE_DEPARTMENT, status.HTTP_409_CONFLICT)

    logger.info("Department created id=%s name=%s parent_id=%s", department.id, department.name, department.parent_id)
    return _redirect("/admin/departments")


@router.get("/departments/{department_id}/edit")
def edit_department_page(department_id: int, request: Request, db: Session = Depends(get_db)) -> Response:
    department = _get_or_404(db, Department, department_id, "Department")
    return _edit_department_page(request, db, department)


@router.post("/departments/{department_id}/edit")
def edit_department(
    department_id: int,
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    parent_id: str = Form(""),
    hods: list[str] | None = Form(None),
    db: Session = Depends(get_db),
) -> Response:
    department = _get_or_404(db, Department, department_id, "Department")
    try:
        form = DepartmentForm(name=name, description=description, parent_id=parent_id, hod_ids=hods or [])
    except ValidationError as exc:
        return _edit_department_page(request, db, department, first_error(exc), status.HTTP_400_BAD_REQUEST)

    if form.parent_id is not None and (
        form.parent_id == department.id or form.parent_id in descendant_department_ids(db, department.id)
    ):
        return _edit_department_page(
            request, db, department, "A department cannot be placed under itself", status.HTTP_400_BAD_REQUEST
        )
    if _name_taken(db, form.name, form.parent_id, exclude_id=department.id):
        return _edit_department_page(request, db, department, DUPLICATE_DEPARTMENT, status.HTTP_409_CONFLICT)

    department.name = form.name
    department.description = form.description
    department.parent_id = form.parent_id
    department.hods = _load_hods(db, form.hod_ids)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        department = _get_or_404(db, Department, department_id, "Department")
        return _edit_department_page(request, db, department, DUPLICATE_DEPARTMENT, status.HTTP_409_CONFLICT)

    logger.info("Department updated id=%s name=%s", department.id, department.name)
    return _redirect("/admin/departments")


@router.post("/departments/{department_id}/deactivate")
def deactivate_department(department_id: int, db: Session = Depends(get_db)) -> Response:
    department = _get_or_404(db, Department, department_id, "Department")
    department.is_active = False
    db.commit()
    logger.info("Department deactivated id=%s", department_id)
    return _redirect("/admin/departments")


# ---- Employees ----------------------------------------------------------------------


def _employees_page(request: Request, db: Session, error: str | None = None, status_code: int = 200) -> Response:
    employees = db.scalars(
        select(User)
        .where(User.role.in_([UserRole.EMPLOYEE, UserRole.HOD]), User.is_active.is_(True))
        .options(selectinload(User.department))
        .order_by(User.name)
    ).all()
    return render(
        request,
        "admin/employees.html",
        {"employees": employees, "departments": _active_departments(db), "error": error},
        status_code=status_code,
    )


def _edit_employee_page(
    request: Request,
    db: Session,
    employee: User,
    error: str | None = None,
    status_code: int = 200,
) -> Response:
    return render(
        request,
        "admin/edit_employee.html",
        {"employee": employee, "departments": _active_departments(db), "error": error},
        status_code=status_code,
    )


def _employee_id_taken(db: Session, employee_id: str, exclude_id: int | None = None) -> bool:
    stmt = select(User.id).where(User.employee_id == employee_id)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return db.execute(stmt.limit(1)).first() is not None


@router.get("/employees")
def employees(request: Request, db: Session = Depends(get_db)) -> Response:
    return _employees_page(request, db)


@router.post("/employees")
def add_employee(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    employee_id: str = Form(""),
    role: str = Form(""),
    department_id: str = Form(""),
    hod_level: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
) -> Response:
    try:
        form = EmployeeForm(
            name=name,
            email=email,
            employee_id=employee_id,
            role=role,
            department_id=department_id,
            hod_level=hod_level,
            password=password,
        )
    except ValidationError as exc:
        return _employees_page(request, db, first_error(exc), status.HTTP_400_BAD_REQUEST)

    if db.get(Department, form.department_id) is None:
        return _employees_page(request, db, "Department not found", status.HTTP_400_BAD_REQUEST)
    if _employee_id_taken(db, form.employee_id):
        return _employees_page(request, db, DUPLICATE_EMPLOYEE_ID, status.HTTP_409_CONFLICT)

    user = User(
        name=form.name,
        email=str(form.email),
        employee_id=form.employee_id,
        role=form.role,
        department_id=form.department_id,
        hod_level=form.hod_level,
        password_hash=hash_password(form.password),
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return _employees_page(request, db, DUPLICATE_EMPLOYEE_ID, status.HTTP_409_CONFLICT)

    logger.info("Employee created id=%s employee_id=%s role=%s", user.id, user.employee_id, user.role.value)
    return _redirect("/admin/employees")


@router.get("/employees/{user_id}/edit")
def edit_employee_page(user_id: int, request: Request, db: Session = Depends(get_db)) -> Response:
    employee = _get_or_404(db, User, user_id, "Employee")
    return _edit_employee_page(request, db, employee)


@router.post("/employees/{user_id}/edit")
def edit_employee(
    user_id: int,
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    employee_id: str = Form(""),
    role: str = Form(""),
    department_id: str = Form(""),
    hod_level: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
) -> Response:
    employee = _get_or_404(db, User, user_id, "Employee")
    try:
        form = EmployeeForm(
            name=name,
            email=email,
            employee_id=employee_id,
            role=role,
            department_id=department_id,
            hod_level=hod_level,
            password=password,
            password_required=False,
        )
    except ValidationError as exc:
        return _edit_employee_page(request, db, employee, first_error(exc), status.HTTP_400_BAD_REQUEST)

    if db.get(Department, form.department_id) is None:
        return _edit_employee_page(request, db, employee, "Department not found", status.HTTP_400_BAD_REQUEST)
    if _employee_id_taken(db, form.employee_id, exclude_id=employee.id):
        return _edit_employee_page(request, db, employee, DUPLICATE_EMPLOYEE_ID, status.HTTP_409_CONFLICT)

    employee.name = form.name
    employee.email = str(form.email)
    employee.employee_id = form.employee_id
    employee.role = form.role
    employee.department_id = form.department_id
    employee.hod_level = form.hod_level
    if form.password:
        employee.password_hash = hash_password(form.password)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        employee = _get_or_404(db, User, user_id, "Employee")
        return _edit_employee_page(request, db, employee, DUPLICATE_EMPLOYEE_ID, status.HTTP_409_CONFLICT)

    logger.info(
        "Employee updated id=%s role=%s password_changed=%s", employee.id, employee.role.value, bool(form.password)
    )
    return _redirect("/admin/employees")


@router.post("/employees/{user_id}/deactivate")
def deactivate_employee(user_id: int, db: Session = Depends(get_db)) -> Response:
    employee = _get_or_404(db, User, user_id, "Employee")
    employee.is_active = False
    db.commit()
    logger.info("Employee deactivated id=%s", user_id)
    return _redirect("/admin/employees")


# ---- Exports ------------------------------------------------------------------------


@router.get("/export/reviews")
def export_reviews(
    period: str | None = None,
    department: int | None = None,
    db: Session = Depends(get_db),
) -> Response:
    period = normalize_period(period, get_settings().period_mode) if period else None
    reviews = exports.query_reviews(db, period, [department] if department is not None else None)
    logger.info("Admin reviews export period=%s department=%s rows=%s", period, department, len(reviews))
    return csv_response(exports.reviews_csv(reviews), exports.export_filename("reviews_export"))


@router.get("/export/performance")
def export_performance(period: str | None = None, db: Session = Depends(get_db)) -> Response:
    period = normalize_period(period, get_settings().period_mode)
    rows = exports.performance_rows(db, period)
    return csv_response(exports.performance_csv(rows), exports.export_filename("performance_summary", period))
