from __future__ import annotations

import enum
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from review_portal.db.base import Base, enum_values
from review_portal.models.organization import department_hods

if TYPE_CHECKING:
    from review_portal.models.organization import Department


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    HOD = "hod"
    EMPLOYEE = "employee"


class HodLevel(str, enum.Enum):
    HIGHER = "higher"
    LOWER = "lower"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        # Employee ID is the login key. Email is deliberately not unique.
        UniqueConstraint("employee_id", name="uq_users_employee_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(120), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    employee_id: Mapped[str] = mapped_column(String(50), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, values_callable=enum_values, length=20),
        nullable=False,
        index=True,
    )
    # Required for everyone except admins; enforced by the admin forms.
    department_id: Mapped[int | None] = mapped_column(ForeignKey("departments.id"), nullable=True, index=True)
    hod_level: Mapped[HodLevel | None] = mapped_column(
        Enum(HodLevel, native_enum=False, values_callable=enum_values, length=20),
        nullable=True,
    )

    joining_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    department: Mapped[Department | None] = relationship(back_populates="members", foreign_keys=[department_id])
    headed_departments: Mapped[list[Department]] = relationship(
        secondary=department_hods,
        back_populates="hods",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_hod(self) -> bool:
        return self.role == UserRole.HOD

    @property
    def is_higher_hod(self) -> bool:
        return self.role == UserRole.HOD and self.hod_level == HodLevel.HIGHER
