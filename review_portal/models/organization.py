from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from review_portal.db.base import Base

if TYPE_CHECKING:
    from review_portal.models.user import User


department_hods = Table(
    "department_hods",
    Base.metadata,
    Column("department_id", ForeignKey("departments.id"), primary_key=True),
    Column("user_id", ForeignKey("users.id"), primary_key=True),
)


class Department(Base):
    __tablename__ = "departments"
    __table_args__ = (
        # Names only need to be unique among siblings.
        UniqueConstraint("name", "parent_id", name="uq_departments_name_parent"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # NULL means a main (top-level) department.
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("departments.id"), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    parent: Mapped[Department | None] = relationship(remote_side=[id], back_populates="children")
    children: Mapped[list[Department]] = relationship(back_populates="parent")

    hods: Mapped[list[User]] = relationship(secondary=department_hods, back_populates="headed_departments")
    members: Mapped[list[User]] = relationship(back_populates="department", foreign_keys="User.department_id")

    @property
    def is_main(self) -> bool:
        return self.parent_id is None
