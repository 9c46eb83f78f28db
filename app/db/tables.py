"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in app/models/.  Repos
convert between rows and dataclasses; nothing outside app/repos/ touches
a Row class.

Identifiers are strings: user ids come from the account service's token
subject and course ids from the authoring service, and neither promises
a UUID.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from app.db.engine import Base

# --- Catalogue (owned by course authoring, read here) ---


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    instructor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    total_lectures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    level: Mapped[str | None] = mapped_column(String(32), nullable=True)


class CourseEnrollmentRow(Base):
    """The course's enrolled-students relation."""

    __tablename__ = "course_enrollments"

    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)


class CourseRatingRow(Base):
    """One learner's 1-5 rating of a course."""

    __tablename__ = "course_ratings"

    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    __table_args__ = (
        CheckConstraint("value BETWEEN 1 AND 5", name="ck_course_ratings_value"),
    )


class LectureRow(Base):
    __tablename__ = "lectures"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)


# --- Entitlements ---


class CoursePurchaseRow(Base):
    __tablename__ = "course_purchases"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), nullable=False
    )
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payment_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)

    # The pair constraint is what actually prevents a double grant when
    # two verify calls race past the application-level existence check.
    __table_args__ = (
        UniqueConstraint(
            "user_id", "course_id", name="uq_course_purchases_user_course"
        ),
        UniqueConstraint("payment_id", name="uq_course_purchases_payment"),
    )


# --- Progress ---


class CourseProgressRow(Base):
    __tablename__ = "course_progress"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("courses.id"), primary_key=True
    )
    completed_lectures: Mapped[list[str]] = mapped_column(
        ARRAY(String(64)), nullable=False, default=list
    )
