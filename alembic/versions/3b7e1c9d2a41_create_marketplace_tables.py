"""create marketplace tables

Revision ID: 3b7e1c9d2a41
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e1c9d2a41"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column(
            "price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")
        ),
        sa.Column("instructor_id", sa.String(length=64), nullable=False),
        sa.Column(
            "total_lectures", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column(
            "is_published",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
    )

    op.create_table(
        "course_enrollments",
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.id"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(length=64), primary_key=True),
    )

    op.create_table(
        "lectures",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("video_url", sa.Text(), nullable=True),
    )
    op.create_index("ix_lectures_course_id", "lectures", ["course_id"])

    op.create_table(
        "course_purchases",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("payment_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            "user_id", "course_id", name="uq_course_purchases_user_course"
        ),
        sa.UniqueConstraint("payment_id", name="uq_course_purchases_payment"),
    )
    op.create_index("ix_course_purchases_user_id", "course_purchases", ["user_id"])

    op.create_table(
        "course_progress",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.id"),
            primary_key=True,
        ),
        sa.Column(
            "completed_lectures",
            postgresql.ARRAY(sa.String(length=64)),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
    )


def downgrade() -> None:
    op.drop_table("course_progress")
    op.drop_index("ix_course_purchases_user_id", table_name="course_purchases")
    op.drop_table("course_purchases")
    op.drop_index("ix_lectures_course_id", table_name="lectures")
    op.drop_table("lectures")
    op.drop_table("course_enrollments")
    op.drop_table("courses")
