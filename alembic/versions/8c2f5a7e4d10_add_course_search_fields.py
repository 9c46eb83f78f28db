"""add course search fields and ratings

Revision ID: 8c2f5a7e4d10
Revises: 3b7e1c9d2a41
Create Date: 2026-10-18 12:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8c2f5a7e4d10"
down_revision: str | Sequence[str] | None = "3b7e1c9d2a41"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column(
        "courses",
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
    )
    op.add_column(
        "courses", sa.Column("category", sa.String(length=100), nullable=True)
    )
    op.add_column("courses", sa.Column("level", sa.String(length=32), nullable=True))
    op.create_index("ix_courses_category", "courses", ["category"])

    op.create_table(
        "course_ratings",
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.id"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("value", sa.SmallInteger(), nullable=False),
        sa.CheckConstraint("value BETWEEN 1 AND 5", name="ck_course_ratings_value"),
    )


def downgrade() -> None:
    op.drop_table("course_ratings")
    op.drop_index("ix_courses_category", table_name="courses")
    op.drop_column("courses", "level")
    op.drop_column("courses", "category")
    op.drop_column("courses", "description")
