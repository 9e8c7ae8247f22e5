"""create teacher applications and timetable entries

Revision ID: 20261001_0002
Revises: 20261001_0001
Create Date: 2026-10-01 00:10:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261001_0002"
down_revision = "20261001_0001"
branch_labels = None
depends_on = None


application_status_enum = sa.Enum("pending", "approved", "rejected", name="application_status")


def upgrade() -> None:
    op.create_table(
        "teacher_applications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("experience_years", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("subjects", sa.JSON(), nullable=False),
        sa.Column("status", application_status_enum, nullable=False, server_default="pending"),
        sa.Column("reviewed_by_id", sa.String(length=36), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_teacher_applications_user_id", "teacher_applications", ["user_id"], unique=True)
    op.create_index("ix_teacher_applications_status", "teacher_applications", ["status"])

    # No unique constraint on (day, time, grade, subject): slot rules are
    # enforced by the scheduler against its snapshot, not by the store.
    op.create_table(
        "timetable_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("day", sa.String(length=20), nullable=False),
        sa.Column("time", sa.String(length=5), nullable=False),
        sa.Column("grade", sa.String(length=50), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("curriculum", sa.String(length=100), nullable=False),
        sa.Column("created_by_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_timetable_entries_day", "timetable_entries", ["day"])
    op.create_index("ix_timetable_entries_grade", "timetable_entries", ["grade"])
    op.create_index("ix_timetable_entries_teacher_id", "timetable_entries", ["teacher_id"])
    op.create_index("ix_timetable_entries_curriculum", "timetable_entries", ["curriculum"])


def downgrade() -> None:
    op.drop_index("ix_timetable_entries_curriculum", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_teacher_id", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_grade", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_day", table_name="timetable_entries")
    op.drop_table("timetable_entries")
    op.drop_index("ix_teacher_applications_status", table_name="teacher_applications")
    op.drop_index("ix_teacher_applications_user_id", table_name="teacher_applications")
    op.drop_table("teacher_applications")
    application_status_enum.drop(op.get_bind(), checkfirst=True)
