"""Initial schema

Revision ID: a1c3e5f7b9d1
Revises:
Create Date: 2026-10-17

Creates the activity management tables:

1. users - identities with a revocation epoch for token invalidation
2. activities - capacity-limited activities; CHECK keeps 0 <= enrolled <= capacity
3. applications - one per (student, activity)
4. attendance - references both an application and its activity
5. notifications - per-recipient messages
6. audit_logs - append-only trail, no foreign keys on actor/target
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "a1c3e5f7b9d1"
down_revision = None
branch_labels = None
depends_on = None


user_role = postgresql.ENUM("student", "coordinator", "admin", name="user_role", create_type=False)
user_status = postgresql.ENUM("active", "inactive", name="user_status", create_type=False)
activity_category = postgresql.ENUM(
    "workshop",
    "seminar",
    "training",
    "extracurricular",
    name="activity_category",
    create_type=False,
)
activity_status = postgresql.ENUM(
    "upcoming", "ongoing", "completed", name="activity_status", create_type=False
)
application_status = postgresql.ENUM(
    "pending", "approved", "rejected", name="application_status", create_type=False
)
attendance_status = postgresql.ENUM(
    "present", "absent", "late", name="attendance_status", create_type=False
)
notification_type = postgresql.ENUM(
    "approval",
    "rejection",
    "announcement",
    "reminder",
    name="notification_type",
    create_type=False,
)

ALL_ENUMS = (
    user_role,
    user_status,
    activity_category,
    activity_status,
    application_status,
    attendance_status,
    notification_type,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("revocation_epoch", sa.Integer(), server_default="1", nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("student_number", sa.String(50), nullable=True),
        sa.Column("department", sa.String(200), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("status", user_status, nullable=False),
        *_timestamps(),
        sa.CheckConstraint("revocation_epoch >= 1", name="ck_users_revocation_epoch"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "activities",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", activity_category, nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("time", sa.String(20), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("enrolled", sa.Integer(), server_default="0", nullable=False),
        sa.Column("status", activity_status, nullable=False),
        sa.Column(
            "coordinator_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_activities_coordinator_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="ck_activities_capacity_positive"),
        sa.CheckConstraint("enrolled >= 0", name="ck_activities_enrolled_non_negative"),
        sa.CheckConstraint("enrolled <= capacity", name="ck_activities_enrolled_within_capacity"),
    )
    op.create_index("ix_activities_coordinator_id", "activities", ["coordinator_id"])
    op.create_index("ix_activities_status_date", "activities", ["status", "date"])

    op.create_table(
        "applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "student_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_applications_student_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "activity_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey(
                "activities.id", name="fk_applications_activity_id", ondelete="RESTRICT"
            ),
            nullable=False,
        ),
        sa.Column("status", application_status, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "applied_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("student_id", "activity_id", name="uq_applications_student_activity"),
    )
    op.create_index("ix_applications_student_id", "applications", ["student_id"])
    op.create_index("ix_applications_activity_id", "applications", ["activity_id"])
    op.create_index("ix_applications_status", "applications", ["status"])

    op.create_table(
        "attendance",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "activity_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("activities.id", name="fk_attendance_activity_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey(
                "applications.id", name="fk_attendance_application_id", ondelete="RESTRICT"
            ),
            nullable=False,
        ),
        sa.Column(
            "student_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_attendance_student_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", attendance_status, nullable=False),
        sa.Column(
            "marked_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("marked_by", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("application_id", name="uq_attendance_application_id"),
    )
    op.create_index("ix_attendance_activity_id", "attendance", ["activity_id"])
    op.create_index("ix_attendance_student_id", "attendance", ["student_id"])

    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "recipient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", name="fk_notifications_recipient_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("sender_role", sa.String(20), nullable=True),
        sa.Column("read", sa.Boolean(), server_default="false", nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_recipient_read", "notifications", ["recipient_id", "read"])

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("target_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("entity", sa.String(64), nullable=True),
        sa.Column("entity_id", sa.String(64), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_action_created_at", "audit_logs", ["action", "created_at"])
    op.create_index("ix_audit_logs_actor_created_at", "audit_logs", ["actor_id", "created_at"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("notifications")
    op.drop_table("attendance")
    op.drop_table("applications")
    op.drop_table("activities")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
