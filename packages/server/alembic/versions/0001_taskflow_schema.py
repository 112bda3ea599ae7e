"""TaskFlow schema: profiles, roles, tasks, notifications, with RLS.

Revision ID: 0001_taskflow_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_taskflow_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

RLS_TABLES = ["profiles", "user_roles", "tasks", "notifications"]

# (table, policy name, command, USING / WITH CHECK expression)
POLICIES = [
    ("profiles", "profiles_read", "SELECT", "auth.uid() IS NOT NULL"),
    ("profiles", "profiles_admin_write", "ALL", "public.has_role(auth.uid(), 'admin')"),
    ("user_roles", "user_roles_read_own", "SELECT", "user_id = auth.uid() OR public.has_role(auth.uid(), 'admin')"),
    ("user_roles", "user_roles_admin_write", "ALL", "public.has_role(auth.uid(), 'admin')"),
    ("tasks", "tasks_read", "SELECT", "assigned_to = auth.uid() OR public.has_role(auth.uid(), 'admin')"),
    ("tasks", "tasks_assignee_status", "UPDATE", "assigned_to = auth.uid()"),
    ("tasks", "tasks_admin_write", "ALL", "public.has_role(auth.uid(), 'admin')"),
    ("notifications", "notifications_own", "ALL", "user_id = auth.uid()"),
]


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # -----------------------------------------------------------------------
    # 1. Tables
    # -----------------------------------------------------------------------

    # profiles: one per identity, deleted with it
    op.create_table(
        "profiles",
        _uuid_pk(),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("auth.users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("username", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index("idx_profiles_user_id", "profiles", ["user_id"], unique=True)
    op.create_index("idx_profiles_username", "profiles", ["username"], unique=True)

    # user_roles: at most one row per identity
    op.create_table(
        "user_roles",
        _uuid_pk(),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("auth.users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.CheckConstraint("role IN ('admin', 'member')", name="ck_user_roles_role"),
    )
    op.create_index("idx_user_roles_user_id", "user_roles", ["user_id"], unique=True)

    op.create_table(
        "tasks",
        _uuid_pk(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "assigned_to",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("auth.users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "created_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("auth.users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("priority", sa.Text(), nullable=False, server_default="medium"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="todo"),
        _created_at(),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("priority IN ('low', 'medium', 'high')", name="ck_tasks_priority"),
        sa.CheckConstraint("status IN ('todo', 'in_progress', 'done')", name="ck_tasks_status"),
    )
    op.create_index("idx_tasks_assigned_to", "tasks", ["assigned_to"])
    op.create_index("idx_tasks_created_at", "tasks", [sa.text("created_at DESC")])

    op.create_table(
        "notifications",
        _uuid_pk(),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("auth.users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "task_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
    )
    op.create_index(
        "idx_notifications_user", "notifications", ["user_id", sa.text("created_at DESC")]
    )

    # -----------------------------------------------------------------------
    # 2. Role check used by the policies
    # -----------------------------------------------------------------------

    op.execute("""
        CREATE OR REPLACE FUNCTION public.has_role(_user_id uuid, _role text)
        RETURNS boolean
        LANGUAGE sql STABLE SECURITY DEFINER
        SET search_path = public
        AS $$
            SELECT EXISTS (
                SELECT 1 FROM public.user_roles
                WHERE user_id = _user_id AND role = _role
            )
        $$
    """)

    # -----------------------------------------------------------------------
    # 3. Row Level Security (the service-role key bypasses all of it)
    # -----------------------------------------------------------------------

    for table in RLS_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
    for table, name, command, expr in POLICIES:
        check = f" WITH CHECK ({expr})" if command in ("ALL", "UPDATE") else ""
        op.execute(
            f"CREATE POLICY {name} ON {table} FOR {command} TO authenticated "
            f"USING ({expr}){check}"
        )


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for table, name, _command, _expr in reversed(POLICIES):
        op.execute(f"DROP POLICY IF EXISTS {name} ON {table}")
    for table in reversed(RLS_TABLES):
        op.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")

    op.execute("DROP FUNCTION IF EXISTS public.has_role(uuid, text)")

    op.drop_table("notifications")
    op.drop_table("tasks")
    op.drop_table("user_roles")
    op.drop_table("profiles")
