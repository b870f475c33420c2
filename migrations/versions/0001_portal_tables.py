"""portal tables for the local SQL backend

Revision ID: 0001_portal_tables
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "0001_portal_tables"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    existing_tables = set(inspect(bind).get_table_names())

    if "auth_users" not in existing_tables:
        op.create_table(
            "auth_users",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("email", sa.String(length=320), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if "auth_sessions" not in existing_tables:
        op.create_table(
            "auth_sessions",
            sa.Column("access_token", sa.String(length=128), primary_key=True),
            sa.Column("refresh_token", sa.String(length=128), nullable=False),
            sa.Column("user_id", sa.String(length=36), sa.ForeignKey("auth_users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("expires_at", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("idx_auth_sessions_refresh_token", "auth_sessions", ["refresh_token"], unique=True)

    if "employees" not in existing_tables:
        op.create_table(
            "employees",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("user_id", sa.String(length=36), sa.ForeignKey("auth_users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("idx_employees_user_id", "employees", ["user_id"], unique=True)

    if "leave_requests" not in existing_tables:
        op.create_table(
            "leave_requests",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("employee_id", sa.String(length=36), sa.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("end_date", sa.Date(), nullable=False),
            sa.Column("type", sa.String(length=64), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("idx_leave_requests_employee_created", "leave_requests", ["employee_id", "created_at"])

    if "forum_posts" not in existing_tables:
        op.create_table(
            "forum_posts",
            sa.Column("id", sa.String(length=36), primary_key=True),
            sa.Column("employee_id", sa.String(length=36), sa.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("idx_forum_posts_created", "forum_posts", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_forum_posts_created", table_name="forum_posts")
    op.drop_table("forum_posts")
    op.drop_index("idx_leave_requests_employee_created", table_name="leave_requests")
    op.drop_table("leave_requests")
    op.drop_index("idx_employees_user_id", table_name="employees")
    op.drop_table("employees")
    op.drop_index("idx_auth_sessions_refresh_token", table_name="auth_sessions")
    op.drop_table("auth_sessions")
    op.drop_table("auth_users")
