"""create auth users and module roles

Revision ID: 0001_auth_users_roles
Revises:
Create Date: 2026-10-01 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_auth_users_roles"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    for schema in ("auth", "daycare", "ref"):
        op.execute(
            f"IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = '{schema}') EXEC('CREATE SCHEMA {schema}')"
        )

    op.create_table(
        "users",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("Username", sa.String(length=120), nullable=False),
        sa.Column("PasswordHash", sa.String(length=255), nullable=False),
        sa.Column("FirstName", sa.String(length=120), nullable=True),
        sa.Column("LastName", sa.String(length=120), nullable=True),
        sa.Column("Email", sa.String(length=254), nullable=True),
        sa.Column("IsActive", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("FailedLoginCount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("LockedUntil", sa.DateTime(timezone=True), nullable=True),
        sa.Column("LastLoginAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "CreatedAt",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("SYSUTCDATETIME()"),
        ),
        schema="auth",
    )
    op.create_index("ix_auth_users_username", "users", ["Username"], unique=True, schema="auth")

    op.create_table(
        "user_module_roles",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("UserId", sa.Integer(), nullable=False),
        sa.Column("ModuleName", sa.String(length=80), nullable=False),
        sa.Column("Role", sa.String(length=20), nullable=False),
        sa.Column(
            "CreatedAt",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("SYSUTCDATETIME()"),
        ),
        sa.Column(
            "UpdatedAt",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("SYSUTCDATETIME()"),
        ),
        sa.ForeignKeyConstraint(["UserId"], ["auth.users.Id"], name="fk_auth_user_module_roles_user"),
        sa.UniqueConstraint("UserId", "ModuleName", name="uq_auth_user_module_roles_user_module"),
        schema="auth",
    )
    op.create_index("ix_auth_user_module_roles_user_id", "user_module_roles", ["UserId"], schema="auth")
    op.create_index("ix_auth_user_module_roles_module_name", "user_module_roles", ["ModuleName"], schema="auth")


def downgrade() -> None:
    op.drop_index("ix_auth_user_module_roles_module_name", table_name="user_module_roles", schema="auth")
    op.drop_index("ix_auth_user_module_roles_user_id", table_name="user_module_roles", schema="auth")
    op.drop_table("user_module_roles", schema="auth")
    op.drop_index("ix_auth_users_username", table_name="users", schema="auth")
    op.drop_table("users", schema="auth")
