"""create users, role assignments, legacy principals and notifications"""
from alembic import op
import sqlalchemy as sa

revision = "0001_create_access_tables"
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member names
role_type = sa.Enum("BUSINESS_OWNER", "ACCOUNTANT", "SUBCONTRACTOR", "ADMIN", name="roletype")
access_level = sa.Enum("VIEWER", "CONTRIBUTOR", "EDITOR", "ADMIN", name="accesslevel")
role_status = sa.Enum("INVITED", "ACTIVE", "DEACTIVATED", name="rolestatus")
auth_provider = sa.Enum("PASSWORD", "GOOGLE", name="authprovider")
accountant_access_level = sa.Enum("READ", "EDIT", name="accountantaccesslevel")
accountant_access_status = sa.Enum("PENDING", "ACTIVE", "DEACTIVATED", name="accountantaccessstatus")
subcontractor_status = sa.Enum("INVITED", "ACTIVE", "INACTIVE", name="subcontractorstatus")
project_access_status = sa.Enum("INVITED", "ACTIVE", "COMPLETED", "TERMINATED", name="projectaccessstatus")
project_access_level = sa.Enum("VIEWER", "CONTRIBUTOR", name="projectaccesslevel")
notification_status = sa.Enum("PENDING", "SENT", "FAILED", "RETRYING", name="notificationstatus")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("is_password_set", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("password_setup_token", sa.String(1024), nullable=True),
        sa.Column("password_setup_token_expires_at", sa.DateTime(), nullable=True),
        sa.Column("refresh_token", sa.String(1024), nullable=True),
        sa.Column("google_id", sa.String(255), nullable=True, unique=True),
        sa.Column("auth_provider", auth_provider, nullable=False, server_default="PASSWORD"),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("business_name", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role_type", role_type, nullable=False),
        sa.Column("access_level", access_level, nullable=False, server_default="CONTRIBUTOR"),
        sa.Column("business_owner_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("status", role_status, nullable=False, server_default="INVITED"),
        sa.Column("invite_token", sa.String(1024), nullable=True),
        sa.Column("invite_token_expires_at", sa.DateTime(), nullable=True),
        sa.Column("invited_by_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("invited_at", sa.DateTime(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("project_access", sa.JSON(), nullable=True),
        sa.Column("profile", sa.JSON(), nullable=True),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("last_accessed_at", sa.DateTime(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_by_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "user_id", "role_type", "business_owner_id", name="uq_user_roles_user_type_owner"
        ),
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"])
    op.create_index("ix_user_roles_email", "user_roles", ["email"])
    op.create_index("ix_user_roles_business_owner_id", "user_roles", ["business_owner_id"])

    op.create_table(
        "accountants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_accountants_email", "accountants", ["email"], unique=True)

    op.create_table(
        "accountant_accesses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("accountant_id", sa.Uuid(), sa.ForeignKey("accountants.id"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("access_level", accountant_access_level, nullable=False, server_default="READ"),
        sa.Column("status", accountant_access_status, nullable=False, server_default="PENDING"),
        sa.Column("invite_token", sa.String(1024), nullable=True),
        sa.Column("invite_token_expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("accountant_id", "user_id", name="uq_accountant_accesses_accountant_user"),
    )

    op.create_table(
        "subcontractors",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("business_name", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("is_password_set", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", subcontractor_status, nullable=False, server_default="INVITED"),
        sa.Column("created_by_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_subcontractors_email", "subcontractors", ["email"])

    op.create_table(
        "subcontractor_project_accesses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("subcontractor_id", sa.Uuid(), sa.ForeignKey("subcontractors.id"), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", project_access_status, nullable=False, server_default="INVITED"),
        sa.Column("access_level", project_access_level, nullable=False, server_default="CONTRIBUTOR"),
        sa.Column("invite_key", sa.String(255), nullable=True),
        sa.Column("invite_key_expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("subcontractor_id", "project_id", name="uq_subcontractor_project"),
    )
    op.create_index(
        "ix_subcontractor_project_accesses_project_id",
        "subcontractor_project_accesses",
        ["project_id"],
    )

    op.create_table(
        "admins",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("otp_code", sa.String(6), nullable=True),
        sa.Column("otp_expires_at", sa.DateTime(), nullable=True),
        sa.Column("otp_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_admins_email", "admins", ["email"], unique=True)

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("trigger_event", sa.String(100), nullable=True),
        sa.Column("user_role_id", sa.Uuid(), nullable=True),
        sa.Column("recipient_email", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", notification_status, nullable=False, server_default="PENDING"),
        sa.Column("external_id", sa.String(100), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("next_retry_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("failed_at", sa.DateTime(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_index("ix_admins_email", table_name="admins")
    op.drop_table("admins")
    op.drop_index("ix_subcontractor_project_accesses_project_id", table_name="subcontractor_project_accesses")
    op.drop_table("subcontractor_project_accesses")
    op.drop_index("ix_subcontractors_email", table_name="subcontractors")
    op.drop_table("subcontractors")
    op.drop_table("accountant_accesses")
    op.drop_index("ix_accountants_email", table_name="accountants")
    op.drop_table("accountants")
    op.drop_index("ix_user_roles_business_owner_id", table_name="user_roles")
    op.drop_index("ix_user_roles_email", table_name="user_roles")
    op.drop_index("ix_user_roles_user_id", table_name="user_roles")
    op.drop_table("user_roles")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (
        notification_status,
        project_access_level,
        project_access_status,
        subcontractor_status,
        accountant_access_status,
        accountant_access_level,
        auth_provider,
        role_status,
        access_level,
        role_type,
    ):
        enum.drop(bind, checkfirst=True)
