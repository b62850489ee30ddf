"""Create user, certificate, host and log tables."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "5c1e7a9d2b34"
down_revision = None
branch_labels = None
depends_on = None


def _big_int():
    return sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", _big_int(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("nickname", sa.String(length=100), nullable=True),
        sa.Column("is_disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("email", name="uq_user_email"),
    )

    op.create_table(
        "certificate",
        sa.Column("id", _big_int(), primary_key=True, autoincrement=True),
        sa.Column("created_on", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("modified_on", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "user_id",
            _big_int(),
            sa.ForeignKey("user.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("domain_names", _json(), nullable=False),
        sa.Column("certificate_authority_id", _big_int(), nullable=True),
        sa.Column("dns_provider_id", _big_int(), nullable=True),
        sa.Column("is_ecc", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="ready"),
        sa.Column("error_message", sa.Text(), nullable=False, server_default=""),
        sa.Column("expires_on", sa.DateTime(), nullable=True),
        sa.Column("meta", _json(), nullable=False),
        sa.UniqueConstraint("name", name="uq_certificate_name"),
    )
    op.create_index("ix_certificate_user_id", "certificate", ["user_id"])
    op.create_index("ix_certificate_type", "certificate", ["type"])
    op.create_index("ix_certificate_status", "certificate", ["status"])
    op.create_index("ix_certificate_expires_on", "certificate", ["expires_on"])

    op.create_table(
        "host",
        sa.Column("id", _big_int(), primary_key=True, autoincrement=True),
        sa.Column("created_on", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("user_id", _big_int(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("domain_names", _json(), nullable=False),
        sa.Column(
            "certificate_id",
            _big_int(),
            sa.ForeignKey("certificate.id", ondelete="RESTRICT"),
            nullable=True,
        ),
    )
    op.create_index("ix_host_certificate_id", "host", ["certificate_id"])

    op.create_table(
        "log",
        sa.Column("id", _big_int(), primary_key=True, autoincrement=True),
        sa.Column("level", sa.String(length=50), nullable=False),
        sa.Column("event", sa.String(length=50), nullable=False),
        sa.Column("logger_name", sa.String(length=120), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("trace", sa.Text(), nullable=True),
        sa.Column("path", sa.String(length=255), nullable=True),
        sa.Column("request_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_log_event", "log", ["event"])

    op.create_table(
        "worker_log",
        sa.Column("id", _big_int(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("level", sa.String(length=20), nullable=False),
        sa.Column("event", sa.String(length=50), nullable=False),
        sa.Column("logger_name", sa.String(length=120), nullable=True),
        sa.Column("task_name", sa.String(length=255), nullable=True),
        sa.Column("task_uuid", sa.String(length=36), nullable=True),
        sa.Column("certificate_id", _big_int(), nullable=True),
        sa.Column("status", sa.String(length=40), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("trace", sa.Text(), nullable=True),
        sa.Column("meta_json", sa.JSON(), nullable=True),
        sa.Column("extra_json", sa.JSON(), nullable=True),
    )
    op.create_index("ix_worker_log_event", "worker_log", ["event"])
    op.create_index("ix_worker_log_certificate_id", "worker_log", ["certificate_id"])


def downgrade() -> None:
    op.drop_index("ix_worker_log_certificate_id", table_name="worker_log")
    op.drop_index("ix_worker_log_event", table_name="worker_log")
    op.drop_table("worker_log")
    op.drop_index("ix_log_event", table_name="log")
    op.drop_table("log")
    op.drop_index("ix_host_certificate_id", table_name="host")
    op.drop_table("host")
    op.drop_index("ix_certificate_expires_on", table_name="certificate")
    op.drop_index("ix_certificate_status", table_name="certificate")
    op.drop_index("ix_certificate_type", table_name="certificate")
    op.drop_index("ix_certificate_user_id", table_name="certificate")
    op.drop_table("certificate")
    op.drop_table("user")
