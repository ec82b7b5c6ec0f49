"""Create contact_submissions and contact_rate_limits tables.

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19 00:00:00
"""

# pylint: disable=invalid-name,missing-module-docstring

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("contact_submissions"):
        op.create_table(
            "contact_submissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("phone", sa.String(length=64), nullable=False),
            sa.Column("subject", sa.String(length=512), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("ip_address", sa.String(length=64), nullable=False),
            sa.Column("user_agent", sa.String(length=1024), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index(
            "ix_contact_submissions_id", "contact_submissions", ["id"]
        )
        op.create_index(
            "ix_contact_submissions_email", "contact_submissions", ["email"]
        )
        op.create_index(
            "ix_contact_submissions_created_at", "contact_submissions", ["created_at"]
        )

    if not inspector.has_table("contact_rate_limits"):
        op.create_table(
            "contact_rate_limits",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("identity", sa.String(length=64), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index(
            "idx_contact_rate_limit_identity_created",
            "contact_rate_limits",
            ["identity", "created_at"],
        )


def downgrade():
    op.drop_index(
        "idx_contact_rate_limit_identity_created", table_name="contact_rate_limits"
    )
    op.drop_table("contact_rate_limits")
    op.drop_index("ix_contact_submissions_created_at", table_name="contact_submissions")
    op.drop_index("ix_contact_submissions_email", table_name="contact_submissions")
    op.drop_index("ix_contact_submissions_id", table_name="contact_submissions")
    op.drop_table("contact_submissions")
