"""create documents and token_usage tables

Revision ID: 3a1c9e07b2d4
Revises:
Create Date: 2026-03-02 10:14:22.418305

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3a1c9e07b2d4"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Documents start out single-tier: the structured payload is stored inline
    op.create_table(
        "documents",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("source_file_key", sa.String(length=500), nullable=True),
        sa.Column("artifact_key", sa.String(length=500), nullable=True),
        sa.Column(
            "artifact_status",
            sa.String(length=20),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("artifact_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("artifact_attempt", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("artifact_error", sa.Text(), nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("schema_metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
        ),
    )
    op.create_index("ix_documents_owner_id", "documents", ["owner_id"])

    op.create_table(
        "token_usage",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("operation_type", sa.String(length=100), nullable=False),
        sa.Column("tokens_used", sa.Integer(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_token_usage_id", "token_usage", ["id"])
    op.create_index("ix_token_usage_owner_id", "token_usage", ["owner_id"])


def downgrade() -> None:
    op.drop_index("ix_token_usage_owner_id", table_name="token_usage")
    op.drop_index("ix_token_usage_id", table_name="token_usage")
    op.drop_table("token_usage")
    op.drop_index("ix_documents_owner_id", table_name="documents")
    op.drop_table("documents")
