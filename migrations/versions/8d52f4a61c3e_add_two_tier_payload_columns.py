"""add two-tier payload columns to documents

Revision ID: 8d52f4a61c3e
Revises: 3a1c9e07b2d4
Create Date: 2026-04-11 16:40:05.902117

Payloads move out of the row into blob storage. Existing inline payloads
are copied by scripts/migrate_inline_payloads.py after this revision runs;
until every row has a payload_key the ``payload`` column stays.

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8d52f4a61c3e"
down_revision: Union[str, None] = "3a1c9e07b2d4"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("documents") as batch_op:
        batch_op.add_column(sa.Column("payload_key", sa.String(length=500), nullable=True))
        batch_op.add_column(sa.Column("display_name", sa.String(length=255), nullable=True))
        batch_op.add_column(sa.Column("byte_size", sa.BigInteger(), nullable=True))
        batch_op.alter_column("payload", existing_type=sa.JSON(), nullable=True)
    op.create_index(
        "idx_documents_owner_primary", "documents", ["owner_id", "is_primary"]
    )


def downgrade() -> None:
    op.drop_index("idx_documents_owner_primary", table_name="documents")
    with op.batch_alter_table("documents") as batch_op:
        batch_op.alter_column("payload", existing_type=sa.JSON(), nullable=False)
        batch_op.drop_column("byte_size")
        batch_op.drop_column("display_name")
        batch_op.drop_column("payload_key")
