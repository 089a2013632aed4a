"""create_provisioning_references_table

Revision ID: 9c6b1d4f8a27
Revises: 7a3f5b9d0e62
Create Date: 2025-11-24 18:38:07.914000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "9c6b1d4f8a27"
down_revision: Union[str, Sequence[str], None] = "7a3f5b9d0e62"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "provisioning_references",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "client_id",
            sa.Uuid(),
            sa.ForeignKey("clients.id", ondelete="CASCADE", onupdate="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider_type", sa.String(50), nullable=False),
        sa.Column("server_id", sa.String(255), nullable=False),
        sa.Column("server_name", sa.String(255), nullable=True),
        sa.Column("public_ip", sa.String(45), nullable=True),
        sa.Column("private_ip", sa.String(45), nullable=True),
        sa.Column("provider_metadata", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("provider_type", "server_id", name="uq_provider_server"),
    )
    op.create_index("ix_provisioning_references_client_id", "provisioning_references", ["client_id"])
    op.create_index("ix_provisioning_references_provider_type", "provisioning_references", ["provider_type"])
    op.create_index("ix_provisioning_references_server_id", "provisioning_references", ["server_id"])


def downgrade() -> None:
    op.drop_index("ix_provisioning_references_server_id", table_name="provisioning_references")
    op.drop_index("ix_provisioning_references_provider_type", table_name="provisioning_references")
    op.drop_index("ix_provisioning_references_client_id", table_name="provisioning_references")
    op.drop_table("provisioning_references")
