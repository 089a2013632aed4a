"""create_agent_messages_table

Revision ID: 5b7e0d4c9a12
Revises: 3f1a9c2d7b01
Create Date: 2025-11-08 19:31:42.752000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5b7e0d4c9a12"
down_revision: Union[str, Sequence[str], None] = "3f1a9c2d7b01"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "agent_messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "agent_id",
            sa.Uuid(),
            sa.ForeignKey("agents.id", ondelete="CASCADE", onupdate="CASCADE"),
            nullable=False,
        ),
        sa.Column("actor", sa.String(50), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_agent_messages_agent_id", "agent_messages", ["agent_id"])


def downgrade() -> None:
    op.drop_index("ix_agent_messages_agent_id", table_name="agent_messages")
    op.drop_table("agent_messages")
