"""create_client_agent_credentials_table

Revision ID: 4d8e2a6c1b35
Revises: 1b4c7e9a2f10
Create Date: 2025-11-11 19:45:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "4d8e2a6c1b35"
down_revision: Union[str, Sequence[str], None] = "1b4c7e9a2f10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Passwords of agents created through the controller, one row per (client, agent)."""
    op.create_table(
        "client_agent_credentials",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "client_id",
            sa.Uuid(),
            sa.ForeignKey("clients.id", ondelete="CASCADE", onupdate="CASCADE"),
            nullable=False,
        ),
        sa.Column("agent_id", sa.Uuid(), nullable=False),
        sa.Column("password", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("client_id", "agent_id", name="uq_client_agent"),
    )
    op.create_index("ix_client_agent_credentials_client_id", "client_agent_credentials", ["client_id"])
    op.create_index("ix_client_agent_credentials_agent_id", "client_agent_credentials", ["agent_id"])


def downgrade() -> None:
    op.drop_index("ix_client_agent_credentials_agent_id", table_name="client_agent_credentials")
    op.drop_index("ix_client_agent_credentials_client_id", table_name="client_agent_credentials")
    op.drop_table("client_agent_credentials")
