"""create_agent_environment_variables

Revision ID: e8a27c0b3d56
Revises: c6e15f8a2b45
Create Date: 2025-12-29 08:05:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "e8a27c0b3d56"
down_revision: Union[str, Sequence[str], None] = "c6e15f8a2b45"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "agent_environment_variables",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "agent_id",
            sa.Uuid(),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("variable", sa.String(50), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_agent_environment_variables_agent_id", "agent_environment_variables", ["agent_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_agent_environment_variables_agent_id", table_name="agent_environment_variables")
    op.drop_table("agent_environment_variables")
