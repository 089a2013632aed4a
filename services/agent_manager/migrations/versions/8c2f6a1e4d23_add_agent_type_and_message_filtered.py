"""add_agent_type_and_message_filtered

Revision ID: 8c2f6a1e4d23
Revises: 5b7e0d4c9a12
Create Date: 2025-11-23 11:23:25.474000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8c2f6a1e4d23"
down_revision: Union[str, Sequence[str], None] = "5b7e0d4c9a12"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Existing agents default to the cursor provider; existing messages are unfiltered."""
    with op.batch_alter_table("agents") as batch_op:
        batch_op.add_column(sa.Column("agent_type", sa.String(50), nullable=False, server_default="cursor"))

    with op.batch_alter_table("agent_messages") as batch_op:
        batch_op.add_column(sa.Column("filtered", sa.Boolean(), nullable=False, server_default=sa.false()))


def downgrade() -> None:
    with op.batch_alter_table("agent_messages") as batch_op:
        batch_op.drop_column("filtered")

    with op.batch_alter_table("agents") as batch_op:
        batch_op.drop_column("agent_type")
