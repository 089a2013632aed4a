"""add_agent_ws_port_to_clients

Revision ID: 7a3f5b9d0e62
Revises: 4d8e2a6c1b35
Create Date: 2025-11-11 19:55:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "7a3f5b9d0e62"
down_revision: Union[str, Sequence[str], None] = "4d8e2a6c1b35"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("clients") as batch_op:
        batch_op.add_column(sa.Column("agent_ws_port", sa.Integer(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("clients") as batch_op:
        batch_op.drop_column("agent_ws_port")
