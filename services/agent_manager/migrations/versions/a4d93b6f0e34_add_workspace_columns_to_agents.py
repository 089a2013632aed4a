"""add_workspace_columns_to_agents

Revision ID: a4d93b6f0e34
Revises: 8c2f6a1e4d23
Create Date: 2025-12-21 17:26:19.204000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a4d93b6f0e34"
down_revision: Union[str, Sequence[str], None] = "8c2f6a1e4d23"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """VNC and SSH sidecar references, repository URL and container type."""
    with op.batch_alter_table("agents") as batch_op:
        batch_op.add_column(sa.Column("vnc_container_id", sa.String(255), nullable=True))
        batch_op.add_column(sa.Column("vnc_host_port", sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column("vnc_network_id", sa.String(255), nullable=True))
        batch_op.add_column(sa.Column("vnc_password", sa.Text(), nullable=True))
        batch_op.add_column(sa.Column("git_repository_url", sa.String(255), nullable=True))
        batch_op.add_column(sa.Column("ssh_container_id", sa.String(255), nullable=True))
        batch_op.add_column(sa.Column("ssh_host_port", sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column("ssh_password", sa.Text(), nullable=True))
        batch_op.add_column(
            sa.Column("container_type", sa.String(50), nullable=False, server_default="generic")
        )


def downgrade() -> None:
    with op.batch_alter_table("agents") as batch_op:
        batch_op.drop_column("container_type")
        batch_op.drop_column("ssh_password")
        batch_op.drop_column("ssh_host_port")
        batch_op.drop_column("ssh_container_id")
        batch_op.drop_column("git_repository_url")
        batch_op.drop_column("vnc_password")
        batch_op.drop_column("vnc_network_id")
        batch_op.drop_column("vnc_host_port")
        batch_op.drop_column("vnc_container_id")
