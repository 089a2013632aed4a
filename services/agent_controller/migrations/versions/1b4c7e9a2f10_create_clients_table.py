"""create_clients_table

Revision ID: 1b4c7e9a2f10
Revises: 
Create Date: 2025-11-10 20:58:39.843000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "1b4c7e9a2f10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("endpoint", sa.String(255), nullable=False),
        sa.Column("authentication_type", sa.String(20), nullable=False),
        sa.Column("api_key", sa.Text(), nullable=True),
        sa.Column("keycloak_client_id", sa.String(255), nullable=True),
        sa.Column("keycloak_client_secret", sa.Text(), nullable=True),
        sa.Column("keycloak_realm", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("name", name="uq_clients_name"),
    )
    op.create_index("ix_clients_name", "clients", ["name"])


def downgrade() -> None:
    op.drop_index("ix_clients_name", table_name="clients")
    op.drop_table("clients")
