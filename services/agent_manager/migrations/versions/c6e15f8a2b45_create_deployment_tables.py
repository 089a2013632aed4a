"""create_deployment_tables

Revision ID: c6e15f8a2b45
Revises: a4d93b6f0e34
Create Date: 2025-12-29 08:03:20.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "c6e15f8a2b45"
down_revision: Union[str, Sequence[str], None] = "a4d93b6f0e34"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """CI/CD provider configuration per agent and the runs triggered through it."""

    # 1. deployment_configurations
    op.create_table(
        "deployment_configurations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "agent_id",
            sa.Uuid(),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider_type", sa.String(50), nullable=False),
        sa.Column("repository_id", sa.String(255), nullable=False),
        sa.Column("default_branch", sa.String(255), nullable=True),
        sa.Column("workflow_id", sa.String(255), nullable=True),
        sa.Column("provider_token", sa.Text(), nullable=False),
        sa.Column("provider_base_url", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("agent_id", name="uq_deployment_configurations_agent_id"),
    )
    op.create_index(
        "ix_deployment_configurations_provider_type", "deployment_configurations", ["provider_type"]
    )

    # 2. deployment_runs
    op.create_table(
        "deployment_runs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "configuration_id",
            sa.Uuid(),
            sa.ForeignKey("deployment_configurations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider_run_id", sa.String(255), nullable=False),
        sa.Column("run_name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("conclusion", sa.String(50), nullable=True),
        sa.Column("ref", sa.String(255), nullable=False),
        sa.Column("sha", sa.String(40), nullable=False),
        sa.Column("workflow_id", sa.String(255), nullable=True),
        sa.Column("workflow_name", sa.String(255), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("html_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("configuration_id", "provider_run_id", name="uq_deployment_run"),
    )
    op.create_index("ix_deployment_runs_configuration_id", "deployment_runs", ["configuration_id"])
    op.create_index("ix_deployment_runs_status", "deployment_runs", ["status"])


def downgrade() -> None:
    op.drop_index("ix_deployment_runs_status", table_name="deployment_runs")
    op.drop_index("ix_deployment_runs_configuration_id", table_name="deployment_runs")
    op.drop_table("deployment_runs")
    op.drop_index("ix_deployment_configurations_provider_type", table_name="deployment_configurations")
    op.drop_table("deployment_configurations")
