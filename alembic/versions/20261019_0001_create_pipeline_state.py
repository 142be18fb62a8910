"""Create pipeline_state key/value table."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op as alembic_op  # type: ignore[import-untyped]

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the pipeline_state table."""

    alembic_op.create_table(
        "pipeline_state",
        sa.Column("key", sa.String(length=255), primary_key=True),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    """Drop the pipeline_state table."""

    alembic_op.drop_table("pipeline_state")
