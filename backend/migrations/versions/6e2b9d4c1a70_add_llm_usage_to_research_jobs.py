"""add llm usage to research jobs

Revision ID: 6e2b9d4c1a70
Revises: 0a1c2e3f4b5d
Create Date: 2026-10-19 09:41:07.215583

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '6e2b9d4c1a70'
down_revision: Union[str, Sequence[str], None] = '0a1c2e3f4b5d'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column(
        'research_jobs',
        sa.Column('llm_usage', sa.JSON(), nullable=True)
    )
    op.add_column(
        'research_jobs',
        sa.Column('total_cost_usd', sa.Numeric(14, 6), nullable=True)
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_column('research_jobs', 'total_cost_usd')
    op.drop_column('research_jobs', 'llm_usage')
