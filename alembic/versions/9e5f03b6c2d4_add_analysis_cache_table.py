"""add analysis_cache table

Revision ID: 9e5f03b6c2d4
Revises: 4c1d2e9a7b10
Create Date: 2026-09-27 11:05:48.913562

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9e5f03b6c2d4'
down_revision: Union[str, Sequence[str], None] = '4c1d2e9a7b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'analysis_cache',
        sa.Column('file_sha256', sa.String(64), primary_key=True),
        sa.Column('raw_text', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('analysis_cache')
