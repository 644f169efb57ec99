"""create receipts, products and prices tables

Revision ID: 4c1d2e9a7b10
Revises:
Create Date: 2026-09-20 18:42:11.204317

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1d2e9a7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.Text(), nullable=False, unique=True),
    )
    op.create_table(
        'receipts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('merchant_name', sa.Text(), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('file_sha256', sa.String(64), nullable=False),
        sa.UniqueConstraint('file_sha256', name='receipts_file_sha256_key'),
    )
    op.create_table(
        'prices',
        sa.Column('receipt_id', sa.Integer(), sa.ForeignKey('receipts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('count', sa.Float(), nullable=False),
        sa.Column('unit_price', sa.Float(), nullable=False),
        sa.PrimaryKeyConstraint('receipt_id', 'product_id', name='prices_pkey'),
    )


def downgrade() -> None:
    op.drop_table('prices')
    op.drop_table('receipts')
    op.drop_table('products')
