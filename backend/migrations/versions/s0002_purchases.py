"""purchases

Revision ID: s0002_purchases
Revises: s0001_initial
Create Date: 2026-10-19 12:00:00.000000

Adds the purchases header table, numbered from the purchase_seq counter
that shops are already seeded with.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 's0002_purchases'
down_revision = 's0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'purchases',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('shop_id', sa.String(length=36), nullable=False),
        sa.Column('purchase_number', sa.String(length=64), nullable=False),
        sa.Column('vendor_id', sa.String(length=36), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='UNPAID'),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', 'purchase_number', name='uq_purchases_shop_number'),
    )
    op.create_index('ix_purchases_shop_id', 'purchases', ['shop_id'])
    op.create_index('ix_purchases_vendor_id', 'purchases', ['vendor_id'])
    op.create_index('ix_purchases_shop_deleted_date', 'purchases', ['shop_id', 'deleted_at', 'date'])


def downgrade():
    op.drop_table('purchases')
