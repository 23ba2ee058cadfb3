"""initial shop ledger schema

Revision ID: s0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete shopcore schema:
- shops, sequences, idempotency_keys: tenant root and its counters/tokens
- customers, vendors: parties with ledger-derived cached balances
- invoices + invoice_customer_snapshot, invoice_items, invoice_totals,
  invoice_photos: the five tables behind the invoice aggregate
- payments, payment_allocations: payments and their split across invoices

Money columns are *_paisa BIGINT (authoritative) with decimal-string
presentation columns alongside where the API exposes them.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 's0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # shops: tenant root
    # ============================================================================
    op.create_table(
        'shops',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('gstin', sa.String(length=32), nullable=True),
        sa.Column('state_code', sa.String(length=8), nullable=True),
        sa.Column('address_json', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )

    # ============================================================================
    # sequences: per-shop document counters, seeded at shop creation
    # ============================================================================
    op.create_table(
        'sequences',
        sa.Column('shop_id', sa.String(length=36), nullable=False),
        sa.Column('key', sa.String(length=32), nullable=False),
        sa.Column('value', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
        sa.PrimaryKeyConstraint('shop_id', 'key'),
    )

    # ============================================================================
    # idempotency_keys: request token -> created entity (write-once)
    # ============================================================================
    # WHY composite PK: a concurrent duplicate create fails on insert, which
    # rolls back its whole transaction.
    op.create_table(
        'idempotency_keys',
        sa.Column('shop_id', sa.String(length=36), nullable=False),
        sa.Column('request_id', sa.String(length=128), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
        sa.PrimaryKeyConstraint('shop_id', 'request_id'),
    )

    # ============================================================================
    # customers / vendors: parties
    # ============================================================================
    for table in ('customers', 'vendors'):
        op.create_table(
            table,
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('shop_id', sa.String(length=36), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('gstin', sa.String(length=32), nullable=True),
            sa.Column('phone', sa.String(length=32), nullable=True),
            sa.Column('email', sa.String(length=255), nullable=True),
            sa.Column('address_json', sa.JSON(), nullable=True),
            sa.Column('balance_paisa', sa.BigInteger(), nullable=False, server_default='0'),
            sa.Column('balance', sa.String(length=24), nullable=False, server_default='0.00'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(f'ix_{table}_shop_id', table, ['shop_id'])
        op.create_index(f'ix_{table}_shop_deleted', table, ['shop_id', 'deleted_at'])

    # ============================================================================
    # invoices: aggregate header
    # ============================================================================
    op.create_table(
        'invoices',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('shop_id', sa.String(length=36), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.String(length=36), nullable=True),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='UNPAID'),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('place_of_supply', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', 'invoice_number', name='uq_invoices_shop_number'),
    )
    op.create_index('ix_invoices_shop_id', 'invoices', ['shop_id'])
    op.create_index('ix_invoices_customer_id', 'invoices', ['customer_id'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])
    op.create_index('ix_invoices_shop_deleted_date', 'invoices', ['shop_id', 'deleted_at', 'date'])

    op.create_table(
        'invoice_customer_snapshot',
        sa.Column('invoice_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('gstin', sa.String(length=32), nullable=True),
        sa.Column('address_json', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.PrimaryKeyConstraint('invoice_id'),
    )

    op.create_table(
        'invoice_items',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('invoice_id', sa.String(length=36), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('hsn', sa.String(length=16), nullable=True),
        sa.Column('purity', sa.String(length=32), nullable=True),
        sa.Column('quantity', sa.String(length=32), nullable=False),
        sa.Column('rate_paisa', sa.BigInteger(), nullable=False),
        sa.Column('tax_rate', sa.String(length=16), nullable=True),
        sa.Column('line_total_paisa', sa.BigInteger(), nullable=False),
        sa.Column('tax_paisa', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('weight_json', sa.JSON(), nullable=True),
        sa.Column('amount_json', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])

    # WHY both columns: *_paisa is authoritative, the string is presentation
    money_columns = ('subtotal', 'tax_total', 'cgst', 'sgst', 'igst', 'round_off', 'grand_total')
    op.create_table(
        'invoice_totals',
        sa.Column('invoice_id', sa.String(length=36), nullable=False),
        *[
            sa.Column(f'{name}_paisa', sa.BigInteger(), nullable=False, server_default='0')
            for name in money_columns
        ],
        *[
            sa.Column(name, sa.String(length=24), nullable=False)
            for name in money_columns
        ],
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.PrimaryKeyConstraint('invoice_id'),
    )

    op.create_table(
        'invoice_photos',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('invoice_id', sa.String(length=36), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('checksum', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invoice_photos_invoice_id', 'invoice_photos', ['invoice_id'])

    # ============================================================================
    # payments / payment_allocations
    # ============================================================================
    op.create_table(
        'payments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('shop_id', sa.String(length=36), nullable=False),
        sa.Column('transaction_number', sa.String(length=64), nullable=False),
        sa.Column('type', sa.String(length=8), nullable=False),
        sa.Column('party_type', sa.String(length=16), nullable=False),
        sa.Column('party_id', sa.String(length=36), nullable=False),
        sa.Column('amount_paisa', sa.BigInteger(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('mode', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', 'transaction_number', name='uq_payments_shop_txn_number'),
    )
    op.create_index('ix_payments_shop_id', 'payments', ['shop_id'])
    op.create_index('ix_payments_shop_party', 'payments', ['shop_id', 'party_type', 'party_id'])

    op.create_table(
        'payment_allocations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('payment_id', sa.String(length=36), nullable=False),
        sa.Column('invoice_id', sa.String(length=36), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_paisa', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], ),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payment_allocations_payment_id', 'payment_allocations', ['payment_id'])
    op.create_index('ix_payment_allocations_invoice_id', 'payment_allocations', ['invoice_id'])


def downgrade():
    op.drop_table('payment_allocations')
    op.drop_table('payments')
    op.drop_table('invoice_photos')
    op.drop_table('invoice_totals')
    op.drop_table('invoice_items')
    op.drop_table('invoice_customer_snapshot')
    op.drop_table('invoices')
    op.drop_table('vendors')
    op.drop_table('customers')
    op.drop_table('idempotency_keys')
    op.drop_table('sequences')
    op.drop_table('shops')
