"""initial schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete schema:
- users: operators with hashed API tokens
- warehouses, products, product_prices, clients: catalog read model
- orders, order_lines: one order per (client, date), prices frozen per line
- day_status: production day closed flag and audit trail
- export_counters: per-date invoice/receipt/production file sequences
- company_config, billing_settings: singletons (LOT state, invoice sequence)
- local_invoices: one per order, permanent number/code
- product_groups, product_group_members: uniform-price product sets
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated=True):
    cols = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                              server_default=sa.text('CURRENT_TIMESTAMP')))
    return cols


def upgrade():
    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('display_name', sa.String(length=128), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('agent_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('token_hash', sa.String(length=64), nullable=True),
        sa.Column('token_issued_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_token_hash', 'users', ['token_hash'], unique=True)

    # ============================================================================
    # catalog
    # ============================================================================
    op.create_table(
        'warehouses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('production_code', sa.String(length=64), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False, server_default='BUC'),
        sa.Column('weight_kg', sa.Numeric(12, 3), nullable=False, server_default='0'),
        sa.Column('vat_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_warehouse_id', 'products', ['warehouse_id'])

    op.create_table(
        'product_prices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('zone', sa.String(length=32), nullable=False),
        sa.Column('price', sa.Numeric(12, 4), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'zone', name='uq_product_prices_product_zone'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_product_prices_product_id', 'product_prices', ['product_id'])

    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('cif', sa.String(length=32), nullable=True),
        sa.Column('registration_number', sa.String(length=64), nullable=True),
        sa.Column('accounting_code', sa.String(length=64), nullable=True),
        sa.Column('county', sa.String(length=64), nullable=True),
        sa.Column('locality', sa.String(length=128), nullable=True),
        sa.Column('street', sa.String(length=255), nullable=True),
        sa.Column('price_zone', sa.String(length=32), nullable=True),
        sa.Column('displays_weight', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('agent_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_clients_agent_id', 'clients', ['agent_id'])

    # ============================================================================
    # orders: one per (client, date); totals always recomputed from lines
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('agent_id', sa.Integer(), nullable=True),
        sa.Column('payment_type', sa.String(length=16), nullable=False, server_default='immediate'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('total', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('total_vat', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('total_with_vat', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('export_state', sa.String(length=24), nullable=False, server_default='OPEN'),
        sa.Column('validated', sa.Boolean(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('client_id', 'order_date', name='uq_orders_client_date'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_order_date', 'orders', ['order_date'])
    op.create_index('ix_orders_client_id', 'orders', ['client_id'])
    op.create_index('ix_orders_agent_id', 'orders', ['agent_id'])
    op.create_index('ix_orders_export_state', 'orders', ['export_state'])
    op.create_index('ix_orders_date_state', 'orders', ['order_date', 'export_state'])

    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 4), nullable=False),
        sa.Column('vat_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('line_value', sa.Numeric(14, 2), nullable=False),
        sa.Column('line_vat', sa.Numeric(14, 2), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_lines_order_id', 'order_lines', ['order_id'])
    op.create_index('ix_order_lines_product_id', 'order_lines', ['product_id'])

    # ============================================================================
    # day_status / export_counters: keyed by calendar date
    # ============================================================================
    op.create_table(
        'day_status',
        sa.Column('status_date', sa.Date(), nullable=False),
        sa.Column('production_exported', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('exported_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('exported_by', sa.String(length=128), nullable=True),
        sa.Column('lot_number', sa.Integer(), nullable=True),
        sa.Column('unlocked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('unlocked_by', sa.String(length=128), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('status_date')
    )

    op.create_table(
        'export_counters',
        sa.Column('export_date', sa.Date(), nullable=False),
        sa.Column('invoice_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('receipt_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('production_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('export_date')
    )

    # ============================================================================
    # singletons
    # ============================================================================
    op.create_table(
        'company_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('cif', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('registration_number', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('county', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('locality', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('street', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('phone', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('email', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('bank', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('iban', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('receipt_series', sa.String(length=16), nullable=False, server_default='CN'),
        sa.Column('lot_number_current', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('lot_date', sa.Date(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'billing_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_series', sa.String(length=16), nullable=False, server_default='FAC'),
        sa.Column('invoice_next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('invoice_number_padding', sa.Integer(), nullable=False, server_default='6'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_by', sa.String(length=128), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    # ============================================================================
    # local_invoices: at most one per order, codes never reused
    # ============================================================================
    op.create_table(
        'local_invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.Integer(), nullable=False),
        sa.Column('invoice_code', sa.String(length=64), nullable=False),
        sa.Column('document_date', sa.Date(), nullable=False),
        sa.Column('total', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('total_vat', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('total_with_vat', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ISSUED'),
        sa.Column('snapshot_json', sa.Text(), nullable=True),
        sa.Column('pdf_path', sa.String(length=512), nullable=True),
        *_timestamps(),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', name='uq_local_invoices_order'),
        sa.UniqueConstraint('invoice_code', name='uq_local_invoices_code'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # product groups
    # ============================================================================
    op.create_table(
        'product_groups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('master_product_id', sa.Integer(), nullable=False),
        sa.Column('master_product_code', sa.String(length=64), nullable=False),
        sa.Column('price', sa.Numeric(12, 4), nullable=False),
        sa.Column('vat_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('price_zone', sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['master_product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'product_group_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('group_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['group_id'], ['product_groups.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', name='uq_product_group_members_product'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_product_group_members_group_id', 'product_group_members', ['group_id'])


def downgrade():
    op.drop_index('ix_product_group_members_group_id', table_name='product_group_members')
    op.drop_table('product_group_members')
    op.drop_table('product_groups')
    op.drop_table('local_invoices')
    op.drop_table('billing_settings')
    op.drop_table('company_config')
    op.drop_table('export_counters')
    op.drop_table('day_status')
    op.drop_index('ix_order_lines_product_id', table_name='order_lines')
    op.drop_index('ix_order_lines_order_id', table_name='order_lines')
    op.drop_table('order_lines')
    op.drop_index('ix_orders_date_state', table_name='orders')
    op.drop_index('ix_orders_export_state', table_name='orders')
    op.drop_index('ix_orders_agent_id', table_name='orders')
    op.drop_index('ix_orders_client_id', table_name='orders')
    op.drop_index('ix_orders_order_date', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_clients_agent_id', table_name='clients')
    op.drop_table('clients')
    op.drop_index('ix_product_prices_product_id', table_name='product_prices')
    op.drop_table('product_prices')
    op.drop_index('ix_products_warehouse_id', table_name='products')
    op.drop_table('products')
    op.drop_table('warehouses')
    op.drop_index('ix_users_token_hash', table_name='users')
    op.drop_table('users')
