"""initial order board schema

Revision ID: ob001
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the order lifecycle schema:
- clients / client_addresses: customer reference and saved delivery addresses
- catalog_products: sellable products, is_internal marks in-house weighed goods
- orders: sale header with status, schedule, delivery info and display number
- inventory_units: individually weighed physical units
- order_lines / order_payments: line items and payment entries of an order
- display_number_sequences: counter behind orders.display_number
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'ob001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # clients
    # ============================================================================
    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_clients_name', 'clients', ['name'])

    op.create_table(
        'client_addresses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('street', sa.String(length=255), nullable=False),
        sa.Column('number', sa.String(length=32), nullable=False),
        sa.Column('complement', sa.String(length=255), nullable=True),
        sa.Column('neighborhood', sa.String(length=128), nullable=False),
        sa.Column('city', sa.String(length=128), nullable=True),
        sa.Column('state', sa.String(length=64), nullable=True),
        sa.Column('zip_code', sa.String(length=16), nullable=True),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_client_addresses_client_id', 'client_addresses', ['client_id'])

    # ============================================================================
    # catalog_products
    # ============================================================================
    op.create_table(
        'catalog_products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('base_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_internal', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('catalog_barcode', sa.Integer(), nullable=True),
        sa.Column('shelf_life_days', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('catalog_barcode'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_catalog_products_name', 'catalog_products', ['name'])

    # ============================================================================
    # orders: sale header
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('display_number', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='received'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('delivery_fee_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('change_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('is_delivery', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('delivery_address_id', sa.Integer(), nullable=True),
        sa.Column('delivery_street', sa.String(length=255), nullable=True),
        sa.Column('delivery_number', sa.String(length=32), nullable=True),
        sa.Column('delivery_complement', sa.String(length=255), nullable=True),
        sa.Column('delivery_neighborhood', sa.String(length=128), nullable=True),
        sa.Column('delivery_city', sa.String(length=128), nullable=True),
        sa.Column('delivery_state', sa.String(length=64), nullable=True),
        sa.Column('delivery_zip_code', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.ForeignKeyConstraint(['delivery_address_id'], ['client_addresses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('display_number', name='uq_orders_display_number'),
        sa.CheckConstraint('total_cents >= 0', name='ck_orders_total_non_negative'),
    )
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_scheduled_at', 'orders', ['scheduled_at'])
    op.create_index('ix_orders_client_id', 'orders', ['client_id'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])
    op.create_index('ix_orders_status_scheduled', 'orders', ['status', 'scheduled_at'])

    # ============================================================================
    # inventory_units: weighed physical units
    # ============================================================================
    op.create_table(
        'inventory_units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('catalog_product_id', sa.Integer(), nullable=False),
        sa.Column('scale_barcode', sa.Integer(), nullable=True),
        sa.Column('weight_grams', sa.Integer(), nullable=False),
        sa.Column('sale_price_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='available'),
        sa.Column('produced_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('order_id', sa.String(length=36), nullable=True),
        sa.ForeignKeyConstraint(['catalog_product_id'], ['catalog_products.id']),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_units_catalog_product_id', 'inventory_units', ['catalog_product_id'])
    op.create_index('ix_inventory_units_scale_barcode', 'inventory_units', ['scale_barcode'])
    op.create_index('ix_inventory_units_status', 'inventory_units', ['status'])
    op.create_index('ix_inventory_units_order_id', 'inventory_units', ['order_id'])
    op.create_index('ix_inventory_units_catalog_status', 'inventory_units', ['catalog_product_id', 'status'])

    # ============================================================================
    # order_lines / order_payments
    # ============================================================================
    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=36), nullable=False),
        sa.Column('catalog_product_id', sa.Integer(), nullable=False),
        sa.Column('inventory_unit_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['catalog_product_id'], ['catalog_products.id']),
        sa.ForeignKeyConstraint(['inventory_unit_id'], ['inventory_units.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('inventory_unit_id', name='uq_order_lines_inventory_unit'),
        sa.CheckConstraint('quantity > 0', name='ck_order_lines_quantity_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_lines_order_id', 'order_lines', ['order_id'])

    op.create_table(
        'order_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(length=36), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('pix_key_id', sa.String(length=64), nullable=True),
        sa.Column('machine_id', sa.String(length=64), nullable=True),
        sa.Column('card_flag', sa.String(length=32), nullable=True),
        sa.Column('installments', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_cents > 0', name='ck_order_payments_amount_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_payments_order_id', 'order_payments', ['order_id'])
    op.create_index('ix_order_payments_method', 'order_payments', ['method'])

    # ============================================================================
    # display_number_sequences
    # ============================================================================
    op.create_table(
        'display_number_sequences',
        sa.Column('name', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('name'),
    )


def downgrade():
    op.drop_table('display_number_sequences')
    op.drop_index('ix_order_payments_method', table_name='order_payments')
    op.drop_index('ix_order_payments_order_id', table_name='order_payments')
    op.drop_table('order_payments')
    op.drop_index('ix_order_lines_order_id', table_name='order_lines')
    op.drop_table('order_lines')
    op.drop_index('ix_inventory_units_catalog_status', table_name='inventory_units')
    op.drop_index('ix_inventory_units_order_id', table_name='inventory_units')
    op.drop_index('ix_inventory_units_status', table_name='inventory_units')
    op.drop_index('ix_inventory_units_scale_barcode', table_name='inventory_units')
    op.drop_index('ix_inventory_units_catalog_product_id', table_name='inventory_units')
    op.drop_table('inventory_units')
    op.drop_index('ix_orders_status_scheduled', table_name='orders')
    op.drop_index('ix_orders_created_at', table_name='orders')
    op.drop_index('ix_orders_client_id', table_name='orders')
    op.drop_index('ix_orders_scheduled_at', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_catalog_products_name', table_name='catalog_products')
    op.drop_table('catalog_products')
    op.drop_index('ix_client_addresses_client_id', table_name='client_addresses')
    op.drop_table('client_addresses')
    op.drop_index('ix_clients_name', table_name='clients')
    op.drop_table('clients')
