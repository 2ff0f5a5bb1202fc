"""initial stockdesk schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the six stockdesk tables:
- suppliers, customers, sellers: parties referenced by products and sales
- products: catalog with globally unique stock_code and non-negative quantity
- sales: sale headers with unique receipt_number
- sale_items: line items with product snapshots (name, stock code, buying price)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'suppliers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_suppliers'),
    )
    op.create_index('ix_suppliers_created_at', 'suppliers', ['created_at'])

    op.create_table(
        'customers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_customers'),
    )
    op.create_index('ix_customers_created_at', 'customers', ['created_at'])

    op.create_table(
        'sellers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_sellers'),
    )
    op.create_index('ix_sellers_created_at', 'sellers', ['created_at'])

    op.create_table(
        'products',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('stock_code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=False),
        sa.Column('buying_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('selling_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('supplier_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('quantity >= 0', name='ck_products_quantity_non_negative'),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], name='fk_products_supplier_id_suppliers'),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.UniqueConstraint('stock_code', name='uq_products_stock_code'),
    )
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_supplier_id', 'products', ['supplier_id'])
    op.create_index('ix_products_created_at', 'products', ['created_at'])

    op.create_table(
        'sales',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('receipt_number', sa.String(length=32), nullable=False),
        sa.Column('customer_id', sa.String(length=36), nullable=False),
        sa.Column('seller_id', sa.String(length=36), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('discount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('discount_type', sa.String(length=16), nullable=False),
        sa.Column('total', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_sales_customer_id_customers'),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id'], name='fk_sales_seller_id_sellers'),
        sa.PrimaryKeyConstraint('id', name='pk_sales'),
        sa.UniqueConstraint('receipt_number', name='uq_sales_receipt_number'),
    )
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])
    op.create_index('ix_sales_customer_created', 'sales', ['customer_id', 'created_at'])
    op.create_index('ix_sales_seller_created', 'sales', ['seller_id', 'created_at'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('sale_id', sa.String(length=36), nullable=False),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('line_no', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('stock_code', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('buying_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name='fk_sale_items_sale_id_sales'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_sale_items_product_id_products'),
        sa.PrimaryKeyConstraint('id', name='pk_sale_items'),
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_product_id', 'sale_items', ['product_id'])


def downgrade():
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('products')
    op.drop_table('sellers')
    op.drop_table('customers')
    op.drop_table('suppliers')
