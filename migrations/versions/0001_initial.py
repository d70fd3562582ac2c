"""initial storefront tables

Revision ID: 0001
Revises: 
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(64), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('is_active_flag', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False, server_default=''),
        sa.Column('mobile', sa.String(15), nullable=False),
        sa.Column('otp_hash', sa.String(255), nullable=True),
        sa.Column('otp_expiry', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_customers_mobile', 'customers', ['mobile'], unique=True)

    op.create_table('categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
    )

    op.create_table('menu_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('image', sa.String(500), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
    )
    op.create_index('ix_menu_items_category', 'menu_items', ['category_id'])

    op.create_table('pickup_locations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
    )

    op.create_table('time_slot_config',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('start_time', sa.String(5), nullable=False, server_default='09:00'),
        sa.Column('end_time', sa.String(5), nullable=False, server_default='22:00'),
        sa.Column('slot_duration', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('max_orders_per_slot', sa.Integer(), nullable=False, server_default='5'),
    )

    op.create_table('slot_holds',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('pickup_date', sa.Date(), nullable=False),
        sa.Column('slot_time', sa.String(5), nullable=False),
        sa.Column('held', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('pickup_date', 'slot_time', name='uq_slot_hold_date_time'),
    )

    op.create_table('orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_number', sa.String(32), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_name', sa.String(120), nullable=False),
        sa.Column('customer_mobile', sa.String(15), nullable=False),
        sa.Column('pickup_location_id', sa.Integer(), sa.ForeignKey('pickup_locations.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('pickup_time', sa.DateTime(), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='PENDING'),
        sa.Column('payment_status', sa.String(16), nullable=False, server_default='PENDING'),
        sa.Column('gateway_order_id', sa.String(64), nullable=True, unique=True),
        sa.Column('gateway_payment_id', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_pickup_time', 'orders', ['pickup_time'])
    op.create_index('ix_orders_status_payment', 'orders', ['status', 'payment_status'])

    op.create_table('order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('menu_item_id', sa.Integer(), sa.ForeignKey('menu_items.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('cup_names', sa.JSON(), nullable=True),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

def downgrade():
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('slot_holds')
    op.drop_table('time_slot_config')
    op.drop_table('pickup_locations')
    op.drop_table('menu_items')
    op.drop_table('categories')
    op.drop_table('customers')
    op.drop_table('users')
