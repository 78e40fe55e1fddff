"""create_order_intake_tables

Revision ID: a1c0d7e2f4b9
Revises:
Create Date: 2026-10-18 09:12:40.118204

Creates the tables the order-intake service reads and writes:
- shop_settings
- shop_sessions
- order_tracking
- abandoned_carts
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c0d7e2f4b9'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create order-intake tables."""
    op.create_table(
        'shop_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.String(), nullable=False),
        sa.Column('form_fields', sa.Text(), nullable=True),
        sa.Column('form_style', sa.Text(), nullable=True),
        sa.Column('pixel_settings', sa.Text(), nullable=True),
        sa.Column('visibility_mode', sa.String(), nullable=True),
        sa.Column('visible_products', sa.Text(), nullable=True),
        sa.Column('hidden_products', sa.Text(), nullable=True),
        sa.Column('enable_specific_products', sa.Boolean(), nullable=True),
        sa.Column('disable_specific_products', sa.Boolean(), nullable=True),
        sa.Column('enable_specific_countries', sa.Boolean(), nullable=True),
        sa.Column('allowed_countries', sa.Text(), nullable=True),
        sa.Column('disable_on_home', sa.Boolean(), nullable=True),
        sa.Column('disable_on_collections', sa.Boolean(), nullable=True),
        sa.Column('hide_add_to_cart', sa.Boolean(), nullable=True),
        sa.Column('hide_buy_now', sa.Boolean(), nullable=True),
        sa.Column('minimum_amount', sa.String(), nullable=True),
        sa.Column('maximum_amount', sa.String(), nullable=True),
        sa.Column('general_settings', sa.Text(), nullable=True),
        sa.Column('user_blocking', sa.Text(), nullable=True),
        sa.Column('redirect_url', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_shop_settings_id'), 'shop_settings', ['id'], unique=False)
    op.create_index(op.f('ix_shop_settings_shop_id'), 'shop_settings', ['shop_id'], unique=True)

    op.create_table(
        'shop_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop', sa.String(), nullable=False),
        sa.Column('access_token', sa.String(), nullable=False),
        sa.Column('scope', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_shop_sessions_id'), 'shop_sessions', ['id'], unique=False)
    op.create_index(op.f('ix_shop_sessions_shop'), 'shop_sessions', ['shop'], unique=True)

    op.create_table(
        'order_tracking',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.String(), nullable=False),
        sa.Column('draft_order_id', sa.String(), nullable=False),
        sa.Column('order_id', sa.String(), nullable=True),
        sa.Column('order_name', sa.String(), nullable=True),
        sa.Column('customer_ip', sa.String(), nullable=True),
        sa.Column('customer_email', sa.String(), nullable=True),
        sa.Column('customer_phone', sa.String(), nullable=True),
        sa.Column('customer_postal_code', sa.String(), nullable=True),
        sa.Column('total_quantity', sa.Integer(), nullable=True),
        sa.Column('order_total', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('currency', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_order_tracking_id'), 'order_tracking', ['id'], unique=False)
    op.create_index(op.f('ix_order_tracking_shop_id'), 'order_tracking', ['shop_id'], unique=False)
    op.create_index(op.f('ix_order_tracking_order_id'), 'order_tracking', ['order_id'], unique=False)
    op.create_index(op.f('ix_order_tracking_customer_ip'), 'order_tracking', ['customer_ip'], unique=False)
    op.create_index(op.f('ix_order_tracking_customer_email'), 'order_tracking', ['customer_email'], unique=False)
    op.create_index(op.f('ix_order_tracking_customer_phone'), 'order_tracking', ['customer_phone'], unique=False)
    op.create_index(op.f('ix_order_tracking_created_at'), 'order_tracking', ['created_at'], unique=False)
    op.create_index('ix_order_tracking_shop_created', 'order_tracking', ['shop_id', 'created_at'], unique=False)

    op.create_table(
        'abandoned_carts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.String(), nullable=False),
        sa.Column('session_id', sa.String(), nullable=False),
        sa.Column('customer_email', sa.String(), nullable=True),
        sa.Column('customer_phone', sa.String(), nullable=True),
        sa.Column('customer_name', sa.String(), nullable=True),
        sa.Column('cart_data', sa.Text(), nullable=True),
        sa.Column('form_data', sa.Text(), nullable=True),
        sa.Column('abandoned_at', sa.DateTime(), nullable=True),
        sa.Column('reminder_count', sa.Integer(), nullable=True),
        sa.Column('last_reminder_at', sa.DateTime(), nullable=True),
        sa.Column('is_recovered', sa.Boolean(), nullable=False),
        sa.Column('recovery_order_id', sa.String(), nullable=True),
        sa.Column('recovered_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_abandoned_carts_id'), 'abandoned_carts', ['id'], unique=False)
    op.create_index(op.f('ix_abandoned_carts_shop_id'), 'abandoned_carts', ['shop_id'], unique=False)
    op.create_index(op.f('ix_abandoned_carts_session_id'), 'abandoned_carts', ['session_id'], unique=True)


def downgrade() -> None:
    """Drop order-intake tables."""
    op.drop_table('abandoned_carts')
    op.drop_table('order_tracking')
    op.drop_table('shop_sessions')
    op.drop_table('shop_settings')
