"""Initial schema - sellers, catalog, orders, shipping, refunds, payouts

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ORDER_ITEM_STATUS = sa.Enum(
    'pending_approval', 'approved', 'rejected', 'processing', 'shipped', 'in_transit',
    'out_for_delivery', 'delivered', 'exception', 'cancelled', 'refunded', 'returned',
    name='orderitemstatus',
)
SHIPMENT_STATUS = sa.Enum(
    'pending', 'created', 'pickup_scheduled', 'shipped', 'in_transit', 'out_for_delivery',
    'delivered', 'exception', 'returned', 'cancelled',
    name='shipmentstatus',
)
REFUND_REASON = sa.Enum(
    'seller_rejected', 'customer_requested', 'out_of_stock', 'quality_issue',
    'damaged_item', 'wrong_item', 'other',
    name='refundreason',
)
REFUND_STATUS = sa.Enum('pending', 'succeeded', 'failed', 'canceled', name='refundstatus')
TRANSACTION_TYPE = sa.Enum('payment', 'refund', name='transactiontype')
TRANSACTION_STATUS = sa.Enum('pending', 'completed', 'failed', name='transactionstatus')
PAYOUT_STATUS = sa.Enum('pending', 'in_transit', 'paid', 'failed', 'voided', name='payoutstatus')

PICKUP_ALL_OR_NOTHING = (
    "(pickup_request_number IS NULL AND pickup_date IS NULL "
    "AND pickup_ready_time IS NULL AND pickup_close_time IS NULL) OR "
    "(pickup_request_number IS NOT NULL AND pickup_date IS NOT NULL "
    "AND pickup_ready_time IS NOT NULL AND pickup_close_time IS NOT NULL)"
)


def _timestamps(updated=True):
    columns = [sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text('now()'), nullable=False)]
    if updated:
        columns.append(sa.Column('updated_at', sa.TIMESTAMP(), server_default=sa.text('now()'), nullable=False))
    return columns


def upgrade() -> None:
    op.create_table(
        'sellers',
        sa.Column('id', sa.Integer(), primary_key=True),
        *_timestamps(updated=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('company_name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('business_address', sa.JSON(), nullable=True),
        sa.Column('stripe_account_id', sa.String(), nullable=True, unique=True),
        sa.Column('payouts_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        'product_listings',
        sa.Column('id', sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('sellers.id'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.CheckConstraint('stock >= 0', name='ck_product_listings_stock_non_negative'),
    )
    op.create_index('ix_product_listings_seller_id', 'product_listings', ['seller_id'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('sellers.id'), nullable=False),
        sa.Column('listing_id', sa.Integer(), sa.ForeignKey('product_listings.id'), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('requires_retipping', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('retip_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('length', sa.Float(), nullable=True),
        sa.Column('width', sa.Float(), nullable=True),
        sa.Column('height', sa.Float(), nullable=True),
        sa.CheckConstraint('quantity >= 0', name='ck_products_quantity_non_negative'),
    )
    op.create_index('ix_products_seller_id', 'products', ['seller_id'])
    op.create_index('ix_products_listing_id', 'products', ['listing_id'])
    op.create_index('ix_products_category', 'products', ['category'])

    op.create_table(
        'commissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('commission_rate', sa.Numeric(5, 2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            'commission_rate >= 0 AND commission_rate <= 100', name='ck_commissions_rate_range'
        ),
    )
    op.create_index('ix_commissions_category', 'commissions', ['category'], unique=True)

    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), primary_key=True),
        *_timestamps(),
        sa.Column('order_date', sa.TIMESTAMP(), nullable=False),
        sa.Column('buyer_id', sa.String(), nullable=False),
        sa.Column('buyer_name', sa.String(), nullable=True),
        sa.Column('buyer_email', sa.String(), nullable=True),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False),
        sa.Column('retip_total', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('platform_fee', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('shipping_cost', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('payment_intent_id', sa.String(), nullable=True, unique=True),
        sa.Column('payment_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('requires_retipping', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('shipping_address', sa.JSON(), nullable=False),
        sa.Column('tracking_number', sa.String(), nullable=True),
        sa.Column('carrier_shipment_id', sa.String(), nullable=True),
    )
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.String(36), primary_key=True),
        *_timestamps(),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('retip_added', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('retip_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('platform_commission', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('order_status', ORDER_ITEM_STATUS, nullable=False, server_default='pending_approval'),
        sa.Column('pre_exception_status', ORDER_ITEM_STATUS, nullable=True),
        sa.Column('payment_status', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('seller_paid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint('quantity >= 1', name='ck_order_items_quantity_positive'),
        sa.UniqueConstraint('order_id', 'product_id', name='uq_order_items_order_product'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])
    op.create_index('ix_order_items_order_status', 'order_items', ['order_status'])

    op.create_table(
        'shipments',
        sa.Column('id', sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('sellers.id'), nullable=False),
        sa.Column('carrier', sa.String(), nullable=False),
        sa.Column('service_code', sa.String(), nullable=True),
        sa.Column('carrier_shipment_id', sa.String(), nullable=True),
        sa.Column('tracking_number', sa.String(), nullable=True),
        sa.Column('status', SHIPMENT_STATUS, nullable=False, server_default='pending'),
        sa.Column('pre_exception_status', SHIPMENT_STATUS, nullable=True),
        sa.Column('tracking_events', sa.JSON(), nullable=True),
        sa.Column('actual_delivery_date', sa.TIMESTAMP(), nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('dimensions', sa.JSON(), nullable=True),
        sa.Column('shipper_address', sa.JSON(), nullable=True),
        sa.Column('shipping_address', sa.JSON(), nullable=True),
        sa.Column('carrier_response', sa.JSON(), nullable=True),
        sa.Column('label_data', sa.Text(), nullable=True),
        sa.Column('label_format', sa.String(), nullable=True),
        sa.Column('pickup_request_number', sa.String(), nullable=True),
        sa.Column('pickup_date', sa.Date(), nullable=True),
        sa.Column('pickup_ready_time', sa.String(4), nullable=True),
        sa.Column('pickup_close_time', sa.String(4), nullable=True),
        sa.Column('return_reason', sa.String(), nullable=True),
        sa.Column('original_shipment_id', sa.Integer(), sa.ForeignKey('shipments.id'), nullable=True),
        sa.Column('return_shipment_id', sa.Integer(), nullable=True),
        sa.CheckConstraint(PICKUP_ALL_OR_NOTHING, name='ck_shipments_pickup_all_or_nothing'),
    )
    for column in ('id', 'order_id', 'seller_id', 'carrier', 'carrier_shipment_id', 'tracking_number', 'status'):
        op.create_index(f'ix_shipments_{column}', 'shipments', [column])

    op.create_table(
        'shipment_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shipment_id', sa.Integer(), sa.ForeignKey('shipments.id'), nullable=False),
        sa.Column('order_item_id', sa.String(36), sa.ForeignKey('order_items.id'), nullable=False),
        sa.Column('quantity_shipped', sa.Integer(), nullable=False),
    )
    op.create_index('ix_shipment_items_shipment_id', 'shipment_items', ['shipment_id'])
    op.create_index('ix_shipment_items_order_item_id', 'shipment_items', ['order_item_id'])

    op.create_table(
        'refunds',
        sa.Column('id', sa.String(36), primary_key=True),
        *_timestamps(),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('order_item_id', sa.String(36), sa.ForeignKey('order_items.id'), nullable=False),
        sa.Column('stripe_refund_id', sa.String(), nullable=False, unique=True),
        sa.Column('stripe_payment_intent_id', sa.String(), nullable=False),
        sa.Column('refund_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('item_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('item_quantity', sa.Integer(), nullable=False),
        sa.Column('retip_refund_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('reason', REFUND_REASON, nullable=False),
        sa.Column('status', REFUND_STATUS, nullable=False, server_default='pending'),
        sa.Column('initiated_by', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('processed_date', sa.TIMESTAMP(), nullable=True),
    )
    op.create_index('ix_refunds_order_id', 'refunds', ['order_id'])
    op.create_index('ix_refunds_order_item_id', 'refunds', ['order_item_id'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        *_timestamps(updated=False),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('payment_processor_id', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('type', TRANSACTION_TYPE, nullable=False),
        sa.Column('status', TRANSACTION_STATUS, nullable=False, server_default='pending'),
        sa.Column('payment_details', sa.JSON(), nullable=True),
    )
    op.create_index('ix_transactions_order_id', 'transactions', ['order_id'])
    op.create_index('ix_transactions_payment_processor_id', 'transactions', ['payment_processor_id'])

    op.create_table(
        'payouts',
        sa.Column('id', sa.String(36), primary_key=True),
        *_timestamps(),
        sa.Column('order_item_id', sa.String(36), sa.ForeignKey('order_items.id'), nullable=False),
        sa.Column('seller_id', sa.Integer(), sa.ForeignKey('sellers.id'), nullable=False),
        sa.Column('stripe_account_id', sa.String(), nullable=False),
        sa.Column('stripe_transfer_id', sa.String(), nullable=True, unique=True),
        sa.Column('gross_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('commission_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('fee_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('net_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', PAYOUT_STATUS, nullable=False, server_default='pending'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('initiated_by', sa.String(), nullable=True),
        sa.Column('processed_at', sa.TIMESTAMP(), nullable=True),
    )
    op.create_index('ix_payouts_seller_id', 'payouts', ['seller_id'])
    # At most one live payout per order item
    op.create_index(
        'uq_payouts_order_item_active',
        'payouts',
        ['order_item_id'],
        unique=True,
        postgresql_where=sa.text("status != 'voided'"),
    )


def downgrade() -> None:
    op.drop_index('uq_payouts_order_item_active', table_name='payouts')
    for table in (
        'payouts', 'transactions', 'refunds', 'shipment_items', 'shipments',
        'order_items', 'orders', 'commissions', 'products', 'product_listings', 'sellers',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in (
        PAYOUT_STATUS, TRANSACTION_STATUS, TRANSACTION_TYPE, REFUND_STATUS,
        REFUND_REASON, SHIPMENT_STATUS, ORDER_ITEM_STATUS,
    ):
        enum.drop(bind, checkfirst=True)
