from .seller import Seller
from .product import Product, ProductListing
from .order import Order, OrderItem
from .shipping import Shipment, ShipmentItem
from .refund import Refund, Transaction
from .payout import Payout
from .commission import Commission

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'Seller',
    'Product',
    'ProductListing',
    'Order',
    'OrderItem',
    'Shipment',
    'ShipmentItem',
    'Refund',
    'Transaction',
    'Payout',
    'Commission',
]
