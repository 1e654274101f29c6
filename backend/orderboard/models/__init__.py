from .clients import Client, ClientAddress
from .inventory import CatalogProduct, InventoryUnit
from .orders import Order, OrderLine, OrderPayment, DisplayNumberSequence

__all__ = [
    'Client', 'ClientAddress',
    'CatalogProduct', 'InventoryUnit',
    'Order', 'OrderLine', 'OrderPayment', 'DisplayNumberSequence',
]
