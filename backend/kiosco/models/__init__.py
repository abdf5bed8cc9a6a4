from .auth import User, SessionToken
from .catalog import Product
from .sales import Sale, SaleItem, SalePayment
from .inventory import InventoryMovement
from .cash import Shift, CashTransaction
from .settings import Configuration

__all__ = [
    'User', 'SessionToken',
    'Product',
    'Sale', 'SaleItem', 'SalePayment',
    'InventoryMovement',
    'Shift', 'CashTransaction',
    'Configuration',
]
