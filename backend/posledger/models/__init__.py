from .auth import User, SessionToken, USER_ROLES
from .catalog import Product, Price
from .transactions import Transaction, TransactionItem, Stock, TransactionSequence, TRANSACTION_TYPES

__all__ = [
    'User', 'SessionToken', 'USER_ROLES',
    'Product', 'Price',
    'Transaction', 'TransactionItem', 'Stock', 'TransactionSequence', 'TRANSACTION_TYPES',
]
