from .tenancy import Business
from .auth import User, SessionToken
from .inventory import InventoryItem
from .ledger import DailyEntry, Sale, PaymentMethod
from .customers import Customer, BusinessCustomer, Debt, DebtItem, DebtPayment
from .notifications import Notification, PushToken

__all__ = [
    'Business',
    'User', 'SessionToken',
    'InventoryItem',
    'DailyEntry', 'Sale', 'PaymentMethod',
    'Customer', 'BusinessCustomer', 'Debt', 'DebtItem', 'DebtPayment',
    'Notification', 'PushToken',
]
