from .auth import User, SessionToken, ResetCode, LoginAttempt
from .customers import Customer, Feedback
from .catalog import Service
from .orders import Order, OrderSequence
from .cash_drawer import CashDrawerEvent
from .timekeeping import TimeEntry
from .settings import Setting

__all__ = [
    'User', 'SessionToken', 'ResetCode', 'LoginAttempt',
    'Customer', 'Feedback',
    'Service',
    'Order', 'OrderSequence',
    'CashDrawerEvent',
    'TimeEntry',
    'Setting',
]
