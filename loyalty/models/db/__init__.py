from .users import User
from .orders import Order
from .withdrawals import Withdrawal
from .enums import OrderStatus, AccrualStatus

__all__ = [
    "User",
    "Order",
    "Withdrawal",
    "OrderStatus",
    "AccrualStatus",
]
