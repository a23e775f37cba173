from .users import UserCredentials, TokenRead
from .orders import OrderRead
from .balance import BalanceRead, WithdrawalCreate, WithdrawalRead
from .accrual import AccrualOrderResponse

__all__ = [
    "UserCredentials",
    "TokenRead",
    "OrderRead",
    "BalanceRead",
    "WithdrawalCreate",
    "WithdrawalRead",
    "AccrualOrderResponse",
]
