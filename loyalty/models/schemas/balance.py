"""
Pydantic schemas for balance queries and withdrawals.
Amounts on the wire are decimal major units; the ledger keeps minor units.
"""
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict

class BalanceRead(BaseModel):
    current: float = Field(description="Available balance")
    withdrawn: float = Field(description="Sum of all withdrawals")

class WithdrawalCreate(BaseModel):
    order: str = Field(description="Order number being paid with points (Luhn-valid)")
    sum: Decimal = Field(description="Amount to withdraw, major units")

    model_config = ConfigDict(json_schema_extra={
        "example": {"order": "2377225624", "sum": 751}
    })

class WithdrawalRead(BaseModel):
    order: str
    sum: float
    processed_at: datetime
