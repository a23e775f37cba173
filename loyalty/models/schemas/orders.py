"""
Pydantic schemas for order listing.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from loyalty.models.db.enums import OrderStatus

class OrderRead(BaseModel):
    number: str
    status: OrderStatus
    accrual: Optional[float] = Field(None, description="Reward in major units; present only once PROCESSED")
    uploaded_at: datetime
