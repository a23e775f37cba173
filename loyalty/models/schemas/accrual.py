"""
Wire schema of the external accrual service (GET /api/orders/{number}).
"""
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from loyalty.models.db.enums import AccrualStatus

class AccrualOrderResponse(BaseModel):
    order: str
    status: AccrualStatus
    accrual: Optional[Decimal] = Field(None, ge=0, description="Reward in major units, only for PROCESSED")

    model_config = ConfigDict(extra="ignore")
