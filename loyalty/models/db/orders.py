from __future__ import annotations
"""SQLAlchemy model for orders submitted for accrual evaluation."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, BigInteger, String, DateTime, ForeignKey, Enum, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .users import User
from sqlalchemy.sql import func
from loyalty.database import Base
from .enums import OrderStatus

class Order(Base):
    __tablename__ = "orders"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # Luhn-valid digit string chosen by the submitting user; globally unique
    number: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.NEW, nullable=False, index=True)
    # Minor units (cents); only set once status is PROCESSED
    accrual: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    registered_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    user: Mapped["User"] = relationship("User", back_populates="orders")

    __table_args__ = (
        CheckConstraint("accrual IS NULL OR accrual >= 0", name="order_accrual_non_negative"),
    )
