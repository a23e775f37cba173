from __future__ import annotations
"""SQLAlchemy model for point withdrawals (spending against the balance)."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, BigInteger, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .users import User
from sqlalchemy.sql import func
from loyalty.database import Base

class Withdrawal(Base):
    __tablename__ = "withdrawals"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Memo only: the order being paid for need not exist in the orders table
    order_reference: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)

    processed_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)

    user: Mapped["User"] = relationship("User", back_populates="withdrawals")

    __table_args__ = (
        CheckConstraint("amount > 0", name="withdrawal_amount_positive"),
    )
