from __future__ import annotations
"""SQLAlchemy model for loyalty program members."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .orders import Order
    from .withdrawals import Withdrawal
from sqlalchemy.sql import func
from loyalty.database import Base

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    login: Mapped[str] = mapped_column(String, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    # Bearer token handed out on register/login
    api_key: Mapped[str] = mapped_column(String, unique=True, index=True)

    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    orders: Mapped[list["Order"]] = relationship("Order", back_populates="user")
    withdrawals: Mapped[list["Withdrawal"]] = relationship("Withdrawal", back_populates="user")
