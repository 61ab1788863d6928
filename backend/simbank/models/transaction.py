from datetime import datetime
from uuid import uuid4

from sqlalchemy import String, DateTime, ForeignKey, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from simbank.db.base import Base

class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("type IN ('deposit', 'withdrawal')", name="ck_transactions_type"),
        CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    account_id: Mapped[str] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), index=True)
    type: Mapped[str] = mapped_column(String(16))
    amount: Mapped[float] = mapped_column(Numeric(14, 2))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    running_balance: Mapped[float] = mapped_column(Numeric(14, 2))
    interest: Mapped[float | None] = mapped_column(Numeric(14, 2), nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)

    account: Mapped["Account"] = relationship(back_populates="transactions")


from simbank.models.account import Account  # noqa: E402,F401
