from pydantic import field_validator
from datetime import datetime
from typing import Literal

from simbank.schemas.common import CamelModel, finite

TxType = Literal["deposit", "withdrawal"]

class TxCreate(CamelModel):
    type: TxType
    amount: float
    description: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_must_be_finite_and_positive(cls, v: float):
        v = finite(v, "amount")
        if v <= 0:
            raise ValueError("amount must be positive")
        return v

    @field_validator("description")
    @classmethod
    def description_trim(cls, v: str | None):
        if v is None:
            return None
        v = v.strip()
        return v or None

class TxOut(CamelModel):
    id: str
    account_id: str
    type: TxType
    amount: float
    timestamp: datetime
    running_balance: float
    interest: float | None = None
    description: str | None = None
