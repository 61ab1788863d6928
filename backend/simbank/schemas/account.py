from pydantic import field_validator
from datetime import datetime

from simbank.schemas.common import CamelModel, finite
from simbank.schemas.transaction import TxOut

# accounts.interest_rate is Numeric(8, 4)
MAX_INTEREST_RATE = 1000.0

def check_rate(v: float | None) -> float | None:
    v = finite(v, "interest_rate")
    if v is None:
        return None
    if v < 0:
        raise ValueError("interest_rate must not be negative")
    if v > MAX_INTEREST_RATE:
        raise ValueError(f"interest_rate must not exceed {MAX_INTEREST_RATE:g}")
    return v

class AccountCreate(CamelModel):
    interest_rate: float = 0.0
    opening_deposit: float = 0.0

    @field_validator("interest_rate")
    @classmethod
    def rate_in_range(cls, v: float):
        return check_rate(v)

    @field_validator("opening_deposit")
    @classmethod
    def deposit_non_negative(cls, v: float):
        v = finite(v, "opening_deposit")
        if v < 0:
            raise ValueError("opening_deposit must not be negative")
        return v

class InterestRateUpdate(CamelModel):
    interest_rate: float | None = None

    @field_validator("interest_rate")
    @classmethod
    def rate_in_range(cls, v: float | None):
        return check_rate(v)

class AccountOut(CamelModel):
    id: str
    account_number: str
    balance: float
    interest_rate: float
    transactions: list[TxOut] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

class LastTransactionOut(CamelModel):
    id: str
    type: str
    amount: float
    amount_display: str
    timestamp: datetime
    description: str | None = None
