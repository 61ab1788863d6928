from datetime import datetime

from simbank.schemas.common import CamelModel
from simbank.schemas.account import LastTransactionOut

class AccrualOut(CamelModel):
    interest_since_last_transaction: float
    new_balance: float
    last_transaction_date: datetime
    today: datetime

class OverviewOut(CamelModel):
    account_id: str
    account_number: str
    balance: float
    balance_display: str
    interest_rate: float
    interest_rate_display: str
    last_transaction: LastTransactionOut | None
    accrual: AccrualOut

class ProjectionPointOut(CamelModel):
    month: int
    label: str
    amount: float

class ProjectionOut(CamelModel):
    account_id: str
    balance: float
    interest_rate: float
    years: int
    points: list[ProjectionPointOut]
