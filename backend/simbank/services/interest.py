"""Interest accrual and compound-growth projection.

Both functions are pure: they read nothing but their arguments and the
optional ``now``/``start`` reference point, so callers can pin time in tests.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Protocol

from simbank.utils.timezone import as_utc, utcnow

DAYS_PER_YEAR = Decimal("365")
MONTHS_PER_YEAR = Decimal("12")
SECONDS_PER_DAY = 24 * 60 * 60

MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


class LedgerEntry(Protocol):
    timestamp: datetime
    running_balance: object


def _to_dec(v) -> Decimal:
    return Decimal(str(v))


@dataclass(frozen=True)
class Accrual:
    interest_since_last_transaction: Decimal
    new_balance: Decimal
    last_transaction_date: datetime
    today: datetime


@dataclass(frozen=True)
class ProjectionPoint:
    month: int
    label: str
    amount: Decimal


def latest_transaction(transactions: Iterable[LedgerEntry]) -> LedgerEntry | None:
    ordered = sorted(transactions, key=lambda t: as_utc(t.timestamp), reverse=True)
    return ordered[0] if ordered else None


def calculate_interest_since_last_transaction(
    interest_rate,
    transactions: Iterable[LedgerEntry],
    now: datetime | None = None,
) -> Accrual:
    """Simple daily interest on the latest running balance.

    The latest transaction is picked by timestamp, not by position. Whole
    days are counted between it and ``now``; a partial day earns nothing.
    """
    today = as_utc(now) if now is not None else utcnow()

    last = latest_transaction(transactions)
    if last is None:
        return Accrual(
            interest_since_last_transaction=Decimal("0"),
            new_balance=Decimal("0"),
            last_transaction_date=today,
            today=today,
        )

    last_date = as_utc(last.timestamp)
    days = int((today - last_date).total_seconds() // SECONDS_PER_DAY)

    running = _to_dec(last.running_balance)
    daily_rate = _to_dec(interest_rate) / Decimal("100") / DAYS_PER_YEAR
    interest = running * daily_rate * days

    return Accrual(
        interest_since_last_transaction=interest,
        new_balance=running + interest,
        last_transaction_date=last_date,
        today=today,
    )


def _add_months(d: date, months: int) -> date:
    idx = d.month - 1 + months
    return date(d.year + idx // 12, idx % 12 + 1, 1)


def project_balance(balance, interest_rate, years: int = 5, start: date | None = None) -> list[ProjectionPoint]:
    """Monthly-compounded projection over ``years``, month 0 included."""
    if years < 0:
        raise ValueError("years must not be negative")

    anchor = start or utcnow().date()
    principal = _to_dec(balance)
    growth = Decimal("1") + _to_dec(interest_rate) / Decimal("100") / MONTHS_PER_YEAR

    points: list[ProjectionPoint] = []
    for month in range(years * 12 + 1):
        d = _add_months(anchor, month)
        points.append(
            ProjectionPoint(
                month=month,
                label=f"{MONTH_ABBR[d.month - 1]} {d.year}",
                amount=principal * growth**month,
            )
        )
    return points
