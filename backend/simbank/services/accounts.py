from __future__ import annotations

import logging
import secrets
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.orm import Session

from simbank.models.account import Account
from simbank.models.transaction import Transaction
from simbank.services.interest import (
    Accrual,
    calculate_interest_since_last_transaction,
    latest_transaction,
)
from simbank.utils.timezone import as_utc, utcnow

logger = logging.getLogger(__name__)

Q2 = Decimal("0.01")
TX_TYPES = ("deposit", "withdrawal")


class InsufficientFunds(Exception):
    pass


def d2(x: Decimal) -> Decimal:
    return x.quantize(Q2, rounding=ROUND_HALF_UP)


def _to_dec(v) -> Decimal:
    return Decimal(str(v))


def format_usd(amount, sign_always: bool = False) -> str:
    v = d2(_to_dec(amount))
    if v < 0:
        sign = "-"
    elif sign_always:
        sign = "+"
    else:
        sign = ""
    return f"{sign}${abs(v):,.2f}"


def format_rate(rate) -> str:
    v = _to_dec(rate).normalize()
    return f"{v:f}%"


def get_account(s: Session, account_id: str) -> Account | None:
    return s.execute(select(Account).where(Account.id == account_id)).scalar_one_or_none()


def list_accounts(s: Session, owner_id: int) -> list[Account]:
    return (
        s.execute(
            select(Account)
            .where(Account.owner_id == owner_id)
            .order_by(Account.account_number.asc())
        )
        .scalars()
        .all()
    )


def _generate_account_number(s: Session) -> str:
    while True:
        n = f"{secrets.randbelow(10**10):010d}"
        taken = s.execute(select(Account.id).where(Account.account_number == n)).scalar_one_or_none()
        if taken is None:
            return n


def _post(
    s: Session,
    account: Account,
    tx_type: str,
    amount,
    description: str | None,
    timestamp: datetime | None = None,
) -> Transaction:
    if tx_type not in TX_TYPES:
        raise ValueError(f"unknown transaction type: {tx_type}")
    amt = d2(_to_dec(amount))
    if amt < 0:
        raise ValueError("amount must not be negative")

    when = as_utc(timestamp) if timestamp is not None else utcnow()
    history = list(account.transactions)

    interest = Decimal("0")
    if history:
        last = latest_transaction(history)
        if when < as_utc(last.timestamp):
            raise ValueError("timestamp precedes the latest transaction")
        accrual = calculate_interest_since_last_transaction(account.interest_rate, history, now=when)
        interest = d2(accrual.interest_since_last_transaction)
        base = d2(accrual.new_balance)
    else:
        base = d2(_to_dec(account.balance))

    running = base + amt if tx_type == "deposit" else base - amt
    if running < 0:
        raise InsufficientFunds(f"withdrawal of {amt} exceeds balance {base}")

    tx = Transaction(
        account=account,
        type=tx_type,
        amount=amt,
        timestamp=when,
        running_balance=running,
        interest=interest if interest > 0 else None,
        description=description,
    )
    s.add(tx)
    account.balance = running
    s.add(account)
    return tx


def create_account(
    s: Session,
    owner_id: int,
    interest_rate,
    opening_deposit=0,
    account_number: str | None = None,
) -> Account:
    acct = Account(
        owner_id=owner_id,
        account_number=account_number or _generate_account_number(s),
        balance=Decimal("0.00"),
        interest_rate=_to_dec(interest_rate),
    )
    s.add(acct)
    s.flush()

    if _to_dec(opening_deposit) > 0:
        _post(s, acct, "deposit", opening_deposit, "Opening deposit")

    s.commit()
    s.refresh(acct)
    logger.info("account %s opened for user %s", acct.id, owner_id)
    return acct


def create_transaction(
    s: Session,
    account: Account,
    tx_type: str,
    amount,
    description: str | None = None,
    timestamp: datetime | None = None,
) -> Transaction:
    tx = _post(s, account, tx_type, amount, description, timestamp)
    s.commit()
    s.refresh(tx)
    return tx


def update_interest_rate(s: Session, account: Account, interest_rate) -> Account:
    """Set a new rate and record the change in the ledger.

    Interest accrued at the old rate is posted on a zero-amount deposit, and
    that record is committed together with the new rate so the two cannot
    diverge.
    """
    old = _to_dec(account.interest_rate)
    new = _to_dec(interest_rate)

    _post(
        s,
        account,
        "deposit",
        0,
        f"Interest rate changed from {format_rate(old)} to {format_rate(new)}",
    )
    account.interest_rate = new
    s.add(account)
    s.commit()
    s.refresh(account)
    logger.info("account %s interest rate %s -> %s", account.id, old, new)
    return account


def accrual_for(account: Account, now: datetime | None = None) -> Accrual:
    return calculate_interest_since_last_transaction(account.interest_rate, account.transactions, now=now)


def build_overview(account: Account, now: datetime | None = None) -> dict:
    last = latest_transaction(account.transactions)
    last_out = None
    if last is not None:
        signed = -_to_dec(last.amount) if last.type == "withdrawal" else _to_dec(last.amount)
        last_out = {
            "id": last.id,
            "type": last.type,
            "amount": signed,
            "amount_display": format_usd(signed, sign_always=True),
            "timestamp": as_utc(last.timestamp),
            "description": last.description,
        }

    return {
        "account_id": account.id,
        "account_number": account.account_number,
        "balance": _to_dec(account.balance),
        "balance_display": format_usd(account.balance),
        "interest_rate": _to_dec(account.interest_rate),
        "interest_rate_display": format_rate(account.interest_rate),
        "last_transaction": last_out,
        "accrual": accrual_for(account, now=now),
    }
