import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from simbank.api.deps import db, current_session
from simbank.core.config import settings
from simbank.models.account import Account
from simbank.schemas.account import AccountCreate, AccountOut, InterestRateUpdate
from simbank.schemas.interest import AccrualOut, OverviewOut, ProjectionOut
from simbank.services.accounts import (
    InsufficientFunds,
    accrual_for,
    build_overview,
    create_account,
    get_account,
    list_accounts,
    update_interest_rate,
)
from simbank.services.audit import log_event
from simbank.services.interest import project_balance

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


def account_id_param(account_id: str) -> str:
    account_id = account_id.strip()
    if not account_id:
        raise HTTPException(status_code=400, detail="account_id_required")
    return account_id


def _owned(acct: Account | None, sess) -> bool:
    return acct is not None and acct.owner_id == sess["user"]["id"]


def require_account(s: Session, account_id: str, sess) -> Account:
    # other users' accounts are reported as missing
    acct = get_account(s, account_id)
    if not _owned(acct, sess):
        raise HTTPException(status_code=404, detail="account_not_found")
    return acct


@router.get("", response_model=list[AccountOut])
def list_my_accounts(s: Session = Depends(db), sess=Depends(current_session)):
    return list_accounts(s, sess["user"]["id"])


@router.post("", response_model=AccountOut, status_code=201)
def open_account(body: AccountCreate, s: Session = Depends(db), sess=Depends(current_session)):
    acct = create_account(
        s,
        owner_id=sess["user"]["id"],
        interest_rate=body.interest_rate,
        opening_deposit=body.opening_deposit,
    )
    log_event(
        s,
        username=sess["user"]["name"],
        action="account.create",
        entity_type="account",
        entity_id=acct.id,
        details={
            "account_number": acct.account_number,
            "interest_rate": str(acct.interest_rate),
            "opening_deposit": str(body.opening_deposit),
        },
    )
    return acct


@router.get("/{account_id}", response_model=AccountOut)
def read_account(
    account_id: str = Depends(account_id_param),
    sess=Depends(current_session),
    s: Session = Depends(db),
):
    return require_account(s, account_id, sess)


@router.get("/{account_id}/overview", response_model=OverviewOut)
def account_overview(
    account_id: str = Depends(account_id_param),
    sess=Depends(current_session),
    s: Session = Depends(db),
):
    data = build_overview(require_account(s, account_id, sess))
    data["accrual"] = AccrualOut.model_validate(data["accrual"])
    return OverviewOut(**data)


@router.get("/{account_id}/interest", response_model=AccrualOut)
def account_interest(
    account_id: str = Depends(account_id_param),
    sess=Depends(current_session),
    s: Session = Depends(db),
):
    return AccrualOut.model_validate(accrual_for(require_account(s, account_id, sess)))


@router.get("/{account_id}/projection", response_model=ProjectionOut)
def account_projection(
    account_id: str = Depends(account_id_param),
    years: int | None = Query(default=None, ge=0, le=50),
    sess=Depends(current_session),
    s: Session = Depends(db),
):
    acct = require_account(s, account_id, sess)
    horizon = settings.projection_years if years is None else years
    points = project_balance(acct.balance, acct.interest_rate, years=horizon)
    return ProjectionOut(
        account_id=acct.id,
        balance=float(acct.balance),
        interest_rate=float(acct.interest_rate),
        years=horizon,
        points=[{"month": p.month, "label": p.label, "amount": float(p.amount)} for p in points],
    )


@router.post("/{account_id}/interestRate", response_model=AccountOut)
def change_interest_rate(
    account_id: str = Depends(account_id_param),
    sess=Depends(current_session),
    body: InterestRateUpdate | None = None,
    s: Session = Depends(db),
):
    if body is None or body.interest_rate is None:
        raise HTTPException(status_code=400, detail="interest_rate_required")

    try:
        acct = get_account(s, account_id)
        if not _owned(acct, sess):
            raise HTTPException(status_code=404, detail="account_not_found")

        old_rate = str(acct.interest_rate)
        acct = update_interest_rate(s, acct, body.interest_rate)
        log_event(
            s,
            username=sess["user"]["name"],
            action="account.interest_rate",
            entity_type="account",
            entity_id=acct.id,
            details={"old_rate": old_rate, "new_rate": str(acct.interest_rate)},
        )
    except (SQLAlchemyError, InsufficientFunds, ValueError):
        s.rollback()
        logger.exception("error updating interest rate for account %s", account_id)
        raise HTTPException(status_code=500, detail="internal_server_error")

    return acct
