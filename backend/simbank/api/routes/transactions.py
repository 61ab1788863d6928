import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from simbank.api.deps import db, current_session
from simbank.api.routes.accounts import account_id_param, require_account
from simbank.schemas.transaction import TxCreate, TxOut
from simbank.services.accounts import InsufficientFunds, create_transaction
from simbank.services.audit import log_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/accounts/{account_id}/transactions", tags=["transactions"])


@router.get("", response_model=list[TxOut])
def list_transactions(
    account_id: str = Depends(account_id_param),
    sess=Depends(current_session),
    s: Session = Depends(db),
):
    acct = require_account(s, account_id, sess)
    return acct.transactions


@router.post("", response_model=TxOut, status_code=201)
def add_transaction(
    body: TxCreate,
    account_id: str = Depends(account_id_param),
    sess=Depends(current_session),
    s: Session = Depends(db),
):
    acct = require_account(s, account_id, sess)
    try:
        t = create_transaction(s, acct, body.type, body.amount, body.description)
    except InsufficientFunds:
        s.rollback()
        raise HTTPException(status_code=400, detail="insufficient_funds")
    except ValueError:
        s.rollback()
        logger.exception("could not post transaction to account %s", acct.id)
        raise HTTPException(status_code=500, detail="internal_server_error")

    log_event(
        s,
        username=sess["user"]["name"],
        action=f"transaction.{t.type}",
        entity_type="transaction",
        entity_id=t.id,
        details={
            "account_id": acct.id,
            "amount": str(t.amount),
            "running_balance": str(t.running_balance),
            "interest": str(t.interest) if t.interest is not None else None,
        },
    )
    return t
