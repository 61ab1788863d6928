import logging
import os
from sqlalchemy import select
from simbank.core.config import settings
from simbank.core.logging import configure_logging
from simbank.db.session import SessionLocal
from simbank.models.account import Account
from simbank.models.user import User
from simbank.core.security import hash_password
from simbank.services.accounts import create_account

logger = logging.getLogger(__name__)

def main():
    configure_logging(settings.log_level)
    username = os.environ.get("SEED_ADMIN_USER", "admin")
    password = os.environ.get("SEED_ADMIN_PASS", "admin123")
    opening = os.environ.get("SEED_OPENING_DEPOSIT", "1000.00")
    rate = os.environ.get("SEED_INTEREST_RATE", "4.5")

    db = SessionLocal()
    try:
        user = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
        if user is None:
            user = User(username=username, password_hash=hash_password(password), role="admin")
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info("created user %s", username)

        has_account = db.execute(select(Account.id).where(Account.owner_id == user.id)).first()
        if has_account is None:
            acct = create_account(db, owner_id=user.id, interest_rate=rate, opening_deposit=opening)
            logger.info("opened demo account %s", acct.account_number)
    finally:
        db.close()

if __name__ == "__main__":
    main()
