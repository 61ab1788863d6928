from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select
from simbank.api.deps import db
from simbank.schemas.auth import LoginIn, TokenOut
from simbank.models.user import User
from simbank.core.security import verify_password, create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=TokenOut)
def login(body: LoginIn, s: Session = Depends(db)):
    u = s.execute(select(User).where(User.username == body.username.strip())).scalar_one_or_none()
    if not u or not verify_password(body.password, u.password_hash):
        raise HTTPException(status_code=401, detail="bad_credentials")
    role = (u.role or "viewer").lower()
    token = create_access_token(sub=u.username, uid=u.id, role=role)
    return {"access_token": token, "user_id": u.id, "role": role}
