from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from simbank.db.session import SessionLocal
from simbank.core.security import decode_token

# auto_error=False so a missing header is a 401 rather than FastAPI's 403
bearer = HTTPBearer(auto_error=False)

def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()

def current_session(creds: HTTPAuthorizationCredentials | None = Depends(bearer)):
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=401, detail="unauthorized")
    try:
        claims = decode_token(creds.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="invalid_token")

    uid = claims.get("uid")
    if uid is None:
        raise HTTPException(status_code=401, detail="unauthorized")
    return {
        "user": {"id": uid, "name": claims.get("sub"), "role": claims.get("role")},
        "id_token": creds.credentials,
    }

def require_admin(sess=Depends(current_session)):
    if sess["user"].get("role") != "admin":
        raise HTTPException(status_code=403, detail="admin_only")
    return sess
