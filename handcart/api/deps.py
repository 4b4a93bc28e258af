from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError

from handcart.core.config import settings
from handcart.core.security import decode_token

bearer = HTTPBearer(auto_error=False)

def get_current_operator(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
) -> dict:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not settings.SECRET_KEY:
        raise HTTPException(status_code=500, detail="SECRET_KEY is not configured")
    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("type") != "access" or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload

def require_roles(*roles: str):
    def _guard(operator: dict = Depends(get_current_operator)) -> dict:
        if operator.get("role") not in roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return operator
    return _guard
