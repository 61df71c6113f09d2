from typing import Optional
from fastapi import Header, HTTPException, status
from glowstore.core.security import check_admin_secret, user_id_from_token


def require_admin(x_admin_secret: Optional[str] = Header(None)):
    if not check_admin_secret(x_admin_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin secret required")
    return True


def optional_user_id(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return user_id_from_token(authorization.split(" ", 1)[1].strip())
