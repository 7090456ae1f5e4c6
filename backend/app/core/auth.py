from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.security import decode_access_token

security = HTTPBearer(auto_error=False)

SELLER_ROLE = "seller"
ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Principal:
    """Bearer subject. Accounts live in the auth service; only the token is trusted here."""

    id: str
    role: str


def _decode_bearer(credentials: Optional[HTTPAuthorizationCredentials]) -> dict:
    if not credentials or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


def get_current_seller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    payload = _decode_bearer(credentials)
    role = payload.get("role") or SELLER_ROLE
    if role != SELLER_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Seller account required",
        )
    return Principal(id=str(payload["sub"]), role=role)


def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    payload = _decode_bearer(credentials)
    if payload.get("role") != ADMIN_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin account required",
        )
    return Principal(id=str(payload["sub"]), role=ADMIN_ROLE)
