"""
JWT creation and verification
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from ..config import settings
from ..core.exceptions import AuthenticationError

ACCESS = "access"
REFRESH = "refresh"

# Token ids revoked by sign-out, mapped to their expiry
_revoked: Dict[str, datetime] = {}


class TokenData(BaseModel):
    user_id: str
    jti: str
    token_type: str
    expires_at: datetime


def _create_token(user_id: str, token_type: str, expires_delta: timedelta) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    payload = {
        "sub": user_id,
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def create_access_token(user_id: str) -> str:
    return _create_token(user_id, ACCESS, timedelta(minutes=settings.access_token_expire_minutes))


def create_refresh_token(user_id: str) -> str:
    return _create_token(user_id, REFRESH, timedelta(days=settings.refresh_token_expire_days))


def verify_token(token: str, expected_type: Optional[str] = ACCESS) -> TokenData:
    """Decode a token, rejecting bad signatures, expiry, wrong type and revoked ids"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        raise AuthenticationError("Could not validate credentials") from e

    user_id = payload.get("sub")
    jti = payload.get("jti")
    token_type = payload.get("type")
    if not user_id or not jti:
        raise AuthenticationError("Could not validate credentials")
    if expected_type and token_type != expected_type:
        raise AuthenticationError("Invalid token type")
    if is_revoked(jti):
        raise AuthenticationError("Token has been revoked")

    return TokenData(
        user_id=user_id,
        jti=jti,
        token_type=token_type,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


def revoke_token(token_data: TokenData) -> None:
    _purge_expired()
    _revoked[token_data.jti] = token_data.expires_at


def is_revoked(jti: str) -> bool:
    return jti in _revoked


def _purge_expired() -> None:
    now = datetime.now(timezone.utc)
    for jti in [j for j, exp in _revoked.items() if exp <= now]:
        del _revoked[jti]
