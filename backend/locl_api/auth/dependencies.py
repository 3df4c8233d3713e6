"""
Auth dependencies for FastAPI routes
"""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..core.exceptions import AuthenticationError
from ..database import get_db
from ..models.user import User
from .jwt_handler import TokenData, verify_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_data(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> TokenData:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")
    return verify_token(credentials.credentials)


def get_current_user(
    token_data: TokenData = Depends(get_token_data),
    db: Session = Depends(get_db),
) -> User:
    user = db.query(User).filter(User.id == token_data.user_id).first()
    if not user:
        raise AuthenticationError("User not found")
    return user


def user_from_token(db: Session, token: str) -> User:
    """Resolve the user behind a raw token (WebSocket query parameters)"""
    token_data = verify_token(token)
    user = db.query(User).filter(User.id == token_data.user_id).first()
    if not user:
        raise AuthenticationError("User not found")
    return user
