"""
Sign-up, sign-in, sign-out and session routes
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..auth.dependencies import get_current_user, get_token_data
from ..auth.jwt_handler import REFRESH, TokenData, create_access_token, create_refresh_token, revoke_token, verify_token
from ..auth.security import hash_password, verify_password
from ..core.exceptions import AuthenticationError
from ..core.logging import get_logger
from ..database import get_db
from ..models.user import User
from ..schemas.auth import RefreshRequest, SignInRequest, SignUpRequest, TokenResponse
from ..schemas.user import UserResponse

logger = get_logger(__name__)
router = APIRouter()


def _tokens_for(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        refresh_token=create_refresh_token(user.id),
        user_id=user.id,
    )


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def sign_up(data: SignUpRequest, db: Session = Depends(get_db)):
    """Create an account and start a session"""
    email = data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = User(
        email=email,
        hashed_password=hash_password(data.password),
        full_name=data.full_name,
        is_buyer=True,
        is_seller=False,
        is_onboarded=False,
        created_by=email,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} signed up")
    return _tokens_for(user)


@router.post("/signin", response_model=TokenResponse)
def sign_in(data: SignInRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email.lower()).first()
    if not user or not verify_password(data.password, user.hashed_password):
        raise AuthenticationError("Incorrect email or password")
    return _tokens_for(user)


@router.post("/refresh", response_model=TokenResponse)
def refresh(data: RefreshRequest, db: Session = Depends(get_db)):
    token_data = verify_token(data.refresh_token, expected_type=REFRESH)
    user = db.query(User).filter(User.id == token_data.user_id).first()
    if not user:
        raise AuthenticationError("User not found")
    revoke_token(token_data)
    return _tokens_for(user)


@router.post("/signout")
def sign_out(token_data: TokenData = Depends(get_token_data)):
    """Revoke the access token used for this request"""
    revoke_token(token_data)
    return {"message": "Signed out"}


@router.get("/session", response_model=UserResponse)
def get_session(current_user: User = Depends(get_current_user)):
    return current_user
