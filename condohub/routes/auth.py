import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import LOGIN_RATE_LIMIT, LOGIN_RATE_WINDOW
from ..database import get_db
from ..models import User
from ..rate_limiter import create_rate_limiter
from ..schemas import (
    AcceptInvitationRequest,
    LoginRequest,
    TokenResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from ..security_utils import create_access_token, hash_password, verify_password
from ..services.invitation_service import InvitationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

rate_limit_login = create_rate_limiter(
    limit=LOGIN_RATE_LIMIT,
    window_seconds=LOGIN_RATE_WINDOW,
    key_prefix="login",
    use_ip=True,
)


def _token_response(user: User) -> TokenResponse:
    token = create_access_token({"sub": str(user.id), "email": user.email, "role": user.role})
    return TokenResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post("/register", response_model=TokenResponse)
async def register(data: UserCreate, db: Session = Depends(get_db)):
    """Create a manager account"""
    existing = db.query(User).filter(User.email == data.email).first()
    if existing:
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        name=data.name.strip(),
        email=data.email,
        password_hash=hash_password(data.password),
        role="admin",
        phone=data.phone,
        nif=data.nif,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"✅ Registered user {user.id} ({user.email})")
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_login),
):
    """Exchange email and password for a bearer token - rate limited per IP"""
    user = db.query(User).filter(User.email == data.email).first()
    if not user or not verify_password(data.password, user.password_hash):
        logger.warning(f"⚠️ Failed login for {data.email}")
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")

    logger.info(f"🔑 User {user.id} logged in")
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.post("/invitations/accept", response_model=TokenResponse)
async def accept_invitation(data: AcceptInvitationRequest, db: Session = Depends(get_db)):
    """Accept a condominium invitation, creating the account when needed"""
    user = InvitationService(db).accept(data.token, data.name, data.password)
    return _token_response(user)
