"""Authentication routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from canteen.core.errors import Conflict
from canteen.core.rate_limit import limiter, login_attempts
from canteen.core.rbac import CurrentUser
from canteen.core.security import create_access_token, get_password_hash, verify_password
from canteen.db.session import DbSession
from canteen.models.user import User
from canteen.schemas.auth import AuthResponse, LoginRequest, SignupRequest, UserResponse
from canteen.services.vendor_service import VendorService

logger = logging.getLogger("auth")

router = APIRouter()


def _user_response(db, user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        wallet_balance=str(user.wallet_balance),
        vendor_ids=VendorService(db).managed_vendor_ids(user.id),
    )


def _issue_token(user: User) -> str:
    return create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value}
    )


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def signup(request: Request, body: SignupRequest, db: DbSession):
    """Create an account and sign it in."""
    if not login_attempts.check_and_record(f"signup:{body.email}"):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many signup attempts. Please try again in 15 minutes.",
        )
    if db.scalar(select(User.id).where(User.email == body.email)) is not None:
        raise Conflict("User already exists with this email")

    user = User(
        name=body.name,
        email=body.email,
        password_hash=get_password_hash(body.password),
        role=body.role,
        phone=body.phone,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("User already exists with this email") from e
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    login_attempts.clear(f"signup:{body.email}")
    logger.info(f"New {user.role.value} account: {user.email} (ID: {user.id})")
    return AuthResponse(token=_issue_token(user), user=_user_response(db, user))


@router.post("/login", response_model=AuthResponse)
@limiter.limit("20/minute")
def login(request: Request, body: LoginRequest, db: DbSession):
    """Authenticate user and return JWT token."""
    client_ip = request.client.host if request.client else "unknown"
    if not login_attempts.check_and_record(body.email):
        logger.warning(f"Login throttled for email: {body.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again in 15 minutes.",
        )

    user = db.scalar(select(User).where(User.email == body.email))
    if not user or not verify_password(body.password, user.password_hash):
        logger.warning(f"Failed login attempt for email: {body.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
        )

    login_attempts.clear(body.email)
    logger.info(f"Successful login: {user.email} (ID: {user.id}, role: {user.role.value}) from IP: {client_ip}")
    return AuthResponse(token=_issue_token(user), user=_user_response(db, user))


@router.get("/me", response_model=UserResponse)
def me(db: DbSession, current_user: CurrentUser):
    user = db.get(User, current_user.user_id)
    return _user_response(db, user)
