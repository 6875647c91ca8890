"""Role-Based Access Control (RBAC) utilities."""

from enum import Enum
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from canteen.core.security import decode_access_token
from canteen.db.session import DbSession


class UserRole(str, Enum):
    """User roles for RBAC."""

    CUSTOMER = "customer"
    STUDENT = "student"
    VENDOR = "vendor"
    ADMIN = "admin"


# Roles a visitor may pick for themselves at signup
SELF_SERVICE_ROLES = (UserRole.CUSTOMER, UserRole.STUDENT, UserRole.VENDOR)


class TokenData:
    """Authenticated caller resolved from a JWT.

    Attributes:
        user_id: The user's database ID.
        email: The user's email address.
        role: The user's role.
        id: Alias for user_id.
        name: Display name (defaults to the email prefix).
    """

    def __init__(self, user_id: int, email: str, role: UserRole, name: str = ""):
        self.user_id = user_id
        self.id = user_id
        self.email = email
        self.role = role
        self.name = name or email.split("@")[0]


def _extract_payload(request: Request) -> Optional[dict]:
    """Read the token from the Authorization header, then the access_token cookie."""
    payload = None

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            payload = decode_access_token(token)

    if payload is None:
        cookie_token = request.cookies.get("access_token")
        if cookie_token:
            payload = decode_access_token(cookie_token)

    return payload


def get_current_user(request: Request, db: DbSession) -> TokenData:
    """Get the current authenticated user from JWT token.

    The user must still exist and be active.
    """
    payload = _extract_payload(request)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    email = payload.get("email")
    role = payload.get("role")

    if user_id is None or email is None or role is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    try:
        user_role = UserRole(role)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid role in token",
        )

    from canteen.models.user import User

    user = db.get(User, int(user_id))
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )

    return TokenData(user_id=user.id, email=email, role=user_role, name=user.name or "")


def require_role(*roles: UserRole):
    """Dependency requiring the caller to hold one of ``roles``."""

    def role_checker(
        current_user: Annotated[TokenData, Depends(get_current_user)]
    ) -> TokenData:
        if current_user.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {allowed}",
            )
        return current_user

    return role_checker


# Common role dependencies
CurrentUser = Annotated[TokenData, Depends(get_current_user)]
RequireVendor = Annotated[TokenData, Depends(require_role(UserRole.VENDOR))]
RequireAdmin = Annotated[TokenData, Depends(require_role(UserRole.ADMIN))]
