# backend/agenda/api/dependencies/auth.py
"""
Authentication and authorization dependencies.

Tokens are issued by the identity service; this module only verifies them.
The ``sub`` claim carries the user id and ``role`` one of client, provider
or admin.
"""

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Dict, Optional, cast

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
import jwt
from jwt import PyJWTError

from ...core.config import settings
from ...core.exceptions import ForbiddenException

logger = logging.getLogger(__name__)

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


class UserRole(str, Enum):
    CLIENT = "client"
    PROVIDER = "provider"
    ADMIN = "admin"


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def decode_access_token(token: str) -> Dict[str, Any]:
    payload_raw = jwt.decode(
        token,
        settings.secret_key.get_secret_value(),
        algorithms=[settings.algorithm],
        options={"verify_aud": False},
    )
    return cast(Dict[str, Any], payload_raw)


def create_access_token(user_id: str, role: str, extra: Optional[Dict[str, Any]] = None) -> str:
    """Mint a token with the same claims the identity service uses (tests, tooling)."""
    claims: Dict[str, Any] = {"sub": user_id, "role": role}
    if extra:
        claims.update(extra)
    return jwt.encode(claims, settings.secret_key.get_secret_value(), algorithm=settings.algorithm)


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme_optional)) -> CurrentUser:
    """
    Resolve the caller from the bearer token.

    Raises:
        HTTPException: 401 when the token is missing or invalid
    """
    not_authenticated = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    invalid_credentials = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise not_authenticated

    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.error(f"JWT validation error: {str(e)}")
        raise invalid_credentials

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        logger.warning("Token payload missing 'sub' field")
        raise invalid_credentials
    try:
        role = UserRole(payload.get("role", ""))
    except ValueError:
        logger.warning(f"Token for {user_id} carries unknown role {payload.get('role')!r}")
        raise invalid_credentials

    return CurrentUser(id=user_id, role=role)


def ensure_provider_access(user: CurrentUser, provider_id: str) -> None:
    """Provider data may be changed by its owner or an admin."""
    if user.is_admin:
        return
    if user.role == UserRole.PROVIDER and user.id == provider_id:
        return
    raise ForbiddenException("Only the provider or an admin can change this schedule")


def ensure_booking_client(user: CurrentUser, client_id: str) -> None:
    if user.is_admin:
        return
    if user.role == UserRole.CLIENT and user.id == client_id:
        return
    raise ForbiddenException("Appointments can only be booked by the client themselves")


def ensure_appointment_party(user: CurrentUser, provider_id: str, client_id: str) -> None:
    if user.is_admin or user.id in (provider_id, client_id):
        return
    raise ForbiddenException("You are not a party to this appointment")
