"""
Authentication and Authorization Module

Provides authentication dependencies for FastAPI endpoints.

Authorization is decided by a single table mapping each role to the
capabilities it holds; handlers ask for a capability instead of comparing
role strings.

Two kinds of callers exist:
- People, authenticated with a JWT bearer token (see security.py)
- The external scheduler, authenticated with the shared CRON_SECRET
"""

import enum
import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from innoaccess.core.config import settings
from innoaccess.core.security import decode_token, secrets_match

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for authentication",
)

cron_security = HTTPBearer(
    auto_error=False,
    description="Shared secret for scheduled job triggers",
)


class Role(str, enum.Enum):
    """User roles in the system."""

    USER = "user"  # Learners and job candidates
    COMPANY = "company"  # Employers
    TRAINER = "trainer"  # Course instructors
    ADMIN = "admin"  # Platform administrators


class Capability(str, enum.Enum):
    """Actions guarded by authorization."""

    ENROLL_IN_COURSE = "enroll_in_course"
    VIEW_LIVE_SESSIONS = "view_live_sessions"
    SCHEDULE_LIVE_SESSION = "schedule_live_session"
    REVIEW_ORDERS = "review_orders"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.USER: frozenset(
        {
            Capability.ENROLL_IN_COURSE,
            Capability.VIEW_LIVE_SESSIONS,
        }
    ),
    Role.COMPANY: frozenset(),
    Role.TRAINER: frozenset(
        {
            Capability.VIEW_LIVE_SESSIONS,
            Capability.SCHEDULE_LIVE_SESSION,
        }
    ),
    Role.ADMIN: frozenset(
        {
            Capability.VIEW_LIVE_SESSIONS,
            Capability.SCHEDULE_LIVE_SESSION,
            Capability.REVIEW_ORDERS,
        }
    ),
}


def has_capability(role: Role, capability: Capability) -> bool:
    """Return True if the role grants the capability."""
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


@dataclass
class CurrentUser:
    """
    Represents an authenticated user.

    Populated from JWT claims after token validation.
    """

    id: UUID
    email: str
    role: Role
    name: str | None = None

    def can(self, capability: Capability) -> bool:
        return has_capability(self.role, capability)

    def __str__(self) -> str:
        return f"CurrentUser(id={self.id}, role={self.role.value})"


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _user_from_claims(payload: dict) -> CurrentUser:
    """
    Build a CurrentUser from token claims.

    Raises:
        HTTPException 401: If required claims are missing or malformed
    """
    try:
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise ValueError("Missing 'sub' claim in token")

        token_type = payload.get("type", "access")
        if token_type != "access":
            logger.warning(f"Invalid token type: {token_type}")
            raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

        return CurrentUser(
            id=UUID(user_id_str),
            email=payload.get("email", ""),
            role=Role(payload.get("role", "")),
            name=payload.get("name"),
        )
    except (ValueError, KeyError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    FastAPI dependency that validates the JWT token and returns the user.

    The user id is also stored on request.state for per-user rate limiting.

    Raises:
        HTTPException 401: If token is missing, invalid, or expired
    """
    payload = decode_token(credentials.credentials)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    user = _user_from_claims(payload)
    request.state.user_id = str(user.id)

    logger.debug(f"Authenticated user: {user.id}")
    return user


def require_capability(capability: Capability):
    """
    Build a dependency that requires the current user to hold a capability.

    Usage:
        @router.post("/admin/orders/{id}/approve")
        async def approve(
            admin: CurrentUser = Depends(require_capability(Capability.REVIEW_ORDERS)),
        ):
            ...

    Raises:
        HTTPException 403: If the user's role lacks the capability
    """

    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.can(capability):
            logger.warning(
                f"Access denied: user {user.id} with role '{user.role.value}' "
                f"lacks capability '{capability.value}'"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "FORBIDDEN",
                    "message": "You do not have permission to perform this action.",
                },
            )
        return user

    return dependency


async def verify_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(cron_security),
) -> None:
    """
    Dependency guarding scheduled job triggers.

    The external scheduler sends `Authorization: Bearer <CRON_SECRET>`.

    Raises:
        HTTPException 401: If the secret is missing or wrong
    """
    received = credentials.credentials if credentials else None

    if not secrets_match(received, settings.cron_secret):
        logger.warning("Unauthorized cron trigger attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "UNAUTHORIZED", "message": "Unauthorized"},
        )


__all__ = [
    "Capability",
    "CurrentUser",
    "ROLE_CAPABILITIES",
    "Role",
    "get_current_user",
    "has_capability",
    "require_capability",
    "verify_cron_secret",
]
