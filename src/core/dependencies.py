from datetime import datetime, timezone
from typing import List
from uuid import UUID
from core.config import settings
from fastapi import Depends, Header
from jose import JWTError, jwt
from schemas.auth_schemas import Principal, UserRole
from utils.exceptions import ForbiddenException, UnauthorizedException
from utils.logger import setup_logger

logger = setup_logger("ROLE CHECKER")


async def get_current_principal(
    authorization: str = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Dependency to resolve the caller from the bearer token

    Tokens are issued by the external auth service; this only verifies the
    signature and reads the ``sub`` and ``role`` claims.

    Args:
        authorization: Bearer token from Authorization header

    Returns:
        Principal carrying the caller's id and role

    Raises:
        UnauthorizedException: 401 if the token is missing or invalid
    """
    if not authorization:
        logger.warning("Authorization header missing")
        raise UnauthorizedException("Authorization header is missing")

    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            logger.warning(f"Invalid auth scheme: {scheme}")
            raise UnauthorizedException("Invalid authentication scheme")

        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )

        # Check token expiration
        exp = payload.get("exp")
        if exp is not None:
            current_time = datetime.now(timezone.utc)
            expiry_time = datetime.fromtimestamp(exp, timezone.utc)
            if current_time > expiry_time:
                logger.warning(f"Token expired at {expiry_time}")
                raise UnauthorizedException("Token has expired")

        user_id = payload.get("sub")
        role = payload.get("role")

        if not user_id or not role:
            logger.warning("Invalid token payload - missing sub or role")
            raise UnauthorizedException("Invalid token payload")

        principal = Principal(user_id=UUID(str(user_id)), role=UserRole(role))
        logger.debug(f"Authenticated principal: {user_id} ({role})")
        return principal

    except (JWTError, ValueError) as e:
        logger.error(f"JWT validation failed: {str(e)}")
        raise UnauthorizedException("Could not validate credentials")


class RoleChecker:
    def __init__(self, allowed_roles: List[UserRole]):
        self.allowed_roles = allowed_roles

    async def __call__(
        self, principal: Principal = Depends(get_current_principal)
    ) -> Principal:
        """
        Dependency to verify the caller has one of the allowed roles

        Raises:
            ForbiddenException: 403 if role check fails
        """
        if principal.role not in self.allowed_roles:
            logger.warning(
                f"Role check failed for {principal.user_id}. "
                f"Required: {[r.value for r in self.allowed_roles]}, "
                f"Has: {principal.role}"
            )
            raise ForbiddenException("Operation not permitted")
        return principal


require_admin = RoleChecker([UserRole.ADMIN])
require_staff = RoleChecker([UserRole.ADMIN, UserRole.MECHANIC])
