# src/schemas/auth_schemas.py
from enum import Enum as PyEnum
from uuid import UUID
from utils.exceptions import ForbiddenException
from .base_schemas import BaseSchema


class UserRole(str, PyEnum):
    CUSTOMER = "customer"
    MECHANIC = "mechanic"
    ADMIN = "admin"


class Principal(BaseSchema):
    """Authenticated caller, passed explicitly into every core operation"""

    user_id: UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.MECHANIC)

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER

    def require(self, *roles: UserRole, action: str = "perform this operation") -> None:
        if self.role not in roles:
            raise ForbiddenException(f"Role '{self.role}' may not {action}")

    def require_owner_or_staff(self, owner_id: UUID, action: str = "access this resource") -> None:
        if self.is_staff or self.user_id == owner_id:
            return
        raise ForbiddenException(f"Not allowed to {action}")
