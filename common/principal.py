"""
The authenticated actor handed to every service function.

Views build it once from `request.user`; services never look at the request.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

from apps.accounts.models import AccountStatus, Role


@dataclass(frozen=True)
class Principal:
    user_id: uuid.UUID
    role: str
    status: str
    admin_role: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(
            user_id=user.pk,
            role=user.role,
            status=user.status,
            admin_role=user.admin_role or None,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_customer(self) -> bool:
        return self.role == Role.CUSTOMER

    @property
    def is_store_owner(self) -> bool:
        return self.role == Role.STORE_OWNER

    @property
    def is_delivery(self) -> bool:
        return self.role == Role.DELIVERY

    @property
    def is_suspended(self) -> bool:
        return self.status == AccountStatus.SUSPENDED


def principal_from(request) -> Principal:
    return Principal.from_user(request.user)
