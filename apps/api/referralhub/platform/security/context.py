from __future__ import annotations

import uuid
from dataclasses import dataclass

from referralhub.core.rbac import has_role


SYSTEM_USER_ID = "system"


@dataclass(slots=True)
class CompanyContext:
    """Session-scoped caller context passed into every controller call."""

    user_id: str
    company_id: uuid.UUID | None
    role: str | None = None
    referrer_id: uuid.UUID | None = None
    correlation_id: str | None = None
    is_system: bool = False

    @property
    def is_admin(self) -> bool:
        return self.is_system or has_role(self.role, "admin")

    @property
    def is_referrer(self) -> bool:
        return self.referrer_id is not None and not self.is_admin

    @classmethod
    def system(cls, company_id: uuid.UUID | None = None, correlation_id: str | None = None) -> CompanyContext:
        return cls(
            user_id=SYSTEM_USER_ID,
            company_id=company_id,
            role="owner",
            correlation_id=correlation_id,
            is_system=True,
        )
