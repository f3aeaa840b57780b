"""
Tenant context.

Every service function receives the caller's company explicitly instead of
looking it up from ambient request state, which keeps the payroll and leave
computations callable from tests and scripts without an HTTP request.
"""
import enum
from dataclasses import dataclass
from typing import Optional


class Role(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    HR_ADMIN = "hr_admin"
    FINANCE = "finance"
    MANAGER = "manager"
    EMPLOYEE = "employee"


PAYROLL_MANAGERS = [Role.SUPER_ADMIN, Role.ADMIN, Role.HR_ADMIN, Role.FINANCE]
HR_ADMINS = [Role.SUPER_ADMIN, Role.ADMIN, Role.HR_ADMIN]
LEAVE_APPROVERS = [Role.SUPER_ADMIN, Role.ADMIN, Role.HR_ADMIN, Role.MANAGER]


@dataclass(frozen=True)
class TenantContext:
    company_id: int
    user_id: Optional[int] = None
    role: Role = Role.EMPLOYEE

    @property
    def is_admin(self) -> bool:
        return self.role in HR_ADMINS
