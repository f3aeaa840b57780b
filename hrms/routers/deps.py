"""
Tenant and RBAC dependencies.

Authentication happens upstream; the gateway forwards the caller's company,
user id and role as headers. These dependencies turn them into a
``TenantContext`` and enforce role requirements per endpoint.
"""
import logging
from typing import Callable, List, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from hrms.core.exceptions import AccessDeniedError, TenantContextError
from hrms.core.tenant import Role, TenantContext
from hrms.database import get_db
from hrms.models.company import Company

logger = logging.getLogger(__name__)


def get_caller_role(x_user_role: Optional[str] = Header(None)) -> Role:
    if not x_user_role:
        return Role.EMPLOYEE
    try:
        return Role(x_user_role.strip().lower())
    except ValueError:
        raise TenantContextError(f"Unknown role '{x_user_role}'") from None


def get_tenant_context(
    x_company_id: Optional[int] = Header(None),
    x_user_id: Optional[int] = Header(None),
    role: Role = Depends(get_caller_role),
    db: Session = Depends(get_db)
) -> TenantContext:
    """
    Builds the tenant context from the X-Company-ID / X-User-ID / X-User-Role headers.
    The company must exist and be active.
    """
    if x_company_id is None:
        raise TenantContextError()
    company = db.query(Company).filter(Company.id == x_company_id).first()
    if company is None:
        logger.warning(f"Tenant context rejected: company {x_company_id} does not exist")
        raise TenantContextError(f"Unknown company {x_company_id}")
    if not company.is_active:
        raise AccessDeniedError("Company is inactive")
    return TenantContext(company_id=company.id, user_id=x_user_id, role=role)


def require_role(allowed_roles: List[Role]) -> Callable:
    """
    Dependency factory that checks the caller has one of the allowed roles.

    Usage:
        @router.post("/runs")
        def run(ctx: TenantContext = Depends(require_role(PAYROLL_MANAGERS))):
            ...
    """
    def role_checker(ctx: TenantContext = Depends(get_tenant_context)) -> TenantContext:
        if ctx.role not in allowed_roles:
            raise AccessDeniedError(f"Access denied. Required roles: {[r.value for r in allowed_roles]}")
        return ctx
    return role_checker


def require_platform_admin(role: Role = Depends(get_caller_role)) -> Role:
    """Company onboarding happens before any tenant exists; only platform admins may do it."""
    if role not in (Role.SUPER_ADMIN, Role.ADMIN):
        raise AccessDeniedError("Only platform administrators can manage companies")
    return role
