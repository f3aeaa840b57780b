from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hrms.core.tenant import HR_ADMINS, TenantContext
from hrms.database import get_db
from hrms.routers.deps import get_tenant_context, require_role
from hrms.schemas.company import EmployeeCreate, EmployeeResponse, EmployeeUpdate
from hrms.services import company_service

router = APIRouter(prefix="/employees", tags=["employees"])


@router.post("", response_model=EmployeeResponse, status_code=201)
def create_employee(
    data: EmployeeCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_role(HR_ADMINS))
):
    return company_service.create_employee(db, ctx, data.model_dump())


@router.get("", response_model=List[EmployeeResponse])
def list_employees(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context)
):
    return company_service.list_employees(db, ctx, status=status)


@router.get("/{employee_id}", response_model=EmployeeResponse)
def get_employee(employee_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant_context)):
    return company_service.get_employee(db, ctx, employee_id)


@router.patch("/{employee_id}", response_model=EmployeeResponse)
def update_employee(
    employee_id: int,
    data: EmployeeUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_role(HR_ADMINS))
):
    return company_service.update_employee(db, ctx, employee_id, data.model_dump(exclude_unset=True))
