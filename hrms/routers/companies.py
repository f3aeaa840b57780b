from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from hrms.core.tenant import Role, TenantContext
from hrms.database import get_db
from hrms.routers.deps import get_tenant_context, require_platform_admin
from hrms.schemas.company import CompanyCreate, CompanyResponse
from hrms.services import company_service

router = APIRouter(prefix="/companies", tags=["companies"])


@router.post("", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED)
def create_company(
    data: CompanyCreate,
    db: Session = Depends(get_db),
    role: Role = Depends(require_platform_admin)
):
    """
    Onboard a company. With ``seed_defaults`` it also gets the default salary
    components, statutory settings, tax slabs, leave policy and leave types.
    """
    return company_service.create_company(db, data.name, data.currency, data.seed_defaults)


@router.get("", response_model=List[CompanyResponse])
def list_companies(db: Session = Depends(get_db), role: Role = Depends(require_platform_admin)):
    return company_service.list_companies(db)


@router.get("/current", response_model=CompanyResponse)
def get_current_company(db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant_context)):
    return company_service.get_company(db, ctx.company_id)
