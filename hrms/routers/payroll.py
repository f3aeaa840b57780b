"""
Payroll Router

Handles HTTP endpoints for payroll operations.
All business logic is delegated to the payroll service layer.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from hrms.core.config import settings
from hrms.core.exceptions import NotFoundError
from hrms.core.limiter import limiter
from hrms.core.tenant import PAYROLL_MANAGERS, TenantContext
from hrms.database import get_db
from hrms.routers.deps import require_role
from hrms.schemas.payroll import (
    MoveComponentRequest, PayrollRunCreate, PayrollRunReport, PayrollRunResponse,
    PayrollSettingsResponse, PayrollSettingsUpdate, PayslipResponse, SalaryComponentCreate,
    SalaryComponentResponse, SalaryComponentUpdate, SalaryProfileCreate, SalaryProfileResponse,
    TaxSlabCreate, TaxSlabResponse
)
from hrms.services import (
    company_service, component_service, payroll_config, payroll_service,
    payslip_documents, salary_profile_service
)

router = APIRouter(prefix="/payroll", tags=["payroll"])

payroll_manager = require_role(PAYROLL_MANAGERS)


# --- Salary components ---

@router.get("/components", response_model=List[SalaryComponentResponse])
def list_components(
    active_only: bool = False,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    return component_service.list_components(db, ctx, active_only=active_only)


@router.post("/components", response_model=SalaryComponentResponse, status_code=201)
def create_component(
    data: SalaryComponentCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    return component_service.create_component(db, ctx, data.model_dump())


@router.post("/components/initialize", response_model=List[SalaryComponentResponse])
def initialize_components(db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    """Insert the default component set; codes the company already has are skipped."""
    component_service.initialize_default_components(db, ctx)
    return component_service.list_components(db, ctx)


@router.patch("/components/{component_id}", response_model=SalaryComponentResponse)
def update_component(
    component_id: int,
    data: SalaryComponentUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    return component_service.update_component(db, ctx, component_id, data.model_dump(exclude_unset=True))


@router.post("/components/{component_id}/toggle", response_model=SalaryComponentResponse)
def toggle_component(component_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    component = component_service.get_component(db, ctx, component_id)
    return component_service.set_component_active(db, ctx, component_id, not component.active)


@router.post("/components/{component_id}/duplicate", response_model=SalaryComponentResponse, status_code=201)
def duplicate_component(component_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    return component_service.duplicate_component(db, ctx, component_id)


@router.post("/components/{component_id}/move", response_model=List[SalaryComponentResponse])
def move_component(
    component_id: int,
    data: MoveComponentRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    return component_service.move_component(db, ctx, component_id, data.direction)


@router.delete("/components/{component_id}", status_code=204)
def delete_component(component_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    component_service.delete_component(db, ctx, component_id)
    return Response(status_code=204)


# --- Settings and tax slabs ---

@router.get("/settings", response_model=PayrollSettingsResponse)
def get_settings(db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    return payroll_config.get_settings(db, ctx)


@router.put("/settings", response_model=PayrollSettingsResponse)
def save_settings(
    data: PayrollSettingsUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    return payroll_config.save_settings(db, ctx, data.model_dump(exclude_unset=True))


@router.get("/tax-slabs", response_model=List[TaxSlabResponse])
def list_tax_slabs(
    financial_year: Optional[str] = None,
    regime: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    return payroll_config.list_tax_slabs(db, ctx, financial_year, regime)


@router.post("/tax-slabs", response_model=TaxSlabResponse, status_code=201)
def create_tax_slab(data: TaxSlabCreate, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    return payroll_config.create_tax_slab(db, ctx, data.model_dump())


@router.post("/tax-slabs/initialize", response_model=List[TaxSlabResponse])
def initialize_tax_slabs(
    financial_year: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    payroll_config.initialize_default_slabs(db, ctx, financial_year)
    return payroll_config.list_tax_slabs(db, ctx, financial_year)


@router.delete("/tax-slabs/{slab_id}", status_code=204)
def delete_tax_slab(slab_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    payroll_config.delete_tax_slab(db, ctx, slab_id)
    return Response(status_code=204)


# --- Salary profiles ---

@router.get("/salary-profiles", response_model=List[SalaryProfileResponse])
def list_salary_profiles(
    active_only: bool = True,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    components = component_service.list_components(db, ctx)
    return [
        salary_profile_service.profile_to_dict(db, ctx, profile, components)
        for profile in salary_profile_service.list_salary_profiles(db, ctx, active_only=active_only)
    ]


@router.get("/employees/{employee_id}/salary-profile", response_model=SalaryProfileResponse)
def get_employee_salary_profile(
    employee_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    company_service.get_employee(db, ctx, employee_id)
    profile = salary_profile_service.get_active_profile(db, ctx, employee_id)
    if profile is None:
        raise NotFoundError("Salary profile for employee", employee_id)
    return salary_profile_service.profile_to_dict(db, ctx, profile)


@router.put("/employees/{employee_id}/salary-profile", response_model=SalaryProfileResponse)
def save_employee_salary_profile(
    employee_id: int,
    data: SalaryProfileCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    profile = salary_profile_service.upsert_salary_profile(db, ctx, employee_id, data.model_dump())
    return salary_profile_service.profile_to_dict(db, ctx, profile)


@router.get("/employees/{employee_id}/payslips", response_model=List[PayslipResponse])
def list_employee_payslips(
    employee_id: int,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    return [
        payroll_service.payslip_to_dict(payslip)
        for payslip in payroll_service.list_employee_payslips(db, ctx, employee_id)
    ]


# --- Runs ---

@router.post("/runs", response_model=PayrollRunResponse, status_code=201)
@limiter.limit(settings.payroll_run_rate_limit)
def run_payroll(
    request: Request,
    data: PayrollRunCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    """
    Process payroll for every active salary profile in the period.
    All-or-nothing: a failure for any employee rolls the whole run back.
    """
    return payroll_service.run_payroll(db, ctx, data.period_start, data.period_end, data.pay_date, data.notes)


@router.get("/runs", response_model=List[PayrollRunResponse])
def list_runs(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(payroll_manager)
):
    return payroll_service.list_runs(db, ctx, status=status)


@router.get("/runs/{run_id}", response_model=PayrollRunResponse)
def get_run(run_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    return payroll_service.get_run(db, ctx, run_id)


@router.post("/runs/{run_id}/approve", response_model=PayrollRunResponse)
def approve_run(run_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    return payroll_service.approve_run(db, ctx, run_id)


@router.post("/runs/{run_id}/pay", response_model=PayrollRunResponse)
def mark_run_paid(run_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    return payroll_service.mark_run_paid(db, ctx, run_id)


@router.post("/runs/{run_id}/cancel", response_model=PayrollRunResponse)
def cancel_run(run_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    return payroll_service.cancel_run(db, ctx, run_id)


@router.delete("/runs/{run_id}", status_code=204)
def delete_run(run_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    payroll_service.delete_run(db, ctx, run_id)
    return Response(status_code=204)


@router.get("/runs/{run_id}/payslips", response_model=List[PayslipResponse])
def list_run_payslips(run_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    return [payroll_service.payslip_to_dict(payslip) for payslip in payroll_service.list_run_payslips(db, ctx, run_id)]


@router.get("/runs/{run_id}/report", response_model=PayrollRunReport)
def run_report(run_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    return payroll_service.build_run_report(payroll_service.get_run(db, ctx, run_id))


@router.get("/runs/{run_id}/export")
def export_run_payslips(run_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    """Download every payslip of the run as HTML files in a ZIP archive."""
    run = payroll_service.get_run(db, ctx, run_id)
    company = company_service.get_company(db, ctx.company_id)
    zip_bytes = payslip_documents.export_run_payslips_zip(run, company.currency)
    return Response(
        content=zip_bytes,
        media_type="application/zip",
        headers={
            "Content-Disposition": f"attachment; filename=payslips_{run.period_start:%Y_%m}_run_{run.id}.zip"
        }
    )


# --- Payslips ---

@router.get("/payslips/{payslip_id}", response_model=PayslipResponse)
def get_payslip(payslip_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    return payroll_service.payslip_to_dict(payroll_service.get_payslip(db, ctx, payslip_id))


@router.get("/payslips/{payslip_id}/html", response_class=HTMLResponse)
def get_payslip_html(payslip_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(payroll_manager)):
    payslip = payroll_service.get_payslip(db, ctx, payslip_id)
    company = company_service.get_company(db, ctx.company_id)
    return HTMLResponse(
        content=payslip_documents.render_payslip_html(payslip, company.currency).decode("utf-8"),
        headers={"Content-Disposition": f"inline; filename=payslip_{payslip_id}.html"}
    )
