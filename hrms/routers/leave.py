"""
Leave Router

Leave configuration (types, policy, balances) for HR, the request workflow
for employees, and the manager / HR decision endpoints.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hrms.core.tenant import HR_ADMINS, LEAVE_APPROVERS, TenantContext
from hrms.database import get_db
from hrms.routers.deps import get_tenant_context, require_role
from hrms.schemas.leave import (
    BalanceOperationResponse, BalanceYearRequest, CarryForwardRequest, LeaveBalanceAdjust,
    LeaveBalanceResponse, LeaveDecisionRequest, LeaveEvaluationResponse, LeavePolicySchema,
    LeaveRequestCreate, LeaveRequestResponse, LeaveTypeCreate, LeaveTypeResponse, LeaveTypeUpdate
)
from hrms.services import company_service, leave_service
from hrms.services.state_machines import ApprovalStage

router = APIRouter(prefix="/leave", tags=["leave"])

hr_admin = require_role(HR_ADMINS)


# --- Types and policy ---

@router.get("/types", response_model=List[LeaveTypeResponse])
def list_leave_types(
    active_only: bool = False,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context)
):
    return leave_service.list_leave_types(db, ctx, active_only=active_only)


@router.post("/types", response_model=LeaveTypeResponse, status_code=201)
def create_leave_type(data: LeaveTypeCreate, db: Session = Depends(get_db), ctx: TenantContext = Depends(hr_admin)):
    return leave_service.create_leave_type(db, ctx, data.model_dump())


@router.patch("/types/{leave_type_id}", response_model=LeaveTypeResponse)
def update_leave_type(
    leave_type_id: int,
    data: LeaveTypeUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(hr_admin)
):
    return leave_service.update_leave_type(db, ctx, leave_type_id, data.model_dump(exclude_unset=True))


@router.get("/policy", response_model=LeavePolicySchema)
def get_leave_policy(db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant_context)):
    return leave_service.get_leave_policy(db, ctx)


@router.put("/policy", response_model=LeavePolicySchema)
def save_leave_policy(data: LeavePolicySchema, db: Session = Depends(get_db), ctx: TenantContext = Depends(hr_admin)):
    return leave_service.save_leave_policy(db, ctx, data.model_dump())


# --- Balances ---

@router.get("/balances", response_model=List[LeaveBalanceResponse])
def list_leave_balances(
    year: Optional[int] = None,
    employee_id: Optional[int] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context)
):
    return leave_service.list_leave_balances(db, ctx, year or date.today().year, employee_id)


@router.post("/balances/initialize", response_model=BalanceOperationResponse)
def initialize_leave_balances(
    data: BalanceYearRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(hr_admin)
):
    return {"count": leave_service.initialize_leave_balances(db, ctx, data.year)}


@router.post("/balances/adjust", response_model=LeaveBalanceResponse)
def adjust_leave_balance(data: LeaveBalanceAdjust, db: Session = Depends(get_db), ctx: TenantContext = Depends(hr_admin)):
    return leave_service.adjust_leave_balance(
        db, ctx, data.employee_id, data.leave_type_id, data.year, data.total_days
    )


@router.post("/balances/carry-forward", response_model=BalanceOperationResponse)
def carry_forward_balances(
    data: CarryForwardRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(hr_admin)
):
    return {"count": leave_service.carry_forward_balances(db, ctx, data.from_year, data.to_year)}


# --- Requests ---

@router.post("/evaluate", response_model=LeaveEvaluationResponse)
def evaluate_leave_request(
    data: LeaveRequestCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context)
):
    """Preview how a request would be classified without submitting it."""
    employee = company_service.get_employee(db, ctx, data.employee_id)
    leave_type = leave_service.get_leave_type(db, ctx, data.leave_type_id)
    evaluation = leave_service.evaluate_for_employee(
        db, ctx, employee, leave_type, data.start_date, data.end_date,
        is_emergency=data.is_emergency, reason=data.reason,
    )
    return LeaveEvaluationResponse(
        is_valid=evaluation.is_valid,
        request_type=evaluation.request_type.value,
        is_paid=evaluation.is_paid,
        requires_hr_approval=evaluation.requires_hr_approval,
        auto_unpaid_reason=evaluation.auto_unpaid_reason,
        warnings=list(evaluation.warnings),
        errors=list(evaluation.errors),
    )


@router.post("/requests", response_model=LeaveRequestResponse, status_code=201)
def submit_leave_request(
    data: LeaveRequestCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context)
):
    return leave_service.submit_leave_request(
        db, ctx, data.employee_id, data.model_dump(exclude={"employee_id"})
    )


@router.get("/requests", response_model=List[LeaveRequestResponse])
def list_leave_requests(
    employee_id: Optional[int] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context)
):
    return leave_service.list_leave_requests(db, ctx, employee_id=employee_id, status=status)


@router.get("/requests/{request_id}", response_model=LeaveRequestResponse)
def get_leave_request(request_id: int, db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant_context)):
    return leave_service.get_leave_request(db, ctx, request_id)


@router.post("/requests/{request_id}/manager-decision", response_model=LeaveRequestResponse)
def manager_decision(
    request_id: int,
    data: LeaveDecisionRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_role(LEAVE_APPROVERS))
):
    return leave_service.decide_leave_request(
        db, ctx, request_id, ApprovalStage.MANAGER, data.approve, data.comment
    )


@router.post("/requests/{request_id}/hr-decision", response_model=LeaveRequestResponse)
def hr_decision(
    request_id: int,
    data: LeaveDecisionRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(hr_admin)
):
    return leave_service.decide_leave_request(
        db, ctx, request_id, ApprovalStage.HR, data.approve, data.comment
    )
