"""
Leave Service Layer

Leave types, the company leave policy, yearly balances and the request
workflow. Eligibility and classification are decided by the pure evaluator
in ``leave_policy``; approvals go through ``apply_leave_decision``.
"""
import logging
from calendar import monthrange
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from hrms.core.exceptions import ConflictError, NotFoundError, ValidationError
from hrms.core.security import sanitize_input
from hrms.core.tenant import TenantContext
from hrms.models.employee import Employee, EmployeeStatus
from hrms.models.leave_balance import LeaveBalance
from hrms.models.leave_policy import LeavePolicy
from hrms.models.leave_request import LeaveRequest, LeaveStatus
from hrms.models.leave_type import LeaveType
from hrms.services.audit import AuditService
from hrms.services.company_service import get_employee
from hrms.services.leave_policy import (
    LeaveEvaluation, LeaveEvaluationInput, LeavePolicyRules, count_leave_days,
    evaluate_leave_request, months_between
)
from hrms.services.money import ZERO, round_money, to_decimal
from hrms.services.state_machines import ApprovalStage, LeaveApprovalState, apply_leave_decision

logger = logging.getLogger(__name__)

_POLICY_FIELDS = (
    "min_days_advance_planned", "probation_months", "leave_credit_start_month",
    "allow_negative_balance", "allow_advance_leave", "emergency_default_unpaid", "unplanned_default_unpaid",
    "hr_approval_days_threshold",
)


# --- Leave types ---

def _validate_allocation(leave_type: LeaveType) -> None:
    annual = leave_type.days_per_year is not None
    monthly = bool(leave_type.is_monthly_quota)
    if annual == monthly:
        raise ValidationError("A leave type is allocated either per year or as a monthly quota, not both")
    if monthly and (leave_type.monthly_limit is None or to_decimal(leave_type.monthly_limit) <= 0):
        raise ValidationError("Monthly quota leave types need a positive monthly_limit")
    if annual and to_decimal(leave_type.days_per_year) < 0:
        raise ValidationError("days_per_year cannot be negative")
    if leave_type.is_carry_forward and monthly:
        raise ValidationError("Monthly quota leave cannot be carried forward")


def list_leave_types(db: Session, ctx: TenantContext, active_only: bool = False) -> List[LeaveType]:
    query = db.query(LeaveType).filter(LeaveType.company_id == ctx.company_id)
    if active_only:
        query = query.filter(LeaveType.active.is_(True))
    return query.order_by(LeaveType.name).all()


def get_leave_type(db: Session, ctx: TenantContext, leave_type_id: int) -> LeaveType:
    leave_type = db.query(LeaveType).filter(
        LeaveType.id == leave_type_id,
        LeaveType.company_id == ctx.company_id
    ).first()
    if not leave_type:
        raise NotFoundError("Leave type", leave_type_id)
    return leave_type


def create_leave_type(db: Session, ctx: TenantContext, data: Dict[str, Any]) -> LeaveType:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Leave type name is required")
    exists = db.query(LeaveType).filter(
        LeaveType.company_id == ctx.company_id,
        func.lower(LeaveType.name) == name.lower()
    ).first()
    if exists:
        raise ConflictError(f"Leave type '{name}' already exists")

    leave_type = LeaveType(company_id=ctx.company_id, **{**data, "name": name})
    _validate_allocation(leave_type)
    db.add(leave_type)
    try:
        db.commit()
        db.refresh(leave_type)
    except Exception:
        db.rollback()
        raise
    return leave_type


def update_leave_type(db: Session, ctx: TenantContext, leave_type_id: int, data: Dict[str, Any]) -> LeaveType:
    leave_type = get_leave_type(db, ctx, leave_type_id)
    for key, value in data.items():
        setattr(leave_type, key, value)
    try:
        _validate_allocation(leave_type)
        db.commit()
        db.refresh(leave_type)
    except Exception:
        db.rollback()
        raise
    return leave_type


# --- Policy ---

def get_leave_policy(db: Session, ctx: TenantContext) -> LeavePolicyRules:
    row = db.query(LeavePolicy).filter(LeavePolicy.company_id == ctx.company_id).first()
    return LeavePolicyRules.from_model(row)


def save_leave_policy(db: Session, ctx: TenantContext, data: Dict[str, Any]) -> LeavePolicyRules:
    for key in ("min_days_advance_planned", "probation_months", "leave_credit_start_month"):
        if key in data and data[key] is not None and data[key] < 0:
            raise ValidationError(f"{key} cannot be negative")
    if data.get("hr_approval_days_threshold") is not None and data["hr_approval_days_threshold"] <= 0:
        raise ValidationError("hr_approval_days_threshold must be positive")

    row = db.query(LeavePolicy).filter(LeavePolicy.company_id == ctx.company_id).first()
    if row is None:
        row = LeavePolicy(company_id=ctx.company_id)
        db.add(row)
    before_state = {key: getattr(row, key) for key in _POLICY_FIELDS}
    for key, value in data.items():
        if key in _POLICY_FIELDS:
            setattr(row, key, value)
    try:
        db.flush()
        AuditService.log(
            db, ctx,
            action="update_leave_policy",
            entity_type="leave_policy",
            entity_id=row.id,
            before_state=before_state,
            after_state={key: getattr(row, key) for key in _POLICY_FIELDS},
        )
        db.commit()
        db.refresh(row)
    except Exception:
        db.rollback()
        raise
    return LeavePolicyRules.from_model(row)


# --- Balances ---

def list_leave_balances(db: Session, ctx: TenantContext, year: int,
                        employee_id: Optional[int] = None) -> List[LeaveBalance]:
    query = db.query(LeaveBalance).filter(
        LeaveBalance.company_id == ctx.company_id,
        LeaveBalance.year == year
    )
    if employee_id is not None:
        query = query.filter(LeaveBalance.employee_id == employee_id)
    return query.order_by(LeaveBalance.employee_id, LeaveBalance.leave_type_id).all()


def _get_balance(db: Session, ctx: TenantContext, employee_id: int, leave_type_id: int,
                 year: int) -> Optional[LeaveBalance]:
    return db.query(LeaveBalance).filter(
        LeaveBalance.company_id == ctx.company_id,
        LeaveBalance.employee_id == employee_id,
        LeaveBalance.leave_type_id == leave_type_id,
        LeaveBalance.year == year
    ).first()


def initialize_leave_balances(db: Session, ctx: TenantContext, year: int) -> int:
    """
    Create a balance for every active employee and active annual leave type.

    Existing balances are left alone, so this can be rerun safely.

    Returns:
        Number of balances created
    """
    employees = db.query(Employee).filter(
        Employee.company_id == ctx.company_id,
        Employee.status == EmployeeStatus.ACTIVE.value
    ).all()
    leave_types = [
        lt for lt in list_leave_types(db, ctx, active_only=True)
        if not lt.is_monthly_quota
    ]
    existing = {
        (b.employee_id, b.leave_type_id)
        for b in db.query(LeaveBalance).filter(
            LeaveBalance.company_id == ctx.company_id,
            LeaveBalance.year == year
        )
    }

    created = 0
    for employee in employees:
        for leave_type in leave_types:
            if (employee.id, leave_type.id) in existing:
                continue
            db.add(LeaveBalance(
                company_id=ctx.company_id,
                employee_id=employee.id,
                leave_type_id=leave_type.id,
                year=year,
                total_days=to_decimal(leave_type.days_per_year),
                used_days=ZERO,
                carry_forward_days=ZERO,
            ))
            created += 1
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Initialized {created} leave balances for company {ctx.company_id}, year {year}")
    return created


def adjust_leave_balance(db: Session, ctx: TenantContext, employee_id: int, leave_type_id: int,
                         year: int, total_days: Decimal) -> LeaveBalance:
    total_days = to_decimal(total_days, default=None)
    if total_days is None or total_days < 0:
        raise ValidationError("Total days must be a non-negative number")
    get_employee(db, ctx, employee_id)
    get_leave_type(db, ctx, leave_type_id)

    balance = _get_balance(db, ctx, employee_id, leave_type_id, year)
    before_state = None
    if balance is None:
        balance = LeaveBalance(
            company_id=ctx.company_id, employee_id=employee_id, leave_type_id=leave_type_id,
            year=year, used_days=ZERO, carry_forward_days=ZERO,
        )
        db.add(balance)
    else:
        before_state = {"total_days": balance.total_days}
    balance.total_days = total_days
    try:
        db.flush()
        AuditService.log(
            db, ctx,
            action="adjust_leave_balance",
            entity_type="leave_balance",
            entity_id=balance.id,
            details={"employee_id": employee_id, "leave_type_id": leave_type_id, "year": year},
            before_state=before_state,
            after_state={"total_days": total_days},
        )
        db.commit()
        db.refresh(balance)
    except Exception:
        db.rollback()
        raise
    return balance


def carry_forward_balances(db: Session, ctx: TenantContext, from_year: int, to_year: int) -> int:
    """
    Move unused days of carry-forward leave types into the next year.

    The carried amount is capped at the type's ``max_carry_forward_days``.
    Returns the number of balances updated.
    """
    if to_year <= from_year:
        raise ValidationError("Carry forward must go to a later year")

    balances = db.query(LeaveBalance).join(LeaveType).filter(
        LeaveBalance.company_id == ctx.company_id,
        LeaveBalance.year == from_year,
        LeaveType.is_carry_forward.is_(True)
    ).all()

    updated = 0
    for balance in balances:
        leave_type = balance.leave_type
        carried = max(balance.remaining_days, ZERO)
        if leave_type.max_carry_forward_days is not None:
            carried = min(carried, to_decimal(leave_type.max_carry_forward_days))

        target = _get_balance(db, ctx, balance.employee_id, balance.leave_type_id, to_year)
        if target is None:
            target = LeaveBalance(
                company_id=ctx.company_id,
                employee_id=balance.employee_id,
                leave_type_id=balance.leave_type_id,
                year=to_year,
                total_days=to_decimal(leave_type.days_per_year),
                used_days=ZERO,
                carry_forward_days=ZERO,
            )
            db.add(target)
        # Rerunning replaces the previous carry instead of adding to it
        previous = to_decimal(target.carry_forward_days)
        target.total_days = to_decimal(target.total_days) - previous + carried
        target.carry_forward_days = carried
        updated += 1

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Carried forward {updated} leave balances from {from_year} to {to_year}")
    return updated


def accrued_days(balance: LeaveBalance, on: date) -> Decimal:
    """Carry-forward plus the share of this year's allocation earned by ``on``'s month."""
    carried = to_decimal(balance.carry_forward_days)
    allocated = to_decimal(balance.total_days) - carried
    if on.year > balance.year:
        return to_decimal(balance.total_days)
    months = on.month if on.year == balance.year else 0
    return round_money(carried + allocated * months / 12)


def _monthly_quota_available(db: Session, ctx: TenantContext, employee_id: int,
                             leave_type: LeaveType, day: date) -> Decimal:
    month_start = day.replace(day=1)
    month_end = day.replace(day=monthrange(day.year, day.month)[1])
    taken = db.query(func.coalesce(func.sum(LeaveRequest.total_days), 0)).filter(
        LeaveRequest.company_id == ctx.company_id,
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.leave_type_id == leave_type.id,
        LeaveRequest.status != LeaveStatus.REJECTED.value,
        LeaveRequest.start_date >= month_start,
        LeaveRequest.start_date <= month_end
    ).scalar()
    return to_decimal(leave_type.monthly_limit) - to_decimal(taken)


# --- Requests ---

def evaluate_for_employee(db: Session, ctx: TenantContext, employee: Employee, leave_type: LeaveType,
                          start_date: date, end_date: date, is_emergency: bool = False,
                          reason: Optional[str] = None, today: Optional[date] = None) -> LeaveEvaluation:
    """Gather policy, tenure and balance for an employee and run the evaluator."""
    today = today or date.today()
    if leave_type.is_monthly_quota:
        available = _monthly_quota_available(db, ctx, employee.id, leave_type, start_date)
        accrued = available
    else:
        balance = _get_balance(db, ctx, employee.id, leave_type.id, start_date.year)
        if balance is None:
            available = accrued = ZERO
        else:
            available = balance.remaining_days
            accrued = accrued_days(balance, today) - to_decimal(balance.used_days)

    return evaluate_leave_request(LeaveEvaluationInput(
        today=today,
        start_date=start_date,
        end_date=end_date,
        total_days=count_leave_days(start_date, end_date),
        leave_type_is_paid=bool(leave_type.is_paid),
        available_balance=available,
        accrued_balance=accrued,
        policy=get_leave_policy(db, ctx),
        employee_category=employee.category,
        months_employed=months_between(employee.date_of_joining, today),
        is_emergency=is_emergency,
        reason=reason,
    ))


def submit_leave_request(db: Session, ctx: TenantContext, employee_id: int, data: Dict[str, Any],
                         today: Optional[date] = None) -> LeaveRequest:
    """
    Evaluate and store a leave request.

    Raises:
        ValidationError: the evaluator found blocking errors (listed in ``errors``)
    """
    employee = get_employee(db, ctx, employee_id)
    leave_type = get_leave_type(db, ctx, data["leave_type_id"])
    if not leave_type.active:
        raise ValidationError(f"Leave type '{leave_type.name}' is not active")

    reason = sanitize_input(data.get("reason"))
    evaluation = evaluate_for_employee(
        db, ctx, employee, leave_type, data["start_date"], data["end_date"],
        is_emergency=bool(data.get("is_emergency")), reason=reason, today=today,
    )
    if not evaluation.is_valid:
        raise ValidationError("Leave request is not valid", errors=list(evaluation.errors),
                              details={"warnings": list(evaluation.warnings)})

    request = LeaveRequest(
        company_id=ctx.company_id,
        employee_id=employee.id,
        leave_type_id=leave_type.id,
        start_date=data["start_date"],
        end_date=data["end_date"],
        total_days=count_leave_days(data["start_date"], data["end_date"]),
        reason=reason,
        request_type=evaluation.request_type.value,
        is_paid=evaluation.is_paid,
        auto_unpaid_reason=evaluation.auto_unpaid_reason,
        requires_hr_approval=evaluation.requires_hr_approval,
        status=LeaveStatus.PENDING.value,
    )
    db.add(request)
    try:
        db.flush()
        AuditService.log(
            db, ctx,
            action="submit_leave_request",
            entity_type="leave_request",
            entity_id=request.id,
            details={"employee_id": employee.id, "warnings": list(evaluation.warnings)},
            after_state={
                "request_type": request.request_type,
                "is_paid": request.is_paid,
                "requires_hr_approval": request.requires_hr_approval,
            },
        )
        db.commit()
        db.refresh(request)
    except Exception:
        db.rollback()
        raise

    # Not persisted; returned to the caller alongside the request
    request.warnings = list(evaluation.warnings)
    logger.info(f"Leave request {request.id} submitted ({request.request_type}, paid={request.is_paid})")
    return request


def get_leave_request(db: Session, ctx: TenantContext, request_id: int) -> LeaveRequest:
    request = db.query(LeaveRequest).filter(
        LeaveRequest.id == request_id,
        LeaveRequest.company_id == ctx.company_id
    ).first()
    if not request:
        raise NotFoundError("Leave request", request_id)
    return request


def decide_leave_request(db: Session, ctx: TenantContext, request_id: int, stage: str, approve: bool,
                         comment: Optional[str] = None) -> LeaveRequest:
    """
    Record a manager or HR decision.

    When the decision makes the request fully approved and the leave is paid,
    the days are charged to the employee's balance for that year.
    """
    request = get_leave_request(db, ctx, request_id)
    stage = ApprovalStage(stage)
    before = LeaveApprovalState.from_model(request)
    after = apply_leave_decision(before, stage, approve)

    now = datetime.now(timezone.utc)
    comment = sanitize_input(comment)
    if stage == ApprovalStage.MANAGER:
        request.manager_approved = after.manager_approved
        request.manager_id = ctx.user_id
        request.manager_decided_at = now
        request.manager_comment = comment
    else:
        request.hr_approved = after.hr_approved
        request.hr_id = ctx.user_id
        request.hr_decided_at = now
        request.hr_comment = comment
    request.status = after.status.value

    if after.status == LeaveStatus.APPROVED and request.is_paid and not request.leave_type.is_monthly_quota:
        balance = _get_balance(db, ctx, request.employee_id, request.leave_type_id, request.start_date.year)
        if balance is None:
            db.rollback()
            raise ConflictError("No leave balance to charge this request against")
        balance.used_days = to_decimal(balance.used_days) + to_decimal(request.total_days)

    AuditService.log(
        db, ctx,
        action=f"{'approve' if approve else 'reject'}_leave_{stage.value}",
        entity_type="leave_request",
        entity_id=request.id,
        details={"employee_id": request.employee_id, "comment": comment},
        before_state={"status": before.status.value},
        after_state={"status": request.status},
    )
    try:
        db.commit()
        db.refresh(request)
    except Exception:
        db.rollback()
        raise
    logger.info(f"Leave request {request.id}: {stage.value} {'approved' if approve else 'rejected'} -> {request.status}")
    return request


def list_leave_requests(db: Session, ctx: TenantContext, employee_id: Optional[int] = None,
                        status: Optional[str] = None) -> List[LeaveRequest]:
    query = db.query(LeaveRequest).filter(LeaveRequest.company_id == ctx.company_id)
    if employee_id is not None:
        query = query.filter(LeaveRequest.employee_id == employee_id)
    if status:
        query = query.filter(LeaveRequest.status == status)
    return query.order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc()).all()
