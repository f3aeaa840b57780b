"""
Leave eligibility and policy evaluation.

Given who is asking, what they ask for and the company policy, decide how a
leave request is classified, whether it stays paid, whether HR has to
co-approve and whether the balance allows it. Nothing here touches the
database; ``leave_service`` gathers the inputs.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from hrms.models.employee import EmployeeCategory
from hrms.models.leave_request import RequestType
from hrms.services.money import ZERO, to_decimal


@dataclass(frozen=True)
class LeavePolicyRules:
    min_days_advance_planned: int = 2
    probation_months: int = 3
    leave_credit_start_month: int = 4
    allow_negative_balance: bool = False
    allow_advance_leave: bool = False
    emergency_default_unpaid: bool = True
    unplanned_default_unpaid: bool = True
    hr_approval_days_threshold: Optional[Decimal] = None

    @classmethod
    def from_model(cls, row) -> "LeavePolicyRules":
        if row is None:
            return cls()
        return cls(
            min_days_advance_planned=row.min_days_advance_planned,
            probation_months=row.probation_months,
            leave_credit_start_month=row.leave_credit_start_month,
            allow_negative_balance=bool(row.allow_negative_balance),
            allow_advance_leave=bool(row.allow_advance_leave),
            emergency_default_unpaid=bool(row.emergency_default_unpaid),
            unplanned_default_unpaid=bool(row.unplanned_default_unpaid),
            hr_approval_days_threshold=(
                to_decimal(row.hr_approval_days_threshold)
                if row.hr_approval_days_threshold is not None else None
            ),
        )


@dataclass(frozen=True)
class PaidLeaveEligibility:
    is_eligible: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class LeaveEvaluationInput:
    today: date
    start_date: date
    end_date: date
    total_days: Decimal
    leave_type_is_paid: bool
    available_balance: Decimal
    accrued_balance: Decimal
    policy: LeavePolicyRules = field(default_factory=LeavePolicyRules)
    employee_category: Optional[str] = None
    months_employed: int = 0
    is_emergency: bool = False
    reason: Optional[str] = None


@dataclass(frozen=True)
class LeaveEvaluation:
    is_valid: bool
    request_type: RequestType
    is_paid: bool
    requires_hr_approval: bool
    auto_unpaid_reason: Optional[str] = None
    warnings: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()


def months_between(start: Optional[date], today: date) -> int:
    """Whole calendar months from ``start`` to ``today`` (0 when unknown)."""
    if start is None:
        return 0
    return max(0, (today.year - start.year) * 12 + (today.month - start.month))


def count_leave_days(start_date: date, end_date: date) -> Decimal:
    """Calendar days in the range, both ends included."""
    if end_date < start_date:
        return ZERO
    return Decimal((end_date - start_date).days + 1)


def check_paid_leave_eligibility(category: Optional[str], months_employed: int,
                                 policy: LeavePolicyRules) -> PaidLeaveEligibility:
    if category == EmployeeCategory.TRAINEE.value:
        return PaidLeaveEligibility(False, "Trainees are not eligible for paid leave")
    if category == EmployeeCategory.INTERN.value:
        return PaidLeaveEligibility(False, "Interns are not eligible for paid leave")
    if category == EmployeeCategory.PROBATION.value and months_employed < policy.probation_months:
        return PaidLeaveEligibility(
            False,
            f"Probation employees in first {policy.probation_months} months are not eligible for paid leave",
        )
    if months_employed < policy.leave_credit_start_month:
        return PaidLeaveEligibility(False, f"Leave credits start from month {policy.leave_credit_start_month}")
    return PaidLeaveEligibility(True)


def classify_request(start_date: date, today: date, policy: LeavePolicyRules,
                     is_emergency: bool = False) -> RequestType:
    if is_emergency:
        return RequestType.EMERGENCY
    if (start_date - today).days >= policy.min_days_advance_planned:
        return RequestType.PLANNED
    return RequestType.UNPLANNED


def evaluate_leave_request(data: LeaveEvaluationInput) -> LeaveEvaluation:
    policy = data.policy
    warnings: List[str] = []
    errors: List[str] = []
    total_days = to_decimal(data.total_days)
    available = to_decimal(data.available_balance)
    accrued = to_decimal(data.accrued_balance)

    if data.end_date < data.start_date:
        errors.append("End date cannot be before start date")
    if total_days <= 0:
        errors.append("Leave must cover at least part of a day")

    request_type = classify_request(data.start_date, data.today, policy, data.is_emergency)
    if request_type == RequestType.EMERGENCY and not (data.reason or "").strip():
        errors.append("A reason is required for emergency leave")

    is_paid = data.leave_type_is_paid
    auto_unpaid_reason = None

    eligibility = check_paid_leave_eligibility(data.employee_category, data.months_employed, policy)
    if data.leave_type_is_paid and not eligibility.is_eligible:
        is_paid = False
        auto_unpaid_reason = eligibility.reason
        warnings.append(eligibility.reason)

    requires_hr_approval = request_type != RequestType.PLANNED
    if request_type == RequestType.EMERGENCY and policy.emergency_default_unpaid and is_paid:
        is_paid = False
        auto_unpaid_reason = "Emergency leave is unpaid by default"
        warnings.append("Emergency leave will be unpaid unless HR approves")
    elif request_type == RequestType.UNPLANNED and policy.unplanned_default_unpaid and is_paid:
        is_paid = False
        auto_unpaid_reason = f"Applied less than {policy.min_days_advance_planned} days in advance"
        warnings.append(
            f"Unplanned leave will be unpaid (applied less than {policy.min_days_advance_planned} days in advance)"
        )

    threshold = policy.hr_approval_days_threshold
    if threshold is not None and total_days > threshold and not requires_hr_approval:
        requires_hr_approval = True
        warnings.append(f"Leave requests over {threshold} days require HR approval")

    # Only leave that stays paid is charged, so only it is checked against the balance
    if is_paid and data.leave_type_is_paid and total_days > 0:
        if total_days > available:
            if policy.allow_advance_leave and accrued >= total_days:
                requires_hr_approval = True
                warnings.append(
                    f"You are using advance leave. Accrued: {accrued} days, available: {available} days."
                )
            elif policy.allow_negative_balance:
                warnings.append(
                    f"Insufficient balance ({available} days available). This will take the balance negative."
                )
            else:
                errors.append(
                    f"Insufficient leave balance. You have {available} days available but requested {total_days} days."
                )
        elif total_days > accrued:
            warnings.append(
                f"Request includes leave not yet accrued. Accrued: {accrued} days, available: {available} days."
            )

    return LeaveEvaluation(
        is_valid=not errors,
        request_type=request_type,
        is_paid=is_paid,
        requires_hr_approval=requires_hr_approval,
        auto_unpaid_reason=auto_unpaid_reason,
        warnings=tuple(warnings),
        errors=tuple(errors),
    )
