from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional


class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1)
    days_per_year: Optional[Decimal] = None
    is_monthly_quota: bool = False
    monthly_limit: Optional[Decimal] = None
    is_paid: bool = True
    is_carry_forward: bool = False
    max_carry_forward_days: Optional[Decimal] = None
    active: bool = True


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = None
    days_per_year: Optional[Decimal] = None
    is_monthly_quota: Optional[bool] = None
    monthly_limit: Optional[Decimal] = None
    is_paid: Optional[bool] = None
    is_carry_forward: Optional[bool] = None
    max_carry_forward_days: Optional[Decimal] = None
    active: Optional[bool] = None


class LeaveTypeResponse(LeaveTypeCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)


class LeavePolicySchema(BaseModel):
    min_days_advance_planned: int = Field(2, ge=0)
    probation_months: int = Field(3, ge=0)
    leave_credit_start_month: int = Field(4, ge=0)
    allow_negative_balance: bool = False
    allow_advance_leave: bool = False
    emergency_default_unpaid: bool = True
    unplanned_default_unpaid: bool = True
    hr_approval_days_threshold: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class LeaveBalanceResponse(BaseModel):
    id: int
    employee_id: int
    leave_type_id: int
    year: int
    total_days: Decimal
    used_days: Decimal
    carry_forward_days: Decimal
    remaining_days: Decimal

    model_config = ConfigDict(from_attributes=True)


class LeaveBalanceAdjust(BaseModel):
    employee_id: int
    leave_type_id: int
    year: int
    total_days: Decimal = Field(..., ge=0)


class BalanceYearRequest(BaseModel):
    year: int


class CarryForwardRequest(BaseModel):
    from_year: int
    to_year: int


class BalanceOperationResponse(BaseModel):
    success: bool = True
    count: int


class LeaveRequestCreate(BaseModel):
    employee_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    reason: Optional[str] = None
    is_emergency: bool = False


class LeaveRequestResponse(BaseModel):
    id: int
    employee_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    total_days: Decimal
    reason: Optional[str] = None
    request_type: str
    is_paid: bool
    auto_unpaid_reason: Optional[str] = None
    requires_hr_approval: bool
    manager_approved: Optional[bool] = None
    manager_comment: Optional[str] = None
    hr_approved: Optional[bool] = None
    hr_comment: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    warnings: List[str] = []

    model_config = ConfigDict(from_attributes=True)


class LeaveDecisionRequest(BaseModel):
    approve: bool
    comment: Optional[str] = None


class LeaveEvaluationResponse(BaseModel):
    is_valid: bool
    request_type: str
    is_paid: bool
    requires_hr_approval: bool
    auto_unpaid_reason: Optional[str] = None
    warnings: List[str] = []
    errors: List[str] = []

    model_config = ConfigDict(from_attributes=True)
