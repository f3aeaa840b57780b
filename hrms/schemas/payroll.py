from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional


# --- Salary components ---

class SalaryComponentBase(BaseModel):
    name: str
    code: str
    kind: str = Field(..., pattern="^(earning|deduction)$")
    calc: str = Field("fixed", pattern="^(fixed|percentage)$")
    percentage_of: Optional[str] = None
    percentage_value: Optional[Decimal] = None
    taxable: bool = True
    pf_applicable: bool = False
    esi_applicable: bool = False
    active: bool = True
    sort_order: int = 0


class SalaryComponentCreate(SalaryComponentBase):
    pass


class SalaryComponentUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    kind: Optional[str] = Field(None, pattern="^(earning|deduction)$")
    calc: Optional[str] = Field(None, pattern="^(fixed|percentage)$")
    percentage_of: Optional[str] = None
    percentage_value: Optional[Decimal] = None
    taxable: Optional[bool] = None
    pf_applicable: Optional[bool] = None
    esi_applicable: Optional[bool] = None
    active: Optional[bool] = None
    sort_order: Optional[int] = None


class SalaryComponentResponse(SalaryComponentBase):
    id: int
    system_defined: bool

    model_config = ConfigDict(from_attributes=True)


class MoveComponentRequest(BaseModel):
    direction: str = Field(..., pattern="^(up|down)$")


# --- Settings and tax slabs ---

class PayrollSettingsUpdate(BaseModel):
    pay_cycle: Optional[str] = None
    pay_day: Optional[int] = Field(None, ge=1, le=31)
    pf_enabled: Optional[bool] = None
    pf_employee_rate: Optional[Decimal] = None
    pf_employer_rate: Optional[Decimal] = None
    pf_limit: Optional[Decimal] = Field(None, ge=0)
    esi_enabled: Optional[bool] = None
    esi_employee_rate: Optional[Decimal] = None
    esi_employer_rate: Optional[Decimal] = None
    esi_limit: Optional[Decimal] = Field(None, ge=0)
    tds_enabled: Optional[bool] = None
    tax_regime: Optional[str] = None
    tds_rebate_limit: Optional[Decimal] = Field(None, ge=0)


class PayrollSettingsResponse(BaseModel):
    company_id: int
    pay_cycle: str
    pay_day: int
    pf_enabled: bool
    pf_employee_rate: Decimal
    pf_employer_rate: Decimal
    pf_limit: Decimal
    esi_enabled: bool
    esi_employee_rate: Decimal
    esi_employer_rate: Decimal
    esi_limit: Decimal
    tds_enabled: bool
    tax_regime: str
    tds_rebate_limit: Decimal

    model_config = ConfigDict(from_attributes=True)


class TaxSlabCreate(BaseModel):
    financial_year: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    regime: str = "new"
    min_income: Decimal = Field(..., ge=0)
    max_income: Optional[Decimal] = None
    rate: Decimal = Field(..., ge=0, le=100)
    active: bool = True


class TaxSlabResponse(TaxSlabCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)


# --- Salary profiles ---

class SalaryProfileCreate(BaseModel):
    component_values: Dict[str, Decimal] = Field(default_factory=dict)
    effective_from: Optional[date] = None
    bank_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    pan_number: Optional[str] = None
    pf_number: Optional[str] = None
    esi_number: Optional[str] = None
    uan_number: Optional[str] = None


class SalaryProfileResponse(BaseModel):
    id: int
    employee_id: int
    employee_name: Optional[str] = None
    effective_from: date
    active: bool
    component_values: Dict[str, Decimal]
    gross: Decimal
    bank_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    pan_number: Optional[str] = None
    pf_number: Optional[str] = None
    esi_number: Optional[str] = None
    uan_number: Optional[str] = None


# --- Runs and payslips ---

class PayrollRunCreate(BaseModel):
    period_start: date
    period_end: date
    pay_date: date
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_period(self):
        if self.period_start > self.period_end:
            raise ValueError("period_start must not be after period_end")
        return self


class PayrollRunResponse(BaseModel):
    id: int
    company_id: int
    period_start: date
    period_end: date
    pay_date: date
    status: str
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    total_employer_cost: Decimal
    employee_count: int
    notes: Optional[str] = None
    warnings: Optional[List[str]] = None
    processed_by: Optional[int] = None
    processed_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PayslipItemResponse(BaseModel):
    component_name: str
    component_code: str
    type: str
    amount: Decimal
    sort_order: int


class PayslipResponse(BaseModel):
    id: int
    payroll_run_id: int
    employee_id: int
    employee_name: str
    employee_email: Optional[str] = None
    department_name: Optional[str] = None
    designation: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    pan_number: Optional[str] = None
    pf_number: Optional[str] = None
    esi_number: Optional[str] = None
    uan_number: Optional[str] = None
    period_start: date
    period_end: date
    gross_earnings: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    employer_pf: Decimal
    employer_esi: Decimal
    employer_cost: Decimal
    taxable_income: Decimal
    tds_amount: Decimal
    status: str
    items: List[PayslipItemResponse] = []


class DepartmentBreakdown(BaseModel):
    department_name: str
    employee_count: int
    gross: Decimal
    deductions: Decimal
    net: Decimal


class StatutoryTotals(BaseModel):
    employee_pf: Decimal
    employer_pf: Decimal
    employee_esi: Decimal
    employer_esi: Decimal
    tds: Decimal


class PayrollRunReport(BaseModel):
    run_id: int
    period_start: date
    period_end: date
    status: str
    employee_count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    total_employer_cost: Decimal
    departments: List[DepartmentBreakdown]
    statutory: StatutoryTotals
