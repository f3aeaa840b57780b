"""
Company onboarding and the employee directory.

Creating a company seeds everything a tenant needs before its first payroll
run: the default salary component set, statutory payroll settings, tax slabs
for the current financial year, a leave policy and the default leave types.
"""
import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from hrms.core.config import settings
from hrms.core.exceptions import ConflictError, NotFoundError, ValidationError
from hrms.core.tenant import TenantContext
from hrms.models.company import Company
from hrms.models.employee import Employee, EmployeeCategory, EmployeeStatus
from hrms.models.leave_policy import LeavePolicy
from hrms.models.leave_type import LeaveType
from hrms.models.payroll_settings import PayrollSettings
from hrms.services import component_service, payroll_config

logger = logging.getLogger(__name__)

DEFAULT_LEAVE_TYPES = [
    {"name": "Annual Leave", "days_per_year": 12, "is_paid": True, "is_carry_forward": True, "max_carry_forward_days": 6},
    {"name": "Sick Leave", "days_per_year": 6, "is_paid": True},
    {"name": "Short Leave", "is_monthly_quota": True, "monthly_limit": 2, "is_paid": True},
    {"name": "Loss of Pay", "days_per_year": 0, "is_paid": False},
]


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def create_company(db: Session, name: str, currency: str = "INR", seed_defaults: bool = True) -> Company:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Company name is required")
    slug = _slugify(name)
    if db.query(Company).filter(Company.slug == slug).first():
        raise ConflictError(f"A company named '{name}' already exists")

    try:
        company = Company(name=name, slug=slug, currency=currency)
        db.add(company)
        db.flush()  # Get company.id

        if seed_defaults:
            ctx = TenantContext(company_id=company.id)
            component_service.initialize_default_components(db, ctx, commit=False)
            defaults = settings.payroll
            db.add(PayrollSettings(
                company_id=company.id,
                pay_cycle=defaults.pay_cycle,
                pay_day=defaults.pay_day,
                pf_employee_rate=defaults.pf_employee_rate,
                pf_employer_rate=defaults.pf_employer_rate,
                pf_limit=defaults.pf_limit,
                esi_employee_rate=defaults.esi_employee_rate,
                esi_employer_rate=defaults.esi_employer_rate,
                esi_limit=defaults.esi_limit,
                tax_regime=defaults.tax_regime,
                tds_rebate_limit=defaults.tds_rebate_limit,
            ))
            payroll_config.initialize_default_slabs(
                db, ctx, payroll_config.financial_year_for(date.today()), commit=False
            )
            db.add(LeavePolicy(company_id=company.id))
            for leave_type in DEFAULT_LEAVE_TYPES:
                db.add(LeaveType(company_id=company.id, **leave_type))

        db.commit()
        db.refresh(company)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Company onboarded: {company.name} (id={company.id})")
    return company


def get_company(db: Session, company_id: int) -> Company:
    company = db.query(Company).filter(Company.id == company_id).first()
    if not company:
        raise NotFoundError("Company", company_id)
    return company


def list_companies(db: Session) -> List[Company]:
    return db.query(Company).order_by(Company.name).all()


# --- Employee directory ---

def _validate_category(category: Optional[str]) -> None:
    if category is not None and category not in {c.value for c in EmployeeCategory}:
        raise ValidationError(f"Unknown employee category '{category}'")


def create_employee(db: Session, ctx: TenantContext, data: Dict[str, Any]) -> Employee:
    _validate_category(data.get("category"))
    employee = Employee(company_id=ctx.company_id, **data)
    db.add(employee)
    try:
        db.commit()
        db.refresh(employee)
    except Exception:
        db.rollback()
        raise
    return employee


def get_employee(db: Session, ctx: TenantContext, employee_id: int) -> Employee:
    employee = db.query(Employee).filter(
        Employee.id == employee_id,
        Employee.company_id == ctx.company_id
    ).first()
    if not employee:
        raise NotFoundError("Employee", employee_id)
    return employee


def update_employee(db: Session, ctx: TenantContext, employee_id: int, data: Dict[str, Any]) -> Employee:
    employee = get_employee(db, ctx, employee_id)
    _validate_category(data.get("category"))
    if "status" in data and data["status"] not in {s.value for s in EmployeeStatus}:
        raise ValidationError(f"Unknown employee status '{data['status']}'")
    for key, value in data.items():
        setattr(employee, key, value)
    try:
        db.commit()
        db.refresh(employee)
    except Exception:
        db.rollback()
        raise
    return employee


def list_employees(db: Session, ctx: TenantContext, status: Optional[str] = None) -> List[Employee]:
    query = db.query(Employee).filter(Employee.company_id == ctx.company_id)
    if status:
        query = query.filter(Employee.status == status)
    return query.order_by(Employee.full_name).all()
