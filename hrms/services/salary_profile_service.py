"""
Employee salary profiles.

One active profile per employee: saving a new profile deactivates the
previous one in the same transaction.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from hrms.core.exceptions import NotFoundError, ValidationError
from hrms.core.security import decrypt_data, encrypt_data
from hrms.core.tenant import TenantContext
from hrms.models.salary_component import SalaryComponent
from hrms.models.salary_profile import EmployeeSalaryComponent, EmployeeSalaryProfile
from hrms.services import company_service
from hrms.services.audit import AuditService
from hrms.services.money import round_money, to_decimal
from hrms.services.salary_resolver import STATUTORY_CODES, resolve_salary

logger = logging.getLogger(__name__)

IDENTITY_FIELDS = ("bank_name", "ifsc_code", "pf_number", "esi_number", "uan_number")
ENCRYPTED_FIELDS = ("bank_account_number", "pan_number")


def _validate_values(db: Session, ctx: TenantContext, values: Mapping[str, Any]) -> Dict[str, Any]:
    known = {
        code for (code,) in db.query(SalaryComponent.code).filter(SalaryComponent.company_id == ctx.company_id)
    }
    cleaned = {}
    unknown = []
    for raw_code, raw_amount in values.items():
        code = raw_code.strip().upper()
        if code in STATUTORY_CODES:
            raise ValidationError(f"{code} is computed from payroll settings and cannot be entered")
        if code not in known:
            unknown.append(code)
            continue
        amount = to_decimal(raw_amount, default=None)
        if amount is None or amount < 0:
            raise ValidationError(f"Amount for {code} must be a non-negative number")
        cleaned[code] = round_money(amount)
    if unknown:
        raise ValidationError(f"Unknown salary components: {', '.join(sorted(unknown))}", details={"codes": unknown})
    return cleaned


def get_active_profile(db: Session, ctx: TenantContext, employee_id: int) -> Optional[EmployeeSalaryProfile]:
    return db.query(EmployeeSalaryProfile).filter(
        EmployeeSalaryProfile.company_id == ctx.company_id,
        EmployeeSalaryProfile.employee_id == employee_id,
        EmployeeSalaryProfile.active.is_(True)
    ).first()


def upsert_salary_profile(db: Session, ctx: TenantContext, employee_id: int,
                          data: Dict[str, Any]) -> EmployeeSalaryProfile:
    """
    Save a new active salary profile for an employee.

    Args:
        data: ``component_values`` (code -> amount), ``effective_from`` and the
            bank / statutory identifiers
    """
    employee = company_service.get_employee(db, ctx, employee_id)
    values = _validate_values(db, ctx, data.get("component_values") or {})

    previous = get_active_profile(db, ctx, employee.id)
    before_state = {"profile_id": previous.id, "component_values": previous.component_values} if previous else None

    try:
        if previous:
            previous.active = False
        profile = EmployeeSalaryProfile(
            company_id=ctx.company_id,
            employee_id=employee.id,
            effective_from=data.get("effective_from") or date.today(),
            active=True,
            **{field: data.get(field) for field in IDENTITY_FIELDS},
            **{field: encrypt_data(data.get(field)) for field in ENCRYPTED_FIELDS},
        )
        profile.values = [
            EmployeeSalaryComponent(component_code=code, amount=amount) for code, amount in values.items()
        ]
        db.add(profile)
        db.flush()
        AuditService.log(
            db, ctx,
            action="save_salary_profile",
            entity_type="salary_profile",
            entity_id=profile.id,
            details={"employee_id": employee.id},
            before_state=before_state,
            after_state={"profile_id": profile.id, "component_values": values},
        )
        db.commit()
        db.refresh(profile)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Salary profile {profile.id} saved for employee {employee.id}")
    return profile


def list_salary_profiles(db: Session, ctx: TenantContext, active_only: bool = True) -> List[EmployeeSalaryProfile]:
    query = db.query(EmployeeSalaryProfile).filter(EmployeeSalaryProfile.company_id == ctx.company_id)
    if active_only:
        query = query.filter(EmployeeSalaryProfile.active.is_(True))
    return query.order_by(EmployeeSalaryProfile.employee_id, EmployeeSalaryProfile.id).all()


def get_salary_profile(db: Session, ctx: TenantContext, profile_id: int) -> EmployeeSalaryProfile:
    profile = db.query(EmployeeSalaryProfile).filter(
        EmployeeSalaryProfile.id == profile_id,
        EmployeeSalaryProfile.company_id == ctx.company_id
    ).first()
    if not profile:
        raise NotFoundError("Salary profile", profile_id)
    return profile


def profile_to_dict(db: Session, ctx: TenantContext, profile: EmployeeSalaryProfile,
                    components: Optional[List[SalaryComponent]] = None) -> Dict[str, Any]:
    """Decrypted view of a profile, with the resolved gross for display."""
    if components is None:
        components = db.query(SalaryComponent).filter(SalaryComponent.company_id == ctx.company_id).all()
    resolved = resolve_salary(components, profile.component_values)
    result = {
        "id": profile.id,
        "employee_id": profile.employee_id,
        "employee_name": profile.employee.full_name if profile.employee else None,
        "effective_from": profile.effective_from,
        "active": profile.active,
        "component_values": profile.component_values,
        "gross": resolved.gross,
    }
    result.update({field: getattr(profile, field) for field in IDENTITY_FIELDS})
    result.update({field: decrypt_data(getattr(profile, field)) for field in ENCRYPTED_FIELDS})
    return result
