"""
Payroll Service Layer

Runs payroll for a pay period and moves runs through their lifecycle.

Architecture:
- Router -> Service (this module) -> Models
- Salary resolution and statutory arithmetic live in pure modules
  (``salary_resolver``, ``statutory``); this module loads their inputs,
  persists payslips and owns the transaction.

A run is all-or-nothing: payslips and the run row are written in one
transaction, and any failure part-way rolls the whole run back.
"""
import logging
import threading
import weakref
from collections import defaultdict
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrms.core.exceptions import (
    AppException, ConflictError, NotFoundError, PayrollProcessingError, ValidationError
)
from hrms.core.security import decrypt_data, mask_identifier, sanitize_input
from hrms.core.tenant import TenantContext
from hrms.models.employee import Employee
from hrms.models.payroll import (
    PayrollRun, PayrollRunStatus, Payslip, PayslipLineItem, PayslipStatus
)
from hrms.models.salary_component import ComponentKind, SalaryComponent
from hrms.models.salary_profile import EmployeeSalaryProfile
from hrms.services import payroll_config
from hrms.services.audit import AuditService
from hrms.services.money import ZERO, round_money
from hrms.services.salary_resolver import resolve_salary
from hrms.services.state_machines import RunEvent, transition_run
from hrms.services.statutory import (
    ESI_SORT_ORDER, PF_SORT_ORDER, TDS_SORT_ORDER, StatutorySettings, TaxBracket, compute_statutory
)

logger = logging.getLogger(__name__)

_EARNING = ComponentKind.EARNING.value
_DEDUCTION = ComponentKind.DEDUCTION.value

# One payroll run at a time per company within this process. The partial
# unique index on payroll_runs covers concurrent runs from other processes.
# Locks are dropped once no run holds them.
_company_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
_registry_lock = threading.Lock()


@contextmanager
def _company_run_lock(company_id: int):
    with _registry_lock:
        lock = _company_locks.setdefault(company_id, threading.Lock())
    if not lock.acquire(blocking=False):
        raise ConflictError("Another payroll run is in progress for this company")
    try:
        yield
    finally:
        lock.release()


def _find_overlapping_run(db: Session, ctx: TenantContext, period_start: date,
                          period_end: date) -> Optional[PayrollRun]:
    return db.query(PayrollRun).filter(
        PayrollRun.company_id == ctx.company_id,
        PayrollRun.status != PayrollRunStatus.CANCELLED.value,
        and_(PayrollRun.period_start <= period_end, PayrollRun.period_end >= period_start)
    ).first()


def _component_names(components: Iterable[SalaryComponent]) -> Dict[str, str]:
    names = {"PF": "Provident Fund", "ESI": "ESI", "TDS": "TDS"}
    names.update({c.code: c.name for c in components})
    return names


def build_payslip(
    run: PayrollRun,
    profile: EmployeeSalaryProfile,
    components: List[SalaryComponent],
    statutory: Optional[StatutorySettings],
    brackets: List[TaxBracket],
) -> Payslip:
    """Compute one employee's payslip with its line items (not yet persisted)."""
    resolved = resolve_salary(components, profile.component_values)
    result = compute_statutory(resolved.gross, resolved.pf_wage_base, statutory, brackets)
    names = _component_names(components)

    items = [
        PayslipLineItem(
            component_name=line.name, component_code=line.code, type=_EARNING,
            amount=line.amount, sort_order=line.sort_order,
        )
        for line in resolved.earnings
    ]
    if result.pf_applied:
        items.append(PayslipLineItem(
            component_name=names["PF"], component_code="PF", type=_DEDUCTION,
            amount=result.employee_pf, sort_order=PF_SORT_ORDER,
        ))
    if result.esi_applied:
        items.append(PayslipLineItem(
            component_name=names["ESI"], component_code="ESI", type=_DEDUCTION,
            amount=result.employee_esi, sort_order=ESI_SORT_ORDER,
        ))
    if result.tds_applied:
        items.append(PayslipLineItem(
            component_name=names["TDS"], component_code="TDS", type=_DEDUCTION,
            amount=result.tds, sort_order=TDS_SORT_ORDER,
        ))
    items.extend(
        PayslipLineItem(
            component_name=line.name, component_code=line.code, type=_DEDUCTION,
            amount=line.amount, sort_order=line.sort_order,
        )
        for line in resolved.other_deductions
    )

    gross = round_money(resolved.gross)
    total_deductions = round_money(result.employee_deductions + resolved.other_deductions_total)
    employee: Employee = profile.employee

    return Payslip(
        company_id=run.company_id,
        employee_id=profile.employee_id,
        salary_profile_id=profile.id,
        employee_name=employee.full_name,
        employee_email=employee.email,
        department_name=employee.department_name,
        designation=employee.designation,
        bank_name=profile.bank_name,
        bank_account_number=profile.bank_account_number,
        ifsc_code=profile.ifsc_code,
        pan_number=profile.pan_number,
        pf_number=profile.pf_number,
        esi_number=profile.esi_number,
        uan_number=profile.uan_number,
        period_start=run.period_start,
        period_end=run.period_end,
        gross_earnings=gross,
        total_deductions=total_deductions,
        net_pay=gross - total_deductions,
        employer_pf=result.employer_pf,
        employer_esi=result.employer_esi,
        employer_cost=gross + result.employer_additions,
        taxable_income=result.annual_taxable_income,
        tds_amount=result.tds,
        status=PayslipStatus.GENERATED.value,
        items=sorted(items, key=lambda item: item.sort_order),
    )


def run_payroll(
    db: Session,
    ctx: TenantContext,
    period_start: date,
    period_end: date,
    pay_date: date,
    notes: Optional[str] = None
) -> PayrollRun:
    """
    Process payroll for every active salary profile of the company.

    Returns:
        The committed run in ``processed`` status

    Raises:
        ValidationError: bad period or no active salary profiles
        ConflictError: a live run already covers an overlapping period
        PayrollProcessingError: an employee failed; nothing was persisted
    """
    if period_start > period_end:
        raise ValidationError("Pay period start must not be after its end")

    with _company_run_lock(ctx.company_id):
        existing = _find_overlapping_run(db, ctx, period_start, period_end)
        if existing:
            raise ConflictError(
                f"Payroll already run for {existing.period_start} to {existing.period_end}",
                details={"run_id": existing.id, "status": existing.status}
            )

        warnings: List[str] = []
        statutory = payroll_config.load_statutory_settings(db, ctx)
        if statutory is None:
            # Fail open: no settings means no statutory deductions
            logger.warning(f"No payroll settings for company {ctx.company_id}; statutory deductions skipped")
            warnings.append("Payroll settings are not configured; PF, ESI and TDS were not deducted")

        profiles = db.query(EmployeeSalaryProfile).filter(
            EmployeeSalaryProfile.company_id == ctx.company_id,
            EmployeeSalaryProfile.active.is_(True)
        ).order_by(EmployeeSalaryProfile.employee_id).all()
        if not profiles:
            raise ValidationError("No employee salaries found. Please set up salaries first.")

        components = db.query(SalaryComponent).filter(SalaryComponent.company_id == ctx.company_id).all()
        brackets: List[TaxBracket] = []
        if statutory is not None and statutory.tds_enabled:
            brackets = payroll_config.load_tax_brackets(
                db, ctx, payroll_config.financial_year_for(period_start), statutory.tax_regime
            )

        run = PayrollRun(
            company_id=ctx.company_id,
            period_start=period_start,
            period_end=period_end,
            pay_date=pay_date,
            status=PayrollRunStatus.PROCESSING.value,
            notes=sanitize_input(notes),
            processed_by=ctx.user_id,
            processed_at=datetime.now(timezone.utc),
        )
        totals = defaultdict(lambda: ZERO)

        try:
            db.add(run)
            db.flush()  # get run.id

            for profile in profiles:
                try:
                    payslip = build_payslip(run, profile, components, statutory, brackets)
                    run.payslips.append(payslip)
                    db.flush()
                except Exception as e:
                    name = profile.employee.full_name if profile.employee else f"Employee #{profile.employee_id}"
                    message = e.message if isinstance(e, AppException) else str(e)
                    raise PayrollProcessingError(
                        f"Payroll failed for {name}: {message}. No payslips were saved.",
                        details={"employee_id": profile.employee_id, "salary_profile_id": profile.id}
                    ) from e

                if payslip.net_pay < 0:
                    warnings.append(f"Negative net pay for {payslip.employee_name}: {payslip.net_pay}")
                totals["gross"] += payslip.gross_earnings
                totals["deductions"] += payslip.total_deductions
                totals["net"] += payslip.net_pay
                totals["employer_cost"] += payslip.employer_cost

            run.status = transition_run(run.status, RunEvent.COMPLETE).value
            run.total_gross = totals["gross"]
            run.total_deductions = totals["deductions"]
            run.total_net = totals["net"]
            run.total_employer_cost = totals["employer_cost"]
            run.employee_count = len(profiles)
            run.warnings = warnings or None

            AuditService.log(
                db, ctx,
                action="run_payroll",
                entity_type="payroll_run",
                entity_id=run.id,
                details={"period_start": period_start, "period_end": period_end, "employees": len(profiles)},
                after_state={"status": run.status, "total_net": run.total_net},
            )
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ConflictError("Payroll already run for this period") from e
        except Exception:
            db.rollback()
            logger.error(f"Payroll run for company {ctx.company_id} ({period_start} to {period_end}) rolled back",
                         exc_info=True)
            raise

    db.refresh(run)
    logger.info(f"Payroll processed for {run.employee_count} employees (run {run.id})")
    return run


# --- Lifecycle ---

def _transition(db: Session, ctx: TenantContext, run_id: int, event: RunEvent, apply=None) -> PayrollRun:
    run = get_run(db, ctx, run_id)
    before_state = {"status": run.status}
    run.status = transition_run(run.status, event).value
    if apply:
        apply(run)
    AuditService.log(
        db, ctx,
        action=f"{event.value}_payroll_run",
        entity_type="payroll_run",
        entity_id=run.id,
        before_state=before_state,
        after_state={"status": run.status},
    )
    try:
        db.commit()
        db.refresh(run)
    except Exception:
        db.rollback()
        raise
    logger.info(f"Payroll run {run.id}: {before_state['status']} -> {run.status}")
    return run


def approve_run(db: Session, ctx: TenantContext, run_id: int) -> PayrollRun:
    def _apply(run: PayrollRun):
        run.approved_by = ctx.user_id
        run.approved_at = datetime.now(timezone.utc)
    return _transition(db, ctx, run_id, RunEvent.APPROVE, _apply)


def mark_run_paid(db: Session, ctx: TenantContext, run_id: int) -> PayrollRun:
    def _apply(run: PayrollRun):
        run.paid_at = datetime.now(timezone.utc)
        for payslip in run.payslips:
            payslip.status = PayslipStatus.PAID.value
    return _transition(db, ctx, run_id, RunEvent.PAY, _apply)


def cancel_run(db: Session, ctx: TenantContext, run_id: int) -> PayrollRun:
    """Cancel a run and discard its payslips; the period can then be run again."""
    def _apply(run: PayrollRun):
        run.payslips.clear()
    return _transition(db, ctx, run_id, RunEvent.CANCEL, _apply)


def delete_run(db: Session, ctx: TenantContext, run_id: int) -> None:
    run = get_run(db, ctx, run_id)
    if run.status not in (PayrollRunStatus.PROCESSED.value, PayrollRunStatus.CANCELLED.value):
        raise ConflictError(f"A payroll run in status '{run.status}' cannot be deleted")
    AuditService.log(
        db, ctx,
        action="delete_payroll_run",
        entity_type="payroll_run",
        entity_id=run.id,
        before_state={"status": run.status, "period_start": run.period_start, "period_end": run.period_end},
    )
    db.delete(run)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


# --- Queries ---

def list_runs(db: Session, ctx: TenantContext, status: Optional[str] = None) -> List[PayrollRun]:
    query = db.query(PayrollRun).filter(PayrollRun.company_id == ctx.company_id)
    if status:
        query = query.filter(PayrollRun.status == status)
    return query.order_by(PayrollRun.period_end.desc(), PayrollRun.id.desc()).all()


def get_run(db: Session, ctx: TenantContext, run_id: int) -> PayrollRun:
    run = db.query(PayrollRun).filter(
        PayrollRun.id == run_id,
        PayrollRun.company_id == ctx.company_id
    ).first()
    if not run:
        raise NotFoundError("Payroll run", run_id)
    return run


def list_run_payslips(db: Session, ctx: TenantContext, run_id: int) -> List[Payslip]:
    return list(get_run(db, ctx, run_id).payslips)


def get_payslip(db: Session, ctx: TenantContext, payslip_id: int) -> Payslip:
    payslip = db.query(Payslip).filter(
        Payslip.id == payslip_id,
        Payslip.company_id == ctx.company_id
    ).first()
    if not payslip:
        raise NotFoundError("Payslip", payslip_id)
    return payslip


def list_employee_payslips(db: Session, ctx: TenantContext, employee_id: int) -> List[Payslip]:
    return db.query(Payslip).filter(
        Payslip.company_id == ctx.company_id,
        Payslip.employee_id == employee_id
    ).order_by(Payslip.period_end.desc()).all()


def payslip_to_dict(payslip: Payslip, include_items: bool = True) -> Dict[str, Any]:
    """Payslip view with decrypted, masked bank account and PAN."""
    result = {
        "id": payslip.id,
        "payroll_run_id": payslip.payroll_run_id,
        "employee_id": payslip.employee_id,
        "employee_name": payslip.employee_name,
        "employee_email": payslip.employee_email,
        "department_name": payslip.department_name,
        "designation": payslip.designation,
        "bank_name": payslip.bank_name,
        "bank_account_number": mask_identifier(decrypt_data(payslip.bank_account_number)),
        "ifsc_code": payslip.ifsc_code,
        "pan_number": mask_identifier(decrypt_data(payslip.pan_number)),
        "pf_number": payslip.pf_number,
        "esi_number": payslip.esi_number,
        "uan_number": payslip.uan_number,
        "period_start": payslip.period_start,
        "period_end": payslip.period_end,
        "gross_earnings": payslip.gross_earnings,
        "total_deductions": payslip.total_deductions,
        "net_pay": payslip.net_pay,
        "employer_pf": payslip.employer_pf,
        "employer_esi": payslip.employer_esi,
        "employer_cost": payslip.employer_cost,
        "taxable_income": payslip.taxable_income,
        "tds_amount": payslip.tds_amount,
        "status": payslip.status,
    }
    if include_items:
        result["items"] = [
            {
                "component_name": item.component_name,
                "component_code": item.component_code,
                "type": item.type,
                "amount": item.amount,
                "sort_order": item.sort_order,
            }
            for item in payslip.items
        ]
    return result


def build_run_report(run: PayrollRun) -> Dict[str, Any]:
    """Department breakdown and statutory totals for one run."""
    departments: Dict[str, Dict[str, Any]] = {}
    statutory = defaultdict(lambda: ZERO)

    for payslip in run.payslips:
        name = payslip.department_name or "Unassigned"
        row = departments.setdefault(name, {
            "department_name": name, "employee_count": 0,
            "gross": ZERO, "deductions": ZERO, "net": ZERO,
        })
        row["employee_count"] += 1
        row["gross"] += payslip.gross_earnings
        row["deductions"] += payslip.total_deductions
        row["net"] += payslip.net_pay

        statutory["employer_pf"] += payslip.employer_pf
        statutory["employer_esi"] += payslip.employer_esi
        statutory["tds"] += payslip.tds_amount
        for item in payslip.items:
            if item.component_code == "PF":
                statutory["employee_pf"] += item.amount
            elif item.component_code == "ESI":
                statutory["employee_esi"] += item.amount

    return {
        "run_id": run.id,
        "period_start": run.period_start,
        "period_end": run.period_end,
        "status": run.status,
        "employee_count": run.employee_count,
        "total_gross": run.total_gross,
        "total_deductions": run.total_deductions,
        "total_net": run.total_net,
        "total_employer_cost": run.total_employer_cost,
        "departments": sorted(departments.values(), key=lambda row: row["department_name"]),
        "statutory": {
            key: statutory[key]
            for key in ("employee_pf", "employer_pf", "employee_esi", "employer_esi", "tds")
        },
    }
