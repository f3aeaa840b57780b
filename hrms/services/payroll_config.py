"""
Per-company payroll configuration: statutory settings and tax slabs.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from hrms.core.exceptions import NotFoundError, ValidationError
from hrms.core.tenant import TenantContext
from hrms.models.payroll_settings import PayrollSettings
from hrms.models.tax_slab import TaxSlab
from hrms.services.statutory import DEFAULT_TAX_SLABS, StatutorySettings, TaxBracket

logger = logging.getLogger(__name__)

TAX_REGIMES = ("new", "old")
PAY_CYCLES = ("monthly", "weekly")


def financial_year_for(day: date) -> str:
    """Indian financial year label (April to March), e.g. ``2025-26``."""
    start = day.year if day.month >= 4 else day.year - 1
    return f"{start}-{(start + 1) % 100:02d}"


# --- Settings ---

def get_settings_row(db: Session, ctx: TenantContext) -> Optional[PayrollSettings]:
    return db.query(PayrollSettings).filter(PayrollSettings.company_id == ctx.company_id).first()


def get_settings(db: Session, ctx: TenantContext) -> PayrollSettings:
    row = get_settings_row(db, ctx)
    if not row:
        raise NotFoundError("Payroll settings")
    return row


def load_statutory_settings(db: Session, ctx: TenantContext) -> Optional[StatutorySettings]:
    row = get_settings_row(db, ctx)
    return StatutorySettings.from_model(row) if row else None


def save_settings(db: Session, ctx: TenantContext, data: Dict[str, Any]) -> PayrollSettings:
    if data.get("tax_regime") is not None and data["tax_regime"] not in TAX_REGIMES:
        raise ValidationError(f"Tax regime must be one of {', '.join(TAX_REGIMES)}")
    if data.get("pay_cycle") is not None and data["pay_cycle"] not in PAY_CYCLES:
        raise ValidationError(f"Pay cycle must be one of {', '.join(PAY_CYCLES)}")
    for field in ("pf_employee_rate", "pf_employer_rate", "esi_employee_rate", "esi_employer_rate"):
        value = data.get(field)
        if value is not None and not (Decimal(0) <= Decimal(value) <= Decimal(100)):
            raise ValidationError(f"{field} must be between 0 and 100")

    row = get_settings_row(db, ctx)
    if row is None:
        row = PayrollSettings(company_id=ctx.company_id)
        db.add(row)
    for key, value in data.items():
        if value is not None:
            setattr(row, key, value)
    try:
        db.commit()
        db.refresh(row)
    except Exception:
        db.rollback()
        raise
    logger.info(f"Payroll settings saved for company {ctx.company_id}")
    return row


# --- Tax slabs ---

def list_tax_slabs(db: Session, ctx: TenantContext, financial_year: Optional[str] = None,
                   regime: Optional[str] = None) -> List[TaxSlab]:
    query = db.query(TaxSlab).filter(TaxSlab.company_id == ctx.company_id)
    if financial_year:
        query = query.filter(TaxSlab.financial_year == financial_year)
    if regime:
        query = query.filter(TaxSlab.regime == regime)
    return query.order_by(TaxSlab.regime, TaxSlab.min_income).all()


def load_tax_brackets(db: Session, ctx: TenantContext, financial_year: str, regime: str) -> List[TaxBracket]:
    rows = db.query(TaxSlab).filter(
        TaxSlab.company_id == ctx.company_id,
        TaxSlab.financial_year == financial_year,
        TaxSlab.regime == regime,
        TaxSlab.active.is_(True)
    ).order_by(TaxSlab.min_income).all()
    return [TaxBracket.from_model(row) for row in rows]


def create_tax_slab(db: Session, ctx: TenantContext, data: Dict[str, Any]) -> TaxSlab:
    if data.get("regime", "new") not in TAX_REGIMES:
        raise ValidationError(f"Tax regime must be one of {', '.join(TAX_REGIMES)}")
    max_income = data.get("max_income")
    if max_income is not None and Decimal(max_income) <= Decimal(data["min_income"]):
        raise ValidationError("max_income must be greater than min_income")
    slab = TaxSlab(company_id=ctx.company_id, **data)
    db.add(slab)
    try:
        db.commit()
        db.refresh(slab)
    except Exception:
        db.rollback()
        raise
    return slab


def delete_tax_slab(db: Session, ctx: TenantContext, slab_id: int) -> None:
    slab = db.query(TaxSlab).filter(TaxSlab.id == slab_id, TaxSlab.company_id == ctx.company_id).first()
    if not slab:
        raise NotFoundError("Tax slab", slab_id)
    db.delete(slab)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def initialize_default_slabs(db: Session, ctx: TenantContext, financial_year: str,
                             commit: bool = True) -> List[TaxSlab]:
    """Seed both regimes' default slabs for a year; regimes already configured are left alone."""
    created = []
    for regime, brackets in DEFAULT_TAX_SLABS.items():
        if list_tax_slabs(db, ctx, financial_year, regime):
            continue
        for bracket in brackets:
            slab = TaxSlab(
                company_id=ctx.company_id,
                financial_year=financial_year,
                regime=regime,
                min_income=bracket.min_income,
                max_income=bracket.max_income,
                rate=bracket.rate,
                active=True,
            )
            db.add(slab)
            created.append(slab)
    if commit:
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
    else:
        db.flush()
    return created
