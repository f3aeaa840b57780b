"""
Statutory deductions: Provident Fund, Employee State Insurance and TDS.

Pure functions over an already-resolved gross. Amounts are rounded half-up
to whole currency units.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Tuple

from hrms.services.money import ZERO, percent_of, round_whole, to_decimal

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = Decimal(12)

PF_SORT_ORDER = 100
ESI_SORT_ORDER = 101
TDS_SORT_ORDER = 103


@dataclass(frozen=True)
class StatutorySettings:
    pf_enabled: bool = False
    pf_employee_rate: Decimal = ZERO
    pf_employer_rate: Decimal = ZERO
    pf_limit: Decimal = ZERO
    esi_enabled: bool = False
    esi_employee_rate: Decimal = ZERO
    esi_employer_rate: Decimal = ZERO
    esi_limit: Decimal = ZERO
    tds_enabled: bool = False
    tax_regime: str = "new"
    tds_rebate_limit: Decimal = Decimal("700000")

    @classmethod
    def disabled(cls) -> "StatutorySettings":
        return cls()

    @classmethod
    def from_model(cls, row) -> "StatutorySettings":
        return cls(
            pf_enabled=bool(row.pf_enabled),
            pf_employee_rate=to_decimal(row.pf_employee_rate),
            pf_employer_rate=to_decimal(row.pf_employer_rate),
            pf_limit=to_decimal(row.pf_limit),
            esi_enabled=bool(row.esi_enabled),
            esi_employee_rate=to_decimal(row.esi_employee_rate),
            esi_employer_rate=to_decimal(row.esi_employer_rate),
            esi_limit=to_decimal(row.esi_limit),
            tds_enabled=bool(row.tds_enabled),
            tax_regime=row.tax_regime or "new",
            tds_rebate_limit=to_decimal(row.tds_rebate_limit, default=Decimal("700000")),
        )


@dataclass(frozen=True)
class TaxBracket:
    min_income: Decimal
    max_income: Optional[Decimal]
    rate: Decimal

    @classmethod
    def from_model(cls, slab) -> "TaxBracket":
        return cls(
            min_income=to_decimal(slab.min_income),
            max_income=to_decimal(slab.max_income) if slab.max_income is not None else None,
            rate=to_decimal(slab.rate),
        )


def _brackets(rows: Sequence[Tuple[int, Optional[int], str]]) -> Tuple[TaxBracket, ...]:
    return tuple(
        TaxBracket(Decimal(lo), Decimal(hi) if hi is not None else None, Decimal(rate))
        for lo, hi, rate in rows
    )


# Used when a company has not configured slabs for its regime and year
DEFAULT_TAX_SLABS = {
    "new": _brackets([
        (0, 300000, "0"),
        (300000, 700000, "5"),
        (700000, 1000000, "10"),
        (1000000, 1200000, "15"),
        (1200000, 1500000, "20"),
        (1500000, None, "30"),
    ]),
    "old": _brackets([
        (0, 250000, "0"),
        (250000, 500000, "5"),
        (500000, 1000000, "20"),
        (1000000, None, "30"),
    ]),
}


@dataclass(frozen=True)
class StatutoryResult:
    employee_pf: Decimal = ZERO
    employer_pf: Decimal = ZERO
    employee_esi: Decimal = ZERO
    employer_esi: Decimal = ZERO
    tds: Decimal = ZERO
    annual_taxable_income: Decimal = ZERO
    pf_applied: bool = False
    esi_applied: bool = False
    tds_applied: bool = False

    @property
    def employee_deductions(self) -> Decimal:
        return self.employee_pf + self.employee_esi + self.tds

    @property
    def employer_additions(self) -> Decimal:
        return self.employer_pf + self.employer_esi


def compute_progressive_tax(income: Decimal, slabs: Iterable[TaxBracket]) -> Decimal:
    """Annual tax: each slab's rate applies only to the part of income inside it."""
    income = to_decimal(income)
    tax = ZERO
    for slab in sorted(slabs, key=lambda s: s.min_income):
        if income <= slab.min_income:
            continue
        upper = income if slab.max_income is None else min(income, slab.max_income)
        tax += percent_of(upper - slab.min_income, slab.rate)
    return tax


def compute_monthly_tds(monthly_income: Decimal, settings: StatutorySettings,
                        slabs: Optional[Iterable[TaxBracket]] = None) -> Tuple[Decimal, Decimal]:
    """Returns ``(monthly_tds, annualized_income)``."""
    annual = to_decimal(monthly_income) * MONTHS_PER_YEAR
    if not settings.tds_enabled or annual <= settings.tds_rebate_limit:
        return ZERO, annual
    brackets = list(slabs or [])
    if not brackets:
        brackets = list(DEFAULT_TAX_SLABS.get(settings.tax_regime, DEFAULT_TAX_SLABS["new"]))
    return round_whole(compute_progressive_tax(annual, brackets) / MONTHS_PER_YEAR), annual


def compute_statutory(
    gross: Decimal,
    pf_wage_base: Decimal,
    settings: Optional[StatutorySettings],
    tax_slabs: Optional[Iterable[TaxBracket]] = None,
) -> StatutoryResult:
    """
    Apply PF, ESI and TDS rules to a resolved monthly gross.

    Args:
        gross: monthly gross earnings
        pf_wage_base: sum of PF-applicable earnings
        settings: company statutory settings; ``None`` disables everything
        tax_slabs: configured tax brackets for the company's regime and year
    """
    if settings is None:
        settings = StatutorySettings.disabled()
    gross = to_decimal(gross)

    employee_pf = employer_pf = ZERO
    if settings.pf_enabled:
        pf_base = min(to_decimal(pf_wage_base), settings.pf_limit)
        employee_pf = round_whole(percent_of(pf_base, settings.pf_employee_rate))
        employer_pf = round_whole(percent_of(pf_base, settings.pf_employer_rate))

    # ESI is all-or-nothing: one unit above the ceiling and neither share applies
    esi_applied = settings.esi_enabled and gross <= settings.esi_limit
    employee_esi = employer_esi = ZERO
    if esi_applied:
        employee_esi = round_whole(percent_of(gross, settings.esi_employee_rate))
        employer_esi = round_whole(percent_of(gross, settings.esi_employer_rate))

    tds, annual = compute_monthly_tds(gross, settings, tax_slabs)

    return StatutoryResult(
        employee_pf=employee_pf,
        employer_pf=employer_pf,
        employee_esi=employee_esi,
        employer_esi=employer_esi,
        tds=tds,
        annual_taxable_income=annual,
        pf_applied=settings.pf_enabled,
        esi_applied=esi_applied,
        tds_applied=tds > 0,
    )
