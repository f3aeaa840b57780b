import pytest
from dataclasses import replace
from decimal import Decimal

from hrms.services.statutory import (
    DEFAULT_TAX_SLABS, StatutorySettings, TaxBracket, compute_monthly_tds,
    compute_progressive_tax, compute_statutory
)


@pytest.fixture
def settings():
    return StatutorySettings(
        pf_enabled=True,
        pf_employee_rate=Decimal("12"),
        pf_employer_rate=Decimal("12"),
        pf_limit=Decimal("15000"),
        esi_enabled=True,
        esi_employee_rate=Decimal("0.75"),
        esi_employer_rate=Decimal("3.25"),
        esi_limit=Decimal("21000"),
        tds_enabled=True,
        tax_regime="new",
        tds_rebate_limit=Decimal("700000"),
    )


def test_pf_capped_at_wage_ceiling(settings):
    result = compute_statutory(Decimal("20000"), Decimal("20000"), settings)
    assert result.employee_pf == Decimal("1800")
    assert result.employer_pf == Decimal("1800")


def test_pf_below_ceiling_uses_wage_base(settings):
    result = compute_statutory(Decimal("12000"), Decimal("10000"), settings)
    assert result.employee_pf == Decimal("1200")


def test_esi_applies_at_ceiling(settings):
    result = compute_statutory(Decimal("21000"), Decimal("15000"), settings)
    assert result.esi_applied
    # 157.50 and 682.50 round half-up
    assert result.employee_esi == Decimal("158")
    assert result.employer_esi == Decimal("683")


def test_esi_cliff_one_unit_above_ceiling(settings):
    result = compute_statutory(Decimal("21001"), Decimal("15000"), settings)
    assert not result.esi_applied
    assert result.employee_esi == Decimal("0")
    assert result.employer_esi == Decimal("0")


def test_no_tds_up_to_rebate_limit(settings):
    result = compute_statutory(Decimal("58333"), Decimal("15000"), settings)
    assert result.annual_taxable_income == Decimal("699996")
    assert result.tds == Decimal("0")
    assert not result.tds_applied


def test_tds_progressive_above_rebate_limit(settings):
    result = compute_statutory(Decimal("60000"), Decimal("15000"), settings)
    # 5% of 300k-700k plus 10% of 700k-720k, spread over 12 months
    assert result.tds == Decimal("1833")
    assert result.tds_applied


def test_tds_uses_configured_slabs(settings):
    slabs = [TaxBracket(Decimal("0"), None, Decimal("10"))]
    tds, annual = compute_monthly_tds(Decimal("100000"), settings, slabs)
    assert annual == Decimal("1200000")
    assert tds == Decimal("10000")


def test_old_regime_defaults(settings):
    tax = compute_progressive_tax(Decimal("1200000"), DEFAULT_TAX_SLABS["old"])
    assert tax == Decimal("12500") + Decimal("100000") + Decimal("60000")


def test_missing_settings_disable_everything():
    result = compute_statutory(Decimal("15000"), Decimal("15000"), None)
    assert result.employee_deductions == Decimal("0")
    assert result.employer_additions == Decimal("0")
    assert not (result.pf_applied or result.esi_applied or result.tds_applied)


def test_disabled_components_skipped(settings):
    result = compute_statutory(Decimal("15000"), Decimal("15000"), replace(settings, pf_enabled=False))
    assert result.employee_pf == Decimal("0")
    assert not result.pf_applied
    assert result.esi_applied


def test_totals_combine_shares(settings):
    result = compute_statutory(Decimal("15000"), Decimal("11000"), settings)
    assert result.employee_pf == Decimal("1320")
    assert result.employee_esi == Decimal("113")
    assert result.employer_esi == Decimal("488")
    assert result.employee_deductions == Decimal("1433")
    assert result.employer_additions == Decimal("1808")
