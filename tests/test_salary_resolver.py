import pytest
from decimal import Decimal

from hrms.core.exceptions import ComponentCycleError, ValidationError
from hrms.services.salary_resolver import ComponentSpec, resolve_salary


def earning(code, sort_order=1, **kwargs):
    return ComponentSpec(code=code, name=code.title(), kind="earning", sort_order=sort_order, **kwargs)


def deduction(code, sort_order=100, **kwargs):
    return ComponentSpec(code=code, name=code.title(), kind="deduction", sort_order=sort_order, taxable=False, **kwargs)


def pct(base, value):
    return {"calc": "percentage", "percentage_of": base, "percentage_value": Decimal(value)}


@pytest.fixture
def components():
    return [
        earning("BASIC", 1, pf_applicable=True, esi_applicable=True),
        earning("HRA", 2, esi_applicable=True, **pct("BASIC", "40")),
        earning("SPECIAL", 3, esi_applicable=True),
        earning("LTA", 4, taxable=False),
        deduction("PF", 100, **pct("BASIC", "12")),
        deduction("PT", 102),
        deduction("LOAN", 104),
    ]


def test_percentage_component_computed_from_base(components):
    resolved = resolve_salary(components, {"BASIC": 20000})

    amounts = {line.code: line.amount for line in resolved.earnings}
    assert amounts == {"BASIC": Decimal("20000.00"), "HRA": Decimal("8000.00")}
    assert resolved.gross == Decimal("28000.00")
    assert resolved.pf_wage_base == Decimal("20000.00")
    assert resolved.esi_wage_base == Decimal("28000.00")


def test_entered_amount_overrides_percentage(components):
    resolved = resolve_salary(components, {"BASIC": 20000, "HRA": 5000})
    assert {line.code: line.amount for line in resolved.earnings}["HRA"] == Decimal("5000.00")
    assert resolved.gross == Decimal("25000.00")


def test_gross_is_sum_of_earnings(components):
    resolved = resolve_salary(components, {"BASIC": 15000, "SPECIAL": "2500.50", "LTA": 1000})
    assert resolved.gross == sum(line.amount for line in resolved.earnings)
    assert resolved.taxable_gross == resolved.gross - Decimal("1000.00")


def test_statutory_codes_are_ignored(components):
    resolved = resolve_salary(components, {"BASIC": 20000, "PF": 9999})
    assert all(line.code != "PF" for line in resolved.other_deductions)


def test_other_deductions_keep_sort_order(components):
    resolved = resolve_salary(components, {"BASIC": 20000, "LOAN": 1500, "PT": 200})
    assert [line.code for line in resolved.other_deductions] == ["PT", "LOAN"]
    assert resolved.other_deductions_total == Decimal("1700.00")


def test_zero_fixed_components_are_omitted(components):
    resolved = resolve_salary(components, {"BASIC": 20000})
    assert "SPECIAL" not in {line.code for line in resolved.earnings}


def test_inactive_component_is_skipped(components):
    components.append(earning("BONUS", 5, active=False))
    resolved = resolve_salary(components, {"BASIC": 10000, "BONUS": 5000})
    assert resolved.gross == Decimal("14000.00")


def test_chained_percentages_resolve_in_dependency_order():
    components = [
        earning("CHILD", 3, **pct("HRA", "50")),
        earning("HRA", 2, **pct("BASIC", "40")),
        earning("BASIC", 1),
    ]
    resolved = resolve_salary(components, {"BASIC": 10000})
    amounts = {line.code: line.amount for line in resolved.earnings}
    assert amounts["HRA"] == Decimal("4000.00")
    assert amounts["CHILD"] == Decimal("2000.00")


def test_deduction_percentage_of_gross():
    components = [
        earning("BASIC", 1),
        earning("HRA", 2, **pct("BASIC", "50")),
        deduction("WELFARE", 105, **pct("GROSS", "1")),
    ]
    resolved = resolve_salary(components, {"BASIC": 10000})
    assert resolved.other_deductions[0].amount == Decimal("150.00")


def test_cycle_is_rejected():
    components = [
        earning("A", 1, **pct("B", "10")),
        earning("B", 2, **pct("A", "10")),
    ]
    with pytest.raises(ComponentCycleError):
        resolve_salary(components, {})


def test_cycle_broken_by_entered_amount():
    components = [
        earning("A", 1, **pct("B", "10")),
        earning("B", 2, **pct("A", "10")),
    ]
    resolved = resolve_salary(components, {"A": 1000})
    assert {line.code: line.amount for line in resolved.earnings} == {
        "A": Decimal("1000.00"), "B": Decimal("100.00")
    }


def test_negative_amount_rejected(components):
    with pytest.raises(ValidationError):
        resolve_salary(components, {"BASIC": -1})


def test_earning_cannot_be_percentage_of_gross():
    with pytest.raises(ValidationError):
        resolve_salary([earning("BASIC"), earning("X", 2, **pct("GROSS", "10"))], {"BASIC": 100})


def test_percentage_component_needs_base():
    with pytest.raises(ValidationError):
        resolve_salary([earning("HRA", calc="percentage")], {})
