"""
Salary component resolution.

Expands a company's component graph plus one employee's entered amounts
into concrete earning and deduction lines.

* Amounts entered for a component are used as-is, whatever its ``calc``.
* A percentage component with no entered amount is computed from its base
  (another component code, or ``GROSS`` for deductions). Bases are resolved
  first, so chains such as ``X = 50% of HRA = 40% of BASIC`` work; a
  reference cycle raises ``ComponentCycleError``.
* Statutory deductions (PF, ESI, TDS) are never taken from entered amounts;
  ``hrms.services.statutory`` computes them.

No I/O happens here.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from graphlib import CycleError, TopologicalSorter
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from hrms.core.exceptions import ComponentCycleError, ValidationError
from hrms.models.salary_component import CalculationType, ComponentKind, GROSS_CODE
from hrms.services.money import ZERO, percent_of, round_money, to_decimal

logger = logging.getLogger(__name__)

STATUTORY_CODES = frozenset({"PF", "ESI", "TDS"})


@dataclass(frozen=True)
class ComponentSpec:
    code: str
    name: str
    kind: str
    calc: str = CalculationType.FIXED.value
    percentage_of: Optional[str] = None
    percentage_value: Optional[Decimal] = None
    taxable: bool = True
    pf_applicable: bool = False
    esi_applicable: bool = False
    sort_order: int = 0
    active: bool = True

    @property
    def is_percentage(self) -> bool:
        return self.calc == CalculationType.PERCENTAGE.value

    @classmethod
    def from_model(cls, component) -> "ComponentSpec":
        return cls(
            code=component.code,
            name=component.name,
            kind=component.kind,
            calc=component.calc,
            percentage_of=component.percentage_of,
            percentage_value=to_decimal(component.percentage_value) if component.percentage_value is not None else None,
            taxable=bool(component.taxable),
            pf_applicable=bool(component.pf_applicable),
            esi_applicable=bool(component.esi_applicable),
            sort_order=component.sort_order or 0,
            active=bool(component.active),
        )


@dataclass(frozen=True)
class ResolvedLine:
    code: str
    name: str
    kind: str
    amount: Decimal
    sort_order: int
    taxable: bool = True
    pf_applicable: bool = False
    esi_applicable: bool = False


@dataclass(frozen=True)
class ResolvedSalary:
    earnings: Tuple[ResolvedLine, ...]
    other_deductions: Tuple[ResolvedLine, ...]
    gross: Decimal
    pf_wage_base: Decimal
    esi_wage_base: Decimal
    taxable_gross: Decimal

    @property
    def other_deductions_total(self) -> Decimal:
        return sum((line.amount for line in self.other_deductions), ZERO)


def validate_component_definition(spec: ComponentSpec) -> None:
    """Shape checks shared by the resolver and the component CRUD service."""
    if spec.kind not in (ComponentKind.EARNING.value, ComponentKind.DEDUCTION.value):
        raise ValidationError(f"Unknown component kind '{spec.kind}'")
    if spec.calc not in (CalculationType.FIXED.value, CalculationType.PERCENTAGE.value):
        raise ValidationError(f"Unknown calculation type '{spec.calc}'")
    if not spec.is_percentage:
        return
    if not spec.percentage_of or spec.percentage_value is None:
        raise ValidationError(
            f"Percentage component {spec.code} needs both percentage_of and percentage_value"
        )
    if spec.percentage_value < 0:
        raise ValidationError(f"Percentage of component {spec.code} cannot be negative")
    if spec.percentage_of == spec.code:
        raise ValidationError(f"Component {spec.code} cannot be a percentage of itself")
    if spec.kind == ComponentKind.EARNING.value and spec.percentage_of == GROSS_CODE:
        raise ValidationError(f"Earning component {spec.code} cannot be a percentage of GROSS")


def _clean_overrides(overrides: Mapping[str, object], known: Mapping[str, ComponentSpec]) -> Dict[str, Decimal]:
    cleaned: Dict[str, Decimal] = {}
    for raw_code, raw_amount in overrides.items():
        code = raw_code.upper()
        amount = to_decimal(raw_amount, default=None)
        if amount is None:
            raise ValidationError(f"Amount for {code} is not a number")
        if amount < 0:
            raise ValidationError(f"Amount for {code} cannot be negative", details={"code": code})
        if code in STATUTORY_CODES:
            logger.warning(f"Ignoring entered amount for statutory component {code}")
            continue
        if code not in known:
            logger.warning(f"Ignoring amount for unknown or inactive component {code}")
            continue
        cleaned[code] = amount
    return cleaned


def _evaluation_order(components: Mapping[str, ComponentSpec], overrides: Mapping[str, Decimal]) -> List[str]:
    graph: Dict[str, set] = {}
    for code, spec in components.items():
        deps = set()
        if code not in overrides and spec.is_percentage:
            if spec.percentage_of == GROSS_CODE:
                # GROSS depends on every earning
                deps = {c for c, s in components.items() if s.kind == ComponentKind.EARNING.value}
                deps.add(GROSS_CODE)
            elif spec.percentage_of in components:
                deps = {spec.percentage_of}
        graph[code] = deps
    graph[GROSS_CODE] = {c for c, s in components.items() if s.kind == ComponentKind.EARNING.value}
    try:
        return list(TopologicalSorter(graph).static_order())
    except CycleError as e:
        cycle = list(e.args[1]) if len(e.args) > 1 else []
        raise ComponentCycleError(cycle) from e


def check_component_graph(components: Iterable) -> None:
    """Raise ``ComponentCycleError`` if active components reference each other in a loop."""
    specs: Dict[str, ComponentSpec] = {}
    for component in components:
        spec = component if isinstance(component, ComponentSpec) else ComponentSpec.from_model(component)
        if spec.active and spec.code not in STATUTORY_CODES:
            specs[spec.code] = spec
    _evaluation_order(specs, {})


def resolve_salary(components: Iterable, overrides: Mapping[str, object]) -> ResolvedSalary:
    """
    Resolve one employee's salary lines.

    Args:
        components: ``ComponentSpec`` values or ``SalaryComponent`` rows of the company
        overrides: component code -> amount entered for the employee

    Returns:
        ResolvedSalary with earnings, non-statutory deductions and wage bases
    """
    specs: Dict[str, ComponentSpec] = {}
    for component in components:
        spec = component if isinstance(component, ComponentSpec) else ComponentSpec.from_model(component)
        if not spec.active or spec.code in STATUTORY_CODES:
            continue
        validate_component_definition(spec)
        specs[spec.code] = spec

    entered = _clean_overrides(overrides, specs)
    values: Dict[str, Decimal] = {}
    included: List[str] = []

    for code in _evaluation_order(specs, entered):
        if code == GROSS_CODE:
            values[GROSS_CODE] = sum(
                (values.get(c, ZERO) for c, s in specs.items() if s.kind == ComponentKind.EARNING.value),
                ZERO,
            )
            continue
        spec = specs[code]
        if code in entered:
            values[code] = entered[code]
            included.append(code)
        elif spec.is_percentage:
            base_spec = specs.get(spec.percentage_of)
            if spec.kind == ComponentKind.EARNING.value and base_spec is not None \
                    and base_spec.kind != ComponentKind.EARNING.value:
                raise ValidationError(
                    f"Earning component {code} cannot be a percentage of deduction {spec.percentage_of}"
                )
            amount = round_money(percent_of(values.get(spec.percentage_of, ZERO), spec.percentage_value))
            values[code] = amount
            if amount > 0:
                included.append(code)
        else:
            values[code] = ZERO

    def _line(code: str) -> ResolvedLine:
        spec = specs[code]
        return ResolvedLine(
            code=code,
            name=spec.name,
            kind=spec.kind,
            amount=round_money(values[code]),
            sort_order=spec.sort_order,
            taxable=spec.taxable,
            pf_applicable=spec.pf_applicable,
            esi_applicable=spec.esi_applicable,
        )

    lines = sorted((_line(code) for code in included), key=lambda line: (line.sort_order, line.code))
    earnings = tuple(line for line in lines if line.kind == ComponentKind.EARNING.value)
    deductions = tuple(line for line in lines if line.kind == ComponentKind.DEDUCTION.value)

    return ResolvedSalary(
        earnings=earnings,
        other_deductions=deductions,
        gross=sum((line.amount for line in earnings), ZERO),
        pf_wage_base=sum((line.amount for line in earnings if line.pf_applicable), ZERO),
        esi_wage_base=sum((line.amount for line in earnings if line.esi_applicable), ZERO),
        taxable_gross=sum((line.amount for line in earnings if line.taxable), ZERO),
    )
