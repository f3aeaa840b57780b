"""
Salary component management for a company.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from hrms.core.exceptions import AppException, ConflictError, NotFoundError, ValidationError
from hrms.core.tenant import TenantContext
from hrms.models.salary_component import CalculationType, ComponentKind, SalaryComponent
from hrms.services.salary_resolver import (
    ComponentSpec, STATUTORY_CODES, check_component_graph, validate_component_definition
)

logger = logging.getLogger(__name__)

_E = ComponentKind.EARNING.value
_D = ComponentKind.DEDUCTION.value
_FIXED = CalculationType.FIXED.value
_PCT = CalculationType.PERCENTAGE.value

DEFAULT_COMPONENTS: List[Dict[str, Any]] = [
    {"name": "Basic Salary", "code": "BASIC", "kind": _E, "calc": _FIXED, "taxable": True, "pf_applicable": True, "esi_applicable": True, "sort_order": 1},
    {"name": "House Rent Allowance", "code": "HRA", "kind": _E, "calc": _PCT, "percentage_of": "BASIC", "percentage_value": Decimal("40"), "taxable": True, "esi_applicable": True, "sort_order": 2},
    {"name": "Conveyance Allowance", "code": "CONV", "kind": _E, "calc": _FIXED, "taxable": True, "esi_applicable": True, "sort_order": 3},
    {"name": "Special Allowance", "code": "SPECIAL", "kind": _E, "calc": _FIXED, "taxable": True, "esi_applicable": True, "sort_order": 4},
    {"name": "Medical Allowance", "code": "MEDICAL", "kind": _E, "calc": _FIXED, "taxable": False, "esi_applicable": True, "sort_order": 5},
    {"name": "Dearness Allowance", "code": "DA", "kind": _E, "calc": _PCT, "percentage_of": "BASIC", "percentage_value": Decimal("10"), "taxable": True, "pf_applicable": True, "esi_applicable": True, "sort_order": 6},
    {"name": "Leave Travel Allowance", "code": "LTA", "kind": _E, "calc": _FIXED, "taxable": False, "sort_order": 7},
    {"name": "Performance Bonus", "code": "BONUS", "kind": _E, "calc": _FIXED, "taxable": True, "sort_order": 8},
    {"name": "Overtime", "code": "OT", "kind": _E, "calc": _FIXED, "taxable": True, "esi_applicable": True, "sort_order": 9},
    {"name": "Provident Fund", "code": "PF", "kind": _D, "calc": _PCT, "percentage_of": "BASIC", "percentage_value": Decimal("12"), "taxable": False, "system_defined": True, "sort_order": 100},
    {"name": "ESI", "code": "ESI", "kind": _D, "calc": _PCT, "percentage_of": "GROSS", "percentage_value": Decimal("0.75"), "taxable": False, "system_defined": True, "sort_order": 101},
    {"name": "Professional Tax", "code": "PT", "kind": _D, "calc": _FIXED, "taxable": False, "sort_order": 102},
    {"name": "TDS", "code": "TDS", "kind": _D, "calc": _FIXED, "taxable": False, "system_defined": True, "sort_order": 103},
    {"name": "Loan Recovery", "code": "LOAN", "kind": _D, "calc": _FIXED, "taxable": False, "sort_order": 104},
    {"name": "Advance Recovery", "code": "ADV", "kind": _D, "calc": _FIXED, "taxable": False, "sort_order": 105},
    {"name": "Other Deductions", "code": "OTHER_DED", "kind": _D, "calc": _FIXED, "taxable": False, "sort_order": 106},
]

_MUTABLE_FIELDS = {
    "name", "code", "kind", "calc", "percentage_of", "percentage_value",
    "taxable", "pf_applicable", "esi_applicable", "active", "sort_order",
}


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(data)
    if data.get("code"):
        data["code"] = data["code"].strip().upper()
    if data.get("percentage_of"):
        data["percentage_of"] = data["percentage_of"].strip().upper()
    data["calc"] = data.get("calc") or _FIXED
    if data["calc"] != _PCT:
        data["percentage_of"] = None
        data["percentage_value"] = None
    return data


def _check(component: SalaryComponent) -> None:
    if not component.name or not component.code:
        raise ValidationError("Name and code are required")
    validate_component_definition(ComponentSpec.from_model(component))


def _check_graph(db: Session, ctx: TenantContext, component: SalaryComponent) -> None:
    """Reject a change that would make percentage components depend on each other in a loop."""
    with db.no_autoflush:
        query = db.query(SalaryComponent).filter(SalaryComponent.company_id == ctx.company_id)
        if component.id is not None:
            query = query.filter(SalaryComponent.id != component.id)
        others = query.all()
    check_component_graph([*others, component])


def _commit(db: Session, component: SalaryComponent) -> SalaryComponent:
    try:
        db.commit()
        db.refresh(component)
    except Exception:
        db.rollback()
        raise
    return component


def list_components(db: Session, ctx: TenantContext, active_only: bool = False) -> List[SalaryComponent]:
    query = db.query(SalaryComponent).filter(SalaryComponent.company_id == ctx.company_id)
    if active_only:
        query = query.filter(SalaryComponent.active.is_(True))
    # Earnings first, then deductions, each by sort_order
    return query.order_by(SalaryComponent.kind.desc(), SalaryComponent.sort_order, SalaryComponent.id).all()


def get_component(db: Session, ctx: TenantContext, component_id: int) -> SalaryComponent:
    component = db.query(SalaryComponent).filter(
        SalaryComponent.id == component_id,
        SalaryComponent.company_id == ctx.company_id
    ).first()
    if not component:
        raise NotFoundError("Salary component", component_id)
    return component


def _ensure_code_free(db: Session, ctx: TenantContext, code: str, exclude_id: int = None) -> None:
    query = db.query(SalaryComponent).filter(
        SalaryComponent.company_id == ctx.company_id,
        SalaryComponent.code == code
    )
    if exclude_id is not None:
        query = query.filter(SalaryComponent.id != exclude_id)
    if query.first():
        raise ConflictError(f"A salary component with code {code} already exists")


def create_component(db: Session, ctx: TenantContext, data: Dict[str, Any]) -> SalaryComponent:
    data = _normalize(data)
    if data.get("code") in STATUTORY_CODES:
        # Statutory codes only come from the default set
        data["system_defined"] = True
    if data.get("active") is None:
        data["active"] = True
    component = SalaryComponent(company_id=ctx.company_id, **data)
    _check(component)
    _ensure_code_free(db, ctx, component.code)
    _check_graph(db, ctx, component)
    db.add(component)
    return _commit(db, component)


def update_component(db: Session, ctx: TenantContext, component_id: int, data: Dict[str, Any]) -> SalaryComponent:
    component = get_component(db, ctx, component_id)
    merged = {field: getattr(component, field) for field in _MUTABLE_FIELDS}
    merged.update({k: v for k, v in data.items() if k in _MUTABLE_FIELDS})
    merged = _normalize(merged)

    if component.system_defined and (merged["code"] != component.code or merged["kind"] != component.kind):
        raise ValidationError(f"Code and kind of system component {component.code} cannot change")
    if merged["code"] != component.code:
        _ensure_code_free(db, ctx, merged["code"], exclude_id=component.id)

    for field, value in merged.items():
        setattr(component, field, value)
    try:
        _check(component)
        _check_graph(db, ctx, component)
    except AppException:
        db.rollback()
        raise
    return _commit(db, component)


def set_component_active(db: Session, ctx: TenantContext, component_id: int, active: bool) -> SalaryComponent:
    component = get_component(db, ctx, component_id)
    component.active = active
    if active:
        try:
            _check_graph(db, ctx, component)
        except AppException:
            db.rollback()
            raise
    return _commit(db, component)


def delete_component(db: Session, ctx: TenantContext, component_id: int) -> None:
    component = get_component(db, ctx, component_id)
    if component.system_defined:
        raise ConflictError(f"System component {component.code} cannot be deleted; deactivate it instead")
    db.delete(component)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def duplicate_component(db: Session, ctx: TenantContext, component_id: int) -> SalaryComponent:
    source = get_component(db, ctx, component_id)
    kind_count = db.query(SalaryComponent).filter(
        SalaryComponent.company_id == ctx.company_id,
        SalaryComponent.kind == source.kind
    ).count()
    data = {field: getattr(source, field) for field in _MUTABLE_FIELDS}
    data.update({
        "name": f"{source.name} (Copy)",
        "code": f"{source.code}_COPY",
        "sort_order": kind_count + (100 if source.kind == _D else 1),
        "system_defined": False,
    })
    return create_component(db, ctx, data)


def move_component(db: Session, ctx: TenantContext, component_id: int, direction: str) -> List[SalaryComponent]:
    """Swap sort_order with the neighbouring component of the same kind."""
    if direction not in ("up", "down"):
        raise ValidationError("Direction must be 'up' or 'down'")
    component = get_component(db, ctx, component_id)
    siblings = [c for c in list_components(db, ctx) if c.kind == component.kind]
    index = next(i for i, c in enumerate(siblings) if c.id == component.id)
    swap_index = index - 1 if direction == "up" else index + 1
    if 0 <= swap_index < len(siblings):
        other = siblings[swap_index]
        component.sort_order, other.sort_order = other.sort_order, component.sort_order
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
    return list_components(db, ctx)


def initialize_default_components(db: Session, ctx: TenantContext, commit: bool = True) -> List[SalaryComponent]:
    """Insert the default component set, skipping codes the company already has."""
    existing = {
        code for (code,) in db.query(SalaryComponent.code).filter(SalaryComponent.company_id == ctx.company_id)
    }
    created = []
    for definition in DEFAULT_COMPONENTS:
        if definition["code"] in existing:
            continue
        component = SalaryComponent(company_id=ctx.company_id, active=True, **definition)
        db.add(component)
        created.append(component)

    if commit:
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
    else:
        db.flush()
    logger.info(f"Seeded {len(created)} default salary components for company {ctx.company_id}")
    return created
