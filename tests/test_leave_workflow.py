import pytest
from datetime import date, timedelta
from decimal import Decimal

from hrms.core.exceptions import ValidationError
from hrms.models.leave_balance import LeaveBalance
from hrms.models.leave_type import LeaveType
from hrms.services import leave_service


def _leave_type_id(client, headers, name):
    types = client.get("/api/leave/types", headers=headers).json()
    return next(t["id"] for t in types if t["name"] == name)


def _init_balances(client, headers, year):
    return client.post("/api/leave/balances/initialize", headers=headers, json={"year": year})


def _submit(client, headers, employee_id, leave_type_id, days_out, days=3, **extra):
    start = date.today() + timedelta(days=days_out)
    payload = {
        "employee_id": employee_id,
        "leave_type_id": leave_type_id,
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=days - 1)).isoformat(),
    }
    payload.update(extra)
    return client.post("/api/leave/requests", headers=headers, json=payload)


def test_planned_leave_manager_approval_charges_balance(client, headers, make_headers, employee):
    annual = _leave_type_id(client, headers, "Annual Leave")
    start_year = (date.today() + timedelta(days=10)).year
    assert _init_balances(client, headers, start_year).json()["count"] == 3

    response = _submit(client, headers, employee.id, annual, days_out=10)
    assert response.status_code == 201
    leave = response.json()
    assert leave["request_type"] == "planned"
    assert leave["is_paid"] is True
    assert leave["requires_hr_approval"] is False
    assert leave["status"] == "pending"

    response = client.post(
        f"/api/leave/requests/{leave['id']}/manager-decision",
        headers=make_headers("manager", user_id=7),
        json={"approve": True, "comment": "Enjoy"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    balances = client.get(
        "/api/leave/balances", headers=headers, params={"year": start_year, "employee_id": employee.id}
    ).json()
    annual_balance = next(b for b in balances if b["leave_type_id"] == annual)
    assert Decimal(annual_balance["used_days"]) == Decimal("3")
    assert Decimal(annual_balance["remaining_days"]) == Decimal("9")


def test_unplanned_leave_needs_manager_and_hr(client, headers, make_headers, employee):
    annual = _leave_type_id(client, headers, "Annual Leave")
    _init_balances(client, headers, (date.today() + timedelta(days=1)).year)

    leave = _submit(client, headers, employee.id, annual, days_out=1, days=1).json()
    assert leave["request_type"] == "unplanned"
    assert leave["requires_hr_approval"] is True
    assert leave["is_paid"] is False
    assert leave["auto_unpaid_reason"]

    url = f"/api/leave/requests/{leave['id']}"
    after_hr = client.post(f"{url}/hr-decision", headers=make_headers("hr_admin"), json={"approve": True}).json()
    assert after_hr["status"] == "pending"
    after_manager = client.post(f"{url}/manager-decision", headers=make_headers("manager"), json={"approve": True}).json()
    assert after_manager["status"] == "approved"
    assert after_manager["hr_approved"] is True
    assert after_manager["manager_approved"] is True


def test_rejection_ends_workflow(client, headers, make_headers, employee):
    annual = _leave_type_id(client, headers, "Annual Leave")
    _init_balances(client, headers, (date.today() + timedelta(days=10)).year)
    leave = _submit(client, headers, employee.id, annual, days_out=10).json()
    url = f"/api/leave/requests/{leave['id']}"

    rejected = client.post(f"{url}/manager-decision", headers=make_headers("manager"), json={"approve": False})
    assert rejected.json()["status"] == "rejected"

    again = client.post(f"{url}/manager-decision", headers=make_headers("manager"), json={"approve": True})
    assert again.status_code == 409
    assert again.json()["errors"][0]["code"] == "INVALID_TRANSITION"


def test_hr_decision_on_planned_leave_is_rejected(client, headers, employee):
    annual = _leave_type_id(client, headers, "Annual Leave")
    _init_balances(client, headers, (date.today() + timedelta(days=10)).year)
    leave = _submit(client, headers, employee.id, annual, days_out=10).json()
    response = client.post(f"/api/leave/requests/{leave['id']}/hr-decision", headers=headers, json={"approve": True})
    assert response.status_code == 409


def test_employee_cannot_decide(client, headers, make_headers, employee):
    annual = _leave_type_id(client, headers, "Annual Leave")
    _init_balances(client, headers, (date.today() + timedelta(days=10)).year)
    leave = _submit(client, headers, employee.id, annual, days_out=10).json()
    response = client.post(
        f"/api/leave/requests/{leave['id']}/manager-decision",
        headers=make_headers("employee"),
        json={"approve": True}
    )
    assert response.status_code == 403


def test_insufficient_balance_is_rejected(client, headers, employee):
    annual = _leave_type_id(client, headers, "Annual Leave")
    _init_balances(client, headers, (date.today() + timedelta(days=10)).year)
    response = _submit(client, headers, employee.id, annual, days_out=10, days=20)
    assert response.status_code == 400
    error = response.json()["errors"][0]
    assert error["code"] == "VALIDATION_ERROR"
    assert any("Insufficient leave balance" in e for e in error["details"]["errors"])


def test_emergency_requires_reason(client, headers, employee):
    annual = _leave_type_id(client, headers, "Annual Leave")
    _init_balances(client, headers, date.today().year)
    response = _submit(client, headers, employee.id, annual, days_out=0, days=1, is_emergency=True)
    assert response.status_code == 400

    response = _submit(client, headers, employee.id, annual, days_out=0, days=1,
                       is_emergency=True, reason="Family emergency")
    assert response.status_code == 201
    assert response.json()["request_type"] == "emergency"


def test_evaluate_preview_does_not_persist(client, headers, employee):
    annual = _leave_type_id(client, headers, "Annual Leave")
    _init_balances(client, headers, (date.today() + timedelta(days=10)).year)
    start = date.today() + timedelta(days=10)
    response = client.post("/api/leave/evaluate", headers=headers, json={
        "employee_id": employee.id,
        "leave_type_id": annual,
        "start_date": start.isoformat(),
        "end_date": start.isoformat(),
    })
    assert response.status_code == 200
    assert response.json()["is_valid"] is True
    assert client.get("/api/leave/requests", headers=headers).json() == []


def test_policy_update_requires_hr_admin(client, headers, make_headers):
    response = client.put("/api/leave/policy", headers=make_headers("employee"),
                          json={"min_days_advance_planned": 5})
    assert response.status_code == 403

    response = client.put("/api/leave/policy", headers=headers, json={"min_days_advance_planned": 5})
    assert response.status_code == 200
    assert client.get("/api/leave/policy", headers=headers).json()["min_days_advance_planned"] == 5


# --- Service level ---

TODAY = date(2026, 3, 2)


def test_monthly_quota_counts_requests_in_month(db_session, ctx, employee):
    short = db_session.query(LeaveType).filter(LeaveType.name == "Short Leave").one()
    start = date(2026, 3, 20)
    leave_service.submit_leave_request(db_session, ctx, employee.id, {
        "leave_type_id": short.id, "start_date": start, "end_date": start + timedelta(days=1),
    }, today=TODAY)

    with pytest.raises(ValidationError):
        leave_service.submit_leave_request(db_session, ctx, employee.id, {
            "leave_type_id": short.id, "start_date": start, "end_date": start,
        }, today=TODAY)


def test_leave_type_allocation_is_exclusive(db_session, ctx):
    with pytest.raises(ValidationError):
        leave_service.create_leave_type(db_session, ctx, {
            "name": "Hybrid", "days_per_year": 5, "is_monthly_quota": True, "monthly_limit": 1,
        })
    with pytest.raises(ValidationError):
        leave_service.create_leave_type(db_session, ctx, {"name": "Nothing"})


def test_carry_forward_is_capped(db_session, ctx, employee):
    leave_service.initialize_leave_balances(db_session, ctx, 2025)
    annual = db_session.query(LeaveType).filter(LeaveType.name == "Annual Leave").one()
    sick = db_session.query(LeaveType).filter(LeaveType.name == "Sick Leave").one()
    balance = db_session.query(LeaveBalance).filter(
        LeaveBalance.year == 2025, LeaveBalance.leave_type_id == annual.id
    ).one()
    balance.used_days = Decimal("2")
    db_session.commit()

    assert leave_service.carry_forward_balances(db_session, ctx, 2025, 2026) == 1
    carried = db_session.query(LeaveBalance).filter(
        LeaveBalance.year == 2026, LeaveBalance.leave_type_id == annual.id
    ).one()
    # 10 unused, capped at 6
    assert carried.carry_forward_days == Decimal("6")
    assert carried.total_days == Decimal("18")

    # Rerunning replaces the carry instead of stacking it
    leave_service.carry_forward_balances(db_session, ctx, 2025, 2026)
    db_session.refresh(carried)
    assert carried.total_days == Decimal("18")

    assert db_session.query(LeaveBalance).filter(
        LeaveBalance.year == 2026, LeaveBalance.leave_type_id == sick.id
    ).count() == 0


def test_initialize_balances_is_idempotent(db_session, ctx, employee):
    assert leave_service.initialize_leave_balances(db_session, ctx, 2026) == 3
    assert leave_service.initialize_leave_balances(db_session, ctx, 2026) == 0


def test_short_notice_unpaid_leave_accepted_without_balance(db_session, ctx, employee):
    annual = db_session.query(LeaveType).filter(LeaveType.name == "Annual Leave").one()
    request = leave_service.submit_leave_request(db_session, ctx, employee.id, {
        "leave_type_id": annual.id,
        "start_date": TODAY,
        "end_date": TODAY,
    }, today=TODAY)
    assert request.request_type == "unplanned"
    assert request.is_paid is False
    assert request.requires_hr_approval is True


def test_advance_leave_flag_is_saved(db_session, ctx):
    rules = leave_service.save_leave_policy(db_session, ctx, {"allow_advance_leave": True})
    assert rules.allow_advance_leave is True
    assert leave_service.get_leave_policy(db_session, ctx).allow_advance_leave is True
