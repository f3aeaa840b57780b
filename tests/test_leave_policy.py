import pytest
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal

from hrms.models.leave_request import RequestType
from hrms.services.leave_policy import (
    LeaveEvaluationInput, LeavePolicyRules, check_paid_leave_eligibility, count_leave_days,
    evaluate_leave_request, months_between
)

TODAY = date(2026, 3, 10)


def make_input(days_out=10, days=3, **overrides):
    start = TODAY + timedelta(days=days_out)
    values = dict(
        today=TODAY,
        start_date=start,
        end_date=start + timedelta(days=days - 1),
        total_days=Decimal(days),
        leave_type_is_paid=True,
        available_balance=Decimal("10"),
        accrued_balance=Decimal("10"),
        policy=LeavePolicyRules(),
        employee_category="confirmed",
        months_employed=24,
    )
    values.update(overrides)
    return LeaveEvaluationInput(**values)


def test_planned_paid_request_needs_only_manager():
    result = evaluate_leave_request(make_input())
    assert result.is_valid
    assert result.request_type == RequestType.PLANNED
    assert result.is_paid
    assert not result.requires_hr_approval
    assert result.warnings == ()


def test_short_notice_is_unplanned_and_escalates():
    policy = LeavePolicyRules(min_days_advance_planned=3)
    result = evaluate_leave_request(make_input(days_out=2, policy=policy))
    assert result.request_type == RequestType.UNPLANNED
    assert result.requires_hr_approval
    assert not result.is_paid
    assert result.auto_unpaid_reason


def test_emergency_regardless_of_notice():
    policy = LeavePolicyRules(min_days_advance_planned=3)
    result = evaluate_leave_request(make_input(days_out=2, policy=policy, is_emergency=True, reason="Family"))
    assert result.is_valid
    assert result.request_type == RequestType.EMERGENCY
    assert result.requires_hr_approval
    assert not result.is_paid


def test_emergency_requires_reason():
    result = evaluate_leave_request(make_input(is_emergency=True, reason="  "))
    assert not result.is_valid
    assert any("reason" in error for error in result.errors)


def test_unplanned_stays_paid_when_policy_allows():
    policy = LeavePolicyRules(unplanned_default_unpaid=False)
    result = evaluate_leave_request(make_input(days_out=0, policy=policy))
    assert result.request_type == RequestType.UNPLANNED
    assert result.is_paid
    assert result.requires_hr_approval


def test_balance_exceeded_is_an_error():
    result = evaluate_leave_request(make_input(available_balance=Decimal("2"), accrued_balance=Decimal("2")))
    assert not result.is_valid
    assert any("Insufficient leave balance" in error for error in result.errors)


def test_negative_balance_allowed_becomes_warning():
    policy = LeavePolicyRules(allow_negative_balance=True)
    result = evaluate_leave_request(
        make_input(available_balance=Decimal("2"), accrued_balance=Decimal("2"), policy=policy)
    )
    assert result.is_valid
    assert result.errors == ()
    assert result.warnings


def test_unaccrued_leave_is_only_a_warning():
    result = evaluate_leave_request(make_input(available_balance=Decimal("12"), accrued_balance=Decimal("1")))
    assert result.is_valid
    assert any("not yet accrued" in warning for warning in result.warnings)


def test_unpaid_leave_type_skips_balance_check():
    result = evaluate_leave_request(make_input(leave_type_is_paid=False, available_balance=Decimal("0")))
    assert result.is_valid
    assert not result.is_paid


def test_end_before_start_is_rejected():
    data = make_input()
    result = evaluate_leave_request(replace(data, end_date=data.start_date - timedelta(days=1),
                                            total_days=Decimal("0")))
    assert not result.is_valid
    assert len(result.errors) == 2


@pytest.mark.parametrize("category", ["trainee", "intern"])
def test_trainees_and_interns_get_unpaid_leave(category):
    result = evaluate_leave_request(make_input(employee_category=category))
    assert result.is_valid
    assert not result.is_paid
    assert category.title() in result.auto_unpaid_reason


def test_probation_inside_window_is_unpaid():
    result = evaluate_leave_request(make_input(employee_category="probation", months_employed=2))
    assert not result.is_paid


def test_probation_after_window_is_paid():
    result = evaluate_leave_request(make_input(employee_category="probation", months_employed=5))
    assert result.is_paid


def test_leave_credits_start_month():
    eligibility = check_paid_leave_eligibility("confirmed", 3, LeavePolicyRules(leave_credit_start_month=4))
    assert not eligibility.is_eligible
    assert "month 4" in eligibility.reason


def test_long_planned_leave_escalates_with_threshold():
    policy = LeavePolicyRules(hr_approval_days_threshold=Decimal("5"))
    result = evaluate_leave_request(make_input(days=7, policy=policy))
    assert result.request_type == RequestType.PLANNED
    assert result.requires_hr_approval


def test_count_leave_days_is_inclusive():
    assert count_leave_days(date(2026, 1, 1), date(2026, 1, 1)) == Decimal("1")
    assert count_leave_days(date(2026, 1, 1), date(2026, 1, 5)) == Decimal("5")
    assert count_leave_days(date(2026, 1, 5), date(2026, 1, 1)) == Decimal("0")


def test_months_between():
    assert months_between(date(2025, 11, 20), date(2026, 3, 1)) == 4
    assert months_between(None, TODAY) == 0


def test_downgraded_unpaid_request_skips_balance_check():
    result = evaluate_leave_request(
        make_input(days_out=0, days=1, available_balance=Decimal("0"), accrued_balance=Decimal("0"))
    )
    assert result.request_type == RequestType.UNPLANNED
    assert not result.is_paid
    assert result.is_valid
    assert result.errors == ()


def test_trainee_with_no_balance_can_still_apply():
    result = evaluate_leave_request(
        make_input(employee_category="trainee", available_balance=Decimal("0"), accrued_balance=Decimal("0"))
    )
    assert result.is_valid
    assert not result.is_paid


def test_advance_leave_allowed_when_accrued_covers_request():
    policy = LeavePolicyRules(allow_advance_leave=True)
    result = evaluate_leave_request(
        make_input(available_balance=Decimal("1"), accrued_balance=Decimal("5"), policy=policy)
    )
    assert result.is_valid
    assert result.is_paid
    assert result.requires_hr_approval
    assert any("advance leave" in warning for warning in result.warnings)


def test_advance_leave_still_needs_accrued_days():
    policy = LeavePolicyRules(allow_advance_leave=True)
    result = evaluate_leave_request(
        make_input(available_balance=Decimal("1"), accrued_balance=Decimal("2"), policy=policy)
    )
    assert not result.is_valid
    assert any("Insufficient leave balance" in error for error in result.errors)
