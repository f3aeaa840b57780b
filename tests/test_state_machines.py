import pytest

from hrms.core.exceptions import InvalidTransitionError
from hrms.models.leave_request import LeaveStatus
from hrms.models.payroll import PayrollRunStatus
from hrms.services.state_machines import (
    ApprovalStage, LeaveApprovalState, RunEvent, apply_leave_decision, transition_run
)


@pytest.mark.parametrize("status,event,expected", [
    ("processing", "complete", PayrollRunStatus.PROCESSED),
    ("processed", "approve", PayrollRunStatus.APPROVED),
    ("approved", "pay", PayrollRunStatus.PAID),
    ("processing", "cancel", PayrollRunStatus.CANCELLED),
    ("processed", "cancel", PayrollRunStatus.CANCELLED),
])
def test_allowed_run_transitions(status, event, expected):
    assert transition_run(status, event) == expected


@pytest.mark.parametrize("status,event", [
    ("processing", "approve"),
    ("processed", "pay"),
    ("approved", "cancel"),
    ("paid", "cancel"),
    ("paid", "approve"),
    ("cancelled", "complete"),
    ("cancelled", "approve"),
])
def test_illegal_run_transitions(status, event):
    with pytest.raises(InvalidTransitionError) as exc:
        transition_run(status, event)
    assert exc.value.status_code == 409


def test_planned_leave_needs_only_manager():
    state = LeaveApprovalState(requires_hr_approval=False)
    assert state.status == LeaveStatus.PENDING
    state = apply_leave_decision(state, ApprovalStage.MANAGER, True)
    assert state.status == LeaveStatus.APPROVED


def test_dual_approval_in_either_order():
    state = LeaveApprovalState(requires_hr_approval=True)
    state = apply_leave_decision(state, ApprovalStage.HR, True)
    assert state.status == LeaveStatus.PENDING
    state = apply_leave_decision(state, ApprovalStage.MANAGER, True)
    assert state.status == LeaveStatus.APPROVED


def test_manager_approval_alone_keeps_dual_request_pending():
    state = apply_leave_decision(LeaveApprovalState(requires_hr_approval=True), "manager", True)
    assert state.status == LeaveStatus.PENDING


def test_rejection_at_either_gate_rejects():
    state = apply_leave_decision(LeaveApprovalState(requires_hr_approval=True), ApprovalStage.HR, False)
    assert state.status == LeaveStatus.REJECTED
    with pytest.raises(InvalidTransitionError):
        apply_leave_decision(state, ApprovalStage.MANAGER, True)


def test_stage_decides_once():
    state = LeaveApprovalState(requires_hr_approval=True, manager_approved=True)
    with pytest.raises(InvalidTransitionError):
        apply_leave_decision(state, ApprovalStage.MANAGER, False)


def test_hr_decision_rejected_when_not_required():
    with pytest.raises(InvalidTransitionError):
        apply_leave_decision(LeaveApprovalState(requires_hr_approval=False), ApprovalStage.HR, True)


def test_run_event_enum_accepted():
    assert transition_run(PayrollRunStatus.PROCESSED, RunEvent.APPROVE) == PayrollRunStatus.APPROVED
