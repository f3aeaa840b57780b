"""
Explicit transition functions for payroll runs and leave approvals.

Both are pure: they take the current state plus an event and return the next
state, raising ``InvalidTransitionError`` for anything not listed.
"""
import enum
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

from hrms.core.exceptions import InvalidTransitionError
from hrms.models.leave_request import LeaveStatus
from hrms.models.payroll import PayrollRunStatus


class RunEvent(str, enum.Enum):
    COMPLETE = "complete"
    APPROVE = "approve"
    PAY = "pay"
    CANCEL = "cancel"


_RUN_TRANSITIONS: Dict[Tuple[PayrollRunStatus, RunEvent], PayrollRunStatus] = {
    (PayrollRunStatus.PROCESSING, RunEvent.COMPLETE): PayrollRunStatus.PROCESSED,
    (PayrollRunStatus.PROCESSED, RunEvent.APPROVE): PayrollRunStatus.APPROVED,
    (PayrollRunStatus.APPROVED, RunEvent.PAY): PayrollRunStatus.PAID,
    (PayrollRunStatus.PROCESSING, RunEvent.CANCEL): PayrollRunStatus.CANCELLED,
    (PayrollRunStatus.PROCESSED, RunEvent.CANCEL): PayrollRunStatus.CANCELLED,
}


def transition_run(status, event) -> PayrollRunStatus:
    current = PayrollRunStatus(status)
    event = RunEvent(event)
    try:
        return _RUN_TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionError("payroll run", current.value, event.value) from None


class ApprovalStage(str, enum.Enum):
    MANAGER = "manager"
    HR = "hr"


@dataclass(frozen=True)
class LeaveApprovalState:
    requires_hr_approval: bool
    manager_approved: Optional[bool] = None
    hr_approved: Optional[bool] = None

    @property
    def status(self) -> LeaveStatus:
        if self.manager_approved is False or self.hr_approved is False:
            return LeaveStatus.REJECTED
        if self.manager_approved and (not self.requires_hr_approval or self.hr_approved):
            return LeaveStatus.APPROVED
        return LeaveStatus.PENDING

    @classmethod
    def from_model(cls, request) -> "LeaveApprovalState":
        return cls(
            requires_hr_approval=bool(request.requires_hr_approval),
            manager_approved=request.manager_approved,
            hr_approved=request.hr_approved,
        )


def apply_leave_decision(state: LeaveApprovalState, stage, approve: bool) -> LeaveApprovalState:
    """
    Record one approver's decision.

    The manager and HR gates are independent and may decide in either order;
    each decides once. A rejection at either gate ends the workflow.
    """
    stage = ApprovalStage(stage)
    event = "approve" if approve else "reject"
    if state.status != LeaveStatus.PENDING:
        raise InvalidTransitionError("leave request", state.status.value, event)

    if stage == ApprovalStage.MANAGER:
        if state.manager_approved is not None:
            raise InvalidTransitionError("leave request", "manager_decided", event)
        return replace(state, manager_approved=approve)

    if not state.requires_hr_approval:
        raise InvalidTransitionError("leave request", "hr_not_required", event)
    if state.hr_approved is not None:
        raise InvalidTransitionError("leave request", "hr_decided", event)
    return replace(state, hr_approved=approve)
