"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    FINALIZED = "finalized"
    PAYSLIPS_ISSUED = "payslips_issued"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollRunNotFoundError(Exception):
    """Raised when a payroll run does not exist."""

    def __init__(self, payroll_run_id: object):
        self.payroll_run_id = payroll_run_id
        super().__init__(f"Payroll run {payroll_run_id} not found")


class RunNotEditableError(Exception):
    """Raised when a mutation is attempted on a run that is no longer a draft."""

    def __init__(self, payroll_run_id: object, status: str):
        self.payroll_run_id = payroll_run_id
        self.status = status
        super().__init__(
            f"Payroll run {payroll_run_id} is '{status}'; only draft runs can be edited"
        )


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → finalized
    - finalized → payslips_issued

    Transitions are one-way; payslips_issued is terminal. Deletion is not a
    transition and is allowed only from draft.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.FINALIZED],
        PayrollRunStatus.FINALIZED: [PayrollRunStatus.PAYSLIPS_ISSUED],
        PayrollRunStatus.PAYSLIPS_ISSUED: [],  # Terminal state
    }

    # Statuses where snapshots and adjustments can be modified
    INPUTS_MUTABLE = {PayrollRunStatus.DRAFT}

    # Statuses where the run can be deleted
    DELETABLE = {PayrollRunStatus.DRAFT}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_modify_inputs(cls, status: str) -> bool:
        """Check if snapshots and adjustments can be modified."""
        return status in cls.INPUTS_MUTABLE

    @classmethod
    def can_delete(cls, status: str) -> bool:
        return status in cls.DELETABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
