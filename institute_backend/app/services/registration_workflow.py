"""Registration approval state machine.

A registration moves through three gates, each run by a different staff
capability::

    PENDING --academic-review--> ACADEMIC_REVIEWED
            --financial-verify--> FINANCIAL_VERIFIED
            --final-approve--> APPROVED

REJECTED can be reached from any non-terminal state through final-approve,
and from the source state of the academic and financial gates through those
gates. APPROVED and REJECTED are terminal.

This module only decides legality; persisting the outcome is done by
``app.services.registrations``.
"""
from enum import Enum

from app.core.errors import BadRequestError, ConflictError


class RegistrationStatus(str, Enum):
    PENDING = "PENDING"
    ACADEMIC_REVIEWED = "ACADEMIC_REVIEWED"
    FINANCIAL_VERIFIED = "FINANCIAL_VERIFIED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class Gate(str, Enum):
    ACADEMIC_REVIEW = "academic-review"
    FINANCIAL_VERIFY = "financial-verify"
    FINAL_APPROVE = "final-approve"


TERMINAL_STATUSES = frozenset({RegistrationStatus.APPROVED, RegistrationStatus.REJECTED})
OPEN_STATUSES = tuple(status for status in RegistrationStatus if status not in TERMINAL_STATUSES)

_S = RegistrationStatus

# gate -> source status -> statuses the gate may move it to
TRANSITIONS: dict[Gate, dict[RegistrationStatus, frozenset[RegistrationStatus]]] = {
    Gate.ACADEMIC_REVIEW: {
        _S.PENDING: frozenset({_S.ACADEMIC_REVIEWED, _S.REJECTED}),
    },
    Gate.FINANCIAL_VERIFY: {
        _S.ACADEMIC_REVIEWED: frozenset({_S.FINANCIAL_VERIFIED, _S.REJECTED}),
    },
    Gate.FINAL_APPROVE: {
        _S.FINANCIAL_VERIFIED: frozenset({_S.APPROVED, _S.REJECTED}),
        _S.ACADEMIC_REVIEWED: frozenset({_S.REJECTED}),
        _S.PENDING: frozenset({_S.REJECTED}),
    },
}

# The status a gate moves a registration to when it passes.
GATE_TARGETS: dict[Gate, RegistrationStatus] = {
    Gate.ACADEMIC_REVIEW: _S.ACADEMIC_REVIEWED,
    Gate.FINANCIAL_VERIFY: _S.FINANCIAL_VERIFIED,
    Gate.FINAL_APPROVE: _S.APPROVED,
}

# Column pair (actor, timestamp) each gate stamps on the record.
GATE_STAMPS: dict[Gate, tuple[str, str]] = {
    Gate.ACADEMIC_REVIEW: ("academic_reviewed_by", "academic_reviewed_at"),
    Gate.FINANCIAL_VERIFY: ("financial_verified_by", "financial_verified_at"),
    Gate.FINAL_APPROVE: ("approved_by", "approved_at"),
}

_OUT_OF_SEQUENCE = {
    Gate.ACADEMIC_REVIEW: "Registration has already been academically reviewed",
    Gate.FINANCIAL_VERIFY: "Registration must pass academic review first",
    Gate.FINAL_APPROVE: "Registration must pass financial verification first",
}


def allowed_targets(gate: Gate) -> frozenset[RegistrationStatus]:
    return frozenset({GATE_TARGETS[gate], RegistrationStatus.REJECTED})


def apply_transition(
    current: RegistrationStatus | str,
    gate: Gate,
    target: RegistrationStatus | str,
) -> RegistrationStatus:
    """Return the next status, or raise if ``gate`` may not move ``current`` to ``target``.

    Acting on a terminal record is a ConflictError whatever the requested
    target. Otherwise a target the gate can never produce is a
    BadRequestError (INVALID_STATUS) and acting out of sequence is a
    ConflictError.
    """
    current = RegistrationStatus(current)
    if current.is_terminal:
        raise ConflictError(f"Registration is already {current.value.lower()}")

    try:
        target = RegistrationStatus(target)
    except ValueError:
        raise BadRequestError(f"Unknown registration status '{target}'", code="INVALID_STATUS")

    if target not in allowed_targets(gate):
        raise BadRequestError(
            f"Invalid status for {gate.value}: expected "
            f"{GATE_TARGETS[gate].value} or {RegistrationStatus.REJECTED.value}",
            code="INVALID_STATUS",
        )

    if target not in TRANSITIONS[gate].get(current, frozenset()):
        raise ConflictError(f"{_OUT_OF_SEQUENCE[gate]} (current status: {current.value})")

    return target
