"""
Approval stage engine.

Single source of truth for the approval chain of every request type: which
stages exist, which role acts at each stage, and how a request moves from one
stage to the next. Everything here is pure (no Flask, no database); the
request service loads a record, hands a ``RequestState`` to these functions
and persists whatever comes back.

States are the stage indices ``0..N-1`` of a type's catalog plus the absorbing
statuses ``Approved`` and ``Rejected``. Index 0 (``Submitted``) is left by
``submit``; every later move is an approve decision by the stage's role.
A reject keeps the index where it was and only flips the status.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Tuple

from campus_requests.constants import (
    RequestType, Role, RequestStatus, Decision, ApprovalStatus, DEFAULT_APPROVE_COMMENT,
)
from campus_requests.exceptions import (
    AlreadyFinalized, IndexOutOfRange, Unauthorized, UnknownType, ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageDescriptor:
    name: str
    approver_role: Optional[str] = None


@dataclass(frozen=True)
class Actor:
    """Who is acting: built by the caller from its session, never read globally."""
    id: int
    name: str
    role: str


@dataclass(frozen=True)
class ApprovalEntry:
    approver_role: str
    approver_id: int
    approver_name: str
    status: str
    comment: str
    approved_at: datetime
    stage_index: int


@dataclass(frozen=True)
class RequestState:
    type: str
    current_stage_index: int = 0
    status: str = RequestStatus.SUBMITTED
    approvals: Tuple[ApprovalEntry, ...] = field(default_factory=tuple)

    @property
    def is_final(self):
        return self.status in RequestStatus.FINAL


# --- STAGE CATALOG ---

_PENDING_LECTURER = StageDescriptor('Pending Lecturer Approval', Role.LECTURER)
_PENDING_HOD = StageDescriptor('Pending HOD Approval', Role.HOD)
_PENDING_DEAN = StageDescriptor('Pending Dean Approval', Role.DEAN)

STAGE_CATALOG = {
    RequestType.EXCUSE: (
        StageDescriptor(RequestStatus.SUBMITTED),
        _PENDING_LECTURER,
        _PENDING_HOD,
        _PENDING_DEAN,
        StageDescriptor('Pending VC Approval', Role.VC),
        StageDescriptor(RequestStatus.APPROVED),
    ),
    RequestType.LEAVE: (
        StageDescriptor(RequestStatus.SUBMITTED),
        _PENDING_LECTURER,
        _PENDING_HOD,
        _PENDING_DEAN,
        StageDescriptor(RequestStatus.APPROVED),
    ),
    RequestType.LETTER: (
        StageDescriptor(RequestStatus.SUBMITTED),
        StageDescriptor('Pending Staff Approval', Role.STAFF),
        StageDescriptor('Ready to Collect'),
    ),
}


def stages_for(request_type):
    """Ordered stages of a request type; empty for an unknown type."""
    return STAGE_CATALOG.get(request_type, ())


def require_stages(request_type):
    stages = stages_for(request_type)
    if not stages:
        logger.warning("No stage catalog for request type %r", request_type)
        raise UnknownType(request_type)
    return stages


def terminal_index(request_type):
    return len(require_stages(request_type)) - 1


def actionable_stages(role):
    """Every (request_type, index, stage) pair at which ``role`` is the approver."""
    return [
        (request_type, index, stage)
        for request_type, stages in STAGE_CATALOG.items()
        for index, stage in enumerate(stages)
        if stage.approver_role is not None and stage.approver_role == role
    ]


# --- STAGE RESOLVER ---

def resolve(request_type, index):
    """Stage at ``index`` for the type, or None when the pair is not valid."""
    stages = stages_for(request_type)
    if isinstance(index, bool) or not isinstance(index, int):
        return None
    if 0 <= index < len(stages):
        return stages[index]
    return None


# --- PERMISSION CHECK ---

def can_act(actor_role, request_type, index):
    """True only for the role named on the current stage. Admin gets no override."""
    stage = resolve(request_type, index)
    if stage is None or stage.approver_role is None:
        return False
    return stage.approver_role == actor_role


# --- TRANSITIONS ---

def _check_open(state):
    if state.is_final:
        raise AlreadyFinalized(f"Request is already {state.status}")
    stages = require_stages(state.type)
    if resolve(state.type, state.current_stage_index) is None:
        logger.warning("Request state has invalid stage index %r for type %r",
                       state.current_stage_index, state.type)
        raise IndexOutOfRange(state.type, state.current_stage_index)
    if state.current_stage_index >= len(stages) - 1:
        # Index already sits on the terminal stage but status was never flipped
        raise AlreadyFinalized("Request has reached its final stage")
    return stages


def submit(state):
    """Move a new request from ``Submitted`` to its first approver stage.

    Stage 0 carries no approver, so this step records no approval entry.
    """
    _check_open(state)
    if state.current_stage_index != 0:
        raise ValidationError("Request has already been submitted")
    return _advance(state, state.approvals)


def transition(state, decision, actor, comment=None, now=None):
    """Apply an approve/reject decision by ``actor`` and return the new state.

    Raises ``AlreadyFinalized``, ``UnknownType``, ``IndexOutOfRange``,
    ``Unauthorized`` or ``ValidationError``; ``state`` is never modified.
    """
    _check_open(state)
    if decision not in (Decision.APPROVE, Decision.REJECT):
        raise ValidationError(f"Unknown decision {decision!r}", details={'decision': decision})

    stage = resolve(state.type, state.current_stage_index)
    if not can_act(actor.role, state.type, state.current_stage_index):
        raise Unauthorized(
            f"{actor.role} cannot act on a request at stage '{stage.name}'",
            details={'required_role': stage.approver_role},
        )

    comment = (comment or '').strip()
    if decision == Decision.REJECT and not comment:
        raise ValidationError("A comment is required to reject a request",
                              details={'comment': 'required'})

    entry = ApprovalEntry(
        approver_role=actor.role,
        approver_id=actor.id,
        approver_name=actor.name,
        status=ApprovalStatus.APPROVED if decision == Decision.APPROVE else ApprovalStatus.REJECTED,
        comment=comment or DEFAULT_APPROVE_COMMENT,
        approved_at=now or datetime.utcnow(),
        stage_index=state.current_stage_index,
    )
    approvals = state.approvals + (entry,)

    if decision == Decision.REJECT:
        return replace(state, status=RequestStatus.REJECTED, approvals=approvals)
    return _advance(state, approvals)


def _advance(state, approvals):
    stages = stages_for(state.type)
    new_index = state.current_stage_index + 1
    if new_index == len(stages) - 1:
        status = RequestStatus.APPROVED
    else:
        status = stages[new_index].name
    return replace(state, current_stage_index=new_index, status=status, approvals=approvals)


# --- PROGRESS VIEW ---

def progress(state):
    """Per-stage tracker: completed / current / pending, with the matching approval."""
    rows = []
    for index, stage in enumerate(stages_for(state.type)):
        if index < state.current_stage_index:
            stage_state = 'completed'
        elif index == state.current_stage_index:
            stage_state = 'completed' if state.status == RequestStatus.APPROVED else 'current'
        else:
            stage_state = 'pending'
        approval = next((a for a in state.approvals if a.stage_index == index), None)
        rows.append({
            'index': index,
            'name': stage.name,
            'approver_role': stage.approver_role,
            'state': stage_state,
            'approval': approval,
        })
    return rows
