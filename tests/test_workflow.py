"""
Tests: approval stage engine (campus_requests.workflow).

Pure functions only, no database. Covers the stage catalog, the resolver,
the permission check, approve/reject transitions for every request type,
terminal absorption and the progress view.
"""

from dataclasses import replace
from datetime import datetime

import pytest

from campus_requests import workflow
from campus_requests.constants import (
    ApprovalStatus, Decision, RequestStatus, RequestType, Role,
)
from campus_requests.exceptions import (
    AlreadyFinalized, IndexOutOfRange, Unauthorized, UnknownType, ValidationError,
)
from campus_requests.workflow import Actor, RequestState

LECTURER = Actor(id=11, name='Lee Lecturer', role=Role.LECTURER)
HOD = Actor(id=12, name='Hana HOD', role=Role.HOD)
DEAN = Actor(id=13, name='Dana Dean', role=Role.DEAN)
VC = Actor(id=14, name='Vic Chancellor', role=Role.VC)
STAFF = Actor(id=15, name='Sal Staff', role=Role.STAFF)
ADMIN = Actor(id=1, name='Ada Admin', role=Role.ADMIN)
STUDENT = Actor(id=2, name='Sam Student', role=Role.STUDENT)

CHAINS = {
    RequestType.EXCUSE: [LECTURER, HOD, DEAN, VC],
    RequestType.LEAVE: [LECTURER, HOD, DEAN],
    RequestType.LETTER: [STAFF],
}

NOW = datetime(2026, 3, 5, 9, 30)


def at(request_type, index, status=None):
    """Open state sitting on ``index`` with the stage name as status."""
    if status is None:
        status = workflow.stages_for(request_type)[index].name
    return RequestState(type=request_type, current_stage_index=index, status=status)


# ── Stage catalog ────────────────────────────────────────────────────────


class TestStageCatalog:
    def test_chain_lengths(self):
        assert len(workflow.stages_for(RequestType.EXCUSE)) == 6
        assert len(workflow.stages_for(RequestType.LEAVE)) == 5
        assert len(workflow.stages_for(RequestType.LETTER)) == 3

    def test_excuse_stage_names(self):
        names = [s.name for s in workflow.stages_for(RequestType.EXCUSE)]
        assert names == [
            'Submitted', 'Pending Lecturer Approval', 'Pending HOD Approval',
            'Pending Dean Approval', 'Pending VC Approval', 'Approved',
        ]

    def test_letter_ends_ready_to_collect(self):
        stages = workflow.stages_for(RequestType.LETTER)
        assert stages[1].approver_role == Role.STAFF
        assert stages[-1].name == 'Ready to Collect'

    @pytest.mark.parametrize("request_type", RequestType.ALL)
    def test_only_inner_stages_have_approvers(self, request_type):
        stages = workflow.stages_for(request_type)
        assert stages[0].approver_role is None
        assert stages[-1].approver_role is None
        assert all(s.approver_role for s in stages[1:-1])

    def test_unknown_type_has_no_stages(self):
        assert workflow.stages_for('medical') == ()

    def test_require_stages_raises_for_unknown_type(self):
        with pytest.raises(UnknownType):
            workflow.require_stages('medical')

    def test_actionable_stages_by_role(self):
        lecturer = [(t, i) for t, i, _ in workflow.actionable_stages(Role.LECTURER)]
        assert lecturer == [(RequestType.EXCUSE, 1), (RequestType.LEAVE, 1)]
        assert [(t, i) for t, i, _ in workflow.actionable_stages(Role.VC)] == [(RequestType.EXCUSE, 4)]
        assert [(t, i) for t, i, _ in workflow.actionable_stages(Role.STAFF)] == [(RequestType.LETTER, 1)]

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.STUDENT])
    def test_non_approvers_have_no_stages(self, role):
        assert workflow.actionable_stages(role) == []


# ── Resolver & permission check ──────────────────────────────────────────


class TestResolve:
    def test_resolves_stage(self):
        stage = workflow.resolve(RequestType.EXCUSE, 2)
        assert stage.name == 'Pending HOD Approval'
        assert stage.approver_role == Role.HOD

    @pytest.mark.parametrize("index", [-1, 6, 99])
    def test_out_of_bounds_is_none(self, index):
        assert workflow.resolve(RequestType.EXCUSE, index) is None

    @pytest.mark.parametrize("index", ['1', 1.0, None, True])
    def test_non_integer_index_is_none(self, index):
        assert workflow.resolve(RequestType.EXCUSE, index) is None

    def test_unknown_type_is_none(self):
        assert workflow.resolve('medical', 1) is None


class TestCanAct:
    @pytest.mark.parametrize("request_type", RequestType.ALL)
    @pytest.mark.parametrize("role", Role.ALL)
    def test_matches_stage_role_exactly(self, request_type, role):
        for index, stage in enumerate(workflow.stages_for(request_type)):
            expected = stage.approver_role is not None and stage.approver_role == role
            assert workflow.can_act(role, request_type, index) is expected

    def test_admin_has_no_override(self):
        for request_type in RequestType.ALL:
            for index in range(len(workflow.stages_for(request_type))):
                assert workflow.can_act(Role.ADMIN, request_type, index) is False

    def test_out_of_range_is_false(self):
        assert workflow.can_act(Role.LECTURER, RequestType.EXCUSE, 7) is False
        assert workflow.can_act(Role.LECTURER, 'medical', 1) is False


# ── Submit ───────────────────────────────────────────────────────────────


class TestSubmit:
    @pytest.mark.parametrize("request_type,first_stage", [
        (RequestType.EXCUSE, 'Pending Lecturer Approval'),
        (RequestType.LEAVE, 'Pending Lecturer Approval'),
        (RequestType.LETTER, 'Pending Staff Approval'),
    ])
    def test_moves_to_first_approver(self, request_type, first_stage):
        new = workflow.submit(RequestState(type=request_type))
        assert new.current_stage_index == 1
        assert new.status == first_stage
        assert new.approvals == ()

    def test_cannot_submit_twice(self):
        with pytest.raises(ValidationError):
            workflow.submit(at(RequestType.EXCUSE, 1))

    def test_unknown_type(self):
        with pytest.raises(UnknownType):
            workflow.submit(RequestState(type='medical'))


# ── Transitions ──────────────────────────────────────────────────────────


class TestTransition:
    def test_lecturer_approves_excuse(self):
        new = workflow.transition(at(RequestType.EXCUSE, 1), Decision.APPROVE, LECTURER, 'ok', now=NOW)
        assert new.current_stage_index == 2
        assert new.status == 'Pending HOD Approval'
        assert len(new.approvals) == 1
        entry = new.approvals[0]
        assert entry.approver_role == Role.LECTURER
        assert entry.approver_id == LECTURER.id
        assert entry.approver_name == 'Lee Lecturer'
        assert entry.status == ApprovalStatus.APPROVED
        assert entry.comment == 'ok'
        assert entry.approved_at == NOW
        assert entry.stage_index == 1

    def test_vc_final_approval(self):
        new = workflow.transition(at(RequestType.EXCUSE, 4), Decision.APPROVE, VC)
        assert new.current_stage_index == 5
        assert new.status == RequestStatus.APPROVED
        assert new.is_final

    def test_letter_staff_approval_finishes(self):
        new = workflow.transition(at(RequestType.LETTER, 1), Decision.APPROVE, STAFF)
        assert new.current_stage_index == 2
        assert new.status == RequestStatus.APPROVED

    def test_leave_dean_approval_finishes(self):
        new = workflow.transition(at(RequestType.LEAVE, 3), Decision.APPROVE, DEAN)
        assert new.current_stage_index == 4
        assert new.status == RequestStatus.APPROVED

    def test_wrong_role_is_unauthorized(self):
        state = at(RequestType.EXCUSE, 1)
        with pytest.raises(Unauthorized) as exc:
            workflow.transition(state, Decision.APPROVE, HOD)
        assert exc.value.details == {'required_role': Role.LECTURER}

    def test_lecturer_cannot_issue_letter(self):
        state = at(RequestType.LETTER, 1)
        with pytest.raises(Unauthorized):
            workflow.transition(state, Decision.APPROVE, LECTURER)
        assert state.status == 'Pending Staff Approval'

    def test_admin_cannot_approve(self):
        with pytest.raises(Unauthorized):
            workflow.transition(at(RequestType.LETTER, 1), Decision.APPROVE, ADMIN)

    def test_stage_zero_is_not_actionable(self):
        with pytest.raises(Unauthorized):
            workflow.transition(RequestState(type=RequestType.EXCUSE), Decision.APPROVE, LECTURER)

    def test_reject_keeps_index(self):
        state = at(RequestType.LEAVE, 2)
        new = workflow.transition(state, Decision.REJECT, HOD, 'dates overlap exams')
        assert new.current_stage_index == 2
        assert new.status == RequestStatus.REJECTED
        assert new.approvals[-1].status == ApprovalStatus.REJECTED
        assert new.approvals[-1].comment == 'dates overlap exams'

    @pytest.mark.parametrize("comment", [None, '', '   '])
    def test_reject_requires_comment(self, comment):
        with pytest.raises(ValidationError):
            workflow.transition(at(RequestType.EXCUSE, 1), Decision.REJECT, LECTURER, comment)

    def test_approve_comment_defaults(self):
        new = workflow.transition(at(RequestType.EXCUSE, 1), Decision.APPROVE, LECTURER, '  ')
        assert new.approvals[0].comment == 'Approved'

    def test_unknown_decision(self):
        with pytest.raises(ValidationError):
            workflow.transition(at(RequestType.EXCUSE, 1), 'escalate', LECTURER)

    @pytest.mark.parametrize("status", [RequestStatus.APPROVED, RequestStatus.REJECTED])
    def test_final_states_absorb(self, status):
        state = at(RequestType.EXCUSE, 2, status=status)
        for actor in (LECTURER, HOD, DEAN, VC, ADMIN):
            for decision in (Decision.APPROVE, Decision.REJECT):
                with pytest.raises(AlreadyFinalized):
                    workflow.transition(state, decision, actor, 'again')
        assert state == at(RequestType.EXCUSE, 2, status=status)

    def test_terminal_index_without_final_status(self):
        with pytest.raises(AlreadyFinalized):
            workflow.transition(at(RequestType.LETTER, 2, status='Pending Staff Approval'),
                                Decision.APPROVE, STAFF)

    def test_unknown_type(self):
        with pytest.raises(UnknownType):
            workflow.transition(RequestState(type='medical', current_stage_index=1, status='x'),
                                Decision.APPROVE, LECTURER)

    @pytest.mark.parametrize("index", [-1, 9])
    def test_index_out_of_range(self, index):
        state = RequestState(type=RequestType.EXCUSE, current_stage_index=index, status='Pending Lecturer Approval')
        with pytest.raises(IndexOutOfRange):
            workflow.transition(state, Decision.APPROVE, LECTURER)

    def test_input_state_unchanged(self):
        state = at(RequestType.EXCUSE, 1)
        snapshot = replace(state)
        workflow.transition(state, Decision.APPROVE, LECTURER)
        assert state == snapshot

    @pytest.mark.parametrize("request_type", RequestType.ALL)
    def test_full_chain_is_monotonic(self, request_type):
        state = workflow.submit(RequestState(type=request_type))
        seen = [state.current_stage_index]
        for actor in CHAINS[request_type]:
            state = workflow.transition(state, Decision.APPROVE, actor)
            seen.append(state.current_stage_index)
        assert seen == sorted(seen) and len(set(seen)) == len(seen)
        assert state.status == RequestStatus.APPROVED
        assert state.current_stage_index == workflow.terminal_index(request_type)
        assert [a.approver_role for a in state.approvals] == [a.role for a in CHAINS[request_type]]
        assert [a.stage_index for a in state.approvals] == list(range(1, len(CHAINS[request_type]) + 1))


# ── Progress view ────────────────────────────────────────────────────────


class TestProgress:
    def test_midway(self):
        state = workflow.transition(at(RequestType.EXCUSE, 1), Decision.APPROVE, LECTURER, 'fine')
        rows = workflow.progress(state)
        assert [r['state'] for r in rows] == ['completed', 'completed', 'current', 'pending', 'pending', 'pending']
        assert rows[1]['approval'].comment == 'fine'
        assert rows[2]['approval'] is None
        assert rows[2]['approver_role'] == Role.HOD

    def test_all_completed_when_approved(self):
        state = workflow.transition(at(RequestType.LETTER, 1), Decision.APPROVE, STAFF)
        rows = workflow.progress(state)
        assert [r['state'] for r in rows] == ['completed', 'completed', 'completed']
        assert rows[2]['name'] == 'Ready to Collect'

    def test_rejected_stage_stays_current(self):
        state = workflow.transition(at(RequestType.EXCUSE, 3), Decision.REJECT, DEAN, 'no evidence')
        rows = workflow.progress(state)
        assert rows[3]['state'] == 'current'
        assert rows[3]['approval'].status == ApprovalStatus.REJECTED
        assert rows[4]['state'] == 'pending'
