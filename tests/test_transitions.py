"""Stage transitions: the happy path, exit criteria, permissions and the log."""

from unittest import mock

import pytest
from sqlalchemy.exc import OperationalError

from eventflow.constants import Stage
from eventflow.models import ImmutableRecordError, Program, StageTransition
from eventflow.services.program_repository import ProgramRepository
from eventflow.services.program_service import ProgramService
from eventflow.services.transition_service import TransitionService


def reload(session, program_id):
    return session.get(Program, program_id)


def history(program_id):
    return ProgramRepository.get_transitions(program_id)


class TestFullLifecycle:
    def test_program_moves_from_intake_to_archive(self, session, actors, intake):
        created = ProgramService.create_program(actors['sales'], intake)
        assert created['success'] is True
        pid = created['id']

        assert TransitionService.approve_finance(pid, actors['finance']) == {'success': True}
        assert TransitionService.accept_handover(pid, actors['ops'])['current_stage'] == 2

        assert ProgramService.update_stage2(pid, actors['ops'], {
            'all_resources_blocked': True, 'logistics_list_locked': True,
            'prep_complete': True, 'facilitators_blocked': 'Ravi, Meena',
        })['success'] is True
        assert TransitionService.move_to_stage3(pid, actors['ops'])['current_stage'] == 3

        ProgramService.update_stage3(pid, actors['ops'], {
            'trip_expense_sheet': '/uploads/documents/trip.xlsx',
            'packing_check_done': True, 'program_completed': True,
        })
        assert TransitionService.move_to_stage4(pid, actors['ops'])['current_stage'] == 4

        ProgramService.update_stage4(pid, actors['ops'], {
            'zfd_rating': 5, 'expenses_bills_submitted': True, 'ops_data_manager_updated': True,
        })
        assert TransitionService.move_to_stage5(pid, actors['ops'])['current_stage'] == 5

        program = reload(session, pid)
        assert program.current_stage == Stage.ARCHIVED
        assert program.locked is True
        assert program.closed_by == actors['ops'].id
        assert program.closed_at is not None
        assert program.ops_spoc_id == actors['ops'].id

        entries = history(pid)
        assert [(e.from_stage, e.to_stage) for e in entries] == [(1, 2), (2, 3), (3, 4), (4, 5)]
        assert [e.approval_notes for e in entries] == [
            "Handover accepted.",
            "Stage 2 complete. All resources blocked, prep done.",
            "Delivery complete. Trip expense sheet submitted.",
            "Program Closed. ZFD Rating: 5/5",
        ]
        assert all(e.transitioned_by == actors['ops'].id for e in entries)


class TestFinanceApproval:
    def test_requires_finance_role(self, make_program, actors):
        program = make_program()
        result = TransitionService.approve_finance(program.id, actors['sales'])
        assert result == {'success': False, 'error': 'Unauthorized - Finance role required',
                          'error_type': 'UNAUTHORIZED'}

    def test_admin_may_approve(self, session, make_program, actors):
        program = make_program()
        assert TransitionService.approve_finance(program.id, actors['admin'])['success'] is True
        assert reload(session, program.id).finance_approval_received is True

    def test_approval_is_not_a_transition(self, make_program, actors):
        program = make_program()
        TransitionService.approve_finance(program.id, actors['finance'])
        assert history(program.id) == []

    def test_second_approval_refused(self, make_program, actors):
        program = make_program(finance_approval_received=True)
        assert TransitionService.approve_finance(program.id, actors['finance'])['error_type'] == 'CONFLICT'

    def test_unknown_program(self, users, actors):
        result = TransitionService.approve_finance(9999, actors['finance'])
        assert result['error_type'] == 'NOT_FOUND'
        assert result['error'] == 'Program not found'


class TestHandover:
    def test_unmet_criteria_save_nothing(self, session, make_program, actors):
        program = make_program()
        result = TransitionService.accept_handover(program.id, actors['ops'])

        assert result['success'] is False
        assert result['error_type'] == 'VALIDATION_FAILED'
        assert result['error'] == 'Cannot progress to Stage 2'
        assert result['details'] == ["Finance approval required before handover"]

        program = reload(session, program.id)
        assert program.current_stage == 1
        assert program.handover_accepted_by_ops is False
        assert program.ops_spoc_id is None
        assert history(program.id) == []

    def test_missing_agenda_reported_with_finance(self, make_program, actors):
        program = make_program(agenda_document=None)
        result = TransitionService.accept_handover(program.id, actors['ops'])
        assert result['details'] == [
            "Finance approval required before handover",
            "Agenda document must be uploaded before handover",
        ]

    def test_finance_not_required(self, make_program, actors):
        program = make_program(finance_approval_required=False)
        assert TransitionService.accept_handover(program.id, actors['ops'])['success'] is True

    def test_acting_user_becomes_spoc(self, session, make_program, actors):
        program = make_program(finance_approval_received=True)
        TransitionService.accept_handover(program.id, actors['admin'])
        program = reload(session, program.id)
        assert program.ops_spoc_id == actors['admin'].id
        assert program.handover_accepted_by_ops is True

    def test_sales_cannot_accept(self, make_program, actors):
        program = make_program(finance_approval_received=True)
        result = TransitionService.accept_handover(program.id, actors['sales'])
        assert result['error'] == 'Unauthorized - Ops role required'


class TestStageOrder:
    def test_cannot_skip_a_stage(self, session, make_program, actors):
        program = make_program(stage=2, ready=True)
        result = TransitionService.move_to_stage4(program.id, actors['ops'])
        assert result['error_type'] == 'CONFLICT'
        assert reload(session, program.id).current_stage == 2

    def test_repeated_move_is_refused(self, make_program, actors):
        program = make_program(stage=2, ready=True)
        assert TransitionService.move_to_stage3(program.id, actors['ops'])['success'] is True
        assert TransitionService.move_to_stage3(program.id, actors['ops'])['error_type'] == 'CONFLICT'
        assert len(history(program.id)) == 1

    def test_exit_criteria_reported(self, make_program, actors):
        program = make_program(stage=4, zfd_rating=2, zfd_comments='meh')
        result = TransitionService.move_to_stage5(program.id, actors['ops'])
        assert result['error'] == 'Cannot close program'
        assert result['details'] == [
            "Comments mandatory for ratings <= 3 (minimum 10 characters)",
            "Expenses and bills must be submitted",
            "Ops data manager must be updated",
        ]

    def test_sales_cannot_move_and_nothing_changes(self, session, make_program, actors):
        program = make_program(stage=2, ready=True)
        result = TransitionService.move_to_stage3(program.id, actors['sales'])
        assert result['success'] is False
        assert result['error'].startswith('Unauthorized')
        assert reload(session, program.id).current_stage == 2
        assert history(program.id) == []

    def test_finance_cannot_move(self, make_program, actors):
        program = make_program(stage=3, ready=True)
        assert TransitionService.move_to_stage4(program.id, actors['finance'])['error_type'] == 'UNAUTHORIZED'

    def test_stale_update_writes_no_log_entry(self, session, make_program, actors):
        program = make_program(stage=2, ready=True)
        with mock.patch.object(ProgramRepository, 'update_if_stage', return_value=False):
            result = TransitionService.move_to_stage3(program.id, actors['ops'])

        assert result['error_type'] == 'CONFLICT'
        assert history(program.id) == []

    def test_store_failure_rolls_back(self, session, make_program, actors):
        program = make_program(stage=2, ready=True)
        boom = OperationalError('INSERT', {}, Exception('disk I/O error'))
        with mock.patch.object(ProgramRepository, 'append_transition', side_effect=boom):
            result = TransitionService.move_to_stage3(program.id, actors['ops'])

        assert result == {'success': False, 'error': 'Transition failed', 'error_type': 'TRANSITION_FAILED'}
        assert reload(session, program.id).current_stage == 2
        assert history(program.id) == []


class TestLockedPrograms:
    def test_closed_program_is_read_only(self, make_program, actors):
        program = make_program(stage=5)
        for result in (
            ProgramService.update_stage4(program.id, actors['ops'], {'client_feedback': 'late edit'}),
            ProgramService.update_stage1(program.id, actors['admin'], {'location': 'Ooty'}),
            TransitionService.move_to_stage5(program.id, actors['admin']),
        ):
            assert result['error_type'] == 'CONFLICT'
            assert result['error'] == 'Program is locked. Only an administrator can reopen it.'


class TestReopen:
    justification = 'Client disputed the final invoice'

    def test_admin_reopens_to_closure(self, session, make_program, actors):
        program = make_program(stage=5, final_notes='Great event')
        result = TransitionService.reopen_program(program.id, actors['admin'], self.justification)
        assert result == {'success': True, 'current_stage': 4}

        program = reload(session, program.id)
        assert program.current_stage == Stage.CLOSURE
        assert program.locked is False
        assert program.final_notes.startswith('Great event\n\n[REOPENED by Admin User on ')
        assert program.final_notes.endswith(f"Reason: {self.justification}")

        (entry,) = history(program.id)
        assert (entry.from_stage, entry.to_stage) == (5, 4)
        assert entry.approval_notes == f"Program reopened by Admin. Justification: {self.justification}"

    def test_reopened_program_can_close_again(self, make_program, actors):
        program = make_program(stage=5)
        TransitionService.reopen_program(program.id, actors['admin'], self.justification)
        assert TransitionService.move_to_stage5(program.id, actors['ops'])['success'] is True
        assert [e.to_stage for e in history(program.id)] == [4, 5]

    def test_admin_only(self, make_program, actors):
        program = make_program(stage=5)
        result = TransitionService.reopen_program(program.id, actors['ops'], self.justification)
        assert result['error'] == 'Unauthorized - Admin role required'

    def test_short_justification(self, make_program, actors):
        program = make_program(stage=5)
        result = TransitionService.reopen_program(program.id, actors['admin'], '  too short ')
        assert result['error_type'] == 'INPUT_INVALID'

    def test_non_text_justification(self, make_program, actors):
        program = make_program(stage=5)
        result = TransitionService.reopen_program(program.id, actors['admin'], ['Client disputed the final invoice'])
        assert result == {'success': False, 'error': 'Justification must be text',
                          'error_type': 'INPUT_INVALID'}

    def test_only_closed_programs(self, make_program, actors):
        program = make_program(stage=4)
        result = TransitionService.reopen_program(program.id, actors['admin'], self.justification)
        assert result['error'] == 'Only Stage 5 (closed) programs can be reopened'


class TestTransitionLog:
    def test_entries_cannot_be_edited(self, session, make_program, actors):
        program = make_program(stage=2, ready=True)
        TransitionService.move_to_stage3(program.id, actors['ops'])
        (entry,) = history(program.id)

        entry.approval_notes = 'rewritten'
        with pytest.raises(ImmutableRecordError):
            session.commit()
        session.rollback()

    def test_entries_cannot_be_deleted(self, session, make_program, actors):
        program = make_program(stage=2, ready=True)
        TransitionService.move_to_stage3(program.id, actors['ops'])
        (entry,) = history(program.id)

        session.delete(entry)
        with pytest.raises(ImmutableRecordError):
            session.commit()
        session.rollback()
        assert StageTransition.query.count() == 1
