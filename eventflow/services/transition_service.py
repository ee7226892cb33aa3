"""
Stage transition engine.

Each operation runs the same protocol: authorize, load, validate the exit
criteria, apply the stage change together with its StageTransition row in one
commit, then notify. Notifications only start after the commit and can never
undo it. Operations return ``{"success": True, ...}`` or a failure result and
never raise.
"""

import logging

from flask import current_app
from sqlalchemy import or_

from eventflow import constants
from eventflow.constants import Stage
from eventflow.errors import Conflict, InputInvalid, ValidationFailed, ok, workflow_operation
from eventflow.extensions import db
from eventflow.models import Program, utcnow
from eventflow.permissions import require_role
from eventflow.services.notification_service import NotificationService
from eventflow.services.program_repository import ProgramRepository
from eventflow.services.validation import (
    can_progress_from_stage1,
    can_progress_from_stage2,
    can_progress_from_stage3,
    can_progress_from_stage4,
)

logger = logging.getLogger(__name__)


def setting(name):
    """A business threshold from app config, falling back to the default."""
    return current_app.config.get(name, getattr(constants, name))


def ensure_unlocked(program):
    if program.locked:
        raise Conflict("Program is locked. Only an administrator can reopen it.")


def ensure_stage(program, stage):
    if program.current_stage != stage:
        raise Conflict(
            f"Program must be in Stage {stage} ({Stage.LABELS[stage]}); "
            f"it is in Stage {program.current_stage}"
        )


def commit_transition(program, to_stage, actor, fields, notes):
    """
    Moves ``program`` to ``to_stage`` and appends its log entry in one commit.

    The update only applies while the row is still at the stage that was
    validated, so a concurrent or retried request cannot apply it twice.
    """
    from_stage = program.current_stage
    changes = dict(fields, current_stage=to_stage)
    if not ProgramRepository.update_if_stage(program.id, from_stage, changes):
        raise Conflict("Program was changed by another request. Reload and try again.")
    ProgramRepository.append_transition(program.id, from_stage, to_stage, actor.id, notes)
    db.session.commit()
    logger.info(
        "Program %s moved from stage %s to %s by user %s",
        program.program_id, from_stage, to_stage, actor.id,
        extra={'program_id': program.program_id, 'actor_id': actor.id,
               'from_stage': from_stage, 'to_stage': to_stage},
    )


class TransitionService:

    # --- STAGE 1 ---

    @staticmethod
    @workflow_operation("Failed to approve.")
    def approve_finance(program_id, actor):
        """Finance sign-off on the budget. Not a stage change."""
        require_role(actor, 'approve_finance')
        program = ProgramRepository.get_program(program_id)
        ensure_unlocked(program)
        ensure_stage(program, Stage.INTAKE)
        if program.rejection_status == constants.RejectionStatus.FINANCE:
            raise Conflict("Program was rejected by Finance and must be resubmitted first")
        if program.finance_approval_received:
            raise Conflict("Finance approval already received")

        if not ProgramRepository.update_where(
                program.id, {'finance_approval_received': True},
                Program.current_stage == Stage.INTAKE,
                Program.finance_approval_received.is_(False),
                or_(Program.rejection_status.is_(None),
                    Program.rejection_status != constants.RejectionStatus.FINANCE)):
            raise Conflict("Program was changed by another request. Reload and try again.")
        db.session.commit()
        logger.info("Finance approved program %s (user %s)", program.program_id, actor.id)

        NotificationService.finance_approved(program)
        return ok()

    @staticmethod
    @workflow_operation("Failed to accept handover.")
    def accept_handover(program_id, actor):
        """
        Ops accepts the program and it moves to Stage 2 in the same commit.

        The acting user becomes the Ops SPOC. If the Stage 1 exit criteria are
        not met nothing is saved, including the acceptance itself.
        """
        require_role(actor, 'accept_handover')
        program = ProgramRepository.get_program(program_id)
        ensure_unlocked(program)
        ensure_stage(program, Stage.INTAKE)
        if program.rejection_status:
            raise Conflict("Program has an open rejection and must be resubmitted first")

        acceptance = {'ops_spoc_id': actor.id, 'handover_accepted_by_ops': True}
        validation = can_progress_from_stage1(program.snapshot(**acceptance))
        if not validation['is_valid']:
            raise ValidationFailed("Cannot progress to Stage 2", validation['errors'])

        commit_transition(program, Stage.FEASIBILITY, actor, acceptance, "Handover accepted.")

        NotificationService.handover_accepted(program)
        return ok(current_stage=Stage.FEASIBILITY)

    # --- STAGES 2-4 ---

    @staticmethod
    @workflow_operation("Transition failed")
    def move_to_stage3(program_id, actor):
        require_role(actor, 'move_to_stage3')
        program = ProgramRepository.get_program(program_id)
        ensure_unlocked(program)
        ensure_stage(program, Stage.FEASIBILITY)

        validation = can_progress_from_stage2(program)
        if not validation['is_valid']:
            raise ValidationFailed("Cannot progress to Stage 3", validation['errors'])

        commit_transition(program, Stage.DELIVERY, actor, {},
                          "Stage 2 complete. All resources blocked, prep done.")

        NotificationService.stage_completed(program, Stage.FEASIBILITY)
        return ok(current_stage=Stage.DELIVERY)

    @staticmethod
    @workflow_operation("Transition failed")
    def move_to_stage4(program_id, actor):
        require_role(actor, 'move_to_stage4')
        program = ProgramRepository.get_program(program_id)
        ensure_unlocked(program)
        ensure_stage(program, Stage.DELIVERY)

        validation = can_progress_from_stage3(program)
        if not validation['is_valid']:
            raise ValidationFailed("Cannot progress to Stage 4", validation['errors'])

        commit_transition(program, Stage.CLOSURE, actor, {},
                          "Delivery complete. Trip expense sheet submitted.")

        NotificationService.stage_completed(program, Stage.DELIVERY)
        return ok(current_stage=Stage.CLOSURE)

    @staticmethod
    @workflow_operation("Closure failed")
    def move_to_stage5(program_id, actor):
        """Closes and locks the program."""
        require_role(actor, 'move_to_stage5')
        program = ProgramRepository.get_program(program_id)
        ensure_unlocked(program)
        ensure_stage(program, Stage.CLOSURE)

        validation = can_progress_from_stage4(
            program,
            comment_min_length=setting('ZFD_COMMENT_MIN_LENGTH'),
            comment_required_at_or_below=setting('ZFD_COMMENT_REQUIRED_AT_OR_BELOW'),
        )
        if not validation['is_valid']:
            raise ValidationFailed("Cannot close program", validation['errors'])

        closure = {'locked': True, 'closed_at': utcnow(), 'closed_by': actor.id}
        commit_transition(program, Stage.ARCHIVED, actor, closure,
                          f"Program Closed. ZFD Rating: {program.zfd_rating}/5")

        NotificationService.program_closed(program)
        return ok(current_stage=Stage.ARCHIVED)

    # --- STAGE 5 ---

    @staticmethod
    @workflow_operation("Failed to reopen program")
    def reopen_program(program_id, actor, justification):
        """Admin-only 5 -> 4. The justification is appended to the final notes."""
        require_role(actor, 'reopen_program')
        if justification is not None and not isinstance(justification, str):
            raise InputInvalid("Justification must be text")
        justification = (justification or '').strip()
        min_length = setting('REOPEN_JUSTIFICATION_MIN_LENGTH')
        if len(justification) < min_length:
            raise InputInvalid(f"Justification required (minimum {min_length} characters)")

        program = ProgramRepository.get_program(program_id)
        if program.current_stage != Stage.ARCHIVED:
            raise Conflict("Only Stage 5 (closed) programs can be reopened")

        admin = ProgramRepository.get_user(actor.id)
        admin_name = admin.name if admin else 'Admin'
        annotation = f"[REOPENED by {admin_name} on {utcnow().isoformat()}]\nReason: {justification}"
        final_notes = f"{program.final_notes}\n\n{annotation}" if program.final_notes else annotation

        commit_transition(program, Stage.CLOSURE, actor,
                          {'locked': False, 'final_notes': final_notes},
                          f"Program reopened by Admin. Justification: {justification}")

        NotificationService.program_reopened(program, admin_name, justification)
        return ok(current_stage=Stage.CLOSURE)
