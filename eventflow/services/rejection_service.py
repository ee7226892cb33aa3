"""
Rejection and resubmission of programs still in Stage 1.

A rejection never changes the stage. It records who rejected and why, and
clears the matching approval flag so the program cannot move on until the
sales owner resubmits and the approver signs off again.
"""

import logging

from sqlalchemy import or_

from eventflow.constants import RejectionStatus, Role, Stage
from eventflow.errors import Conflict, InputInvalid, Unauthorized, ok, workflow_operation
from eventflow.extensions import db
from eventflow.models import Program, utcnow
from eventflow.permissions import require_role
from eventflow.services.notification_service import FINANCE_POOL, OPS_POOL, NotificationService
from eventflow.services.program_repository import ProgramRepository
from eventflow.services.transition_service import ensure_stage, ensure_unlocked, setting

logger = logging.getLogger(__name__)

# rejection tag -> (reason column, approval flag it clears, pool notified on resubmit, subject)
REJECTIONS = {
    RejectionStatus.FINANCE: ('finance_rejection_reason', 'finance_approval_received',
                              FINANCE_POOL, "Program Rejected by Finance"),
    RejectionStatus.OPS: ('ops_rejection_reason', 'handover_accepted_by_ops',
                          OPS_POOL, "Handover Rejected by Ops"),
}


def _clean_reason(reason):
    if reason is not None and not isinstance(reason, str):
        raise InputInvalid("Rejection reason must be text")
    reason = (reason or '').strip()
    min_length = setting('REJECTION_REASON_MIN_LENGTH')
    if len(reason) < min_length:
        raise InputInvalid(f"Rejection reason must be at least {min_length} characters")
    return reason


def _reject(program_id, actor, reason, tag):
    reason = _clean_reason(reason)
    program = ProgramRepository.get_program(program_id)
    ensure_unlocked(program)
    ensure_stage(program, Stage.INTAKE)

    reason_field, approval_flag, _, subject = REJECTIONS[tag]
    fields = {
        'rejection_status': tag,
        reason_field: reason,
        'rejected_by': actor.id,
        'rejected_at': utcnow(),
        approval_flag: False,
    }
    if not ProgramRepository.update_where(program.id, fields,
                                          Program.current_stage == Stage.INTAKE,
                                          Program.locked.is_(False)):
        raise Conflict("Program was changed by another request. Reload and try again.")
    db.session.commit()
    logger.info("Program %s rejected (%s) by user %s", program.program_id, tag, actor.id)

    NotificationService.program_rejected(program, subject, reason)
    return ok(rejection_status=tag)


class RejectionService:

    @staticmethod
    @workflow_operation("Failed to reject program")
    def reject_finance(program_id, actor, reason):
        require_role(actor, 'reject_finance')
        return _reject(program_id, actor, reason, RejectionStatus.FINANCE)

    @staticmethod
    @workflow_operation("Failed to reject handover")
    def reject_ops_handover(program_id, actor, reason):
        require_role(actor, 'reject_ops_handover')
        return _reject(program_id, actor, reason, RejectionStatus.OPS)

    @staticmethod
    @workflow_operation("Failed to resubmit program")
    def resubmit_program(program_id, actor):
        """
        Clears an open rejection. Only the program's sales owner or an Admin
        may resubmit, and only while a rejection is open, so a second call
        fails instead of notifying the approvers twice.
        """
        program = ProgramRepository.get_program(program_id)
        if actor is None or (program.sales_poc_id != actor.id and actor.role != Role.ADMIN):
            raise Unauthorized("Unauthorized - Only program owner can resubmit")
        ensure_unlocked(program)
        if not program.rejection_status:
            raise Conflict("Program is not rejected")

        tag = program.rejection_status
        fields = {
            'rejection_status': None,
            'rejected_by': None,
            'rejected_at': None,
            'resubmission_count': Program.resubmission_count + 1,
            'last_resubmitted_at': utcnow(),
        }
        # a concurrent resubmit clears the tag first and leaves nothing to match
        if not ProgramRepository.update_where(program.id, fields,
                                              Program.rejection_status == tag,
                                              Program.locked.is_(False)):
            raise Conflict("Program is not rejected")
        db.session.commit()
        logger.info("Program %s resubmitted after %s (count %s)",
                    program.program_id, tag, program.resubmission_count)

        NotificationService.program_resubmitted(program, REJECTIONS[tag][2])
        return ok(resubmission_count=program.resubmission_count)

    @staticmethod
    def pending_approvals(role):
        """
        Programs waiting on ``role``. Computed on every call.

        Finance (and Admin): Stage 1, finance approval required but not given,
        not rejected by Finance. Ops: finance cleared, handover not accepted, not rejected by Ops.
        """
        query = Program.query.filter(Program.current_stage == Stage.INTAKE)
        if role in (Role.FINANCE, Role.ADMIN):
            query = query.filter(
                Program.finance_approval_required.is_(True),
                Program.finance_approval_received.is_(False),
                or_(Program.rejection_status.is_(None),
                    Program.rejection_status != RejectionStatus.FINANCE),
            )
        elif role == Role.OPS:
            query = query.filter(
                or_(Program.finance_approval_received.is_(True),
                    Program.finance_approval_required.is_(False)),
                Program.handover_accepted_by_ops.is_(False),
                or_(Program.rejection_status.is_(None),
                    Program.rejection_status != RejectionStatus.OPS),
            )
        else:
            return []
        return query.order_by(Program.created_at.desc(), Program.id.desc()).all()

    @staticmethod
    @workflow_operation("Failed to fetch pending approvals")
    def get_pending_approvals(role):
        programs = RejectionService.pending_approvals(role)
        return ok(count=len(programs), programs=[p.to_dict() for p in programs])
