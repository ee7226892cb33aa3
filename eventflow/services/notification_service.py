"""
Outbound workflow notifications.

Every public method here is called after the workflow change has been
committed. Nothing raises to the caller: failures are logged and reported in
the returned ``{"success": False, "error": ...}``.
"""

import functools
import logging

from flask import current_app

from eventflow.constants import Role, Stage
from eventflow.services.program_repository import ProgramRepository
from eventflow.tasks import send_async_email

logger = logging.getLogger(__name__)

FINANCE_POOL = (Role.FINANCE, Role.ADMIN)
OPS_POOL = (Role.OPS, Role.ADMIN)


def best_effort(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.exception("Notification %s failed", func.__name__)
            return {'success': False, 'error': str(e)}
    return wrapper


def _program_link(program):
    return f"{current_app.config.get('APP_URL', '')}/programs/{program.id}"


def _body(greeting, lines, program):
    text = "\n".join(lines)
    return (
        f"Hi {greeting},\n\n{text}\n\n"
        f"Program: {program.program_name} ({program.program_id})\n"
        f"Current Stage: {program.current_stage} - {Stage.LABELS.get(program.current_stage, '')}\n\n"
        f"Open the program: {_program_link(program)}\n"
    )


def _emails(users):
    seen = []
    for u in users:
        if u is not None and u.email and u.email not in seen:
            seen.append(u.email)
    return seen


class NotificationService:

    @staticmethod
    def notify(to, subject, body):
        """Hands one message to the mail worker. Never raises."""
        recipients = [to] if isinstance(to, str) else [r for r in (to or []) if r]
        if not recipients:
            logger.info("No recipients for '%s', skipped", subject)
            return {'success': False, 'error': 'No recipients'}
        try:
            send_async_email.delay(subject, recipients, body, is_html=False)
            return {'success': True}
        except Exception as e:
            logger.exception("Could not queue email '%s' to %s", subject, recipients)
            return {'success': False, 'error': str(e)}

    @staticmethod
    def _pool(roles):
        return _emails(ProgramRepository.get_users_by_role(roles))

    @staticmethod
    def _owner(user_id):
        return _emails([ProgramRepository.get_user(user_id)])

    # --- INTAKE ---

    @staticmethod
    @best_effort
    def program_created(program):
        owner = ProgramRepository.get_user(program.sales_poc_id)
        NotificationService.notify(
            NotificationService._owner(program.sales_poc_id),
            f"New Program: {program.program_name} ({program.program_id})",
            _body(owner.name if owner else 'Sales Owner',
                  ["A new program has been created and is now in your queue.",
                   f"Client: {program.company_name}", f"Location: {program.location}"], program),
        )
        return NotificationService.notify(
            NotificationService._pool(FINANCE_POOL),
            f"Budget Approval Required: {program.program_name} ({program.delivery_budget or 0:,.0f})",
            _body('Finance Team', ["A new program needs budget approval."], program),
        )

    @staticmethod
    @best_effort
    def finance_approved(program):
        NotificationService.notify(
            NotificationService._owner(program.sales_poc_id),
            f"Budget Approved: {program.program_name}",
            _body('Sales Owner', ["Finance has approved the budget. The program is waiting for Ops handover."],
                  program),
        )
        return NotificationService.notify(
            NotificationService._pool(OPS_POOL),
            f"Handover Ready: {program.program_name} - Action Required",
            _body('Ops Team', ["Finance has approved this program. Please review and accept the handover."],
                  program),
        )

    @staticmethod
    @best_effort
    def handover_accepted(program):
        NotificationService.notify(
            NotificationService._owner(program.ops_spoc_id),
            f"New Program Assigned: {program.program_name}",
            _body('Ops SPOC', ["You are now the Ops SPOC for this program."], program),
        )
        return NotificationService.notify(
            NotificationService._owner(program.sales_poc_id),
            f"Stage 1 Completed: {program.program_name}",
            _body('Sales Owner', ["Ops accepted the handover. The program moved to Feasibility."], program),
        )

    # --- REJECTION ---

    @staticmethod
    @best_effort
    def program_rejected(program, subject_prefix, reason):
        return NotificationService.notify(
            NotificationService._owner(program.sales_poc_id),
            f"{subject_prefix}: {program.program_name}",
            _body('Sales Owner', [f"{subject_prefix}.", f"Reason: {reason}",
                                  "Update the program and resubmit it."], program),
        )

    @staticmethod
    @best_effort
    def program_resubmitted(program, roles):
        return NotificationService.notify(
            NotificationService._pool(roles),
            f"Program Resubmitted ({program.resubmission_count}x): {program.program_name}",
            _body('Team', ["The sales owner has addressed the rejection and resubmitted the program."],
                  program),
        )

    # --- STAGES ---

    @staticmethod
    @best_effort
    def stage_completed(program, completed_stage):
        return NotificationService.notify(
            NotificationService._owner(program.ops_spoc_id),
            f"Stage {completed_stage} Completed: {program.program_name}",
            _body('Ops SPOC', [f"Stage {completed_stage} is complete. The program is now in "
                               f"Stage {completed_stage + 1}."], program),
        )

    @staticmethod
    @best_effort
    def program_closed(program):
        recipients = NotificationService._owner(program.sales_poc_id) + NotificationService._owner(program.ops_spoc_id)
        for email in NotificationService._pool(FINANCE_POOL):
            if email not in recipients:
                recipients.append(email)
        return NotificationService.notify(
            recipients,
            f"Program Closed: {program.program_name} (ZFD: {program.zfd_rating}/5)",
            _body('Team', ["The program has been closed and archived.",
                           f"Client: {program.company_name}"], program),
        )

    @staticmethod
    @best_effort
    def program_reopened(program, reopened_by, justification):
        recipients = NotificationService._owner(program.sales_poc_id)
        for email in NotificationService._owner(program.ops_spoc_id):
            if email not in recipients:
                recipients.append(email)
        return NotificationService.notify(
            recipients,
            f"Program Reopened: {program.program_name} ({program.program_id})",
            _body('Team', [f"The program was reopened by {reopened_by} and is back in Closure.",
                           f"Justification: {justification}"], program),
        )
