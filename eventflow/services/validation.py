"""
Exit criteria for each stage boundary.

Every function here is pure: it takes a program (a ``Program`` row or any object
with the same attribute names, e.g. ``Program.snapshot()``) and returns

    {"is_valid": bool, "errors": [str, ...]}

All unmet criteria are reported, not just the first one.
"""

import re

from eventflow.constants import (
    OBJECTIVES_MIN_LENGTH,
    ZFD_COMMENT_MIN_LENGTH,
    ZFD_COMMENT_REQUIRED_AT_OR_BELOW,
    Stage,
)

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
INDIAN_PHONE_RE = re.compile(r'^[6-9]\d{9}$')


def _result(errors):
    return {'is_valid': not errors, 'errors': errors}


def _blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def is_valid_email(email):
    return bool(email) and bool(EMAIL_RE.match(email))


def is_valid_indian_phone(phone):
    return bool(phone) and bool(INDIAN_PHONE_RE.match(phone))


def is_valid_zfd_rating(rating):
    return rating is not None and 1 <= rating <= 5


def zfd_comments_satisfied(rating, comments, min_length=ZFD_COMMENT_MIN_LENGTH,
                           required_at_or_below=ZFD_COMMENT_REQUIRED_AT_OR_BELOW):
    """Comments are only mandatory for low ratings."""
    if rating > required_at_or_below:
        return True
    return bool(comments) and len(comments) >= min_length


# --- STAGE EXIT CRITERIA ---

def can_progress_from_stage1(program):
    errors = []
    if not program.ops_spoc_id:
        errors.append("Ops SPOC must be assigned before handover")
    if program.finance_approval_required and not program.finance_approval_received:
        errors.append("Finance approval required before handover")
    if not program.handover_accepted_by_ops:
        errors.append("Ops team must accept the program before handover")
    if _blank(program.agenda_document):
        errors.append("Agenda document must be uploaded before handover")
    return _result(errors)


def can_progress_from_stage2(program):
    errors = []
    if not program.all_resources_blocked:
        errors.append("All resources must be blocked before moving to delivery")
    if not program.logistics_list_locked:
        errors.append("Logistics list must be locked")
    if not program.prep_complete:
        errors.append("Preparation must be marked as complete")
    if _blank(program.facilitators_blocked):
        errors.append("At least one facilitator must be assigned and blocked")
    return _result(errors)


def can_progress_from_stage3(program):
    errors = []
    if _blank(program.trip_expense_sheet):
        errors.append("Trip expense sheet must be uploaded before closing delivery")
    if not program.packing_check_done:
        errors.append("Packing checklist must be marked as complete")
    if not program.program_completed:
        errors.append("Program must be marked as completed")
    return _result(errors)


def can_progress_from_stage4(program, comment_min_length=ZFD_COMMENT_MIN_LENGTH,
                             comment_required_at_or_below=ZFD_COMMENT_REQUIRED_AT_OR_BELOW):
    errors = []
    rating = program.zfd_rating
    if rating is None:
        errors.append("ZFD rating is required (1-5)")
    elif not is_valid_zfd_rating(rating):
        errors.append("ZFD rating must be between 1 and 5")
    elif not zfd_comments_satisfied(rating, program.zfd_comments,
                                    comment_min_length, comment_required_at_or_below):
        errors.append(
            f"Comments mandatory for ratings <= {comment_required_at_or_below} "
            f"(minimum {comment_min_length} characters)"
        )
    if not program.expenses_bills_submitted:
        errors.append("Expenses and bills must be submitted")
    if not program.ops_data_manager_updated:
        errors.append("Ops data manager must be updated")
    return _result(errors)


EXIT_CRITERIA = {
    Stage.INTAKE: can_progress_from_stage1,
    Stage.FEASIBILITY: can_progress_from_stage2,
    Stage.DELIVERY: can_progress_from_stage3,
    Stage.CLOSURE: can_progress_from_stage4,
}


def validate_stage_progression(program, **thresholds):
    """Runs the exit criteria of whatever stage the program is in."""
    check = EXIT_CRITERIA.get(program.current_stage)
    if check is None:
        return _result(["Invalid stage"])
    if program.current_stage == Stage.CLOSURE:
        return check(program, **thresholds)
    return check(program)


# --- INTAKE FIELDS ---

def validate_intake_fields(data, objectives_min_length=OBJECTIVES_MIN_LENGTH):
    """Field-level checks for a new program's Stage 1 payload (a plain dict)."""
    errors = []

    if _blank(data.get('program_name')):
        errors.append('Program name is required')
    if _blank(data.get('company_name')):
        errors.append('Company name is required')
    if _blank(data.get('location')):
        errors.append('Location is required')

    email = data.get('client_poc_email')
    if not email:
        errors.append('Client POC email is required')
    elif not is_valid_email(email):
        errors.append('Invalid email format')

    phone = data.get('client_poc_phone')
    if not phone:
        errors.append('Client POC phone is required')
    elif not is_valid_indian_phone(phone):
        errors.append('Invalid Indian phone number (10 digits starting with 6-9)')

    min_pax, max_pax = data.get('min_pax'), data.get('max_pax')
    if min_pax is not None and max_pax is not None and not (0 < min_pax <= max_pax):
        errors.append('Min pax must be positive and not exceed max pax')

    budget = data.get('delivery_budget')
    if budget is None:
        errors.append('Delivery budget is required')
    elif budget <= 0:
        errors.append('Budget must be a positive number')

    objectives = data.get('objectives') or ''
    if len(objectives) < objectives_min_length:
        errors.append(f'Objectives required (minimum {objectives_min_length} characters)')

    return _result(errors)
