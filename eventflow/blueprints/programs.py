from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from eventflow.errors import STATUS_CODES
from eventflow.permissions import actor_from_user
from eventflow.services import report_service
from eventflow.services.program_service import ProgramService
from eventflow.services.rejection_service import RejectionService
from eventflow.services.storage_service import StorageService
from eventflow.services.transition_service import TransitionService

programs_bp = Blueprint('programs', __name__)

MOVES = {
    3: TransitionService.move_to_stage3,
    4: TransitionService.move_to_stage4,
    5: TransitionService.move_to_stage5,
}

UPDATES = {
    1: ProgramService.update_stage1,
    2: ProgramService.update_stage2,
    3: ProgramService.update_stage3,
    4: ProgramService.update_stage4,
}


def respond(result, success_status=200):
    if result.get('success'):
        return jsonify(result), success_status
    return jsonify(result), STATUS_CODES.get(result.get('error_type'), 400)


def _actor():
    return actor_from_user(current_user)


def _json():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# --- PROGRAMS ---

@programs_bp.route('', methods=['POST'])
@login_required
def create_program():
    return respond(ProgramService.create_program(_actor(), _json()), 201)


@programs_bp.route('', methods=['GET'])
@login_required
def list_programs():
    filters = {
        'stage': request.args.get('stage', type=int),
        'sales_poc_id': request.args.get('sales_poc_id', type=int),
        'ops_spoc_id': request.args.get('ops_spoc_id', type=int),
        'rejection_status': request.args.get('rejection_status'),
    }
    return respond(ProgramService.list_programs(**filters))


@programs_bp.route('/<int:program_id>')
@login_required
def get_program(program_id):
    return respond(ProgramService.get_program(program_id))


@programs_bp.route('/<int:program_id>/history')
@login_required
def history(program_id):
    return respond(ProgramService.get_transition_history(program_id))


@programs_bp.route('/<int:program_id>/stages/<int:stage>', methods=['PATCH'])
@login_required
def update_stage(program_id, stage):
    if stage not in UPDATES:
        return jsonify({'success': False, 'error': 'Stage fields are editable for stages 1-4 only'}), 404
    return respond(UPDATES[stage](program_id, _actor(), _json()))


# --- WORKFLOW ---

@programs_bp.route('/<int:program_id>/approve-finance', methods=['POST'])
@login_required
def approve_finance(program_id):
    return respond(TransitionService.approve_finance(program_id, _actor()))


@programs_bp.route('/<int:program_id>/reject-finance', methods=['POST'])
@login_required
def reject_finance(program_id):
    return respond(RejectionService.reject_finance(program_id, _actor(), _json().get('reason')))


@programs_bp.route('/<int:program_id>/accept-handover', methods=['POST'])
@login_required
def accept_handover(program_id):
    return respond(TransitionService.accept_handover(program_id, _actor()))


@programs_bp.route('/<int:program_id>/reject-handover', methods=['POST'])
@login_required
def reject_handover(program_id):
    return respond(RejectionService.reject_ops_handover(program_id, _actor(), _json().get('reason')))


@programs_bp.route('/<int:program_id>/resubmit', methods=['POST'])
@login_required
def resubmit(program_id):
    return respond(RejectionService.resubmit_program(program_id, _actor()))


@programs_bp.route('/<int:program_id>/move/<int:stage>', methods=['POST'])
@login_required
def move(program_id, stage):
    if stage not in MOVES:
        return jsonify({'success': False, 'error': 'Programs can only be moved to stages 3, 4 or 5'}), 404
    return respond(MOVES[stage](program_id, _actor()))


@programs_bp.route('/<int:program_id>/reopen', methods=['POST'])
@login_required
def reopen(program_id):
    return respond(TransitionService.reopen_program(program_id, _actor(), _json().get('justification')))


# --- QUEUES & FILES ---

@programs_bp.route('/pending-approvals')
@login_required
def pending_approvals():
    return respond(RejectionService.get_pending_approvals(current_user.role))


@programs_bp.route('/dashboard')
@login_required
def dashboard():
    return jsonify({'success': True, 'stats': report_service.get_dashboard_stats()})


@programs_bp.route('/uploads', methods=['POST'])
@login_required
def upload():
    file = request.files.get('file')
    if not file or file.filename == '':
        return jsonify({'success': False, 'error': 'No file uploaded', 'error_type': 'INPUT_INVALID'}), 400
    category = request.form.get('category', 'document')
    return respond(StorageService.upload(_actor(), file.read(), file.filename, category), 201)
