import logging
import uuid
from datetime import datetime

from eventflow.constants import Stage
from eventflow.errors import Conflict, InputInvalid, ok, workflow_operation
from eventflow.extensions import db
from eventflow.forms import STAGE_FORMS, Stage1Form, parse_payload
from eventflow.models import Program
from eventflow.permissions import require_role
from eventflow.services.notification_service import NotificationService
from eventflow.services.program_repository import ProgramRepository
from eventflow.services.transition_service import ensure_unlocked, setting
from eventflow.services.validation import validate_intake_fields

logger = logging.getLogger(__name__)


def generate_program_code():
    return f"PRG-{datetime.now().year}-{uuid.uuid4().hex[:6].upper()}"


def _check_intake(values):
    validation = validate_intake_fields(values, objectives_min_length=setting('OBJECTIVES_MIN_LENGTH'))
    if not validation['is_valid']:
        raise InputInvalid("Invalid program details", validation['errors'])


class ProgramService:

    @staticmethod
    @workflow_operation("Failed to create program")
    def create_program(actor, payload):
        """New Stage 1 program owned by the creating sales user."""
        require_role(actor, 'create_program')
        data = parse_payload(Stage1Form, payload)
        _check_intake(data)

        program = Program(
            program_id=generate_program_code(),
            current_stage=Stage.INTAKE,
            sales_poc_id=actor.id,
            **data,
        )
        ProgramRepository.add_program(program)
        db.session.commit()
        logger.info("Program %s created by user %s", program.program_id, actor.id)

        NotificationService.program_created(program)
        return ok(id=program.id, program_id=program.program_id)

    @staticmethod
    def _update_stage(stage, program_id, actor, payload):
        require_role(actor, f'update_stage{stage}')
        program = ProgramRepository.get_program(program_id)
        ensure_unlocked(program)
        if program.current_stage < stage:
            raise Conflict(f"Program has not reached Stage {stage} ({Stage.LABELS[stage]})")

        data = parse_payload(STAGE_FORMS[stage], payload)
        if stage == Stage.INTAKE:
            _check_intake(vars(program.snapshot(**data)))

        ProgramRepository.update_program(program, data)
        db.session.commit()
        logger.info("Program %s stage %s fields updated by user %s: %s",
                    program.program_id, stage, actor.id, ', '.join(sorted(data)))
        return ok()

    @staticmethod
    @workflow_operation("Failed to update program")
    def update_stage1(program_id, actor, payload):
        return ProgramService._update_stage(Stage.INTAKE, program_id, actor, payload)

    @staticmethod
    @workflow_operation("Update failed")
    def update_stage2(program_id, actor, payload):
        return ProgramService._update_stage(Stage.FEASIBILITY, program_id, actor, payload)

    @staticmethod
    @workflow_operation("Update failed")
    def update_stage3(program_id, actor, payload):
        return ProgramService._update_stage(Stage.DELIVERY, program_id, actor, payload)

    @staticmethod
    @workflow_operation("Update failed")
    def update_stage4(program_id, actor, payload):
        return ProgramService._update_stage(Stage.CLOSURE, program_id, actor, payload)

    # --- READS ---

    @staticmethod
    @workflow_operation("Failed to load program")
    def get_program(program_id):
        program = ProgramRepository.get_program(program_id)
        return ok(program=program.to_dict())

    @staticmethod
    @workflow_operation("Failed to load programs")
    def list_programs(**filters):
        programs = ProgramRepository.list_programs(**filters)
        return ok(count=len(programs), programs=[p.to_dict() for p in programs])

    @staticmethod
    @workflow_operation("Failed to load history")
    def get_transition_history(program_id):
        ProgramRepository.get_program(program_id)
        transitions = ProgramRepository.get_transitions(program_id)
        return ok(transitions=[t.to_dict() for t in transitions])
