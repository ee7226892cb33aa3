from eventflow.errors import NotFound
from eventflow.extensions import db
from eventflow.models import Program, StageTransition, User


class ProgramRepository:
    """
    Persistence for programs and their transition log.

    Nothing here commits: callers group a program update and its transition
    append into one transaction and commit once.
    """

    @staticmethod
    def get_program(program_id):
        program = db.session.get(Program, program_id)
        if program is None:
            raise NotFound("Program not found")
        return program

    @staticmethod
    def add_program(program):
        db.session.add(program)
        db.session.flush()
        return program

    @staticmethod
    def update_program(program, fields):
        for key, value in fields.items():
            setattr(program, key, value)
        return program

    @staticmethod
    def update_where(program_id, fields, *criteria):
        """
        Applies ``fields`` only while the row still matches ``criteria``.

        Returns True when exactly one row changed. A concurrent request that
        committed first leaves this one with nothing to update.
        """
        changed = (
            Program.query
            .filter(Program.id == program_id, *criteria)
            .update(fields, synchronize_session='fetch')
        )
        return changed == 1

    @staticmethod
    def update_if_stage(program_id, expected_stage, fields):
        return ProgramRepository.update_where(program_id, fields, Program.current_stage == expected_stage)

    @staticmethod
    def append_transition(program_id, from_stage, to_stage, actor_id, notes=None):
        entry = StageTransition(
            program_card_id=program_id,
            from_stage=from_stage,
            to_stage=to_stage,
            transitioned_by=actor_id,
            approval_notes=notes,
        )
        db.session.add(entry)
        return entry

    @staticmethod
    def get_transitions(program_id):
        return (
            StageTransition.query
            .filter_by(program_card_id=program_id)
            .order_by(StageTransition.id.asc())
            .all()
        )

    @staticmethod
    def list_programs(stage=None, sales_poc_id=None, ops_spoc_id=None, rejection_status=None, locked=None):
        query = Program.query
        if stage is not None:
            query = query.filter(Program.current_stage == stage)
        if sales_poc_id is not None:
            query = query.filter(Program.sales_poc_id == sales_poc_id)
        if ops_spoc_id is not None:
            query = query.filter(Program.ops_spoc_id == ops_spoc_id)
        if rejection_status is not None:
            query = query.filter(Program.rejection_status == rejection_status)
        if locked is not None:
            query = query.filter(Program.locked == locked)
        return query.order_by(Program.created_at.desc(), Program.id.desc()).all()

    @staticmethod
    def get_users_by_role(roles):
        return User.query.filter(User.role.in_(list(roles))).order_by(User.id).all()

    @staticmethod
    def get_user(user_id):
        if user_id is None:
            return None
        return db.session.get(User, user_id)
