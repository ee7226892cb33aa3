from datetime import datetime, timezone
from types import SimpleNamespace

from flask_login import UserMixin
from sqlalchemy import event
from werkzeug.security import generate_password_hash, check_password_hash
from eventflow.extensions import db


def utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(20), nullable=False)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'email': self.email, 'role': self.role}


class Program(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(db.String(20), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Workflow
    current_stage = db.Column(db.Integer, nullable=False, default=1)
    locked = db.Column(db.Boolean, nullable=False, default=False)

    # Ownership
    sales_poc_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    ops_spoc_id = db.Column(db.Integer, db.ForeignKey('user.id'))

    # Approvals
    finance_approval_required = db.Column(db.Boolean, nullable=False, default=True)
    finance_approval_received = db.Column(db.Boolean, nullable=False, default=False)
    handover_accepted_by_ops = db.Column(db.Boolean, nullable=False, default=False)

    # Rejection
    rejection_status = db.Column(db.String(20))
    finance_rejection_reason = db.Column(db.Text)
    ops_rejection_reason = db.Column(db.Text)
    rejected_by = db.Column(db.Integer, db.ForeignKey('user.id'))
    rejected_at = db.Column(db.DateTime)
    resubmission_count = db.Column(db.Integer, nullable=False, default=0)
    last_resubmitted_at = db.Column(db.DateTime)

    # --- STAGE 1: INTAKE ---
    program_name = db.Column(db.String(200))
    program_type = db.Column(db.String(50))
    program_dates = db.Column(db.String(200))
    program_timings = db.Column(db.String(100))
    location = db.Column(db.String(200))
    min_pax = db.Column(db.Integer)
    max_pax = db.Column(db.Integer)
    training_days = db.Column(db.Integer)

    company_name = db.Column(db.String(200))
    company_address = db.Column(db.Text)
    client_poc_name = db.Column(db.String(100))
    client_poc_phone = db.Column(db.String(15))
    client_poc_email = db.Column(db.String(120))

    previous_engagement = db.Column(db.Boolean, default=False)
    previous_engagement_notes = db.Column(db.Text)
    activity_type = db.Column(db.String(50))
    activities_committed = db.Column(db.Text)
    objectives = db.Column(db.Text)
    delivery_budget = db.Column(db.Float)
    billing_details = db.Column(db.Text)
    photo_video_commitment = db.Column(db.Boolean, default=False)

    venue_poc = db.Column(db.String(200))
    special_venue_req = db.Column(db.Text)
    event_vendor_details = db.Column(db.Text)

    agenda_document = db.Column(db.String(500))
    objective_documents = db.Column(db.Text)

    # --- STAGE 2: FEASIBILITY ---
    facilitators_blocked = db.Column(db.Text)
    helper_staff_blocked = db.Column(db.Text)
    transport_blocked = db.Column(db.Text)
    logistics_list = db.Column(db.Text)
    logistics_list_document = db.Column(db.String(500))
    logistics_list_locked = db.Column(db.Boolean, nullable=False, default=False)
    travel_plan_document = db.Column(db.String(500))
    agenda_document_stage2 = db.Column(db.String(500))
    agenda_walkthrough_done = db.Column(db.Boolean, default=False)
    all_resources_blocked = db.Column(db.Boolean, nullable=False, default=False)
    prep_complete = db.Column(db.Boolean, nullable=False, default=False)

    # --- STAGE 3: DELIVERY ---
    venue_reached = db.Column(db.Boolean, default=False)
    facilitators_reached = db.Column(db.Boolean, default=False)
    program_completed = db.Column(db.Boolean, nullable=False, default=False)
    delivery_notes = db.Column(db.Text)
    initial_expense_sheet = db.Column(db.String(500))
    trip_expense_sheet = db.Column(db.String(500))
    packing_check_done = db.Column(db.Boolean, nullable=False, default=False)
    actual_participant_count = db.Column(db.Integer)
    medical_issues = db.Column(db.Boolean, default=False)
    medical_issue_details = db.Column(db.Text)
    facilitator_remarks = db.Column(db.Text)
    bd_lead_gen_done = db.Column(db.Boolean, default=False)
    activities_executed = db.Column(db.Text)

    # --- STAGE 4: CLOSURE ---
    nps_score = db.Column(db.Integer)
    client_feedback = db.Column(db.Text)
    final_invoice_submitted = db.Column(db.Boolean, default=False)
    vendor_payments_clear = db.Column(db.Boolean, default=False)
    google_review_link = db.Column(db.String(500))
    video_testimonial_file = db.Column(db.String(500))
    ops_data_manager_link = db.Column(db.String(500))
    zfd_rating = db.Column(db.Integer)
    zfd_comments = db.Column(db.Text)
    expenses_bills_submitted = db.Column(db.Boolean, nullable=False, default=False)
    ops_data_manager_updated = db.Column(db.Boolean, nullable=False, default=False)

    # --- STAGE 5: ARCHIVED ---
    closed_at = db.Column(db.DateTime)
    closed_by = db.Column(db.Integer, db.ForeignKey('user.id'))
    final_notes = db.Column(db.Text)

    sales_owner = db.relationship('User', foreign_keys=[sales_poc_id])
    ops_owner = db.relationship('User', foreign_keys=[ops_spoc_id])
    transitions = db.relationship('StageTransition', back_populates='program',
                                  order_by='StageTransition.id', lazy='dynamic')

    def snapshot(self, **overrides):
        """A detached copy of the column values, optionally with some replaced."""
        values = {c.name: getattr(self, c.name) for c in self.__table__.columns}
        values.update(overrides)
        return SimpleNamespace(**values)

    def to_dict(self):
        data = {}
        for c in self.__table__.columns:
            value = getattr(self, c.name)
            data[c.name] = value.isoformat() if isinstance(value, datetime) else value
        return data


class StageTransition(db.Model):
    """Audit entry for one stage change. Rows are only ever inserted."""
    id = db.Column(db.Integer, primary_key=True)
    program_card_id = db.Column(db.Integer, db.ForeignKey('program.id'), nullable=False, index=True)
    from_stage = db.Column(db.Integer, nullable=False)
    to_stage = db.Column(db.Integer, nullable=False)
    transitioned_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    transitioned_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    approval_notes = db.Column(db.Text)

    program = db.relationship('Program', back_populates='transitions')

    def to_dict(self):
        return {
            'id': self.id,
            'program_card_id': self.program_card_id,
            'from_stage': self.from_stage,
            'to_stage': self.to_stage,
            'transitioned_by': self.transitioned_by,
            'transitioned_at': self.transitioned_at.isoformat() if self.transitioned_at else None,
            'approval_notes': self.approval_notes,
        }


class ImmutableRecordError(Exception):
    pass


@event.listens_for(StageTransition, 'before_update')
def _refuse_transition_update(mapper, connection, target):
    raise ImmutableRecordError(f"StageTransition {target.id} cannot be modified")


@event.listens_for(StageTransition, 'before_delete')
def _refuse_transition_delete(mapper, connection, target):
    raise ImmutableRecordError(f"StageTransition {target.id} cannot be deleted")
