from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import StringField, TextAreaField, BooleanField, IntegerField, FloatField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from eventflow.errors import InputInvalid


# --- Custom Validator for Conditional Logic ---
class RequiredIf(DataRequired):
    """Validator which makes a field required if another field is checked."""
    def __init__(self, other_field_name, *args, **kwargs):
        self.other_field_name = other_field_name
        super().__init__(*args, **kwargs)

    def __call__(self, form, field):
        other_field = form._fields.get(self.other_field_name)
        if other_field is None:
            raise Exception(f'no field named "{self.other_field_name}" in form')
        if other_field.data:
            super().__call__(form, field)
        else:
            Optional()(form, field)


class PayloadForm(FlaskForm):
    """Base for stage payloads. Fed from dicts, so no CSRF token."""
    class Meta:
        csrf = False


# --- STAGE 1: INTAKE ---
class Stage1Form(PayloadForm):
    program_name = StringField('Program Name', validators=[Optional(), Length(max=200)])
    program_type = StringField('Program Type', validators=[Optional(), Length(max=50)])
    program_dates = StringField('Program Dates', validators=[Optional(), Length(max=200)])
    program_timings = StringField('Program Timings', validators=[Optional(), Length(max=100)])
    location = StringField('Location', validators=[Optional(), Length(max=200)])
    min_pax = IntegerField('Min Pax', validators=[Optional(), NumberRange(min=1)])
    max_pax = IntegerField('Max Pax', validators=[Optional(), NumberRange(min=1)])
    training_days = IntegerField('Training Days', validators=[Optional(), NumberRange(min=0)])

    company_name = StringField('Company Name', validators=[Optional(), Length(max=200)])
    company_address = TextAreaField('Company Address')
    client_poc_name = StringField('Client POC Name', validators=[Optional(), Length(max=100)])
    client_poc_phone = StringField('Client POC Phone', validators=[Optional(), Length(max=15)])
    client_poc_email = StringField('Client POC Email', validators=[Optional(), Length(max=120)])

    previous_engagement = BooleanField('Previous Engagement')
    previous_engagement_notes = TextAreaField('Previous Engagement Notes')
    activity_type = StringField('Activity Type', validators=[Optional(), Length(max=50)])
    activities_committed = TextAreaField('Activities Committed')
    objectives = TextAreaField('Objectives')
    delivery_budget = FloatField('Delivery Budget', validators=[Optional()])
    billing_details = TextAreaField('Billing Details')
    photo_video_commitment = BooleanField('Photo/Video Commitment')

    venue_poc = StringField('Venue POC', validators=[Optional(), Length(max=200)])
    special_venue_req = TextAreaField('Special Venue Requirements')
    event_vendor_details = TextAreaField('Event Vendor Details')

    agenda_document = StringField('Agenda Document', validators=[Optional(), Length(max=500)])
    objective_documents = TextAreaField('Objective Documents')


# --- STAGE 2: FEASIBILITY ---
class Stage2Form(PayloadForm):
    facilitators_blocked = TextAreaField('Facilitators Blocked')
    helper_staff_blocked = TextAreaField('Helper Staff Blocked')
    transport_blocked = TextAreaField('Transport Blocked')
    logistics_list = TextAreaField('Logistics List')
    logistics_list_document = StringField('Logistics List Document', validators=[Optional(), Length(max=500)])
    logistics_list_locked = BooleanField('Logistics List Locked')
    travel_plan_document = StringField('Travel Plan Document', validators=[Optional(), Length(max=500)])
    agenda_document_stage2 = StringField('Agenda Document', validators=[Optional(), Length(max=500)])
    agenda_walkthrough_done = BooleanField('Agenda Walkthrough Done')
    all_resources_blocked = BooleanField('All Resources Blocked')
    prep_complete = BooleanField('Prep Complete')


# --- STAGE 3: DELIVERY ---
class Stage3Form(PayloadForm):
    venue_reached = BooleanField('Venue Reached')
    facilitators_reached = BooleanField('Facilitators Reached')
    program_completed = BooleanField('Program Completed')
    delivery_notes = TextAreaField('Delivery Notes')
    initial_expense_sheet = StringField('Initial Expense Sheet', validators=[Optional(), Length(max=500)])
    trip_expense_sheet = StringField('Trip Expense Sheet', validators=[Optional(), Length(max=500)])
    packing_check_done = BooleanField('Packing Check Done')
    actual_participant_count = IntegerField('Actual Participants', validators=[Optional(), NumberRange(min=0)])
    medical_issues = BooleanField('Medical Issues')
    medical_issue_details = TextAreaField('Medical Issue Details', validators=[
        RequiredIf('medical_issues', message="Describe the medical issues")
    ])
    facilitator_remarks = TextAreaField('Facilitator Remarks')
    bd_lead_gen_done = BooleanField('BD Lead Gen Done')
    activities_executed = TextAreaField('Activities Executed')


# --- STAGE 4: CLOSURE ---
class Stage4Form(PayloadForm):
    nps_score = IntegerField('NPS Score', validators=[Optional(), NumberRange(min=0, max=10)])
    client_feedback = TextAreaField('Client Feedback')
    final_invoice_submitted = BooleanField('Final Invoice Submitted')
    vendor_payments_clear = BooleanField('Vendor Payments Clear')
    google_review_link = StringField('Google Review Link', validators=[Optional(), Length(max=500)])
    video_testimonial_file = StringField('Video Testimonial', validators=[Optional(), Length(max=500)])
    ops_data_manager_link = StringField('Ops Data Manager Link', validators=[Optional(), Length(max=500)])
    zfd_rating = IntegerField('ZFD Rating', validators=[
        Optional(), NumberRange(min=1, max=5, message="ZFD rating must be between 1 and 5")
    ])
    zfd_comments = TextAreaField('ZFD Comments')
    expenses_bills_submitted = BooleanField('Expenses & Bills Submitted')
    ops_data_manager_updated = BooleanField('Ops Data Manager Updated')


STAGE_FORMS = {1: Stage1Form, 2: Stage2Form, 3: Stage3Form, 4: Stage4Form}


SCALARS = (str, int, float, bool)


def _form_value(key, value):
    if isinstance(value, SCALARS):
        return value
    if isinstance(value, (list, tuple)) and all(isinstance(v, SCALARS) for v in value):
        return ', '.join(str(v) for v in value)
    raise InputInvalid("Invalid input", details=[f"{key}: must be a single value or a list of values"])


def parse_payload(form_class, payload):
    """
    Validates a payload dict against ``form_class``.

    Returns only the fields present in the payload, coerced to their types.
    A null clears a field, except flags, which become False. Unknown keys are
    ignored. Raises InputInvalid with every field error.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InputInvalid("Invalid input", details=["Payload must be an object"])

    formdata = MultiDict()
    for key, value in payload.items():
        if value is None:
            continue
        formdata.add(key, _form_value(key, value))

    form = form_class(formdata=formdata)
    if not form.validate():
        errors = [f"{form[name].label.text}: {msg}"
                  for name, messages in form.errors.items() for msg in messages]
        raise InputInvalid("Invalid input", details=errors)

    return {
        name: (None if payload[name] is None and not isinstance(field, BooleanField) else field.data)
        for name, field in form._fields.items()
        if name in payload
    }
