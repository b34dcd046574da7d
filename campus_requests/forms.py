from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileAllowed
from wtforms import StringField, PasswordField, SelectField, TextAreaField, DateField, IntegerField, BooleanField
from wtforms.validators import DataRequired, Email, Length, Optional, Regexp, ValidationError as FieldError
from campus_requests.constants import Role
from campus_requests.exceptions import ValidationError

# Old NIC format 123456789V, new format 200012345678
NIC_PATTERN = r'^([0-9]{9}[VX]|[0-9]{12})$'
ATTACHMENT_TYPES = ['pdf', 'png', 'jpg', 'jpeg']

_upper = lambda x: x.strip().upper() if isinstance(x, str) else x
_strip = lambda x: x.strip() if isinstance(x, str) else x


def validate_form(form_class, **kwargs):
    """Builds a form from the current request body and raises on invalid input."""
    form = form_class(**kwargs)
    if not form.validate():
        raise ValidationError("Invalid input", details=form.errors)
    return form


def submitted_fields(form):
    """Data of the fields actually present in the body, for partial updates."""
    return {name: field.data for name, field in form._fields.items() if field.raw_data and field.data != ''}

# --- AUTH & USER FORMS ---

class LoginForm(FlaskForm):
    nic = StringField('NIC', validators=[DataRequired()], filters=[_upper])
    password = PasswordField('Password', validators=[DataRequired()])

class ChangePasswordForm(FlaskForm):
    current_password = PasswordField('Current Password', validators=[DataRequired()])
    new_password = PasswordField('New Password', validators=[DataRequired(), Length(min=8)])

class RegistrationForm(FlaskForm):
    nic = StringField('NIC', validators=[DataRequired(), Regexp(NIC_PATTERN, message='Please enter a valid NIC number')],
                      filters=[_upper])
    name = StringField('Name', validators=[DataRequired(), Length(min=2, max=100)], filters=[_strip])
    email = StringField('Email', validators=[Optional(), Email()], filters=[_strip])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=8)])
    # Admin accounts are never self-registered
    role = SelectField('Role', choices=[r for r in Role.ALL if r != Role.ADMIN], validators=[DataRequired()])
    department = StringField('Department', validators=[Optional(), Length(max=100)])
    index_number = StringField('Index Number', validators=[Optional(), Regexp(r'^[A-Za-z0-9]{6,10}$')],
                               filters=[_upper])
    mobile = StringField('Mobile', validators=[Optional(), Length(max=20)])

class ProfileForm(FlaskForm):
    # Role and active flag stay admin-only
    name = StringField('Name', validators=[Optional(), Length(min=2, max=100)], filters=[_strip])
    email = StringField('Email', validators=[Optional(), Email()], filters=[_strip])
    department = StringField('Department', validators=[Optional(), Length(max=100)])
    mobile = StringField('Mobile', validators=[Optional(), Length(max=20)])

class UserUpdateForm(FlaskForm):
    name = StringField('Name', validators=[Optional(), Length(min=2, max=100)], filters=[_strip])
    email = StringField('Email', validators=[Optional(), Email()], filters=[_strip])
    role = SelectField('Role', choices=[('', '')] + [(r, r) for r in Role.ALL], validators=[Optional()])
    department = StringField('Department', validators=[Optional(), Length(max=100)])
    mobile = StringField('Mobile', validators=[Optional(), Length(max=20)])
    is_active = BooleanField('Active', default=None)

# --- REQUEST FORMS ---

class _BaseRequestForm(FlaskForm):
    reason = StringField('Reason', validators=[DataRequired(), Length(max=200)], filters=[_strip])
    reason_details = TextAreaField('Details', validators=[Optional(), Length(max=2000)])

class ExcuseRequestForm(_BaseRequestForm):
    reg_no = StringField('Registration Number', validators=[DataRequired()], filters=[_upper])
    mobile = StringField('Mobile', validators=[Optional(), Length(max=20)])
    email = StringField('Email', validators=[Optional(), Email()])
    address = StringField('Address', validators=[Optional(), Length(max=200)])
    level_of_study = StringField('Level of Study', validators=[Optional()])
    subject_combo = StringField('Subject Combination', validators=[Optional()])
    lecture_absents = StringField('Lectures Missed', validators=[Optional()])
    medical_certificate = FileField('Medical Certificate', validators=[FileAllowed(ATTACHMENT_TYPES, 'Images/PDF only!')])

class LeaveRequestForm(_BaseRequestForm):
    start_date = DateField('Start Date', validators=[DataRequired()])
    end_date = DateField('End Date', validators=[DataRequired()])
    contact_during_leave = StringField('Contact During Leave', validators=[Optional(), Length(max=100)])
    remarks = TextAreaField('Remarks', validators=[Optional(), Length(max=1000)])
    supporting_document = FileField('Supporting Document', validators=[FileAllowed(ATTACHMENT_TYPES, 'Images/PDF only!')])

    def validate_end_date(self, field):
        if self.start_date.data and field.data and field.data < self.start_date.data:
            raise FieldError('End date cannot be before the start date')

class LetterRequestForm(_BaseRequestForm):
    letter_type = StringField('Letter Type', validators=[DataRequired(), Length(max=100)])
    date = DateField('Date', validators=[Optional()])
    details = TextAreaField('Details', validators=[Optional(), Length(max=2000)])
    supporting_document = FileField('Supporting Document', validators=[FileAllowed(ATTACHMENT_TYPES, 'Images/PDF only!')])

class DecisionForm(FlaskForm):
    comment = TextAreaField('Comment', validators=[Optional(), Length(max=1000)])
    # Index the client rendered; a mismatch means someone else acted first
    current_stage_index = IntegerField('Stage', validators=[Optional()])
