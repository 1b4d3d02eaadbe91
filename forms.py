# forms.py

import re
from datetime import date

from flask_babel import lazy_gettext as _
from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField
from wtforms import (
    BooleanField, DateField, DecimalField, FieldList, Form, FormField,
    IntegerField, PasswordField, SelectField, StringField, SubmitField,
    TextAreaField, ValidationError,
)
from wtforms.validators import (
    DataRequired, Email, EqualTo, InputRequired, Length, NumberRange,
    Optional, Regexp, StopValidation,
)

from shop_core.models import (
    CLIENT_ROLES, IDENTITY_DOCUMENT_TYPES, INVOICE_STATUSES, MAINTENANCE_STATUSES,
)

IMAGE_EXTENSIONS = ['png', 'jpg', 'jpeg', 'gif', 'webp']

DOCUMENT_PATTERNS = {
    'DNI': re.compile(r'^\d{8}[A-HJ-NP-TV-Z]$'),
    'NIE': re.compile(r'^[XYZ]\d{7}[A-HJ-NP-TV-Z]$'),
    'NIF': re.compile(r'^(\d{8}[A-HJ-NP-TV-Z]|[A-HJ-NP-SUVW]\d{7}[0-9A-J])$'),
    'Passport': re.compile(r'^[A-Z0-9]{5,}$'),
}


def upper_strip(value):
    return value.strip().upper() if isinstance(value, str) else value


def strip(value):
    return value.strip() if isinstance(value, str) else value


def finite_number(form, field):
    if field.data is not None and not field.data.is_finite():
        raise StopValidation(_("Enter a valid number."))


def document_number_is_valid(doc_type, number):
    pattern = DOCUMENT_PATTERNS.get(doc_type)
    if pattern is None:
        return bool(number)
    return bool(pattern.match((number or '').strip().upper()))


# -------------------
# Authentication Forms
# -------------------
class LoginForm(FlaskForm):
    email = StringField(_("Email"), validators=[DataRequired(), Email()], filters=[strip])
    password = PasswordField(_("Password"), validators=[DataRequired()])
    submit = SubmitField(_("Login"))


class RegisterForm(FlaskForm):
    first_name = StringField(_("First Name"), validators=[DataRequired(), Length(min=2, max=100)], filters=[strip])
    last_name = StringField(_("Last Name"), validators=[DataRequired(), Length(min=2, max=100)], filters=[strip])
    email = StringField(_("Email"), validators=[DataRequired(), Email()], filters=[strip])
    password = PasswordField(_("Password"), validators=[DataRequired(), Length(min=6)])
    confirm = PasswordField(_("Confirm Password"), validators=[EqualTo('password', message=_("Passwords must match."))])
    submit = SubmitField(_("Create Account"))


class PasswordResetRequestForm(FlaskForm):
    email = StringField(_("Email"), validators=[DataRequired(), Email()], filters=[strip])
    submit = SubmitField(_("Send Reset Link"))


class PasswordResetForm(FlaskForm):
    password = PasswordField(_("New Password"), validators=[DataRequired(), Length(min=6)])
    confirm = PasswordField(_("Confirm Password"), validators=[EqualTo('password', message=_("Passwords must match."))])
    submit = SubmitField(_("Reset Password"))


# -------------------
# Client Forms
# -------------------
class AddressForm(Form):
    street = StringField(_("Street"), validators=[Optional(), Length(max=200)], filters=[strip])
    city = StringField(_("City"), validators=[Optional(), Length(max=100)], filters=[strip])
    postal_code = StringField(_("Postal Code"), validators=[Optional(), Length(max=20)], filters=[strip])
    country = StringField(_("Country"), validators=[Optional(), Length(max=100)], filters=[strip])

    FIELDS = ('street', 'city', 'postal_code', 'country')

    def is_blank(self):
        return not any(getattr(self, name).data for name in self.FIELDS)

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators):
            return False
        if self.is_blank():
            return True
        ok = True
        for name in self.FIELDS:
            field = getattr(self, name)
            if not field.data:
                field.errors = list(field.errors) + [_("Required when an address is given.")]
                ok = False
        return ok

    def to_value(self):
        if self.is_blank():
            return None
        return {name: getattr(self, name).data for name in self.FIELDS}


class PersonFieldsMixin:
    """Contact and identity fields shared by the client and profile forms."""

    def validate_document_number(self, field):
        doc_type = self.document_type.data
        if not doc_type:
            return
        if not field.data:
            raise ValidationError(_("Document number is required for the selected type."))
        if not document_number_is_valid(doc_type, field.data):
            raise ValidationError(_("Invalid %(type)s number.", type=doc_type))

    def identity_document(self):
        if not self.document_type.data:
            return None
        return {'type': self.document_type.data, 'number': self.document_number.data}


DOCUMENT_TYPE_CHOICES = [('', _('None'))] + [(t, t) for t in IDENTITY_DOCUMENT_TYPES]


class ClientForm(PersonFieldsMixin, FlaskForm):
    first_name = StringField(_("First Name"), validators=[DataRequired(), Length(min=2, max=100)], filters=[strip])
    last_name = StringField(_("Last Name"), validators=[DataRequired(), Length(min=2, max=100)], filters=[strip])
    phone1 = StringField(_("Phone"), validators=[Optional(), Length(max=30)], filters=[strip])
    phone2 = StringField(_("Secondary Phone"), validators=[Optional(), Length(max=30)], filters=[strip])
    document_type = SelectField(_("Identity Document"), choices=DOCUMENT_TYPE_CHOICES, default='')
    document_number = StringField(_("Document Number"), validators=[Optional(), Length(max=30)], filters=[upper_strip])
    fiscal_address = FormField(AddressForm, label=_("Fiscal Address"))
    postal_address = FormField(AddressForm, label=_("Postal Address"))
    role = SelectField(_("Role"), choices=[(r, r.title()) for r in CLIENT_ROLES], default='client')
    is_active = BooleanField(_("Active"), default=True)
    submit = SubmitField(_("Save Client"))


class ClientAddForm(ClientForm):
    """Email is set once, when the account is created."""
    email = StringField(_("Email"), validators=[DataRequired(), Email()], filters=[strip])
    password = PasswordField(_("Password"), validators=[DataRequired(), Length(min=6)])


class ProfileForm(PersonFieldsMixin, FlaskForm):
    first_name = StringField(_("First Name"), validators=[DataRequired(), Length(min=2, max=100)], filters=[strip])
    last_name = StringField(_("Last Name"), validators=[DataRequired(), Length(min=2, max=100)], filters=[strip])
    phone1 = StringField(_("Phone"), validators=[Optional(), Length(max=30)], filters=[strip])
    phone2 = StringField(_("Secondary Phone"), validators=[Optional(), Length(max=30)], filters=[strip])
    document_type = SelectField(_("Identity Document"), choices=DOCUMENT_TYPE_CHOICES, default='')
    document_number = StringField(_("Document Number"), validators=[Optional(), Length(max=30)], filters=[upper_strip])
    fiscal_address = FormField(AddressForm, label=_("Fiscal Address"))
    postal_address = FormField(AddressForm, label=_("Postal Address"))
    profile_image = FileField(_("Profile Image"), validators=[FileAllowed(IMAGE_EXTENSIONS, _("Images only."))])
    remove_image = BooleanField(_("Remove current image"))
    submit = SubmitField(_("Save Profile"))


# -------------------
# Vehicle Forms
# -------------------
class VehicleForm(FlaskForm):
    make = StringField(_("Make"), validators=[DataRequired(), Length(min=2, max=100)], filters=[strip])
    model = StringField(_("Model"), validators=[DataRequired(), Length(min=1, max=100)], filters=[strip])
    year = IntegerField(_("Year"), validators=[InputRequired(), NumberRange(min=1900, max=date.today().year + 2)])
    license_plate = StringField(
        _("License Plate"),
        validators=[DataRequired(), Length(min=3, max=20),
                    Regexp(r'^[A-Z0-9-]+$', message=_("Only letters, digits and hyphens."))],
        filters=[upper_strip],
    )
    vin = StringField(
        _("VIN"),
        validators=[DataRequired(),
                    Regexp(r'^[A-HJ-NPR-Z0-9]{17}$', message=_("A VIN has 17 characters and no I, O or Q."))],
        filters=[upper_strip],
    )
    owner_id = SelectField(_("Owner"), choices=[], validators=[DataRequired()])
    engine_code = StringField(_("Engine Code"), validators=[Optional(), Length(max=50)], filters=[strip])
    current_mileage = IntegerField(_("Current Mileage"), validators=[Optional(), NumberRange(min=0)])
    last_service_date = DateField(_("Last Service Date"), validators=[Optional()])
    image = FileField(_("Vehicle Image"), validators=[FileAllowed(IMAGE_EXTENSIONS, _("Images only."))])
    remove_image = BooleanField(_("Remove current image"))
    submit = SubmitField(_("Save Vehicle"))


# -------------------
# Invoice Forms
# -------------------
class InvoiceServiceItemForm(Form):
    service_catalog_id = SelectField(_("Catalog Service"), choices=[], validate_choice=False)
    description = StringField(_("Description"), validators=[DataRequired()], filters=[strip])
    quantity = DecimalField(_("Quantity"), places=2, default=1,
                            validators=[InputRequired(), finite_number, NumberRange(min=0.01)])
    unit_price = DecimalField(_("Unit Price"), places=2,
                              validators=[InputRequired(), finite_number, NumberRange(min=0)])


class InvoiceForm(FlaskForm):
    invoice_number = StringField(_("Invoice Number"), validators=[DataRequired(), Length(max=50)], filters=[strip])
    date = DateField(_("Date"), validators=[DataRequired()], default=date.today)
    status = SelectField(_("Status"), choices=[(s, s.title()) for s in INVOICE_STATUSES], default='pending')
    services = FieldList(FormField(InvoiceServiceItemForm), min_entries=1)
    notes = TextAreaField(_("Notes"), validators=[Optional(), Length(max=2000)])
    pdf_file = FileField(_("Invoice PDF"), validators=[FileAllowed(['pdf'], _("PDF files only."))])
    submit = SubmitField(_("Save Invoice"))

    def set_catalog_choices(self, catalog):
        choices = [('', _('Custom service'))] + [(item['id'], item['name']) for item in catalog]
        for entry in self.services:
            entry.form.service_catalog_id.choices = choices

    def service_lines(self):
        return [
            {
                'service_catalog_id': entry.form.service_catalog_id.data or None,
                'description': entry.form.description.data,
                'quantity': entry.form.quantity.data,
                'unit_price': entry.form.unit_price.data,
            }
            for entry in self.services
        ]


# -------------------
# Maintenance & Catalog Forms
# -------------------
class MaintenanceItemForm(FlaskForm):
    description = StringField(_("Description"), validators=[DataRequired(), Length(min=3, max=255)], filters=[strip])
    service_tasks = FieldList(StringField(_("Task"), filters=[strip]), min_entries=1)
    due_date = DateField(_("Due Date"), validators=[Optional()])
    due_mileage = IntegerField(_("Due Mileage"), validators=[Optional(), NumberRange(min=0)])
    status = SelectField(_("Status"), choices=[(s, s.title()) for s in MAINTENANCE_STATUSES], default='upcoming')
    notes = TextAreaField(_("Notes"), validators=[Optional(), Length(max=2000)])
    submit = SubmitField(_("Save Maintenance Item"))

    def validate(self, extra_validators=None):
        ok = super().validate(extra_validators)
        if not self.tasks():
            self.form_errors.append(_("At least one task is required."))
            return False
        return ok

    def tasks(self):
        return [entry.data for entry in self.service_tasks if entry.data]


class ServiceCatalogItemForm(FlaskForm):
    name = StringField(_("Name"), validators=[DataRequired(), Length(min=3, max=120)], filters=[strip])
    description = TextAreaField(_("Description"), validators=[Optional(), Length(max=1000)])
    default_unit_price = DecimalField(_("Default Unit Price"), places=2, validators=[Optional(), finite_number, NumberRange(min=0)])
    category = StringField(_("Category"), validators=[Optional(), Length(max=100)], filters=[strip])
    is_active = BooleanField(_("Active"), default=True)
    submit = SubmitField(_("Save Service"))


# -------------------
# CRUD Forms
# -------------------
class ConfirmForm(FlaskForm):
    submit = SubmitField(_("Confirm"))
