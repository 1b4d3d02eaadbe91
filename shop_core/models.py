# shop_core/models.py

import uuid
from datetime import datetime, timezone

from shop_core.extensions import db


def new_id():
    return uuid.uuid4().hex


def utcnow():
    return datetime.now(timezone.utc)


class RecordMixin:
    """Columns shared by every datastore collection."""
    id = db.Column(db.String(64), primary_key=True, default=new_id)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @classmethod
    def field_names(cls):
        return [column.name for column in cls.__table__.columns]

    def to_dict(self):
        return {name: getattr(self, name) for name in self.field_names()}


class Client(RecordMixin, db.Model):
    __tablename__ = 'clients'

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)
    phone1 = db.Column(db.String(30))
    phone2 = db.Column(db.String(30))
    identity_document = db.Column(db.JSON)  # {"type": "DNI", "number": "12345678Z"}
    fiscal_address = db.Column(db.JSON)
    postal_address = db.Column(db.JSON)
    role = db.Column(db.String(20), nullable=False, default='client')
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    profile_image_url = db.Column(db.String(500))
    profile_image_path = db.Column(db.String(500))

    def __repr__(self):
        return f"<Client {self.email} ({self.role})>"


class Vehicle(RecordMixin, db.Model):
    __tablename__ = 'vehicles'

    make = db.Column(db.String(100), nullable=False)
    model = db.Column(db.String(100), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    license_plate = db.Column(db.String(20), nullable=False, index=True)
    vin = db.Column(db.String(17), nullable=False)
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    engine_code = db.Column(db.String(50))
    current_mileage = db.Column(db.Integer)
    last_service_date = db.Column(db.Date)
    image_url = db.Column(db.String(500))
    image_path = db.Column(db.String(500))

    def __repr__(self):
        return f"<Vehicle {self.license_plate}>"


class Invoice(RecordMixin, db.Model):
    __tablename__ = 'invoices'

    vehicle_id = db.Column(db.String(64), nullable=False, index=True)
    client_id = db.Column(db.String(64), nullable=False, index=True)
    invoice_number = db.Column(db.String(50), nullable=False)
    date = db.Column(db.Date, nullable=False)
    # [{"service_catalog_id", "description", "quantity", "unit_price", "total"}]
    services = db.Column(db.JSON, nullable=False, default=list)
    subtotal_amount = db.Column(db.Float, default=0.0)
    vat_amount = db.Column(db.Float, default=0.0)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(db.String(20), nullable=False, default='pending')
    notes = db.Column(db.Text)
    pdf_url = db.Column(db.String(500))
    pdf_path = db.Column(db.String(500))

    def __repr__(self):
        return f"<Invoice {self.invoice_number} | {self.status}>"


class MaintenanceItem(RecordMixin, db.Model):
    __tablename__ = 'maintenance_items'

    vehicle_id = db.Column(db.String(64), nullable=False, index=True)
    client_id = db.Column(db.String(64), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    service_tasks = db.Column(db.JSON, nullable=False, default=list)
    due_date = db.Column(db.Date)
    due_mileage = db.Column(db.Integer)
    status = db.Column(db.String(20), nullable=False, default='upcoming')
    notes = db.Column(db.Text)


class ServiceCatalogItem(RecordMixin, db.Model):
    __tablename__ = 'service_catalog'

    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text)
    default_unit_price = db.Column(db.Float)
    category = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, nullable=False, default=True)


class Account(db.Model):
    """Credentials owned by the identity provider, keyed by the subject id."""
    __tablename__ = 'accounts'

    uid = db.Column(db.String(64), primary_key=True, default=new_id)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Account {self.email}>"


# Collection name -> mapped class
COLLECTIONS = {
    'clients': Client,
    'vehicles': Vehicle,
    'invoices': Invoice,
    'maintenanceItems': MaintenanceItem,
    'serviceCatalog': ServiceCatalogItem,
}

CLIENT_ROLES = ('client', 'manager')
INVOICE_STATUSES = ('pending', 'paid', 'overdue')
MAINTENANCE_STATUSES = ('upcoming', 'due', 'completed')
IDENTITY_DOCUMENT_TYPES = ('DNI', 'NIF', 'NIE', 'Passport', 'Other')
