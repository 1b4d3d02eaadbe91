# shop_core/views/__init__.py

from flask import flash

from shop_core.records import ABSENT, optional


def flash_warnings(result):
    for message in result.warnings:
        flash(message, "warning")


def person_form_data(record):
    """Form data for a client record (ClientForm / ProfileForm)."""
    document = record.get('identity_document') or {}
    return {
        'first_name': record.get('first_name'),
        'last_name': record.get('last_name'),
        'email': record.get('email'),
        'phone1': record.get('phone1'),
        'phone2': record.get('phone2'),
        'document_type': document.get('type', ''),
        'document_number': document.get('number'),
        'fiscal_address': record.get('fiscal_address') or {},
        'postal_address': record.get('postal_address') or {},
        'role': record.get('role', 'client'),
        'is_active': bool(record.get('is_active')),
    }


def person_payload(form):
    """Contact fields shared by the client and profile forms."""
    return {
        'first_name': form.first_name.data,
        'last_name': form.last_name.data,
        'phone1': optional(form.phone1.data),
        'phone2': optional(form.phone2.data),
        'identity_document': form.identity_document() or ABSENT,
        'fiscal_address': form.fiscal_address.to_value() or ABSENT,
        'postal_address': form.postal_address.to_value() or ABSENT,
    }


def register_blueprints(app):
    from .auth import auth_bp
    from .client import client_bp
    from .manager import manager_bp
    from .marketing import marketing_bp

    app.register_blueprint(marketing_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(client_bp, url_prefix='/client')
    app.register_blueprint(manager_bp, url_prefix='/manager')
