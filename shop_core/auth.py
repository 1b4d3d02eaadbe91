# shop_core/auth.py
import enum
import logging
from functools import wraps

from flask import flash, redirect, url_for
from flask_babel import gettext as _
from flask_login import UserMixin, current_user, login_required

from shop_core.datastore import DatastoreError
from shop_core.records import ABSENT

logger = logging.getLogger(__name__)


class AuthState(enum.Enum):
    UNAUTHENTICATED = 'unauthenticated'
    PENDING = 'pending'
    CLIENT = 'client'
    MANAGER = 'manager'


def resolve_state(record):
    """Map a client record (or its absence) to a signed-in state."""
    if not record or not record.get('is_active'):
        return AuthState.PENDING
    if record.get('role') == 'manager':
        return AuthState.MANAGER
    return AuthState.CLIENT


class SessionUser(UserMixin):
    def __init__(self, record):
        self.id = record['id']
        self.record = record
        self.state = resolve_state(record)

    @property
    def role(self):
        return self.record.get('role', 'client')

    @property
    def email(self):
        return self.record.get('email')

    @property
    def full_name(self):
        return f"{self.record.get('first_name', '')} {self.record.get('last_name', '')}".strip()

    @property
    def is_active(self):
        return self.state in (AuthState.CLIENT, AuthState.MANAGER)


def load_session_user(datastore, uid):
    """Flask-Login loader: only active records keep a session alive."""
    try:
        record = datastore.get('clients', uid)
    except DatastoreError:
        logger.exception("Could not reload session user %s", uid)
        return None
    if resolve_state(record) is AuthState.PENDING:
        return None
    return SessionUser(record)


def pending_client_payload(email, first_name='', last_name=''):
    return {
        'first_name': first_name,
        'last_name': last_name,
        'email': email,
        'phone1': ABSENT,
        'phone2': ABSENT,
        'identity_document': ABSENT,
        'fiscal_address': ABSENT,
        'postal_address': ABSENT,
        'role': 'client',
        'is_active': False,
    }


def resolve_client_sign_in(datastore, uid, email):
    """
    State after a successful credential check on the client login.

    A missing record is created as a pending client.
    """
    record = datastore.get('clients', uid)
    if record is None:
        datastore.set('clients', uid, pending_client_payload(email))
        logger.info("Pending client record created for %s", email)
        return AuthState.PENDING, datastore.get('clients', uid)
    return resolve_state(record), record


def resolve_manager_sign_in(datastore, uid):
    record = datastore.get('clients', uid)
    state = resolve_state(record)
    if state is not AuthState.MANAGER:
        return AuthState.UNAUTHENTICATED, record
    return state, record


def dashboard_endpoint(role):
    if role == 'manager':
        return 'manager.dashboard'
    return 'client.dashboard'


def role_required(roles):
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            if current_user.role not in roles:
                flash(_("You don't have permission to access this page."), "error")
                return redirect(url_for(dashboard_endpoint(current_user.role)))
            return f(*args, **kwargs)
        return decorated_function
    return decorator
