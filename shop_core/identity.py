# shop_core/identity.py
"""
Email/password identity provider.

Accounts live in their own table and only this module reads them; the rest of
the app sees the ``uid`` returned by ``register`` and ``authenticate``.
"""

import logging

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from shop_core.models import Account, new_id
from utils.email import send_email

logger = logging.getLogger(__name__)

RESET_SALT = 'password-reset'


class IdentityError(Exception):
    pass


class EmailAlreadyRegistered(IdentityError):
    pass


class InvalidCredentials(IdentityError):
    pass


class InvalidResetToken(IdentityError):
    pass


class IdentityProvider:
    def __init__(self, db, bcrypt, secret_key, reset_max_age=3600):
        self.db = db
        self.bcrypt = bcrypt
        self.serializer = URLSafeTimedSerializer(secret_key, salt=RESET_SALT)
        self.reset_max_age = reset_max_age

    @staticmethod
    def _normalize(email):
        return (email or '').strip().lower()

    def find_account(self, email):
        stmt = select(Account).where(func.lower(Account.email) == self._normalize(email))
        return self.db.session.execute(stmt).scalar()

    def get_account(self, uid):
        return self.db.session.get(Account, uid)

    def register(self, email, password, uid=None):
        """Create an account and return its uid."""
        email = self._normalize(email)
        if self.find_account(email):
            raise EmailAlreadyRegistered(email)

        account = Account(
            uid=uid or new_id(),
            email=email,
            password_hash=self.bcrypt.generate_password_hash(password).decode('utf-8'),
        )
        try:
            self.db.session.add(account)
            self.db.session.commit()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            raise IdentityError(f"Could not create account for {email}") from e
        logger.info("Account created: %s", email)
        return account.uid

    def authenticate(self, email, password):
        account = self.find_account(email)
        if not account or not self.bcrypt.check_password_hash(account.password_hash, password or ''):
            raise InvalidCredentials(self._normalize(email))
        return account.uid

    def set_password(self, uid, password):
        account = self.get_account(uid)
        if account is None:
            raise InvalidCredentials(uid)
        account.password_hash = self.bcrypt.generate_password_hash(password).decode('utf-8')
        try:
            self.db.session.commit()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            raise IdentityError("Could not update password") from e

    def delete_account(self, uid):
        account = self.get_account(uid)
        if account is None:
            return
        self.db.session.delete(account)
        self.db.session.commit()

    # ------------------------------------------------------------------
    # password reset
    # ------------------------------------------------------------------
    def generate_reset_token(self, uid):
        return self.serializer.dumps({'uid': uid})

    def verify_reset_token(self, token):
        try:
            data = self.serializer.loads(token, max_age=self.reset_max_age)
        except SignatureExpired as e:
            raise InvalidResetToken("expired") from e
        except BadSignature as e:
            raise InvalidResetToken("bad signature") from e
        uid = data.get('uid') if isinstance(data, dict) else None
        if not uid or self.get_account(uid) is None:
            raise InvalidResetToken("unknown account")
        return uid

    def reset_password(self, token, password):
        uid = self.verify_reset_token(token)
        self.set_password(uid, password)
        return uid

    def send_password_reset(self, email, build_link, config, subject='Password reset'):
        """
        Email a reset link when ``email`` belongs to an account.

        ``build_link`` turns a token into an absolute URL. Returns True when a
        message was sent; unknown addresses return False without raising.
        """
        account = self.find_account(email)
        if account is None:
            logger.info("Password reset requested for unknown email")
            return False
        link = build_link(self.generate_reset_token(account.uid))
        body = f'<p>Use the link below to choose a new password:</p><p><a href="{link}">{link}</a></p>'
        return send_email(config, account.email, subject, body)
