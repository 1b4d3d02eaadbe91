# shop_core/views/auth.py
import logging

from flask import Blueprint, current_app, flash, redirect, render_template, url_for
from flask_babel import gettext as _
from flask_login import current_user, login_user, logout_user

from forms import LoginForm, PasswordResetForm, PasswordResetRequestForm, RegisterForm
from shop_core.auth import (
    AuthState,
    SessionUser,
    dashboard_endpoint,
    pending_client_payload,
    resolve_client_sign_in,
    resolve_manager_sign_in,
)
from shop_core.datastore import DatastoreError
from shop_core.extensions import db, get_datastore, get_identity
from shop_core.identity import EmailAlreadyRegistered, IdentityError, InvalidCredentials, InvalidResetToken

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def _pending_message():
    return _("Your account is pending activation. The workshop will enable it shortly.")


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated:
        return redirect(url_for(dashboard_endpoint(current_user.role)))

    form = LoginForm()
    if form.validate_on_submit():
        try:
            uid = get_identity().authenticate(form.email.data, form.password.data)
        except InvalidCredentials:
            flash(_("Invalid email or password."), "error")
            return render_template('auth/login.html', form=form)

        try:
            state, record = resolve_client_sign_in(get_datastore(), uid, form.email.data.lower())
        except DatastoreError:
            db.session.rollback()
            logger.exception("Client sign-in failed for %s", uid)
            flash(_("An error occurred while signing in."), "error")
            return render_template('auth/login.html', form=form)

        if state is AuthState.PENDING:
            logout_user()
            flash(_pending_message(), "warning")
            return redirect(url_for('auth.login'))

        user = SessionUser(record)
        login_user(user)
        flash(_("Welcome, %(name)s!", name=user.full_name), "success")
        return redirect(url_for(dashboard_endpoint(user.role)))
    return render_template('auth/login.html', form=form)


@auth_bp.route('/manager/login', methods=['GET', 'POST'])
def manager_login():
    if current_user.is_authenticated and current_user.role == 'manager':
        return redirect(url_for('manager.dashboard'))

    form = LoginForm()
    if form.validate_on_submit():
        try:
            uid = get_identity().authenticate(form.email.data, form.password.data)
            state, record = resolve_manager_sign_in(get_datastore(), uid)
        except InvalidCredentials:
            flash(_("Invalid email or password."), "error")
            return render_template('auth/manager_login.html', form=form)
        except DatastoreError:
            db.session.rollback()
            logger.exception("Manager sign-in failed")
            flash(_("An error occurred while signing in."), "error")
            return render_template('auth/manager_login.html', form=form)

        if state is not AuthState.MANAGER:
            logout_user()
            flash(_("You are not authorized to access the manager portal."), "error")
            return render_template('auth/manager_login.html', form=form)

        user = SessionUser(record)
        login_user(user)
        flash(_("Welcome, %(name)s!", name=user.full_name), "success")
        return redirect(url_for('manager.dashboard'))
    return render_template('auth/manager_login.html', form=form)


@auth_bp.route('/logout')
def logout():
    logout_user()
    flash(_("You have been logged out."), "info")
    return redirect(url_for('marketing.index'))


@auth_bp.route('/register', methods=['GET', 'POST'])
def register():
    if current_user.is_authenticated:
        return redirect(url_for(dashboard_endpoint(current_user.role)))

    form = RegisterForm()
    if form.validate_on_submit():
        identity = get_identity()
        email = form.email.data.lower()
        try:
            uid = identity.register(email, form.password.data)
        except EmailAlreadyRegistered:
            flash(_("An account with this email already exists."), "error")
            return render_template('auth/register.html', form=form)
        except IdentityError:
            logger.exception("Registration failed for %s", email)
            flash(_("An error occurred while creating the account."), "error")
            return render_template('auth/register.html', form=form)

        try:
            get_datastore().set('clients', uid, pending_client_payload(
                email, form.first_name.data, form.last_name.data))
        except DatastoreError:
            db.session.rollback()
            logger.exception("Client record for %s could not be created", email)
            identity.delete_account(uid)
            flash(_("An error occurred while creating the account."), "error")
            return render_template('auth/register.html', form=form)

        flash(_("Account created. %(pending)s", pending=_pending_message()), "success")
        return redirect(url_for('auth.login'))
    return render_template('auth/register.html', form=form)


@auth_bp.route('/reset-password', methods=['GET', 'POST'])
def reset_request():
    form = PasswordResetRequestForm()
    if form.validate_on_submit():
        identity = get_identity()

        def build_link(token):
            return url_for('auth.reset_password', token=token, _external=True)

        try:
            identity.send_password_reset(
                form.email.data, build_link, current_app.config,
                subject=_("Password reset"))
        except IdentityError:
            logger.exception("Password reset request failed")
        flash(_("If an account exists for that email, a reset link has been sent."), "info")
        return redirect(url_for('auth.login'))
    return render_template('auth/reset_request.html', form=form)


@auth_bp.route('/reset-password/<token>', methods=['GET', 'POST'])
def reset_password(token):
    identity = get_identity()
    try:
        identity.verify_reset_token(token)
    except InvalidResetToken:
        flash(_("This reset link is invalid or has expired."), "error")
        return redirect(url_for('auth.reset_request'))

    form = PasswordResetForm()
    if form.validate_on_submit():
        try:
            identity.reset_password(token, form.password.data)
        except InvalidResetToken:
            flash(_("This reset link is invalid or has expired."), "error")
            return redirect(url_for('auth.reset_request'))
        except IdentityError:
            logger.exception("Password reset failed")
            flash(_("An error occurred while resetting the password."), "error")
            return render_template('auth/reset_password.html', form=form, token=token)
        flash(_("Your password has been updated. You can now log in."), "success")
        return redirect(url_for('auth.login'))
    return render_template('auth/reset_password.html', form=form, token=token)
