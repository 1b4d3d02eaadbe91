# shop_core/__init__.py

import logging
import os

from flask import Flask, current_app, has_request_context, request, session
from flask_babel import _, lazy_gettext

from .config import config as app_config
from .extensions import (
    BLOB_STORE_KEY, DATASTORE_KEY, IDENTITY_KEY,
    babel, bcrypt, csrf, db, login_manager,
)

logger = logging.getLogger(__name__)

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def get_locale():
    if not has_request_context():
        return current_app.config['BABEL_DEFAULT_LOCALE']
    supported = current_app.config['BABEL_SUPPORTED_LOCALES']
    lang = request.args.get('lang') or session.get('lang')
    if lang in supported:
        return lang
    return current_app.config['BABEL_DEFAULT_LOCALE']


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    app.logger.setLevel(level)


def create_app(config_name=None, datastore=None, blob_store=None, identity=None):
    """
    Application factory.

    Backend clients may be passed in; any left out are built from the
    selected configuration.
    """
    app = Flask(
        __name__,
        template_folder=os.path.join(ROOT_DIR, 'templates'),
        static_folder=os.path.join(ROOT_DIR, 'static'),
    )

    env = config_name or os.getenv('FLASK_ENV') or 'production'
    config_class = app_config.get(env)
    if not config_class:
        raise ValueError(f"Unknown config: {env}")

    config_instance = config_class()
    config_instance.validate()
    app.config.from_object(config_instance)

    configure_logging(app)
    logger.info("Loaded config: %s", env)

    # ✅ Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    csrf.init_app(app)
    babel.init_app(app, locale_selector=get_locale,
                   default_translation_directories=os.path.join(ROOT_DIR, 'translations'))

    login_manager.init_app(app)
    login_manager.login_view = 'auth.login'
    login_manager.blueprint_login_views = {'manager': 'auth.manager_login'}
    login_manager.login_message = lazy_gettext("Please log in to access this page.")
    login_manager.login_message_category = 'info'

    # Backend clients
    from utils.s3_storage import blob_store_from_config
    from .datastore import SqlDatastore
    from .identity import IdentityProvider

    app.extensions[DATASTORE_KEY] = datastore or SqlDatastore(
        db, in_query_limit=app.config['IN_QUERY_LIMIT'])
    app.extensions[BLOB_STORE_KEY] = blob_store or blob_store_from_config(app.config)
    app.extensions[IDENTITY_KEY] = identity or IdentityProvider(
        db, bcrypt, app.config['SECRET_KEY'], app.config['PASSWORD_RESET_MAX_AGE'])

    @login_manager.user_loader
    def load_user(user_id):
        from .auth import load_session_user
        return load_session_user(current_app.extensions[DATASTORE_KEY], user_id)

    @app.context_processor
    def inject_globals():
        return dict(
            _=_,
            shop_name=app.config['SHOP_NAME'],
            shop_phone=app.config['SHOP_PHONE'],
            current_locale=get_locale(),
            supported_locales=app.config['BABEL_SUPPORTED_LOCALES'],
        )

    from .records import format_date

    @app.template_filter('format_date')
    def format_date_filter(value, fmt='%d/%m/%Y'):
        return format_date(value, fmt)

    @app.template_filter('money')
    def money_filter(value):
        return f"{float(value or 0):.2f}{app.config['CURRENCY_SYMBOL']}"

    from .views import register_blueprints
    register_blueprints(app)

    from .cli import register_commands
    register_commands(app)

    return app
