from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_wtf.csrf import CSRFProtect
from flask_babel import Babel
from flask_login import LoginManager

# ✅ Single instances, bound to the app in create_app()
db = SQLAlchemy()
bcrypt = Bcrypt()
csrf = CSRFProtect()
babel = Babel()
login_manager = LoginManager()


# Backend clients built (or injected) in create_app()
DATASTORE_KEY = 'shop_datastore'
BLOB_STORE_KEY = 'shop_blob_store'
IDENTITY_KEY = 'shop_identity'


def get_datastore():
    return current_app.extensions[DATASTORE_KEY]


def get_blob_store():
    return current_app.extensions[BLOB_STORE_KEY]


def get_identity():
    return current_app.extensions[IDENTITY_KEY]
