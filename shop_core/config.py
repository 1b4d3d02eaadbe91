import os
import tempfile
from datetime import timedelta
from dotenv import load_dotenv

# Optional: Load .env early
load_dotenv()


class Config:
    """Base configuration (shared by all environments)"""

    # Security
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-key-please-change-12345')
    PERMANENT_SESSION_LIFETIME = timedelta(minutes=60)
    PASSWORD_RESET_MAX_AGE = int(os.environ.get('PASSWORD_RESET_MAX_AGE', 3600))

    # Database
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF Protection
    WTF_CSRF_ENABLED = True
    WTF_CSRF_SECRET_KEY = os.environ.get('WTF_CSRF_SECRET_KEY', 'another-dev-secret-change-me')
    WTF_CSRF_TIME_LIMIT = 3600  # 1 hour

    # Blob storage: 'local' keeps files under UPLOAD_FOLDER, 's3' uses AWS_S3_BUCKET
    BLOB_BACKEND = os.environ.get('BLOB_BACKEND', 'local')
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'static', 'uploads'))
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB

    # Email
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 587))
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS', 'True').lower() == 'true'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'no-reply@autoshop.local')
    MAIL_SUPPRESS_SEND = os.environ.get('MAIL_SUPPRESS_SEND', 'False').lower() == 'true'

    # AWS S3
    AWS_ACCESS_KEY_ID = os.environ.get('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY = os.environ.get('AWS_SECRET_ACCESS_KEY')
    AWS_S3_BUCKET = os.environ.get('AWS_S3_BUCKET')
    AWS_S3_REGION = os.environ.get('AWS_S3_REGION', 'eu-west-1')

    # Billing & listings
    VAT_RATE = '0.21'
    ITEMS_PER_PAGE = 10
    IN_QUERY_LIMIT = 30
    CURRENCY_SYMBOL = '€'

    # i18n
    BABEL_DEFAULT_LOCALE = 'es'
    BABEL_SUPPORTED_LOCALES = ['es', 'en']

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Marketing site
    SHOP_NAME = os.environ.get('SHOP_NAME', 'Taller Mecánico')
    SHOP_PHONE = os.environ.get('SHOP_PHONE', '')

    def validate(self):
        if not self.SECRET_KEY or len(self.SECRET_KEY) < 16:
            raise ValueError("SECRET_KEY must be set and secure")
        if not self.WTF_CSRF_SECRET_KEY:
            raise ValueError("WTF_CSRF_SECRET_KEY must be set")
        if not getattr(self, 'SQLALCHEMY_DATABASE_URI', None):
            raise ValueError("SQLALCHEMY_DATABASE_URI must be set")
        if self.BLOB_BACKEND not in ('local', 's3'):
            raise ValueError(f"Unknown BLOB_BACKEND: {self.BLOB_BACKEND}")
        if self.BLOB_BACKEND == 's3' and not self.AWS_S3_BUCKET:
            raise ValueError("AWS_S3_BUCKET is required when BLOB_BACKEND is 's3'")


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///autoshop.db')
    MAIL_SUPPRESS_SEND = True


class TestingConfig(Config):
    TESTING = True
    DEBUG = True
    SECRET_KEY = 'testing-secret-key-0123456789'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False
    PRESERVE_CONTEXT_ON_EXCEPTION = False
    BLOB_BACKEND = 'local'
    UPLOAD_FOLDER = os.path.join(tempfile.gettempdir(), 'autoshop-test-uploads')
    MAIL_SUPPRESS_SEND = True
    BABEL_DEFAULT_LOCALE = 'en'


class ProductionConfig(Config):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')

    def validate(self):
        super().validate()
        if not self.SQLALCHEMY_DATABASE_URI:
            raise ValueError("DATABASE_URL is required in production")


# Shortcut dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
