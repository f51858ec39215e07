# config.py
import os
from dotenv import load_dotenv

# load_dotenv() will load variables from a .env file for LOCAL development.
# In production these are set by the hosting environment.
load_dotenv()

class Config:
    """Base configuration class."""

    # Flask signs the session cookie that carries the logged-in user with this key.
    SECRET_KEY = os.getenv('SECRET_KEY')
    if not SECRET_KEY:
        raise ValueError("FATAL ERROR: No SECRET_KEY set. Please set this in your environment secrets.")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')
    if not SQLALCHEMY_DATABASE_URI:
        # For local development we fall back to a local SQLite database.
        SQLALCHEMY_DATABASE_URI = "sqlite:///dev.db"

    STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY')
    STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET')
    CURRENCY = os.getenv('CURRENCY', 'jpy')
    # Where Stripe sends the buyer afterwards. Unset means this app's /api/checkout pages.
    CHECKOUT_SUCCESS_URL = os.getenv('CHECKOUT_SUCCESS_URL')
    CHECKOUT_CANCEL_URL = os.getenv('CHECKOUT_CANCEL_URL')

    # Added to the idea price when the buyer asks for formal contract documents.
    FORMAL_DOCUMENTATION_FEE = int(os.getenv('FORMAL_DOCUMENTATION_FEE', '25000'))

    EXPORT_ROW_LIMIT = int(os.getenv('EXPORT_ROW_LIMIT', '10000'))
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    """Configuration for local development."""
    DEBUG = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')

class ProductionConfig(Config):
    """Configuration for production."""
    DEBUG = False
    SESSION_COOKIE_SECURE = True

class TestingConfig(Config):
    """In-memory database, no external services."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    STRIPE_SECRET_KEY = "sk_test_dummy"
    STRIPE_WEBHOOK_SECRET = "whsec_dummy"

# This dictionary allows us to select the configuration by name.
config = {
    'dev': DevelopmentConfig,
    'prod': ProductionConfig,
    'test': TestingConfig,
}
