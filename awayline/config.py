"""Environment driven configuration"""
import os

from awayline.utils.helpers import get_env_bool, get_env_int


def _database_url(default=None):
    url = os.environ.get('DATABASE_URL') or os.environ.get('POSTGRES_URL') or default
    # Heroku/Neon style URLs are not accepted by SQLAlchemy 1.4+
    if url and url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


class Config:
    """Base configuration"""

    # Basic Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database settings
    SQLALCHEMY_DATABASE_URI = _database_url('sqlite:///awayline.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 300,
        'pool_pre_ping': True
    }

    # CORS settings
    CORS_ORIGINS = ["*"]

    # Stripe settings
    STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY')
    STRIPE_WEBHOOK_SECRET = os.environ.get('STRIPE_WEBHOOK_SECRET')
    STRIPE_API_VERSION = os.environ.get('STRIPE_API_VERSION')
    STRIPE_PRICE_ID = os.environ.get('STRIPE_PRICE_ID')
    CHECKOUT_SUCCESS_URL = os.environ.get('CHECKOUT_SUCCESS_URL')
    CHECKOUT_CANCEL_URL = os.environ.get('CHECKOUT_CANCEL_URL')

    # SignalWire settings
    SIGNALWIRE_PROJECT_ID = os.environ.get('SIGNALWIRE_PROJECT_ID')
    SIGNALWIRE_AUTH_TOKEN = os.environ.get('SIGNALWIRE_AUTH_TOKEN')
    SIGNALWIRE_SPACE_URL = os.environ.get('SIGNALWIRE_SPACE_URL')
    SIGNALWIRE_MESSAGING_SERVICE_SID = os.environ.get('SIGNALWIRE_MESSAGING_SERVICE_SID')
    SIGNALWIRE_FROM_NUMBER = os.environ.get('SIGNALWIRE_FROM_NUMBER')
    VALIDATE_TELEPHONY_SIGNATURE = get_env_bool('VALIDATE_TELEPHONY_SIGNATURE', True)

    # Number provisioning
    VOICE_WEBHOOK_URL = (os.environ.get('VOICE_WEBHOOK_URL') or '').strip() or None
    NUMBER_COUNTRY = os.environ.get('NUMBER_COUNTRY', 'US')

    # Missed-call reply
    PUBLIC_BASE_URL = os.environ.get('PUBLIC_BASE_URL', 'http://localhost:5000')
    VOICE_GREETING = os.environ.get(
        'VOICE_GREETING',
        'The person you are calling is abroad and cannot take your call. '
        'We will text you a link to leave a message.'
    )
    CALLER_SMS_TEMPLATE = os.environ.get(
        'CALLER_SMS_TEMPLATE',
        'The person you called is travelling abroad and missed your call. '
        'Leave an urgent message here and it will be passed on:\n\n{leave_url}'
    )
    OPERATOR_ALERT_NUMBER = os.environ.get('OPERATOR_ALERT_NUMBER')
    LEAVE_LINK_TTL_HOURS = get_env_int('LEAVE_LINK_TTL_HOURS', 48)

    # Shared secrets for the cron and admin endpoints
    CRON_SECRET = os.environ.get('CRON_SECRET')
    ADMIN_TOKEN = os.environ.get('ADMIN_TOKEN')

    # Celery settings
    CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0')
    CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
    SWEEP_INTERVAL_SECONDS = get_env_int('SWEEP_INTERVAL_SECONDS', 3600)
    ASSIGN_INTERVAL_SECONDS = get_env_int('ASSIGN_INTERVAL_SECONDS', 6 * 3600)

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    VALIDATE_TELEPHONY_SIGNATURE = get_env_bool('VALIDATE_TELEPHONY_SIGNATURE', False)


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False

    SQLALCHEMY_DATABASE_URI = _database_url()

    # Production CORS settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '').split(',') if os.environ.get('CORS_ORIGINS') else []


class TestConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}

    STRIPE_SECRET_KEY = 'sk_test_dummy'
    STRIPE_WEBHOOK_SECRET = 'whsec_test_secret'
    STRIPE_API_VERSION = None
    STRIPE_PRICE_ID = 'price_test_monthly'

    SIGNALWIRE_PROJECT_ID = 'test-project'
    SIGNALWIRE_AUTH_TOKEN = 'test-token'
    SIGNALWIRE_SPACE_URL = 'example.signalwire.com'
    SIGNALWIRE_MESSAGING_SERVICE_SID = 'MG00000000000000000000000000000000'
    SIGNALWIRE_FROM_NUMBER = None
    VALIDATE_TELEPHONY_SIGNATURE = False

    VOICE_WEBHOOK_URL = 'https://example.test/api/telephony/voice'
    PUBLIC_BASE_URL = 'https://example.test'
    OPERATOR_ALERT_NUMBER = None

    CRON_SECRET = 'cron-secret'
    ADMIN_TOKEN = None

    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'

    LOG_FILE = None


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestConfig,
    'default': DevelopmentConfig
}
