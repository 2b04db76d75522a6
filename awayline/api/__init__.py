from awayline.api.cron import cron_bp
from awayline.api.health import health_bp
from awayline.api.leave import leave_bp
from awayline.api.numbers import numbers_bp
from awayline.api.stripe_webhooks import stripe_bp
from awayline.api.telephony import telephony_bp


def register_blueprints(app):
    """Register all API blueprints"""
    app.register_blueprint(stripe_bp, url_prefix='/api/stripe')
    app.register_blueprint(numbers_bp, url_prefix='/api/numbers')
    app.register_blueprint(cron_bp, url_prefix='/api/cron')
    app.register_blueprint(telephony_bp, url_prefix='/api/telephony')
    app.register_blueprint(leave_bp, url_prefix='/api')
    app.register_blueprint(health_bp, url_prefix='/api')
