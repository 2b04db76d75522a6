from flask import current_app, jsonify
from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from awayline.exceptions import (
    AwaylineError,
    ConfigurationError,
    LedgerError,
    PaymentProviderError,
    ProviderError,
    ValidationError,
)


def register_error_handlers(app):
    """Register global error handlers"""

    @app.errorhandler(SchemaValidationError)
    def handle_schema_error(e):
        """Handle Marshmallow validation errors"""
        current_app.logger.warning(f"Validation error: {e.messages}")
        return jsonify({
            'ok': False,
            'error': 'Validation failed',
            'errors': e.messages
        }), 400

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        current_app.logger.warning(f"Rejected request: {str(e)}")
        return jsonify({'ok': False, 'error': str(e)}), 400

    @app.errorhandler(ConfigurationError)
    def handle_configuration_error(e):
        current_app.logger.error(f"Configuration error: {str(e)}")
        return jsonify({'ok': False, 'error': 'Server misconfigured'}), 500

    @app.errorhandler(ProviderError)
    def handle_provider_error(e):
        current_app.logger.error(f"Telephony provider error: {str(e)}")
        return jsonify({'ok': False, 'error': str(e), 'code': e.code}), 502

    @app.errorhandler(PaymentProviderError)
    def handle_payment_provider_error(e):
        current_app.logger.error(f"Payment provider error: {str(e)}")
        return jsonify({'ok': False, 'error': str(e)}), 502

    @app.errorhandler(LedgerError)
    def handle_ledger_error(e):
        current_app.logger.error(f"Ledger error: {str(e)}")
        return jsonify({'ok': False, 'error': 'Database operation failed'}), 500

    @app.errorhandler(AwaylineError)
    def handle_awayline_error(e):
        current_app.logger.error(f"Unhandled application error: {str(e)}")
        return jsonify({'ok': False, 'error': str(e)}), 500

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        """Handle database errors"""
        current_app.logger.error(f"Database error: {str(e)}")
        return jsonify({
            'ok': False,
            'error': 'Database operation failed'
        }), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        """Handle HTTP errors"""
        return jsonify({
            'ok': False,
            'error': e.description,
            'code': e.code
        }), e.code

    @app.errorhandler(Exception)
    def handle_generic_error(e):
        """Handle unexpected errors"""
        current_app.logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        return jsonify({
            'ok': False,
            'error': 'An unexpected error occurred'
        }), 500
