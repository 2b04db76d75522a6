from functools import wraps

from flask import current_app, jsonify, request

from awayline.utils.helpers import secrets_match


def require_shared_secret(config_key, header_name, query_param='token'):
    """
    Guard an endpoint with a shared secret from the app config.

    The secret may arrive in header_name or in the query_param query string
    value. When the config key is unset the endpoint stays open.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            expected = current_app.config.get(config_key)
            if expected:
                provided = request.headers.get(header_name) or request.args.get(query_param)
                if not secrets_match(expected, provided):
                    current_app.logger.warning(f"Rejected {request.path}: bad or missing {header_name}")
                    return jsonify({'ok': False, 'error': 'Unauthorized'}), 401
            return f(*args, **kwargs)
        return decorated_function
    return decorator
