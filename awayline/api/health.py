from flask import Blueprint, jsonify
from sqlalchemy import text

from awayline.extensions import db
from awayline.utils.helpers import isoformat_utc, utcnow

health_bp = Blueprint('health', __name__)


@health_bp.route('/health', methods=['GET'])
def health_check():
    """Database health check"""
    checks = {
        'status': 'healthy',
        'timestamp': isoformat_utc(utcnow()),
        'service': 'Awayline Gateway',
        'checks': {}
    }

    try:
        db.session.execute(text('SELECT 1'))
        checks['checks']['database'] = 'healthy'
    except Exception as e:
        checks['checks']['database'] = f'unhealthy: {str(e)}'
        checks['status'] = 'unhealthy'
    finally:
        db.session.rollback()

    status_code = 200 if checks['status'] == 'healthy' else 503
    return jsonify(checks), status_code
