from flask import Blueprint, current_app, jsonify

from awayline.services.expiry_sweeper import ExpirySweeper
from awayline.utils.security import require_shared_secret

cron_bp = Blueprint('cron', __name__)


@cron_bp.route('/release-expired', methods=['GET', 'POST'])
@require_shared_secret('CRON_SECRET', 'X-Cron-Secret')
def release_expired():
    """Scheduled trigger for the expiry sweep"""
    result = ExpirySweeper().sweep()
    current_app.logger.info(
        f"Cron sweep: checked={result.checked} released={result.released} failed={result.failed}"
    )
    return jsonify({'ok': True, **result.to_dict()}), 200
