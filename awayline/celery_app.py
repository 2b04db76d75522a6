"""
Celery configuration for Awayline

Tasks run inside a Flask app context. Start a worker with beat:

    celery -A awayline.worker worker -B --loglevel=INFO
"""
import logging
from datetime import timedelta

from celery import Celery, Task

logger = logging.getLogger(__name__)


def get_beat_schedule(config):
    """Periodic triggers for the sweeper and the assignment reconciliation"""
    return {
        'release-expired-numbers': {
            'task': 'awayline.release_expired_numbers',
            'schedule': timedelta(seconds=config.get('SWEEP_INTERVAL_SECONDS', 3600)),
        },
        'assign-active-subscribers': {
            'task': 'awayline.assign_active_subscribers',
            'schedule': timedelta(seconds=config.get('ASSIGN_INTERVAL_SECONDS', 6 * 3600)),
        },
    }


def celery_config(config):
    return {
        # Broker and Backend
        'broker_url': config.get('CELERY_BROKER_URL'),
        'result_backend': config.get('CELERY_RESULT_BACKEND'),

        # Serialization
        'task_serializer': 'json',
        'accept_content': ['json'],
        'result_serializer': 'json',

        # Timezone
        'timezone': 'UTC',
        'enable_utc': True,

        'include': ['awayline.tasks.number_tasks'],

        # Worker configuration
        'worker_prefetch_multiplier': 1,
        'task_acks_late': True,
        'task_ignore_result': True,

        # Task routing
        'task_routes': {
            'awayline.notify_missed_call': {'queue': 'notifications'},
        },
        'task_default_queue': 'default',

        # Task execution settings
        'task_time_limit': 300,
        'task_soft_time_limit': 240,
        'result_expires': 3600,

        'beat_schedule': get_beat_schedule(config),
    }


def celery_init_app(app) -> Celery:
    """Create the Celery app bound to a Flask app and register it as default"""

    class ContextTask(Task):
        """Make celery tasks work with Flask app context."""

        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.name, task_cls=ContextTask)
    celery_app.config_from_object(celery_config(app.config))
    celery_app.set_default()
    app.extensions['celery'] = celery_app

    logger.info(f"Celery configured with {len(celery_app.conf.beat_schedule)} scheduled tasks")
    return celery_app
