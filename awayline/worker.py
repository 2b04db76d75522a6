"""
Celery worker entry point

    celery -A awayline.worker worker -B --loglevel=INFO
"""
from awayline import create_app

flask_app = create_app()
celery = flask_app.extensions['celery']
