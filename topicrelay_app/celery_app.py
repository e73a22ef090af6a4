# topicrelay_app/celery_app.py
import logging

from celery import Celery, Task
from celery.signals import after_setup_logger

from .config import Config
from .utils.logging_utils import setup_json_file_logger

logger = logging.getLogger(__name__)

celery_app = Celery(
    'topicrelay_app',
    broker=Config.broker_url,
    backend=Config.result_backend,
    include=['topicrelay_app.celery_tasks'],
)
celery_app.conf.update(
    task_serializer=Config.task_serializer,
    result_serializer=Config.result_serializer,
    accept_content=Config.accept_content,
    timezone=Config.timezone,
    enable_utc=Config.enable_utc,
    # Flush results are never read.
    task_ignore_result=True,
)

_flask_app = None


def _get_flask_app():
    global _flask_app
    if _flask_app is None:
        from . import create_app
        _flask_app = create_app()
    return _flask_app


class FlaskTask(Task):
    """Runs every task inside a Flask app context so services can read current_app.config."""
    abstract = True

    def __call__(self, *args, **kwargs):
        from flask import has_app_context
        if has_app_context():
            return super().__call__(*args, **kwargs)
        with _get_flask_app().app_context():
            return super().__call__(*args, **kwargs)


@after_setup_logger.connect
def _attach_json_log(logger=None, loglevel=None, **kwargs):
    # Worker processes get the same JSON log file as the web app.
    setup_json_file_logger(Config.LOG_JSON_FILE, level=loglevel or logging.INFO)
