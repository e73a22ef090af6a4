# topicrelay_app/celery_tasks.py

import logging

from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from .celery_app import celery_app, FlaskTask
from .config import Config

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    base=FlaskTask,
    name='topicrelay_app.celery_tasks.flush_album_task',
    max_retries=getattr(Config, 'CELERY_TASK_MAX_RETRIES', 2),
    default_retry_delay=1,
)
def flush_album_task(self, key: str, stamp: int):
    """
    Deferred flush check for one album buffer.

    Scheduled with a countdown by every album part; only the task holding the
    buffer's current stamp emits. Losing this task is tolerated, the buffer
    key expires on its own.
    """
    from .extensions import get_album_service

    task_id = self.request.id
    logger.debug(f"Task {task_id}: flush check for {key} with stamp {stamp}.")
    try:
        flushed = get_album_service().flush(key, stamp)
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.error(f"Task {task_id}: Redis unavailable during album flush of {key}: {e}", exc_info=True)
        raise self.retry(exc=e)

    return {"key": key, "flushed": flushed}
