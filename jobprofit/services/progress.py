"""Import status notifications over Redis pub/sub."""
import json
import logging
from typing import Optional

import redis

from jobprofit.config import get_settings

logger = logging.getLogger(__name__)


def progress_channel(task_id: str) -> str:
    return f"import:{task_id}"


def publish_progress(
    task_id: str, status: str, result: Optional[dict] = None, error: Optional[str] = None
) -> None:
    """
    Publish an import status change for subscribers of the task's channel.

    Args:
        task_id: Celery task id of the import
        status: Current status (processing, completed, failed)
        result: ImportResult as a dict (for completed status)
        error: Error message (for failed status)
    """
    message = {"task_id": task_id, "status": status}
    if result is not None:
        message["result"] = result
    if error:
        message["error"] = error

    try:
        redis_client = redis.Redis.from_url(get_settings().redis_url, decode_responses=True)
        redis_client.publish(progress_channel(task_id), json.dumps(message))
    except redis.RedisError as e:
        # Don't fail the import if Redis is unavailable
        logger.warning(f"Failed to publish progress for {task_id}: {e}")
