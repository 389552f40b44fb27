"""
Coordination context
Owns the Redis connections used for the leader lock, scheduler metrics and
the reminder queue. Constructed explicitly by each process entrypoint and
passed to the services that need it.
"""
import logging
from typing import List, Optional

import redis

from .config import config
from .services.reminder_queue import ReminderQueue

logger = logging.getLogger(__name__)


def create_redis_client(url: str, decode_responses: bool = True) -> redis.Redis:
    """
    Create a Redis client for the given URL
    
    Args:
        url: redis:// or rediss:// connection URL
        decode_responses: Decode values to str (must be False for the queue connection)
    
    Returns:
        Redis client (connections are opened lazily)
    """
    return redis.Redis.from_url(
        url,
        decode_responses=decode_responses,
        socket_connect_timeout=5,
        health_check_interval=30,
    )


class CoordinationContext:
    """
    Bundle of coordination-store and queue clients
    
    Attributes:
        redis: Client for lock keys and scheduler metrics (str responses)
        queue_connection: Raw client required by the RQ queue
        lock_masters: Independent masters used by the quorum lock
        queue: Reminder queue bound to queue_connection
    """
    
    def __init__(
        self,
        redis_client: redis.Redis,
        queue: ReminderQueue,
        queue_connection: Optional[redis.Redis] = None,
        lock_masters: Optional[List[redis.Redis]] = None,
    ):
        self.redis = redis_client
        self.queue = queue
        self.queue_connection = queue_connection
        self.lock_masters = lock_masters or [redis_client]
    
    @classmethod
    def from_config(cls, cfg=None) -> "CoordinationContext":
        """Build a context from the REDIS_URL / REDLOCK_URLS configuration"""
        cfg = cfg or config
        redis_client = create_redis_client(cfg.REDIS_URL)
        queue_connection = create_redis_client(cfg.REDIS_URL, decode_responses=False)
        lock_masters = [
            redis_client if url == cfg.REDIS_URL else create_redis_client(url)
            for url in cfg.REDLOCK_URLS
        ]
        queue = ReminderQueue(
            connection=queue_connection,
            name=cfg.REMINDER_QUEUE_NAME,
            attempts=cfg.REMINDER_JOB_ATTEMPTS,
            backoff_seconds=cfg.REMINDER_JOB_BACKOFF_SECONDS,
            failure_ttl=cfg.REMINDER_FAILED_JOB_TTL,
        )
        logger.info(
            f"Coordination context created (queue={cfg.REMINDER_QUEUE_NAME}, "
            f"lock masters={len(lock_masters)})"
        )
        return cls(
            redis_client=redis_client,
            queue=queue,
            queue_connection=queue_connection,
            lock_masters=lock_masters,
        )
    
    def close(self):
        """Close every underlying connection pool"""
        clients = [self.redis, self.queue_connection, *self.lock_masters]
        seen = set()
        for client in clients:
            if client is None or id(client) in seen:
                continue
            seen.add(id(client))
            try:
                client.close()
            except Exception as e:
                logger.warning(f"Failed to close Redis client: {e}")
    
    def __enter__(self) -> "CoordinationContext":
        return self
    
    def __exit__(self, exc_type, exc, tb):
        self.close()
