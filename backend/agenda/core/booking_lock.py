"""
Provider-date mutex for the booking critical section.

Two layers are taken in order:

1. an in-process ``threading.Lock`` per ``(provider_id, date)`` key, so worker
   threads of one process queue up instead of racing;
2. a Redis ``SET NX EX`` key when ``REDIS_URL`` is configured, so several
   processes serialize on the same key.

In-process locks are reference counted and dropped once no thread holds or
waits on their key.

Both waits are bounded by ``booking_lock_timeout_seconds``. The context
manager yields ``False`` when the lock could not be obtained in time; the
caller turns that into a slot-unavailable outcome.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
import logging
import threading
import time
from typing import Dict, Iterator, Optional
import uuid

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings

logger = logging.getLogger(__name__)


@dataclass
class _LocalLockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


# Entries live only while a thread holds or waits on the key
_LOCAL_LOCKS: Dict[str, _LocalLockEntry] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_REDIS_POLL_INTERVAL_S = 0.05


def _lock_key(provider_id: str, day: date) -> str:
    return f"provider:{provider_id}:{day.isoformat()}:mutex"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _checkout_local_lock(key: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        entry = _LOCAL_LOCKS.get(key)
        if entry is None:
            entry = _LocalLockEntry()
            _LOCAL_LOCKS[key] = entry
        entry.users += 1
        return entry.lock


def _return_local_lock(key: str) -> None:
    with _LOCAL_LOCKS_GUARD:
        entry = _LOCAL_LOCKS.get(key)
        if entry is None:
            return
        entry.users -= 1
        if entry.users <= 0:
            del _LOCAL_LOCKS[key]


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.redis_url:
        return None
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("booking_lock_sync_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def _acquire_redis(client: Redis, key: str, token: str, deadline: float, ttl_s: int) -> bool:
    namespaced = _namespaced_key(key)
    while True:
        if client.set(namespaced, token, nx=True, ex=ttl_s):
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(_REDIS_POLL_INTERVAL_S)


def _release_redis(client: Redis, key: str, token: str) -> None:
    namespaced = _namespaced_key(key)
    try:
        if client.get(namespaced) == token:
            client.delete(namespaced)
            prometheus_metrics.record_booking_lock("release", "success")
        else:
            prometheus_metrics.record_booking_lock("release", "not_owner")
    except Exception as exc:
        prometheus_metrics.record_booking_lock("release", "error")
        logger.warning(
            "booking_lock_sync_release_failed",
            extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
        )


@contextmanager
def provider_date_lock(
    provider_id: str,
    day: date,
    timeout_s: Optional[float] = None,
    ttl_s: Optional[int] = None,
) -> Iterator[bool]:
    """Serialize booking writes for one provider on one date."""
    key = _lock_key(provider_id, day)
    timeout = settings.booking_lock_timeout_seconds if timeout_s is None else timeout_s
    ttl = settings.booking_lock_ttl_seconds if ttl_s is None else ttl_s
    deadline = time.monotonic() + timeout

    local = _checkout_local_lock(key)
    try:
        if not local.acquire(timeout=timeout):
            prometheus_metrics.record_booking_lock("acquire", "timeout")
            logger.warning("booking_lock_local_timeout", extra={"lock_key": key})
            yield False
            return

        client = _get_sync_redis()
        token = uuid.uuid4().hex
        redis_held = False
        try:
            if client is not None:
                try:
                    redis_held = _acquire_redis(client, key, token, deadline, ttl)
                except Exception as exc:
                    prometheus_metrics.record_booking_lock("acquire", "error")
                    logger.warning(
                        "booking_lock_sync_failed",
                        extra={
                            "lock_key": key,
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                        },
                    )
                    # Redis outage: the database constraint remains the guard
                    redis_held = False
                else:
                    if not redis_held:
                        prometheus_metrics.record_booking_lock("acquire", "timeout")
                        logger.warning("booking_lock_redis_timeout", extra={"lock_key": key})
                        yield False
                        return
            elif settings.redis_url:
                prometheus_metrics.record_booking_lock("acquire", "redis_unavailable")

            prometheus_metrics.record_booking_lock("acquire", "success")
            yield True
        finally:
            if redis_held and client is not None:
                _release_redis(client, key, token)
            local.release()
    finally:
        _return_local_lock(key)
