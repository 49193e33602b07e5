"""Optional shared Redis layer behind the place-search cache.

Redis is never required. With ``SUPMAP_REDIS_URL`` unset, or the server
unreachable, every helper here becomes a no-op and search keeps working
from the in-process cache alone.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

_conn: Dict[str, Any] = {"client": None, "resolved": False}


def get_redis():
    """Connect once per process; returns ``redis.Redis`` or ``None``."""
    if _conn["resolved"]:
        return _conn["client"]
    _conn["resolved"] = True

    from supmap.config import settings

    if not settings.redis_url:
        log.debug("Redis disabled (no SUPMAP_REDIS_URL)")
        return None
    try:
        import redis

        client = redis.Redis.from_url(
            settings.redis_url, decode_responses=True, socket_connect_timeout=3
        )
        client.ping()
    except Exception as exc:
        log.warning("Redis unavailable (%s), place search uses the local cache only", exc)
        return None
    log.info("Redis connected: %s", settings.redis_url)
    _conn["client"] = client
    return client


def redis_available() -> bool:
    return get_redis() is not None


def reset_redis() -> None:
    """Forget the resolved connection so the next call re-reads settings."""
    _conn["client"] = None
    _conn["resolved"] = False


def cache_get_json(key: str) -> Optional[Any]:
    r = get_redis()
    if r is None:
        return None
    try:
        raw = r.get(key)
    except Exception as exc:
        log.debug("Redis get %s failed: %s", key, exc)
        return None
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        log.debug("Ignoring non-JSON Redis value at %s", key)
        return None


def cache_set_json(key: str, value: Any, ttl: int) -> None:
    r = get_redis()
    if r is None:
        return
    try:
        r.set(key, json.dumps(value), ex=ttl)
    except Exception as exc:
        log.debug("Redis set %s failed: %s", key, exc)
