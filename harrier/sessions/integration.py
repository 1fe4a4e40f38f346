"""
HarrierSessions - Wiring from configuration.

Builds stores, transport policies and the session middleware from the
dictionaries returned by ``ConfigLoader.get_session_config()``.

Example:
    >>> config = ConfigLoader.load(paths=["harrier.yaml"])
    >>> middleware = session_middleware_from_config(config.get_session_config())
    >>> stack.add(middleware, priority=15)
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, TYPE_CHECKING

from harrier.faults import ConfigInvalidFault, ConfigMissingFault

from .policy import TransportPolicy
from .serializers import get_serializer
from .store import FileStore, MemoryStore, SessionStore

if TYPE_CHECKING:
    from harrier.middleware_ext.session_middleware import SessionMiddleware


logger = logging.getLogger("harrier.sessions")

STORE_TYPES = ("memory", "file", "redis")


def create_store(store_config: Mapping[str, Any]) -> SessionStore:
    """
    Create a session store from its configuration block.

    Raises:
        ConfigInvalidFault: Unknown store type or serializer
        ConfigMissingFault: Required option absent (directory, redis_url)
    """
    store_type = store_config.get("type", "memory")
    ttl = store_config.get("ttl")

    if store_type == "memory":
        return MemoryStore(
            max_sessions=store_config.get("max_sessions") or 10000,
            ttl=ttl,
        )

    serializer_name = store_config.get("serializer") or "json"
    encryption_key = store_config.get("encryption_key")
    if encryption_key and serializer_name == "json":
        serializer_name = "fernet"
    try:
        serializer = get_serializer(serializer_name, encryption_key=encryption_key)
    except ValueError as e:
        raise ConfigInvalidFault("sessions.store.serializer", str(e))

    if store_type == "file":
        directory = store_config.get("directory")
        if not directory:
            raise ConfigMissingFault("sessions.store.directory")
        return FileStore(directory=directory, serializer=serializer, ttl=ttl)

    if store_type == "redis":
        from .redis_store import RedisStore

        url = store_config.get("redis_url")
        if not url:
            raise ConfigMissingFault("sessions.store.redis_url")
        return RedisStore(
            url,
            key_prefix=store_config.get("key_prefix") or "harrier:session:",
            ttl=ttl if ttl is not None else 900,
            serializer=serializer,
        )

    raise ConfigInvalidFault(
        "sessions.store.type",
        f"unknown store type {store_type!r}, expected one of {', '.join(STORE_TYPES)}",
    )


def create_policy(transport_config: Mapping[str, Any]) -> TransportPolicy:
    """Create a cookie transport policy from its configuration block."""
    return TransportPolicy.from_dict(transport_config)


def session_middleware_from_config(session_config: Mapping[str, Any]) -> "SessionMiddleware":
    """
    Create session middleware from a full session configuration.

    Args:
        session_config: Result of ``ConfigLoader.get_session_config()``
    """
    from harrier.middleware_ext.session_middleware import SessionMiddleware

    store = create_store(session_config.get("store", {}))
    policy = create_policy(session_config.get("transport", {}))

    logger.info(
        f"Sessions configured: store={getattr(store, 'name', type(store).__name__)}, "
        f"cookie={policy.cookie_name}, timeout={policy.inactivity_timeout}s"
    )
    return SessionMiddleware(store, policy)


__all__ = ["create_store", "create_policy", "session_middleware_from_config"]
