"""
HarrierSessions - Storage-agnostic session lifecycle.

This package provides:
- Cryptographic session identifiers
- A per-request session state machine (start, close, destroy, regenerate)
- Pluggable stores (memory, file, Redis)
- Cookie transport of the identifier

Principles:
- Sessions own lifecycle rules; stores only load, save and delete
- Sessions are explicit (store passed in, no hidden globals)
- Identifiers never appear in logs, only their hashes
"""

from .core import (
    Session,
    SessionID,
    SessionState,
    SessionFailure,
    SessionResult,
    SessionValue,
)

from .policy import TransportPolicy

from .store import (
    SessionStore,
    MemoryStore,
    FileStore,
)

from .redis_store import RedisStore

from .serializers import (
    SessionSerializer,
    JsonSessionSerializer,
    FernetSessionSerializer,
    get_serializer,
)

from .transport import CookieTransport

from .faults import (
    SessionFault,
    SessionPreconditionFault,
    SessionNotActiveFault,
    SessionAlreadyStartedFault,
    SessionValueFault,
    SessionEncodingFault,
    SessionStoreUnavailableFault,
    SessionStoreCorruptedFault,
    SessionRegenerationFault,
    SessionTransportFault,
)

from .integration import (
    create_store,
    create_policy,
    session_middleware_from_config,
)

__all__ = [
    # Core
    "Session",
    "SessionID",
    "SessionState",
    "SessionFailure",
    "SessionResult",
    "SessionValue",
    # Policy
    "TransportPolicy",
    # Stores
    "SessionStore",
    "MemoryStore",
    "FileStore",
    "RedisStore",
    # Serializers
    "SessionSerializer",
    "JsonSessionSerializer",
    "FernetSessionSerializer",
    "get_serializer",
    # Transport
    "CookieTransport",
    # Faults
    "SessionFault",
    "SessionPreconditionFault",
    "SessionNotActiveFault",
    "SessionAlreadyStartedFault",
    "SessionValueFault",
    "SessionEncodingFault",
    "SessionStoreUnavailableFault",
    "SessionStoreCorruptedFault",
    "SessionRegenerationFault",
    "SessionTransportFault",
    # Wiring
    "create_store",
    "create_policy",
    "session_middleware_from_config",
]
