"""
Harrier - Storage-agnostic HTTP session lifecycle for ASGI applications.

Includes:
- Sessions: Per-request state machine with identifier regeneration
- Stores: Memory, file and Redis persistence behind one async contract
- Transport: Cookie-borne identifiers with sliding inactivity expiry
- Faults: Structured error handling with fault domains
- Middleware: Session middleware and a composable middleware stack
"""

__version__ = "0.1.0"

# ============================================================================
# Core
# ============================================================================

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    ConfigFault,
    ConfigMissingFault,
    ConfigInvalidFault,
)
from .config import ConfigLoader
from .request import Request, SESSION_STATE_KEY
from .response import Response
from .middleware import (
    RequestCtx,
    MiddlewareStack,
    ExceptionMiddleware,
)

# ============================================================================
# Sessions
# ============================================================================

from .sessions import (
    Session,
    SessionID,
    SessionState,
    SessionFailure,
    SessionResult,
    TransportPolicy,
    SessionStore,
    MemoryStore,
    FileStore,
    RedisStore,
    CookieTransport,
)
from .middleware_ext import SessionMiddleware, OptionalSessionMiddleware

from .asgi import ASGIAdapter


__all__ = [
    "__version__",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigFault",
    "ConfigMissingFault",
    "ConfigInvalidFault",
    # Core
    "ConfigLoader",
    "Request",
    "SESSION_STATE_KEY",
    "Response",
    "RequestCtx",
    "MiddlewareStack",
    "ExceptionMiddleware",
    "ASGIAdapter",
    # Sessions
    "Session",
    "SessionID",
    "SessionState",
    "SessionFailure",
    "SessionResult",
    "TransportPolicy",
    "SessionStore",
    "MemoryStore",
    "FileStore",
    "RedisStore",
    "CookieTransport",
    "SessionMiddleware",
    "OptionalSessionMiddleware",
]
