"""
HarrierSessions - Fault definitions.

Defines session-specific faults that integrate with HarrierFaults.
All session errors are structured Faults, not bare exceptions.

Taxonomy:
- Precondition faults: caller drove the state machine out of order
- Value faults: payload value outside the supported value set
- Store faults: persistence backend failed
- Regeneration faults: identifier reconciliation partially failed
- Transport faults: identifier could not be read from the request
"""

from __future__ import annotations

import hashlib

from harrier.faults.core import Fault, Severity, FaultDomain


def hash_session_id(session_id: str | None) -> str | None:
    """Hash session ID for logging (privacy)."""
    if not session_id:
        return None
    return f"sha256:{hashlib.sha256(session_id.encode()).hexdigest()[:16]}"


# ============================================================================
# Session Fault Base
# ============================================================================

class SessionFault(Fault):
    """
    Base class for session-related faults.

    All session faults use FaultDomain.SESSION.
    """

    domain = FaultDomain.SESSION


# ============================================================================
# Precondition Faults
# ============================================================================

class SessionPreconditionFault(SessionFault):
    """
    Session operation called in a state that does not allow it.

    This is a caller bug (e.g. closing a session that was never started).
    """

    code = "SESSION_PRECONDITION"
    message = "Session operation not allowed in current state"
    severity = Severity.ERROR
    public = False
    retryable = False

    def __init__(self, operation: str, state: str, **kwargs):
        super().__init__(**kwargs)
        self.operation = operation
        self.state = state
        self.message = f"Cannot {operation} session in state '{state}'"
        self.args = (self.message,)
        self.metadata.update({"operation": operation, "state": state})


class SessionNotActiveFault(SessionPreconditionFault):
    """
    Session data accessed while the session is not started.

    Reading or writing data before ``start()`` or after ``destroy()``
    always raises; it never silently returns an empty view.
    """

    code = "SESSION_NOT_ACTIVE"


class SessionAlreadyStartedFault(SessionPreconditionFault):
    """``start()`` called on a session that is already active."""

    code = "SESSION_ALREADY_STARTED"

    def __init__(self, state: str = "active", **kwargs):
        super().__init__(operation="start", state=state, **kwargs)


# ============================================================================
# Value Faults
# ============================================================================

class SessionValueFault(SessionFault):
    """
    Session value is not storable.

    Payload values are limited to str, int, float, bool, None, and
    lists/dicts of those (dict keys must be strings).
    """

    code = "SESSION_VALUE_INVALID"
    message = "Unsupported session value"
    severity = Severity.ERROR
    public = False
    retryable = False

    def __init__(self, key: str, value_type: str, **kwargs):
        super().__init__(**kwargs)
        self.key = key
        self.value_type = value_type
        self.message = f"Unsupported value type '{value_type}' for session key '{key}'"
        self.args = (self.message,)
        self.metadata.update({"key": key, "value_type": value_type})


class SessionEncodingFault(SessionFault):
    """
    Payload could not be encoded by the store's serializer on save.
    """

    code = "SESSION_ENCODING_FAILED"
    message = "Session payload could not be encoded"
    severity = Severity.ERROR
    public = False
    retryable = False

    def __init__(self, store_name: str, session_id: str | None = None, cause: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.store_name = store_name
        self.session_id_hash = hash_session_id(session_id)
        self.cause = cause
        self.message = f"Session payload could not be encoded for store '{store_name}'"
        if cause:
            self.message = f"{self.message}: {cause}"
        self.args = (self.message,)
        self.metadata.update({"store": store_name, "session_id_hash": self.session_id_hash})


# ============================================================================
# Storage Faults
# ============================================================================

class SessionStoreUnavailableFault(SessionFault):
    """
    Session store is unavailable.

    This is a transient error - retry may succeed.
    Examples: Redis connection failure, file system error.
    """

    code = "SESSION_STORE_UNAVAILABLE"
    message = "Session storage unavailable"
    severity = Severity.ERROR
    public = False
    retryable = True

    def __init__(self, store_name: str, cause: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.store_name = store_name
        self.cause = cause
        if cause:
            self.message = f"Session store '{store_name}' unavailable: {cause}"
        else:
            self.message = f"Session store '{store_name}' unavailable"
        self.args = (self.message,)
        self.metadata.update({"store": store_name})


class SessionStoreCorruptedFault(SessionFault):
    """
    Session data in store is corrupted.

    Data cannot be deserialized or is structurally invalid.
    """

    code = "SESSION_STORE_CORRUPTED"
    message = "Session data corrupted"
    severity = Severity.ERROR
    public = False
    retryable = False

    def __init__(self, store_name: str, session_id: str | None = None, cause: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.store_name = store_name
        self.session_id_hash = hash_session_id(session_id)
        self.cause = cause
        self.message = f"Session data in store '{store_name}' corrupted"
        if cause:
            self.message = f"{self.message}: {cause}"
        self.args = (self.message,)
        self.metadata.update({"store": store_name, "session_id_hash": self.session_id_hash})


# ============================================================================
# Regeneration Faults
# ============================================================================

class SessionRegenerationFault(SessionFault):
    """
    Session ID regeneration did not fully reconcile with the store.

    Raised (or carried by a failed close result) when deleting the old
    record, saving under the new identifier, or both failed.
    """

    code = "SESSION_REGENERATION_FAILED"
    message = "Session regeneration failed"
    severity = Severity.ERROR
    public = False
    retryable = True

    def __init__(
        self,
        old_id: str,
        new_id: str,
        delete_error: Fault | None = None,
        save_error: Fault | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.old_id_hash = hash_session_id(old_id)
        self.new_id_hash = hash_session_id(new_id)
        self.delete_error = delete_error
        self.save_error = save_error

        failed = []
        if delete_error is not None:
            failed.append(f"delete old record ({delete_error.message})")
        if save_error is not None:
            failed.append(f"save new record ({save_error.message})")
        self.message = f"Session regeneration failed: {'; '.join(failed) or 'unknown'}"
        self.args = (self.message,)
        self.metadata.update({
            "old_id_hash": self.old_id_hash,
            "new_id_hash": self.new_id_hash,
            "delete_failed": delete_error is not None,
            "save_failed": save_error is not None,
        })

    @property
    def session_saved(self) -> bool:
        """True if the payload reached the store under the new identifier."""
        return self.save_error is None


# ============================================================================
# Transport Faults
# ============================================================================

class SessionTransportFault(SessionFault):
    """
    Error extracting or injecting session via transport.

    Examples:
    - Malformed cookie
    - Invalid identifier format
    """

    code = "SESSION_TRANSPORT_ERROR"
    message = "Session transport error"
    severity = Severity.WARN
    public = False
    retryable = False

    def __init__(self, transport_type: str, cause: str, **kwargs):
        super().__init__(**kwargs)
        self.transport_type = transport_type
        self.cause = cause
        self.message = f"Session transport error ({transport_type}): {cause}"
        self.args = (self.message,)
