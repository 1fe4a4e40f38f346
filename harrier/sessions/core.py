"""
HarrierSessions - Core types.

Defines the session lifecycle:
- SessionID: Opaque cryptographic identifier helpers
- SessionState: Lifecycle states (idle, active, destroyed)
- SessionResult: Outcome of a lifecycle operation
- Session: Per-request state machine over a SessionStore
"""

from __future__ import annotations

import copy
import logging
import re
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union, TYPE_CHECKING

from harrier.faults import Fault

from .faults import (
    SessionAlreadyStartedFault,
    SessionEncodingFault,
    SessionNotActiveFault,
    SessionPreconditionFault,
    SessionRegenerationFault,
    SessionStoreCorruptedFault,
    SessionStoreUnavailableFault,
    SessionValueFault,
    hash_session_id,
)

if TYPE_CHECKING:
    from .store import SessionStore


# Values a session payload may hold (checked recursively by Session.set)
SessionValue = Union[str, int, float, bool, None, List["SessionValue"], Dict[str, "SessionValue"]]


# ============================================================================
# SessionID - Opaque Cryptographic Identifier
# ============================================================================

class SessionID:
    """
    Session identifier helpers.

    Rules:
    - Never encode meaning (no user ID, no timestamps)
    - Cryptographically random (16 bytes = 128 bits entropy)
    - Lowercase hex encoding (32 characters, cookie and path safe)

    Example:
        >>> sid = SessionID.generate()
        >>> len(sid)
        32
        >>> SessionID.is_valid(sid)
        True
    """

    NUM_BYTES = 16
    LENGTH = NUM_BYTES * 2
    _PATTERN = re.compile(r"^[0-9a-f]{32}$")

    @classmethod
    def generate(cls) -> str:
        """Generate a new random identifier."""
        return secrets.token_hex(cls.NUM_BYTES)

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        """Check that a value has the shape of a generated identifier."""
        return isinstance(value, str) and cls._PATTERN.match(value) is not None

    @staticmethod
    def hash(value: str | None) -> str | None:
        """Privacy-preserving digest of an identifier, for logs."""
        return hash_session_id(value)


# ============================================================================
# SessionState - Lifecycle States
# ============================================================================

class SessionState(str, Enum):
    """
    Session lifecycle states.

    - IDLE: Not started, or closed (initial and terminal state)
    - ACTIVE: Started; data may be read and mutated
    - DESTROYED: Destroyed during this request; collapses to IDLE on close()
    """

    IDLE = "idle"
    ACTIVE = "active"
    DESTROYED = "destroyed"


# ============================================================================
# SessionResult - Operation Outcome
# ============================================================================

class SessionFailure(str, Enum):
    """Why a lifecycle operation failed."""

    PRECONDITION = "precondition"
    STORE_UNAVAILABLE = "store_unavailable"
    STORE_CORRUPTED = "store_corrupted"
    ENCODING = "encoding"

    @classmethod
    def from_fault(cls, fault: Fault) -> SessionFailure:
        """Classify a fault raised by the store or the state machine."""
        if isinstance(fault, SessionPreconditionFault):
            return cls.PRECONDITION
        if isinstance(fault, SessionStoreCorruptedFault):
            return cls.STORE_CORRUPTED
        if isinstance(fault, (SessionValueFault, SessionEncodingFault)):
            return cls.ENCODING
        if isinstance(fault, SessionRegenerationFault):
            errors = [e for e in (fault.save_error, fault.delete_error) if e is not None]
            if errors:
                return cls.from_fault(errors[0])
        return cls.STORE_UNAVAILABLE


@dataclass(frozen=True)
class SessionResult:
    """
    Outcome of start/close/destroy/regenerate_id.

    Truthy on success. A failed result carries the failure reason and the
    fault describing it, so callers can branch on ``reason`` or re-raise.

    Example:
        >>> result = await session.close()
        >>> if not result:
        ...     log.error("close failed: %s", result.reason)
        >>> result.raise_for_failure()
    """

    ok: bool
    reason: Optional[SessionFailure] = None
    fault: Optional[Fault] = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls) -> SessionResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, fault: Fault) -> SessionResult:
        return cls(ok=False, reason=SessionFailure.from_fault(fault), fault=fault)

    def raise_for_failure(self) -> None:
        """Raise the carried fault if the operation failed."""
        if not self.ok and self.fault is not None:
            raise self.fault


# ============================================================================
# Value validation
# ============================================================================

def _check_value(key: str, value: Any) -> None:
    """Reject values outside the SessionValue set."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _check_value(key, item)
        return
    if isinstance(value, dict):
        for k, v in value.items():
            if not isinstance(k, str):
                raise SessionValueFault(key=key, value_type=f"dict key {type(k).__name__}")
            _check_value(key, v)
        return
    raise SessionValueFault(key=key, value_type=type(value).__name__)


def _normalize(value: Any) -> Any:
    """Tuples become lists so in-memory state matches what a store returns."""
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    return value


# ============================================================================
# Session - Lifecycle State Machine
# ============================================================================

# Store errors a lifecycle operation reports instead of raising
STORE_FAULTS = (
    SessionStoreUnavailableFault,
    SessionStoreCorruptedFault,
    SessionEncodingFault,
    SessionValueFault,
)


class Session:
    """
    One session's lifecycle and payload for a single request.

    The session owns the lifecycle rules; the store only loads, saves and
    deletes payloads by identifier. Sessions know nothing about cookies.

    States::

        IDLE --start()--> ACTIVE --close()--> IDLE
                            |
                        destroy()
                            v
                        DESTROYED --close()--> IDLE
                            |
                            +------start()--> ACTIVE (fresh identifier)

    Data operations (get/set/unset/has/clear) are only valid while ACTIVE
    and raise SessionNotActiveFault otherwise. Lifecycle operations return
    a SessionResult instead of raising.

    After close(), ``id is None`` is the only signal that the session was
    destroyed; callers must check it rather than the result of close().

    Example:
        >>> session = Session(MemoryStore())
        >>> await session.start()
        >>> session.set("user_id", 42)
        >>> await session.close()
        >>> session.id
        '3f1c...'
    """

    __slots__ = (
        "store",
        "logger",
        "_id_factory",
        "_id",
        "_data",
        "_state",
        "_pending_id",
        "_regenerated",
        "_destroyed",
    )

    def __init__(
        self,
        store: SessionStore,
        *,
        id_factory: Callable[[], str] = SessionID.generate,
        logger: logging.Logger | None = None,
    ):
        """
        Create an idle session bound to a store.

        Args:
            store: Persistence backend
            id_factory: Identifier generator (CSPRNG-backed by default)
            logger: Optional logger
        """
        self.store = store
        self.logger = logger or logging.getLogger("harrier.sessions")
        self._id_factory = id_factory
        self._id: str | None = None
        self._data: dict[str, Any] = {}
        self._state = SessionState.IDLE
        self._pending_id: str | None = None
        self._regenerated = False
        self._destroyed = False

    def __repr__(self) -> str:
        return f"Session(id={SessionID.hash(self._id)}, state={self._state.value})"

    # ========================================================================
    # State
    # ========================================================================

    @property
    def id(self) -> str | None:
        """Current identifier; None when never started or destroyed."""
        return self._id

    def get_id(self) -> str | None:
        """Alias of ``id``."""
        return self._id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def started(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def destroyed(self) -> bool:
        """True once destroy() ran, until the next start()."""
        return self._destroyed

    @property
    def pending_regeneration(self) -> bool:
        return self._pending_id is not None

    @property
    def pending_id(self) -> str | None:
        """Identifier that close() will adopt, if regeneration is pending."""
        return self._pending_id

    @property
    def regenerated(self) -> bool:
        """True if the last close() adopted a regenerated identifier."""
        return self._regenerated

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def start(self, session_id: str | None = None) -> SessionResult:
        """
        Start the session, loading its payload from the store.

        Args:
            session_id: Identifier from the client; a new one is generated
                when omitted.

        Returns:
            Success, or a failure with reason PRECONDITION (already active)
            or a store reason. On a store failure the session keeps its
            previous state and exposes no loaded data.
        """
        if self._state is SessionState.ACTIVE:
            fault = SessionAlreadyStartedFault(state=self._state.value)
            self.logger.warning(f"Session start rejected: {fault.message}")
            return SessionResult.failure(fault)

        if session_id is None:
            session_id = self._id_factory()
            created = True
        else:
            created = False

        try:
            payload = await self.store.load(session_id)
        except STORE_FAULTS as fault:
            self.logger.error(
                f"Session load failed for {SessionID.hash(session_id)}: {fault.message}"
            )
            return SessionResult.failure(fault)

        self._id = session_id
        self._data = dict(payload or {})
        self._state = SessionState.ACTIVE
        self._pending_id = None
        self._regenerated = False
        self._destroyed = False

        self.logger.debug(
            f"Session started: {SessionID.hash(session_id)} "
            f"({'new' if created else 'resumed'}, {len(self._data)} keys)"
        )
        return SessionResult.success()

    async def close(self) -> SessionResult:
        """
        Finish the session: persist, reconcile a regeneration, or settle a
        destroy.

        - Idle: failure (PRECONDITION), nothing to close. An idle session
          that was destroyed and not restarted closes again successfully.
        - Destroyed: success without store I/O (the record was removed by
          destroy()).
        - Active: save the payload under the current id. With a pending
          regeneration, delete the old record and save under the new id;
          both steps are attempted and the new id is adopted iff the save
          succeeded.

        The session is idle afterwards whatever the outcome; failed
        persistence is reported, never retried here.
        """
        if self._state is SessionState.IDLE:
            if self._destroyed:
                return SessionResult.success()
            return SessionResult.failure(
                SessionPreconditionFault(operation="close", state=self._state.value)
            )

        if self._state is SessionState.DESTROYED:
            self._state = SessionState.IDLE
            self.logger.debug("Destroyed session closed")
            return SessionResult.success()

        snapshot = copy.deepcopy(self._data)

        if self._pending_id is None:
            result = await self._save(self._id, snapshot)
            self._state = SessionState.IDLE
            if result:
                self.logger.debug(f"Session saved: {SessionID.hash(self._id)}")
            return result

        return await self._close_regenerated(snapshot)

    async def _close_regenerated(self, snapshot: dict[str, Any]) -> SessionResult:
        old_id, new_id = self._id, self._pending_id

        delete_error: Fault | None = None
        save_error: Fault | None = None

        try:
            await self.store.delete(old_id)
        except STORE_FAULTS as fault:
            delete_error = fault

        try:
            await self.store.save(new_id, snapshot)
        except STORE_FAULTS as fault:
            save_error = fault

        if save_error is None:
            self._id = new_id
            self._regenerated = True

        self._pending_id = None
        self._state = SessionState.IDLE

        if delete_error is None and save_error is None:
            self.logger.info(
                f"Session regenerated: {SessionID.hash(old_id)} -> {SessionID.hash(new_id)}"
            )
            return SessionResult.success()

        fault = SessionRegenerationFault(
            old_id=old_id,
            new_id=new_id,
            delete_error=delete_error,
            save_error=save_error,
        )
        if save_error is None:
            self.logger.warning(
                f"Orphaned session record left at {SessionID.hash(old_id)}: "
                f"{delete_error.message}"
            )
        else:
            self.logger.error(f"{fault.message} (old={fault.old_id_hash}, new={fault.new_id_hash})")
        return SessionResult.failure(fault)

    async def destroy(self) -> SessionResult:
        """
        Destroy the session: clear data and id, delete the stored record.

        The delete targets the identifier that was active before clearing,
        so storage is consistent even if close() is never called. The
        session is destroyed in memory even when the delete fails; the
        store failure is reported in the result.
        """
        if self._state is not SessionState.ACTIVE:
            return SessionResult.failure(
                SessionPreconditionFault(operation="destroy", state=self._state.value)
            )

        old_id = self._id
        self._data = {}
        self._id = None
        self._pending_id = None
        self._state = SessionState.DESTROYED
        self._destroyed = True

        try:
            await self.store.delete(old_id)
        except STORE_FAULTS as fault:
            self.logger.error(
                f"Failed to delete destroyed session {SessionID.hash(old_id)}: {fault.message}"
            )
            return SessionResult.failure(fault)

        self.logger.info(f"Session destroyed: {SessionID.hash(old_id)}")
        return SessionResult.success()

    def regenerate_id(self) -> SessionResult:
        """
        Schedule a new identifier for this session.

        Nothing touches the store until close(), which moves the payload
        from the original identifier to the newest pending one.
        """
        if self._state is not SessionState.ACTIVE:
            return SessionResult.failure(
                SessionPreconditionFault(operation="regenerate id of", state=self._state.value)
            )

        self._pending_id = self._id_factory()
        self.logger.debug(
            f"Session regeneration scheduled: {SessionID.hash(self._id)} -> "
            f"{SessionID.hash(self._pending_id)}"
        )
        return SessionResult.success()

    async def _save(self, session_id: str, data: dict[str, Any]) -> SessionResult:
        try:
            await self.store.save(session_id, data)
        except STORE_FAULTS as fault:
            self.logger.error(
                f"Failed to persist session {SessionID.hash(session_id)}: {fault.message}"
            )
            return SessionResult.failure(fault)
        return SessionResult.success()

    # ========================================================================
    # Data
    # ========================================================================

    def _require_active(self, operation: str) -> None:
        if self._state is not SessionState.ACTIVE:
            raise SessionNotActiveFault(operation=operation, state=self._state.value)

    def get(self, key: str, default: Any = None) -> Any:
        """Get data value, or ``default`` if the key is absent."""
        self._require_active("read")
        return self._data.get(key, default)

    def set(self, key: str, value: SessionValue) -> None:
        """Set data value (in memory until close())."""
        self._require_active("write")
        if not isinstance(key, str):
            raise SessionValueFault(key=repr(key), value_type=f"key {type(key).__name__}")
        _check_value(key, value)
        self._data[key] = _normalize(value)

    def unset(self, key: str) -> None:
        """Remove a key if present."""
        self._require_active("write")
        self._data.pop(key, None)

    def has(self, key: str) -> bool:
        self._require_active("read")
        return key in self._data

    def clear(self) -> None:
        """Remove all keys (the session itself stays alive)."""
        self._require_active("write")
        self._data.clear()

    def keys(self) -> List[str]:
        self._require_active("read")
        return list(self._data.keys())

    def items(self) -> Iterator[Tuple[str, Any]]:
        self._require_active("read")
        return iter(list(self._data.items()))

    def to_dict(self) -> dict[str, Any]:
        """Copy of the current payload."""
        self._require_active("read")
        return copy.deepcopy(self._data)

    def __getitem__(self, key: str) -> Any:
        self._require_active("read")
        return self._data[key]

    def __setitem__(self, key: str, value: SessionValue) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        self._require_active("write")
        del self._data[key]

    def __contains__(self, key: str) -> bool:
        return self.has(key)
