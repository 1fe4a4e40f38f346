"""
HarrierSessions - Session storage abstraction.

Defines SessionStore protocol and concrete implementations:
- MemoryStore: In-memory storage (dev/testing, single process)
- FileStore: File-based storage (single host)
- RedisStore: Redis-based storage (production), see redis_store.py

Stores only persist payloads by identifier. Lifecycle rules (when to save,
what to delete on regeneration) belong to Session.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import os
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol

from .faults import (
    SessionEncodingFault,
    SessionStoreCorruptedFault,
    SessionStoreUnavailableFault,
    hash_session_id,
)
from .serializers import JsonSessionSerializer, SessionSerializer

logger = logging.getLogger("harrier.sessions.store")


# ============================================================================
# SessionStore Protocol
# ============================================================================

class SessionStore(Protocol):
    """
    Abstract session storage interface.

    Stores are responsible ONLY for persistence - they do NOT enforce
    lifecycle rules. Failures are raised as SessionStoreUnavailableFault or
    SessionStoreCorruptedFault; Session turns them into failed results.

    Implementations must tolerate concurrent calls for different
    identifiers. Concurrent saves for the same identifier: last write wins.
    """

    async def load(self, session_id: str) -> dict[str, Any]:
        """
        Load payload from store.

        Args:
            session_id: Session identifier

        Returns:
            Stored payload, or an empty dict for an unknown identifier

        Raises:
            SessionStoreUnavailableFault: Store is unavailable
            SessionStoreCorruptedFault: Data is corrupted
        """
        ...

    async def save(self, session_id: str, data: Mapping[str, Any]) -> None:
        """
        Replace the payload stored under an identifier.

        Raises:
            SessionStoreUnavailableFault: Store is unavailable
            SessionEncodingFault: Payload cannot be encoded
        """
        ...

    async def delete(self, session_id: str) -> None:
        """
        Delete the payload stored under an identifier (no-op if absent).

        Raises:
            SessionStoreUnavailableFault: Store is unavailable
        """
        ...

    async def exists(self, session_id: str) -> bool:
        """
        Check whether a live record is stored under an identifier.

        Raises:
            SessionStoreUnavailableFault: Store is unavailable
        """
        ...


# ============================================================================
# MemoryStore - In-Memory Storage
# ============================================================================

@dataclass
class _Record:
    data: dict[str, Any]
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class MemoryStore:
    """
    In-memory session storage for development and testing.

    Features:
    - Fast in-memory dict storage
    - Optional TTL per record (refreshed on save)
    - Max session limit (LRU eviction)
    - Copies on load/save, so callers never share state with the store

    NOT suitable for multi-process deployments (nothing is shared and
    nothing survives a restart).

    Example:
        >>> store = MemoryStore(max_sessions=10000, ttl=900)
        >>> await store.save(session_id, {"user_id": 42})
        >>> await store.load(session_id)
        {'user_id': 42}
    """

    name = "memory"

    def __init__(self, max_sessions: int = 10000, ttl: float | None = None):
        """
        Initialize memory store.

        Args:
            max_sessions: Maximum sessions to keep (LRU eviction)
            ttl: Seconds a record lives after its last save (None = forever)
        """
        self.max_sessions = max_sessions
        self.ttl = ttl
        self._records: OrderedDict[str, _Record] = OrderedDict()
        self._lock = asyncio.Lock()

    async def load(self, session_id: str) -> dict[str, Any]:
        """Load payload from memory."""
        async with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return {}

            if record.is_expired(time.monotonic()):
                del self._records[session_id]
                return {}

            # Update access order for LRU
            self._records.move_to_end(session_id)
            return copy.deepcopy(record.data)

    async def save(self, session_id: str, data: Mapping[str, Any]) -> None:
        """Save payload to memory."""
        async with self._lock:
            # Evict if at capacity and this is a new session
            if session_id not in self._records and len(self._records) >= self.max_sessions:
                self._evict_lru()

            expires_at = time.monotonic() + self.ttl if self.ttl else None
            self._records[session_id] = _Record(data=copy.deepcopy(dict(data)), expires_at=expires_at)
            self._records.move_to_end(session_id)

    async def delete(self, session_id: str) -> None:
        """Delete payload from memory."""
        async with self._lock:
            self._records.pop(session_id, None)

    async def exists(self, session_id: str) -> bool:
        """Check if a live record exists."""
        async with self._lock:
            record = self._records.get(session_id)
            return record is not None and not record.is_expired(time.monotonic())

    async def cleanup_expired(self) -> int:
        """Remove expired records."""
        now = time.monotonic()
        async with self._lock:
            expired = [sid for sid, record in self._records.items() if record.is_expired(now)]
            for sid in expired:
                del self._records[sid]
        return len(expired)

    async def shutdown(self) -> None:
        """Shutdown store (clear memory)."""
        async with self._lock:
            self._records.clear()

    def _evict_lru(self) -> None:
        """Evict least recently used record."""
        if not self._records:
            return
        oldest_id, _ = self._records.popitem(last=False)
        logger.debug(f"Evicted session {hash_session_id(oldest_id)} (capacity {self.max_sessions})")

    def get_stats(self) -> dict[str, Any]:
        """Get store statistics."""
        return {
            "total_sessions": len(self._records),
            "max_sessions": self.max_sessions,
            "utilization": len(self._records) / self.max_sessions if self.max_sessions > 0 else 0,
        }


# ============================================================================
# FileStore - File-Based Storage
# ============================================================================

class FileStore:
    """
    File-based session storage.

    Features:
    - One file per session
    - Atomic writes (write to temp file, then rename)
    - Pluggable serializer (JSON by default, Fernet for encryption at rest)
    - Optional TTL based on file modification time

    Suitable for a single host; no cross-host locking.

    Example:
        >>> store = FileStore(directory="/var/lib/app/sessions")
        >>> await store.save(session_id, {"cart": [1, 2]})
        >>> await store.load(session_id)
        {'cart': [1, 2]}
    """

    name = "file"
    suffix = ".session"

    # Only these identifiers map to file names
    _SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")

    def __init__(
        self,
        directory: str | Path,
        serializer: SessionSerializer | None = None,
        ttl: float | None = None,
    ):
        """
        Initialize file store.

        Args:
            directory: Directory to store session files
            serializer: Payload serializer (JSON if omitted)
            ttl: Seconds since last save after which a file is ignored
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.serializer = serializer or JsonSessionSerializer()
        self.ttl = ttl
        self._lock = asyncio.Lock()

    def _get_path(self, session_id: str) -> Path:
        """Get file path for session."""
        if not self._SAFE_ID.match(session_id):
            raise SessionStoreUnavailableFault(
                store_name=self.name,
                cause="identifier is not usable as a file name",
            )
        return self.directory / f"{session_id}{self.suffix}"

    def _is_expired(self, path: Path, now: float) -> bool:
        return self.ttl is not None and now - path.stat().st_mtime >= self.ttl

    async def load(self, session_id: str) -> dict[str, Any]:
        """Load payload from file."""
        path = self._get_path(session_id)

        async with self._lock:
            try:
                if not path.exists():
                    return {}
                if self._is_expired(path, time.time()):
                    path.unlink()
                    return {}
                raw = path.read_bytes()
            except OSError as e:
                raise SessionStoreUnavailableFault(store_name=self.name, cause=str(e))

        try:
            return self.serializer.deserialize(raw)
        except ValueError as e:
            raise SessionStoreCorruptedFault(
                store_name=self.name,
                session_id=session_id,
                cause=str(e),
            )

    async def save(self, session_id: str, data: Mapping[str, Any]) -> None:
        """Save payload to file."""
        path = self._get_path(session_id)

        try:
            raw = self.serializer.serialize(data)
        except ValueError as e:
            raise SessionEncodingFault(store_name=self.name, session_id=session_id, cause=str(e))

        async with self._lock:
            try:
                # Write file atomically (write to temp, then rename)
                temp_path = path.with_suffix(f".{os.getpid()}.tmp")
                temp_path.write_bytes(raw)
                temp_path.replace(path)
            except OSError as e:
                raise SessionStoreUnavailableFault(store_name=self.name, cause=str(e))

    async def delete(self, session_id: str) -> None:
        """Delete session file."""
        path = self._get_path(session_id)

        async with self._lock:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise SessionStoreUnavailableFault(store_name=self.name, cause=str(e))

    async def exists(self, session_id: str) -> bool:
        """Check if a live session file exists."""
        path = self._get_path(session_id)
        return path.exists() and not self._is_expired(path, time.time())

    async def cleanup_expired(self) -> int:
        """Remove expired session files."""
        if self.ttl is None:
            return 0

        now = time.time()
        removed = 0

        async with self._lock:
            for path in self.directory.glob(f"*{self.suffix}"):
                try:
                    if self._is_expired(path, now):
                        path.unlink()
                        removed += 1
                except FileNotFoundError:
                    continue

        return removed

    async def shutdown(self) -> None:
        """Shutdown store (no-op for files)."""

    def get_stats(self) -> dict[str, Any]:
        """Get store statistics."""
        paths = list(self.directory.glob(f"*{self.suffix}"))
        return {
            "total_sessions": len(paths),
            "total_size_bytes": sum(p.stat().st_size for p in paths),
            "directory": str(self.directory),
        }
