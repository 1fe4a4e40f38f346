"""
HarrierSessions - Payload serializers.

Stores that keep bytes (files, Redis) encode payloads through a serializer:
- JsonSessionSerializer: plain JSON (default, human-readable)
- FernetSessionSerializer: JSON encrypted and authenticated with Fernet

Serializers raise ValueError on undecodable input; stores turn that into
SessionStoreCorruptedFault.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping, Protocol, Union

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger("harrier.sessions.serializers")


class SessionSerializer(Protocol):
    """Encode/decode a session payload to/from bytes."""

    def serialize(self, data: Mapping[str, Any]) -> bytes:
        ...

    def deserialize(self, raw: bytes) -> dict[str, Any]:
        ...


class JsonSessionSerializer:
    """
    JSON serializer. Human-readable and portable.

    Default serializer. Session values are restricted to JSON types;
    anything else raises ValueError.
    """

    def serialize(self, data: Mapping[str, Any]) -> bytes:
        """Serialize payload to JSON bytes."""
        try:
            return json.dumps(dict(data), ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as e:
            logger.warning(f"JSON serialization failed: {e}")
            raise ValueError(f"Session payload is not JSON serializable: {e}") from e

    def deserialize(self, raw: bytes) -> dict[str, Any]:
        """Deserialize JSON bytes to a payload dict."""
        try:
            data = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"JSON deserialization failed: {e}")
            raise ValueError(f"Session payload is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Session payload must be an object, got {type(data).__name__}")
        return data


class FernetSessionSerializer:
    """
    Encrypted serializer: JSON sealed with Fernet (AES-128-CBC + HMAC).

    Keeps payloads confidential and tamper-evident at rest, e.g. in a
    shared Redis. Several keys may be given for rotation: the first one
    encrypts, all of them are tried for decryption.

    Example:
        >>> serializer = FernetSessionSerializer(Fernet.generate_key())
        >>> store = RedisStore(url="redis://cache:6379/0", serializer=serializer)
    """

    def __init__(
        self,
        keys: Union[str, bytes, Iterable[Union[str, bytes]]],
        ttl: int | None = None,
    ):
        """
        Args:
            keys: One url-safe base64 Fernet key, or several for rotation
            ttl: Reject tokens older than this many seconds on decrypt
        """
        if isinstance(keys, (str, bytes)):
            keys = [keys]
        fernets = [Fernet(k) for k in keys]
        if not fernets:
            raise ValueError("FernetSessionSerializer requires at least one key")

        self._fernet = MultiFernet(fernets)
        self._ttl = ttl
        self._json = JsonSessionSerializer()

    @staticmethod
    def generate_key() -> str:
        """Create a new random key (url-safe base64 text)."""
        return Fernet.generate_key().decode("ascii")

    def serialize(self, data: Mapping[str, Any]) -> bytes:
        return self._fernet.encrypt(self._json.serialize(data))

    def deserialize(self, raw: bytes) -> dict[str, Any]:
        try:
            plain = self._fernet.decrypt(raw, ttl=self._ttl)
        except InvalidToken as e:
            logger.warning("Encrypted session payload rejected (bad key, tampered or expired)")
            raise ValueError("Session payload could not be decrypted") from e
        return self._json.deserialize(plain)


def get_serializer(name: str = "json", *, encryption_key: Any = None) -> SessionSerializer:
    """
    Factory for serializer instances.

    Args:
        name: "json" or "fernet"
        encryption_key: Key(s) for "fernet"

    Returns:
        Serializer instance
    """
    if name == "json":
        return JsonSessionSerializer()
    if name == "fernet":
        if not encryption_key:
            raise ValueError("The 'fernet' serializer requires an encryption key")
        return FernetSessionSerializer(encryption_key)
    raise ValueError(f"Unknown serializer: {name}. Options: ['json', 'fernet']")
