"""Storage for the message keys of skipped messages."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from itertools import count
from typing import Any, Dict, Hashable, Iterable, Optional

from .common import DEFAULT_MAX_SKIP, DEFAULT_MKS_CAPACITY


class MessageKeyCache(ABC):
    """Holds the message keys of messages that were skipped over.

    Keys are addressed by the ratchet's session id, the sender's public key
    ``dh`` and the message number ``n`` within that sender's chain.
    """

    @abstractmethod
    def max_skip(self) -> int:
        """Most ratchet steps allowed in a single receive chain."""

    @abstractmethod
    def max_capacity(self) -> int:
        """Most message keys stored in total for one session id."""

    @abstractmethod
    def get(self, session_id: int, dh: Hashable, n: int) -> Optional[Any]:
        """The message key at ``(dh, n)``, or None if it is not stored."""

    @abstractmethod
    def can_store(self, session_id: int, dh: Hashable, n: int) -> bool:
        """Whether ``n`` more message keys fit for ``session_id``."""

    @abstractmethod
    def extend(self, session_id: int, dh: Hashable, n: int, mks: Iterable[Any]) -> None:
        """Store ``mks`` at ``(dh, n)``, ``(dh, n + 1)`` and onwards."""

    @abstractmethod
    def remove(self, session_id: int, dh: Hashable, n: int) -> None:
        """Delete the message key at ``(dh, n)``, which is assumed stored."""


def _check_limit(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must not be negative")
    return value


class DefaultKeyStore(MessageKeyCache):
    """In-memory, thread-safe message key cache."""

    def __init__(
        self,
        max_skip: int = DEFAULT_MAX_SKIP,
        max_capacity: int = DEFAULT_MKS_CAPACITY,
    ) -> None:
        self._max_skip = _check_limit("max_skip", max_skip)
        self._max_capacity = _check_limit("max_capacity", max_capacity)
        self._lock = threading.Lock()
        self._keys: Dict[int, Dict[Hashable, Dict[int, Any]]] = {}

    def max_skip(self) -> int:
        return self._max_skip

    def max_capacity(self) -> int:
        return self._max_capacity

    def get(self, session_id: int, dh: Hashable, n: int) -> Optional[Any]:
        with self._lock:
            return self._keys.get(session_id, {}).get(dh, {}).get(n)

    def stored_count(self, session_id: int) -> int:
        """Number of message keys currently stored for ``session_id``."""
        with self._lock:
            return self._count(session_id)

    def can_store(self, session_id: int, dh: Hashable, n: int) -> bool:
        with self._lock:
            return self._count(session_id) + n <= self._max_capacity

    def extend(self, session_id: int, dh: Hashable, n: int, mks: Iterable[Any]) -> None:
        with self._lock:
            chains = self._keys.setdefault(session_id, {})
            chains.setdefault(dh, {}).update(zip(count(n), mks))

    def remove(self, session_id: int, dh: Hashable, n: int) -> None:
        with self._lock:
            chains = self._keys.get(session_id)
            if chains is None or dh not in chains:
                return
            chain = chains[dh]
            if len(chain) == 1:
                del chains[dh]
            else:
                chain.pop(n, None)

    def _count(self, session_id: int) -> int:
        return sum(len(chain) for chain in self._keys.get(session_id, {}).values())

    def __repr__(self) -> str:
        with self._lock:
            sessions = {sid: self._count(sid) for sid in self._keys}
        return (
            f"{type(self).__name__}(max_skip={self._max_skip}, "
            f"max_capacity={self._max_capacity}, stored={sessions})"
        )