"""Shared types, limits and errors for the Double Ratchet."""

from __future__ import annotations

import json
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Tuple

DEFAULT_MAX_SKIP = 1000
"""Upper limit on receive-chain ratchet steps taken when trying to decrypt."""

DEFAULT_MKS_CAPACITY = 3000
"""Maximum number of skipped message keys stored per double ratchet id."""

_U64_LIMIT = 1 << 64


class DoubleRatchetError(Exception):
    """Base class of every error raised by this package."""

    default_message = "Double ratchet error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message if message is not None else self.default_message)


class InvalidDataError(DoubleRatchetError, ValueError):
    """Data is invalid or cannot be processed."""

    default_message = "Data is invalid or cannot be processed"


class InvalidKeyError(DoubleRatchetError, ValueError):
    """Key is invalid or cannot be processed."""

    default_message = "Key is invalid or cannot be processed"


class EncryptUninitError(DoubleRatchetError):
    """Encrypting was attempted before the state could send."""

    default_message = "Encrypt not yet initialized (you must receive a message first)"


class DecryptError(DoubleRatchetError):
    """Base class of the errors raised while decrypting."""

    default_message = "Could not decrypt the message"


class DecryptFailureError(DecryptError):
    """The ciphertext, associated data or header did not verify."""

    default_message = "Error during verify-decrypting"


class MessageKeyNotFoundError(DecryptError):
    """The message key needed for decryption is not available."""

    default_message = "Could not find the message key required for decryption"


class SkipTooLargeError(DecryptError):
    """A header message counter is too large."""

    default_message = "Header message counter is too large"


class StorageFullError(DecryptError):
    """The store of skipped message keys is full."""

    default_message = "Storage for skipped messages is full"


def _check_counter(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int")
    if not 0 <= value < _U64_LIMIT:
        raise ValueError(f"{name} must fit in an unsigned 64-bit integer")


def _key_bytes(key: Any) -> bytes:
    if isinstance(key, (bytes, bytearray, memoryview)):
        return bytes(key)
    return bytes(key)


@dataclass(frozen=True)
class Header:
    """Header sent alongside a ciphertext.

    ``dh`` is the sender's current public key, ``n`` the message number in the
    current sending chain and ``pn`` the length of the previous sending chain.
    """

    dh: Any
    n: int
    pn: int

    def __post_init__(self) -> None:
        _check_counter("n", self.n)
        _check_counter("pn", self.pn)

    def to_bytes(self) -> bytes:
        """Public key bytes, then ``pn`` and ``n`` as big-endian 64-bit integers."""
        return (
            _key_bytes(self.dh)
            + self.pn.to_bytes(8, "big")
            + self.n.to_bytes(8, "big")
        )

    def __bytes__(self) -> bytes:
        return self.to_bytes()


def _bytes_to_json(value: Optional[bytes]) -> Optional[list]:
    return None if value is None else list(value)


def _bytes_from_json(name: str, value: Any, optional: bool = False) -> Optional[bytes]:
    if value is None and optional:
        return None
    if not isinstance(value, list):
        raise InvalidDataError(f"field {name!r} must be a list of bytes")
    try:
        return bytes(value)
    except (TypeError, ValueError) as exc:
        raise InvalidDataError(f"field {name!r} must be a list of bytes") from exc


def _counter_from_json(name: str, value: Any) -> int:
    try:
        _check_counter(name, value)
    except (TypeError, ValueError) as exc:
        raise InvalidDataError(f"field {name!r} must be an unsigned 64-bit integer") from exc
    return value


@dataclass
class SessionState:
    """Persistable snapshot of a ratchet, without its skipped message keys."""

    id: int
    dhs_priv: bytes
    dhs_pub: bytes
    dhr: Optional[bytes]
    rk: bytes
    cks: Optional[bytes]
    ckr: Optional[bytes]
    ns: int
    nr: int
    pn: int

    def encode(self) -> str:
        """Serialise the state to a compact JSON string."""
        payload = {
            "id": self.id,
            "dhs_priv": _bytes_to_json(self.dhs_priv),
            "dhs_pub": _bytes_to_json(self.dhs_pub),
            "dhr": _bytes_to_json(self.dhr),
            "rk": _bytes_to_json(self.rk),
            "cks": _bytes_to_json(self.cks),
            "ckr": _bytes_to_json(self.ckr),
            "ns": self.ns,
            "nr": self.nr,
            "pn": self.pn,
        }
        return json.dumps(payload, separators=(",", ":"))

    @classmethod
    def decode(cls, data: str) -> "SessionState":
        """Parse a state produced by :meth:`encode`; raises InvalidDataError."""
        try:
            payload = json.loads(data)
        except (TypeError, ValueError) as exc:
            raise InvalidDataError("session state is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise InvalidDataError("session state must be a JSON object")
        required = ("id", "dhs_priv", "dhs_pub", "rk", "ns", "nr", "pn")
        missing = [name for name in required if name not in payload]
        if missing:
            raise InvalidDataError(f"session state lacks fields: {', '.join(missing)}")
        return cls(
            id=_counter_from_json("id", payload["id"]),
            dhs_priv=_bytes_from_json("dhs_priv", payload["dhs_priv"]),
            dhs_pub=_bytes_from_json("dhs_pub", payload["dhs_pub"]),
            dhr=_bytes_from_json("dhr", payload.get("dhr"), optional=True),
            rk=_bytes_from_json("rk", payload["rk"]),
            cks=_bytes_from_json("cks", payload.get("cks"), optional=True),
            ckr=_bytes_from_json("ckr", payload.get("ckr"), optional=True),
            ns=_counter_from_json("ns", payload["ns"]),
            nr=_counter_from_json("nr", payload["nr"]),
            pn=_counter_from_json("pn", payload["pn"]),
        )


class KeyPair(ABC):
    """A private/public key pair for the Diffie-Hellman calculation."""

    @abstractmethod
    def public(self) -> Any:
        """The public half of the pair."""

    @abstractmethod
    def private_bytes(self) -> bytes:
        """The private half as bytes, for persisting the session state."""


class CryptoProvider(ABC):
    """The cryptographic primitives a double ratchet is built on.

    Public keys must be hashable, comparable and convertible with ``bytes()``;
    root and chain keys must be convertible with ``bytes()`` as well.
    ``encrypt`` must authenticate the associated data, which holds the header.
    """

    @abstractmethod
    def new_public_key(self, key: bytes) -> Any:
        """Build a public key from bytes; raises InvalidKeyError."""

    @abstractmethod
    def new_root_key(self, key: bytes) -> Any:
        """Build a root key from bytes; raises InvalidKeyError."""

    @abstractmethod
    def new_chain_key(self, key: bytes) -> Any:
        """Build a chain key from bytes; raises InvalidKeyError."""

    @abstractmethod
    def generate_key_pair(self, rng: Any) -> KeyPair:
        """Generate a fresh key pair using ``rng``."""

    @abstractmethod
    def key_pair_from_bytes(self, private: bytes, public: bytes) -> KeyPair:
        """Rebuild a key pair from persisted bytes; raises DoubleRatchetError."""

    @abstractmethod
    def diffie_hellman(self, us: KeyPair, them: Any) -> Any:
        """Compute the shared secret of our key pair and their public key."""

    @abstractmethod
    def kdf_rk(self, root_key: Any, shared_secret: Any) -> Tuple[Any, Any]:
        """Derive a new (root key, chain key) pair."""

    @abstractmethod
    def kdf_ck(self, chain_key: Any) -> Tuple[Any, Any]:
        """Derive a new (chain key, message key) pair."""

    @abstractmethod
    def encrypt(self, key: Any, plaintext: bytes, associated_data: bytes) -> bytes:
        """Authenticate-encrypt ``plaintext`` together with ``associated_data``."""

    @abstractmethod
    def decrypt(self, key: Any, ciphertext: bytes, associated_data: bytes) -> bytes:
        """Verify-decrypt ``ciphertext``; raises DecryptFailureError."""


class SystemRng:
    """Random number source backed by the operating system."""

    def next_u64(self) -> int:
        """A uniformly random unsigned 64-bit integer."""
        return secrets.randbits(64)

    def next_u32(self) -> int:
        """A uniformly random unsigned 32-bit integer."""
        return secrets.randbits(32)