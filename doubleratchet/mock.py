"""A deterministic, insecure crypto provider and random source for tests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple

from .common import (
    CryptoProvider,
    DecryptFailureError,
    InvalidDataError,
    InvalidKeyError,
    KeyPair,
)

_ROOT_KEY_LEN = 2
_CHAIN_KEY_LEN = 3
_U64_LIMIT = 1 << 64


def _check_byte(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int")
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must fit in one byte")


def _fixed_bytes(key: Any, length: int) -> bytes:
    data = bytes(key)
    if len(data) != length:
        raise InvalidKeyError(f"expected a key of {length} bytes, got {len(data)}")
    return data


@dataclass(frozen=True)
class MockPublicKey:
    """A one-byte public key."""

    value: int

    def __post_init__(self) -> None:
        _check_byte("value", self.value)

    def __bytes__(self) -> bytes:
        return bytes([self.value])


@dataclass(frozen=True)
class MockKeyPair(KeyPair):
    """A one-byte private key together with its public key."""

    private: int
    public_key: MockPublicKey

    def __post_init__(self) -> None:
        _check_byte("private", self.private)

    def public(self) -> MockPublicKey:
        return self.public_key

    def private_bytes(self) -> bytes:
        return bytes([self.private])


class MockCryptoProvider(CryptoProvider):
    """Trivial primitives that make ratchet behaviour easy to follow.

    Root keys are two bytes, chain and message keys three bytes, shared
    secrets a single byte value. "Encryption" prefixes the message key and
    appends the associated data.
    """

    def new_public_key(self, key: bytes) -> MockPublicKey:
        data = bytes(key)
        if len(data) != 1:
            raise InvalidKeyError()
        return MockPublicKey(data[0])

    def new_root_key(self, key: bytes) -> bytes:
        return _fixed_bytes(key, _ROOT_KEY_LEN)

    def new_chain_key(self, key: bytes) -> bytes:
        return _fixed_bytes(key, _CHAIN_KEY_LEN)

    def generate_key_pair(self, rng: Any) -> MockKeyPair:
        n = rng.next_u32() & 0xFF
        return MockKeyPair(n, MockPublicKey((n + 1) & 0xFF))

    def key_pair_from_bytes(self, private: bytes, public: bytes) -> MockKeyPair:
        private, public = bytes(private), bytes(public)
        if len(private) != 1 or len(public) != 1:
            raise InvalidDataError()
        return MockKeyPair(private[0], MockPublicKey(public[0]))

    def diffie_hellman(self, us: MockKeyPair, them: MockPublicKey) -> int:
        return (us.private + them.value) & 0xFF

    def kdf_rk(self, root_key: Any, shared_secret: int) -> Tuple[bytes, bytes]:
        rk = _fixed_bytes(root_key, _ROOT_KEY_LEN)
        _check_byte("shared_secret", shared_secret)
        return bytes([rk[0], shared_secret]), bytes([rk[0], rk[1], 0])

    def kdf_ck(self, chain_key: Any) -> Tuple[bytes, bytes]:
        ck = _fixed_bytes(chain_key, _CHAIN_KEY_LEN)
        return bytes([ck[0], ck[1], (ck[2] + 1) & 0xFF]), ck

    def encrypt(self, key: Any, plaintext: bytes, associated_data: bytes) -> bytes:
        return bytes(key) + bytes(plaintext) + bytes(associated_data)

    def decrypt(self, key: Any, ciphertext: bytes, associated_data: bytes) -> bytes:
        mk = bytes(key)
        ct = bytes(ciphertext)
        ad = bytes(associated_data)
        if (
            len(ct) < _CHAIN_KEY_LEN + len(ad)
            or ct[:_CHAIN_KEY_LEN] != mk
            or not ct.endswith(ad)
        ):
            raise DecryptFailureError()
        return ct[_CHAIN_KEY_LEN : len(ct) - len(ad)]


@dataclass
class StepRng:
    """Counter that yields 1, 2, 3, ... as its "random" numbers."""

    state: int = 0

    def next_u64(self) -> int:
        self.state = (self.state + 1) % _U64_LIMIT
        return self.state

    def next_u32(self) -> int:
        return self.next_u64() & 0xFFFFFFFF