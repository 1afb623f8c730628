"""Receive-chain stepping and the state changes a successful decryption implies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Tuple, Union

from .common import CryptoProvider


@dataclass(frozen=True)
class OldKey:
    """The message key was found among the stored skipped keys."""


@dataclass(frozen=True)
class CurrentChain:
    """The message key belongs to the current receive chain.

    ``chain_key`` is the receive chain key after the message, and
    ``message_keys`` are the keys of the messages skipped before it.
    """

    chain_key: Any
    message_keys: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "message_keys", tuple(self.message_keys))


@dataclass(frozen=True)
class NextChain:
    """The message key belongs to the sender's next receive chain.

    ``root_key`` and ``chain_key`` are the keys after the Diffie-Hellman
    ratchet step, and ``message_keys`` are the keys of the messages skipped
    in the new chain before this one.
    """

    root_key: Any
    chain_key: Any
    message_keys: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "message_keys", tuple(self.message_keys))


Diff = Union[OldKey, CurrentChain, NextChain]


def skip_message_keys(
    provider: CryptoProvider, chain_key: Any, skip: int
) -> Tuple[Any, List[Any]]:
    """Take ``skip + 1`` steps along a chain.

    Returns the final chain key and every message key derived on the way,
    in order; the last message key is that of the wanted message.
    """
    if isinstance(skip, bool) or not isinstance(skip, int):
        raise TypeError("skip must be an int")
    if skip < 0:
        raise ValueError("skip must not be negative")
    message_keys: List[Any] = []
    for _ in range(skip + 1):
        chain_key, message_key = provider.kdf_ck(chain_key)
        message_keys.append(message_key)
    return chain_key, message_keys