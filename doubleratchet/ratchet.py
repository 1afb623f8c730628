"""The Double Ratchet session: key agreement bookkeeping for encrypting and decrypting."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple

from .chain import CurrentChain, Diff, NextChain, OldKey, skip_message_keys
from .common import (
    CryptoProvider,
    DoubleRatchetError,
    EncryptUninitError,
    Header,
    InvalidKeyError,
    KeyPair,
    MessageKeyNotFoundError,
    SessionState,
    SkipTooLargeError,
    StorageFullError,
    SystemRng,
)
from .keystore import DefaultKeyStore, MessageKeyCache


def _rebuild_key(factory: Callable[[bytes], Any], data: bytes) -> Any:
    try:
        return factory(data)
    except (DoubleRatchetError, ValueError) as exc:
        raise InvalidKeyError() from exc


def _optional_bytes(key: Any) -> Optional[bytes]:
    return None if key is None else bytes(key)


class DoubleRatchet:
    """Encrypts and decrypts messages with forward secrecy and post-compromise security.

    Create one with :meth:`new_alice` (the party that knows the other's public
    key) or :meth:`new_bob`, then use :meth:`ratchet_encrypt` and
    :meth:`ratchet_decrypt`; the internal state is updated automatically.
    A failed decryption leaves the state unchanged.
    """

    def __init__(
        self,
        provider: CryptoProvider,
        *,
        session_id: int,
        dhs: KeyPair,
        dhr: Any,
        rk: Any,
        cks: Any,
        ckr: Any,
        ns: int = 0,
        nr: int = 0,
        pn: int = 0,
        message_key_cache: Optional[MessageKeyCache] = None,
    ) -> None:
        self.provider = provider
        self.id = session_id
        self.dhs = dhs
        self.dhr = dhr
        self.rk = rk
        self.cks = cks
        self.ckr = ckr
        self.ns = ns
        self.nr = nr
        self.pn = pn
        self.message_key_cache: MessageKeyCache = (
            message_key_cache if message_key_cache is not None else DefaultKeyStore()
        )

    @classmethod
    def new_alice(
        cls,
        provider: CryptoProvider,
        shared_secret: Any,
        them: Any,
        initial_receive: Any = None,
        rng: Any = None,
    ) -> "DoubleRatchet":
        """Initialise the sender of the first message.

        With ``initial_receive`` set (and the same key given to Bob as
        ``initial_send``) either party may send first.
        """
        rng = rng if rng is not None else SystemRng()
        dhs = provider.generate_key_pair(rng)
        rk, cks = provider.kdf_rk(shared_secret, provider.diffie_hellman(dhs, them))
        return cls(
            provider,
            session_id=rng.next_u64(),
            dhs=dhs,
            dhr=them,
            rk=rk,
            cks=cks,
            ckr=initial_receive,
        )

    @classmethod
    def new_bob(
        cls,
        provider: CryptoProvider,
        shared_secret: Any,
        us: KeyPair,
        initial_send: Any = None,
        rng: Any = None,
    ) -> "DoubleRatchet":
        """Initialise the receiver of the first message.

        Without ``initial_send`` Bob must receive a message before he can send.
        """
        rng = rng if rng is not None else SystemRng()
        return cls(
            provider,
            session_id=rng.next_u64(),
            dhs=us,
            dhr=None,
            rk=shared_secret,
            cks=initial_send,
            ckr=None,
        )

    @classmethod
    def from_session_state(
        cls,
        provider: CryptoProvider,
        state: SessionState,
        cache: Optional[MessageKeyCache] = None,
    ) -> "DoubleRatchet":
        """Restore a ratchet from a persisted state, optionally with its key cache."""
        dhs = provider.key_pair_from_bytes(state.dhs_priv, state.dhs_pub)
        dhr = None if state.dhr is None else _rebuild_key(provider.new_public_key, state.dhr)
        rk = _rebuild_key(provider.new_root_key, state.rk)
        cks = None if state.cks is None else _rebuild_key(provider.new_chain_key, state.cks)
        ckr = None if state.ckr is None else _rebuild_key(provider.new_chain_key, state.ckr)
        return cls(
            provider,
            session_id=state.id,
            dhs=dhs,
            dhr=dhr,
            rk=rk,
            cks=cks,
            ckr=ckr,
            ns=state.ns,
            nr=state.nr,
            pn=state.pn,
            message_key_cache=cache,
        )

    def session_state(self) -> SessionState:
        """Snapshot of the state, private keys included; skipped keys are not."""
        return SessionState(
            id=self.id,
            dhs_priv=bytes(self.dhs.private_bytes()),
            dhs_pub=bytes(self.dhs.public()),
            dhr=_optional_bytes(self.dhr),
            rk=bytes(self.rk),
            cks=_optional_bytes(self.cks),
            ckr=_optional_bytes(self.ckr),
            ns=self.ns,
            nr=self.nr,
            pn=self.pn,
        )

    def public_key(self) -> Any:
        """The current public key that can be shared with the other party."""
        return self.dhs.public()

    def max_skip(self) -> int:
        """Most messages that may be skipped within one receive chain."""
        return self.message_key_cache.max_skip()

    def max_capacity(self) -> int:
        """Most skipped message keys stored for this session."""
        return self.message_key_cache.max_capacity()

    def can_encrypt(self) -> bool:
        """Whether the state is initialised for sending."""
        return self.cks is not None or self.dhr is not None

    def ratchet_encrypt(
        self, plaintext: bytes, associated_data: bytes, rng: Any = None
    ) -> Tuple[Header, bytes]:
        """Encrypt ``plaintext``, ratchet forward and return ``(header, ciphertext)``.

        The header and ``associated_data`` are authenticated. Raises
        EncryptUninitError if this party cannot send yet.
        """
        header, message_key = self._ratchet_send_chain(rng)
        ad = header.to_bytes() + bytes(associated_data)
        return header, self.provider.encrypt(message_key, bytes(plaintext), ad)

    def _ratchet_send_chain(self, rng: Any) -> Tuple[Header, Any]:
        if self.cks is None:
            if self.dhr is None:
                raise EncryptUninitError()
            rng = rng if rng is not None else SystemRng()
            self.dhs = self.provider.generate_key_pair(rng)
            self.rk, self.cks = self.provider.kdf_rk(
                self.rk, self.provider.diffie_hellman(self.dhs, self.dhr)
            )
            self.pn = self.ns
            self.ns = 0
        header = Header(dh=self.dhs.public(), n=self.ns, pn=self.pn)
        self.cks, message_key = self.provider.kdf_ck(self.cks)
        self.ns += 1
        return header, message_key

    def ratchet_decrypt(
        self, header: Header, ciphertext: bytes, associated_data: bytes
    ) -> bytes:
        """Verify-decrypt ``ciphertext`` and update the state on success.

        Raises a DecryptError subclass on failure, leaving the state as it was.
        """
        ad = header.to_bytes() + bytes(associated_data)
        diff, plaintext = self._try_decrypt(header, bytes(ciphertext), ad)
        self._update(diff, header)
        return plaintext

    def _try_decrypt(self, h: Header, ct: bytes, ad: bytes) -> Tuple[Diff, bytes]:
        provider = self.provider
        stored = self.message_key_cache.get(self.id, h.dh, h.n)
        if stored is not None:
            return OldKey(), provider.decrypt(stored, ct, ad)
        if self.dhr is not None and self.dhr == h.dh:
            if self.ckr is None:
                raise MessageKeyNotFoundError()
            ckr, mks = skip_message_keys(provider, self.ckr, self._current_skip(h))
            mk = mks.pop()
            return CurrentChain(ckr, mks), provider.decrypt(mk, ct, ad)
        rk, ckr = provider.kdf_rk(self.rk, provider.diffie_hellman(self.dhs, h.dh))
        ckr, mks = skip_message_keys(provider, ckr, self._next_skip(h))
        mk = mks.pop()
        return NextChain(rk, ckr, mks), provider.decrypt(mk, ct, ad)

    def _current_skip(self, h: Header) -> int:
        skip = h.n - self.nr
        if skip < 0:
            raise MessageKeyNotFoundError()
        if self.message_key_cache.max_skip() < skip:
            raise SkipTooLargeError()
        if not self.message_key_cache.can_store(self.id, h.dh, skip):
            raise StorageFullError()
        return skip

    def _next_skip(self, h: Header) -> int:
        # Without a malicious peer this only happens when the key was already used.
        prev_skip = h.pn - self.nr
        if prev_skip < 0:
            raise MessageKeyNotFoundError()
        skip = h.n
        if self.message_key_cache.max_skip() < max(prev_skip, skip):
            raise SkipTooLargeError()
        if not self.message_key_cache.can_store(
            self.id, h.dh, max(prev_skip + skip - 1, 0)
        ):
            raise StorageFullError()
        return skip

    def _update(self, diff: Diff, h: Header) -> None:
        cache = self.message_key_cache
        if isinstance(diff, OldKey):
            cache.remove(self.id, h.dh, h.n)
        elif isinstance(diff, CurrentChain):
            cache.extend(self.id, h.dh, self.nr, list(diff.message_keys))
            self.ckr = diff.chain_key
            self.nr = h.n + 1
        else:
            if self.ckr is not None and self.dhr is not None and self.nr < h.pn:
                prev_mks: List[Any]
                _, prev_mks = skip_message_keys(
                    self.provider, self.ckr, h.pn - self.nr - 1
                )
                cache.extend(self.id, self.dhr, self.nr, prev_mks)
            self.dhr = h.dh
            self.rk = diff.root_key
            self.cks = None
            self.ckr = diff.chain_key
            self.nr = h.n + 1
            cache.extend(self.id, h.dh, 0, list(diff.message_keys))

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(id={self.id}, ns={self.ns}, nr={self.nr}, "
            f"pn={self.pn}, message_key_cache={self.message_key_cache!r})"
        )