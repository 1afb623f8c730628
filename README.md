# doubleratchet

This package manages keys for two parties who exchange encrypted messages,
using the Double Ratchet algorithm. Each message is encrypted with a fresh key,
which gives forward secrecy. Each reply brings in a fresh Diffie-Hellman key
pair, which gives post-compromise security. Messages may arrive out of order.
The keys of skipped messages stay in a bounded cache until their messages
arrive.

The package does not perform any cryptography of its own. You supply a
`CryptoProvider` (in `doubleratchet.common`) that implements:

- key pair generation,
- Diffie-Hellman,
- the two key derivation functions,
- authenticated encryption.

The ratchet does the bookkeeping.

## Installation

```
pip install doubleratchet
```

The package has no runtime dependencies.

## Usage

```python
from doubleratchet.ratchet import DoubleRatchet
from doubleratchet.mock import MockCryptoProvider, StepRng

provider = MockCryptoProvider()
rng = StepRng()

# The root key and Bob's key pair come from an authenticated key exchange.
bobs_pair = provider.generate_key_pair(rng)
initial_root_key = provider.new_root_key(bytes([42, 0]))

alice = DoubleRatchet.new_alice(provider, initial_root_key, bobs_pair.public(), None, rng)
bob = DoubleRatchet.new_bob(provider, initial_root_key, bobs_pair, None, rng)

# Bob cannot send until he has received a message from Alice.
assert not bob.can_encrypt()

header, ciphertext = alice.ratchet_encrypt(b"Hello Bob", b"A2B", rng)
assert bob.ratchet_decrypt(header, ciphertext, b"A2B") == b"Hello Bob"

header, ciphertext = bob.ratchet_encrypt(b"Hi Alice", b"B2A", rng)
assert alice.ratchet_decrypt(header, ciphertext, b"B2A") == b"Hi Alice"
```

To let either party send the first message, give both sides the same extra
chain key. Alice passes it as `initial_receive` and Bob as `initial_send`.

`ratchet_encrypt` returns a `Header` and the ciphertext. Send the header
together with the ciphertext. `Header.to_bytes()` gives the public key bytes,
followed by `pn` and `n` as big-endian 64-bit integers. These bytes are
authenticated as part of the associated data.

If you leave out `rng`, `new_alice`, `new_bob` and `ratchet_encrypt` use a
`SystemRng`. `SystemRng` draws its numbers from the `secrets` module.

## Errors

All errors derive from `DoubleRatchetError`.

Calling `ratchet_encrypt` before the ratchet can send raises
`EncryptUninitError`.

`ratchet_decrypt` raises a subclass of `DecryptError` and leaves the ratchet
state unchanged. The subclasses are:

- `DecryptFailureError`: the ciphertext, the header or the associated data failed verification.
- `MessageKeyNotFoundError`: the key for this message is no longer available.
- `SkipTooLargeError`: the header asks to skip more than `max_skip()` messages.
- `StorageFullError`: the skipped-key cache would go past `max_capacity()`.

Rebuilding keys from bad bytes raises `InvalidKeyError` or `InvalidDataError`.

## Skipped-key cache

By default, skipped keys are kept in a `DefaultKeyStore` from
`doubleratchet.keystore`. It is thread-safe and holds its keys in memory. Its
limits are 1000 skipped messages per chain and 3000 stored keys per session.
You can set both limits as constructor arguments, for example
`DefaultKeyStore(max_skip=100, max_capacity=500)`.

To store keys elsewhere, subclass `MessageKeyCache` and give the instance to
the ratchet.

## Persistence

1. `session_state()` returns a `SessionState`.
2. Its `encode()` method turns it into a JSON string.
3. `SessionState.decode` reads that string back.
4. `DoubleRatchet.from_session_state(provider, state, cache)` restores the ratchet.

The skipped-key cache is not part of the state. If you keep a cache
elsewhere, pass it as `cache`. The state contains private keys, so store it
securely.

## What the package does not do

The package ships no secure `CryptoProvider`. `MockCryptoProvider` and
`StepRng` in `doubleratchet.mock` are deterministic stand-ins for tests and
give no security. A real application has to subclass `CryptoProvider` itself,
for example with X25519, HKDF-SHA256 and an authenticated cipher.

The package also has no header encryption, no network transport and no
command-line tool.

## Tests

```
pip install -e ".[test]"
pytest
```