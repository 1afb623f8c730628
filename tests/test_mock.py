import pytest

from doubleratchet.common import DecryptFailureError, InvalidDataError, InvalidKeyError
from doubleratchet.mock import (
    MockCryptoProvider,
    MockKeyPair,
    MockPublicKey,
    StepRng,
)


@pytest.fixture
def provider():
    return MockCryptoProvider()


def test_step_rng_counts_from_one():
    rng = StepRng()
    assert [rng.next_u64() for _ in range(3)] == [1, 2, 3]


def test_step_rng_u32_follows_u64():
    rng = StepRng()
    first = rng.next_u64()
    assert rng.next_u32() == first + 1


def test_step_rng_u32_truncates():
    rng = StepRng(state=(1 << 32) - 1)
    assert rng.next_u32() == 0


def test_generate_key_pair_public_is_private_plus_one(provider):
    rng = StepRng()
    pair = provider.generate_key_pair(rng)
    assert pair.private == 1
    assert pair.public() == MockPublicKey(pair.private + 1)


def test_key_pair_private_bytes_round_trip(provider):
    pair = provider.generate_key_pair(StepRng(state=41))
    rebuilt = provider.key_pair_from_bytes(pair.private_bytes(), bytes(pair.public()))
    assert rebuilt == pair


def test_key_pair_from_bytes_rejects_wrong_length(provider):
    with pytest.raises(InvalidDataError):
        provider.key_pair_from_bytes(b"\x01\x02", b"\x03")
    with pytest.raises(InvalidDataError):
        provider.key_pair_from_bytes(b"\x01", b"")


def test_public_key_bytes_round_trip(provider):
    key = MockPublicKey(7)
    assert provider.new_public_key(bytes(key)) == key
    assert bytes(key) == b"\x07"


def test_new_public_key_rejects_wrong_length(provider):
    with pytest.raises(InvalidKeyError):
        provider.new_public_key(b"\x01\x02")


def test_public_key_must_fit_a_byte():
    with pytest.raises(ValueError):
        MockPublicKey(256)


def test_public_keys_hash_by_value():
    assert {MockPublicKey(3): "x"}[MockPublicKey(3)] == "x"


def test_new_root_and_chain_keys(provider):
    assert provider.new_root_key(b"\x2a\x00") == b"\x2a\x00"
    assert provider.new_chain_key(b"\x2a\x00\x00") == b"\x2a\x00\x00"
    with pytest.raises(InvalidKeyError):
        provider.new_root_key(b"\x2a")
    with pytest.raises(InvalidKeyError):
        provider.new_chain_key(b"\x2a\x00")


def test_diffie_hellman_agrees_between_pairs(provider):
    rng = StepRng(state=10)
    alice = provider.generate_key_pair(rng)
    bob = provider.generate_key_pair(rng)
    assert provider.diffie_hellman(alice, bob.public()) == provider.diffie_hellman(
        bob, alice.public()
    )


def test_diffie_hellman_stays_in_byte_range(provider):
    pair = MockKeyPair(255, MockPublicKey(0))
    secret = provider.diffie_hellman(pair, MockPublicKey(255))
    assert 0 <= secret <= 255


def test_kdf_rk_layout(provider):
    rk, ck = provider.kdf_rk(bytes([42, 0]), 9)
    assert rk == bytes([42, 9])
    assert ck == bytes([42, 0, 0])


def test_kdf_ck_returns_old_key_as_message_key(provider):
    ck = bytes([42, 0, 0])
    next_ck, mk = provider.kdf_ck(ck)
    assert mk == ck
    assert next_ck[:2] == ck[:2]
    assert provider.kdf_ck(next_ck)[1] == next_ck


def test_kdf_ck_wraps_counter(provider):
    next_ck, _ = provider.kdf_ck(bytes([1, 2, 255]))
    assert next_ck == bytes([1, 2, 0])


def test_encrypt_layout(provider):
    mk = bytes([42, 0, 0])
    assert provider.encrypt(mk, b"Hi Bob", b"A2B") == mk + b"Hi Bob" + b"A2B"


def test_encrypt_decrypt_round_trip(provider):
    mk = bytes([42, 0, 3])
    ct = provider.encrypt(mk, b"Hello Bob", b"A2B")
    assert provider.decrypt(mk, ct, b"A2B") == b"Hello Bob"


def test_round_trip_empty_plaintext(provider):
    mk = bytes([1, 2, 3])
    assert provider.decrypt(mk, provider.encrypt(mk, b"", b""), b"") == b""


@pytest.mark.parametrize(
    "mk, ad",
    [
        (bytes([42, 0, 4]), b"A2B"),
        (bytes([42, 0, 3]), b"B2A"),
    ],
)
def test_decrypt_rejects_wrong_key_or_data(provider, mk, ad):
    ct = provider.encrypt(bytes([42, 0, 3]), b"Hi Bob", b"A2B")
    with pytest.raises(DecryptFailureError):
        provider.decrypt(mk, ct, ad)


def test_decrypt_rejects_tampered_key_bytes(provider):
    mk = bytes([42, 0, 3])
    ct = bytearray(provider.encrypt(mk, b"Hi Bob", b"A2B"))
    ct[2] ^= 0x80
    with pytest.raises(DecryptFailureError):
        provider.decrypt(mk, bytes(ct), b"A2B")


def test_decrypt_rejects_short_ciphertext(provider):
    with pytest.raises(DecryptFailureError):
        provider.decrypt(bytes([42, 0, 3]), b"\x2a\x00", b"")


def test_decrypt_rejects_ciphertext_shorter_than_key_and_data(provider):
    mk = bytes([1, 2, 3])
    with pytest.raises(DecryptFailureError):
        provider.decrypt(mk, mk + b"AB", b"XAB")