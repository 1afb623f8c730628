import json

import pytest

from doubleratchet.common import (
    CryptoProvider,
    DecryptError,
    DecryptFailureError,
    DoubleRatchetError,
    EncryptUninitError,
    Header,
    InvalidDataError,
    InvalidKeyError,
    KeyPair,
    MessageKeyNotFoundError,
    SessionState,
    SkipTooLargeError,
    StorageFullError,
    SystemRng,
)


class _PublicKey:
    def __init__(self, raw: bytes) -> None:
        self.raw = raw

    def __bytes__(self) -> bytes:
        return self.raw


def _state(**overrides):
    fields = dict(
        id=7,
        dhs_priv=b"\x02",
        dhs_pub=b"\x03",
        dhr=None,
        rk=bytes([42, 0]),
        cks=None,
        ckr=bytes([42, 0, 0]),
        ns=1,
        nr=2,
        pn=3,
    )
    fields.update(overrides)
    return SessionState(**fields)


def test_header_bytes_layout():
    header = Header(dh=b"\x05", n=2, pn=1)
    data = header.to_bytes()
    assert data == b"\x05" + (1).to_bytes(8, "big") + (2).to_bytes(8, "big")
    assert bytes(header) == data


def test_header_bytes_from_key_object():
    header = Header(dh=_PublicKey(b"\xaa\xbb"), n=0, pn=0)
    data = header.to_bytes()
    assert data[:2] == b"\xaa\xbb"
    assert len(data) == 2 + 16


def test_header_pn_precedes_n():
    a = Header(dh=b"", n=1, pn=0).to_bytes()
    b = Header(dh=b"", n=0, pn=1).to_bytes()
    assert a[8:] == b[:8]
    assert a[:8] == b[8:]


def test_header_rejects_invalid_counters():
    with pytest.raises(ValueError):
        Header(dh=b"\x01", n=-1, pn=0)
    with pytest.raises(ValueError):
        Header(dh=b"\x01", n=0, pn=1 << 64)
    with pytest.raises(TypeError):
        Header(dh=b"\x01", n="1", pn=0)


def test_header_equality():
    assert Header(dh=b"\x01", n=3, pn=4) == Header(dh=b"\x01", n=3, pn=4)
    assert Header(dh=b"\x01", n=3, pn=4) != Header(dh=b"\x01", n=3, pn=5)


def test_session_state_round_trip():
    state = _state()
    decoded = SessionState.decode(state.encode())
    assert decoded == state
    assert decoded.dhr is None
    assert decoded.ckr == bytes([42, 0, 0])


def test_session_state_round_trip_all_fields():
    state = _state(dhr=b"\x09", cks=b"\x01\x02\x03", id=(1 << 64) - 1)
    assert SessionState.decode(state.encode()) == state


def test_session_state_encodes_bytes_as_arrays():
    payload = json.loads(_state().encode())
    assert payload["rk"] == [42, 0]
    assert payload["dhr"] is None
    assert payload["id"] == 7


@pytest.mark.parametrize(
    "data",
    [
        "not json",
        "[]",
        json.dumps({"id": 1}),
        json.dumps(
            {
                "id": -1, "dhs_priv": [], "dhs_pub": [], "rk": [],
                "ns": 0, "nr": 0, "pn": 0,
            }
        ),
        json.dumps(
            {
                "id": 1, "dhs_priv": [300], "dhs_pub": [], "rk": [],
                "ns": 0, "nr": 0, "pn": 0,
            }
        ),
        json.dumps(
            {
                "id": 1, "dhs_priv": "ab", "dhs_pub": [], "rk": [],
                "ns": 0, "nr": 0, "pn": 0,
            }
        ),
    ],
)
def test_session_state_decode_rejects_bad_data(data):
    with pytest.raises(InvalidDataError):
        SessionState.decode(data)


@pytest.mark.parametrize(
    "error, message",
    [
        (InvalidDataError, "Data is invalid or cannot be processed"),
        (InvalidKeyError, "Key is invalid or cannot be processed"),
        (EncryptUninitError, "Encrypt not yet initialized (you must receive a message first)"),
        (DecryptFailureError, "Error during verify-decrypting"),
        (MessageKeyNotFoundError, "Could not find the message key required for decryption"),
        (SkipTooLargeError, "Header message counter is too large"),
        (StorageFullError, "Storage for skipped messages is full"),
    ],
)
def test_error_messages(error, message):
    assert str(error()) == message
    assert issubclass(error, DoubleRatchetError)


@pytest.mark.parametrize(
    "error, message",
    [
        (DecryptFailureError, "Error during verify-decrypting"),
        (MessageKeyNotFoundError, "Could not find the message key required for decryption"),
        (SkipTooLargeError, "Header message counter is too large"),
        (StorageFullError, "Storage for skipped messages is full"),
    ],
)
def test_decrypt_errors_share_base(error, message):
    exc = error()
    assert isinstance(exc, DecryptError)
    assert str(exc) == message


def test_encrypt_uninit_is_not_decrypt_error():
    exc = EncryptUninitError()
    assert not isinstance(exc, DecryptError)
    assert str(exc) == "Encrypt not yet initialized (you must receive a message first)"


def test_custom_error_message():
    assert str(InvalidKeyError("bad length")) == "bad length"


def test_abstract_bases_cannot_be_instantiated():
    with pytest.raises(TypeError):
        CryptoProvider()
    with pytest.raises(TypeError):
        KeyPair()


def test_system_rng_ranges():
    rng = SystemRng()
    values64 = [rng.next_u64() for _ in range(50)]
    values32 = [rng.next_u32() for _ in range(50)]
    assert all(0 <= v < 1 << 64 for v in values64)
    assert all(0 <= v < 1 << 32 for v in values32)
    assert len(set(values64)) > 1