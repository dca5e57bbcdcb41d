import dataclasses

import pytest

from chainjournal import envelope as crypto
from chainjournal.envelope import Envelope, seal, unseal, verify_entry
from chainjournal.exceptions import CryptoError


@pytest.mark.parametrize(
    "plaintext",
    [
        "",
        "hello",
        "line one\nline two\n",
        "nul\x00inside\x00",
        "Ünïcödé ☃ 日本語 🗿⛓️",
        "x" * 10_000,
    ],
)
def test_round_trip(keys, plaintext):
    assert unseal(seal(plaintext, keys), keys) == plaintext


def test_field_widths(keys):
    sealed = seal("hello", keys)
    assert len(bytes.fromhex(sealed.iv)) == 16
    assert len(bytes.fromhex(sealed.wrapped_key)) == 256  # 2048-bit modulus
    assert len(bytes.fromhex(sealed.signature)) == 256
    assert len(bytes.fromhex(sealed.ciphertext)) % 16 == 0


def test_fresh_key_and_iv_per_seal(keys):
    first = seal("same words", keys)
    second = seal("same words", keys)
    assert first.ciphertext != second.ciphertext
    assert first.wrapped_key != second.wrapped_key
    assert first.iv != second.iv


def test_draws_key_and_iv_from_secure_random(keys, monkeypatch):
    calls = []
    real_urandom = crypto.os.urandom

    def tracking_urandom(n):
        calls.append(n)
        return real_urandom(n)

    monkeypatch.setattr(crypto.os, "urandom", tracking_urandom)
    seal("hello", keys)
    assert calls == [24, 16]


def test_signature_matches_plaintext(keys):
    sealed = seal("signed words", keys)
    assert verify_entry(sealed, "signed words", keys) is True
    assert verify_entry(sealed, "other words", keys) is False


def test_failed_self_check_aborts_seal(keys, monkeypatch):
    monkeypatch.setattr(crypto, "verify_signature", lambda data, signature, keys: False)
    with pytest.raises(CryptoError):
        seal("hello", keys)


def test_unseal_with_wrong_key_fails(keys, other_keys):
    sealed = seal("secret", keys)
    with pytest.raises(CryptoError):
        unseal(sealed, other_keys)


def test_corrupted_wrapped_key_fails(keys):
    sealed = seal("secret", keys)
    wrapped = bytearray(bytes.fromhex(sealed.wrapped_key))
    wrapped[5] ^= 0xFF
    with pytest.raises(CryptoError):
        unseal(dataclasses.replace(sealed, wrapped_key=wrapped.hex()), keys)


def test_truncated_ciphertext_fails(keys):
    sealed = seal("a secret long enough to span two blocks", keys)
    with pytest.raises(CryptoError):
        unseal(dataclasses.replace(sealed, ciphertext=sealed.ciphertext[:-2]), keys)


def test_bad_iv_length_fails(keys):
    sealed = seal("secret", keys)
    with pytest.raises(CryptoError):
        unseal(dataclasses.replace(sealed, iv="00" * 8), keys)


def test_non_hex_field_fails(keys):
    sealed = seal("secret", keys)
    with pytest.raises(CryptoError):
        unseal(dataclasses.replace(sealed, ciphertext="not hex"), keys)


def test_unseal_does_not_check_signature(keys):
    sealed = seal("secret", keys)
    forged = dataclasses.replace(sealed, signature="00" * 256)
    assert unseal(forged, keys) == "secret"
    assert verify_entry(forged, "secret", keys) is False


def test_seal_rejects_non_string(keys):
    with pytest.raises(TypeError):
        seal(b"bytes", keys)


def test_lone_surrogate_is_a_crypto_error(keys):
    with pytest.raises(CryptoError):
        seal("\ud800", keys)


def test_envelope_record_field_names(keys):
    sealed = seal("hello", keys)
    record = sealed.to_dict()
    assert set(record) == {"entry", "signature", "wrappedSymmetricKey", "iv"}
    assert record["entry"] == sealed.ciphertext
    assert Envelope.from_dict(record) == sealed


def test_envelope_record_missing_field():
    with pytest.raises(KeyError):
        Envelope.from_dict({"entry": "00", "signature": "00", "iv": "00"})


def test_aes_helpers_round_trip():
    key = bytes(range(24))
    iv = bytes(range(16))
    ciphertext = crypto.encrypt_data(key, iv, b"exactly sixteen!")
    # Full padding block appended when the input is block aligned.
    assert len(ciphertext) == 32
    assert crypto.decrypt_data(key, iv, ciphertext) == b"exactly sixteen!"
