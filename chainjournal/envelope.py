"""
envelope.py - Hybrid encryption of journal entries.

Each entry is signed with the journal's private key, encrypted with a fresh
AES-192-CBC key and IV, and the AES key is wrapped with RSA-OAEP under the
journal's public key. Every value in the resulting envelope is hex text.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .exceptions import CryptoError
from .metrics import CRYPTO_FAILURES, ENTRIES_SEALED, ENTRIES_UNSEALED, SEAL_LATENCY

if TYPE_CHECKING:
    from .keys import KeyPair

logger = logging.getLogger(__name__)

SYMMETRIC_KEY_BYTES = 24  # AES-192
IV_BYTES = 16
BLOCK_SIZE_BITS = algorithms.AES.block_size


@dataclass(frozen=True)
class Envelope:
    """The sealed record of one journal entry."""

    ciphertext: str
    signature: str
    wrapped_key: str
    iv: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "entry": self.ciphertext,
            "signature": self.signature,
            "wrappedSymmetricKey": self.wrapped_key,
            "iv": self.iv,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "Envelope":
        """Rebuild an envelope from its entry-store record. Raises KeyError for missing fields."""
        if not isinstance(data, dict):
            raise TypeError(f"Envelope record must be an object, got {type(data).__name__}")
        return cls(
            ciphertext=data["entry"],
            signature=data["signature"],
            wrapped_key=data["wrappedSymmetricKey"],
            iv=data["iv"],
        )


def _oaep() -> asym_padding.OAEP:
    return asym_padding.OAEP(
        mgf=asym_padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def _pss() -> asym_padding.PSS:
    return asym_padding.PSS(
        mgf=asym_padding.MGF1(hashes.SHA256()),
        salt_length=asym_padding.PSS.MAX_LENGTH,
    )


def sign_entry(data: bytes, keys: "KeyPair") -> bytes:
    """Sign raw entry bytes with the private key."""
    return keys.private_key.sign(data, _pss(), hashes.SHA256())


def verify_signature(data: bytes, signature: bytes, keys: "KeyPair") -> bool:
    """Verify a signature with the public key, returning True/False."""
    try:
        keys.public_key.verify(signature, data, _pss(), hashes.SHA256())
        return True
    except InvalidSignature:
        return False


def encrypt_data(key: bytes, iv: bytes, plaintext: bytes) -> bytes:
    """
    Encrypt plaintext with AES-CBC and PKCS7 padding.
    """
    padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def decrypt_data(key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
    """
    Decrypt AES-CBC encrypted data and strip its PKCS7 padding.
    Raises ValueError on a bad IV, a truncated ciphertext or bad padding.
    """
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def seal(plaintext: str, keys: "KeyPair") -> Envelope:
    """
    Seal a journal entry.

    A fresh symmetric key and IV are drawn for every call. The signature is
    verified against the public key before anything is encrypted; if that
    self-check fails no envelope is produced.

    Raises:
        CryptoError: if signing, the signature self-check, encryption or key
            wrapping fails.
    """
    if not isinstance(plaintext, str):
        raise TypeError("Journal entry must be a string.")
    start = time.time()
    try:
        entry_bytes = plaintext.encode("utf-8")
    except UnicodeEncodeError as e:
        CRYPTO_FAILURES.labels(operation="seal").inc()
        raise CryptoError("Journal entry cannot be encoded as UTF-8.", details=str(e)) from e

    symmetric_key = os.urandom(SYMMETRIC_KEY_BYTES)
    iv = os.urandom(IV_BYTES)

    try:
        signature = sign_entry(entry_bytes, keys)
    except (ValueError, TypeError) as e:
        CRYPTO_FAILURES.labels(operation="sign").inc()
        raise CryptoError("Signing the journal entry failed.", details=str(e)) from e
    logger.debug("Signature created.")

    if not verify_signature(entry_bytes, signature, keys):
        CRYPTO_FAILURES.labels(operation="verify").inc()
        logger.error("Signature self-check failed; refusing to seal entry.")
        raise CryptoError("Signature self-check failed; the entry was not sealed.")
    logger.debug("Signature verified.")

    try:
        ciphertext = encrypt_data(symmetric_key, iv, entry_bytes)
        wrapped_key = keys.public_key.encrypt(symmetric_key, _oaep())
    except (ValueError, TypeError) as e:
        CRYPTO_FAILURES.labels(operation="encrypt").inc()
        raise CryptoError("Encrypting the journal entry failed.", details=str(e)) from e

    ENTRIES_SEALED.inc()
    SEAL_LATENCY.observe(time.time() - start)
    logger.info(f"Entry sealed ({len(ciphertext)} ciphertext bytes).")
    return Envelope(
        ciphertext=ciphertext.hex(),
        signature=signature.hex(),
        wrapped_key=wrapped_key.hex(),
        iv=iv.hex(),
    )


def unseal(envelope: Envelope, keys: "KeyPair") -> str:
    """
    Recover the plaintext of a sealed entry.

    The stored signature is not checked here; see ``verify_entry``.

    Raises:
        CryptoError: if the key cannot be unwrapped or the entry cannot be
            decrypted.
    """
    try:
        wrapped_key = bytes.fromhex(envelope.wrapped_key)
        ciphertext = bytes.fromhex(envelope.ciphertext)
        iv = bytes.fromhex(envelope.iv)
    except (ValueError, TypeError) as e:
        CRYPTO_FAILURES.labels(operation="decode").inc()
        raise CryptoError("Envelope fields are not valid hex.", details=str(e)) from e

    try:
        symmetric_key = keys.private_key.decrypt(wrapped_key, _oaep())
    except ValueError as e:
        CRYPTO_FAILURES.labels(operation="unwrap").inc()
        raise CryptoError("Could not unwrap the entry key.", details=str(e)) from e
    if len(symmetric_key) != SYMMETRIC_KEY_BYTES:
        CRYPTO_FAILURES.labels(operation="unwrap").inc()
        raise CryptoError(f"Unwrapped key has {len(symmetric_key)} bytes, expected {SYMMETRIC_KEY_BYTES}.")

    try:
        entry_bytes = decrypt_data(symmetric_key, iv, ciphertext)
        plaintext = entry_bytes.decode("utf-8")
    except ValueError as e:
        # UnicodeDecodeError is a ValueError too.
        CRYPTO_FAILURES.labels(operation="decrypt").inc()
        raise CryptoError("Could not decrypt the entry.", details=str(e)) from e

    ENTRIES_UNSEALED.inc()
    logger.info("Entry unsealed.")
    return plaintext


def verify_entry(envelope: Envelope, plaintext: str, keys: "KeyPair") -> bool:
    """
    Check the envelope's signature against a recovered plaintext.
    Returns False for a mismatching or undecodable signature.
    """
    try:
        signature = bytes.fromhex(envelope.signature)
    except ValueError:
        return False
    return verify_signature(plaintext.encode("utf-8"), signature, keys)
