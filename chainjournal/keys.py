"""
keys.py - Long-lived RSA key pair management for the journal.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .exceptions import KeyFormatError, StorageError
from .storage import replace_file

logger = logging.getLogger(__name__)

MIN_KEY_SIZE = 2048
DEFAULT_KEY_SIZE = 4096
PUBLIC_EXPONENT = 65537


@dataclass(frozen=True)
class KeyPair:
    """An RSA key pair loaded for the lifetime of a session."""

    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey

    @classmethod
    def generate(cls, key_size: int = DEFAULT_KEY_SIZE) -> "KeyPair":
        if key_size < MIN_KEY_SIZE:
            raise ValueError(f"RSA key size must be at least {MIN_KEY_SIZE} bits, got {key_size}.")
        private_key = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size)
        return cls(private_key=private_key, public_key=private_key.public_key())

    def private_pem(self) -> str:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")

    def public_pem(self) -> str:
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

    def to_dict(self) -> dict:
        return {"privateKey": self.private_pem(), "publicKey": self.public_pem()}

    @classmethod
    def from_dict(cls, data: dict) -> "KeyPair":
        """
        Parse the key file record into a key pair.

        Raises:
            KeyFormatError: if either half is missing, unparsable, not RSA, or
                the halves do not belong together.
        """
        if not isinstance(data, dict):
            raise KeyFormatError("Key file must contain a JSON object.")
        try:
            private_pem = data["privateKey"]
            public_pem = data["publicKey"]
        except KeyError as e:
            raise KeyFormatError(f"Key file is missing {e}.") from e
        if not isinstance(private_pem, str) or not isinstance(public_pem, str):
            raise KeyFormatError("Key file entries must be PEM text.")

        try:
            private_key = serialization.load_pem_private_key(private_pem.encode("ascii"), password=None)
            public_key = serialization.load_pem_public_key(public_pem.encode("ascii"))
        except (ValueError, TypeError, UnicodeEncodeError, UnsupportedAlgorithm) as e:
            raise KeyFormatError("Key file holds malformed PEM data.", details=str(e)) from e

        if not isinstance(private_key, rsa.RSAPrivateKey) or not isinstance(public_key, rsa.RSAPublicKey):
            raise KeyFormatError("Key file must hold an RSA key pair.")
        if private_key.public_key().public_numbers() != public_key.public_numbers():
            raise KeyFormatError("Public key in key file does not match the private key.")
        return cls(private_key=private_key, public_key=public_key)


class KeyManager:
    """
    Owns the journal's key pair: generates it on first run, reloads it afterwards.

    Example:
        keys = KeyManager(Path("keys.json")).load_or_create()
    """

    def __init__(self, path: Union[str, Path], key_size: int = DEFAULT_KEY_SIZE) -> None:
        self.path = Path(path)
        self.key_size = key_size

    def load_or_create(self) -> KeyPair:
        """
        Load the persisted key pair, generating and persisting one if none exists.

        Raises:
            KeyFormatError: if the key file exists but is malformed.
            StorageError: if the key file cannot be read or written.
        """
        if self.path.exists():
            return self.load()
        logger.info(f"No key file at {self.path}; generating a {self.key_size}-bit RSA key pair.")
        keys = KeyPair.generate(self.key_size)
        self.save(keys)
        return keys

    def load(self) -> KeyPair:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise KeyFormatError(f"Key file {self.path} is not valid UTF-8.", details=str(e)) from e
        except OSError as e:
            raise StorageError(f"Could not read key file {self.path}.", details=str(e)) from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise KeyFormatError(f"Key file {self.path} is not valid JSON.", details=str(e)) from e
        keys = KeyPair.from_dict(data)
        logger.debug(f"Loaded key pair from {self.path}.")
        return keys

    def save(self, keys: KeyPair) -> None:
        """Persist the key pair. Private key material is written with owner-only permissions."""
        payload = json.dumps(keys.to_dict(), indent=2)
        replace_file(self.path, payload, mode=0o600)
        logger.info(f"Key pair written to {self.path}.")
