"""
exceptions.py - Custom exceptions for the chainjournal package.
"""


class JournalError(Exception):
    """Base exception for chainjournal errors."""

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.details = details


class StorageError(JournalError):
    """Raised when a persisted file cannot be read or written."""
    pass


class KeyFormatError(JournalError):
    """Raised when the key file exists but cannot be parsed into a key pair."""
    pass


class ChainIntegrityError(JournalError):
    """Raised when the ledger fails validation, or a write is attempted on a compromised ledger."""

    def __init__(self, message: str, result=None):
        super().__init__(message, details=getattr(result, "detail", None))
        self.result = result


class CryptoError(JournalError):
    """Raised for sign, verify, wrap, unwrap, encrypt or decrypt failures."""
    pass


class NotFoundError(JournalError):
    """Raised when no envelope is stored under a block hash."""
    pass
