"""
chainjournal - Append-only personal journal with a hash-linked ledger and hybrid-encrypted entries.

This package provides the ledger, the entry envelope and the session that ties them together.
"""

from .blocks import Block, GenesisBlock, StandardBlock
from .chain import LedgerChain, ValidationResult
from .config import Settings
from .envelope import Envelope, seal, unseal, verify_entry
from .exceptions import (
    ChainIntegrityError,
    CryptoError,
    JournalError,
    KeyFormatError,
    NotFoundError,
    StorageError,
)
from .keys import KeyManager, KeyPair
from .metrics import start_metrics_server
from .session import BlockSummary, Session
from .store import EntryStore

__all__ = [
    "Block",
    "GenesisBlock",
    "StandardBlock",
    "LedgerChain",
    "ValidationResult",
    "Settings",
    "Envelope",
    "seal",
    "unseal",
    "verify_entry",
    "JournalError",
    "StorageError",
    "KeyFormatError",
    "ChainIntegrityError",
    "CryptoError",
    "NotFoundError",
    "KeyManager",
    "KeyPair",
    "start_metrics_server",
    "BlockSummary",
    "Session",
    "EntryStore",
]

__version__ = "0.1.0"
