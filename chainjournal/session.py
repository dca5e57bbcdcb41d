"""
session.py - Journal session: load keys and ledger, validate, then write or read.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from . import envelope as crypto
from . import storage
from .blocks import Block
from .chain import LedgerChain, ValidationResult
from .config import Settings
from .envelope import Envelope
from .exceptions import ChainIntegrityError, CryptoError, NotFoundError
from .keys import KeyManager, KeyPair
from .store import EntryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockSummary:
    """A ledger block as shown by the block picker."""

    block_number: int
    timestamp: int
    hash: str
    has_entry: bool


class Session:
    """
    Everything one journal run works on, loaded once and passed explicitly.

    A session opened on a compromised ledger stays usable for reading; any
    write raises ChainIntegrityError.

    Args:
        settings: Resolved configuration.
        keys: The journal's key pair.
        chain: The ledger as loaded from disk.
        store: The entry store as loaded from disk.
    """

    def __init__(self, settings: Settings, keys: KeyPair, chain: LedgerChain, store: EntryStore) -> None:
        self.settings = settings
        self.keys = keys
        self.chain = chain
        self.store = store
        self.validation: ValidationResult = chain.validate()

    @classmethod
    def open(cls, settings: Optional[Settings] = None) -> "Session":
        """
        Load keys, ledger and entry store, then validate the ledger.

        When the ledger is empty and ``auto_genesis`` is set, the genesis
        block is created and saved before the session is returned.

        Raises:
            KeyFormatError: if the key file is malformed.
            StorageError: if any persisted file cannot be read or written.
        """
        settings = settings or Settings()
        logger.debug(f"Opening journal session in {settings.data_dir}")
        keys = KeyManager(settings.key_path, key_size=settings.key_size).load_or_create()
        chain = storage.load_chain(settings.ledger_path)
        store = storage.load_entries(settings.entries_path)
        session = cls(settings, keys, chain, store)

        if session.compromised:
            logger.error(f"Ledger is compromised; writes are disabled. {session.validation.detail}")
        elif len(chain) == 0 and settings.auto_genesis:
            genesis = chain.append()
            storage.save_chain(settings.ledger_path, chain)
            logger.info(f"Genesis block added to ledger: {genesis.hash}")
        return session

    @property
    def compromised(self) -> bool:
        return self.validation.compromised

    def revalidate(self) -> ValidationResult:
        self.validation = self.chain.validate()
        return self.validation

    def ensure_writable(self) -> None:
        if self.compromised:
            raise ChainIntegrityError(
                f"Ledger is compromised, refusing to write. {self.validation.detail}",
                result=self.validation,
            )

    def write(self, plaintext: str) -> Tuple[Block, Envelope]:
        """
        Append a block, seal ``plaintext`` and store it under the new block's hash.

        The ledger file is saved before the entry store. If the second save
        fails the ledger keeps a block with no entry.

        Raises:
            ChainIntegrityError: if the ledger is compromised.
            CryptoError: if sealing fails; nothing is appended or saved.
            StorageError: if either file cannot be written.
        """
        self.ensure_writable()
        # Seal first so a crypto failure leaves the ledger untouched.
        sealed = crypto.seal(plaintext, self.keys)
        block = self.chain.append()
        self.store.put(block.hash, sealed)
        storage.save_chain(self.settings.ledger_path, self.chain)
        storage.save_entries(self.settings.entries_path, self.store)
        logger.info(f"Entry written to block {block.block_number}.")
        return block, sealed

    def read(self, block_hash: str) -> str:
        """
        Fetch and unseal the entry stored under ``block_hash``.

        Raises:
            NotFoundError: if no entry was stored for that block.
            CryptoError: if the entry cannot be unsealed, or its signature does
                not match and ``verify_on_read`` is set.
        """
        sealed = self.store.get(block_hash)
        plaintext = crypto.unseal(sealed, self.keys)
        if self.settings.verify_on_read and not crypto.verify_entry(sealed, plaintext, self.keys):
            raise CryptoError(f"Signature does not match the entry stored for block {block_hash}.")
        return plaintext

    def read_block(self, block_number: int) -> str:
        block = self.chain.by_number(block_number)
        if block is None:
            raise NotFoundError(f"No block number {block_number} in the ledger.")
        return self.read(block.hash)

    def blocks(self) -> List[BlockSummary]:
        return [
            BlockSummary(
                block_number=block.block_number,
                timestamp=block.timestamp,
                hash=block.hash,
                has_entry=block.hash in self.store,
            )
            for block in self.chain
        ]
