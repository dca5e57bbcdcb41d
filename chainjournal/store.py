"""
store.py - Mapping of block hashes to sealed journal entries.
"""

import logging
from typing import Dict, Iterator, Optional

from .envelope import Envelope
from .exceptions import NotFoundError

logger = logging.getLogger(__name__)


class EntryStore:
    """
    Holds one envelope per block that received a journal entry.

    ``put`` overwrites an existing envelope under the same hash; the overwrite
    is logged but not refused.
    """

    def __init__(self, entries: Optional[Dict[str, Envelope]] = None) -> None:
        self._entries: Dict[str, Envelope] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, block_hash: object) -> bool:
        return block_hash in self._entries

    def hashes(self) -> Iterator[str]:
        return iter(self._entries)

    def put(self, block_hash: str, envelope: Envelope) -> None:
        if block_hash in self._entries:
            logger.warning(f"Overwriting the entry stored for block {block_hash}.")
        self._entries[block_hash] = envelope
        logger.debug(f"Envelope stored for block {block_hash}.")

    def get(self, block_hash: str) -> Envelope:
        """
        Return the envelope stored under ``block_hash``.

        Raises:
            NotFoundError: if nothing was stored for that block.
        """
        try:
            return self._entries[block_hash]
        except KeyError:
            raise NotFoundError(f"No entry for block {block_hash}.") from None

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {block_hash: envelope.to_dict() for block_hash, envelope in self._entries.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, str]]) -> "EntryStore":
        return cls({block_hash: Envelope.from_dict(record) for block_hash, record in data.items()})
