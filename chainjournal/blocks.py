"""
blocks.py - Block definitions for the journal ledger.

A block is either the unique ``GenesisBlock`` at position 1 or a
``StandardBlock`` linked to its predecessor through ``prev_hash``. Both are
frozen: a block is never mutated after its hash has been computed.
"""
import hashlib
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union


def now_ms() -> int:
    """Milliseconds since the Unix epoch."""
    return int(time.time() * 1000)


def canonical_bytes(block_number: int, timestamp: int, prev_hash: Optional[str]) -> bytes:
    """
    Deterministic serialization of a block with its hash field left out.
    """
    block_content = {
        "blockNumber": block_number,
        "timestamp": timestamp,
        "prevHash": prev_hash,
    }
    return json.dumps(block_content, sort_keys=True, separators=(",", ":")).encode("utf-8")


def compute_hash(block_number: int, timestamp: int, prev_hash: Optional[str]) -> str:
    """
    Compute SHA-256 hash of the block content.
    """
    return hashlib.sha256(canonical_bytes(block_number, timestamp, prev_hash)).hexdigest()


@dataclass(frozen=True)
class GenesisBlock:
    """The first block of a ledger. It has no predecessor."""

    timestamp: int
    hash: str
    block_number: int = 1

    @property
    def prev_hash(self) -> None:
        return None

    @classmethod
    def create(cls, timestamp: Optional[int] = None) -> "GenesisBlock":
        ts = now_ms() if timestamp is None else timestamp
        return cls(timestamp=ts, hash=compute_hash(1, ts, None))

    def compute_hash(self) -> str:
        return compute_hash(self.block_number, self.timestamp, None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blockNumber": self.block_number,
            "timestamp": self.timestamp,
            "prevHash": None,
            "hash": self.hash,
        }


@dataclass(frozen=True)
class StandardBlock:
    """A block linked to the block before it."""

    block_number: int
    timestamp: int
    prev_hash: str
    hash: str

    @classmethod
    def create(cls, previous: "Block", timestamp: Optional[int] = None) -> "StandardBlock":
        ts = now_ms() if timestamp is None else timestamp
        number = previous.block_number + 1
        return cls(
            block_number=number,
            timestamp=ts,
            prev_hash=previous.hash,
            hash=compute_hash(number, ts, previous.hash),
        )

    def compute_hash(self) -> str:
        return compute_hash(self.block_number, self.timestamp, self.prev_hash)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blockNumber": self.block_number,
            "timestamp": self.timestamp,
            "prevHash": self.prev_hash,
            "hash": self.hash,
        }


Block = Union[GenesisBlock, StandardBlock]


def block_from_dict(data: Dict[str, Any]) -> Block:
    """
    Rebuild a block from its ledger-file record.

    A record without ``prevHash`` (or with ``prevHash: null``) is a genesis
    record. Stored hashes are kept as-is so that validation can detect
    tampering. Raises ValueError for records missing required fields.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Block record must be an object, got {type(data).__name__}")
    try:
        block_number = data["blockNumber"]
        timestamp = data["timestamp"]
        stored_hash = data["hash"]
    except KeyError as e:
        raise ValueError(f"Block record is missing field {e}") from e
    if not isinstance(block_number, int) or isinstance(block_number, bool):
        raise ValueError(f"blockNumber must be an integer, got {block_number!r}")
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        raise ValueError(f"Block {block_number} timestamp must be an integer, got {timestamp!r}")
    if not isinstance(stored_hash, str):
        raise ValueError(f"Block {block_number} has no hash")

    prev_hash = data.get("prevHash")
    if prev_hash is None:
        if block_number != 1:
            raise ValueError(f"Block {block_number} has no prevHash")
        return GenesisBlock(timestamp=timestamp, hash=stored_hash)
    return StandardBlock(
        block_number=block_number,
        timestamp=timestamp,
        prev_hash=prev_hash,
        hash=stored_hash,
    )
