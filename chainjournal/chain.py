"""
chain.py - Ledger management for the journal.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .blocks import Block, GenesisBlock, StandardBlock
from .metrics import BLOCKS_APPENDED, CHAIN_VALIDATIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """
    Verdict of a ledger validation.

    ``block_numbers`` names the offending adjacent pair (or a single block
    repeated twice when its own hash does not match its contents).
    """

    compromised: bool
    detail: Optional[str] = None
    block_numbers: Optional[Tuple[int, int]] = None
    expected_hash: Optional[str] = None
    found_hash: Optional[str] = None


class LedgerChain:
    """
    Append-only, hash-linked sequence of blocks.
    """

    def __init__(self, blocks: Optional[List[Block]] = None) -> None:
        self.blocks: List[Block] = list(blocks or [])

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(self.blocks)

    def __getitem__(self, index: int) -> Block:
        return self.blocks[index]

    @property
    def last(self) -> Optional[Block]:
        return self.blocks[-1] if self.blocks else None

    def find(self, block_hash: str) -> Optional[Block]:
        """Return the block carrying ``block_hash``, or None."""
        for block in self.blocks:
            if block.hash == block_hash:
                return block
        return None

    def by_number(self, block_number: int) -> Optional[Block]:
        """Return the block with ``block_number``, or None."""
        for block in self.blocks:
            if block.block_number == block_number:
                return block
        return None

    def append(self) -> Block:
        """
        Create the next block and add it to the in-memory sequence.

        The first block of an empty ledger is the genesis block. Persisting
        the updated sequence is the caller's job.
        """
        last = self.last
        if last is None:
            block: Block = GenesisBlock.create()
            BLOCKS_APPENDED.labels(kind="genesis").inc()
            logger.info(f"Genesis block created: {block.hash}")
        else:
            block = StandardBlock.create(last)
            BLOCKS_APPENDED.labels(kind="standard").inc()
            logger.info(f"Block {block.block_number} appended: {block.hash}")
        self.blocks.append(block)
        return block

    def validate(self) -> ValidationResult:
        """
        Walk the ledger and report the first broken link.

        Empty and genesis-only ledgers are trivially valid. Otherwise every
        standard block's ``prev_hash`` must equal the hash of the block before
        it; the first mismatch is the verdict. Once all links hold, each
        block's stored hash is recomputed from its fields.
        """
        if len(self.blocks) < 2:
            result = ValidationResult(compromised=False)
        else:
            result = self._check_links()
            if not result.compromised:
                result = self._check_contents()
        CHAIN_VALIDATIONS.labels(verdict="compromised" if result.compromised else "valid").inc()
        if result.compromised:
            logger.error(f"Ledger validation failed: {result.detail}")
        else:
            logger.debug(f"Ledger of {len(self.blocks)} block(s) validated.")
        return result

    def _check_links(self) -> ValidationResult:
        genesis = self.blocks[0]
        if not isinstance(genesis, GenesisBlock) or genesis.block_number != 1:
            return ValidationResult(
                compromised=True,
                detail=f"Block at position 1 is not a genesis block (blockNumber {genesis.block_number}).",
                block_numbers=(genesis.block_number, genesis.block_number),
            )

        expected_prev_hash = genesis.hash
        previous: Block = genesis
        for position, block in enumerate(self.blocks[1:], start=2):
            if isinstance(block, GenesisBlock):
                return ValidationResult(
                    compromised=True,
                    detail=(
                        f"Blocks {previous.block_number} and {block.block_number}: "
                        f"unexpected genesis block at position {position}."
                    ),
                    block_numbers=(previous.block_number, block.block_number),
                )
            elif isinstance(block, StandardBlock):
                if block.block_number != position:
                    return ValidationResult(
                        compromised=True,
                        detail=(
                            f"Blocks {previous.block_number} and {block.block_number}: "
                            f"expected blockNumber {position}."
                        ),
                        block_numbers=(previous.block_number, block.block_number),
                    )
                if block.prev_hash != expected_prev_hash:
                    return ValidationResult(
                        compromised=True,
                        detail=(
                            f"Blocks {previous.block_number} and {block.block_number} disagree: "
                            f"expected prevHash {expected_prev_hash}, found {block.prev_hash}."
                        ),
                        block_numbers=(previous.block_number, block.block_number),
                        expected_hash=expected_prev_hash,
                        found_hash=block.prev_hash,
                    )
                expected_prev_hash = block.hash
                previous = block
            else:
                raise TypeError(f"Unknown block type {type(block).__name__}")
        return ValidationResult(compromised=False)

    def _check_contents(self) -> ValidationResult:
        for block in self.blocks:
            recomputed = block.compute_hash()
            if recomputed != block.hash:
                return ValidationResult(
                    compromised=True,
                    detail=(
                        f"Block {block.block_number} does not match its hash: "
                        f"expected {recomputed}, found {block.hash}."
                    ),
                    block_numbers=(block.block_number, block.block_number),
                    expected_hash=recomputed,
                    found_hash=block.hash,
                )
        return ValidationResult(compromised=False)

    def to_dict(self) -> dict:
        return {"blockchain": [block.to_dict() for block in self.blocks]}
