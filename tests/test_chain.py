import dataclasses
import re

import pytest

from chainjournal.blocks import GenesisBlock, StandardBlock, block_from_dict, compute_hash
from chainjournal.chain import LedgerChain


def build_chain(length):
    chain = LedgerChain()
    for _ in range(length):
        chain.append()
    return chain


def flip_hex(value, index=0):
    ch = value[index]
    return value[:index] + ("0" if ch != "0" else "1") + value[index + 1:]


def test_genesis_shape():
    chain = LedgerChain()
    genesis = chain.append()
    assert isinstance(genesis, GenesisBlock)
    assert genesis.block_number == 1
    assert genesis.prev_hash is None
    assert re.fullmatch(r"[0-9a-f]{64}", genesis.hash)


def test_second_block_links_to_genesis():
    chain = LedgerChain()
    genesis = chain.append()
    second = chain.append()
    assert isinstance(second, StandardBlock)
    assert second.block_number == 2
    assert second.prev_hash == genesis.hash
    assert second.hash != genesis.hash


def test_hash_is_recomputable():
    chain = build_chain(3)
    for block in chain:
        assert block.hash == block.compute_hash()
    block = chain[2]
    assert block.hash == compute_hash(3, block.timestamp, chain[1].hash)


def test_blocks_are_immutable():
    chain = build_chain(2)
    with pytest.raises(dataclasses.FrozenInstanceError):
        chain[1].hash = "0" * 64


@pytest.mark.parametrize("length", [0, 1, 2, 5, 12])
def test_appended_chain_is_valid(length):
    result = build_chain(length).validate()
    assert result.compromised is False
    assert result.detail is None


def test_genesis_only_chain_is_trivially_valid():
    chain = LedgerChain([GenesisBlock(timestamp=1, hash="not-a-real-hash")])
    assert chain.validate().compromised is False


def test_flipped_hash_reports_blocks_two_and_three():
    chain = build_chain(3)
    original = chain[1].hash
    tampered = flip_hex(original, 10)
    chain.blocks[1] = dataclasses.replace(chain[1], hash=tampered)

    result = chain.validate()
    assert result.compromised is True
    assert result.block_numbers == (2, 3)
    assert "2" in result.detail and "3" in result.detail
    assert tampered in result.detail
    assert original in result.detail
    assert result.expected_hash == tampered
    assert result.found_hash == original


@pytest.mark.parametrize("position", [1, 2, 3, 4])
def test_tampered_prev_hash_is_detected(position):
    chain = build_chain(5)
    block = chain[position]
    chain.blocks[position] = dataclasses.replace(block, prev_hash=flip_hex(block.prev_hash))

    result = chain.validate()
    assert result.compromised is True
    assert result.block_numbers == (position, position + 1)


@pytest.mark.parametrize("position", [1, 2, 3, 4])
def test_tampered_hash_is_detected(position):
    chain = build_chain(5)
    block = chain[position]
    chain.blocks[position] = dataclasses.replace(block, hash=flip_hex(block.hash, 63))

    result = chain.validate()
    assert result.compromised is True
    if position < 4:
        assert result.block_numbers == (position + 1, position + 2)
    else:
        # Last block: no successor links to it, so its contents give it away.
        assert result.block_numbers == (5, 5)


def test_first_mismatch_wins():
    chain = build_chain(5)
    chain.blocks[3] = dataclasses.replace(chain[3], prev_hash="a" * 64)
    chain.blocks[1] = dataclasses.replace(chain[1], prev_hash="b" * 64)
    result = chain.validate()
    assert result.block_numbers == (1, 2)


def test_out_of_order_block_number_is_detected():
    chain = build_chain(3)
    third = chain[2]
    chain.blocks[2] = StandardBlock(
        block_number=7,
        timestamp=third.timestamp,
        prev_hash=third.prev_hash,
        hash=compute_hash(7, third.timestamp, third.prev_hash),
    )
    result = chain.validate()
    assert result.compromised is True
    assert result.block_numbers == (2, 7)


def test_second_genesis_is_detected():
    chain = build_chain(2)
    chain.blocks.append(GenesisBlock.create())
    result = chain.validate()
    assert result.compromised is True
    assert result.block_numbers == (2, 1)


def test_standard_block_at_position_one_is_detected():
    chain = build_chain(3)
    chain.blocks.pop(0)
    result = chain.validate()
    assert result.compromised is True


def test_validate_does_not_modify_chain():
    chain = build_chain(4)
    before = list(chain)
    chain.validate()
    assert list(chain) == before


def test_block_round_trips_through_ledger_record():
    chain = build_chain(2)
    records = chain.to_dict()["blockchain"]
    assert records[0]["prevHash"] is None
    rebuilt = LedgerChain([block_from_dict(r) for r in records])
    assert list(rebuilt) == list(chain)
    assert rebuilt.validate().compromised is False


def test_genesis_record_without_prev_hash_is_accepted():
    block = block_from_dict({"blockNumber": 1, "timestamp": 5, "hash": "abc"})
    assert isinstance(block, GenesisBlock)


@pytest.mark.parametrize(
    "record",
    [
        {"timestamp": 1, "hash": "x"},
        {"blockNumber": 2, "timestamp": 1, "hash": "x"},
        {"blockNumber": "2", "timestamp": 1, "prevHash": "y", "hash": "x"},
        {"blockNumber": 1, "timestamp": 1, "hash": None},
        {"blockNumber": 1, "timestamp": "yesterday", "prevHash": None, "hash": "ab"},
        {"blockNumber": 2, "timestamp": True, "prevHash": "y", "hash": "x"},
        ["not", "a", "block"],
    ],
)
def test_malformed_records_are_rejected(record):
    with pytest.raises(ValueError):
        block_from_dict(record)


def test_find_and_by_number():
    chain = build_chain(3)
    assert chain.find(chain[1].hash) is chain[1]
    assert chain.find("missing") is None
    assert chain.by_number(3) is chain[2]
    assert chain.by_number(9) is None
