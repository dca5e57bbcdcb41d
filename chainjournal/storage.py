"""
storage.py - JSON persistence for the ledger, entry store and key files.

Every write replaces the whole file: the new content goes to a temporary
file in the same directory which is then moved over the target. There is
no transaction spanning more than one file.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from .blocks import block_from_dict
from .chain import LedgerChain
from .exceptions import StorageError
from .store import EntryStore

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def replace_file(path: PathLike, content: str, mode: Optional[int] = None) -> None:
    """
    Atomically replace ``path`` with ``content``.

    Raises:
        StorageError: if the file cannot be written.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            if mode is not None:
                os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise StorageError(f"Could not write {path}.", details=str(e)) from e
    logger.debug(f"Wrote {path} ({len(content)} bytes).")


def load_json(path: PathLike, default: Any = None) -> Any:
    """
    Read a JSON document, returning ``default`` when the file does not exist.

    Raises:
        StorageError: if the file exists but cannot be read or parsed.
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"{path} does not exist; using default.")
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise StorageError(f"{path} is not valid JSON.", details=str(e)) from e
    except UnicodeDecodeError as e:
        raise StorageError(f"{path} is not valid UTF-8.", details=str(e)) from e
    except OSError as e:
        raise StorageError(f"Could not read {path}.", details=str(e)) from e


def save_json(path: PathLike, data: Any) -> None:
    replace_file(path, json.dumps(data, indent=2, ensure_ascii=False))


def load_chain(path: PathLike) -> LedgerChain:
    """Load the ledger file, ``{"blockchain": [...]}``. A missing file is an empty ledger."""
    data = load_json(path, default={"blockchain": []})
    if not isinstance(data, dict) or not isinstance(data.get("blockchain"), list):
        raise StorageError(f"{path} must contain an object with a 'blockchain' array.")
    try:
        blocks = [block_from_dict(record) for record in data["blockchain"]]
    except ValueError as e:
        raise StorageError(f"{path} holds a malformed block record.", details=str(e)) from e
    logger.debug(f"Loaded {len(blocks)} block(s) from {path}.")
    return LedgerChain(blocks)


def save_chain(path: PathLike, chain: LedgerChain) -> None:
    save_json(path, chain.to_dict())
    logger.info(f"Ledger of {len(chain)} block(s) saved to {path}.")


def load_entries(path: PathLike) -> EntryStore:
    """Load the entry store file, a single object keyed by block hash."""
    data = load_json(path, default={})
    if not isinstance(data, dict):
        raise StorageError(f"{path} must contain a JSON object keyed by block hash.")
    try:
        store = EntryStore.from_dict(data)
    except (KeyError, TypeError) as e:
        raise StorageError(f"{path} holds a malformed envelope record.", details=str(e)) from e
    logger.debug(f"Loaded {len(store)} envelope(s) from {path}.")
    return store


def save_entries(path: PathLike, store: EntryStore) -> None:
    save_json(path, store.to_dict())
    logger.info(f"Entry store of {len(store)} envelope(s) saved to {path}.")
