import pytest

from chainjournal.config import Settings
from chainjournal.keys import KeyManager, KeyPair


@pytest.fixture(scope="session")
def keys():
    # 2048 bits keeps key generation fast; the journal default is 4096.
    return KeyPair.generate(2048)


@pytest.fixture(scope="session")
def other_keys():
    return KeyPair.generate(2048)


@pytest.fixture
def settings(tmp_path, keys):
    cfg = Settings(data_dir=tmp_path, key_size=2048)
    KeyManager(cfg.key_path).save(keys)
    return cfg
