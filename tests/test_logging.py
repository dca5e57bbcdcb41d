import logging

import pytest

from chainjournal.config import Settings
from chainjournal.logging import PACKAGE_LOGGER, configure_logging, get_logger, resolve_level


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.mark.parametrize(
    "level, expected",
    [
        ("info", logging.INFO),
        (" Warning ", logging.WARNING),
        ("CRITICAL", logging.CRITICAL),
        (logging.DEBUG, logging.DEBUG),
    ],
)
def test_resolve_level(level, expected):
    assert resolve_level(level) == expected


@pytest.mark.parametrize("level", ["NOPE", "", True])
def test_resolve_level_rejects_unknown_names(level):
    with pytest.raises(ValueError):
        resolve_level(level)


def test_get_logger_attaches_one_handler():
    first = get_logger(level="error")
    second = get_logger()
    assert first is second
    assert len(first.handlers) == 1
    assert first.level == logging.ERROR


def test_configure_logging_uses_settings_level(tmp_path):
    logger = configure_logging(Settings(data_dir=tmp_path, log_level="info"))
    assert logger.name == PACKAGE_LOGGER
    assert logger.level == logging.INFO


def test_verbose_overrides_settings_level(tmp_path):
    logger = configure_logging(Settings(data_dir=tmp_path, log_level="NOPE"), verbose=True)
    assert logger.level == logging.DEBUG


def test_module_loggers_propagate_to_package_logger(tmp_path, caplog):
    configure_logging(Settings(data_dir=tmp_path, log_level="debug"))
    with caplog.at_level(logging.DEBUG, logger=PACKAGE_LOGGER):
        logging.getLogger("chainjournal.storage").debug("loaded ledger")
    assert "loaded ledger" in caplog.text
