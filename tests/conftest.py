"""Test configuration and fixtures for the entire test suite."""

import logging
import os
from collections.abc import Iterator

import pytest
from dotenv import load_dotenv


@pytest.fixture(scope="session", autouse=True)
def load_env() -> None:
    """Load environment variables from a .env file, if one exists."""
    load_dotenv()


@pytest.fixture(autouse=True)
def isolated_exchange_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Hide ``EXCHANGE_*`` settings loaded from the environment.

    Tests set the variables they need through monkeypatch; anything a
    developer keeps in .env must not leak into credential or config tests.
    """
    for name in list(os.environ):
        if name.startswith("EXCHANGE_"):
            monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def restore_package_log_level() -> Iterator[None]:
    """Undo log level changes made through configure_logging."""
    logger = logging.getLogger("src.exchange")
    level = logger.level
    yield
    logger.setLevel(level)
