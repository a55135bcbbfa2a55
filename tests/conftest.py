# tests/conftest.py
import logging

import pytest

from devnet.config.models import ProvisionConfig


@pytest.fixture
def cfg():
    return ProvisionConfig(
        domain="example.test",
        contact_email="ops@example.test",
        storage_node_version="v0.28.0",
    )


@pytest.fixture
def reset_devnet_logger():
    yield
    logger = logging.getLogger("devnet")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
