from __future__ import annotations

from collections.abc import Iterator

import pytest
from loguru import logger


@pytest.fixture(autouse=True)
def _quiet_logger() -> Iterator[None]:
    """Drop sinks the CLI attached to a CliRunner stream that is closed afterwards."""
    yield
    logger.remove()
    logger.disable("review_synth")
