"""Review finding classification and report synthesis engine."""

from loguru import logger

__version__ = "0.3.0"

logger.disable("review_synth")
