"""Built-in topic pipelines and the default registry."""

from __future__ import annotations

import logging

from ..registry import PipelineRegistry
from .crypto import CRYPTO_DAILY_PIPELINE
from .crypto_intraday import CRYPTO_INTRADAY_PIPELINE
from .elections import ELECTIONS_PIPELINE
from .rates import RATES_PIPELINE
from .sports import SPORTS_PIPELINE
from .universal import UNIVERSAL_PIPELINE

logger = logging.getLogger(__name__)

ALL_PIPELINES = (
    CRYPTO_DAILY_PIPELINE,
    CRYPTO_INTRADAY_PIPELINE,
    RATES_PIPELINE,
    ELECTIONS_PIPELINE,
    SPORTS_PIPELINE,
    UNIVERSAL_PIPELINE,
)


def build_default_registry() -> PipelineRegistry:
    """Fresh registry holding every built-in pipeline."""
    registry = PipelineRegistry(ALL_PIPELINES)
    logger.info("Registered pipelines: %s", ", ".join(str(topic) for topic in registry.list_topics()))
    return registry


__all__ = [
    "ALL_PIPELINES",
    "CRYPTO_DAILY_PIPELINE",
    "CRYPTO_INTRADAY_PIPELINE",
    "ELECTIONS_PIPELINE",
    "RATES_PIPELINE",
    "SPORTS_PIPELINE",
    "UNIVERSAL_PIPELINE",
    "build_default_registry",
]
