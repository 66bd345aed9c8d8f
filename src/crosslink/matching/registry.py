"""Pipeline registry mapping each CanonicalTopic to one pipeline."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from crosslink.exceptions import PipelineNotRegisteredError

from .pipeline import TopicPipeline
from .topics import is_topic_implemented
from .types import CanonicalTopic

logger = logging.getLogger(__name__)


class PipelineRegistry:
    """Explicit, passed-around registry; constructing one is the only initialization."""

    def __init__(self, pipelines: Iterable[TopicPipeline] = ()) -> None:
        self._pipelines: Dict[CanonicalTopic, TopicPipeline] = {}
        for pipeline in pipelines:
            self.register(pipeline)

    def register(self, pipeline: TopicPipeline) -> None:
        """Store ``pipeline`` under its topic; a later registration replaces an earlier one."""
        previous = self._pipelines.get(pipeline.topic)
        self._pipelines[pipeline.topic] = pipeline
        if previous is not None and previous is not pipeline:
            logger.debug("Replaced %s pipeline %s with %s", pipeline.topic, previous.algo_version, pipeline.algo_version)

    def get(self, topic: CanonicalTopic) -> TopicPipeline:
        pipeline = self._pipelines.get(topic)
        if pipeline is None:
            raise PipelineNotRegisteredError(str(topic), tuple(self.list_topics()))
        return pipeline

    def find(self, topic: CanonicalTopic) -> Optional[TopicPipeline]:
        return self._pipelines.get(topic)

    def has(self, topic: CanonicalTopic) -> bool:
        return topic in self._pipelines

    def __contains__(self, topic: object) -> bool:
        return topic in self._pipelines

    def __len__(self) -> int:
        return len(self._pipelines)

    def list_topics(self) -> list[CanonicalTopic]:
        """All registered topics in registration order, implemented or not."""
        return list(self._pipelines)

    def matchable_topics(self) -> list[CanonicalTopic]:
        return [topic for topic in self._pipelines if is_topic_implemented(topic)]

    def describe(self) -> list[dict[str, object]]:
        return [pipeline.describe() for pipeline in self._pipelines.values()]


__all__ = ["PipelineRegistry"]
