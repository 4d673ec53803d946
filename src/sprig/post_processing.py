"""Invocation of registry and factory post-processors.

Bootstrapping runs registry post-processors to a fixed point, then factory
post-processors by tier. Both phases must leave every ordinary component
uncreated, so that the processors' changes apply to all of them.

Processors are created, not only invoked, in tier order: creating a processor can
register descriptors or have other visible effects, so each tier is kept in its
own list and resolved only once the previous tier has run.
"""

from dataclasses import dataclass
from typing import Iterable

import structlog

from sprig.classifier import PriorityClassifier
from sprig.ordering import ProcessorHandle, Tier, sort_handles
from sprig.processors import FactoryPostProcessor, RegistryPostProcessor
from sprig.registry import ComponentRegistry
from sprig.startup import DEFAULT_STARTUP, ApplicationStartup

__all__ = [
    "REGISTRY_POST_PROCESS_STEP",
    "FACTORY_POST_PROCESS_STEP",
    "RegistryPhaseResult",
    "RegistryProcessorRunner",
    "FactoryProcessorRunner",
]

REGISTRY_POST_PROCESS_STEP = "sprig.context.registry.post-process"
FACTORY_POST_PROCESS_STEP = "sprig.context.factory.post-process"

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RegistryPhaseResult:
    """Outcome of running registry post-processors.

    Attributes:
        processed: Names of every registry post-processor found in the registry.
        registry_processors: Registry post-processors in invocation order, explicit
            ones first.
        regular_processors: Explicitly supplied processors that are not registry
            post-processors.
    """

    processed: frozenset[str]
    registry_processors: list[RegistryPostProcessor]
    regular_processors: list[FactoryPostProcessor]


def invoke_registry_post_processors(
    processors: Iterable[RegistryPostProcessor],
    registry: ComponentRegistry,
    startup: ApplicationStartup,
):
    for processor in processors:
        step = startup.start(REGISTRY_POST_PROCESS_STEP).tag("post_processor", processor.__repr__)
        logger.debug("invoking registry post-processor", post_processor=repr(processor))
        try:
            processor.post_process_registry(registry)
        finally:
            step.end()


def invoke_factory_post_processors(
    processors: Iterable[FactoryPostProcessor],
    registry: ComponentRegistry,
    startup: ApplicationStartup,
):
    for processor in processors:
        step = startup.start(FACTORY_POST_PROCESS_STEP).tag("post_processor", processor.__repr__)
        logger.debug("invoking factory post-processor", post_processor=repr(processor))
        try:
            processor.post_process_factory(registry)
        finally:
            step.end()


def _instances(handles: Iterable[ProcessorHandle]) -> list:
    return [handle.instance for handle in handles]


class RegistryProcessorRunner:
    """Run registry post-processors until no new ones appear.

    Args:
        registry: The registry being bootstrapped.
        startup: Recorder for one step per processor invocation.
    """

    def __init__(self, registry: ComponentRegistry, startup: ApplicationStartup = DEFAULT_STARTUP):
        self._registry = registry
        self._startup = startup
        self._classifier = PriorityClassifier(registry)

    def run(self, processors: Iterable[FactoryPostProcessor] = ()) -> RegistryPhaseResult:
        """Run the registry phase.

        Explicitly supplied registry post-processors are invoked first, in the order
        given. The registry is then scanned repeatedly for registry post-processors
        not yet processed. Each pass rescans before every tier: priority
        processors, then ordered ones together with any priority processors
        registered meanwhile, then all the rest. Passes repeat until one finds
        nothing new. Finally every registry post-processor
        seen, followed by the explicit regular processors, has its factory callback
        invoked.

        Args:
            processors: Processors supplied directly rather than registered as
                descriptors.

        Returns:
            The names processed and the processors invoked, for the factory phase.
        """
        registry_processors: list[RegistryPostProcessor] = []
        regular_processors: list[FactoryPostProcessor] = []
        for processor in processors:
            if isinstance(processor, RegistryPostProcessor):
                invoke_registry_post_processors([processor], self._registry, self._startup)
                registry_processors.append(processor)
            else:
                regular_processors.append(processor)

        processed: set[str] = set()
        while True:
            invoked = self._invoke_pass(processed)
            if not invoked:
                break
            registry_processors.extend(invoked)

        invoke_factory_post_processors(registry_processors, self._registry, self._startup)
        invoke_factory_post_processors(regular_processors, self._registry, self._startup)

        return RegistryPhaseResult(frozenset(processed), registry_processors, regular_processors)

    def _invoke_pass(self, processed: set[str]) -> list[RegistryPostProcessor]:
        # Each tier sees the registry as left by the tiers before it.
        invoked = []
        for tier in Tier:
            names = self._registry.names_for_type(RegistryPostProcessor, True, False)
            groups = self._classifier.classify(names, RegistryPostProcessor, processed)
            handles = self._classifier.resolve(groups.up_to(tier), RegistryPostProcessor)
            processed.update(handle.name for handle in handles)

            batch = _instances(sort_handles(handles))
            invoke_registry_post_processors(batch, self._registry, self._startup)
            invoked.extend(batch)
        return invoked


class FactoryProcessorRunner:
    """Run the factory post-processors registered as descriptors, by tier.

    Args:
        registry: The registry being bootstrapped.
        startup: Recorder for one step per processor invocation.
    """

    def __init__(self, registry: ComponentRegistry, startup: ApplicationStartup = DEFAULT_STARTUP):
        self._registry = registry
        self._startup = startup
        self._classifier = PriorityClassifier(registry)

    def run(self, processed: Iterable[str] = frozenset()):
        """Invoke every factory post-processor not already handled by the registry phase.

        Priority processors run first (sorted), then ordered ones (created, then
        sorted), then the rest (created in discovery order). Merged descriptors are
        discarded afterwards, since the processors may have changed the raw
        descriptors they were derived from.

        Args:
            processed: Names already invoked during the registry phase.
        """
        names = self._registry.names_for_type(FactoryPostProcessor, True, False)
        groups = self._classifier.classify(names, FactoryPostProcessor, frozenset(processed))

        priority = _instances(sort_handles(groups.priority))
        invoke_factory_post_processors(priority, self._registry, self._startup)

        ordered = self._classifier.resolve(groups.ordered, FactoryPostProcessor)
        invoke_factory_post_processors(_instances(sort_handles(ordered)), self._registry, self._startup)

        unordered = self._classifier.resolve(groups.unordered, FactoryPostProcessor)
        invoke_factory_post_processors(_instances(unordered), self._registry, self._startup)

        self._registry.clear_metadata_cache()
