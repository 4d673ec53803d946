"""Installation of component post-processors into the registry."""

from typing import Any

import structlog

from sprig.classifier import PriorityClassifier
from sprig.domain import Role
from sprig.ordering import ProcessorHandle, sort_handles
from sprig.processors import ComponentPostProcessor, MergedDescriptorPostProcessor
from sprig.registry import ComponentRegistry

__all__ = ["PostProcessorChecker", "PostProcessorInstaller"]

logger = structlog.get_logger(__name__)


class PostProcessorChecker(ComponentPostProcessor):
    """Reports components created before every post-processor has been installed.

    Such components are created while other post-processors are being created,
    so the processors installed after them never see them.

    Args:
        registry: The registry whose chain is being populated.
        target_count: The chain length once installation is complete.
    """

    def __init__(self, registry: ComponentRegistry, target_count: int):
        self._registry = registry
        self._target_count = target_count

    @property
    def target_count(self) -> int:
        return self._target_count

    def after_init(self, component: Any, name: str) -> Any:
        if (
            not isinstance(component, ComponentPostProcessor)
            and not self._is_infrastructure(name)
            and self._registry.post_processor_count() < self._target_count
        ):
            logger.info(
                "component is not eligible for getting processed by all post-processors",
                component=name,
                component_type=type(component).__qualname__,
                installed=self._registry.post_processor_count(),
                expected=self._target_count,
            )
        return component

    def _is_infrastructure(self, name: str) -> bool:
        if self._registry.contains_descriptor(name):
            return self._registry.get_descriptor(name).role is Role.INFRASTRUCTURE
        return False

    def __repr__(self):
        return f"PostProcessorChecker(target_count={self._target_count})"


class PostProcessorInstaller:
    """Install the component post-processors registered as descriptors.

    The resulting chain is, in order: whatever was installed beforehand, a
    :class:`PostProcessorChecker`, the priority tier (sorted), the ordered tier
    (sorted), the unordered tier (discovery order), the internal processors
    (those that are also :class:`MergedDescriptorPostProcessor`, sorted), and
    finally the listener detector.

    Args:
        registry: The registry to install processors into.
        listener_detector: The processor appended last to the chain.
    """

    def __init__(self, registry: ComponentRegistry, listener_detector: ComponentPostProcessor):
        self._registry = registry
        self._listener_detector = listener_detector
        self._classifier = PriorityClassifier(registry)

    def install(self):
        names = self._registry.names_for_type(ComponentPostProcessor, True, False)

        target_count = self._registry.post_processor_count() + 1 + len(names)
        self._registry.add_post_processor(PostProcessorChecker(self._registry, target_count))

        groups = self._classifier.classify(names, ComponentPostProcessor)
        internal: list[ProcessorHandle] = _internal(groups.priority)

        self._install(sort_handles(groups.priority))

        ordered = self._classifier.resolve(groups.ordered, ComponentPostProcessor)
        internal.extend(_internal(ordered))
        self._install(sort_handles(ordered))

        unordered = self._classifier.resolve(groups.unordered, ComponentPostProcessor)
        internal.extend(_internal(unordered))
        self._install(unordered)

        # moves the internal processors behind every other regular one
        self._install(sort_handles(internal))

        self._registry.add_post_processor(self._listener_detector)

    def _install(self, handles: list[ProcessorHandle]):
        self._registry.add_post_processors(handle.instance for handle in handles)


def _internal(handles: list[ProcessorHandle]) -> list[ProcessorHandle]:
    return [handle for handle in handles if isinstance(handle.instance, MergedDescriptorPostProcessor)]
