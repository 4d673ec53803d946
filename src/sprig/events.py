"""Application events and the detection of components that listen for them."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

import structlog

from sprig.domain import MergedDescriptor
from sprig.processors import MergedDescriptorPostProcessor

if TYPE_CHECKING:
    from sprig.context import ApplicationContext

__all__ = [
    "ApplicationEvent",
    "ContextRefreshedEvent",
    "ContextClosedEvent",
    "ApplicationListener",
    "ListenerDetector",
]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ApplicationEvent:
    source: Any


class ContextRefreshedEvent(ApplicationEvent):
    """Published once a context has been refreshed and all its singletons created."""


class ContextClosedEvent(ApplicationEvent):
    """Published when a context is closed, before its singletons are destroyed."""


class ApplicationListener(ABC):
    @abstractmethod
    def on_event(self, event: ApplicationEvent) -> None:
        ...


class ListenerDetector(MergedDescriptorPostProcessor):
    """Registers singleton :class:`ApplicationListener` components with the context.

    The detector is installed last in the post-processor chain, so it registers
    the final form of each component, after every other processor has had the
    chance to replace it.

    Detectors for the same context are equal, so adding a new one to the chain
    moves the existing one to the end rather than adding a second.
    """

    def __init__(self, context: "ApplicationContext"):
        self._context = context
        self._singletons: dict[str, bool] = {}

    def post_process_merged_descriptor(
        self, descriptor: MergedDescriptor, component_type: type, name: str
    ) -> None:
        if issubclass(component_type, ApplicationListener):
            self._singletons[name] = descriptor.is_singleton

    def after_init(self, component: Any, name: str) -> Any:
        if isinstance(component, ApplicationListener):
            singleton = self._singletons.get(name)
            if singleton:
                self._context.add_listener(component)
            elif singleton is False:
                logger.warning(
                    "listener component is not a singleton and will not be registered",
                    component=name,
                )
                del self._singletons[name]
        return component

    def __eq__(self, other):
        return isinstance(other, ListenerDetector) and other._context is self._context

    def __hash__(self):
        return hash(id(self._context))

    def __repr__(self):
        return f"ListenerDetector(context={self._context!r})"
