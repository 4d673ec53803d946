"""The application context: a registry plus the bootstrap sequence that prepares it."""

from abc import ABC, abstractmethod
from typing import Any, Optional

import structlog

from sprig.bootstrap import invoke_factory_post_processors, register_component_post_processors
from sprig.errors import ContextNotActiveError
from sprig.events import (
    ApplicationEvent,
    ApplicationListener,
    ContextClosedEvent,
    ContextRefreshedEvent,
    ListenerDetector,
)
from sprig.processors import ComponentPostProcessor, FactoryPostProcessor
from sprig.registry import ComponentRegistry
from sprig.startup import DEFAULT_STARTUP, ApplicationStartup

__all__ = ["ContextAware", "ContextAwareProcessor", "ApplicationContext"]

logger = structlog.get_logger(__name__)


class ContextAware(ABC):
    """Components implementing this receive their context before initialization."""

    @abstractmethod
    def set_context(self, context: "ApplicationContext") -> None:
        ...


class ContextAwareProcessor(ComponentPostProcessor):
    def __init__(self, context: "ApplicationContext"):
        self._context = context

    def before_init(self, component: Any, name: str) -> Any:
        if isinstance(component, ContextAware):
            component.set_context(self._context)
        return component


class ApplicationContext:
    """Owns a registry and bootstraps it on :meth:`refresh`.

    Refreshing runs the registry and factory post-processors, installs the
    component post-processors, creates every non-lazy singleton and publishes a
    :class:`ContextRefreshedEvent`. If any step fails, the singletons created so far
    are discarded and the error is raised unchanged.

    Args:
        registry: The registry to bootstrap. A new, empty one is created if None.
        startup: Recorder for startup steps. Defaults to recording nothing.

    Example:
        >>> context = ApplicationContext()
        >>> context.registry.provides()(Greeter)
        >>> context.refresh()
        >>> context.get_component("Greeter")
    """

    def __init__(
        self,
        registry: Optional[ComponentRegistry] = None,
        startup: Optional[ApplicationStartup] = None,
    ):
        self.registry = registry if registry is not None else ComponentRegistry()
        self.startup = startup or DEFAULT_STARTUP
        self._factory_post_processors: list[FactoryPostProcessor] = []
        self._listeners: list[ApplicationListener] = []
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def factory_post_processors(self) -> list[FactoryPostProcessor]:
        return list(self._factory_post_processors)

    @property
    def listeners(self) -> list[ApplicationListener]:
        return list(self._listeners)

    def add_factory_post_processor(self, processor: FactoryPostProcessor):
        """Supply a processor directly, to run ahead of those registered as descriptors."""
        self._factory_post_processors.append(processor)

    def add_listener(self, listener: ApplicationListener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def refresh(self):
        refresh_step = self.startup.start("sprig.context.refresh")
        try:
            self._prepare_registry()

            post_process_step = self.startup.start("sprig.context.post-process")
            try:
                invoke_factory_post_processors(
                    self.registry, self._factory_post_processors, self.startup
                )
                register_component_post_processors(self.registry, ListenerDetector(self))
            finally:
                post_process_step.end()

            self.registry.pre_instantiate_singletons()
            self._active = True
            self.publish_event(ContextRefreshedEvent(self))
        except Exception:
            logger.warning("context refresh failed, discarding created components", exc_info=True)
            self.registry.destroy_singletons()
            self._active = False
            raise
        finally:
            refresh_step.end()

    def get_component(self, name: str, required_type: Optional[type] = None) -> Any:
        """Look up a component; the context must have been refreshed.

        Raises:
            ContextNotActiveError: If the context has not been refreshed, or is closed.
        """
        if not self._active:
            raise ContextNotActiveError(
                "Context has not been refreshed yet, or has already been closed"
            )
        return self.registry.get_component(name, required_type)

    def publish_event(self, event: ApplicationEvent):
        for listener in self.listeners:
            listener.on_event(event)

    def close(self):
        if not self._active:
            return
        self.publish_event(ContextClosedEvent(self))
        self.registry.destroy_singletons()
        self._active = False

    def _prepare_registry(self):
        self.registry.add_post_processors(
            [ContextAwareProcessor(self), ListenerDetector(self)]
        )
