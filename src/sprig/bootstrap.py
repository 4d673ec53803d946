"""High level entry points for bootstrapping a registry."""

from typing import Iterable

from sprig.installer import PostProcessorInstaller
from sprig.post_processing import FactoryProcessorRunner, RegistryProcessorRunner
from sprig.processors import ComponentPostProcessor, FactoryPostProcessor
from sprig.registry import ComponentRegistry
from sprig.startup import DEFAULT_STARTUP, ApplicationStartup

__all__ = ["invoke_factory_post_processors", "register_component_post_processors"]


def invoke_factory_post_processors(
    registry: ComponentRegistry,
    processors: Iterable[FactoryPostProcessor] = (),
    startup: ApplicationStartup = DEFAULT_STARTUP,
):
    """Run every registry and factory post-processor against the registry.

    Registry post-processors run first, to a fixed point, followed by the factory
    post-processors registered as descriptors. No component other than the
    processors themselves is created.

    Args:
        registry: The registry to bootstrap.
        processors: Processors supplied directly, invoked ahead of those found in
            the registry.
        startup: Recorder for one step per processor invocation.

    Raises:
        Exception: Whatever a processor raises, unchanged. Later processors are
            not invoked.

    Example:
        >>> registry = ComponentRegistry()
        >>> registry.provides()(PlaceholderResolver)
        >>> invoke_factory_post_processors(registry)
    """
    result = RegistryProcessorRunner(registry, startup).run(processors)
    FactoryProcessorRunner(registry, startup).run(result.processed)


def register_component_post_processors(
    registry: ComponentRegistry, listener_detector: ComponentPostProcessor
):
    """Create and install every component post-processor registered in the registry.

    Args:
        registry: The registry to install processors into.
        listener_detector: The processor to install last.
    """
    PostProcessorInstaller(registry, listener_detector).install()
