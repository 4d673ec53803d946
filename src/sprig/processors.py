"""Extension points invoked by the container while it bootstraps.

There are three kinds of processor, run in three separate phases:

    - :class:`RegistryPostProcessor` may add, remove or replace descriptors. These
      run first, until no new ones appear.
    - :class:`FactoryPostProcessor` adjusts descriptors once the set of descriptors
      is final, but must not change its structure.
    - :class:`ComponentPostProcessor` is installed into the registry and sees every
      component created afterwards, around its initialization.

Processors are themselves components: they are discovered in the registry by type
and created before any ordinary component.
"""

from abc import ABC, abstractmethod
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from sprig.domain import MergedDescriptor
    from sprig.registry import ComponentRegistry

__all__ = [
    "FactoryPostProcessor",
    "RegistryPostProcessor",
    "ComponentPostProcessor",
    "MergedDescriptorPostProcessor",
]


class FactoryPostProcessor(ABC):
    """Adjusts the registry's descriptors before any component is created."""

    @abstractmethod
    def post_process_factory(self, registry: "ComponentRegistry") -> None:
        ...


class RegistryPostProcessor(FactoryPostProcessor):
    """A factory processor that may also register further descriptors.

    :meth:`post_process_registry` runs before any :meth:`post_process_factory`
    callback, and descriptors it registers (including further registry
    processors) are picked up within the same phase.
    """

    @abstractmethod
    def post_process_registry(self, registry: "ComponentRegistry") -> None:
        ...

    def post_process_factory(self, registry: "ComponentRegistry") -> None:
        pass


class ComponentPostProcessor(ABC):
    """Hook into the initialization of every component created by the registry.

    Either callback may return a replacement for the component. Returning None
    stops the chain and keeps the current component.
    """

    def before_init(self, component: Any, name: str) -> Any:
        return component

    def after_init(self, component: Any, name: str) -> Any:
        return component


class MergedDescriptorPostProcessor(ComponentPostProcessor):
    """A component processor that also inspects merged descriptors.

    These are treated as internal processors: they are installed after every other
    regular processor, whatever their declared order.
    """

    @abstractmethod
    def post_process_merged_descriptor(
        self, descriptor: "MergedDescriptor", component_type: type, name: str
    ) -> None:
        ...
