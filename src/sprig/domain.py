"""Domain models describing components before they are instantiated."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional

__all__ = [
    "Role",
    "SCOPE_SINGLETON",
    "SCOPE_PROTOTYPE",
    "ComponentDescriptor",
    "MergedDescriptor",
]

SCOPE_SINGLETON = "singleton"
SCOPE_PROTOTYPE = "prototype"


class Role(Enum):
    """Whether a component is part of the application or supporting infrastructure."""

    NORMAL = "normal"
    INFRASTRUCTURE = "infrastructure"


@dataclass
class ComponentDescriptor:
    """Construction recipe for a single component.

    Descriptors are owned by a :class:`~sprig.registry.ComponentRegistry` and stay
    mutable until the component they describe is instantiated. Registry and factory
    post-processors work by adding descriptors or editing the ones already present.

    Attributes:
        factory: Class or callable invoked with no arguments to create the component.
            May be None for abstract descriptors, or when inherited from ``parent``.
        role: Application or infrastructure role of the component.
        scope: Either ``"singleton"`` (one shared instance) or ``"prototype"``
            (a new instance per lookup).
        property_values: Raw values assigned as attributes once the component
            has been constructed.
        init_method: Name of a method called after properties are applied.
        lazy_init: If True, the component is not created by
            :meth:`~sprig.registry.ComponentRegistry.pre_instantiate_singletons`.
        parent: Name of a descriptor whose settings this one inherits.
        abstract: If True, the descriptor is a template and is never instantiated.
        provided_types: Types the component satisfies. When empty, they are
            inferred from the factory at registration time.
        description: Free-text description for diagnostics.

    Example:
        >>> registry.register_descriptor(
        ...     "greeter",
        ...     ComponentDescriptor(Greeter, property_values={"greeting": "Hello"}),
        ... )
    """

    factory: Optional[Callable[[], Any]] = None
    role: Role = Role.NORMAL
    scope: str = SCOPE_SINGLETON
    property_values: dict[str, Any] = field(default_factory=dict)
    init_method: Optional[str] = None
    lazy_init: bool = False
    parent: Optional[str] = None
    abstract: bool = False
    provided_types: list[type] = field(default_factory=list)
    description: Optional[str] = None

    @property
    def is_singleton(self) -> bool:
        return self.scope == SCOPE_SINGLETON


@dataclass(frozen=True)
class MergedDescriptor:
    """A descriptor with its parent chain folded in.

    Merged descriptors are derived data: the registry caches them and discards the
    cache when raw descriptors may have changed underneath it.

    Attributes:
        name: The component name.
        factory: The effective factory (the nearest one along the parent chain).
        role: The component's own role.
        scope: The component's own scope.
        property_values: Parent property values overridden by the child's.
        init_method: The nearest init method along the parent chain.
        lazy_init: The component's own lazy-init flag.
        abstract: The component's own abstract flag.
    """

    name: str
    factory: Optional[Callable[[], Any]]
    role: Role
    scope: str
    property_values: Mapping[str, Any]
    init_method: Optional[str]
    lazy_init: bool
    abstract: bool

    @property
    def is_singleton(self) -> bool:
        return self.scope == SCOPE_SINGLETON
