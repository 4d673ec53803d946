"""Registration, type introspection and creation of components."""

import inspect
from types import MappingProxyType
from typing import Any, Callable, Iterable, Optional, get_type_hints

import structlog

from sprig.domain import SCOPE_SINGLETON, ComponentDescriptor, MergedDescriptor, Role
from sprig.errors import (
    ComponentCurrentlyInCreationError,
    ComponentDefinitionError,
    ContainerError,
    ComponentNotOfRequiredTypeError,
    NoSuchComponentError,
)
from sprig.processors import ComponentPostProcessor, MergedDescriptorPostProcessor

__all__ = [
    "ComponentRegistry",
    "inferred_name",
]

logger = structlog.get_logger(__name__)


def inferred_name(target: Any) -> str:
    """Derive component name from class or function name, removing 'make_' prefix if present.

    Args:
        target: The function or class to derive a name from.

    Returns:
        The class name, or the function name with any 'make_' prefix removed.

    Example:
        >>> inferred_name(Database)       # Returns "Database"
        >>> inferred_name(make_database)  # Returns "database"
        >>> inferred_name(my_service)     # Returns "my_service"
    """
    if inspect.isclass(target):
        return target.__name__

    if target.__name__.startswith("make_"):
        return target.__name__[5:]
    else:
        return target.__name__


class ComponentRegistry:
    """Registry of component descriptors, and the factory that creates components from them.

    Every descriptor is indexed at registration time by the types it provides, so
    that the registry can answer "which components are of type X?" without
    creating anything. Components are only created by :meth:`get_component` (or
    by :meth:`names_for_type` when eager initialization is allowed and a type
    cannot be predicted).

    The registry also holds the chain of installed :class:`ComponentPostProcessor`
    instances, which is applied to every component it creates.

    Args:
        profiles: Active profile names used to filter :meth:`provides`
            registrations. If None, every registration is accepted.
        allow_overriding: Whether registering a descriptor under a name already in
            use replaces the existing descriptor (True) or raises (False).
    """

    def __init__(self, profiles: Optional[set[str]] = None, allow_overriding: bool = True):
        self._profiles = profiles
        self._allow_overriding = allow_overriding
        self._descriptors: dict[str, ComponentDescriptor] = {}
        self._provided_types: dict[str, Optional[tuple]] = {}
        self._merged: dict[str, MergedDescriptor] = {}
        self._singletons: dict[str, Any] = {}
        self._in_creation: set[str] = set()
        self._post_processors: list[ComponentPostProcessor] = []

    def register_descriptor(self, name: str, descriptor: ComponentDescriptor):
        """Register a descriptor under the given name.

        Names keep the position of their first registration, so overriding a
        descriptor does not change the order in which scans report it.

        Raises:
            ComponentDefinitionError: If the name is taken and overriding is not
                allowed, or ``descriptor`` is not a ComponentDescriptor.
        """
        if not isinstance(descriptor, ComponentDescriptor):
            raise ComponentDefinitionError(f"{descriptor!r} is not a ComponentDescriptor")

        if name in self._descriptors:
            if not self._allow_overriding:
                raise ComponentDefinitionError(
                    f"Cannot register descriptor for '{name}': "
                    "there is already a descriptor bound to that name"
                )
            logger.debug("overriding component descriptor", component=name)
            self._reset(name)

        self._descriptors[name] = descriptor
        self._provided_types[name] = _declared_or_inferred_types(descriptor)

    def remove_descriptor(self, name: str):
        if name not in self._descriptors:
            raise NoSuchComponentError(name)
        del self._descriptors[name]
        del self._provided_types[name]
        self._reset(name)

    def contains_descriptor(self, name: str) -> bool:
        return name in self._descriptors

    def get_descriptor(self, name: str) -> ComponentDescriptor:
        """Return the raw, mutable descriptor registered under ``name``.

        Raises:
            NoSuchComponentError: If no descriptor has that name.
        """
        try:
            return self._descriptors[name]
        except KeyError:
            raise NoSuchComponentError(name) from None

    def descriptor_names(self) -> list[str]:
        return list(self._descriptors)

    def descriptor_count(self) -> int:
        return len(self._descriptors)

    def get_merged_descriptor(self, name: str) -> MergedDescriptor:
        """Return the descriptor for ``name`` with its parent chain folded in.

        The result is cached until :meth:`clear_metadata_cache` is called.

        Raises:
            NoSuchComponentError: If the descriptor, or one of its parents, is missing.
            ComponentDefinitionError: If the parent chain is cyclic.
        """
        if name not in self._merged:
            self._merged[name] = self._merge(name)
        return self._merged[name]

    def clear_metadata_cache(self):
        """Discard merged descriptors, so they are rebuilt from the raw descriptors."""
        self._merged.clear()

    def names_for_type(
        self,
        component_type: type,
        include_non_singletons: bool = True,
        allow_eager_init: bool = True,
    ) -> list[str]:
        """List the names of components of the given type, in registration order.

        Args:
            component_type: The type (or marker class) to match against.
            include_non_singletons: If False, prototype-scoped descriptors are skipped.
            allow_eager_init: If True, a component whose type cannot be predicted
                from its descriptor is created in order to check it. If False,
                such components are skipped, as are components whose parent
                chain cannot be merged.

        Returns:
            The matching component names. Abstract descriptors never match.
        """
        names = []
        for name, descriptor in list(self._descriptors.items()):
            if descriptor.abstract:
                continue
            if not include_non_singletons and not descriptor.is_singleton:
                continue
            if self._matches(name, component_type, allow_eager_init):
                names.append(name)
        return names

    def is_type_match(self, name: str, component_type: type) -> bool:
        """Check whether ``name`` is of the given type, without creating it.

        Raises:
            NoSuchComponentError: If no descriptor has that name.
        """
        if name in self._singletons:
            return isinstance(self._singletons[name], component_type)
        if name not in self._descriptors:
            raise NoSuchComponentError(name)
        return self._matches(name, component_type, allow_eager_init=False)

    def get_component(self, name: str, required_type: Optional[type] = None) -> Any:
        """Return the component registered under ``name``, creating it if necessary.

        Singletons are created once and shared; prototypes are created anew on
        every call.

        Args:
            name: The component name.
            required_type: If given, the component must be an instance of it.

        Raises:
            NoSuchComponentError: If no descriptor has that name.
            ComponentDefinitionError: If the descriptor is abstract or has no factory.
            ComponentNotOfRequiredTypeError: If the component has the wrong type.
            ComponentCurrentlyInCreationError: If creating the component requires
                the component itself.
        """
        merged = self.get_merged_descriptor(name)
        if merged.abstract:
            raise ComponentDefinitionError(f"Component '{name}' is abstract and cannot be created")

        if merged.is_singleton:
            if name not in self._singletons:
                component = self._create_component(name, merged)
                self._singletons[name] = component
            component = self._singletons[name]
        else:
            component = self._create_component(name, merged)

        if required_type is not None and not isinstance(component, required_type):
            raise ComponentNotOfRequiredTypeError(name, required_type, type(component))
        return component

    def contains_singleton(self, name: str) -> bool:
        return name in self._singletons

    def singleton_names(self) -> list[str]:
        return list(self._singletons)

    def pre_instantiate_singletons(self):
        """Create every singleton that is neither abstract nor lazy."""
        for name in list(self._descriptors):
            merged = self.get_merged_descriptor(name)
            if not merged.abstract and merged.is_singleton and not merged.lazy_init:
                self.get_component(name)

    def destroy_singletons(self):
        logger.debug("destroying singletons", components=self.singleton_names())
        self._singletons.clear()

    def add_post_processor(self, processor: ComponentPostProcessor):
        """Append a processor to the chain, moving it to the end if already present."""
        self.add_post_processors([processor])

    def add_post_processors(self, processors: Iterable[ComponentPostProcessor]):
        """Append processors to the chain in bulk, moving any already present to the end."""
        processors = list(processors)
        for processor in processors:
            if not isinstance(processor, ComponentPostProcessor):
                raise TypeError(f"{processor!r} is not a ComponentPostProcessor")
        self._post_processors = [p for p in self._post_processors if p not in processors]
        self._post_processors.extend(processors)

    def post_processor_count(self) -> int:
        return len(self._post_processors)

    @property
    def post_processors(self) -> tuple[ComponentPostProcessor, ...]:
        return tuple(self._post_processors)

    def provides(
        self,
        name: Optional[str] = None,
        profiles: Optional[list[str]] = None,
        role: Role = Role.NORMAL,
        scope: str = SCOPE_SINGLETON,
        lazy: bool = False,
        init_method: Optional[str] = None,
        properties: Optional[dict[str, Any]] = None,
    ) -> Callable:
        """Decorator to register a class or function as a component factory.

        Args:
            name: Optional component name; defaults to the class name, or the
                function name with 'make_' prefix removed.
            profiles: Optional list of profiles for which the component is active.
                A profile prefixed with "!" excludes the component from that profile.
            role: The component's role.
            scope: ``"singleton"`` or ``"prototype"``.
            lazy: If True, the component is only created on first lookup.
            init_method: Name of a method to call once properties are applied.
            properties: Values assigned as attributes after construction.

        Returns:
            A decorator that registers the target and returns it unchanged.

        Example:
            @registry.provides(profiles=["dev"], role=Role.INFRASTRUCTURE)
            class AuditTrail(ComponentPostProcessor):
                ...
        """
        def decorator(obj):
            if not (inspect.isclass(obj) or inspect.isfunction(obj)):
                raise ComponentDefinitionError(f"{obj} is not a class or function")

            if self._profiles is not None and not _profiles_match(profiles or [], self._profiles):
                return obj

            self.register_descriptor(
                name or inferred_name(obj),
                ComponentDescriptor(
                    obj,
                    role=role,
                    scope=scope,
                    property_values=dict(properties or {}),
                    init_method=init_method,
                    lazy_init=lazy,
                ),
            )
            return obj

        return decorator

    def _reset(self, name: str):
        self._singletons.pop(name, None)
        self._merged.clear()

    def _merge(self, name: str) -> MergedDescriptor:
        chain = []
        seen = set()
        current = name
        while current is not None:
            if current in seen:
                raise ComponentDefinitionError(
                    f"Descriptor '{name}' has a cyclic parent chain through '{current}'"
                )
            seen.add(current)
            descriptor = self.get_descriptor(current)
            chain.append(descriptor)
            current = descriptor.parent

        factory = None
        init_method = None
        property_values: dict[str, Any] = {}
        for descriptor in reversed(chain):
            factory = descriptor.factory or factory
            init_method = descriptor.init_method or init_method
            property_values.update(descriptor.property_values)

        own = chain[0]
        return MergedDescriptor(
            name,
            factory,
            own.role,
            own.scope,
            MappingProxyType(property_values),
            init_method,
            own.lazy_init,
            own.abstract,
        )

    def _predicted_types(self, name: str) -> Optional[tuple]:
        provided = self._provided_types[name]
        if provided is None and self._descriptors[name].parent is not None:
            provided = _types_provided_by(self.get_merged_descriptor(name).factory)
        return provided

    def _matches(self, name: str, component_type: type, allow_eager_init: bool) -> bool:
        if name in self._singletons:
            return isinstance(self._singletons[name], component_type)

        try:
            provided = self._predicted_types(name)
        except ContainerError as error:
            if allow_eager_init:
                raise
            # Broken parent chains only fail once the component is requested.
            logger.debug("ignoring unresolvable descriptor in type scan", component=name, error=str(error))
            return False
        if provided is not None:
            return any(_is_subtype(candidate, component_type) for candidate in provided)

        if not allow_eager_init:
            return False
        return isinstance(self.get_component(name), component_type)

    def _create_component(self, name: str, merged: MergedDescriptor) -> Any:
        if name in self._in_creation:
            raise ComponentCurrentlyInCreationError(
                f"Component '{name}' is currently in creation: "
                "is there an unresolvable circular reference?"
            )
        if merged.factory is None:
            raise ComponentDefinitionError(f"Descriptor for '{name}' has no factory")

        self._in_creation.add(name)
        try:
            logger.debug("creating component", component=name, scope=merged.scope)
            component = merged.factory()

            for processor in self.post_processors:
                if isinstance(processor, MergedDescriptorPostProcessor):
                    processor.post_process_merged_descriptor(merged, type(component), name)

            for property_name, value in merged.property_values.items():
                setattr(component, property_name, value)

            component = self._apply_post_processors(component, name, "before_init")
            if merged.init_method:
                init = getattr(component, merged.init_method, None)
                if init is None:
                    raise ComponentDefinitionError(
                        f"Init method '{merged.init_method}' not found on component '{name}'"
                    )
                init()
            return self._apply_post_processors(component, name, "after_init")
        finally:
            self._in_creation.discard(name)

    def _apply_post_processors(self, component: Any, name: str, callback: str) -> Any:
        result = component
        for processor in self.post_processors:
            current = getattr(processor, callback)(result, name)
            if current is None:
                return result
            result = current
        return result


def _declared_or_inferred_types(descriptor: ComponentDescriptor) -> Optional[tuple]:
    if descriptor.provided_types:
        return tuple(
            provided
            for declared in descriptor.provided_types
            for provided in (inspect.getmro(declared) if inspect.isclass(declared) else (declared,))
        )
    return _types_provided_by(descriptor.factory)


def _types_provided_by(factory: Optional[Callable]) -> Optional[tuple]:
    """Predict the types a factory produces, without calling it.

    For classes, this is the class and all its base classes. For functions, it is
    the return type annotation and its base classes.

    Returns:
        The predicted types, or None if they cannot be determined.
    """
    if factory is None:
        return None
    if inspect.isclass(factory):
        return inspect.getmro(factory)

    try:
        return_type = get_type_hints(factory).get("return", None)
    except (NameError, TypeError):
        return None
    if return_type is None:
        return None
    if inspect.isclass(return_type):
        return inspect.getmro(return_type)
    return (return_type,)


def _is_subtype(candidate: Any, component_type: type) -> bool:
    return inspect.isclass(candidate) and issubclass(candidate, component_type)


def _profiles_match(stated: list[str], selected: set[str]) -> bool:
    """Check if a component's profile requirements match the selected profiles.

    Profile matching supports inclusion and exclusion patterns:
    - Normal profiles ("dev", "prod") must be in the selected set
    - Exclusion profiles ("!test") must NOT be in the selected set
    - Empty stated profiles match all selected profiles

    Example:
        >>> _profiles_match(["dev"], {"dev"})          # True
        >>> _profiles_match(["!test"], {"dev"})        # True
        >>> _profiles_match(["!test"], {"test"})       # False
        >>> _profiles_match(["prod"], {"dev"})         # False
    """
    provided = [p for p in stated if not p.startswith("!")]
    excluded = [p[1:] for p in stated if p.startswith("!")]

    return not any(e in selected for e in excluded) and (
        not provided or any(p in selected for p in provided)
    )
