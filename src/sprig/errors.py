__all__ = [
    "ContainerError",
    "NoSuchComponentError",
    "ComponentDefinitionError",
    "ComponentNotOfRequiredTypeError",
    "ComponentCurrentlyInCreationError",
    "ContextNotActiveError",
]


class ContainerError(Exception):
    """Base class for errors raised by the container itself."""

    pass


class NoSuchComponentError(ContainerError, KeyError):
    """Raised when a component name has no registered descriptor."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self):
        return f"No component named '{self.name}' is registered"


class ComponentDefinitionError(ContainerError):
    """Raised when a descriptor is malformed or cannot be registered."""

    pass


class ComponentNotOfRequiredTypeError(ContainerError):
    """Raised when a resolved component is not an instance of the requested type."""

    def __init__(self, name: str, required_type: type, actual_type: type):
        super().__init__(
            f"Component '{name}' is expected to be of type {required_type.__name__} "
            f"but was actually of type {actual_type.__name__}"
        )
        self.name = name
        self.required_type = required_type
        self.actual_type = actual_type


class ComponentCurrentlyInCreationError(ContainerError):
    """Raised when creating a component requires that same component (a creation cycle)."""

    pass


class ContextNotActiveError(ContainerError):
    pass
