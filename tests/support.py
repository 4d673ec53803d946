from typing import Any, Callable, Optional

from sprig.domain import ComponentDescriptor, Role
from sprig.ordering import Ordered, PriorityOrdered
from sprig.processors import (
    ComponentPostProcessor,
    FactoryPostProcessor,
    MergedDescriptorPostProcessor,
    RegistryPostProcessor,
)
from sprig.registry import ComponentRegistry


class Journal:
    """Shared record of what the processors under test did, in order."""

    def __init__(self):
        self.entries: list[tuple] = []

    def record(self, *entry):
        self.entries.append(entry)

    def of(self, kind: str) -> list[str]:
        return [entry[1] for entry in self.entries if entry[0] == kind]


def register(registry: ComponentRegistry, name: str, cls: type, *args, role: Role = Role.NORMAL, **kwargs):
    """Register ``cls(*args, **kwargs)`` under ``name``, declaring its type up front."""
    registry.register_descriptor(
        name,
        ComponentDescriptor(lambda: cls(*args, **kwargs), role=role, provided_types=[cls]),
    )


class _OrderFromAttribute:
    order = 0

    def get_order(self) -> int:
        return self.order


class Widget:
    def __init__(self, journal: Optional[Journal] = None, label: str = "widget"):
        self.label = label
        if journal is not None:
            journal.record("created", label)


class RecordingRegistryProcessor(RegistryPostProcessor):
    def __init__(
        self,
        journal: Journal,
        label: str,
        order: int = 0,
        on_registry: Optional[Callable[[ComponentRegistry], Any]] = None,
    ):
        self.journal = journal
        self.label = label
        self.order = order
        self.on_registry = on_registry
        journal.record("created", label)

    def post_process_registry(self, registry):
        self.journal.record("registry", self.label)
        if self.on_registry:
            self.on_registry(registry)

    def post_process_factory(self, registry):
        self.journal.record("factory", self.label)

    def __repr__(self):
        return f"{type(self).__name__}({self.label})"


class PriorityRegistryProcessor(_OrderFromAttribute, RecordingRegistryProcessor, PriorityOrdered):
    pass


class OrderedRegistryProcessor(_OrderFromAttribute, RecordingRegistryProcessor, Ordered):
    pass


class RecordingFactoryProcessor(FactoryPostProcessor):
    def __init__(
        self,
        journal: Journal,
        label: str,
        order: int = 0,
        on_factory: Optional[Callable[[ComponentRegistry], Any]] = None,
    ):
        self.journal = journal
        self.label = label
        self.order = order
        self.on_factory = on_factory
        journal.record("created", label)

    def post_process_factory(self, registry):
        self.journal.record("factory", self.label)
        if self.on_factory:
            self.on_factory(registry)

    def __repr__(self):
        return f"{type(self).__name__}({self.label})"


class PriorityFactoryProcessor(_OrderFromAttribute, RecordingFactoryProcessor, PriorityOrdered):
    pass


class OrderedFactoryProcessor(_OrderFromAttribute, RecordingFactoryProcessor, Ordered):
    pass


class RecordingComponentProcessor(ComponentPostProcessor):
    def __init__(self, journal: Journal, label: str, order: int = 0, on_create: Optional[Callable] = None):
        self.journal = journal
        self.label = label
        self.order = order
        journal.record("created", label)
        if on_create:
            on_create()

    def after_init(self, component, name):
        self.journal.record("after_init", self.label, name)
        return component

    def __repr__(self):
        return f"{type(self).__name__}({self.label})"


class PriorityComponentProcessor(_OrderFromAttribute, RecordingComponentProcessor, PriorityOrdered):
    pass


class OrderedComponentProcessor(_OrderFromAttribute, RecordingComponentProcessor, Ordered):
    pass


class InternalComponentProcessor(RecordingComponentProcessor, MergedDescriptorPostProcessor):
    def post_process_merged_descriptor(self, descriptor, component_type, name):
        self.journal.record("merged", self.label, name)


class PriorityInternalComponentProcessor(_OrderFromAttribute, InternalComponentProcessor, PriorityOrdered):
    pass


class OrderedInternalComponentProcessor(_OrderFromAttribute, InternalComponentProcessor, Ordered):
    pass


def labels(processors) -> list[str]:
    return [getattr(p, "label", type(p).__name__) for p in processors]
