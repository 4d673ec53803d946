"""Partition processor candidates into ordering tiers."""

from dataclasses import dataclass, field
from typing import AbstractSet, Iterable

from sprig.ordering import Ordered, PriorityOrdered, ProcessorHandle, Tier
from sprig.registry import ComponentRegistry

__all__ = ["TierGroups", "PriorityClassifier"]


@dataclass
class TierGroups:
    """Processor candidates split by tier.

    Attributes:
        priority: ``PriorityOrdered`` candidates, already resolved to instances.
        ordered: ``Ordered`` candidates, still deferred.
        unordered: All other candidates, still deferred.
    """

    priority: list[ProcessorHandle] = field(default_factory=list)
    ordered: list[ProcessorHandle] = field(default_factory=list)
    unordered: list[ProcessorHandle] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [handle.name for handle in self.priority + self.ordered + self.unordered]

    def up_to(self, tier: Tier) -> list[ProcessorHandle]:
        """Handles of ``tier`` and every tier ahead of it, highest tier first."""
        tiers = [self.priority, self.ordered, self.unordered]
        return [handle for group in tiers[: tier.rank + 1] for handle in group]

    def __bool__(self) -> bool:
        return bool(self.priority or self.ordered or self.unordered)


class PriorityClassifier:
    """Classify processor names by ordering tier, creating as little as possible.

    Tier membership is decided from the registry's type information alone. Only
    ``PriorityOrdered`` candidates are created during classification, because their
    order value is needed before anything else may be created.
    """

    def __init__(self, registry: ComponentRegistry):
        self._registry = registry

    def classify(
        self,
        names: Iterable[str],
        processor_type: type,
        processed: AbstractSet[str] = frozenset(),
    ) -> TierGroups:
        """Split ``names`` into tiers, skipping any in ``processed``.

        Args:
            names: Candidate names, in discovery order.
            processor_type: The processor type priority candidates are resolved as.
            processed: Names to leave out of every tier.

        Returns:
            The candidates grouped by tier, each group in discovery order.
        """
        groups = TierGroups()
        for index, name in enumerate(names):
            if name in processed:
                continue
            if self._registry.is_type_match(name, PriorityOrdered):
                handle = ProcessorHandle(name, index, Tier.PRIORITY)
                groups.priority.append(
                    handle.resolved(self._registry.get_component(name, processor_type))
                )
            elif self._registry.is_type_match(name, Ordered):
                groups.ordered.append(ProcessorHandle(name, index, Tier.ORDERED))
            else:
                groups.unordered.append(ProcessorHandle(name, index, Tier.UNORDERED))
        return groups

    def resolve(self, handles: Iterable[ProcessorHandle], processor_type: type) -> list[ProcessorHandle]:
        """Create the processors behind deferred handles, in the order given."""
        return [
            handle if handle.is_resolved
            else handle.resolved(self._registry.get_component(handle.name, processor_type))
            for handle in handles
        ]
