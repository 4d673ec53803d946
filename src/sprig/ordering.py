"""Ordering markers and the comparator used to sequence processors.

Processors opt into ordering by implementing :class:`Ordered`, or
:class:`PriorityOrdered` to be handled ahead of every plain :class:`Ordered`
processor. A processor implementing neither is unordered and runs last.

Processors are sorted by the key ``(tier rank, order value, discovery index)``, so
two processors with the same tier and order value keep the order in which the
registry reported them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterable, Optional

__all__ = [
    "HIGHEST_PRECEDENCE",
    "LOWEST_PRECEDENCE",
    "Ordered",
    "PriorityOrdered",
    "Tier",
    "ProcessorHandle",
    "get_order",
    "sort_handles",
]

HIGHEST_PRECEDENCE = -(2**31)
LOWEST_PRECEDENCE = 2**31 - 1


class Ordered(ABC):
    """Marker for objects that declare an order value; lower values come first."""

    @abstractmethod
    def get_order(self) -> int:
        ...


class PriorityOrdered(Ordered):
    """Marker for ordered objects that take precedence over every plain ``Ordered`` one."""


class Tier(Enum):
    PRIORITY = 0
    ORDERED = 1
    UNORDERED = 2

    @property
    def rank(self) -> int:
        return self.value


def get_order(obj: Any) -> int:
    """Return the declared order value of ``obj``, or ``LOWEST_PRECEDENCE``."""
    if isinstance(obj, Ordered):
        return obj.get_order()
    return LOWEST_PRECEDENCE


@dataclass(frozen=True)
class ProcessorHandle:
    """A processor candidate found by scanning the registry.

    Handles start out as a deferred name; :meth:`resolved` attaches the live
    instance once the registry has created it.

    Attributes:
        name: The component name of the processor.
        discovery_index: Position of the name in the scan that found it.
        tier: The ordering tier, determined without creating the processor.
        instance: The processor itself, or None while still deferred.
    """

    name: str
    discovery_index: int
    tier: Tier
    instance: Optional[Any] = None

    @property
    def is_resolved(self) -> bool:
        return self.instance is not None

    def resolved(self, instance: Any) -> "ProcessorHandle":
        return replace(self, instance=instance)

    def sort_key(self) -> tuple[int, int, int]:
        if not self.is_resolved:
            raise ValueError(f"Processor '{self.name}' must be resolved before sorting")
        order = LOWEST_PRECEDENCE if self.tier is Tier.UNORDERED else get_order(self.instance)
        return self.tier.rank, order, self.discovery_index


def sort_handles(handles: Iterable[ProcessorHandle]) -> list[ProcessorHandle]:
    """Sort resolved handles by tier, then order value, then discovery index."""
    return sorted(handles, key=ProcessorHandle.sort_key)
