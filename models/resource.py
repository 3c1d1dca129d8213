"""
Resource model for the Resource Allocation & Deadlock Engine.

Represents resource types with multiple instances and the ledger that
tracks their total and available counts.
"""

from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np


@dataclass
class Resource:
    """
    Represents a resource type in the simulation.

    Attributes:
        type_id: Resource type identifier (index 0..R-1)
        total_instances: Total number of instances in the system
        available_instances: Current number of unallocated instances

    Invariant:
        0 <= available_instances <= total_instances
    """
    type_id: int
    total_instances: int
    available_instances: int

    def __post_init__(self):
        """Validate resource state."""
        if self.total_instances < 0:
            raise ValueError(f"Resource {self.type_id}: total_instances cannot be negative")
        if self.available_instances < 0:
            raise ValueError(f"Resource {self.type_id}: available_instances cannot be negative")
        if self.available_instances > self.total_instances:
            raise ValueError(
                f"Resource {self.type_id}: available ({self.available_instances}) "
                f"exceeds total ({self.total_instances})"
            )

    @property
    def allocated_instances(self) -> int:
        """Number of instances currently held by processes."""
        return self.total_instances - self.available_instances

    def allocate(self, amount: int) -> bool:
        """
        Allocate resource instances if available.

        Args:
            amount: Number of instances to allocate

        Returns:
            True if allocation successful, False if insufficient resources
        """
        if amount < 0:
            raise ValueError(f"Resource {self.type_id}: cannot allocate a negative amount ({amount})")
        if amount > self.available_instances:
            return False
        self.available_instances -= amount
        return True

    def deallocate(self, amount: int) -> None:
        """
        Return resource instances to the pool.

        Args:
            amount: Number of instances to release

        Raises:
            ValueError: If deallocation would exceed total instances
        """
        if amount < 0:
            raise ValueError(f"Resource {self.type_id}: cannot release a negative amount ({amount})")
        if self.available_instances + amount > self.total_instances:
            raise ValueError(
                f"Resource {self.type_id}: deallocation of {amount} would exceed "
                f"total instances ({self.total_instances})"
            )
        self.available_instances += amount


@dataclass
class ResourceLedger:
    """Total and available counts for every resource type, indexed by type_id."""
    resources: List[Resource] = field(default_factory=list)

    @classmethod
    def from_totals(cls, totals: Sequence[int]) -> "ResourceLedger":
        """Create a ledger with every instance available."""
        return cls([
            Resource(type_id=i, total_instances=int(total), available_instances=int(total))
            for i, total in enumerate(totals)
        ])

    def __len__(self) -> int:
        return len(self.resources)

    def __getitem__(self, type_id: int) -> Resource:
        return self.resources[type_id]

    def __iter__(self):
        return iter(self.resources)

    @property
    def total_vector(self) -> np.ndarray:
        """Total instances per resource type [R]."""
        return np.array([r.total_instances for r in self.resources], dtype=int)

    @property
    def available_vector(self) -> np.ndarray:
        """Available instances per resource type [R]."""
        return np.array([r.available_instances for r in self.resources], dtype=int)

    def allocate_vector(self, vector: Sequence[int]) -> None:
        """
        Take a vector of instances out of the pool.

        All-or-nothing: the ledger is left untouched when any component
        is short.

        Raises:
            ValueError: If any resource has fewer instances available than requested
        """
        for resource, amount in zip(self.resources, vector):
            if amount > resource.available_instances:
                raise ValueError(
                    f"R{resource.type_id}: cannot allocate {amount}, "
                    f"only {resource.available_instances} available"
                )
        for resource, amount in zip(self.resources, vector):
            resource.allocate(int(amount))

    def deallocate_vector(self, vector: Sequence[int]) -> None:
        """Return a vector of instances to the pool."""
        for resource, amount in zip(self.resources, vector):
            resource.deallocate(int(amount))

    def set_available(self, vector: Sequence[int]) -> None:
        """Overwrite the available counts (used when a whole allocation matrix is replaced)."""
        for resource, amount in zip(self.resources, vector):
            if amount < 0 or amount > resource.total_instances:
                raise ValueError(
                    f"R{resource.type_id}: available {amount} outside [0, {resource.total_instances}]"
                )
        for resource, amount in zip(self.resources, vector):
            resource.available_instances = int(amount)
