"""
Process model for the Resource Allocation & Deadlock Engine.

Represents a process with its declared maximum claim, current allocation,
derived need and outstanding request, plus the table holding all of them.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Sequence
from enum import Enum

import numpy as np


class ProcessState(Enum):
    """Process lifecycle states."""
    ACTIVE = "ACTIVE"
    TERMINATED = "TERMINATED"


def is_sequence(value) -> bool:
    """True for list-like values (lists, tuples, numpy arrays), not strings or mappings."""
    return hasattr(value, "__iter__") and not isinstance(value, (str, bytes, dict))


def check_vector(vector: Sequence[int], length: int, name: str = "vector") -> List[int]:
    """
    Validate a resource vector and return it as a list of ints.

    Raises:
        ValueError: On wrong length, non-integer or negative components
    """
    if not is_sequence(vector):
        raise ValueError(f"{name} must be a list of integers, got {vector!r}")
    values = list(vector)
    if len(values) != length:
        raise ValueError(f"{name} has length {len(values)}, expected {length}")
    for i, value in enumerate(values):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise ValueError(f"{name}[{i}] must be an integer, got {value!r}")
        if value < 0:
            raise ValueError(f"{name}[{i}] cannot be negative ({value})")
    return [int(v) for v in values]


@dataclass
class Process:
    """
    Represents a process record in the simulation.

    Processes are passive data: they never run, they only hold and
    request resource instances.

    Attributes:
        pid: Process identifier (index 0..P-1)
        max_claim: Maximum instances the process may ever hold [R]
        allocation: Instances currently held [R]
        request: Outstanding request the process is blocked on [R]
        state: ACTIVE or TERMINATED
        need: max_claim - allocation [R], kept in step with every mutation
    """
    pid: int
    max_claim: List[int]
    allocation: List[int] = field(default_factory=list)
    request: List[int] = field(default_factory=list)
    state: ProcessState = ProcessState.ACTIVE
    need: List[int] = field(init=False)

    def __post_init__(self):
        """Initialize allocation and request vectors if not provided."""
        if not is_sequence(self.max_claim):
            raise ValueError(f"P{self.pid} max_claim must be a list of integers, got {self.max_claim!r}")
        num_resources = len(self.max_claim)
        self.max_claim = check_vector(self.max_claim, num_resources, f"P{self.pid} max_claim")
        if not self.allocation:
            self.allocation = [0] * num_resources
        if not self.request:
            self.request = [0] * num_resources
        self.allocation = check_vector(self.allocation, num_resources, f"P{self.pid} allocation")
        self.request = check_vector(self.request, num_resources, f"P{self.pid} request")

        for r, (held, claim) in enumerate(zip(self.allocation, self.max_claim)):
            if held > claim:
                raise ValueError(
                    f"P{self.pid}: allocation R{r}[{held}] exceeds max_claim ({claim})"
                )
        self._refresh_need()
        self._check_request(self.request)

    def _refresh_need(self) -> None:
        self.need = [claim - held for claim, held in zip(self.max_claim, self.allocation)]

    def is_terminated(self) -> bool:
        """True once the resolver has terminated this process."""
        return self.state == ProcessState.TERMINATED

    def is_waiting(self) -> bool:
        """True if the process has an outstanding request."""
        return any(self.request)

    def can_request(self, vector: Sequence[int]) -> bool:
        """
        Check a request against the remaining need.

        Args:
            vector: Instances requested per resource type

        Returns:
            True if every component is within need
        """
        return all(amount <= need for amount, need in zip(vector, self.need))

    def grant(self, vector: Sequence[int]) -> None:
        """
        Add a granted vector to the allocation.

        Raises:
            ValueError: If the allocation would exceed max_claim
        """
        if not self.can_request(vector):
            raise ValueError(
                f"P{self.pid}: cannot grant {list(vector)} - exceeds need {self.need}"
            )
        self.allocation = [held + int(amount) for held, amount in zip(self.allocation, vector)]
        # Granted instances serve the outstanding request first
        self.request = [max(wanted - int(amount), 0) for wanted, amount in zip(self.request, vector)]
        self._refresh_need()

    def set_allocation(self, row: Sequence[int]) -> None:
        """
        Replace the whole allocation row (batch configuration).

        Raises:
            ValueError: If the row exceeds max_claim

        Any outstanding request is trimmed to the new need.
        """
        row = check_vector(row, len(self.max_claim), f"P{self.pid} allocation")
        if any(held > claim for held, claim in zip(row, self.max_claim)):
            raise ValueError(f"P{self.pid}: allocation {row} exceeds max_claim {self.max_claim}")
        self.allocation = row
        self._refresh_need()
        # Outstanding request never exceeds need
        self.request = [min(wanted, need) for wanted, need in zip(self.request, self.need)]

    def set_request(self, vector: Sequence[int]) -> None:
        """
        Record the outstanding request used by deadlock detection.

        Raises:
            ValueError: If the vector is malformed or exceeds the remaining need
        """
        vector = check_vector(vector, len(self.max_claim), f"P{self.pid} request")
        self._check_request(vector)
        self.request = vector

    def _check_request(self, vector: List[int]) -> None:
        # max_claim = allocation + anything still to be requested
        if not self.can_request(vector):
            raise ValueError(f"P{self.pid}: request {vector} exceeds need {self.need}")

    def release_all_resources(self) -> List[int]:
        """
        Release everything the process holds.

        Need goes back to the full max_claim. The outstanding request is
        left as it is.

        Returns:
            List of released amounts by resource type
        """
        released = self.allocation.copy()
        self.allocation = [0] * len(self.allocation)
        self._refresh_need()
        return released

    def terminate(self) -> List[int]:
        """
        Mark process as terminated and release all its resources.

        Returns:
            List of released resource amounts
        """
        released = self.release_all_resources()
        self.request = [0] * len(self.request)
        self.state = ProcessState.TERMINATED
        return released

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Process(pid={self.pid}, state={self.state.value}, "
            f"alloc={self.allocation}, max={self.max_claim}, "
            f"need={self.need}, request={self.request})"
        )


@dataclass
class ProcessTable:
    """All processes of a system, indexed by pid."""
    processes: List[Process] = field(default_factory=list)

    def __post_init__(self):
        for index, process in enumerate(self.processes):
            if process.pid != index:
                raise ValueError(f"Process at position {index} has pid {process.pid}; pids must be 0..P-1")

    def __len__(self) -> int:
        return len(self.processes)

    def __iter__(self) -> Iterator[Process]:
        return iter(self.processes)

    def __getitem__(self, pid: int) -> Process:
        return self.get(pid)

    def get(self, pid: int) -> Process:
        """
        Look up a process by pid.

        Raises:
            ValueError: If no such process exists
        """
        if isinstance(pid, bool) or not isinstance(pid, (int, np.integer)) \
                or pid < 0 or pid >= len(self.processes):
            raise ValueError(f"Unknown process P{pid}")
        return self.processes[pid]

    def get_active(self, pid: int) -> Process:
        """
        Look up a process that is still part of the live system.

        Raises:
            ValueError: If the process is unknown or terminated
        """
        process = self.get(pid)
        if process.is_terminated():
            raise ValueError(f"Process P{pid} has been terminated")
        return process

    def active_pids(self) -> List[int]:
        """PIDs of processes that have not been terminated."""
        return [p.pid for p in self.processes if not p.is_terminated()]
