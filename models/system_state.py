"""
System State model for the Resource Allocation & Deadlock Engine.

Holds the resource ledger and the process table and exposes the matrices
and vectors used by the safety, detection and resolution algorithms.
"""

import copy
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np
from dataclasses import dataclass, field

from models.errors import ConfigError, OverAllocatedError
from models.process import Process, ProcessState, ProcessTable, check_vector, is_sequence
from models.resource import ResourceLedger


class ClaimPolicy(Enum):
    """How declared maximum claims are checked against capacity at configuration."""
    AGGREGATE = "aggregate"      # sum(max_claim[:, r]) <= total[r]
    PER_PROCESS = "per_process"  # max_claim[i][r] <= total[r] for every process


@dataclass
class SystemState:
    """
    Global system state for the engine.

    Matrices are rebuilt from the process and resource records on every
    access, so they can never go stale after a mutation.

    Attributes:
        ledger: Total/available instances per resource type
        table: All processes, indexed by pid
    """
    ledger: ResourceLedger = field(default_factory=ResourceLedger)
    table: ProcessTable = field(default_factory=ProcessTable)

    @property
    def num_processes(self) -> int:
        """Number of processes in the system (terminated ones included)."""
        return len(self.table)

    @property
    def num_resources(self) -> int:
        """Number of resource types in the system."""
        return len(self.ledger)

    @property
    def processes(self) -> List[Process]:
        return self.table.processes

    @property
    def allocation_matrix(self) -> np.ndarray:
        """Get allocation matrix [P][R]."""
        return self._build_matrix(lambda p: p.allocation)

    @property
    def max_claim_matrix(self) -> np.ndarray:
        """Get max claim matrix [P][R]."""
        return self._build_matrix(lambda p: p.max_claim)

    @property
    def need_matrix(self) -> np.ndarray:
        """
        Get need matrix [P][R].
        Equal to Max - Allocation; used by the safety check.
        """
        return self._build_matrix(lambda p: p.need)

    @property
    def request_matrix(self) -> np.ndarray:
        """Get outstanding request matrix [P][R]; used by detection."""
        return self._build_matrix(lambda p: p.request)

    @property
    def available_vector(self) -> np.ndarray:
        """Get available resources vector [R]."""
        return self.ledger.available_vector

    @property
    def total_vector(self) -> np.ndarray:
        """Get total resources vector [R]."""
        return self.ledger.total_vector

    def _build_matrix(self, row_of) -> np.ndarray:
        matrix = np.zeros((self.num_processes, self.num_resources), dtype=int)
        for i, process in enumerate(self.processes):
            matrix[i] = row_of(process)
        return matrix

    def active_pids(self) -> List[int]:
        """PIDs still part of the live system."""
        return self.table.active_pids()

    def clone(self) -> "SystemState":
        """Deep copy used for tentative (what-if) evaluation."""
        return copy.deepcopy(self)

    def snapshot(self) -> Dict:
        """
        Plain-data snapshot of the state, for replay and comparison.

        Returns:
            Dictionary of nested lists/tuples (no numpy types)
        """
        return {
            'available': self.available_vector.tolist(),
            'total': self.total_vector.tolist(),
            'allocation': self.allocation_matrix.tolist(),
            'max_claim': self.max_claim_matrix.tolist(),
            'need': self.need_matrix.tolist(),
            'request': self.request_matrix.tolist(),
            'states': [p.state.value for p in self.processes],
        }

    def display(self) -> str:
        """
        Generate readable string representation of system state.

        Returns:
            Formatted string showing all matrices and vectors
        """
        header = "     " + " ".join([f"R{i:2}" for i in range(self.num_resources)])
        output = []
        output.append("\n" + "=" * 60)
        output.append("SYSTEM STATE")
        output.append("=" * 60)

        output.append("\nProcess States:")
        for process in self.processes:
            waiting = " (waiting)" if process.is_waiting() else ""
            output.append(f"  P{process.pid}: {process.state.value}{waiting}")

        output.append("\nResources (available/total):")
        output.append("  [" + ", ".join(
            f"R{r.type_id}:{r.available_instances}/{r.total_instances}" for r in self.ledger
        ) + "]")

        for title, matrix in (
            ("Allocation Matrix", self.allocation_matrix),
            ("Max Claim Matrix", self.max_claim_matrix),
            ("Need Matrix (Max - Allocation)", self.need_matrix),
            ("Request Matrix (Outstanding)", self.request_matrix),
        ):
            output.append(f"\n{title}:")
            output.append(header)
            for i, process in enumerate(self.processes):
                row = f"  P{process.pid}: "
                row += " ".join([f"{matrix[i][j]:3}" for j in range(self.num_resources)])
                output.append(row)

        output.append("\n" + "=" * 60)
        return "\n".join(output)

    def assert_resource_conservation(self, context=""):
        """Verify resource conservation: allocated + available = total for all resources.

        Args:
            context: Description of when this check is being run (for error messages)

        Raises:
            AssertionError: If resource conservation is violated
        """
        allocation_matrix = self.allocation_matrix

        for r_idx, resource in enumerate(self.ledger):
            allocated = int(allocation_matrix[:, r_idx].sum())
            available = resource.available_instances
            total = resource.total_instances

            assert allocated + available == total, (
                f"Resource conservation violated for R{r_idx} {context}\n"
                f"  Allocated: {allocated}, Available: {available}, Total: {total}\n"
                f"  Allocated + Available = {allocated + available} != {total}"
            )
            assert 0 <= available <= total, (
                f"Available resources out of range for R{r_idx} {context}\n"
                f"  Available: {available}, Total: {total}"
            )

        for process in self.processes:
            assert all(0 <= held <= claim for held, claim in zip(process.allocation, process.max_claim)), (
                f"P{process.pid} allocation {process.allocation} outside [0, {process.max_claim}] {context}"
            )
            assert process.need == [c - a for c, a in zip(process.max_claim, process.allocation)], (
                f"P{process.pid} need {process.need} out of step with max - allocation {context}"
            )
            assert all(0 <= wanted <= need for wanted, need in zip(process.request, process.need)), (
                f"P{process.pid} request {process.request} outside [0, {process.need}] {context}"
            )


def configure(
    process_count: int,
    resource_count: int,
    totals: Sequence[int],
    max_claims: Sequence[Sequence[int]],
    allocation: Optional[Sequence[Sequence[int]]] = None,
    requests: Optional[Sequence[Sequence[int]]] = None,
    claim_policy: ClaimPolicy = ClaimPolicy.AGGREGATE,
) -> SystemState:
    """
    Build a system state from its one-time configuration.

    Args:
        process_count: Number of processes (P >= 1)
        resource_count: Number of resource types (R >= 1)
        totals: Total instances per resource type [R]
        max_claims: Declared maximum claim per process [P][R]
        allocation: Optional initial allocation [P][R] (defaults to zeros)
        requests: Optional outstanding requests [P][R] (defaults to zeros)
        claim_policy: How max_claims are checked against totals

    Returns:
        Configured SystemState with available = total - allocated

    Raises:
        OverAllocatedError: If claims (per claim_policy) or initial
            allocations exceed the totals
        ConfigError: If an initial allocation exceeds its process's max claim
        ValueError: On malformed dimensions, negative quantities, or a
            request above its process's remaining need
    """
    if process_count < 1:
        raise ValueError(f"process_count must be at least 1, got {process_count}")
    if resource_count < 1:
        raise ValueError(f"resource_count must be at least 1, got {resource_count}")

    totals = check_vector(totals, resource_count, "totals")
    max_claims = check_matrix(max_claims, process_count, resource_count, "max_claims")
    allocation = (
        check_matrix(allocation, process_count, resource_count, "allocation")
        if allocation is not None else [[0] * resource_count for _ in range(process_count)]
    )
    requests = (
        check_matrix(requests, process_count, resource_count, "requests")
        if requests is not None else [[0] * resource_count for _ in range(process_count)]
    )

    claims = np.array(max_claims, dtype=int)
    held = np.array(allocation, dtype=int)

    # CRITICAL CHECK: declared claims must fit the system
    for r in range(resource_count):
        if claim_policy == ClaimPolicy.AGGREGATE:
            claimed = int(claims[:, r].sum())
            if claimed > totals[r]:
                raise OverAllocatedError(r, claimed, totals[r])
        else:
            claimed = int(claims[:, r].max())
            if claimed > totals[r]:
                raise OverAllocatedError(r, claimed, totals[r], what="a single maximum claim")

    for r in range(resource_count):
        allocated = int(held[:, r].sum())
        if allocated > totals[r]:
            raise OverAllocatedError(r, allocated, totals[r], what="initial allocations")

    for i in range(process_count):
        for r in range(resource_count):
            if allocation[i][r] > max_claims[i][r]:
                raise ConfigError(
                    f"P{i}: initial allocation R{r}[{allocation[i][r]}] "
                    f"exceeds max_claim ({max_claims[i][r]})"
                )

    ledger = ResourceLedger.from_totals(totals)
    ledger.set_available([totals[r] - int(held[:, r].sum()) for r in range(resource_count)])

    table = ProcessTable([
        Process(
            pid=i,
            max_claim=max_claims[i],
            allocation=allocation[i],
            request=requests[i],
            state=ProcessState.ACTIVE,
        )
        for i in range(process_count)
    ])

    system_state = SystemState(ledger=ledger, table=table)
    system_state.assert_resource_conservation("at configuration")
    return system_state


def configure_detection(
    totals: Sequence[int],
    allocation: Sequence[Sequence[int]],
    requests: Sequence[Sequence[int]],
) -> SystemState:
    """
    Build a state for a detection exercise from allocation and request matrices.

    Each process's max claim is taken as allocation + request, checked
    per process, since only holdings and outstanding requests matter to
    detection.
    """
    if not is_sequence(totals) or not is_sequence(allocation):
        raise ValueError("totals and allocation must be lists")
    totals = list(totals)
    allocation = list(allocation)
    allocation = check_matrix(allocation, len(allocation), len(totals), "allocation")
    requests = check_matrix(requests, len(allocation), len(totals), "requests")
    max_claims = [
        [int(a) + int(q) for a, q in zip(held, wanted)]
        for held, wanted in zip(allocation, requests)
    ]
    return configure(
        len(allocation),
        len(totals),
        totals,
        max_claims,
        allocation=allocation,
        requests=requests,
        claim_policy=ClaimPolicy.PER_PROCESS,
    )


def check_matrix(matrix, rows: int, cols: int, name: str = "matrix") -> List[List[int]]:
    """
    Validate a [rows][cols] matrix of non-negative ints.

    Raises:
        ValueError: If the matrix is not a list of rows, has the wrong
            shape, or holds an invalid component
    """
    if not is_sequence(matrix):
        raise ValueError(f"{name} must be a list of rows, got {matrix!r}")
    matrix = list(matrix)
    if len(matrix) != rows:
        raise ValueError(f"{name} has {len(matrix)} rows, expected {rows}")
    return [check_vector(row, cols, f"{name}[{i}]") for i, row in enumerate(matrix)]
