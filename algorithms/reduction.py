"""
Resource reduction primitive shared by the safety check and deadlock detection.

Both algorithms repeatedly look for an unfinished process whose demand fits
in the Work vector, pretend it runs to completion and reclaim its allocation.
The safety check uses Need as the demand, detection uses the outstanding
Request.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np


class ScanOrder(Enum):
    """Order in which unfinished processes are examined."""
    RESTART = "restart"  # restart from P0 after every reduction
    SWEEP = "sweep"      # finish the current pass, then start another


@dataclass(frozen=True)
class ReductionStep:
    """
    One process reduced by the algorithm.

    Attributes:
        step: 1-based position in the reduction order
        pid: Process reduced at this step
        demand: The demand vector that fit in Work (need or request)
        allocation: Allocation reclaimed from the process
        work_before: Work vector when the process was examined
        work_after: Work vector after reclaiming the allocation
        finish: Finish vector after this step
    """
    step: int
    pid: int
    demand: Tuple[int, ...]
    allocation: Tuple[int, ...]
    work_before: Tuple[int, ...]
    work_after: Tuple[int, ...]
    finish: Tuple[bool, ...]


@dataclass(frozen=True)
class ReductionResult:
    """Fixed point of the reduction: who finished, in which order, and how."""
    finish: Tuple[bool, ...]
    sequence: Tuple[int, ...]
    trace: Tuple[ReductionStep, ...]
    work: Tuple[int, ...]

    @property
    def all_finished(self) -> bool:
        return all(self.finish)

    @property
    def unfinished(self) -> Tuple[int, ...]:
        """Indices left with Finish[i] == False."""
        return tuple(i for i, done in enumerate(self.finish) if not done)


def reduce_state(
    available: Sequence[int],
    demand_matrix,
    allocation_matrix,
    active: Optional[Iterable[int]] = None,
    scan_order: ScanOrder = ScanOrder.RESTART,
) -> ReductionResult:
    """
    Run the Work/Finish reduction to its fixed point.

    Algorithm:
    1. Work = Available.copy(), Finish[i] = True for inactive processes
    2. Find unfinished i (ascending index) with Demand[i] <= Work
    3. If found: Work += Allocation[i], Finish[i] = True, record the step
    4. Repeat until a full pass makes no progress

    Time Complexity: O(P²×R)

    Args:
        available: Available vector [R]
        demand_matrix: Need or Request matrix [P][R]
        allocation_matrix: Allocation matrix [P][R]
        active: Indices taking part; the rest count as already finished
            and never appear in the sequence (default: all)
        scan_order: RESTART or SWEEP, see ScanOrder

    Returns:
        ReductionResult; the inputs are not modified
    """
    work = np.array(available, dtype=int).copy()
    num_resources = work.shape[0]
    demand = np.array(demand_matrix, dtype=int).reshape(-1, num_resources)
    allocation = np.array(allocation_matrix, dtype=int).reshape(-1, num_resources)
    num_processes = demand.shape[0]

    if allocation.shape != demand.shape:
        raise ValueError(
            f"demand matrix {demand.shape} and allocation matrix {allocation.shape} differ"
        )

    finish = np.ones(num_processes, dtype=bool)
    candidates = range(num_processes) if active is None else active
    for i in candidates:
        finish[i] = False

    sequence = []
    trace = []

    made_progress = True
    while made_progress:
        made_progress = False

        for i in range(num_processes):
            if finish[i]:
                continue

            if np.all(demand[i] <= work):
                work_before = tuple(int(x) for x in work)
                work += allocation[i]
                finish[i] = True
                sequence.append(i)
                trace.append(ReductionStep(
                    step=len(trace) + 1,
                    pid=i,
                    demand=tuple(int(x) for x in demand[i]),
                    allocation=tuple(int(x) for x in allocation[i]),
                    work_before=work_before,
                    work_after=tuple(int(x) for x in work),
                    finish=tuple(bool(f) for f in finish),
                ))
                made_progress = True
                if scan_order == ScanOrder.RESTART:
                    break  # Newly freed resources are offered to P0 first

    return ReductionResult(
        finish=tuple(bool(f) for f in finish),
        sequence=tuple(sequence),
        trace=tuple(trace),
        work=tuple(int(x) for x in work),
    )
