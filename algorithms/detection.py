"""
Deadlock Detection Algorithm for the Resource Allocation & Deadlock Engine.

Implements matrix-based deadlock detection (Work/Finish algorithm) for
multi-instance resource systems.
"""

from dataclasses import dataclass
from typing import FrozenSet, Tuple

from algorithms.reduction import ReductionStep, ScanOrder, reduce_state
from models.system_state import SystemState


@dataclass(frozen=True)
class DetectionResult:
    """
    Deadlocked processes and the reduction that found them.

    Attributes:
        deadlocked: PIDs left unfinished, ascending
        trace: Which process was reduced at each step, with the Work vector
        work: Work vector at the fixed point
    """
    deadlocked: Tuple[int, ...]
    trace: Tuple[ReductionStep, ...]
    work: Tuple[int, ...]

    @property
    def deadlock_exists(self) -> bool:
        return len(self.deadlocked) > 0

    @property
    def deadlocked_set(self) -> FrozenSet[int]:
        return frozenset(self.deadlocked)


def detect_deadlock(
    system_state: SystemState,
    scan_order: ScanOrder = ScanOrder.RESTART,
) -> DetectionResult:
    """
    Detect deadlock using matrix-based Work/Finish algorithm.

    Algorithm (Multi-Instance Resources):
    1. Initialize Work = Available.copy(), Finish = [False] * num_processes
    2. Set Finish[i] = True for processes already TERMINATED
    3. Find process i where Finish[i] == False and Request[i] <= Work (element-wise)
    4. If found: Finish[i] = True, Work += Allocation[i], repeat step 3
    5. If no such process: deadlock exists if any Finish[i] == False

    CRITICAL: Uses Request[i] (current pending request), NOT Need[i] (max future request)

    The state is only read, so repeated calls on an unchanged state return
    identical results.

    Time Complexity: O(P²×R) where P = processes, R = resource types

    Args:
        system_state: Current global system state

    Returns:
        DetectionResult

    References:
        Silberschatz, A., Galvin, P. B., & Gagne, G. (2018).
        Operating System Concepts (10th ed.). Chapter 8.7: Deadlock Detection.
    """
    result = reduce_state(
        system_state.available_vector,
        system_state.request_matrix,
        system_state.allocation_matrix,
        active=system_state.active_pids(),
        scan_order=scan_order,
    )
    return DetectionResult(
        deadlocked=result.unfinished,
        trace=result.trace,
        work=result.work,
    )
