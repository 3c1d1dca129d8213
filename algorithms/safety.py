"""
Banker's safety check for the Resource Allocation & Deadlock Engine.

Decides whether a (possibly hypothetical) state is safe and, if so,
produces a witness completion order.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from algorithms.reduction import ReductionStep, ScanOrder, reduce_state
from models.system_state import SystemState


@dataclass(frozen=True)
class SafetyResult:
    """
    Outcome of a safety check.

    Attributes:
        safe: True if every active process can finish
        sequence: Safe sequence if safe, otherwise the partial list of
            processes that could finish (not authoritative)
        trace: One step per process reduced
        work: Work vector at the fixed point
    """
    safe: bool
    sequence: Tuple[int, ...]
    trace: Tuple[ReductionStep, ...]
    work: Tuple[int, ...]

    def format_sequence(self) -> str:
        return " -> ".join(f"P{pid}" for pid in self.sequence) or "(empty)"


def is_safe_state(
    system_state: SystemState,
    scan_order: ScanOrder = ScanOrder.RESTART,
) -> SafetyResult:
    """
    Check if system is in a safe state using Banker's Algorithm.

    Algorithm:
    1. Initialize Work = Available, Finish = [False] * num_processes
    2. Find process i where Finish[i] == False and Need[i] <= Work
    3. If found: Finish[i] = True, Work += Allocation[i], add PID to sequence
    4. Repeat step 2 until all processes finish (SAFE) or stuck (UNSAFE)

    Terminated processes hold nothing and are skipped.

    Args:
        system_state: State to evaluate (not modified)
        scan_order: Tie-break discipline for the reduction

    Returns:
        SafetyResult

    References:
        Silberschatz, A., Galvin, P. B., & Gagne, G. (2018).
        Operating System Concepts (10th ed.). Chapter 8.6: Deadlock Avoidance.
    """
    result = reduce_state(
        system_state.available_vector,
        system_state.need_matrix,
        system_state.allocation_matrix,
        active=system_state.active_pids(),
        scan_order=scan_order,
    )
    return SafetyResult(
        safe=result.all_finished,
        sequence=result.sequence,
        trace=result.trace,
        work=result.work,
    )


def verify_safe_sequence(system_state: SystemState, sequence: Sequence[int]) -> bool:
    """
    Replay a candidate safe sequence against a state.

    The sequence is valid if it names every active process exactly once and
    each process's need fits in Work when its turn comes.
    """
    active = system_state.active_pids()
    if sorted(sequence) != sorted(active) or len(set(sequence)) != len(sequence):
        return False

    work = system_state.available_vector
    need = system_state.need_matrix
    allocation = system_state.allocation_matrix
    for pid in sequence:
        if np.any(need[pid] > work):
            return False
        work = work + allocation[pid]
    return True
