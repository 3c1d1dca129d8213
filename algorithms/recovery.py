"""
Deadlock Recovery Algorithm for the Resource Allocation & Deadlock Engine.

Implements victim selection and process termination.
"""

from dataclasses import dataclass
from typing import Iterable, List, Tuple

from models.system_state import SystemState


@dataclass(frozen=True)
class ResolutionStep:
    """
    One termination performed by the resolver.

    Carries enough data to rebuild the state right after the step.

    Attributes:
        step: 1-based step number
        victim: PID terminated at this step
        resources_released: Allocation the victim held
        available_after: Available vector after the release
        remaining_deadlocked: Deadlocked PIDs still to be handled
        allocation_after: Allocation matrix after the release
    """
    step: int
    victim: int
    resources_released: Tuple[int, ...]
    available_after: Tuple[int, ...]
    remaining_deadlocked: Tuple[int, ...]
    allocation_after: Tuple[Tuple[int, ...], ...]


def select_victim(deadlocked_pids: Iterable[int], system_state: SystemState) -> int:
    """
    Select victim process for termination.

    Picks the process holding the fewest instances in total; ties go to
    the lowest PID.

    Args:
        deadlocked_pids: PIDs still deadlocked (non-empty)
        system_state: Current system state

    Returns:
        PID of selected victim
    """
    pids = list(deadlocked_pids)
    if not pids:
        raise ValueError("Cannot select a victim from an empty set")
    return min(pids, key=lambda pid: (sum(system_state.table.get(pid).allocation), pid))


def terminate_process(pid: int, system_state: SystemState) -> List[int]:
    """
    Terminate a process and release all its resources.

    Process termination:
    - Set state to TERMINATED
    - Release all allocated resources (update Available vector)
    - Clear allocation and request vectors

    Args:
        pid: Process ID to terminate
        system_state: Current system state

    Returns:
        List of released amounts by resource type

    Raises:
        ValueError: If the process is unknown or already terminated
    """
    process = system_state.table.get_active(pid)
    released = process.terminate()
    system_state.ledger.deallocate_vector(released)

    # SANITY CHECK: Verify resource conservation after termination
    system_state.assert_resource_conservation(f"after terminating P{pid}")
    return released


def resolve_deadlock(system_state: SystemState, deadlocked_pids: Iterable[int]) -> List[ResolutionStep]:
    """
    Terminate deadlocked processes until none of the given set is left.

    Victims are drained from the originally detected set by ascending
    allocation size. Detection is not re-run between terminations, so
    every process in the set is terminated.

    Args:
        system_state: Current system state (mutated)
        deadlocked_pids: PIDs reported by detection

    Returns:
        One ResolutionStep per terminated process, in order

    Raises:
        ValueError: If a PID is unknown or already terminated
    """
    pids = list(deadlocked_pids)
    for pid in pids:
        system_state.table.get_active(pid)
    remaining = sorted(set(pids))

    steps = []
    while remaining:
        victim = select_victim(remaining, system_state)
        released = terminate_process(victim, system_state)
        remaining.remove(victim)

        steps.append(ResolutionStep(
            step=len(steps) + 1,
            victim=victim,
            resources_released=tuple(released),
            available_after=tuple(int(x) for x in system_state.available_vector),
            remaining_deadlocked=tuple(remaining),
            allocation_after=tuple(
                tuple(int(x) for x in row) for row in system_state.allocation_matrix
            ),
        ))

    return steps
