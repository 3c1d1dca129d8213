"""
Deadlock Detection and Recovery Tests

Tests the Work/Finish detector and the termination-based resolver.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from algorithms.detection import detect_deadlock
from algorithms.reduction import ScanOrder
from algorithms.recovery import resolve_deadlock, select_victim, terminate_process
from algorithms.safety import is_safe_state
from models.process import ProcessState
from models.system_state import ClaimPolicy, configure, configure_detection


def circular_wait_state():
    """P0 holds R0 and wants R1, P1 holds R1 and wants R0."""
    return configure_detection([1, 1], [[1, 0], [0, 1]], [[0, 1], [1, 0]])


def partial_deadlock_state():
    """P0 can finish; P1, P2 and P3 wait on each other."""
    return configure_detection(
        [3, 3, 2],
        [[1, 0, 0], [0, 2, 0], [2, 0, 0], [0, 1, 2]],
        [[0, 0, 0], [2, 0, 0], [0, 1, 1], [0, 2, 0]],
    )


def test_circular_wait_is_detected():
    state = circular_wait_state()
    result = detect_deadlock(state)

    assert result.deadlock_exists, "Circular wait should be detected"
    assert result.deadlocked == (0, 1)
    assert result.deadlocked_set == frozenset({0, 1})
    assert result.trace == (), "Nobody can be reduced"
    assert list(result.work) == [0, 0]


def test_no_deadlock_when_requests_fit():
    state = configure_detection([2, 2], [[1, 0], [0, 1]], [[0, 1], [1, 0]])
    result = detect_deadlock(state)

    assert not result.deadlock_exists
    assert result.deadlocked == ()
    assert [step.pid for step in result.trace] == [0, 1]


def test_detection_uses_requests_not_need():
    """A process with a large need but no outstanding request is not deadlocked."""
    state = configure(2, 1, [2], [[2], [2]], allocation=[[1], [1]], claim_policy=ClaimPolicy.PER_PROCESS)
    assert not is_safe_state(state).safe

    result = detect_deadlock(state)
    assert not result.deadlock_exists


def test_partial_deadlock_leaves_finishable_process_out():
    state = partial_deadlock_state()
    result = detect_deadlock(state, ScanOrder.SWEEP)

    assert result.deadlocked == (1, 2, 3)
    assert [step.pid for step in result.trace] == [0]
    assert result.trace[0].work_after == (1, 0, 0)


def test_detection_is_read_only_and_repeatable():
    state = partial_deadlock_state()
    before = state.snapshot()

    first = detect_deadlock(state)
    second = detect_deadlock(state)

    assert first == second, "Detection must be idempotent"
    assert state.snapshot() == before


def test_terminated_processes_are_never_deadlocked():
    state = circular_wait_state()
    terminate_process(0, state)
    result = detect_deadlock(state)

    assert not result.deadlock_exists
    assert [step.pid for step in result.trace] == [1]


def test_select_victim_prefers_smallest_allocation():
    state = partial_deadlock_state()

    assert select_victim([1, 2, 3], state) == 1, "Tie between P1 and P2 goes to the lower pid"
    assert select_victim([2, 3], state) == 2
    assert select_victim([3], state) == 3
    with pytest.raises(ValueError):
        select_victim([], state)


def test_resolve_circular_wait():
    state = circular_wait_state()
    steps = resolve_deadlock(state, detect_deadlock(state).deadlocked)

    assert [s.victim for s in steps] == [0, 1]
    assert steps[0].resources_released == (1, 0)
    assert steps[0].available_after == (1, 0)
    assert steps[0].remaining_deadlocked == (1,)
    assert steps[1].resources_released == (0, 1)
    assert steps[1].available_after == (1, 1)
    assert steps[1].remaining_deadlocked == ()
    assert steps[1].allocation_after == ((0, 0), (0, 0))

    assert all(p.state == ProcessState.TERMINATED for p in state.processes)
    assert not detect_deadlock(state).deadlock_exists


def test_resolve_partial_deadlock():
    state = partial_deadlock_state()
    steps = resolve_deadlock(state, detect_deadlock(state).deadlocked)

    assert [s.victim for s in steps] == [1, 2, 3]
    assert [s.available_after for s in steps] == [(0, 2, 0), (2, 2, 0), (2, 3, 2)]
    assert state.processes[0].state == ProcessState.ACTIVE, "P0 was never deadlocked"
    assert state.processes[0].allocation == [1, 0, 0]
    assert not detect_deadlock(state).deadlock_exists


def test_resolve_empty_set_does_nothing():
    state = circular_wait_state()
    before = state.snapshot()

    assert resolve_deadlock(state, []) == []
    assert state.snapshot() == before


def test_resolve_rejects_terminated_or_unknown_pids():
    state = circular_wait_state()
    terminate_process(1, state)
    before = state.snapshot()

    with pytest.raises(ValueError):
        resolve_deadlock(state, [0, 1])
    with pytest.raises(ValueError):
        resolve_deadlock(state, [0, 9])
    assert state.snapshot() == before, "Validation happens before any termination"


def test_terminate_twice_raises():
    state = circular_wait_state()
    assert terminate_process(0, state) == [1, 0]

    with pytest.raises(ValueError):
        terminate_process(0, state)
