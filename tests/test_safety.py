"""
Safety Check Tests

Tests the Banker's safety check on the classic textbook state, on unsafe
states and on states with terminated processes.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from algorithms.reduction import ScanOrder, reduce_state
from algorithms.recovery import terminate_process
from algorithms.safety import is_safe_state, verify_safe_sequence
from models.system_state import ClaimPolicy, configure


def classic_state():
    """Five processes, three resource types, available [3, 3, 2]."""
    return configure(
        5, 3, [10, 5, 7],
        [[7, 5, 3], [3, 2, 2], [9, 0, 2], [2, 2, 2], [4, 3, 3]],
        allocation=[[0, 1, 0], [2, 0, 0], [3, 0, 2], [2, 1, 1], [0, 0, 2]],
        claim_policy=ClaimPolicy.PER_PROCESS,
    )


def test_classic_state_restart_order():
    """Restarting from P0 after each reduction gives P1, P3, P0, P2, P4."""
    state = classic_state()
    result = is_safe_state(state)

    assert result.safe, "Classic state should be safe"
    assert list(result.sequence) == [1, 3, 0, 2, 4], f"Unexpected sequence {result.sequence}"
    assert result.format_sequence() == "P1 -> P3 -> P0 -> P2 -> P4"
    assert list(result.work) == [10, 5, 7], "All allocations should be reclaimed"


def test_classic_state_sweep_order():
    """Finishing each pass before restarting gives P1, P3, P4, P0, P2."""
    state = classic_state()
    result = is_safe_state(state, ScanOrder.SWEEP)

    assert result.safe
    assert list(result.sequence) == [1, 3, 4, 0, 2], f"Unexpected sequence {result.sequence}"


def test_trace_records_work_vector():
    state = classic_state()
    result = is_safe_state(state)

    first = result.trace[0]
    assert first.step == 1 and first.pid == 1
    assert first.demand == (1, 2, 2)
    assert first.work_before == (3, 3, 2)
    assert first.work_after == (5, 3, 2)
    assert first.finish == (False, True, False, False, False)
    assert len(result.trace) == 5
    assert result.trace[-1].finish == (True,) * 5


def test_safety_check_does_not_modify_state():
    state = classic_state()
    before = state.snapshot()

    is_safe_state(state)
    is_safe_state(state, ScanOrder.SWEEP)

    assert state.snapshot() == before, "Safety check must be read-only"


def test_unsafe_state_has_no_sequence():
    """Both processes need one more instance and none is free."""
    state = configure(2, 1, [2], [[2], [2]], allocation=[[1], [1]], claim_policy=ClaimPolicy.PER_PROCESS)
    result = is_safe_state(state)

    assert not result.safe, "State should be unsafe"
    assert result.sequence == ()
    assert result.format_sequence() == "(empty)"


def test_unsafe_state_reports_partial_sequence():
    state = configure(
        3, 1, [3], [[1], [3], [3]],
        allocation=[[1], [1], [1]],
        claim_policy=ClaimPolicy.PER_PROCESS,
    )
    result = is_safe_state(state)

    assert not result.safe
    assert list(result.sequence) == [0], "P0 can still finish on its own"
    assert list(result.work) == [1]


def test_state_without_allocations_is_safe():
    state = configure(3, 2, [4, 4], [[1, 1], [2, 1], [1, 2]])
    result = is_safe_state(state)

    assert result.safe
    assert list(result.sequence) == [0, 1, 2]


def test_terminated_processes_are_skipped():
    state = classic_state()
    terminate_process(2, state)
    result = is_safe_state(state)

    assert result.safe
    assert 2 not in result.sequence, "Terminated process must not appear in the sequence"
    assert sorted(result.sequence) == [0, 1, 3, 4]
    assert verify_safe_sequence(state, result.sequence)


def test_verify_safe_sequence():
    state = classic_state()

    assert verify_safe_sequence(state, [1, 3, 0, 2, 4])
    assert verify_safe_sequence(state, [1, 3, 4, 0, 2])
    assert not verify_safe_sequence(state, [0, 1, 2, 3, 4]), "P0 cannot run first"
    assert not verify_safe_sequence(state, [1, 3, 0, 2]), "Every process must be named"
    assert not verify_safe_sequence(state, [1, 3, 0, 2, 2])


def test_reduce_state_respects_active_subset():
    result = reduce_state([0], [[1], [0]], [[0], [1]], active=[0])

    assert result.finish == (False, True), "Inactive process counts as finished"
    assert result.sequence == ()
    assert result.unfinished == (0,)
    assert not result.all_finished
