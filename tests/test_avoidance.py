"""
Deadlock Avoidance Tests

Tests single requests, batch allocations and releases under the
Banker's Algorithm.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from algorithms.avoidance import DenialReason, handle_batch, handle_request, release_resources
from algorithms.recovery import terminate_process
from models.system_state import ClaimPolicy, configure


def classic_state():
    """Five processes, three resource types, available [3, 3, 2]."""
    return configure(
        5, 3, [10, 5, 7],
        [[7, 5, 3], [3, 2, 2], [9, 0, 2], [2, 2, 2], [4, 3, 3]],
        allocation=[[0, 1, 0], [2, 0, 0], [3, 0, 2], [2, 1, 1], [0, 0, 2]],
        claim_policy=ClaimPolicy.PER_PROCESS,
    )


def batch_state():
    """Three processes whose claims exactly fill totals [6, 4]."""
    return configure(3, 2, [6, 4], [[3, 2], [2, 1], [1, 1]])


def test_safe_request_is_granted():
    """P1 requests [1, 0, 2]: the resulting state is safe."""
    state = classic_state()
    outcome = handle_request(state, 1, [1, 0, 2])

    assert outcome.granted, f"Request should be granted: {outcome.message}"
    assert outcome.reason is None
    assert list(outcome.sequence) == [1, 3, 0, 2, 4]
    assert state.available_vector.tolist() == [2, 3, 0]
    assert state.processes[1].allocation == [3, 0, 2]
    assert state.processes[1].need == [0, 2, 0]


def test_unsafe_request_is_denied_without_side_effects():
    """P4 requests [3, 3, 0]: fits in available but leaves nobody able to finish."""
    state = classic_state()
    before = state.snapshot()
    outcome = handle_request(state, 4, [3, 3, 0])

    assert not outcome.granted
    assert outcome.reason == DenialReason.WOULD_CAUSE_UNSAFE_STATE
    assert outcome.reason.value == "WouldCauseUnsafeState"
    assert outcome.safety is not None and not outcome.safety.safe
    assert state.snapshot() == before, "Denied request must leave the state untouched"


def test_request_after_grant_can_become_unsafe():
    state = classic_state()
    assert handle_request(state, 1, [1, 0, 2]).granted

    outcome = handle_request(state, 0, [0, 2, 0])
    assert not outcome.granted
    assert outcome.reason == DenialReason.WOULD_CAUSE_UNSAFE_STATE
    assert state.available_vector.tolist() == [2, 3, 0]


def test_request_exceeding_need_is_denied():
    state = classic_state()
    before = state.snapshot()
    outcome = handle_request(state, 1, [2, 0, 0])

    assert not outcome.granted
    assert outcome.reason == DenialReason.EXCEEDS_MAX_CLAIM
    assert outcome.safety is None, "No safety check should run"
    assert state.snapshot() == before


def test_request_exceeding_available_is_denied():
    state = classic_state()
    before = state.snapshot()
    outcome = handle_request(state, 0, [4, 0, 0])

    assert not outcome.granted
    assert outcome.reason == DenialReason.INSUFFICIENT_RESOURCES
    assert state.snapshot() == before


def test_need_is_checked_before_availability():
    state = classic_state()
    outcome = handle_request(state, 3, [0, 4, 0])

    assert outcome.reason == DenialReason.EXCEEDS_MAX_CLAIM


def test_zero_request_is_granted():
    state = classic_state()
    before = state.snapshot()
    outcome = handle_request(state, 0, [0, 0, 0])

    assert outcome.granted
    assert state.snapshot() == before


def test_malformed_requests_raise():
    state = classic_state()

    with pytest.raises(ValueError):
        handle_request(state, 7, [0, 0, 0])
    with pytest.raises(ValueError):
        handle_request(state, 0, [1, 0])
    with pytest.raises(ValueError):
        handle_request(state, 0, [1, -1, 0])


def test_terminated_process_cannot_request():
    state = classic_state()
    terminate_process(4, state)

    with pytest.raises(ValueError):
        handle_request(state, 4, [0, 0, 1])


def test_release_returns_allocation():
    state = classic_state()
    released = release_resources(state, 1)

    assert released == [2, 0, 0]
    assert state.available_vector.tolist() == [5, 3, 2]
    assert state.processes[1].allocation == [0, 0, 0]
    assert state.processes[1].need == [3, 2, 2], "Need resets to the full max claim"


def test_release_twice_releases_nothing():
    state = classic_state()
    release_resources(state, 3)

    assert release_resources(state, 3) == [0, 0, 0]
    assert state.available_vector.tolist() == [5, 4, 3]


def test_release_by_terminated_process_is_empty():
    state = classic_state()
    terminate_process(2, state)
    before = state.snapshot()

    assert release_resources(state, 2) == [0, 0, 0]
    assert state.snapshot() == before


def test_release_unknown_process_raises():
    with pytest.raises(ValueError):
        release_resources(classic_state(), 5)


def test_batch_over_capacity_is_denied():
    """Column 0 sums to 7 while only 6 instances exist."""
    state = batch_state()
    before = state.snapshot()
    outcome = handle_batch(state, [[3, 2], [2, 1], [2, 1]])

    assert not outcome.granted
    assert outcome.reason == DenialReason.EXCEEDS_TOTAL_CAPACITY
    assert outcome.safety is None, "Capacity check comes before any safety check"
    assert state.snapshot() == before


def test_batch_capacity_checked_before_max_claim():
    state = batch_state()
    outcome = handle_batch(state, [[3, 3], [3, 3], [3, 3]])

    assert outcome.reason == DenialReason.EXCEEDS_TOTAL_CAPACITY


def test_batch_over_max_claim_is_denied():
    state = batch_state()
    outcome = handle_batch(state, [[0, 0], [0, 0], [2, 0]])

    assert not outcome.granted
    assert outcome.reason == DenialReason.EXCEEDS_MAX_CLAIM


def test_batch_is_applied_and_available_recomputed():
    state = batch_state()
    outcome = handle_batch(state, [[2, 1], [1, 1], [1, 0]])

    assert outcome.granted, outcome.message
    assert state.allocation_matrix.tolist() == [[2, 1], [1, 1], [1, 0]]
    assert state.available_vector.tolist() == [2, 2], "Available is total minus every row"
    assert state.need_matrix.tolist() == [[1, 1], [1, 0], [0, 1]]

    follow_up = handle_request(state, 0, [1, 1])
    assert follow_up.granted
    assert state.available_vector.tolist() == [1, 1]


def test_batch_replaces_previous_allocation():
    state = classic_state()
    outcome = handle_batch(state, [[0, 0, 0]] * 5)

    assert outcome.granted
    assert state.available_vector.tolist() == [10, 5, 7]


def test_unsafe_batch_is_denied():
    state = configure(2, 1, [2], [[2], [2]], claim_policy=ClaimPolicy.PER_PROCESS)
    before = state.snapshot()
    outcome = handle_batch(state, [[1], [1]])

    assert not outcome.granted
    assert outcome.reason == DenialReason.WOULD_CAUSE_UNSAFE_STATE
    assert state.snapshot() == before


def test_malformed_batch_raises():
    state = batch_state()

    with pytest.raises(ValueError):
        handle_batch(state, 5)
    with pytest.raises(ValueError):
        handle_batch(state, [5, 5, 5])
    with pytest.raises(ValueError):
        handle_batch(state, [[0, 0], [0, 0]])
    with pytest.raises(ValueError):
        handle_batch(state, [[0, 0], [0, 0], [0]])


def test_batch_cannot_give_resources_to_terminated_process():
    state = batch_state()
    terminate_process(2, state)

    with pytest.raises(ValueError):
        handle_batch(state, [[0, 0], [0, 0], [1, 0]])
    assert handle_batch(state, [[1, 0], [0, 0], [0, 0]]).granted


def test_grant_reduces_outstanding_request():
    state = configure(1, 2, [3, 3], [[2, 2]], requests=[[2, 1]])
    outcome = handle_request(state, 0, [1, 1])

    assert outcome.granted
    assert state.processes[0].request == [1, 0]
    state.assert_resource_conservation("after partial grant of an outstanding request")
