"""
Deadlock Avoidance (Banker's Algorithm) for the Resource Allocation & Deadlock Engine.

Validates requests against need and availability, evaluates them on a
tentative copy of the state and commits only those that keep the system safe.
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from algorithms.reduction import ScanOrder
from algorithms.safety import SafetyResult, is_safe_state
from models.process import check_vector
from models.system_state import SystemState, check_matrix


class DenialReason(Enum):
    """Why a request was refused. All of these are recoverable."""
    EXCEEDS_MAX_CLAIM = "ExceedsMaxClaim"
    INSUFFICIENT_RESOURCES = "InsufficientResources"
    WOULD_CAUSE_UNSAFE_STATE = "WouldCauseUnsafeState"
    EXCEEDS_TOTAL_CAPACITY = "ExceedsTotalCapacity"


@dataclass(frozen=True)
class RequestOutcome:
    """
    Result of a single or batch request.

    Attributes:
        granted: Whether the request was committed
        reason: Denial reason (None when granted)
        sequence: Safe sequence of the resulting state when granted
        message: Human-readable explanation
        safety: Safety check that decided the request, if one ran
    """
    granted: bool
    reason: Optional[DenialReason] = None
    sequence: Tuple[int, ...] = ()
    message: str = ""
    safety: Optional[SafetyResult] = None

    @classmethod
    def grant(cls, safety: SafetyResult, message: str) -> "RequestOutcome":
        return cls(granted=True, sequence=safety.sequence, message=message, safety=safety)

    @classmethod
    def deny(cls, reason: DenialReason, message: str,
             safety: Optional[SafetyResult] = None) -> "RequestOutcome":
        return cls(granted=False, reason=reason, message=message, safety=safety)


def handle_request(
    system_state: SystemState,
    pid: int,
    request: Sequence[int],
    scan_order: ScanOrder = ScanOrder.RESTART,
) -> RequestOutcome:
    """
    Handle a resource request using Banker's Algorithm.

    Steps:
    1. Validate: request <= need (otherwise ExceedsMaxClaim)
    2. Check: request <= available (otherwise InsufficientResources)
    3. Tentatively allocate on a clone of the state
    4. Run safety algorithm on the clone
    5. If safe: apply the same allocation to the real state
       If unsafe: drop the clone (WouldCauseUnsafeState)

    A denied request leaves the state exactly as it was.

    Args:
        system_state: Current system state (mutated only on grant)
        pid: Requesting process
        request: Instances requested per resource type [R]
        scan_order: Tie-break discipline for the safety check

    Returns:
        RequestOutcome

    Raises:
        ValueError: On malformed vector, unknown or terminated process
    """
    process = system_state.table.get_active(pid)
    vector = np.array(check_vector(request, system_state.num_resources, "request"), dtype=int)

    # Step 1: Validate request doesn't exceed need
    need = np.array(process.need, dtype=int)
    if np.any(vector > need):
        return RequestOutcome.deny(
            DenialReason.EXCEEDS_MAX_CLAIM,
            f"Request {vector.tolist()} exceeds need {need.tolist()}",
        )

    # Step 2: Check if resources are available
    available = system_state.available_vector
    if np.any(vector > available):
        return RequestOutcome.deny(
            DenialReason.INSUFFICIENT_RESOURCES,
            f"Insufficient resources (requested: {vector.tolist()}, available: {available.tolist()})",
        )

    # Step 3-4: Tentative allocation on a private copy
    tentative = system_state.clone()
    _apply_grant(tentative, pid, vector)
    safety = is_safe_state(tentative, scan_order)

    if not safety.safe:
        return RequestOutcome.deny(
            DenialReason.WOULD_CAUSE_UNSAFE_STATE,
            "Unsafe state detected - request would risk deadlock",
            safety=safety,
        )

    # Step 5: Commit the same arithmetic to the real state
    _apply_grant(system_state, pid, vector)

    # SANITY CHECK: Verify resource conservation after grant
    system_state.assert_resource_conservation(f"after granting {vector.tolist()} to P{pid}")

    return RequestOutcome.grant(
        safety,
        f"Safe state maintained, sequence: {safety.format_sequence()}",
    )


def handle_batch(
    system_state: SystemState,
    allocation_matrix: Sequence[Sequence[int]],
    scan_order: ScanOrder = ScanOrder.RESTART,
) -> RequestOutcome:
    """
    Replace every process's allocation at once, if the result is safe.

    Checks, in order:
    1. sum(matrix[:, r]) <= total[r] for every r (ExceedsTotalCapacity,
       no safety check attempted)
    2. matrix[i] <= max_claim[i] for every i (ExceedsMaxClaim)
    3. The resulting state is safe (WouldCauseUnsafeState)

    All rows are committed together or none are.

    Args:
        system_state: Current system state (mutated only on grant)
        allocation_matrix: New allocation per process [P][R]
        scan_order: Tie-break discipline for the safety check

    Returns:
        RequestOutcome

    Raises:
        ValueError: On malformed matrix, or a non-zero row for a
            terminated process
    """
    rows = check_matrix(allocation_matrix, system_state.num_processes, system_state.num_resources, "batch")
    matrix = np.array(rows, dtype=int).reshape(system_state.num_processes, system_state.num_resources)

    for process in system_state.processes:
        if process.is_terminated() and np.any(matrix[process.pid] > 0):
            raise ValueError(f"Process P{process.pid} has been terminated and cannot hold resources")

    totals = system_state.total_vector
    requested = matrix.sum(axis=0)
    for r in range(system_state.num_resources):
        if requested[r] > totals[r]:
            return RequestOutcome.deny(
                DenialReason.EXCEEDS_TOTAL_CAPACITY,
                f"Total requested R{r} ({int(requested[r])}) exceeds total instances ({int(totals[r])})",
            )

    max_claims = system_state.max_claim_matrix
    for process in system_state.processes:
        if np.any(matrix[process.pid] > max_claims[process.pid]):
            return RequestOutcome.deny(
                DenialReason.EXCEEDS_MAX_CLAIM,
                f"P{process.pid} allocation {matrix[process.pid].tolist()} "
                f"exceeds max claim {max_claims[process.pid].tolist()}",
            )

    tentative = system_state.clone()
    _apply_batch(tentative, matrix)
    safety = is_safe_state(tentative, scan_order)

    if not safety.safe:
        return RequestOutcome.deny(
            DenialReason.WOULD_CAUSE_UNSAFE_STATE,
            "Batch allocation would lead to an unsafe state",
            safety=safety,
        )

    _apply_batch(system_state, matrix)
    system_state.assert_resource_conservation("after batch allocation")

    return RequestOutcome.grant(
        safety,
        f"Batch allocation applied, sequence: {safety.format_sequence()}",
    )


def release_resources(system_state: SystemState, pid: int) -> List[int]:
    """
    Release everything a process holds.

    Needs no safety check: returning instances can only enlarge Work
    during reduction.

    Args:
        system_state: Current system state
        pid: Releasing process

    Returns:
        List of released amounts by resource type (all zeros for a
        terminated process)

    Raises:
        ValueError: If the process does not exist
    """
    process = system_state.table.get(pid)
    released = process.release_all_resources()
    system_state.ledger.deallocate_vector(released)

    # SANITY CHECK: Verify resource conservation after release
    system_state.assert_resource_conservation(f"after P{pid} released {released}")
    return released


def _apply_grant(system_state: SystemState, pid: int, vector: np.ndarray) -> None:
    """Move vector from available to the allocation of pid (need shrinks with it)."""
    system_state.ledger.allocate_vector(vector.tolist())
    system_state.table.get(pid).grant(vector.tolist())


def _apply_batch(system_state: SystemState, matrix: np.ndarray) -> None:
    """Overwrite every allocation row and recompute available = total - allocated."""
    for process in system_state.processes:
        process.set_allocation(matrix[process.pid].tolist())
    system_state.ledger.set_available((system_state.total_vector - matrix.sum(axis=0)).tolist())
