#!/usr/bin/env python3
"""
Resource Allocation & Deadlock Engine
Session facade and command-line entry point.

Educational tool for stepping through deadlock avoidance (Banker's
Algorithm), detection and resolution.
"""

import argparse
import sys
from typing import List, Optional, Sequence

from algorithms.avoidance import RequestOutcome, handle_batch, handle_request, release_resources
from algorithms.detection import DetectionResult, detect_deadlock
from algorithms.recovery import ResolutionStep, resolve_deadlock
from algorithms.safety import SafetyResult, is_safe_state
from analysis.events import EventLog, EventType, SimulationEvent
from models.errors import ConfigError
from models.system_state import SystemState, configure
from utils.config import EngineConfig
from utils.logger import SimulatorLogger
from utils.scenario_loader import Scenario, load_scenario


class Simulator:
    """
    One simulation session over a configured system.

    Every operation runs to completion before returning; a denied request
    or batch leaves the state untouched. Each operation is logged and
    appended to the event log.
    """

    def __init__(
        self,
        system_state: SystemState,
        config: Optional[EngineConfig] = None,
        logger: Optional[SimulatorLogger] = None,
    ):
        self.state = system_state
        self.config = config or EngineConfig()
        self.logger = logger or SimulatorLogger(
            verbose=self.config.verbose, log_file=self.config.log_file, echo=False
        )
        self.event_log = EventLog()
        self.step = 0
        self._initial_state = system_state.clone()
        self.last_detection: Optional[DetectionResult] = None

        self._record(EventType.CONFIGURED, message=(
            f"{system_state.num_processes} processes, {system_state.num_resources} resource types, "
            f"totals {system_state.total_vector.tolist()}"
        ))
        self.logger.log(
            f"System configured with {system_state.num_processes} processes and "
            f"{system_state.num_resources} resource types"
        )
        self.logger.log_system_state(self.step, system_state.display())

        initial = is_safe_state(system_state, self.config.scan_order)
        if not initial.safe:
            self.logger.log("Configured state is already unsafe", "warning")

    @classmethod
    def configure(
        cls,
        process_count: int,
        resource_count: int,
        totals: Sequence[int],
        max_claims: Sequence[Sequence[int]],
        allocation: Optional[Sequence[Sequence[int]]] = None,
        requests: Optional[Sequence[Sequence[int]]] = None,
        config: Optional[EngineConfig] = None,
        logger: Optional[SimulatorLogger] = None,
    ) -> "Simulator":
        """
        Configure a system and open a session on it.

        Raises:
            OverAllocatedError: If claims or allocations exceed the totals
            ConfigError: If an initial allocation exceeds its max claim
        """
        config = config or EngineConfig()
        system_state = configure(
            process_count,
            resource_count,
            totals,
            max_claims,
            allocation=allocation,
            requests=requests,
            claim_policy=config.claim_policy,
        )
        return cls(system_state, config=config, logger=logger)

    def request_resources(self, pid: int, vector: Sequence[int]) -> RequestOutcome:
        """Ask for instances on behalf of one process (Banker's check)."""
        outcome = handle_request(self.state, pid, vector, self.config.scan_order)
        step = self._next_step()
        self.logger.log_request(step, pid, vector, outcome)
        self._record(
            EventType.GRANTED if outcome.granted else EventType.DENIED,
            process_id=pid,
            vector=vector,
            reason=outcome.reason.value if outcome.reason else "",
            message=outcome.message,
        )
        return outcome

    def request_batch(self, allocation_matrix: Sequence[Sequence[int]]) -> RequestOutcome:
        """Replace the whole allocation matrix, all rows or none."""
        outcome = handle_batch(self.state, allocation_matrix, self.config.scan_order)
        step = self._next_step()
        self.logger.log_batch(step, outcome)
        self._record(
            EventType.BATCH_GRANTED if outcome.granted else EventType.BATCH_DENIED,
            reason=outcome.reason.value if outcome.reason else "",
            message=outcome.message,
        )
        return outcome

    def release_resources(self, pid: int) -> List[int]:
        """Return everything pid holds to the pool."""
        released = release_resources(self.state, pid)
        step = self._next_step()
        self.logger.log_release(step, pid, released)
        self._record(EventType.RELEASED, process_id=pid, vector=released)
        return released

    def set_request(self, pid: int, vector: Sequence[int]) -> None:
        """
        Record the outstanding request of a process, for detection.

        Raises:
            ValueError: If the process is unknown or terminated, or the
                vector is malformed or exceeds the remaining need
        """
        self.state.table.get_active(pid).set_request(vector)
        step = self._next_step()
        self.logger.log_step(step, f"P{pid} is waiting for {list(vector)}")
        self._record(EventType.REQUEST_SET, process_id=pid, vector=vector)

    def check_safety(self) -> SafetyResult:
        """Run the safety check on the current state."""
        result = is_safe_state(self.state, self.config.scan_order)
        step = self._next_step()
        self.logger.log_safety(step, result)
        self._record(
            EventType.SAFETY_CHECKED,
            message=f"{'safe' if result.safe else 'unsafe'}, sequence: {result.format_sequence()}",
        )
        return result

    def detect_deadlock(self) -> DetectionResult:
        """Classify active processes as completable or deadlocked."""
        result = detect_deadlock(self.state, self.config.scan_order)
        step = self._next_step()
        self.last_detection = result
        self.logger.log_detection(step, result)
        if result.deadlock_exists:
            self._record(EventType.DEADLOCK_DETECTED, message=f"processes: {list(result.deadlocked)}")
        else:
            self._record(EventType.NO_DEADLOCK, message="all processes can complete")
        return result

    def resolve_deadlock(self, deadlocked: Optional[Sequence[int]] = None) -> List[ResolutionStep]:
        """
        Terminate the given deadlocked processes by ascending allocation.

        Args:
            deadlocked: PIDs to resolve; when None, detection is run first
                and its result is used

        Returns:
            ResolutionSteps in termination order
        """
        if deadlocked is None:
            deadlocked = self.detect_deadlock().deadlocked
        steps = resolve_deadlock(self.state, deadlocked)
        step = self._next_step()
        self.logger.log_resolution(step, steps)
        for rs in steps:
            self._record(
                EventType.TERMINATED,
                process_id=rs.victim,
                vector=rs.resources_released,
                message=f"available after: {list(rs.available_after)}",
            )
        return steps

    def reset(self) -> None:
        """Return to the state as it was configured."""
        step = self._next_step()
        self.state = self._initial_state.clone()
        self.last_detection = None
        self.logger.log_step(step, "Session reset to configured state")
        self._record(EventType.RESET, message="state restored to configuration")

    def display(self) -> str:
        return self.state.display()

    def close(self) -> None:
        """Close the session's logger (and its log file, if any)."""
        self.logger.close()

    def __enter__(self) -> "Simulator":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def _next_step(self) -> int:
        self.step += 1
        return self.step

    def _record(self, event_type: EventType, process_id: Optional[int] = None,
                vector: Optional[Sequence[int]] = None, reason: str = "", message: str = "") -> None:
        self.event_log.add(SimulationEvent(
            step=self.step,
            event_type=event_type,
            process_id=process_id,
            vector=tuple(int(x) for x in vector) if vector is not None else None,
            reason=reason,
            message=message,
        ))


def run_scenario(scenario: Scenario, logger: Optional[SimulatorLogger] = None,
                 show_state: bool = False) -> Simulator:
    """
    Run every scripted action of a scenario in order.

    Args:
        scenario: Loaded scenario
        logger: Logger to use (default: silent, per scenario config)
        show_state: Log the state display after each action

    Returns:
        The Simulator after the last action
    """
    simulator = Simulator(scenario.system_state, config=scenario.config, logger=logger)

    for action in scenario.actions:
        _apply_action(simulator, action)
        if show_state:
            simulator.logger.log(simulator.display())

    return simulator


def _apply_action(simulator: Simulator, action: dict) -> None:
    """Dispatch one scripted action to the simulator."""
    action_type = action['type']

    if action_type == 'request':
        simulator.request_resources(action['pid'], action['vector'])
    elif action_type == 'release':
        simulator.release_resources(action['pid'])
    elif action_type == 'batch':
        simulator.request_batch(action['matrix'])
    elif action_type == 'set_request':
        simulator.set_request(action['pid'], action['vector'])
    elif action_type == 'check_safety':
        simulator.check_safety()
    elif action_type == 'detect':
        simulator.detect_deadlock()
    elif action_type == 'resolve':
        simulator.resolve_deadlock(action.get('deadlocked'))
    else:
        raise ValueError(f"Unknown action type '{action_type}'")


def _display_summary(simulator: Simulator, logger: SimulatorLogger) -> None:
    """Display final session statistics."""
    log = simulator.event_log
    logger.log("\nSession Summary:")
    logger.log(f"  Operations: {simulator.step}")
    logger.log(f"  Granted: {len(log.get_events_by_type(EventType.GRANTED)) + len(log.get_events_by_type(EventType.BATCH_GRANTED))}")
    logger.log(f"  Denied: {len(log.get_events_by_type(EventType.DENIED)) + len(log.get_events_by_type(EventType.BATCH_DENIED))}")
    logger.log(f"  Deadlocks Detected: {len(log.get_events_by_type(EventType.DEADLOCK_DETECTED))}")
    logger.log(f"  Processes Terminated: {len(log.get_events_by_type(EventType.TERMINATED))}")
    logger.log(f"  Available: {simulator.state.available_vector.tolist()}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the engine CLI."""
    parser = argparse.ArgumentParser(
        description='Resource Allocation & Deadlock Engine'
    )
    parser.add_argument(
        '--scenario',
        type=str,
        required=True,
        help='Path to scenario JSON file'
    )
    parser.add_argument(
        '--scan-order',
        choices=['restart', 'sweep'],
        default=None,
        help='Reduction scan order (default: scenario config, else restart)'
    )
    parser.add_argument(
        '--claim-policy',
        choices=['aggregate', 'per_process'],
        default=None,
        help='How max claims are checked against totals (default: scenario config, else aggregate)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        default=None,
        help='Enable verbose logging (reduction traces, state dumps)'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Also write the log to this file'
    )
    parser.add_argument(
        '--show-state',
        action='store_true',
        help='Print the system state after every action'
    )

    args = parser.parse_args(argv)

    try:
        scenario = load_scenario(
            args.scenario,
            scan_order=args.scan_order,
            claim_policy=args.claim_policy,
            verbose=args.verbose,
            log_file=args.log_file,
        )
    except ConfigError as e:
        SimulatorLogger().log(f"Failed to load scenario: {e}", "error")
        return 1

    logger = SimulatorLogger(verbose=scenario.config.verbose, log_file=scenario.config.log_file)
    logger.log(f"\n{'=' * 60}")
    logger.log(f"SCENARIO: {args.scenario}")
    if scenario.description:
        logger.log(scenario.description)
    logger.log(f"{'=' * 60}\n")

    try:
        simulator = run_scenario(scenario, logger=logger, show_state=args.show_state)
        _display_summary(simulator, logger)
    except ValueError as e:
        logger.log(f"Invalid action: {e}", "error")
        return 1
    finally:
        logger.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
