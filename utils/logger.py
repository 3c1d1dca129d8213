"""
Logger utility for the Resource Allocation & Deadlock Engine.

Provides step-by-step logging with verbosity levels.
"""

from typing import Iterable, List, Optional, Sequence
from datetime import datetime


LEVEL_PREFIXES = {
    "debug": "[DEBUG] ",
    "warning": "[WARNING] ",
    "error": "[ERROR] ",
}


class SimulatorLogger:
    """
    Logger for engine operations and decisions.

    Format: "Step X: PY requests [a, b, c] - GRANTED/DENIED (reason)"
    """

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None, echo: bool = True):
        """
        Initialize logger.

        Args:
            verbose: Enable verbose (debug) output
            log_file: Optional file path for logging
            echo: Print to the console; when False lines are only kept
                in memory and written to log_file
        """
        self.verbose = verbose
        self.log_file = log_file
        self.echo = echo
        self.lines: List[str] = []
        self.file_handle = None

        if self.log_file:
            self.file_handle = open(self.log_file, 'w', encoding='utf-8')
            self._write_header()

    def _write_header(self) -> None:
        """Write log file header."""
        if self.file_handle:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            self.file_handle.write(f"Engine Log - {timestamp}\n")
            self.file_handle.write("=" * 60 + "\n\n")

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message.

        Args:
            message: Message to log
            level: Log level (info, debug, warning, error)
        """
        if level == "debug" and not self.verbose:
            return

        formatted = self._format_message(message, level)
        self.lines.append(formatted)

        # Console output
        if self.echo:
            print(formatted)

        # File output
        if self.file_handle:
            self.file_handle.write(formatted + "\n")
            self.file_handle.flush()

    def _format_message(self, message: str, level: str) -> str:
        """Prefix every level except info with its tag."""
        prefix = LEVEL_PREFIXES.get(level, "")
        return f"{prefix}{message}"

    def log_step(self, step: int, message: str, level: str = "info") -> None:
        """Log a message tagged with the operation step."""
        self.log(f"Step {step}: {message}", level)

    def log_request(self, step: int, pid: int, vector: Sequence[int], outcome) -> None:
        """
        Log a single resource request.

        Args:
            step: Operation step
            pid: Requesting process
            vector: Requested instances per resource type
            outcome: RequestOutcome of the request
        """
        status = "GRANTED" if outcome.granted else f"DENIED {outcome.reason.value}"
        self.log_step(step, f"P{pid} requests {list(vector)} - {status} ({outcome.message})")
        if outcome.safety is not None:
            self._log_trace(outcome.safety.trace)

    def log_batch(self, step: int, outcome) -> None:
        """Log a batch allocation decision."""
        status = "GRANTED" if outcome.granted else f"DENIED {outcome.reason.value}"
        self.log_step(step, f"Batch allocation - {status} ({outcome.message})")
        if outcome.safety is not None:
            self._log_trace(outcome.safety.trace)

    def log_release(self, step: int, pid: int, released: Sequence[int]) -> None:
        """Log a release of everything a process held."""
        self.log_step(step, f"P{pid} releases {list(released)}")

    def log_safety(self, step: int, result) -> None:
        """Log a stand-alone safety check."""
        verdict = "SAFE" if result.safe else "UNSAFE"
        self.log_step(step, f"Safety check - {verdict} (sequence: {result.format_sequence()})")
        self._log_trace(result.trace)

    def log_detection(self, step: int, result) -> None:
        """
        Log deadlock detection.

        Args:
            step: Operation step
            result: DetectionResult
        """
        self._log_trace(result.trace)
        if result.deadlock_exists:
            pids_str = ", ".join(f"P{pid}" for pid in result.deadlocked)
            self.log_step(step, f"DEADLOCK DETECTED - Processes in deadlock: [{pids_str}]")
        else:
            self.log_step(step, "No deadlock detected")

    def log_resolution(self, step: int, resolution_steps: Iterable) -> None:
        """
        Log each termination performed by the resolver.

        Args:
            step: Operation step
            resolution_steps: ResolutionSteps in order
        """
        for rs in resolution_steps:
            self.log_step(
                step,
                f"RECOVERY - Terminated P{rs.victim} (released {list(rs.resources_released)}, "
                f"available now {list(rs.available_after)})"
            )

    def log_system_state(self, step: int, state_str: str) -> None:
        """
        Log system state snapshot.

        Args:
            step: Operation step
            state_str: Formatted system state
        """
        if self.verbose:
            self.log_step(step, f"System State:\n{state_str}", "debug")

    def _log_trace(self, trace: Iterable) -> None:
        for s in trace:
            self.log(
                f"  reduce P{s.pid}: demand {list(s.demand)} <= work {list(s.work_before)} "
                f"-> work {list(s.work_after)}",
                "debug",
            )

    def close(self) -> None:
        """Close log file if open."""
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None

    def __del__(self):
        """Cleanup on destruction."""
        self.close()
