"""
Scenario Loader for the Resource Allocation & Deadlock Engine.

Loads and validates JSON scenario files: resources, processes and a
scripted list of actions to run against them.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from models.errors import ConfigError
from models.system_state import SystemState, configure
from utils.config import EngineConfig


ACTION_FIELDS = {
    'request': ('pid', 'vector'),
    'release': ('pid',),
    'batch': ('matrix',),
    'set_request': ('pid', 'vector'),
    'check_safety': (),
    'detect': (),
    'resolve': (),
}


class ScenarioLoadError(ConfigError):
    """Exception raised when scenario file cannot be loaded or is invalid."""
    pass


@dataclass
class Scenario:
    """A configured system plus the actions to run against it."""
    system_state: SystemState
    config: EngineConfig
    actions: List[Dict[str, Any]] = field(default_factory=list)
    description: str = ""


def load_scenario(file_path: str, **overrides) -> Scenario:
    """
    Load scenario from JSON file.

    Args:
        file_path: Path to scenario JSON file
        **overrides: EngineConfig values taking priority over the file's
            "config" block (None values are ignored)

    Returns:
        Scenario with an initialized SystemState

    Raises:
        ScenarioLoadError: If file cannot be loaded or is invalid
        OverAllocatedError: If the declared claims or allocations exceed capacity
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ScenarioLoadError(f"Scenario file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ScenarioLoadError(f"Invalid JSON in scenario file: {e}")

    return build_scenario(data, **overrides)


def build_scenario(data: Dict[str, Any], **overrides) -> Scenario:
    """Validate already-parsed scenario data and configure the system."""
    if not isinstance(data, dict):
        raise ScenarioLoadError("Scenario must be a JSON object")

    # Validate required fields
    if 'processes' not in data:
        raise ScenarioLoadError("Scenario missing 'processes' field")
    if 'resources' not in data:
        raise ScenarioLoadError("Scenario missing 'resources' field")

    config = EngineConfig.from_dict(data.get('config')).with_overrides(**overrides)

    totals = _load_resources(data['resources'])
    num_resources = len(totals)
    max_claims, allocation, requests = _load_processes(data['processes'], num_resources)

    try:
        system_state = configure(
            len(max_claims),
            num_resources,
            totals,
            max_claims,
            allocation=allocation,
            requests=requests,
            claim_policy=config.claim_policy,
        )
    except ValueError as e:
        raise ScenarioLoadError(f"Invalid scenario: {e}")

    action_data = data.get('actions', [])
    if not isinstance(action_data, list):
        raise ScenarioLoadError("Scenario 'actions' must be a list")
    actions = [_validate_action(action, i) for i, action in enumerate(action_data)]

    return Scenario(
        system_state=system_state,
        config=config,
        actions=actions,
        description=data.get('description', ''),
    )


def _load_resources(resource_data: List[Dict]) -> List[int]:
    """
    Load resource definitions from scenario data.

    Args:
        resource_data: List of resource dictionaries

    Returns:
        Total instances per resource type, ordered by type_id
    """
    if not isinstance(resource_data, list) or not resource_data:
        raise ScenarioLoadError("Scenario must declare at least one resource")

    resources = []
    for index, res in enumerate(resource_data):
        if not isinstance(res, dict):
            raise ScenarioLoadError(f"Resource {index} must be an object, got {res!r}")
        if 'type_id' not in res:
            raise ScenarioLoadError("Resource missing 'type_id' field")
        if not _is_int(res['type_id']):
            raise ScenarioLoadError(f"Resource type_id must be an integer, got {res['type_id']!r}")
        if 'total_instances' not in res:
            raise ScenarioLoadError(f"Resource {res['type_id']} missing 'total_instances'")
        resources.append(res)

    resources.sort(key=lambda r: r['type_id'])
    type_ids = [r['type_id'] for r in resources]
    if type_ids != list(range(len(resources))):
        raise ScenarioLoadError(f"Resource type_ids must be 0..{len(resources) - 1}, got {type_ids}")

    return [r['total_instances'] for r in resources]


def _load_processes(proc_data: List[Dict], num_resources: int):
    """
    Load process rows from scenario data.

    Returns:
        Tuple of (max_claims, allocation, requests) matrices ordered by pid
    """
    if not isinstance(proc_data, list) or not proc_data:
        raise ScenarioLoadError("Scenario must declare at least one process")

    required_fields = ['pid', 'max_claim']
    for index, proc in enumerate(proc_data):
        if not isinstance(proc, dict):
            raise ScenarioLoadError(f"Process {index} must be an object, got {proc!r}")
        for name in required_fields:
            if name not in proc:
                raise ScenarioLoadError(f"Process missing required field: {name}")
        if not _is_int(proc['pid']):
            raise ScenarioLoadError(f"Process pid must be an integer, got {proc['pid']!r}")

    processes = sorted(proc_data, key=lambda p: p['pid'])
    pids = [p['pid'] for p in processes]
    if pids != list(range(len(processes))):
        raise ScenarioLoadError(f"Process pids must be 0..{len(processes) - 1}, got {pids}")

    max_claims, allocation, requests = [], [], []
    for proc in processes:
        for name in ('max_claim', 'allocation', 'request'):
            if name not in proc:
                continue
            if not isinstance(proc[name], list):
                raise ScenarioLoadError(f"Process {proc['pid']}: {name} must be a list, got {proc[name]!r}")
            if len(proc[name]) != num_resources:
                raise ScenarioLoadError(
                    f"Process {proc['pid']}: {name} length ({len(proc[name])}) "
                    f"does not match resource count ({num_resources})"
                )
        max_claims.append(list(proc['max_claim']))
        allocation.append(list(proc.get('allocation', [0] * num_resources)))
        requests.append(list(proc.get('request', [0] * num_resources)))

    return max_claims, allocation, requests


def _validate_action(action: Dict, index: int) -> Dict:
    """
    Validate the shape of one scripted action.

    Quantities are checked when the action runs.

    Raises:
        ScenarioLoadError: If the action type is unknown or a field is
            missing or of the wrong kind
    """
    if not isinstance(action, dict) or 'type' not in action:
        raise ScenarioLoadError(f"Action {index}: missing 'type' field")

    action_type = action['type']
    if action_type not in ACTION_FIELDS:
        raise ScenarioLoadError(f"Action {index}: unknown action type '{action_type}'")

    for name in ACTION_FIELDS[action_type]:
        if name not in action:
            raise ScenarioLoadError(f"Action {index}: {action_type} action missing '{name}'")

    if 'pid' in action and not _is_int(action['pid']):
        raise ScenarioLoadError(f"Action {index}: pid must be an integer, got {action['pid']!r}")
    if 'vector' in action and not isinstance(action['vector'], list):
        raise ScenarioLoadError(f"Action {index}: vector must be a list, got {action['vector']!r}")
    if 'matrix' in action and not (
        isinstance(action['matrix'], list) and all(isinstance(row, list) for row in action['matrix'])
    ):
        raise ScenarioLoadError(f"Action {index}: matrix must be a list of lists")
    if action.get('deadlocked') is not None and not isinstance(action['deadlocked'], list):
        raise ScenarioLoadError(f"Action {index}: deadlocked must be a list of pids")

    return action


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
