"""Configuration management for releasegate.

Handles loading of the YAML workflow policy file: who may edit ban
periods, how far recurring bans are expanded and which document types
carry a schedule.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml

from releasegate.core.approval.states import DocumentType, SCHEDULED_TYPES, WINDOWLESS_TYPES
from releasegate.db.models.account import AccountRole


DEFAULT_SCHEDULER_ROLES = [AccountRole.MANAGER, AccountRole.HEAD]


@dataclass
class WorkflowConfig:
    """Policy knobs for the approval and scheduling workflow."""

    # Roles allowed to create and cancel ban periods
    scheduler_roles: List[AccountRole] = field(default_factory=lambda: list(DEFAULT_SCHEDULER_ROLES))
    # Longest date range a single ban listing may expand
    recurrence_horizon_days: int = 365
    # Default listing range from today
    ban_listing_days: int = 31
    scheduled_types: Set[DocumentType] = field(default_factory=lambda: set(SCHEDULED_TYPES))
    windowless_types: Set[DocumentType] = field(default_factory=lambda: set(WINDOWLESS_TYPES))

    def is_scheduler(self, role: Optional[AccountRole]) -> bool:
        return role in self.scheduler_roles

    def has_window(self, document_type: DocumentType) -> bool:
        return document_type not in self.windowless_types


def _parse_enum_list(enum_cls, values: List[str], key: str) -> List[Any]:
    parsed = []
    for value in values:
        try:
            parsed.append(enum_cls(str(value).upper()))
        except ValueError:
            raise ValueError(f"Invalid value for {key}: {value}")
    return parsed


def parse_config(config_dict: Dict[str, Any]) -> WorkflowConfig:
    """Parse the workflow configuration dictionary.

    Args:
        config_dict: Full configuration dictionary

    Returns:
        WorkflowConfig instance

    Raises:
        ValueError: If a role or document type is unknown
    """
    workflow = config_dict.get("workflow", config_dict)
    defaults = WorkflowConfig()

    scheduler_roles = defaults.scheduler_roles
    if "scheduler_roles" in workflow:
        scheduler_roles = _parse_enum_list(AccountRole, workflow["scheduler_roles"], "scheduler_roles")

    scheduled_types = defaults.scheduled_types
    if "scheduled_types" in workflow:
        scheduled_types = set(_parse_enum_list(DocumentType, workflow["scheduled_types"], "scheduled_types"))

    windowless_types = defaults.windowless_types
    if "windowless_types" in workflow:
        windowless_types = set(_parse_enum_list(DocumentType, workflow["windowless_types"], "windowless_types"))

    return WorkflowConfig(
        scheduler_roles=scheduler_roles,
        recurrence_horizon_days=int(workflow.get("recurrence_horizon_days", defaults.recurrence_horizon_days)),
        ban_listing_days=int(workflow.get("ban_listing_days", defaults.ban_listing_days)),
        scheduled_types=scheduled_types,
        windowless_types=windowless_types,
    )


def load_config(config_path: str = "./releasegate.yaml") -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_typed_config(config_path: Optional[str] = None) -> WorkflowConfig:
    """Load the workflow policy, or the defaults when no file is given.

    Args:
        config_path: Path to configuration file

    Returns:
        WorkflowConfig instance
    """
    if config_path is None:
        return WorkflowConfig()
    return parse_config(load_config(config_path))
