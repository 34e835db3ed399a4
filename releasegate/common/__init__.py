"""Common utilities for releasegate."""

from .logger import setup_from_settings, setup_logger
from .config import WorkflowConfig, load_config, load_typed_config

__all__ = ["WorkflowConfig", "load_config", "load_typed_config", "setup_from_settings", "setup_logger"]
