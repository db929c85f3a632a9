"""
Configuration system: schemas and loaders
"""

from .schemas import (
    DataConfig,
    EngineConfig,
    StrategyConfig,
    ReportingConfig,
    RunConfig,
)
from .loader import load_config, apply_env_overrides, apply_cli_overrides

__all__ = [
    "DataConfig",
    "EngineConfig",
    "StrategyConfig",
    "ReportingConfig",
    "RunConfig",
    "load_config",
    "apply_env_overrides",
    "apply_cli_overrides",
]
