"""
Configuration file support for coexplorer.

Supports YAML and JSON config files. Every section is optional; missing
values fall back to the dataclass defaults.

Example (YAML):
    api:
      base_url: https://www.cbioportal.org/api
      timeout: 60
      restricted_threshold: 0.3
    plot:
      plot_log_scale: false
      plot_show_mutations: true
    all_data_requested: true
    max_workers: 8
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

import yaml

__all__ = [
    'ApiConfig',
    'PlotState',
    'CoExpressionConfig',
    'load_config',
    'config_from_dict',
]


@dataclass
class ApiConfig:
    """cBioPortal API access."""
    base_url: str = "https://www.cbioportal.org/api"
    timeout: float = 60.0
    restricted_threshold: float = 0.3


@dataclass
class PlotState:
    """Scatter plot display toggles."""
    plot_log_scale: bool = False
    plot_show_mutations: bool = True
    plot_show_regression_line: bool = False


@dataclass
class CoExpressionConfig:
    """Complete configuration schema."""
    api: ApiConfig = field(default_factory=ApiConfig)
    plot: PlotState = field(default_factory=PlotState)
    all_data_requested: bool = True
    monotone_q_values: bool = False
    max_workers: int = 8


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _build_section(cls, values: Any, section: str):
    if values is None:
        return cls()
    if not isinstance(values, dict):
        raise ValueError(f"Config section '{section}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(
            f"Unknown keys in config section '{section}': {sorted(unknown)}. "
            f"Valid keys: {sorted(known)}"
        )
    return cls(**values)


def config_from_dict(config: Dict[str, Any]) -> CoExpressionConfig:
    """
    Map a loaded config dictionary onto CoExpressionConfig.

    Raises:
        ValueError: On unknown keys or sections that are not mappings
    """
    config = dict(config)
    api = _build_section(ApiConfig, config.pop('api', None), 'api')
    plot = _build_section(PlotState, config.pop('plot', None), 'plot')
    top_level = _build_section(
        CoExpressionConfig,
        {k: v for k, v in config.items()},
        '<top level>',
    )
    top_level.api = api
    top_level.plot = plot
    return top_level
