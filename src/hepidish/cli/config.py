"""
Configuration file support for the hepidish CLI.

Supports YAML and JSON config files with CLI argument override.

Example config (YAML):
```
input: data/beta.csv
reference1: refs/centEpiFibIC.csv
reference2: refs/centBloodSub.csv
aggregate_index: 3
output: results/fractions.csv
method: CP
cp:
  constraint: equality
workers: 4
```
"""

import json
from argparse import Namespace
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from hepidish.methods.types import DEFAULT_NU_CANDIDATES


@dataclass
class RPCSection:
    """RPC settings."""
    max_iterations: int = 50


@dataclass
class CBSSection:
    """CBS settings."""
    nu: List[float] = field(default_factory=lambda: list(DEFAULT_NU_CANDIDATES))


@dataclass
class CPSection:
    """CP settings."""
    constraint: str = "inequality"


@dataclass
class DeconvolutionConfig:
    """
    Complete configuration schema for hepidish commands.

    Mirrors the CLI argument structure for consistency.
    """
    input: Optional[Path] = None
    output: Optional[Path] = None
    reference: Optional[Path] = None
    reference1: Optional[Path] = None
    reference2: Optional[Path] = None
    aggregate_index: Optional[Any] = None
    method: str = "RPC"
    workers: int = 1
    rpc: RPCSection = field(default_factory=RPCSection)
    cbs: CBSSection = field(default_factory=CBSSection)
    cp: CPSection = field(default_factory=CPSection)


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

    Examples:
        >>> config = load_config(Path("hepidish.yaml"))
        >>> print(config['method'])
        CP
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    if suffix not in ('.yaml', '.yml', '.json'):
        raise ValueError(
            f"Unsupported config format: {suffix}. "
            f"Use .yaml, .yml, or .json"
        )

    try:
        with open(config_path, 'r') as f:
            if suffix == '.json':
                config = json.load(f)
            else:
                config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}") from e

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - If CLI arg not set, use config value
    - If neither set, keep CLI default
    """
    if was_explicitly_set:
        return cli_value
    if config_value is not None:
        return config_value
    return cli_value


def _explicit_args(cli_args: Optional[List[str]]) -> set:
    """Names of arguments given explicitly on the command line."""
    short_to_long = {
        'i': 'input',
        'o': 'output',
        'r': 'reference',
        'm': 'method',
        'c': 'config',
    }
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            explicit.add(arg[2:].split('=', 1)[0].replace('-', '_'))
        elif arg.startswith('-') and len(arg) == 2 and arg[1] in short_to_long:
            explicit.add(short_to_long[arg[1]])
    return explicit


def merge_config_with_args(
    config: Dict[str, Any],
    args: Namespace,
    cli_args: Optional[List[str]] = None,
) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)
        cli_args: Raw CLI arguments list (for detecting explicit values)
                  If None, assumes all args are defaults

    Returns:
        Updated Namespace with merged values
    """
    explicit = _explicit_args(cli_args)
    merged = Namespace(**vars(args))

    path_keys = ('input', 'output', 'reference', 'reference1', 'reference2')
    simple_keys = path_keys + ('aggregate_index', 'method', 'workers')

    for key in simple_keys:
        if key not in config or not hasattr(merged, key):
            continue
        value = config[key]
        if value is not None and key in path_keys:
            value = Path(value)
        setattr(merged, key, _merge_value(getattr(merged, key), value, key in explicit))

    # Method sections map onto flat CLI arguments
    section_mappings = {
        ('rpc', 'max_iterations'): 'max_iterations',
        ('cbs', 'nu'): 'nu',
        ('cp', 'constraint'): 'constraint',
    }
    for (section, key), arg_name in section_mappings.items():
        section_values = config.get(section) or {}
        if key in section_values and hasattr(merged, arg_name):
            setattr(
                merged,
                arg_name,
                _merge_value(getattr(merged, arg_name), section_values[key], arg_name in explicit),
            )

    return merged
