"""
YAML I/O for verification configurations.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from pydantic import ValidationError

if TYPE_CHECKING:
    from .core import VerificationConfig


def load_verification_config(path: str | Path) -> VerificationConfig:
    """
    Load a verification configuration from a YAML file.

    Parameters
    ----------
    path : str | Path
        Path to YAML configuration file

    Returns
    -------
    VerificationConfig
        Validated configuration

    Raises
    ------
    FileNotFoundError
        If the configuration file doesn't exist
    ValueError
        If the YAML is malformed or the configuration is invalid

    YAML Format
    -----------
    execution:
      mode: parallel_processes
      max_workers: 4
      timeout_per_check: 600
    filters:
      operators: [Laplacian, Bilaplacian]
      dimensions: [2]
      categories: [equivalence, isotropic_error]
    polynomial:
      extra_degree: 1
    logging:
      level: INFO
    """
    from .core import VerificationConfig

    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in {path}: {e}") from e

    if data is None:
        data = {}

    try:
        return VerificationConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {path}:\n{e}") from e


def save_verification_config(config: VerificationConfig, path: str | Path) -> None:
    """
    Save a verification configuration to a YAML file.

    Parameters
    ----------
    config : VerificationConfig
        Configuration to save
    path : str | Path
        Output file path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(exclude_none=True, mode="json")

    with open(path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False, indent=2, allow_unicode=True)
