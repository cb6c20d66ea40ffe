"""Configuration loading utilities."""

from pathlib import Path
from typing import Any

import yaml


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Load a YAML config file.

    Relative names are resolved against the config/ directory; absolute
    paths are read as given.
    """
    path = Path(filename)
    config_path = path if path.is_absolute() else Path(__file__).parent / path
    with open(config_path) as f:
        return yaml.safe_load(f)
