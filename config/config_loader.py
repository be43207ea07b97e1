import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

CONFIG_ENV_VAR = "SPECTRAL_ANALYSIS_CONFIG"


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the YAML configuration file.

    Args:
        config_path: Optional explicit path to the configuration file. If None,
                     the path named by ``SPECTRAL_ANALYSIS_CONFIG`` is used, and
                     failing that `config.yaml` from the `config` package directory.

    Returns:
        A dictionary containing the configuration settings.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR) or None

    if config_path is None:
        path = Path(__file__).resolve().parent / "config.yaml"
    else:
        path = Path(config_path)

    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found at: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")

    return config
