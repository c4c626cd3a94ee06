from pathlib import Path

import yaml

from toggle_analysis.common.config import AnalysisScopeConfig, ConfigError


def load_scope_config(path: str | Path = "analysis.yaml") -> AnalysisScopeConfig:
    """Load the default analysis scope from a YAML file.

    The file holds an ``analysis`` mapping with optional ``project_key``,
    ``environment_key``, ``toggle_key``, ``start`` and ``end`` entries.

    Args:
        path: Path to the YAML file

    Returns:
        AnalysisScopeConfig loaded from the file, or defaults if the file doesn't exist

    Raises:
        ConfigError: If the file is not a mapping or ``analysis`` is not a mapping
        pydantic.ValidationError: If a field has an invalid value
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return AnalysisScopeConfig()

    if data is None:
        return AnalysisScopeConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{str(path)!r} must contain a mapping at the top level")

    analysis_data = data.get("analysis") or {}
    if not isinstance(analysis_data, dict):
        raise ConfigError(f"'analysis' in {str(path)!r} must be a mapping")
    return AnalysisScopeConfig(**analysis_data)
