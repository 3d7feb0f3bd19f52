"""Engine configuration: which model to read and how to evaluate it."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


class ConfigError(Exception):
    """Raised when the configuration file cannot be read or is invalid."""
    pass


class EngineConfig(BaseModel):
    input_file: str = 'threagile.yaml'
    skip_risk_rules: list[str] = Field(default_factory=list)
    custom_risk_rules_plugins: list[str] = Field(default_factory=list)
    ignore_orphaned_risk_tracking: bool = False
    technologies_file: Optional[str] = None
    plugin_timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator('skip_risk_rules', 'custom_risk_rules_plugins', mode='before')
    @classmethod
    def split_comma_separated(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(',') if item.strip()]
        return value

    def merged(self, **overrides) -> 'EngineConfig':
        """Copy with every override that is not ``None`` (or empty) applied."""
        updates = {key: value for key, value in overrides.items() if value not in (None, (), [])}
        try:
            return self.model_validate({**self.model_dump(), **updates})
        except ValidationError as e:
            raise ConfigError(f"Invalid option: {e}")


def load_config(config_path: str | Path) -> EngineConfig:
    path = Path(config_path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Unable to read config file {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parse error in {path.name}: {e}")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the top level")
    try:
        return EngineConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"{path.name} validation error: {e}")
