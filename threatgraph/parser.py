"""YAML loader for architecture models, including ``includes:`` merging."""

import logging
from pathlib import Path
from typing import Iterable, Optional

import yaml
from pydantic import ValidationError

from .linker import ModelLinker
from .model import ParsedModel, RiskCategory
from .schemas import ModelInput
from .technologies import TechnologyRegistry


logger = logging.getLogger(__name__)

MAPPING_SECTIONS = (
    'security_requirements', 'questions', 'abuse_cases', 'data_assets',
    'technical_assets', 'trust_boundaries', 'shared_runtimes',
    'individual_risk_categories', 'risk_tracking',
)
LIST_SECTIONS = ('tags_available', 'contributors')


class ModelParseError(Exception):
    """Raised when a model file cannot be read or does not match the input schema."""
    pass


class ModelFileParser:
    """Reads one model file and merges the files it includes."""

    def __init__(self, model_path: str | Path):
        self.model_path = Path(model_path)
        self._validate_structure()

    def _validate_structure(self) -> None:
        if not self.model_path.exists():
            raise ModelParseError(f"Model file does not exist: {self.model_path}")
        if not self.model_path.is_file():
            raise ModelParseError(f"Model path is not a file: {self.model_path}")

    @staticmethod
    def _load_yaml(file_path: Path) -> dict:
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                content = yaml.safe_load(f)
        except OSError as e:
            raise ModelParseError(f"Unable to read model file {file_path}: {e}")
        except yaml.YAMLError as e:
            raise ModelParseError(f"YAML parse error in {file_path.name}: {e}")
        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ModelParseError(f"{file_path.name} must contain a mapping at the top level")
        return content

    def _load_with_includes(self, file_path: Path, chain: tuple[Path, ...]) -> dict:
        resolved = file_path.resolve()
        if resolved in chain:
            cycle = ' -> '.join(p.name for p in chain + (resolved,))
            raise ModelParseError(f"Include cycle detected: {cycle}")
        data = self._load_yaml(file_path)

        includes = data.get('includes') or []
        if not isinstance(includes, list):
            raise ModelParseError(f"'includes' in {file_path.name} must be a list of file names")
        for include in includes:
            include_path = Path(str(include))
            if not include_path.is_absolute():
                include_path = file_path.parent / include_path
            if not include_path.is_file():
                raise ModelParseError(f"Included file missing: {include} (from {file_path.name})")
            logger.debug("Merging included model %s into %s", include_path, file_path)
            included = self._load_with_includes(include_path, chain + (resolved,))
            merge_model_data(data, included, include_path.name)
        return data

    def parse(self) -> ModelInput:
        data = self._load_with_includes(self.model_path, ())
        try:
            model_input = ModelInput(**data)
        except ValidationError as e:
            raise ModelParseError(f"{self.model_path.name} validation error: {e}")
        model_input.prune_templates()
        return model_input


def merge_model_data(target: dict, included: dict, source_name: str) -> dict:
    """Merge an included model into ``target`` in place.

    Mapping sections merge key-wise and reject keys defined twice, list sections
    concatenate, and scalars only fill values the including model left blank.
    """
    for section, value in included.items():
        if section == 'includes' or value is None:
            continue
        if section in MAPPING_SECTIONS:
            if not isinstance(value, dict):
                raise ModelParseError(f"Section '{section}' of included file {source_name} must be a mapping")
            merged = target.get(section) or {}
            for key, item in value.items():
                if key in merged:
                    raise ModelParseError(
                        f"duplicate key '{key}' in section '{section}' of included file {source_name}"
                    )
                merged[key] = item
            target[section] = merged
        elif section in LIST_SECTIONS:
            if not isinstance(value, list):
                raise ModelParseError(f"Section '{section}' of included file {source_name} must be a list")
            target[section] = list(target.get(section) or []) + value
        elif target.get(section) in (None, '', {}, []):
            target[section] = value
    return target


def load_model_input(model_path: str | Path) -> ModelInput:
    """Load and schema-check a model file without linking it."""
    return ModelFileParser(model_path).parse()


def load_model(model_path: str | Path, registry: Optional[TechnologyRegistry] = None,
               rule_categories: Iterable[RiskCategory] = ()) -> ParsedModel:
    """Load a model file and link it into a ``ParsedModel``."""
    registry = registry or TechnologyRegistry.load_default()
    model_input = load_model_input(model_path)
    return ModelLinker(registry, rule_categories).link(model_input)
