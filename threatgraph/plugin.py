"""Custom risk rules backed by external executables.

Each call spawns the executable with a single mode flag (``-get-info``,
``-generate-risks`` or ``-explain-risk <id>``), writes the JSON payload to its
stdin and reads one JSON value back from stdout. Stderr is only surfaced when
the process exits non-zero.
"""

import json
import logging
import os
import stat
import subprocess
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .model import ParsedModel, Risk, RiskCategory
from .rules.base import RiskRule


logger = logging.getLogger(__name__)

GET_INFO = '-get-info'
GENERATE_RISKS = '-generate-risks'
EXPLAIN_RISK = '-explain-risk'


class PluginError(Exception):
    """Raised when a rule executable cannot be loaded, run, or understood."""
    pass


class PluginRunner:
    """Runs one executable with the JSON-over-stdio calling convention."""

    def __init__(self, path: str | Path, timeout: Optional[float] = None):
        self.path = Path(path)
        self.timeout = timeout

    @classmethod
    def load(cls, path: str | Path, timeout: Optional[float] = None) -> 'PluginRunner':
        try:
            mode = os.stat(path).st_mode
        except OSError as e:
            raise PluginError(f"Custom rule executable {path} not accessible: {e}")
        if not stat.S_ISREG(mode):
            raise PluginError(f"Custom rule executable {path} is not a regular file")
        return cls(path, timeout)

    def run(self, payload: Any, *args: str) -> Any:
        command = [str(self.path), *args]
        logger.debug("Running %s", ' '.join(command))
        try:
            completed = subprocess.run(
                command,
                input=json.dumps(payload).encode('utf-8'),
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            raise PluginError(f"{self.path.name} {' '.join(args)} timed out after {self.timeout}s")
        except OSError as e:
            raise PluginError(f"Unable to start {self.path}: {e}")
        if completed.returncode != 0:
            stderr = completed.stderr.decode('utf-8', errors='replace')
            raise PluginError(
                f"{self.path.name} {' '.join(args)} exited with status {completed.returncode}: {stderr}"
            )
        try:
            return json.loads(completed.stdout.decode('utf-8'))
        except UnicodeDecodeError as e:
            raise PluginError(f"{self.path.name} {' '.join(args)} returned output that is not UTF-8: {e}")
        except json.JSONDecodeError as e:
            raise PluginError(f"{self.path.name} {' '.join(args)} returned malformed JSON: {e}")


class CustomRuleInfo(BaseModel):
    """Answer to ``-get-info``."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = ''
    category: RiskCategory = Field(alias='risk_category')
    supported_tags: list[str] = Field(default_factory=list, alias='tags')

    @model_validator(mode='after')
    def default_id_to_category(self):
        if not self.id:
            self.id = self.category.id
        return self


class CustomRule(RiskRule):
    """A risk rule whose detection logic lives in an external executable."""

    def __init__(self, runner: PluginRunner, info: CustomRuleInfo):
        self.runner = runner
        self.info = info

    @classmethod
    def load(cls, path: str | Path, timeout: Optional[float] = None) -> 'CustomRule':
        runner = PluginRunner.load(path, timeout)
        raw = runner.run(None, GET_INFO)
        try:
            info = CustomRuleInfo.model_validate(raw)
        except ValidationError as e:
            raise PluginError(f"{runner.path.name} returned invalid rule info: {e}")
        return cls(runner, info)

    @property
    def id(self) -> str:
        return self.info.id

    def category(self) -> RiskCategory:
        return self.info.category

    def supported_tags(self) -> list[str]:
        return list(self.info.supported_tags)

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        raw = self.runner.run(model.to_json_dict(), GENERATE_RISKS)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise PluginError(f"{self.runner.path.name} {GENERATE_RISKS} must return a JSON list")
        try:
            return [Risk.model_validate(item) for item in raw]
        except ValidationError as e:
            raise PluginError(f"{self.runner.path.name} returned an invalid risk: {e}")

    def explain_risk(self, model: ParsedModel, risk_id: str) -> Optional[list[str]]:
        raw = self.runner.run(model.to_json_dict(), EXPLAIN_RISK, risk_id)
        if raw is None:
            return None
        if not isinstance(raw, list):
            raise PluginError(f"{self.runner.path.name} {EXPLAIN_RISK} must return a JSON list of lines")
        return [str(line) for line in raw]


def load_custom_rules(paths: Iterable[str | Path], timeout: Optional[float] = None) -> dict[str, CustomRule]:
    """Load every plugin that answers ``-get-info``; failures are logged and skipped."""
    rules: dict[str, CustomRule] = {}
    for path in paths:
        if not str(path).strip():
            continue
        try:
            rule = CustomRule.load(path, timeout)
        except PluginError as e:
            logger.warning("Custom risk rule %s not loaded: %s", path, e)
            continue
        rules[rule.id] = rule
        logger.info("Custom risk rule loaded: %s", rule.id)
    return rules
