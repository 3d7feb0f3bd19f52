"""Technology registry: maps technology names to records with boolean attributes."""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


logger = logging.getLogger(__name__)

DEFAULT_TECHNOLOGIES_FILE = Path(__file__).parent / 'data' / 'technologies.yaml'

# Attribute names referenced by rule detection logic.
WEB_APPLICATION = 'web_application'
WEB_SERVICE = 'web_service'
IDENTITY_RELATED = 'identity_related'
SECURITY_CONTROL_RELATED = 'security_control_related'
UNPROTECTED_COMMUNICATIONS_TOLERATED = 'unprotected_communications_tolerated'
UNNECESSARY_DATA_TOLERATED = 'unnecessary_data_tolerated'
CLOSE_TO_HIGH_VALUE_TARGETS_TOLERATED = 'close_to_high_value_targets_tolerated'
CLIENT = 'client'
PROPAGATE_IDENTITY_TO_OUTGOING_TARGETS = 'propagate_identity_to_outgoing_targets'
LESS_PROTECTED_TYPE = 'less_protected_type'
PROCESSING_END_USER_REQUESTS = 'processing_end_user_requests'
STORING_END_USER_DATA = 'storing_end_user_data'
FRONTEND_RELATED = 'frontend_related'
BACKEND_RELATED = 'backend_related'
DEVELOPMENT_RELEVANT = 'development_relevant'
TRAFFIC_FORWARDING = 'traffic_forwarding'
EMBEDDED_COMPONENT = 'embedded_component'
NO_AUTHENTICATION_REQUIRED = 'no_authentication_required'
NO_STORAGE_AT_REST = 'no_storage_at_rest'
HTTP_INTERNET_ACCESS_OK = 'http_internet_access_ok'
FTP_INTERNET_ACCESS_OK = 'ftp_internet_access_ok'
VULNERABLE_TO_QUERY_INJECTION = 'vulnerable_to_query_injection'
MAY_CONTAIN_SECRETS = 'may_contain_secrets'
HIGH_VALUE_TARGET = 'high_value_target'
FILE_STORAGE = 'file_storage'
SEARCH_RELATED = 'search_related'

# Technology names referenced directly by rules.
UNKNOWN_TECHNOLOGY = 'unknown-technology'
APPLICATION_SERVER = 'application-server'
ARTIFACT_REGISTRY = 'artifact-registry'
BUILD_PIPELINE = 'build-pipeline'
CONTAINER_PLATFORM = 'container-platform'
EJB = 'ejb'
ERP = 'erp'
FILE_SERVER = 'file-server'
IDENTITY_PROVIDER = 'identity-provider'
IDENTITY_STORE_DATABASE = 'identity-store-database'
IDENTITY_STORE_LDAP = 'identity-store-ldap'
IDS = 'ids'
IPS = 'ips'
LOAD_BALANCER = 'load-balancer'
MONITORING = 'monitoring'
REVERSE_PROXY = 'reverse-proxy'
SERVICE_REGISTRY = 'service-registry'
SOURCECODE_REPOSITORY = 'sourcecode-repository'
VAULT = 'vault'
WAF = 'waf'


class TechnologyRegistryError(Exception):
    """Raised when a technology file cannot be read or is malformed."""
    pass


class Technology(BaseModel):
    """A technology record with its (possibly inherited) attributes."""
    name: str
    parent: str = ''
    description: str = ''
    aliases: list[str] = Field(default_factory=list)
    attributes: dict[str, bool] = Field(default_factory=dict)

    @field_validator('attributes', mode='before')
    @classmethod
    def attributes_as_mapping(cls, value):
        if value is None:
            return {}
        if isinstance(value, list):
            return {str(name): True for name in value}
        return value

    @field_validator('aliases', mode='before')
    @classmethod
    def aliases_as_list(cls, value):
        return value or []

    def has_attribute(self, *names: str) -> bool:
        return any(self.attributes.get(name, False) for name in names)

    def is_(self, name: str) -> bool:
        return self.name.lower() == name.strip().lower()

    def __str__(self) -> str:
        return self.name


class TechnologyRegistry:
    """Lookup table of technologies keyed by lower-cased name."""

    def __init__(self, technologies: Optional[dict[str, Technology]] = None):
        self.technologies: dict[str, Technology] = {}
        for technology in (technologies or {}).values():
            self.add(technology)
        self._aliases: Optional[dict[str, str]] = None

    @classmethod
    def load_default(cls, extra_file: Optional[str | Path] = None) -> 'TechnologyRegistry':
        """Load the packaged technologies, optionally overlaid by a user file."""
        registry = cls()
        registry.load(DEFAULT_TECHNOLOGIES_FILE)
        if extra_file:
            registry.load(extra_file)
        registry.propagate_attributes()
        return registry

    def add(self, technology: Technology) -> None:
        self.technologies[technology.name.strip().lower()] = technology
        self._aliases = None

    def load(self, path: str | Path) -> None:
        """Merge technologies from a YAML file; names already present are replaced."""
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                content = yaml.safe_load(f) or {}
        except OSError as e:
            raise TechnologyRegistryError(f"Unable to read technologies from {path}: {e}")
        except yaml.YAMLError as e:
            raise TechnologyRegistryError(f"YAML parse error in {path.name}: {e}")
        if not isinstance(content, dict):
            raise TechnologyRegistryError(f"{path.name} must map technology names to records")

        for name, data in content.items():
            data = dict(data or {})
            data['name'] = str(name)
            try:
                self.add(Technology(**data))
            except ValidationError as e:
                raise TechnologyRegistryError(f"Technology '{name}' validation error in {path.name}: {e}")
        logger.debug("Loaded %d technologies from %s", len(content), path)

    def propagate_attributes(self) -> None:
        """Fold parent attributes into each technology and mark its own name."""
        resolved: dict[str, dict[str, bool]] = {}

        def resolve(key: str, chain: tuple[str, ...]) -> dict[str, bool]:
            if key in resolved:
                return resolved[key]
            if key in chain:
                raise TechnologyRegistryError(
                    f"Technology parent cycle: {' -> '.join(chain + (key,))}"
                )
            technology = self.technologies[key]
            attributes: dict[str, bool] = {}
            parent = technology.parent.strip().lower()
            if parent:
                if parent not in self.technologies:
                    raise TechnologyRegistryError(
                        f"Technology '{technology.name}' references unknown parent '{technology.parent}'"
                    )
                attributes.update(resolve(parent, chain + (key,)))
            attributes.update(technology.attributes)
            attributes[technology.name] = True
            resolved[key] = attributes
            return attributes

        for key in list(self.technologies):
            resolve(key, ())
        for key, attributes in resolved.items():
            self.technologies[key].attributes = attributes

    def get(self, name: str) -> Optional[Technology]:
        key = (name or '').strip().lower()
        if key in self.technologies:
            return self.technologies[key]
        if self._aliases is None:
            self._aliases = {
                alias.strip().lower(): tech_key
                for tech_key, technology in self.technologies.items()
                for alias in technology.aliases
            }
        tech_key = self._aliases.get(key)
        return self.technologies[tech_key] if tech_key else None

    def names(self) -> list[str]:
        return sorted(technology.name for technology in self.technologies.values())

    def __len__(self) -> int:
        return len(self.technologies)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None
