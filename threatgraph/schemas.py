"""Pydantic models for the raw architecture model input."""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InputRecord(BaseModel):
    """Loosely typed YAML record: nulls fall back to defaults, numbers and dates become text."""
    model_config = ConfigDict(extra='ignore', coerce_numbers_to_str=True)

    @model_validator(mode='before')
    @classmethod
    def normalize_scalars(cls, data):
        if not isinstance(data, dict):
            return data
        normalized = {}
        for key, value in data.items():
            if value is None:
                continue
            if isinstance(value, (dt.date, dt.datetime)):
                value = value.isoformat()[:10]
            normalized[key] = value
        return normalized


class Author(InputRecord):
    name: str = ''
    contact: str = ''
    homepage: str = ''


class Overview(InputRecord):
    description: str = ''
    images: list[dict[str, str]] = Field(default_factory=list)


class DataAssetInput(InputRecord):
    id: str = ''
    description: str = ''
    usage: str = ''
    tags: list[str] = Field(default_factory=list)
    origin: str = ''
    owner: str = ''
    quantity: str = ''
    confidentiality: str = ''
    integrity: str = ''
    availability: str = ''
    justification_cia_rating: str = ''
    is_template: bool = False


class CommunicationLinkInput(InputRecord):
    target: str = ''
    description: str = ''
    protocol: str = ''
    authentication: str = ''
    authorization: str = ''
    tags: list[str] = Field(default_factory=list)
    vpn: bool = False
    ip_filtered: bool = False
    readonly: bool = False
    usage: str = ''
    data_assets_sent: list[str] = Field(default_factory=list)
    data_assets_received: list[str] = Field(default_factory=list)
    diagram_tweak_weight: int = 0
    diagram_tweak_constraint: bool = False


class TechnicalAssetInput(InputRecord):
    id: str = ''
    description: str = ''
    type: str = ''
    usage: str = ''
    used_as_client_by_human: bool = False
    out_of_scope: bool = False
    justification_out_of_scope: str = ''
    size: str = ''
    technology: str = ''
    technologies: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    internet: bool = False
    machine: str = ''
    encryption: str = ''
    owner: str = ''
    confidentiality: str = ''
    integrity: str = ''
    availability: str = ''
    justification_cia_rating: str = ''
    multi_tenant: bool = False
    redundant: bool = False
    custom_developed_parts: bool = False
    data_assets_processed: list[str] = Field(default_factory=list)
    data_assets_stored: list[str] = Field(default_factory=list)
    data_formats_accepted: list[str] = Field(default_factory=list)
    diagram_tweak_order: int = 0
    communication_links: dict[str, CommunicationLinkInput] = Field(default_factory=dict)
    is_template: bool = False

    def technology_names(self) -> list[str]:
        """Declared technologies, with the legacy single ``technology`` field first."""
        names = [self.technology] if self.technology.strip() else []
        names.extend(name for name in self.technologies if name not in names)
        return names


class TrustBoundaryInput(InputRecord):
    id: str = ''
    description: str = ''
    type: str = ''
    tags: list[str] = Field(default_factory=list)
    technical_assets_inside: list[str] = Field(default_factory=list)
    trust_boundaries_nested: list[str] = Field(default_factory=list)
    is_template: bool = False


class SharedRuntimeInput(InputRecord):
    id: str = ''
    description: str = ''
    tags: list[str] = Field(default_factory=list)
    technical_assets_running: list[str] = Field(default_factory=list)
    is_template: bool = False


class RiskIdentifiedInput(InputRecord):
    severity: str = ''
    exploitation_likelihood: str = ''
    exploitation_impact: str = ''
    data_breach_probability: str = ''
    data_breach_technical_assets: list[str] = Field(default_factory=list)
    most_relevant_data_asset: str = ''
    most_relevant_technical_asset: str = ''
    most_relevant_communication_link: str = ''
    most_relevant_trust_boundary: str = ''
    most_relevant_shared_runtime: str = ''


class RiskCategoryInput(InputRecord):
    model_config = ConfigDict(extra='ignore', coerce_numbers_to_str=True, protected_namespaces=())

    id: str = ''
    description: str = ''
    impact: str = ''
    asvs: str = ''
    cheat_sheet: str = ''
    action: str = ''
    mitigation: str = ''
    check: str = ''
    function: str = ''
    stride: str = ''
    detection_logic: str = ''
    risk_assessment: str = ''
    false_positives: str = ''
    model_failure_possible_reason: bool = False
    cwe: int = 0
    risks_identified: dict[str, RiskIdentifiedInput] = Field(default_factory=dict)
    is_template: bool = False


class RiskTrackingInput(InputRecord):
    status: str = ''
    justification: str = ''
    ticket: str = ''
    date: str = ''
    checked_by: str = ''


class ModelInput(InputRecord):
    """The whole architecture model as authored, before linking."""
    title: str = ''
    author: Author = Field(default_factory=Author)
    contributors: list[Author] = Field(default_factory=list)
    date: str = ''
    application_description: Overview = Field(default_factory=Overview)
    business_overview: Overview = Field(default_factory=Overview)
    technical_overview: Overview = Field(default_factory=Overview)
    business_criticality: str = ''
    management_summary_comment: str = ''
    security_requirements: dict[str, str] = Field(default_factory=dict)
    questions: dict[str, str] = Field(default_factory=dict)
    abuse_cases: dict[str, str] = Field(default_factory=dict)
    tags_available: list[str] = Field(default_factory=list)
    data_assets: dict[str, DataAssetInput] = Field(default_factory=dict)
    technical_assets: dict[str, TechnicalAssetInput] = Field(default_factory=dict)
    trust_boundaries: dict[str, TrustBoundaryInput] = Field(default_factory=dict)
    shared_runtimes: dict[str, SharedRuntimeInput] = Field(default_factory=dict)
    individual_risk_categories: dict[str, RiskCategoryInput] = Field(default_factory=dict)
    risk_tracking: dict[str, RiskTrackingInput] = Field(default_factory=dict)
    includes: list[str] = Field(default_factory=list)

    def prune_templates(self) -> None:
        """Drop records flagged as templates; they only serve as copy sources for authors."""
        self.data_assets = {k: v for k, v in self.data_assets.items() if not v.is_template}
        self.technical_assets = {k: v for k, v in self.technical_assets.items() if not v.is_template}
        self.trust_boundaries = {k: v for k, v in self.trust_boundaries.items() if not v.is_template}
        self.shared_runtimes = {k: v for k, v in self.shared_runtimes.items() if not v.is_template}
        self.individual_risk_categories = {
            k: v for k, v in self.individual_risk_categories.items() if not v.is_template
        }
