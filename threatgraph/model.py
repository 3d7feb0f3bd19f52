"""Linked architecture model.

Entities reference each other only by id; the owning ``ParsedModel`` holds the
lookup tables and the derived indices built by the linker. Communication links
are owned by their source asset and indexed a second time by target for reverse
traversal.
"""

import datetime as dt
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import (
    Authentication, Authorization, Confidentiality, Criticality,
    DataBreachProbability, DataFormat, EncryptionStyle, Protocol, Quantity,
    RiskExploitationImpact, RiskExploitationLikelihood, RiskFunction,
    RiskSeverity, RiskStatus, STRIDE, TechnicalAssetMachine, TechnicalAssetSize,
    TechnicalAssetType, TrustBoundaryType, Usage,
)
from .schemas import Author, Overview
from .technologies import Technology


def is_tagged_with_any(entity_tags: Iterable[str], *tags: str) -> bool:
    """True when any of ``tags`` is present (case-insensitive) in ``entity_tags``."""
    present = {tag.strip().lower() for tag in entity_tags}
    return any(tag.strip().lower() in present for tag in tags)


def is_tagged_with_base_tag(entity_tags: Iterable[str], base_tag: str) -> bool:
    """True when a tag equals ``base_tag`` or is a ``base_tag:suffix`` variant of it."""
    base = base_tag.strip().lower()
    for tag in entity_tags:
        tag = tag.strip().lower()
        if tag == base or tag.startswith(base + ':'):
            return True
    return False


class DataAsset(BaseModel):
    id: str
    title: str
    description: str = ''
    usage: Usage = Usage.BUSINESS
    quantity: Quantity = Quantity.VERY_FEW
    tags: list[str] = Field(default_factory=list)
    origin: str = ''
    owner: str = ''
    confidentiality: Confidentiality = Confidentiality.PUBLIC
    integrity: Criticality = Criticality.ARCHIVE
    availability: Criticality = Criticality.ARCHIVE
    justification_cia_rating: str = ''

    def is_tagged_with_any(self, *tags: str) -> bool:
        return is_tagged_with_any(self.tags, *tags)


class CommunicationLink(BaseModel):
    id: str
    source_id: str
    target_id: str
    title: str
    description: str = ''
    protocol: Protocol = Protocol.UNKNOWN
    tags: list[str] = Field(default_factory=list)
    vpn: bool = False
    ip_filtered: bool = False
    readonly: bool = False
    authentication: Authentication = Authentication.NONE
    authorization: Authorization = Authorization.NONE
    usage: Usage = Usage.BUSINESS
    data_assets_sent: list[str] = Field(default_factory=list)
    data_assets_received: list[str] = Field(default_factory=list)
    diagram_tweak_weight: int = 1
    diagram_tweak_constraint: bool = True

    def is_tagged_with_any(self, *tags: str) -> bool:
        return is_tagged_with_any(self.tags, *tags)

    def transferred_data_asset_ids(self) -> list[str]:
        ids = list(self.data_assets_sent)
        ids.extend(data_id for data_id in self.data_assets_received if data_id not in ids)
        return ids


class TechnicalAsset(BaseModel):
    id: str
    title: str
    description: str = ''
    usage: Usage = Usage.BUSINESS
    type: TechnicalAssetType = TechnicalAssetType.PROCESS
    size: TechnicalAssetSize = TechnicalAssetSize.COMPONENT
    technologies: list[Technology] = Field(default_factory=list)
    machine: TechnicalAssetMachine = TechnicalAssetMachine.VIRTUAL
    internet: bool = False
    multi_tenant: bool = False
    redundant: bool = False
    custom_developed_parts: bool = False
    out_of_scope: bool = False
    used_as_client_by_human: bool = False
    encryption: EncryptionStyle = EncryptionStyle.NONE
    justification_out_of_scope: str = ''
    owner: str = ''
    confidentiality: Confidentiality = Confidentiality.PUBLIC
    integrity: Criticality = Criticality.ARCHIVE
    availability: Criticality = Criticality.ARCHIVE
    justification_cia_rating: str = ''
    tags: list[str] = Field(default_factory=list)
    data_assets_processed: list[str] = Field(default_factory=list)
    data_assets_stored: list[str] = Field(default_factory=list)
    data_formats_accepted: list[DataFormat] = Field(default_factory=list)
    communication_links: list[CommunicationLink] = Field(default_factory=list)
    diagram_tweak_order: int = 0
    raa: float = 0.0

    def is_tagged_with_any(self, *tags: str) -> bool:
        return is_tagged_with_any(self.tags, *tags)

    def has_technology(self, *names: str) -> bool:
        """True if any technology of the asset is, or inherits from, one of ``names``."""
        return any(
            technology.is_(name) or technology.has_attribute(name)
            for technology in self.technologies
            for name in names
        )

    def has_technology_attribute(self, *attributes: str) -> bool:
        return any(technology.has_attribute(*attributes) for technology in self.technologies)

    def technology_names(self) -> list[str]:
        return [technology.name for technology in self.technologies]

    def processes_or_stores_data_asset(self, data_asset_id: str) -> bool:
        return data_asset_id in self.data_assets_processed or data_asset_id in self.data_assets_stored

    def accepts_data_format(self, data_format: DataFormat) -> bool:
        return data_format in self.data_formats_accepted

    def highest_sensitivity_score(self) -> float:
        return (self.confidentiality.attacker_attractiveness_for_asset()
                + self.integrity.attacker_attractiveness_for_asset()
                + self.availability.attacker_attractiveness_for_asset())


class TrustBoundary(BaseModel):
    id: str
    title: str
    description: str = ''
    type: TrustBoundaryType = TrustBoundaryType.NETWORK_ON_PREM
    tags: list[str] = Field(default_factory=list)
    technical_assets_inside: list[str] = Field(default_factory=list)
    trust_boundaries_nested: list[str] = Field(default_factory=list)

    def is_tagged_with_any(self, *tags: str) -> bool:
        return is_tagged_with_any(self.tags, *tags)


class SharedRuntime(BaseModel):
    id: str
    title: str
    description: str = ''
    tags: list[str] = Field(default_factory=list)
    technical_assets_running: list[str] = Field(default_factory=list)

    def is_tagged_with_any(self, *tags: str) -> bool:
        return is_tagged_with_any(self.tags, *tags)


class RiskCategory(BaseModel):
    """Classification and guidance shared by every risk of one kind."""
    model_config = ConfigDict(protected_namespaces=())

    id: str
    title: str
    description: str = ''
    impact: str = ''
    asvs: str = ''
    cheat_sheet: str = ''
    action: str = ''
    mitigation: str = ''
    check: str = ''
    detection_logic: str = ''
    risk_assessment: str = ''
    false_positives: str = ''
    function: RiskFunction = RiskFunction.BUSINESS_SIDE
    stride: STRIDE = STRIDE.SPOOFING
    model_failure_possible_reason: bool = False
    cwe: int = 0


class Risk(BaseModel):
    """One identified risk. Field aliases follow the plugin wire format."""
    model_config = ConfigDict(populate_by_name=True)

    category_id: str = Field(alias='category')
    severity: RiskSeverity = RiskSeverity.MEDIUM
    exploitation_likelihood: RiskExploitationLikelihood = RiskExploitationLikelihood.LIKELY
    exploitation_impact: RiskExploitationImpact = RiskExploitationImpact.MEDIUM
    title: str = ''
    synthetic_id: str = ''
    most_relevant_data_asset_id: str = Field(default='', alias='most_relevant_data_asset')
    most_relevant_technical_asset_id: str = Field(default='', alias='most_relevant_technical_asset')
    most_relevant_communication_link_id: str = Field(default='', alias='most_relevant_communication_link')
    most_relevant_trust_boundary_id: str = Field(default='', alias='most_relevant_trust_boundary')
    most_relevant_shared_runtime_id: str = Field(default='', alias='most_relevant_shared_runtime')
    data_breach_probability: DataBreachProbability = DataBreachProbability.POSSIBLE
    data_breach_technical_asset_ids: list[str] = Field(default_factory=list, alias='data_breach_technical_assets')


def create_synthetic_id(category_id: str, *, technical_asset_id: str = '',
                        communication_link_id: str = '', trust_boundary_id: str = '',
                        shared_runtime_id: str = '', data_asset_id: str = '') -> str:
    """Compose the stable risk key: category, then each non-empty reference in fixed order."""
    parts = [category_id]
    for ref in (technical_asset_id, communication_link_id, trust_boundary_id,
                shared_runtime_id, data_asset_id):
        if ref:
            parts.append(ref)
    return '@'.join(parts)


class RiskTracking(BaseModel):
    synthetic_risk_id: str
    justification: str = ''
    ticket: str = ''
    checked_by: str = ''
    status: RiskStatus = RiskStatus.UNCHECKED
    date: Optional[dt.date] = None


class ParsedModel(BaseModel):
    """The fully linked architecture graph plus its derived indices."""
    title: str = ''
    author: Author = Field(default_factory=Author)
    contributors: list[Author] = Field(default_factory=list)
    date: dt.date = Field(default_factory=dt.date.today)
    application_description: Overview = Field(default_factory=Overview)
    business_overview: Overview = Field(default_factory=Overview)
    technical_overview: Overview = Field(default_factory=Overview)
    business_criticality: Criticality = Criticality.IMPORTANT
    management_summary_comment: str = ''
    security_requirements: dict[str, str] = Field(default_factory=dict)
    questions: dict[str, str] = Field(default_factory=dict)
    abuse_cases: dict[str, str] = Field(default_factory=dict)
    tags_available: list[str] = Field(default_factory=list)
    all_supported_tags: set[str] = Field(default_factory=set)

    data_assets: dict[str, DataAsset] = Field(default_factory=dict)
    technical_assets: dict[str, TechnicalAsset] = Field(default_factory=dict)
    trust_boundaries: dict[str, TrustBoundary] = Field(default_factory=dict)
    shared_runtimes: dict[str, SharedRuntime] = Field(default_factory=dict)
    communication_links: dict[str, CommunicationLink] = Field(default_factory=dict)
    individual_risk_categories: dict[str, RiskCategory] = Field(default_factory=dict)
    rule_risk_categories: dict[str, RiskCategory] = Field(default_factory=dict)
    risk_tracking: dict[str, RiskTracking] = Field(default_factory=dict)

    incoming_links_by_target_id: dict[str, list[CommunicationLink]] = Field(default_factory=dict)
    direct_containing_trust_boundary_by_asset_id: dict[str, str] = Field(default_factory=dict)
    generated_risks_by_category: dict[str, list[Risk]] = Field(default_factory=dict)
    generated_risks_by_synthetic_id: dict[str, Risk] = Field(default_factory=dict)

    # --- sorted views ---------------------------------------------------

    def sorted_technical_asset_ids(self) -> list[str]:
        return sorted(self.technical_assets)

    def sorted_data_asset_ids(self) -> list[str]:
        return sorted(self.data_assets)

    def sorted_trust_boundary_ids(self) -> list[str]:
        return sorted(self.trust_boundaries)

    def sorted_shared_runtime_ids(self) -> list[str]:
        return sorted(self.shared_runtimes)

    def technical_assets_sorted(self) -> list[TechnicalAsset]:
        return [self.technical_assets[asset_id] for asset_id in self.sorted_technical_asset_ids()]

    def outgoing_links_sorted(self, asset: TechnicalAsset) -> list[CommunicationLink]:
        return sorted(asset.communication_links, key=lambda link: link.title)

    def incoming_links_sorted(self, asset_id: str) -> list[CommunicationLink]:
        return sorted(self.incoming_links_by_target_id.get(asset_id, []), key=lambda link: link.id)

    # --- CIA helpers ----------------------------------------------------

    def _data(self, ids: Iterable[str]) -> list[DataAsset]:
        return [self.data_assets[data_id] for data_id in ids if data_id in self.data_assets]

    def highest_processed_confidentiality(self, asset: TechnicalAsset) -> Confidentiality:
        return max((d.confidentiality for d in self._data(asset.data_assets_processed)),
                   default=Confidentiality.PUBLIC)

    def highest_processed_integrity(self, asset: TechnicalAsset) -> Criticality:
        return max((d.integrity for d in self._data(asset.data_assets_processed)),
                   default=Criticality.ARCHIVE)

    def highest_processed_availability(self, asset: TechnicalAsset) -> Criticality:
        return max((d.availability for d in self._data(asset.data_assets_processed)),
                   default=Criticality.ARCHIVE)

    def highest_stored_confidentiality(self, asset: TechnicalAsset) -> Confidentiality:
        return max((d.confidentiality for d in self._data(asset.data_assets_stored)),
                   default=Confidentiality.PUBLIC)

    def highest_stored_integrity(self, asset: TechnicalAsset) -> Criticality:
        return max((d.integrity for d in self._data(asset.data_assets_stored)),
                   default=Criticality.ARCHIVE)

    def highest_stored_availability(self, asset: TechnicalAsset) -> Criticality:
        return max((d.availability for d in self._data(asset.data_assets_stored)),
                   default=Criticality.ARCHIVE)

    def highest_confidentiality(self, asset: TechnicalAsset) -> Confidentiality:
        return max(asset.confidentiality, self.highest_processed_confidentiality(asset),
                   self.highest_stored_confidentiality(asset))

    def highest_integrity(self, asset: TechnicalAsset) -> Criticality:
        return max(asset.integrity, self.highest_processed_integrity(asset),
                   self.highest_stored_integrity(asset))

    def highest_availability(self, asset: TechnicalAsset) -> Criticality:
        return max(asset.availability, self.highest_processed_availability(asset),
                   self.highest_stored_availability(asset))

    def highest_link_confidentiality(self, link: CommunicationLink) -> Confidentiality:
        return max((d.confidentiality for d in self._data(link.transferred_data_asset_ids())),
                   default=Confidentiality.PUBLIC)

    def highest_link_integrity(self, link: CommunicationLink) -> Criticality:
        return max((d.integrity for d in self._data(link.transferred_data_asset_ids())),
                   default=Criticality.ARCHIVE)

    def highest_link_availability(self, link: CommunicationLink) -> Criticality:
        return max((d.availability for d in self._data(link.transferred_data_asset_ids())),
                   default=Criticality.ARCHIVE)

    # --- tags -----------------------------------------------------------

    def check_tags(self, tags: Iterable[str], where: str) -> list[str]:
        """Normalize tags and verify each is declared in ``tags_available``."""
        available = set(self.tags_available)
        checked = []
        for tag in tags:
            tag = tag.strip().lower()
            if tag not in available:
                raise ValueError(f"missing referenced tag in overall tag list at {where}: {tag}")
            if tag not in checked:
                checked.append(tag)
        return checked

    def add_to_supported_tags(self, tags: Iterable[str]) -> None:
        self.all_supported_tags.update(tag.strip().lower() for tag in tags)

    # --- risks ----------------------------------------------------------

    def all_risks(self) -> list[Risk]:
        """All generated risks, ordered by category id and then synthetic id."""
        risks = []
        for category_id in sorted(self.generated_risks_by_category):
            risks.extend(sorted(self.generated_risks_by_category[category_id],
                                key=lambda risk: risk.synthetic_id))
        return risks

    def risks_of_category(self, category_id: str) -> list[Risk]:
        return list(self.generated_risks_by_category.get(category_id, []))

    def risks_for_technical_asset(self, asset_id: str) -> list[Risk]:
        return [risk for risk in self.all_risks() if risk.most_relevant_technical_asset_id == asset_id]

    def get_risk_tracking(self, risk: Risk) -> Optional[RiskTracking]:
        wanted = risk.synthetic_id.lower()
        tracking = self.risk_tracking.get(risk.synthetic_id)
        if tracking is not None:
            return tracking
        for tracking in self.risk_tracking.values():
            if tracking.synthetic_risk_id.lower() == wanted:
                return tracking
        return None

    def risk_status(self, risk: Risk) -> RiskStatus:
        tracking = self.get_risk_tracking(risk)
        return tracking.status if tracking is not None else RiskStatus.UNCHECKED

    def is_still_at_risk(self, risk: Risk) -> bool:
        return self.risk_status(risk).is_still_at_risk

    def filtered_by_still_at_risk(self, risks: Optional[Iterable[Risk]] = None) -> list[Risk]:
        risks = self.all_risks() if risks is None else risks
        return [risk for risk in risks if self.is_still_at_risk(risk)]

    def filtered_by_status(self, *statuses: RiskStatus, risks: Optional[Iterable[Risk]] = None) -> list[Risk]:
        risks = self.all_risks() if risks is None else risks
        return [risk for risk in risks if self.risk_status(risk) in statuses]

    def filtered_by_severity(self, *severities: RiskSeverity, risks: Optional[Iterable[Risk]] = None) -> list[Risk]:
        risks = self.all_risks() if risks is None else risks
        return [risk for risk in risks if risk.severity in severities]

    def reduce_to_only_still_at_risk(self, risks_by_category: dict[str, list[Risk]]) -> dict[str, list[Risk]]:
        reduced = {}
        for category_id, risks in risks_by_category.items():
            still_at_risk = self.filtered_by_still_at_risk(risks)
            if still_at_risk:
                reduced[category_id] = still_at_risk
        return reduced

    def count_by_severity(self, risks: Optional[Iterable[Risk]] = None) -> dict[RiskSeverity, int]:
        risks = self.all_risks() if risks is None else risks
        counts = {severity: 0 for severity in RiskSeverity}
        for risk in risks:
            counts[risk.severity] += 1
        return counts

    def count_by_status(self, risks: Optional[Iterable[Risk]] = None) -> dict[RiskStatus, int]:
        risks = self.all_risks() if risks is None else risks
        counts = {status: 0 for status in RiskStatus}
        for risk in risks:
            counts[self.risk_status(risk)] += 1
        return counts

    def highest_severity(self, risks: Optional[Iterable[Risk]] = None) -> Optional[RiskSeverity]:
        risks = self.all_risks() if risks is None else risks
        return max((risk.severity for risk in risks), default=None)

    def identified_data_breach_probability_still_at_risk(self, asset: TechnicalAsset) -> DataBreachProbability:
        """Worst data-breach probability among unresolved risks implicating ``asset``."""
        highest = DataBreachProbability.IMPROBABLE
        for risk in self.filtered_by_still_at_risk():
            if asset.id in risk.data_breach_technical_asset_ids:
                highest = max(highest, risk.data_breach_probability)
        return highest

    def to_json_dict(self) -> dict:
        return self.model_dump(mode='json', by_alias=True)


def is_new_risk(risks: Iterable[Risk], risk: Risk) -> bool:
    return all(existing.synthetic_id != risk.synthetic_id for existing in risks)
