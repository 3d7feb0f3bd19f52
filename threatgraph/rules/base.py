"""Risk rule contract shared by in-process and plugin-backed rules."""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from ..enums import (
    DataBreachProbability, RiskExploitationImpact, RiskExploitationLikelihood,
    calculate_severity,
)
from ..model import ParsedModel, Risk, RiskCategory, create_synthetic_id


class RiskRule(ABC):
    """A detector that turns a linked model into risks of a single category."""

    @abstractmethod
    def category(self) -> RiskCategory:
        ...

    @abstractmethod
    def supported_tags(self) -> list[str]:
        ...

    @abstractmethod
    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        ...

    def explain_risk(self, model: ParsedModel, risk_id: str) -> Optional[list[str]]:
        return None

    @property
    def id(self) -> str:
        return self.category().id


class BuiltinRule(RiskRule):
    """In-process rule. Subclasses set ``CATEGORY`` and implement ``generate_risks``."""

    CATEGORY: RiskCategory
    SUPPORTED_TAGS: tuple[str, ...] = ()

    def category(self) -> RiskCategory:
        return self.CATEGORY

    def supported_tags(self) -> list[str]:
        return list(self.SUPPORTED_TAGS)

    def create_risk(self, title: str,
                    likelihood: RiskExploitationLikelihood,
                    impact: RiskExploitationImpact,
                    data_breach_probability: DataBreachProbability,
                    data_breach_technical_asset_ids: Iterable[str] = (),
                    technical_asset_id: str = '',
                    communication_link_id: str = '',
                    trust_boundary_id: str = '',
                    shared_runtime_id: str = '',
                    data_asset_id: str = '') -> Risk:
        category_id = self.CATEGORY.id
        return Risk(
            category_id=category_id,
            severity=calculate_severity(likelihood, impact),
            exploitation_likelihood=likelihood,
            exploitation_impact=impact,
            title=title,
            synthetic_id=create_synthetic_id(
                category_id,
                technical_asset_id=technical_asset_id,
                communication_link_id=communication_link_id,
                trust_boundary_id=trust_boundary_id,
                shared_runtime_id=shared_runtime_id,
                data_asset_id=data_asset_id,
            ),
            most_relevant_technical_asset_id=technical_asset_id,
            most_relevant_communication_link_id=communication_link_id,
            most_relevant_trust_boundary_id=trust_boundary_id,
            most_relevant_shared_runtime_id=shared_runtime_id,
            most_relevant_data_asset_id=data_asset_id,
            data_breach_probability=data_breach_probability,
            data_breach_technical_asset_ids=list(data_breach_technical_asset_ids),
        )

    def explain_risk(self, model: ParsedModel, risk_id: str) -> Optional[list[str]]:
        risk = model.generated_risks_by_synthetic_id.get(risk_id.strip().lower())
        if risk is None or risk.category_id != self.CATEGORY.id:
            return None
        category = self.CATEGORY
        lines = [
            f"{risk.title}",
            f"Severity: {risk.severity.label} "
            f"(likelihood {risk.exploitation_likelihood.label}, impact {risk.exploitation_impact.label})",
            f"Status: {model.risk_status(risk).label}",
        ]
        for heading, text in (('Detection', category.detection_logic),
                              ('Assessment', category.risk_assessment),
                              ('Mitigation', category.mitigation),
                              ('False positives', category.false_positives)):
            if text:
                lines.append(f"{heading}: {text}")
        if category.cwe:
            lines.append(f"CWE-{category.cwe}")
        return lines
