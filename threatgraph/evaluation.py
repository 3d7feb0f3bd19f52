"""Runs risk rules over a linked model and files the results."""

import logging
from typing import Iterable, Mapping, Optional

from pydantic import BaseModel, Field

from .enums import calculate_severity
from .model import ParsedModel, Risk, create_synthetic_id
from .raa import calculate_raa
from .rules.base import RiskRule


logger = logging.getLogger(__name__)


class EvaluationResult(BaseModel):
    executed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
    unknown_skip_ids: list[str] = Field(default_factory=list)

    @property
    def risk_rules_failed(self) -> bool:
        return bool(self.failed)


def complete_risk(risk: Risk) -> Risk:
    """Fill in a severity and synthetic id the rule left unset."""
    updates = {}
    if 'severity' not in risk.model_fields_set:
        updates['severity'] = calculate_severity(risk.exploitation_likelihood, risk.exploitation_impact)
    if not risk.synthetic_id.strip():
        updates['synthetic_id'] = create_synthetic_id(
            risk.category_id,
            technical_asset_id=risk.most_relevant_technical_asset_id,
            communication_link_id=risk.most_relevant_communication_link_id,
            trust_boundary_id=risk.most_relevant_trust_boundary_id,
            shared_runtime_id=risk.most_relevant_shared_runtime_id,
            data_asset_id=risk.most_relevant_data_asset_id,
        )
    return risk.model_copy(update=updates) if updates else risk


class RiskEvaluator:
    """Applies rules in order, skipping the ones the caller disabled.

    A failing rule contributes no risks and is recorded in the result; the
    remaining rules still run. Risks are filed under their rule's category id.
    """

    def __init__(self, rules: Mapping[str, RiskRule], skip_rules: Iterable[str] = ()):
        self.rules = dict(rules)
        self.skip_rules = [rule_id.strip() for rule_id in skip_rules if rule_id and rule_id.strip()]

    def apply(self, model: ParsedModel) -> EvaluationResult:
        calculate_raa(model)
        result = EvaluationResult()
        pending_skips = set(self.skip_rules)

        for rule_id, rule in self.rules.items():
            if rule_id in pending_skips:
                logger.info("Skipping risk rule %s", rule_id)
                pending_skips.discard(rule_id)
                result.skipped.append(rule_id)
                continue
            model.add_to_supported_tags(rule.supported_tags())
            try:
                category_id = rule.category().id
                risks = self._file_risks(rule_id, rule.generate_risks(model))
            except Exception as e:
                logger.warning("Risk rule %s failed: %s", rule_id, e)
                result.failed[rule_id] = str(e)
                continue
            result.executed.append(rule_id)
            if risks:
                model.generated_risks_by_category[category_id] = risks
            logger.debug("Risk rule %s produced %d risks", rule_id, len(risks))

        for rule_id in sorted(pending_skips):
            logger.warning("Unknown risk rule id to skip: %s", rule_id)
            result.unknown_skip_ids.append(rule_id)

        model.generated_risks_by_synthetic_id = {
            risk.synthetic_id.lower(): risk
            for risks in model.generated_risks_by_category.values()
            for risk in risks
        }
        logger.info("Identified %d risks from %d rules",
                    len(model.generated_risks_by_synthetic_id), len(result.executed))
        return result

    @staticmethod
    def _file_risks(rule_id: str, risks: Iterable[Risk]) -> list[Risk]:
        filed: list[Risk] = []
        seen: set[str] = set()
        for risk in risks:
            risk = complete_risk(risk)
            key = risk.synthetic_id.lower()
            if key in seen:
                logger.debug("Risk rule %s repeated risk %s", rule_id, risk.synthetic_id)
                continue
            seen.add(key)
            filed.append(risk)
        return filed

    def _rule_for_category(self, category_id: str) -> Optional[RiskRule]:
        for rule in self.rules.values():
            if rule.category().id == category_id:
                return rule
        return self.rules.get(category_id)

    def explain_risk(self, model: ParsedModel, risk_id: str) -> Optional[list[str]]:
        """Ask the rule that owns ``risk_id``'s category to explain it."""
        risk = model.generated_risks_by_synthetic_id.get(risk_id.strip().lower())
        if risk is not None:
            category_id = risk.category_id
        else:
            category_id = risk_id.split('@', 1)[0].strip()
        rule = self._rule_for_category(category_id)
        if rule is None:
            return None
        return rule.explain_risk(model, risk_id)
