from __future__ import annotations

from typing import Any

from threatgraph.enums import (
    Confidentiality,
    Criticality,
    DataBreachProbability,
    RiskSeverity,
    RiskStatus,
)
from threatgraph.evaluation import RiskEvaluator
from threatgraph.model import ParsedModel, create_synthetic_id, is_new_risk, is_tagged_with_base_tag
from threatgraph.rules import builtin_rules


def _evaluated(link, data: dict[str, Any]) -> ParsedModel:
    model = link(data)
    _ = RiskEvaluator(builtin_rules()).apply(model)
    return model


def test_synthetic_id_skips_blank_parts() -> None:
    assert create_synthetic_id("missing-vault") == "missing-vault"
    assert create_synthetic_id(
        "unnecessary-data-transfer", technical_asset_id="web-app", data_asset_id="customer-data"
    ) == "unnecessary-data-transfer@web-app@customer-data"


def test_base_tag_matching() -> None:
    assert is_tagged_with_base_tag(["aws:ec2"], "aws")
    assert is_tagged_with_base_tag(["AWS"], "aws")
    assert not is_tagged_with_base_tag(["aws-lambda"], "aws")


def test_link_cia_comes_from_transferred_data(link, shop_data) -> None:
    model = link(shop_data)
    web_traffic = model.communication_links["customer-browser>web-traffic"]

    assert model.highest_link_confidentiality(web_traffic) == Confidentiality.CONFIDENTIAL
    assert model.highest_link_integrity(web_traffic) == Criticality.CRITICAL
    assert model.highest_link_availability(web_traffic) == Criticality.OPERATIONAL


def test_risk_filters(link, shop_data) -> None:
    model = _evaluated(link, shop_data)
    risks = model.all_risks()

    assert [risk.synthetic_id for risk in model.risks_of_category("cross-site-scripting")] == [
        "cross-site-scripting@web-app"
    ]
    assert model.risks_of_category("no-such-category") == []
    elevated = model.filtered_by_severity(RiskSeverity.ELEVATED)
    assert elevated
    assert all(risk.severity == RiskSeverity.ELEVATED for risk in elevated)
    assert model.highest_severity() == max(risk.severity for risk in risks)
    assert model.highest_severity([]) is None
    assert all(
        risk.most_relevant_technical_asset_id == "web-app" for risk in model.risks_for_technical_asset("web-app")
    )
    assert model.risks_for_technical_asset("customer-browser") == []


def test_status_statistics_follow_tracking(link, shop_data) -> None:
    shop_data["risk_tracking"] = {"cross-site-scripting@web-app": {"status": "mitigated"}}
    model = _evaluated(link, shop_data)
    total = len(model.all_risks())

    counts = model.count_by_status()
    assert counts[RiskStatus.MITIGATED] == 1
    assert counts[RiskStatus.UNCHECKED] == total - 1
    assert [risk.synthetic_id for risk in model.filtered_by_status(RiskStatus.MITIGATED)] == [
        "cross-site-scripting@web-app"
    ]

    reduced = model.reduce_to_only_still_at_risk(model.generated_risks_by_category)
    assert "cross-site-scripting" not in reduced
    assert "sql-nosql-injection" in reduced


def test_data_breach_probability_still_at_risk(link, shop_data) -> None:
    model = _evaluated(link, shop_data)
    database = model.technical_assets["customer-db"]
    browser = model.technical_assets["customer-browser"]

    assert model.identified_data_breach_probability_still_at_risk(database) == DataBreachProbability.PROBABLE
    assert model.identified_data_breach_probability_still_at_risk(browser) == DataBreachProbability.IMPROBABLE


def test_is_new_risk(link, shop_data) -> None:
    model = _evaluated(link, shop_data)
    risks = model.all_risks()

    assert not is_new_risk(risks, risks[0])
    assert is_new_risk(risks[1:], risks[0])
