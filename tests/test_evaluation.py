from __future__ import annotations

import pytest

from threatgraph.enums import RiskSeverity
from threatgraph.evaluation import RiskEvaluator
from threatgraph.model import ParsedModel, Risk, RiskCategory
from threatgraph.rules import builtin_rules
from threatgraph.rules.base import BuiltinRule, RiskRule


class _ExplodingRule(BuiltinRule):
    CATEGORY = RiskCategory(id="exploding-rule", title="Exploding Rule")

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        raise RuntimeError("boom")


class _TaggedRule(BuiltinRule):
    CATEGORY = RiskCategory(id="tagged-rule", title="Tagged Rule")
    SUPPORTED_TAGS = ("AWS", "azure")

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        return []


def test_apply_runs_builtin_rules_and_indexes_risks(link, shop_data) -> None:
    model = link(shop_data)
    result = RiskEvaluator(builtin_rules()).apply(model)

    assert len(result.executed) == 22
    assert not result.risk_rules_failed
    assert "cross-site-scripting@web-app" in model.generated_risks_by_synthetic_id
    assert "sql-nosql-injection@web-app@web-app>database-access" in model.generated_risks_by_synthetic_id
    assert model.technical_assets["customer-db"].raa == pytest.approx(100.0)
    for category_id, risks in model.generated_risks_by_category.items():
        assert risks
        assert all(risk.category_id == category_id for risk in risks)


def test_skipped_rules_do_not_run(link, shop_data) -> None:
    model = link(shop_data)
    result = RiskEvaluator(builtin_rules(), ["cross-site-scripting", " missing-vault "]).apply(model)

    assert result.skipped == ["missing-vault", "cross-site-scripting"]
    assert result.unknown_skip_ids == []
    assert "cross-site-scripting" not in model.generated_risks_by_category
    assert "missing-vault" not in model.generated_risks_by_category


def test_unknown_skip_ids_are_reported(link, shop_data, caplog: pytest.LogCaptureFixture) -> None:
    result = RiskEvaluator(builtin_rules(), ["no-such-rule"]).apply(link(shop_data))

    assert result.unknown_skip_ids == ["no-such-rule"]
    assert "no-such-rule" in caplog.text


def test_failing_rule_does_not_stop_evaluation(link, shop_data) -> None:
    rules = {"exploding-rule": _ExplodingRule(), **builtin_rules()}
    model = link(shop_data)
    result = RiskEvaluator(rules).apply(model)

    assert result.failed == {"exploding-rule": "boom"}
    assert result.risk_rules_failed
    assert "exploding-rule" not in model.generated_risks_by_category
    assert "cross-site-scripting" in model.generated_risks_by_category


def test_supported_tags_are_collected(link, shop_data) -> None:
    model = link(shop_data)
    _ = RiskEvaluator({"tagged-rule": _TaggedRule()}).apply(model)

    assert {"aws", "azure"} <= model.all_supported_tags


def test_individual_risks_are_indexed_with_generated_ones(link, shop_data) -> None:
    shop_data["individual_risk_categories"] = {
        "Manual Finding": {
            "id": "manual-finding",
            "risks_identified": {"Found by hand": {"most_relevant_technical_asset": "web-app"}},
        },
    }
    model = link(shop_data)
    _ = RiskEvaluator(builtin_rules()).apply(model)

    assert "manual-finding@web-app" in model.generated_risks_by_synthetic_id


def test_explain_risk_routes_to_owning_rule(link, shop_data) -> None:
    evaluator = RiskEvaluator(builtin_rules())
    model = link(shop_data)
    _ = evaluator.apply(model)

    lines = evaluator.explain_risk(model, "cross-site-scripting@web-app")
    assert lines is not None
    assert lines[0].startswith("Cross-Site Scripting")
    assert evaluator.explain_risk(model, "no-such-category@web-app") is None


class _BareRule(RiskRule):
    """Returns risks the way a plugin may send them: no severity, no synthetic id."""

    def category(self) -> RiskCategory:
        return RiskCategory(id="bare-check", title="Bare Check")

    def supported_tags(self) -> list[str]:
        return []

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = [
            Risk.model_validate({
                "category": "bare-check",
                "exploitation_likelihood": "frequent",
                "exploitation_impact": "very-high",
                "most_relevant_technical_asset": asset_id,
            })
            for asset_id in ("web-app", "customer-db", "web-app")
        ]
        risks.append(Risk.model_validate({
            "category": "bare-check",
            "severity": "low",
            "exploitation_likelihood": "frequent",
            "exploitation_impact": "very-high",
            "most_relevant_technical_asset": "customer-db",
            "most_relevant_communication_link": "web-app>database-access",
        }))
        return risks

    def explain_risk(self, model: ParsedModel, risk_id: str) -> list[str]:
        return [f"bare {risk_id}"]


def test_incomplete_risks_get_ids_and_severity(link, shop_data) -> None:
    model = link(shop_data)
    _ = RiskEvaluator({"bare-check": _BareRule()}).apply(model)

    risks = model.generated_risks_by_category["bare-check"]
    assert [risk.synthetic_id for risk in risks] == [
        "bare-check@web-app",
        "bare-check@customer-db",
        "bare-check@customer-db@web-app>database-access",
    ]
    assert sorted(model.generated_risks_by_synthetic_id) == [
        "bare-check@customer-db",
        "bare-check@customer-db@web-app>database-access",
        "bare-check@web-app",
    ]
    assert risks[0].severity == RiskSeverity.CRITICAL
    assert risks[1].severity == RiskSeverity.CRITICAL
    assert risks[2].severity == RiskSeverity.LOW


def test_risks_are_filed_under_category_not_rule_key(link, shop_data) -> None:
    evaluator = RiskEvaluator({"my-plugin": _BareRule()})
    model = link(shop_data)
    _ = evaluator.apply(model)

    assert "bare-check" in model.generated_risks_by_category
    assert "my-plugin" not in model.generated_risks_by_category
    assert evaluator.explain_risk(model, "bare-check@web-app") == ["bare bare-check@web-app"]


def test_rule_key_is_used_for_skipping(link, shop_data) -> None:
    result = RiskEvaluator({"my-plugin": _BareRule()}, ["my-plugin"]).apply(link(shop_data))

    assert result.skipped == ["my-plugin"]
