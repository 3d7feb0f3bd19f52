from __future__ import annotations

from typing import Any

import pytest

from threatgraph.enums import RiskStatus
from threatgraph.evaluation import RiskEvaluator
from threatgraph.model import ParsedModel
from threatgraph.rules import builtin_rules
from threatgraph.tracking import (
    RiskTrackingError,
    apply_wildcard_risk_tracking,
    check_risk_tracking,
    is_wildcard,
    wildcard_pattern,
)


def _evaluated(link, data: dict[str, Any]) -> ParsedModel:
    model = link(data)
    _ = RiskEvaluator(builtin_rules()).apply(model)
    return model


def test_untracked_risks_are_unchecked(link, shop_data) -> None:
    model = _evaluated(link, shop_data)
    risk = model.generated_risks_by_synthetic_id["cross-site-scripting@web-app"]

    assert model.risk_status(risk) == RiskStatus.UNCHECKED
    assert risk in model.filtered_by_still_at_risk()


def test_mitigated_risk_is_no_longer_at_risk(link, shop_data) -> None:
    shop_data["risk_tracking"] = {"Cross-Site-Scripting@web-app": {"status": "mitigated"}}
    model = _evaluated(link, shop_data)
    check_risk_tracking(model)

    risk = model.generated_risks_by_synthetic_id["cross-site-scripting@web-app"]
    assert model.risk_status(risk) == RiskStatus.MITIGATED
    assert risk not in model.filtered_by_still_at_risk()


def test_wildcard_pattern_matches_one_segment() -> None:
    pattern = wildcard_pattern("unencrypted-communication@*@*")

    assert is_wildcard("a@*")
    assert not is_wildcard("a@b")
    assert pattern.match("unencrypted-communication@web-app@web-app>database-access")
    assert pattern.match("Unencrypted-Communication@WEB-APP@x")
    assert not pattern.match("unencrypted-communication@web-app")
    assert not pattern.match("unencrypted-asset@web-app@x")


def test_wildcard_tracking_expands_to_matching_risks(link, shop_data) -> None:
    shop_data["risk_tracking"] = {
        "unencrypted-communication@*@*": {"status": "accepted", "justification": "Internal network"},
    }
    model = _evaluated(link, shop_data)

    expanded = apply_wildcard_risk_tracking(model)
    assert expanded == ["unencrypted-communication@web-app@web-app>database-access"]
    tracking = model.risk_tracking["unencrypted-communication@web-app@web-app>database-access"]
    assert tracking.status == RiskStatus.ACCEPTED
    assert tracking.justification == "Internal network"
    assert tracking.synthetic_risk_id == "unencrypted-communication@web-app@web-app>database-access"
    check_risk_tracking(model)


def test_direct_tracking_wins_over_wildcard(link, shop_data) -> None:
    shop_data["risk_tracking"] = {
        "cross-site-scripting@*": {"status": "accepted"},
        "cross-site-scripting@web-app": {"status": "false-positive"},
    }
    model = _evaluated(link, shop_data)

    assert apply_wildcard_risk_tracking(model) == []
    risk = model.generated_risks_by_synthetic_id["cross-site-scripting@web-app"]
    assert model.risk_status(risk) == RiskStatus.FALSE_POSITIVE


def test_orphaned_tracking_is_an_error(link, shop_data) -> None:
    shop_data["risk_tracking"] = {"xml-external-entity@nowhere": {"status": "mitigated"}}
    model = _evaluated(link, shop_data)

    with pytest.raises(RiskTrackingError, match="xml-external-entity@nowhere"):
        check_risk_tracking(model)


def test_orphaned_tracking_can_be_ignored(link, shop_data, caplog: pytest.LogCaptureFixture) -> None:
    shop_data["risk_tracking"] = {
        "xml-external-entity@nowhere": {"status": "mitigated"},
        "ldap-injection@*": {"status": "accepted"},
    }
    model = _evaluated(link, shop_data)

    assert apply_wildcard_risk_tracking(model, ignore_orphaned=True) == []
    check_risk_tracking(model, ignore_orphaned=True)
    assert "xml-external-entity@nowhere" in caplog.text
    assert "ldap-injection@*" in caplog.text


def test_unmatched_wildcard_is_an_error(link, shop_data) -> None:
    shop_data["risk_tracking"] = {"ldap-injection@*": {"status": "accepted"}}
    model = _evaluated(link, shop_data)

    with pytest.raises(RiskTrackingError, match="wildcard"):
        _ = apply_wildcard_risk_tracking(model)
