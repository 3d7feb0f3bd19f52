from __future__ import annotations

import pytest

from threatgraph.enums import (
    Confidentiality,
    Criticality,
    Protocol,
    RiskExploitationImpact,
    RiskExploitationLikelihood,
    RiskSeverity,
    RiskStatus,
    TrustBoundaryType,
    UnknownEnumValue,
    calculate_severity,
)


@pytest.mark.parametrize(
    ("likelihood", "impact", "expected"),
    [
        (RiskExploitationLikelihood.UNLIKELY, RiskExploitationImpact.LOW, RiskSeverity.LOW),
        (RiskExploitationLikelihood.UNLIKELY, RiskExploitationImpact.HIGH, RiskSeverity.MEDIUM),
        (RiskExploitationLikelihood.LIKELY, RiskExploitationImpact.MEDIUM, RiskSeverity.ELEVATED),
        (RiskExploitationLikelihood.VERY_LIKELY, RiskExploitationImpact.HIGH, RiskSeverity.HIGH),
        (RiskExploitationLikelihood.FREQUENT, RiskExploitationImpact.VERY_HIGH, RiskSeverity.CRITICAL),
    ],
)
def test_calculate_severity_buckets(likelihood, impact, expected) -> None:
    assert calculate_severity(likelihood, impact) == expected


def test_declaration_order_is_total_order() -> None:
    assert Confidentiality.PUBLIC < Confidentiality.INTERNAL < Confidentiality.STRICTLY_CONFIDENTIAL
    assert max(Criticality.OPERATIONAL, Criticality.MISSION_CRITICAL) == Criticality.MISSION_CRITICAL
    assert sorted([RiskSeverity.HIGH, RiskSeverity.LOW, RiskSeverity.CRITICAL]) == [
        RiskSeverity.LOW,
        RiskSeverity.HIGH,
        RiskSeverity.CRITICAL,
    ]


def test_parse_is_case_and_whitespace_insensitive() -> None:
    assert Confidentiality.parse("  Strictly-Confidential ") == Confidentiality.STRICTLY_CONFIDENTIAL


def test_parse_blank_uses_default_or_fails() -> None:
    assert Criticality.parse("", default=Criticality.IMPORTANT) == Criticality.IMPORTANT
    with pytest.raises(UnknownEnumValue):
        _ = Criticality.parse("  ")


def test_parse_error_names_field_owner_and_value() -> None:
    with pytest.raises(UnknownEnumValue) as excinfo:
        _ = Confidentiality.parse("top-secret", "confidentiality", "data asset 'Secrets'")
    message = str(excinfo.value)
    assert "confidentiality" in message
    assert "data asset 'Secrets'" in message
    assert "top-secret" in message


def test_protocol_classification() -> None:
    assert Protocol.HTTPS.is_encrypted
    assert not Protocol.HTTP.is_encrypted
    assert Protocol.IN_PROCESS_LIBRARY_CALL.is_process_local
    assert Protocol.JDBC.is_potential_database_access(False)
    assert not Protocol.HTTPS.is_potential_database_access(False)
    assert Protocol.WSS.is_potential_web_access
    assert not Protocol.JDBC.is_potential_web_access


def test_status_still_at_risk() -> None:
    assert RiskStatus.UNCHECKED.is_still_at_risk
    assert RiskStatus.ACCEPTED.is_still_at_risk
    assert not RiskStatus.MITIGATED.is_still_at_risk
    assert not RiskStatus.FALSE_POSITIVE.is_still_at_risk


def test_execution_environment_is_not_network_boundary() -> None:
    assert TrustBoundaryType.NETWORK_ON_PREM.is_network_boundary
    assert not TrustBoundaryType.EXECUTION_ENVIRONMENT.is_network_boundary
    assert TrustBoundaryType.NETWORK_CLOUD_SECURITY_GROUP.is_within_cloud
    assert not TrustBoundaryType.NETWORK_ON_PREM.is_within_cloud
