from __future__ import annotations

import datetime as dt

import pytest

from threatgraph.enums import Confidentiality, Criticality, Protocol, RiskStatus
from threatgraph.linker import ModelLinkError, derive_link_id


def test_empty_model_links_to_empty_graph(link) -> None:
    model = link({"title": "Empty"})

    assert model.title == "Empty"
    assert model.technical_assets == {}
    assert model.communication_links == {}
    assert model.business_criticality == Criticality.IMPORTANT
    assert model.date == dt.date.today()


def test_link_ids_are_derived_from_source_and_title(link, shop_data) -> None:
    model = link(shop_data)

    assert set(model.communication_links) == {
        "customer-browser>web-traffic",
        "web-app>database-access",
    }
    db_link = model.communication_links["web-app>database-access"]
    assert db_link.source_id == "web-app"
    assert db_link.target_id == "customer-db"
    assert db_link.protocol == Protocol.JDBC
    assert [incoming.id for incoming in model.incoming_links_by_target_id["customer-db"]] == ["web-app>database-access"]


def test_derive_link_id_slugs_the_title() -> None:
    assert derive_link_id("api", "Read / Write  Orders") == "api>read-write-orders"


def test_transferred_data_is_processed_by_both_ends(link, shop_data) -> None:
    model = link(shop_data)

    browser = model.technical_assets["customer-browser"]
    web_app = model.technical_assets["web-app"]
    assert set(browser.data_assets_processed) == {"customer-data", "public-content"}
    assert set(web_app.data_assets_processed) == {"customer-data", "public-content"}


def test_stored_data_is_also_processed(link, shop_data) -> None:
    model = link(shop_data)

    database = model.technical_assets["customer-db"]
    assert database.data_assets_stored == ["customer-data"]
    assert "customer-data" in database.data_assets_processed


def test_cia_ratings_never_drop_below_processed_data(link, shop_data) -> None:
    model = link(shop_data)

    for asset in model.technical_assets.values():
        for data_id in asset.data_assets_processed:
            data_asset = model.data_assets[data_id]
            assert asset.confidentiality >= data_asset.confidentiality
            assert asset.integrity >= data_asset.integrity
            assert asset.availability >= data_asset.availability
    web_app = model.technical_assets["web-app"]
    assert web_app.confidentiality == Confidentiality.CONFIDENTIAL
    assert web_app.integrity == Criticality.CRITICAL


def test_unknown_technology_names_technology_and_asset(link, shop_data) -> None:
    shop_data["technical_assets"]["Customer DB"]["technology"] = "quantum-db"

    with pytest.raises(ModelLinkError) as excinfo:
        _ = link(shop_data)
    assert "quantum-db" in str(excinfo.value)
    assert "Customer DB" in str(excinfo.value)


def test_technology_alias_resolves(link, shop_data) -> None:
    shop_data["technical_assets"]["Customer DB"]["technology"] = "RDBMS"

    model = link(shop_data)
    assert model.technical_assets["customer-db"].technology_names() == ["database"]


def test_missing_technology_defaults_to_unknown(link, shop_data) -> None:
    del shop_data["technical_assets"]["Web App"]["technology"]

    model = link(shop_data)
    assert model.technical_assets["web-app"].technology_names() == ["unknown-technology"]


def test_invalid_id_syntax_is_rejected(link, shop_data) -> None:
    shop_data["data_assets"]["Customer Data"]["id"] = "customer data"

    with pytest.raises(ModelLinkError, match="invalid id syntax"):
        _ = link(shop_data)


def test_duplicate_ids_are_rejected(link, shop_data) -> None:
    shop_data["data_assets"]["Public Content"]["id"] = "customer-data"

    with pytest.raises(ModelLinkError, match="duplicate id used: customer-data"):
        _ = link(shop_data)


def test_unknown_data_asset_reference(link, shop_data) -> None:
    shop_data["technical_assets"]["Web App"]["data_assets_processed"] = ["orders"]

    with pytest.raises(ModelLinkError, match="missing referenced data asset"):
        _ = link(shop_data)


def test_missing_link_target(link, shop_data) -> None:
    shop_data["technical_assets"]["Web App"]["communication_links"]["Database Access"]["target"] = "nowhere"

    with pytest.raises(ModelLinkError) as excinfo:
        _ = link(shop_data)
    assert "Database Access" in str(excinfo.value)
    assert "nowhere" in str(excinfo.value)


def test_unknown_enum_value_becomes_link_error(link, shop_data) -> None:
    shop_data["data_assets"]["Customer Data"]["confidentiality"] = "top-secret"

    with pytest.raises(ModelLinkError, match="top-secret"):
        _ = link(shop_data)


def test_undeclared_tag_is_rejected(link, shop_data) -> None:
    shop_data["technical_assets"]["Web App"]["tags"] = ["unknown-tag"]

    with pytest.raises(ModelLinkError, match="unknown-tag"):
        _ = link(shop_data)


def test_asset_in_two_boundaries_is_rejected(link, shop_data) -> None:
    shop_data["trust_boundaries"]["Backend"]["technical_assets_inside"].append("web-app")

    with pytest.raises(ModelLinkError, match="multiple trust boundaries"):
        _ = link(shop_data)


def test_boundary_nesting_cycle_is_rejected(link, shop_data) -> None:
    shop_data["trust_boundaries"]["DMZ"]["trust_boundaries_nested"] = ["backend"]
    shop_data["trust_boundaries"]["Backend"]["trust_boundaries_nested"] = ["dmz"]

    with pytest.raises(ModelLinkError, match="cycle"):
        _ = link(shop_data)


def test_shared_runtime_references_are_checked(link, shop_data) -> None:
    shop_data["shared_runtimes"] = {
        "Cluster": {"id": "cluster", "technical_assets_running": ["web-app", "ghost"]},
    }

    with pytest.raises(ModelLinkError, match="ghost"):
        _ = link(shop_data)


def test_individual_risks_get_synthetic_ids(link, shop_data) -> None:
    shop_data["individual_risk_categories"] = {
        "Weak Session Handling": {
            "id": "weak-session-handling",
            "function": "development",
            "stride": "spoofing",
            "risks_identified": {
                "Session fixation at Web App": {
                    "severity": "high",
                    "exploitation_likelihood": "likely",
                    "exploitation_impact": "high",
                    "most_relevant_technical_asset": "web-app",
                    "data_breach_technical_assets": ["customer-db"],
                },
            },
        },
    }

    model = link(shop_data)
    (risk,) = model.generated_risks_by_category["weak-session-handling"]
    assert risk.synthetic_id == "weak-session-handling@web-app"
    assert risk.data_breach_technical_asset_ids == ["customer-db"]
    assert "weak-session-handling" in model.individual_risk_categories


def test_individual_risk_with_dangling_reference(link, shop_data) -> None:
    shop_data["individual_risk_categories"] = {
        "Custom": {
            "id": "custom",
            "risks_identified": {"Broken": {"most_relevant_technical_asset": "ghost"}},
        },
    }

    with pytest.raises(ModelLinkError, match="ghost"):
        _ = link(shop_data)


def test_risk_tracking_is_linked(link, shop_data) -> None:
    shop_data["risk_tracking"] = {
        "cross-site-scripting@web-app": {
            "status": "mitigated",
            "justification": "Output encoding in place",
            "ticket": "SHOP-12",
            "date": "2024-02-01",
        },
    }

    model = link(shop_data)
    tracking = model.risk_tracking["cross-site-scripting@web-app"]
    assert tracking.status == RiskStatus.MITIGATED
    assert tracking.date == dt.date(2024, 2, 1)


def test_bad_tracking_date_is_rejected(link, shop_data) -> None:
    shop_data["risk_tracking"] = {"x@y": {"status": "accepted", "date": "01.02.2024"}}

    with pytest.raises(ModelLinkError, match="date"):
        _ = link(shop_data)
