from __future__ import annotations

from typing import Any

from threatgraph.boundaries import (
    all_parent_trust_boundary_ids,
    asset_network_trust_boundary_id,
    has_direct_connection,
    is_across_trust_boundary,
    is_across_trust_boundary_network_only,
    is_same_execution_environment,
    is_sharing_same_parent_trust_boundary,
    recursively_all_technical_asset_ids_inside,
)


def _nest_web_app_in_container(data: dict[str, Any]) -> dict[str, Any]:
    """Put the web app into an execution environment nested inside the DMZ."""
    data["trust_boundaries"]["DMZ"]["technical_assets_inside"] = []
    data["trust_boundaries"]["DMZ"]["trust_boundaries_nested"] = ["web-container"]
    data["trust_boundaries"]["Web Container"] = {
        "id": "web-container",
        "type": "execution-environment",
        "technical_assets_inside": ["web-app"],
    }
    return data


def test_parent_chain_walks_up_nesting(link, shop_data) -> None:
    model = link(_nest_web_app_in_container(shop_data))

    assert all_parent_trust_boundary_ids(model, "web-container") == ["web-container", "dmz"]
    assert all_parent_trust_boundary_ids(model, None) == []


def test_network_boundary_skips_execution_environment(link, shop_data) -> None:
    model = link(_nest_web_app_in_container(shop_data))

    assert asset_network_trust_boundary_id(model, "web-app") == "dmz"
    assert asset_network_trust_boundary_id(model, "customer-browser") is None


def test_crossing_network_boundary(link, shop_data) -> None:
    model = link(shop_data)

    db_link = model.communication_links["web-app>database-access"]
    assert is_across_trust_boundary(model, db_link)
    assert is_across_trust_boundary_network_only(model, db_link)


def test_execution_environment_alone_is_not_network_crossing(link, shop_data) -> None:
    data = _nest_web_app_in_container(shop_data)
    # web app sits in the container, the database directly in the DMZ
    data["trust_boundaries"]["DMZ"]["technical_assets_inside"] = ["customer-db"]
    data["trust_boundaries"]["Backend"]["technical_assets_inside"] = []
    model = link(data)

    db_link = model.communication_links["web-app>database-access"]
    assert is_across_trust_boundary(model, db_link)
    assert not is_across_trust_boundary_network_only(model, db_link)


def test_link_towards_unbounded_asset_is_not_network_crossing(link, shop_data) -> None:
    shop_data["trust_boundaries"]["Backend"]["technical_assets_inside"] = []
    model = link(shop_data)

    db_link = model.communication_links["web-app>database-access"]
    assert not is_across_trust_boundary_network_only(model, db_link)


def test_shared_parent_and_execution_environment(link, shop_data) -> None:
    model = link(_nest_web_app_in_container(shop_data))

    assert not is_sharing_same_parent_trust_boundary(model, "web-app", "customer-db")
    assert not is_same_execution_environment(model, "web-app", "customer-db")
    assert is_same_execution_environment(model, "web-app", "web-app")


def test_direct_connection_is_symmetric(link, shop_data) -> None:
    model = link(shop_data)

    assert has_direct_connection(model, "web-app", "customer-db")
    assert has_direct_connection(model, "customer-db", "web-app")
    assert not has_direct_connection(model, "customer-browser", "customer-db")


def test_recursive_contents_include_nested_boundaries(link, shop_data) -> None:
    model = link(_nest_web_app_in_container(shop_data))

    assert recursively_all_technical_asset_ids_inside(model, "dmz") == ["web-app"]
    assert recursively_all_technical_asset_ids_inside(model, "missing") == []
