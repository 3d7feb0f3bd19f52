"""Trust-boundary containment, nesting and boundary-crossing predicates.

Every scan over boundaries walks sorted ids so results never depend on the
order boundaries were declared in.
"""

from typing import Optional

from .model import CommunicationLink, ParsedModel


def direct_trust_boundary_id(model: ParsedModel, asset_id: str) -> Optional[str]:
    return model.direct_containing_trust_boundary_by_asset_id.get(asset_id)


def parent_trust_boundary_id(model: ParsedModel, boundary_id: str) -> Optional[str]:
    """The boundary whose nested list contains ``boundary_id``, if any."""
    for candidate_id in model.sorted_trust_boundary_ids():
        if boundary_id in model.trust_boundaries[candidate_id].trust_boundaries_nested:
            return candidate_id
    return None


def all_parent_trust_boundary_ids(model: ParsedModel, boundary_id: Optional[str]) -> list[str]:
    """The chain from ``boundary_id`` itself up to its outermost ancestor."""
    chain: list[str] = []
    current = boundary_id
    while current and current not in chain:
        chain.append(current)
        current = parent_trust_boundary_id(model, current)
    return chain


def network_trust_boundary_id(model: ParsedModel, boundary_id: Optional[str]) -> Optional[str]:
    """Nearest network-type boundary starting at ``boundary_id``; execution environments are skipped."""
    for candidate_id in all_parent_trust_boundary_ids(model, boundary_id):
        if model.trust_boundaries[candidate_id].type.is_network_boundary:
            return candidate_id
    return None


def asset_network_trust_boundary_id(model: ParsedModel, asset_id: str) -> Optional[str]:
    return network_trust_boundary_id(model, direct_trust_boundary_id(model, asset_id))


def is_across_trust_boundary(model: ParsedModel, link: CommunicationLink) -> bool:
    return (direct_trust_boundary_id(model, link.source_id)
            != direct_trust_boundary_id(model, link.target_id))


def is_across_trust_boundary_network_only(model: ParsedModel, link: CommunicationLink) -> bool:
    """Like ``is_across_trust_boundary`` but only network isolation counts.

    The target side has to resolve to an actual network boundary; leaving a
    network segment towards an unbounded asset is not counted.
    """
    source_network = asset_network_trust_boundary_id(model, link.source_id)
    target_network = asset_network_trust_boundary_id(model, link.target_id)
    if source_network == target_network or target_network is None:
        return False
    return model.trust_boundaries[target_network].type.is_network_boundary


def is_sharing_same_parent_trust_boundary(model: ParsedModel, left_asset_id: str, right_asset_id: str) -> bool:
    left = direct_trust_boundary_id(model, left_asset_id)
    right = direct_trust_boundary_id(model, right_asset_id)
    if left is None and right is None:
        return True
    if left is None or right is None:
        return False
    if left == right:
        return True
    left_chain = all_parent_trust_boundary_ids(model, left)
    right_chain = all_parent_trust_boundary_ids(model, right)
    return any(boundary_id in right_chain for boundary_id in left_chain)


def is_same_execution_environment(model: ParsedModel, left_asset_id: str, right_asset_id: str) -> bool:
    left = direct_trust_boundary_id(model, left_asset_id)
    right = direct_trust_boundary_id(model, right_asset_id)
    if left is None or left != right:
        return False
    return not model.trust_boundaries[left].type.is_network_boundary


def is_same_trust_boundary_network_only(model: ParsedModel, left_asset_id: str, right_asset_id: str) -> bool:
    return (asset_network_trust_boundary_id(model, left_asset_id)
            == asset_network_trust_boundary_id(model, right_asset_id))


def has_direct_connection(model: ParsedModel, left_asset_id: str, right_asset_id: str) -> bool:
    for link in model.incoming_links_by_target_id.get(left_asset_id, []):
        if link.source_id == right_asset_id:
            return True
    for link in model.incoming_links_by_target_id.get(right_asset_id, []):
        if link.source_id == left_asset_id:
            return True
    return False


def recursively_all_technical_asset_ids_inside(model: ParsedModel, boundary_id: str) -> list[str]:
    collected: list[str] = []
    visited: set[str] = set()

    def collect(current_id: str) -> None:
        if current_id in visited or current_id not in model.trust_boundaries:
            return
        visited.add(current_id)
        boundary = model.trust_boundaries[current_id]
        for asset_id in boundary.technical_assets_inside:
            if asset_id not in collected:
                collected.append(asset_id)
        for nested_id in boundary.trust_boundaries_nested:
            collect(nested_id)

    collect(boundary_id)
    return collected
