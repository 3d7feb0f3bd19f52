"""Relative Attacker Attractiveness (RAA) scoring of technical assets."""

import logging

from .enums import TechnicalAssetType
from .model import DataAsset, ParsedModel, TechnicalAsset
from .technologies import (
    ARTIFACT_REGISTRY, BUILD_PIPELINE, CONTAINER_PLATFORM, IDENTITY_PROVIDER,
    IDENTITY_STORE_DATABASE, IDENTITY_STORE_LDAP, LOAD_BALANCER, MONITORING,
    REVERSE_PROXY, SOURCECODE_REPOSITORY, VAULT,
)


logger = logging.getLogger(__name__)


def _stored_or_processed_score(data_asset: DataAsset) -> float:
    factor = data_asset.quantity.factor
    return (data_asset.confidentiality.attacker_attractiveness_for_processed_or_stored_data() * factor
            + data_asset.integrity.attacker_attractiveness_for_processed_or_stored_data() * factor
            + data_asset.availability.attacker_attractiveness_for_processed_or_stored_data())


def _transferred_score(data_asset: DataAsset) -> float:
    factor = data_asset.quantity.factor
    return (data_asset.confidentiality.attacker_attractiveness_for_transferred_data() * factor
            + data_asset.integrity.attacker_attractiveness_for_transferred_data() * factor
            + data_asset.availability.attacker_attractiveness_for_transferred_data())


class RAACalculator:
    """Scores every asset and normalizes the scores to percent of the model's spread."""

    def __init__(self, model: ParsedModel):
        self.model = model
        self._minimum = 0.0
        self._spread = 1.0
        self._normalized = False

    def attacker_attractiveness(self, asset: TechnicalAsset) -> float:
        if asset.out_of_scope:
            return 0.0
        score = (asset.confidentiality.attacker_attractiveness_for_asset()
                 + asset.integrity.attacker_attractiveness_for_asset()
                 + asset.availability.attacker_attractiveness_for_asset())
        for data_id in asset.data_assets_processed:
            score += _stored_or_processed_score(self.model.data_assets[data_id])
        for data_id in asset.data_assets_stored:
            score += _stored_or_processed_score(self.model.data_assets[data_id])
        for link in asset.communication_links:
            for data_id in link.data_assets_sent + link.data_assets_received:
                score += _transferred_score(self.model.data_assets[data_id])

        if asset.has_technology(LOAD_BALANCER, REVERSE_PROXY):
            score /= 5.5
        if asset.has_technology(MONITORING):
            score /= 5
        if asset.has_technology(CONTAINER_PLATFORM):
            score *= 5
        if asset.has_technology(VAULT):
            score *= 2
        if asset.has_technology(BUILD_PIPELINE, SOURCECODE_REPOSITORY, ARTIFACT_REGISTRY):
            score *= 2
        if asset.has_technology(IDENTITY_PROVIDER, IDENTITY_STORE_DATABASE, IDENTITY_STORE_LDAP):
            score *= 2.5
        elif asset.type == TechnicalAssetType.DATASTORE:
            score *= 2
        if asset.multi_tenant:
            score *= 1.5
        return score

    def _normalize(self) -> None:
        scores = [self.attacker_attractiveness(asset) for asset in self.model.technical_assets_sorted()]
        minimum = min(scores, default=0.0)
        maximum = max(scores, default=0.0)
        if not minimum < maximum:
            maximum = minimum + 1
        self._minimum = minimum
        self._spread = maximum - minimum
        self._normalized = True

    def relative(self, attractiveness: float) -> float:
        if not self._normalized:
            self._normalize()
        percent = (attractiveness - self._minimum) / self._spread * 100
        return percent if percent > 0 else 1.0

    def pivoting_adjustment(self, asset: TechnicalAsset) -> float:
        """A third of the largest attractiveness gain reachable over one outgoing link."""
        if asset.out_of_scope:
            return 0.0
        own = self.relative(self.attacker_attractiveness(asset))
        adjustment = 0.0
        for link in asset.communication_links:
            neighbour = self.model.technical_assets.get(link.target_id)
            if neighbour is None:
                continue
            delta = self.relative(self.attacker_attractiveness(neighbour)) - own
            if delta > 0:
                adjustment = max(adjustment, delta / 3)
        return adjustment

    def calculate(self) -> None:
        for asset in self.model.technical_assets_sorted():
            if asset.out_of_scope:
                asset.raa = 0.0
                continue
            attractiveness = self.attacker_attractiveness(asset) + self.pivoting_adjustment(asset)
            asset.raa = self.relative(attractiveness)
            logger.debug("RAA of %s: %.2f", asset.id, asset.raa)


def calculate_raa(model: ParsedModel) -> None:
    RAACalculator(model).calculate()
