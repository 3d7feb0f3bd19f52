"""Rules about the overall architecture: missing components, isolation and placement."""

from typing import Optional

from ..boundaries import (
    direct_trust_boundary_id, has_direct_connection, is_same_execution_environment,
    is_same_trust_boundary_network_only,
)
from ..enums import (
    Authorization, Confidentiality, Criticality, DataBreachProbability,
    RiskExploitationImpact, RiskExploitationLikelihood, RiskFunction, STRIDE,
    TechnicalAssetMachine, TechnicalAssetType, TrustBoundaryType,
)
from ..model import ParsedModel, Risk, RiskCategory, SharedRuntime, TechnicalAsset
from ..technologies import (
    BACKEND_RELATED, CLOSE_TO_HIGH_VALUE_TARGETS_TOLERATED, FRONTEND_RELATED,
    IDENTITY_STORE_DATABASE, IDENTITY_STORE_LDAP, IDS, IPS, LESS_PROTECTED_TYPE,
    REVERSE_PROXY, SERVICE_REGISTRY, VAULT, WAF,
)
from .base import BuiltinRule


def _is_sensitive(model: ParsedModel, asset: TechnicalAsset) -> bool:
    return (model.highest_confidentiality(asset) >= Confidentiality.CONFIDENTIAL
            or model.highest_integrity(asset) >= Criticality.CRITICAL
            or model.highest_availability(asset) >= Criticality.CRITICAL)


def _is_own_rating_sensitive(asset: TechnicalAsset) -> bool:
    return (asset.confidentiality >= Confidentiality.CONFIDENTIAL
            or asset.integrity >= Criticality.CRITICAL
            or asset.availability >= Criticality.CRITICAL)


def _is_top_rated(asset: TechnicalAsset) -> bool:
    return (asset.confidentiality == Confidentiality.STRICTLY_CONFIDENTIAL
            or asset.integrity == Criticality.MISSION_CRITICAL
            or asset.availability == Criticality.MISSION_CRITICAL)


def _sensitivity(asset: Optional[TechnicalAsset]) -> float:
    return asset.highest_sensitivity_score() if asset is not None else 0.0


class MissingVaultRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='missing-vault',
        title='Missing Vault (Secret Storage)',
        description='In order to avoid the risk of secret leakage via config files (when attacked through '
                    'vulnerabilities being able to read files like Path-Traversal and others), it is best '
                    'practice to use a separate hardened process with proper authentication, authorization, and '
                    'audit logging to access config secrets (like credentials, private keys, client '
                    'certificates, etc.). This component is usually some kind of Vault.',
        impact='If this risk is unmitigated, attackers might be able to easier steal config secrets (like '
               'credentials, private keys, client certificates, etc.) once a vulnerability to access files is '
               'present and exploited.',
        asvs='V6 - Stored Cryptography Verification Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Cryptographic_Storage_Cheat_Sheet.html',
        action='Vault (Secret Storage)',
        mitigation='Consider using a Vault (Secret Storage) to securely store and access config secrets (like '
                   'credentials, private keys, client certificates, etc.).',
        check='Is a Vault (Secret Storage) in place?',
        detection_logic='Models without a Vault (Secret Storage).',
        risk_assessment='The risk rating depends on the sensitivity of the technical asset itself and of the '
                        'data assets processed.',
        false_positives='Models where no technical assets have any kind of sensitive config data to protect can '
                        'be considered as false positives after individual review.',
        function=RiskFunction.ARCHITECTURE,
        stride=STRIDE.INFORMATION_DISCLOSURE,
        model_failure_possible_reason=True,
        cwe=522,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        has_vault = False
        most_relevant: Optional[TechnicalAsset] = None
        impact = RiskExploitationImpact.LOW
        for asset in model.technical_assets_sorted():
            if asset.has_technology(VAULT):
                has_vault = True
            if (model.highest_processed_confidentiality(asset) >= Confidentiality.CONFIDENTIAL
                    or model.highest_processed_integrity(asset) >= Criticality.CRITICAL
                    or model.highest_processed_availability(asset) >= Criticality.CRITICAL
                    or _is_own_rating_sensitive(asset)):
                impact = RiskExploitationImpact.MEDIUM
            if most_relevant is None or asset.highest_sensitivity_score() > _sensitivity(most_relevant):
                most_relevant = asset
        if has_vault or most_relevant is None:
            return []
        return [self.create_risk(
            f"Missing Vault (Secret Storage) in the threat model "
            f"(referencing asset {most_relevant.title} as an example)",
            RiskExploitationLikelihood.UNLIKELY, impact, DataBreachProbability.IMPROBABLE,
            technical_asset_id=most_relevant.id,
        )]


class MissingVaultIsolationRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='missing-vault-isolation',
        title='Missing Vault Isolation',
        description='Highly sensitive vault assets and their datastores should be isolated from other assets '
                    'by their own network segmentation trust-boundary (execution-environment boundaries do not '
                    'count as network isolation).',
        impact='If this risk is unmitigated, attackers successfully attacking other components of the system '
               'might have an easy path towards highly sensitive vault assets and their datastores, as they are '
               'not separated by network segmentation.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Attack_Surface_Analysis_Cheat_Sheet.html',
        action='Network Segmentation',
        mitigation='Apply a network segmentation trust-boundary around the highly sensitive vault assets and '
                   'their datastores.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope vault assets when surrounded by other (not vault-related) assets (without a '
                        'network trust-boundary in-between). This risk is especially prevalent when other '
                        'non-vault related assets are within the same execution environment (i.e. same '
                        'database or same application server).',
        risk_assessment='Default is medium impact. The impact is increased to high when the asset missing the '
                        'trust-boundary protection is rated as strictly-confidential or mission-critical.',
        false_positives='When all assets within the network segmentation trust-boundary are hardened and '
                        'protected to the same extend as if all were vaults with data of highest sensitivity.',
        function=RiskFunction.OPERATIONS,
        stride=STRIDE.ELEVATION_OF_PRIVILEGE,
        cwe=1008,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for vault in model.technical_assets_sorted():
            if vault.out_of_scope or not vault.has_technology(VAULT):
                continue
            create = False
            same_execution_environment = False
            for candidate in model.technical_assets_sorted():
                if candidate.id == vault.id or candidate.has_technology(VAULT):
                    continue
                if self._is_vault_storage(model, vault, candidate):
                    continue
                if is_same_execution_environment(model, vault.id, candidate.id):
                    create = True
                    same_execution_environment = True
                elif is_same_trust_boundary_network_only(model, vault.id, candidate.id):
                    create = True
            if not create:
                continue
            if same_execution_environment:
                likelihood = RiskExploitationLikelihood.LIKELY
                others = "in the same execution environment"
            else:
                likelihood = RiskExploitationLikelihood.UNLIKELY
                others = "in the same network segment"
            impact = RiskExploitationImpact.HIGH if _is_top_rated(vault) else RiskExploitationImpact.MEDIUM
            risks.append(self.create_risk(
                f"Missing Vault Isolation to further encapsulate and protect vault-related asset {vault.title} "
                f"against unrelated lower protected assets {others}, which might be easier to compromise by "
                f"attackers",
                likelihood, impact, DataBreachProbability.IMPROBABLE,
                data_breach_technical_asset_ids=[vault.id],
                technical_asset_id=vault.id,
            ))
        return risks

    @staticmethod
    def _is_vault_storage(model: ParsedModel, vault: TechnicalAsset, storage: TechnicalAsset) -> bool:
        return storage.type == TechnicalAssetType.DATASTORE and has_direct_connection(model, vault.id, storage.id)


class MissingIdentityStoreRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='missing-identity-store',
        title='Missing Identity Store',
        description='The modeled architecture does not contain an identity store, which might be the risk of a '
                    'model missing critical assets (and thus not seeing their risks).',
        impact='If this risk is unmitigated, attackers might be able to exploit risks unseen in this threat '
               'model in the identity provider/store that is currently missing in the model.',
        asvs='V2 - Authentication Verification Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Authentication_Cheat_Sheet.html',
        action='Identity Store',
        mitigation='Include an identity store in the model if the application has a login.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='Models with authenticated data-flows authorized via end user identity missing an '
                        'in-scope identity store.',
        risk_assessment='The risk rating depends on the sensitivity of the end user-identity authorized '
                        'technical assets and their data assets processed.',
        false_positives='Models only offering data/services without any real authentication need can be '
                        'considered as false positives after individual review.',
        function=RiskFunction.ARCHITECTURE,
        stride=STRIDE.SPOOFING,
        model_failure_possible_reason=True,
        cwe=287,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        for asset in model.technical_assets.values():
            if not asset.out_of_scope and asset.has_technology(IDENTITY_STORE_LDAP, IDENTITY_STORE_DATABASE):
                return []
        risk_identified = False
        most_relevant: Optional[TechnicalAsset] = None
        impact = RiskExploitationImpact.LOW
        for asset in model.technical_assets_sorted():
            for link in model.outgoing_links_sorted(asset):
                if link.authorization != Authorization.ENDUSER_IDENTITY_PROPAGATION:
                    continue
                risk_identified = True
                target = model.technical_assets[link.target_id]
                if impact == RiskExploitationImpact.LOW:
                    most_relevant = target
                    if _is_sensitive(model, target):
                        impact = RiskExploitationImpact.MEDIUM
                if _is_own_rating_sensitive(target):
                    impact = RiskExploitationImpact.MEDIUM
                if asset.highest_sensitivity_score() > _sensitivity(most_relevant):
                    most_relevant = asset
        if not risk_identified or most_relevant is None:
            return []
        return [self.create_risk(
            f"Missing Identity Store in the threat model (referencing asset {most_relevant.title} as an example)",
            RiskExploitationLikelihood.UNLIKELY, impact, DataBreachProbability.IMPROBABLE,
            technical_asset_id=most_relevant.id,
        )]


class MissingNetworkSegmentationRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='missing-network-segmentation',
        title='Missing Network Segmentation',
        description='Highly sensitive assets and/or datastores residing in the same network segment than other '
                    'lower sensitive assets (like webservers or content management systems etc.) should be '
                    'better protected by a network segmentation trust-boundary.',
        impact='If this risk is unmitigated, attackers successfully attacking other components of the system '
               'might have an easy path towards more valuable targets, as they are not separated by network '
               'segmentation.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Attack_Surface_Analysis_Cheat_Sheet.html',
        action='Network Segmentation',
        mitigation='Apply a network segmentation trust-boundary around the highly sensitive assets and/or '
                   'datastores.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope technical assets with high sensitivity and RAA values as well as datastores '
                        'when surrounded by assets (without a network trust-boundary in-between) which are of '
                        'type client-system, web-server, web-application, cms, web-service-rest, '
                        'web-service-soap, build-pipeline, sourcecode-repository, monitoring, or similar and '
                        'there is no direct connection between these (hence no requirement to be so close to '
                        'each other).',
        risk_assessment='Default is low risk. The risk is increased to medium when the asset missing the '
                        'trust-boundary protection is rated as strictly-confidential or mission-critical.',
        false_positives='When all assets within the network segmentation trust-boundary are hardened and '
                        'protected to the same extend as if all were containing/processing highly sensitive '
                        'data.',
        function=RiskFunction.OPERATIONS,
        stride=STRIDE.ELEVATION_OF_PRIVILEGE,
        cwe=1008,
    )

    RAA_LIMIT = 50

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        assets = model.technical_assets_sorted()
        for asset in assets:
            if asset.out_of_scope or asset.has_technology(REVERSE_PROXY, WAF, IDS, IPS, SERVICE_REGISTRY):
                continue
            if asset.raa < self.RAA_LIMIT:
                continue
            if not (asset.type == TechnicalAssetType.DATASTORE or _is_own_rating_sensitive(asset)):
                continue
            for candidate in assets:
                if candidate.id == asset.id:
                    continue
                if (candidate.has_technology_attribute(LESS_PROTECTED_TYPE)
                        and is_same_trust_boundary_network_only(model, asset.id, candidate.id)
                        and not has_direct_connection(model, asset.id, candidate.id)
                        and not candidate.has_technology_attribute(CLOSE_TO_HIGH_VALUE_TARGETS_TOLERATED)):
                    impact = RiskExploitationImpact.MEDIUM if _is_top_rated(asset) else RiskExploitationImpact.LOW
                    risks.append(self.create_risk(
                        f"Missing Network Segmentation to further encapsulate and protect {asset.title} against "
                        f"unrelated lower protected assets in the same network segment, which might be easier "
                        f"to compromise by attackers",
                        RiskExploitationLikelihood.UNLIKELY, impact, DataBreachProbability.IMPROBABLE,
                        data_breach_technical_asset_ids=[asset.id],
                        technical_asset_id=asset.id,
                    ))
                    break
        return risks


class WrongTrustBoundaryContentRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='wrong-trust-boundary-content',
        title='Wrong Trust Boundary Content',
        description='When a trust boundary of type network-policy-namespace-isolation contains non-container '
                    'assets it is likely to be a model failure.',
        impact='If this potential model error is not fixed, some risks might not be visible.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Threat_Modeling_Cheat_Sheet.html',
        action='Model Consistency',
        mitigation='Try to model the correct types of trust boundaries and data assets.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='Trust boundaries which should only contain containers, but have different assets '
                        'inside.',
        risk_assessment='low',
        false_positives='Usually no false positives as this looks like an incomplete model.',
        function=RiskFunction.ARCHITECTURE,
        stride=STRIDE.ELEVATION_OF_PRIVILEGE,
        model_failure_possible_reason=True,
        cwe=1008,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for boundary_id in model.sorted_trust_boundary_ids():
            boundary = model.trust_boundaries[boundary_id]
            if boundary.type != TrustBoundaryType.NETWORK_POLICY_NAMESPACE_ISOLATION:
                continue
            for asset_id in boundary.technical_assets_inside:
                asset = model.technical_assets[asset_id]
                if asset.machine in (TechnicalAssetMachine.CONTAINER, TechnicalAssetMachine.SERVERLESS):
                    continue
                risks.append(self.create_risk(
                    f"Wrong Trust Boundary Content (non-container asset inside container trust boundary) "
                    f"at {asset.title}",
                    RiskExploitationLikelihood.UNLIKELY, RiskExploitationImpact.LOW,
                    DataBreachProbability.IMPROBABLE,
                    data_breach_technical_asset_ids=[asset.id],
                    technical_asset_id=asset.id,
                ))
        return risks


class MixedTargetsOnSharedRuntimeRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='mixed-targets-on-shared-runtime',
        title='Mixed Targets on Shared Runtime',
        description='Different attacker targets (like frontend and backend/datastore components) should not be '
                    'running on the same shared (underlying) runtime.',
        impact='If this risk is unmitigated, attackers successfully attacking other components of the system '
               'might have an easy path towards more valuable targets, as they are running on the same shared '
               'runtime.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Attack_Surface_Analysis_Cheat_Sheet.html',
        action='Runtime Separation',
        mitigation='Use separate runtime environments for running different target components or apply '
                   'similar separation styles to prevent load- or breach-related problems originating from one '
                   'more attacker-facing asset impacts also the other more critical rated backend/datastore '
                   'assets.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='Shared runtime running technical assets of different trust-boundaries is at risk. Also '
                        'mixing backend/datastore with frontend components on the same shared runtime is '
                        'considered a risk.',
        risk_assessment='The risk rating (low or medium) depends on the confidentiality, integrity, and '
                        'availability rating of the technical asset running on the shared runtime.',
        false_positives='When all assets running on the shared runtime are hardened and protected to the same '
                        'extend as if all were containing/processing highly sensitive data.',
        function=RiskFunction.OPERATIONS,
        stride=STRIDE.ELEVATION_OF_PRIVILEGE,
        cwe=1008,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for runtime_id in model.sorted_shared_runtime_ids():
            runtime = model.shared_runtimes[runtime_id]
            if self._is_mixed(model, runtime):
                impact = (RiskExploitationImpact.MEDIUM if self._is_more_risky(model, runtime)
                          else RiskExploitationImpact.LOW)
                risks.append(self.create_risk(
                    f"Mixed Targets on Shared Runtime named {runtime.title} might enable attackers moving from "
                    f"one less valuable target to a more valuable one",
                    RiskExploitationLikelihood.UNLIKELY, impact, DataBreachProbability.IMPROBABLE,
                    data_breach_technical_asset_ids=runtime.technical_assets_running,
                    shared_runtime_id=runtime.id,
                ))
        return risks

    @staticmethod
    def _is_mixed(model: ParsedModel, runtime: SharedRuntime) -> bool:
        current_boundary = ''
        has_frontend = has_backend = False
        for asset_id in runtime.technical_assets_running:
            asset = model.technical_assets[asset_id]
            boundary = direct_trust_boundary_id(model, asset_id) or ''
            if current_boundary and current_boundary != boundary:
                return True
            current_boundary = boundary
            if asset.has_technology_attribute(FRONTEND_RELATED):
                has_frontend = True
            if asset.has_technology_attribute(BACKEND_RELATED):
                has_backend = True
        return has_frontend and has_backend

    @staticmethod
    def _is_more_risky(model: ParsedModel, runtime: SharedRuntime) -> bool:
        return any(_is_top_rated(model.technical_assets[asset_id]) for asset_id in runtime.technical_assets_running)
