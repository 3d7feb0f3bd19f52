"""Rules evaluated per technical or data asset."""

from ..enums import (
    Confidentiality, Criticality, DataBreachProbability, EncryptionStyle,
    Protocol, RiskExploitationImpact, RiskExploitationLikelihood, RiskFunction,
    STRIDE, TechnicalAssetType,
)
from ..model import ParsedModel, Risk, RiskCategory
from ..technologies import (
    APPLICATION_SERVER, EMBEDDED_COMPONENT, ERP, IDENTITY_PROVIDER,
    NO_STORAGE_AT_REST, STORING_END_USER_DATA, UNKNOWN_TECHNOLOGY,
)
from .base import BuiltinRule


class UnencryptedAssetRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='unencrypted-asset',
        title='Unencrypted Technical Assets',
        description='Due to the confidentiality rating of the technical asset itself and/or the stored data '
                    'assets this technical asset must be encrypted.',
        impact='If this risk is unmitigated, attackers might be able to access unencrypted data when '
               'successfully compromising sensitive components.',
        asvs='V6 - Stored Cryptography Verification Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Cryptographic_Storage_Cheat_Sheet.html',
        action='Encryption of Technical Asset',
        mitigation='Apply encryption to the technical asset.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope unencrypted technical assets (excluding reverse-proxy, load-balancer, waf, '
                        'ids, ips and embedded components like library) storing data assets rated at least as '
                        'confidential or critical. For technical assets storing data assets rated as '
                        'strictly-confidential or mission-critical the encryption must be of type '
                        'data-with-enduser-individual-key.',
        risk_assessment='Depending on the confidentiality rating of the stored data-assets either medium or '
                        'high risk.',
        false_positives='When all sensitive data stored within the asset is already fully encrypted on document '
                        'or data level.',
        function=RiskFunction.OPERATIONS,
        stride=STRIDE.INFORMATION_DISCLOSURE,
        cwe=311,
    )

    _SHARED_KEY_STYLES = (
        EncryptionStyle.TRANSPARENT,
        EncryptionStyle.DATA_WITH_SYMMETRIC_SHARED_KEY,
        EncryptionStyle.DATA_WITH_ASYMMETRIC_SHARED_KEY,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            if (asset.out_of_scope or not asset.data_assets_stored
                    or asset.has_technology_attribute(NO_STORAGE_AT_REST, EMBEDDED_COMPONENT)):
                continue
            stored_confidentiality = model.highest_stored_confidentiality(asset)
            stored_integrity = model.highest_stored_integrity(asset)
            if not (stored_confidentiality >= Confidentiality.CONFIDENTIAL
                    or stored_integrity >= Criticality.CRITICAL):
                continue
            very_sensitive = (stored_confidentiality == Confidentiality.STRICTLY_CONFIDENTIAL
                              or stored_integrity == Criticality.MISSION_CRITICAL)
            requires_end_user_key = very_sensitive and asset.has_technology_attribute(STORING_END_USER_DATA)
            if asset.encryption == EncryptionStyle.NONE:
                impact = RiskExploitationImpact.HIGH if very_sensitive else RiskExploitationImpact.MEDIUM
            elif requires_end_user_key and asset.encryption in self._SHARED_KEY_STYLES:
                impact = RiskExploitationImpact.MEDIUM
            else:
                continue
            title = f"Unencrypted Technical Asset named {asset.title}"
            if requires_end_user_key:
                title += f" missing end user individual encryption with {EncryptionStyle.DATA_WITH_ENDUSER_INDIVIDUAL_KEY}"
            risks.append(self.create_risk(
                title, RiskExploitationLikelihood.UNLIKELY, impact, DataBreachProbability.IMPROBABLE,
                data_breach_technical_asset_ids=[asset.id],
                technical_asset_id=asset.id,
            ))
        return risks


class MissingHardeningRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='missing-hardening',
        title='Missing Hardening',
        description='Technical assets with a Relative Attacker Attractiveness (RAA) value of 55 % or higher '
                    'should be explicitly hardened taking best practices and vendor hardening guides into '
                    'account.',
        impact='If this risk remains unmitigated, attackers might be able to easier attack high-value targets.',
        asvs='V14 - Configuration Verification Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Attack_Surface_Analysis_Cheat_Sheet.html',
        action='System Hardening',
        mitigation='Try to apply all hardening best practices (like CIS benchmarks, OWASP recommendations, '
                   'vendor recommendations, DevSec Hardening Framework, DBSAT for Oracle databases, and '
                   'others).',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope technical assets with RAA values of 55 % or higher. Generally for high-value '
                        'targets like datastores, application servers, identity providers and ERP systems this '
                        'limit is reduced to 40 %',
        risk_assessment='The risk rating depends on the sensitivity of the data processed or stored in the '
                        'technical asset.',
        false_positives='Usually no false positives.',
        function=RiskFunction.OPERATIONS,
        stride=STRIDE.TAMPERING,
        cwe=16,
    )
    SUPPORTED_TAGS = ('tomcat',)

    RAA_LIMIT = 55
    RAA_LIMIT_REDUCED = 40

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            if asset.out_of_scope:
                continue
            high_value = (asset.type == TechnicalAssetType.DATASTORE
                          or asset.has_technology(APPLICATION_SERVER, IDENTITY_PROVIDER, ERP))
            if not (asset.raa >= self.RAA_LIMIT or (asset.raa >= self.RAA_LIMIT_REDUCED and high_value)):
                continue
            impact = RiskExploitationImpact.LOW
            if (model.highest_confidentiality(asset) == Confidentiality.STRICTLY_CONFIDENTIAL
                    or model.highest_integrity(asset) == Criticality.MISSION_CRITICAL):
                impact = RiskExploitationImpact.MEDIUM
            risks.append(self.create_risk(
                f"Missing Hardening risk at {asset.title}",
                RiskExploitationLikelihood.LIKELY, impact, DataBreachProbability.IMPROBABLE,
                data_breach_technical_asset_ids=[asset.id],
                technical_asset_id=asset.id,
            ))
        return risks


class IncompleteModelRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='incomplete-model',
        title='Incomplete Model',
        description='When the threat model contains unknown technologies or transfers data over unknown '
                    'protocols, this is an indicator for an incomplete model.',
        impact='If this risk is unmitigated, other risks might not be noticed as the model is incomplete.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Threat_Modeling_Cheat_Sheet.html',
        action='Threat Modeling Completeness',
        mitigation='Try to find out what technology or protocol is used instead of specifying that it is '
                   'unknown.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='All technical assets and communication links with technology type or protocol type '
                        'specified as unknown.',
        risk_assessment='low',
        false_positives='Usually no false positives as this looks like an incomplete model.',
        function=RiskFunction.ARCHITECTURE,
        stride=STRIDE.INFORMATION_DISCLOSURE,
        model_failure_possible_reason=True,
        cwe=1008,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            if asset.out_of_scope:
                continue
            if asset.has_technology(UNKNOWN_TECHNOLOGY):
                risks.append(self.create_risk(
                    f"Unknown Technology specified at technical asset {asset.title}",
                    RiskExploitationLikelihood.UNLIKELY, RiskExploitationImpact.LOW,
                    DataBreachProbability.IMPROBABLE,
                    data_breach_technical_asset_ids=[asset.id],
                    technical_asset_id=asset.id,
                ))
            for link in asset.communication_links:
                if link.protocol == Protocol.UNKNOWN:
                    risks.append(self.create_risk(
                        f"Unknown Protocol specified for communication link {link.title} "
                        f"at technical asset {asset.title}",
                        RiskExploitationLikelihood.UNLIKELY, RiskExploitationImpact.LOW,
                        DataBreachProbability.IMPROBABLE,
                        data_breach_technical_asset_ids=[asset.id],
                        technical_asset_id=asset.id,
                        communication_link_id=link.id,
                    ))
        return risks


class UnnecessaryTechnicalAssetRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='unnecessary-technical-asset',
        title='Unnecessary Technical Asset',
        description='When a technical asset does not process or store any data assets, this is an indicator '
                    'for an unnecessary technical asset (or for an incomplete model). This is also the case if '
                    'the asset has no communication links (either outgoing or incoming).',
        impact='If this risk is unmitigated, attackers might be able to target unnecessary technical assets.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Attack_Surface_Analysis_Cheat_Sheet.html',
        action='Attack Surface Reduction',
        mitigation='Try to avoid using technical assets that do not process or store anything.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='Technical assets not processing or storing any data assets.',
        risk_assessment='low',
        false_positives='Usually no false positives as this looks like an incomplete model.',
        function=RiskFunction.ARCHITECTURE,
        stride=STRIDE.ELEVATION_OF_PRIVILEGE,
        model_failure_possible_reason=True,
        cwe=1008,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            holds_no_data = not asset.data_assets_processed and not asset.data_assets_stored
            unconnected = not asset.communication_links and not model.incoming_links_by_target_id.get(asset.id)
            if holds_no_data or unconnected:
                risks.append(self.create_risk(
                    f"Unnecessary Technical Asset named {asset.title}",
                    RiskExploitationLikelihood.UNLIKELY, RiskExploitationImpact.LOW,
                    DataBreachProbability.IMPROBABLE,
                    data_breach_technical_asset_ids=[asset.id],
                    technical_asset_id=asset.id,
                ))
        return risks


class UnnecessaryDataAssetRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='unnecessary-data-asset',
        title='Unnecessary Data Asset',
        description='When a data asset is not processed or stored by any data assets and also not transferred '
                    'by any communication links, this is an indicator for an unnecessary data asset (or for an '
                    'incomplete model).',
        impact='If this risk is unmitigated, attackers might be able to access unnecessary data assets using '
               'other vulnerabilities.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Attack_Surface_Analysis_Cheat_Sheet.html',
        action='Attack Surface Reduction',
        mitigation='Try to avoid having data assets that are not required/used.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='Modelled data assets not processed or stored by any data assets and also not '
                        'transferred by any communication links.',
        risk_assessment='low',
        false_positives='Usually no false positives as this looks like an incomplete model.',
        function=RiskFunction.ARCHITECTURE,
        stride=STRIDE.ELEVATION_OF_PRIVILEGE,
        model_failure_possible_reason=True,
        cwe=1008,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        unused = set(model.data_assets)
        for asset in model.technical_assets.values():
            unused.difference_update(asset.data_assets_processed)
            unused.difference_update(asset.data_assets_stored)
            for link in asset.communication_links:
                unused.difference_update(link.data_assets_sent)
                unused.difference_update(link.data_assets_received)
        risks = []
        for data_id in sorted(unused):
            data_asset = model.data_assets[data_id]
            risks.append(self.create_risk(
                f"Unnecessary Data Asset named {data_asset.title}",
                RiskExploitationLikelihood.UNLIKELY, RiskExploitationImpact.LOW,
                DataBreachProbability.IMPROBABLE,
                data_breach_technical_asset_ids=[data_id],
                data_asset_id=data_id,
            ))
        return risks
