"""Rules about communication links and how assets are reached."""

from ..boundaries import (
    is_across_trust_boundary_network_only, is_sharing_same_parent_trust_boundary,
)
from ..enums import (
    Authentication, Confidentiality, Criticality, DataBreachProbability,
    Protocol, RiskExploitationImpact, RiskExploitationLikelihood, RiskFunction,
    STRIDE, TechnicalAssetType, Usage,
)
from ..model import CommunicationLink, DataAsset, ParsedModel, Risk, RiskCategory, TechnicalAsset, is_new_risk
from ..technologies import (
    FILE_SERVER, FTP_INTERNET_ACCESS_OK, HTTP_INTERNET_ACCESS_OK, IDENTITY_PROVIDER,
    IDENTITY_STORE_DATABASE, IDENTITY_STORE_LDAP, LOAD_BALANCER, MONITORING,
    NO_AUTHENTICATION_REQUIRED, TRAFFIC_FORWARDING, UNNECESSARY_DATA_TOLERATED,
    UNPROTECTED_COMMUNICATIONS_TOLERATED,
)
from .base import BuiltinRule


_FTP_PROTOCOLS = (Protocol.FTP, Protocol.FTPS, Protocol.SFTP)
_HTTP_PROTOCOLS = (Protocol.HTTP, Protocol.HTTPS)


def _is_high_sensitivity(data_asset: DataAsset) -> bool:
    return (data_asset.confidentiality == Confidentiality.STRICTLY_CONFIDENTIAL
            or data_asset.integrity == Criticality.MISSION_CRITICAL)


def _is_medium_sensitivity(data_asset: DataAsset) -> bool:
    return (data_asset.confidentiality == Confidentiality.CONFIDENTIAL
            or data_asset.integrity == Criticality.CRITICAL)


class UnencryptedCommunicationRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='unencrypted-communication',
        title='Unencrypted Communication',
        description='Due to the confidentiality and/or integrity rating of the data assets transferred over the '
                    'communication link this connection must be encrypted.',
        impact='If this risk is unmitigated, network attackers might be able to eavesdrop on unencrypted '
               'sensitive data sent between components.',
        asvs='V9 - Communication Verification Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Transport_Layer_Protection_Cheat_Sheet.html',
        action='Encryption of Communication Links',
        mitigation='Apply transport layer encryption to the communication link.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='Unencrypted technical communication links of in-scope technical assets (excluding '
                        'monitoring traffic as well as local-file-access and in-process-library-call) '
                        'transferring sensitive data.',
        risk_assessment='Depending on the confidentiality rating of the transferred data-assets either medium '
                        'or high risk.',
        false_positives='When all sensitive data sent over the communication link is already fully encrypted '
                        'on document or data level.',
        function=RiskFunction.OPERATIONS,
        stride=STRIDE.INFORMATION_DISCLOSURE,
        cwe=319,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            if asset.out_of_scope:
                continue
            for link in asset.communication_links:
                target = model.technical_assets[link.target_id]
                if link.protocol.is_encrypted or link.protocol.is_process_local:
                    continue
                if (asset.has_technology_attribute(UNPROTECTED_COMMUNICATIONS_TOLERATED)
                        or target.has_technology_attribute(UNPROTECTED_COMMUNICATIONS_TOLERATED)):
                    continue
                transferring_auth_data = link.authentication != Authentication.NONE
                for data_ids in (link.data_assets_sent, link.data_assets_received):
                    high_risk = self._classify(model, link, data_ids, transferring_auth_data)
                    if high_risk is not None:
                        risks.append(self._create(model, asset, link, high_risk, transferring_auth_data))
                        break
        return risks

    @staticmethod
    def _classify(model: ParsedModel, link: CommunicationLink, data_ids: list[str], transferring_auth_data: bool):
        for data_id in data_ids:
            data_asset = model.data_assets[data_id]
            if _is_high_sensitivity(data_asset) or transferring_auth_data:
                return True
            if not link.vpn and _is_medium_sensitivity(data_asset):
                return False
        return None

    def _create(self, model: ParsedModel, asset: TechnicalAsset, link: CommunicationLink,
                high_risk: bool, transferring_auth_data: bool) -> Risk:
        target = model.technical_assets[link.target_id]
        title = f"Unencrypted Communication named {link.title} between {asset.title} and {target.title}"
        if transferring_auth_data:
            title += " transferring authentication data (like credentials, token, session-id, etc.)"
        if link.vpn:
            title += (" (even VPN-protected connections need to encrypt their data in-transit when "
                      "confidentiality is rated strictly-confidential or integrity is rated mission-critical)")
        likelihood = (RiskExploitationLikelihood.LIKELY if is_across_trust_boundary_network_only(model, link)
                      else RiskExploitationLikelihood.UNLIKELY)
        impact = RiskExploitationImpact.HIGH if high_risk else RiskExploitationImpact.MEDIUM
        return self.create_risk(
            title, likelihood, impact, DataBreachProbability.POSSIBLE,
            data_breach_technical_asset_ids=[target.id],
            technical_asset_id=asset.id,
            communication_link_id=link.id,
        )


class MissingAuthenticationRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='missing-authentication',
        title='Missing Authentication',
        description='Technical assets (especially multi-tenant systems) should authenticate incoming requests '
                    'when the asset processes or stores sensitive data.',
        impact='If this risk is unmitigated, attackers might be able to access or modify sensitive data in an '
               'unauthenticated way.',
        asvs='V2 - Authentication Verification Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Authentication_Cheat_Sheet.html',
        action='Authentication of Incoming Requests',
        mitigation='Apply an authentication method to the technical asset. To protect highly sensitive data '
                   'consider the use of two-factor authentication for human users.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope technical assets (except load-balancer, reverse-proxy, service-registry, '
                        'waf, ids, and ips) should authenticate incoming requests when the asset processes or '
                        'stores sensitive data or is multi-tenant.',
        risk_assessment='The risk rating depends on the sensitivity of the data transferred over the incoming '
                        'communication link.',
        false_positives='Technical assets which do not process requests regarding functionality or data linked '
                        'to end-users (customers) can be considered as false positives after individual review.',
        function=RiskFunction.ARCHITECTURE,
        stride=STRIDE.ELEVATION_OF_PRIVILEGE,
        cwe=306,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            if asset.out_of_scope or asset.has_technology_attribute(NO_AUTHENTICATION_REQUIRED):
                continue
            if not (model.highest_confidentiality(asset) >= Confidentiality.CONFIDENTIAL
                    or model.highest_integrity(asset) >= Criticality.CRITICAL
                    or model.highest_availability(asset) >= Criticality.CRITICAL
                    or asset.multi_tenant):
                continue
            for link in model.incoming_links_sorted(asset.id):
                caller = model.technical_assets[link.source_id]
                if (caller.has_technology_attribute(UNPROTECTED_COMMUNICATIONS_TOLERATED)
                        or caller.type == TechnicalAssetType.DATASTORE):
                    continue
                if link.authentication != Authentication.NONE or link.protocol.is_process_local:
                    continue
                confidentiality = model.highest_link_confidentiality(link)
                integrity = model.highest_link_integrity(link)
                if (confidentiality == Confidentiality.STRICTLY_CONFIDENTIAL
                        or integrity == Criticality.MISSION_CRITICAL):
                    impact = RiskExploitationImpact.HIGH
                elif confidentiality <= Confidentiality.INTERNAL and integrity == Criticality.OPERATIONAL:
                    impact = RiskExploitationImpact.LOW
                else:
                    impact = RiskExploitationImpact.MEDIUM
                risks.append(self.create_risk(
                    f"Missing Authentication covering communication link {link.title} "
                    f"from {caller.title} to {asset.title}",
                    RiskExploitationLikelihood.LIKELY, impact, DataBreachProbability.POSSIBLE,
                    data_breach_technical_asset_ids=[asset.id],
                    technical_asset_id=asset.id,
                    communication_link_id=link.id,
                ))
        return risks


class DosRiskyAccessAcrossTrustBoundaryRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='dos-risky-access-across-trust-boundary',
        title='DoS-risky Access Across Trust-Boundary',
        description='Assets accessed across trust boundaries with critical or mission-critical availability '
                    'rating are more prone to Denial-of-Service (DoS) risks.',
        impact='If this risk remains unmitigated, attackers might be able to disturb the availability of '
               'important parts of the system.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Denial_of_Service_Cheat_Sheet.html',
        action='Anti-DoS Measures',
        mitigation='Apply anti-DoS techniques like throttling and/or per-client load blocking with quotas. '
                   'Also for maintenance access routes consider applying a VPN instead of public reachable '
                   'interfaces. Generally applying redundancy on the targeted technical asset reduces the risk '
                   'of DoS.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope technical assets (excluding load-balancer) with availability rating of '
                        'critical or higher which have incoming data-flows across a network trust-boundary '
                        '(excluding devops usage).',
        risk_assessment='Matching technical assets with availability rating of critical or higher are at low '
                        'risk. When the availability rating is mission-critical and neither a VPN nor IP filter '
                        'for the incoming data-flow nor redundancy for the asset is applied, the risk rating is '
                        'considered medium.',
        false_positives='When the accessed target operations are not time- or resource-consuming.',
        function=RiskFunction.OPERATIONS,
        stride=STRIDE.DENIAL_OF_SERVICE,
        cwe=400,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks: list[Risk] = []
        for asset in model.technical_assets_sorted():
            if (asset.out_of_scope or asset.has_technology(LOAD_BALANCER)
                    or asset.availability < Criticality.CRITICAL):
                continue
            for incoming in model.incoming_links_sorted(asset.id):
                source = model.technical_assets[incoming.source_id]
                if source.has_technology_attribute(TRAFFIC_FORWARDING):
                    # one hop up the call chain to the forwarder's callers
                    for callers_link in model.incoming_links_sorted(source.id):
                        self._check(model, asset, callers_link, source.title, risks)
                else:
                    self._check(model, asset, incoming, '', risks)
        return risks

    def _check(self, model: ParsedModel, asset: TechnicalAsset, link: CommunicationLink,
               hop_between: str, risks: list[Risk]) -> None:
        if (not is_across_trust_boundary_network_only(model, link)
                or link.protocol.is_process_local or link.usage == Usage.DEVOPS):
            return
        high_risk = (asset.availability == Criticality.MISSION_CRITICAL
                     and not link.vpn and not link.ip_filtered and not asset.redundant)
        client = model.technical_assets[link.source_id]
        title = f"Denial-of-Service risky access of {asset.title} by {client.title} via {link.title}"
        if hop_between:
            title += f" forwarded via {hop_between}"
        risk = self.create_risk(
            title, RiskExploitationLikelihood.UNLIKELY,
            RiskExploitationImpact.MEDIUM if high_risk else RiskExploitationImpact.LOW,
            DataBreachProbability.IMPROBABLE,
            technical_asset_id=asset.id,
            communication_link_id=link.id,
        )
        if is_new_risk(risks, risk):
            risks.append(risk)


class UnguardedDirectDatastoreAccessRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='unguarded-direct-datastore-access',
        title='Unguarded Direct Datastore Access',
        description='Datastores accessed across trust boundaries must be guarded by some protecting service '
                    'or application.',
        impact='If this risk is unmitigated, attackers might be able to directly attack sensitive datastores '
               'without any protecting components in-between.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Attack_Surface_Analysis_Cheat_Sheet.html',
        action='Encapsulation of Datastore',
        mitigation='Encapsulate the datastore access behind a guarding service or application.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope technical assets of type datastore (except identity-store-ldap when accessed '
                        'from identity-provider and file-server when accessed via file transfer protocols) '
                        'with confidentiality rating of confidential (or higher) or with integrity rating of '
                        'critical (or higher) which have incoming data-flows from assets outside across a '
                        'network trust-boundary. DevOps config and deployment access is excluded from this risk.',
        risk_assessment='The matching technical assets are at low risk. When either the confidentiality rating '
                        'is strictly-confidential or the integrity rating is mission-critical, the risk-rating '
                        'is considered medium.',
        false_positives='When the caller is considered fully trusted as if it was part of the datastore itself.',
        function=RiskFunction.ARCHITECTURE,
        stride=STRIDE.ELEVATION_OF_PRIVILEGE,
        cwe=501,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            if asset.out_of_scope or asset.type != TechnicalAssetType.DATASTORE:
                continue
            for incoming in model.incoming_links_sorted(asset.id):
                source = model.technical_assets[incoming.source_id]
                if (asset.has_technology(IDENTITY_STORE_LDAP, IDENTITY_STORE_DATABASE)
                        and source.has_technology(IDENTITY_PROVIDER)):
                    continue
                if not (asset.confidentiality >= Confidentiality.CONFIDENTIAL
                        or asset.integrity >= Criticality.CRITICAL):
                    continue
                if (not is_across_trust_boundary_network_only(model, incoming)
                        or self._file_server_access_via_ftp(asset, incoming)
                        or incoming.usage == Usage.DEVOPS
                        or is_sharing_same_parent_trust_boundary(model, asset.id, source.id)):
                    continue
                high_risk = (asset.confidentiality == Confidentiality.STRICTLY_CONFIDENTIAL
                             or asset.integrity == Criticality.MISSION_CRITICAL)
                impact = (RiskExploitationImpact.MEDIUM if high_risk or asset.raa > 40
                          else RiskExploitationImpact.LOW)
                risks.append(self.create_risk(
                    f"Unguarded Direct Datastore Access of {asset.title} by {source.title} via {incoming.title}",
                    RiskExploitationLikelihood.LIKELY, impact, DataBreachProbability.IMPROBABLE,
                    data_breach_technical_asset_ids=[asset.id],
                    technical_asset_id=asset.id,
                    communication_link_id=incoming.id,
                ))
        return risks

    @staticmethod
    def _file_server_access_via_ftp(asset: TechnicalAsset, link: CommunicationLink) -> bool:
        return asset.has_technology(FILE_SERVER) and link.protocol in _FTP_PROTOCOLS


class UnguardedAccessFromInternetRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='unguarded-access-from-internet',
        title='Unguarded Access From Internet',
        description='Internet-exposed assets must be guarded by a protecting service, application, or '
                    'reverse-proxy.',
        impact='If this risk is unmitigated, attackers might be able to directly attack sensitive systems '
               'without any hardening components in-between due to them being directly exposed on the internet.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Attack_Surface_Analysis_Cheat_Sheet.html',
        action='Encapsulation of Technical Asset',
        mitigation='Encapsulate the asset behind a guarding service, application, or reverse-proxy. For admin '
                   'maintenance a bastion-host should be used as a jump-server. For file transfer a '
                   'store-and-forward-host should be used as an indirect file exchange platform.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope technical assets (excluding load-balancer) with confidentiality rating of '
                        'confidential (or higher) or with integrity rating of critical (or higher) when accessed '
                        'directly from the internet. Web servers, web applications, reverse proxies, WAFs and '
                        'gateways reached over HTTP(S), and file servers reached over file transfer protocols, '
                        'are accepted when they have no custom developed parts.',
        risk_assessment='The matching technical assets are at low risk. When either the confidentiality rating '
                        'is strictly-confidential or the integrity rating is mission-critical, the risk-rating '
                        'is considered medium.',
        false_positives='When other means of filtering client requests are applied equivalent of reverse-proxy, '
                        'waf, or gateway components.',
        function=RiskFunction.ARCHITECTURE,
        stride=STRIDE.ELEVATION_OF_PRIVILEGE,
        cwe=501,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            if asset.out_of_scope or asset.has_technology(LOAD_BALANCER):
                continue
            for incoming in model.incoming_links_sorted(asset.id):
                if not asset.custom_developed_parts:
                    if (asset.has_technology_attribute(HTTP_INTERNET_ACCESS_OK)
                            and incoming.protocol in _HTTP_PROTOCOLS):
                        continue
                    if (asset.has_technology_attribute(FTP_INTERNET_ACCESS_OK)
                            and incoming.protocol in _FTP_PROTOCOLS):
                        continue
                source = model.technical_assets[incoming.source_id]
                if source.has_technology(MONITORING) or incoming.vpn:
                    continue
                if not (asset.confidentiality >= Confidentiality.CONFIDENTIAL
                        or asset.integrity >= Criticality.CRITICAL):
                    continue
                if not source.internet:
                    continue
                high_risk = (asset.confidentiality == Confidentiality.STRICTLY_CONFIDENTIAL
                             or asset.integrity == Criticality.MISSION_CRITICAL)
                impact = (RiskExploitationImpact.MEDIUM if high_risk or asset.raa > 40
                          else RiskExploitationImpact.LOW)
                risks.append(self.create_risk(
                    f"Unguarded Access from Internet of {asset.title} by {source.title} via {incoming.title}",
                    RiskExploitationLikelihood.VERY_LIKELY, impact, DataBreachProbability.POSSIBLE,
                    data_breach_technical_asset_ids=[asset.id],
                    technical_asset_id=asset.id,
                    communication_link_id=incoming.id,
                ))
        return risks


class UnnecessaryCommunicationLinkRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='unnecessary-communication-link',
        title='Unnecessary Communication Link',
        description='When a technical communication link does not send or receive any data assets, this is an '
                    'indicator for an unnecessary communication link (or for an incomplete model).',
        impact='If this risk is unmitigated, attackers might be able to target unnecessary communication links.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Attack_Surface_Analysis_Cheat_Sheet.html',
        action='Attack Surface Reduction',
        mitigation='Try to avoid using technical communication links that do not send or receive anything.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope technical assets\' technical communication links not sending or receiving any '
                        'data assets.',
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
            for link in asset.communication_links:
                if link.data_assets_sent or link.data_assets_received:
                    continue
                if asset.out_of_scope and model.technical_assets[link.target_id].out_of_scope:
                    continue
                risks.append(self.create_risk(
                    f"Unnecessary Communication Link titled {link.title} at technical asset {asset.title}",
                    RiskExploitationLikelihood.UNLIKELY, RiskExploitationImpact.LOW,
                    DataBreachProbability.IMPROBABLE,
                    data_breach_technical_asset_ids=[asset.id],
                    technical_asset_id=asset.id,
                    communication_link_id=link.id,
                ))
        return risks


class UnnecessaryDataTransferRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='unnecessary-data-transfer',
        title='Unnecessary Data Transfer',
        description='When a technical asset sends or receives data assets, which it neither processes nor '
                    'stores, this is an indicator for unnecessarily transferred data (or for an incomplete '
                    'model).',
        impact='If this risk is unmitigated, attackers might be able to target unnecessarily transferred data.',
        asvs='V1 - Architecture, Design and Threat Modeling Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Attack_Surface_Analysis_Cheat_Sheet.html',
        action='Attack Surface Reduction',
        mitigation='Try to avoid sending or receiving sensitive data assets which are not required (i.e. '
                   'neither processed nor stored) by the involved technical asset.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope technical assets sending or receiving sensitive data assets which are neither '
                        'processed nor stored by the technical asset are flagged with this risk. Monitoring '
                        'and other tolerant partners are excluded.',
        risk_assessment='The risk assessment is depending on the confidentiality and integrity rating of the '
                        'transferred data asset either low or medium.',
        false_positives='Technical assets missing the model entries of either processing or storing the '
                        'mentioned data assets can be considered as false positives after individual review.',
        function=RiskFunction.ARCHITECTURE,
        stride=STRIDE.ELEVATION_OF_PRIVILEGE,
        model_failure_possible_reason=True,
        cwe=1008,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks: list[Risk] = []
        for asset in model.technical_assets_sorted():
            if asset.out_of_scope:
                continue
            for outgoing in asset.communication_links:
                partner = model.technical_assets[outgoing.target_id]
                if not partner.has_technology_attribute(UNNECESSARY_DATA_TOLERATED):
                    self._check(model, asset, outgoing, partner, risks)
            for incoming in model.incoming_links_sorted(asset.id):
                partner = model.technical_assets[incoming.source_id]
                if not partner.has_technology_attribute(UNNECESSARY_DATA_TOLERATED):
                    self._check(model, asset, incoming, partner, risks)
        return risks

    def _check(self, model: ParsedModel, asset: TechnicalAsset, link: CommunicationLink,
               partner: TechnicalAsset, risks: list[Risk]) -> None:
        for data_id in link.data_assets_sent + link.data_assets_received:
            if asset.processes_or_stores_data_asset(data_id):
                continue
            data_asset = model.data_assets[data_id]
            if not (data_asset.confidentiality >= Confidentiality.CONFIDENTIAL
                    or data_asset.integrity >= Criticality.CRITICAL):
                continue
            impact = (RiskExploitationImpact.MEDIUM if _is_high_sensitivity(data_asset)
                      else RiskExploitationImpact.LOW)
            risk = self.create_risk(
                f"Unnecessary Data Transfer of {data_asset.title} data at {asset.title} from/to {partner.title}",
                RiskExploitationLikelihood.UNLIKELY, impact, DataBreachProbability.IMPROBABLE,
                data_breach_technical_asset_ids=[asset.id],
                technical_asset_id=asset.id,
                data_asset_id=data_asset.id,
            )
            if is_new_risk(risks, risk):
                risks.append(risk)