"""Development-side rules: injection and parsing weaknesses."""

from ..boundaries import is_across_trust_boundary_network_only
from ..enums import (
    Confidentiality, Criticality, DataBreachProbability, DataFormat, Protocol,
    RiskExploitationImpact, RiskExploitationLikelihood, RiskFunction, STRIDE,
    Usage,
)
from ..model import ParsedModel, Risk, RiskCategory, TechnicalAsset
from ..technologies import EJB, VULNERABLE_TO_QUERY_INJECTION, WEB_APPLICATION
from .base import BuiltinRule


_JAVA_REMOTING_PROTOCOLS = (Protocol.IIOP, Protocol.IIOP_ENCRYPTED, Protocol.JRMP, Protocol.JRMP_ENCRYPTED)


def _is_highly_sensitive(model: ParsedModel, asset: TechnicalAsset, include_availability: bool = False) -> bool:
    if (model.highest_confidentiality(asset) == Confidentiality.STRICTLY_CONFIDENTIAL
            or model.highest_integrity(asset) == Criticality.MISSION_CRITICAL):
        return True
    return include_availability and model.highest_availability(asset) == Criticality.MISSION_CRITICAL


class CrossSiteScriptingRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='cross-site-scripting',
        title='Cross-Site Scripting (XSS)',
        description='For each web application Cross-Site Scripting (XSS) risks might arise. In terms of the '
                    'overall risk level take other applications running on the same domain into account as '
                    'well.',
        impact='If this risk remains unmitigated, attackers might be able to access individual victim sessions '
               'and steal or modify user data.',
        asvs='V5 - Validation, Sanitization and Encoding Verification Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Cross_Site_Scripting_Prevention_Cheat_Sheet.html',
        action='XSS Prevention',
        mitigation='Try to encode all values sent back to the browser and also handle DOM-manipulations in a '
                   'safe way to avoid DOM-based XSS. When a third-party product is used instead of custom '
                   'developed software, check if the product applies the proper mitigation and ensure a '
                   'reasonable patch-level.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope web applications.',
        risk_assessment='The risk rating depends on the sensitivity of the data processed or stored in the web '
                        'application.',
        false_positives='When the technical asset is not accessed via a browser-like component (i.e not by a '
                        'human user initiating the request that gets passed through all components until it '
                        'reaches the web application) this can be considered a false positive.',
        function=RiskFunction.DEVELOPMENT,
        stride=STRIDE.TAMPERING,
        cwe=79,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            if asset.out_of_scope or not asset.has_technology_attribute(WEB_APPLICATION):
                continue
            impact = (RiskExploitationImpact.HIGH if _is_highly_sensitive(model, asset)
                      else RiskExploitationImpact.MEDIUM)
            risks.append(self.create_risk(
                f"Cross-Site Scripting (XSS) risk at {asset.title}",
                RiskExploitationLikelihood.LIKELY, impact, DataBreachProbability.POSSIBLE,
                data_breach_technical_asset_ids=[asset.id],
                technical_asset_id=asset.id,
            ))
        return risks


class SqlNoSqlInjectionRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='sql-nosql-injection',
        title='SQL/NoSQL-Injection',
        description='When a database is accessed via database access protocols SQL/NoSQL-Injection risks might '
                    'arise. The risk rating depends on the sensitivity technical asset itself and of the data '
                    'assets processed or stored.',
        impact='If this risk is unmitigated, attackers might be able to modify SQL/NoSQL queries to steal and '
               'modify data and eventually further escalate towards a deeper system penetration via code '
               'executions.',
        asvs='V5 - Validation, Sanitization and Encoding Verification Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/SQL_Injection_Prevention_Cheat_Sheet.html',
        action='SQL/NoSQL-Injection Prevention',
        mitigation='Try to use parameter binding to be safe from injection vulnerabilities. When a third-party '
                   'product is used instead of custom developed software, check if the product applies the '
                   'proper mitigation and ensure a reasonable patch-level.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='Database accessed via typical database access protocols by in-scope clients.',
        risk_assessment='The risk rating depends on the sensitivity of the data stored inside the database.',
        false_positives='Database accesses by queries not consisting of parts controllable by the caller can be '
                        'considered as false positives after individual review.',
        function=RiskFunction.DEVELOPMENT,
        stride=STRIDE.TAMPERING,
        cwe=89,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            for incoming in model.incoming_links_sorted(asset.id):
                caller = model.technical_assets[incoming.source_id]
                if caller.out_of_scope:
                    continue
                lax_match = (incoming.protocol.is_potential_database_access(True)
                             and asset.has_technology_attribute(VULNERABLE_TO_QUERY_INJECTION))
                if not (lax_match or incoming.protocol.is_potential_database_access(False)):
                    continue
                impact = (RiskExploitationImpact.HIGH if _is_highly_sensitive(model, asset)
                          else RiskExploitationImpact.MEDIUM)
                likelihood = (RiskExploitationLikelihood.LIKELY if incoming.usage == Usage.DEVOPS
                              else RiskExploitationLikelihood.VERY_LIKELY)
                risks.append(self.create_risk(
                    f"SQL/NoSQL-Injection risk at {caller.title} against database {asset.title} "
                    f"via {incoming.title}",
                    likelihood, impact, DataBreachProbability.PROBABLE,
                    data_breach_technical_asset_ids=[asset.id],
                    technical_asset_id=caller.id,
                    communication_link_id=incoming.id,
                ))
        return risks


class XmlExternalEntityRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='xml-external-entity',
        title='XML External Entity (XXE)',
        description='When a technical asset accepts data in XML format, XML External Entity (XXE) risks might '
                    'arise.',
        impact='If this risk is unmitigated, attackers might be able to read sensitive files (configuration '
               'data, key/credential files, deployment files, business data files, etc.) form the filesystem '
               'of affected components and/or access sensitive services or files of other components.',
        asvs='V14 - Configuration Verification Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/XML_External_Entity_Prevention_Cheat_Sheet.html',
        action='XML Parser Hardening',
        mitigation='Apply hardening of all XML parser instances in order to stay safe from XML External Entity '
                   '(XXE) vulnerabilities. When a third-party product is used instead of custom developed '
                   'software, check if the product applies the proper mitigation and ensure a reasonable '
                   'patch-level.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope technical assets accepting XML data formats.',
        risk_assessment='The risk rating depends on the sensitivity of the technical asset itself and of the '
                        'data assets processed and stored. Also for cloud-based environments the exploitation '
                        'impact is at least medium, as cloud backend services can be attacked via SSRF (and XXE '
                        'vulnerabilities are often also SSRF vulnerabilities).',
        false_positives='Fully trusted (i.e. cryptographically signed or similar) XML data can be considered as '
                        'false positives after individual review.',
        function=RiskFunction.DEVELOPMENT,
        stride=STRIDE.INFORMATION_DISCLOSURE,
        cwe=611,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            if asset.out_of_scope or not asset.accepts_data_format(DataFormat.XML):
                continue
            impact = (RiskExploitationImpact.HIGH if _is_highly_sensitive(model, asset, include_availability=True)
                      else RiskExploitationImpact.MEDIUM)
            risks.append(self.create_risk(
                f"XML External Entity (XXE) risk at {asset.title}",
                RiskExploitationLikelihood.VERY_LIKELY, impact, DataBreachProbability.PROBABLE,
                data_breach_technical_asset_ids=[asset.id],
                technical_asset_id=asset.id,
            ))
        return risks


class UntrustedDeserializationRule(BuiltinRule):
    CATEGORY = RiskCategory(
        id='untrusted-deserialization',
        title='Untrusted Deserialization',
        description='When a technical asset accepts data in a specific serialized form (like Java or .NET '
                    'serialization), Untrusted Deserialization risks might arise.',
        impact='If this risk is unmitigated, attackers might be able to execute code on target systems by '
               'exploiting untrusted deserialization endpoints.',
        asvs='V5 - Validation, Sanitization and Encoding Verification Requirements',
        cheat_sheet='https://cheatsheetseries.owasp.org/cheatsheets/Deserialization_Cheat_Sheet.html',
        action='Prevention of Deserialization of Untrusted Data',
        mitigation='Try to avoid the deserialization of untrusted data (even of data within the same trust '
                   'boundary as long as it is sent across a remote connection) in order to stay safe from '
                   'Untrusted Deserialization vulnerabilities. Alternatively a strict whitelisting approach of '
                   'the classes/types/values to deserialize might help as well.',
        check='Are recommendations from the linked cheat sheet and referenced ASVS chapter applied?',
        detection_logic='In-scope technical assets accepting serialization data formats (including EJB and RMI '
                        'protocols).',
        risk_assessment='The risk rating depends on the sensitivity of the technical asset itself and of the '
                        'data assets processed and stored.',
        false_positives='Fully trusted (i.e. cryptographically signed or similar) data deserialized can be '
                        'considered as false positives after individual review.',
        function=RiskFunction.ARCHITECTURE,
        stride=STRIDE.TAMPERING,
        cwe=502,
    )

    def generate_risks(self, model: ParsedModel) -> list[Risk]:
        risks = []
        for asset in model.technical_assets_sorted():
            if asset.out_of_scope:
                continue
            has_one = asset.accepts_data_format(DataFormat.SERIALIZATION) or asset.has_technology(EJB)
            across_link_title = ''
            for incoming in model.incoming_links_by_target_id.get(asset.id, []):
                if incoming.protocol not in _JAVA_REMOTING_PROTOCOLS:
                    continue
                has_one = True
                if is_across_trust_boundary_network_only(model, incoming):
                    across_link_title = incoming.title
            if not has_one:
                continue
            title = f"Untrusted Deserialization risk at {asset.title}"
            likelihood = RiskExploitationLikelihood.LIKELY
            if across_link_title:
                likelihood = RiskExploitationLikelihood.VERY_LIKELY
                title += f" across a trust boundary (at least via communication link {across_link_title})"
            impact = (RiskExploitationImpact.VERY_HIGH
                      if _is_highly_sensitive(model, asset, include_availability=True)
                      else RiskExploitationImpact.HIGH)
            risks.append(self.create_risk(
                title, likelihood, impact, DataBreachProbability.PROBABLE,
                data_breach_technical_asset_ids=[asset.id],
                technical_asset_id=asset.id,
            ))
        return risks
