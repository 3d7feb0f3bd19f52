"""Turns the raw model input into a linked, validated ``ParsedModel``."""

import logging
import re
from datetime import date, datetime
from typing import Iterable, Optional

from .enums import (
    Authentication, Authorization, Confidentiality, Criticality,
    DataBreachProbability, DataFormat, EncryptionStyle, Protocol, Quantity,
    RiskExploitationImpact, RiskExploitationLikelihood, RiskFunction,
    RiskSeverity, RiskStatus, STRIDE, TechnicalAssetMachine, TechnicalAssetSize,
    TechnicalAssetType, TrustBoundaryType, Usage,
)
from .model import (
    CommunicationLink, DataAsset, ParsedModel, Risk, RiskCategory, RiskTracking,
    SharedRuntime, TechnicalAsset, TrustBoundary, create_synthetic_id,
)
from .schemas import ModelInput, RiskCategoryInput, TechnicalAssetInput
from .technologies import UNKNOWN_TECHNOLOGY, TechnologyRegistry


logger = logging.getLogger(__name__)

ID_SYNTAX = re.compile(r'^[a-zA-Z0-9-]+$')
DATE_FORMAT = '%Y-%m-%d'


class ModelLinkError(Exception):
    """Raised when the raw model cannot be linked into a consistent graph."""
    pass


def derive_link_id(source_id: str, title: str) -> str:
    """Link id: source asset id, '>' and the hyphenated, lower-cased link title."""
    slug = re.sub(r'[^A-Za-z0-9]+', '-', title.lower()).strip('- ')
    return f'{source_id}>{slug}'


def check_id_syntax(entity_id: str) -> None:
    if not ID_SYNTAX.match(entity_id):
        raise ModelLinkError(
            f"invalid id syntax used (only letters, numbers, and hyphen allowed): {entity_id}"
        )


def _parse_date(value: str, what: str) -> date:
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        raise ModelLinkError(f"unable to parse 'date' of {what}: {value}")


def _with_default(value: str, default: str) -> str:
    value = (value or '').strip()
    return value if value else default


class ModelLinker:
    """Resolves references, builds indices and infers ratings in a fixed order.

    Any failure aborts the whole pass with a ``ModelLinkError``; there is no
    partially linked result.
    """

    def __init__(self, registry: TechnologyRegistry,
                 rule_categories: Iterable[RiskCategory] = ()):
        self.registry = registry
        self.rule_categories = list(rule_categories)

    def link(self, model_input: ModelInput) -> ParsedModel:
        try:
            model = self._link_scalars(model_input)
            self._link_data_assets(model, model_input)
            self._link_technical_assets(model, model_input)
            self._propagate_transferred_data(model)
            self._propagate_cia_ratings(model)
            self._link_trust_boundaries(model, model_input)
            self._link_shared_runtimes(model, model_input)
            self._register_rule_categories(model)
            self._link_individual_risks(model, model_input)
            self._link_risk_tracking(model, model_input)
            self._check_link_targets(model)
        except ValueError as e:
            raise ModelLinkError(str(e)) from e

        logger.debug(
            "Linked model '%s': %d technical assets, %d data assets, %d links, %d trust boundaries",
            model.title, len(model.technical_assets), len(model.data_assets),
            len(model.communication_links), len(model.trust_boundaries),
        )
        return model

    # --- step 1 ---------------------------------------------------------

    def _link_scalars(self, model_input: ModelInput) -> ParsedModel:
        business_criticality = Criticality.parse(
            model_input.business_criticality, 'business_criticality', 'model',
            default=Criticality.IMPORTANT,
        )
        report_date = date.today()
        if model_input.date.strip():
            report_date = _parse_date(model_input.date, 'model')

        tags_available = []
        for tag in model_input.tags_available:
            tag = tag.strip().lower()
            if tag and tag not in tags_available:
                tags_available.append(tag)

        return ParsedModel(
            title=model_input.title,
            author=model_input.author,
            contributors=model_input.contributors,
            date=report_date,
            application_description=model_input.application_description,
            business_overview=model_input.business_overview,
            technical_overview=model_input.technical_overview,
            business_criticality=business_criticality,
            management_summary_comment=model_input.management_summary_comment,
            security_requirements=model_input.security_requirements,
            questions=model_input.questions,
            abuse_cases=model_input.abuse_cases,
            tags_available=tags_available,
        )

    # --- step 2 ---------------------------------------------------------

    def _link_data_assets(self, model: ParsedModel, model_input: ModelInput) -> None:
        for title, asset in model_input.data_assets.items():
            owner = f"data asset '{title}'"
            asset_id = asset.id.strip()
            usage = Usage.parse(asset.usage, 'usage', owner, default=Usage.BUSINESS)
            quantity = Quantity.parse(asset.quantity, 'quantity', owner, default=Quantity.VERY_FEW)
            confidentiality = Confidentiality.parse(asset.confidentiality, 'confidentiality', owner)
            integrity = Criticality.parse(asset.integrity, 'integrity', owner)
            availability = Criticality.parse(asset.availability, 'availability', owner)

            check_id_syntax(asset_id)
            if asset_id in model.data_assets:
                raise ModelLinkError(f"duplicate id used: {asset_id}")
            tags = model.check_tags(asset.tags, owner)

            model.data_assets[asset_id] = DataAsset(
                id=asset_id,
                title=title,
                description=_with_default(asset.description, title),
                usage=usage,
                quantity=quantity,
                tags=tags,
                origin=asset.origin,
                owner=asset.owner,
                confidentiality=confidentiality,
                integrity=integrity,
                availability=availability,
                justification_cia_rating=asset.justification_cia_rating,
            )

    # --- step 3 ---------------------------------------------------------

    def _check_data_asset(self, model: ParsedModel, data_id: str, where: str) -> None:
        if data_id not in model.data_assets:
            raise ModelLinkError(f"missing referenced data asset target at {where}: {data_id}")

    def _resolve_data_refs(self, model: ParsedModel, refs: list[str], where: str,
                           initial: Optional[list[str]] = None) -> list[str]:
        resolved = list(initial or [])
        for data_id in refs:
            data_id = data_id.strip()
            if data_id in resolved:
                continue
            self._check_data_asset(model, data_id, where)
            resolved.append(data_id)
        return resolved

    def _resolve_technologies(self, title: str, asset: TechnicalAssetInput):
        names = asset.technology_names() or [UNKNOWN_TECHNOLOGY]
        technologies = []
        for name in names:
            technology = self.registry.get(name)
            if technology is None:
                raise ModelLinkError(f"unknown technology '{name}' of technical asset '{title}'")
            if technology not in technologies:
                technologies.append(technology)
        return technologies

    def _link_technical_assets(self, model: ParsedModel, model_input: ModelInput) -> None:
        for title, asset in model_input.technical_assets.items():
            owner = f"technical asset '{title}'"
            asset_id = asset.id.strip()
            check_id_syntax(asset_id)
            if asset_id in model.technical_assets:
                raise ModelLinkError(f"duplicate id used: {asset_id}")

            usage = Usage.parse(asset.usage, 'usage', owner, default=Usage.BUSINESS)
            stored = self._resolve_data_refs(model, asset.data_assets_stored, owner)
            processed = self._resolve_data_refs(model, asset.data_assets_processed, owner, initial=stored)
            technologies = self._resolve_technologies(title, asset)
            asset_type = TechnicalAssetType.parse(asset.type, 'type', owner, default=TechnicalAssetType.PROCESS)
            size = TechnicalAssetSize.parse(asset.size, 'size', owner, default=TechnicalAssetSize.COMPONENT)
            encryption = EncryptionStyle.parse(asset.encryption, 'encryption', owner, default=EncryptionStyle.NONE)
            machine = TechnicalAssetMachine.parse(asset.machine, 'machine', owner, default=TechnicalAssetMachine.VIRTUAL)
            confidentiality = Confidentiality.parse(asset.confidentiality, 'confidentiality', owner)
            integrity = Criticality.parse(asset.integrity, 'integrity', owner)
            availability = Criticality.parse(asset.availability, 'availability', owner)
            data_formats = []
            for format_name in asset.data_formats_accepted:
                data_format = DataFormat.parse(format_name, 'data_formats_accepted', owner)
                if data_format not in data_formats:
                    data_formats.append(data_format)
            tags = model.check_tags(asset.tags, owner)

            links = []
            for link_title, link in asset.communication_links.items():
                link_owner = f"communication link '{link_title}' of {owner}"
                authentication = Authentication.parse(link.authentication, 'authentication', link_owner,
                                                      default=Authentication.NONE)
                authorization = Authorization.parse(link.authorization, 'authorization', link_owner,
                                                    default=Authorization.NONE)
                link_usage = Usage.parse(link.usage, 'usage', link_owner, default=Usage.BUSINESS)
                protocol = Protocol.parse(link.protocol, 'protocol', link_owner)

                sent = self._resolve_data_refs(model, link.data_assets_sent, link_owner)
                received = self._resolve_data_refs(model, link.data_assets_received, link_owner)
                for data_id in sent + received:
                    if data_id not in processed:
                        processed.append(data_id)

                link_id = derive_link_id(asset_id, link_title)
                if link_id in model.communication_links:
                    raise ModelLinkError(f"duplicate id used: {link_id}")
                communication_link = CommunicationLink(
                    id=link_id,
                    source_id=asset_id,
                    target_id=link.target.strip(),
                    title=link_title,
                    description=_with_default(link.description, link_title),
                    protocol=protocol,
                    tags=model.check_tags(link.tags, link_owner),
                    vpn=link.vpn,
                    ip_filtered=link.ip_filtered,
                    readonly=link.readonly,
                    authentication=authentication,
                    authorization=authorization,
                    usage=link_usage,
                    data_assets_sent=sent,
                    data_assets_received=received,
                    diagram_tweak_weight=link.diagram_tweak_weight or 1,
                    diagram_tweak_constraint=not link.diagram_tweak_constraint,
                )
                links.append(communication_link)
                model.communication_links[link_id] = communication_link
                model.incoming_links_by_target_id.setdefault(
                    communication_link.target_id, []).append(communication_link)

            model.technical_assets[asset_id] = TechnicalAsset(
                id=asset_id,
                title=title,
                description=_with_default(asset.description, title),
                usage=usage,
                type=asset_type,
                size=size,
                technologies=technologies,
                machine=machine,
                internet=asset.internet,
                multi_tenant=asset.multi_tenant,
                redundant=asset.redundant,
                custom_developed_parts=asset.custom_developed_parts,
                out_of_scope=asset.out_of_scope,
                used_as_client_by_human=asset.used_as_client_by_human,
                encryption=encryption,
                justification_out_of_scope=asset.justification_out_of_scope,
                owner=asset.owner,
                confidentiality=confidentiality,
                integrity=integrity,
                availability=availability,
                justification_cia_rating=asset.justification_cia_rating,
                tags=tags,
                data_assets_processed=processed,
                data_assets_stored=stored,
                data_formats_accepted=data_formats,
                communication_links=links,
                diagram_tweak_order=asset.diagram_tweak_order,
            )

    # --- step 4 ---------------------------------------------------------

    def _propagate_transferred_data(self, model: ParsedModel) -> None:
        """A link target implicitly processes everything sent or received over the link."""
        for link in model.communication_links.values():
            if link.source_id == link.target_id:
                continue
            target = model.technical_assets.get(link.target_id)
            if target is None:
                continue
            for data_id in link.transferred_data_asset_ids():
                if data_id not in target.data_assets_processed:
                    target.data_assets_processed.append(data_id)

    def _propagate_cia_ratings(self, model: ParsedModel) -> None:
        for asset in model.technical_assets.values():
            asset.confidentiality = model.highest_confidentiality(asset)
            asset.integrity = model.highest_integrity(asset)
            asset.availability = model.highest_availability(asset)

    # --- step 5 ---------------------------------------------------------

    def _link_trust_boundaries(self, model: ParsedModel, model_input: ModelInput) -> None:
        nested_parent: dict[str, str] = {}
        for title, boundary in model_input.trust_boundaries.items():
            owner = f"trust boundary '{title}'"
            boundary_id = boundary.id.strip()
            boundary_type = TrustBoundaryType.parse(boundary.type, 'type', owner)

            inside = []
            for asset_id in boundary.technical_assets_inside:
                asset_id = asset_id.strip()
                if asset_id not in model.technical_assets:
                    raise ModelLinkError(
                        f"missing referenced technical asset {asset_id} at trust boundary {title}"
                    )
                if asset_id in inside:
                    continue
                if asset_id in model.direct_containing_trust_boundary_by_asset_id:
                    raise ModelLinkError(
                        f"referenced technical asset {asset_id} at trust boundary {title} "
                        f"is modeled in multiple trust boundaries"
                    )
                model.direct_containing_trust_boundary_by_asset_id[asset_id] = boundary_id
                inside.append(asset_id)

            nested = []
            for nested_id in boundary.trust_boundaries_nested:
                nested_id = nested_id.strip()
                if nested_id in nested:
                    continue
                if nested_id == boundary_id:
                    raise ModelLinkError(f"trust boundary {title} cannot be nested into itself")
                if nested_id in nested_parent:
                    raise ModelLinkError(
                        f"referenced nested trust boundary {nested_id} at trust boundary {title} "
                        f"is nested in multiple trust boundaries"
                    )
                nested_parent[nested_id] = boundary_id
                nested.append(nested_id)

            tags = model.check_tags(boundary.tags, owner)
            check_id_syntax(boundary_id)
            if boundary_id in model.trust_boundaries:
                raise ModelLinkError(f"duplicate id used: {boundary_id}")

            model.trust_boundaries[boundary_id] = TrustBoundary(
                id=boundary_id,
                title=title,
                description=_with_default(boundary.description, title),
                type=boundary_type,
                tags=tags,
                technical_assets_inside=inside,
                trust_boundaries_nested=nested,
            )

        for nested_id in nested_parent:
            if nested_id not in model.trust_boundaries:
                raise ModelLinkError(f"missing referenced nested trust boundary: {nested_id}")
        for boundary_id in model.trust_boundaries:
            seen = {boundary_id}
            current = nested_parent.get(boundary_id)
            while current is not None:
                if current in seen:
                    raise ModelLinkError(f"trust boundary nesting cycle at: {boundary_id}")
                seen.add(current)
                current = nested_parent.get(current)

    # --- step 6 ---------------------------------------------------------

    def _link_shared_runtimes(self, model: ParsedModel, model_input: ModelInput) -> None:
        for title, runtime in model_input.shared_runtimes.items():
            owner = f"shared runtime '{title}'"
            runtime_id = runtime.id.strip()
            running = []
            for asset_id in runtime.technical_assets_running:
                asset_id = asset_id.strip()
                if asset_id not in model.technical_assets:
                    raise ModelLinkError(f"missing referenced technical asset target at {owner}: {asset_id}")
                if asset_id not in running:
                    running.append(asset_id)
            tags = model.check_tags(runtime.tags, owner)
            check_id_syntax(runtime_id)
            if runtime_id in model.shared_runtimes:
                raise ModelLinkError(f"duplicate id used: {runtime_id}")

            model.shared_runtimes[runtime_id] = SharedRuntime(
                id=runtime_id,
                title=title,
                description=_with_default(runtime.description, title),
                tags=tags,
                technical_assets_running=running,
            )

    # --- step 7 ---------------------------------------------------------

    def _register_rule_categories(self, model: ParsedModel) -> None:
        for category in self.rule_categories:
            model.rule_risk_categories[category.id] = category

    # --- step 8 ---------------------------------------------------------

    def _check_reference(self, model: ParsedModel, kind: str, ref_id: str, where: str) -> None:
        tables = {
            'data asset': model.data_assets,
            'technical asset': model.technical_assets,
            'communication link': model.communication_links,
            'trust boundary': model.trust_boundaries,
            'shared runtime': model.shared_runtimes,
        }
        if ref_id not in tables[kind]:
            raise ModelLinkError(f"missing referenced {kind} at {where}: {ref_id}")

    def _link_individual_risk_category(self, model: ParsedModel, title: str,
                                       category_input: RiskCategoryInput) -> RiskCategory:
        owner = f"individual risk category '{title}'"
        category_id = category_input.id.strip()
        function = RiskFunction.parse(category_input.function, 'function', owner,
                                      default=RiskFunction.BUSINESS_SIDE)
        stride = STRIDE.parse(category_input.stride, 'stride', owner, default=STRIDE.SPOOFING)
        check_id_syntax(category_id)
        if category_id in model.individual_risk_categories:
            raise ModelLinkError(f"duplicate id used: {category_id}")
        return RiskCategory(
            id=category_id,
            title=title,
            description=category_input.description,
            impact=category_input.impact,
            asvs=category_input.asvs,
            cheat_sheet=category_input.cheat_sheet,
            action=category_input.action,
            mitigation=category_input.mitigation,
            check=category_input.check,
            detection_logic=category_input.detection_logic,
            risk_assessment=category_input.risk_assessment,
            false_positives=category_input.false_positives,
            function=function,
            stride=stride,
            model_failure_possible_reason=category_input.model_failure_possible_reason,
            cwe=category_input.cwe,
        )

    def _link_individual_risks(self, model: ParsedModel, model_input: ModelInput) -> None:
        for title, category_input in model_input.individual_risk_categories.items():
            category = self._link_individual_risk_category(model, title, category_input)
            model.individual_risk_categories[category.id] = category

            for risk_title, risk_input in category_input.risks_identified.items():
                where = f"individual risk '{risk_title}'"
                severity = RiskSeverity.parse(risk_input.severity, 'severity', where,
                                              default=RiskSeverity.MEDIUM)
                likelihood = RiskExploitationLikelihood.parse(
                    risk_input.exploitation_likelihood, 'exploitation_likelihood', where,
                    default=RiskExploitationLikelihood.LIKELY)
                impact = RiskExploitationImpact.parse(
                    risk_input.exploitation_impact, 'exploitation_impact', where,
                    default=RiskExploitationImpact.MEDIUM)

                refs = {
                    'data asset': risk_input.most_relevant_data_asset.strip(),
                    'technical asset': risk_input.most_relevant_technical_asset.strip(),
                    'communication link': risk_input.most_relevant_communication_link.strip(),
                    'trust boundary': risk_input.most_relevant_trust_boundary.strip(),
                    'shared runtime': risk_input.most_relevant_shared_runtime.strip(),
                }
                for kind, ref_id in refs.items():
                    if ref_id:
                        self._check_reference(model, kind, ref_id, where)

                breach_probability = DataBreachProbability.parse(
                    risk_input.data_breach_probability, 'data_breach_probability', where,
                    default=DataBreachProbability.POSSIBLE)
                breach_assets = []
                for asset_id in risk_input.data_breach_technical_assets:
                    asset_id = asset_id.strip()
                    self._check_reference(model, 'technical asset', asset_id,
                                          f"data breach technical assets of {where}")
                    breach_assets.append(asset_id)

                risk = Risk(
                    category_id=category.id,
                    severity=severity,
                    exploitation_likelihood=likelihood,
                    exploitation_impact=impact,
                    title=risk_title,
                    synthetic_id=create_synthetic_id(
                        category.id,
                        technical_asset_id=refs['technical asset'],
                        communication_link_id=refs['communication link'],
                        trust_boundary_id=refs['trust boundary'],
                        shared_runtime_id=refs['shared runtime'],
                        data_asset_id=refs['data asset'],
                    ),
                    most_relevant_data_asset_id=refs['data asset'],
                    most_relevant_technical_asset_id=refs['technical asset'],
                    most_relevant_communication_link_id=refs['communication link'],
                    most_relevant_trust_boundary_id=refs['trust boundary'],
                    most_relevant_shared_runtime_id=refs['shared runtime'],
                    data_breach_probability=breach_probability,
                    data_breach_technical_asset_ids=breach_assets,
                )
                model.generated_risks_by_category.setdefault(category.id, []).append(risk)

    # --- step 9 ---------------------------------------------------------

    def _link_risk_tracking(self, model: ParsedModel, model_input: ModelInput) -> None:
        for key, tracking in model_input.risk_tracking.items():
            where = f"risk tracking '{key}'"
            tracking_date = None
            if tracking.date.strip():
                tracking_date = _parse_date(tracking.date, where)
            status = RiskStatus.parse(tracking.status, 'status', where)
            model.risk_tracking[key] = RiskTracking(
                synthetic_risk_id=key.strip(),
                justification=tracking.justification,
                ticket=tracking.ticket,
                checked_by=tracking.checked_by,
                status=status,
                date=tracking_date,
            )

    # --- step 10 --------------------------------------------------------

    def _check_link_targets(self, model: ParsedModel) -> None:
        for link in model.communication_links.values():
            if link.target_id not in model.technical_assets:
                source = model.technical_assets[link.source_id]
                raise ModelLinkError(
                    f"missing referenced technical asset target at communication link "
                    f"'{link.title}' of technical asset '{source.title}': {link.target_id}"
                )
