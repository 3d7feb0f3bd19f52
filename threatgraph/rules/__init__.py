"""Risk rules: the abstract contract and the built-in catalog."""

from .architecture import (
    MissingIdentityStoreRule, MissingNetworkSegmentationRule, MissingVaultIsolationRule,
    MissingVaultRule, MixedTargetsOnSharedRuntimeRule, WrongTrustBoundaryContentRule,
)
from .assets import (
    IncompleteModelRule, MissingHardeningRule, UnencryptedAssetRule,
    UnnecessaryDataAssetRule, UnnecessaryTechnicalAssetRule,
)
from .base import BuiltinRule, RiskRule
from .communication import (
    DosRiskyAccessAcrossTrustBoundaryRule, MissingAuthenticationRule,
    UnencryptedCommunicationRule, UnguardedAccessFromInternetRule,
    UnguardedDirectDatastoreAccessRule, UnnecessaryCommunicationLinkRule,
    UnnecessaryDataTransferRule,
)
from .injection import (
    CrossSiteScriptingRule, SqlNoSqlInjectionRule, UntrustedDeserializationRule,
    XmlExternalEntityRule,
)

BUILTIN_RULE_CLASSES = (
    UnencryptedCommunicationRule,
    UnencryptedAssetRule,
    MissingAuthenticationRule,
    MissingVaultRule,
    MissingVaultIsolationRule,
    MissingIdentityStoreRule,
    MissingHardeningRule,
    MissingNetworkSegmentationRule,
    DosRiskyAccessAcrossTrustBoundaryRule,
    UnguardedDirectDatastoreAccessRule,
    UnguardedAccessFromInternetRule,
    WrongTrustBoundaryContentRule,
    MixedTargetsOnSharedRuntimeRule,
    IncompleteModelRule,
    UnnecessaryDataTransferRule,
    UnnecessaryCommunicationLinkRule,
    UnnecessaryTechnicalAssetRule,
    UnnecessaryDataAssetRule,
    CrossSiteScriptingRule,
    SqlNoSqlInjectionRule,
    XmlExternalEntityRule,
    UntrustedDeserializationRule,
)


def builtin_rules() -> dict[str, RiskRule]:
    """Fresh instances of every built-in rule keyed by category id."""
    rules = {}
    for rule_class in BUILTIN_RULE_CLASSES:
        rule = rule_class()
        rules[rule.id] = rule
    return rules


__all__ = ['RiskRule', 'BuiltinRule', 'BUILTIN_RULE_CLASSES', 'builtin_rules']
