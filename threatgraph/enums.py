"""Closed, totally ordered value sets used throughout the architecture model."""

from enum import Enum
from typing import Optional


class UnknownEnumValue(ValueError):
    """Raised when a text value does not name any member of an enumeration."""

    def __init__(self, field: str, value, owner: str = ""):
        self.field = field
        self.value = value
        self.owner = owner
        location = f" of {owner}" if owner else ""
        super().__init__(f"unknown '{field}' value{location}: {value}")


class LevelEnum(str, Enum):
    """Base for enumerations whose declaration order is their total order."""

    @classmethod
    def parse(cls, value, field: str = "", owner: str = "", default: Optional["LevelEnum"] = None):
        text = "" if value is None else str(value).strip().lower()
        if not text:
            if default is not None:
                return default
            raise UnknownEnumValue(field or cls.__name__, value, owner)
        for candidate in cls:
            if candidate.value == text:
                return candidate
        raise UnknownEnumValue(field or cls.__name__, value, owner)

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]

    @property
    def level(self) -> int:
        return type(self)._member_names_.index(self.name)

    @property
    def label(self) -> str:
        return self.value.replace("-", " ").title()

    def __str__(self) -> str:
        return self.value

    def _comparable(self, other) -> bool:
        return type(other) is type(self)

    def __lt__(self, other):
        if not self._comparable(other):
            return NotImplemented
        return self.level < other.level

    def __le__(self, other):
        if not self._comparable(other):
            return NotImplemented
        return self.level <= other.level

    def __gt__(self, other):
        if not self._comparable(other):
            return NotImplemented
        return self.level > other.level

    def __ge__(self, other):
        if not self._comparable(other):
            return NotImplemented
        return self.level >= other.level


class Confidentiality(LevelEnum):
    PUBLIC = "public"
    INTERNAL = "internal"
    RESTRICTED = "restricted"
    CONFIDENTIAL = "confidential"
    STRICTLY_CONFIDENTIAL = "strictly-confidential"

    def attacker_attractiveness_for_asset(self) -> float:
        return (8, 13, 21, 34, 55)[self.level]

    def attacker_attractiveness_for_processed_or_stored_data(self) -> float:
        return (5, 8, 13, 21, 34)[self.level]

    def attacker_attractiveness_for_transferred_data(self) -> float:
        return (2, 3, 5, 8, 13)[self.level]


class Criticality(LevelEnum):
    ARCHIVE = "archive"
    OPERATIONAL = "operational"
    IMPORTANT = "important"
    CRITICAL = "critical"
    MISSION_CRITICAL = "mission-critical"

    def attacker_attractiveness_for_asset(self) -> float:
        return (5, 8, 13, 21, 34)[self.level]

    def attacker_attractiveness_for_processed_or_stored_data(self) -> float:
        return (3, 5, 8, 13, 21)[self.level]

    def attacker_attractiveness_for_transferred_data(self) -> float:
        return (2, 3, 5, 8, 13)[self.level]


class Authentication(LevelEnum):
    NONE = "none"
    CREDENTIALS = "credentials"
    SESSION_ID = "session-id"
    TOKEN = "token"
    CLIENT_CERTIFICATE = "client-certificate"
    TWO_FACTOR = "two-factor"
    EXTERNALIZED = "externalized"


class Authorization(LevelEnum):
    NONE = "none"
    TECHNICAL_USER = "technical-user"
    ENDUSER_IDENTITY_PROPAGATION = "enduser-identity-propagation"


class Usage(LevelEnum):
    BUSINESS = "business"
    DEVOPS = "devops"


class Quantity(LevelEnum):
    VERY_FEW = "very-few"
    FEW = "few"
    MANY = "many"
    VERY_MANY = "very-many"

    @property
    def factor(self) -> float:
        return (1, 2, 3, 5)[self.level]


class DataFormat(LevelEnum):
    JSON = "json"
    XML = "xml"
    SERIALIZATION = "serialization"
    FILE = "file"
    CSV = "csv"


class EncryptionStyle(LevelEnum):
    NONE = "none"
    TRANSPARENT = "transparent"
    DATA_WITH_SYMMETRIC_SHARED_KEY = "data-with-symmetric-shared-key"
    DATA_WITH_ASYMMETRIC_SHARED_KEY = "data-with-asymmetric-shared-key"
    DATA_WITH_ENDUSER_INDIVIDUAL_KEY = "data-with-enduser-individual-key"


class TechnicalAssetType(LevelEnum):
    EXTERNAL_ENTITY = "external-entity"
    PROCESS = "process"
    DATASTORE = "datastore"


class TechnicalAssetSize(LevelEnum):
    SYSTEM = "system"
    SERVICE = "service"
    APPLICATION = "application"
    COMPONENT = "component"


class TechnicalAssetMachine(LevelEnum):
    PHYSICAL = "physical"
    VIRTUAL = "virtual"
    CONTAINER = "container"
    SERVERLESS = "serverless"


class TrustBoundaryType(LevelEnum):
    NETWORK_ON_PREM = "network-on-prem"
    NETWORK_DEDICATED_HOSTER = "network-dedicated-hoster"
    NETWORK_VIRTUAL_LAN = "network-virtual-lan"
    NETWORK_CLOUD_PROVIDER = "network-cloud-provider"
    NETWORK_CLOUD_SECURITY_GROUP = "network-cloud-security-group"
    NETWORK_POLICY_NAMESPACE_ISOLATION = "network-policy-namespace-isolation"
    EXECUTION_ENVIRONMENT = "execution-environment"

    @property
    def is_network_boundary(self) -> bool:
        return self is not TrustBoundaryType.EXECUTION_ENVIRONMENT

    @property
    def is_within_cloud(self) -> bool:
        return self in (
            TrustBoundaryType.NETWORK_CLOUD_PROVIDER,
            TrustBoundaryType.NETWORK_CLOUD_SECURITY_GROUP,
        )


class Protocol(LevelEnum):
    UNKNOWN = "unknown-protocol"
    HTTP = "http"
    HTTPS = "https"
    WS = "ws"
    WSS = "wss"
    REVERSE_PROXY_WEB_PROTOCOL = "reverse-proxy-web-protocol"
    REVERSE_PROXY_WEB_PROTOCOL_ENCRYPTED = "reverse-proxy-web-protocol-encrypted"
    MQTT = "mqtt"
    JDBC = "jdbc"
    JDBC_ENCRYPTED = "jdbc-encrypted"
    ODBC = "odbc"
    ODBC_ENCRYPTED = "odbc-encrypted"
    SQL_ACCESS_PROTOCOL = "sql-access-protocol"
    SQL_ACCESS_PROTOCOL_ENCRYPTED = "sql-access-protocol-encrypted"
    NOSQL_ACCESS_PROTOCOL = "nosql-access-protocol"
    NOSQL_ACCESS_PROTOCOL_ENCRYPTED = "nosql-access-protocol-encrypted"
    BINARY = "binary"
    BINARY_ENCRYPTED = "binary-encrypted"
    TEXT = "text"
    TEXT_ENCRYPTED = "text-encrypted"
    SSH = "ssh"
    SSH_TUNNEL = "ssh-tunnel"
    SMTP = "smtp"
    SMTP_ENCRYPTED = "smtp-encrypted"
    POP3 = "pop3"
    POP3_ENCRYPTED = "pop3-encrypted"
    IMAP = "imap"
    IMAP_ENCRYPTED = "imap-encrypted"
    FTP = "ftp"
    FTPS = "ftps"
    SFTP = "sftp"
    SCP = "scp"
    LDAP = "ldap"
    LDAPS = "ldaps"
    JMS = "jms"
    NFS = "nfs"
    SMB = "smb"
    SMB_ENCRYPTED = "smb-encrypted"
    LOCAL_FILE_ACCESS = "local-file-access"
    NRPE = "nrpe"
    XMPP = "xmpp"
    IIOP = "iiop"
    IIOP_ENCRYPTED = "iiop-encrypted"
    JRMP = "jrmp"
    JRMP_ENCRYPTED = "jrmp-encrypted"
    IN_PROCESS_LIBRARY_CALL = "in-process-library-call"
    CONTAINER_SPAWNING = "container-spawning"

    @property
    def is_encrypted(self) -> bool:
        return self in _ENCRYPTED_PROTOCOLS

    @property
    def is_process_local(self) -> bool:
        return self in (
            Protocol.IN_PROCESS_LIBRARY_CALL,
            Protocol.LOCAL_FILE_ACCESS,
            Protocol.CONTAINER_SPAWNING,
        )

    def is_potential_database_access(self, lax: bool) -> bool:
        if self in _DATABASE_PROTOCOLS:
            return True
        if lax:
            return self in (Protocol.HTTPS, Protocol.HTTP, Protocol.BINARY, Protocol.BINARY_ENCRYPTED)
        return False

    @property
    def is_potential_web_access(self) -> bool:
        return self in (
            Protocol.HTTP,
            Protocol.HTTPS,
            Protocol.WS,
            Protocol.WSS,
            Protocol.REVERSE_PROXY_WEB_PROTOCOL,
            Protocol.REVERSE_PROXY_WEB_PROTOCOL_ENCRYPTED,
        )


_ENCRYPTED_PROTOCOLS = frozenset({
    Protocol.HTTPS,
    Protocol.WSS,
    Protocol.JDBC_ENCRYPTED,
    Protocol.ODBC_ENCRYPTED,
    Protocol.NOSQL_ACCESS_PROTOCOL_ENCRYPTED,
    Protocol.SQL_ACCESS_PROTOCOL_ENCRYPTED,
    Protocol.BINARY_ENCRYPTED,
    Protocol.TEXT_ENCRYPTED,
    Protocol.SSH,
    Protocol.SSH_TUNNEL,
    Protocol.FTPS,
    Protocol.SFTP,
    Protocol.SCP,
    Protocol.LDAPS,
    Protocol.REVERSE_PROXY_WEB_PROTOCOL_ENCRYPTED,
    Protocol.IIOP_ENCRYPTED,
    Protocol.JRMP_ENCRYPTED,
    Protocol.SMB_ENCRYPTED,
    Protocol.SMTP_ENCRYPTED,
    Protocol.POP3_ENCRYPTED,
    Protocol.IMAP_ENCRYPTED,
})


_DATABASE_PROTOCOLS = frozenset({
    Protocol.JDBC_ENCRYPTED,
    Protocol.ODBC_ENCRYPTED,
    Protocol.NOSQL_ACCESS_PROTOCOL_ENCRYPTED,
    Protocol.SQL_ACCESS_PROTOCOL_ENCRYPTED,
    Protocol.JDBC,
    Protocol.ODBC,
    Protocol.NOSQL_ACCESS_PROTOCOL,
    Protocol.SQL_ACCESS_PROTOCOL,
})


class RiskSeverity(LevelEnum):
    LOW = "low"
    MEDIUM = "medium"
    ELEVATED = "elevated"
    HIGH = "high"
    CRITICAL = "critical"


class RiskExploitationLikelihood(LevelEnum):
    UNLIKELY = "unlikely"
    LIKELY = "likely"
    VERY_LIKELY = "very-likely"
    FREQUENT = "frequent"

    @property
    def weight(self) -> int:
        return self.level + 1


class RiskExploitationImpact(LevelEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very-high"

    @property
    def weight(self) -> int:
        return self.level + 1


class DataBreachProbability(LevelEnum):
    IMPROBABLE = "improbable"
    POSSIBLE = "possible"
    PROBABLE = "probable"


class RiskFunction(LevelEnum):
    BUSINESS_SIDE = "business-side"
    ARCHITECTURE = "architecture"
    DEVELOPMENT = "development"
    OPERATIONS = "operations"


class STRIDE(LevelEnum):
    SPOOFING = "spoofing"
    TAMPERING = "tampering"
    REPUDIATION = "repudiation"
    INFORMATION_DISCLOSURE = "information-disclosure"
    DENIAL_OF_SERVICE = "denial-of-service"
    ELEVATION_OF_PRIVILEGE = "elevation-of-privilege"


class RiskStatus(LevelEnum):
    UNCHECKED = "unchecked"
    IN_DISCUSSION = "in-discussion"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in-progress"
    MITIGATED = "mitigated"
    FALSE_POSITIVE = "false-positive"

    @property
    def is_still_at_risk(self) -> bool:
        return self in (
            RiskStatus.UNCHECKED,
            RiskStatus.IN_DISCUSSION,
            RiskStatus.ACCEPTED,
            RiskStatus.IN_PROGRESS,
        )


def calculate_severity(likelihood: RiskExploitationLikelihood,
                       impact: RiskExploitationImpact) -> RiskSeverity:
    """Map the product of likelihood and impact weights onto a severity bucket."""
    result = likelihood.weight * impact.weight
    if result <= 1:
        return RiskSeverity.LOW
    if result <= 3:
        return RiskSeverity.MEDIUM
    if result <= 8:
        return RiskSeverity.ELEVATED
    if result <= 12:
        return RiskSeverity.HIGH
    return RiskSeverity.CRITICAL
