"""Data model for IAM principals, resources, policy documents and organizations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

Conditions = dict[str, dict[str, Any]]


class Effect(str, Enum):
    """Effect of a policy statement."""

    ALLOW = "Allow"
    DENY = "Deny"


class PrincipalType(str, Enum):
    """Kind of identity that can be granted access."""

    USER = "user"
    ROLE = "role"
    GROUP = "group"
    PUBLIC = "public"


class ResourceType(str, Enum):
    """Kind of resource that can carry a resource policy."""

    S3 = "s3"
    KMS = "kms"
    SQS = "sqs"
    SNS = "sns"
    SECRETS_MANAGER = "secretsmanager"
    LAMBDA = "lambda"
    ECR = "ecr"
    API_GATEWAY = "apigateway"
    EVENTBRIDGE = "eventbridge"


class SCPTargetType(str, Enum):
    """Where a service control policy is attached inside an organization."""

    ROOT = "ROOT"
    ACCOUNT = "ACCOUNT"
    ORGANIZATIONAL_UNIT = "ORGANIZATIONAL_UNIT"


@dataclass
class Statement:
    """One statement of a policy document.

    ``action``, ``not_action``, ``resource``, ``not_resource`` hold either a
    single string or a list of strings, exactly as they appear in JSON.
    """

    effect: Effect
    action: Any = None
    not_action: Any = None
    resource: Any = None
    not_resource: Any = None
    principal: Any = None
    condition: Conditions = field(default_factory=dict)
    sid: str = ""


@dataclass
class PolicyDocument:
    """A policy made of statements."""

    statements: list[Statement] = field(default_factory=list)
    version: str = "2012-10-17"
    id: str = ""


@dataclass
class Principal:
    """A user, role, group or the anonymous public."""

    arn: str
    type: PrincipalType
    name: str = ""
    policies: list[PolicyDocument] = field(default_factory=list)
    trust_policy: PolicyDocument | None = None
    permissions_boundary: PolicyDocument | None = None
    group_memberships: list[str] = field(default_factory=list)


@dataclass
class Resource:
    """A resource, optionally carrying a resource-based policy."""

    arn: str
    type: ResourceType
    name: str = ""
    resource_policy: PolicyDocument | None = None


@dataclass
class SCPTarget:
    """A target a service control policy is attached to."""

    type: SCPTargetType
    id: str


@dataclass
class SCPAttachment:
    """A service control policy together with the targets it is attached to."""

    policy: PolicyDocument
    targets: list[SCPTarget] = field(default_factory=list)


@dataclass
class OUHierarchy:
    """The organizational units an account sits under."""

    account_id: str
    parent_ous: list[str] = field(default_factory=list)


@dataclass
class CollectionResult:
    """Everything collected from one account."""

    principals: list[Principal] = field(default_factory=list)
    resources: list[Resource] = field(default_factory=list)
    account_id: str = ""
    scps: list[PolicyDocument] = field(default_factory=list)
    scp_attachments: list[SCPAttachment] = field(default_factory=list)
    ou_hierarchy: OUHierarchy | None = None


def normalize_values(value: Any) -> list[str]:
    """Turn a string or a sequence into a list of strings.

    Non-string items of a sequence are dropped; any other value yields an
    empty list.
    """
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [item for item in value if isinstance(item, str)]
    return []


def extract_principals(principal: Any) -> list[str]:
    """Collect principal identifiers from a statement's ``Principal`` element."""
    if isinstance(principal, str):
        return [principal]
    if isinstance(principal, dict):
        return [name for value in principal.values() for name in normalize_values(value)]
    return []