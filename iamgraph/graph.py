"""The access graph: who can perform which action on which resource."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Iterator
from dataclasses import dataclass, field

from .conditions import ConditionError, EvaluationContext, default_context, evaluate
from .guards import (
    filter_scps_for_account,
    is_blocked_by_boundary,
    is_blocked_by_scps,
    is_blocked_by_session_policy,
)
from .matching import (
    matches_action,
    matches_not_action,
    matches_not_resource,
    matches_resource,
)
from .model import (
    CollectionResult,
    Conditions,
    Effect,
    PolicyDocument,
    Principal,
    PrincipalType,
    Resource,
    extract_principals,
    normalize_values,
)

logger = logging.getLogger(__name__)

PUBLIC_PRINCIPAL = "*"
_PUBLIC_ALIASES = frozenset({"*", "arn:aws:iam::*:root"})

_EdgeMap = defaultdict  # principal ARN -> action pattern -> edges


@dataclass
class PermissionEdge:
    """A grant or denial of an action pattern on a resource pattern."""

    resource_arn: str
    conditions: Conditions | None = None
    policy_name: str = ""
    not_actions: list[str] = field(default_factory=list)
    not_resources: list[str] = field(default_factory=list)

    def applies_to(self, action: str, resource_arn: str) -> bool:
        """Whether this edge covers the resource and is not excluded by NOT patterns."""
        if self.not_actions and not matches_not_action(self.not_actions, action):
            return False
        if not matches_resource(self.resource_arn, resource_arn):
            return False
        if self.not_resources and not matches_not_resource(self.not_resources, resource_arn):
            return False
        return True


def _edge_table() -> defaultdict[str, defaultdict[str, list[PermissionEdge]]]:
    return defaultdict(lambda: defaultdict(list))


class AccessGraph:
    """Principals, resources and the permission and trust edges between them."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._principals: dict[str, Principal] = {}
        self._resources: dict[str, Resource] = {}
        self._allows = _edge_table()
        self._denies = _edge_table()
        self._trust: defaultdict[str, list[str]] = defaultdict(list)
        self.scps: list[PolicyDocument] = []

    def add_principal(self, principal: Principal) -> None:
        """Add or replace a principal, keyed by its ARN."""
        with self._lock:
            self._principals[principal.arn] = principal

    def add_resource(self, resource: Resource) -> None:
        """Add or replace a resource, keyed by its ARN."""
        with self._lock:
            self._resources[resource.arn] = resource

    def add_edge(
        self,
        principal_arn: str,
        action: str,
        resource_arn: str,
        is_deny: bool = False,
        conditions: Conditions | None = None,
        policy_name: str = "",
        not_actions: list[str] | None = None,
        not_resources: list[str] | None = None,
    ) -> None:
        """Record that a principal is allowed (or denied) an action on a resource."""
        edge = PermissionEdge(
            resource_arn=resource_arn,
            conditions=conditions,
            policy_name=policy_name,
            not_actions=list(not_actions or []),
            not_resources=list(not_resources or []),
        )
        with self._lock:
            table = self._denies if is_deny else self._allows
            table[principal_arn][action].append(edge)

    def add_trust_relation(self, role_arn: str, trustor_arn: str) -> None:
        """Record that ``trustor_arn`` may assume ``role_arn``."""
        with self._lock:
            self._trust[role_arn].append(trustor_arn)

    def get_principal(self, arn: str) -> Principal | None:
        """The principal with this ARN, or ``None``."""
        with self._lock:
            return self._principals.get(arn)

    def get_resource(self, arn: str) -> Resource | None:
        """The resource with this ARN, or ``None``."""
        with self._lock:
            return self._resources.get(arn)

    def all_principals(self) -> list[Principal]:
        """Every principal in the graph."""
        with self._lock:
            return list(self._principals.values())

    def all_resources(self) -> list[Resource]:
        """Every resource in the graph."""
        with self._lock:
            return list(self._resources.values())

    def add_policy(self, principal_arn: str, policy: PolicyDocument) -> None:
        """Add edges for an identity policy attached to a principal."""
        for statement in policy.statements:
            actions = normalize_values(statement.action)
            resources = normalize_values(statement.resource)
            not_actions = normalize_values(statement.not_action)
            not_resources = normalize_values(statement.not_resource)
            if not_actions and not actions:
                actions = ["*"]
            if not_resources and not resources:
                resources = ["*"]
            is_deny = statement.effect == Effect.DENY
            for action in actions:
                for resource in resources:
                    self.add_edge(
                        principal_arn,
                        action,
                        resource,
                        is_deny,
                        statement.condition,
                        statement.sid,
                        not_actions,
                        not_resources,
                    )

    def add_trust_policy(self, role_arn: str, policy: PolicyDocument) -> None:
        """Add trust relations for the principals a role's trust policy allows."""
        for statement in policy.statements:
            if statement.effect != Effect.ALLOW:
                continue
            for trustor in extract_principals(statement.principal):
                self.add_trust_relation(role_arn, trustor)

    def add_resource_policy(self, resource_arn: str, policy: PolicyDocument) -> None:
        """Add edges for a resource-based policy.

        Wildcard principals are mapped to the anonymous public principal,
        which is created on first use.
        """
        for statement in policy.statements:
            principals = extract_principals(statement.principal)
            actions = normalize_values(statement.action)
            not_actions = normalize_values(statement.not_action)
            resources = normalize_values(statement.resource)
            if not_actions and not actions:
                actions = ["*"]
            if not resources:
                resources = [resource_arn]
            is_deny = statement.effect == Effect.DENY
            for principal_arn in principals:
                if principal_arn in _PUBLIC_ALIASES:
                    self._ensure_public_principal()
                    principal_arn = PUBLIC_PRINCIPAL
                for action in actions:
                    for resource in resources:
                        self.add_edge(
                            principal_arn,
                            action,
                            resource,
                            is_deny,
                            statement.condition,
                            statement.sid,
                            not_actions,
                            None,
                        )

    def _ensure_public_principal(self) -> None:
        with self._lock:
            if PUBLIC_PRINCIPAL not in self._principals:
                self._principals[PUBLIC_PRINCIPAL] = Principal(
                    arn=PUBLIC_PRINCIPAL,
                    type=PrincipalType.PUBLIC,
                    name="Public (Anonymous)",
                )

    def _matching_edges(
        self,
        table: defaultdict[str, defaultdict[str, list[PermissionEdge]]],
        principal_arn: str,
        action: str,
        resource_arn: str,
    ) -> Iterator[PermissionEdge]:
        edges_by_action = table.get(principal_arn)
        if not edges_by_action:
            return
        for pattern, edges in edges_by_action.items():
            if not matches_action(pattern, action):
                continue
            for edge in edges:
                if edge.applies_to(action, resource_arn):
                    yield edge

    def _denied(
        self, principal_arn: str, action: str, resource_arn: str, ctx: EvaluationContext
    ) -> bool:
        for edge in self._matching_edges(self._denies, principal_arn, action, resource_arn):
            try:
                if evaluate(edge.conditions, ctx):
                    return True
            except ConditionError as exc:
                logger.warning(
                    "Failed to evaluate deny condition for %s on %s: %s "
                    "(assuming deny applies)",
                    principal_arn,
                    resource_arn,
                    exc,
                )
                return True
        return False

    def _allowed(
        self, principal_arn: str, action: str, resource_arn: str, ctx: EvaluationContext
    ) -> bool:
        for edge in self._matching_edges(self._allows, principal_arn, action, resource_arn):
            try:
                if evaluate(edge.conditions, ctx):
                    return True
            except ConditionError as exc:
                logger.warning(
                    "Failed to evaluate allow condition for %s on %s: %s "
                    "(skipping this allow)",
                    principal_arn,
                    resource_arn,
                    exc,
                )
        return False

    def can_access(
        self,
        principal_arn: str,
        action: str,
        resource_arn: str,
        context: EvaluationContext | None = None,
    ) -> bool:
        """Whether the principal may perform ``action`` on ``resource_arn``.

        Service control policies, the permissions boundary and the session
        policy are checked first; then explicit denies of the principal and
        its groups; then allows of the principal and, recursively, its groups.
        Without a context a permissive default is used.
        """
        ctx = context if context is not None else default_context()
        with self._lock:
            if is_blocked_by_scps(self.scps, principal_arn, action, resource_arn, ctx):
                return False
            principal = self._principals.get(principal_arn)
            if is_blocked_by_boundary(principal, action, resource_arn, ctx):
                return False
            if is_blocked_by_session_policy(action, resource_arn, ctx):
                return False

            groups = list(principal.group_memberships) if principal else []

            if self._denied(principal_arn, action, resource_arn, ctx):
                return False
            if any(self._denied(group, action, resource_arn, ctx) for group in groups):
                return False

            if self._allowed(principal_arn, action, resource_arn, ctx):
                return True
            return any(self.can_access(group, action, resource_arn, ctx) for group in groups)

    def trusted_principals(self, role_arn: str) -> list[str]:
        """The principals named as trusted by a role, in the order they were added."""
        with self._lock:
            return list(self._trust.get(role_arn, []))

    def roles_can_assume(self, principal_arn: str) -> list[Principal]:
        """The known roles whose trust allows ``principal_arn`` (directly or via ``*``)."""
        with self._lock:
            return [
                self._principals[role_arn]
                for role_arn, trustors in self._trust.items()
                if role_arn in self._principals
                and any(t == principal_arn or t == PUBLIC_PRINCIPAL for t in trustors)
            ]

    def can_assume(self, principal_arn: str, role_arn: str) -> bool:
        """Whether ``principal_arn`` is trusted by ``role_arn``."""
        with self._lock:
            return any(
                t == principal_arn or t == PUBLIC_PRINCIPAL
                for t in self._trust.get(role_arn, [])
            )


def build(collection: CollectionResult) -> AccessGraph:
    """Build an access graph from everything collected for an account."""
    graph = AccessGraph()
    if collection.scp_attachments:
        graph.scps = filter_scps_for_account(
            collection.account_id, collection.scp_attachments, collection.ou_hierarchy
        )
    else:
        graph.scps = list(collection.scps)

    for principal in collection.principals:
        graph.add_principal(principal)
        for policy in principal.policies:
            graph.add_policy(principal.arn, policy)
        if principal.trust_policy is not None:
            graph.add_trust_policy(principal.arn, principal.trust_policy)

    for resource in collection.resources:
        graph.add_resource(resource)
        if resource.resource_policy is not None:
            graph.add_resource_policy(resource.arn, resource.resource_policy)

    return graph