"""Allowlist guards that can block a request before identity policies are consulted.

Service control policies, permission boundaries and session policies all work
the same way: an action must be explicitly allowed by them, and an explicit
deny in them overrides that allow.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .conditions import ConditionError, EvaluationContext, evaluate
from .matching import (
    matches_action,
    matches_not_action,
    matches_not_resource,
    matches_resource,
)
from .model import (
    Effect,
    OUHierarchy,
    PolicyDocument,
    Principal,
    SCPAttachment,
    SCPTargetType,
    Statement,
    normalize_values,
)

logger = logging.getLogger(__name__)


def is_root_user(arn: str) -> bool:
    """Whether ``arn`` names an account's root user (``...:root`` or ``...:root/``)."""
    return arn.endswith(":root") or arn.endswith(":root/")


def filter_scps_for_account(
    account_id: str,
    attachments: Iterable[SCPAttachment],
    ou_hierarchy: OUHierarchy | None,
) -> list[PolicyDocument]:
    """The service control policies that apply to ``account_id``.

    Policies attached to the organization root always apply, account targets
    apply when the ID matches, and OU targets apply when the OU is one of the
    account's parents. Without a known hierarchy every OU-attached policy is
    kept, so that no deny is missed.
    """
    parent_ous = set(ou_hierarchy.parent_ous) if ou_hierarchy is not None else set()

    def target_applies(target_type: str, target_id: str) -> bool:
        if target_type == SCPTargetType.ROOT:
            return True
        if target_type == SCPTargetType.ACCOUNT:
            return target_id == account_id
        if target_type == SCPTargetType.ORGANIZATIONAL_UNIT:
            return ou_hierarchy is None or target_id in parent_ous
        return False

    return [
        attachment.policy
        for attachment in attachments
        if any(target_applies(target.type, target.id) for target in attachment.targets)
    ]


def _statement_matches(statement: Statement, action: str, resource_arn: str) -> bool:
    actions = normalize_values(statement.action)
    not_actions = normalize_values(statement.not_action)
    resources = normalize_values(statement.resource)
    not_resources = normalize_values(statement.not_resource)

    if not_actions and not actions:
        actions = ["*"]
    if not_resources and not resources:
        resources = ["*"]

    if not any(matches_action(pattern, action) for pattern in actions):
        return False
    if not_actions and not matches_not_action(not_actions, action):
        return False
    if not any(matches_resource(pattern, resource_arn) for pattern in resources):
        return False
    if not_resources and not matches_not_resource(not_resources, resource_arn):
        return False
    return True


def _explicitly_allows(
    policies: Iterable[PolicyDocument],
    action: str,
    resource_arn: str,
    context: EvaluationContext | None,
    kind: str,
) -> bool:
    for policy in policies:
        for statement in policy.statements:
            if statement.effect != Effect.ALLOW:
                continue
            if not _statement_matches(statement, action, resource_arn):
                continue
            if statement.condition:
                try:
                    if not evaluate(statement.condition, context):
                        continue
                except ConditionError as exc:
                    logger.warning(
                        "Failed to evaluate %s allow condition (policy %s): %s "
                        "(skipping this allow)",
                        kind,
                        policy.id,
                        exc,
                    )
                    continue
            return True
    return False


def _explicitly_denies(
    policies: Iterable[PolicyDocument],
    action: str,
    resource_arn: str,
    context: EvaluationContext | None,
    kind: str,
) -> bool:
    for policy in policies:
        for statement in policy.statements:
            if statement.effect != Effect.DENY:
                continue
            if not _statement_matches(statement, action, resource_arn):
                continue
            if statement.condition:
                try:
                    if not evaluate(statement.condition, context):
                        continue
                except ConditionError as exc:
                    logger.warning(
                        "Failed to evaluate %s deny condition (policy %s): %s "
                        "(treating as deny)",
                        kind,
                        policy.id,
                        exc,
                    )
                    return True
            return True
    return False


def _blocked_by(
    policies: list[PolicyDocument],
    action: str,
    resource_arn: str,
    context: EvaluationContext | None,
    kind: str,
) -> bool:
    if not _explicitly_allows(policies, action, resource_arn, context, kind):
        return True
    return _explicitly_denies(policies, action, resource_arn, context, kind)


def blocked_by_policy(
    policy: PolicyDocument,
    action: str,
    resource_arn: str,
    context: EvaluationContext | None,
) -> bool:
    """Whether an allowlist policy blocks ``action`` on ``resource_arn``.

    Blocked when no statement allows the request or when a statement denies
    it. An allow whose condition cannot be evaluated is ignored; a deny whose
    condition cannot be evaluated applies.
    """
    return _blocked_by([policy], action, resource_arn, context, "policy")


def is_blocked_by_scps(
    scps: list[PolicyDocument],
    principal_arn: str,
    action: str,
    resource_arn: str,
    context: EvaluationContext | None,
) -> bool:
    """Whether the organization's service control policies block the request.

    The root user and accounts without SCPs are never blocked.
    """
    if is_root_user(principal_arn) or not scps:
        return False
    return _blocked_by(scps, action, resource_arn, context, "SCP")


def is_blocked_by_boundary(
    principal: Principal | None,
    action: str,
    resource_arn: str,
    context: EvaluationContext | None,
) -> bool:
    """Whether the principal's permissions boundary blocks the request.

    An unknown principal or one without a boundary is never blocked.
    """
    if principal is None or principal.permissions_boundary is None:
        return False
    return _blocked_by(
        [principal.permissions_boundary], action, resource_arn, context, "boundary"
    )


def is_blocked_by_session_policy(
    action: str,
    resource_arn: str,
    context: EvaluationContext | None,
) -> bool:
    """Whether the session policy carried in ``context`` blocks the request."""
    if context is None or context.session_policy is None:
        return False
    return _blocked_by(
        [context.session_policy], action, resource_arn, context, "session policy"
    )