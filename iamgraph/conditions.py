"""Evaluation of IAM condition blocks against a request context."""

from __future__ import annotations

import ipaddress
import operator
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, NamedTuple

from .matching import matches_resource
from .model import PolicyDocument


class ConditionError(ValueError):
    """Raised when a condition block cannot be evaluated."""


@dataclass
class EvaluationContext:
    """Facts about a request; ``None`` means the fact is unknown.

    Conditions on unknown keys are treated as satisfied.
    """

    source_ip: str | None = None
    mfa_authenticated: bool | None = None
    principal_org_id: str | None = None
    principal_arn: str | None = None
    secure_transport: bool | None = None
    requested_region: str | None = None
    current_time: datetime | None = None
    principal_tags: dict[str, str] = field(default_factory=dict)
    session_policy: PolicyDocument | None = None


def default_context() -> EvaluationContext:
    """A permissive context that only knows the current time."""
    return EvaluationContext(current_time=datetime.now(timezone.utc))


_CONTEXT_KEYS: dict[str, Callable[[EvaluationContext], Any]] = {
    "aws:sourceip": lambda ctx: ctx.source_ip,
    "aws:multifactorauthpresent": lambda ctx: ctx.mfa_authenticated,
    "aws:principalorgid": lambda ctx: ctx.principal_org_id,
    "aws:principalarn": lambda ctx: ctx.principal_arn,
    "aws:securetransport": lambda ctx: ctx.secure_transport,
    "aws:requestedregion": lambda ctx: ctx.requested_region,
    "aws:currenttime": lambda ctx: ctx.current_time,
}

_TAG_PREFIX = "aws:principaltag/"


def _context_values(key: str, ctx: EvaluationContext) -> list[Any] | None:
    lowered = key.lower()
    if lowered.startswith(_TAG_PREFIX):
        value = ctx.principal_tags.get(key[len(_TAG_PREFIX):])
    else:
        getter = _CONTEXT_KEYS.get(lowered)
        value = getter(ctx) if getter else None
    if value is None:
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _as_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ConditionError(f"unsupported condition value {value!r}")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ConditionError(f"not a boolean: {value!r}")


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        raise ConditionError(f"not a number: {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConditionError(f"not a number: {value!r}") from exc


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ConditionError(f"not a date: {value!r}") from exc
    else:
        raise ConditionError(f"not a date: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _string_equals(actual: Any, expected: Any) -> bool:
    return _as_str(actual) == _as_str(expected)


def _string_equals_ignore_case(actual: Any, expected: Any) -> bool:
    return _as_str(actual).casefold() == _as_str(expected).casefold()


def _string_like(actual: Any, expected: Any) -> bool:
    return matches_resource(_as_str(expected), _as_str(actual))


def _ip_in_range(actual: Any, expected: Any) -> bool:
    try:
        address = ipaddress.ip_address(_as_str(actual))
        network = ipaddress.ip_network(_as_str(expected), strict=False)
    except ValueError as exc:
        raise ConditionError(f"invalid IP condition: {actual!r} / {expected!r}") from exc
    return address.version == network.version and address in network


def _bool_equals(actual: Any, expected: Any) -> bool:
    return _as_bool(actual) == _as_bool(expected)


def _numeric(compare: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    return lambda actual, expected: compare(_as_number(actual), _as_number(expected))


def _date(compare: Callable[[datetime, datetime], bool]) -> Callable[[Any, Any], bool]:
    return lambda actual, expected: compare(_as_datetime(actual), _as_datetime(expected))


class _Operator(NamedTuple):
    compare: Callable[[Any, Any], bool]
    negated: bool = False


_OPERATORS: dict[str, _Operator] = {
    "StringEquals": _Operator(_string_equals),
    "StringNotEquals": _Operator(_string_equals, True),
    "StringEqualsIgnoreCase": _Operator(_string_equals_ignore_case),
    "StringNotEqualsIgnoreCase": _Operator(_string_equals_ignore_case, True),
    "StringLike": _Operator(_string_like),
    "StringNotLike": _Operator(_string_like, True),
    "ArnEquals": _Operator(_string_like),
    "ArnLike": _Operator(_string_like),
    "ArnNotEquals": _Operator(_string_like, True),
    "ArnNotLike": _Operator(_string_like, True),
    "IpAddress": _Operator(_ip_in_range),
    "NotIpAddress": _Operator(_ip_in_range, True),
    "Bool": _Operator(_bool_equals),
    "NumericEquals": _Operator(_numeric(operator.eq)),
    "NumericNotEquals": _Operator(_numeric(operator.eq), True),
    "NumericLessThan": _Operator(_numeric(operator.lt)),
    "NumericLessThanEquals": _Operator(_numeric(operator.le)),
    "NumericGreaterThan": _Operator(_numeric(operator.gt)),
    "NumericGreaterThanEquals": _Operator(_numeric(operator.ge)),
    "DateEquals": _Operator(_date(operator.eq)),
    "DateNotEquals": _Operator(_date(operator.eq), True),
    "DateLessThan": _Operator(_date(operator.lt)),
    "DateLessThanEquals": _Operator(_date(operator.le)),
    "DateGreaterThan": _Operator(_date(operator.gt)),
    "DateGreaterThanEquals": _Operator(_date(operator.ge)),
}

_QUALIFIERS = ("ForAnyValue", "ForAllValues")
_IF_EXISTS = "IfExists"


def _split_operator(name: str) -> tuple[str | None, str]:
    qualifier = None
    base = name
    if ":" in base:
        qualifier, base = base.split(":", 1)
        if qualifier not in _QUALIFIERS:
            raise ConditionError(f"unknown condition qualifier {qualifier!r}")
    if base.endswith(_IF_EXISTS):
        base = base[: -len(_IF_EXISTS)]
    if base != "Null" and base not in _OPERATORS:
        raise ConditionError(f"unsupported condition operator {name!r}")
    return qualifier, base


def _evaluate_null(block: dict[str, Any], ctx: EvaluationContext) -> bool:
    for key, expected in block.items():
        absent = _context_values(key, ctx) is None
        wants_absent = any(_as_bool(value) for value in _as_list(expected))
        if absent != wants_absent:
            return False
    return True


def _evaluate_key(
    op: _Operator, qualifier: str | None, actual_values: list[Any], expected: list[Any]
) -> bool:
    def satisfied(actual: Any) -> bool:
        matched = any(op.compare(actual, value) for value in expected)
        return not matched if op.negated else matched

    if qualifier == "ForAllValues":
        return all(satisfied(actual) for actual in actual_values)
    return any(satisfied(actual) for actual in actual_values)


def evaluate(
    conditions: dict[str, dict[str, Any]] | None,
    context: EvaluationContext | None = None,
) -> bool:
    """Whether every condition in the block holds for ``context``.

    Operators and keys are combined with AND, the values of one key with OR.
    Raises ConditionError for operators or values that cannot be evaluated.
    """
    if not conditions:
        return True
    ctx = context if context is not None else default_context()
    result = True
    for name, block in conditions.items():
        if not isinstance(block, dict):
            raise ConditionError(f"condition block for {name!r} is not a mapping")
        qualifier, base = _split_operator(name)
        if base == "Null":
            result = _evaluate_null(block, ctx) and result
            continue
        op = _OPERATORS[base]
        for key, expected in block.items():
            actual_values = _context_values(key, ctx)
            if actual_values is None:
                continue
            if not _evaluate_key(op, qualifier, actual_values, _as_list(expected)):
                result = False
    return result