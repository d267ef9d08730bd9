import pytest

from iamgraph.conditions import (
    ConditionError,
    EvaluationContext,
    default_context,
    evaluate,
)

IP_CONDITION = {"IpAddress": {"aws:SourceIp": "203.0.113.0/24"}}
NOT_IP_CONDITION = {"NotIpAddress": {"aws:SourceIp": "203.0.113.0/24"}}
MFA_CONDITION = {"Bool": {"aws:MultiFactorAuthPresent": True}}
ORG_CONDITION = {"StringEquals": {"aws:PrincipalOrgID": "o-123456"}}
IP_AND_MFA_CONDITION = {
    "IpAddress": {"aws:SourceIp": "203.0.113.0/24"},
    "Bool": {"aws:MultiFactorAuthPresent": True},
}


def test_ip_restriction():
    assert evaluate(IP_CONDITION, EvaluationContext(source_ip="203.0.113.50")) is True
    assert evaluate(IP_CONDITION, EvaluationContext(source_ip="192.0.2.1")) is False


def test_ip_restriction_with_default_context_is_permissive():
    assert evaluate(IP_CONDITION, default_context()) is True
    assert evaluate(IP_CONDITION) is True


def test_mfa_required():
    assert evaluate(MFA_CONDITION, EvaluationContext(mfa_authenticated=True)) is True
    assert evaluate(MFA_CONDITION, EvaluationContext(mfa_authenticated=False)) is False


def test_mfa_value_as_string():
    condition = {"Bool": {"aws:MultiFactorAuthPresent": "true"}}
    assert evaluate(condition, EvaluationContext(mfa_authenticated=True)) is True
    assert evaluate(condition, EvaluationContext(mfa_authenticated=False)) is False


def test_org_id_restriction():
    assert evaluate(ORG_CONDITION, EvaluationContext(principal_org_id="o-123456")) is True
    assert evaluate(ORG_CONDITION, EvaluationContext(principal_org_id="o-999999")) is False


def test_deny_condition_not_ip_address():
    assert evaluate(NOT_IP_CONDITION, EvaluationContext(source_ip="203.0.113.50")) is False
    assert evaluate(NOT_IP_CONDITION, EvaluationContext(source_ip="192.0.2.1")) is True


@pytest.mark.parametrize(
    ("source_ip", "mfa", "expected"),
    [
        ("203.0.113.50", True, True),
        ("203.0.113.50", False, False),
        ("192.0.2.1", True, False),
        ("192.0.2.1", False, False),
    ],
)
def test_multiple_conditions_all_must_hold(source_ip, mfa, expected):
    ctx = EvaluationContext(source_ip=source_ip, mfa_authenticated=mfa)
    assert evaluate(IP_AND_MFA_CONDITION, ctx) is expected


def test_arn_like_principal_pattern():
    condition = {"ArnLike": {"aws:PrincipalArn": "arn:aws:iam::123456789012:user/dev-*"}}
    dev = EvaluationContext(principal_arn="arn:aws:iam::123456789012:user/dev-alice")
    ops = EvaluationContext(principal_arn="arn:aws:iam::123456789012:user/ops-bob")
    assert evaluate(condition, dev) is True
    assert evaluate(condition, ops) is False


def test_any_of_several_values_is_enough():
    condition = {"StringEquals": {"aws:PrincipalOrgID": ["o-999999", "o-123456"]}}
    assert evaluate(condition, EvaluationContext(principal_org_id="o-123456")) is True


def test_empty_conditions_always_hold():
    assert evaluate(None, EvaluationContext(source_ip="192.0.2.1")) is True
    assert evaluate({}, EvaluationContext(source_ip="192.0.2.1")) is True


def test_if_exists_suffix_is_accepted():
    condition = {"StringEqualsIfExists": {"aws:PrincipalOrgID": "o-123456"}}
    assert evaluate(condition, EvaluationContext()) is True
    assert evaluate(condition, EvaluationContext(principal_org_id="o-999999")) is False


def test_principal_tag_lookup():
    condition = {"StringEquals": {"aws:PrincipalTag/team": "dev"}}
    assert evaluate(condition, EvaluationContext(principal_tags={"team": "dev"})) is True
    assert evaluate(condition, EvaluationContext(principal_tags={"team": "ops"})) is False


def test_null_operator_checks_presence():
    condition = {"Null": {"aws:SourceIp": "true"}}
    assert evaluate(condition, EvaluationContext()) is True
    assert evaluate(condition, EvaluationContext(source_ip="192.0.2.1")) is False


def test_date_condition_uses_current_time():
    condition = {"DateGreaterThan": {"aws:CurrentTime": "2020-01-01T00:00:00Z"}}
    assert evaluate(condition, default_context()) is True


def test_unknown_operator_raises():
    with pytest.raises(ConditionError):
        evaluate({"StringSortOf": {"aws:PrincipalOrgID": "o-123456"}}, EvaluationContext())


def test_invalid_cidr_raises():
    condition = {"IpAddress": {"aws:SourceIp": "not-a-network"}}
    with pytest.raises(ConditionError):
        evaluate(condition, EvaluationContext(source_ip="203.0.113.50"))


def test_non_mapping_block_raises():
    with pytest.raises(ConditionError):
        evaluate({"StringEquals": "o-123456"}, EvaluationContext())