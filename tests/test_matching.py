import pytest

from iamgraph.matching import (
    matches_action,
    matches_not_action,
    matches_not_resource,
    matches_resource,
)


@pytest.mark.parametrize(
    ("pattern", "action", "expected"),
    [
        ("*", "anything:anything", True),
        ("*", "*", True),
        ("s3:*", "s3:GetObject", True),
        ("s3:*", "s3:ListBucket", True),
        ("s3:*", "iam:CreateUser", False),
        ("s3:*", "ec2:RunInstances", False),
        ("s3:Get*", "s3:GetObject", True),
        ("s3:Get*", "s3:PutObject", False),
        ("*:Delete*", "iam:DeleteUser", True),
        ("*:Delete*", "iam:CreateUser", False),
        ("s3:GetObject", "s3:GetObject", True),
        ("s3:getobject", "s3:GetObject", True),
    ],
)
def test_matches_action(pattern, action, expected):
    assert matches_action(pattern, action) is expected


@pytest.mark.parametrize(
    ("pattern", "arn", "expected"),
    [
        ("*", "arn:aws:s3:::bucket/key", True),
        ("arn:aws:s3:::my-bucket/*", "arn:aws:s3:::my-bucket/key.txt", True),
        ("arn:aws:s3:::my-bucket/*", "arn:aws:s3:::my-bucket/dir/file.pdf", True),
        ("arn:aws:s3:::my-bucket/*", "arn:aws:s3:::other-bucket/key.txt", False),
        ("arn:aws:s3:::my-bucket/*", "arn:aws:s3:::my-bucket", False),
        ("arn:aws:s3:::prod-*", "arn:aws:s3:::prod-data", True),
        ("arn:aws:s3:::prod-*", "arn:aws:s3:::dev-data", False),
        ("arn:aws:s3:::production-*/*", "arn:aws:s3:::production-data/file.txt", True),
        ("arn:aws:s3:::my-bucket", "arn:aws:s3:::My-Bucket", False),
        ("arn:aws:s3:::my.bucket", "arn:aws:s3:::myxbucket", False),
    ],
)
def test_matches_resource(pattern, arn, expected):
    assert matches_resource(pattern, arn) is expected


def test_resource_pattern_matches_itself():
    pattern = "arn:aws:s3:::bucket/*"
    assert matches_resource(pattern, pattern) is True


@pytest.mark.parametrize(
    ("patterns", "action", "expected"),
    [
        (["s3:Delete*"], "s3:GetObject", True),
        (["s3:Delete*"], "s3:DeleteObject", False),
        (["s3:Delete*"], "iam:CreateUser", True),
        (["s3:Get*", "s3:List*"], "s3:ListBucket", False),
        (["s3:Get*", "s3:List*"], "s3:PutObject", True),
        ([], "s3:DeleteObject", True),
    ],
)
def test_matches_not_action(patterns, action, expected):
    assert matches_not_action(patterns, action) is expected


@pytest.mark.parametrize(
    ("patterns", "arn", "expected"),
    [
        (
            ["arn:aws:s3:::production-*/*", "arn:aws:s3:::production-*"],
            "arn:aws:s3:::dev-bucket/file.txt",
            True,
        ),
        (
            ["arn:aws:s3:::production-*/*", "arn:aws:s3:::production-*"],
            "arn:aws:s3:::production-app/file.txt",
            False,
        ),
        (["arn:aws:s3:::sensitive-*/*"], "arn:aws:s3:::sensitive-data/secret.txt", False),
        ([], "arn:aws:s3:::test-bucket", True),
    ],
)
def test_matches_not_resource(patterns, arn, expected):
    assert matches_not_resource(patterns, arn) is expected