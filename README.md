# iamgraph

`iamgraph` builds an in-memory access graph from IAM-style policy documents
and answers the question *"can this principal perform this action on this
resource?"*. It has no dependencies beyond the standard library.

`AccessGraph.can_access` evaluates a request in this order:

1. Service control policies (`graph.scps`) must explicitly allow the request
   and must not deny it. The root user (an ARN ending in `:root` or `:root/`)
   and graphs without SCPs are exempt.
2. The principal's `permissions_boundary`, if it has one, must allow the
   request and must not deny it.
3. The `session_policy` of the evaluation context, if there is one, must allow
   the request and must not deny it.
4. An explicit deny of the principal, or of any group in its
   `group_memberships`, refuses access.
5. An explicit allow of the principal grants access; otherwise each group is
   checked in turn with the same rules.
6. Anything else is denied.

`Action`/`NotAction`, `Resource`/`NotResource`, `*` and `?` wildcards and
condition blocks are taken into account. Action names are matched without
regard to case; resource ARNs are matched exactly.

## Installation

```
pip install iamgraph
```

To run the test suite, install the `test` extra as well and run `pytest`:

```
pip install "iamgraph[test]"
pytest
```

## Usage

```python
from iamgraph.model import CollectionResult, Effect, PolicyDocument, Principal, PrincipalType, Statement
from iamgraph.graph import build
from iamgraph.conditions import EvaluationContext

policy = PolicyDocument(
    version="2012-10-17",
    statements=[
        Statement(
            sid="AllowFromOfficeIP",
            effect=Effect.ALLOW,
            action="*",
            resource="*",
            condition={"IpAddress": {"aws:SourceIp": "203.0.113.0/24"}},
        )
    ],
)

admin = Principal(
    arn="arn:aws:iam::123456789012:user/admin",
    type=PrincipalType.USER,
    name="admin",
    policies=[policy],
)

graph = build(CollectionResult(principals=[admin]))

office = EvaluationContext(source_ip="203.0.113.50")
home = EvaluationContext(source_ip="192.0.2.1")

graph.can_access(admin.arn, "s3:GetObject", "arn:aws:s3:::bucket/key", office)  # True
graph.can_access(admin.arn, "s3:GetObject", "arn:aws:s3:::bucket/key", home)    # False
```

The graph can also be filled by hand with `add_principal`, `add_resource`,
`add_edge`, `add_policy`, `add_trust_policy`, `add_resource_policy` and
`add_trust_relation`; `get_principal`, `get_resource`, `all_principals` and
`all_resources` read it back.

In resource policies, the principals `*` and `arn:aws:iam::*:root` are mapped
to a public principal with ARN `*`, which is added to the graph on first use.

### Conditions

`iamgraph.conditions.evaluate(conditions, context)` checks a condition block
against an `EvaluationContext`. The context knows `source_ip`,
`mfa_authenticated`, `principal_org_id`, `principal_arn`, `secure_transport`,
`requested_region`, `current_time`, `principal_tags` (for
`aws:PrincipalTag/<key>`) and `session_policy`. A condition on a key whose
value is `None` (unknown) is treated as met.

Supported operators are the `String*`, `Arn*`, `IpAddress`/`NotIpAddress`,
`Bool`, `Numeric*`, `Date*` and `Null` families, with the `IfExists` suffix
and the `ForAnyValue:`/`ForAllValues:` qualifiers. Unknown operators and
values that cannot be read raise `ConditionError`. In `can_access` such a
failure makes a deny apply and makes an allow be skipped.

Without a context, `can_access` uses `default_context()`, which only knows the
current time, so conditions on other keys are treated as met.

### Role trust

Trust policies attached to roles become trust relations:

```python
graph.trusted_principals("arn:aws:iam::123456789012:role/MyRole")  # list of ARNs
graph.roles_can_assume("arn:aws:iam::123456789012:user/alice")     # list of Principal
graph.can_assume("arn:aws:iam::123456789012:user/alice", "arn:aws:iam::123456789012:role/MyRole")
```

A trust relation to `*` lets any principal assume the role.

### Service control policies

When a `CollectionResult` carries `scp_attachments`, `build` keeps only the
SCPs that apply to its `account_id`: those attached to the organization root,
to the account itself, or to one of the OUs in `ou_hierarchy`. Without a
hierarchy every OU-attached SCP is kept. Otherwise the `scps` list is used
as it stands. See `iamgraph.guards.filter_scps_for_account`.

## What it does not do

`iamgraph` does not fetch anything from a cloud account: you build the
`CollectionResult` (principals, resources, SCPs) yourself. It has no
command-line tool and does not store graphs anywhere; everything lives in
memory.

## Modules

- `iamgraph.model`: policy documents, statements, principals, resources, SCP attachments and collection results.
- `iamgraph.matching`: wildcard matching for actions and resource ARNs.
- `iamgraph.conditions`: the evaluation context and condition evaluation.
- `iamgraph.guards`: SCP, permissions boundary and session policy checks.
- `iamgraph.graph`: `AccessGraph`, `PermissionEdge` and `build()`.