from __future__ import annotations
"""Canned access levels expressed as bucket policy statements."""
import json

from .errors import InvalidArgument

POLICY_VERSION = "2012-10-17"
RESOURCE_PREFIX = "arn:aws:s3:::"

NONE = "none"
READ_ONLY = "readonly"
WRITE_ONLY = "writeonly"
READ_WRITE = "readwrite"
CANNED_ACCESS = (NONE, READ_ONLY, WRITE_ONLY, READ_WRITE)

READ_ACTIONS = ("s3:GetObject",)
WRITE_ACTIONS = (
    "s3:AbortMultipartUpload",
    "s3:DeleteObject",
    "s3:ListMultipartUploadParts",
    "s3:PutObject",
)


def object_resource(bucket: str, prefix: str) -> str:
    return f"{RESOURCE_PREFIX}{bucket}/{prefix}*"


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _is_public(statement: dict) -> bool:
    principal = statement.get("Principal")
    if principal == "*":
        return True
    if isinstance(principal, dict):
        return "*" in _as_list(principal.get("AWS"))
    return False


def load_statements(document: str) -> list[dict]:
    if not document:
        return []
    try:
        policy = json.loads(document)
    except ValueError:
        raise InvalidArgument("malformed bucket policy") from None
    return [statement for statement in _as_list(policy.get("Statement")) if isinstance(statement, dict)]


def _allowed_actions(statements: list[dict], resource: str) -> set[str]:
    actions: set[str] = set()
    for statement in statements:
        if statement.get("Effect") != "Allow" or not _is_public(statement):
            continue
        if resource in _as_list(statement.get("Resource")):
            actions.update(_as_list(statement.get("Action")))
    return actions


def access_for(document: str, bucket: str, prefix: str = "") -> str:
    """Return the canned access granted anonymously on ``bucket/prefix``."""

    actions = _allowed_actions(load_statements(document), object_resource(bucket, prefix))
    readable = set(READ_ACTIONS) <= actions
    writable = set(WRITE_ACTIONS) <= actions
    if readable and writable:
        return READ_WRITE
    if readable:
        return READ_ONLY
    if writable:
        return WRITE_ONLY
    return NONE


def access_rules(document: str, bucket: str) -> dict[str, str]:
    """Map every ``bucket/prefix*`` resource in the policy to its canned access."""

    statements = load_statements(document)
    rules: dict[str, str] = {}
    bucket_prefix = f"{RESOURCE_PREFIX}{bucket}/"
    for statement in statements:
        for resource in _as_list(statement.get("Resource")):
            if not isinstance(resource, str) or not resource.startswith(bucket_prefix):
                continue
            prefix = resource[len(bucket_prefix):].rstrip("*")
            access = access_for(document, bucket, prefix)
            if access != NONE:
                rules[resource[len(RESOURCE_PREFIX):]] = access
    return rules


def with_access(document: str, bucket: str, prefix: str, access: str) -> str:
    """Return ``document`` rewritten so ``bucket/prefix`` has ``access``.

    An empty string is returned when no statements remain.
    """

    if access not in CANNED_ACCESS:
        raise InvalidArgument(access)
    resource = object_resource(bucket, prefix)
    statements = []
    for statement in load_statements(document):
        resources = [value for value in _as_list(statement.get("Resource")) if value != resource]
        if not resources:
            continue
        statement = dict(statement)
        statement["Resource"] = resources
        statements.append(statement)

    actions: list[str] = []
    if access in (READ_ONLY, READ_WRITE):
        actions.extend(READ_ACTIONS)
    if access in (WRITE_ONLY, READ_WRITE):
        actions.extend(WRITE_ACTIONS)
    if actions:
        statements.append(
            {
                "Effect": "Allow",
                "Principal": {"AWS": ["*"]},
                "Action": actions,
                "Resource": [resource],
            }
        )
    if not statements:
        return ""
    return json.dumps({"Version": POLICY_VERSION, "Statement": statements})
