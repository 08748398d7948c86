from __future__ import annotations
"""Bucket notification rules: ARN parsing and configuration editing."""
from dataclasses import dataclass
from typing import Iterable

from .errors import InvalidArgument
from .models import NotificationConfig

OBJECT_CREATED_ALL = "s3:ObjectCreated:*"
OBJECT_REMOVED_ALL = "s3:ObjectRemoved:*"

EVENT_TYPES = {
    "put": OBJECT_CREATED_ALL,
    "delete": OBJECT_REMOVED_ALL,
}

# service -> (configuration section, ARN field)
_TARGETS = {
    "sns": ("TopicConfigurations", "TopicArn"),
    "sqs": ("QueueConfigurations", "QueueArn"),
    "lambda": ("LambdaFunctionConfigurations", "LambdaFunctionArn"),
}


@dataclass(frozen=True)
class Arn:
    partition: str
    service: str
    region: str
    account_id: str
    resource: str

    @classmethod
    def parse(cls, arn: str) -> "Arn":
        fields = arn.split(":")
        if len(fields) != 6:
            raise InvalidArgument(*fields)
        if fields[2] not in _TARGETS:
            raise InvalidArgument(fields[2])
        return cls(*fields[1:])

    def __str__(self) -> str:
        return ":".join(["arn", self.partition, self.service, self.region, self.account_id, self.resource])


def event_types(events: Iterable[str]) -> list[str]:
    """Map ``put``/``delete`` to backend event types."""

    result = []
    for event in events:
        try:
            result.append(EVENT_TYPES[event])
        except KeyError:
            raise InvalidArgument(event) from None
    return result


def add_rule(configuration: dict, arn: Arn, events: list[str], prefix: str = "", suffix: str = "") -> dict:
    """Return a copy of ``configuration`` with a new rule for ``arn``."""

    section, arn_field = _TARGETS[arn.service]
    rule: dict = {arn_field: str(arn), "Events": list(events)}
    filter_rules = []
    if prefix:
        filter_rules.append({"Name": "prefix", "Value": prefix})
    if suffix:
        filter_rules.append({"Name": "suffix", "Value": suffix})
    if filter_rules:
        rule["Filter"] = {"Key": {"FilterRules": filter_rules}}

    updated = dict(configuration)
    updated[section] = list(configuration.get(section, [])) + [rule]
    return updated


def remove_rules(configuration: dict, arn: Arn) -> dict:
    """Return a copy of ``configuration`` without the rules targeting ``arn``."""

    section, arn_field = _TARGETS[arn.service]
    updated = dict(configuration)
    remaining = [rule for rule in configuration.get(section, []) if rule.get(arn_field) != str(arn)]
    if remaining:
        updated[section] = remaining
    else:
        updated.pop(section, None)
    return updated


def list_rules(configuration: dict, arn: str = "") -> list[NotificationConfig]:
    configs: list[NotificationConfig] = []
    for section, arn_field in _TARGETS.values():
        for rule in configuration.get(section, []):
            target = rule.get(arn_field, "")
            if arn and target != arn:
                continue
            prefix, suffix = _filters(rule)
            configs.append(
                NotificationConfig(
                    id=rule.get("Id", ""),
                    arn=target,
                    events=list(rule.get("Events", [])),
                    prefix=prefix,
                    suffix=suffix,
                )
            )
    return configs


def _filters(rule: dict) -> tuple[str, str]:
    prefix = suffix = ""
    for filter_rule in rule.get("Filter", {}).get("Key", {}).get("FilterRules", []):
        name = str(filter_rule.get("Name", "")).lower()
        if name == "prefix":
            prefix = filter_rule.get("Value", "")
        elif name == "suffix":
            suffix = filter_rule.get("Value", "")
    return prefix, suffix
