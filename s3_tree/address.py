from __future__ import annotations
"""Bucket/object resolution for path-style and virtual-host-style URLs."""
from fnmatch import fnmatchcase
import re

from .errors import BucketInvalid, BucketNameEmpty
from .models import ResourceAddress

AMAZON_HOST_NAME = "s3.amazonaws.com"
GOOGLE_HOST_NAME = "storage.googleapis.com"

_AMAZON_PATTERN = "*.s3*.amazonaws.com"
_GOOGLE_PATTERN = "*.storage.googleapis.com"

# Dotted names are accepted; such buckets fall back to path-style requests.
_VALID_BUCKET_NAME = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")


def is_amazon(host: str) -> bool:
    return fnmatchcase(host, _AMAZON_PATTERN)


def is_google(host: str) -> bool:
    return fnmatchcase(host, _GOOGLE_PATTERN)


def is_virtual_host_style(host: str) -> bool:
    """Only Amazon S3 and Google Cloud Storage hosts are virtual-host style."""

    return is_amazon(host) or is_google(host)


def normalize_host(host: str) -> str:
    """Return the service endpoint host for a virtual-host-style host."""

    if is_amazon(host):
        return AMAZON_HOST_NAME
    if is_google(host):
        return GOOGLE_HOST_NAME
    return host


def split_bucket_object(address: ResourceAddress, virtual_style: bool) -> tuple[str, str]:
    """Return ``(bucket, object)`` for ``address``.

    For virtual-host-style hosts the bucket is the part of the host before
    the provider marker and is prepended to the path before splitting.
    Missing components are returned as empty strings.
    """

    sep = address.separator
    path = address.path
    if virtual_style:
        index = address.host.find("s3")
        if index == -1:
            index = address.host.find("storage.googleapis")
        if index > 0:
            bucket = address.host[: index - 1]
            path = sep + bucket + address.path
    fields = path.split(sep, 2)
    if len(fields) == 1:
        return "", ""
    if len(fields) == 2:
        return fields[1], ""
    return fields[1], fields[2]


def is_valid_bucket_name(name: str) -> bool:
    return _VALID_BUCKET_NAME.fullmatch(name) is not None


def validate_bucket_name(name: str) -> None:
    """Raise unless ``name`` is an acceptable bucket name."""

    if not name.strip():
        raise BucketNameEmpty()
    if len(name) < 3 or len(name) > 63:
        raise BucketInvalid(name, "Bucket name should be more than 3 characters and less than 64 characters")
    if not is_valid_bucket_name(name):
        raise BucketInvalid(
            name,
            "Bucket name can contain alphabet, '-' and numbers, but first character should be an alphabet or number",
        )
