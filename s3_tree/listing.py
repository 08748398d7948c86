from __future__ import annotations
"""Directory-style enumeration of a flat bucket/key namespace."""
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Callable, Iterable, Iterator, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .address import AMAZON_HOST_NAME, split_bucket_object
from .backend import S3Backend
from .errors import ObjectOnGlacier, translate_error
from .models import BucketInfo, ContentItem, EntryType, ObjectInfo, ResourceAddress, UploadInfo

LOGGER = logging.getLogger(__name__)

# Objects in these classes cannot be read without a restore request.
ARCHIVE_STORAGE_CLASSES = frozenset({"GLACIER", "DEEP_ARCHIVE"})

# Hosts known to implement ListObjectsV2.
V2_LIST_HOSTS = frozenset({AMAZON_HOST_NAME})


class ErrorPolicy(Enum):
    """What a listing does after emitting a per-item error."""

    CONTINUE = "continue"
    STOP = "stop"

    @classmethod
    def parse(cls, value: "ErrorPolicy | str | None", default: "ErrorPolicy") -> "ErrorPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ListingEngine:
    """Produces :class:`ContentItem` entries for one listing call.

    The engine works on its own snapshot of the client address. Bucket
    listing failures end the enumeration after one error item; object and
    upload errors are reported inline and then handled per ``error_policy``.
    """

    def __init__(
        self,
        backend: S3Backend,
        address: ResourceAddress,
        *,
        virtual_style: bool,
        error_policy: ErrorPolicy = ErrorPolicy.CONTINUE,
        clock: Callable[[], datetime] | None = None,
    ):
        self._backend = backend
        self._address = address
        self._sep = address.separator
        self._virtual_style = virtual_style
        self._stop_on_error = error_policy is ErrorPolicy.STOP
        self._now = clock or _utcnow
        self._use_v2 = address.host in V2_LIST_HOSTS
        self._bucket, self._object = split_bucket_object(address, virtual_style)

    def list(self, *, recursive: bool, incomplete: bool) -> Iterator[ContentItem]:
        if incomplete:
            return self._list_incomplete(recursive=recursive)
        if recursive:
            return self._list_recursive()
        return self._list_flat()

    def _list_flat(self) -> Iterator[ContentItem]:
        bucket, prefix = self._bucket, self._object
        if not bucket and not prefix:
            buckets, failure = self._fetch_buckets()
            if failure is not None:
                yield failure
                return
            for info in buckets:
                yield ContentItem(
                    url=self._item_url(info.name, ""),
                    time=info.creation_date,
                    type=EntryType.DIRECTORY,
                )
            return

        if bucket and not prefix and not self._address.path.endswith(self._sep):
            buckets, failure = self._fetch_buckets()
            if failure is not None:
                yield failure
                return
            for info in buckets:
                if info.name == bucket:
                    yield ContentItem(url=self._address, time=info.creation_date, type=EntryType.DIRECTORY)
                    break
            return

        objects = self._backend.iter_objects(
            bucket, prefix, recursive=False, delimiter=self._sep, use_v2=self._use_v2
        )
        for info in objects:
            if info.error is not None:
                yield self._error_item(info.error, bucket, prefix)
                if self._stop_on_error:
                    return
                continue
            yield self._flat_entry(bucket, info)

    def _list_recursive(self) -> Iterator[ContentItem]:
        bucket, prefix = self._bucket, self._object
        if not bucket and not prefix:
            buckets, failure = self._fetch_buckets()
            if failure is not None:
                yield failure
                return
            for info in buckets:
                yield ContentItem(
                    url=self._item_url(info.name, ""),
                    time=info.creation_date,
                    type=EntryType.DIRECTORY,
                )
                objects = self._backend.iter_objects(
                    info.name, "", recursive=True, delimiter=self._sep, use_v2=self._use_v2
                )
                if not (yield from self._recursive_entries(info.name, objects, skip_markers=False)):
                    return
            return

        objects = self._backend.iter_objects(
            bucket, prefix, recursive=True, delimiter=self._sep, use_v2=self._use_v2
        )
        yield from self._recursive_entries(bucket, objects, skip_markers=True)

    def _recursive_entries(
        self, bucket: str, objects: Iterable[ObjectInfo], *, skip_markers: bool
    ):
        """Yield recursive entries; return ``False`` when the listing must stop."""

        for info in objects:
            if info.storage_class in ARCHIVE_STORAGE_CLASSES:
                LOGGER.debug("Skipping archived object '%s/%s'", bucket, info.key)
                yield ContentItem(error=ObjectOnGlacier(info.key))
                continue
            if info.error is not None:
                yield self._error_item(info.error, bucket, self._object)
                if self._stop_on_error:
                    return False
                continue
            if skip_markers and info.size == 0 and info.key.endswith(self._sep):
                continue
            yield ContentItem(
                url=self._item_url(bucket, info.key),
                size=info.size,
                time=info.last_modified,
                type=EntryType.OBJECT,
            )
        return True

    def _list_incomplete(self, *, recursive: bool) -> Iterator[ContentItem]:
        if not self._bucket and not self._object:
            buckets, failure = self._fetch_buckets()
            if failure is not None:
                yield failure
                return
            targets = [info.name for info in buckets]
        else:
            targets = [self._bucket]

        for bucket in targets:
            uploads = self._backend.iter_incomplete_uploads(
                bucket, self._object, recursive=recursive, delimiter=self._sep
            )
            for upload in uploads:
                if upload.error is not None:
                    yield self._error_item(upload.error, bucket, self._object)
                    if self._stop_on_error:
                        return
                    continue
                yield self._upload_entry(bucket, upload, recursive=recursive)

    def _flat_entry(self, bucket: str, info: ObjectInfo) -> ContentItem:
        url = self._item_url(bucket, info.key)
        if info.key.endswith(self._sep):
            # Markers and common prefixes carry no usable modification time.
            return ContentItem(url=url, time=self._now(), type=EntryType.DIRECTORY)
        return ContentItem(url=url, size=info.size, time=info.last_modified, type=EntryType.OBJECT)

    def _upload_entry(self, bucket: str, upload: UploadInfo, *, recursive: bool) -> ContentItem:
        url = self._item_url(bucket, upload.key)
        if not recursive and upload.key.endswith(self._sep):
            return ContentItem(url=url, time=self._now(), type=EntryType.DIRECTORY)
        return ContentItem(
            url=url,
            size=upload.size,
            time=upload.initiated,
            type=EntryType.INCOMPLETE_UPLOAD,
        )

    def _fetch_buckets(self) -> tuple[list[BucketInfo], Optional[ContentItem]]:
        try:
            return self._backend.list_buckets(), None
        except (ClientError, BotoCoreError) as exc:
            return [], self._error_item(exc, "", "")

    def _error_item(self, exc: BaseException, bucket: str, object_name: str) -> ContentItem:
        error = translate_error(exc, bucket=bucket, object_name=object_name, path=str(self._address))
        LOGGER.warning("Listing error for '%s': %s", self._address, error)
        return ContentItem(error=error)

    def _item_url(self, bucket: str, key: str) -> ResourceAddress:
        """URL of an entry; virtual-host URLs carry the bucket in the host."""

        if not self._bucket:
            parts = [self._address.path, bucket, key]
        elif self._virtual_style:
            parts = [key]
        else:
            parts = [bucket, key]
        segments = [part.strip(self._sep) for part in parts if part.strip(self._sep)]
        path = self._sep + self._sep.join(segments)
        if key.endswith(self._sep) and not path.endswith(self._sep):
            path += self._sep
        return self._address.with_path(path)
