from __future__ import annotations
"""Filesystem-like adapter over one S3 URL."""
from datetime import timedelta
import io
import logging
import threading
from typing import BinaryIO, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from . import notifications, policy
from .address import is_virtual_host_style, split_bucket_object, validate_bucket_name
from .backend import S3Backend
from .errors import (
    BucketDoesNotExist,
    BucketNameEmpty,
    BucketNameTopLevel,
    InvalidArgument,
    ObjectMissing,
    S3TreeError,
    translate_error,
)
from .listing import V2_LIST_HOSTS, ErrorPolicy, ListingEngine
from .models import ContentItem, EntryType, NotificationConfig, ResourceAddress, WatchParams
from .settings import MAX_SHARE_EXPIRY_SECONDS, AdapterSettings
from .streams import ContentStream
from .watch import WatchObject, start_watch

LOGGER = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

_BACKEND_ERRORS = (ClientError, BotoCoreError)


class _ProgressReader:
    """Reports the running count of bytes read from the source to a callback.

    The count tracks reads, not bytes on the wire: the SDK may read the whole
    body for a checksum before sending it and rewind it on retries. A seek
    resets the count to the new position, so the callback can move backwards.
    """

    def __init__(self, reader: BinaryIO, size: int, callback: Optional[Callable[[int], None]]):
        self._reader = reader
        self._size = size
        self._callback = callback
        self.bytes_read = 0

    def read(self, amount: int = -1) -> bytes:
        data = self._reader.read(amount)
        if data:
            self.bytes_read += len(data)
            if self._callback:
                self._callback(self.bytes_read)
        elif amount != 0 and 0 <= self.bytes_read < self._size:
            raise EOFError(f"stream ended after {self.bytes_read} of {self._size} bytes")
        return data

    def seekable(self) -> bool:
        seekable = getattr(self._reader, "seekable", None)
        return bool(seekable and seekable())

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if not self.seekable():
            raise io.UnsupportedOperation("seek")
        position = self._reader.seek(offset, whence)
        self.bytes_read = position
        return position

    def tell(self) -> int:
        if self.seekable():
            return self._reader.tell()
        return self.bytes_read


class S3Client:
    """Presents the bucket/key space below one URL as a resource tree.

    ``list`` and ``stat`` on the same handle are serialized by a per-handle
    lock. Every backend error reaching a caller is a :class:`S3TreeError`.
    """

    def __init__(
        self,
        address: ResourceAddress | str,
        backend: S3Backend,
        *,
        virtual_style: bool | None = None,
        settings: AdapterSettings | None = None,
    ):
        if isinstance(address, str):
            address = ResourceAddress.parse(address)
        self._address = address
        self._backend = backend
        if virtual_style is None:
            virtual_style = is_virtual_host_style(address.host)
        self._virtual_style = virtual_style
        self._settings = settings or AdapterSettings()
        self._lock = threading.Lock()

    @property
    def url(self) -> ResourceAddress:
        return self._address

    @property
    def virtual_style(self) -> bool:
        return self._virtual_style

    def bucket_and_object(self) -> tuple[str, str]:
        return split_bucket_object(self._address, self._virtual_style)

    def _translate(self, exc: BaseException, bucket: str = "", object_name: str = "", **sizes: int) -> S3TreeError:
        return translate_error(exc, bucket=bucket, object_name=object_name, path=str(self._address), **sizes)

    def list(
        self,
        recursive: bool = False,
        incomplete: bool = False,
        error_policy: ErrorPolicy | str | None = None,
    ) -> ContentStream:
        """Start a listing and return its stream of :class:`ContentItem`."""

        if error_policy is None:
            error_policy = self._settings.item_error_policy
        resolved_policy = ErrorPolicy.parse(error_policy, ErrorPolicy.CONTINUE)
        with self._lock:
            engine = ListingEngine(
                self._backend,
                self._address,
                virtual_style=self._virtual_style,
                error_policy=resolved_policy,
            )
            LOGGER.debug(
                "Listing %s (recursive=%s, incomplete=%s, policy=%s)",
                self._address,
                recursive,
                incomplete,
                resolved_policy.value,
            )
            return ContentStream(engine.list(recursive=recursive, incomplete=incomplete)).start()

    def stat(self) -> ContentItem:
        """Return metadata for the bucket, object or directory at this URL."""

        with self._lock:
            bucket, object_name = self.bucket_and_object()
            if not bucket:
                raise BucketNameEmpty()
            if not object_name:
                try:
                    exists = self._backend.bucket_exists(bucket)
                except _BACKEND_ERRORS as exc:
                    raise self._translate(exc, bucket) from exc
                if not exists:
                    raise BucketDoesNotExist(bucket)
                return ContentItem(url=self._address, type=EntryType.DIRECTORY)

            sep = self._address.separator
            # Stat a directory with or without its trailing separator.
            object_name = object_name.rstrip(sep)
            is_directory = False
            objects = self._backend.iter_objects(
                bucket,
                object_name,
                recursive=False,
                delimiter=sep,
                use_v2=self._address.host in V2_LIST_HOSTS,
            )
            for info in objects:
                if info.error is not None:
                    raise self._translate(info.error, bucket, object_name) from info.error
                if info.key == object_name:
                    return ContentItem(
                        url=self._address,
                        size=info.size,
                        time=info.last_modified,
                        type=EntryType.OBJECT,
                    )
                if info.key.startswith(object_name + sep):
                    is_directory = True
            if is_directory:
                return ContentItem(url=self._address, type=EntryType.DIRECTORY)
            raise ObjectMissing(object_name)

    def get(self) -> BinaryIO:
        bucket, object_name = self.bucket_and_object()
        try:
            return self._backend.get_object(bucket, object_name)
        except _BACKEND_ERRORS as exc:
            raise self._translate(exc, bucket, object_name) from exc

    def put(
        self,
        reader: BinaryIO,
        size: int = -1,
        content_type: str = "",
        progress_callback: Optional[Callable[[int], None]] = None,
    ) -> int:
        """Upload ``reader`` to this URL and return the number of bytes read from it.

        ``progress_callback`` receives the cumulative bytes read from
        ``reader``. It may reach ``size`` before the request is sent and
        restart from zero when the SDK rewinds the body.
        """

        bucket, object_name = self.bucket_and_object()
        if not bucket:
            raise BucketNameEmpty()
        content_type = content_type or DEFAULT_CONTENT_TYPE
        body = _ProgressReader(reader, size, progress_callback)
        try:
            self._backend.put_object(bucket, object_name, body, size, content_type)
        except (*_BACKEND_ERRORS, EOFError) as exc:
            raise self._translate(
                exc, bucket, object_name, expected=size, written=body.bytes_read
            ) from exc
        return body.bytes_read

    def copy(
        self,
        source: str,
        size: int = 0,
        progress_callback: Optional[Callable[[int], None]] = None,
    ) -> None:
        """Server-side copy of ``source`` (``bucket/key``) to this URL."""

        bucket, object_name = self.bucket_and_object()
        if not bucket:
            raise BucketNameEmpty()
        try:
            self._backend.copy_object(bucket, object_name, source)
        except _BACKEND_ERRORS as exc:
            raise self._translate(exc, bucket, object_name) from exc
        if progress_callback:
            progress_callback(size)

    def remove(self, incomplete: bool = False) -> None:
        bucket, object_name = self.bucket_and_object()
        try:
            if incomplete and object_name:
                self._backend.remove_incomplete_upload(bucket, object_name)
            elif not object_name:
                self._backend.remove_bucket(bucket)
            else:
                self._backend.remove_object(bucket, object_name)
        except _BACKEND_ERRORS as exc:
            raise self._translate(exc, bucket, object_name) from exc

    def make_bucket(self, region: str = "") -> None:
        bucket, object_name = self.bucket_and_object()
        if object_name:
            raise BucketNameTopLevel()
        validate_bucket_name(bucket)
        try:
            self._backend.make_bucket(bucket, region)
        except _BACKEND_ERRORS as exc:
            raise self._translate(exc, bucket) from exc
        LOGGER.debug("Created bucket '%s'", bucket)

    def _policy_document(self, bucket: str) -> str:
        try:
            return self._backend.get_bucket_policy(bucket)
        except _BACKEND_ERRORS as exc:
            raise self._translate(exc, bucket) from exc

    def get_access(self) -> str:
        """Return the canned access (``none``, ``readonly``, ...) of this URL."""

        bucket, object_name = self.bucket_and_object()
        if not bucket:
            raise BucketNameEmpty()
        return policy.access_for(self._policy_document(bucket), bucket, object_name)

    def set_access(self, access: str) -> None:
        bucket, object_name = self.bucket_and_object()
        if not bucket:
            raise BucketNameEmpty()
        if access not in policy.CANNED_ACCESS:
            raise InvalidArgument(access)
        document = policy.with_access(self._policy_document(bucket), bucket, object_name, access)
        try:
            self._backend.set_bucket_policy(bucket, document)
        except _BACKEND_ERRORS as exc:
            raise self._translate(exc, bucket) from exc

    def get_access_rules(self) -> dict[str, str]:
        bucket, _ = self.bucket_and_object()
        if not bucket:
            raise BucketNameEmpty()
        return policy.access_rules(self._policy_document(bucket), bucket)

    def _notification_bucket(self) -> str:
        bucket, _ = self.bucket_and_object()
        validate_bucket_name(bucket)
        return bucket

    def add_notification_config(self, arn: str, events: list[str], prefix: str = "", suffix: str = "") -> None:
        bucket = self._notification_bucket()
        target = notifications.Arn.parse(arn)
        event_types = notifications.event_types(events)
        try:
            configuration = self._backend.get_bucket_notification(bucket)
            configuration = notifications.add_rule(configuration, target, event_types, prefix, suffix)
            self._backend.set_bucket_notification(bucket, configuration)
        except _BACKEND_ERRORS as exc:
            raise self._translate(exc, bucket) from exc

    def remove_notification_config(self, arn: str = "") -> None:
        """Remove the rules for ``arn``, or every rule when ``arn`` is empty."""

        bucket = self._notification_bucket()
        target = notifications.Arn.parse(arn) if arn else None
        try:
            if target is None:
                self._backend.remove_all_bucket_notification(bucket)
                return
            configuration = self._backend.get_bucket_notification(bucket)
            self._backend.set_bucket_notification(bucket, notifications.remove_rules(configuration, target))
        except _BACKEND_ERRORS as exc:
            raise self._translate(exc, bucket) from exc

    def list_notification_configs(self, arn: str = "") -> list[NotificationConfig]:
        bucket = self._notification_bucket()
        try:
            configuration = self._backend.get_bucket_notification(bucket)
        except _BACKEND_ERRORS as exc:
            raise self._translate(exc, bucket) from exc
        return notifications.list_rules(configuration, arn)

    def watch(self, params: WatchParams) -> WatchObject:
        """Subscribe to create/remove events below this URL.

        Raises:
            InvalidArgument: for unknown event names, or when the URL names
                an object and ``params.prefix`` is also set.
        """

        with self._lock:
            bucket, object_name = self.bucket_and_object()
            validate_bucket_name(bucket)
            event_types = notifications.event_types(params.events)
            prefix = params.prefix
            if object_name and prefix:
                raise InvalidArgument(prefix, object_name)
            if object_name:
                prefix = object_name
        return start_watch(
            self._backend,
            address=self._address,
            bucket=bucket,
            prefix=prefix,
            suffix=params.suffix,
            event_types=event_types,
            client=self,
        )

    def unwatch(self, params: WatchParams) -> None:
        # Subscriptions hold no server-side state; they end with WatchObject.close().
        bucket, _ = self.bucket_and_object()
        validate_bucket_name(bucket)

    def _expiry(self, expires: int | float | timedelta | None) -> int:
        if expires is None:
            return self._settings.share_expiry_seconds
        if isinstance(expires, timedelta):
            seconds = int(expires.total_seconds())
        else:
            seconds = int(expires)
        if seconds <= 0 or seconds > MAX_SHARE_EXPIRY_SECONDS:
            raise InvalidArgument(f"expiry must be between 1 and {MAX_SHARE_EXPIRY_SECONDS} seconds")
        return seconds

    def share_download(self, expires: int | float | timedelta | None = None) -> str:
        """Return a presigned GET URL for this object."""

        bucket, object_name = self.bucket_and_object()
        expires_in = self._expiry(expires)
        try:
            return self._backend.presigned_get_object(bucket, object_name, expires_in)
        except _BACKEND_ERRORS as exc:
            raise self._translate(exc, bucket, object_name) from exc

    def share_upload(
        self,
        recursive: bool = False,
        expires: int | float | timedelta | None = None,
        content_type: str = "",
    ) -> tuple[str, dict[str, str]]:
        """Return the URL and form fields of a presigned POST upload."""

        bucket, object_name = self.bucket_and_object()
        if not bucket:
            raise BucketNameEmpty()
        expires_in = self._expiry(expires)
        try:
            post = self._backend.presigned_post_policy(
                bucket,
                object_name,
                expires_in=expires_in,
                starts_with=recursive,
                content_type=content_type.strip(),
            )
        except _BACKEND_ERRORS as exc:
            raise self._translate(exc, bucket, object_name) from exc
        return post["url"], dict(post.get("fields", {}))
