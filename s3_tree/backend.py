from __future__ import annotations
"""Narrow operation interface over a boto3 S3 client."""
import json
import logging
import threading
from datetime import datetime, timezone
from typing import BinaryIO, Callable, Iterator, Optional
from urllib.parse import quote, urlencode
import xml.etree.ElementTree as ElementTree

from botocore.auth import S3SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from botocore.exceptions import BotoCoreError, ClientError
from botocore.httpsession import URLLib3Session

from .models import BucketInfo, NotificationInfo, ObjectInfo, UploadInfo

LOGGER = logging.getLogger(__name__)

PAGE_SIZE = 1000
DEFAULT_REGION = "us-east-1"


class S3Backend:
    """Streams and single calls the adapter needs from the storage SDK.

    Listing generators never raise: a failure is yielded as a record with
    ``error`` set and the generator ends, as SDK listing streams do.
    """

    def __init__(
        self,
        client,
        *,
        endpoint_url: str = "",
        access_key: str = "",
        secret_key: str = "",
        region: str = DEFAULT_REGION,
        verify: bool = True,
        page_size: int = PAGE_SIZE,
        http_session_factory: Callable[[], object] | None = None,
    ):
        self._client = client
        self._endpoint_url = endpoint_url.rstrip("/")
        self._credentials = Credentials(access_key, secret_key)
        self._region = region or DEFAULT_REGION
        self._verify = verify
        self._page_size = max(int(page_size), 1)
        self._http_session_factory = http_session_factory or (lambda: URLLib3Session(verify=self._verify))

    @property
    def client(self):
        return self._client

    def list_buckets(self) -> list[BucketInfo]:
        response = self._client.list_buckets()
        return [
            BucketInfo(name=bucket["Name"], creation_date=bucket.get("CreationDate"))
            for bucket in response.get("Buckets", [])
        ]

    def bucket_exists(self, bucket: str) -> bool:
        try:
            self._client.head_bucket(Bucket=bucket)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in ("404", "NoSuchBucket", "NotFound"):
                return False
            raise
        return True

    def iter_objects(
        self,
        bucket: str,
        prefix: str = "",
        *,
        recursive: bool,
        delimiter: str = "/",
        use_v2: bool = False,
    ) -> Iterator[ObjectInfo]:
        """Yield objects under ``prefix``, and common prefixes unless recursive."""

        params = {"Bucket": bucket, "MaxKeys": self._page_size}
        if prefix:
            params["Prefix"] = prefix
        if not recursive:
            params["Delimiter"] = delimiter
        list_call = self._client.list_objects_v2 if use_v2 else self._client.list_objects
        marker: str | None = None

        while True:
            list_params = dict(params)
            if marker:
                list_params["ContinuationToken" if use_v2 else "Marker"] = marker
            try:
                response = list_call(**list_params)
            except (ClientError, BotoCoreError) as exc:
                yield ObjectInfo(error=exc)
                return

            contents = response.get("Contents", [])
            for entry in contents:
                yield ObjectInfo(
                    key=entry["Key"],
                    size=int(entry.get("Size", 0)),
                    last_modified=entry.get("LastModified"),
                    storage_class=entry.get("StorageClass"),
                )
            for common in response.get("CommonPrefixes", []):
                yield ObjectInfo(key=common["Prefix"])

            if not response.get("IsTruncated"):
                return
            if use_v2:
                marker = response.get("NextContinuationToken")
            else:
                marker = response.get("NextMarker") or (contents[-1]["Key"] if contents else None)
            if not marker:
                return

    def iter_incomplete_uploads(
        self,
        bucket: str,
        prefix: str = "",
        *,
        recursive: bool,
        delimiter: str = "/",
    ) -> Iterator[UploadInfo]:
        """Yield unfinished multipart uploads, sized by their uploaded parts."""

        params = {"Bucket": bucket, "MaxUploads": self._page_size}
        if prefix:
            params["Prefix"] = prefix
        if not recursive:
            params["Delimiter"] = delimiter
        key_marker: str | None = None
        upload_id_marker: str | None = None

        while True:
            list_params = dict(params)
            if key_marker:
                list_params["KeyMarker"] = key_marker
            if upload_id_marker:
                list_params["UploadIdMarker"] = upload_id_marker
            try:
                response = self._client.list_multipart_uploads(**list_params)
            except (ClientError, BotoCoreError) as exc:
                yield UploadInfo(error=exc)
                return

            for upload in response.get("Uploads", []):
                try:
                    size = self.upload_size(bucket, upload["Key"], upload["UploadId"])
                except (ClientError, BotoCoreError) as exc:
                    yield UploadInfo(error=exc)
                    return
                yield UploadInfo(
                    key=upload["Key"],
                    upload_id=upload["UploadId"],
                    initiated=upload.get("Initiated"),
                    size=size,
                )
            for common in response.get("CommonPrefixes", []):
                yield UploadInfo(key=common["Prefix"])

            if not response.get("IsTruncated"):
                return
            key_marker = response.get("NextKeyMarker")
            upload_id_marker = response.get("NextUploadIdMarker")
            if not key_marker and not upload_id_marker:
                return

    def upload_size(self, bucket: str, key: str, upload_id: str) -> int:
        total = 0
        part_marker = None
        while True:
            params = {"Bucket": bucket, "Key": key, "UploadId": upload_id}
            if part_marker:
                params["PartNumberMarker"] = part_marker
            response = self._client.list_parts(**params)
            total += sum(int(part.get("Size", 0)) for part in response.get("Parts", []))
            if not response.get("IsTruncated"):
                return total
            part_marker = response.get("NextPartNumberMarker")
            if not part_marker:
                return total

    def get_object(self, bucket: str, key: str) -> BinaryIO:
        response = self._client.get_object(Bucket=bucket, Key=key)
        return response["Body"]

    def put_object(self, bucket: str, key: str, body: BinaryIO, size: int, content_type: str) -> None:
        params = {"Bucket": bucket, "Key": key, "Body": body, "ContentType": content_type}
        if size >= 0:
            params["ContentLength"] = size
        self._client.put_object(**params)

    def copy_object(self, bucket: str, key: str, source: str) -> None:
        source_bucket, _, source_key = source.lstrip("/").partition("/")
        self._client.copy_object(
            Bucket=bucket,
            Key=key,
            CopySource={"Bucket": source_bucket, "Key": source_key},
        )

    def remove_object(self, bucket: str, key: str) -> None:
        self._client.delete_object(Bucket=bucket, Key=key)

    def remove_bucket(self, bucket: str) -> None:
        self._client.delete_bucket(Bucket=bucket)

    def remove_incomplete_upload(self, bucket: str, key: str) -> None:
        for upload in self.iter_incomplete_uploads(bucket, key, recursive=True):
            if upload.error is not None:
                raise upload.error
            if upload.key == key:
                self._client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload.upload_id)

    def make_bucket(self, bucket: str, region: str = "") -> None:
        params = {"Bucket": bucket}
        if region and region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        self._client.create_bucket(**params)

    def get_bucket_policy(self, bucket: str) -> str:
        """Return the bucket policy document, or ``""`` when none is set."""

        try:
            response = self._client.get_bucket_policy(Bucket=bucket)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "NoSuchBucketPolicy":
                return ""
            raise
        return response.get("Policy", "")

    def set_bucket_policy(self, bucket: str, policy: str) -> None:
        if not policy:
            self._client.delete_bucket_policy(Bucket=bucket)
            return
        self._client.put_bucket_policy(Bucket=bucket, Policy=policy)

    def get_bucket_notification(self, bucket: str) -> dict:
        response = self._client.get_bucket_notification_configuration(Bucket=bucket)
        return {key: value for key, value in response.items() if key != "ResponseMetadata"}

    def set_bucket_notification(self, bucket: str, configuration: dict) -> None:
        self._client.put_bucket_notification_configuration(
            Bucket=bucket,
            NotificationConfiguration=configuration,
        )

    def remove_all_bucket_notification(self, bucket: str) -> None:
        self.set_bucket_notification(bucket, {})

    def presigned_get_object(self, bucket: str, key: str, expires_in: int) -> str:
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=expires_in,
        )

    def presigned_post_policy(
        self,
        bucket: str,
        key: str,
        *,
        expires_in: int,
        starts_with: bool = False,
        content_type: str = "",
    ) -> dict:
        fields: dict[str, str] = {}
        conditions: list = []
        if starts_with:
            conditions.append(["starts-with", "$key", key])
            post_key = key + "${filename}"
        else:
            post_key = key
        if content_type:
            fields["Content-Type"] = content_type
            conditions.append({"Content-Type": content_type})
        return self._client.generate_presigned_post(
            Bucket=bucket,
            Key=post_key,
            Fields=fields or None,
            Conditions=conditions or None,
            ExpiresIn=expires_in,
        )

    def listen_bucket_notification(
        self,
        bucket: str,
        prefix: str,
        suffix: str,
        events: list[str],
        stop_event: threading.Event,
    ) -> Iterator[NotificationInfo]:
        """Stream MinIO bucket notifications until ``stop_event`` is set.

        The server keeps the response open and writes one JSON document per
        line, with blank lines as keep-alives. ``stop_event`` is checked
        between lines.
        """

        query = [("prefix", prefix), ("suffix", suffix)] + [("events", event) for event in events]
        url = f"{self._endpoint_url}/{quote(bucket)}?{urlencode(query)}"
        request = AWSRequest(method="GET", url=url, stream_output=True)
        try:
            S3SigV4Auth(self._credentials, "s3", self._region).add_auth(request)
            response = self._http_session_factory().send(request.prepare())
        except BotoCoreError as exc:
            yield NotificationInfo(error=exc)
            return

        raw = response.raw
        try:
            if response.status_code != 200:
                body = raw.read() if raw is not None else b""
                yield NotificationInfo(error=_listen_error(response.status_code, body))
                return
            LOGGER.debug("Listening for notifications on bucket '%s'", bucket)
            for line in raw:
                if stop_event.is_set():
                    break
                line = line.strip()
                if not line:
                    continue
                try:
                    payload = json.loads(line)
                except ValueError as exc:
                    yield NotificationInfo(error=exc)
                    continue
                records = payload.get("Records") or []
                if records:
                    yield NotificationInfo(records=records)
        except BotoCoreError as exc:
            yield NotificationInfo(error=exc)
        finally:
            if raw is not None:
                raw.close()


def _listen_error(status: int, body: bytes) -> ClientError:
    code = str(status)
    message = ""
    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError:
        root = None
    if root is not None:
        code = root.findtext("Code") or code
        message = root.findtext("Message") or ""
    return ClientError(
        {"Error": {"Code": code, "Message": message}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "ListenBucketNotification",
    )


def parse_event_time(value: object) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
