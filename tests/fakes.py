import io
from datetime import datetime, timezone

from botocore.exceptions import ClientError

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)
MODIFIED = datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)


def client_error(code, operation="Operation", message="error"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client."""

    def __init__(self, errors=None):
        self.buckets = {}
        self.errors = errors or {}
        self.calls = []
        self.policies = {}
        self.notifications = {}

    def add_bucket(self, name, created=CREATED):
        self.buckets.setdefault(name, {"created": created, "objects": {}, "uploads": []})
        return self

    def add_object(self, bucket, key, size=0, storage_class="STANDARD", data=None):
        self.add_bucket(bucket)
        if data is None:
            data = b"x" * size
        self.buckets[bucket]["objects"][key] = {
            "Size": len(data),
            "LastModified": MODIFIED,
            "StorageClass": storage_class,
            "Data": data,
        }
        return self

    def add_upload(self, bucket, key, upload_id, part_sizes=(5,), initiated=MODIFIED):
        self.add_bucket(bucket)
        self.buckets[bucket]["uploads"].append(
            {"Key": key, "UploadId": upload_id, "Initiated": initiated, "Parts": list(part_sizes)}
        )
        return self

    def calls_for(self, method):
        return [kwargs for name, kwargs in self.calls if name == method]

    def _record(self, method, /, **kwargs):
        self.calls.append((method, kwargs))
        error = self.errors.get((method, kwargs.get("Bucket"))) or self.errors.get((method, None))
        if error is not None:
            raise error

    def _bucket(self, name, operation):
        try:
            return self.buckets[name]
        except KeyError:
            raise client_error("NoSuchBucket", operation) from None

    @staticmethod
    def _group(names, prefix, delimiter):
        entries = {}
        for name in sorted(names):
            if prefix and not name.startswith(prefix):
                continue
            rest = name[len(prefix):]
            index = rest.find(delimiter) if delimiter else -1
            if index >= 0:
                common = prefix + rest[: index + len(delimiter)]
                entries[common] = "prefix"
            else:
                entries[name] = "key"
        return sorted(entries.items())

    def _page(self, bucket, kwargs, marker, operation):
        objects = self._bucket(bucket, operation)["objects"]
        entries = self._group(objects, kwargs.get("Prefix", ""), kwargs.get("Delimiter"))
        if marker:
            entries = [entry for entry in entries if entry[0] > marker]
        limit = kwargs.get("MaxKeys", 1000)
        page, rest = entries[:limit], entries[limit:]
        contents = []
        prefixes = []
        for name, kind in page:
            if kind == "prefix":
                prefixes.append({"Prefix": name})
            else:
                info = objects[name]
                contents.append(
                    {
                        "Key": name,
                        "Size": info["Size"],
                        "LastModified": info["LastModified"],
                        "StorageClass": info["StorageClass"],
                    }
                )
        response = {"Contents": contents, "CommonPrefixes": prefixes, "IsTruncated": bool(rest)}
        return response, (page[-1][0] if rest else None)

    def list_buckets(self):
        self._record("list_buckets")
        return {
            "Buckets": [
                {"Name": name, "CreationDate": info["created"]} for name, info in sorted(self.buckets.items())
            ]
        }

    def head_bucket(self, **kwargs):
        self._record("head_bucket", **kwargs)
        if kwargs["Bucket"] not in self.buckets:
            raise client_error("404", "HeadBucket", "Not Found")
        return {}

    def list_objects_v2(self, **kwargs):
        self._record("list_objects_v2", **kwargs)
        response, marker = self._page(kwargs["Bucket"], kwargs, kwargs.get("ContinuationToken"), "ListObjectsV2")
        if marker:
            response["NextContinuationToken"] = marker
        return response

    def list_objects(self, **kwargs):
        self._record("list_objects", **kwargs)
        response, marker = self._page(kwargs["Bucket"], kwargs, kwargs.get("Marker"), "ListObjects")
        if marker and kwargs.get("Delimiter"):
            response["NextMarker"] = marker
        return response

    def list_multipart_uploads(self, **kwargs):
        self._record("list_multipart_uploads", **kwargs)
        uploads = self._bucket(kwargs["Bucket"], "ListMultipartUploads")["uploads"]
        prefix = kwargs.get("Prefix", "")
        entries = self._group({upload["Key"] for upload in uploads}, prefix, kwargs.get("Delimiter"))
        response = {"Uploads": [], "CommonPrefixes": [], "IsTruncated": False}
        for name, kind in entries:
            if kind == "prefix":
                response["CommonPrefixes"].append({"Prefix": name})
                continue
            for upload in uploads:
                if upload["Key"] == name:
                    response["Uploads"].append(
                        {"Key": name, "UploadId": upload["UploadId"], "Initiated": upload["Initiated"]}
                    )
        return response

    def list_parts(self, **kwargs):
        self._record("list_parts", **kwargs)
        for upload in self._bucket(kwargs["Bucket"], "ListParts")["uploads"]:
            if upload["UploadId"] == kwargs["UploadId"]:
                parts = [
                    {"PartNumber": number, "Size": size} for number, size in enumerate(upload["Parts"], start=1)
                ]
                return {"Parts": parts, "IsTruncated": False}
        raise client_error("NoSuchUpload", "ListParts")

    def abort_multipart_upload(self, **kwargs):
        self._record("abort_multipart_upload", **kwargs)
        bucket = self._bucket(kwargs["Bucket"], "AbortMultipartUpload")
        bucket["uploads"] = [upload for upload in bucket["uploads"] if upload["UploadId"] != kwargs["UploadId"]]

    def get_object(self, **kwargs):
        self._record("get_object", **kwargs)
        objects = self._bucket(kwargs["Bucket"], "GetObject")["objects"]
        if kwargs["Key"] not in objects:
            raise client_error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(objects[kwargs["Key"]]["Data"])}

    def put_object(self, **kwargs):
        self._record("put_object", **{key: value for key, value in kwargs.items() if key != "Body"})
        self._bucket(kwargs["Bucket"], "PutObject")
        body = kwargs["Body"]
        chunks = []
        while True:
            chunk = body.read(4)
            if not chunk:
                break
            chunks.append(chunk)
        self.add_object(kwargs["Bucket"], kwargs["Key"], data=b"".join(chunks))
        return {}

    def copy_object(self, **kwargs):
        self._record("copy_object", **kwargs)
        source = kwargs["CopySource"]
        objects = self._bucket(source["Bucket"], "CopyObject")["objects"]
        if source["Key"] not in objects:
            raise client_error("NoSuchKey", "CopyObject")
        self._bucket(kwargs["Bucket"], "CopyObject")
        self.add_object(kwargs["Bucket"], kwargs["Key"], data=objects[source["Key"]]["Data"])
        return {}

    def delete_object(self, **kwargs):
        self._record("delete_object", **kwargs)
        self._bucket(kwargs["Bucket"], "DeleteObject")["objects"].pop(kwargs["Key"], None)

    def delete_bucket(self, **kwargs):
        self._record("delete_bucket", **kwargs)
        self._bucket(kwargs["Bucket"], "DeleteBucket")
        del self.buckets[kwargs["Bucket"]]

    def create_bucket(self, **kwargs):
        self._record("create_bucket", **kwargs)
        if kwargs["Bucket"] in self.buckets:
            raise client_error("BucketAlreadyOwnedByYou", "CreateBucket")
        self.add_bucket(kwargs["Bucket"])

    def get_bucket_policy(self, **kwargs):
        self._record("get_bucket_policy", **kwargs)
        self._bucket(kwargs["Bucket"], "GetBucketPolicy")
        if kwargs["Bucket"] not in self.policies:
            raise client_error("NoSuchBucketPolicy", "GetBucketPolicy")
        return {"Policy": self.policies[kwargs["Bucket"]]}

    def put_bucket_policy(self, **kwargs):
        self._record("put_bucket_policy", **kwargs)
        self.policies[kwargs["Bucket"]] = kwargs["Policy"]

    def delete_bucket_policy(self, **kwargs):
        self._record("delete_bucket_policy", **kwargs)
        self.policies.pop(kwargs["Bucket"], None)

    def get_bucket_notification_configuration(self, **kwargs):
        self._record("get_bucket_notification_configuration", **kwargs)
        self._bucket(kwargs["Bucket"], "GetBucketNotificationConfiguration")
        configuration = dict(self.notifications.get(kwargs["Bucket"], {}))
        configuration["ResponseMetadata"] = {"HTTPStatusCode": 200}
        return configuration

    def put_bucket_notification_configuration(self, **kwargs):
        self._record("put_bucket_notification_configuration", **kwargs)
        self.notifications[kwargs["Bucket"]] = kwargs["NotificationConfiguration"]

    def generate_presigned_url(self, client_method, Params=None, ExpiresIn=3600):
        self._record("generate_presigned_url", method=client_method, Params=Params, ExpiresIn=ExpiresIn)
        return f"https://signed/{Params['Bucket']}/{Params['Key']}?expires={ExpiresIn}"

    def generate_presigned_post(self, Bucket=None, Key=None, Fields=None, Conditions=None, ExpiresIn=3600):
        self._record(
            "generate_presigned_post",
            Bucket=Bucket,
            Key=Key,
            Fields=Fields,
            Conditions=Conditions,
            ExpiresIn=ExpiresIn,
        )
        fields = dict(Fields or {})
        fields["key"] = Key
        return {"url": f"https://signed/{Bucket}", "fields": fields}
