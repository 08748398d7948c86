from __future__ import annotations
"""Domain errors and translation of backend error codes."""
from typing import Optional

from botocore.exceptions import ClientError, IncompleteReadError


class S3TreeError(Exception):
    """Base class for every error raised by the adapter."""


class InvalidArgument(S3TreeError):
    def __init__(self, *details: str):
        self.details = tuple(details)
        message = "Invalid argument"
        if details:
            message = f"{message}: {', '.join(details)}"
        super().__init__(message)


class BucketNameEmpty(S3TreeError):
    def __init__(self):
        super().__init__("Bucket name cannot be empty.")


class BucketNameTopLevel(S3TreeError):
    def __init__(self):
        super().__init__("Buckets can only be created at the top level.")


class BucketInvalid(S3TreeError):
    def __init__(self, bucket: str, reason: str = ""):
        self.bucket = bucket
        super().__init__(reason or f"Bucket name '{bucket}' is not valid.")


class BucketDoesNotExist(S3TreeError):
    def __init__(self, bucket: str):
        self.bucket = bucket
        super().__init__(f"Bucket '{bucket}' does not exist.")


class ObjectMissing(S3TreeError):
    def __init__(self, object_name: str = ""):
        self.object_name = object_name
        super().__init__("Object does not exist.")


class ObjectAlreadyExists(S3TreeError):
    def __init__(self, object_name: str):
        self.object_name = object_name
        super().__init__(f"Object '{object_name}' already exists.")


class ObjectAlreadyExistsAsDirectory(S3TreeError):
    def __init__(self, object_name: str):
        self.object_name = object_name
        super().__init__(f"Object '{object_name}' already exists as a directory.")


class ObjectOnGlacier(S3TreeError):
    def __init__(self, object_name: str):
        self.object_name = object_name
        super().__init__(f"Object '{object_name}' is archived and must be restored before it can be read.")


class PathInsufficientPermission(S3TreeError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Insufficient permissions to access '{path}'.")


class UnexpectedShortWrite(S3TreeError):
    def __init__(self, expected: int, written: int):
        self.expected = expected
        self.written = written
        super().__init__(f"Wrote {written} bytes, expected {expected} bytes.")


class BackendError(S3TreeError):
    """Opaque wrapper for backend failures without a domain mapping."""

    def __init__(self, code: str = "", cause: Optional[BaseException] = None):
        self.code = code
        self.cause = cause
        if cause is not None:
            message = str(cause)
        else:
            message = f"Backend error: {code}" if code else "Backend error"
        super().__init__(message)


UNEXPECTED_EOF = "UnexpectedEOF"


def error_from_code(
    code: str,
    *,
    bucket: str = "",
    object_name: str = "",
    path: str = "",
    expected: int = 0,
    written: int = 0,
    cause: Optional[BaseException] = None,
) -> S3TreeError:
    """Map a backend error code to a domain error. Never returns ``None``."""

    if code == "AccessDenied":
        return PathInsufficientPermission(path)
    if code == "NoSuchBucket":
        return BucketDoesNotExist(bucket)
    if code == "InvalidBucketName":
        return BucketInvalid(bucket)
    if code in ("NoSuchKey", "InvalidArgument"):
        return ObjectMissing(object_name)
    if code == UNEXPECTED_EOF:
        return UnexpectedShortWrite(expected, written)
    if code == "MethodNotAllowed":
        return ObjectAlreadyExists(object_name)
    if code == "XMinioObjectExistsAsDirectory":
        return ObjectAlreadyExistsAsDirectory(object_name)
    return BackendError(code, cause)


def error_code(exc: BaseException) -> str:
    """Return the backend code carried by ``exc``, or an empty string."""

    if isinstance(exc, (EOFError, IncompleteReadError)):
        return UNEXPECTED_EOF
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code") or "")
        if code in ("404", "NotFound"):
            # HEAD requests carry no body, only the status.
            return "NoSuchKey" if exc.operation_name == "HeadObject" else "NoSuchBucket"
        if code in ("403", "Forbidden"):
            return "AccessDenied"
        return code
    return ""


def translate_error(
    exc: BaseException,
    *,
    bucket: str = "",
    object_name: str = "",
    path: str = "",
    expected: int = 0,
    written: int = 0,
) -> S3TreeError:
    """Translate any exception raised by the SDK into a domain error."""

    if isinstance(exc, S3TreeError):
        return exc
    return error_from_code(
        error_code(exc),
        bucket=bucket,
        object_name=object_name,
        path=path,
        expected=expected,
        written=written,
        cause=exc,
    )
