from __future__ import annotations
"""Normalized, cancelable stream of bucket notification events."""
import logging
import threading
from typing import Any, Optional
from urllib.parse import unquote_plus

from .backend import S3Backend, parse_event_time
from .errors import S3TreeError, translate_error
from .models import Event, EventType, ResourceAddress
from .streams import Channel

LOGGER = logging.getLogger(__name__)

CREATED_PREFIX = "s3:ObjectCreated:"
REMOVED_PREFIX = "s3:ObjectRemoved:"


class WatchObject:
    """Handle returned by a watch.

    ``events`` and ``errors`` are rendezvous channels; a consumer should
    drain both. :meth:`close` is the done signal: both channels reach the
    end of the stream and nothing is delivered afterwards.
    """

    def __init__(self) -> None:
        self.events: Channel[Event] = Channel()
        self.errors: Channel[S3TreeError] = Channel()
        self._done = threading.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def close(self) -> None:
        self._done.set()
        self.events.close()
        self.errors.close()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)

    def __enter__(self) -> "WatchObject":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def record_to_event(record: dict, address: ResourceAddress, client: Any) -> Optional[Event]:
    """Convert one notification record; ``None`` for unsupported event names."""

    name = record.get("eventName", "")
    if name.startswith(CREATED_PREFIX):
        event_type = EventType.CREATE
    elif name.startswith(REMOVED_PREFIX):
        event_type = EventType.REMOVE
    else:
        return None

    s3 = record.get("s3", {})
    bucket = s3.get("bucket", {}).get("name", "")
    info = s3.get("object", {})
    key = unquote_plus(info.get("key", ""))
    sep = address.separator
    path = sep + sep.join(part.strip(sep) for part in (bucket, key) if part.strip(sep))
    size = int(info.get("size", 0) or 0) if event_type is EventType.CREATE else 0
    return Event(
        time=parse_event_time(record.get("eventTime")),
        size=size,
        url=str(address.with_path(path)),
        client=client,
        type=event_type,
    )


def start_watch(
    backend: S3Backend,
    *,
    address: ResourceAddress,
    bucket: str,
    prefix: str,
    suffix: str,
    event_types: list[str],
    client: Any = None,
) -> WatchObject:
    """Open one backend subscription and republish it on a :class:`WatchObject`."""

    watch = WatchObject()
    stop = threading.Event()

    def supervise() -> None:
        watch.wait()
        stop.set()
        LOGGER.debug("Watch on bucket '%s' closed", bucket)

    def listen() -> None:
        notifications = iter(backend.listen_bucket_notification(bucket, prefix, suffix, event_types, stop))
        try:
            for info in notifications:
                if info.error is not None:
                    error = translate_error(info.error, bucket=bucket, path=str(address))
                    LOGGER.warning("Notification error on bucket '%s': %s", bucket, error)
                    if not watch.errors.send(error):
                        return
                    continue
                for record in info.records:
                    event = record_to_event(record, address, client)
                    if event is None:
                        continue
                    if not watch.events.send(event):
                        return
        except Exception as exc:
            LOGGER.exception("Notification listener failed for bucket '%s'", bucket)
            watch.errors.send(translate_error(exc, bucket=bucket, path=str(address)))
        finally:
            close = getattr(notifications, "close", None)
            if close is not None:
                close()

    LOGGER.debug("Watching bucket '%s' (prefix=%r, suffix=%r)", bucket, prefix, suffix)
    threading.Thread(target=supervise, name="s3-tree-watch-supervisor", daemon=True).start()
    threading.Thread(target=listen, name="s3-tree-watch-listener", daemon=True).start()
    return watch
