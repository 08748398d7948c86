from __future__ import annotations
"""Rendezvous channel and the lazily consumed listing stream."""
import logging
import threading
from typing import Generic, Iterable, Iterator, Optional, TypeVar

from .errors import translate_error
from .models import ContentItem

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_EMPTY = object()


class Channel(Generic[T]):
    """Unbuffered hand-off between producer threads and a consumer.

    :meth:`send` returns only once a receiver has taken the item, so a
    producer can never run ahead of its consumer. After :meth:`close`
    pending and future sends return ``False`` and receivers see the end of
    the stream; nothing is delivered after close.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._item: object = _EMPTY
        self._closed = False
        self._sent = 0
        self._received = 0

    def send(self, item: T) -> bool:
        with self._cond:
            self._cond.wait_for(lambda: self._item is _EMPTY or self._closed)
            if self._closed:
                return False
            self._item = item
            self._sent += 1
            ticket = self._sent
            self._cond.notify_all()
            self._cond.wait_for(lambda: self._received >= ticket or self._closed)
            return self._received >= ticket

    def receive(self, timeout: Optional[float] = None) -> tuple[Optional[T], bool]:
        """Return ``(item, True)``, or ``(None, False)`` once closed.

        Raises:
            TimeoutError: when ``timeout`` elapses with nothing to receive.
        """

        with self._cond:
            ready = self._cond.wait_for(lambda: self._item is not _EMPTY or self._closed, timeout)
            if not ready:
                raise TimeoutError("no item received before timeout")
            if self._item is _EMPTY:
                return None, False
            item = self._item
            self._item = _EMPTY
            self._received += 1
            self._cond.notify_all()
            return item, True  # type: ignore[return-value]

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._item = _EMPTY
            self._cond.notify_all()

    def __iter__(self) -> Iterator[T]:
        while True:
            item, ok = self.receive()
            if not ok:
                return
            yield item  # type: ignore[misc]


class ContentStream:
    """Pull-based stream of :class:`ContentItem` fed by one producer thread.

    Not restartable. :meth:`close` is the cancellation signal: the producer
    stops at its next hand-off and no further items are delivered.
    """

    def __init__(self, items: Iterable[ContentItem], *, name: str = "s3-tree-list"):
        self._channel: Channel[ContentItem] = Channel()
        self._thread = threading.Thread(target=self._produce, args=(items,), name=name, daemon=True)

    def start(self) -> "ContentStream":
        self._thread.start()
        return self

    def _produce(self, items: Iterable[ContentItem]) -> None:
        iterator = iter(items)
        try:
            for item in iterator:
                if not self._channel.send(item):
                    LOGGER.debug("Listing cancelled by consumer")
                    break
        except Exception as exc:
            LOGGER.exception("Listing producer failed")
            self._channel.send(ContentItem(error=translate_error(exc)))
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()
            self._channel.close()

    def __iter__(self) -> "ContentStream":
        return self

    def __next__(self) -> ContentItem:
        item, ok = self._channel.receive()
        if not ok:
            raise StopIteration
        return item  # type: ignore[return-value]

    def receive(self, timeout: Optional[float] = None) -> tuple[Optional[ContentItem], bool]:
        return self._channel.receive(timeout)

    def close(self) -> None:
        self._channel.close()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def __enter__(self) -> "ContentStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
