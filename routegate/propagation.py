"""
Update Propagation Channel.

A process-wide, in-memory publish/subscribe primitive.  Registries publish
after every committed mutation; live consumers (navigation views, admin
screens) subscribe and re-read the registries when signalled.

The channel carries no payload.  Every listener re-derives its view from
the current registry state, so concurrent edits can never deliver a stale
or partial delta.

Subscriptions are explicit handles.  A consumer must release its handle on
teardown; ``Subscription`` is a context manager so a view can scope it::

    with channel.subscribe(view.refresh):
        ...  # view is live here

Delivery is synchronous and in registration order.  A listener that raises
is logged and skipped; later listeners still receive the signal.
"""

from __future__ import annotations

import itertools
import threading
from typing import Callable, Optional

from loguru import logger


Listener = Callable[[], None]


class Subscription:
    """Handle returned by ``UpdateChannel.subscribe``.

    ``close()`` is idempotent and equivalent to
    ``channel.unsubscribe(handle)``.
    """

    def __init__(self, channel: UpdateChannel, token: int, listener: Listener) -> None:
        self._channel = channel
        self._token = token
        self.listener = listener

    @property
    def token(self) -> int:
        return self._token

    @property
    def active(self) -> bool:
        return self._channel._is_subscribed(self._token)

    def close(self) -> None:
        self._channel.unsubscribe(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "active" if self.active else "closed"
        return f"<Subscription {self._token} {state}>"


class UpdateChannel:
    """Signal-only publish/subscribe channel scoped to one process.

    Thread safe: the subscriber table is guarded by a lock, and listeners
    are invoked outside it against a snapshot taken when ``publish()``
    starts.  A listener subscribed during a publish first fires on the next
    one; a listener unsubscribed during a publish may still receive that
    in-flight signal.
    """

    def __init__(self, name: str = "registry") -> None:
        self.name = name
        self._listeners: dict[int, Listener] = {}
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Subscription:
        """Register ``listener`` and return its subscription handle.

        Raises:
            TypeError: If ``listener`` is not callable.
        """
        if not callable(listener):
            raise TypeError(f"listener must be callable, got {type(listener).__name__}")
        with self._lock:
            token = next(self._counter)
            self._listeners[token] = listener
        return Subscription(self, token, listener)

    def unsubscribe(self, handle: Optional[Subscription]) -> bool:
        """Release a subscription.

        Safe to call any number of times, and with ``None``.

        Returns:
            True if the handle was live and has now been removed.
        """
        if handle is None:
            return False
        with self._lock:
            return self._listeners.pop(handle.token, None) is not None

    def publish(self) -> int:
        """Signal every current subscriber.

        Returns:
            The number of listeners that completed without raising.
        """
        with self._lock:
            listeners = list(self._listeners.items())

        delivered = 0
        for token, listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception(
                    f"Listener {token} on channel '{self.name}' failed; continuing delivery"
                )
            else:
                delivered += 1
        return delivered

    def _is_subscribed(self, token: int) -> bool:
        with self._lock:
            return token in self._listeners

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)
