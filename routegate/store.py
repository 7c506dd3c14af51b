"""
Registry Store -- the single owner of shared permission state.

Roles, routes and users live in one immutable ``RegistryState``.  Readers
grab the current state reference and never lock.  Writers are serialized
by one lock: each write works on a ``_Draft`` copy, and the new state is
swapped in with a single assignment only if the write completes.  A write
that raises leaves the previous state in place untouched.

The update channel is signalled after the swap and after the lock is
released, so a listener that re-reads the registries always sees the
committed state and may itself issue further writes.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from types import MappingProxyType
from typing import Iterator, Mapping, NamedTuple, Optional

from routegate.config import RegistrySettings
from routegate.models import RoleDefinition, RoutePermission, User
from routegate.propagation import UpdateChannel


class RegistryState(NamedTuple):
    """Immutable snapshot of all registry contents.

    Mappings preserve insertion order, which is the creation order the
    listing operations promise.
    """

    roles: Mapping[str, RoleDefinition]
    routes: Mapping[str, RoutePermission]
    users: Mapping[str, User]


_EMPTY = RegistryState(MappingProxyType({}), MappingProxyType({}), MappingProxyType({}))


class _Draft:
    """Mutable working copy of a ``RegistryState`` used inside a write."""

    def __init__(self, state: RegistryState) -> None:
        self.roles: dict[str, RoleDefinition] = dict(state.roles)
        self.routes: dict[str, RoutePermission] = dict(state.routes)
        self.users: dict[str, User] = dict(state.users)
        self.changed = False

    def freeze(self) -> RegistryState:
        return RegistryState(
            MappingProxyType(self.roles),
            MappingProxyType(self.routes),
            MappingProxyType(self.users),
        )


class RegistryStore:
    """Copy-on-write container shared by the role, route and user registries.

    One store per process (or per test).  Construct it explicitly and pass
    it to the registries; nothing in the package reaches for a global.
    """

    def __init__(
        self,
        channel: Optional[UpdateChannel] = None,
        settings: Optional[RegistrySettings] = None,
    ) -> None:
        self.channel = channel if channel is not None else UpdateChannel()
        self.settings = settings if settings is not None else RegistrySettings()
        self._state = _EMPTY
        self._write_lock = threading.RLock()
        self._depth = 0
        self._current_draft: Optional[_Draft] = None

    @property
    def state(self) -> RegistryState:
        """The current committed snapshot."""
        return self._state

    @contextmanager
    def transaction(self) -> Iterator[_Draft]:
        """Open a serialized write.

        The body mutates the yielded draft and sets ``draft.changed`` when
        it actually modified something.  On normal exit a changed draft is
        committed and the channel is signalled exactly once.  If the body
        raises, the draft is discarded and nothing is published.

        Nested transactions on the same thread join the outer one; only the
        outermost commits and publishes.
        """
        with self._write_lock:
            if self._depth:
                yield self._current_draft
                return

            draft = _Draft(self._state)
            self._current_draft = draft
            self._depth += 1
            try:
                yield draft
            finally:
                self._depth -= 1
                self._current_draft = None
            if draft.changed:
                self._state = draft.freeze()

        if draft.changed:
            self.channel.publish()
