"""
Live navigation model.

A ``NavigationView`` is what a rendered sidebar holds on to: the ordered
routes the current role can open.  It subscribes to the update channel on
construction and recomputes its items on every signal, so an administrator
switching a route off removes it from every open sidebar at once.

The view owns its subscription.  ``close()`` (or leaving a ``with`` block)
releases it; a closed view no longer refreshes.
"""

from __future__ import annotations

from typing import Optional

from routegate.models import RoutePermission
from routegate.propagation import UpdateChannel
from routegate.rbac import AccessEvaluator


class NavigationView:
    """The routes one role can open, kept current from the update channel.

    ``items`` is recomputed on construction and after every signal;
    ``refresh_count`` counts those recomputations.
    """

    def __init__(
        self,
        evaluator: AccessEvaluator,
        channel: UpdateChannel,
        role: Optional[str],
    ) -> None:
        self._evaluator = evaluator
        self._role = role
        self.items: tuple[RoutePermission, ...] = ()
        self.refresh_count = 0
        self.refresh()
        self._subscription = channel.subscribe(self.refresh)

    @property
    def role(self) -> Optional[str]:
        return self._role

    @property
    def closed(self) -> bool:
        return not self._subscription.active

    def refresh(self) -> None:
        self.items = self._evaluator.get_accessible_routes(self._role)
        self.refresh_count += 1

    def set_role(self, role: Optional[str]) -> None:
        """Switch to another role (login, logout) and re-derive immediately."""
        self._role = role
        self.refresh()

    def paths(self) -> list[str]:
        return [item.path for item in self.items]

    def is_active(self, path: str) -> bool:
        return any(item.path == path for item in self.items)

    def close(self) -> None:
        self._subscription.close()

    def __enter__(self) -> NavigationView:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
