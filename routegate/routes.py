"""
Route Permission Registry.

Holds the route entries that drive both navigation and authorization.
Creation order is significant: it is the order navigation renders in and
the order ``get_accessible_routes`` returns.

A route's ``path`` is its stable identity.  It is fixed at creation; an
update patch may only touch ``label``, ``allowed_roles`` and ``enabled``.
``set_enabled`` is the hot path for administrators switching a page off
for everyone, so it is exposed directly.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Mapping, Optional, Union

from loguru import logger

from routegate.errors import (
    DuplicateRouteError,
    InvalidInputError,
    NotFoundError,
    invalid_input,
    require_text,
)
from routegate.models import RoutePatch, RoutePermission
from routegate.store import RegistryStore, _Draft

_IMMUTABLE_FIELDS = ("id", "path")


class RouteRegistry:
    """CRUD over the route permissions held in a ``RegistryStore``."""

    def __init__(self, store: RegistryStore) -> None:
        self._store = store

    # -- queries --

    def list_routes(self) -> tuple[RoutePermission, ...]:
        """Return all routes, enabled or not, in creation order."""
        return tuple(self._store.state.routes.values())

    def get_route(self, route_id: str) -> RoutePermission:
        """Return the route with ``route_id``.

        Raises:
            NotFoundError: If no route has that id.
        """
        try:
            return self._store.state.routes[route_id]
        except KeyError:
            raise NotFoundError(f"No route registered with id '{route_id}'") from None

    def find_by_path(self, path: str) -> Optional[RoutePermission]:
        """Return the route whose path equals ``path`` exactly, or None."""
        for route in self._store.state.routes.values():
            if route.path == path:
                return route
        return None

    # -- mutations --

    def create_route(
        self,
        path: str,
        label: str,
        allowed_roles: Iterable[str] = (),
        enabled: bool = True,
        route_id: Optional[str] = None,
    ) -> RoutePermission:
        """Register a new route.

        Args:
            path: Exact route path; must be unique.
            label: Navigation label.
            allowed_roles: Role ids that may access the route.
            enabled: Whether the route takes part in access decisions.
            route_id: Fixed id (seeding); a uuid is assigned when omitted.

        Raises:
            InvalidInputError: If ``path`` or ``label`` is empty, or a role is
                unknown while known roles are enforced.
            DuplicateRouteError: If ``path`` or ``route_id`` is taken.
        """
        require_text(path, "path")
        require_text(label, "label")
        if route_id is not None:
            require_text(route_id, "route_id")

        with invalid_input():
            route = RoutePermission(
                id=route_id or str(uuid.uuid4()),
                path=path,
                label=label,
                allowed_roles=allowed_roles,
                enabled=enabled,
            )

        with self._store.transaction() as draft:
            if any(r.path == path for r in draft.routes.values()):
                raise DuplicateRouteError(f"Route '{path}' already registered.")
            if route.id in draft.routes:
                raise DuplicateRouteError(f"Route id '{route.id}' already registered.")
            self._check_roles(draft, route.path, route.allowed_roles)
            draft.routes[route.id] = route
            draft.changed = True

        logger.info(f"Route created: {route.path} ({route.id})")
        return route

    def update_route(
        self,
        route_id: str,
        patch: Union[RoutePatch, Mapping[str, object]],
    ) -> RoutePermission:
        """Apply a partial update to a route.

        Raises:
            NotFoundError: If no route has that id.
            InvalidInputError: If the patch names ``path``/``id`` or an unknown
                field, sets an empty label, or names an unknown role while
                known roles are enforced.
        """
        if not isinstance(patch, RoutePatch):
            for name in _IMMUTABLE_FIELDS:
                if name in patch:
                    raise InvalidInputError(f"Route '{name}' cannot be changed after creation.")
            with invalid_input():
                patch = RoutePatch(**patch)

        changes = patch.changes()
        with self._store.transaction() as draft:
            current = draft.routes.get(route_id)
            if current is None:
                raise NotFoundError(f"No route registered with id '{route_id}'")
            if "allowed_roles" in changes:
                self._check_roles(draft, current.path, changes["allowed_roles"])
            route = current.model_copy(update=changes)
            draft.routes[route_id] = route
            draft.changed = True

        logger.info(f"Route updated: {route.path} {sorted(changes)}")
        return route

    def set_enabled(self, route_id: str, enabled: bool) -> RoutePermission:
        """Switch a route on or off for every role.

        Raises:
            NotFoundError: If no route has that id.
            InvalidInputError: If ``enabled`` is not a boolean value.
        """
        if enabled is None:
            raise InvalidInputError("enabled must be a boolean value.")
        with invalid_input():
            patch = RoutePatch(enabled=enabled)
        return self.update_route(route_id, patch)

    def delete_route(self, route_id: str) -> None:
        """Remove a route.

        Raises:
            NotFoundError: If no route has that id.
        """
        with self._store.transaction() as draft:
            route = draft.routes.pop(route_id, None)
            if route is None:
                raise NotFoundError(f"No route registered with id '{route_id}'")
            draft.changed = True

        logger.info(f"Route deleted: {route.path} ({route_id})")

    # -- helpers --

    def _check_roles(self, draft: _Draft, path: str, roles: Iterable[str]) -> None:
        unknown = [r for r in roles if r not in draft.roles]
        if not unknown:
            return
        if self._store.settings.enforce_known_roles:
            raise InvalidInputError(f"Route '{path}' references unknown roles {unknown}.")
        logger.warning(f"Route '{path}' references unregistered roles {unknown}")

    def __len__(self) -> int:
        return len(self._store.state.routes)

    def __contains__(self, path: str) -> bool:
        return self.find_by_path(path) is not None
