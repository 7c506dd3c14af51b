"""
Role-Based Access Control (RBAC) evaluation for RouteGate.

Answers the two questions every view and route guard asks:

* may role R open route P?  (``can_access``)
* which routes may role R open, in navigation order?  (``get_accessible_routes``)

**Decision rule** (evaluated against the current route snapshot):

1. A path that is not registered is denied.  Unknown routes are never
   reachable.
2. A registered route that is disabled is denied for every role.
3. Otherwise the role must appear in ``allowed_roles``.  Matching is exact
   and case-sensitive; there is no role hierarchy and no wildcard or
   prefix matching on paths.

A missing role (``None`` or ``""``, e.g. a visitor who has not logged in)
matches nothing.  Queries never raise: denial is a ``False`` or an empty
tuple.  ``require_access`` exists for guards that prefer an exception.

The module-level functions work on any sequence of ``RoutePermission`` so a
snapshot can be evaluated directly; ``AccessEvaluator`` binds them to a live
``RouteRegistry``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from routegate.errors import AccessDeniedError
from routegate.models import AuthSession, RoutePermission, User
from routegate.roles import RoleRegistry
from routegate.routes import RouteRegistry


# ---------------------------------------------------------------------------
# Snapshot evaluation
# ---------------------------------------------------------------------------

def can_access(
    routes: Sequence[RoutePermission],
    route: str,
    role: Optional[str],
) -> bool:
    """Check whether ``role`` may open ``route``.

    Args:
        routes: Route snapshot, in registry order.
        route: The exact path being requested.
        role: The caller's role id, or None if unauthenticated.

    Returns:
        True only if the path is registered, enabled, and lists the role.
    """
    for entry in routes:
        if entry.path == route:
            return entry.allows(role)
    return False


def accessible_routes(
    routes: Sequence[RoutePermission],
    role: Optional[str],
) -> tuple[RoutePermission, ...]:
    """Return the enabled routes listing ``role``, preserving snapshot order."""
    return tuple(entry for entry in routes if entry.allows(role))


# ---------------------------------------------------------------------------
# Live evaluator
# ---------------------------------------------------------------------------

class AccessEvaluator:
    """Stateless query layer over a ``RouteRegistry``.

    Every call reads the registry's current snapshot, so results always
    reflect the latest committed mutation.  The evaluator never writes.
    """

    def __init__(self, routes: RouteRegistry, roles: Optional[RoleRegistry] = None) -> None:
        self._routes = routes
        self._roles = roles

    def can_access(self, route: str, role: Optional[str]) -> bool:
        return can_access(self._routes.list_routes(), route, role)

    def get_accessible_routes(self, role: Optional[str]) -> tuple[RoutePermission, ...]:
        return accessible_routes(self._routes.list_routes(), role)

    def require_access(self, route: str, role: Optional[str]) -> None:
        """Enforce access; raise if denied.

        Raises:
            AccessDeniedError: If ``can_access`` is False.
        """
        if not self.can_access(route, role):
            raise AccessDeniedError(route, role)

    def routes_for_user(self, user: Optional[User]) -> tuple[RoutePermission, ...]:
        """Accessible routes for a user; disabled users get none."""
        if user is None or not user.enabled:
            return ()
        return self.get_accessible_routes(user.role)

    def routes_for_session(
        self,
        session: Optional[AuthSession],
        now: Optional[datetime] = None,
    ) -> tuple[RoutePermission, ...]:
        """Accessible routes for a session; expired sessions get none."""
        if session is None:
            return ()
        return self.get_accessible_routes(session.effective_role(now))

    def access_matrix(self) -> dict[str, tuple[str, ...]]:
        """Map every registered role to the paths it can reach.

        Used by the admin views to show "which routes can this role open".
        Roles referenced only by routes (lenient mode) are included too.

        Returns:
            Dictionary of role id to accessible paths, in registry order.
        """
        routes = self._routes.list_routes()
        role_ids: list[str] = []
        if self._roles is not None:
            role_ids.extend(r.role_id for r in self._roles.list_roles())
        for entry in routes:
            for role in entry.allowed_roles:
                if role not in role_ids:
                    role_ids.append(role)
        return {
            role: tuple(entry.path for entry in accessible_routes(routes, role))
            for role in role_ids
        }
