"""
Bootstrap -- wiring a fresh RouteGate instance from a seed.

``bootstrap()`` is the only supported way to get a ready-to-use instance.
It builds one store, one update channel, the three registries and the
evaluator, then loads the seed in a single write so the instance never
exists in a half-seeded state.  Each call returns an independent instance;
there is no process-global registry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from routegate.config import DEFAULT_SEED, SeedConfig
from routegate.navigation import NavigationView
from routegate.propagation import UpdateChannel
from routegate.rbac import AccessEvaluator
from routegate.roles import RoleRegistry
from routegate.routes import RouteRegistry
from routegate.store import RegistryStore
from routegate.users import UserDirectory


@dataclass
class AccessControl:
    """Everything a dashboard process needs, wired to one shared store."""

    store: RegistryStore
    channel: UpdateChannel
    roles: RoleRegistry
    routes: RouteRegistry
    users: UserDirectory
    evaluator: AccessEvaluator

    def can_access(self, route: str, role: Optional[str]) -> bool:
        return self.evaluator.can_access(route, role)

    def get_accessible_routes(self, role: Optional[str]):
        return self.evaluator.get_accessible_routes(role)

    def open_navigation(self, role: Optional[str]) -> NavigationView:
        """Create a live navigation view; the caller must close it."""
        return NavigationView(self.evaluator, self.channel, role)


def build(store: Optional[RegistryStore] = None) -> AccessControl:
    """Wire registries around ``store`` (a new empty one by default)."""
    store = store if store is not None else RegistryStore()
    roles = RoleRegistry(store)
    routes = RouteRegistry(store)
    return AccessControl(
        store=store,
        channel=store.channel,
        roles=roles,
        routes=routes,
        users=UserDirectory(store),
        evaluator=AccessEvaluator(routes, roles),
    )


def bootstrap(
    seed: SeedConfig = DEFAULT_SEED,
    channel: Optional[UpdateChannel] = None,
) -> AccessControl:
    """Create an instance populated from ``seed``.

    The whole seed is applied in one transaction: if any entry is rejected
    the instance is left empty and the error propagates.  At most one update
    event is published, after the seed is committed.

    Args:
        seed: Validated seed data; defaults to the dashboard defaults.
        channel: Channel to publish on; a new one is created when omitted.

    Returns:
        A ready ``AccessControl``.
    """
    acl = build(RegistryStore(channel=channel, settings=seed.settings))

    with acl.store.transaction():
        for role in seed.roles:
            acl.roles.create_role(role.role_id, role.description, role.color)
        for route in seed.routes:
            acl.routes.create_route(
                route.path,
                route.label,
                route.allowed_roles,
                enabled=route.enabled,
                route_id=route.id,
            )
        for user in seed.users:
            acl.users.create_user(
                user.email,
                user.password,
                user.role,
                enabled=user.enabled,
                is_protected=user.is_protected,
                user_id=user.id,
            )

    logger.info(
        f"RouteGate bootstrapped: {len(acl.roles)} roles, "
        f"{len(acl.routes)} routes, {len(acl.users)} users"
    )
    return acl
