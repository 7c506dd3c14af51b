"""
Role Registry.

Holds the set of valid role identifiers and their display metadata.
Roles are never created implicitly: a route or user naming a role that is
not registered here is rejected (or, for routes in lenient mode, warned
about).  A role cannot be deleted while any route or user references it.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from routegate.errors import (
    DuplicateRoleError,
    NotFoundError,
    ReferentialConflictError,
    invalid_input,
    require_text,
)
from routegate.models import RoleDefinition
from routegate.store import RegistryStore

_UNSET = object()


class RoleRegistry:
    """CRUD over the roles held in a ``RegistryStore``."""

    def __init__(self, store: RegistryStore) -> None:
        self._store = store

    # -- queries --

    def list_roles(self) -> tuple[RoleDefinition, ...]:
        """Return all roles in creation order."""
        return tuple(self._store.state.roles.values())

    def get_role(self, role_id: str) -> RoleDefinition:
        """Return the role with ``role_id``.

        Raises:
            NotFoundError: If the role is not registered.
        """
        try:
            return self._store.state.roles[role_id]
        except KeyError:
            raise NotFoundError(f"No role registered with id '{role_id}'") from None

    # -- mutations --

    def create_role(
        self,
        role_id: str,
        description: str = "",
        color: Optional[str] = None,
    ) -> RoleDefinition:
        """Register a new role.

        Raises:
            InvalidInputError: If ``role_id`` is empty.
            DuplicateRoleError: If ``role_id`` is already registered.
        """
        require_text(role_id, "role_id")
        with invalid_input():
            role = RoleDefinition(role_id=role_id, description=description, color=color)

        with self._store.transaction() as draft:
            if role_id in draft.roles:
                raise DuplicateRoleError(f"Role '{role_id}' already registered.")
            draft.roles[role_id] = role
            draft.changed = True

        logger.info(f"Role created: {role_id}")
        return role

    def update_role(
        self,
        role_id: str,
        description=_UNSET,
        color=_UNSET,
    ) -> RoleDefinition:
        """Change a role's display metadata.  The identifier is immutable.

        Raises:
            NotFoundError: If the role is not registered.
        """
        with self._store.transaction() as draft:
            if role_id not in draft.roles:
                raise NotFoundError(f"No role registered with id '{role_id}'")
            changes = {}
            if description is not _UNSET:
                changes["description"] = description
            if color is not _UNSET:
                changes["color"] = color
            current = draft.roles[role_id]
            with invalid_input():
                role = RoleDefinition(**{**current.model_dump(), **changes})
            draft.roles[role_id] = role
            draft.changed = True

        logger.info(f"Role updated: {role_id}")
        return role

    def delete_role(self, role_id: str) -> None:
        """Remove a role that nothing references any more.

        Raises:
            NotFoundError: If the role is not registered.
            ReferentialConflictError: If a route or user still references it.
        """
        with self._store.transaction() as draft:
            if role_id not in draft.roles:
                raise NotFoundError(f"No role registered with id '{role_id}'")

            route_paths = tuple(
                r.path for r in draft.routes.values() if role_id in r.allowed_roles
            )
            user_emails = tuple(
                u.email for u in draft.users.values() if u.role == role_id
            )
            if route_paths or user_emails:
                raise ReferentialConflictError(role_id, route_paths, user_emails)

            del draft.roles[role_id]
            draft.changed = True

        logger.info(f"Role deleted: {role_id}")

    def __len__(self) -> int:
        return len(self._store.state.roles)

    def __contains__(self, role_id: object) -> bool:
        return role_id in self._store.state.roles
