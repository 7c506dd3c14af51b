"""
Error taxonomy for the RouteGate registries.

Every registry mutation either fully applies or raises one of the errors
below with the registry left unchanged.  Evaluator queries never raise:
a denied ``can_access`` is a normal ``False``, not an error.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from pydantic import ValidationError


class RegistryError(Exception):
    """Base class for all registry mutation and lookup errors."""
    pass


class InvalidInputError(RegistryError, ValueError):
    """Raised when an identifier, label, path or email is empty or malformed."""
    pass


class DuplicateError(RegistryError, ValueError):
    """Raised when a uniqueness constraint would be violated."""
    pass


class DuplicateRoleError(DuplicateError):
    """Raised when a role identifier is already registered."""
    pass


class DuplicateRouteError(DuplicateError):
    """Raised when a route path (or explicit route id) is already registered."""
    pass


class DuplicateUserError(DuplicateError):
    """Raised when a user email is already registered."""
    pass


class NotFoundError(RegistryError, KeyError):
    """Raised when a role, route or user lookup misses."""

    def __str__(self) -> str:
        # KeyError would repr() the message and wrap it in quotes.
        return str(self.args[0]) if self.args else ""


class ReferentialConflictError(RegistryError):
    """Raised when a role cannot be deleted because it is still referenced.

    Attributes:
        role_id: The role whose deletion was blocked.
        route_paths: Paths of routes that list the role in ``allowed_roles``.
        user_emails: Emails of users assigned to the role.
    """

    def __init__(
        self,
        role_id: str,
        route_paths: tuple[str, ...] = (),
        user_emails: tuple[str, ...] = (),
    ) -> None:
        self.role_id = role_id
        self.route_paths = route_paths
        self.user_emails = user_emails

        parts = []
        if route_paths:
            parts.append(f"routes {list(route_paths)}")
        if user_emails:
            parts.append(f"users {list(user_emails)}")
        super().__init__(
            f"Role '{role_id}' is still referenced by {' and '.join(parts)}."
        )


class ProtectedIdentityError(RegistryError, PermissionError):
    """Raised when a change would disable, delete or re-role a protected user."""

    def __init__(self, email: str, action: str) -> None:
        self.email = email
        self.action = action
        super().__init__(
            f"User '{email}' is a protected identity and cannot be {action}."
        )


class AccessDeniedError(PermissionError):
    """Raised by route guards when a role may not reach a route."""

    def __init__(self, route: str, role: str | None) -> None:
        self.route = route
        self.role = role
        super().__init__(f"Role '{role}' is not permitted to access route '{route}'.")


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------

def require_text(value: object, what: str) -> str:
    """Return ``value`` if it is a non-blank string, else raise InvalidInputError."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{what} must be a non-empty string.")
    return value


@contextmanager
def invalid_input() -> Iterator[None]:
    """Re-raise pydantic validation failures as ``InvalidInputError``."""
    try:
        yield
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidInputError(details) from e
