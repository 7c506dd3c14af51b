"""
Core data models for RouteGate.

Roles, route permissions and users are immutable pydantic models.  The
registries store and hand out these instances directly; an entity only
changes when a registry call replaces it with a new instance.

Role identifiers are open, case-sensitive strings rather than a closed
enumeration so administrators can add roles at runtime.  There is no role
hierarchy: access is decided by plain membership in ``allowed_roles``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

class RoleDefinition(BaseModel):
    """A role an administrator has registered.

    ``color`` is a display hint for badges in the admin views; it carries
    no security meaning.
    """

    model_config = ConfigDict(frozen=True)

    role_id: str = Field(
        ...,
        min_length=1,
        description="Opaque, case-sensitive role identifier (e.g. 'ADMIN').",
    )
    description: str = Field(
        default="",
        description="Human-readable description shown in the admin views.",
    )
    color: Optional[str] = Field(
        default=None,
        description="Optional display tag (CSS classes or a color name).",
    )


# ---------------------------------------------------------------------------
# Route permissions
# ---------------------------------------------------------------------------

def _as_tuple(v) -> tuple:
    try:
        return tuple(v)
    except TypeError:
        raise ValueError("allowed_roles must be a list of role ids") from None


def _normalize_roles(roles: tuple[str, ...]) -> tuple[str, ...]:
    """Drop duplicate role ids while keeping first-seen order."""
    seen: list[str] = []
    for role in roles:
        if not isinstance(role, str) or not role.strip():
            raise ValueError("allowed_roles entries must be non-empty strings")
        if role not in seen:
            seen.append(role)
    return tuple(seen)


class RoutePermission(BaseModel):
    """A navigable route and the roles allowed to reach it.

    ``path`` is an opaque key: ``/metrics`` grants nothing on
    ``/metrics/real-time``.  An empty ``allowed_roles`` is legal and makes
    the route unreachable for everyone.  A disabled route is excluded from
    every access decision regardless of role membership.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        min_length=1,
        description="Registry-assigned identifier, stable for the life of the route.",
    )
    path: str = Field(
        ...,
        min_length=1,
        description="Exact route path (e.g. '/admin/users').  Immutable after creation.",
    )
    label: str = Field(
        ...,
        min_length=1,
        description="Navigation label.",
    )
    allowed_roles: tuple[str, ...] = Field(
        default=(),
        description="Role ids permitted to access the route, in display order.",
    )
    enabled: bool = Field(
        default=True,
        description="Whether the route takes part in access decisions at all.",
    )

    @field_validator("allowed_roles", mode="before")
    @classmethod
    def coerce_roles(cls, v):
        if v is None:
            return ()
        if isinstance(v, str):
            # A bare string would otherwise be split into characters.
            return (v,)
        return _as_tuple(v)

    @field_validator("allowed_roles")
    @classmethod
    def dedupe_roles(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return _normalize_roles(v)

    def allows(self, role: Optional[str]) -> bool:
        """Return True if the route is enabled and lists ``role``."""
        if not role:
            return False
        return self.enabled and role in self.allowed_roles


class RoutePatch(BaseModel):
    """Partial update for a route.

    Only the fields explicitly set are applied.  The path and id are not
    part of the patch: the path is the route's stable identity.
    """

    model_config = ConfigDict(extra="forbid")

    label: Optional[str] = Field(default=None, min_length=1)
    allowed_roles: Optional[tuple[str, ...]] = None
    enabled: Optional[bool] = None

    @field_validator("label")
    @classmethod
    def label_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("label must not be blank")
        return v

    @field_validator("allowed_roles", mode="before")
    @classmethod
    def coerce_roles(cls, v):
        if v is None:
            return v
        if isinstance(v, str):
            return (v,)
        return _as_tuple(v)

    @field_validator("allowed_roles")
    @classmethod
    def dedupe_roles(cls, v: Optional[tuple[str, ...]]) -> Optional[tuple[str, ...]]:
        return None if v is None else _normalize_roles(v)

    def changes(self) -> dict:
        """Return only the fields the caller set (``None`` values excluded)."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if getattr(self, name) is not None
        }


# ---------------------------------------------------------------------------
# Users and sessions
# ---------------------------------------------------------------------------

class User(BaseModel):
    """A dashboard user.  Each user holds exactly one role.

    ``password_hash`` is a bcrypt hash; it is excluded from serialization
    and from ``repr`` so user snapshots can be handed to views safely.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique user identifier.",
    )
    email: str = Field(
        ...,
        min_length=3,
        description="Unique login key and human-facing identity.",
    )
    password_hash: str = Field(
        default="",
        exclude=True,
        repr=False,
        description="bcrypt hash of the user's password.",
    )
    role: str = Field(
        ...,
        min_length=1,
        description="The single role id assigned to the user.",
    )
    enabled: bool = Field(
        default=True,
        description="Disabled users fail authentication and reach no routes.",
    )
    is_protected: bool = Field(
        default=False,
        description=(
            "Protected identities (the seed administrator) cannot be disabled, "
            "deleted or moved to another role."
        ),
    )

    @field_validator("email")
    @classmethod
    def email_has_at(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError(f"'{v}' is not an email address")
        return v


class AuthSession(BaseModel):
    """An authenticated session issued by the login collaborator.

    The core never stores sessions; it only reads the user snapshot and
    the expiry to decide which role, if any, a request carries.
    """

    model_config = ConfigDict(frozen=True)

    user: User
    expires: datetime

    @field_validator("expires")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # Naive timestamps from the login endpoint are UTC.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return self.expires <= now

    def effective_role(self, now: Optional[datetime] = None) -> Optional[str]:
        """Return the role to evaluate, or None for expired or disabled users."""
        if self.is_expired(now) or not self.user.enabled:
            return None
        return self.user.role
