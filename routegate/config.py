"""
Seed Configuration -- Registry Settings and Bootstrap Data for RouteGate.

A freshly provisioned dashboard must never come up in a state where some
role reaches zero routes, or where nobody can administer the permission
mapping.  This module describes the seed a new ``AccessControl`` instance
is built from, validates it before anything is created, and loads it from
YAML so operators can ship their own defaults.

**Seed invariants (checked on construction):**

* role ids, route paths and user emails are unique;
* an ``ADMIN`` role exists;
* at least one seeded user is a protected identity;
* every seeded user references a seeded role;
* every seeded role reaches at least one enabled route.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


ADMIN_ROLE = "ADMIN"

# bcrypt only reads the first 72 bytes of a password; longer ones are refused.
MAX_PASSWORD_BYTES = 72


# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------

class RegistrySettings(BaseModel):
    """Behavioral switches for a registry instance."""

    enforce_known_roles: bool = Field(
        default=True,
        description=(
            "Reject route writes whose allowed_roles name a role that is not "
            "registered.  When False, unknown roles are accepted with a warning "
            "so the route and role registries can evolve independently."
        ),
    )
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt cost factor used when hashing user passwords.",
    )


# ---------------------------------------------------------------------------
# Seed records
# ---------------------------------------------------------------------------

class SeedRole(BaseModel):
    role_id: str = Field(..., min_length=1)
    description: str = ""
    color: Optional[str] = None


class SeedRoute(BaseModel):
    id: Optional[str] = Field(
        default=None,
        description="Fixed route id; a uuid is assigned when omitted.",
    )
    path: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    allowed_roles: list[str] = Field(default_factory=list)
    enabled: bool = True


class SeedUser(BaseModel):
    id: Optional[str] = None
    email: str = Field(..., min_length=3)
    password: str = Field(
        ...,
        min_length=1,
        description="Initial plaintext password; hashed with bcrypt during bootstrap.",
    )
    role: str = Field(..., min_length=1)
    enabled: bool = True
    is_protected: bool = False

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class SeedConfig(BaseModel):
    """Complete bootstrap data for one registry instance."""

    roles: list[SeedRole] = Field(default_factory=list)
    routes: list[SeedRoute] = Field(default_factory=list)
    users: list[SeedUser] = Field(default_factory=list)
    settings: RegistrySettings = Field(default_factory=RegistrySettings)

    @field_validator("roles")
    @classmethod
    def unique_roles(cls, v: list[SeedRole]) -> list[SeedRole]:
        _reject_duplicates([r.role_id for r in v], "role id")
        return v

    @field_validator("routes")
    @classmethod
    def unique_routes(cls, v: list[SeedRoute]) -> list[SeedRoute]:
        _reject_duplicates([r.path for r in v], "route path")
        _reject_duplicates([r.id for r in v if r.id is not None], "route id")
        return v

    @field_validator("users")
    @classmethod
    def unique_users(cls, v: list[SeedUser]) -> list[SeedUser]:
        _reject_duplicates([u.email for u in v], "user email")
        return v

    @model_validator(mode="after")
    def check_provisioning(self) -> SeedConfig:
        role_ids = [r.role_id for r in self.roles]
        if ADMIN_ROLE not in role_ids:
            raise ValueError(f"seed must define the '{ADMIN_ROLE}' role")

        if not any(u.is_protected for u in self.users):
            raise ValueError("seed must contain at least one protected user")

        for user in self.users:
            if user.role not in role_ids:
                raise ValueError(
                    f"seed user '{user.email}' references unknown role '{user.role}'"
                )

        if self.settings.enforce_known_roles:
            for route in self.routes:
                unknown = [r for r in route.allowed_roles if r not in role_ids]
                if unknown:
                    raise ValueError(
                        f"seed route '{route.path}' references unknown roles {unknown}"
                    )

        for role_id in role_ids:
            if not any(r.enabled and role_id in r.allowed_roles for r in self.routes):
                raise ValueError(
                    f"seed role '{role_id}' would have no accessible routes"
                )
        return self


def _reject_duplicates(values: list[str], what: str) -> None:
    seen: set[str] = set()
    for value in values:
        if value in seen:
            raise ValueError(f"duplicate {what} '{value}' in seed")
        seen.add(value)


# ---------------------------------------------------------------------------
# Default seed
# ---------------------------------------------------------------------------

_ALL = ["ADMIN", "SUPERVISOR", "ANALYST"]

DEFAULT_SEED = SeedConfig(
    roles=[
        SeedRole(
            role_id="ADMIN",
            description="Full system access including user and permission management",
            color="bg-red-500/10 text-red-500 border-red-500/20",
        ),
        SeedRole(
            role_id="SUPERVISOR",
            description="Access to reporting, analytics, and team oversight",
            color="bg-blue-500/10 text-blue-500 border-blue-500/20",
        ),
        SeedRole(
            role_id="ANALYST",
            description="Read-only access to metrics and historical reports",
            color="bg-green-500/10 text-green-500 border-green-500/20",
        ),
    ],
    routes=[
        SeedRoute(id="1", path="/dashboard", label="Dashboard", allowed_roles=_ALL),
        SeedRoute(id="2", path="/metrics/real-time", label="Real-Time Metrics",
                  allowed_roles=["ADMIN", "SUPERVISOR"]),
        SeedRoute(id="3", path="/metrics/historical", label="Historical Metrics",
                  allowed_roles=_ALL),
        SeedRoute(id="4", path="/analytics", label="Contact Lens",
                  allowed_roles=["ADMIN", "SUPERVISOR"]),
        SeedRoute(id="5", path="/search", label="Contact Search",
                  allowed_roles=["ADMIN", "SUPERVISOR"]),
        SeedRoute(id="6", path="/evaluations", label="Evaluations", allowed_roles=["ADMIN"]),
        SeedRoute(id="7", path="/admin/users", label="User Management", allowed_roles=["ADMIN"]),
        SeedRoute(id="8", path="/admin/rbac", label="RBAC Settings", allowed_roles=["ADMIN"]),
        SeedRoute(id="9", path="/settings", label="Settings", allowed_roles=_ALL),
    ],
    users=[
        SeedUser(
            id="admin-1",
            email="admin@example.com",
            password="change-me",
            role="ADMIN",
            is_protected=True,
        ),
    ],
)
"""Built-in dashboard defaults.

Operators should replace the seed administrator's password immediately;
it exists only so a fresh install can be logged into.
"""


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def load_seed_from_yaml(path: str | Path) -> SeedConfig:
    """Load a seed from a YAML file.

    Expected structure::

        roles:
          - role_id: "ADMIN"
            description: "Administrators"
        routes:
          - path: "/dashboard"
            label: "Dashboard"
            allowed_roles: ["ADMIN"]
        users:
          - email: "root@example.com"
            password: "..."
            role: "ADMIN"
            is_protected: true
        settings:
          enforce_known_roles: true

    Args:
        path: Path to the YAML file.

    Returns:
        A validated ``SeedConfig``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the top-level structure is not a mapping with a
            ``roles`` list.
        pydantic.ValidationError: If the seed fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict) or "roles" not in raw:
        raise ValueError("YAML seed must be a mapping with a top-level 'roles' key.")

    for key in ("roles", "routes", "users"):
        if key in raw and not isinstance(raw[key], list):
            raise ValueError(f"'{key}' must be a list.")

    return SeedConfig(**raw)
